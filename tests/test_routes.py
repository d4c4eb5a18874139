"""Tests for the remaining REST routes: media, conversations, payout accounts,
notifications, admin conversations, auth, withdrawal detail and documents."""

import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from auth import manager as auth_manager, InvalidCredentialsError, UserExistsError
from auth.models import User, UserRole
from tests.conftest import CLIENT, FREELANCER, ADMIN, withdrawal_manager

# Media messages

def test_send_media_stores_attachment(client, session, message_manager, tmp_path):
    response = client.post(
        "/api/messages/media",
        data={"receiverId": str(FREELANCER.id), "caption": "Signed contract"},
        files={"file": ("contract.pdf", b"%PDF-1.4 contract", "application/pdf")}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["mediaType"] == "document"
    assert body["mediaUrl"].startswith(f"/uploads/message_{CLIENT.id}_")
    assert body["content"] == "Signed contract"
    assert os.listdir(tmp_path) == [os.path.basename(body["mediaUrl"])]

def test_send_media_caption_defaults_to_filename(client, session, message_manager):
    response = client.post(
        "/api/messages/media",
        data={"receiverId": str(FREELANCER.id)},
        files={"file": ("mockup.png", b"\x89PNG fake", "image/png")}
    )

    assert response.status_code == 201
    assert response.json()["mediaType"] == "image"
    assert response.json()["content"] == "mockup.png"

def test_send_media_too_large(client, session, message_manager, tmp_path):
    response = client.post(
        "/api/messages/media",
        data={"receiverId": str(FREELANCER.id)},
        files={"file": ("video.mp4", b"x" * 2048, "video/mp4")}
    )

    assert response.status_code == 413
    assert os.listdir(tmp_path) == []
    assert message_manager.messages == {}

def test_send_media_to_unknown_user(client, session, message_manager):
    response = client.post(
        "/api/messages/media",
        data={"receiverId": "99"},
        files={"file": ("notes.txt", b"hello", "text/plain")}
    )

    assert response.status_code == 404

# Conversations

def test_conversations_and_unread_count(client, session, message_manager):
    message_manager.add(FREELANCER.id, CLIENT.id, "First")
    message_manager.add(FREELANCER.id, CLIENT.id, "Second")
    message_manager.add(ADMIN.id, CLIENT.id, "Welcome")

    conversations = client.get("/api/conversations").json()
    assert [c["partner"]["id"] for c in conversations] == [ADMIN.id, FREELANCER.id]
    assert conversations[1]["partner"]["role"] == "freelancer"
    assert conversations[1]["lastMessage"]["content"] == "Second"
    assert conversations[1]["unreadCount"] == 2

    assert client.get("/api/messages/unread-count").json() == {"count": 3}

    client.post(f"/api/messages/{FREELANCER.id}/read")
    assert client.get("/api/messages/unread-count").json() == {"count": 1}

def test_thread_pages_backwards(client, session, message_manager):
    for i in range(5):
        message_manager.add(CLIENT.id, FREELANCER.id, f"message {i}")

    newest = client.get(f"/api/messages/{FREELANCER.id}?limit=2").json()
    older = client.get(f"/api/messages/{FREELANCER.id}?limit=2&beforeId={newest[0]['id']}").json()

    assert [m["id"] for m in newest] == [4, 5]
    assert [m["id"] for m in older] == [2, 3]

# Admin conversations

def test_admin_lists_conversations(client, session, message_manager):
    message_manager.add(CLIENT.id, FREELANCER.id, "Hi")
    message_manager.add(FREELANCER.id, CLIENT.id, "Hello", is_flagged=True)
    session.login(ADMIN)

    conversations = client.get("/api/admin/conversations").json()

    assert len(conversations) == 1
    assert conversations[0]["id"] == "1-2"
    assert conversations[0]["messageCount"] == 2
    assert conversations[0]["flaggedCount"] == 1
    assert conversations[0]["isFlagged"] is True

def test_admin_reads_conversation_thread(client, session, message_manager):
    message_manager.add(CLIENT.id, FREELANCER.id, "Hi")
    message_manager.add(FREELANCER.id, CLIENT.id, "Hello")
    session.login(ADMIN)

    thread = client.get("/api/admin/conversations/1-2/messages").json()

    assert thread["userIds"] == [1, 2]
    assert [m["content"] for m in thread["messages"]] == ["Hi", "Hello"]

def test_admin_conversation_bad_key(client, session, message_manager):
    session.login(ADMIN)

    assert client.get("/api/admin/conversations/nonsense/messages").status_code == 400

def test_admin_conversations_require_admin(client, session, message_manager):
    assert client.get("/api/admin/conversations").status_code == 403
    assert client.get("/api/admin/conversations/1-2/messages").status_code == 403

# Earnings and payout accounts

def test_earnings(client, session):
    withdrawal_manager("500.00", pending="100.00")
    session.login(FREELANCER)

    body = client.get("/api/earnings").json()

    assert Decimal(body["balance"]["availableBalance"]) == Decimal("400")
    assert len(body["payments"]) == 1

def test_payout_accounts(client, session):
    withdrawal_manager("0")
    session.login(FREELANCER)

    first = client.post("/api/payout-accounts", json={
        "method": "bank_transfer", "accountDetails": "IBAN SA00 0000"
    })
    second = client.post("/api/payout-accounts", json={
        "method": "paypal", "accountDetails": "me@paypal.example"
    })

    assert first.status_code == 201
    # The first account becomes the default
    assert first.json()["isDefault"] is True
    assert second.json()["isDefault"] is False
    assert len(client.get("/api/payout-accounts").json()) == 2

    assert client.delete(f"/api/payout-accounts/{first.json()['id']}").json() == {"success": True}
    assert [a["method"] for a in client.get("/api/payout-accounts").json()] == ["paypal"]

def test_payout_account_of_other_user(client, session):
    withdrawal_manager("0")
    session.login(FREELANCER)
    account = client.post("/api/payout-accounts", json={
        "method": "paypal", "accountDetails": "me@paypal.example"
    }).json()

    session.login(CLIENT)
    assert client.delete(f"/api/payout-accounts/{account['id']}").status_code == 404

def test_unknown_payout_method(client, session):
    withdrawal_manager("0")
    response = client.post("/api/payout-accounts", json={
        "method": "crypto", "accountDetails": "wallet"
    })

    assert response.status_code == 422

# Withdrawal request detail

def _request_withdrawal(client, session) -> dict:
    session.login(FREELANCER)
    return client.post("/api/withdrawal-requests", json={
        "amount": "150",
        "paymentMethod": "paypal",
        "accountDetails": "me@paypal.example",
        "notes": "Monthly payout"
    }).json()

def test_get_withdrawal_request(client, session):
    withdrawal_manager("500")
    created = _request_withdrawal(client, session)

    response = client.get(f"/api/withdrawal-requests/{created['id']}")
    assert response.status_code == 200
    assert Decimal(response.json()["amount"]) == Decimal("150")

    session.login(ADMIN)
    assert client.get(f"/api/withdrawal-requests/{created['id']}").status_code == 200

def test_withdrawal_request_hidden_from_other_users(client, session):
    withdrawal_manager("500")
    created = _request_withdrawal(client, session)

    session.login(CLIENT)
    response = client.get(f"/api/withdrawal-requests/{created['id']}")

    assert response.status_code == 404

def test_missing_withdrawal_request(client, session):
    withdrawal_manager("500")
    session.login(FREELANCER)

    assert client.get("/api/withdrawal-requests/42").status_code == 404

def test_admin_notes_keep_freelancer_notes(client, session):
    withdrawal_manager("500")
    created = _request_withdrawal(client, session)

    session.login(ADMIN)
    updated = client.patch(f"/api/withdrawal-requests/{created['id']}/status", json={
        "status": "rejected",
        "adminNotes": "Account details do not match"
    }).json()

    assert updated["notes"] == "Monthly payout"
    assert updated["adminNotes"] == "Account details do not match"

# Notifications

def _create_notification(client, user_id, title="Hello") -> object:
    return client.post("/api/notifications", json={
        "userId": user_id,
        "type": "system",
        "title": title,
        "message": "Something happened"
    })

def test_create_notification_for_self(client, session, notification_manager):
    response = _create_notification(client, CLIENT.id)

    assert response.status_code == 201
    assert response.json()["userId"] == CLIENT.id
    assert response.json()["isRead"] is False

def test_create_notification_for_other_user_forbidden(client, session, notification_manager):
    response = _create_notification(client, FREELANCER.id)

    assert response.status_code == 403
    assert notification_manager.notifications == {}

def test_admin_creates_notification_for_any_user(client, session, notification_manager):
    session.login(ADMIN)

    assert _create_notification(client, FREELANCER.id).status_code == 201

def test_notification_for_unknown_user(client, session, notification_manager):
    session.login(ADMIN)

    assert _create_notification(client, 99).status_code == 404

def test_notification_validation(client, session, notification_manager):
    response = client.post("/api/notifications", json={
        "userId": CLIENT.id, "type": "system", "title": "", "message": "x"
    })

    assert response.status_code == 422

def test_list_and_read_notifications(client, session, notification_manager):
    _create_notification(client, CLIENT.id, title="First")
    _create_notification(client, CLIENT.id, title="Second")

    listed = client.get("/api/notifications").json()
    assert [n["title"] for n in listed] == ["Second", "First"]

    read = client.patch(f"/api/notifications/{listed[0]['id']}/read")
    assert read.json()["isRead"] is True

    unread = client.get("/api/notifications?unreadOnly=true").json()
    assert [n["title"] for n in unread] == ["First"]

def test_notifications_are_private(client, session, notification_manager):
    created = _create_notification(client, CLIENT.id).json()

    session.login(FREELANCER)
    assert client.get("/api/notifications").json() == []
    assert client.patch(f"/api/notifications/{created['id']}/read").status_code == 404
    assert client.delete(f"/api/notifications/{created['id']}").status_code == 404

def test_delete_notification(client, session, notification_manager):
    own = _create_notification(client, CLIENT.id).json()
    other = _create_notification(client, CLIENT.id).json()

    assert client.delete(f"/api/notifications/{own['id']}").json() == {"success": True}

    session.login(ADMIN)
    assert client.delete(f"/api/notifications/{other['id']}").json() == {"success": True}
    assert notification_manager.notifications == {}

# Verification documents

@pytest.fixture
def document(tmp_path, verification_manager):
    path = tmp_path / "verification_2_20240101_000000_abcd1234.pdf"
    path.write_bytes(b"%PDF-1.4 passport scan")
    verification_manager.documents[path.name] = (FREELANCER.id, str(path))
    return path.name

def test_owner_downloads_document(client, session, document):
    session.login(FREELANCER)

    response = client.get(f"/api/verification-documents/{document}")

    assert response.status_code == 200
    assert response.content == b"%PDF-1.4 passport scan"

def test_admin_downloads_document(client, session, document):
    session.login(ADMIN)

    assert client.get(f"/api/verification-documents/{document}").status_code == 200

def test_document_hidden_from_other_users(client, session, document):
    response = client.get(f"/api/verification-documents/{document}")

    assert response.status_code == 404

def test_missing_document(client, session, verification_manager):
    session.login(ADMIN)

    assert client.get("/api/verification-documents/nothing.pdf").status_code == 404

# Authentication routes

def _account(user_id=10, username="newfreelancer", role=UserRole.FREELANCER) -> User:
    return User(
        id=user_id,
        username=username,
        email=f"{username}@example.com",
        full_name="New Freelancer",
        role=role,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )

REGISTRATION = {
    "username": "newfreelancer",
    "email": "newfreelancer@example.com",
    "password": "correct horse",
    "fullName": "New Freelancer",
    "role": "freelancer"
}

def test_register(client, monkeypatch):
    calls = []

    async def register(username, email, password, full_name, role):
        calls.append((username, role))
        return _account()

    monkeypatch.setattr(auth_manager, "register", register)

    response = client.post("/api/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    assert response.json()["username"] == "newfreelancer"
    assert "password" not in response.json()
    assert calls == [("newfreelancer", UserRole.FREELANCER)]

def test_register_as_admin_refused(client, monkeypatch):
    async def register(*args):
        raise AssertionError("admin accounts are not self-registered")

    monkeypatch.setattr(auth_manager, "register", register)

    response = client.post("/api/auth/register", json={**REGISTRATION, "role": "admin"})

    assert response.status_code == 400

def test_register_existing_user(client, monkeypatch):
    async def register(*args):
        raise UserExistsError("Username or email already registered")

    monkeypatch.setattr(auth_manager, "register", register)

    assert client.post("/api/auth/register", json=REGISTRATION).status_code == 409

def test_register_validation(client):
    response = client.post("/api/auth/register", json={**REGISTRATION, "password": "short"})

    assert response.status_code == 422

def test_login(client, monkeypatch):
    async def login(username, password, request=None):
        if password != "correct horse":
            raise InvalidCredentialsError("Invalid username or password")
        return {"token": "abc", "expires_at": "2024-01-02T00:00:00+00:00", "user": _account()}

    monkeypatch.setattr(auth_manager, "login", login)

    ok = client.post("/api/auth/login", json={"username": "newfreelancer", "password": "correct horse"})
    bad = client.post("/api/auth/login", json={"username": "newfreelancer", "password": "wrong"})

    assert ok.status_code == 200
    assert ok.json()["token"] == "abc"
    assert ok.json()["expiresAt"] == "2024-01-02T00:00:00+00:00"
    assert ok.json()["user"]["role"] == "freelancer"
    assert bad.status_code == 401

def test_me_and_logout(client, session, monkeypatch):
    logged_out = []

    async def get_user(user_id):
        return _account(user_id=user_id, username="client1", role=UserRole.CLIENT)

    async def logout(user_id):
        logged_out.append(user_id)

    monkeypatch.setattr(auth_manager, "get_user", get_user)
    monkeypatch.setattr(auth_manager, "logout", logout)

    assert client.get("/api/auth/me").json()["id"] == CLIENT.id
    assert client.post("/api/auth/logout").json() == {"success": True}
    assert logged_out == [CLIENT.id]

def test_me_for_deleted_account(client, session, monkeypatch):
    async def get_user(user_id):
        return None

    monkeypatch.setattr(auth_manager, "get_user", get_user)

    assert client.get("/api/auth/me").status_code == 404
