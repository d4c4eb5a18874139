"""Tests for the HTTP surface using in-memory managers."""

import pytest
from decimal import Decimal

from api import app
from tests.conftest import CLIENT, FREELANCER, ADMIN, withdrawal_manager

# Messages

def test_send_message_returns_camel_case(client, session, message_manager):
    response = client.post("/api/messages", json={"receiverId": 2, "content": "Hello there"})

    assert response.status_code == 201
    body = response.json()
    assert body["senderId"] == CLIENT.id
    assert body["receiverId"] == 2
    assert body["isRead"] is False
    assert body["isFlagged"] is False
    assert body["mediaUrl"] is None

def test_sent_message_appears_in_thread(client, session, message_manager):
    client.post("/api/messages", json={"receiverId": 2, "content": "first"})
    client.post("/api/messages", json={"receiverId": 2, "content": "second"})

    response = client.get("/api/messages/2")

    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["first", "second"]

def test_send_message_filters_contact_details(client, session, message_manager):
    response = client.post(
        "/api/messages",
        json={"receiverId": 2, "content": "mail me at me@example.com"}
    )

    assert response.status_code == 201
    assert "me@example.com" not in response.json()["content"]

def test_send_message_to_self_rejected(client, session, message_manager):
    response = client.post("/api/messages", json={"receiverId": CLIENT.id, "content": "hi"})

    assert response.status_code == 400

def test_send_empty_message_rejected(client, session, message_manager):
    response = client.post("/api/messages", json={"receiverId": 2, "content": ""})

    assert response.status_code == 422

def test_requires_authentication(message_manager):
    from fastapi.testclient import TestClient
    response = TestClient(app).get("/api/messages/2")

    assert response.status_code in (401, 403)

# Moderation

def test_flag_round_trip(client, session, message_manager):
    """Flag, flag again, then unflag message 1, checking each via refetch."""
    message_manager.add(CLIENT.id, FREELANCER.id, "original")

    def thread_flag():
        session.login(CLIENT)
        thread = client.get(f"/api/messages/{FREELANCER.id}").json()
        return thread[0]["isFlagged"]

    assert thread_flag() is False

    session.login(ADMIN)
    response = client.patch("/api/admin/messages/1/flag", json={"isFlagged": True})
    assert response.status_code == 200
    assert thread_flag() is True

    session.login(ADMIN)
    client.patch("/api/admin/messages/1/flag", json={"isFlagged": True})
    assert thread_flag() is True

    session.login(ADMIN)
    client.patch("/api/admin/messages/1/flag", json={"isFlagged": False})
    assert thread_flag() is False

def test_flag_requires_admin(client, session, message_manager):
    message_manager.add(CLIENT.id, FREELANCER.id, "original")

    response = client.patch("/api/admin/messages/1/flag", json={"isFlagged": True})

    assert response.status_code == 403
    assert message_manager.messages[1].is_flagged is False

def test_flag_missing_message(client, session, message_manager):
    session.login(ADMIN)

    response = client.patch("/api/admin/messages/99/flag", json={"isFlagged": True})

    assert response.status_code == 404

def test_supervise_defaults_to_calling_admin(client, session, message_manager):
    message_manager.add(CLIENT.id, FREELANCER.id, "original")
    session.login(ADMIN)

    response = client.patch(
        "/api/admin/messages/1/supervise",
        json={"supervisorNotes": "Reminded both parties of the rules"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["supervisedBy"] == ADMIN.id
    assert body["supervisorNotes"] == "Reminded both parties of the rules"
    assert body["content"] == "original"

# Withdrawals

PAYPAL = {"paymentMethod": "paypal", "accountDetails": "freelancer@example.com"}

def test_withdrawal_rejected_above_available(client, session):
    withdrawal_manager("500", "450")
    session.login(FREELANCER)

    response = client.post("/api/withdrawal-requests", json={"amount": "100", **PAYPAL})

    assert response.status_code == 400
    assert "Insufficient balance" in response.json()["detail"]

def test_withdrawal_boundaries(client, session):
    manager = withdrawal_manager("150")
    session.login(FREELANCER)

    too_much = client.post("/api/withdrawal-requests", json={"amount": "200", **PAYPAL})
    assert too_much.status_code == 400

    ok = client.post("/api/withdrawal-requests", json={"amount": "100", **PAYPAL})
    assert ok.status_code == 201
    assert ok.json()["status"] == "pending"
    assert manager.pending == Decimal("100")

def test_withdrawal_below_minimum(client, session):
    withdrawal_manager("10000")
    session.login(FREELANCER)

    response = client.post("/api/withdrawal-requests", json={"amount": "99", **PAYPAL})

    assert response.status_code == 400
    assert "Minimum" in response.json()["detail"]

def test_withdrawal_requires_destination(client, session):
    withdrawal_manager("1000")
    session.login(FREELANCER)

    response = client.post("/api/withdrawal-requests", json={"amount": "100"})

    assert response.status_code == 400

def test_withdrawal_by_client_forbidden(client, session):
    withdrawal_manager("1000")

    response = client.post("/api/withdrawal-requests", json={"amount": "100", **PAYPAL})

    assert response.status_code == 403

def test_balance_endpoint(client, session):
    withdrawal_manager("500", "450")
    session.login(FREELANCER)

    response = client.get("/api/balance")

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["totalEarnings"]) == Decimal("500")
    assert Decimal(body["pendingWithdrawals"]) == Decimal("450")
    assert Decimal(body["availableBalance"]) == Decimal("50")

def test_withdrawal_lifecycle(client, session):
    withdrawal_manager("1000")
    session.login(FREELANCER)
    client.post("/api/withdrawal-requests", json={"amount": "300", **PAYPAL})

    session.login(ADMIN)
    approved = client.patch("/api/withdrawal-requests/1/status", json={"status": "approved"})
    assert approved.status_code == 200
    assert approved.json()["adminId"] == ADMIN.id

    back = client.patch("/api/withdrawal-requests/1/status", json={"status": "pending"})
    assert back.status_code == 400

    completed = client.patch(
        "/api/withdrawal-requests/1/status",
        json={"status": "completed", "paymentId": "PAYOUT-123"}
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["paymentId"] == "PAYOUT-123"

def test_withdrawal_status_requires_admin(client, session):
    withdrawal_manager("1000")
    session.login(FREELANCER)

    response = client.patch("/api/withdrawal-requests/1/status", json={"status": "approved"})

    assert response.status_code == 403

def test_unknown_withdrawal_status_value(client, session):
    withdrawal_manager("1000")
    session.login(ADMIN)

    response = client.patch("/api/withdrawal-requests/1/status", json={"status": "paid"})

    assert response.status_code == 422

# Verification

def test_verification_review_is_one_shot(client, session, verification_manager):
    submitted = client.post(
        "/api/verification-requests",
        json={"documentType": "passport", "documentUrl": "/uploads/passport.jpg"}
    )
    assert submitted.status_code == 201
    assert submitted.json()["status"] == "pending"

    session.login(ADMIN)
    approved = client.patch(
        "/api/verification-requests/1/status",
        json={"status": "approved", "reviewNotes": "Matches profile"}
    )
    assert approved.status_code == 200
    assert approved.json()["reviewerId"] == ADMIN.id
    assert approved.json()["reviewedAt"] is not None

    again = client.patch("/api/verification-requests/1/status", json={"status": "rejected"})
    assert again.status_code == 400

    pending = client.patch("/api/verification-requests/1/status", json={"status": "pending"})
    assert pending.status_code == 400

def test_verification_list_filters_by_status(client, session, verification_manager):
    client.post(
        "/api/verification-requests",
        json={"documentType": "id_card", "documentUrl": "/uploads/id.jpg"}
    )
    session.login(ADMIN)

    pending = client.get("/api/verification-requests", params={"status": "pending"})
    approved = client.get("/api/verification-requests", params={"status": "approved"})

    assert len(pending.json()) == 1
    assert approved.json() == []

def test_verification_list_requires_admin(client, session, verification_manager):
    response = client.get("/api/verification-requests")

    assert response.status_code == 403

def test_verification_review_missing_request(client, session, verification_manager):
    session.login(ADMIN)

    response = client.patch("/api/verification-requests/5/status", json={"status": "approved"})

    assert response.status_code == 404
