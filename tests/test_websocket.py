"""Tests for the messages WebSocket: authentication, inbound frames and pushed events."""

import pytest
from starlette.websockets import WebSocketDisconnect

from auth import manager as auth_manager, AuthError
from api.websockets import manager as connections
from tests.conftest import CLIENT, FREELANCER, ADMIN

TOKENS = {
    "client-token": CLIENT,
    "freelancer-token": FREELANCER,
    "admin-token": ADMIN,
}

@pytest.fixture(autouse=True)
def tokens(monkeypatch):
    """Resolve the fixed tokens above instead of looking up sessions."""
    async def verify_session(token):
        if token not in TOKENS:
            raise AuthError("Invalid token")
        return TOKENS[token]

    monkeypatch.setattr(auth_manager, "verify_session", verify_session)

def authenticate(ws, token: str) -> dict:
    ws.send_json({"token": token})
    status = ws.receive_json()
    assert status["type"] == "connection_status"
    return status

# Authentication

def test_connect_reports_user(client):
    with client.websocket_connect("/api/messages/ws") as ws:
        status = authenticate(ws, "client-token")

    assert status["data"] == {"status": "connected", "userId": CLIENT.id}

def test_bad_token_closes_socket(client):
    with client.websocket_connect("/api/messages/ws") as ws:
        ws.send_json({"token": "expired"})
        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()

    assert closed.value.code == 4001

def test_first_frame_must_carry_token(client):
    with client.websocket_connect("/api/messages/ws") as ws:
        ws.send_json({"type": "ping"})
        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()

    assert closed.value.code == 4001

def test_disconnect_unregisters_socket(client):
    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "client-token")
        assert connections.connection_count() == 1

    assert connections.connection_count() == 0

def test_ping(client):
    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "client-token")
        ws.send_json({"type": "ping"})

        assert ws.receive_json()["type"] == "pong"

# Inbound frames

def test_message_frame_sends_to_both_participants(client, message_manager):
    with client.websocket_connect("/api/messages/ws") as freelancer_ws:
        authenticate(freelancer_ws, "freelancer-token")
        with client.websocket_connect("/api/messages/ws") as client_ws:
            authenticate(client_ws, "client-token")

            freelancer_ws.send_json({
                "type": "message",
                "receiverId": CLIENT.id,
                "content": "Draft is ready"
            })

            received = client_ws.receive_json()
            echoed = freelancer_ws.receive_json()

    assert received["type"] == "new_message"
    assert received["data"]["senderId"] == FREELANCER.id
    assert received["data"]["content"] == "Draft is ready"
    assert echoed["data"]["id"] == received["data"]["id"]
    assert message_manager.messages[1].receiver_id == CLIENT.id

def test_message_frame_is_filtered(client, message_manager):
    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "client-token")
        ws.send_json({
            "type": "message",
            "receiverId": FREELANCER.id,
            "content": "write to me@example.com"
        })

        pushed = ws.receive_json()

    assert "me@example.com" not in pushed["data"]["content"]

@pytest.mark.parametrize("frame", [
    {"type": "message", "receiverId": CLIENT.id, "content": "to myself"},
    {"type": "message", "receiverId": 99, "content": "to nobody"},
    {"type": "message", "receiverId": FREELANCER.id},
    {"type": "get_messages"},
    {"type": "typing"},
    {"type": "message", "receiverId": "not a number", "content": "hi"},
])
def test_bad_frames_get_error_reply(client, message_manager, frame):
    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "client-token")
        ws.send_json(frame)

        reply = ws.receive_json()

        # The socket stays usable after an error
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

    assert reply["type"] == "error"
    assert reply["data"]["message"]
    assert message_manager.messages == {}

def test_get_messages_frame_returns_history(client, message_manager):
    for i in range(5):
        message_manager.add(CLIENT.id, FREELANCER.id, f"message {i}")

    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "freelancer-token")
        ws.send_json({"type": "get_messages", "partnerId": CLIENT.id, "limit": 2, "beforeId": 5})

        history = ws.receive_json()

    assert history["type"] == "message_history"
    assert history["data"]["partnerId"] == CLIENT.id
    assert [m["id"] for m in history["data"]["messages"]] == [3, 4]

# Pushed events

def test_posted_message_is_pushed(client, session, message_manager):
    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "freelancer-token")

        response = client.post("/api/messages", json={"receiverId": FREELANCER.id, "content": "Hello"})
        pushed = ws.receive_json()

    assert response.status_code == 201
    assert pushed["type"] == "new_message"
    assert pushed["data"]["id"] == response.json()["id"]
    assert pushed["data"]["content"] == "Hello"

def test_read_receipt_is_pushed_to_sender(client, session, message_manager):
    message_manager.add(FREELANCER.id, CLIENT.id, "Any feedback?")

    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "freelancer-token")

        response = client.post(f"/api/messages/{FREELANCER.id}/read")
        pushed = ws.receive_json()

    assert response.json() == {"updated": 1}
    assert pushed["type"] == "messages_read"
    assert pushed["data"] == {"readerId": CLIENT.id, "count": 1}

def test_moderation_is_pushed_to_participants(client, session, message_manager):
    message_manager.add(CLIENT.id, FREELANCER.id, "original")
    session.login(ADMIN)

    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "client-token")

        client.patch("/api/admin/messages/1/flag", json={"isFlagged": True})
        flagged = ws.receive_json()
        client.patch("/api/admin/messages/1/supervise", json={"supervisorNotes": "Watching"})
        supervised = ws.receive_json()

    assert flagged["type"] == "message_updated"
    assert flagged["data"]["isFlagged"] is True
    assert supervised["type"] == "message_updated"
    assert supervised["data"]["supervisorNotes"] == "Watching"

def test_notification_is_delivered(client, session, notification_manager):
    session.login(ADMIN)

    with client.websocket_connect("/api/messages/ws") as ws:
        authenticate(ws, "freelancer-token")

        response = client.post("/api/notifications", json={
            "userId": FREELANCER.id,
            "type": "announcement",
            "title": "Maintenance",
            "message": "The site is down tonight"
        })
        pushed = ws.receive_json()

    assert response.status_code == 201
    assert pushed["type"] == "notification"
    assert pushed["data"]["title"] == "Maintenance"
    assert pushed["data"]["userId"] == FREELANCER.id
