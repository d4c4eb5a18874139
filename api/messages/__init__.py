"""Messaging API endpoints.

Every endpoint acts on behalf of the authenticated user. New messages are
also pushed to both participants over the messages WebSocket.

The socket at ``/api/messages/ws`` authenticates with a first frame of
``{"token": "<session token>"}`` and then accepts:

- ``{"type": "message", "receiverId", "content"}``: send a text message
- ``{"type": "get_messages", "partnerId", "limit"?, "beforeId"?}``: reply
  with a ``message_history`` frame
- ``{"type": "ping"}``: reply with ``pong``

Failures come back as ``{"type": "error", "data": {"message"}}`` frames.
"""

import logging
from datetime import datetime, timezone

from fastapi import (
    APIRouter, Depends, File, Form, HTTPException, Query, UploadFile,
    WebSocket, WebSocketDisconnect, status
)
from starlette.websockets import WebSocketState
from typing import List, Optional
from pydantic import Field, ValidationError

from auth import get_current_user, manager as auth_manager, AuthError
from auth.models import CurrentUser
from database.models import RecordModel
from messages import (
    MessageManager, Message, Conversation, MessageError,
    MessageNotFoundError, UserNotFoundError, InvalidMessageError
)
from uploads import UploadError, UploadTooLargeError
from api.websockets import manager as connections

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Messages"]
)

AUTH_FAILED_CODE = 4001

class SendMessageRequest(RecordModel):
    """Request model for sending a text message."""
    receiver_id: int
    content: str = Field(..., min_length=1)

class SocketFrame(RecordModel):
    """A frame sent by a client over the messages WebSocket."""
    type: str
    receiver_id: Optional[int] = None
    content: Optional[str] = None
    partner_id: Optional[int] = None
    limit: Optional[int] = Field(None, ge=1, le=500)
    before_id: Optional[int] = None

class UnreadCountResponse(RecordModel):
    count: int

class MarkReadResponse(RecordModel):
    updated: int

def get_message_manager() -> MessageManager:
    return MessageManager()

def message_http_error(e: Exception) -> HTTPException:
    """Translate a messaging error into an HTTP error."""
    if isinstance(e, (MessageNotFoundError, UserNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, UploadTooLargeError):
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    if isinstance(e, (InvalidMessageError, UploadError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

async def push_message(message: Message, event: str = "new_message"):
    """Push a message event to both participants."""
    await connections.send_to_users(
        (message.sender_id, message.receiver_id),
        {
            "type": event,
            "data": message.model_dump(mode="json", by_alias=True)
        }
    )

@router.get("/conversations", response_model=List[Conversation])
async def get_conversations(
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Get the current user's conversations, most recent first."""
    try:
        return await messages.get_conversations(user.id)
    except Exception as e:
        raise message_http_error(e)

@router.get("/messages/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Get the number of unread messages across all conversations."""
    try:
        return {"count": await messages.unread_count(user.id)}
    except Exception as e:
        raise message_http_error(e)

@router.get("/messages/{partner_id}", response_model=List[Message])
async def get_messages(
    partner_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    before_id: Optional[int] = Query(None, alias="beforeId"),
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Get the thread with a partner, oldest first.

    Pass ``limit`` to page backwards from the newest message and ``beforeId``
    to continue from the oldest message already loaded.
    """
    try:
        return await messages.fetch_messages(user.id, partner_id, limit, before_id)
    except Exception as e:
        raise message_http_error(e)

@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Send a text message."""
    try:
        message = await messages.send_message(user.id, request.receiver_id, request.content)
    except Exception as e:
        raise message_http_error(e)

    await push_message(message)
    return message

@router.post("/messages/media", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_media(
    file: UploadFile = File(...),
    receiver_id: int = Form(..., alias="receiverId"),
    caption: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Send a file as a message."""
    try:
        message = await messages.send_media(user.id, receiver_id, file, caption)
    except Exception as e:
        raise message_http_error(e)
    finally:
        await file.close()

    await push_message(message)
    return message

@router.post("/messages/{partner_id}/read", response_model=MarkReadResponse)
async def mark_read(
    partner_id: int,
    user: CurrentUser = Depends(get_current_user),
    messages: MessageManager = Depends(get_message_manager)
):
    """Mark the partner's messages to the current user as read."""
    try:
        updated = await messages.mark_conversation_read(user.id, partner_id)
    except Exception as e:
        raise message_http_error(e)

    if updated:
        await connections.send_to_user(partner_id, {
            "type": "messages_read",
            "data": {"readerId": user.id, "count": updated}
        })
    return {"updated": updated}

async def handle_frame(
    websocket: WebSocket,
    user_id: int,
    frame: SocketFrame,
    messages: MessageManager
):
    """Act on one client frame from the messages socket."""
    if frame.type == "ping":
        await websocket.send_json({
            "type": "pong",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
    elif frame.type == "message":
        if frame.receiver_id is None or not frame.content:
            raise InvalidMessageError("receiverId and content are required")
        message = await messages.send_message(user_id, frame.receiver_id, frame.content)
        await push_message(message)
    elif frame.type == "get_messages":
        if frame.partner_id is None:
            raise InvalidMessageError("partnerId is required")
        history = await messages.fetch_messages(
            user_id, frame.partner_id, frame.limit, frame.before_id
        )
        await websocket.send_json({
            "type": "message_history",
            "data": {
                "partnerId": frame.partner_id,
                "messages": [m.model_dump(mode="json", by_alias=True) for m in history]
            }
        })
    else:
        raise InvalidMessageError(f"Unsupported message type: {frame.type}")

@router.websocket("/messages/ws")
async def messages_socket(
    websocket: WebSocket,
    messages: MessageManager = Depends(get_message_manager)
):
    """WebSocket endpoint for sending and receiving messages in real time."""
    # Accept the connection first
    await websocket.accept()

    user_id = None
    try:
        # Wait for authentication message
        auth_message = await websocket.receive_json()
        if not isinstance(auth_message, dict) or "token" not in auth_message:
            await websocket.close(code=AUTH_FAILED_CODE, reason="Authentication required")
            return

        try:
            user = await auth_manager.verify_session(auth_message["token"])
        except AuthError as e:
            await websocket.close(code=AUTH_FAILED_CODE, reason=str(e))
            return

        user_id = user.id
        await connections.connect(websocket, user_id)

        while True:
            data = await websocket.receive_json()
            try:
                frame = SocketFrame.model_validate(data)
                await handle_frame(websocket, user_id, frame, messages)
            except (MessageError, ValidationError) as e:
                await websocket.send_json({
                    "type": "error",
                    "data": {"message": str(e)}
                })

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error for user {user_id}: {e}")
        if websocket.client_state != WebSocketState.DISCONNECTED:
            await websocket.close(code=1011, reason="Internal error")
    finally:
        if user_id is not None:
            connections.disconnect(websocket, user_id)

# Export the router
__all__ = ['router', 'get_message_manager', 'message_http_error', 'push_message']
