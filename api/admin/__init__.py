"""Admin moderation endpoints for conversations and messages."""

from fastapi import APIRouter, Depends
from typing import List, Optional
from pydantic import Field

from auth import require_admin
from auth.models import CurrentUser
from database.models import RecordModel
from messages import MessageManager, Message, AdminConversation
from api.messages import get_message_manager, message_http_error, push_message

router = APIRouter(
    prefix="/admin",
    tags=["Admin"]
)

class FlagRequest(RecordModel):
    """Request model for flagging or unflagging a message."""
    is_flagged: bool

class SuperviseRequest(RecordModel):
    """Request model for supervising a message."""
    supervisor_notes: Optional[str] = Field(None, max_length=2000)
    supervised_by: Optional[int] = None

class ConversationThread(RecordModel):
    id: str
    user_ids: List[int]
    messages: List[Message]

@router.get("/conversations", response_model=List[AdminConversation])
async def list_conversations(
    admin: CurrentUser = Depends(require_admin),
    messages: MessageManager = Depends(get_message_manager)
):
    """List every conversation on the platform."""
    try:
        return await messages.list_all_conversations()
    except Exception as e:
        raise message_http_error(e)

@router.get("/conversations/{conversation_id}/messages", response_model=ConversationThread)
async def get_conversation_messages(
    conversation_id: str,
    admin: CurrentUser = Depends(require_admin),
    messages: MessageManager = Depends(get_message_manager)
):
    """Get the full thread for a conversation id of the form ``"<a>-<b>"``."""
    try:
        user_ids, thread = await messages.fetch_conversation_by_key(conversation_id)
    except Exception as e:
        raise message_http_error(e)

    return {
        "id": conversation_id,
        "user_ids": list(user_ids),
        "messages": thread
    }

@router.patch("/messages/{message_id}/flag", response_model=Message)
async def flag_message(
    message_id: int,
    request: FlagRequest,
    admin: CurrentUser = Depends(require_admin),
    messages: MessageManager = Depends(get_message_manager)
):
    """Flag or unflag a message."""
    try:
        message = await messages.flag_message(message_id, request.is_flagged)
    except Exception as e:
        raise message_http_error(e)

    await push_message(message, event="message_updated")
    return message

@router.patch("/messages/{message_id}/supervise", response_model=Message)
async def supervise_message(
    message_id: int,
    request: SuperviseRequest,
    admin: CurrentUser = Depends(require_admin),
    messages: MessageManager = Depends(get_message_manager)
):
    """Attach supervision notes to a message.

    ``supervisedBy`` defaults to the calling admin.
    """
    try:
        message = await messages.supervise_message(
            message_id,
            request.supervisor_notes,
            request.supervised_by or admin.id
        )
    except Exception as e:
        raise message_http_error(e)

    await push_message(message, event="message_updated")
    return message

# Export the router
__all__ = ['router']
