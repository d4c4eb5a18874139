from datetime import datetime
from enum import Enum
from typing import List, Optional

from auth.models import Participant
from database.models import RecordModel


class MediaType(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"


class Message(RecordModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool = False
    created_at: datetime
    is_flagged: bool = False
    supervised_by: Optional[int] = None
    supervisor_notes: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None


class Conversation(RecordModel):
    """A thread as seen by one of its two participants."""
    partner: Participant
    last_message: Message
    unread_count: int = 0


class AdminConversation(RecordModel):
    """A thread as seen by a moderator.

    ``id`` is ``"<lower user id>-<higher user id>"``.
    """
    id: str
    participants: List[Participant]
    last_message: Message
    message_count: int
    flagged_count: int = 0
    is_flagged: bool = False
    supervised_by: Optional[int] = None


def conversation_key(user_a: int, user_b: int) -> str:
    low, high = sorted((user_a, user_b))
    return f"{low}-{high}"


def parse_conversation_key(key: str):
    """Split ``"<a>-<b>"`` into two user ids.

    Raises:
        ValueError: If the key is malformed
    """
    parts = key.split("-")
    if len(parts) != 2:
        raise ValueError(f"Invalid conversation id: {key}")
    user_a, user_b = int(parts[0]), int(parts[1])
    if user_a == user_b:
        raise ValueError(f"Invalid conversation id: {key}")
    return user_a, user_b
