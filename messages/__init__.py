"""Messages module for direct conversations between users.

This module handles:
- Sending text and media messages between two users
- Building conversation summaries with unread counts
- Read receipts
- Admin moderation (flagging and supervision notes)
"""
import logging
from typing import List, Optional, Tuple

from asyncpg.pool import Pool
from fastapi import UploadFile

from database import get_pool
from auth.models import UserRole, participant_from_row
from uploads import save_upload, delete_upload, UploadError
from .filters import filter_sensitive_content
from .media import classify_media_type
from .models import (
    Message, MediaType, Conversation, AdminConversation,
    conversation_key, parse_conversation_key
)

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 5000

MESSAGE_COLUMNS = '''
    id, sender_id, receiver_id, content, is_read, created_at,
    is_flagged, supervised_by, supervisor_notes, media_url, media_type
'''

class MessageError(Exception):
    """Base class for message-related errors."""
    pass

class MessageNotFoundError(MessageError):
    """Raised when a message does not exist."""
    pass

class UserNotFoundError(MessageError):
    """Raised when the other participant does not exist."""
    pass

class InvalidMessageError(MessageError):
    """Raised when message content or recipient is not acceptable."""
    pass

def _participant_columns(alias: str, prefix: str) -> str:
    return ', '.join(
        f'{alias}.{name} AS {prefix}{name}'
        for name in ('id', 'username', 'full_name', 'profile_image', 'role',
                     'freelancer_level', 'freelancer_type')
    )

class MessageManager:
    """Manages messages and conversation views."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        """Initialize message manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _ensure_user(self, conn, user_id: int):
        exists = await conn.fetchval('SELECT 1 FROM users WHERE id = $1', user_id)
        if not exists:
            raise UserNotFoundError(f"User {user_id} not found")

    def _prepare_content(self, content: Optional[str]) -> str:
        content = (content or '').strip()
        if not content:
            raise InvalidMessageError("Message content cannot be empty")
        if len(content) > MAX_CONTENT_LENGTH:
            raise InvalidMessageError(
                f"Message content exceeds {MAX_CONTENT_LENGTH} characters"
            )
        return filter_sensitive_content(content)

    async def fetch_messages(
        self,
        user_id: int,
        partner_id: int,
        limit: Optional[int] = None,
        before_id: Optional[int] = None
    ) -> List[Message]:
        """Get the thread between two users, oldest first.

        Without ``limit`` the full history is returned. With ``limit`` the
        newest ``limit`` messages (older than ``before_id`` when given) are
        returned, still oldest first.

        Raises:
            UserNotFoundError: If the partner does not exist
            MessageNotFoundError: If ``before_id`` is not part of the thread
        """
        await self.ensure_pool()

        if limit is not None and limit < 1:
            raise InvalidMessageError("limit must be positive")

        try:
            async with self.pool.acquire() as conn:
                await self._ensure_user(conn, partner_id)

                cursor = None
                if before_id is not None:
                    cursor = await conn.fetchrow(
                        '''
                        SELECT created_at, id FROM messages
                        WHERE id = $1
                        AND ((sender_id = $2 AND receiver_id = $3)
                             OR (sender_id = $3 AND receiver_id = $2))
                        ''',
                        before_id,
                        user_id,
                        partner_id
                    )
                    if not cursor:
                        raise MessageNotFoundError(
                            f"Message {before_id} not found in this conversation"
                        )

                rows = await conn.fetch(
                    f'''
                    SELECT * FROM (
                        SELECT {MESSAGE_COLUMNS}
                        FROM messages
                        WHERE ((sender_id = $1 AND receiver_id = $2)
                               OR (sender_id = $2 AND receiver_id = $1))
                        AND ($3::timestamptz IS NULL OR (created_at, id) < ($3::timestamptz, $4::int4))
                        ORDER BY created_at DESC, id DESC
                        LIMIT $5
                    ) page
                    ORDER BY created_at, id
                    ''',
                    user_id,
                    partner_id,
                    cursor['created_at'] if cursor else None,
                    cursor['id'] if cursor else None,
                    limit
                )
                return [Message.from_row(row) for row in rows]

        except MessageError:
            raise
        except Exception as e:
            logger.error(f"Error fetching messages: {e}")
            raise MessageError(f"Failed to fetch messages: {str(e)}")

    async def send_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str
    ) -> Message:
        """Create a text message.

        Raises:
            InvalidMessageError: If content is empty or the receiver is the sender
            UserNotFoundError: If the receiver does not exist
        """
        await self.ensure_pool()

        if sender_id == receiver_id:
            raise InvalidMessageError("Cannot send a message to yourself")
        content = self._prepare_content(content)

        try:
            async with self.pool.acquire() as conn:
                await self._ensure_user(conn, receiver_id)
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO messages (sender_id, receiver_id, content)
                    VALUES ($1, $2, $3)
                    RETURNING {MESSAGE_COLUMNS}
                    ''',
                    sender_id,
                    receiver_id,
                    content
                )
                logger.info(f"Message {row['id']} sent from {sender_id} to {receiver_id}")
                return Message.from_row(row)

        except MessageError:
            raise
        except Exception as e:
            logger.error(f"Error sending message: {e}")
            raise MessageError(f"Failed to send message: {str(e)}")

    async def send_media(
        self,
        sender_id: int,
        receiver_id: int,
        file: UploadFile,
        caption: Optional[str] = None
    ) -> Message:
        """Store an attachment and create a message pointing at it.

        The message content is the caption, or the original file name when
        no caption is given.

        Raises:
            InvalidMessageError: If the receiver is the sender
            UserNotFoundError: If the receiver does not exist
            UploadError: If the file cannot be stored or is too large
        """
        await self.ensure_pool()

        if sender_id == receiver_id:
            raise InvalidMessageError("Cannot send a message to yourself")
        caption = self._prepare_content(caption) if caption and caption.strip() else None

        async with self.pool.acquire() as conn:
            await self._ensure_user(conn, receiver_id)

        stored = await save_upload(file, prefix=f"message_{sender_id}")
        media_type = classify_media_type(stored.content_type)
        content = caption or filter_sensitive_content(stored.original_name[:MAX_CONTENT_LENGTH])

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO messages (
                        sender_id, receiver_id, content, media_url, media_type
                    ) VALUES ($1, $2, $3, $4, $5)
                    RETURNING {MESSAGE_COLUMNS}
                    ''',
                    sender_id,
                    receiver_id,
                    content,
                    stored.url,
                    media_type.value
                )
                logger.info(
                    f"Media message {row['id']} ({media_type.value}) sent from "
                    f"{sender_id} to {receiver_id}"
                )
                return Message.from_row(row)

        except Exception as e:
            delete_upload(stored.url)
            logger.error(f"Error sending media message: {e}")
            raise MessageError(f"Failed to send media message: {str(e)}")

    async def get_conversations(self, user_id: int) -> List[Conversation]:
        """Get one summary per partner, most recent activity first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'''
                    WITH threads AS (
                        SELECT DISTINCT ON (partner) {MESSAGE_COLUMNS}, partner
                        FROM (
                            SELECT *,
                                   CASE WHEN sender_id = $1 THEN receiver_id
                                        ELSE sender_id END AS partner
                            FROM messages
                            WHERE sender_id = $1 OR receiver_id = $1
                        ) m
                        ORDER BY partner, created_at DESC, id DESC
                    )
                    SELECT t.*,
                           {_participant_columns('u', 'partner_')},
                           (
                               SELECT COUNT(*) FROM messages r
                               WHERE r.sender_id = t.partner
                               AND r.receiver_id = $1
                               AND NOT r.is_read
                           ) AS unread_count
                    FROM threads t
                    JOIN users u ON u.id = t.partner
                    ORDER BY t.created_at DESC, t.id DESC
                    ''',
                    user_id
                )
                return [
                    Conversation(
                        partner=participant_from_row(row, prefix='partner_'),
                        last_message=Message.from_row(row),
                        unread_count=row['unread_count']
                    )
                    for row in rows
                ]

        except Exception as e:
            logger.error(f"Error getting conversations: {e}")
            raise MessageError(f"Failed to get conversations: {str(e)}")

    async def mark_conversation_read(self, user_id: int, partner_id: int) -> int:
        """Mark every message from ``partner_id`` to ``user_id`` as read.

        Returns:
            Number of messages updated
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    '''
                    UPDATE messages
                    SET is_read = true
                    WHERE sender_id = $1 AND receiver_id = $2
                    AND NOT is_read
                    ''',
                    partner_id,
                    user_id
                )
                # Result is "UPDATE <count>"
                return int(result.split()[-1])

        except Exception as e:
            logger.error(f"Error marking messages read: {e}")
            raise MessageError(f"Failed to mark messages read: {str(e)}")

    async def unread_count(self, user_id: int) -> int:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                'SELECT COUNT(*) FROM messages WHERE receiver_id = $1 AND NOT is_read',
                user_id
            )

    async def get_message(self, message_id: int) -> Message:
        """Get a single message.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = $1',
                message_id
            )
            if not row:
                raise MessageNotFoundError(f"Message {message_id} not found")
            return Message.from_row(row)

    async def list_all_conversations(self) -> List[AdminConversation]:
        """Get every conversation on the platform for moderators."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'''
                    WITH latest AS (
                        SELECT DISTINCT ON (user_a, user_b) *
                        FROM (
                            SELECT {MESSAGE_COLUMNS},
                                   LEAST(sender_id, receiver_id) AS user_a,
                                   GREATEST(sender_id, receiver_id) AS user_b,
                                   COUNT(*) OVER pair AS message_count,
                                   COUNT(*) FILTER (WHERE is_flagged) OVER pair AS flagged_count
                            FROM messages
                            WINDOW pair AS (
                                PARTITION BY LEAST(sender_id, receiver_id),
                                             GREATEST(sender_id, receiver_id)
                            )
                        ) m
                        ORDER BY user_a, user_b, created_at DESC, id DESC
                    )
                    SELECT l.*,
                           {_participant_columns('a', 'a_')},
                           {_participant_columns('b', 'b_')},
                           s.supervised_by AS thread_supervisor
                    FROM latest l
                    JOIN users a ON a.id = l.user_a
                    JOIN users b ON b.id = l.user_b
                    LEFT JOIN LATERAL (
                        SELECT x.supervised_by
                        FROM messages x
                        WHERE LEAST(x.sender_id, x.receiver_id) = l.user_a
                        AND GREATEST(x.sender_id, x.receiver_id) = l.user_b
                        AND x.supervised_by IS NOT NULL
                        ORDER BY x.created_at DESC, x.id DESC
                        LIMIT 1
                    ) s ON true
                    ORDER BY l.created_at DESC, l.id DESC
                    '''
                )
                return [
                    AdminConversation(
                        id=conversation_key(row['user_a'], row['user_b']),
                        participants=[
                            participant_from_row(row, prefix='a_'),
                            participant_from_row(row, prefix='b_')
                        ],
                        last_message=Message.from_row(row),
                        message_count=row['message_count'],
                        flagged_count=row['flagged_count'],
                        is_flagged=row['flagged_count'] > 0,
                        supervised_by=row['thread_supervisor']
                    )
                    for row in rows
                ]

        except Exception as e:
            logger.error(f"Error listing conversations: {e}")
            raise MessageError(f"Failed to list conversations: {str(e)}")

    async def fetch_conversation_messages(self, user_a: int, user_b: int) -> List[Message]:
        """Get the full thread between two users for moderators."""
        return await self.fetch_messages(user_a, user_b)

    async def fetch_conversation_by_key(self, key: str) -> Tuple[Tuple[int, int], List[Message]]:
        """Resolve a ``"<a>-<b>"`` conversation id and fetch its thread.

        Raises:
            InvalidMessageError: If the key is malformed
        """
        try:
            user_a, user_b = parse_conversation_key(key)
        except ValueError as e:
            raise InvalidMessageError(str(e))
        return (user_a, user_b), await self.fetch_conversation_messages(user_a, user_b)

    async def flag_message(self, message_id: int, is_flagged: bool) -> Message:
        """Set the flag on a message. Setting the current value is a no-op.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE messages
                    SET is_flagged = $2
                    WHERE id = $1
                    RETURNING {MESSAGE_COLUMNS}
                    ''',
                    message_id,
                    is_flagged
                )
                if not row:
                    raise MessageNotFoundError(f"Message {message_id} not found")

                logger.info(f"Message {message_id} flagged={is_flagged}")
                return Message.from_row(row)

        except MessageError:
            raise
        except Exception as e:
            logger.error(f"Error flagging message: {e}")
            raise MessageError(f"Failed to flag message: {str(e)}")

    async def supervise_message(
        self,
        message_id: int,
        notes: Optional[str],
        supervised_by: int
    ) -> Message:
        """Attach supervision notes to a message.

        Supervision cannot be removed; supervising again replaces the notes
        and the supervisor.

        Raises:
            MessageNotFoundError: If the message does not exist
            InvalidMessageError: If ``supervised_by`` is not an admin
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                role = await conn.fetchval(
                    'SELECT role FROM users WHERE id = $1',
                    supervised_by
                )
                if role != UserRole.ADMIN.value:
                    raise InvalidMessageError(
                        f"User {supervised_by} cannot supervise messages"
                    )

                row = await conn.fetchrow(
                    f'''
                    UPDATE messages
                    SET supervised_by = $2,
                        supervisor_notes = $3
                    WHERE id = $1
                    RETURNING {MESSAGE_COLUMNS}
                    ''',
                    message_id,
                    supervised_by,
                    notes
                )
                if not row:
                    raise MessageNotFoundError(f"Message {message_id} not found")

                logger.info(f"Message {message_id} supervised by {supervised_by}")
                return Message.from_row(row)

        except MessageError:
            raise
        except Exception as e:
            logger.error(f"Error supervising message: {e}")
            raise MessageError(f"Failed to supervise message: {str(e)}")

__all__ = [
    'MessageManager',
    'Message',
    'MediaType',
    'Conversation',
    'AdminConversation',
    'MessageError',
    'MessageNotFoundError',
    'UserNotFoundError',
    'InvalidMessageError',
    'UploadError',
    'filter_sensitive_content',
    'classify_media_type',
    'conversation_key'
]
