"""User notifications.

Other modules record a notification with ``send_notification`` on their own
connection (so it commits or rolls back with their change), then hand the
result to ``deliver`` once committed to push it to a connected client.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import asyncpg
from asyncpg.pool import Pool

from database import get_pool
from database.models import RecordModel

logger = logging.getLogger(__name__)

class NotificationError(Exception):
    """Base class for notification errors."""
    pass

class NotificationNotFoundError(NotificationError):
    """Raised when a notification does not exist or belongs to someone else."""
    pass

class RecipientNotFoundError(NotificationError):
    """Raised when a notification is addressed to an unknown user."""
    pass

class Notification(RecordModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    created_at: datetime

NOTIFICATION_COLUMNS = 'id, user_id, type, title, message, data, is_read, created_at'

async def send_notification(
    conn,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None
) -> Notification:
    """Save a notification using an existing connection."""
    row = await conn.fetchrow(
        f'''
        INSERT INTO notifications (user_id, type, title, message, data)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {NOTIFICATION_COLUMNS}
        ''',
        user_id,
        type,
        title,
        message,
        # Round-trip through json so Decimals and datetimes are stored as text
        json.loads(json.dumps(data, default=str)) if data is not None else None
    )
    return Notification.from_row(row)

async def deliver(notification: Notification):
    """Push a saved notification to the user's WebSocket if connected."""
    try:
        from api.websockets import manager as connections
        await connections.send_to_user(notification.user_id, {
            "type": "notification",
            "data": notification.model_dump(mode="json", by_alias=True)
        })
    except Exception as e:
        logger.error(f"Error delivering notification {notification.id}: {e}")

class NotificationManager:
    """Reads and updates a user's notifications."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a notification outside any other change.

        Raises:
            RecipientNotFoundError: If the user does not exist
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                notification = await send_notification(conn, user_id, type, title, message, data)
        except asyncpg.exceptions.ForeignKeyViolationError:
            raise RecipientNotFoundError(f"User {user_id} not found")
        except Exception as e:
            logger.error(f"Error creating notification for user {user_id}: {e}")
            raise NotificationError(f"Failed to create notification: {str(e)}")

        logger.info(f"Notification {notification.id} ({type}) created for user {user_id}")
        return notification

    async def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> List[Notification]:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {NOTIFICATION_COLUMNS}
                FROM notifications
                WHERE user_id = $1
                AND (NOT $2 OR NOT is_read)
                ORDER BY created_at DESC, id DESC
                LIMIT $3 OFFSET $4
                ''',
                user_id,
                unread_only,
                limit,
                offset
            )
            return [Notification.from_row(row) for row in rows]

    async def mark_read(self, notification_id: int, user_id: int) -> Notification:
        """Mark a notification as read.

        Raises:
            NotificationNotFoundError: If it does not exist or is not the user's
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                UPDATE notifications
                SET is_read = true
                WHERE id = $1 AND user_id = $2
                RETURNING {NOTIFICATION_COLUMNS}
                ''',
                notification_id,
                user_id
            )
            if not row:
                raise NotificationNotFoundError(
                    f"Notification {notification_id} not found"
                )
            return Notification.from_row(row)

    async def delete(self, notification_id: int, user_id: int, is_admin: bool = False):
        """Delete a notification owned by the user, or any one for admins.

        Raises:
            NotificationNotFoundError: If nothing was deleted
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            result = await conn.execute(
                '''
                DELETE FROM notifications
                WHERE id = $1 AND ($3 OR user_id = $2)
                ''',
                notification_id,
                user_id,
                is_admin
            )
            if result == 'DELETE 0':
                raise NotificationNotFoundError(
                    f"Notification {notification_id} not found"
                )
            logger.info(f"Notification {notification_id} deleted by user {user_id}")

__all__ = [
    'Notification',
    'NotificationManager',
    'NotificationError',
    'NotificationNotFoundError',
    'RecipientNotFoundError',
    'send_notification',
    'deliver'
]
