"""Registry of open WebSocket connections for pushing events to users.

The messages socket (``/api/messages/ws``) registers each authenticated
connection here. Other modules push events for a user through ``manager``:

- ``new_message``: a message sent to or by the user
- ``message_updated``: moderation changed a message in one of their threads
- ``messages_read``: the partner read the user's messages
- ``notification``: a new notification
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Set

from fastapi import WebSocket

# Configure logging
logger = logging.getLogger(__name__)

class ConnectionManager:
    """Tracks open sockets per user. A user may have several tabs open."""

    def __init__(self):
        self.active_connections: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        """Register an authenticated connection."""
        self.active_connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"WebSocket connected for user {user_id}")
        await websocket.send_json({
            "type": "connection_status",
            "data": {
                "status": "connected",
                "userId": user_id
            }
        })

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Remove a connection."""
        sockets = self.active_connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.active_connections[user_id]
        logger.info(f"WebSocket disconnected for user {user_id}")

    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self.active_connections.values())

    async def send_to_user(self, user_id: int, message: Dict[str, Any]):
        """Send an event to every connection of a user, dropping dead ones."""
        sockets = list(self.active_connections.get(user_id, ()))
        if not sockets:
            return

        message = {
            **message,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        dead_connections = set()
        for websocket in sockets:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Failed to send to user {user_id}: {e}")
                dead_connections.add(websocket)

        for dead in dead_connections:
            self.disconnect(dead, user_id)

    async def send_to_users(self, user_ids, message: Dict[str, Any]):
        for user_id in set(user_ids):
            await self.send_to_user(user_id, message)

# Create connection manager instance
manager = ConnectionManager()

__all__ = ['manager', 'ConnectionManager']
