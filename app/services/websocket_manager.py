"""WebSocket connection manager for live notifications."""
import asyncio
import logging
from typing import Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets per user (a user may have several tabs or devices)."""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Register a WebSocket connection (already accepted by router)."""
        async with self._lock:
            self.active_connections.setdefault(user_id, []).append(websocket)
            logger.debug(f"WebSocket connected - User: {user_id}")

    async def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        """Remove a WebSocket connection."""
        async with self._lock:
            connections = self.active_connections.get(user_id)
            if connections and websocket in connections:
                connections.remove(websocket)
            if connections is not None and not connections:
                del self.active_connections[user_id]
            logger.debug(f"WebSocket disconnected - User: {user_id}")

    async def send_personal_message(self, message: dict, user_id: str) -> int:
        """Send a message to all connections of a user. Returns how many received it."""
        if user_id not in self.active_connections:
            return 0

        connections = self.active_connections[user_id].copy()
        disconnected = []
        delivered = 0

        for connection in connections:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception:
                disconnected.append(connection)

        # Clean up disconnected connections
        if disconnected:
            async with self._lock:
                for conn in disconnected:
                    if user_id in self.active_connections and conn in self.active_connections[user_id]:
                        self.active_connections[user_id].remove(conn)
                if user_id in self.active_connections and not self.active_connections[user_id]:
                    del self.active_connections[user_id]
        return delivered

    def get_connection_count(self) -> int:
        """Get total number of active WebSocket connections."""
        return sum(len(conns) for conns in self.active_connections.values())

    def get_user_count(self) -> int:
        """Get number of unique users with active connections."""
        return len(self.active_connections)


# Global connection manager instance
manager = ConnectionManager()
