"""
messaging/manager.py

WebSocket connection registry for live message delivery.
- Maps each authenticated user id to at most one live WebSocket
- A newer connection for the same user replaces the older mapping
  (the older socket is left open, it is just no longer reachable)
- Removal is by socket identity, so a late close of a superseded socket
  never evicts the newer one
- Schedules fire-and-forget pushes that never block the caller
"""

import asyncio
import json
import logging
import threading
from typing import Any
from uuid import UUID

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Thread-safe user id -> WebSocket mapping.
    """

    def __init__(self) -> None:
        # Mapping of user_id to that user's current WebSocket
        self._connections: dict[UUID, WebSocket] = {}
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def register(self, user_id: UUID, websocket: WebSocket) -> None:
        """
        Installs or replaces the mapping for a user.
        """
        with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = websocket
        if previous is not None and previous is not websocket:
            logger.info(f"[REGISTRY] Replaced live connection for user {user_id}")
        else:
            logger.info(f"[REGISTRY] Registered live connection for user {user_id}")

    def lookup(self, user_id: UUID) -> WebSocket | None:
        with self._lock:
            return self._connections.get(user_id)

    def unregister(self, websocket: WebSocket) -> UUID | None:
        """
        Removes whichever user currently maps to this exact socket.
        Returns the user id that was removed, or None if the socket was
        never registered or has already been superseded.
        """
        with self._lock:
            for user_id, connection in self._connections.items():
                if connection is websocket:
                    del self._connections[user_id]
                    break
            else:
                return None
        logger.info(f"[REGISTRY] Removed live connection for user {user_id}")
        return user_id

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()

    # ---------------------------------------------------
    # Delivery
    # ---------------------------------------------------
    @staticmethod
    def is_open(websocket: Any) -> bool:
        return (
            getattr(websocket, "client_state", None) == WebSocketState.CONNECTED
            and getattr(websocket, "application_state", None) == WebSocketState.CONNECTED
        )

    def push(self, user_id: UUID, payload: dict[str, Any]) -> bool:
        """
        Schedules a JSON text frame to the user's live socket, if any.

        Returns True when a send was scheduled. The send itself runs as a
        background task; its failure is logged and otherwise ignored.
        """
        websocket = self.lookup(user_id)
        if websocket is None:
            logger.debug(f"[REGISTRY] No live connection for user {user_id}, push skipped")
            return False
        if not self.is_open(websocket):
            logger.debug(f"[REGISTRY] Connection for user {user_id} is not open, push skipped")
            return False

        text = json.dumps(payload)
        task = asyncio.get_running_loop().create_task(self._send(user_id, websocket, text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _send(self, user_id: UUID, websocket: WebSocket, text: str) -> None:
        try:
            await websocket.send_text(text)
            logger.debug(f"[REGISTRY] Pushed frame to user {user_id}")
        except Exception as e:
            logger.warning(f"[REGISTRY] Push to user {user_id} failed: {e}")

    async def drain(self) -> None:
        """Waits for every scheduled push to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global instance of the registry for import and use across modules
registry = ConnectionRegistry()


def get_connection_registry() -> ConnectionRegistry:
    """FastAPI dependency returning the process-wide registry."""
    return registry
