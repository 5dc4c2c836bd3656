"""
campuscart/messaging/websocket.py

Messaging WebSocket Route

Live push channel for new messages:
- One connection per client at /ws
- The first inbound frame is an auth handshake: {"type": "auth", "userId": "..."}
- After the handshake the channel is write-only from the server's side;
  replies go through the REST API
- On close or transport error the connection leaves the registry
"""

import json
import logging
from enum import Enum
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from campuscart.messaging import schemas
from campuscart.messaging.manager import ConnectionRegistry, get_connection_registry

# ---------------------------------------------------
# Router Configuration
# ---------------------------------------------------
router = APIRouter()
logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    CONNECTED_UNAUTHENTICATED = "CONNECTED_UNAUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"
    CLOSED = "CLOSED"


class PushChannel:
    """
    Handshake state machine for a single accepted WebSocket.

    CONNECTED_UNAUTHENTICATED -> AUTHENTICATED -> CLOSED. Only the first
    frame may authenticate; a bad first frame is logged and the channel
    stays unauthenticated until it closes.
    """

    def __init__(self, websocket: WebSocket, registry: ConnectionRegistry) -> None:
        self.websocket = websocket
        self.registry = registry
        self.state = ChannelState.CONNECTED_UNAUTHENTICATED
        self.user_id: UUID | None = None
        self._frames_seen = 0

    def handle_frame(self, raw_data: str) -> None:
        """Process one inbound text frame according to the current state."""
        self._frames_seen += 1
        if self._frames_seen > 1:
            logger.debug(f"[WEBSOCKET] Ignoring frame in state {self.state.value}")
            return

        try:
            data = json.loads(raw_data)
            frame = schemas.AuthFrame.model_validate(data)
        except json.JSONDecodeError:
            logger.warning("[WEBSOCKET] Invalid JSON in handshake frame")
            return
        except PydanticValidationError as e:
            logger.warning(f"[WEBSOCKET] Handshake frame is not a valid auth frame: {e}")
            return

        self.registry.register(frame.user_id, self.websocket)
        self.user_id = frame.user_id
        self.state = ChannelState.AUTHENTICATED
        logger.info(f"[WEBSOCKET] Client authenticated and mapped for user {frame.user_id}")

    def close(self) -> None:
        if self.state is ChannelState.CLOSED:
            return
        self.registry.unregister(self.websocket)
        self.state = ChannelState.CLOSED
        logger.info(f"[WEBSOCKET] Channel closed (user={self.user_id})")

    async def run(self) -> None:
        """Receive loop; returns once the connection is gone."""
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(
                        f"[WEBSOCKET] User {self.user_id} disconnected (code: {message.get('code')})"
                    )
                    break
                text = message.get("text")
                if text is None and message.get("bytes") is not None:
                    text = message["bytes"].decode("utf-8", errors="replace")
                if text is not None:
                    self.handle_frame(text)
        except WebSocketDisconnect as exc:
            logger.info(f"[WEBSOCKET] User {self.user_id} disconnected (code: {exc.code})")
        except Exception as e:
            logger.error(
                f"[WEBSOCKET] Unexpected error in WebSocket lifecycle for user {self.user_id}: {e}",
                exc_info=True,
            )
        finally:
            self.close()


# ---------------------------------------------------
# WebSocket Endpoint
# ---------------------------------------------------
@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    registry: Annotated[ConnectionRegistry, Depends(get_connection_registry)],
) -> None:
    """
    Accept a push connection and run its handshake/receive loop.
    """
    await websocket.accept()
    logger.info("[WEBSOCKET] Connection accepted, awaiting auth frame")
    await PushChannel(websocket, registry).run()
