import threading
from typing import Dict, Optional

from fastapi.websockets import WebSocket, WebSocketState

from logging_config import get_logger

logger = get_logger(__name__)


class WebSocketTransport:
    """Maps connection ids to accepted Starlette WebSockets for outbound I/O."""

    def __init__(self):
        self._sockets: Dict[str, WebSocket] = {}
        self._lock = threading.Lock()

    def attach(self, connection_id: str, websocket: WebSocket):
        with self._lock:
            self._sockets[connection_id] = websocket
        logger.debug(f"Attached websocket for connection {connection_id}")

    def detach(self, connection_id: str):
        with self._lock:
            self._sockets.pop(connection_id, None)
        logger.debug(f"Detached websocket for connection {connection_id}")

    def _get(self, connection_id: str) -> Optional[WebSocket]:
        with self._lock:
            return self._sockets.get(connection_id)

    def is_writable(self, connection_id: str) -> bool:
        websocket = self._get(connection_id)
        if websocket is None:
            return False
        return (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, connection_id: str, payload: str) -> bool:
        """Best-effort write; reports failure instead of raising."""
        websocket = self._get(connection_id)
        if websocket is None:
            logger.debug(f"Send to unknown connection {connection_id} skipped")
            return False
        try:
            await websocket.send_text(payload)
            return True
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")
            return False


websocket_transport = WebSocketTransport()
