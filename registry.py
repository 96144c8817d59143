import threading
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRecord(BaseModel):
    """Snapshot of one live connection and its room association."""
    model_config = ConfigDict(frozen=True)

    connection_id: str
    room_id: Optional[str] = None
    display_name: Optional[str] = None
    connected_at: str

    @property
    def joined(self) -> bool:
        return self.room_id is not None and self.display_name is not None


class ConnectionRegistry:
    """In-memory map of connection id -> ConnectionRecord.

    Every read and mutation takes ``_lock`` for its own duration only. Records
    are immutable and replaced wholesale on bind, so callers never observe a
    half-updated entry and can keep the snapshots they got after the lock is
    released.
    """

    def __init__(self):
        self._entries: Dict[str, ConnectionRecord] = {}
        self._lock = threading.Lock()
        logger.info("Initializing ConnectionRegistry")

    def register(self, connection_id: str):
        with self._lock:
            if connection_id in self._entries:
                logger.debug(f"Connection {connection_id} already registered")
                return
            self._entries[connection_id] = ConnectionRecord(
                connection_id=connection_id,
                connected_at=datetime.now().isoformat(),
            )
            total = len(self._entries)
        logger.debug(f"Registered connection {connection_id} (total connections: {total})")

    def bind(self, connection_id: str, room_id: str, display_name: str) -> ConnectionRecord:
        """Set or overwrite the room and display name of a connection.

        An unknown connection id is registered on the fly. Both values are
        stored exactly as given and must not be blank.
        """
        for value in (room_id, display_name):
            if not isinstance(value, str) or not value.strip():
                raise ValueError("room_id and display_name must be non-empty strings")

        with self._lock:
            current = self._entries.get(connection_id)
            if current is None:
                logger.debug(f"Binding unregistered connection {connection_id}, registering it first")
                connected_at = datetime.now().isoformat()
            else:
                connected_at = current.connected_at
            record = ConnectionRecord(
                connection_id=connection_id,
                room_id=room_id,
                display_name=display_name,
                connected_at=connected_at,
            )
            self._entries[connection_id] = record

        if current is not None and current.room_id is not None and current.room_id != room_id:
            logger.info(f"Connection {connection_id} moved from room {current.room_id} to {room_id} as {display_name}")
        else:
            logger.info(f"Connection {connection_id} joined room {room_id} as {display_name}")
        return record

    def unregister(self, connection_id: str):
        with self._lock:
            removed = self._entries.pop(connection_id, None)
            total = len(self._entries)
        if removed is None:
            logger.debug(f"Unregister for unknown connection {connection_id} ignored")
            return
        logger.debug(f"Unregistered connection {connection_id} (total connections: {total})")

    def lookup(self, connection_id: str) -> Optional[ConnectionRecord]:
        with self._lock:
            return self._entries.get(connection_id)

    def members_of(self, room_id: str) -> List[ConnectionRecord]:
        """Every joined connection currently bound to ``room_id``."""
        with self._lock:
            members = [record for record in self._entries.values() if record.joined and record.room_id == room_id]
        logger.debug(f"Room {room_id} has {len(members)} members")
        return members

    def count(self) -> int:
        with self._lock:
            return len(self._entries)


connection_registry = ConnectionRegistry()
