import asyncio
from typing import Protocol, Union

from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.messages import ChatMessage, JoinMessage, build_chat_message, parse_inbound

logger = get_logger(__name__)


class Transport(Protocol):
    def is_writable(self, connection_id: str) -> bool: ...

    async def send(self, connection_id: str, payload: str) -> bool: ...


class BroadcastEngine:
    """Interprets join/chat directives and fans chat out to room members.

    Nothing raised while handling one frame escapes ``on_message``: malformed
    input is dropped, unjoined senders are ignored and failed writes only
    affect their own recipient.
    """

    def __init__(self, registry: ConnectionRegistry, transport: Transport):
        self.registry = registry
        self.transport = transport

    def on_connect(self, connection_id: str):
        logger.info(f"New client connected: {connection_id}")
        self.registry.register(connection_id)

    async def on_message(self, connection_id: str, raw: Union[str, bytes]):
        try:
            directive = parse_inbound(raw)
        except ValueError as e:  # pydantic ValidationError or undecodable bytes
            logger.warning(f"Discarding malformed message from connection {connection_id}: {e}")
            logger.debug(f"Malformed payload from {connection_id}: {raw!r}")
            return

        try:
            if isinstance(directive, JoinMessage):
                self.handle_join(connection_id, directive)
            elif isinstance(directive, ChatMessage):
                await self.handle_chat(connection_id, directive)
        except Exception as e:
            logger.error(f"Error handling {directive.type} message from connection {connection_id}: {e}", exc_info=True)

    def handle_join(self, connection_id: str, directive: JoinMessage):
        self.registry.bind(connection_id, directive.payload.roomId, directive.payload.username)

    async def handle_chat(self, connection_id: str, directive: ChatMessage) -> int:
        """Deliver a chat message to the sender's room, sender included.

        Returns the number of delivery attempts made.
        """
        sender = self.registry.lookup(connection_id)
        if sender is None or not sender.joined:
            logger.debug(f"Dropping chat from connection {connection_id}: not joined to a room")
            return 0

        recipients = self.registry.members_of(sender.room_id)
        logger.debug(f"Broadcasting message from {sender.display_name} in room {sender.room_id} to {len(recipients)} members")

        payload = build_chat_message(directive.payload.message, sender.display_name)
        send_tasks = [
            self.transport.send(recipient.connection_id, payload)
            for recipient in recipients
            if self.transport.is_writable(recipient.connection_id)
        ]
        if not send_tasks:
            return 0

        results = await asyncio.gather(*send_tasks, return_exceptions=True)
        failed = sum(1 for result in results if result is not True)
        if failed:
            logger.debug(f"{failed}/{len(results)} deliveries failed in room {sender.room_id}")
        return len(send_tasks)

    def on_disconnect(self, connection_id: str):
        record = self.registry.lookup(connection_id)
        if record is not None and record.display_name:
            logger.info(f"Client disconnected: {connection_id}, removing user {record.display_name}")
        else:
            logger.info(f"Client disconnected: {connection_id}")
        self.registry.unregister(connection_id)
        logger.info(f"Total connected users: {self.registry.count()}")

    def on_transport_error(self, connection_id: str, error: BaseException):
        logger.error(f"WebSocket error on connection {connection_id}: {error}")
        self.on_disconnect(connection_id)
