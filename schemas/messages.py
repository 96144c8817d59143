from pydantic import BaseModel, Field, TypeAdapter, field_validator
from typing import Annotated, Literal, Union


class JoinPayload(BaseModel):
    username: str
    roomId: str

    @field_validator("username", "roomId")
    @classmethod
    def not_blank(cls, value: str) -> str:
        # kept verbatim; room ids and names are opaque
        if not value.strip():
            raise ValueError("must not be blank")
        return value

class JoinMessage(BaseModel):
    type: Literal["join"]
    payload: JoinPayload

class ChatPayload(BaseModel):
    message: str

class ChatMessage(BaseModel):
    type: Literal["chat"]
    payload: ChatPayload

class OutboundChatPayload(BaseModel):
    message: str
    username: str

class OutboundChatMessage(BaseModel):
    type: Literal["chat"] = "chat"
    payload: OutboundChatPayload


InboundMessage = Annotated[Union[JoinMessage, ChatMessage], Field(discriminator="type")]

inbound_message_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes]) -> Union[JoinMessage, ChatMessage]:
    """Parse one inbound frame.

    Raises pydantic.ValidationError for invalid JSON, an unknown ``type`` or a
    payload that does not match its directive.
    """
    return inbound_message_adapter.validate_json(raw)


def build_chat_message(message: str, username: str) -> str:
    return OutboundChatMessage(payload=OutboundChatPayload(message=message, username=username)).model_dump_json()
