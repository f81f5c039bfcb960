from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gchat.models.directory import MessageType


class _EventModel(BaseModel):
    # Trigger payloads arrive in camelCase from the document store
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageCreatedEvent(_EventModel):
    conversation_id: str = Field(min_length=1)
    message_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT
    text: str | None = None


class MessageSnapshot(_EventModel):
    """One side (before or after) of a message document update."""

    sender_id: str | None = None
    text: str | None = None
    reactions: dict[str, list[str]] = {}  # emoji → reacting user ids


class ReactionUpdatedEvent(_EventModel):
    conversation_id: str = Field(min_length=1)
    message_id: str = Field(min_length=1)
    before: MessageSnapshot = MessageSnapshot()
    after: MessageSnapshot = MessageSnapshot()
    sender_id: str | None = None  # message owner; falls back to after.sender_id

    @property
    def owner_id(self) -> str | None:
        return self.sender_id or self.after.sender_id
