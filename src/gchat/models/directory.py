from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class ConversationType(StrEnum):
    DIRECT = "DIRECT"
    GROUP = "GROUP"


class MessageType(StrEnum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    AUDIO = "AUDIO"
    SYSTEM = "SYSTEM"


class UserRecord(BaseModel):
    user_id: str
    display_name: str | None = None
    fcm_token: str | None = None


class ReactionPreview(BaseModel):
    """Per-user conversation preview line synthesised from a reaction."""

    text: str
    timestamp: int  # epoch milliseconds
    message_id: str
    reactor_id: str


class Conversation(BaseModel):
    conversation_id: str
    type: ConversationType = ConversationType.DIRECT
    name: str | None = None
    participants: list[str] = []
    nicknames: dict[str, str] = {}  # user_id → nickname in this conversation
    reaction_previews: dict[str, ReactionPreview] = {}  # recipient user_id → preview


class ChatMessage(BaseModel):
    conversation_id: str
    message_id: str
    sender_id: str
    type: MessageType = MessageType.TEXT
    text: str | None = None
    timestamp: int = 0  # epoch milliseconds
