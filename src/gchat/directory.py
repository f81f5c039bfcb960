"""SQLite-backed directory of users, conversations and messages.

The dispatcher and the gateway read conversation metadata and message history
from here and read/clear the single delivery-token field on user records.
Unlike the cache and rate limiter, storage errors are not swallowed: callers
decide whether a missing directory read aborts their event.
"""

from __future__ import annotations

import json

import aiosqlite
import structlog

from gchat.models.directory import (
    ChatMessage,
    Conversation,
    ConversationType,
    MessageType,
    ReactionPreview,
    UserRecord,
)

log = structlog.get_logger()

DEFAULT_HISTORY_LIMIT = 50

_CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    user_id      TEXT PRIMARY KEY,
    display_name TEXT,
    fcm_token    TEXT
)
"""

_CREATE_CONVERSATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS conversations (
    conversation_id   TEXT PRIMARY KEY,
    type              TEXT NOT NULL DEFAULT 'DIRECT',
    name              TEXT,
    participants      TEXT NOT NULL DEFAULT '[]',
    nicknames         TEXT NOT NULL DEFAULT '{}',
    reaction_previews TEXT NOT NULL DEFAULT '{}'
)
"""

_CREATE_MESSAGES_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
    conversation_id TEXT NOT NULL,
    message_id      TEXT NOT NULL,
    sender_id       TEXT NOT NULL,
    type            TEXT NOT NULL DEFAULT 'TEXT',
    text            TEXT,
    timestamp       INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (conversation_id, message_id)
)
"""

_CREATE_TOKEN_INDEX = "CREATE INDEX IF NOT EXISTS idx_users_token ON users(fcm_token)"
_CREATE_MESSAGE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_messages_ts ON messages(conversation_id, timestamp)"
)


class Directory:
    """Directory implementing DirectoryProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables. Called once at startup."""
        await self._db.execute(_CREATE_USERS_TABLE)
        await self._db.execute(_CREATE_CONVERSATIONS_TABLE)
        await self._db.execute(_CREATE_MESSAGES_TABLE)
        await self._db.execute(_CREATE_TOKEN_INDEX)
        await self._db.execute(_CREATE_MESSAGE_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserRecord | None:
        cursor = await self._db.execute(
            "SELECT user_id, display_name, fcm_token FROM users WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return UserRecord(user_id=row[0], display_name=row[1], fcm_token=row[2])

    async def put_user(self, user: UserRecord) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO users (user_id, display_name, fcm_token) VALUES (?, ?, ?)",
            (user.user_id, user.display_name, user.fcm_token),
        )
        await self._db.commit()

    async def get_delivery_token(self, user_id: str) -> str | None:
        """Current push token for a user; ``None`` if the user or token is absent."""
        user = await self.get_user(user_id)
        if user is None or not user.fcm_token:
            return None
        return user.fcm_token

    async def clear_delivery_token(self, user_id: str, token: str) -> bool:
        """Clear the user's token if it still equals ``token``. Returns True if cleared.

        The equality guard keeps a token registered after the failed send.
        """
        cursor = await self._db.execute(
            "UPDATE users SET fcm_token = NULL WHERE user_id = ? AND fcm_token = ?",
            (user_id, token),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        cursor = await self._db.execute(
            "SELECT conversation_id, type, name, participants, nicknames, reaction_previews "
            "FROM conversations WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        previews = json.loads(row[5])
        return Conversation(
            conversation_id=row[0],
            type=ConversationType(row[1]),
            name=row[2],
            participants=json.loads(row[3]),
            nicknames=json.loads(row[4]),
            reaction_previews={
                uid: ReactionPreview.model_validate(p) for uid, p in previews.items()
            },
        )

    async def put_conversation(self, conversation: Conversation) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO conversations "
            "(conversation_id, type, name, participants, nicknames, reaction_previews) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                conversation.conversation_id,
                conversation.type.value,
                conversation.name,
                json.dumps(conversation.participants),
                json.dumps(conversation.nicknames, ensure_ascii=False),
                json.dumps(
                    {
                        uid: p.model_dump()
                        for uid, p in conversation.reaction_previews.items()
                    },
                    ensure_ascii=False,
                ),
            ),
        )
        await self._db.commit()

    async def set_reaction_preview(
        self, conversation_id: str, recipient_id: str, preview: ReactionPreview
    ) -> None:
        """Set the preview line only ``recipient_id`` sees for this conversation."""
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            log.warning("reaction_preview_conversation_missing", conversation_id=conversation_id)
            return
        conversation.reaction_previews[recipient_id] = preview
        await self.put_conversation(conversation)

    async def clear_reaction_previews(self, conversation_id: str) -> None:
        await self._db.execute(
            "UPDATE conversations SET reaction_previews = '{}' WHERE conversation_id = ?",
            (conversation_id,),
        )
        await self._db.commit()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def get_message(self, conversation_id: str, message_id: str) -> ChatMessage | None:
        cursor = await self._db.execute(
            "SELECT conversation_id, message_id, sender_id, type, text, timestamp "
            "FROM messages WHERE conversation_id = ? AND message_id = ?",
            (conversation_id, message_id),
        )
        row = await cursor.fetchone()
        return _row_to_message(row) if row is not None else None

    async def put_message(self, message: ChatMessage) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO messages "
            "(conversation_id, message_id, sender_id, type, text, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                message.conversation_id,
                message.message_id,
                message.sender_id,
                message.type.value,
                message.text,
                message.timestamp,
            ),
        )
        await self._db.commit()

    async def recent_text_messages(
        self, conversation_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ChatMessage]:
        """The latest ``limit`` TEXT messages, oldest first."""
        cursor = await self._db.execute(
            "SELECT conversation_id, message_id, sender_id, type, text, timestamp "
            "FROM messages WHERE conversation_id = ? AND type = 'TEXT' "
            "ORDER BY timestamp DESC LIMIT ?",
            (conversation_id, limit),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in reversed(rows)]


def _row_to_message(row: tuple) -> ChatMessage:
    return ChatMessage(
        conversation_id=row[0],
        message_id=row[1],
        sender_id=row[2],
        type=MessageType(row[3]),
        text=row[4],
        timestamp=row[5],
    )
