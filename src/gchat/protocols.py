"""Protocol interfaces for swappable components.

The gateway, dispatcher and AppState reference these protocols, not the
concrete implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other backends (e.g. a managed document store) to be swapped in without
  changing gateway or dispatcher code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from gchat.models.cache import CacheEntry
    from gchat.models.directory import ChatMessage, Conversation, ReactionPreview, UserRecord
    from gchat.models.notifications import SendResult


class CacheProtocol(Protocol):
    """Interface for the AI response cache backend."""

    async def get(self, key: str) -> CacheEntry | None: ...

    async def put(
        self,
        key: str,
        original_input: str,
        result: dict[str, Any],
        owner_user_id: str | None = None,
    ) -> None: ...

    async def touch_hit(self, key: str) -> None: ...

    async def cleanup_if_due(self, interval_hours: int) -> None: ...

    async def cleanup_expired(self) -> int: ...


class RateLimiterProtocol(Protocol):
    """Interface for the per-(user, feature) rate limiter."""

    async def enforce(self, user_id: str, feature: str) -> None: ...

    async def check_and_record(
        self,
        user_id: str,
        feature: str,
        max_requests: int = ...,
        window_minutes: int = ...,
    ) -> None: ...


class DirectoryProtocol(Protocol):
    """Read access to users, conversations and messages; token clearing."""

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def get_delivery_token(self, user_id: str) -> str | None: ...

    async def clear_delivery_token(self, user_id: str, token: str) -> bool: ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def set_reaction_preview(
        self, conversation_id: str, recipient_id: str, preview: ReactionPreview
    ) -> None: ...

    async def clear_reaction_previews(self, conversation_id: str) -> None: ...

    async def get_message(self, conversation_id: str, message_id: str) -> ChatMessage | None: ...

    async def recent_text_messages(
        self, conversation_id: str, limit: int = ...
    ) -> list[ChatMessage]: ...


class PushTransportProtocol(Protocol):
    """Interface for the push-notification transport."""

    async def send(self, token: str, data: dict[str, str]) -> SendResult: ...

    async def send_multicast(
        self, tokens: list[str], data: dict[str, str]
    ) -> list[SendResult]: ...


class ProviderProtocol(Protocol):
    """Interface for the language-model provider."""

    async def complete(self, feature: str, messages: list[dict[str, str]]) -> str: ...


class ProviderSourceProtocol(Protocol):
    """Anything that hands out the process-wide provider (see ProviderFactory)."""

    def get(self) -> ProviderProtocol: ...
