"""Shared test fixtures for the gchat test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from gchat.cache import ResponseCache
from gchat.config import RateLimitSettings
from gchat.directory import Directory
from gchat.models.directory import (
    ChatMessage,
    Conversation,
    ConversationType,
    MessageType,
    UserRecord,
)
from gchat.models.notifications import SendResult
from gchat.ratelimit import RateLimiter

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


class FakeClock:
    """Settable clock passed to components that take ``clock=``."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeTransport:
    """Records sends; tokens in ``failing`` come back unsuccessful."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.sent: list[tuple[str, dict[str, str]]] = []

    async def send(self, token: str, data: dict[str, str]) -> SendResult:
        self.sent.append((token, data))
        if token in self.failing:
            return SendResult(token=token, success=False, error="UNREGISTERED")
        return SendResult(token=token, success=True)

    async def send_multicast(self, tokens: list[str], data: dict[str, str]) -> list[SendResult]:
        return [await self.send(token, data) for token in tokens]


class FakeProvider:
    """Returns queued responses per feature and records every call.

    A queued exception is raised instead of returned.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[str | Exception]] = {}
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    def queue(self, feature: str, *contents: str | Exception) -> None:
        self.responses.setdefault(feature, []).extend(contents)

    async def complete(self, feature: str, messages: list[dict[str, str]]) -> str:
        self.calls.append((feature, messages))
        content = self.responses[feature].pop(0)
        if isinstance(content, Exception):
            raise content
        return content


class FakeProviderFactory:
    def __init__(self, provider: FakeProvider) -> None:
        self.provider = provider

    def get(self) -> FakeProvider:
        return self.provider


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def db() -> AsyncGenerator[aiosqlite.Connection, None]:
    async with aiosqlite.connect(":memory:") as conn:
        yield conn


@pytest.fixture()
async def cache(db: aiosqlite.Connection, clock: FakeClock) -> ResponseCache:
    cache = ResponseCache(db, clock=clock)
    await cache.init_db()
    return cache


@pytest.fixture()
async def rate_limiter(db: aiosqlite.Connection, clock: FakeClock) -> RateLimiter:
    limiter = RateLimiter(db, RateLimitSettings(), clock=clock)
    await limiter.init_db()
    return limiter


@pytest.fixture()
async def directory(db: aiosqlite.Connection) -> Directory:
    directory = Directory(db)
    await directory.init_db()
    return directory


@pytest.fixture()
async def seeded_directory(directory: Directory) -> Directory:
    """Three users, a direct chat (u1, u2) and a group chat (u1, u2, u3).

    u3 has no delivery token.
    """
    await directory.put_user(UserRecord(user_id="u1", display_name="Alice", fcm_token="tok-u1"))
    await directory.put_user(UserRecord(user_id="u2", display_name="Bob", fcm_token="tok-u2"))
    await directory.put_user(UserRecord(user_id="u3", display_name="Carol"))
    await directory.put_conversation(
        Conversation(conversation_id="direct-1", participants=["u1", "u2"])
    )
    await directory.put_conversation(
        Conversation(
            conversation_id="group-1",
            type=ConversationType.GROUP,
            name="Weekend trip",
            participants=["u1", "u2", "u3"],
            nicknames={"u2": "Bobby"},
        )
    )
    history = [
        ("m1", "u1", "hey! are we still on for tonight?"),
        ("m2", "u2", "yes, I'll be there at 8"),
        ("m3", "u1", "great, can't wait 😄"),
        ("m4", "u2", "Do you want to grab dinner first?"),
    ]
    for i, (message_id, sender_id, text) in enumerate(history):
        await directory.put_message(
            ChatMessage(
                conversation_id="direct-1",
                message_id=message_id,
                sender_id=sender_id,
                text=text,
                timestamp=1_000 * (i + 1),
            )
        )
    await directory.put_message(
        ChatMessage(
            conversation_id="direct-1",
            message_id="img-1",
            sender_id="u2",
            type=MessageType.IMAGE,
            timestamp=10_000,
        )
    )
    return directory


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def provider_factory(provider: FakeProvider) -> FakeProviderFactory:
    return FakeProviderFactory(provider)
