"""Integration test fixtures.

Provides a fully wired AppState over in-memory SQLite with the real cache,
rate limiter, directory, gateway and dispatcher. Only the language-model
provider and the push transport are replaced with fakes from
tests/conftest.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from gchat.config import Settings
from gchat.dispatcher import NotificationDispatcher
from gchat.gateway import AIGateway
from gchat.state import AppState
from gchat.transport import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from conftest import FakeProviderFactory, FakeTransport

    from gchat.cache import ResponseCache
    from gchat.directory import Directory
    from gchat.ratelimit import RateLimiter


@pytest.fixture()
def app_state(
    cache: ResponseCache,
    rate_limiter: RateLimiter,
    seeded_directory: Directory,
    provider_factory: FakeProviderFactory,
    transport: FakeTransport,
) -> AppState:
    """Full AppState wired for integration tests."""
    return AppState(
        settings=Settings(),
        cache=cache,
        rate_limiter=rate_limiter,
        directory=seeded_directory,
        gateway=AIGateway(cache, rate_limiter, provider_factory, seeded_directory),
        dispatcher=NotificationDispatcher(seeded_directory, transport),
    )


@pytest.fixture()
async def http_client(app_state: AppState) -> AsyncGenerator[httpx.AsyncClient, None]:
    """ASGI client against the Starlette app; no real server is started."""
    app = create_app(state=app_state)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://localhost"
    ) as client:
        yield client
