"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan)
and handed to every callable and trigger handler. Handlers are otherwise
stateless: all shared data lives behind the cache, rate limiter and
directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gchat.config import Settings
    from gchat.dispatcher import NotificationDispatcher
    from gchat.gateway import AIGateway
    from gchat.protocols import CacheProtocol, DirectoryProtocol, RateLimiterProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every handler."""

    settings: Settings
    cache: CacheProtocol
    rate_limiter: RateLimiterProtocol
    directory: DirectoryProtocol
    gateway: AIGateway
    dispatcher: NotificationDispatcher
