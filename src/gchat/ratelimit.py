"""Sliding-window rate limiter keyed by (user, feature).

Each record keeps the millisecond timestamps of the requests admitted inside
the current window. On every check, timestamps older than the window are
dropped before counting, so stale requests are never counted.

Storage failures fail open: the request is admitted and the error is logged.
Reads and writes are not transactional: concurrent requests from the same
user may over-admit by a small margin.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from gchat.errors import RateLimitExceeded
from gchat.models.ratelimit import RateLimitWindow

if TYPE_CHECKING:
    from gchat.config import RateLimitSettings

log = structlog.get_logger()

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MINUTES = 60

_CREATE_RATE_LIMIT_TABLE = """
CREATE TABLE IF NOT EXISTS rate_limits (
    user_id            TEXT NOT NULL,
    feature            TEXT NOT NULL,
    request_timestamps TEXT NOT NULL DEFAULT '[]',
    window_start       INTEGER NOT NULL,
    PRIMARY KEY (user_id, feature)
)
"""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def prune_window(timestamps: list[int], now_ms: int, window_ms: int) -> list[int]:
    """Keep only the timestamps strictly inside the rolling window, ascending."""
    return sorted(t for t in timestamps if now_ms - t < window_ms)


def retry_after_minutes(oldest_ms: int, now_ms: int, window_ms: int) -> int:
    """Whole minutes until the oldest retained request slides out. Always >= 1."""
    remaining_ms = window_ms - (now_ms - oldest_ms)
    return max(1, math.ceil(remaining_ms / 60_000))


class RateLimiter:
    """SQLite-backed sliding-window limiter implementing RateLimiterProtocol."""

    def __init__(
        self,
        db: aiosqlite.Connection,
        settings: RateLimitSettings | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._settings = settings
        self._clock = clock

    async def init_db(self) -> None:
        """Create tables. Called once at startup."""
        await self._db.execute(_CREATE_RATE_LIMIT_TABLE)
        await self._db.commit()

    async def enforce(self, user_id: str, feature: str) -> None:
        """Apply the configured policy for ``feature``. Raises RateLimitExceeded."""
        if self._settings is None:
            await self.check_and_record(user_id, feature)
            return
        policy = self._settings.policy_for(feature)
        await self.check_and_record(
            user_id,
            feature,
            max_requests=policy.max_requests,
            window_minutes=policy.window_minutes,
        )

    async def check_and_record(
        self,
        user_id: str,
        feature: str,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
    ) -> None:
        """Admit and record one request, or raise RateLimitExceeded.

        Any storage error is logged and the request is admitted.
        """
        now_ms = int(self._clock().timestamp() * 1000)
        window_ms = window_minutes * 60_000

        try:
            window = await self._load(user_id, feature)
            retained = prune_window(window.request_timestamps, now_ms, window_ms)

            if len(retained) >= max_requests:
                retry_after = retry_after_minutes(retained[0], now_ms, window_ms)
                log.warning(
                    "rate_limit_exceeded",
                    user_id=user_id,
                    feature=feature,
                    count=len(retained),
                    max_requests=max_requests,
                    retry_after_minutes=retry_after,
                )
                raise RateLimitExceeded(feature, retry_after)

            retained.append(now_ms)
            await self._save(
                RateLimitWindow(
                    user_id=user_id,
                    feature=feature,
                    request_timestamps=retained,
                    window_start=retained[0],
                )
            )
        except (aiosqlite.Error, TypeError, ValueError):
            # TypeError/ValueError cover a corrupt stored timestamp list
            log.warning(
                "rate_limit_check_error", user_id=user_id, feature=feature, exc_info=True
            )
            return

        log.debug(
            "rate_limit_admitted",
            user_id=user_id,
            feature=feature,
            count=len(retained),
            max_requests=max_requests,
        )

    async def get_window(self, user_id: str, feature: str) -> RateLimitWindow:
        """Read the stored window as-is (no pruning)."""
        return await self._load(user_id, feature)

    async def _load(self, user_id: str, feature: str) -> RateLimitWindow:
        cursor = await self._db.execute(
            "SELECT request_timestamps, window_start FROM rate_limits "
            "WHERE user_id = ? AND feature = ?",
            (user_id, feature),
        )
        row = await cursor.fetchone()
        if row is None:
            return RateLimitWindow(user_id=user_id, feature=feature)

        timestamps = json.loads(row[0])
        if not isinstance(timestamps, list):
            raise ValueError(f"Corrupt rate limit record for {user_id}/{feature}")
        return RateLimitWindow(
            user_id=user_id,
            feature=feature,
            request_timestamps=[int(t) for t in timestamps],
            window_start=row[1],
        )

    async def _save(self, window: RateLimitWindow) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO rate_limits "
            "(user_id, feature, request_timestamps, window_start) VALUES (?, ?, ?, ?)",
            (
                window.user_id,
                window.feature,
                json.dumps(window.request_timestamps),
                window.window_start,
            ),
        )
        await self._db.commit()
