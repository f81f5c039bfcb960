"""SQLite response cache for AI results, addressed by input digest.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write and hit-accounting failures are logged and ignored (the freshly computed
result is still returned). Infrastructure errors never cross the
ResponseCache class boundary. Errors are logged with ``exc_info=True`` so they
remain observable.
"""

from __future__ import annotations

import hashlib
import json
import unicodedata
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import structlog

from gchat.models.cache import CacheEntry

log = structlog.get_logger()

DEFAULT_TTL_DAYS = 30

_CREATE_RESPONSE_TABLE = """
CREATE TABLE IF NOT EXISTS response_cache (
    cache_key        TEXT PRIMARY KEY,
    original_input   TEXT NOT NULL,
    result           TEXT NOT NULL,
    created_at       TEXT NOT NULL,
    expires_at       TEXT NOT NULL,
    hit_count        INTEGER NOT NULL DEFAULT 1,
    last_accessed_at TEXT,
    owner_user_id    TEXT
)
"""

_CREATE_RESPONSE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_response_expires ON response_cache(expires_at)"
)

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS server_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_text(text: str) -> str:
    """Canonical form of a cache input: NFC, surrounding whitespace stripped."""
    return unicodedata.normalize("NFC", text).strip()


def generate_cache_key(text: str, *params: str) -> str:
    """Deterministic SHA-256 digest of the normalised text and ordered parameters.

    The inputs are encoded as a JSON array so that parameter boundaries stay
    unambiguous: ``("a|b", "c")`` and ``("a", "b|c")`` hash differently.
    """
    payload = json.dumps([normalize_text(text), *params], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    """SQLite-backed AI response cache implementing CacheProtocol."""

    def __init__(
        self,
        db: aiosqlite.Connection,
        *,
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock

    async def init_db(self) -> None:
        """Create tables. Called once at startup."""
        await self._db.execute(_CREATE_RESPONSE_TABLE)
        await self._db.execute(_CREATE_RESPONSE_INDEX)
        await self._db.execute(_CREATE_METADATA_TABLE)
        await self._db.commit()

    async def get(self, key: str) -> CacheEntry | None:
        """Read an entry. Returns ``None`` on miss, expiry, or read failure.

        Expired entries are deleted on the way out.
        """
        try:
            cursor = await self._db.execute(
                "SELECT cache_key, original_input, result, created_at, expires_at, "
                "hit_count, last_accessed_at, owner_user_id "
                "FROM response_cache WHERE cache_key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            created_at = datetime.fromisoformat(row[3])
            if self._clock() - created_at > self._ttl:
                log.info("cache_expired", key=key, created_at=row[3])
                await self._db.execute("DELETE FROM response_cache WHERE cache_key = ?", (key,))
                await self._db.commit()
                return None

            return CacheEntry(
                key=row[0],
                original_input=row[1],
                result=json.loads(row[2]),
                created_at=created_at,
                expires_at=datetime.fromisoformat(row[4]),
                hit_count=row[5],
                last_accessed_at=datetime.fromisoformat(row[6]) if row[6] else None,
                owner_user_id=row[7],
            )
        except (aiosqlite.Error, ValueError):
            # ValueError covers corrupt timestamps and undecodable result JSON
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

    async def put(
        self,
        key: str,
        original_input: str,
        result: dict[str, Any],
        owner_user_id: str | None = None,
    ) -> None:
        """Upsert an entry with a fresh TTL. Non-fatal on failure.

        Merge semantics: on conflict, hit accounting is preserved and an
        omitted ``owner_user_id`` keeps the stored one.
        """
        try:
            now = self._clock()
            expires_at = now + self._ttl
            await self._db.execute(
                "INSERT INTO response_cache "
                "(cache_key, original_input, result, created_at, expires_at, hit_count, "
                "owner_user_id) VALUES (?, ?, ?, ?, ?, 1, ?) "
                "ON CONFLICT(cache_key) DO UPDATE SET "
                "original_input = excluded.original_input, "
                "result = excluded.result, "
                "created_at = excluded.created_at, "
                "expires_at = excluded.expires_at, "
                "owner_user_id = COALESCE(excluded.owner_user_id, response_cache.owner_user_id)",
                (
                    key,
                    original_input,
                    json.dumps(result, ensure_ascii=False),
                    now.isoformat(),
                    expires_at.isoformat(),
                    owner_user_id,
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=key, exc_info=True)

    async def touch_hit(self, key: str) -> None:
        """Increment the hit counter and refresh last access. Non-fatal on failure."""
        try:
            await self._db.execute(
                "UPDATE response_cache SET hit_count = hit_count + 1, last_accessed_at = ? "
                "WHERE cache_key = ?",
                (self._clock().isoformat(), key),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_hit_increment_error", key=key, exc_info=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_if_due(self, interval_hours: int) -> None:
        """Run cleanup only if interval_hours have elapsed since the last run.

        Reads and writes ``last_cleanup_at`` from the ``server_metadata`` table.
        Falls through to run cleanup if the metadata row is missing or unreadable.
        Non-fatal on failure.
        """
        try:
            cursor = await self._db.execute(
                "SELECT value FROM server_metadata WHERE key = 'last_cleanup_at'"
            )
            row = await cursor.fetchone()
            if row is not None:
                last_run = datetime.fromisoformat(row[0])
                if self._clock() - last_run < timedelta(hours=interval_hours):
                    log.debug("cache_cleanup_skipped", reason="not_due")
                    return
        except aiosqlite.Error:
            log.warning("cache_metadata_read_error", exc_info=True)

        await self.cleanup_expired()

        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO server_metadata (key, value) VALUES ('last_cleanup_at', ?)",
                (self._clock().isoformat(),),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_metadata_write_error", exc_info=True)

    async def cleanup_expired(self) -> int:
        """Delete entries past their expiry. Returns the count; 0 on failure."""
        try:
            cursor = await self._db.execute(
                "DELETE FROM response_cache WHERE expires_at < ?",
                (self._clock().isoformat(),),
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
            return deleted
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
            return 0
