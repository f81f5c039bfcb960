"""Service entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState inside the Starlette lifespan context manager
- Start the background cache sweep
- Serve the HTTP app
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from gchat import __version__
from gchat.cache import ResponseCache
from gchat.config import Settings
from gchat.directory import Directory
from gchat.dispatcher import NotificationDispatcher
from gchat.gateway import AIGateway
from gchat.messaging import FcmTransport
from gchat.messaging import build_http_client as build_messaging_client
from gchat.provider import ProviderFactory
from gchat.ratelimit import RateLimiter
from gchat.schedulers import run_cache_cleanup_scheduler
from gchat.state import AppState
from gchat.transport import create_app, run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        """Create and tear down all shared resources for the server's lifetime."""
        log.info("server_starting", version=__version__)

        db_path = Path(settings.store.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        await db.execute("PRAGMA journal_mode = WAL")

        cache = ResponseCache(db, ttl_days=settings.cache.ttl_days)
        rate_limiter = RateLimiter(db, settings.rate_limit)
        directory = Directory(db)
        await cache.init_db()
        await rate_limiter.init_db()
        await directory.init_db()

        providers = ProviderFactory(settings.provider)
        messaging_client = build_messaging_client(settings.messaging)
        if not settings.messaging.project_id:
            log.warning("messaging_project_id_missing")
        transport = FcmTransport(messaging_client, settings.messaging.project_id)

        state = AppState(
            settings=settings,
            cache=cache,
            rate_limiter=rate_limiter,
            directory=directory,
            gateway=AIGateway(cache, rate_limiter, providers, directory),
            dispatcher=NotificationDispatcher(directory, transport),
        )
        app.state.gchat = state

        cache_cleanup_task = asyncio.create_task(run_cache_cleanup_scheduler(state))

        log.info(
            "server_started",
            version=__version__,
            host=settings.server.host,
            port=settings.server.port,
        )

        try:
            yield
        finally:
            cache_cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cache_cleanup_task
            await providers.aclose()
            await messaging_client.aclose()
            await db.close()
            log.info("server_stopping")

    return lifespan


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    app = create_app(lifespan=build_lifespan(settings))
    run_http_server(app, settings)


if __name__ == "__main__":
    main()
