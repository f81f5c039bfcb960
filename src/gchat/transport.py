"""HTTP surface: callable endpoints, trigger endpoints, health check.

Callables speak the Firebase callable protocol: the request body is
``{"data": {...}}``, a success is ``{"result": {...}}`` and a failure is
``{"error": {"status": ..., "message": ..., "details": ...}}`` with the
matching HTTP status. The hosting platform verifies the end user's token and
forwards the uid in the ``X-Caller-Uid`` header.

Trigger endpoints always answer 200 so the platform never retries an event
whose dispatch failed terminally.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

import gchat.functions.adjust_formality as f_adjust_formality
import gchat.functions.detect_language as f_detect_language
import gchat.functions.extract_batch_data as f_extract_batch
import gchat.functions.extract_intelligent_data as f_extract_data
import gchat.functions.generate_smart_replies as f_smart_replies
import gchat.functions.get_cultural_context as f_cultural_context
import gchat.functions.on_message_created as f_message_created
import gchat.functions.on_reaction_updated as f_reaction_updated
import gchat.functions.translate_message as f_translate
from gchat import __version__
from gchat.errors import ErrorCode, GChatError, InvalidArgument
from gchat.functions import aborted

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.types import Lifespan

    from gchat.config import Settings
    from gchat.state import AppState

    CallableHandler = Callable[[Any, str | None, AppState], Awaitable[dict]]
    TriggerHandler = Callable[[Any, AppState], Awaitable[dict]]

log = structlog.get_logger()

CALLER_UID_HEADER = "x-caller-uid"
SERVICE_NAME = "gChat Cloud Functions"


async def _read_json(request: Request) -> Any:
    try:
        return json.loads(await request.body())
    except ValueError:
        return None


def _error_response(error: GChatError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.http_status)


def callable_endpoint(name: str, handler: CallableHandler) -> Callable:
    async def endpoint(request: Request) -> JSONResponse:
        state: AppState = request.app.state.gchat
        body = await _read_json(request)
        if not isinstance(body, dict) or "data" not in body:
            return _error_response(InvalidArgument("Request body must be {\"data\": ...}"))

        caller_uid = request.headers.get(CALLER_UID_HEADER) or None
        try:
            result = await handler(body["data"], caller_uid, state)
        except GChatError as exc:
            log.warning(
                "callable_error",
                function=name,
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
            return _error_response(exc)
        except Exception:
            log.error("callable_unexpected_error", function=name, exc_info=True)
            return _error_response(GChatError(f"{name} failed", code=ErrorCode.INTERNAL))

        return JSONResponse({"result": result})

    endpoint.__name__ = name
    return endpoint


def trigger_endpoint(name: str, handler: TriggerHandler) -> Callable:
    async def endpoint(request: Request) -> JSONResponse:
        state: AppState = request.app.state.gchat
        body = await _read_json(request)
        if body is None:
            log.warning("trigger_body_invalid", trigger=name)
            return JSONResponse(aborted(ErrorCode.INVALID_ARGUMENT))
        return JSONResponse(await handler(body, state))

    endpoint.__name__ = name
    return endpoint


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": SERVICE_NAME,
            "version": __version__,
        }
    )


def create_app(*, state: AppState | None = None, lifespan: Lifespan | None = None) -> Starlette:
    """Build the ASGI app. Pass ``state`` directly (tests) or a lifespan that sets it."""
    routes = [
        Route(
            "/translateMessage",
            callable_endpoint("translateMessage", f_translate.handle),
            methods=["POST"],
        ),
        Route(
            "/detectLanguage",
            callable_endpoint("detectLanguage", f_detect_language.handle),
            methods=["POST"],
        ),
        Route(
            "/generateSmartReplies",
            callable_endpoint("generateSmartReplies", f_smart_replies.handle),
            methods=["POST"],
        ),
        Route(
            "/getCulturalContext",
            callable_endpoint("getCulturalContext", f_cultural_context.handle),
            methods=["POST"],
        ),
        Route(
            "/adjustFormality",
            callable_endpoint("adjustFormality", f_adjust_formality.handle),
            methods=["POST"],
        ),
        Route(
            "/extractIntelligentData",
            callable_endpoint("extractIntelligentData", f_extract_data.handle),
            methods=["POST"],
        ),
        Route(
            "/extractBatchData",
            callable_endpoint("extractBatchData", f_extract_batch.handle),
            methods=["POST"],
        ),
        Route(
            "/events/messageCreated",
            trigger_endpoint("onMessageCreated", f_message_created.handle),
            methods=["POST"],
        ),
        Route(
            "/events/reactionUpdated",
            trigger_endpoint("onMessageReactionAdded", f_reaction_updated.handle),
            methods=["POST"],
        ),
        Route("/healthCheck", health_check, methods=["GET"]),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    if state is not None:
        app.state.gchat = state
    return app


def run_http_server(app: Starlette, settings: Settings) -> None:
    """Serve the app with uvicorn."""
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
