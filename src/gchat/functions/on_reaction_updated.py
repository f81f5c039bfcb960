"""Trigger adapter for message documents whose reactions changed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.errors import ErrorCode, GChatError
from gchat.functions import aborted
from gchat.models.events import ReactionUpdatedEvent

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(payload: Any, state: AppState) -> dict:
    """Dispatch reaction notifications. Never raises: failures are terminal."""
    log = structlog.get_logger().bind(trigger="onMessageReactionAdded")

    try:
        event = ReactionUpdatedEvent.model_validate(payload)
    except ValidationError:
        log.warning("trigger_payload_invalid", exc_info=True)
        return aborted(ErrorCode.INVALID_ARGUMENT)

    try:
        receipt = await state.dispatcher.on_reaction_updated(event)
    except GChatError as exc:
        log.warning("trigger_aborted", code=exc.code, message=exc.message)
        return aborted(exc.code)
    except Exception:
        log.error("trigger_unexpected_error", exc_info=True)
        return aborted(ErrorCode.INTERNAL)

    return {"status": "ok", "receipt": receipt.model_dump(mode="json")}
