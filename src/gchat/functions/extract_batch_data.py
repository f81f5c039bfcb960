"""Callable handler for extractBatchData."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import MAX_BATCH_MESSAGES, ExtractBatchInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    """Handle an extractBatchData call."""
    log = structlog.get_logger().bind(function="extractBatchData", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = ExtractBatchInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(
            exc,
            f"conversationId and 1 to {MAX_BATCH_MESSAGES} messages are required.",
        ) from exc

    result = await state.gateway.extract_batch(
        validated.messages, validated.conversation_id, user_id
    )
    return result.model_dump(mode="json", by_alias=True)
