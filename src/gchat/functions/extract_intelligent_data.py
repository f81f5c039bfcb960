"""Callable handler for extractIntelligentData."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import MAX_TRANSLATION_CHARS, ExtractDataInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    log = structlog.get_logger().bind(function="extractIntelligentData", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = ExtractDataInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(
            exc,
            "Text is required and must be a non-empty string of at most "
            f"{MAX_TRANSLATION_CHARS} characters.",
        ) from exc

    result = await state.gateway.extract_data(
        validated.text, validated.message_id, validated.conversation_id, user_id
    )
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
