"""Callable handler for translateMessage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import MAX_TRANSLATION_CHARS, TranslateMessageInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    """Handle a translateMessage call."""
    log = structlog.get_logger().bind(function="translateMessage", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = TranslateMessageInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(
            exc,
            "Text and target language are required; text must be at most "
            f"{MAX_TRANSLATION_CHARS} characters.",
        ) from exc

    result = await state.gateway.translate(
        validated.text,
        validated.source_language,
        validated.target_language,
        user_id,
    )
    log.info("translation_complete", cached=result.cached)
    return result.model_dump(mode="json", by_alias=True)
