"""Callable handler for adjustFormality."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import AdjustFormalityInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    """Handle an adjustFormality call."""
    log = structlog.get_logger().bind(function="adjustFormality", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = AdjustFormalityInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(
            exc,
            "Text, target language, and formality level (formal, neutral, casual) "
            "are required.",
        ) from exc

    result = await state.gateway.adjust_formality(
        validated.text,
        validated.source_language,
        validated.target_language,
        validated.formality_level,
        user_id,
    )
    return result.model_dump(mode="json", by_alias=True)
