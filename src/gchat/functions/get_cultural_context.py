"""Callable handler for getCulturalContext."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import CulturalContextInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    log = structlog.get_logger().bind(function="getCulturalContext", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = CulturalContextInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(exc, "Text and language are required.") from exc

    result = await state.gateway.get_cultural_context(
        validated.text, validated.language, user_id
    )
    log.info("cultural_context_complete", insights=len(result.insights), cached=result.cached)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
