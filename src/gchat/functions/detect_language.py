"""Callable handler for detectLanguage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import DetectLanguageInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    log = structlog.get_logger().bind(function="detectLanguage", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = DetectLanguageInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(exc, "Text is required.") from exc

    result = await state.gateway.detect_language(validated.text, user_id)
    # Echo the text back like the mobile client expects
    return {**result.model_dump(mode="json", by_alias=True), "text": validated.text}
