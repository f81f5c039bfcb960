"""Callable handler for generateSmartReplies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat.functions import invalid_argument, require_caller
from gchat.models.ai import GenerateSmartRepliesInput

if TYPE_CHECKING:
    from gchat.state import AppState


async def handle(data: Any, caller_uid: str | None, state: AppState) -> dict:
    """Handle a generateSmartReplies call."""
    log = structlog.get_logger().bind(function="generateSmartReplies", caller_uid=caller_uid)
    log.info("handler_called")

    user_id = require_caller(caller_uid)
    try:
        validated = GenerateSmartRepliesInput.model_validate(data)
    except ValidationError as exc:
        raise invalid_argument(
            exc, "conversationId, incomingMessageId, and targetLanguage are required."
        ) from exc

    result = await state.gateway.generate_smart_replies(
        validated.conversation_id,
        validated.incoming_message_id,
        validated.target_language,
        user_id,
    )
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
