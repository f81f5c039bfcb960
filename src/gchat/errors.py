from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    INTERNAL = "INTERNAL"


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.RESOURCE_EXHAUSTED: 429,
    ErrorCode.INTERNAL: 500,
}


class GChatError(Exception):
    """Raised for all expected failure conditions of callables and triggers.

    Caught by the transport layer and serialised into the callable error
    envelope. Business logic lets it propagate; only infrastructure
    components (cache, rate limiter storage) swallow their own errors.
    """

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.code]

    def to_dict(self) -> dict:
        error: dict[str, Any] = {"status": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class InvalidArgument(GChatError):
    code = ErrorCode.INVALID_ARGUMENT


class Unauthenticated(GChatError):
    code = ErrorCode.UNAUTHENTICATED


class PermissionDenied(GChatError):
    code = ErrorCode.PERMISSION_DENIED


class NotFound(GChatError):
    code = ErrorCode.NOT_FOUND


class ConversationNotFound(NotFound):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(
            f"Conversation not found: {conversation_id}",
            details={"conversationId": conversation_id},
        )
        self.conversation_id = conversation_id


class MessageNotFound(NotFound):
    def __init__(self, conversation_id: str, message_id: str) -> None:
        super().__init__(
            f"Message not found: {message_id}",
            details={"conversationId": conversation_id, "messageId": message_id},
        )
        self.message_id = message_id


class RateLimitExceeded(GChatError):
    code = ErrorCode.RESOURCE_EXHAUSTED

    def __init__(self, feature: str, retry_after_minutes: int) -> None:
        super().__init__(
            f"Rate limit exceeded. Try again in {retry_after_minutes} minutes.",
            details={"feature": feature, "retryAfterMinutes": retry_after_minutes},
        )
        self.feature = feature
        self.retry_after_minutes = retry_after_minutes


class ProviderFailure(GChatError):
    """The language-model provider call failed. Never cached, never retried here."""

    code = ErrorCode.INTERNAL


class MalformedProviderResponse(ProviderFailure):
    """The provider answered but no usable result could be decoded."""
