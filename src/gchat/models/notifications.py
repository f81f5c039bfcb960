from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class PayloadKind(StrEnum):
    NEW_MESSAGE = "NEW_MESSAGE"
    REACTION = "REACTION"


class DispatchState(StrEnum):
    RESOLVING_RECIPIENTS = "RESOLVING_RECIPIENTS"
    SENDING = "SENDING"
    CLEANUP = "CLEANUP"
    DONE = "DONE"
    SKIPPED = "SKIPPED"


class NotificationTask(BaseModel):
    """One outbound push. Ephemeral: exists only for the duration of a dispatch."""

    target_token: str
    payload_kind: PayloadKind
    data: dict[str, str]  # push data payload values must be strings


class SendResult(BaseModel):
    token: str
    success: bool
    error: str | None = None


class ReactionDelta(BaseModel):
    emoji: str
    user_id: str


class DispatchReceipt(BaseModel):
    """Outcome of one trigger firing, returned to the trigger adapter."""

    event: PayloadKind
    state: DispatchState
    recipients: int = 0
    sent: int = 0
    failed: int = 0
    cleared_tokens: int = 0
