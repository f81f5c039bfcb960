"""Callable and trigger handlers.

Each module exposes ``handle(...)``: validate the payload, call the gateway or
dispatcher, return a JSON-ready dict. No Starlette imports; transport.py
handles the HTTP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gchat.errors import InvalidArgument, Unauthenticated

if TYPE_CHECKING:
    from pydantic import ValidationError


def require_caller(caller_uid: str | None) -> str:
    if not caller_uid:
        raise Unauthenticated("User must be authenticated")
    return caller_uid


def invalid_argument(exc: ValidationError, suggestion: str) -> InvalidArgument:
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    return InvalidArgument(suggestion, details={"fields": fields})


def aborted(reason: str) -> dict:
    """Trigger response for a terminal failure. Answered with 200 so it is not retried."""
    return {"status": "aborted", "reason": reason}
