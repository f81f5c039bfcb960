from __future__ import annotations

from pydantic import BaseModel


class RateLimitWindow(BaseModel):
    """Request history for one (user, feature) pair."""

    user_id: str
    feature: str
    request_timestamps: list[int] = []  # epoch milliseconds, ascending
    window_start: int = 0  # oldest retained timestamp
