from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Previously computed AI result, addressed by a digest of its inputs."""

    key: str  # SHA-256 of the normalised input + parameters (primary key)
    original_input: str
    result: dict[str, Any]  # JSON object returned to callers on a hit
    created_at: datetime
    expires_at: datetime  # created_at + TTL
    hit_count: int = 1
    last_accessed_at: datetime | None = None
    owner_user_id: str | None = None
