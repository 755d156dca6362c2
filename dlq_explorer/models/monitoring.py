from __future__ import annotations
from typing import Literal, Optional
from pydantic import BaseModel


class ActivitySnapshot(BaseModel):
    kind: Literal["fetch", "replay"]
    topic: str
    generatedAt: str
    records: int = 0                 # fetch: returned, replay: published
    failed: int = 0                  # replay only
    skipped: int = 0                 # replay only
    durationMs: Optional[int] = None
    hitDeadline: Optional[bool] = None
    cancelled: bool = False
