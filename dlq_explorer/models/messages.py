from __future__ import annotations

from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class MessageRecord(BaseModel):
    """One fetched record plus its text/base64 views."""
    model_config = ConfigDict(frozen=True)

    topic: str
    partition: int = Field(..., ge=0)
    offset: int = Field(..., ge=0)
    timestamp: int
    # raw bytes stay server-side; clients get the projections below
    key: Optional[bytes] = Field(default=None, exclude=True)
    value: Optional[bytes] = Field(default=None, exclude=True)
    keyText: Optional[str] = None
    valueText: Optional[str] = None
    valueEncoded: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class ReplayItem(BaseModel):
    partition: int = 0          # informational, not the publish partition
    offset: int = 0             # informational
    valueEncoded: Optional[str] = None
    headers: Optional[Dict[str, str]] = None


class ReplayRequest(BaseModel):
    targetTopic: Optional[str] = None
    sourceTopic: Optional[str] = None
    throttlePerSec: Optional[int] = None
    headerAllowList: Optional[Set[str]] = None
    items: Optional[List[ReplayItem]] = None
