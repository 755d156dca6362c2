"""Redaction rule models used by the policy store and REST routes."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RedactionAction(str, Enum):
    MASK = "MASK"
    REMOVE = "REMOVE"
    HASH = "HASH"


class MaskOptions(BaseModel):
    keepFirst: Optional[int] = Field(default=None, ge=0)
    keepLast: Optional[int] = Field(default=None, ge=0)
    pad: Optional[str] = None
    fixed: Optional[str] = None


class HashOptions(BaseModel):
    secretRef: Optional[str] = None
    short: Optional[bool] = None


class RedactionRule(BaseModel):
    """Immutable rule: what to do with the field at *path* before display."""
    model_config = ConfigDict(frozen=True)

    id: str
    path: str = Field(..., examples=["$.customer.email"])
    action: RedactionAction
    mask: Optional[MaskOptions] = None
    hash: Optional[HashOptions] = None
    enabled: bool = True
    note: Optional[str] = None


class PolicySaveRequest(BaseModel):
    scope: str = "global"
    key: Optional[str] = None
    rules: Optional[List[RedactionRule]] = None
