"""Redaction policy endpoints (scoped rule lists)."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from dlq_explorer.api.dependencies import REPLAY_ROLES, VIEW_ROLES, get_policy_service, require_roles
from dlq_explorer.domain.models.redaction import PolicySaveRequest, RedactionRule
from dlq_explorer.domain.services.redaction_service import RedactionPolicyService

router = APIRouter(prefix="/redaction", tags=["redaction"])


@router.get("/rules", response_model=List[RedactionRule])
def get_rules(
    scope: str = Query("global"),
    key: Optional[str] = Query(None),
    svc: RedactionPolicyService = Depends(get_policy_service),
    _claims: dict = Depends(require_roles(VIEW_ROLES)),
):
    return svc.get_rules(scope, key)


@router.put("/rules", status_code=status.HTTP_204_NO_CONTENT)
def save_rules(
    req: PolicySaveRequest,
    svc: RedactionPolicyService = Depends(get_policy_service),
    _claims: dict = Depends(require_roles(REPLAY_ROLES)),
) -> Response:
    svc.save_rules(req.scope, req.key, req.rules)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
