"""Use-case coordination for redaction policies."""
from __future__ import annotations

from typing import Iterable, List, Optional

from dlq_explorer.domain.models.redaction import RedactionRule
from dlq_explorer.services.store import PolicyStore


class RedactionPolicyService:
    """Stateless wrapper over the policy store."""

    def __init__(self, store: PolicyStore) -> None:
        self._store = store

    def get_rules(self, scope: Optional[str], key: Optional[str]) -> List[RedactionRule]:
        return self._store.load(scope, key)

    def save_rules(
        self, scope: Optional[str], key: Optional[str], rules: Optional[Iterable[RedactionRule]]
    ) -> None:
        self._store.save(scope, key, rules)
