"""Global reusable FastAPI dependencies (JWT, role checks, engine providers)."""
import threading
from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status

from dlq_explorer.core.config import Settings, get_settings
from dlq_explorer.core.security import TokenValidationError, decode_jwt, extract_roles
from dlq_explorer.domain.services.redaction_service import RedactionPolicyService
from dlq_explorer.domain.services.topic_service import DlqTopicService
from dlq_explorer.infra.kafka.admin import KafkaAdminFacade
from dlq_explorer.infra.kafka.clients import KafkaClients
from dlq_explorer.services.replay import ReplayEngine
from dlq_explorer.services.store import ActivityStore, PolicyStore
from dlq_explorer.services.tail_fetch import TailFetchEngine

VIEW_ROLES = frozenset({"viewer", "triager", "replayer"})
REPLAY_ROLES = frozenset({"triager", "replayer"})


async def require_jwt(
    authorization: str | None = Header(default=None, alias="Authorization"),
    cfg: Settings = Depends(get_settings),
) -> dict:
    """Validate a Bearer JWT and return the decoded claims (no-op when auth is off)."""
    if not cfg.auth_enabled:
        return {}
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.removeprefix("Bearer ").strip()
    try:
        return decode_jwt(token)
    except TokenValidationError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def require_roles(allowed: frozenset[str]) -> Callable[..., dict]:
    """Build a dependency that admits only callers holding one of *allowed*."""

    async def _check(
        claims: dict = Depends(require_jwt),
        cfg: Settings = Depends(get_settings),
    ) -> dict:
        if not cfg.auth_enabled:
            return claims
        if not extract_roles(claims, cfg.jwt_audience_client) & allowed:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return claims

    return _check


# ---------- engine providers ---------------------------------------------------
def get_clients(cfg: Settings = Depends(get_settings)) -> KafkaClients:
    return KafkaClients(cfg)


def get_topic_service(cfg: Settings = Depends(get_settings)) -> DlqTopicService:
    return DlqTopicService(lambda: KafkaAdminFacade(cfg), pattern=cfg.dlq_pattern)


def get_fetch_engine(
    cfg: Settings = Depends(get_settings),
    clients: KafkaClients = Depends(get_clients),
) -> TailFetchEngine:
    return TailFetchEngine(cfg.fetch_config(), clients.consumer)


def get_replay_engine(
    cfg: Settings = Depends(get_settings),
    clients: KafkaClients = Depends(get_clients),
) -> ReplayEngine:
    return ReplayEngine(cfg.replay_config(), clients.producer)


def get_shutdown_event(request: Request) -> threading.Event:
    """Process-wide event set on application shutdown; never set outside lifespan."""
    event = getattr(request.app.state, "shutdown_event", None)
    return event if event is not None else threading.Event()


def get_activity_store(request: Request) -> ActivityStore | None:
    return getattr(request.app.state, "activity_store", None)


def get_policy_service(request: Request) -> RedactionPolicyService:
    store: PolicyStore | None = getattr(request.app.state, "policy_store", None)
    if store is None:
        store = request.app.state.policy_store = PolicyStore()
    return RedactionPolicyService(store)
