# dlq_explorer/api/dlq.py
from __future__ import annotations

import datetime as dt
import threading
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dlq_explorer.api.dependencies import (
    REPLAY_ROLES,
    VIEW_ROLES,
    get_activity_store,
    get_fetch_engine,
    get_replay_engine,
    get_shutdown_event,
    get_topic_service,
    require_roles,
)
from dlq_explorer.core.exceptions import ReplayCancelled
from dlq_explorer.domain.services.topic_service import DlqTopicService
from dlq_explorer.models.messages import MessageRecord, ReplayRequest
from dlq_explorer.models.monitoring import ActivitySnapshot
from dlq_explorer.services.replay import ReplayEngine
from dlq_explorer.services.store import ActivityStore
from dlq_explorer.services.tail_fetch import TailFetchEngine

router = APIRouter(prefix="/dlq", tags=["dlq"])


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


@router.get("/topics", response_model=list[str])
def list_topics(
    svc: DlqTopicService = Depends(get_topic_service),
    _claims: dict = Depends(require_roles(VIEW_ROLES)),
):
    """Dead-letter topic names, sorted."""
    return svc.list_dead_letter_topics()


@router.get("/messages", response_model=list[MessageRecord])
def read_messages(
    topic: str = Query(..., description="Topic to tail"),
    limit: Optional[int] = Query(None, description="Records per partition; default/ceiling from settings"),
    engine: TailFetchEngine = Depends(get_fetch_engine),
    shutdown: threading.Event = Depends(get_shutdown_event),
    store: Optional[ActivityStore] = Depends(get_activity_store),
    _claims: dict = Depends(require_roles(VIEW_ROLES)),
):
    """Newest records of every partition, offset-descending."""
    result = engine.fetch(topic, limit, cancel=shutdown)
    # record only topics that exist
    if store is not None and result.windows:
        store.put(ActivitySnapshot(
            kind="fetch", topic=topic, generatedAt=_now_iso(), records=len(result.records),
            durationMs=result.took_ms, hitDeadline=result.hit_deadline,
        ))
    return result.records


@router.post("/replay", response_model=int)
def replay(
    req: ReplayRequest,
    engine: ReplayEngine = Depends(get_replay_engine),
    shutdown: threading.Event = Depends(get_shutdown_event),
    store: Optional[ActivityStore] = Depends(get_activity_store),
    _claims: dict = Depends(require_roles(REPLAY_ROLES)),
):
    """Re-publish *req.items* to *req.targetTopic*; returns the acknowledged count."""
    try:
        outcome = engine.run(req, cancel=shutdown)
    except ReplayCancelled as exc:
        if store is not None and req.targetTopic:
            store.put(ActivitySnapshot(
                kind="replay", topic=req.targetTopic, generatedAt=_now_iso(),
                records=exc.published, cancelled=True,
            ))
        raise
    if store is not None and outcome.total:
        store.put(ActivitySnapshot(
            kind="replay", topic=outcome.target_topic, generatedAt=_now_iso(),
            records=outcome.published, failed=outcome.failed, skipped=outcome.skipped,
            durationMs=outcome.took_ms,
        ))
    return outcome.published
