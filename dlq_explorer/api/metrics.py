from fastapi import APIRouter, Request, Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest, CONTENT_TYPE_LATEST
from dlq_explorer.services.store import ActivityStore

router = APIRouter()

@router.get("/metrics")
def metrics(request: Request):
    store: ActivityStore = getattr(request.app.state, "activity_store", None)
    if not store:
        return Response(content=b"", media_type=CONTENT_TYPE_LATEST)

    reg = CollectorRegistry()
    g_fetched  = Gauge("dlq_fetch_records", "Records returned by the last fetch", ["topic"], registry=reg)
    g_took     = Gauge("dlq_fetch_duration_ms", "Duration of the last fetch", ["topic"], registry=reg)
    g_sent     = Gauge("dlq_replay_published", "Items published by the last replay", ["topic"], registry=reg)
    g_failed   = Gauge("dlq_replay_failed", "Sends rejected in the last replay", ["topic"], registry=reg)
    g_skipped  = Gauge("dlq_replay_skipped", "Items skipped for bad payloads in the last replay", ["topic"], registry=reg)

    for (kind, topic), snap in store.iter_latest():
        if kind == "fetch":
            g_fetched.labels(topic=topic).set(snap.records)
            if snap.durationMs is not None:
                g_took.labels(topic=topic).set(snap.durationMs)
        else:
            g_sent.labels(topic=topic).set(snap.records)
            g_failed.labels(topic=topic).set(snap.failed)
            g_skipped.labels(topic=topic).set(snap.skipped)

    return Response(generate_latest(reg), media_type=CONTENT_TYPE_LATEST)
