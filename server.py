# server.py
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dlq_explorer.api import dlq as dlq_router
from dlq_explorer.api import redaction as redaction_router
from dlq_explorer.core.config import settings
from dlq_explorer.core.errors import install_exception_handlers
from dlq_explorer.core.logging_setup import setup_logging
from dlq_explorer.services.store import ActivityStore, PolicyStore


# Lifespan handler replaces @app.on_event("startup"/"shutdown")
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)

    # Set on shutdown so in-flight fetches/replays unwind and close their sessions
    app.state.shutdown_event = threading.Event()
    app.state.policy_store = PolicyStore()
    app.state.activity_store = ActivityStore(capacity_per_key=120)

    try:
        yield
    finally:
        app.state.shutdown_event.set()


app = FastAPI(
    title="DLQ Explorer API",
    version="1.0.0",
    lifespan=lifespan,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# --- CORS: allow web-ui during development (configurable via settings.cors_allow_origins) ---
allow_origins = settings.cors_allow_origins or [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
)

install_exception_handlers(app)

app.include_router(dlq_router.router,       prefix="/api/v1")
app.include_router(redaction_router.router, prefix="/api/v1")

if settings.metrics_enabled:
    from dlq_explorer.api import metrics as metrics_router
    # metrics lives at /metrics (Prometheus convention)
    app.include_router(metrics_router.router, prefix="")


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=True)
