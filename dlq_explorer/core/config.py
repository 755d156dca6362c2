# dlq_explorer/core/config.py
import json
from functools import lru_cache
from typing import Annotated, List, Set

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_names(v) -> List[str]:
    """Accept JSON array or comma-separated string."""
    if v is None:
        return []
    if isinstance(v, str):
        try:
            parsed = json.loads(v)
            if isinstance(parsed, list):
                return [str(s).strip() for s in parsed if str(s).strip()]
        except ValueError:
            pass
        return [s.strip() for s in v.split(",") if s.strip()]
    return [str(s).strip() for s in v if str(s).strip()]


class FetchConfig(BaseModel):
    """Knobs consumed by the tail fetch engine."""

    default_limit: int = Field(200, ge=1)
    max_limit: int = Field(5000, ge=1)
    deadline_ms: int = Field(1500, ge=1)
    poll_timeout_ms: int = Field(100, ge=1)


class ReplayConfig(BaseModel):
    """Knobs consumed by the replay engine."""

    throttle_per_sec: int = 50
    header_allow_list: Set[str] = Field(default_factory=lambda: {"content-type", "correlation-id"})
    send_timeout_sec: float = Field(30.0, gt=0)
    ack_poll_sec: float = Field(0.05, gt=0)


class Settings(BaseSettings):
    """
    Central application settings loaded from environment variables (and .env).

    Notes
    -----
    - List-valued fields (`replay_header_allow_list`, `cors_allow_origins`)
      accept either a JSON array or a comma-separated string.
    - Auth and metrics are feature-flagged and default OFF.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- Kafka client/admin ----------
    kafka_bootstrap: str = Field("localhost:9092")
    kafka_api_version: str | None = None
    client_id: str = "dlq-explorer"

    # Client timeouts (ms)
    request_timeout_ms: int = 20_000
    metadata_max_age_ms: int = 30_000
    api_version_auto_timeout_ms: int = 10_000

    # ---------- Security (set when using SASL/SSL) ----------
    security_protocol: str = "PLAINTEXT"   # e.g. "SASL_SSL", "SSL"
    sasl_mechanism: str | None = None
    sasl_plain_username: str | None = None
    sasl_plain_password: str | None = None
    ssl_cafile: str | None = None

    # ---------- Dead-letter discovery ----------
    dlq_pattern: str = r".*-DLQ$"

    # ---------- Tail fetch ----------
    fetch_default: int = Field(default=200, ge=1)
    fetch_max: int = Field(default=5000, ge=1)
    fetch_deadline_ms: int = Field(default=1500, ge=1)
    fetch_poll_timeout_ms: int = Field(default=100, ge=1)

    # ---------- Replay ----------
    replay_throttle_per_sec: int = 50
    replay_header_allow_list: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["content-type", "correlation-id"]
    )
    replay_send_timeout_sec: float = Field(default=30.0, gt=0)

    # ---------- Auth (feature-flagged; default OFF) ----------
    auth_enabled: bool = False
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience_client: str = Field(
        default="dle-api",
        description="Client id whose resource_access roles are honoured.",
    )

    # ---------- CORS ----------
    cors_allow_origins: Annotated[list[str] | None, NoDecode] = None

    # ---------- Observability ----------
    metrics_enabled: bool = False
    log_level: str = "INFO"

    @field_validator("replay_header_allow_list", mode="before")
    def _parse_allow_list(cls, v):
        return _split_names(v)

    @field_validator("cors_allow_origins", mode="before")
    def _parse_cors_origins(cls, v):
        if v is None:
            return None
        return _split_names(v)

    def fetch_config(self) -> FetchConfig:
        return FetchConfig(
            default_limit=self.fetch_default,
            max_limit=self.fetch_max,
            deadline_ms=self.fetch_deadline_ms,
            poll_timeout_ms=self.fetch_poll_timeout_ms,
        )

    def replay_config(self) -> ReplayConfig:
        return ReplayConfig(
            throttle_per_sec=self.replay_throttle_per_sec,
            header_allow_list=set(self.replay_header_allow_list),
            send_timeout_sec=self.replay_send_timeout_sec,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
