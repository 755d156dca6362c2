"""Per-call kafka-python session factories."""
from __future__ import annotations

import uuid

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import KafkaError

from dlq_explorer.core.config import Settings, settings as default_settings
from dlq_explorer.core.exceptions import BrokerUnavailable


class KafkaClients:
    """
    Builds fresh read/write sessions for a single engine call.
    Nothing is cached: every call pays its own setup and owns its own close().
    """

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or default_settings

    # ---------- bootstrap common kwargs ----------
    def common_kwargs(self) -> dict:
        cfg = self._cfg
        kw = dict(
            bootstrap_servers=cfg.kafka_bootstrap,
            request_timeout_ms=cfg.request_timeout_ms,
            metadata_max_age_ms=cfg.metadata_max_age_ms,
            api_version_auto_timeout_ms=cfg.api_version_auto_timeout_ms,
            security_protocol=cfg.security_protocol,
        )
        if cfg.kafka_api_version:
            kw["api_version"] = tuple(int(p) for p in cfg.kafka_api_version.split("."))
        if cfg.security_protocol.startswith("SASL"):
            kw.update(
                sasl_mechanism=cfg.sasl_mechanism,
                sasl_plain_username=cfg.sasl_plain_username,
                sasl_plain_password=cfg.sasl_plain_password,
            )
        if cfg.security_protocol.endswith("SSL"):
            kw.update(ssl_cafile=cfg.ssl_cafile)
        return kw

    def consumer(self) -> KafkaConsumer:
        """Unsubscribed, group-less reader; offsets are never committed."""
        try:
            return KafkaConsumer(
                **self.common_kwargs(),
                client_id=f"{self._cfg.client_id}-reader-{uuid.uuid4()}",
                group_id=None,
                enable_auto_commit=False,
            )
        except KafkaError as exc:
            raise BrokerUnavailable(f"Cannot open read session: {exc}") from exc

    def producer(self) -> KafkaProducer:
        try:
            return KafkaProducer(
                **self.common_kwargs(),
                client_id=f"{self._cfg.client_id}-replayer",
                acks="all",
                retries=0,
                # send() may block on metadata for an unknown topic
                max_block_ms=int(self._cfg.replay_send_timeout_sec * 1000),
            )
        except KafkaError as exc:
            raise BrokerUnavailable(f"Cannot open write session: {exc}") from exc
