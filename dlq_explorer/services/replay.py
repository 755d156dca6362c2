"""
Throttled re-publication of a client-supplied batch.

Items are sent one at a time and each send is awaited before the next one.
A bad payload or a rejected send costs only that item; cancellation aborts
the whole loop and is reported with the number already published.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import AbstractSet, Callable, Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError, KafkaTimeoutError
from pydantic import BaseModel

from dlq_explorer.core.config import ReplayConfig
from dlq_explorer.core.exceptions import InvalidEncoding, InvalidRequest, ReplayCancelled
from dlq_explorer.models.messages import ReplayItem, ReplayRequest
from dlq_explorer.services.codec import decode_value, filter_and_decode

logger = logging.getLogger(__name__)

MIN_RATE = 1
MAX_RATE = 10_000


class ReplayOutcome(BaseModel):
    target_topic: str
    published: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    took_ms: int = 0


def effective_rate(requested: Optional[int], default: int) -> int:
    rate = requested if requested is not None and requested > 0 else default
    return max(MIN_RATE, min(MAX_RATE, rate))


def delay_ms(rate: int) -> int:
    return max(1, 1000 // rate)


class ReplayEngine:
    """Publishes replay items to a target topic at a bounded rate."""

    def __init__(
        self,
        cfg: ReplayConfig,
        producer_factory: Callable[[], KafkaProducer],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._producer_factory = producer_factory
        self._clock = clock

    def replay(self, req: ReplayRequest, cancel: Optional[threading.Event] = None) -> int:
        """Return the number of items the broker acknowledged."""
        return self.run(req, cancel).published

    def run(self, req: ReplayRequest, cancel: Optional[threading.Event] = None) -> ReplayOutcome:
        """Replay *req* and report per-outcome counts.

        Raises
        ------
        InvalidRequest
            If ``targetTopic`` is blank (nothing is sent).
        InvalidEncoding
            If an allowed header of some item is not valid base64; its
            ``published`` holds the items already sent.
        ReplayCancelled
            If *cancel* is set while waiting on an ack or the throttle delay.
        """
        topic = (req.targetTopic or "").strip()
        if not topic:
            raise InvalidRequest("targetTopic required")

        items = list(req.items or ())
        outcome = ReplayOutcome(target_topic=topic, total=len(items))
        if not items:
            logger.info("Replay requested with empty items for target=%r (nothing to send)", topic)
            return outcome

        cancel = cancel or threading.Event()
        rate = effective_rate(req.throttlePerSec, self._cfg.throttle_per_sec)
        pause = delay_ms(rate) / 1000.0
        allow: AbstractSet[str] = (
            req.headerAllowList if req.headerAllowList is not None else self._cfg.header_allow_list
        )
        logger.info(
            "Starting replay: target=%r source=%r items=%d requested_tps=%s effective_tps=%d interval_ms=%d",
            topic, req.sourceTopic, len(items), req.throttlePerSec, rate, delay_ms(rate),
        )

        started = self._clock()
        close_timeout = self._cfg.send_timeout_sec
        producer = self._producer_factory()
        try:
            for item in items:
                try:
                    value = decode_value(item.valueEncoded)
                except InvalidEncoding as exc:
                    outcome.skipped += 1
                    logger.warning(
                        "Skipping item with invalid payload (partition=%d offset=%d): %s",
                        item.partition, item.offset, exc,
                    )
                    continue

                try:
                    headers = filter_and_decode(item.headers, allow)
                except InvalidEncoding as exc:
                    exc.published = outcome.published
                    raise
                if self._publish(producer, topic, item, value, headers, cancel, outcome.published):
                    outcome.published += 1
                else:
                    outcome.failed += 1

                if cancel.wait(pause):
                    logger.warning(
                        "Replay cancelled while throttling; sent so far=%d", outcome.published
                    )
                    raise ReplayCancelled(outcome.published)
            return outcome
        except ReplayCancelled:
            # drop unacknowledged records instead of flushing them
            close_timeout = 0
            raise
        finally:
            outcome.took_ms = int((self._clock() - started) * 1000)
            logger.info(
                "Replay finished: target=%r sent=%d failed=%d skipped=%d total=%d took_ms=%d",
                topic, outcome.published, outcome.failed, outcome.skipped,
                outcome.total, outcome.took_ms,
            )
            producer.close(timeout=close_timeout)

    def _publish(
        self,
        producer: KafkaProducer,
        topic: str,
        item: ReplayItem,
        value: Optional[bytes],
        headers: dict,
        cancel: threading.Event,
        sent: int,
    ) -> bool:
        if value is None:
            # kafka-python refuses records with neither key nor value
            logger.error(
                "Cannot send null payload without key to %r (partition=%d offset=%d)",
                topic, item.partition, item.offset,
            )
            return False

        logger.debug(
            "Sending to %r (partition=%d offset=%d headers=%s bytes=%d)",
            topic, item.partition, item.offset, list(headers), len(value),
        )
        try:
            future = producer.send(topic, value=value, headers=list(headers.items()))
            self._await_ack(future, cancel, sent)
            return True
        except KafkaError:
            logger.exception(
                "Failed to send item to %r (partition=%d offset=%d)",
                topic, item.partition, item.offset,
            )
            return False

    def _await_ack(self, future, cancel: threading.Event, sent: int):
        """Block until *future* resolves, waking up to observe *cancel*."""
        give_up = self._clock() + self._cfg.send_timeout_sec
        while not future.is_done:
            if cancel.wait(self._cfg.ack_poll_sec):
                logger.warning("Replay cancelled while awaiting ack; sent so far=%d", sent)
                raise ReplayCancelled(sent)
            if self._clock() >= give_up:
                raise KafkaTimeoutError(f"No ack within {self._cfg.send_timeout_sec:.1f}s")
        return future.get()
