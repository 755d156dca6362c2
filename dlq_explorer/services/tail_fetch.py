"""
Bounded "last N per partition" reader.

One call opens one consumer, seeks every partition of the topic to
``max(begin, end - n)`` and drains until either ``n * partitions`` records
arrived or the wall-clock deadline passed, whichever comes first.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from kafka import KafkaConsumer, TopicPartition
from kafka.errors import KafkaError, KafkaTimeoutError
from pydantic import BaseModel, ConfigDict

from dlq_explorer.core.config import FetchConfig
from dlq_explorer.core.exceptions import (
    BrokerTimeout,
    BrokerUnavailable,
    InvalidRequest,
    OperationCancelled,
)
from dlq_explorer.models.messages import MessageRecord
from dlq_explorer.services.codec import to_message

logger = logging.getLogger(__name__)


class FetchWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    partition: int
    begin: int
    end: int
    start: int


class FetchResult(BaseModel):
    """Records plus the bookkeeping the caller may want to log or expose."""

    records: List[MessageRecord]
    windows: List[FetchWindow]
    requested: int
    poll_iterations: int
    hit_deadline: bool
    took_ms: int


def compute_seek_offset(begin: int, end: int, requested: int) -> int:
    """Start of the tail window; always within ``[begin, end]``."""
    return min(end, max(begin, end - requested))


def effective_limit(limit: Optional[int], cfg: FetchConfig) -> int:
    n = limit if limit is not None and limit > 0 else cfg.default_limit
    return min(cfg.max_limit, n)


class TailFetchEngine:
    """Reads the newest records of every partition of a topic."""

    def __init__(
        self,
        cfg: FetchConfig,
        consumer_factory: Callable[[], KafkaConsumer],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._consumer_factory = consumer_factory
        self._clock = clock

    def fetch_last_n(
        self,
        topic: str,
        limit: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[MessageRecord]:
        return self.fetch(topic, limit, cancel).records

    def fetch(
        self,
        topic: str,
        limit: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> FetchResult:
        if not topic or not topic.strip():
            logger.warning("fetch called with empty topic")
            raise InvalidRequest("topic must not be blank")

        n = effective_limit(limit, self._cfg)
        started = self._clock()
        deadline = started + self._cfg.deadline_ms / 1000.0
        logger.info("Fetching last N: topic=%r requested=%s effective=%d", topic, limit, n)

        consumer = self._consumer_factory()
        try:
            # --- Init
            parts = consumer.partitions_for_topic(topic)
            if not parts:
                logger.info("No partitions found for topic=%r (does the topic exist?)", topic)
                return FetchResult(
                    records=[], windows=[], requested=n, poll_iterations=0,
                    hit_deadline=False, took_ms=self._elapsed_ms(started),
                )

            # --- Seek
            tps = [TopicPartition(topic, p) for p in sorted(parts)]
            consumer.assign(tps)
            begin: Dict[TopicPartition, int] = consumer.beginning_offsets(tps)
            end: Dict[TopicPartition, int] = consumer.end_offsets(tps)

            windows: List[FetchWindow] = []
            for tp in tps:
                b, e = begin[tp], end[tp]
                start = compute_seek_offset(b, e, n)
                consumer.seek(tp, start)
                windows.append(FetchWindow(partition=tp.partition, begin=b, end=e, start=start))
                logger.debug("Partition %d: begin=%d end=%d seek=%d", tp.partition, b, e, start)

            # --- Drain
            out: List[MessageRecord] = []
            cap = n * len(tps)
            polls = 0
            while self._clock() < deadline and len(out) < cap:
                batch = consumer.poll(timeout_ms=self._cfg.poll_timeout_ms)
                polls += 1
                for records in batch.values():
                    out.extend(to_message(r) for r in records)
                if cancel is not None and cancel.is_set():
                    raise OperationCancelled(f"Fetch of {topic!r} cancelled")

            # --- Done
            out.sort(key=lambda m: m.offset, reverse=True)
            hit_deadline = self._clock() >= deadline
            took = self._elapsed_ms(started)
            logger.info(
                "Fetched %d messages from topic=%r across %d partitions in %d ms "
                "(polls=%d, hit_deadline=%s)",
                len(out), topic, len(tps), took, polls, hit_deadline,
            )
            return FetchResult(
                records=out, windows=windows, requested=n, poll_iterations=polls,
                hit_deadline=hit_deadline, took_ms=took,
            )
        except KafkaTimeoutError as exc:
            logger.error("Broker timeout fetching topic=%r: %s", topic, exc)
            raise BrokerTimeout(f"Timed out reading {topic!r}: {exc}") from exc
        except KafkaError as exc:
            logger.error("Broker error fetching topic=%r: %s", topic, exc)
            raise BrokerUnavailable(f"Cannot read {topic!r}: {exc}") from exc
        finally:
            consumer.close()

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)
