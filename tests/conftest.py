"""
Pytest configuration and shared fakes for the DLQ explorer tests.

The fakes mimic the slice of kafka-python's KafkaConsumer/KafkaProducer the
engines touch, so no broker is needed.
"""
import base64
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest
from kafka import TopicPartition

from dlq_explorer.core.config import FetchConfig, ReplayConfig


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_record(topic: str, partition: int, offset: int, value: Optional[bytes] = None,
                key: Optional[bytes] = None, headers: Optional[list] = None):
    return SimpleNamespace(
        topic=topic,
        partition=partition,
        offset=offset,
        timestamp=1_700_000_000_000 + offset,
        key=key,
        value=value if value is not None else f"v-{partition}-{offset}".encode(),
        headers=headers or [],
    )


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float) -> None:
        self.now += sec


class FakeConsumer:
    """In-memory stand-in for an unsubscribed KafkaConsumer."""

    def __init__(
        self,
        topic: str,
        offsets: Dict[int, tuple],
        per_poll: int = 1000,
        clock: Optional[FakeClock] = None,
        poll_cost: float = 0.0,
        poll_error: Optional[Exception] = None,
    ) -> None:
        self.topic = topic
        self.offsets = offsets          # partition -> (begin, end)
        self.per_poll = per_poll
        self.clock = clock
        self.poll_cost = poll_cost
        self.poll_error = poll_error
        self.calls: List[str] = []
        self.assigned: List[TopicPartition] = []
        self.positions: Dict[TopicPartition, int] = {}
        self.closed = False
        self.on_poll = None

    def partitions_for_topic(self, topic: str):
        self.calls.append("partitions_for_topic")
        if topic != self.topic or not self.offsets:
            return None
        return set(self.offsets)

    def assign(self, tps: Iterable[TopicPartition]) -> None:
        self.calls.append("assign")
        self.assigned = list(tps)

    def beginning_offsets(self, tps):
        self.calls.append("beginning_offsets")
        return {tp: self.offsets[tp.partition][0] for tp in tps}

    def end_offsets(self, tps):
        self.calls.append("end_offsets")
        return {tp: self.offsets[tp.partition][1] for tp in tps}

    def seek(self, tp: TopicPartition, offset: int) -> None:
        self.calls.append("seek")
        self.positions[tp] = offset

    def poll(self, timeout_ms: int = 0):
        self.calls.append("poll")
        if self.clock is not None:
            self.clock.advance(self.poll_cost or timeout_ms / 1000.0)
        if self.poll_error is not None:
            raise self.poll_error
        out = {}
        for tp in self.assigned:
            pos = self.positions[tp]
            end = self.offsets[tp.partition][1]
            upto = min(end, pos + self.per_poll)
            if upto > pos:
                out[tp] = [make_record(tp.topic, tp.partition, o) for o in range(pos, upto)]
                self.positions[tp] = upto
        if self.on_poll is not None:
            self.on_poll()
        return out

    def close(self) -> None:
        self.closed = True


class FakeFuture:
    def __init__(self, exc: Optional[Exception] = None, done: bool = True) -> None:
        self.is_done = done
        self._exc = exc

    def get(self, timeout=None):
        if self._exc is not None:
            raise self._exc
        return SimpleNamespace(topic="t", partition=0, offset=0)


class FakeProducer:
    """Records every send; *failures* maps a send index to the exception its future raises."""

    def __init__(self, failures: Optional[Dict[int, Exception]] = None, done: bool = True) -> None:
        self.failures = failures or {}
        self.done = done
        self.sent: List[SimpleNamespace] = []
        self.closed = False
        self.close_timeout = None
        self.on_send = None

    def send(self, topic, value=None, key=None, headers=None):
        idx = len(self.sent)
        self.sent.append(SimpleNamespace(topic=topic, value=value, key=key, headers=dict(headers or [])))
        if self.on_send is not None:
            self.on_send()
        return FakeFuture(self.failures.get(idx), done=self.done)

    def close(self, timeout=None) -> None:
        self.closed = True
        self.close_timeout = timeout


@pytest.fixture
def fetch_cfg() -> FetchConfig:
    return FetchConfig(default_limit=200, max_limit=5000, deadline_ms=1500, poll_timeout_ms=100)


@pytest.fixture
def replay_cfg() -> ReplayConfig:
    return ReplayConfig(
        throttle_per_sec=1000,
        header_allow_list={"content-type", "correlation-id"},
        send_timeout_sec=1.0,
        ack_poll_sec=0.01,
    )
