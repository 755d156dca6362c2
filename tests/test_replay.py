"""Unit tests for the throttled replay engine."""
import threading

import pytest
from kafka.errors import KafkaError, KafkaTimeoutError

from conftest import FakeProducer, b64
from dlq_explorer.core.config import ReplayConfig
from dlq_explorer.core.exceptions import InvalidEncoding, InvalidRequest, ReplayCancelled
from dlq_explorer.models.messages import ReplayItem, ReplayRequest
from dlq_explorer.services.replay import ReplayEngine, delay_ms, effective_rate


def _item(value: bytes | None, offset: int = 0, headers=None) -> ReplayItem:
    return ReplayItem(
        partition=0,
        offset=offset,
        valueEncoded=b64(value) if value is not None else None,
        headers=headers,
    )


def _request(*items, **kw) -> ReplayRequest:
    kw.setdefault("throttlePerSec", 1000)
    return ReplayRequest(targetTopic="orders", items=list(items), **kw)


@pytest.fixture
def producer():
    return FakeProducer()


@pytest.fixture
def engine(replay_cfg, producer):
    return ReplayEngine(replay_cfg, lambda: producer)


@pytest.mark.parametrize(
    "requested,expected",
    [(None, 50), (0, 50), (-3, 50), (1, 1), (200, 200), (50_000, 10_000)],
)
def test_effective_rate(requested, expected):
    assert effective_rate(requested, 50) == expected


def test_effective_rate_clamps_bad_default():
    assert effective_rate(None, 0) == 1


@pytest.mark.parametrize("rate,expected", [(1, 1000), (50, 20), (3, 333), (1000, 1), (10_000, 1)])
def test_delay_ms(rate, expected):
    assert delay_ms(rate) == expected


def test_blank_target_is_rejected_without_session(replay_cfg):
    opened = []
    engine = ReplayEngine(replay_cfg, lambda: opened.append(1))

    with pytest.raises(InvalidRequest):
        engine.replay(ReplayRequest(targetTopic=" ", items=[_item(b"x")]))
    assert opened == []


@pytest.mark.parametrize("items", [None, []])
def test_empty_batch_returns_zero_without_broker(replay_cfg, items):
    opened = []
    engine = ReplayEngine(replay_cfg, lambda: opened.append(1))

    assert engine.replay(ReplayRequest(targetTopic="orders", items=items)) == 0
    assert opened == []


def test_sends_decoded_payload_to_target(engine, producer):
    body = b'{"ok":true}'

    assert engine.replay(_request(_item(body))) == 1

    [msg] = producer.sent
    assert msg.topic == "orders"
    assert msg.value == body
    assert msg.key is None
    assert producer.closed


def test_invalid_payload_is_skipped_not_fatal(engine, producer):
    bad = ReplayItem(partition=0, offset=1, valueEncoded="!!not base64!!")

    outcome = engine.run(_request(bad, _item(b"good", offset=2)))

    assert outcome.published == 1
    assert outcome.skipped == 1
    assert len(producer.sent) == 1
    assert producer.sent[0].value == b"good"


def test_headers_filtered_through_allow_list(engine, producer):
    headers = {
        "content-type": b64(b"application/json"),
        "ignored": b64(b"nope"),
        "correlation-id": b64(b"cid-123"),
    }

    engine.replay(_request(_item(b"x", headers=headers)))

    assert producer.sent[0].headers == {
        "content-type": b"application/json",
        "correlation-id": b"cid-123",
    }


def test_batch_allow_list_overrides_default(engine, producer):
    headers = {"content-type": b64(b"a"), "x-trace": b64(b"t")}

    engine.replay(_request(_item(b"x", headers=headers), headerAllowList={"x-trace"}))

    assert producer.sent[0].headers == {"x-trace": b"t"}


def test_empty_batch_allow_list_strips_everything(engine, producer):
    engine.replay(_request(_item(b"x", headers={"content-type": b64(b"a")}), headerAllowList=set()))

    assert producer.sent[0].headers == {}


def test_bad_allowed_header_aborts_batch(engine, producer):
    items = [_item(b"one"), _item(b"two", headers={"content-type": "%%%"}), _item(b"three")]

    with pytest.raises(InvalidEncoding) as err:
        engine.replay(_request(*items))
    assert err.value.published == 1
    assert [m.value for m in producer.sent] == [b"one"]
    assert producer.closed


def test_send_failure_is_isolated(replay_cfg):
    producer = FakeProducer(failures={0: KafkaError("rejected")})
    engine = ReplayEngine(replay_cfg, lambda: producer)

    outcome = engine.run(_request(_item(b"a"), _item(b"b"), _item(b"c")))

    assert outcome.target_topic == "orders"
    assert outcome.published == 2
    assert outcome.failed == 1
    assert len(producer.sent) == 3


def test_null_payload_counts_as_failed_send(engine, producer):
    outcome = engine.run(_request(_item(None), _item(b"b")))

    assert outcome.published == 1
    assert outcome.failed == 1
    assert outcome.skipped == 0
    assert [m.value for m in producer.sent] == [b"b"]


def test_cancel_after_first_publish_stops_loop(engine, producer):
    cancel = threading.Event()
    producer.on_send = cancel.set

    with pytest.raises(ReplayCancelled) as err:
        engine.replay(_request(_item(b"a"), _item(b"b"), _item(b"c")), cancel=cancel)

    assert err.value.published == 1
    assert len(producer.sent) == 1
    assert producer.closed


def test_cancel_while_awaiting_ack(replay_cfg):
    producer = FakeProducer(done=False)
    engine = ReplayEngine(replay_cfg, lambda: producer)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ReplayCancelled) as err:
        engine.replay(_request(_item(b"a")), cancel=cancel)
    assert err.value.published == 0
    assert producer.closed
    assert producer.close_timeout == 0


def test_ack_never_arrives_counts_as_failure():
    cfg = ReplayConfig(throttle_per_sec=1000, send_timeout_sec=0.05, ack_poll_sec=0.01)
    producer = FakeProducer(done=False)
    engine = ReplayEngine(cfg, lambda: producer)

    outcome = engine.run(_request(_item(b"a")))

    assert outcome.published == 0
    assert outcome.failed == 1


def test_sync_send_timeout_counts_as_failure(engine, producer):
    def boom():
        raise KafkaTimeoutError("metadata not available")

    producer.on_send = boom

    assert engine.replay(_request(_item(b"a"), _item(b"b"))) == 0
    assert producer.closed


def test_batch_is_not_mutated(engine):
    req = _request(_item(b"a", headers={"ignored": b64(b"x")}))
    before = req.model_dump()

    engine.replay(req)

    assert req.model_dump() == before


def test_completed_replay_closes_with_send_timeout(engine, producer, replay_cfg):
    engine.replay(_request(_item(b"a")))

    assert producer.close_timeout == replay_cfg.send_timeout_sec


class _RecordingEvent(threading.Event):
    """Never set; remembers every timeout it was asked to wait."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return False


def test_throttle_waits_after_each_send_but_not_after_skip(engine, producer):
    cancel = _RecordingEvent()
    items = [
        _item(b"a"),
        ReplayItem(valueEncoded="***bad***"),
        _item(None),
        _item(b"d"),
    ]

    outcome = engine.run(_request(*items, throttlePerSec=20), cancel=cancel)

    assert (outcome.published, outcome.failed, outcome.skipped) == (2, 1, 1)
    assert cancel.waits == [0.05, 0.05, 0.05]
