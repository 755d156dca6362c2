# dlq_explorer/services/store.py
import collections
import threading
import time
from typing import Deque, Dict, Iterable, List, Optional, OrderedDict, Tuple

from dlq_explorer.domain.models.redaction import RedactionRule
from dlq_explorer.models.monitoring import ActivitySnapshot

GLOBAL_SCOPE = "global"
NO_KEY = "_"


class PolicyStore:
    """
    In-memory redaction rules keyed by (scope, key).
    Scope is case-insensitive and defaults to "global"; key defaults to "_".
    Thread-safe for simple get/put operations.
    """

    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], Tuple[RedactionRule, ...]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _idx(scope: Optional[str], key: Optional[str]) -> Tuple[str, str]:
        return ((scope or GLOBAL_SCOPE).lower(), key or NO_KEY)

    def load(self, scope: Optional[str], key: Optional[str]) -> List[RedactionRule]:
        with self._lock:
            return list(self._data.get(self._idx(scope, key), ()))

    def save(self, scope: Optional[str], key: Optional[str], rules: Optional[Iterable[RedactionRule]]) -> None:
        with self._lock:
            self._data[self._idx(scope, key)] = tuple(rules or ())


class ActivityStore:
    """
    In-memory ring buffer of fetch/replay snapshots keyed by (kind, topic).
    At most `max_keys` keys are kept; the least recently written one is evicted.
    Thread-safe for simple get/put operations.
    """

    def __init__(self, capacity_per_key: int = 120, max_keys: int = 256):
        self._cap = int(capacity_per_key)
        self._max_keys = int(max_keys)
        self._data: OrderedDict[Tuple[str, str], Deque[Tuple[float, ActivitySnapshot]]] = (
            collections.OrderedDict()
        )
        self._lock = threading.RLock()

    def put(self, snap: ActivitySnapshot) -> None:
        k = (snap.kind, snap.topic)
        with self._lock:
            dq = self._data.setdefault(k, collections.deque())
            self._data.move_to_end(k)
            dq.append((time.time(), snap))
            while len(dq) > self._cap:
                dq.popleft()
            while len(self._data) > self._max_keys:
                self._data.popitem(last=False)

    def history(self, kind: str, topic: str) -> List[ActivitySnapshot]:
        with self._lock:
            return [s for _, s in self._data.get((kind, topic), ())]

    def iter_latest(self) -> Iterable[Tuple[Tuple[str, str], ActivitySnapshot]]:
        with self._lock:
            latest = [(k, dq[-1][1]) for k, dq in self._data.items() if dq]
        yield from latest
