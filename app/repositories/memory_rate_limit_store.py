import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple
from app.models.rate_limit import RateLimitCounter
from app.repositories.rate_limit_store import CounterFactory


def _copy(counter: RateLimitCounter) -> RateLimitCounter:
    return RateLimitCounter(**counter.model_dump())


class InMemoryRateLimitStore:
    def __init__(self) -> None:
        self._counters: Dict[Tuple[str, str], RateLimitCounter] = {}
        self._lock = threading.Lock()

    def get(self, resource_id: str, action_type: str) -> Optional[RateLimitCounter]:
        with self._lock:
            counter = self._counters.get((resource_id, action_type))
            return _copy(counter) if counter else None

    def list_for_resource(self, resource_id: str) -> List[RateLimitCounter]:
        with self._lock:
            return [_copy(c) for (rid, _), c in self._counters.items() if rid == resource_id]

    @contextmanager
    def locked(
        self, resource_id: str, action_type: str, factory: CounterFactory
    ) -> Iterator[RateLimitCounter]:
        key = (resource_id, action_type)
        with self._lock:
            stored = self._counters.get(key)
            working = _copy(stored) if stored else factory()
            yield working
            self._counters[key] = _copy(working)
