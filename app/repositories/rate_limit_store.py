from typing import Callable, ContextManager, List, Optional, Protocol
from app.models.rate_limit import RateLimitCounter

CounterFactory = Callable[[], RateLimitCounter]


class RateLimitStore(Protocol):
    def get(self, resource_id: str, action_type: str) -> Optional[RateLimitCounter]:
        ...

    def list_for_resource(self, resource_id: str) -> List[RateLimitCounter]:
        ...

    def locked(
        self, resource_id: str, action_type: str, factory: CounterFactory
    ) -> ContextManager[RateLimitCounter]:
        """Exclusive read-modify-write of one counter.

        Yields the stored counter (or `factory()` when there is none yet).
        Changes made inside the block are persisted when it exits cleanly and
        discarded when it raises.
        """
        ...
