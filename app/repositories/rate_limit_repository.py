from contextlib import contextmanager
from typing import Iterator, List, Optional
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from app.repositories.base_repository import BaseRepository
from app.repositories.rate_limit_store import CounterFactory
from app.models.rate_limit import RateLimitCounter

class RateLimitRepository(BaseRepository):
    def get(self, resource_id: str, action_type: str) -> Optional[RateLimitCounter]:
        return self.session.get(RateLimitCounter, (resource_id, action_type))

    def list_for_resource(self, resource_id: str) -> List[RateLimitCounter]:
        statement = select(RateLimitCounter).where(RateLimitCounter.resource_id == resource_id)
        return list(self.session.exec(statement).all())

    def _ensure_exists(self, resource_id: str, action_type: str, factory: CounterFactory):
        if self.get(resource_id, action_type) is not None:
            return
        try:
            self.session.add(factory())
            self.session.commit()
        except IntegrityError:
            # created concurrently by someone else, which is just as good
            self.session.rollback()

    def _begin_write(self):
        # SQLite ignores FOR UPDATE and only locks on the first write, so
        # take the database write lock before the read
        if self.session.get_bind().dialect.name == "sqlite":
            self.session.execute(text("BEGIN IMMEDIATE"))

    @contextmanager
    def locked(
        self, resource_id: str, action_type: str, factory: CounterFactory
    ) -> Iterator[RateLimitCounter]:
        self._ensure_exists(resource_id, action_type, factory)

        # Row lock for the whole read-reset-increment
        statement = (
            select(RateLimitCounter)
            .where(
                RateLimitCounter.resource_id == resource_id,
                RateLimitCounter.action_type == action_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            self._begin_write()
            counter = self.session.exec(statement).one()
            yield counter
            self.session.add(counter)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
