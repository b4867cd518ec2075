"""Fake processed event repository for testing."""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession


class FakeProcessedEventRepository:
    """In-memory fake for ProcessedEventRepositoryProtocol."""

    def __init__(self) -> None:
        self._events: dict[str, tuple[str, datetime]] = {}
        self._calls: list[tuple] = []

    def seed(self, event_id: str, event_type: str, processed_at: datetime) -> None:
        self._events[event_id] = (event_type, processed_at)

    def call_count(self, method: str) -> int:
        return sum(1 for name, *_ in self._calls if name == method)

    @property
    def event_ids(self) -> set[str]:
        return set(self._events)

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, processed_at: datetime
    ) -> bool:
        self._calls.append(("insert_if_absent", event_id, event_type))
        if event_id in self._events:
            return False
        self._events[event_id] = (event_type, processed_at)
        return True

    async def exists(self, db: AsyncSession, *, event_id: str) -> bool:
        self._calls.append(("exists", event_id))
        return event_id in self._events

    async def delete_older_than(self, db: AsyncSession, *, cutoff: datetime) -> int:
        self._calls.append(("delete_older_than", cutoff))
        expired = [eid for eid, (_, at) in self._events.items() if at < cutoff]
        for event_id in expired:
            del self._events[event_id]
        return len(expired)
