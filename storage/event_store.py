"""Append-only store of consumed domain events."""

from datetime import datetime
from typing import Iterator

from sqlalchemy import func, select

from aggregation.buckets import utc_now
from events.schemas import DomainEvent, entity_id_of
from storage.database import Database
from storage.models import StoredEvent


class EventStore:
    def __init__(self, db: Database):
        self._db = db

    def append(self, event: DomainEvent, received_at: datetime | None = None) -> int:
        """Persist one event and return its row id. Never updates existing rows.

        created_at is the consumption time (now unless given); the event's own
        timestamp is kept as occurred_at.
        """
        payload = event.payload()
        row = StoredEvent(
            event_type=event.event_type,
            entity_type=event.entity_type,
            entity_id=entity_id_of(event.data),
            user_id=payload.user_id,
            user_role=payload.user_role,
            organization_id=payload.organization_id or payload.company_id,
            event_metadata=dict(event.data),
            occurred_at=event.timestamp,
            created_at=received_at or utc_now(),
        )
        with self._db.session() as session:
            session.add(row)
            session.flush()
            return row.id

    def iter_range(self, start: datetime, end: datetime, batch_size: int = 1000) -> Iterator[StoredEvent]:
        """Events with start <= created_at < end, oldest first."""
        stmt = (
            select(StoredEvent)
            .where(StoredEvent.created_at >= start, StoredEvent.created_at < end)
            .order_by(StoredEvent.created_at, StoredEvent.id)
            .execution_options(yield_per=batch_size)
        )
        with self._db.session() as session:
            for row in session.scalars(stmt):
                yield row

    def count(self, event_type: str | None = None) -> int:
        stmt = select(func.count(StoredEvent.id))
        if event_type:
            stmt = stmt.where(StoredEvent.event_type == event_type)
        with self._db.session() as session:
            return session.scalar(stmt) or 0
