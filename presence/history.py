"""Periodic persistence of presence snapshots for trend reporting."""

from sqlalchemy import select

from presence.schemas import PresenceSnapshot
from storage.database import Database
from storage.models import PresenceSnapshotRecord


class PresenceHistory:
    def __init__(self, db: Database):
        self._db = db

    def record(self, snapshot: PresenceSnapshot) -> int:
        row = PresenceSnapshotRecord(
            captured_at=snapshot.generated_at,
            total_online=snapshot.total_online,
            authenticated=snapshot.authenticated,
            anonymous=snapshot.anonymous,
            by_app=snapshot.by_app,
            by_role=snapshot.by_role,
        )
        with self._db.session() as session:
            session.add(row)
            session.flush()
            return row.id

    def recent(self, limit: int = 288) -> list[PresenceSnapshotRecord]:
        """Newest first; the default covers one day at the 5-minute cadence."""
        stmt = (
            select(PresenceSnapshotRecord)
            .order_by(PresenceSnapshotRecord.captured_at.desc())
            .limit(limit)
        )
        with self._db.session() as session:
            return list(session.scalars(stmt))
