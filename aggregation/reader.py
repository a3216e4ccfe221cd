"""Read side of the persisted metric tables."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select

from storage.database import Database
from storage.models import DailyMetric, HourlyMetric, MonthlyMetric

METRIC_TABLES = {
    "hour": HourlyMetric,
    "day": DailyMetric,
    "month": MonthlyMetric,
}

# Which daily dimension a stats scope filters on. Platform rows have every dimension null.
SCOPE_DIMENSIONS = {
    "user": "dimension_user_id",
    "candidate": "dimension_user_id",
    "recruiter": "dimension_recruiter_id",
    "company": "dimension_company_id",
}


class MetricReader:
    def __init__(self, db: Database):
        self._db = db

    def series(
        self,
        time_bucket: str,
        metric_type: str,
        start: datetime | date | None = None,
        end: datetime | date | None = None,
        user_id: str | None = None,
        company_id: str | None = None,
        recruiter_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Rows for one exact dimension tuple; omitted dimensions select the platform row."""
        model = METRIC_TABLES[time_bucket]
        stmt = select(model).where(model.metric_type == metric_type)
        for column, value in (
            (model.dimension_user_id, user_id),
            (model.dimension_company_id, company_id),
            (model.dimension_recruiter_id, recruiter_id),
        ):
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        if start is not None:
            stmt = stmt.where(model.time_value >= start)
        if end is not None:
            stmt = stmt.where(model.time_value < end)
        stmt = stmt.order_by(model.time_value)

        with self._db.session() as session:
            rows = session.scalars(stmt).all()
        return [
            {
                "metric_type": row.metric_type,
                "time_bucket": row.time_bucket,
                "time_value": row.time_value.isoformat(),
                "value": row.value,
                "metadata": row.metric_metadata or {},
            }
            for row in rows
        ]


class ScopedStats:
    """Per-scope totals over the daily table, keyed by metric type."""

    def __init__(self, db: Database):
        self._db = db

    def summary(self, scope: str, scope_id: str | None, start: date, end: date) -> dict[str, float]:
        """Sum of daily values in [start, end], both ends inclusive."""
        stmt = (
            select(DailyMetric.metric_type, func.sum(DailyMetric.value))
            .where(DailyMetric.time_value >= start)
            .where(DailyMetric.time_value <= end)
            .group_by(DailyMetric.metric_type)
            .order_by(DailyMetric.metric_type)
        )
        if scope == "platform":
            stmt = (
                stmt.where(DailyMetric.dimension_user_id.is_(None))
                .where(DailyMetric.dimension_company_id.is_(None))
                .where(DailyMetric.dimension_recruiter_id.is_(None))
            )
        else:
            column = getattr(DailyMetric, SCOPE_DIMENSIONS[scope])
            stmt = stmt.where(column == scope_id)

        with self._db.session() as session:
            rows = session.execute(stmt).all()
        return {metric_type: float(total or 0) for metric_type, total in rows}
