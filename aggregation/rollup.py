"""Incremental metric rollups: stored events → hourly → daily → monthly.

Each stage is an idempotent batch job. It resumes from its watermark (the
latest bucket already written), recomputes every closed bucket from that
point up to, but excluding, the bucket that is still open, and overwrites
the stored value for each (metric_type, time_value, dimensions) key.
Re-running a stage over unchanged input rewrites identical rows.

The hourly stage buckets events by the time they were consumed, not the
producer timestamp, so an event that arrives late still lands in an hour
at or after the watermark and is counted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import func, select

from aggregation.buckets import add_months, day_of, floor_hour, month_start, utc_now
from aggregation.metric_types import metric_type_for
from config import Settings, configure_logging
from storage.database import Database, upsert
from storage.event_store import EventStore
from storage.models import DailyMetric, HourlyMetric, MonthlyMetric, StoredEvent

Dimensions = tuple[str | None, str | None, str | None]
GroupKey = tuple[str, Any, Dimensions]

PLATFORM: Dimensions = (None, None, None)


@dataclass
class MetricAggregate:
    metric_type: str
    time_value: Any
    dimensions: Dimensions
    value: float = 0.0
    metadata: dict[str, float] = field(default_factory=dict)

    def add(self, value: float, numbers: dict[str, float]):
        self.value += value
        for name, number in numbers.items():
            self.metadata[name] = self.metadata.get(name, 0) + number

    def key_columns(self) -> dict[str, Any]:
        user_id, company_id, recruiter_id = self.dimensions
        return {
            "metric_type": self.metric_type,
            "time_value": self.time_value,
            "dimension_user_id": user_id,
            "dimension_company_id": company_id,
            "dimension_recruiter_id": recruiter_id,
        }


@dataclass
class RollupResult:
    stage: str
    window_start: Any
    window_end: Any
    rows_read: int = 0
    rows_written: int = 0
    rows_failed: int = 0


def numeric_fields(metadata: dict[str, Any] | None) -> dict[str, float]:
    """Numeric (non-boolean) metadata values; everything else is ignored."""
    if not metadata:
        return {}
    return {
        name: value
        for name, value in metadata.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


class RollupStage(ABC):
    """One stage of the fold. Subclasses say where rows come from and how they bucket."""

    name: str
    time_bucket: str
    target: type

    def __init__(self, db: Database, settings: Settings):
        self._db = db
        self.settings = settings
        self.log = configure_logging(f"rollup-{self.name}", settings.log_level)

    @abstractmethod
    def current_bucket_start(self, now: datetime) -> Any:
        """Start of the still-open bucket, which is never written."""

    @abstractmethod
    def default_start(self, now: datetime) -> Any:
        """Where to start when the target table is empty."""

    @abstractmethod
    def source_rows(self, start: Any, end: Any) -> Iterable[Any]:
        """Input rows in [start, end)."""

    @abstractmethod
    def groups(self, row: Any) -> Iterable[tuple[str, Any, Dimensions, float, dict[str, float]]]:
        """(metric_type, time_value, dimensions, value, numeric_metadata) contributions of one row."""

    def watermark(self, now: datetime) -> Any:
        with self._db.session() as session:
            latest = session.scalar(select(func.max(self.target.time_value)))
        return latest if latest is not None else self.default_start(now)

    def aggregate(self, rows: Iterable[Any]) -> tuple[dict[GroupKey, MetricAggregate], int]:
        aggregates: dict[GroupKey, MetricAggregate] = {}
        count = 0
        for row in rows:
            count += 1
            for metric_type, time_value, dimensions, value, numbers in self.groups(row):
                key = (metric_type, time_value, dimensions)
                agg = aggregates.get(key)
                if agg is None:
                    agg = aggregates[key] = MetricAggregate(metric_type, time_value, dimensions)
                agg.add(value, numbers)
        return aggregates, count

    def run(self, now: datetime | None = None) -> RollupResult:
        now = now or utc_now()
        start = self.watermark(now)
        end = self.current_bucket_start(now)
        result = RollupResult(stage=self.name, window_start=start, window_end=end)

        if start >= end:
            self.log.info("rollup_noop", window_start=str(start), window_end=str(end))
            return result

        aggregates, result.rows_read = self.aggregate(self.source_rows(start, end))
        if not aggregates:
            self.log.info("rollup_noop", window_start=str(start), window_end=str(end))
            return result

        for agg in aggregates.values():
            try:
                with self._db.session() as session:
                    upsert(
                        session,
                        self.target,
                        key=agg.key_columns(),
                        values={
                            "time_bucket": self.time_bucket,
                            "value": agg.value,
                            "metric_metadata": dict(agg.metadata),
                        },
                    )
                result.rows_written += 1
            except Exception as e:
                result.rows_failed += 1
                self.log.error(
                    "metric_upsert_failed",
                    metric_type=agg.metric_type,
                    time_value=str(agg.time_value),
                    error=str(e),
                )

        self.log.info(
            "rollup_completed",
            window_start=str(start),
            window_end=str(end),
            rows_read=result.rows_read,
            rows_written=result.rows_written,
            rows_failed=result.rows_failed,
        )
        return result


def recruiter_dimension(event: StoredEvent) -> str | None:
    metadata = event.event_metadata or {}
    recruiter_id = metadata.get("recruiter_id") or metadata.get("candidate_recruiter_id")
    if recruiter_id:
        return str(recruiter_id)
    if event.user_role == "recruiter":
        return event.user_id
    return None


class HourlyRollup(RollupStage):
    name = "hourly"
    time_bucket = "hour"
    target = HourlyMetric

    def __init__(self, db: Database, settings: Settings):
        super().__init__(db, settings)
        self._events = EventStore(db)

    def current_bucket_start(self, now: datetime) -> datetime:
        return floor_hour(now)

    def default_start(self, now: datetime) -> datetime:
        return floor_hour(now) - timedelta(hours=self.settings.hourly_lookback_hours)

    def source_rows(self, start: datetime, end: datetime) -> Iterable[StoredEvent]:
        return self._events.iter_range(start, end)

    def groups(self, event: StoredEvent):
        metric_type = metric_type_for(event.event_type)
        hour = floor_hour(event.created_at)
        numbers = numeric_fields(event.event_metadata)
        dimensions = (event.user_id, event.organization_id, recruiter_dimension(event))
        yield metric_type, hour, PLATFORM, 1.0, numbers
        if dimensions != PLATFORM:
            yield metric_type, hour, dimensions, 1.0, numbers


class _MetricFoldStage(RollupStage):
    """Daily and monthly stages fold the previous stage's rows by coarser bucket."""

    source: type

    def source_rows(self, start, end):
        stmt = (
            select(self.source)
            .where(self.source.time_value >= self._as_source_time(start))
            .where(self.source.time_value < self._as_source_time(end))
            .order_by(self.source.time_value)
        )
        with self._db.session() as session:
            return session.scalars(stmt).all()

    def _as_source_time(self, value: date):
        return value

    @abstractmethod
    def bucket_of(self, time_value) -> date:
        """Target bucket of a source row's time value."""

    def groups(self, row):
        dimensions = (row.dimension_user_id, row.dimension_company_id, row.dimension_recruiter_id)
        yield (
            row.metric_type,
            self.bucket_of(row.time_value),
            dimensions,
            row.value,
            numeric_fields(row.metric_metadata),
        )


class DailyRollup(_MetricFoldStage):
    name = "daily"
    time_bucket = "day"
    target = DailyMetric
    source = HourlyMetric

    def current_bucket_start(self, now: datetime) -> date:
        return now.date()

    def default_start(self, now: datetime) -> date:
        return now.date() - timedelta(days=self.settings.daily_lookback_days)

    def _as_source_time(self, value: date) -> datetime:
        return datetime(value.year, value.month, value.day)

    def bucket_of(self, time_value: datetime) -> date:
        return day_of(time_value)


class MonthlyRollup(_MetricFoldStage):
    name = "monthly"
    time_bucket = "month"
    target = MonthlyMetric
    source = DailyMetric

    def current_bucket_start(self, now: datetime) -> date:
        return month_start(now)

    def default_start(self, now: datetime) -> date:
        return add_months(month_start(now), -self.settings.monthly_lookback_months)

    def bucket_of(self, time_value: date) -> date:
        return month_start(time_value)
