"""Tables owned by the analytics pipeline."""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from storage.database import Base
from aggregation.buckets import utc_now


class StoredEvent(Base):
    """Append-only log of consumed domain events. Rows are never updated."""

    __tablename__ = "analytics_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(128), index=True)
    entity_type: Mapped[str] = mapped_column(String(64))
    entity_id: Mapped[str | None] = mapped_column(String(64), default=None)
    user_id: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    user_role: Mapped[str | None] = mapped_column(String(32), default=None)
    organization_id: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    # Producer timestamp from the wire.
    occurred_at: Mapped[datetime] = mapped_column(DateTime)
    # Consumption time. Hourly rollups bucket by this.
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    __table_args__ = (
        Index("ix_analytics_events_type_created", "event_type", "created_at"),
        Index("ix_analytics_events_entity", "entity_type", "entity_id", "created_at"),
    )


class MetricColumns:
    """Columns shared by the hourly, daily and monthly metric tables."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    metric_type: Mapped[str] = mapped_column(String(128), index=True)
    time_bucket: Mapped[str] = mapped_column(String(8))
    dimension_user_id: Mapped[str | None] = mapped_column(String(64), default=None)
    dimension_company_id: Mapped[str | None] = mapped_column(String(64), default=None)
    dimension_recruiter_id: Mapped[str | None] = mapped_column(String(64), default=None)
    value: Mapped[float] = mapped_column(Float, default=0.0)
    metric_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    @declared_attr.directive
    def __table_args__(cls):
        return (
            UniqueConstraint(
                "metric_type",
                "time_value",
                "dimension_user_id",
                "dimension_company_id",
                "dimension_recruiter_id",
                name=f"uq_{cls.__tablename__}_natural_key",
            ),
            Index(f"ix_{cls.__tablename__}_type_time", "metric_type", "time_value"),
        )


class HourlyMetric(MetricColumns, Base):
    __tablename__ = "metrics_hourly"
    time_value: Mapped[datetime] = mapped_column(DateTime, index=True)


class DailyMetric(MetricColumns, Base):
    __tablename__ = "metrics_daily"
    time_value: Mapped[date] = mapped_column(Date, index=True)


class MonthlyMetric(MetricColumns, Base):
    __tablename__ = "metrics_monthly"
    # First day of the month.
    time_value: Mapped[date] = mapped_column(Date, index=True)


class MarketplaceHealthSnapshot(Base):
    __tablename__ = "marketplace_health_daily"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    metric_date: Mapped[date] = mapped_column(Date, unique=True, index=True)
    total_placements: Mapped[int] = mapped_column(Integer, default=0)
    completed_placements: Mapped[int] = mapped_column(Integer, default=0)
    total_applications: Mapped[int] = mapped_column(Integer, default=0)
    total_fees: Mapped[float] = mapped_column(Float, default=0.0)
    avg_time_to_hire_days: Mapped[float] = mapped_column(Float, default=0.0)
    active_recruiters: Mapped[int] = mapped_column(Integer, default=0)
    active_jobs: Mapped[int] = mapped_column(Integer, default=0)
    fraud_signals: Mapped[int] = mapped_column(Integer, default=0)
    disputed_placements: Mapped[int] = mapped_column(Integer, default=0)
    hire_rate: Mapped[float] = mapped_column(Float, default=0.0)
    completion_rate: Mapped[float] = mapped_column(Float, default=0.0)
    avg_fee_per_placement: Mapped[float] = mapped_column(Float, default=0.0)
    avg_applications_per_job: Mapped[float] = mapped_column(Float, default=0.0)
    recruiter_retention_rate: Mapped[float] = mapped_column(Float, default=0.0)
    health_score: Mapped[float] = mapped_column(Float, default=0.0)
    computed_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


class PresenceSnapshotRecord(Base):
    __tablename__ = "presence_snapshots"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    captured_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    total_online: Mapped[int] = mapped_column(Integer, default=0)
    authenticated: Mapped[int] = mapped_column(Integer, default=0)
    anonymous: Mapped[int] = mapped_column(Integer, default=0)
    by_app: Mapped[dict] = mapped_column(JSON, default=dict)
    by_role: Mapped[dict] = mapped_column(JSON, default=dict)
