"""Daily platform-wide KPIs computed straight from the marketplace tables."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable

from sqlalchemy import func, select

from aggregation.buckets import day_range, utc_now
from config import Settings, configure_logging
from storage.database import Database, upsert
from storage.models import MarketplaceHealthSnapshot
from storage.source_tables import Application, FraudSignal, Job, Placement, Recruiter

ACTIVE_RECRUITER_WINDOW = timedelta(days=30)

# Retention is not computed yet; every snapshot carries this constant.
RECRUITER_RETENTION_PLACEHOLDER = 85.0


@dataclass
class PlacementTotals:
    total: int = 0
    completed: int = 0
    fees: float = 0.0
    avg_time_to_hire_days: float = 0.0


@dataclass
class HealthMetrics:
    metric_date: date
    total_placements: int
    completed_placements: int
    total_applications: int
    total_fees: float
    avg_time_to_hire_days: float
    active_recruiters: int
    active_jobs: int
    fraud_signals: int
    disputed_placements: int
    hire_rate: float
    completion_rate: float
    avg_fee_per_placement: float
    avg_applications_per_job: float
    recruiter_retention_rate: float
    health_score: float


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """numerator / denominator * scale, or 0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return round(numerator / denominator * scale, 2)


def health_score(
    completion_rate: float,
    hire_rate: float,
    retention_rate: float,
    fraud_signals: int,
    disputed_placements: int,
) -> float:
    """Weighted 0–100 composite; fraud and disputes subtract fixed penalties."""
    score = (
        0.4 * completion_rate
        + 0.3 * min(hire_rate * 5, 100.0)
        + 0.3 * retention_rate
        - 2.0 * fraud_signals
        - 5.0 * disputed_placements
    )
    return round(max(0.0, min(100.0, score)), 2)


class MarketplaceHealthComputer:
    """
    Computes yesterday's snapshot by default. The six source queries run in
    parallel on their own sessions; if any of them fails nothing is written
    and the error propagates, so the next scheduled run retries the date.
    """

    def __init__(self, db: Database, settings: Settings, max_workers: int = 6):
        self._db = db
        self._max_workers = max_workers
        self.log = configure_logging("marketplace-health", settings.log_level)

    # ─── Source Queries ─────────────────────────────────────────────

    def _placement_totals(self, start: datetime, end: datetime) -> PlacementTotals:
        stmt = (
            select(Placement.state, Placement.placement_fee, Placement.hired_at, Application.created_at)
            .outerjoin(Application, Application.id == Placement.application_id)
            .where(Placement.created_at >= start, Placement.created_at < end)
        )
        totals = PlacementTotals()
        hire_days: list[float] = []
        with self._db.session() as session:
            for state, fee, hired_at, applied_at in session.execute(stmt):
                totals.total += 1
                if state == "completed":
                    totals.completed += 1
                totals.fees += float(fee or 0)
                if hired_at is not None and applied_at is not None:
                    hire_days.append((hired_at - applied_at).total_seconds() / 86400)
        if hire_days:
            totals.avg_time_to_hire_days = round(sum(hire_days) / len(hire_days), 2)
        totals.fees = round(totals.fees, 2)
        return totals

    def _count(self, stmt) -> int:
        with self._db.session() as session:
            return session.scalar(stmt) or 0

    def _application_count(self, start: datetime, end: datetime) -> int:
        return self._count(
            select(func.count(Application.id)).where(
                Application.created_at >= start, Application.created_at < end
            )
        )

    def _active_recruiter_count(self, start: datetime, end: datetime) -> int:
        return self._count(
            select(func.count(Recruiter.id)).where(
                Recruiter.status == "active",
                Recruiter.last_active_at >= end - ACTIVE_RECRUITER_WINDOW,
                Recruiter.last_active_at < end,
            )
        )

    def _active_job_count(self, start: datetime, end: datetime) -> int:
        return self._count(select(func.count(Job.id)).where(Job.status == "active"))

    def _fraud_signal_count(self, start: datetime, end: datetime) -> int:
        return self._count(
            select(func.count(FraudSignal.id)).where(
                FraudSignal.created_at >= start, FraudSignal.created_at < end
            )
        )

    def _disputed_placement_count(self, start: datetime, end: datetime) -> int:
        return self._count(
            select(func.count(Placement.id)).where(
                Placement.state == "disputed",
                Placement.updated_at >= start,
                Placement.updated_at < end,
            )
        )

    # ─── Computation ────────────────────────────────────────────────

    def gather(self, metric_date: date) -> dict[str, Any]:
        start, end = day_range(metric_date)
        queries: dict[str, Callable[[datetime, datetime], Any]] = {
            "placements": self._placement_totals,
            "applications": self._application_count,
            "active_recruiters": self._active_recruiter_count,
            "active_jobs": self._active_job_count,
            "fraud_signals": self._fraud_signal_count,
            "disputed_placements": self._disputed_placement_count,
        }
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = {name: pool.submit(query, start, end) for name, query in queries.items()}
            return {name: future.result() for name, future in futures.items()}

    @staticmethod
    def derive(metric_date: date, inputs: dict[str, Any]) -> HealthMetrics:
        placements: PlacementTotals = inputs["placements"]
        applications = inputs["applications"]
        active_jobs = inputs["active_jobs"]
        hire_rate = safe_ratio(placements.total, applications, 100)
        completion_rate = safe_ratio(placements.completed, placements.total, 100)
        return HealthMetrics(
            metric_date=metric_date,
            total_placements=placements.total,
            completed_placements=placements.completed,
            total_applications=applications,
            total_fees=placements.fees,
            avg_time_to_hire_days=placements.avg_time_to_hire_days,
            active_recruiters=inputs["active_recruiters"],
            active_jobs=active_jobs,
            fraud_signals=inputs["fraud_signals"],
            disputed_placements=inputs["disputed_placements"],
            hire_rate=hire_rate,
            completion_rate=completion_rate,
            avg_fee_per_placement=safe_ratio(placements.fees, placements.total),
            avg_applications_per_job=safe_ratio(applications, active_jobs),
            recruiter_retention_rate=RECRUITER_RETENTION_PLACEHOLDER,
            health_score=health_score(
                completion_rate,
                hire_rate,
                RECRUITER_RETENTION_PLACEHOLDER,
                inputs["fraud_signals"],
                inputs["disputed_placements"],
            ),
        )

    def compute(self, metric_date: date | None = None, now: datetime | None = None) -> HealthMetrics:
        metric_date = metric_date or (now or utc_now()).date() - timedelta(days=1)
        try:
            inputs = self.gather(metric_date)
        except Exception as e:
            self.log.error("health_computation_failed", metric_date=str(metric_date), error=str(e))
            raise

        metrics = self.derive(metric_date, inputs)
        values = asdict(metrics)
        values.pop("metric_date")
        values["computed_at"] = utc_now()
        with self._db.session() as session:
            upsert(session, MarketplaceHealthSnapshot, key={"metric_date": metric_date}, values=values)

        self.log.info(
            "health_computed",
            metric_date=str(metric_date),
            placements=metrics.total_placements,
            applications=metrics.total_applications,
            health_score=metrics.health_score,
        )
        return metrics
