"""Scheduled job entry points. Each takes the process context and runs to completion or raises."""

from datetime import datetime

from aggregation.marketplace_health import HealthMetrics, MarketplaceHealthComputer
from aggregation.rollup import DailyRollup, HourlyRollup, MonthlyRollup, RollupResult
from presence.history import PresenceHistory
from presence.tracker import PresenceTracker
from storage.context import AppContext


def run_hourly_rollup(context: AppContext, now: datetime | None = None) -> RollupResult:
    return HourlyRollup(context.db, context.settings).run(now)


def run_daily_rollup(context: AppContext, now: datetime | None = None) -> RollupResult:
    return DailyRollup(context.db, context.settings).run(now)


def run_monthly_rollup(context: AppContext, now: datetime | None = None) -> RollupResult:
    return MonthlyRollup(context.db, context.settings).run(now)


def compute_marketplace_health(context: AppContext, now: datetime | None = None) -> HealthMetrics:
    return MarketplaceHealthComputer(context.db, context.settings).compute(now=now)


def persist_presence_snapshot(context: AppContext, now: float | None = None) -> int:
    snapshot = PresenceTracker(context.redis, context.settings).get_snapshot(now)
    return PresenceHistory(context.db).record(snapshot)


JOBS = {
    "hourly_rollup": run_hourly_rollup,
    "daily_rollup": run_daily_rollup,
    "monthly_rollup": run_monthly_rollup,
    "marketplace_health": compute_marketplace_health,
    "presence_snapshot": persist_presence_snapshot,
}
