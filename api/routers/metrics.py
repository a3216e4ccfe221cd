"""REST endpoints for aggregated and live marketplace metrics."""

from datetime import datetime, timedelta
from typing import Literal

from fastapi import APIRouter, Depends, Query

from aggregation.buckets import floor_hour, utc_now
from aggregation.reader import MetricReader, ScopedStats
from api.dependencies import get_cache, get_live_counters, get_metric_reader, get_scoped_stats
from processor.live_counters import LiveCounters
from storage.cache import AnalyticsCache

router = APIRouter(prefix="/api/v1")

SERIES_CHART = "metric-series"


@router.get("/metrics/live")
def live_counters(
    recruiter_id: str | None = Query(default=None),
    counters: LiveCounters = Depends(get_live_counters),
):
    """Fast-path counters for the current, not yet rolled up, hour."""
    hour = floor_hour(utc_now())
    return {
        "hour": hour.isoformat(),
        "recruiter_id": recruiter_id,
        "counters": counters.read(hour, recruiter_id),
    }


@router.get("/metrics/{time_bucket}")
def get_metric_series(
    time_bucket: Literal["hour", "day", "month"],
    metric_type: str = Query(..., description="e.g. applications_submitted"),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    user_id: str | None = Query(default=None),
    company_id: str | None = Query(default=None),
    recruiter_id: str | None = Query(default=None),
    reader: MetricReader = Depends(get_metric_reader),
    cache: AnalyticsCache = Depends(get_cache),
):
    """Persisted rollup rows for one metric and dimension tuple, cached until the next event."""
    params = ":".join(
        str(p or "-")
        for p in (time_bucket, metric_type, start, end, user_id, company_id, recruiter_id)
    )
    key = AnalyticsCache.chart_key(SERIES_CHART, params)
    cached = cache.get_json(key)
    if cached is not None:
        return cached

    if time_bucket != "hour":
        start = start.date() if start else None
        end = end.date() if end else None
    rows = reader.series(
        time_bucket,
        metric_type,
        start=start,
        end=end,
        user_id=user_id,
        company_id=company_id,
        recruiter_id=recruiter_id,
    )
    cache.set_json(key, rows)
    return rows


def _stats_response(scope: str, scope_id: str | None, days: int, stats: ScopedStats, cache: AnalyticsCache):
    key = AnalyticsCache.stats_key(scope, scope_id or "all", f"summary:{days}d")
    cached = cache.get_json(key)
    if cached is not None:
        return cached

    end = utc_now().date()
    start = end - timedelta(days=days - 1)
    body = {
        "scope": scope,
        "scope_id": scope_id,
        "from": start.isoformat(),
        "to": end.isoformat(),
        "metrics": stats.summary(scope, scope_id, start, end),
    }
    cache.set_json(key, body)
    return body


@router.get("/stats/platform")
def get_platform_stats(
    days: int = Query(default=30, ge=1, le=366),
    stats: ScopedStats = Depends(get_scoped_stats),
    cache: AnalyticsCache = Depends(get_cache),
):
    """Platform-wide daily totals over the last `days` days, today included."""
    return _stats_response("platform", None, days, stats, cache)


@router.get("/stats/{scope}/{scope_id}")
def get_scoped_stats_summary(
    scope: Literal["user", "candidate", "recruiter", "company"],
    scope_id: str,
    days: int = Query(default=30, ge=1, le=366),
    stats: ScopedStats = Depends(get_scoped_stats),
    cache: AnalyticsCache = Depends(get_cache),
):
    """One user's, candidate's, recruiter's or company's daily totals, cached until an event touches the scope."""
    return _stats_response(scope, scope_id, days, stats, cache)
