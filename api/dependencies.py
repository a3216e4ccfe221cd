"""FastAPI dependency injection."""

from fastapi import Depends, Header, HTTPException, Request

from aggregation.reader import MetricReader, ScopedStats
from presence.tracker import PresenceTracker
from processor.live_counters import LiveCounters
from storage.cache import AnalyticsCache
from storage.context import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_tracker(request: Request) -> PresenceTracker:
    return request.app.state.tracker


def get_cache(request: Request) -> AnalyticsCache:
    return request.app.state.cache


def get_live_counters(request: Request) -> LiveCounters:
    return request.app.state.live_counters


def get_metric_reader(request: Request) -> MetricReader:
    return request.app.state.metric_reader


def get_scoped_stats(request: Request) -> ScopedStats:
    return request.app.state.scoped_stats


def require_admin(
    x_admin_token: str = Header(default=""),
    context: AppContext = Depends(get_context),
):
    """Privileged routes. Access-context resolution lives in the gateway; this checks its shared token."""
    expected = context.settings.admin_api_token
    if not expected or x_admin_token != expected:
        raise HTTPException(status_code=403, detail="forbidden")
