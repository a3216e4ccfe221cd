"""Prometheus-compatible metrics endpoint."""

import time

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from scheduler.jobs import JOBS

router = APIRouter()


@router.get("/metrics")
def prometheus_metrics(request: Request):
    """Expose metrics in Prometheus text exposition format."""
    context = request.app.state.context
    tracker = request.app.state.tracker
    guard = request.app.state.job_guard

    state_map = {"closed": 0, "open": 1, "half_open": 2}
    cb_value = state_map.get(context.redis.circuit_state, 0)
    uptime = time.time() - request.app.state.start_time
    try:
        online = tracker.online_count()
    except Exception:
        online = -1
    try:
        running = {job: int(guard.is_running(job)) for job in JOBS}
    except Exception:
        running = {}

    lines = [
        "# HELP presence_sessions_online Sessions with a heartbeat inside the staleness window (-1 if unknown)",
        "# TYPE presence_sessions_online gauge",
        f"presence_sessions_online {online}",
        "",
        "# HELP redis_circuit_breaker_state Circuit breaker state (0=closed, 1=open, 2=half_open)",
        "# TYPE redis_circuit_breaker_state gauge",
        f"redis_circuit_breaker_state {cb_value}",
        "",
        "# HELP api_uptime_seconds Seconds since API start",
        "# TYPE api_uptime_seconds gauge",
        f"api_uptime_seconds {uptime:.1f}",
    ]
    if running:
        lines += [
            "",
            "# HELP scheduler_job_running Whether a run of the job currently holds its overlap lock",
            "# TYPE scheduler_job_running gauge",
        ]
        lines += [f'scheduler_job_running{{job="{job}"}} {value}' for job, value in running.items()]
    return PlainTextResponse("\n".join(lines) + "\n", media_type="text/plain; version=0.0.4")
