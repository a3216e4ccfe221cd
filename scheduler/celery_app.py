"""Celery beat schedule for the batch side of the pipeline.

Run with: celery -A scheduler.celery_app worker -B
"""

from typing import Callable

from celery import Celery
from celery.schedules import crontab

from config import Settings
from scheduler.guard import JobGuard
from scheduler.jobs import JOBS
from storage.context import AppContext

BEAT_SCHEDULE = {
    "hourly-rollup": {
        "task": "analytics.hourly_rollup",
        "schedule": crontab(minute=5),
    },
    "daily-rollup": {
        "task": "analytics.daily_rollup",
        "schedule": crontab(minute=0, hour=1),
    },
    "monthly-rollup": {
        "task": "analytics.monthly_rollup",
        "schedule": crontab(minute=0, hour=2, day_of_month=1),
    },
    "marketplace-health": {
        "task": "analytics.marketplace_health",
        "schedule": crontab(minute=0, hour=3),
    },
    "presence-snapshot-5m": {
        "task": "analytics.presence_snapshot",
        "schedule": 300.0,
    },
}


class ContextProvider:
    """Builds the AppContext on first use, i.e. inside the forked worker process."""

    def __init__(self, settings: Settings, context: AppContext | None = None):
        self._settings = settings
        self._context = context

    def get(self) -> AppContext:
        if self._context is None:
            self._context = AppContext.from_settings(self._settings)
        return self._context


def _register(app: Celery, provider: ContextProvider, job: str, func: Callable):
    @app.task(name=f"analytics.{job}", shared=False)
    def _task():
        context = provider.get()
        outcome = JobGuard(context.redis, context.settings).run(job, func, context)
        return outcome.summary()

    return _task


def create_celery_app(settings: Settings | None = None, context: AppContext | None = None) -> Celery:
    settings = settings or Settings()
    app = Celery("analytics", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        beat_schedule=BEAT_SCHEDULE,
    )
    provider = ContextProvider(settings, context)
    for job, func in JOBS.items():
        _register(app, provider, job, func)
    return app


app = create_celery_app()
