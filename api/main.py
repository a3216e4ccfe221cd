"""FastAPI application factory with lifespan management."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aggregation.reader import MetricReader, ScopedStats
from api.routers import health, metrics, presence, prometheus
from config import Settings, configure_logging
from presence.tracker import PresenceTracker
from processor.live_counters import LiveCounters
from scheduler.guard import JobGuard
from storage.cache import AnalyticsCache
from storage.context import AppContext


def create_app(context: AppContext | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the connection context unless one was injected, then the read-side services."""
        ctx = context or AppContext.from_settings(Settings())
        settings = ctx.settings

        app.state.context = ctx
        app.state.tracker = PresenceTracker(ctx.redis, settings)
        app.state.cache = AnalyticsCache(ctx.redis, default_ttl=settings.cache_default_ttl_sec)
        app.state.live_counters = LiveCounters(ctx.redis, ttl_sec=settings.live_counter_ttl_sec)
        app.state.metric_reader = MetricReader(ctx.db)
        app.state.scoped_stats = ScopedStats(ctx.db)
        app.state.job_guard = JobGuard(ctx.redis, settings)
        app.state.start_time = time.time()

        yield

        if context is None:
            ctx.close()

    app = FastAPI(
        title="Marketplace Analytics API",
        version="1.0.0",
        description="Presence tracking and aggregated marketplace metrics",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        configure_logging("api").error(
            "unhandled_error", path=request.url.path, error=str(exc), exc_info=exc
        )
        return JSONResponse(status_code=500, content={"detail": "internal_error"})

    app.include_router(health.router)
    app.include_router(presence.router)
    app.include_router(metrics.router)
    app.include_router(prometheus.router)

    return app


app = create_app()
