"""Overlap protection for scheduled jobs.

A run holds a Redis lock named after its job; a fire that finds the lock
taken is skipped instead of running alongside the previous one. The lock
TTL only bounds how long a crashed worker can block the job.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

from redis.exceptions import LockError

from config import Settings, configure_logging
from storage.redis_client import RedisClient


@dataclass
class JobOutcome:
    job: str
    status: str  # "completed" | "skipped"
    duration_sec: float = 0.0
    result: Any = None

    def summary(self) -> dict[str, Any]:
        return {"job": self.job, "status": self.status, "duration_sec": self.duration_sec}


class JobGuard:
    LOCK_KEY = "scheduler:running:{job}"

    def __init__(self, client: RedisClient, settings: Settings):
        self._client = client
        self._ttl = settings.scheduler_lock_ttl_sec
        self.log = configure_logging("job-guard", settings.log_level)

    def run(self, job: str, func: Callable[..., Any], *args, **kwargs) -> JobOutcome:
        lock = self._client.get_client().lock(
            self.LOCK_KEY.format(job=job), timeout=self._ttl, blocking=False
        )
        if not lock.acquire():
            self.log.info("job_skipped_overlap", job=job)
            return JobOutcome(job=job, status="skipped")

        started = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self.log.error("job_failed", job=job, error=str(e), exc_info=True)
            raise
        finally:
            try:
                lock.release()
            except LockError:
                self.log.warning("job_lock_expired", job=job, ttl=self._ttl)

        duration = round(time.monotonic() - started, 3)
        self.log.info("job_completed", job=job, duration_sec=duration)
        return JobOutcome(job=job, status="completed", duration_sec=duration, result=result)

    def is_running(self, job: str) -> bool:
        return bool(
            self._client.execute_with_retry(lambda r: r.exists(self.LOCK_KEY.format(job=job)))
        )
