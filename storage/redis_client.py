"""Redis access shared by presence, live counters, the dashboard cache and pub/sub."""

import time
from typing import Any, Callable

import redis
from redis.commands.core import Script

from config import Settings, configure_logging


class CircuitBreaker:
    """
    closed    → calls pass; consecutive connection failures are counted.
    open      → calls fail fast until recovery_timeout has elapsed.
    half_open → the next call is a trial: success closes, failure re-opens.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self.state = "closed"
        self.failure_count = 0
        self.opened_at = 0.0

    def can_execute(self) -> bool:
        if self.state == "open" and self._clock() - self.opened_at >= self.recovery_timeout:
            self.state = "half_open"
        return self.state != "open"

    def record_success(self):
        self.failure_count = 0
        self.state = "closed"

    def record_failure(self):
        self.failure_count += 1
        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            self.state = "open"
            self.opened_at = self._clock()


class CircuitOpenError(Exception):
    pass


class RedisClient:
    """
    Shared key-value store access for presence state, live counters,
    dashboard caches and pub/sub notifications.

    Every operation goes through execute_with_retry so a flapping Redis
    trips the circuit breaker instead of stalling the consumer.
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        self.log = configure_logging("redis-client", settings.log_level)
        self._client = client
        self._pool = None
        if client is None:
            self._pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_pool_size,
                decode_responses=True,
            )
            self.log.info(
                "redis_pool_created",
                url=settings.redis_url,
                pool_size=settings.redis_pool_size,
            )
        self._circuit = CircuitBreaker(
            failure_threshold=settings.redis_circuit_failure_threshold,
            recovery_timeout=settings.redis_circuit_recovery_sec,
        )

    def get_client(self) -> redis.Redis:
        if self._client is not None:
            return self._client
        return redis.Redis(connection_pool=self._pool)

    def pipeline(self, transaction: bool = False) -> redis.client.Pipeline:
        return self.get_client().pipeline(transaction=transaction)

    def register_script(self, source: str) -> Script:
        """Register a Lua script; redis-py handles EVALSHA with EVAL fallback."""
        return self.get_client().register_script(source)

    def execute_with_retry(
        self, func: Callable[[redis.Redis], Any], max_retries: int = 3
    ) -> Any:
        """Run func against Redis, retrying connection errors with backoff.

        Raises CircuitOpenError without touching Redis while the breaker is open.
        """
        if not self._circuit.can_execute():
            raise CircuitOpenError("redis circuit breaker is open")

        for attempt in range(1, max_retries + 1):
            try:
                result = func(self.get_client())
            except (redis.ConnectionError, redis.TimeoutError) as e:
                self._circuit.record_failure()
                if attempt == max_retries or self._circuit.state == "open":
                    self.log.error(
                        "redis_operation_failed",
                        attempts=attempt,
                        circuit=self._circuit.state,
                        error=str(e),
                    )
                    raise
                backoff = 0.1 * (2 ** (attempt - 1))
                self.log.warning("redis_retry", attempt=attempt, backoff=backoff, error=str(e))
                time.sleep(backoff)
            else:
                self._circuit.record_success()
                return result

    def delete_pattern(self, pattern: str, batch_size: int = 500) -> int:
        """Delete every key matching a glob pattern using SCAN, never KEYS."""
        def _op(r):
            deleted = 0
            batch: list[str] = []
            for key in r.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += r.delete(*batch)
                    batch.clear()
            if batch:
                deleted += r.delete(*batch)
            return deleted
        return self.execute_with_retry(_op)

    def publish(self, channel: str, message: str) -> int:
        return self.execute_with_retry(lambda r: r.publish(channel, message))

    def ping(self) -> bool:
        try:
            return self.execute_with_retry(lambda r: r.ping())
        except Exception:
            return False

    def close(self):
        if self._pool is not None:
            self._pool.disconnect()
        self.log.info("redis_pool_closed")

    @property
    def circuit_state(self) -> str:
        return self._circuit.state
