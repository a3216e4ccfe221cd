"""Live hourly counters: an atomic fast-path tally of selected event types.

The hourly rollup recomputes the authoritative numbers from stored events
once the hour closes; these counters only serve the still-open hour.
"""

from datetime import datetime

from aggregation.buckets import floor_hour
from aggregation.metric_types import LIVE_COUNTER_EVENTS
from events.schemas import DomainEvent
from storage.redis_client import RedisClient


class LiveCounters:
    KEY_FORMAT = "analytics:live:{hour}"

    def __init__(self, client: RedisClient, ttl_sec: int = 172_800):
        self._client = client
        self._ttl = ttl_sec

    @classmethod
    def key_for(cls, moment: datetime) -> str:
        return cls.KEY_FORMAT.format(hour=floor_hour(moment).strftime("%Y%m%d%H"))

    def increment(self, event: DomainEvent) -> str | None:
        """Bump the counter for the event's hour; returns the metric type, or None if not tracked."""
        metric_type = LIVE_COUNTER_EVENTS.get(event.event_type)
        if metric_type is None:
            return None
        key = self.key_for(event.timestamp)
        recruiter_ids = event.payload().recruiter_ids()

        def _op(r):
            pipe = r.pipeline(transaction=True)
            pipe.hincrby(key, metric_type, 1)
            for recruiter_id in recruiter_ids:
                pipe.hincrby(key, f"{metric_type}:recruiter:{recruiter_id}", 1)
            pipe.expire(key, self._ttl)
            pipe.execute()

        self._client.execute_with_retry(_op)
        return metric_type

    def read(self, hour: datetime, recruiter_id: str | None = None) -> dict[str, int]:
        """Counters for one hour, platform-wide or for a single recruiter."""
        def _op(r):
            return r.hgetall(self.key_for(hour))

        raw = self._client.execute_with_retry(_op)
        counters: dict[str, int] = {}
        for field, value in raw.items():
            metric_type, _, owner = field.partition(":recruiter:")
            if recruiter_id is None and not owner:
                counters[metric_type] = int(value)
            elif recruiter_id is not None and owner == recruiter_id:
                counters[metric_type] = int(value)
        return counters
