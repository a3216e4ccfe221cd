"""Fire-and-forget "what changed" notifications for real-time dashboards."""

import json

from aggregation.buckets import utc_now
from aggregation.metric_types import metric_type_for
from config import Settings, configure_logging
from events.schemas import DomainEvent
from processor.cache_invalidator import INVALIDATION_RULES
from storage.redis_client import RedisClient

DASHBOARD_EVENT_TYPE = "analytics.updated"
DASHBOARD_EVENT_VERSION = 1


class DashboardPublisher:
    """
    Publishes a small envelope to `dashboard:recruiter:<id>` on Redis Pub/Sub;
    the real-time gateway fans it out to connected browsers. Failures are
    logged and swallowed: a missed notification only delays a refresh.
    """

    CHANNEL_FORMAT = "dashboard:recruiter:{recruiter_id}"

    def __init__(self, client: RedisClient, settings: Settings):
        self._client = client
        self.log = configure_logging("dashboard-publisher", settings.log_level)

    @classmethod
    def channel_for(cls, recruiter_id: str) -> str:
        return cls.CHANNEL_FORMAT.format(recruiter_id=recruiter_id)

    @staticmethod
    def build_envelope(metrics: list[str] | None = None, charts: list[str] | None = None) -> dict:
        data = {}
        if metrics:
            data["metrics"] = metrics
        if charts:
            data["charts"] = charts
        return {
            "type": DASHBOARD_EVENT_TYPE,
            "eventVersion": DASHBOARD_EVENT_VERSION,
            "serverTime": utc_now().isoformat() + "Z",
            "data": data,
        }

    def publish(
        self,
        recruiter_id: str,
        metrics: list[str] | None = None,
        charts: list[str] | None = None,
    ) -> bool:
        envelope = self.build_envelope(metrics, charts)
        try:
            self._client.publish(self.channel_for(recruiter_id), json.dumps(envelope))
        except Exception as e:
            self.log.warning(
                "dashboard_publish_failed",
                recruiter_id=recruiter_id,
                error=str(e),
            )
            return False
        return True

    def publish_for_event(self, event: DomainEvent) -> int:
        """Notify every recruiter the event touches; returns how many publishes succeeded."""
        recruiter_ids = event.payload().recruiter_ids()
        rule = INVALIDATION_RULES.get(event.entity_type)
        metrics = [metric_type_for(event.event_type)]
        charts = list(rule.charts) if rule else None
        return sum(1 for recruiter_id in recruiter_ids if self.publish(recruiter_id, metrics, charts))
