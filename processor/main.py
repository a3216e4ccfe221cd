"""Event processor: wires the consumer to storage, counters, cache and dashboards."""

from pydantic import ValidationError

from config import Settings, configure_logging
from events.schemas import DomainEvent
from processor.cache_invalidator import CacheInvalidator
from processor.consumer import EventConsumer
from processor.dashboard_publisher import DashboardPublisher
from processor.errors import DownstreamWriteError, MalformedMessageError
from processor.live_counters import LiveCounters
from storage.cache import AnalyticsCache
from storage.context import AppContext
from storage.event_store import EventStore


class EventProcessor:
    """
    Per message: parse → store → live counter → invalidate cache → notify dashboards.

    Store and counter failures fail the message (it is dead-lettered).
    Cache and dashboard failures are logged and the message still succeeds.
    """

    def __init__(self, context: AppContext):
        settings = context.settings
        self.settings = settings
        self.log = configure_logging("event-processor", settings.log_level)
        self.event_store = EventStore(context.db)
        self.live_counters = LiveCounters(context.redis, ttl_sec=settings.live_counter_ttl_sec)
        self.cache_invalidator = CacheInvalidator(
            AnalyticsCache(context.redis, default_ttl=settings.cache_default_ttl_sec),
            settings,
        )
        self.dashboard = DashboardPublisher(context.redis, settings)

    @staticmethod
    def parse(body: bytes | str | None) -> DomainEvent:
        if not body:
            raise MalformedMessageError("empty message body")
        try:
            return DomainEvent.model_validate_json(body)
        except ValidationError as e:
            raise MalformedMessageError(str(e)) from e

    def process_message(self, topic: str, body: bytes | str | None):
        event = self.parse(body)

        try:
            event_id = self.event_store.append(event)
            self.live_counters.increment(event)
        except Exception as e:
            raise DownstreamWriteError(f"{event.event_type}: {e}") from e

        try:
            self.cache_invalidator.invalidate(event.event_type, event.data)
        except Exception as e:
            self.log.warning(
                "cache_invalidation_failed",
                event_type=event.event_type,
                error=str(e),
            )

        notified = self.dashboard.publish_for_event(event)
        self.log.debug(
            "event_processed",
            topic=topic,
            event_type=event.event_type,
            event_id=event_id,
            recruiters_notified=notified,
        )

    def run(self, consumer: EventConsumer | None = None):
        """Consume until shutdown."""
        self.log.info("event_processor_starting")
        consumer = consumer or EventConsumer(self.settings, handler=self.process_message)
        consumer.run()
        self.log.info("event_processor_stopped")


if __name__ == "__main__":
    settings = Settings()
    context = AppContext.from_settings(settings)
    try:
        context.db.create_all()
        EventProcessor(context).run()
    finally:
        context.close()
