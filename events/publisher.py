"""Domain event publisher: JSON wire format, one topic per event type."""

import json
from datetime import datetime
from typing import Any

from kafka import KafkaProducer
from kafka.errors import KafkaError

from aggregation.buckets import utc_now
from config import Settings, configure_logging
from events.schemas import DomainEvent, entity_id_of


class EventPublisher:
    """
    Publishes lifecycle events for the analytics consumer.

    The topic is the event type itself (`placement.completed`), so the
    consumer's wildcard subscription does the routing. The entity id is the
    partition key, which keeps one entity's events in order.
    """

    def __init__(self, settings: Settings, producer: KafkaProducer | None = None):
        self.settings = settings
        self.log = configure_logging("event-publisher", settings.log_level)
        self._sent_count = 0
        self._error_count = 0
        self._producer = producer or self._connect()

    def _connect(self) -> KafkaProducer:
        self.log.info(
            "connecting_to_kafka",
            servers=self.settings.kafka_bootstrap_servers,
        )
        return KafkaProducer(
            bootstrap_servers=self.settings.kafka_bootstrap_servers,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            acks="all",
            retries=3,
            retry_backoff_ms=200,
        )

    def publish(
        self,
        event_type: str,
        data: dict[str, Any],
        timestamp: datetime | None = None,
    ) -> DomainEvent:
        event = DomainEvent(event_type=event_type, data=data, timestamp=timestamp or utc_now())
        self._producer.send(
            event_type,
            key=entity_id_of(data),
            value=event.to_wire(),
        ).add_callback(self._on_success).add_errback(self._on_error)
        return event

    def _on_success(self, metadata):
        self._sent_count += 1
        if self._sent_count % 1000 == 0:
            self.log.info(
                "publisher_progress",
                sent=self._sent_count,
                errors=self._error_count,
            )

    def _on_error(self, exc: KafkaError):
        self._error_count += 1
        self.log.error("publish_error", error=str(exc))

    def close(self):
        self._producer.flush(timeout=10)
        self._producer.close(timeout=10)
        self.log.info(
            "publisher_stopped",
            total_sent=self._sent_count,
            total_errors=self._error_count,
        )
