"""Kafka consumer: one in-flight message, per-message commit, dead-letter on failure."""

import re
import signal
import time
from typing import Callable

from kafka import KafkaConsumer
from kafka.errors import NoBrokersAvailable

from config import Settings, configure_logging
from processor.dead_letter import DeadLetterQueue
from processor.errors import MalformedMessageError


def topic_pattern(bindings: list[str]) -> str:
    """Translate topic-exchange style bindings into one subscription regex.

    `*` matches exactly one dot-separated word, `#` matches any suffix.
    """
    parts = []
    for binding in bindings:
        escaped = re.escape(binding)
        escaped = escaped.replace(r"\*", r"[^.]+").replace(r"\#", r".*")
        parts.append(escaped)
    return "^(?:" + "|".join(parts) + ")$"


class EventConsumer:
    """
    Polls exactly one message at a time and hands the raw body to a handler.

    Acknowledge = commit the offset after the handler returns.
    Reject      = park the message on the DLQ and commit anyway; a rejected
                  message is never redelivered on the main subscription.
    """

    def __init__(
        self,
        settings: Settings,
        handler: Callable[[str, bytes], None],
        consumer: KafkaConsumer | None = None,
        dlq: DeadLetterQueue | None = None,
    ):
        self.settings = settings
        self.log = configure_logging("consumer", settings.log_level)
        self._handler = handler
        self._running = True
        self._processed = 0
        self._rejected = 0
        self._pattern = topic_pattern(settings.event_topic_patterns)
        self._consumer = consumer or self._connect()
        self._dlq = dlq or DeadLetterQueue(settings)
        self._consumer.subscribe(pattern=self._pattern)
        self.log.info(
            "consumer_started",
            pattern=self._pattern,
            group=settings.kafka_consumer_group,
        )

    def _connect(self) -> KafkaConsumer:
        """Connect with exponential backoff, giving up after the configured attempts."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return KafkaConsumer(
                    bootstrap_servers=self.settings.kafka_bootstrap_servers,
                    group_id=self.settings.kafka_consumer_group,
                    auto_offset_reset=self.settings.kafka_auto_offset_reset,
                    enable_auto_commit=False,
                    max_poll_records=1,
                    session_timeout_ms=self.settings.kafka_session_timeout_ms,
                )
            except NoBrokersAvailable as e:
                if attempt >= self.settings.kafka_max_reconnect_attempts:
                    self.log.error("kafka_connect_gave_up", attempts=attempt)
                    raise
                delay = min(2 ** (attempt - 1), self.settings.kafka_max_reconnect_delay_sec)
                self.log.warning(
                    "kafka_connect_retry",
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                time.sleep(delay)

    def run(self):
        """Main consumption loop."""
        signal.signal(signal.SIGTERM, self._shutdown)
        signal.signal(signal.SIGINT, self._shutdown)
        try:
            while self._running:
                batch = self._consumer.poll(timeout_ms=1000, max_records=1)
                for messages in batch.values():
                    for msg in messages:
                        self.handle_message(msg)
        except KeyboardInterrupt:
            pass
        finally:
            self._cleanup()

    def handle_message(self, msg) -> bool:
        """Process one message; True if acknowledged, False if dead-lettered."""
        try:
            self._handler(msg.topic, msg.value)
        except MalformedMessageError as e:
            self.log.warning(
                "malformed_message",
                topic=msg.topic,
                offset=msg.offset,
                error=str(e),
            )
            self._reject(msg, e)
            return False
        except Exception as e:
            self.log.error(
                "message_processing_error",
                topic=msg.topic,
                partition=msg.partition,
                offset=msg.offset,
                error=str(e),
            )
            self._reject(msg, e)
            return False

        self._processed += 1
        self._commit()
        if self._processed % 1000 == 0:
            self.log.info(
                "consumer_progress",
                processed=self._processed,
                rejected=self._rejected,
            )
        return True

    def _reject(self, msg, error: Exception):
        self._rejected += 1
        try:
            self._dlq.send(
                original_value=msg.value if isinstance(msg.value, bytes) else None,
                error=error,
                source_topic=msg.topic,
                source_partition=msg.partition,
                source_offset=msg.offset,
            )
        except Exception as e:
            self.log.error("dlq_send_failed", topic=msg.topic, offset=msg.offset, error=str(e))
        self._commit()

    def _commit(self):
        try:
            self._consumer.commit()
        except Exception as e:
            self.log.error("commit_error", error=str(e))

    def _shutdown(self, signum, frame):
        self.log.info("shutdown_signal", signal=signum)
        self._running = False

    @property
    def stats(self) -> dict[str, int]:
        return {"processed": self._processed, "rejected": self._rejected}

    def _cleanup(self):
        self.log.info("consumer_closing", processed=self._processed, rejected=self._rejected)
        self._consumer.close()
        self._dlq.close()
