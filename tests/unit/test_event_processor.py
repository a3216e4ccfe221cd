"""Tests for the per-message processing pipeline and the Kafka consumer loop."""

import json
import re
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from kafka.errors import NoBrokersAvailable

from processor.consumer import EventConsumer, topic_pattern
from processor.dead_letter import DeadLetterQueue
from processor.errors import DownstreamWriteError, MalformedMessageError
from processor.main import EventProcessor
from storage.cache import AnalyticsCache

TIMESTAMP = "2026-10-19T10:15:00Z"


def body(event_type="application.created", **data):
    data = data or {"application_id": "a1", "user_id": "u1", "recruiter_id": "r1"}
    return json.dumps({"eventType": event_type, "data": data, "timestamp": TIMESTAMP}).encode()


def message(value, topic="application.created", offset=7):
    return SimpleNamespace(topic=topic, partition=0, offset=offset, value=value)


def next_message(pubsub):
    for _ in range(20):
        msg = pubsub.get_message(timeout=0.05)
        if msg and msg["type"] == "message":
            return msg
    return None


@pytest.fixture
def processor(context):
    return EventProcessor(context)


@pytest.fixture
def consumer(settings, processor):
    return EventConsumer(
        settings,
        handler=processor.process_message,
        consumer=MagicMock(),
        dlq=MagicMock(),
    )


class TestTopicPattern:
    def test_star_matches_one_word(self):
        pattern = re.compile(topic_pattern(["application.*", "placement.*"]))
        assert pattern.match("application.created")
        assert pattern.match("placement.completed")
        assert not pattern.match("application.note.created")
        assert not pattern.match("billing.paid")

    def test_hash_matches_any_suffix(self):
        pattern = re.compile(topic_pattern(["audit.#"]))
        assert pattern.match("audit.user.login")

    def test_default_bindings(self, settings):
        pattern = re.compile(topic_pattern(settings.event_topic_patterns))
        for topic in ("job.created", "candidate.updated", "recruiter.approved", "proposal.accepted"):
            assert pattern.match(topic)


class TestEventProcessor:
    def test_stores_event(self, processor):
        processor.process_message("application.created", body())
        assert processor.event_store.count("application.created") == 1

    def test_bumps_live_counter(self, processor):
        processor.process_message("application.created", body())
        hour = datetime(2026, 10, 19, 10)
        assert processor.live_counters.read(hour) == {"applications_submitted": 1}
        assert processor.live_counters.read(hour, recruiter_id="r1") == {"applications_submitted": 1}

    def test_untracked_type_skips_live_counter(self, processor):
        processor.process_message("candidate.updated", body("candidate.updated", candidate_id="c1"))
        assert processor.live_counters.read(datetime(2026, 10, 19, 10)) == {}
        assert processor.event_store.count() == 1

    def test_evicts_matching_cache_keys(self, processor, fake_redis):
        fake_redis.set(AnalyticsCache.chart_key("application-trends", "30d"), "{}")
        fake_redis.set(AnalyticsCache.stats_key("user", "u1"), "{}")
        fake_redis.set(AnalyticsCache.chart_key("revenue-trends"), "{}")

        processor.process_message("application.created", body())

        assert fake_redis.exists(AnalyticsCache.chart_key("application-trends", "30d")) == 0
        assert fake_redis.exists(AnalyticsCache.stats_key("user", "u1")) == 0
        assert fake_redis.exists(AnalyticsCache.chart_key("revenue-trends")) == 1

    def test_notifies_recruiter_dashboard(self, processor, fake_redis):
        pubsub = fake_redis.pubsub()
        pubsub.subscribe("dashboard:recruiter:r1")

        processor.process_message("application.created", body())

        msg = next_message(pubsub)
        assert msg is not None
        envelope = json.loads(msg["data"])
        assert envelope["type"] == "analytics.updated"
        assert envelope["data"]["metrics"] == ["applications_submitted"]
        assert "application-trends" in envelope["data"]["charts"]

    def test_invalid_json_is_malformed(self, processor):
        with pytest.raises(MalformedMessageError):
            processor.process_message("application.created", b"{not json")
        assert processor.event_store.count() == 0

    def test_missing_event_type_is_malformed(self, processor):
        with pytest.raises(MalformedMessageError):
            processor.process_message("application.created", b'{"data": {}, "timestamp": "2026-10-19T10:00:00Z"}')

    def test_empty_body_is_malformed(self, processor):
        with pytest.raises(MalformedMessageError):
            processor.process_message("application.created", b"")

    def test_mistyped_payload_is_stored(self, processor):
        processor.process_message(
            "placement.completed",
            body("placement.completed", placement_id="p1", placement_fee="n/a", candidate_recruiter_id="r1"),
        )
        assert processor.event_store.count("placement.completed") == 1

    def test_store_failure_is_downstream_error(self, processor):
        processor.event_store.append = MagicMock(side_effect=RuntimeError("db down"))
        with pytest.raises(DownstreamWriteError):
            processor.process_message("application.created", body())

    def test_cache_failure_does_not_fail_message(self, processor):
        processor.cache_invalidator.invalidate = MagicMock(side_effect=RuntimeError("redis down"))
        processor.process_message("application.created", body())
        assert processor.event_store.count() == 1


class TestEventConsumer:
    def test_subscribes_with_pattern(self, consumer, settings):
        consumer._consumer.subscribe.assert_called_once_with(
            pattern=topic_pattern(settings.event_topic_patterns)
        )

    def test_success_commits(self, consumer):
        assert consumer.handle_message(message(body())) is True
        consumer._consumer.commit.assert_called_once()
        consumer._dlq.send.assert_not_called()
        assert consumer.stats == {"processed": 1, "rejected": 0}

    def test_malformed_goes_to_dlq_and_is_not_stored(self, consumer, processor):
        assert consumer.handle_message(message(b"{oops", offset=5)) is False

        consumer._dlq.send.assert_called_once()
        kwargs = consumer._dlq.send.call_args.kwargs
        assert kwargs["source_offset"] == 5
        assert kwargs["source_topic"] == "application.created"
        assert isinstance(kwargs["error"], MalformedMessageError)
        consumer._consumer.commit.assert_called_once()
        assert processor.event_store.count() == 0

    def test_downstream_failure_goes_to_dlq(self, consumer, processor):
        processor.event_store.append = MagicMock(side_effect=RuntimeError("db down"))
        assert consumer.handle_message(message(body())) is False

        kwargs = consumer._dlq.send.call_args.kwargs
        assert isinstance(kwargs["error"], DownstreamWriteError)
        assert consumer.stats == {"processed": 0, "rejected": 1}

    def test_dlq_failure_still_commits(self, consumer):
        consumer._dlq.send.side_effect = RuntimeError("broker gone")
        assert consumer.handle_message(message(b"")) is False
        consumer._consumer.commit.assert_called_once()


class TestDeadLetterQueue:
    def test_envelope_carries_failure_context(self, settings):
        producer = MagicMock()
        dlq = DeadLetterQueue(settings, producer=producer)
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            dlq.send(b'{"x": 1}', e, source_topic="job.created", source_partition=2, source_offset=9)

        topic = producer.send.call_args.args[0]
        envelope = producer.send.call_args.kwargs["value"]
        assert topic == settings.topic_dlq
        assert envelope["original_topic"] == "job.created"
        assert envelope["original_partition"] == 2
        assert envelope["original_offset"] == 9
        assert envelope["error_type"] == "ValueError"
        assert envelope["error_message"] == "bad payload"
        assert "ValueError: bad payload" in envelope["stack_trace"]
        assert envelope["original_value"] == '{"x": 1}'


class TestBrokerReconnect:
    @patch("processor.consumer.time.sleep")
    @patch("processor.consumer.KafkaConsumer")
    def test_backoff_doubles_until_connected(self, kafka_consumer, sleep, settings):
        kafka_consumer.side_effect = [NoBrokersAvailable(), NoBrokersAvailable(), MagicMock()]
        EventConsumer(settings, handler=MagicMock(), dlq=MagicMock())
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    @patch("processor.consumer.time.sleep")
    @patch("processor.consumer.KafkaConsumer")
    def test_gives_up_after_max_attempts(self, kafka_consumer, sleep, settings):
        kafka_consumer.side_effect = NoBrokersAvailable()
        with pytest.raises(NoBrokersAvailable):
            EventConsumer(settings, handler=MagicMock(), dlq=MagicMock())
        assert kafka_consumer.call_count == settings.kafka_max_reconnect_attempts
        assert max(c.args[0] for c in sleep.call_args_list) == settings.kafka_max_reconnect_delay_sec


class TestParse:
    def test_mistyped_payload_field_is_not_malformed(self):
        raw = json.dumps({
            "eventType": "placement.completed",
            "data": {"placement_id": "p1", "placement_fee": "not-a-number"},
            "timestamp": TIMESTAMP,
        })
        event = EventProcessor.parse(raw)
        assert event.payload().model_dump()["placement_fee"] == "not-a-number"

    def test_unknown_type_accepted(self):
        event = EventProcessor.parse(body("billing.invoice_paid", invoice_id="i1"))
        assert event.event_type == "billing.invoice_paid"
