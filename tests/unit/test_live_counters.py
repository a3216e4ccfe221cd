"""Tests for the live hourly counters."""

from datetime import datetime

import pytest

from events.schemas import DomainEvent
from processor.live_counters import LiveCounters

HOUR = datetime(2026, 10, 19, 14)


def event(event_type, minute=5, **data):
    return DomainEvent(event_type=event_type, data=data, timestamp=HOUR.replace(minute=minute))


@pytest.fixture
def counters(redis_client, settings):
    return LiveCounters(redis_client, ttl_sec=settings.live_counter_ttl_sec)


class TestLiveCounters:
    def test_key_is_hour_aligned(self):
        assert LiveCounters.key_for(datetime(2026, 10, 19, 14, 59, 59)) == "analytics:live:2026101914"

    def test_increments_platform_and_recruiters(self, counters):
        counters.increment(event("placement.completed", placement_id="p1", candidate_recruiter_id="r1", company_recruiter_id="r2"))
        counters.increment(event("placement.completed", minute=40, placement_id="p2", candidate_recruiter_id="r1"))

        assert counters.read(HOUR) == {"placements_completed": 2}
        assert counters.read(HOUR, recruiter_id="r1") == {"placements_completed": 2}
        assert counters.read(HOUR, recruiter_id="r2") == {"placements_completed": 1}

    def test_untracked_types_ignored(self, counters):
        assert counters.increment(event("candidate.updated", candidate_id="c1")) is None
        assert counters.read(HOUR) == {}

    def test_returns_metric_type(self, counters):
        assert counters.increment(event("job.created", job_id="j1")) == "jobs_created"

    def test_counters_expire(self, counters, fake_redis, settings):
        counters.increment(event("proposal.accepted", proposal_id="x1"))
        assert 0 < fake_redis.ttl(LiveCounters.key_for(HOUR)) <= settings.live_counter_ttl_sec

    def test_hours_are_separate(self, counters):
        counters.increment(event("application.created", application_id="a1"))
        assert counters.read(HOUR.replace(hour=15)) == {}
