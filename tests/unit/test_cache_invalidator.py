"""Tests for event-driven cache invalidation."""

import pytest
from structlog.testing import capture_logs

from processor.cache_invalidator import INVALIDATION_RULES, CacheInvalidator
from storage.cache import AnalyticsCache


@pytest.fixture
def cache(redis_client, settings):
    return AnalyticsCache(redis_client, default_ttl=settings.cache_default_ttl_sec)


@pytest.fixture
def invalidator(cache, settings):
    return CacheInvalidator(cache, settings)


class TestPatterns:
    @pytest.mark.parametrize("family", sorted(INVALIDATION_RULES))
    def test_family_charts_and_scopes_present(self, invalidator, family):
        rule = INVALIDATION_RULES[family]
        patterns = invalidator.patterns_for(f"{family}.created", {})
        for chart in rule.charts:
            assert AnalyticsCache.chart_pattern(chart) in patterns
        for scope in rule.scopes:
            assert AnalyticsCache.scope_pattern(scope) in patterns

    def test_placement_completed(self, invalidator):
        patterns = invalidator.patterns_for("placement.completed", {"placement_id": "p1"})
        assert set(patterns) == {
            "analytics:chart:placement-trends:*",
            "analytics:chart:revenue-trends:*",
            "analytics:chart:time-to-hire:*",
            "analytics:chart:top-recruiters:*",
            "analytics:chart:metric-series:*",
            "analytics:stats:recruiter:*",
            "analytics:stats:company:*",
            "analytics:stats:platform:*",
        }

    def test_user_and_company_patterns(self, invalidator):
        patterns = invalidator.patterns_for(
            "application.created", {"user_id": "u1", "company_id": "c9"}
        )
        assert AnalyticsCache.user_pattern("u1") in patterns
        assert AnalyticsCache.company_pattern("c9") in patterns

    def test_no_duplicates(self, invalidator):
        patterns = invalidator.patterns_for("recruiter.approved", {"user_id": "u1"})
        assert len(patterns) == len(set(patterns))

    def test_unknown_family_warns_and_returns_nothing(self, invalidator):
        with capture_logs() as logs:
            patterns = invalidator.patterns_for("billing.invoice_paid", {"user_id": "u1"})
        assert patterns == []
        assert any(
            entry["event"] == "unknown_event_type" and entry["log_level"] == "warning"
            for entry in logs
        )

    def test_charts_for(self, invalidator):
        assert invalidator.charts_for("job.closed") == ["job-trends", "jobs-by-status", "metric-series"]
        assert invalidator.charts_for("billing.paid") == []


class TestInvalidate:
    def test_deletes_only_matching_keys(self, invalidator, cache, fake_redis):
        cache.set_json(AnalyticsCache.chart_key("placement-trends", "90d"), {"points": []})
        cache.set_json(AnalyticsCache.stats_key("recruiter", "r1"), {"placements": 3})
        cache.set_json(AnalyticsCache.chart_key("candidate-growth"), {"points": []})

        deleted = invalidator.invalidate("placement.completed", {})

        assert deleted == 2
        assert cache.get_json(AnalyticsCache.chart_key("placement-trends", "90d")) is None
        assert cache.get_json(AnalyticsCache.chart_key("candidate-growth")) == {"points": []}

    def test_unknown_family_deletes_nothing(self, invalidator, cache):
        cache.set_json(AnalyticsCache.chart_key("revenue-trends"), [1, 2])
        assert invalidator.invalidate("billing.invoice_paid", {}) == 0
        assert cache.get_json(AnalyticsCache.chart_key("revenue-trends")) == [1, 2]

    def test_cached_values_expire(self, cache, fake_redis, settings):
        key = AnalyticsCache.stats_key("company", "c1")
        cache.set_json(key, {"jobs": 4})
        assert 0 < fake_redis.ttl(key) <= settings.cache_default_ttl_sec
