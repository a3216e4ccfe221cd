"""Event type → dashboard cache eviction.

Invalidation is per family: every event of a family evicts the family's
charts and stats scopes, plus the acting user's and company's stats.
"""

from dataclasses import dataclass
from typing import Any

from config import Settings, configure_logging
from events.schemas import entity_type_of
from storage.cache import AnalyticsCache


@dataclass(frozen=True)
class InvalidationRule:
    charts: tuple[str, ...]
    scopes: tuple[str, ...]


INVALIDATION_RULES: dict[str, InvalidationRule] = {
    "application": InvalidationRule(
        charts=("application-trends", "applications-by-stage", "hiring-funnel", "metric-series"),
        scopes=("recruiter", "company", "candidate", "platform"),
    ),
    "placement": InvalidationRule(
        charts=("placement-trends", "revenue-trends", "time-to-hire", "top-recruiters", "metric-series"),
        scopes=("recruiter", "company", "platform"),
    ),
    "job": InvalidationRule(
        charts=("job-trends", "jobs-by-status", "metric-series"),
        scopes=("company", "recruiter", "platform"),
    ),
    "candidate": InvalidationRule(
        charts=("candidate-growth", "metric-series"),
        scopes=("candidate", "recruiter", "platform"),
    ),
    "recruiter": InvalidationRule(
        charts=("recruiter-activity", "top-recruiters", "metric-series"),
        scopes=("recruiter", "platform"),
    ),
    "proposal": InvalidationRule(
        charts=("proposal-trends", "metric-series"),
        scopes=("recruiter", "candidate"),
    ),
}


class CacheInvalidator:
    def __init__(self, cache: AnalyticsCache, settings: Settings):
        self._cache = cache
        self.log = configure_logging("cache-invalidator", settings.log_level)

    def patterns_for(self, event_type: str, data: dict[str, Any]) -> list[str]:
        """Key patterns to evict for one event. Unknown families yield nothing."""
        rule = INVALIDATION_RULES.get(entity_type_of(event_type))
        if rule is None:
            self.log.warning("unknown_event_type", event_type=event_type)
            return []

        patterns: list[str] = []
        user_id = data.get("user_id")
        if user_id:
            patterns.append(AnalyticsCache.user_pattern(str(user_id)))
        company_id = data.get("organization_id") or data.get("company_id")
        if company_id:
            patterns.append(AnalyticsCache.company_pattern(str(company_id)))
        patterns.extend(AnalyticsCache.scope_pattern(scope) for scope in rule.scopes)
        patterns.extend(AnalyticsCache.chart_pattern(chart) for chart in rule.charts)
        return list(dict.fromkeys(patterns))

    def charts_for(self, event_type: str) -> list[str]:
        rule = INVALIDATION_RULES.get(entity_type_of(event_type))
        return list(rule.charts) if rule else []

    def invalidate(self, event_type: str, data: dict[str, Any]) -> int:
        """Evict every matching key; returns the number of keys deleted."""
        deleted = 0
        patterns = self.patterns_for(event_type, data)
        for pattern in patterns:
            deleted += self._cache.delete_pattern(pattern)
        if patterns:
            self.log.debug(
                "cache_invalidated",
                event_type=event_type,
                patterns=len(patterns),
                deleted=deleted,
            )
        return deleted
