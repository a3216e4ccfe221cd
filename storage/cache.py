"""Dashboard read cache in Redis, plus the key layout the invalidator evicts."""

import json
from typing import Any

from storage.redis_client import RedisClient


class AnalyticsCache:
    """
    JSON values under two key families:

        analytics:stats:<scope>:<scope_id>:<name>   per-user/company/recruiter stats
        analytics:chart:<chart>:<params>            chart series

    Invalidation is by glob pattern over these families.
    """

    PREFIX = "analytics"

    def __init__(self, client: RedisClient, default_ttl: int = 300):
        self._client = client
        self._default_ttl = default_ttl

    # ─── Key Layout ─────────────────────────────────────────────────

    @classmethod
    def stats_key(cls, scope: str, scope_id: str, name: str = "summary") -> str:
        return f"{cls.PREFIX}:stats:{scope}:{scope_id}:{name}"

    @classmethod
    def chart_key(cls, chart: str, params: str = "all") -> str:
        return f"{cls.PREFIX}:chart:{chart}:{params}"

    @classmethod
    def user_pattern(cls, user_id: str) -> str:
        return f"{cls.PREFIX}:stats:user:{user_id}:*"

    @classmethod
    def company_pattern(cls, company_id: str) -> str:
        return f"{cls.PREFIX}:stats:company:{company_id}:*"

    @classmethod
    def scope_pattern(cls, scope: str) -> str:
        return f"{cls.PREFIX}:stats:{scope}:*"

    @classmethod
    def chart_pattern(cls, chart: str) -> str:
        return f"{cls.PREFIX}:chart:{chart}:*"

    # ─── Values ─────────────────────────────────────────────────────

    def get_json(self, key: str) -> Any | None:
        def _op(r):
            raw = r.get(key)
            return json.loads(raw) if raw is not None else None
        return self._client.execute_with_retry(_op)

    def set_json(self, key: str, value: Any, ttl: int | None = None):
        def _op(r):
            r.set(key, json.dumps(value, default=str), ex=ttl or self._default_ttl)
        self._client.execute_with_retry(_op)

    def delete_pattern(self, pattern: str) -> int:
        return self._client.delete_pattern(pattern)
