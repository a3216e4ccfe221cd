"""Live presence: who is online, where, and a 30-minute per-minute history.

Redis layout:
    presence:online                           sorted set, session_id → last heartbeat (epoch s)
    presence:session:<session_id>             hash of session metadata, short TTL
    presence:timeline:<minute>                set of session ids seen that minute
    presence:timeline:app:<app>:<minute>      same, per app
    presence:timeline:role:<role>:<minute>    same, per role

Online-ness is decided by score at read time; stale members are pruned
lazily by the snapshot call, never on write.
"""

import time
from collections import Counter
from datetime import datetime, timezone

from config import Settings, configure_logging
from presence.schemas import Heartbeat, PresenceSnapshot, TimelinePoint, resolve_user_type
from storage.redis_client import RedisClient

# One heartbeat = one atomic server-side update of all five keys.
HEARTBEAT_SCRIPT = """
local unpack = unpack or table.unpack
redis.call('ZADD', KEYS[1], ARGV[1], ARGV[2])
redis.call('DEL', KEYS[2])
redis.call('HSET', KEYS[2], unpack(ARGV, 5))
redis.call('EXPIRE', KEYS[2], ARGV[3])
for i = 3, #KEYS do
    redis.call('SADD', KEYS[i], ARGV[2])
    redis.call('EXPIRE', KEYS[i], ARGV[4])
end
return 1
"""


class PresenceTracker:
    ONLINE_KEY = "presence:online"
    SESSION_KEY = "presence:session:{session_id}"
    TIMELINE_KEY = "presence:timeline:{minute}"
    APP_TIMELINE_KEY = "presence:timeline:app:{app}:{minute}"
    ROLE_TIMELINE_KEY = "presence:timeline:role:{role}:{minute}"

    def __init__(self, client: RedisClient, settings: Settings):
        self._client = client
        self.settings = settings
        self.log = configure_logging("presence-tracker", settings.log_level)
        self._heartbeat_script = client.register_script(HEARTBEAT_SCRIPT)

    @staticmethod
    def minute_of(now: float) -> int:
        return int(now // 60)

    # ─── Write Path ─────────────────────────────────────────────────

    def record_heartbeat(
        self,
        heartbeat: Heartbeat,
        user_type: str | None = None,
        now: float | None = None,
    ):
        """Atomically mark the session online, refresh its metadata and timeline buckets.

        user_type defaults to recruiter for signed-in sessions, anonymous otherwise.
        """
        now = time.time() if now is None else now
        minute = self.minute_of(now)
        user_type = resolve_user_type(heartbeat.user_id, user_type)
        keys = [
            self.ONLINE_KEY,
            self.SESSION_KEY.format(session_id=heartbeat.session_id),
            self.TIMELINE_KEY.format(minute=minute),
            self.APP_TIMELINE_KEY.format(app=heartbeat.app.value, minute=minute),
            self.ROLE_TIMELINE_KEY.format(role=user_type, minute=minute),
        ]
        args = [
            now,
            heartbeat.session_id,
            self.settings.presence_session_ttl_sec,
            self.settings.presence_timeline_ttl_sec,
            "app", heartbeat.app.value,
            "page", heartbeat.page,
            "status", heartbeat.status.value,
            "user_id", heartbeat.user_id or "",
            "user_type", user_type,
            "last_seen", now,
        ]
        self._client.execute_with_retry(
            lambda r: self._heartbeat_script(keys=keys, args=args, client=r)
        )

    # ─── Read Path ──────────────────────────────────────────────────

    def online_session_ids(self, now: float | None = None) -> list[str]:
        """Prune members older than the staleness window and return the rest."""
        now = time.time() if now is None else now
        cutoff = now - self.settings.presence_stale_after_sec

        def _op(r):
            pipe = r.pipeline(transaction=True)
            pipe.zremrangebyscore(self.ONLINE_KEY, "-inf", f"({cutoff}")
            pipe.zrangebyscore(self.ONLINE_KEY, cutoff, "+inf")
            return pipe.execute()[1]

        return self._client.execute_with_retry(_op)

    def _session_metadata(self, session_ids: list[str]) -> list[dict[str, str]]:
        if not session_ids:
            return []

        def _op(r):
            pipe = r.pipeline(transaction=False)
            for session_id in session_ids:
                pipe.hgetall(self.SESSION_KEY.format(session_id=session_id))
            return pipe.execute()

        return self._client.execute_with_retry(_op)

    def _timelines(self, minutes: list[int], roles: list[str]) -> dict[str, list[int]]:
        """Cardinalities for every (dimension, minute) pair in one round trip."""
        series: list[tuple[str, str]] = [("total", self.TIMELINE_KEY)]
        series += [
            (f"app:{app}", self.APP_TIMELINE_KEY.replace("{app}", app))
            for app in self.settings.presence_apps
        ]
        series += [
            (f"role:{role}", self.ROLE_TIMELINE_KEY.replace("{role}", role))
            for role in roles
        ]

        def _op(r):
            pipe = r.pipeline(transaction=False)
            for _, template in series:
                for minute in minutes:
                    pipe.scard(template.format(minute=minute))
            return pipe.execute()

        counts = self._client.execute_with_retry(_op)
        width = len(minutes)
        return {
            name: [int(c) for c in counts[i * width:(i + 1) * width]]
            for i, (name, _) in enumerate(series)
        }

    def get_snapshot(self, now: float | None = None) -> PresenceSnapshot:
        now = time.time() if now is None else now
        session_ids = self.online_session_ids(now)

        by_app: Counter[str] = Counter()
        by_role: Counter[str] = Counter()
        authenticated = anonymous = 0
        # Metadata can expire a moment before the online entry; such sessions
        # count toward the total but not the breakdowns.
        for meta in self._session_metadata(session_ids):
            if not meta:
                continue
            by_app[meta.get("app", "unknown")] += 1
            by_role[meta.get("user_type", "anonymous")] += 1
            if meta.get("user_id"):
                authenticated += 1
            else:
                anonymous += 1

        current = self.minute_of(now)
        minutes = list(range(current - self.settings.presence_timeline_minutes + 1, current + 1))
        roles = list(dict.fromkeys([*self.settings.presence_roles, *by_role]))
        counts = self._timelines(minutes, roles)

        def points(name: str) -> list[TimelinePoint]:
            return [
                TimelinePoint(
                    timestamp=datetime.fromtimestamp(minute * 60, tz=timezone.utc).replace(tzinfo=None),
                    count=count,
                )
                for minute, count in zip(minutes, counts[name])
            ]

        return PresenceSnapshot(
            total_online=len(session_ids),
            authenticated=authenticated,
            anonymous=anonymous,
            by_app=dict(by_app),
            by_role=dict(by_role),
            timeline=points("total"),
            timeline_by_app={app: points(f"app:{app}") for app in self.settings.presence_apps},
            timeline_by_role={role: points(f"role:{role}") for role in roles},
            generated_at=datetime.fromtimestamp(now, tz=timezone.utc).replace(tzinfo=None),
        )

    def online_count(self, now: float | None = None) -> int:
        """Online sessions without pruning; cheap enough for the metrics endpoint."""
        now = time.time() if now is None else now
        cutoff = now - self.settings.presence_stale_after_sec
        return self._client.execute_with_retry(
            lambda r: r.zcount(self.ONLINE_KEY, cutoff, "+inf")
        )
