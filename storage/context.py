"""Process-wide connection bundle handed to every component constructor."""

from dataclasses import dataclass

from config import Settings
from storage.database import Database
from storage.redis_client import RedisClient


@dataclass
class AppContext:
    settings: Settings
    redis: RedisClient
    db: Database

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(
            settings=settings,
            redis=RedisClient(settings),
            db=Database(settings),
        )

    def close(self):
        self.redis.close()
        self.db.dispose()
