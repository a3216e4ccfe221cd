from .redis_client import RedisClient
from .database import Database
from .event_store import EventStore
from .cache import AnalyticsCache
from .context import AppContext

__all__ = ["RedisClient", "Database", "EventStore", "AnalyticsCache", "AppContext"]
