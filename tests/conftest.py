"""Shared test fixtures."""

import fakeredis
import pytest

from config import Settings
from storage.context import AppContext
from storage.database import Database
from storage.redis_client import RedisClient


@pytest.fixture
def settings():
    """Test settings with localhost defaults."""
    return Settings(
        kafka_bootstrap_servers="localhost:9092",
        redis_url="redis://localhost:6379/1",
        database_url="sqlite://",
        admin_api_token="test-admin-token",
    )


@pytest.fixture
def database(settings, tmp_path):
    """File-backed SQLite so worker threads share one database."""
    db = Database(settings, url=f"sqlite:///{tmp_path / 'analytics.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def redis_client(settings, fake_redis):
    return RedisClient(settings, client=fake_redis)


@pytest.fixture
def context(settings, redis_client, database):
    return AppContext(settings=settings, redis=redis_client, db=database)
