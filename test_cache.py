import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.api.ai.errors import CacheError, ConfigurationError
from app.api.ai.providers import (
    DatabaseCacheProvider,
    MemoryCacheProvider,
    NullCacheProvider,
    create_cache_provider,
    make_cache_key,
)
from app.api.ai.providers.cache import KEY_PREFIX
from app.database import crud


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_key_is_stable_and_order_insensitive():
    a = make_cache_key("market-research", "1.0.0", "standard", {"title": "X", "category": "Y"})
    b = make_cache_key("market-research", "1.0.0", "standard", {"category": "Y", "title": "X"})
    assert a == b
    assert a.startswith("market-research:")


@pytest.mark.parametrize("changed", [
    ("financial-modeling", "1.0.0", "standard"),
    ("market-research", "1.1.0", "standard"),
    ("market-research", "1.0.0", "comprehensive"),
])
def test_cache_key_changes_with_agent_version_and_depth(changed):
    base = make_cache_key("market-research", "1.0.0", "standard", {"title": "X"})
    assert make_cache_key(*changed, {"title": "X"}) != base


def test_memory_cache_expires_entries():
    clock = FakeClock()
    cache = MemoryCacheProvider(clock=clock)
    cache.set("k", {"v": 1}, ttl=10)

    clock.now += 9
    assert cache.get("k") == {"v": 1}
    clock.now += 1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_memory_cache_returns_independent_copies():
    cache = MemoryCacheProvider()
    cache.set("k", {"items": [1]})
    cache.get("k")["items"].append(2)
    assert cache.get("k") == {"items": [1]}


def test_memory_cache_invalidate_and_clear():
    cache = MemoryCacheProvider()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert not cache.exists("a")
    assert cache.exists("b")
    cache.clear()
    assert cache.get("b") is None


def test_null_cache_never_stores():
    cache = NullCacheProvider()
    cache.set("k", 1)
    assert cache.get("k") is None


def test_database_cache_round_trip(session_factory):
    cache = DatabaseCacheProvider(session_factory)
    cache.set("k", {"output": {"score": 70}}, ttl=60)
    assert cache.get("k") == {"output": {"score": 70}}

    cache.set("k", {"output": {"score": 80}}, ttl=60)
    assert cache.get("k") == {"output": {"score": 80}}


def test_database_cache_expired_row_is_deleted(session_factory):
    cache = DatabaseCacheProvider(session_factory)
    cache.set("old", {"v": 1}, ttl=-1)

    assert cache.get("old") is None
    db = session_factory()
    try:
        assert crud.get_cache_record(db, KEY_PREFIX + "old") is None
    finally:
        db.close()


def test_database_cache_invalidate_and_clear(session_factory):
    cache = DatabaseCacheProvider(session_factory)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert cache.get("b") is None


def test_create_cache_provider_kinds(session_factory):
    assert isinstance(create_cache_provider("memory"), MemoryCacheProvider)
    assert isinstance(create_cache_provider("none"), NullCacheProvider)
    assert isinstance(create_cache_provider("database", session_factory), DatabaseCacheProvider)
    with pytest.raises(ConfigurationError):
        create_cache_provider("redis")


def test_memory_cache_sweeps_expired_entries_on_write():
    clock = FakeClock()
    cache = MemoryCacheProvider(clock=clock)
    for i in range(1000):
        cache.set("short-%d" % i, i, ttl=1)
    cache.set("long", "kept", ttl=3600)

    clock.now += 2
    cache.set("fresh", 1, ttl=60)

    assert len(cache) == 2
    assert cache.get("long") == "kept"


def test_memory_cache_stats():
    clock = FakeClock()
    cache = MemoryCacheProvider(clock=clock)
    cache.set("a", 1, ttl=5)
    cache.set("b", 2, ttl=50)
    cache.get("a")
    cache.get("missing")

    clock.now += 10

    assert cache.stats() == {"entries": 1, "hits": 1, "misses": 1, "evictions": 1}


def test_database_cache_clear_wraps_database_errors(session_factory, monkeypatch):
    def broken(db):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(crud, "clear_cache_records", broken)

    with pytest.raises(CacheError, match="connection lost"):
        DatabaseCacheProvider(session_factory).clear()
