# tests/services/test_cache_service.py
from datetime import datetime
from unittest.mock import MagicMock

import redis

from app.services.cache_service import CacheService


def test_set_and_get_round_trip(cache, fake_redis):
    key = cache.key("id", 3)

    assert key == "categories:id:3"
    assert cache.set(key, {"id": 3, "created_at": datetime(2026, 1, 2, 3, 4, 5)})
    assert cache.get(key) == {"id": 3, "created_at": "2026-01-02 03:04:05"}
    assert fake_redis.ttls[key] == 15 * 60


def test_miss_returns_none(cache):
    assert cache.get("categories:id:404") is None


def test_invalidate_all_only_touches_namespace(cache, fake_redis):
    cache.set(cache.key("roots"), [])
    cache.set(cache.key("children", 1), [])
    fake_redis.setex("sessions:abc", 60, "keep")

    assert cache.invalidate_all() == 2
    assert list(fake_redis.store) == ["sessions:abc"]
    assert cache.invalidate_all() == 0


def test_disabled_cache_never_touches_redis():
    service = CacheService(enabled=False)

    assert service.redis_client is None
    assert service.set("categories:roots", []) is False
    assert service.get("categories:roots") is None
    assert service.invalidate_all() == 0


def test_redis_errors_are_logged_not_raised():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.setex.side_effect = redis.ConnectionError("down")
    client.scan_iter.side_effect = redis.ConnectionError("down")
    service = CacheService(redis_client=client)

    assert service.get("categories:roots") is None
    assert service.set("categories:roots", []) is False
    assert service.invalidate_all() == 0


def test_unreachable_redis_runs_uncached(monkeypatch):
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("refused")
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: client)

    service = CacheService(redis_url="redis://nowhere:6379/2")

    assert service.redis_client is None
