import fnmatch

import redis

from apps.api.guildboard.cache import MemoryCacheBackend, MetricsCache, RedisCacheBackend, generate_cache_key


class _BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def set(self, key, value):
        raise redis.ConnectionError("down")

    def delete(self, key):
        raise redis.ConnectionError("down")

    def scan_iter(self, match=None, count=None):
        raise redis.ConnectionError("down")

    def close(self):
        pass


class _DictRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def scan_iter(self, match=None, count=None):
        return [key for key in list(self.data) if fnmatch.fnmatchcase(key, match)]

    def close(self):
        pass


def test_generate_cache_key_sorts_parameters():
    key = generate_cache_key("metrics-individual", {"startDate": "a", "seasonName": "S5", "endDate": "single"})
    assert key == "metrics-individual:endDate:single|seasonName:S5|startDate:a"


def test_memory_backend_evicts_oldest_tenth():
    backend = MemoryCacheBackend(max_entries=10)
    for i in range(10):
        backend.set(f"k{i}", i)
    backend.set("k10", 10)
    assert backend.get("k0") is None
    assert backend.get("k1") == 1
    assert backend.size() == 10


def test_disabled_cache_is_inert():
    cache = MetricsCache(enabled=False)
    cache.init()
    assert cache.set("a", 1) is False
    assert cache.get("a") is None
    assert cache.invalidate_season_metrics("S5") == 0


def test_invalidate_season_metrics_only_drops_that_season():
    cache = MetricsCache(enabled=True, redis_url=None)
    cache.init()
    s5 = generate_cache_key("metrics-individual", {"seasonName": "S5", "startDate": "start", "endDate": "single"})
    s55 = generate_cache_key("metrics-individual", {"seasonName": "S55", "startDate": "start", "endDate": "single"})
    summary = generate_cache_key(
        "metrics-kvk-season-summary",
        {"seasonName": "S5", "startDate": "start", "endDate": "final", "topN": 300},
    )
    cache.set(s5, {"v": 1})
    cache.set(s55, {"v": 2})
    cache.set(summary, {"v": 3})
    cache.set("other:seasonName:S5", {"v": 4})

    assert cache.invalidate_season_metrics("S5") == 2
    assert cache.get(s5) is None
    assert cache.get(summary) is None
    assert cache.get(s55) == {"v": 2}
    assert cache.get("other:seasonName:S5") == {"v": 4}


def test_redis_failures_fall_back_to_memory():
    cache = MetricsCache(enabled=True, redis_backend=RedisCacheBackend(_BrokenRedis()))
    cache.init()
    assert cache.set("k", {"v": 1}) is True
    assert cache.get("k") == {"v": 1}
    key = generate_cache_key("metrics-kvk-season", {"seasonName": "S5", "startDate": "a", "endDate": "b"})
    cache.set(key, {"v": 2})
    assert cache.invalidate_season_metrics("S5") == 1


def test_redis_backend_stores_json_and_scans_patterns():
    client = _DictRedis()
    cache = MetricsCache(enabled=True, redis_backend=RedisCacheBackend(client))
    cache.init()
    key = generate_cache_key("metrics-kvk-season-detailed", {"seasonName": "S5", "startDate": "a", "endDate": "single"})
    cache.set(key, {"rows": [1, 2]})
    assert client.data[key] == '{"rows":[1,2]}'
    cache.memory.clear()
    assert cache.get(key) == {"rows": [1, 2]}
    assert cache.invalidate_season_metrics("S5") == 1
    assert key not in client.data
    assert cache.status()["type"] == "redis"
