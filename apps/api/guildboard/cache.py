from __future__ import annotations

import json
import logging
import threading
from collections import OrderedDict
from typing import Any, List, Mapping, Optional

import redis

from .config import CACHE_ENABLED, CACHE_MAX_MEMORY_ENTRIES, REDIS_URL


logger = logging.getLogger(__name__)

METRICS_PREFIXES = (
    "metrics-individual",
    "metrics-kvk-season",
    "metrics-kvk-season-detailed",
    "metrics-kvk-season-summary",
)


def generate_cache_key(prefix: str, params: Mapping[str, object]) -> str:
    """``prefix:k1:v1|k2:v2`` with parameters sorted by name."""
    joined = "|".join(f"{key}:{params[key]}" for key in sorted(params))
    return f"{prefix}:{joined}"


class MemoryCacheBackend:
    name = "memory"

    def __init__(self, max_entries: int = CACHE_MAX_MEMORY_ENTRIES) -> None:
        self.max_entries = max(1, int(max_entries))
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, Any]" = OrderedDict()

    def _evict_oldest(self) -> None:
        if len(self._entries) < self.max_entries:
            return
        drop = max(1, self.max_entries // 10)
        for _ in range(drop):
            if not self._entries:
                break
            self._entries.popitem(last=False)

    def get(self, key: str) -> Any:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._entries:
                self._evict_oldest()
            self._entries[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self, pattern: str) -> List[str]:
        with self._lock:
            return [key for key in self._entries if pattern in key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


class RedisCacheBackend:
    name = "redis"

    def __init__(self, client: "redis.Redis") -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=5,
        )
        return cls(client)

    def ping(self) -> bool:
        return bool(self.client.ping())

    def get(self, key: str) -> Any:
        raw = self.client.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self.client.set(key, json.dumps(value, separators=(",", ":")))

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def keys(self, pattern: str) -> List[str]:
        match = pattern if "*" in pattern else f"*{pattern}*"
        return list(self.client.scan_iter(match=match, count=100))

    def size(self) -> int:
        return int(self.client.dbsize())

    def close(self) -> None:
        self.client.close()


class MetricsCache:
    """Read-through cache for metrics payloads.

    Redis is used when configured and reachable; otherwise (and whenever a
    Redis call fails) the in-process memory backend serves. Nothing here
    raises: failures are logged and behave like a miss.
    """

    def __init__(
        self,
        enabled: bool = CACHE_ENABLED,
        redis_url: Optional[str] = REDIS_URL,
        max_memory_entries: int = CACHE_MAX_MEMORY_ENTRIES,
        redis_backend: Optional[RedisCacheBackend] = None,
    ) -> None:
        self.enabled = bool(enabled)
        self.redis_url = redis_url
        self.memory = MemoryCacheBackend(max_memory_entries)
        self.redis: Optional[RedisCacheBackend] = redis_backend
        self._initialized = False

    def init(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        if not self.enabled:
            logger.info("Metrics cache disabled")
            return
        if self.redis is None and self.redis_url:
            try:
                backend = RedisCacheBackend.from_url(self.redis_url)
                backend.ping()
                self.redis = backend
            except redis.RedisError as exc:
                logger.warning("Redis unavailable, using memory cache: %s", exc)
                self.redis = None
        logger.info("Metrics cache ready (backend=%s)", self.backend_name)

    def dispose(self) -> None:
        if self.redis is not None:
            try:
                self.redis.close()
            except redis.RedisError as exc:
                logger.warning("Redis close failed: %s", exc)
            self.redis = None
        self.memory.clear()
        self._initialized = False

    @property
    def backend_name(self) -> str:
        return self.redis.name if self.redis is not None else self.memory.name

    def get(self, key: str) -> Any:
        if not self.enabled:
            return None
        if self.redis is not None:
            try:
                return self.redis.get(key)
            except (redis.RedisError, ValueError) as exc:
                logger.warning("Redis get failed for %s, falling back to memory: %s", key, exc)
        return self.memory.get(key)

    def set(self, key: str, value: Any) -> bool:
        if not self.enabled:
            return False
        if self.redis is not None:
            try:
                self.redis.set(key, value)
            except (redis.RedisError, TypeError, ValueError) as exc:
                logger.warning("Redis set failed for %s, falling back to memory: %s", key, exc)
        self.memory.set(key, value)
        return True

    def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        if self.redis is not None:
            try:
                self.redis.delete(key)
            except redis.RedisError as exc:
                logger.warning("Redis delete failed for %s: %s", key, exc)
        self.memory.delete(key)
        return True

    def invalidate_by_pattern(self, pattern: str) -> int:
        if not self.enabled:
            return 0
        keys = set(self.memory.keys(pattern))
        if self.redis is not None:
            try:
                keys.update(self.redis.keys(pattern))
            except redis.RedisError as exc:
                logger.warning("Redis scan failed for pattern %s: %s", pattern, exc)
        for key in keys:
            self.delete(key)
        if keys:
            logger.info("Invalidated %s cache entries matching %s", len(keys), pattern)
        return len(keys)

    def invalidate_season_metrics(self, season_name: str) -> int:
        """Drop every cached metrics payload computed for ``season_name``."""
        if not self.enabled:
            return 0
        segment = f"seasonName:{season_name}"
        keys = {
            key
            for key in self.memory.keys(segment)
            if _is_season_metrics_key(key, segment)
        }
        if self.redis is not None:
            for prefix in METRICS_PREFIXES:
                pattern = f"{prefix}:*{_glob_escape(segment)}*"
                try:
                    found = self.redis.keys(pattern)
                except redis.RedisError as exc:
                    logger.warning("Redis scan failed for pattern %s: %s", pattern, exc)
                    continue
                keys.update(key for key in found if _is_season_metrics_key(key, segment))
        for key in keys:
            self.delete(key)
        logger.info("Invalidated %s metrics cache entries for season %s", len(keys), season_name)
        return len(keys)

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "type": self.backend_name,
            "memoryEntries": self.memory.size(),
            "redisConfigured": bool(self.redis_url),
        }


def _is_season_metrics_key(key: str, segment: str) -> bool:
    prefix, _, params = key.partition(":")
    return prefix in METRICS_PREFIXES and segment in params.split("|")


def _glob_escape(text: str) -> str:
    return "".join(f"[{ch}]" if ch in "*?[]" else ch for ch in text)
