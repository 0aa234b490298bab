"""TTL cache with pluggable backends, used for per-user menu trees."""

from __future__ import annotations

import fnmatch
import json
import logging
import time
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import redis

from .config import get_menu_cache_backend, get_menu_cache_ttl_seconds, get_redis_url
from .observability.metrics import record_menu_cache

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def delete_matching(self, pattern: str) -> int: ...


class InMemoryCacheBackend:
    """Process-local map guarded by a single lock.

    Expired entries are dropped on read, and swept from the whole map on write
    once it holds ``sweep_threshold`` keys.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_threshold: int = 1024) -> None:
        self._clock = clock
        self.sweep_threshold = sweep_threshold
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            now = self._clock()
            if len(self._entries) >= self.sweep_threshold:
                expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
                for k in expired:
                    del self._entries[k]
            self._entries[key] = (now + ttl_seconds, value)

    def delete_matching(self, pattern: str) -> int:
        with self._lock:
            keys = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCacheBackend:
    """Shared backend for multi-instance deployments; values are stored as JSON."""

    def __init__(self, client: "redis.Redis") -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except redis.RedisError:
            logger.warning("Cache read failed", extra={"cache_key": key}, exc_info=True)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        try:
            self.client.set(key, json.dumps(value), px=max(1, int(ttl_seconds * 1000)))
        except redis.RedisError:
            logger.warning("Cache write failed", extra={"cache_key": key}, exc_info=True)

    def delete_matching(self, pattern: str) -> int:
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if not keys:
                return 0
            return int(self.client.delete(*keys))
        except redis.RedisError:
            logger.warning("Cache invalidation failed", extra={"cache_pattern": pattern}, exc_info=True)
            return 0


class MenuTreeCache:
    """Menu trees keyed by ``(user_id, role)``.

    Entries are derived from the same inputs every time, so concurrent
    refreshes simply overwrite each other.
    """

    def __init__(self, backend: CacheBackend, ttl_seconds: float = 30.0, namespace: str = "menus") -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    def key(self, user_id: str, role: str) -> str:
        return f"{self.namespace}:{user_id}:{role}"

    def get(self, user_id: str, role: str) -> Optional[List[Any]]:
        value = self.backend.get(self.key(user_id, role))
        record_menu_cache(value is not None)
        return value

    def set(self, user_id: str, role: str, tree: List[Any]) -> None:
        if self.ttl_seconds <= 0:
            return
        self.backend.set(self.key(user_id, role), tree, self.ttl_seconds)

    def invalidate(self, user_id: Optional[str] = None, role: Optional[str] = None) -> int:
        pattern = f"{self.namespace}:{user_id or '*'}:{role or '*'}"
        removed = self.backend.delete_matching(pattern)
        logger.info("Menu tree cache invalidated", extra={"cache_pattern": pattern, "removed": removed})
        return removed


def build_cache_backend() -> CacheBackend:
    backend = get_menu_cache_backend()
    if backend == "redis":
        return RedisCacheBackend.from_url(get_redis_url())
    if backend != "memory":
        logger.warning("Unknown MENU_CACHE_BACKEND %r; using in-process cache", backend)
    return InMemoryCacheBackend()


def build_menu_tree_cache() -> MenuTreeCache:
    return MenuTreeCache(build_cache_backend(), ttl_seconds=get_menu_cache_ttl_seconds())


__all__ = [
    "CacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "MenuTreeCache",
    "build_cache_backend",
    "build_menu_tree_cache",
]
