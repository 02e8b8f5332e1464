"""Dual-layer caching with Redis primary and in-memory LRU fallback.

:class:`CacheManager` provides transparent failover: if Redis is
unavailable, all operations degrade to a process-local LRU cache so the
service never blocks on a missing cache backend.

:class:`RecommendationCache` sits on top and owns the per-user ranked
recommendation lists.  Each entry is written as a single serialised value
under one key, so a write either replaces the previous list completely
or not at all.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import orjson
import structlog
from pydantic import ValidationError

from yojana.models.recommendation import RecommendationCacheEntry, RecommendedScheme

logger = structlog.get_logger(__name__)

DEFAULT_RECOMMENDATION_TTL = 6 * 60 * 60  # 6 hours


# ---------------------------------------------------------------------------
# Cache backend protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class CacheBackend(Protocol):
    """Async cache backend interface."""

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisCacheBackend:
    """Redis-backed cache using ``redis.asyncio`` with connection pooling."""

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str = "redis://localhost:6379/0", *, max_connections: int = 20) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def get(self, key: str) -> bytes | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        # SET with EX replaces value and expiry in one command
        if ttl_seconds is not None:
            await self._redis.set(key, value, ex=ttl_seconds)
        else:
            await self._redis.set(key, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.aclose()

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False


# ---------------------------------------------------------------------------
# In-memory LRU backend
# ---------------------------------------------------------------------------


class _CacheEntry:
    __slots__ = ("expires_at", "value")

    def __init__(self, value: bytes, ttl_seconds: int | None) -> None:
        self.value = value
        self.expires_at: float | None = (time.monotonic() + ttl_seconds) if ttl_seconds is not None else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class InMemoryCacheBackend:
    """OrderedDict-based LRU cache with O(1) get/set/delete.

    Guarded by an :class:`asyncio.Lock`, which is enough for a
    single-process async service.  Expired entries are evicted lazily on
    access.
    """

    __slots__ = ("_data", "_lock", "_max_size")

    def __init__(self, *, max_size: int = 10_000) -> None:
        self._max_size = max_size
        self._data: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expired:
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return entry.value

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        async with self._lock:
            if key in self._data:
                del self._data[key]
            while len(self._data) >= self._max_size:
                self._data.popitem(last=False)
            self._data[key] = _CacheEntry(value, ttl_seconds)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    @property
    def size(self) -> int:
        """Current number of (possibly expired) entries."""
        return len(self._data)


# ---------------------------------------------------------------------------
# CacheManager
# ---------------------------------------------------------------------------


def _stable_hash(text: str) -> str:
    """Deterministic, URL-safe hash for cache keys."""
    return hashlib.sha256(text.encode()).hexdigest()[:16]


class CacheManager:
    """Caching facade with automatic Redis -> in-memory fallback.

    Parameters
    ----------
    redis_url:
        Redis connection string.  Pass *None* to skip Redis entirely.
    namespace:
        Prefix prepended to every key (e.g. ``"recommendations:"``).
    inmemory_max_size:
        Maximum entries for the in-memory fallback cache.
    """

    __slots__ = (
        "_fallback",
        "_namespace",
        "_redis",
        "_redis_available",
        "_redis_checked",
    )

    def __init__(
        self,
        *,
        redis_url: str | None = "redis://localhost:6379/0",
        namespace: str = "",
        inmemory_max_size: int = 10_000,
    ) -> None:
        self._namespace = namespace
        self._fallback = InMemoryCacheBackend(max_size=inmemory_max_size)
        self._redis: RedisCacheBackend | None = None
        self._redis_available: bool = False
        self._redis_checked: bool = False

        if redis_url is not None:
            try:
                self._redis = RedisCacheBackend(url=redis_url)
            except Exception:
                logger.warning("cache.redis_init_failed", redis_url=redis_url)
                self._redis = None

    def _make_key(self, key: str) -> str:
        if self._namespace:
            return f"{self._namespace}{key}"
        return key

    async def _ensure_checked(self) -> None:
        """Ping Redis once, lazily, and remember the answer."""
        if self._redis is not None and not self._redis_checked:
            self._redis_checked = True
            self._redis_available = await self._redis.ping()
            if self._redis_available:
                logger.info("cache.redis_connected", namespace=self._namespace)
            else:
                logger.warning("cache.redis_unavailable_using_inmemory", namespace=self._namespace)

    async def _safe_op(self, method: str, key: str, *args: Any, **kwargs: Any) -> Any:
        """Try Redis; on failure, flip to in-memory and retry transparently."""
        await self._ensure_checked()
        if self._redis_available and self._redis is not None:
            try:
                return await getattr(self._redis, method)(key, *args, **kwargs)
            except Exception:
                logger.warning("cache.redis_op_failed", method=method, key=key)
                self._redis_available = False

        return await getattr(self._fallback, method)(key, *args, **kwargs)

    @property
    def backend_name(self) -> str:
        return "redis" if self._redis_available else "inmemory"

    async def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a cached value, deserialised from bytes via *orjson*."""
        raw: bytes | None = await self._safe_op("get", self._make_key(key))
        if raw is None:
            return default
        try:
            return orjson.loads(raw)
        except (orjson.JSONDecodeError, ValueError):
            return default

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Serialise *value* via *orjson* and store it."""
        raw = orjson.dumps(value)
        await self._safe_op("set", self._make_key(key), raw, ttl_seconds=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._safe_op("delete", self._make_key(key))

    async def close(self) -> None:
        """Shut down the Redis connection pool (if any)."""
        if self._redis is not None:
            with contextlib.suppress(Exception):
                await self._redis.close()

    @staticmethod
    def for_namespace(
        namespace: str,
        *,
        redis_url: str | None = "redis://localhost:6379/0",
        inmemory_max_size: int = 10_000,
    ) -> CacheManager:
        """Create a :class:`CacheManager` scoped to *namespace*.

        Example::

            recommendation_cache = CacheManager.for_namespace("recommendations:")
            catalog_cache = CacheManager.for_namespace("catalog:")
        """
        return CacheManager(
            redis_url=redis_url,
            namespace=namespace,
            inmemory_max_size=inmemory_max_size,
        )


# ---------------------------------------------------------------------------
# RecommendationCache
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecommendationCache:
    """Per-user store of ranked recommendation lists with a time-to-live.

    ``get`` never returns an entry once ``now >= expires_at``, whatever
    the backend's own expiry says.  Backend errors are logged and treated
    as a miss (reads) or a no-op (writes): the engine then recomputes on
    every request instead of failing.
    """

    __slots__ = ("_cache", "_clock", "_default_ttl")

    def __init__(
        self,
        cache: CacheManager,
        *,
        default_ttl_seconds: int = DEFAULT_RECOMMENDATION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    @staticmethod
    def _key(user_id: str) -> str:
        # raw user ids stay out of backend key names
        return f"user:{_stable_hash(user_id)}"

    async def get(self, user_id: str) -> RecommendationCacheEntry | None:
        try:
            raw = await self._cache.get(self._key(user_id))
        except Exception:
            logger.warning("recommendation_cache.read_failed", user_id=user_id, exc_info=True)
            return None
        if raw is None:
            return None

        try:
            entry = RecommendationCacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("recommendation_cache.corrupt_entry", user_id=user_id)
            await self.invalidate(user_id)
            return None

        if entry.user_id != user_id or self._clock() >= entry.expires_at:
            return None
        return entry

    async def put(
        self,
        user_id: str,
        recommendations: list[RecommendedScheme],
        ttl_seconds: int | None = None,
    ) -> RecommendationCacheEntry:
        """Store *recommendations* for *user_id*, replacing any previous entry."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        generated_at = self._clock()
        entry = RecommendationCacheEntry(
            user_id=user_id,
            recommendations=recommendations,
            generated_at=generated_at,
            expires_at=generated_at + timedelta(seconds=ttl),
        )
        try:
            await self._cache.set(self._key(user_id), entry.model_dump(mode="json"), ttl_seconds=ttl)
        except Exception:
            logger.warning("recommendation_cache.write_failed", user_id=user_id, exc_info=True)
        return entry

    async def invalidate(self, user_id: str) -> None:
        try:
            await self._cache.delete(self._key(user_id))
        except Exception:
            logger.warning("recommendation_cache.invalidate_failed", user_id=user_id, exc_info=True)
            return
        logger.info("recommendation_cache.invalidated", user_id=user_id)
