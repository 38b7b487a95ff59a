"""User information cache implementations.

This module provides implementations of the UserInfoCache protocol, used by
the request authenticator to avoid calling the userinfo endpoint on every
request.

Implementations:
- InMemoryUserInfoCache: Simple in-process caching (good for dev/single-instance)
- RedisUserInfoCache: Distributed caching via Redis (good for multi-instance production)

Both implementations support TTL-based expiration.

Security Note:
    Cached user information may lag behind provider-side changes for up to the
    TTL. Authenticate with ``refresh=True`` where fresh data matters.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocols import UserInfo


@dataclass(slots=True)
class _CacheItem:
    """Internal cache entry with TTL tracking."""

    value: UserInfo
    expires_at: float


class InMemoryUserInfoCache:
    """In-process memory cache for user information.

    Expired entries are lazily removed on access.

    Example:
        ```python
        cache = InMemoryUserInfoCache(ttl_seconds=300)
        cache.set("user-id", {"sub": "user-id", "email": "anne@bretagne.duchy"})
        cache.get("user-id")
        ```

    Attributes:
        _store: Internal dict mapping user id -> _CacheItem.
    """

    def __init__(self, ttl_seconds: float = 300) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._lock = threading.Lock()
        self._store: dict[str, _CacheItem] = {}

    def get(self, user_id: str) -> UserInfo | None:
        with self._lock:
            item = self._store.get(user_id)
            if not item:
                return None

            if time.time() >= item.expires_at:
                # Lazy removal of expired entry
                self._store.pop(user_id, None)
                return None

            return item.value

    def set(self, user_id: str, userinfo: UserInfo) -> None:
        with self._lock:
            self._store[user_id] = _CacheItem(value=userinfo, expires_at=time.time() + self._ttl)

    def remove(self, user_id: str) -> None:
        with self._lock:
            self._store.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


class RedisUserInfoCache:
    """Redis-backed distributed cache for user information.

    Entries are stored as JSON under ``<prefix><user id>`` with Redis TTLs.

    Dependencies:
        Requires redis package: pip install redis

    Example:
        ```python
        import redis

        client = redis.Redis(host="localhost", port=6379, decode_responses=True)
        cache = RedisUserInfoCache(redis_client=client)
        ```

    Attributes:
        _client: Redis client instance (from redis package).
    """

    def __init__(
        self,
        redis_client: Any,
        ttl_seconds: int = 300,
        key_prefix: str = "userinfo:",
    ) -> None:
        """Initialize Redis cache.

        Args:
            redis_client: Redis client instance. Must support get(), setex(),
                delete() and scan_iter().
            ttl_seconds: Lifetime of each entry.
            key_prefix: Namespace of the cache keys.

        Note:
            The type is Any to avoid hard dependency on redis package types.
            Users can pass any Redis-compatible client (redis-py, fakeredis, etc.).
        """
        self._client = redis_client
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}{user_id}"

    def get(self, user_id: str) -> UserInfo | None:
        """Retrieve cached user information.

        Raises:
            RuntimeError: If deserialization fails (corrupted cache data).
        """
        data = self._client.get(self._key(user_id))
        if data is None:
            return None

        try:
            return json.loads(data)
        except (json.JSONDecodeError, ValueError) as e:
            raise RuntimeError("Failed to deserialize cached userinfo") from e

    def set(self, user_id: str, userinfo: UserInfo) -> None:
        """Cache user information with TTL.

        Raises:
            RuntimeError: If Redis operation fails.
        """
        try:
            self._client.setex(self._key(user_id), self._ttl, json.dumps(dict(userinfo)))
        except Exception as e:
            raise RuntimeError("Failed to cache userinfo in Redis") from e

    def remove(self, user_id: str) -> None:
        self._client.delete(self._key(user_id))

    def clear(self) -> None:
        for key in list(self._client.scan_iter(match=f"{self._prefix}*")):
            self._client.delete(key)
