"""
Analytics cache

Keyed, TTL-bounded store for computed analytics payloads. The engine never
talks to a backend directly: callers obtain the configured CachePort via
get_cache() and tests can inject any implementation.

Key format: '<prefix>:<k1>:<v1>|<k2>:<v2>' with parameters sorted by name,
so the same query always maps to the same key.
"""
import json
import logging
import threading
import time
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import redis
from flask import current_app

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300

TEAM_ANALYTICS_TAG = 'analytics'
SUPERVISOR_ANALYTICS_TAG = 'supervisor-analytics'
EXECUTIVE_ANALYTICS_TAG = 'executive-analytics'
ANALYTICS_TAGS = (TEAM_ANALYTICS_TAG, SUPERVISOR_ANALYTICS_TAG, EXECUTIVE_ANALYTICS_TAG)

EXTENSION_KEY = 'analytics_cache'


def _format_param(value: Any) -> str:
    if value is None:
        return 'all'
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(str(item) for item in value)
        return ','.join(items) if items else 'all'
    return str(value)


def generate_cache_key(prefix: str, params: Dict[str, Any]) -> str:
    """
    Build a deterministic cache key.

    Example:
        >>> generate_cache_key('analytics', {'userId': 'u1', 'startDate': '2024-02-01',
        ...                                  'endDate': '2024-02-29', 'workerIds': None})
        'analytics:endDate:2024-02-29|startDate:2024-02-01|userId:u1|workerIds:all'
    """
    parts = '|'.join(f'{name}:{_format_param(params[name])}' for name in sorted(params))
    return f'{prefix}:{parts}'


def _key_belongs_to(key: str, requester_id: str) -> bool:
    """True if the key's userId parameter is the requester."""
    _, _, params = key.partition(':')
    return f'userId:{requester_id}' in params.split('|')


class CachePort(ABC):
    """Interface the analytics services use to store payloads"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value for ttl seconds (backend default when None)."""

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """All live keys."""

    @abstractmethod
    def clear(self) -> None:
        pass

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key under '<prefix>:'. Returns the number removed."""
        deleted = 0
        for key in self.keys():
            if key.startswith(prefix + ':'):
                self.delete(key)
                deleted += 1
        return deleted

    def delete_by_tag(self, requester_id: str, tags: Optional[Iterable[str]] = None) -> int:
        """
        Delete the requester's entries under the given tags (all analytics tags by default).

        Returns:
            Number of entries removed
        """
        deleted = 0
        for tag in tags or ANALYTICS_TAGS:
            for key in self.keys():
                if key.startswith(tag + ':') and _key_belongs_to(key, requester_id):
                    self.delete(key)
                    deleted += 1
        if deleted:
            logger.info(f"Invalidated {deleted} cache entries for requester {requester_id}")
        return deleted

    def cleanup(self) -> int:
        """Drop expired entries. Backends with native expiry have nothing to do."""
        return 0

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        pass


class InMemoryTTLCache(CachePort):
    """
    Process-local cache with per-entry TTL.

    Entries are timestamped with time.monotonic() so wall-clock changes
    never extend or cut short their lifetime. Expired entries are removed
    lazily on read and in bulk by cleanup().
    """

    def __init__(self, default_ttl: int = DEFAULT_TTL, clock=time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, tuple] = {}
        self._lock = threading.RLock()

    def _is_expired(self, entry: tuple, now: float) -> bool:
        stored_at, ttl, _ = entry
        return now - stored_at > ttl

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry[2]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), ttl or self.default_ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            expired = sum(1 for entry in self._entries.values() if self._is_expired(entry, now))
            total = len(self._entries)
        return {
            'backend': 'memory',
            'total': total,
            'active': total - expired,
            'expired': expired,
        }


class RedisCache(CachePort):
    """
    Redis-backed cache shared between gunicorn workers.

    Values are stored as JSON with SETEX so Redis expires them itself.
    """

    def __init__(self, client, default_ttl: int = DEFAULT_TTL, namespace: str = 'whs'):
        self.client = client
        self.default_ttl = default_ttl
        self.namespace = namespace

    @classmethod
    def from_url(cls, redis_url: str, password: Optional[str] = None,
                 default_ttl: int = DEFAULT_TTL) -> 'RedisCache':
        # Inject password into URL if it is configured separately
        if password and '@' not in redis_url:
            parts = redis_url.split('://')
            if len(parts) == 2:
                redis_url = f"{parts[0]}://:{urllib.parse.quote_plus(password)}@{parts[1]}"
        return cls(redis.from_url(redis_url, decode_responses=True), default_ttl=default_ttl)

    def _full_key(self, key: str) -> str:
        return f'{self.namespace}:{key}'

    def _strip(self, full_key: str) -> str:
        return full_key[len(self.namespace) + 1:]

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self.client.get(self._full_key(key))
        except redis.RedisError as e:
            logger.error(f"Redis cache read error: {e}")
            return None
        if data is None:
            return None
        return json.loads(data)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            self.client.setex(self._full_key(key), ttl or self.default_ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.error(f"Redis cache write error: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._full_key(key))
        except redis.RedisError as e:
            logger.error(f"Redis cache delete error: {e}")

    def keys(self) -> List[str]:
        try:
            return [self._strip(key) for key in self.client.scan_iter(match=f'{self.namespace}:*')]
        except redis.RedisError as e:
            logger.error(f"Redis cache scan error: {e}")
            return []

    def clear(self) -> None:
        for key in self.keys():
            self.delete(key)

    def stats(self) -> Dict[str, Any]:
        total = len(self.keys())
        return {
            'backend': 'redis',
            'total': total,
            'active': total,
            'expired': 0,
        }


def init_cache(app) -> CachePort:
    """Create the configured cache backend and register it on the app."""
    backend = app.config.get('CACHE_BACKEND', 'memory')
    ttl = app.config.get('ANALYTICS_CACHE_TTL', DEFAULT_TTL)

    if backend == 'redis':
        cache = RedisCache.from_url(
            app.config.get('REDIS_URL', 'redis://localhost:6379/0'),
            password=app.config.get('REDIS_PASSWORD'),
            default_ttl=ttl,
        )
    else:
        cache = InMemoryTTLCache(default_ttl=ttl)

    app.extensions[EXTENSION_KEY] = cache
    app.logger.info(f"Analytics cache initialized ({backend}, ttl={ttl}s)")
    return cache


def get_cache() -> CachePort:
    """Cache registered on the current app."""
    return current_app.extensions[EXTENSION_KEY]


def invalidate_requesters(requester_ids: Iterable[Optional[str]],
                          tags: Optional[Iterable[str]] = None) -> int:
    """
    Drop cached analytics for each requester after a data change.

    Cache failures are logged and never fail the mutation that triggered them.
    """
    deleted = 0
    tags = tuple(tags) if tags else ANALYTICS_TAGS
    try:
        cache = get_cache()
        for requester_id in {r for r in requester_ids if r}:
            deleted += cache.delete_by_tag(requester_id, tags)
    except Exception as e:
        logger.error(f"Error invalidating analytics cache: {e}")
    return deleted
