"""
Redis cache for menu browsing.

Values are namespaced per restaurant ({prefix}:tenant:{id}:{module}:{key}) so
one restaurant's invalidation never touches another's. Redis being disabled,
down or slow only ever costs a cache miss; request handling does not depend on it.
"""

import logging
import json
from typing import Any, Optional, Callable, Dict
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

_DECIMAL_TAG = '__decimal__'


def _encode(value: Any) -> str:
    def default(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {_DECIMAL_TAG: str(obj)}
        if hasattr(obj, 'isoformat'):
            return obj.isoformat()
        raise TypeError(f"{type(obj).__name__} cannot be cached")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def hook(obj: Dict[str, Any]) -> Any:
        if _DECIMAL_TAG in obj:
            return Decimal(obj[_DECIMAL_TAG])
        return obj
    return json.loads(raw, object_hook=hook)


class CacheService:
    """Cache-aside helper bound to one Redis connection pool."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled = False
        self._prefix = 'comanda'
        self._default_ttl = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._enabled = bool(app.config.get('CACHE_ENABLED', True))
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'comanda')
        self._default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)

        if not self._enabled:
            logger.info("[CACHE] disabled by configuration")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] ✓ connected to {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] ⚠ {redis_url} unreachable ({e}); serving without cache")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        return self._enabled and self.client is not None

    def _build_key(self, tenant_id: int, module: str, key: str) -> str:
        return f"{self._prefix}:tenant:{tenant_id}:{module}:{key}"

    def get(self, tenant_id: int, module: str, key: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self._build_key(tenant_id, module, key))
            return None if raw is None else _decode(raw)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] ✗ read {module}:{key} failed: {e}")
            return None

    def set(self, tenant_id: int, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.setex(self._build_key(tenant_id, module, key), ttl or self._default_ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] ✗ write {module}:{key} failed: {e}")
            return False

    def memoize(self, tenant_id: int, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Return the cached value or call loader_fn and cache its result."""
        cached = self.get(tenant_id, module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(tenant_id, module, key, value, ttl)
        return value

    def invalidate_module(self, tenant_id: int, module: str) -> int:
        """Drop every cached key of one module for one restaurant; returns how many."""
        if not self.is_available():
            return 0
        pattern = self._build_key(tenant_id, module, '*')
        try:
            stale = list(self.client.scan_iter(match=pattern, count=100))
            if stale:
                self.client.delete(*stale)
        except RedisError as e:
            logger.warning(f"[CACHE] ✗ invalidate {pattern} failed: {e}")
            return 0
        if stale:
            logger.info(f"[CACHE] invalidated {len(stale)} key(s) under {pattern}")
        return len(stale)


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> CacheService:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service
    return _cache_service


def get_cache() -> CacheService:
    """Shared instance; a disabled one when the app never initialized it."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
