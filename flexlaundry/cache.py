"""
Redis-backed JSON cache for CMS reads
Cache failures degrade to misses so public pages keep working without Redis
"""

import json
import logging
from typing import Any, Callable, Optional, TypeVar

from .redis_client import get_redis_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 60


class Cache:
    """JSON values in Redis, keyed by plain strings such as 'cms:faq'"""

    def __init__(self, client=None):
        self.redis_client = client

    @property
    def client(self):
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
        return self.redis_client

    def _run(self, operation: str, key: str, call: Callable[[Any], T], default: T) -> T:
        client = self.client
        if client is None:
            return default
        try:
            return call(client)
        except Exception as e:
            logger.error(f"❌ Cache {operation} failed for {key}: {e}")
            return default

    def get(self, key: str) -> Optional[Any]:
        raw = self._run("get", key, lambda c: c.get(key), None)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"⚠️ Dropping unreadable cache entry {key}")
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
        payload = json.dumps(value)
        return self._run("set", key, lambda c: bool(c.setex(key, ttl, payload)), False)

    def delete(self, key: str) -> bool:
        return self._run("delete", key, lambda c: bool(c.delete(key)), False)

    def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob such as 'cms:*'"""

        def _delete(c) -> int:
            keys = list(c.scan_iter(match=pattern))
            return c.delete(*keys) if keys else 0

        deleted = self._run("delete_pattern", pattern, _delete, 0)
        if deleted:
            logger.info(f"🧹 Cleared {deleted} cache keys matching {pattern}")
        return deleted


cache = Cache()
