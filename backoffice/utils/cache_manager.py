"""
Cache store port and adapters for the back office.

Services never talk to Redis directly: they receive a CacheManager wrapping a
CacheStore (Redis in deployments, in-memory for local runs and tests). The
manager adds key namespacing, tag-based bulk invalidation and the error
handling policy (cache failures are logged, never raised).
"""
import json
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple, TypeVar, Union

import redis

from backoffice.config import settings
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')
Tags = Union[str, Iterable[str], None]


class CacheTagError(Exception):
    """Raised by stores whose driver cannot group keys under tags"""


class CacheStore(Protocol):
    """What CacheManager needs from a backend; tag methods may raise CacheTagError"""

    supports_tags: bool

    def get(self, key: str) -> Optional[Any]: ...
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...
    def delete(self, key: str) -> bool: ...
    def add_to_tags(self, key: str, tags: List[str], ttl: Optional[int] = None) -> None: ...
    def forget_tag(self, tag: str) -> int: ...
    def flush(self, prefix: str = "") -> None: ...


class InMemoryCacheStore:
    """Thread-safe dict store with per-key expiry"""

    def __init__(self, supports_tags: bool = True):
        self.supports_tags = supports_tags
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = time.monotonic() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def add_to_tags(self, key: str, tags: List[str], ttl: Optional[int] = None) -> None:
        if not self.supports_tags:
            raise CacheTagError("tags not supported by this cache store")
        with self._lock:
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def forget_tag(self, tag: str) -> int:
        if not self.supports_tags:
            raise CacheTagError("tags not supported by this cache store")
        with self._lock:
            keys = self._tags.pop(tag, set())
            return sum(1 for key in keys if self._data.pop(key, None) is not None)

    def flush(self, prefix: str = "") -> None:
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]
            for tag in [t for t in self._tags if t.startswith(prefix)]:
                del self._tags[tag]


class RedisCacheStore:
    """Redis store; values are JSON encoded, tags are Redis sets of member keys"""

    supports_tags = True

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        if redis_client:
            self.redis_client = redis_client
        else:
            self.redis_client = redis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                db=settings.REDIS_DB,
                password=settings.REDIS_PASSWORD or None,
                decode_responses=True,  # For string data
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True
            )

    @staticmethod
    def _tag_key(tag: str) -> str:
        return f"tag:{tag}"

    def get(self, key: str) -> Optional[Any]:
        data = self.redis_client.get(key)
        return json.loads(data) if data else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        payload = json.dumps(value)
        if ttl:
            return bool(self.redis_client.setex(key, ttl, payload))
        return bool(self.redis_client.set(key, payload))

    def delete(self, key: str) -> bool:
        return bool(self.redis_client.delete(key))

    def add_to_tags(self, key: str, tags: List[str], ttl: Optional[int] = None) -> None:
        pipe = self.redis_client.pipeline()
        for tag in tags:
            tag_key = self._tag_key(tag)
            pipe.sadd(tag_key, key)
            if ttl:
                # the tag set lives as long as its most recently tagged key
                pipe.expire(tag_key, ttl)
        pipe.execute()

    def forget_tag(self, tag: str) -> int:
        tag_key = self._tag_key(tag)
        keys = list(self.redis_client.smembers(tag_key))
        deleted = self.redis_client.delete(*keys) if keys else 0
        self.redis_client.delete(tag_key)
        return deleted

    def flush(self, prefix: str = "") -> None:
        for pattern in (f"{prefix}*", f"tag:{prefix}*"):
            keys = list(self.redis_client.scan_iter(match=pattern, count=100))
            if keys:
                self.redis_client.delete(*keys)


class CacheManager:
    """Namespaced cache with tags, TTL and graceful failure handling"""

    def __init__(self, store: CacheStore, prefix: str = settings.CACHE_KEY_PREFIX):
        self.store = store
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def _tags(self, tags: Tags) -> List[str]:
        if tags is None:
            return []
        if isinstance(tags, str):
            tags = [tags]
        return [self._key(tag) for tag in tags]

    def supports_tags(self) -> bool:
        return bool(getattr(self.store, "supports_tags", False))

    def get(self, key: str, default: Any = None, tags: Tags = None) -> Any:
        """Get value from cache; tags are accepted for symmetry with set()"""
        try:
            value = self.store.get(self._key(key))
        except Exception as e:
            logger.warning(f"Cache get failed for {key} (tags={tags}): {e}")
            return default
        return default if value is None else value

    def set(self, key: str, value: Any, ttl: Optional[int] = 300, tags: Tags = None) -> bool:
        """Set value in cache with TTL, registering the key under each tag"""
        full_key = self._key(key)
        try:
            stored = self.store.set(full_key, value, ttl)
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

        tag_keys = self._tags(tags)
        if tag_keys:
            try:
                self.store.add_to_tags(full_key, tag_keys, ttl)
            except CacheTagError:
                logger.debug(f"Cache store lacks tag support, stored {key} untagged")
            except Exception as e:
                logger.warning(f"Cache tag registration failed for {key} (tags={tags}): {e}")
        return stored

    def delete(self, key: str, tags: Tags = None) -> bool:
        """Delete key from cache"""
        try:
            return bool(self.store.delete(self._key(key)))
        except Exception as e:
            logger.warning(f"Cache delete failed for {key} (tags={tags}): {e}")
            return False

    def remember(self, key: str, ttl: Optional[int], callback: Callable[[], T], tags: Tags = None) -> T:
        """Return the cached value or compute, store and return it"""
        cached = self.get(key, tags=tags)
        if cached is not None:
            logger.debug(f"Cache HIT: {key}")
            return cached

        logger.debug(f"Cache MISS: {key}")
        value = callback()
        self.set(key, value, ttl, tags=tags)
        return value

    def clear_tag(self, tag: str) -> bool:
        """
        Remove every key registered under a tag.

        Stores without tag support fall back to flushing the whole namespace.
        """
        try:
            deleted = self.store.forget_tag(self._key(tag))
            logger.debug(f"Cleared cache tag {tag} ({deleted} keys)")
            return True
        except CacheTagError:
            logger.debug(f"Cache store lacks tag support, flushing namespace instead of tag {tag}")
            return self.flush()
        except Exception as e:
            logger.warning(f"Cache tag clear failed for {tag}: {e}")
            return False

    def flush(self) -> bool:
        try:
            self.store.flush(self._key(""))
            return True
        except Exception as e:
            logger.warning(f"Cache flush failed: {e}")
            return False


_cache_manager: Optional[CacheManager] = None
_cache_lock = threading.Lock()


def build_cache_store() -> CacheStore:
    if settings.USE_REDIS:
        return RedisCacheStore()
    return InMemoryCacheStore()


def get_cache_manager() -> CacheManager:
    """Process-wide cache manager; also used as a FastAPI dependency"""
    global _cache_manager
    if _cache_manager is None:
        with _cache_lock:
            if _cache_manager is None:
                _cache_manager = CacheManager(build_cache_store())
                logger.info(f"Cache manager initialised with {type(_cache_manager.store).__name__}")
    return _cache_manager
