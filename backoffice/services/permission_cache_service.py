from typing import List, Optional

from backoffice.config import settings
from backoffice.core.logging_config import get_logger
from backoffice.utils.cache_manager import CacheManager

logger = get_logger(__name__)


class UserScopedCache:
    """
    Per-user cached list registered under one broad tag.

    Entries are only ever cleared, never updated in place; the owner
    recomputes lazily on the next read.
    """

    key_prefix: str = ""
    tag: str = ""

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        self.cache = cache
        self.ttl = ttl

    def key(self, user_id: int) -> str:
        return f"{self.key_prefix}:user:{user_id}"

    def get(self, user_id: int) -> Optional[List]:
        return self.cache.get(self.key(user_id), tags=self.tag)

    def put(self, user_id: int, values: List) -> None:
        self.cache.set(self.key(user_id), list(values), self.ttl, tags=self.tag)

    def clear_for_user(self, user_id: int) -> None:
        self.cache.delete(self.key(user_id), tags=self.tag)

    def clear(self) -> None:
        self.cache.clear_tag(self.tag)
        logger.debug(f"Cleared {self.tag} cache tag")


class PermissionCacheService(UserScopedCache):
    """Effective permission names per user"""

    key_prefix = "permissions"
    tag = "permissions"

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        super().__init__(cache, ttl if ttl is not None else settings.PERMISSION_CACHE_TTL)
