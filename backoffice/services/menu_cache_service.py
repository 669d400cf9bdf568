from typing import Optional

from backoffice.config import settings
from backoffice.services.permission_cache_service import UserScopedCache
from backoffice.utils.cache_manager import CacheManager


class MenuCacheService(UserScopedCache):
    """Navigation menu entries derived from a user's permissions"""

    key_prefix = "menus"
    tag = "menus"

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        super().__init__(cache, ttl if ttl is not None else settings.MENU_CACHE_TTL)
