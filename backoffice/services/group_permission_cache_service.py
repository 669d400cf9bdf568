from typing import Optional

from backoffice.config import settings
from backoffice.services.permission_cache_service import UserScopedCache
from backoffice.utils.cache_manager import CacheManager


class GroupPermissionCacheService(UserScopedCache):
    """Permission names a user inherits through group membership"""

    key_prefix = "group_permissions"
    tag = "group_permissions"

    def __init__(self, cache: CacheManager, ttl: Optional[int] = None):
        super().__init__(cache, ttl if ttl is not None else settings.GROUP_PERMISSION_CACHE_TTL)
