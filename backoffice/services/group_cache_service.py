from typing import Iterable

from backoffice.core.logging_config import get_logger
from backoffice.services.group_permission_cache_service import GroupPermissionCacheService
from backoffice.services.menu_cache_service import MenuCacheService
from backoffice.services.permission_cache_service import PermissionCacheService

logger = get_logger(__name__)


class GroupCacheService:
    """
    Single point for cache invalidation when memberships, roles or
    permissions change.

    Every call clears the broad permission tag, then the per-user permission,
    group permission and menu entries of each affected user. Entries are
    recomputed lazily on next access.
    """

    def __init__(
        self,
        permission_cache: PermissionCacheService,
        group_permission_cache: GroupPermissionCacheService,
        menu_cache: MenuCacheService,
    ):
        self.permission_cache = permission_cache
        self.group_permission_cache = group_permission_cache
        self.menu_cache = menu_cache

    def _clear(self, user_ids: Iterable[int], reason: str) -> None:
        self.permission_cache.clear()

        affected = sorted(set(user_ids))
        for user_id in affected:
            self.permission_cache.clear_for_user(user_id)
            self.group_permission_cache.clear_for_user(user_id)
            self.menu_cache.clear_for_user(user_id)

        logger.debug(f"Cleared caches for {reason} ({len(affected)} users)")

    def clear_for_membership_change(self, user_ids: Iterable[int]) -> None:
        self._clear(user_ids, "membership change")

    def clear_for_permission_change(self, user_ids: Iterable[int]) -> None:
        self._clear(user_ids, "permission change")

    def clear_for_role_change(self, user_ids: Iterable[int]) -> None:
        self._clear(user_ids, "role change")

    def clear_for_group_deletion(self, user_ids: Iterable[int]) -> None:
        self._clear(user_ids, "group deletion")

    def clear_for_user_access_change(self, user_id: int) -> None:
        self._clear([user_id], "user access change")
