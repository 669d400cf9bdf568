from typing import Any, Dict, Iterable, List

from sqlalchemy import select, union
from sqlalchemy.orm import Session

from backoffice.core.constants import Roles
from backoffice.core.logging_config import get_logger
from backoffice.models.associations import (
    group_permissions,
    group_roles,
    group_user,
    role_permissions,
    user_permissions,
    user_roles,
)
from backoffice.models.iam import Permission, Role
from backoffice.services.group_permission_cache_service import GroupPermissionCacheService
from backoffice.services.permission_cache_service import PermissionCacheService

logger = get_logger(__name__)


class PermissionService:
    """
    Effective permissions of a user: direct grants, grants through the
    user's roles, and everything inherited through group membership.
    """

    def __init__(
        self,
        db: Session,
        permission_cache: PermissionCacheService,
        group_permission_cache: GroupPermissionCacheService,
    ):
        self.db = db
        self.permission_cache = permission_cache
        self.group_permission_cache = group_permission_cache

    def _names(self, permission_ids) -> List[str]:
        return sorted(set(
            self.db.execute(select(Permission.name).where(Permission.id.in_(permission_ids))).scalars()
        ))

    def get_group_permissions(self, user_id: int) -> List[str]:
        """Permission names inherited from the user's groups (direct and via group roles)"""
        cached = self.group_permission_cache.get(user_id)
        if cached is not None:
            return cached

        user_groups = select(group_user.c.group_id).where(group_user.c.user_id == user_id)
        direct = select(group_permissions.c.permission_id).where(group_permissions.c.group_id.in_(user_groups))
        via_roles = (
            select(role_permissions.c.permission_id)
            .join(group_roles, group_roles.c.role_id == role_permissions.c.role_id)
            .where(group_roles.c.group_id.in_(user_groups))
        )
        names = self._names(union(direct, via_roles).subquery().select())

        self.group_permission_cache.put(user_id, names)
        return names

    def get_user_permissions(self, user_id: int) -> List[str]:
        """All effective permission names of a user, sorted"""
        cached = self.permission_cache.get(user_id)
        if cached is not None:
            return cached

        direct = select(user_permissions.c.permission_id).where(user_permissions.c.user_id == user_id)
        via_roles = (
            select(role_permissions.c.permission_id)
            .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
            .where(user_roles.c.user_id == user_id)
        )
        names = set(self._names(union(direct, via_roles).subquery().select()))
        names.update(self.get_group_permissions(user_id))
        result = sorted(names)

        self.permission_cache.put(user_id, result)
        logger.debug(f"Computed {len(result)} permissions for user {user_id}")
        return result

    def is_super_admin(self, user_id: int) -> bool:
        """Super Admin is only ever held directly; groups cannot carry it"""
        return self.db.execute(
            select(user_roles.c.user_id)
            .join(Role, Role.id == user_roles.c.role_id)
            .where(user_roles.c.user_id == user_id, Role.name == Roles.SUPER_ADMIN)
        ).first() is not None

    def has_permission(self, user_id: int, permission_name: str) -> bool:
        """
        Exact match, or for 'module.*' any permission under that module.
        Super Admin users always pass.
        """
        if self.is_super_admin(user_id):
            return True

        permissions = self.get_user_permissions(user_id)
        if permission_name.endswith(".*"):
            prefix = permission_name[:-2] + "."
            return any(name.startswith(prefix) for name in permissions)
        return permission_name in permissions

    @staticmethod
    def group_by_module(permissions: Iterable[Permission]) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        """
        Group permissions as {module: {resource: [{id, name, action}]}}.

        'blog.posts.view' -> module 'blog', resource 'posts', action 'view';
        missing parts become 'other'. Modules and resources are sorted.
        """
        grouped: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        for permission in permissions:
            parts = permission.name.split(".")
            module = parts[0] if len(parts) > 0 and parts[0] else "other"
            resource = parts[1] if len(parts) > 1 else "other"
            action = parts[2] if len(parts) > 2 else "other"
            grouped.setdefault(module, {}).setdefault(resource, []).append(
                {"id": permission.id, "name": permission.name, "action": action}
            )

        return {
            module: {resource: grouped[module][resource] for resource in sorted(grouped[module])}
            for module in sorted(grouped)
        }
