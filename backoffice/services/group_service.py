from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import delete
from sqlalchemy.orm import Session

from backoffice.core.logging_config import get_logger
from backoffice.crud.group import group_crud
from backoffice.crud.membership import membership_crud
from backoffice.models.associations import group_permissions, group_roles
from backoffice.models.audit_log import AuditLogEvent
from backoffice.models.group import Group, slugify
from backoffice.schemas.audit_log import AuditContext
from backoffice.schemas.group import GroupCreate, GroupUpdate
from backoffice.services.audit_service import AuditService
from backoffice.services.group_cache_service import GroupCacheService
from backoffice.services.permission_cache_service import PermissionCacheService
from backoffice.services.relationship_sync import (
    RelationshipSyncService,
    SuperAdminRoleLookup,
    SyncResult,
    normalize_ids,
)
from backoffice.utils.response_utils import ResponseWrapper, not_found

logger = get_logger(__name__)

AUDITED_FIELDS = ("name", "slug", "description")


class GroupService:
    """
    Group administration: attributes plus member, role and permission sets.

    Every relationship sync is audited and followed by cache invalidation
    for the users whose effective permissions may have changed.
    """

    def __init__(
        self,
        db: Session,
        sync_service: RelationshipSyncService,
        cache_service: GroupCacheService,
        permission_cache: PermissionCacheService,
        super_admin_lookup: SuperAdminRoleLookup,
        audit_service: AuditService,
    ):
        self.db = db
        self.sync_service = sync_service
        self.cache_service = cache_service
        self.permission_cache = permission_cache
        self.super_admin_lookup = super_admin_lookup
        self.audit_service = audit_service

    def get_group(self, group_id: int) -> Group:
        group = group_crud.get(self.db, group_id)
        if not group:
            raise not_found("Group", group_id)
        return group

    def count_members(self, group: Group) -> int:
        return membership_crud.count(self.db, group_id=group.id)

    def list_groups(self, search: Optional[str] = None, skip: int = 0, limit: int = 20) -> Tuple[List[dict], int]:
        return group_crud.get_multi_with_counts(self.db, search=search, skip=skip, limit=limit)

    @staticmethod
    def _attributes(data: GroupCreate) -> Dict[str, Any]:
        return {
            "name": data.name,
            "slug": data.slug or slugify(data.name),
            "description": data.description,
        }

    def _sync_relations(self, group: Group, data: GroupCreate, context: Optional[AuditContext]) -> None:
        if data.members is not None:
            self.sync_members(group, data.members, context)
        if data.permissions is not None:
            self.sync_permissions(group, data.permissions, context)
        if data.roles is not None:
            self.sync_roles(group, data.roles, context)

    def create_group(self, data: GroupCreate, context: Optional[AuditContext] = None) -> Group:
        try:
            group = group_crud.create(self.db, obj_in=self._attributes(data))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.audit_service.log(
            AuditLogEvent.CREATED,
            group,
            new_values={field: getattr(group, field) for field in AUDITED_FIELDS},
            context=context,
        )
        logger.info(f"Group created: id={group.id}, name={group.name}")

        self._sync_relations(group, data, context)
        return group

    def update_group(self, group: Group, data: GroupUpdate, context: Optional[AuditContext] = None) -> Group:
        try:
            changes = group_crud.update(self.db, db_obj=group, obj_in=self._attributes(data))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if changes:
            self.audit_service.log(
                AuditLogEvent.UPDATED,
                group,
                old_values={field: old for field, (old, _) in changes.items()},
                new_values={field: new for field, (_, new) in changes.items()},
                context=context,
            )
            logger.info(f"Group {group.id} updated: {sorted(changes)}")

        self._sync_relations(group, data, context)
        return group

    def sync_members(self, group: Group, user_ids: Iterable[int], context: Optional[AuditContext] = None) -> SyncResult:
        """Replace the member set; caches of old and new members are cleared"""
        result = self.sync_service.sync_with_audit(group, "users", user_ids, "members", context)
        self.cache_service.clear_for_membership_change(set(result.old_ids) | set(result.new_ids))
        return result

    def sync_permissions(
        self, group: Group, permission_ids: Iterable[int], context: Optional[AuditContext] = None
    ) -> SyncResult:
        result = self.sync_service.sync_with_audit(group, "permissions", permission_ids, "permissions", context)
        user_ids = membership_crud.member_ids(self.db, group_id=group.id)
        if user_ids:
            self.cache_service.clear_for_permission_change(user_ids)
        else:
            self.permission_cache.clear()
        return result

    def sync_roles(self, group: Group, role_ids: Iterable[int], context: Optional[AuditContext] = None) -> SyncResult:
        """
        Replace the group's roles. The Super Admin role is dropped from the
        request without error; groups never carry it.
        """
        requested = normalize_ids(role_ids)
        allowed = self.super_admin_lookup.without_super_admin(requested)
        if len(allowed) != len(requested):
            logger.info(f"Super Admin role filtered from role assignment for group {group.id}")

        result = self.sync_service.sync_with_audit(group, "roles", allowed, "roles", context)
        user_ids = membership_crud.member_ids(self.db, group_id=group.id)
        if user_ids:
            self.cache_service.clear_for_role_change(user_ids)
        else:
            self.permission_cache.clear()
        return result

    def delete_group(self, group: Group, context: Optional[AuditContext] = None) -> None:
        """Delete an empty group; groups with members must be emptied first"""
        member_count = membership_crud.count(self.db, group_id=group.id)
        if member_count > 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=ResponseWrapper.error(
                    message=(
                        f"Cannot delete group. It has {member_count} "
                        f"{'member' if member_count == 1 else 'members'}. "
                        "Please transfer or remove all members first."
                    ),
                    error_code="GROUP_HAS_MEMBERS",
                    details={"group_id": group.id, "member_count": member_count},
                ),
            )

        old_values = {field: getattr(group, field) for field in AUDITED_FIELDS}
        group_id = group.id
        try:
            self.db.execute(delete(group_roles).where(group_roles.c.group_id == group_id))
            self.db.execute(delete(group_permissions).where(group_permissions.c.group_id == group_id))
            group_crud.remove(self.db, db_obj=group)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.audit_service.log(AuditLogEvent.DELETED, group, old_values=old_values, context=context)
        self.cache_service.clear_for_group_deletion([])
        logger.info(f"Group deleted: id={group_id}")
