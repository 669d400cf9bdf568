from typing import Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy import delete
from sqlalchemy.orm import Session

from backoffice.core.constants import Roles
from backoffice.core.logging_config import get_logger
from backoffice.crud.iam import role_crud
from backoffice.models.associations import group_roles, role_permissions
from backoffice.models.audit_log import AuditLogEvent
from backoffice.models.iam import Role
from backoffice.schemas.audit_log import AuditContext
from backoffice.schemas.iam import RoleCreate, RoleUpdate
from backoffice.services.audit_service import AuditService
from backoffice.services.group_cache_service import GroupCacheService
from backoffice.services.relationship_sync import RelationshipSyncService, SyncResult
from backoffice.utils.response_utils import ResponseWrapper, not_found, unprocessable

logger = get_logger(__name__)


def protected_role_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=ResponseWrapper.error(message=message, error_code="PROTECTED_ROLE"),
    )


class RoleService:
    def __init__(
        self,
        db: Session,
        sync_service: RelationshipSyncService,
        cache_service: GroupCacheService,
        audit_service: AuditService,
    ):
        self.db = db
        self.sync_service = sync_service
        self.cache_service = cache_service
        self.audit_service = audit_service

    def get_role(self, role_id: int) -> Role:
        role = role_crud.get(self.db, role_id)
        if not role:
            raise not_found("Role", role_id)
        return role

    def create_role(self, data: RoleCreate, context: Optional[AuditContext] = None) -> Role:
        if data.name == Roles.SUPER_ADMIN:
            raise protected_role_error(
                "Cannot create Super Admin role. This is a critical system role required for system security."
            )

        try:
            role = role_crud.create(self.db, obj_in={"name": data.name})
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.audit_service.log(AuditLogEvent.CREATED, role, new_values={"name": role.name}, context=context)
        logger.info(f"Role created: id={role.id}, name={role.name}")

        if data.permissions is not None:
            self.sync_permissions(role, data.permissions, context)
        return role

    def update_role(self, role: Role, data: RoleUpdate, context: Optional[AuditContext] = None) -> Role:
        """
        Rename a role and replace its permissions. Super Admin keeps its name
        and its permissions are never synced.
        """
        original_name = role.name
        if original_name == Roles.SUPER_ADMIN and data.name != Roles.SUPER_ADMIN:
            raise protected_role_error(
                "Cannot rename Super Admin role. The role name is required for system security."
            )

        try:
            changes = role_crud.update(self.db, db_obj=role, obj_in={"name": data.name})
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if changes:
            self.audit_service.log(
                AuditLogEvent.UPDATED,
                role,
                old_values={"name": changes["name"][0]},
                new_values={"name": changes["name"][1]},
                context=context,
            )

        if original_name != Roles.SUPER_ADMIN:
            self.sync_permissions(role, data.permissions or [], context)
        return role

    def delete_role(self, role: Role, context: Optional[AuditContext] = None) -> None:
        if role.is_super_admin:
            raise protected_role_error(
                "Cannot delete Super Admin role. This is a critical system role required for system security."
            )

        user_ids = role_crud.user_ids(self.db, role_id=role.id)
        if user_ids:
            raise unprocessable(
                "Cannot delete role that is assigned to users.",
                "ROLE_IN_USE",
                details={"role_id": role.id, "user_count": len(user_ids)},
            )

        group_member_ids = role_crud.group_member_ids(self.db, role_id=role.id)
        old_values = {"name": role.name}
        role_id = role.id
        try:
            self.db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
            self.db.execute(delete(group_roles).where(group_roles.c.role_id == role_id))
            role_crud.remove(self.db, db_obj=role)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.audit_service.log(AuditLogEvent.DELETED, role, old_values=old_values, context=context)
        self.cache_service.clear_for_role_change(group_member_ids)
        logger.info(f"Role deleted: id={role_id}")

    def sync_permissions(
        self, role: Role, permission_ids: Iterable[int], context: Optional[AuditContext] = None
    ) -> SyncResult:
        """Replace the role's permissions; holders and members of groups with the role are invalidated"""
        result = self.sync_service.sync_with_audit(role, "permissions", permission_ids, "permissions", context)
        affected = set(role_crud.user_ids(self.db, role_id=role.id))
        affected.update(role_crud.group_member_ids(self.db, role_id=role.id))
        self.cache_service.clear_for_role_change(affected)
        return result
