from typing import Iterable, Optional

from sqlalchemy.orm import Session

from backoffice.models.user import User
from backoffice.schemas.audit_log import AuditContext
from backoffice.services.group_cache_service import GroupCacheService
from backoffice.services.relationship_sync import RelationshipSyncService, SyncResult
from backoffice.utils.response_utils import not_found


class UserAccessService:
    """Direct role and permission grants of a single user"""

    def __init__(self, db: Session, sync_service: RelationshipSyncService, cache_service: GroupCacheService):
        self.db = db
        self.sync_service = sync_service
        self.cache_service = cache_service

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise not_found("User", user_id)
        return user

    def sync_roles(self, user: User, role_ids: Iterable[int], context: Optional[AuditContext] = None) -> SyncResult:
        # Users may hold Super Admin directly
        result = self.sync_service.sync_with_audit(user, "roles", role_ids, "roles", context)
        self.cache_service.clear_for_user_access_change(user.id)
        return result

    def sync_permissions(
        self, user: User, permission_ids: Iterable[int], context: Optional[AuditContext] = None
    ) -> SyncResult:
        result = self.sync_service.sync_with_audit(user, "permissions", permission_ids, "permissions", context)
        self.cache_service.clear_for_user_access_change(user.id)
        return result
