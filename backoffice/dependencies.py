"""
FastAPI dependency providers wiring sessions, cache and services.

Process-wide collaborators (cache manager, audit dispatcher, Super Admin
lookup) are created lazily once; tests replace them through
app.dependency_overrides.
"""
import threading
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from backoffice.database.session import SessionLocal, get_db
from backoffice.schemas.audit_log import AuditContext
from backoffice.services.audit_service import AuditDispatcher, AuditService, build_audit_dispatcher
from backoffice.services.group_cache_service import GroupCacheService
from backoffice.services.group_member_service import GroupMemberService
from backoffice.services.group_permission_cache_service import GroupPermissionCacheService
from backoffice.services.group_service import GroupService
from backoffice.services.menu_cache_service import MenuCacheService
from backoffice.services.permission_cache_service import PermissionCacheService
from backoffice.services.permission_service import PermissionService
from backoffice.services.relationship_sync import RelationshipSyncService, SuperAdminRoleLookup
from backoffice.services.role_service import RoleService
from backoffice.services.settings_service import SettingsService
from backoffice.services.user_access_service import UserAccessService
from backoffice.utils.cache_manager import CacheManager, get_cache_manager

_lock = threading.Lock()
_audit_dispatcher: Optional[AuditDispatcher] = None
_super_admin_lookup: Optional[SuperAdminRoleLookup] = None


def get_cache() -> CacheManager:
    return get_cache_manager()


def get_audit_dispatcher() -> AuditDispatcher:
    global _audit_dispatcher
    if _audit_dispatcher is None:
        with _lock:
            if _audit_dispatcher is None:
                _audit_dispatcher = build_audit_dispatcher(SessionLocal)
    return _audit_dispatcher


def shutdown_audit_dispatcher() -> None:
    global _audit_dispatcher
    with _lock:
        if _audit_dispatcher is not None:
            _audit_dispatcher.shutdown()
            _audit_dispatcher = None


def get_super_admin_lookup() -> SuperAdminRoleLookup:
    global _super_admin_lookup
    if _super_admin_lookup is None:
        with _lock:
            if _super_admin_lookup is None:
                _super_admin_lookup = SuperAdminRoleLookup(SessionLocal)
    return _super_admin_lookup


def get_audit_context(request: Request, x_user_id: Optional[int] = Header(None)) -> AuditContext:
    """Acting user comes from the X-User-Id header set by the authenticating proxy"""
    return AuditContext.from_request(request, user_id=x_user_id)


def get_audit_service(dispatcher: AuditDispatcher = Depends(get_audit_dispatcher)) -> AuditService:
    return AuditService(dispatcher)


def get_permission_cache(cache: CacheManager = Depends(get_cache)) -> PermissionCacheService:
    return PermissionCacheService(cache)


def get_group_cache_service(cache: CacheManager = Depends(get_cache)) -> GroupCacheService:
    return GroupCacheService(
        PermissionCacheService(cache),
        GroupPermissionCacheService(cache),
        MenuCacheService(cache),
    )


def get_settings_service(
    db: Session = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
) -> SettingsService:
    return SettingsService(db, cache)


def get_permission_service(
    db: Session = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
) -> PermissionService:
    return PermissionService(db, PermissionCacheService(cache), GroupPermissionCacheService(cache))


def get_sync_service(
    db: Session = Depends(get_db),
    audit_service: AuditService = Depends(get_audit_service),
) -> RelationshipSyncService:
    return RelationshipSyncService(db, audit_service)


def get_group_member_service(
    db: Session = Depends(get_db),
    cache_service: GroupCacheService = Depends(get_group_cache_service),
    audit_service: AuditService = Depends(get_audit_service),
    settings_service: SettingsService = Depends(get_settings_service),
) -> GroupMemberService:
    return GroupMemberService(db, cache_service, audit_service, settings_service)


def get_group_service(
    db: Session = Depends(get_db),
    sync_service: RelationshipSyncService = Depends(get_sync_service),
    cache_service: GroupCacheService = Depends(get_group_cache_service),
    permission_cache: PermissionCacheService = Depends(get_permission_cache),
    super_admin_lookup: SuperAdminRoleLookup = Depends(get_super_admin_lookup),
    audit_service: AuditService = Depends(get_audit_service),
) -> GroupService:
    return GroupService(db, sync_service, cache_service, permission_cache, super_admin_lookup, audit_service)


def get_role_service(
    db: Session = Depends(get_db),
    sync_service: RelationshipSyncService = Depends(get_sync_service),
    cache_service: GroupCacheService = Depends(get_group_cache_service),
    audit_service: AuditService = Depends(get_audit_service),
) -> RoleService:
    return RoleService(db, sync_service, cache_service, audit_service)


def get_user_access_service(
    db: Session = Depends(get_db),
    sync_service: RelationshipSyncService = Depends(get_sync_service),
    cache_service: GroupCacheService = Depends(get_group_cache_service),
) -> UserAccessService:
    return UserAccessService(db, sync_service, cache_service)
