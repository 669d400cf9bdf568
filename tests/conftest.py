"""
Pytest configuration and fixtures for testing.
"""
import os

# Must be set before backoffice.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUDIT_QUEUE_ENABLED", "false")
os.environ.setdefault("USE_REDIS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.constants import Roles
from backoffice.database.session import Base, get_db
from backoffice.dependencies import get_audit_dispatcher, get_cache, get_super_admin_lookup
from backoffice.models.associations import group_user, group_roles, group_permissions, role_permissions
from backoffice.models.group import Group
from backoffice.models.iam import Permission, Role
from backoffice.models.user import User
from backoffice.services.audit_service import AuditService, InlineAuditDispatcher
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
from backoffice.utils.cache_manager import CacheManager, InMemoryCacheStore
from main import app


# Test database URL - using in-memory SQLite for tests
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def session_factory():
    """
    Fresh in-memory database per test; every session shares one connection.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def cache():
    return CacheManager(InMemoryCacheStore(), prefix="test")


@pytest.fixture(scope="function")
def dispatcher(session_factory):
    return InlineAuditDispatcher(session_factory)


@pytest.fixture(scope="function")
def audit_service(dispatcher):
    return AuditService(dispatcher)


@pytest.fixture(scope="function")
def permission_cache(cache):
    return PermissionCacheService(cache)


@pytest.fixture(scope="function")
def group_permission_cache(cache):
    return GroupPermissionCacheService(cache)


@pytest.fixture(scope="function")
def menu_cache(cache):
    return MenuCacheService(cache)


@pytest.fixture(scope="function")
def cache_service(permission_cache, group_permission_cache, menu_cache):
    return GroupCacheService(permission_cache, group_permission_cache, menu_cache)


@pytest.fixture(scope="function")
def settings_service(test_db, cache):
    return SettingsService(test_db, cache)


@pytest.fixture(scope="function")
def permission_service(test_db, permission_cache, group_permission_cache):
    return PermissionService(test_db, permission_cache, group_permission_cache)


@pytest.fixture(scope="function")
def super_admin_lookup(session_factory):
    return SuperAdminRoleLookup(session_factory)


@pytest.fixture(scope="function")
def sync_service(test_db, audit_service):
    return RelationshipSyncService(test_db, audit_service)


@pytest.fixture(scope="function")
def member_service(test_db, cache_service, audit_service, settings_service):
    return GroupMemberService(test_db, cache_service, audit_service, settings_service)


@pytest.fixture(scope="function")
def group_service(test_db, sync_service, cache_service, permission_cache, super_admin_lookup, audit_service):
    return GroupService(test_db, sync_service, cache_service, permission_cache, super_admin_lookup, audit_service)


@pytest.fixture(scope="function")
def role_service(test_db, sync_service, cache_service, audit_service):
    return RoleService(test_db, sync_service, cache_service, audit_service)


@pytest.fixture(scope="function")
def user_access_service(test_db, sync_service, cache_service):
    return UserAccessService(test_db, sync_service, cache_service)


# ---------------------------
# Seed data
# ---------------------------
@pytest.fixture(scope="function")
def seed_users(test_db):
    """
    Users 1-6: Alice, Bob, Carol, Dave, Erin, Frank
    """
    names = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank"]
    users = [
        User(id=i, name=name, email=f"{name.lower()}@example.com")
        for i, name in enumerate(names, start=1)
    ]
    test_db.add_all(users)
    test_db.commit()
    return users


@pytest.fixture(scope="function")
def seed_permissions(test_db):
    permissions = [
        Permission(id=1, name="core.users.view", description="View users"),
        Permission(id=2, name="core.users.edit", description="Edit users"),
        Permission(id=3, name="groups.groups.view", description="View groups"),
        Permission(id=4, name="groups.groups.edit", description="Edit groups"),
        Permission(id=5, name="auditlog.logs.view", description="View audit logs"),
    ]
    test_db.add_all(permissions)
    test_db.commit()
    return permissions


@pytest.fixture(scope="function")
def seed_roles(test_db, seed_permissions):
    """
    Super Admin (1), Manager (2: groups.groups.*), Auditor (3: auditlog.logs.view)
    """
    roles = [
        Role(id=1, name=Roles.SUPER_ADMIN),
        Role(id=2, name=Roles.MANAGER),
        Role(id=3, name=Roles.AUDITOR),
    ]
    test_db.add_all(roles)
    test_db.flush()
    test_db.execute(
        insert(role_permissions),
        [
            {"role_id": 2, "permission_id": 3},
            {"role_id": 2, "permission_id": 4},
            {"role_id": 3, "permission_id": 5},
        ],
    )
    test_db.commit()
    return roles


@pytest.fixture(scope="function")
def editors(test_db, seed_users):
    """Group "Editors" with members 1, 2, 3"""
    group = Group(id=1, name="Editors", description="Content editors")
    test_db.add(group)
    test_db.flush()
    test_db.execute(insert(group_user), [{"group_id": 1, "user_id": uid} for uid in (1, 2, 3)])
    test_db.commit()
    return group


@pytest.fixture(scope="function")
def reviewers(test_db, seed_users):
    """Group "Reviewers" with member 4"""
    group = Group(id=2, name="Reviewers")
    test_db.add(group)
    test_db.flush()
    test_db.execute(insert(group_user).values(group_id=2, user_id=4))
    test_db.commit()
    return group


@pytest.fixture(scope="function")
def empty_group(test_db):
    group = Group(id=3, name="Empty Group")
    test_db.add(group)
    test_db.commit()
    return group


@pytest.fixture(scope="function")
def editors_with_grants(test_db, editors, seed_roles):
    """Editors carry the Manager role and the core.users.view permission"""
    test_db.execute(insert(group_roles).values(group_id=1, role_id=2))
    test_db.execute(insert(group_permissions).values(group_id=1, permission_id=1))
    test_db.commit()
    return editors


# ---------------------------
# HTTP client
# ---------------------------
@pytest.fixture(scope="function")
def client(test_db, cache, dispatcher, super_admin_lookup):
    """
    Test client sharing the test session, cache and inline audit dispatcher.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_audit_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_super_admin_lookup] = lambda: super_admin_lookup

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
