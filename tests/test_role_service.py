"""
Tests for role administration and direct user grants.
"""
import pytest
from fastapi import HTTPException
from sqlalchemy import insert, select

from backoffice.models.associations import group_roles, role_permissions, user_permissions, user_roles
from backoffice.models.audit_log import AuditLog
from backoffice.models.iam import Role
from backoffice.schemas.iam import RoleCreate, RoleUpdate


def role_permission_ids(db, role_id):
    return sorted(db.execute(
        select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
    ).scalars())


class TestCreateRole:
    def test_create_with_permissions(self, test_db, role_service, seed_roles):
        role = role_service.create_role(RoleCreate(name="Editor", permissions=[1, 3]))

        assert role_permission_ids(test_db, role.id) == [1, 3]
        events = [a.event for a in test_db.query(AuditLog).order_by(AuditLog.id)]
        assert events == ["created", "relationship_synced"]

    def test_super_admin_cannot_be_created(self, role_service):
        with pytest.raises(HTTPException) as exc_info:
            role_service.create_role(RoleCreate(name="Super Admin"))

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error_code"] == "PROTECTED_ROLE"


class TestUpdateRole:
    def test_rename_and_replace_permissions(self, test_db, role_service, seed_roles):
        manager = role_service.get_role(2)

        role_service.update_role(manager, RoleUpdate(name="Group Manager", permissions=[3]))

        assert test_db.get(Role, 2).name == "Group Manager"
        assert role_permission_ids(test_db, 2) == [3]
        renamed = test_db.query(AuditLog).filter_by(event="updated").one()
        assert renamed.old_values == {"name": "Manager"}
        assert renamed.new_values == {"name": "Group Manager"}

    def test_missing_permissions_clear_the_role(self, test_db, role_service, seed_roles):
        role_service.update_role(role_service.get_role(3), RoleUpdate(name="Auditor"))

        assert role_permission_ids(test_db, 3) == []

    def test_super_admin_cannot_be_renamed(self, role_service, seed_roles):
        with pytest.raises(HTTPException) as exc_info:
            role_service.update_role(role_service.get_role(1), RoleUpdate(name="Root"))

        assert exc_info.value.status_code == 403

    def test_super_admin_permissions_are_never_synced(self, test_db, role_service, seed_roles):
        role_service.update_role(role_service.get_role(1), RoleUpdate(name="Super Admin", permissions=[1, 2]))

        assert role_permission_ids(test_db, 1) == []

    def test_permission_change_invalidates_holders_and_group_members(
        self, test_db, role_service, editors_with_grants, permission_cache, menu_cache
    ):
        test_db.execute(insert(user_roles).values(user_id=6, role_id=2))
        test_db.commit()
        permission_cache.put(6, ["stale"])
        menu_cache.put(2, ["stale"])

        role_service.sync_permissions(role_service.get_role(2), [3])

        assert permission_cache.get(6) is None
        assert menu_cache.get(2) is None


class TestDeleteRole:
    def test_super_admin_cannot_be_deleted(self, role_service, seed_roles):
        with pytest.raises(HTTPException) as exc_info:
            role_service.delete_role(role_service.get_role(1))

        assert exc_info.value.status_code == 403

    def test_role_assigned_to_users_cannot_be_deleted(self, test_db, role_service, seed_users, seed_roles):
        test_db.execute(insert(user_roles).values(user_id=1, role_id=3))
        test_db.commit()

        with pytest.raises(HTTPException) as exc_info:
            role_service.delete_role(role_service.get_role(3))

        assert exc_info.value.status_code == 422
        assert exc_info.value.detail["error_code"] == "ROLE_IN_USE"

    def test_delete_detaches_from_groups(self, test_db, role_service, editors_with_grants, group_permission_cache):
        group_permission_cache.put(1, ["groups.groups.view"])

        role_service.delete_role(role_service.get_role(2))

        assert test_db.get(Role, 2) is None
        assert list(test_db.execute(select(group_roles))) == []
        assert role_permission_ids(test_db, 2) == []
        assert group_permission_cache.get(1) is None
        assert test_db.query(AuditLog).filter_by(event="deleted", auditable_type="Role").count() == 1

    def test_missing_role(self, role_service):
        with pytest.raises(HTTPException) as exc_info:
            role_service.get_role(99)

        assert exc_info.value.detail["error_code"] == "ROLE_NOT_FOUND"


class TestUserAccess:
    def test_user_may_hold_super_admin_directly(self, test_db, user_access_service, seed_users, seed_roles):
        user = user_access_service.get_user(1)

        result = user_access_service.sync_roles(user, [1, 3])

        assert result.new_ids == [1, 3]
        entry = test_db.query(AuditLog).filter_by(event="relationship_synced").one()
        assert entry.auditable_type == "User"
        assert entry.new_values == {"roles": ["Auditor", "Super Admin"], "roles_ids": [1, 3]}

    def test_permission_sync_invalidates_the_user(
        self, test_db, user_access_service, seed_users, seed_permissions, permission_cache, group_permission_cache
    ):
        permission_cache.put(2, ["stale"])
        group_permission_cache.put(2, ["stale"])

        user_access_service.sync_permissions(user_access_service.get_user(2), [5])

        assert permission_cache.get(2) is None
        assert group_permission_cache.get(2) is None
        assert list(test_db.execute(select(user_permissions.c.permission_id))) == [(5,)]

    def test_unknown_user(self, user_access_service):
        with pytest.raises(HTTPException) as exc_info:
            user_access_service.get_user(42)

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail["error_code"] == "USER_NOT_FOUND"
