"""
HTTP tests for the group, role, user access and audit log endpoints.
"""
from fastapi import status

from backoffice.core.constants import MEMBERS_PER_PAGE_KEY

from backoffice.models.audit_log import AuditLog
from backoffice.models.group import Group
from backoffice.models.iam import Permission, Role

API = "/api/v1"


class TestGroupEndpoints:
    def test_create_group(self, client, seed_users, seed_roles):
        response = client.post(
            f"{API}/groups/",
            json={"name": "Support Team", "members": [2, 1], "roles": [1, 3], "permissions": [1]},
            headers={"X-User-Id": "1"},
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["slug"] == "support-team"
        assert data["members_count"] == 2
        assert "members" not in data
        # Super Admin is never attached to a group
        assert [r["name"] for r in data["roles"]] == ["Auditor"]
        assert data["permissions"] == {
            "core": {"users": [{"id": 1, "name": "core.users.view", "action": "view"}]}
        }

    def test_create_records_acting_user(self, client, test_db):
        client.post(f"{API}/groups/", json={"name": "Ops"}, headers={"X-User-Id": "42"})

        entry = test_db.query(AuditLog).filter_by(event="created").one()
        assert entry.user_id == 42
        assert entry.url.endswith("/api/v1/groups/")

    def test_duplicate_name_conflicts(self, client, editors):
        response = client.post(f"{API}/groups/", json={"name": "Editors", "slug": "editors-copy"})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["error_code"] == "DUPLICATE_RESOURCE"

    def test_list_groups_with_counts(self, client, editors_with_grants, reviewers):
        response = client.get(f"{API}/groups/", params={"search": "edit"})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["users_count"] == 3
        assert body["data"][0]["permissions_count"] == 1

    def test_get_unknown_group(self, client):
        response = client.get(f"{API}/groups/999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["error_code"] == "GROUP_NOT_FOUND"

    def test_update_group(self, client, editors, seed_roles):
        response = client.put(
            f"{API}/groups/1",
            json={"name": "Editors", "description": "Copy desk", "members": [1, 4], "roles": [2]},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["description"] == "Copy desk"
        assert data["members_count"] == 2
        assert [r["name"] for r in data["roles"]] == ["Manager"]

        members = client.get(f"{API}/groups/1/members").json()["data"]
        assert [m["id"] for m in members] == [1, 4]

    def test_delete_group_with_members_is_refused(self, client, editors):
        response = client.delete(f"{API}/groups/1")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["error_code"] == "GROUP_HAS_MEMBERS"

    def test_delete_empty_group(self, client, test_db, empty_group):
        response = client.delete(f"{API}/groups/3")

        assert response.status_code == status.HTTP_200_OK
        assert test_db.query(Group).count() == 0


class TestMemberEndpoints:
    def test_add_members(self, client, editors):
        response = client.post(f"{API}/groups/1/members", json={"user_ids": [3, 4, 5]})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["data"] == {"count": 2, "skipped": 1}
        assert body["message"] == "2 members added successfully. 1 was already a member of this group."

    def test_add_unknown_user(self, client, editors):
        response = client.post(f"{API}/groups/1/members", json={"user_ids": [4, 404]})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["details"]["missing"] == [404]

    def test_empty_user_ids_fail_validation(self, client, editors):
        response = client.post(f"{API}/groups/1/members", json={"user_ids": []})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_remove_members(self, client, editors):
        response = client.post(f"{API}/groups/1/members/remove", json={"user_ids": [1, 2]})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "2 members removed successfully."

    def test_transfer_members(self, client, editors, reviewers):
        response = client.post(
            f"{API}/groups/1/members/transfer",
            json={"user_ids": [1, 2], "target_group_id": 2},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"count": 2, "removed": 2, "already_in_target": 0}

    def test_transfer_to_unknown_group(self, client, editors):
        response = client.post(
            f"{API}/groups/1/members/transfer",
            json={"user_ids": [1], "target_group_id": 77},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestMemberListingEndpoints:
    def test_members_are_paginated(self, client, editors):
        response = client.get(f"{API}/groups/1/members", params={"per_page": 10})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert [m["name"] for m in body["data"]] == ["Alice", "Bob", "Carol"]
        assert body["data"][0] == {"id": 1, "name": "Alice", "email": "alice@example.com"}
        assert body["meta"]["total"] == 3
        assert body["meta"]["per_page"] == 10
        assert body["meta"]["has_next"] is False

    def test_members_search_and_sort(self, client, editors):
        by_email = client.get(f"{API}/groups/1/members", params={"search": "bob@"}).json()
        assert [m["id"] for m in by_email["data"]] == [2]

        by_name = client.get(f"{API}/groups/1/members", params={"search": "car"}).json()
        assert [m["name"] for m in by_name["data"]] == ["Carol"]

        descending = client.get(f"{API}/groups/1/members", params={"sort": "name", "direction": "desc"}).json()
        assert [m["name"] for m in descending["data"]] == ["Carol", "Bob", "Alice"]

    def test_page_size_falls_back_to_setting(self, client, settings_service, editors):
        settings_service.set(MEMBERS_PER_PAGE_KEY, "2")

        body = client.get(f"{API}/groups/1/members", params={"per_page": 7, "page": 2}).json()

        assert body["meta"]["per_page"] == 2
        assert body["meta"]["total_pages"] == 2
        assert body["meta"]["has_prev"] is True
        assert [m["name"] for m in body["data"]] == ["Carol"]

    def test_available_users_exclude_members(self, client, editors):
        response = client.get(f"{API}/groups/1/available-users")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert [u["name"] for u in body["data"]] == ["Dave", "Erin", "Frank"]
        assert body["meta"]["total"] == 3
        assert body["meta"]["per_page"] == 20

    def test_available_users_search(self, client, editors):
        body = client.get(f"{API}/groups/1/available-users", params={"search": "alice"}).json()

        assert body["data"] == []
        assert body["meta"]["total"] == 0

    def test_listing_unknown_group(self, client):
        assert client.get(f"{API}/groups/999/members").status_code == status.HTTP_404_NOT_FOUND
        assert client.get(f"{API}/groups/999/available-users").status_code == status.HTTP_404_NOT_FOUND


class TestRoleEndpoints:
    def test_create_role(self, client, seed_roles):
        response = client.post(f"{API}/roles/", json={"name": "Editor", "permissions": [3]})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["data"]["permissions"] == {
            "groups": {"groups": [{"id": 3, "name": "groups.groups.view", "action": "view"}]}
        }

    def test_super_admin_is_protected(self, client, seed_roles):
        assert client.put(f"{API}/roles/1", json={"name": "Root"}).status_code == status.HTTP_403_FORBIDDEN
        assert client.delete(f"{API}/roles/1").status_code == status.HTTP_403_FORBIDDEN

    def test_delete_unused_role(self, client, test_db, seed_roles):
        response = client.delete(f"{API}/roles/3")

        assert response.status_code == status.HTTP_200_OK
        assert test_db.get(Role, 3) is None


class TestUserEndpoints:
    def test_sync_roles_then_read_permissions(self, client, editors_with_grants):
        response = client.put(f"{API}/users/4/roles", json={"role_ids": [3]})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"role_ids": [3], "added": [3], "removed": []}

        data = client.get(f"{API}/users/4/permissions").json()["data"]
        assert data["is_super_admin"] is False
        assert data["permissions"] == ["auditlog.logs.view"]
        assert data["group_permissions"] == []

    def test_group_member_sees_inherited_permissions(self, client, editors_with_grants):
        data = client.get(f"{API}/users/1/permissions").json()["data"]

        assert data["group_permissions"] == ["core.users.view", "groups.groups.edit", "groups.groups.view"]

    def test_sync_unknown_permission(self, client, seed_users, seed_permissions):
        response = client.put(f"{API}/users/1/permissions", json={"permission_ids": [99]})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["error_code"] == "PERMISSION_NOT_FOUND"


class TestAuditLogEndpoints:
    def test_membership_changes_are_listed(self, client, editors):
        client.post(f"{API}/groups/1/members", json={"user_ids": [4]})

        response = client.get(f"{API}/audit-logs/", params={"auditable_type": "Group", "tag": "members"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["pagination"]["total_count"] == 1
        entry = data["audit_logs"][0]
        assert entry["new_values"]["member_ids"] == [1, 2, 3, 4]

        single = client.get(f"{API}/audit-logs/{entry['id']}")
        assert single.json()["data"]["tags"] == "group,members"

    def test_unknown_audit_log(self, client):
        response = client.get(f"{API}/audit-logs/12345")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["error_code"] == "AUDIT_LOG_NOT_FOUND"


class TestSeedEndpoint:
    def test_seed_is_idempotent(self, client, test_db):
        assert client.post("/seed-database").status_code == status.HTTP_200_OK
        permissions = test_db.query(Permission).count()

        assert client.post("/seed-database").status_code == status.HTTP_200_OK

        assert test_db.query(Permission).count() == permissions
        assert test_db.query(Role).filter(Role.name == "Super Admin").count() == 1
        guest = test_db.query(Group).filter(Group.name == "Guest").one()
        assert [r.name for r in guest.roles] == ["Guest"]

    def test_health(self, client):
        assert client.get("/health").status_code == status.HTTP_200_OK
