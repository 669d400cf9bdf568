"""
Tests for the cache port, its adapters and the permission cache services.
"""
from unittest.mock import MagicMock

import pytest

from backoffice.utils.cache_manager import CacheManager, CacheTagError, InMemoryCacheStore, RedisCacheStore


@pytest.fixture
def tagless_cache():
    return CacheManager(InMemoryCacheStore(supports_tags=False), prefix="test")


class TestCacheManager:
    def test_set_and_get_are_namespaced(self, cache):
        cache.set("greeting", {"text": "hi"}, ttl=60)

        assert cache.get("greeting") == {"text": "hi"}
        assert cache.store.get("test:greeting") == {"text": "hi"}

    def test_get_returns_default_on_miss(self, cache):
        assert cache.get("missing", default=[]) == []

    def test_remember_computes_once(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return ["a", "b"]

        assert cache.remember("letters", 60, compute) == ["a", "b"]
        assert cache.remember("letters", 60, compute) == ["a", "b"]
        assert len(calls) == 1

    def test_clear_tag_removes_only_tagged_keys(self, cache):
        cache.set("permissions:user:1", ["x"], tags="permissions")
        cache.set("menus:user:1", ["m"], tags="menus")

        cache.clear_tag("permissions")

        assert cache.get("permissions:user:1") is None
        assert cache.get("menus:user:1") == ["m"]

    def test_expired_entry_is_a_miss(self, cache, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("backoffice.utils.cache_manager.time.monotonic", lambda: clock[0])

        cache.set("short", "value", ttl=5)
        clock[0] += 6

        assert cache.get("short") is None

    def test_store_failures_are_swallowed(self):
        store = MagicMock()
        store.get.side_effect = ConnectionError("redis down")
        store.set.side_effect = ConnectionError("redis down")
        store.delete.side_effect = ConnectionError("redis down")
        manager = CacheManager(store, prefix="test")

        assert manager.get("key", default="fallback") == "fallback"
        assert manager.set("key", "value") is False
        assert manager.delete("key") is False


class TestTaglessStore:
    def test_store_raises_for_tag_operations(self):
        store = InMemoryCacheStore(supports_tags=False)

        with pytest.raises(CacheTagError):
            store.forget_tag("permissions")

    def test_set_with_tags_falls_back_to_untagged(self, tagless_cache):
        assert tagless_cache.set("permissions:user:1", ["x"], tags="permissions") is True

        assert tagless_cache.get("permissions:user:1") == ["x"]

    def test_clear_tag_falls_back_to_namespace_flush(self, tagless_cache):
        tagless_cache.set("permissions:user:1", ["x"], tags="permissions")
        other = CacheManager(tagless_cache.store, prefix="other")
        other.set("keep", 1)

        assert tagless_cache.clear_tag("permissions") is True

        assert tagless_cache.get("permissions:user:1") is None
        assert other.get("keep") == 1

    def test_permission_cache_on_tagless_store(self, tagless_cache):
        from backoffice.services.permission_cache_service import PermissionCacheService

        permission_cache = PermissionCacheService(tagless_cache)
        permission_cache.put(1, ["core.users.view"])

        permission_cache.clear()

        assert permission_cache.get(1) is None


class TestRedisCacheStore:
    def test_values_are_json_encoded_with_ttl(self):
        client = MagicMock()
        store = RedisCacheStore(redis_client=client)

        store.set("k", {"a": 1}, ttl=30)

        client.setex.assert_called_once_with("k", 30, '{"a": 1}')

    def test_get_decodes_json(self):
        client = MagicMock()
        client.get.return_value = '["x", "y"]'
        store = RedisCacheStore(redis_client=client)

        assert store.get("k") == ["x", "y"]

    def test_forget_tag_deletes_members_and_tag_set(self):
        client = MagicMock()
        client.smembers.return_value = {"test:permissions:user:1"}
        client.delete.return_value = 1
        store = RedisCacheStore(redis_client=client)

        store.forget_tag("test:permissions")

        client.smembers.assert_called_once_with("tag:test:permissions")
        client.delete.assert_any_call("test:permissions:user:1")
        client.delete.assert_any_call("tag:test:permissions")

    def test_tag_sets_expire_with_their_keys(self):
        client = MagicMock()
        store = RedisCacheStore(redis_client=client)

        store.add_to_tags("test:menu:user:1", ["test:menu"], ttl=30)

        pipe = client.pipeline.return_value
        pipe.sadd.assert_called_once_with("tag:test:menu", "test:menu:user:1")
        pipe.expire.assert_called_once_with("tag:test:menu", 30)
        pipe.execute.assert_called_once()

    def test_untimed_tag_sets_do_not_expire(self):
        client = MagicMock()
        store = RedisCacheStore(redis_client=client)

        store.add_to_tags("test:settings:a", ["test:settings"])

        client.pipeline.return_value.expire.assert_not_called()

    def test_manager_passes_ttl_to_tag_sets(self):
        client = MagicMock()
        manager = CacheManager(RedisCacheStore(redis_client=client), prefix="test")

        manager.set("permissions:user:1", ["a"], ttl=60, tags="permissions")

        client.setex.assert_called_once_with("test:permissions:user:1", 60, '["a"]')
        client.pipeline.return_value.expire.assert_called_once_with("tag:test:permissions", 60)


class TestUserScopedCaches:
    def test_entries_are_per_user(self, permission_cache):
        permission_cache.put(1, ["a"])
        permission_cache.put(2, ["b"])

        permission_cache.clear_for_user(1)

        assert permission_cache.get(1) is None
        assert permission_cache.get(2) == ["b"]

    def test_coordinator_clears_every_cache_for_affected_users(
        self, cache_service, permission_cache, group_permission_cache, menu_cache
    ):
        for user_id in (1, 2):
            permission_cache.put(user_id, ["a"])
            group_permission_cache.put(user_id, ["a"])
            menu_cache.put(user_id, ["m"])

        cache_service.clear_for_membership_change([1])

        assert group_permission_cache.get(1) is None
        assert menu_cache.get(1) is None
        # User 2 keeps derived caches but loses the broad permission entry
        assert group_permission_cache.get(2) == ["a"]
        assert menu_cache.get(2) == ["m"]
        assert permission_cache.get(2) is None

    def test_coordinator_with_no_users_still_clears_broad_tag(self, cache_service, permission_cache):
        permission_cache.put(9, ["a"])

        cache_service.clear_for_permission_change([])

        assert permission_cache.get(9) is None
