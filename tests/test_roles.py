import json

import pytest

from conftest import FakeDataStore
from teleprompter.candidates import Candidate, Origin
from teleprompter.errors import NotLoggedIn, PermissionDenied
from teleprompter.roles import (
    Role,
    RoleCache,
    RoleResolver,
    add_role_member,
    can_approve,
    can_edit_candidate,
    get_role_members,
    remove_role_member,
    save_role_members,
    sentinel_role,
)


class TestSentinels:
    def test_sentinel_roles(self):
        assert sentinel_role("000") is Role.ADMIN
        assert sentinel_role("021") is Role.MANAGER
        assert sentinel_role("007") is Role.STANDARD
        assert sentinel_role(None) is Role.STANDARD

    def test_capabilities(self):
        assert can_approve(Role.ADMIN)
        assert can_approve(Role.MANAGER)
        assert not can_approve(Role.STANDARD)


class TestRoleMembers:
    def setup_method(self):
        self.store = FakeDataStore()

    async def test_save_dedupes_and_stores_json(self):
        members = await save_role_members(self.store, "manager", ["555", " 555 ", "", "777"])

        assert members == ["555", "777"]
        row = self.store.rows("app_settings")[0]
        assert row["setting_key"] == "manager_users"
        assert json.loads(row["setting_value"]) == ["555", "777"]

    async def test_add_and_remove(self):
        await add_role_member(self.store, "admin", "100")
        await add_role_member(self.store, "admin", "101")
        assert await get_role_members(self.store, "admin") == ["100", "101"]

        with pytest.raises(ValueError):
            await add_role_member(self.store, "admin", "100")

        await remove_role_member(self.store, "admin", "100")
        assert await get_role_members(self.store, "admin") == ["101"]

    async def test_admin_sentinel_cannot_be_removed(self):
        with pytest.raises(ValueError):
            await remove_role_member(self.store, "admin", "000")

    async def test_missing_list_is_empty(self):
        assert await get_role_members(self.store, "manager") == []


class TestRoleResolver:
    def setup_method(self):
        self.store = FakeDataStore()
        self.resolver = RoleResolver(self.store)

    async def test_stored_lists(self):
        await save_role_members(self.store, "admin", ["100"])
        await save_role_members(self.store, "manager", ["555"])

        assert await self.resolver.resolve("100") is Role.ADMIN
        assert await self.resolver.resolve("555") is Role.MANAGER
        assert await self.resolver.resolve("007") is Role.STANDARD

    async def test_store_down_falls_back_to_sentinels(self):
        self.store.fail("get")

        assert await self.resolver.resolve("021") is Role.MANAGER
        assert await self.resolver.resolve("555") is Role.STANDARD


class TestRoleCache:
    def setup_method(self):
        self.store = FakeDataStore()
        self.cache = RoleCache(self.store, ttl=60)

    async def test_peek_before_refresh_knows_only_sentinels(self):
        await save_role_members(self.store, "manager", ["555"])

        assert self.cache.peek("000") is Role.ADMIN
        assert self.cache.peek("555") is Role.STANDARD

        await self.cache.ensure_fresh()
        assert self.cache.peek("555") is Role.MANAGER

    async def test_refresh_failure_keeps_snapshot(self):
        await save_role_members(self.store, "admin", ["100"])
        await self.cache.refresh()

        self.store.fail("get")
        await self.cache.refresh()

        assert self.cache.peek("100") is Role.ADMIN

    async def test_ensure_fresh_only_when_stale(self):
        await self.cache.ensure_fresh()
        gets = len(self.store.calls)

        await self.cache.ensure_fresh()
        assert len(self.store.calls) == gets
        assert not self.cache.is_stale()

    async def test_require(self):
        with pytest.raises(NotLoggedIn):
            await self.cache.require(None, Role.MANAGER, "approve submissions")

        with pytest.raises(PermissionDenied, match="Only admin or manager can approve"):
            await self.cache.require("007", Role.MANAGER, "approve submissions")

        with pytest.raises(PermissionDenied, match="Only admin can add"):
            await self.cache.require("021", Role.ADMIN, "add admin users")

        assert await self.cache.require("021", Role.MANAGER, "approve submissions") is Role.MANAGER

    async def test_require_reads_current_lists(self):
        await save_role_members(self.store, "admin", ["100"])
        await self.cache.refresh()
        await save_role_members(self.store, "admin", [])

        # peek still sees the cached snapshot, require does not
        assert self.cache.peek("100") is Role.ADMIN
        with pytest.raises(PermissionDenied):
            await self.cache.require("100", Role.ADMIN, "add admin users")

        await save_role_members(self.store, "manager", ["555"])
        assert await self.cache.current_role("555") is Role.MANAGER
        assert self.cache.peek("555") is Role.STANDARD

    async def test_require_when_store_down_honors_sentinels_only(self):
        await save_role_members(self.store, "manager", ["555"])
        self.store.fail("get")

        assert await self.cache.require("021", Role.MANAGER, "approve submissions") is Role.MANAGER
        with pytest.raises(PermissionDenied):
            await self.cache.require("555", Role.MANAGER, "approve submissions")


class TestCanEditCandidate:
    def test_ownership(self):
        own = Candidate("submission:1", "x", Origin.SUBMISSION, submitted_by="007", submission_id=1)
        alternative = Candidate("alt:1", "y", Origin.ALTERNATIVE, order=1)

        assert can_edit_candidate(Role.STANDARD, "007", own)
        assert not can_edit_candidate(Role.STANDARD, "008", own)
        assert not can_edit_candidate(Role.STANDARD, "007", alternative)
        assert can_edit_candidate(Role.MANAGER, "021", alternative)
        assert not can_edit_candidate(Role.STANDARD, None, own)
