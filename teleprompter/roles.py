"""
Teleprompter Roles
==================
Three tiers: standard < manager < admin. Admins hold every manager capability.

Resolution order:
1. the admin sentinel identity is always admin
2. the manager sentinel identity is always at least manager
3. membership in the stored ``admin_users`` / ``manager_users`` lists

RoleCache.peek() is the synchronous check used for UI gating. It only knows
the stored lists as of the last refresh() (sentinels are always known), so it
may be stale for up to ``role_cache_ttl`` seconds and is not a security
boundary. RoleCache.require() and current_role() read the stored lists on
every call, so a promotion or demotion applies to the very next action.
"""

import json
import time
import logging
from enum import IntEnum
from typing import Dict, List, Optional, Set

from .config import settings
from .data_api import DataStore, APP_SETTINGS_TABLE
from .errors import DataStoreError, PermissionDenied, NotLoggedIn

logger = logging.getLogger(__name__)

ROLE_SETTING_KEYS = {
    "admin": "admin_users",
    "manager": "manager_users",
}

ROLE_DESCRIPTIONS = {
    "admin": "List of admin user IDs with full access to edit and approve scripts across all campaigns",
    "manager": "List of manager user IDs with permissions to edit scripts, approve submissions, and add new content across all campaigns",
}


class Role(IntEnum):
    STANDARD = 0
    MANAGER = 1
    ADMIN = 2

    @property
    def label(self) -> str:
        return self.name.lower()


def _parse_member_list(raw) -> List[str]:
    if isinstance(raw, list):
        return [str(v) for v in raw]
    try:
        value = json.loads(raw or "[]")
    except (TypeError, ValueError):
        logger.warning(f"[Roles] Unparseable member list: {raw!r}")
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


def sentinel_role(user_id: Optional[str]) -> Role:
    if not user_id:
        return Role.STANDARD
    if user_id == settings.admin_sentinel:
        return Role.ADMIN
    if user_id == settings.manager_sentinel:
        return Role.MANAGER
    return Role.STANDARD


async def get_role_members(store: DataStore, kind: str) -> List[str]:
    """Stored member list for 'admin' or 'manager'"""
    records = await store.get(APP_SETTINGS_TABLE, where={"setting_key": ROLE_SETTING_KEYS[kind]})
    if not records:
        return []
    return _parse_member_list(records[0].get("setting_value"))


async def save_role_members(store: DataStore, kind: str, user_ids: List[str]) -> List[str]:
    """Replace a member list; blanks and duplicates are dropped"""
    members = []
    for user_id in user_ids:
        user_id = str(user_id).strip()
        if user_id and user_id not in members:
            members.append(user_id)

    await store.upsert(APP_SETTINGS_TABLE, {
        "setting_key": ROLE_SETTING_KEYS[kind],
        "setting_value": json.dumps(members),
        "setting_type": "json",
        "description": ROLE_DESCRIPTIONS[kind],
    })
    logger.info(f"[Roles] Saved {len(members)} {kind} users")
    return members


async def add_role_member(store: DataStore, kind: str, user_id: str) -> List[str]:
    members = await get_role_members(store, kind)
    if user_id in members:
        raise ValueError(f"User is already a {kind}")
    return await save_role_members(store, kind, members + [user_id])


async def remove_role_member(store: DataStore, kind: str, user_id: str) -> List[str]:
    if kind == "admin" and user_id == settings.admin_sentinel:
        raise ValueError(f"Cannot remove the default admin user ({user_id})")
    members = await get_role_members(store, kind)
    if user_id not in members:
        raise ValueError(f"User is not a {kind}")
    return await save_role_members(store, kind, [m for m in members if m != user_id])


class RoleResolver:
    """Authoritative async role lookup"""

    def __init__(self, store: DataStore):
        self.store = store

    async def resolve(self, user_id: Optional[str]) -> Role:
        role = sentinel_role(user_id)
        if role is Role.ADMIN or not user_id:
            return role

        try:
            if user_id in await get_role_members(self.store, "admin"):
                return Role.ADMIN
            if role is Role.MANAGER:
                return role
            if user_id in await get_role_members(self.store, "manager"):
                return Role.MANAGER
        except DataStoreError as e:
            # Sentinels are still honored when the store is down
            logger.error(f"[Roles] Role lookup failed for {user_id}: {e}")
        return role


class RoleCache:
    """Explicitly refreshed snapshot of the stored member lists"""

    def __init__(self, store: DataStore, ttl: Optional[float] = None):
        self.store = store
        self.ttl = settings.role_cache_ttl if ttl is None else ttl
        self.resolver = RoleResolver(store)
        self._members: Dict[str, Set[str]] = {"admin": set(), "manager": set()}
        self.refreshed_at: Optional[float] = None

    def is_stale(self) -> bool:
        if self.refreshed_at is None:
            return True
        return time.monotonic() - self.refreshed_at > self.ttl

    async def refresh(self) -> None:
        """Reload both lists; on failure the previous snapshot is kept"""
        try:
            admins = await get_role_members(self.store, "admin")
            managers = await get_role_members(self.store, "manager")
        except DataStoreError as e:
            logger.error(f"[Roles] Cache refresh failed, keeping previous snapshot: {e}")
            return
        self._members = {"admin": set(admins), "manager": set(managers)}
        self.refreshed_at = time.monotonic()
        logger.debug(f"[Roles] Cache refreshed: {len(admins)} admins, {len(managers)} managers")

    async def ensure_fresh(self) -> None:
        if self.is_stale():
            await self.refresh()

    def peek(self, user_id: Optional[str]) -> Role:
        """Synchronous, possibly stale role"""
        role = sentinel_role(user_id)
        if role is Role.ADMIN or not user_id:
            return role
        if user_id in self._members["admin"]:
            return Role.ADMIN
        if role is Role.MANAGER or user_id in self._members["manager"]:
            return Role.MANAGER
        return Role.STANDARD

    async def current_role(self, user_id: Optional[str]) -> Role:
        """Role as currently stored, for permission checks"""
        return await self.resolver.resolve(user_id)

    async def require(self, user_id: Optional[str], minimum: Role, action: str) -> Role:
        """Raise PermissionDenied unless the user currently holds at least `minimum`"""
        if not user_id:
            raise NotLoggedIn(f"Please log in to {action}")
        role = await self.current_role(user_id)
        if role < minimum:
            logger.warning(f"[Roles] {user_id} ({role.label}) denied: {action}")
            who = "admin" if minimum is Role.ADMIN else "admin or manager"
            raise PermissionDenied(f"Only {who} can {action}")
        return role


# ============ CAPABILITIES ============

def can_approve(role: Role) -> bool:
    return role >= Role.MANAGER


def can_edit_candidate(role: Role, user_id: Optional[str], candidate) -> bool:
    """
    Admins and managers can edit anything. Other agents can only edit their own
    submissions; originals and alternatives carry no author to check against.
    """
    if role >= Role.MANAGER:
        return True
    if not user_id or candidate is None:
        return False
    if candidate.is_submission and candidate.submitted_by:
        return candidate.submitted_by == user_id
    return False
