"""
Teleprompter Selection Store
============================
Per-agent memory of which candidate is showing for each step.

Selections live in the append-only user history table: every write appends a
record carrying the agent's complete settings snapshot, and reads take the
newest snapshot that mentions the step. Last write wins per step.

Each write is a read-modify-write of the whole snapshot, so writes for one
user are serialized through a per-user lock; otherwise two steps written at
once would each append a copy missing the other.

Lookups are cross-context: if ``outbound_greeting`` has no entry, an entry
stored under ``greeting`` or ``listid_7_greeting`` answers for it. Writes
always go to the literal step name being viewed.
"""

import json
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .config import settings
from .data_api import DataStore, USER_HISTORY_TABLE
from .errors import DataStoreError
from .step_keys import base_step_key

logger = logging.getLogger(__name__)


class UserAction(Enum):
    VIEWED = "viewed"
    MODIFIED = "modified"
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    SELECTED = "selected"
    CYCLED = "cycled"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class UserSelection:
    selected_index: int
    total_alternatives: int
    last_updated: str
    default_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSelection":
        default = data.get("defaultIndex")
        return cls(
            selected_index=int(data.get("selectedIndex", 0)),
            default_index=int(default) if isinstance(default, (int, float)) else None,
            total_alternatives=int(data.get("totalAlternatives", 0)),
            last_updated=data.get("lastUpdated", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "selectedIndex": self.selected_index,
            "totalAlternatives": self.total_alternatives,
            "lastUpdated": self.last_updated,
        }
        if self.default_index is not None:
            data["defaultIndex"] = self.default_index
        return data


@dataclass(frozen=True)
class Restoration:
    """Index to show on load, after precedence and clamping"""
    index: int
    default_index: Optional[int] = None
    corrected: bool = False
    persisted: bool = True


SpielSettings = Dict[str, UserSelection]


def _now_iso(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _parse_settings(raw) -> Optional[SpielSettings]:
    if not raw:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("[Selection] Skipping history record with malformed spiels_settings")
            return None
    if not isinstance(raw, dict):
        return None
    parsed = {}
    for step_name, entry in raw.items():
        if isinstance(entry, dict):
            parsed[step_name] = UserSelection.from_dict(entry)
    return parsed


def _serialize_settings(spiel_settings: SpielSettings) -> str:
    return json.dumps({step: entry.to_dict() for step, entry in spiel_settings.items()})


def find_entry(spiel_settings: SpielSettings, step_name: str) -> Optional[UserSelection]:
    """Exact step name first, then any stored step with the same base key"""
    if step_name in spiel_settings:
        return spiel_settings[step_name]
    base = base_step_key(step_name)
    for key, entry in spiel_settings.items():
        if base_step_key(key) == base:
            return entry
    return None


def _preserved(spiel_settings: SpielSettings, step_name: str, attr: str) -> Optional[int]:
    """First non-empty value of `attr` across the step's context variants, exact name first"""
    exact = spiel_settings.get(step_name)
    if exact is not None and getattr(exact, attr) is not None:
        return getattr(exact, attr)
    base = base_step_key(step_name)
    for key, entry in spiel_settings.items():
        if base_step_key(key) == base and getattr(entry, attr) is not None:
            return getattr(entry, attr)
    return None


class SelectionStore:
    def __init__(self, store: DataStore, lookback: Optional[int] = None):
        self.store = store
        self.lookback = lookback or settings.history_lookback
        self._locks: Dict[str, asyncio.Lock] = {}

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def _recent_snapshots(self, user_id: str):
        records = await self.store.get(
            USER_HISTORY_TABLE,
            where={"user_id": user_id},
            order_by="created_at",
            order="DESC",
            limit=self.lookback,
        )
        for record in records:
            parsed = _parse_settings(record.get("spiels_settings"))
            if parsed is not None:
                yield parsed

    async def all_settings(self, user_id: str) -> SpielSettings:
        """The agent's newest complete settings snapshot"""
        async for snapshot in self._recent_snapshots(user_id):
            return snapshot
        return {}

    async def get(self, user_id: str, step_name: str) -> Optional[UserSelection]:
        if not user_id:
            return None
        async for snapshot in self._recent_snapshots(user_id):
            entry = find_entry(snapshot, step_name)
            if entry is not None:
                return entry
        return None

    async def append_history(
        self,
        user_id: str,
        action: UserAction,
        description: str,
        spiel_settings: Optional[SpielSettings] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        """Append one history record; raises DataStoreError on failure"""
        record = {"user_id": user_id, "action": action.value, "description": description}
        if ip_address:
            record["ip_address"] = ip_address
        if user_agent:
            record["user_agent"] = user_agent
        # JSON columns are sent as JSON strings
        if spiel_settings is not None:
            record["spiels_settings"] = _serialize_settings(spiel_settings)
        if metadata is not None:
            record["metadata"] = json.dumps(metadata)
        return await self.store.create(USER_HISTORY_TABLE, record)

    async def log_user_action(self, user_id: Optional[str], action: UserAction, description: str, **kwargs) -> None:
        """Fire-and-forget activity logging; failures never reach the agent"""
        if not user_id:
            logger.warning(f"[History] Cannot log '{action.value}': no user id")
            return
        try:
            await self.append_history(user_id, action, description, **kwargs)
        except DataStoreError as e:
            logger.error(f"[History] Failed to log '{action.value}' for {user_id}: {e}")

    async def set_selected(
        self,
        user_id: str,
        step_name: str,
        index: int,
        total: int,
        action: UserAction = UserAction.SELECTED,
        now: Optional[datetime] = None,
    ) -> UserSelection:
        async with self._user_lock(user_id):
            current = await self.all_settings(user_id)
            entry = UserSelection(
                selected_index=index,
                default_index=_preserved(current, step_name, "default_index"),
                total_alternatives=total,
                last_updated=_now_iso(now),
            )
            await self.append_history(
                user_id,
                action,
                f"Selected spiel alternative {index + 1} of {total} for {step_name}",
                spiel_settings={**current, step_name: entry},
                metadata={"stepName": step_name, "selectedIndex": index, "totalAlternatives": total},
            )
        logger.debug(f"[Selection] {user_id} {step_name} -> {index}/{total}")
        return entry

    async def set_default(
        self,
        user_id: str,
        step_name: str,
        index: int,
        total: int,
        now: Optional[datetime] = None,
    ) -> UserSelection:
        async with self._user_lock(user_id):
            current = await self.all_settings(user_id)
            selected = _preserved(current, step_name, "selected_index")
            entry = UserSelection(
                selected_index=index if selected is None else selected,
                default_index=index,
                total_alternatives=total,
                last_updated=_now_iso(now),
            )
            await self.append_history(
                user_id,
                UserAction.UPDATED,
                f"Set spiel alternative {index + 1} as default for {step_name}",
                spiel_settings={**current, step_name: entry},
                metadata={"stepName": step_name, "defaultIndex": index, "totalAlternatives": total},
            )
        logger.info(f"[Selection] {user_id} default for {step_name} -> {index}")
        return entry

    async def restore(self, user_id: Optional[str], step_name: str, length: int) -> Restoration:
        """
        Index to show when a step loads. A default in range always wins over the
        last cycled position; an out-of-range selection is clamped to the last
        candidate and the correction is written back.
        """
        if not user_id or length <= 0:
            return Restoration(index=0)

        entry = await self.get(user_id, step_name)
        if entry is None:
            return Restoration(index=0)

        if entry.default_index is not None and 0 <= entry.default_index < length:
            return Restoration(index=entry.default_index, default_index=entry.default_index)

        if 0 <= entry.selected_index < length:
            return Restoration(index=entry.selected_index)

        if entry.selected_index < 0:
            return Restoration(index=0)

        valid = length - 1
        logger.warning(
            f"[Selection] {user_id} {step_name}: stored index {entry.selected_index} "
            f"out of range for {length} candidates, clamping to {valid}"
        )
        try:
            await self.set_selected(user_id, step_name, valid, length)
        except DataStoreError as e:
            logger.error(f"[Selection] Failed to persist clamped index for {step_name}: {e}")
            return Restoration(index=valid, corrected=True, persisted=False)
        return Restoration(index=valid, corrected=True)
