"""
Alternative wordings promoted to global visibility for a step.
Spiels and objections keep their alternatives in separate tables.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .data_api import DataStore, SPIEL_ALTS_TABLE, OBJECTION_ALTS_TABLE

logger = logging.getLogger(__name__)

BASE_SPIEL_ID = "spiel_0"
BASE_OBJECTION_ID = "objection_0"


class ItemKind(Enum):
    SPIEL = "spiel"
    OBJECTION = "objection"

    @property
    def table(self) -> str:
        return SPIEL_ALTS_TABLE if self is ItemKind.SPIEL else OBJECTION_ALTS_TABLE

    @property
    def id_field(self) -> str:
        return "spiel_id" if self is ItemKind.SPIEL else "objection_id"

    @property
    def default_item_id(self) -> str:
        return BASE_SPIEL_ID if self is ItemKind.SPIEL else BASE_OBJECTION_ID


@dataclass(frozen=True)
class Alternative:
    script_name: str
    item_id: str
    alt_text: str
    alt_order: int
    is_default: bool = False
    id: Optional[Any] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any], kind: ItemKind = ItemKind.SPIEL) -> "Alternative":
        return cls(
            script_name=record.get("script_name", ""),
            item_id=record.get(kind.id_field) or kind.default_item_id,
            alt_text=record.get("alt_text") or "",
            alt_order=int(record.get("alt_order") or 0),
            is_default=bool(record.get("is_default")),
            id=record.get("id"),
        )

    def to_record(self, kind: ItemKind = ItemKind.SPIEL) -> Dict[str, Any]:
        return {
            "script_name": self.script_name,
            kind.id_field: self.item_id,
            "alt_text": self.alt_text,
            "alt_order": self.alt_order,
            "is_default": 1 if self.is_default else 0,
        }


class AlternativeRepository:
    """Reads and upserts alternatives; unique key is (script_name, item id, alt_order)"""

    def __init__(self, store: DataStore):
        self.store = store

    async def list_for_script(
        self,
        script_name: str,
        item_id: Optional[str] = None,
        kind: ItemKind = ItemKind.SPIEL,
    ) -> List[Alternative]:
        records = await self.store.get(
            kind.table,
            where={"script_name": script_name},
            order_by="alt_order",
            order="ASC",
        )
        item_id = item_id or kind.default_item_id
        alternatives = [Alternative.from_record(r, kind) for r in records]
        return [a for a in alternatives if a.item_id == item_id]

    async def save(self, alternative: Alternative, kind: ItemKind = ItemKind.SPIEL) -> Any:
        record_id = await self.store.upsert(kind.table, alternative.to_record(kind))
        logger.info(
            f"[Alternatives] Saved {alternative.script_name}/{alternative.item_id} "
            f"order {alternative.alt_order}"
        )
        return record_id

    async def next_order(
        self,
        script_name: str,
        item_id: Optional[str] = None,
        kind: ItemKind = ItemKind.SPIEL,
    ) -> int:
        existing = await self.list_for_script(script_name, item_id, kind)
        return max((a.alt_order for a in existing), default=0) + 1
