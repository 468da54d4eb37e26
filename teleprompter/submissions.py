"""
Agent-submitted script wordings awaiting moderation.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .alternatives import ItemKind
from .data_api import DataStore, SUBMISSIONS_TABLE

logger = logging.getLogger(__name__)


class SubmissionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not SubmissionStatus.PENDING


def format_db_datetime(value: datetime) -> str:
    """DATETIME column format (YYYY-MM-DD HH:MM:SS)"""
    return value.strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class Submission:
    script_name: str
    alt_text: str
    alt_order: int
    submitted_by: str
    kind: ItemKind = ItemKind.SPIEL
    item_id: str = "spiel_0"
    status: SubmissionStatus = SubmissionStatus.PENDING
    id: Optional[Any] = None
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Submission":
        kind = ItemKind(record.get("submission_type") or "spiel")
        if kind is ItemKind.SPIEL:
            item_id = record.get("spiel_id") or kind.default_item_id
        else:
            item_id = record.get("objection_id") or kind.default_item_id
        return cls(
            id=record.get("id"),
            script_name=record.get("script_name", ""),
            alt_text=record.get("alt_text") or "",
            alt_order=int(record.get("alt_order") or 0),
            submitted_by=str(record.get("submitted_by") or ""),
            kind=kind,
            item_id=item_id,
            status=SubmissionStatus(record.get("status") or "pending"),
            approved_by=record.get("approved_by"),
            approved_at=record.get("approved_at"),
            rejection_reason=record.get("rejection_reason"),
            created_at=record.get("created_at"),
        )

    def to_record(self) -> Dict[str, Any]:
        # spiel_id is NOT NULL in the table, so objections store ''
        return {
            "script_name": self.script_name,
            "spiel_id": self.item_id if self.kind is ItemKind.SPIEL else "",
            "objection_id": self.item_id if self.kind is ItemKind.OBJECTION else None,
            "submission_type": self.kind.value,
            "alt_text": self.alt_text,
            "alt_order": self.alt_order,
            "submitted_by": self.submitted_by,
            "status": self.status.value,
        }


class SubmissionRepository:
    def __init__(self, store: DataStore):
        self.store = store

    async def _query(self, where: Dict[str, Any], order_by: str, order: str) -> List[Submission]:
        records = await self.store.get(SUBMISSIONS_TABLE, where=where, order_by=order_by, order=order)
        return [Submission.from_record(r) for r in records]

    async def approved_for(self, script_name: str, kind: ItemKind = ItemKind.SPIEL) -> List[Submission]:
        """Approved submissions are visible to every agent"""
        return await self._query(
            {"script_name": script_name, "submission_type": kind.value, "status": "approved"},
            "alt_order", "ASC",
        )

    async def by_user(self, script_name: str, user_id: str, kind: ItemKind = ItemKind.SPIEL) -> List[Submission]:
        """All of one agent's submissions, any status, newest first"""
        if not user_id:
            return []
        return await self._query(
            {"script_name": script_name, "submission_type": kind.value, "submitted_by": user_id},
            "created_at", "DESC",
        )

    async def pending_for(self, script_name: str, kind: ItemKind = ItemKind.SPIEL) -> List[Submission]:
        return await self._query(
            {"script_name": script_name, "submission_type": kind.value, "status": "pending"},
            "created_at", "DESC",
        )

    async def get_by_id(self, submission_id) -> Optional[Submission]:
        records = await self.store.get(SUBMISSIONS_TABLE, where={"id": submission_id})
        return Submission.from_record(records[0]) if records else None

    async def create(self, submission: Submission) -> Submission:
        record_id = await self.store.create(SUBMISSIONS_TABLE, submission.to_record())
        logger.info(f"[Submissions] {submission.submitted_by} submitted for {submission.script_name} (id={record_id})")
        return replace(submission, id=record_id)

    async def mark(
        self,
        submission: Submission,
        status: SubmissionStatus,
        moderator_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Submission:
        stamp = format_db_datetime(now or datetime.now())
        partial = {"status": status.value, "approved_by": moderator_id, "approved_at": stamp}
        if status is SubmissionStatus.REJECTED:
            partial["rejection_reason"] = reason or None
        await self.store.update(SUBMISSIONS_TABLE, submission.id, partial)
        return replace(
            submission,
            status=status,
            approved_by=moderator_id,
            approved_at=stamp,
            rejection_reason=partial.get("rejection_reason", submission.rejection_reason),
        )

    async def update_text(self, submission: Submission, text: str) -> Submission:
        await self.store.update(SUBMISSIONS_TABLE, submission.id, {"alt_text": text})
        return replace(submission, alt_text=text)
