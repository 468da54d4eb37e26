"""
Teleprompter Submission Moderation
==================================
pending -> approved   (text is promoted into the global alternatives)
pending -> rejected   (optional reason, alternatives untouched)

Both outcomes are terminal. Only admins and managers may moderate, and the
role check happens before anything is written. Approval writes the
alternative first; if that fails the submission stays pending, so a failed
approval can simply be retried.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from .alternatives import Alternative, AlternativeRepository, ItemKind
from .errors import InvalidTransition, NotLoggedIn, PermissionDenied
from .roles import Role, RoleCache, can_approve
from .submissions import Submission, SubmissionRepository, SubmissionStatus

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(
        self,
        submissions: SubmissionRepository,
        alternatives: AlternativeRepository,
        roles: RoleCache,
    ):
        self.submissions = submissions
        self.alternatives = alternatives
        self.roles = roles

    async def submit(
        self,
        user_id: Optional[str],
        script_name: str,
        text: str,
        kind: ItemKind = ItemKind.SPIEL,
        item_id: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Submission:
        """Any logged-in agent may propose a wording; it starts out pending"""
        if not user_id:
            raise NotLoggedIn("User must be logged in to submit")
        text = (text or "").strip()
        if not text:
            raise ValueError("Submission text is empty")

        item_id = item_id or kind.default_item_id
        if order is None:
            order = await self.alternatives.next_order(script_name, item_id, kind)

        submission = Submission(
            script_name=script_name,
            alt_text=text,
            alt_order=order,
            submitted_by=user_id,
            kind=kind,
            item_id=item_id,
        )
        return await self.submissions.create(submission)

    async def pending_queue(
        self,
        moderator_id: Optional[str],
        script_name: str,
        kind: ItemKind = ItemKind.SPIEL,
    ) -> Optional[List[Submission]]:
        """
        Pending submissions for a moderator. Returns None (not an empty list)
        for everyone else so callers hide the queue entirely.
        """
        if not can_approve(await self.roles.current_role(moderator_id)):
            return None
        return await self.submissions.pending_for(script_name, kind)

    async def _check_transition(self, moderator_id: Optional[str], submission: Submission, target: SubmissionStatus, verb: str):
        await self.roles.require(moderator_id, Role.MANAGER, f"{verb} submissions")
        if submission.id is None:
            raise ValueError("Invalid submission ID")
        if submission.status.is_terminal:
            raise InvalidTransition(submission.id, submission.status.value, target.value)

    async def approve(self, submission: Submission, moderator_id: Optional[str], now: Optional[datetime] = None) -> Submission:
        await self._check_transition(moderator_id, submission, SubmissionStatus.APPROVED, "approve")

        alternative = Alternative(
            script_name=submission.script_name,
            item_id=submission.item_id,
            alt_text=submission.alt_text,
            alt_order=submission.alt_order,
            is_default=False,
        )
        # A failure here propagates before the submission is touched
        await self.alternatives.save(alternative, submission.kind)

        approved = await self.submissions.mark(submission, SubmissionStatus.APPROVED, moderator_id, now=now)
        logger.info(f"[Moderation] {moderator_id} approved submission {submission.id} for {submission.script_name}")
        return approved

    async def reject(
        self,
        submission: Submission,
        moderator_id: Optional[str],
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Submission:
        await self._check_transition(moderator_id, submission, SubmissionStatus.REJECTED, "reject")
        rejected = await self.submissions.mark(submission, SubmissionStatus.REJECTED, moderator_id, reason=reason, now=now)
        logger.info(f"[Moderation] {moderator_id} rejected submission {submission.id}" + (f": {reason}" if reason else ""))
        return rejected

    async def edit_pending(self, submission: Submission, user_id: Optional[str], text: str) -> Submission:
        """Authors (and moderators) may reword a submission while it is still pending"""
        if not user_id:
            raise NotLoggedIn("Please log in to edit scripts")
        if submission.submitted_by != user_id and not can_approve(await self.roles.current_role(user_id)):
            raise PermissionDenied("You can only edit your own submissions")
        if submission.status.is_terminal:
            raise InvalidTransition(submission.id, submission.status.value, SubmissionStatus.PENDING.value)
        return await self.submissions.update_text(submission, text.strip())

    async def resubmit(self, submission: Submission, user_id: Optional[str], text: Optional[str] = None) -> Submission:
        """
        A rejected submission stays rejected. Its author may send the (edited)
        text back for review as a brand new pending submission.
        """
        if submission.status is not SubmissionStatus.REJECTED:
            raise InvalidTransition(submission.id, submission.status.value, "resubmitted")
        if submission.submitted_by != user_id:
            raise PermissionDenied("You can only resubmit your own submissions")

        fresh = replace(
            submission,
            id=None,
            alt_text=(text or submission.alt_text).strip(),
            status=SubmissionStatus.PENDING,
            approved_by=None,
            approved_at=None,
            rejection_reason=None,
            created_at=None,
        )
        created = await self.submissions.create(fresh)
        logger.info(f"[Moderation] {user_id} resubmitted {submission.id} as {created.id}")
        return created
