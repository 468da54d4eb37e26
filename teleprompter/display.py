"""
Teleprompter Script Display
===========================
Puts the pieces together for one step on the agent's screen:

lead context -> candidate list (base + alternatives + submissions)
             -> session restores/validates the index
             -> variables rendered into the chosen candidate

Also hosts the agent actions that change the list: adding a wording (it goes
in as a pending submission and becomes the agent's default) and editing the
candidate currently shown.
"""

import re
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .alternatives import Alternative, AlternativeRepository, ItemKind
from .candidates import Candidate, Origin, build_candidates
from .data_api import DataStore
from .errors import DataStoreError, NotLoggedIn, PermissionDenied
from .lead_context import LeadContext, get_user_id
from .moderation import ModerationService
from .roles import Role, RoleCache, can_edit_candidate
from .scripts import ScriptRepository
from .selection_store import SelectionStore, UserAction
from .session import ScriptSession, SessionManager, session_manager
from .step_keys import script_name_for
from .submissions import SubmissionRepository, SubmissionStatus
from .variables import find_placeholders, render

logger = logging.getLogger(__name__)

UNCONFIGURED_MESSAGE = "No script configured for this step yet."

HTML_TAG = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)


def clean_script_text(text: str) -> str:
    """Plain text is trimmed; HTML from the rich text editor is kept as written"""
    if not text:
        return ""
    return text if HTML_TAG.search(text) else text.strip()


@dataclass(frozen=True)
class ScriptTarget:
    """Which script a session shows: the bare step plus its context"""
    step_name: str
    script_name: str
    list_id: Optional[str] = None
    kind: ItemKind = ItemKind.SPIEL
    item_id: str = "spiel_0"
    step_title: Optional[str] = None
    base_content: str = ""


@dataclass
class DisplayState:
    step_name: str
    script_name: str
    index: int
    total: int
    default_index: Optional[int]
    text: str
    raw_text: str
    candidate: Optional[Dict[str, Any]]
    can_edit: bool
    can_cycle: bool
    role: str
    unresolved: List[str] = field(default_factory=list)
    notifications: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def unconfigured(self) -> bool:
        return self.total == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "script_name": self.script_name,
            "index": self.index,
            "total": self.total,
            "default_index": self.default_index,
            "text": self.text if self.total else UNCONFIGURED_MESSAGE,
            "raw_text": self.raw_text,
            "candidate": self.candidate,
            "can_edit": self.can_edit,
            "can_cycle": self.can_cycle,
            "role": self.role,
            "unresolved": self.unresolved,
            "unconfigured": self.unconfigured,
            "notifications": self.notifications,
        }


class ScriptDisplayService:
    def __init__(
        self,
        store: DataStore,
        roles: Optional[RoleCache] = None,
        sessions: Optional[SessionManager] = None,
    ):
        self.store = store
        self.roles = roles or RoleCache(store)
        self.sessions = sessions if sessions is not None else session_manager
        self.alternatives = AlternativeRepository(store)
        self.submissions = SubmissionRepository(store)
        self.scripts = ScriptRepository(store)
        self.selections = SelectionStore(store)
        self.moderation = ModerationService(self.submissions, self.alternatives, self.roles)

    # ============ LIST BUILDING ============

    async def build_candidates(self, target: ScriptTarget, user_id: Optional[str]) -> Tuple[Candidate, ...]:
        """Fetch every source for the step; a source that fails to load is treated as empty"""
        try:
            alternatives = await self.alternatives.list_for_script(target.script_name, target.item_id, target.kind)
        except DataStoreError as e:
            logger.error(f"[Display] Error loading alternatives for {target.script_name}: {e}")
            alternatives = []

        try:
            approved = await self.submissions.approved_for(target.script_name, target.kind)
            own = await self.submissions.by_user(target.script_name, user_id, target.kind) if user_id else []
        except DataStoreError as e:
            logger.warning(f"[Display] Submissions unavailable for {target.script_name}, continuing without them: {e}")
            approved, own = [], []

        approved = [s for s in approved if s.item_id == target.item_id]
        own = [s for s in own if s.item_id == target.item_id]
        return build_candidates(target.base_content, alternatives, approved, own)

    async def refresh(self, session: ScriptSession) -> None:
        candidates = await self.build_candidates(session.target, session.user_id)
        await session.load(candidates)

    # ============ STATE ============

    def state(self, session: ScriptSession, now: Optional[datetime] = None) -> DisplayState:
        role = self.roles.peek(session.user_id)
        candidate = session.current
        raw_text = candidate.text if candidate else ""
        text = render(raw_text, session.context or {}, now=now)
        return DisplayState(
            step_name=session.target.step_name,
            script_name=session.target.script_name,
            index=session.safe_index,
            total=session.total,
            default_index=session.default_index,
            text=text,
            raw_text=raw_text,
            candidate=candidate.to_dict() if candidate else None,
            can_edit=can_edit_candidate(role, session.user_id, candidate),
            can_cycle=session.total > 1,
            role=role.label,
            unresolved=find_placeholders(text),
            notifications=[n.to_dict() for n in session.notifier.drain()],
        )

    def get_session(self, user_id: Optional[str], script_name: str) -> ScriptSession:
        session = self.sessions.get(user_id, script_name)
        if session is None or session.closed:
            raise KeyError(script_name)
        return session

    # ============ OPEN ============

    async def open(
        self,
        context: LeadContext,
        step_name: str,
        base_content: Optional[str] = None,
        group_type: Optional[str] = None,
        kind: ItemKind = ItemKind.SPIEL,
        item_id: Optional[str] = None,
        step_title: Optional[str] = None,
        logged_in_user: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DisplayState:
        user_id = get_user_id(context, logged_in_user)
        list_id = context.list_id
        script_name = script_name_for(step_name, list_id, group_type)

        if base_content is None:
            try:
                base_content = await self.scripts.get_base_content(step_name, list_id)
            except DataStoreError as e:
                logger.error(f"[Display] Could not load base script for {step_name}: {e}")
                base_content = ""

        target = ScriptTarget(
            step_name=step_name,
            script_name=script_name,
            list_id=list_id,
            kind=kind,
            item_id=item_id or kind.default_item_id,
            step_title=step_title,
            base_content=base_content or "",
        )

        await self.roles.ensure_fresh()

        session = self.sessions.get_or_create(user_id, script_name, self.selections)
        first_view = not session.restored
        session.context = context
        session.target = target
        await self.refresh(session)

        if first_view and session.total:
            await self.selections.log_user_action(
                user_id, UserAction.VIEWED, f"Viewed {step_name} script section",
                metadata={"stepName": script_name, "listId": list_id},
            )

        return self.state(session, now=now)

    # ============ AGENT ACTIONS ============

    async def cycle(self, user_id: Optional[str], script_name: str, now: Optional[datetime] = None) -> DisplayState:
        session = self.get_session(user_id, script_name)
        session.cycle()
        return self.state(session, now=now)

    async def set_default(self, user_id: Optional[str], script_name: str, index: int, now: Optional[datetime] = None) -> DisplayState:
        session = self.get_session(user_id, script_name)
        session.set_default(index)
        return self.state(session, now=now)

    async def add_alternative(self, user_id: Optional[str], script_name: str, text: str, now: Optional[datetime] = None) -> DisplayState:
        """Submit a new wording for review and make it this agent's default right away"""
        session = self.get_session(user_id, script_name)
        if not user_id:
            raise NotLoggedIn("Please log in to add scripts")

        text = clean_script_text(text)
        if not text:
            return self.state(session, now=now)

        target = session.target
        try:
            submission = await self.moderation.submit(user_id, target.script_name, text, target.kind, target.item_id)
        except DataStoreError as e:
            logger.error(f"[Display] Error adding script for {script_name}: {e}")
            session.notifier.error("Failed to add script")
            return self.state(session, now=now)

        await session.flush()
        await self.refresh(session)

        new_id = f"submission:{submission.id}"
        new_index = next((i for i, c in enumerate(session.candidates) if c.id == new_id), session.total - 1)
        session.set_default(new_index, show=True, quiet=True)
        await session.flush()
        session.notifier.success("Script saved and set as your default")

        await self.selections.log_user_action(
            user_id, UserAction.SUBMITTED, f"Added and set as default script for {target.step_name}",
            metadata={"stepName": script_name, "altText": text},
        )
        return self.state(session, now=now)

    async def save_edit(self, user_id: Optional[str], script_name: str, text: str, now: Optional[datetime] = None) -> DisplayState:
        """Save new text for the candidate currently shown"""
        session = self.get_session(user_id, script_name)
        candidate = session.current
        role = await self.roles.current_role(user_id)
        if not can_edit_candidate(role, user_id, candidate):
            raise PermissionDenied("You don't have permission to edit this script")

        text = clean_script_text(text)
        if not text:
            return self.state(session, now=now)

        target = session.target
        try:
            if candidate.origin is Origin.ORIGINAL:
                await self.scripts.save_base_content(target.step_name, text, target.step_title, target.list_id)
                session.target = replace(target, base_content=text)
                message = "Script updated"
            elif candidate.origin is Origin.ALTERNATIVE:
                await self.alternatives.save(
                    Alternative(target.script_name, target.item_id, text, candidate.order), target.kind
                )
                message = "Alternative saved"
            else:
                await self._edit_submission(candidate, user_id, role, text, target)
                message = "Submission updated"
        except DataStoreError as e:
            logger.error(f"[Display] Error saving edit for {script_name}: {e}")
            session.notifier.error("Failed to update script")
            return self.state(session, now=now)

        session.notifier.success(message)
        await self.selections.log_user_action(
            user_id, UserAction.MODIFIED, f"Modified {candidate.origin.value} for {target.step_name}",
            metadata={"stepName": script_name, "previousText": candidate.text, "newText": text},
        )
        await self.refresh(session)
        return self.state(session, now=now)

    async def _edit_submission(self, candidate: Candidate, user_id: str, role: Role, text: str, target: ScriptTarget):
        submission = await self.submissions.get_by_id(candidate.submission_id)
        if submission is None:
            raise DataStoreError(f"Submission {candidate.submission_id} not found")

        if submission.status is SubmissionStatus.APPROVED and role >= Role.MANAGER:
            # Keep the promoted alternative and the submission in step so it is still shown once
            await self.alternatives.save(
                Alternative(target.script_name, target.item_id, text, submission.alt_order), target.kind
            )
            await self.submissions.update_text(submission, text)
            return

        await self.moderation.edit_pending(submission, user_id, text)

    def close(self, user_id: Optional[str], script_name: str) -> bool:
        return self.sessions.remove(user_id, script_name)
