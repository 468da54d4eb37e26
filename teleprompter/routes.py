"""
Teleprompter API Routes
Script display, agent actions, submission moderation and role lists.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .alternatives import ItemKind
from .data_api import get_data_store
from .display import ScriptDisplayService
from .errors import (
    DataStoreError,
    DataStoreNotConfigured,
    InvalidTransition,
    PermissionDenied,
)
from .lead_context import parse_lead_params
from .roles import Role, add_role_member, get_role_members, remove_role_member

logger = logging.getLogger(__name__)

script_router = APIRouter(prefix="/api/script", tags=["script"])
submissions_router = APIRouter(prefix="/api/submissions", tags=["submissions"])
roles_router = APIRouter(prefix="/api/roles", tags=["roles"])


# ============ DEPENDENCIES ============

_display_service: Optional[ScriptDisplayService] = None


def get_display_service() -> ScriptDisplayService:
    global _display_service
    if _display_service is None:
        _display_service = ScriptDisplayService(get_data_store())
    return _display_service


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map engine errors to HTTP responses the UI shows as notifications"""
    if isinstance(e, PermissionDenied):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, InvalidTransition):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, KeyError):
        return HTTPException(status_code=404, detail="Script session not found")
    if isinstance(e, DataStoreNotConfigured):
        return HTTPException(status_code=503, detail="Data API not configured")
    if isinstance(e, DataStoreError):
        logger.error(f"[API] {action} failed: {e}")
        return HTTPException(status_code=502, detail=f"Failed to {action}")
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    raise e


# ============ PYDANTIC MODELS ============

class OpenScriptRequest(BaseModel):
    step_name: str
    query: str = ""
    base_content: Optional[str] = None
    group_type: Optional[str] = None
    kind: str = "spiel"
    item_id: Optional[str] = None
    step_title: Optional[str] = None
    logged_in_user: Optional[str] = None


class SessionRequest(BaseModel):
    user_id: Optional[str] = None
    script_name: str


class SetDefaultRequest(SessionRequest):
    index: int


class TextRequest(SessionRequest):
    text: str


class ModerationRequest(BaseModel):
    moderator_id: str
    reason: Optional[str] = None


class ResubmitRequest(BaseModel):
    user_id: str
    text: Optional[str] = None


class RoleMemberRequest(BaseModel):
    acting_user_id: str
    user_id: str


# ============ SCRIPT DISPLAY ============

@script_router.post("/open")
async def open_script(data: OpenScriptRequest, service: ScriptDisplayService = Depends(get_display_service)):
    """Build the candidate list for a step and restore the agent's selection"""
    try:
        kind = ItemKind(data.kind)
        state = await service.open(
            parse_lead_params(data.query),
            data.step_name,
            base_content=data.base_content,
            group_type=data.group_type,
            kind=kind,
            item_id=data.item_id,
            step_title=data.step_title,
            logged_in_user=data.logged_in_user,
        )
    except (ValueError, DataStoreError) as e:
        raise _http_error(e, "load script")
    return state.to_dict()


@script_router.post("/cycle")
async def cycle_script(data: SessionRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        state = await service.cycle(data.user_id, data.script_name)
    except KeyError as e:
        raise _http_error(e, "cycle script")
    return state.to_dict()


@script_router.post("/default")
async def set_default(data: SetDefaultRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        state = await service.set_default(data.user_id, data.script_name, data.index)
    except (KeyError, PermissionDenied, ValueError) as e:
        raise _http_error(e, "set default")
    return state.to_dict()


@script_router.post("/alternatives")
async def add_alternative(data: TextRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        state = await service.add_alternative(data.user_id, data.script_name, data.text)
    except (KeyError, PermissionDenied, ValueError) as e:
        raise _http_error(e, "add script")
    return state.to_dict()


@script_router.post("/edit")
async def edit_script(data: TextRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        state = await service.save_edit(data.user_id, data.script_name, data.text)
    except (KeyError, PermissionDenied, InvalidTransition) as e:
        raise _http_error(e, "update script")
    return state.to_dict()


@script_router.delete("/session")
async def close_session(script_name: str, user_id: Optional[str] = None, service: ScriptDisplayService = Depends(get_display_service)):
    """Called when the step is unmounted; pending corrective writes are cancelled"""
    if not service.close(user_id, script_name):
        raise HTTPException(status_code=404, detail="Script session not found")
    return {"success": True}


# ============ MODERATION ============

@submissions_router.get("/pending")
async def pending_submissions(
    moderator_id: str,
    script_name: str,
    kind: str = "spiel",
    service: ScriptDisplayService = Depends(get_display_service),
):
    """Pending queue; answers 404 to non-moderators so the queue's existence is not revealed"""
    try:
        queue = await service.moderation.pending_queue(moderator_id, script_name, ItemKind(kind))
    except (ValueError, DataStoreError) as e:
        raise _http_error(e, "load submissions")
    if queue is None:
        raise HTTPException(status_code=404, detail="Not found")
    return {"count": len(queue), "submissions": [s.to_record() | {"id": s.id} for s in queue]}


async def _load_submission(service: ScriptDisplayService, submission_id: int):
    submission = await service.submissions.get_by_id(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@submissions_router.post("/{submission_id}/approve")
async def approve_submission(submission_id: int, data: ModerationRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        # Role check first: non-moderators never trigger a submission lookup
        await service.roles.require(data.moderator_id, Role.MANAGER, "approve submissions")
        submission = await _load_submission(service, submission_id)
        approved = await service.moderation.approve(submission, data.moderator_id)
    except (PermissionDenied, InvalidTransition, DataStoreError, ValueError) as e:
        raise _http_error(e, "approve submission")
    return {"success": True, "message": "Submission approved and added globally", "status": approved.status.value}


@submissions_router.post("/{submission_id}/reject")
async def reject_submission(submission_id: int, data: ModerationRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        await service.roles.require(data.moderator_id, Role.MANAGER, "reject submissions")
        submission = await _load_submission(service, submission_id)
        rejected = await service.moderation.reject(submission, data.moderator_id, data.reason)
    except (PermissionDenied, InvalidTransition, DataStoreError, ValueError) as e:
        raise _http_error(e, "reject submission")
    return {"success": True, "message": "Submission rejected", "status": rejected.status.value}


@submissions_router.post("/{submission_id}/resubmit")
async def resubmit(submission_id: int, data: ResubmitRequest, service: ScriptDisplayService = Depends(get_display_service)):
    try:
        submission = await _load_submission(service, submission_id)
        created = await service.moderation.resubmit(submission, data.user_id, data.text)
    except (PermissionDenied, InvalidTransition, DataStoreError) as e:
        raise _http_error(e, "resubmit")
    return {"success": True, "id": created.id, "status": created.status.value}


# ============ ROLE LISTS ============

def _role_kind(kind: str) -> str:
    if kind not in ("admin", "manager"):
        raise HTTPException(status_code=404, detail="Unknown role")
    return kind


@roles_router.get("/{kind}")
async def list_role_members(kind: str, service: ScriptDisplayService = Depends(get_display_service)) -> List[str]:
    try:
        return await get_role_members(service.store, _role_kind(kind))
    except DataStoreError as e:
        raise _http_error(e, f"load {kind} users")


@roles_router.post("/{kind}")
async def add_member(kind: str, data: RoleMemberRequest, service: ScriptDisplayService = Depends(get_display_service)):
    kind = _role_kind(kind)
    try:
        await service.roles.require(data.acting_user_id, Role.ADMIN, f"add {kind} users")
        members = await add_role_member(service.store, kind, data.user_id)
    except (PermissionDenied, DataStoreError, ValueError) as e:
        raise _http_error(e, f"add {kind} user")
    await service.roles.refresh()
    return {"success": True, "members": members}


@roles_router.delete("/{kind}/{user_id}")
async def remove_member(kind: str, user_id: str, acting_user_id: str, service: ScriptDisplayService = Depends(get_display_service)):
    kind = _role_kind(kind)
    try:
        await service.roles.require(acting_user_id, Role.ADMIN, f"remove {kind} users")
        members = await remove_role_member(service.store, kind, user_id)
    except (PermissionDenied, DataStoreError, ValueError) as e:
        raise _http_error(e, f"remove {kind} user")
    await service.roles.refresh()
    return {"success": True, "members": members}
