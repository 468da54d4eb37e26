"""
Teleprompter Application Package
"""

from .config import settings
from .errors import (
    TeleprompterError,
    DataStoreError,
    DataStoreNotConfigured,
    PermissionDenied,
    NotLoggedIn,
    InvalidTransition,
)
from .data_api import DataStore, DataApiClient, get_data_store
from .lead_context import LeadContext, LeadContextHolder, parse_lead_params, get_user_id
from .variables import render, time_of_day, resolve_placeholder
from .step_keys import base_step_key, script_name_for
from .alternatives import Alternative, AlternativeRepository, ItemKind
from .submissions import Submission, SubmissionRepository, SubmissionStatus
from .candidates import Candidate, Origin, build_candidates
from .roles import Role, RoleCache, RoleResolver
from .selection_store import SelectionStore, UserSelection, UserAction
from .session import ScriptSession, SessionManager, session_manager
from .moderation import ModerationService
from .display import ScriptDisplayService, DisplayState

__all__ = [
    "settings",
    # Errors
    "TeleprompterError",
    "DataStoreError",
    "DataStoreNotConfigured",
    "PermissionDenied",
    "NotLoggedIn",
    "InvalidTransition",
    # Data API
    "DataStore",
    "DataApiClient",
    "get_data_store",
    # Lead context and rendering
    "LeadContext",
    "LeadContextHolder",
    "parse_lead_params",
    "get_user_id",
    "render",
    "time_of_day",
    "resolve_placeholder",
    "base_step_key",
    "script_name_for",
    # Candidates
    "Alternative",
    "AlternativeRepository",
    "ItemKind",
    "Submission",
    "SubmissionRepository",
    "SubmissionStatus",
    "Candidate",
    "Origin",
    "build_candidates",
    # Roles and moderation
    "Role",
    "RoleCache",
    "RoleResolver",
    "ModerationService",
    # Selection and sessions
    "SelectionStore",
    "UserSelection",
    "UserAction",
    "ScriptSession",
    "SessionManager",
    "session_manager",
    "ScriptDisplayService",
    "DisplayState",
]
