"""
Teleprompter error types.

Parsing and substitution never raise; everything here is either a persistence
failure or an authorization/lifecycle refusal that callers report to the agent.
"""


class TeleprompterError(Exception):
    """Base class for all teleprompter errors"""


class DataStoreError(TeleprompterError):
    """The remote data API was unreachable or refused the request"""

    def __init__(self, message: str, table: str = None, status_code: int = None):
        super().__init__(message)
        self.table = table
        self.status_code = status_code


class DataStoreNotConfigured(DataStoreError):
    """DATA_API_URL is not set"""


class PermissionDenied(TeleprompterError):
    """The current user may not perform this action"""


class NotLoggedIn(PermissionDenied):
    """No usable user id could be resolved from the lead context"""


class InvalidTransition(TeleprompterError):
    """A submission was asked to leave a terminal state"""

    def __init__(self, submission_id, current: str, requested: str):
        super().__init__(
            f"Submission {submission_id} is already {current}; cannot mark it {requested}"
        )
        self.submission_id = submission_id
        self.current = current
        self.requested = requested
