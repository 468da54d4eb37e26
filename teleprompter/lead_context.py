"""
Teleprompter Lead Context
=========================
Decodes the lead/call fields the dialer appends to the teleprompter URL.

The dialer fills its launch URL from a template such as
``?first_name=--A--first_name--B--&list_id=--A--list_id--B--``. Fields it has
no value for arrive still wrapped in the ``--A--``/``--B--`` delimiters and
must never be shown to the agent, so they are dropped here.
"""

import logging
from collections.abc import Mapping
from typing import Iterator, Optional, Union
from urllib.parse import parse_qsl

logger = logging.getLogger(__name__)

PLACEHOLDER_OPEN = "--A--"
PLACEHOLDER_CLOSE = "--B--"
EMPTY_SENTINEL = PLACEHOLDER_OPEN + "--" + PLACEHOLDER_CLOSE  # "--A----B--"

# Fields that identify the agent, in lookup order
USER_ID_FIELDS = ("user", "user_code", "fullname")


def is_unfilled(value: Optional[str]) -> bool:
    """True for empty values and dialer placeholders the dialer did not fill"""
    if not value:
        return True
    if value == EMPTY_SENTINEL or value.startswith(PLACEHOLDER_OPEN):
        return True
    return PLACEHOLDER_CLOSE in value and PLACEHOLDER_OPEN in value


class LeadContext(Mapping):
    """Read-only snapshot of lead fields for one page load"""

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping] = None):
        self._data = dict(data or {})

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"LeadContext({self._data!r})"

    @property
    def list_id(self) -> Optional[str]:
        """Dialer list id, if the lead came from a configured list"""
        value = self._data.get("list_id")
        return None if is_unfilled(value) else value


def parse_lead_params(params: Union[str, Mapping, None]) -> LeadContext:
    """
    Parse a raw query string (or an already-decoded mapping) into a LeadContext.
    Empty and placeholder values are skipped; absence of data is an empty context.
    """
    if not params:
        return LeadContext()

    if isinstance(params, str):
        pairs = parse_qsl(params.lstrip("?"), keep_blank_values=True)
    else:
        pairs = params.items()

    data = {}
    for key, value in pairs:
        if is_unfilled(value):
            continue
        data[key] = value

    return LeadContext(data)


def get_user_id(context: Mapping, logged_in_user: Optional[str] = None) -> Optional[str]:
    """
    Resolve the agent's user id.
    A manually logged-in user takes priority over the dialer's agent fields.
    """
    if logged_in_user and not is_unfilled(logged_in_user):
        return logged_in_user

    for field in USER_ID_FIELDS:
        value = context.get(field)
        if not is_unfilled(value):
            return value
    return None


def format_lead_display(context: Mapping) -> str:
    """One-line lead summary for the call header"""
    parts = []

    # Customer name is first_name + last_name; fullname is the agent
    first = context.get("first_name", "")
    last = context.get("last_name", "")
    if first or last:
        parts.append(f"{first} {last}".strip())

    if context.get("phone_number"):
        parts.append(context["phone_number"])

    if context.get("city") and context.get("state"):
        parts.append(f"{context['city']}, {context['state']}")

    return " • ".join(parts)


class LeadContextHolder:
    """Owns the current lead snapshot and re-parses it on navigation"""

    def __init__(self, query: Union[str, Mapping, None] = None):
        self._context = parse_lead_params(query)

    @property
    def context(self) -> LeadContext:
        return self._context

    @property
    def in_dialer(self) -> bool:
        """Any lead data at all means we were launched by the dialer"""
        return len(self._context) > 0

    def refresh(self, query: Union[str, Mapping, None]) -> LeadContext:
        self._context = parse_lead_params(query)
        logger.debug(f"[Lead] Context refreshed: {sorted(self._context)}")
        return self._context
