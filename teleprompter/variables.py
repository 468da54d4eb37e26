"""
Teleprompter Variable Substitution
==================================
Fills ``[Placeholder]`` tokens in script text from the lead context.

Resolution order for each token:
1. PLACEHOLDER_MAPPINGS - first populated field wins
2. exact match of the normalized label ("First Name" -> "first_name")
3. substring match against any context key, first match wins
4. "Customer Name" falls back to the first-name field

A token with no value is left exactly as written so the agent sees the gap.
"""

import re
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

from .config import settings

logger = logging.getLogger(__name__)

DAYPART_TOKEN = re.compile(r"\[morning/afternoon/evening\]", re.IGNORECASE)
PLACEHOLDER_TOKEN = re.compile(r"\[([^\]]+)\]")

# Dialer data: first_name/last_name are the customer, fullname is the agent
PLACEHOLDER_MAPPINGS: Dict[str, List[str]] = {
    "Name": ["first_name", "firstname"],
    "First Name": ["first_name", "firstname"],
    "Last Name": ["last_name", "lastname"],
    "Customer Name": ["first_name", "firstname"],
    "Your Name": ["fullname", "agent_name"],
    "Agent Name": ["fullname", "agent_name"],
    "Company": ["company", "company_name"],
    "Company Name": ["company", "company_name"],
    "State": ["address3"],
    "City": ["city"],
    "Phone": ["phone_number", "phone"],
    "Email": ["email", "email_address"],
    "Address": ["address1", "address"],
    "Zip": ["postal_code", "zip", "zipcode"],
    "Zip Code": ["postal_code", "zip", "zipcode"],
    "Date": ["entry_date", "date"],
    "Time": ["entry_date", "time"],
}


def time_of_day(now: Optional[datetime] = None, timezone: Optional[str] = None) -> str:
    """
    morning (05:00-11:59), afternoon (12:00-16:59), otherwise evening.
    Aware datetimes are converted to the reference timezone; naive ones are
    taken as wall-clock time there already.
    """
    zone = ZoneInfo(timezone or settings.reference_timezone)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is not None:
        now = now.astimezone(zone)

    hour = now.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    return "evening"


def normalize_label(label: str) -> str:
    return re.sub(r"\s+", "_", label.lower())


def resolve_placeholder(label: str, context: Mapping) -> str:
    """Value for one placeholder label, or '' when nothing matches"""
    for field in PLACEHOLDER_MAPPINGS.get(label, ()):
        if context.get(field):
            return context[field]

    normalized = normalize_label(label)
    if context.get(normalized):
        return context[normalized]

    for key, value in context.items():
        key_lower = key.lower()
        if normalized in key_lower or key_lower in normalized:
            if value:
                return value
            break

    if label == "Customer Name":
        return context.get("first_name") or context.get("firstname") or ""

    return ""


def render(template: str, context: Mapping, now: Optional[datetime] = None) -> str:
    """Substitute the daypart token and every resolvable [Placeholder]"""
    if not template:
        return template or ""

    text = DAYPART_TOKEN.sub(time_of_day(now), template)

    def _replace(match: re.Match) -> str:
        value = resolve_placeholder(match.group(1), context)
        return value if value else match.group(0)

    return PLACEHOLDER_TOKEN.sub(_replace, text)


def find_placeholders(text: str) -> List[str]:
    """Labels of all bracketed tokens in order of appearance"""
    if not text:
        return []
    return PLACEHOLDER_TOKEN.findall(text)
