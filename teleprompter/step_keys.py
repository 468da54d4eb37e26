"""
Step name normalization.

The same logical step is stored under different names depending on where the
agent is working: ``greeting`` (inbound), ``outbound_greeting`` (outbound
group) and ``listid_123_greeting`` (per-list override). Selection state is
shared across all of them through the base step key.
"""

import re
from typing import Optional

CONTEXT_PREFIX = re.compile(r"^(outbound_|listid_\d+_)")


def base_step_key(step_name: str) -> str:
    """Strip one leading context prefix: 'listid_123_greeting' -> 'greeting'"""
    return CONTEXT_PREFIX.sub("", step_name or "", count=1)


def same_step(a: str, b: str) -> bool:
    return base_step_key(a) == base_step_key(b)


def script_name_for(step_name: str, list_id: Optional[str] = None, group_type: Optional[str] = None) -> str:
    """Context-specific step name used to key alternatives and submissions"""
    if list_id:
        return f"listid_{list_id}_{step_name}"
    if group_type == "outbound":
        return f"outbound_{step_name}"
    return step_name
