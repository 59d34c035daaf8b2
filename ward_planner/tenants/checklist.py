# ward_planner/tenants/checklist.py
"""Checklist markup stored in a goal's `how` field.

One step per line. `[x] ` marks a done step and `[ ] ` a pending one. Lines
with neither prefix are plain text (older plans used a `• ` bullet) and read
back as pending steps.
"""
import re
from typing import List

from pydantic import BaseModel

DONE_PREFIX = "[x] "
PENDING_PREFIX = "[ ] "
PENDING_MARKER = "[ ]"
_LEGACY_BULLET = re.compile(r"^•\s*")


class ChecklistLine(BaseModel):
    text: str
    checked: bool = False


def parse_checklist(text: str) -> List[ChecklistLine]:
    """Split `how` markup into lines. Empty input yields a single blank step."""
    if not text:
        return [ChecklistLine(text="")]
    lines = []
    for raw in text.split("\n"):
        if raw.startswith(DONE_PREFIX):
            lines.append(ChecklistLine(text=raw[len(DONE_PREFIX):], checked=True))
        elif raw.startswith(PENDING_PREFIX):
            lines.append(ChecklistLine(text=raw[len(PENDING_PREFIX):]))
        else:
            lines.append(ChecklistLine(text=_LEGACY_BULLET.sub("", raw)))
    return lines


def render_checklist(lines: List[ChecklistLine]) -> str:
    return "\n".join(
        f"{DONE_PREFIX if line.checked else PENDING_PREFIX}{line.text}" for line in lines
    )


def has_pending_steps(how: str) -> bool:
    """True while any step of the checklist is still unchecked."""
    return PENDING_MARKER in (how or "")


def toggle_step(how: str, index: int) -> str:
    """Flip one step and return the re-rendered markup.

    Raises:
        IndexError: If the checklist has no step at `index`.
    """
    lines = parse_checklist(how)
    lines[index].checked = not lines[index].checked
    return render_checklist(lines)
