"""
Patch kind detection — tells unified diffs, JSON edit scripts and plain
replacement text apart by looking at the content.
"""

from __future__ import annotations

import json
from enum import Enum

from .diff_parser import NEW_FILE_PREFIX, OLD_FILE_PREFIX

CONFLICT_MARKERS = ("<<<<<<<", ">>>>>>>")


class PatchKind(str, Enum):
    UNIFIED_DIFF = "unified_diff"
    EDIT_SCRIPT = "edit_script"
    TEXT = "text"


def looks_like_unified_diff(patch: str) -> bool:
    """True when the first non-blank line is a ``---`` marker followed by ``+++``."""
    lines = patch.lstrip("\n").split("\n", 2)
    return (
        len(lines) >= 2
        and lines[0].startswith(OLD_FILE_PREFIX)
        and lines[1].startswith(NEW_FILE_PREFIX)
    )


def load_edit_script(patch: str) -> list | None:
    """Return the ``operations`` list of a JSON edit script, or None."""
    stripped = patch.strip()
    if not stripped.startswith("{"):
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    operations = data.get("operations")
    return operations if isinstance(operations, list) else None


def detect_patch_kind(patch: str) -> PatchKind:
    if looks_like_unified_diff(patch):
        return PatchKind.UNIFIED_DIFF
    if load_edit_script(patch) is not None:
        return PatchKind.EDIT_SCRIPT
    return PatchKind.TEXT


def has_conflict_markers(text: str) -> bool:
    """True when a line (or a diff line's payload) opens/closes a conflict."""
    for line in text.split("\n"):
        if line[:1] in (" ", "+", "-"):
            line = line[1:]
        if line.startswith(CONFLICT_MARKERS):
            return True
    return False
