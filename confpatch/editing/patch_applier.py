"""
Patch applier — replays parsed hunks against the exact original text,
verifying every context and removed line before touching anything.
"""

from __future__ import annotations

import logging
from typing import Optional

from .diff_parser import DiffParser
from .hunks import Hunk, LineKind, UnifiedDiff, join_lines, split_lines

logger = logging.getLogger(__name__)


class DiffApplyError(Exception):
    """Raised when a diff cannot be applied cleanly."""


class ContextMismatchError(DiffApplyError):
    """Raised when a context or removed line differs from the original."""

    def __init__(self, expected: str, found: Optional[str], position: int,
                 removed: bool = False) -> None:
        self.expected = expected
        self.found = found
        self.position = position
        what = "Removed line" if removed else "Context"
        shown = "<EOF>" if found is None else repr(found)
        super().__init__(
            f"{what} mismatch at line {position}: "
            f"expected {expected!r}, found {shown}"
        )


class PatchApplier:
    """Apply a :class:`UnifiedDiff` to the text it was generated against."""

    def apply(self, original: str, diff: UnifiedDiff) -> str:
        """Return *original* with every hunk of *diff* applied.

        Raises
        ------
        ContextMismatchError
            When any context or removed line does not match byte-for-byte.
        DiffApplyError
            When hunks overlap, run backwards or start past the end.
        """
        source = split_lines(original)
        result: list[str] = []
        pos = 0  # 0-based index of the next unconsumed original line

        for number, hunk in enumerate(diff.hunks, start=1):
            start = self._hunk_start(hunk)
            if start < pos:
                raise DiffApplyError(
                    f"Hunk {number} ({hunk.header}) overlaps the previous hunk"
                )
            if start > len(source):
                raise DiffApplyError(
                    f"Hunk {number} ({hunk.header}) starts past the end of "
                    f"the original ({len(source)} lines)"
                )

            result.extend(source[pos:start])
            pos = start

            for line in hunk.lines:
                if line.kind is LineKind.ADDED:
                    result.append(line.text)
                    continue
                found = source[pos] if pos < len(source) else None
                if found != line.text:
                    logger.warning(
                        "[Diff] %s mismatch in hunk %d at line %d",
                        "Removed line" if line.kind is LineKind.REMOVED else "Context",
                        number, pos + 1,
                    )
                    raise ContextMismatchError(
                        expected=line.text,
                        found=found,
                        position=pos + 1,
                        removed=line.kind is LineKind.REMOVED,
                    )
                if line.kind is LineKind.CONTEXT:
                    result.append(line.text)
                pos += 1

        result.extend(source[pos:])
        return join_lines(result)

    @staticmethod
    def _hunk_start(hunk: Hunk) -> int:
        """0-based index of the first original line the hunk consumes."""
        if hunk.old_count == 0:
            return hunk.old_start
        return max(hunk.old_start - 1, 0)


def apply_diff(original: str, diff: UnifiedDiff) -> str:
    """Apply *diff* to *original*; see :meth:`PatchApplier.apply`."""
    return PatchApplier().apply(original, diff)


def apply_diff_text(original: str, diff_text: str) -> str:
    """Parse *diff_text* and apply it to *original* in one step."""
    return PatchApplier().apply(original, DiffParser().parse(diff_text))
