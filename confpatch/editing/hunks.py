"""
Hunk model — the data types describing a unified diff.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LineKind(str, Enum):
    CONTEXT = " "
    REMOVED = "-"
    ADDED = "+"


@dataclass(frozen=True)
class HunkLine:
    """One diff line: context, removed or added text (without newline)."""
    kind: LineKind
    text: str

    @classmethod
    def context(cls, text: str) -> "HunkLine":
        return cls(LineKind.CONTEXT, text)

    @classmethod
    def removed(cls, text: str) -> "HunkLine":
        return cls(LineKind.REMOVED, text)

    @classmethod
    def added(cls, text: str) -> "HunkLine":
        return cls(LineKind.ADDED, text)

    @property
    def in_old(self) -> bool:
        return self.kind is not LineKind.ADDED

    @property
    def in_new(self) -> bool:
        return self.kind is not LineKind.REMOVED

    def render(self) -> str:
        return f"{self.kind.value}{self.text}"


@dataclass
class Hunk:
    """A contiguous change region plus surrounding context.

    ``old_start``/``new_start`` are 1-indexed.  When a side's count is 0
    the start names the line after which the change sits (``@@ -0,0 ...``
    for an empty side).
    """
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[HunkLine] = field(default_factory=list)

    @property
    def header(self) -> str:
        return (f"@@ -{self.old_start},{self.old_count} "
                f"+{self.new_start},{self.new_count} @@")

    def tally(self) -> tuple[int, int]:
        """Return (old side line count, new side line count) from the lines."""
        old = sum(1 for line in self.lines if line.in_old)
        new = sum(1 for line in self.lines if line.in_new)
        return old, new

    def is_consistent(self) -> bool:
        return self.tally() == (self.old_count, self.new_count)


@dataclass
class UnifiedDiff:
    """A full diff between two labelled texts."""
    old_label: str
    new_label: str
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines
                   if line.kind is LineKind.ADDED)

    @property
    def removed_count(self) -> int:
        return sum(1 for h in self.hunks for line in h.lines
                   if line.kind is LineKind.REMOVED)

    @property
    def is_empty(self) -> bool:
        return self.added_count == 0 and self.removed_count == 0

    def render(self) -> str:
        """Render as unified-diff text (always newline-terminated)."""
        out = [f"--- {self.old_label}", f"+++ {self.new_label}"]
        for hunk in self.hunks:
            out.append(hunk.header)
            out.extend(line.render() for line in hunk.lines)
        return "\n".join(out) + "\n"


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, so ``join_lines(split_lines(t)) == t``."""
    return text.split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)
