"""
Diff generator — computes a readable unified diff between two texts.

The aligner is a bounded greedy walk, not a minimal edit script: on a
mismatch it looks a few lines ahead in the modified text for the current
original line and otherwise records a one-line replacement.  The output
always round-trips through the parser and applier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .hunks import Hunk, HunkLine, LineKind, UnifiedDiff, split_lines

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LINES = 3
DEFAULT_LOOKAHEAD = 10

# Added to len(original) + len(modified) to bound the alignment loop
_ITERATION_SLACK = 100


@dataclass
class _Op:
    """An aligned line plus the cursor positions (0-based) before it."""
    line: HunkLine
    old_pos: int
    new_pos: int


class DiffGenerator:
    """Generate unified diffs with a bounded greedy line aligner."""

    def __init__(
        self,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        lookahead: int = DEFAULT_LOOKAHEAD,
    ) -> None:
        self._context = max(0, context_lines)
        self._lookahead = max(1, lookahead)

    def generate(
        self,
        original: str,
        modified: str,
        old_label: str = "original",
        new_label: str = "modified",
    ) -> UnifiedDiff:
        """Return the hunks turning *original* into *modified*."""
        ops = self._align(split_lines(original), split_lines(modified))
        hunks = self._build_hunks(ops)
        logger.debug(
            "[Diff] %s -> %s: %d hunk(s) from %d aligned line(s)",
            old_label, new_label, len(hunks), len(ops),
        )
        return UnifiedDiff(old_label=old_label, new_label=new_label, hunks=hunks)

    def unified_diff(
        self,
        original: str,
        modified: str,
        old_label: str = "original",
        new_label: str = "modified",
    ) -> str:
        """Return the diff rendered as text."""
        return self.generate(original, modified, old_label, new_label).render()

    # ------------------------------------------------------------------
    # Alignment
    # ------------------------------------------------------------------

    def _align(self, original: list[str], modified: list[str]) -> list[_Op]:
        ops: list[_Op] = []
        i = 0
        j = 0
        max_iterations = len(original) + len(modified) + _ITERATION_SLACK
        iterations = 0

        while (i < len(original) or j < len(modified)) and iterations < max_iterations:
            iterations += 1

            if i >= len(original):
                ops.append(_Op(HunkLine.added(modified[j]), i, j))
                j += 1
            elif j >= len(modified):
                ops.append(_Op(HunkLine.removed(original[i]), i, j))
                i += 1
            elif original[i] == modified[j]:
                ops.append(_Op(HunkLine.context(original[i]), i, j))
                i += 1
                j += 1
            else:
                match = self._find_ahead(modified, j, original[i])
                if match is not None:
                    for k in range(j, match):
                        ops.append(_Op(HunkLine.added(modified[k]), i, k))
                    j = match
                else:
                    ops.append(_Op(HunkLine.removed(original[i]), i, j))
                    ops.append(_Op(HunkLine.added(modified[j]), i + 1, j))
                    i += 1
                    j += 1

        if i < len(original) or j < len(modified):
            logger.warning(
                "[Diff] Alignment hit the iteration cap (%d); "
                "emitting the remainder as a replacement",
                max_iterations,
            )
            for k in range(i, len(original)):
                ops.append(_Op(HunkLine.removed(original[k]), k, j))
            for k in range(j, len(modified)):
                ops.append(_Op(HunkLine.added(modified[k]), len(original), k))

        return ops

    def _find_ahead(self, modified: list[str], j: int, target: str) -> int | None:
        """Index of *target* within the lookahead window after *j*, or None."""
        end = min(len(modified), j + 1 + self._lookahead)
        for k in range(j + 1, end):
            if modified[k] == target:
                return k
        return None

    # ------------------------------------------------------------------
    # Hunk grouping
    # ------------------------------------------------------------------

    def _build_hunks(self, ops: list[_Op]) -> list[Hunk]:
        changes = [
            idx for idx, op in enumerate(ops)
            if op.line.kind is not LineKind.CONTEXT
        ]
        if not changes:
            return []

        # Change regions separated by at most 2*context lines share a hunk
        groups: list[tuple[int, int]] = []
        first = last = changes[0]
        for idx in changes[1:]:
            if idx - last - 1 <= 2 * self._context:
                last = idx
            else:
                groups.append((first, last))
                first = last = idx
        groups.append((first, last))

        hunks: list[Hunk] = []
        for first, last in groups:
            start = max(0, first - self._context)
            end = min(len(ops), last + self._context + 1)
            lines = [op.line for op in ops[start:end]]
            old_count = sum(1 for line in lines if line.in_old)
            new_count = sum(1 for line in lines if line.in_new)
            head = ops[start]
            hunks.append(Hunk(
                old_start=head.old_pos + 1 if old_count else head.old_pos,
                old_count=old_count,
                new_start=head.new_pos + 1 if new_count else head.new_pos,
                new_count=new_count,
                lines=lines,
            ))
        return hunks


def unified_diff(
    original: str,
    modified: str,
    old_label: str = "original",
    new_label: str = "modified",
    context_lines: int = DEFAULT_CONTEXT_LINES,
) -> str:
    """Return unified diff text between *original* and *modified*."""
    return DiffGenerator(context_lines=context_lines).unified_diff(
        original, modified, old_label, new_label,
    )


def generate_diff(
    original: str,
    modified: str,
    old_label: str = "original",
    new_label: str = "modified",
    context_lines: int = DEFAULT_CONTEXT_LINES,
    lookahead: int = DEFAULT_LOOKAHEAD,
) -> UnifiedDiff:
    """Return the :class:`UnifiedDiff` between *original* and *modified*."""
    return DiffGenerator(context_lines=context_lines, lookahead=lookahead).generate(
        original, modified, old_label, new_label,
    )
