"""
Diff parser — parses unified-diff text back into the hunk model,
validating its structure line by line.
"""

from __future__ import annotations

import logging
import re

from .hunks import Hunk, HunkLine, UnifiedDiff

logger = logging.getLogger(__name__)

# Markers
OLD_FILE_PREFIX = "--- "
NEW_FILE_PREFIX = "+++ "
_NO_NEWLINE_MARKER = "\\ No newline at end of file"

# Patterns
HUNK_HEADER_RE = re.compile(
    r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(?: .*)?$"
)


class DiffParseError(ValueError):
    """Raised when diff text does not follow the unified-diff grammar."""

    def __init__(self, message: str, line_number: int = 0, line: str = "") -> None:
        self.line_number = line_number
        self.line = line
        if line_number:
            message = f"{message} (line {line_number}: {line!r})"
        super().__init__(message)


class DiffParser:
    """Parse unified diffs produced by the generator or written by hand."""

    def parse(self, diff_text: str) -> UnifiedDiff:
        """Parse *diff_text* into a :class:`UnifiedDiff`.

        Raises
        ------
        DiffParseError
            On a missing file marker, a malformed hunk header, a line with
            an unknown prefix, or a hunk whose lines disagree with its
            header counts.
        """
        lines = diff_text.split("\n")
        # Trailing newline(s) of the diff text itself
        while lines and lines[-1] == "":
            lines.pop()

        if not lines:
            raise DiffParseError("Empty diff")

        if not lines[0].startswith(OLD_FILE_PREFIX):
            raise DiffParseError("Missing '---' header in diff", 1, lines[0])
        if len(lines) < 2 or not lines[1].startswith(NEW_FILE_PREFIX):
            found = lines[1] if len(lines) > 1 else ""
            raise DiffParseError("Missing '+++' header in diff", 2, found)

        diff = UnifiedDiff(
            old_label=self._label(lines[0]),
            new_label=self._label(lines[1]),
        )

        current: Hunk | None = None
        header_line_number = 0
        for idx in range(2, len(lines)):
            line = lines[idx]
            line_number = idx + 1

            if line.startswith("@@"):
                if current is not None:
                    self._check_counts(current, header_line_number, lines)
                current = self._parse_header(line, line_number)
                header_line_number = line_number
                diff.hunks.append(current)
                continue

            if current is None:
                raise DiffParseError(
                    "Unexpected line before first hunk header", line_number, line,
                )

            if line.startswith(" ") or line == "":
                current.lines.append(HunkLine.context(line[1:]))
            elif line.startswith("-"):
                current.lines.append(HunkLine.removed(line[1:]))
            elif line.startswith("+"):
                current.lines.append(HunkLine.added(line[1:]))
            elif line.startswith(_NO_NEWLINE_MARKER):
                continue
            else:
                raise DiffParseError("Invalid diff line", line_number, line)

        if current is not None:
            self._check_counts(current, header_line_number, lines)

        logger.debug(
            "[Diff] Parsed diff %s -> %s with %d hunk(s)",
            diff.old_label, diff.new_label, len(diff.hunks),
        )
        return diff

    # ------------------------------------------------------------------
    # Internal parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _label(line: str) -> str:
        """File label without the marker or a tab-separated timestamp."""
        return line[4:].split("\t", 1)[0].strip()

    @staticmethod
    def _parse_header(line: str, line_number: int) -> Hunk:
        match = HUNK_HEADER_RE.match(line)
        if not match:
            raise DiffParseError("Invalid hunk header", line_number, line)
        old_start, old_count, new_start, new_count = match.groups()
        return Hunk(
            old_start=int(old_start),
            old_count=int(old_count) if old_count is not None else 1,
            new_start=int(new_start),
            new_count=int(new_count) if new_count is not None else 1,
        )

    @staticmethod
    def _check_counts(hunk: Hunk, header_line_number: int, lines: list[str]) -> None:
        old, new = hunk.tally()
        if (old, new) != (hunk.old_count, hunk.new_count):
            raise DiffParseError(
                f"Hunk line counts do not match header: header says "
                f"-{hunk.old_count} +{hunk.new_count}, body has -{old} +{new}",
                header_line_number,
                lines[header_line_number - 1],
            )


def parse_unified_diff(diff_text: str) -> UnifiedDiff:
    """Parse *diff_text*; see :meth:`DiffParser.parse`."""
    return DiffParser().parse(diff_text)
