"""
Diagnostics — LSP-like findings about a configuration source or a patch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single finding with its (start, end) byte range."""
    byte_range: tuple[int, int]
    severity: Severity
    message: str
    code: Optional[str] = None

    @classmethod
    def error(cls, message: str, byte_range: tuple[int, int] = (0, 0),
              code: Optional[str] = None) -> "Diagnostic":
        return cls(byte_range, Severity.ERROR, message, code)

    @classmethod
    def warning(cls, message: str, byte_range: tuple[int, int] = (0, 0),
                code: Optional[str] = None) -> "Diagnostic":
        return cls(byte_range, Severity.WARNING, message, code)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def format(self) -> str:
        """Render as ``[start:end] message (code: x)``; ``GLOBAL`` for (0, 0)."""
        start, end = self.byte_range
        where = "GLOBAL" if start == 0 and end == 0 else f"{start}:{end}"
        return f"[{where}] {self.message} (code: {self.code or 'unknown'})"


@dataclass
class DiagnosticCollection:
    """Ordered diagnostics with severity filters."""
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def extend(self, diagnostics) -> None:
        self.diagnostics.extend(diagnostics)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)
