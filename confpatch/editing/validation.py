"""
Syntax-only validation — turns diagnostics into a ValidationResult with a
human-readable log of the steps taken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..diagnostics import Diagnostic, DiagnosticCollection
from ..lua.parser import LuaParser
from .patch_kind import has_conflict_markers

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    success: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    logs: str = ""


def build_validation_result(
    diagnostics: DiagnosticCollection,
    log_lines: list[str],
) -> ValidationResult:
    errors = diagnostics.errors()
    warnings = diagnostics.warnings()
    log_lines = log_lines + [
        f"Validation complete: {len(errors)} errors, {len(warnings)} warnings"
    ]
    return ValidationResult(
        success=not errors,
        errors=[d.format() for d in errors],
        warnings=[d.format() for d in warnings],
        logs="\n".join(log_lines),
    )


def validate_source(
    source: str,
    label: str,
    lua_parser: Optional[LuaParser] = None,
) -> ValidationResult:
    """Validate *source*.

    With a *lua_parser* the source goes through tree-sitter syntax checks;
    without one it is opaque text and only conflict markers are checked.
    """
    collection = DiagnosticCollection()
    log_lines = [f"Starting validation for {label} ({len(source)} chars)"]

    log_lines.append("Stage 1: Conflict markers")
    if has_conflict_markers(source):
        collection.add(Diagnostic.error(
            "Source contains merge conflict markers",
            code="conflict_markers",
        ))
        log_lines.append("Found merge conflict markers")

    if lua_parser is not None:
        log_lines.append("Stage 2: Lua syntax (tree-sitter)")
        found = lua_parser.validate_syntax(source)
        collection.extend(found)
        log_lines.append(f"Validated: {label} ({len(found)} diagnostic(s))")
    else:
        log_lines.append("Stage 2: skipped (opaque line-oriented text)")

    result = build_validation_result(collection, log_lines)
    logger.debug("[Validate] %s: success=%s errors=%d warnings=%d",
                 label, result.success, len(result.errors), len(result.warnings))
    return result
