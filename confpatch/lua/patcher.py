"""
Structural patcher — applies JSON edit scripts to Lua sources and merges
two versions of a file at the declaration level.

Edit script format::

    {
      "operations": [
        {"type": "insert", "path": ["functions", 0], "value": "function new() end"},
        {"type": "remove", "path": ["assignments", 1]},
        {"type": "replace", "path": ["assignments", 0, "value"], "value": "4"}
      ]
    }

Only ``insert``/``add`` changes the source (the value is appended).
``remove``/``delete`` and ``replace``/``modify`` are accepted but cannot
yet locate their target node; they report a warning and leave the source
untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..diagnostics import Diagnostic
from ..editing.patch_kind import has_conflict_markers, load_edit_script
from .extractor import (
    FunctionInfo,
    TableAssignment,
    extract_assignments,
    extract_functions,
    unrecognized_statements,
)
from .parser import LuaParser, ParsedSource

logger = logging.getLogger(__name__)

TEXT_APPEND_MARKER = "-- Patched content:"
MERGE_FALLBACK_MARKER = "-- Merged changes:"

_INSERT_OPS = frozenset({"insert", "add"})
_REMOVE_OPS = frozenset({"remove", "delete"})
_REPLACE_OPS = frozenset({"replace", "modify"})


@dataclass
class PatchOutcome:
    """Result of an edit-script application."""
    content: str
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class MergeOutcome:
    """Result of a declaration-level merge."""
    content: str
    diagnostics: list[Diagnostic] = field(default_factory=list)
    used_fallback: bool = False


class LuaPatcher:
    """Edit-script application and declaration-level merge for Lua sources."""

    def __init__(self, parser: LuaParser) -> None:
        self._parser = parser

    # ------------------------------------------------------------------
    # Edit scripts
    # ------------------------------------------------------------------

    def apply_edit_script(self, source: str, patch_text: str) -> PatchOutcome:
        """Apply a JSON edit script to *source*.

        Text that is not a JSON object with an ``operations`` array is
        appended to the source under a marker comment, with a warning.

        Raises
        ------
        LuaParseFailure
            When the grammar is unavailable.
        """
        # Fails fast when the grammar is unavailable
        self._parser.parse(source)

        operations = load_edit_script(patch_text)
        if operations is None:
            return append_text(source, patch_text)

        diagnostics: list[Diagnostic] = []
        modified = source
        logger.debug("[Lua] Edit script with %d operation(s)", len(operations))

        for idx, op in enumerate(operations):
            if not isinstance(op, dict) or not isinstance(op.get("type"), str):
                diagnostics.append(Diagnostic.warning(
                    f"Operation {idx} has no 'type'; skipped",
                    code="invalid_operation",
                ))
                continue

            op_type = op["type"]
            path = op.get("path")
            if op_type in _INSERT_OPS:
                value = op.get("value")
                if not isinstance(value, str):
                    diagnostics.append(Diagnostic.warning(
                        f"Insert operation {idx} has no string 'value'; skipped",
                        code="invalid_operation",
                    ))
                    continue
                modified = modified + "\n" + value
            elif op_type in _REMOVE_OPS or op_type in _REPLACE_OPS:
                # TODO: resolve `path` via extract_functions/extract_assignments, splice byte ranges
                diagnostics.append(Diagnostic.warning(
                    f"{op_type.capitalize()} operation {idx} (path {path!r}) could not "
                    "be structurally located; source left unchanged",
                    code="not_implemented",
                ))
            else:
                diagnostics.append(Diagnostic.warning(
                    f"Unknown operation type: {op_type}",
                    code="unknown_operation",
                ))

        return PatchOutcome(content=modified, diagnostics=diagnostics)

    # ------------------------------------------------------------------
    # Declaration-level merge
    # ------------------------------------------------------------------

    def merge(self, base: str, incoming: str) -> MergeOutcome:
        """Merge *incoming* into *base* by assignment key and function name.

        Incoming declarations win on collisions; declarations found on only
        one side are kept.  Assignments come first, then functions, each as
        the verbatim source of the side it was taken from.

        Raises
        ------
        LuaParseFailure
            When the grammar is unavailable.
        """
        base_tree = self._parser.parse(base)
        incoming_tree = self._parser.parse(incoming)

        assignments: dict[str, tuple[TableAssignment, ParsedSource]] = {}
        for parsed in (base_tree, incoming_tree):
            for assignment in extract_assignments(parsed):
                assignments[assignment.key] = (assignment, parsed)

        functions: dict[str, tuple[FunctionInfo, ParsedSource]] = {}
        for parsed in (base_tree, incoming_tree):
            for func in extract_functions(parsed, top_level_only=True):
                functions[func.name] = (func, parsed)

        diagnostics: list[Diagnostic] = []
        for label, parsed in (("base", base_tree), ("incoming", incoming_tree)):
            for node in unrecognized_statements(parsed):
                diagnostics.append(Diagnostic.warning(
                    f"Top-level {node.type} in {label} is not a declaration "
                    "and was not carried into the merge",
                    byte_range=(node.start_byte, node.end_byte),
                    code="merge_dropped_statement",
                ))

        sections: list[str] = []
        if assignments:
            sections.append("\n".join(
                parsed.slice(*a.byte_range) for a, parsed in assignments.values()
            ))
        if functions:
            sections.append("\n\n".join(
                parsed.slice(*f.byte_range) for f, parsed in functions.values()
            ))
        merged = "\n\n".join(sections)

        if not merged.strip():
            logger.info("[Merge] No declarations extracted; concatenating sources")
            content = base
            if incoming:
                content = f"{base}\n\n{MERGE_FALLBACK_MARKER}\n{incoming}"
            return MergeOutcome(content=content, diagnostics=diagnostics,
                                used_fallback=True)

        logger.info("[Merge] Merged %d assignment(s) and %d function(s)",
                    len(assignments), len(functions))
        return MergeOutcome(content=merged + "\n", diagnostics=diagnostics)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_patch(self, original: str, patch_text: str) -> list[Diagnostic]:
        """Syntax diagnostics of *original* plus conflict-marker checks."""
        diagnostics = self._parser.validate_syntax(original)
        if has_conflict_markers(patch_text):
            diagnostics.append(Diagnostic.error(
                "Patch contains merge conflict markers",
                code="conflict_markers",
            ))
        return diagnostics


def append_text(source: str, patch_text: str) -> PatchOutcome:
    """Append *patch_text* under a marker comment, with a fallback warning."""
    diagnostic = Diagnostic.warning(
        "Patch instruction is not a JSON edit script. Treating as text "
        "append. For structural patching, use a JSON object with an "
        "operations array.",
        code="text_append_fallback",
    )
    content = source
    if patch_text.strip():
        content = f"{source}\n\n{TEXT_APPEND_MARKER}\n{patch_text}"
    return PatchOutcome(content=content, diagnostics=[diagnostic])
