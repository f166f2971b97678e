"""
Config editor — the seam tool endpoints call: reads the current file,
turns an incoming patch into a candidate content, previews it, and hands
it to the apply gate unless this is a dry run.

Accepted patch forms (sniffed from the content):

1. unified diff text starting with ``---``/``+++`` markers;
2. a JSON object with an ``operations`` array (Lua edit script);
3. anything else: full replacement text, the incoming side of a
   declaration merge (``text_mode="merge"``), or a plain append
   (``text_mode="append"``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import Config
from .diagnostics import Diagnostic
from .editing.apply_gate import (
    ApplyGate,
    ApplyIOError,
    ApplyResult,
    PathLockRegistry,
    StaleContentError,
)
from .editing.diff_generator import DiffGenerator
from .editing.diff_parser import DiffParseError, DiffParser
from .editing.metrics import log_apply_metric
from .editing.patch_applier import DiffApplyError, PatchApplier
from .editing.patch_kind import PatchKind, detect_patch_kind, has_conflict_markers
from .editing.validation import ValidationResult, validate_source
from .logs import setup_logger
from .lua.parser import LuaGrammar, LuaParseFailure, LuaParser
from .lua.patcher import LuaPatcher, append_text
from .paths import PathOutsideBaseError, resolve_within_base

logger = logging.getLogger(__name__)

TEXT_MODES = ("replace", "merge", "append")


class UnsupportedPatchError(ValueError):
    """Raised when a patch form cannot be used for the target file."""


@dataclass
class Candidate:
    """Proposed new content plus what produced it."""
    content: str
    patch_kind: PatchKind
    diagnostics: list[Diagnostic] = field(default_factory=list)


class ConfigEditor:
    """Preview, validate and apply configuration patches."""

    def __init__(
        self,
        config: Optional[Config] = None,
        grammar: Optional[LuaGrammar] = None,
        locks: Optional[PathLockRegistry] = None,
    ) -> None:
        """
        Parameters
        ----------
        config:
            Engine settings; defaults to built-in defaults.
        grammar:
            The process-wide Lua grammar handle.  Pass the one created at
            startup; a new one is loaded when omitted.
        locks:
            Per-path lock registry shared by every editor that may write
            the same files.
        """
        self._config = config or Config()
        self._generator = DiffGenerator(
            context_lines=self._config.CONTEXT_LINES,
            lookahead=self._config.LOOKAHEAD_WINDOW,
        )
        self._diff_parser = DiffParser()
        self._applier = PatchApplier()
        self._lua = LuaParser(grammar or LuaGrammar.load())
        self._patcher = LuaPatcher(self._lua)
        self._gate = ApplyGate(
            generator=self._generator,
            backup_suffix=self._config.BACKUP_SUFFIX,
            locks=locks,
        )

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        file_log: bool = False,
        grammar: Optional[LuaGrammar] = None,
        locks: Optional[PathLockRegistry] = None,
    ) -> "ConfigEditor":
        """Startup helper: settings from YAML + env, and with *file_log* a
        debug log file under the configured ``LOG_DIR``."""
        config = Config.load(config_path)
        if file_log:
            setup_logger(config.LOG_DIR)
        return cls(config, grammar=grammar, locks=locks)

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview(
        self,
        original: str,
        modified: str,
        old_label: str = "original",
        new_label: str = "modified",
    ) -> str:
        return self._generator.unified_diff(original, modified, old_label, new_label)

    # ------------------------------------------------------------------
    # Candidate construction
    # ------------------------------------------------------------------

    def build_candidate(
        self,
        current: str,
        patch: str,
        path: str,
        text_mode: str = "replace",
    ) -> Candidate:
        """Turn *patch* into the proposed new content of *path*.

        Raises
        ------
        DiffParseError, DiffApplyError
            For a malformed diff or one that does not match *current*.
        LuaParseFailure
            When a structural operation needs the grammar and it is missing.
        UnsupportedPatchError
            For an edit script or declaration merge on a non-Lua target.
        """
        if text_mode not in TEXT_MODES:
            raise ValueError(f"Unknown text mode {text_mode!r}; expected one of {TEXT_MODES}")

        kind = detect_patch_kind(patch)
        logger.debug("[Patch] %s: detected %s patch (%d chars)", path, kind.value, len(patch))

        if kind is PatchKind.UNIFIED_DIFF:
            diff = self._diff_parser.parse(patch)
            return Candidate(self._applier.apply(current, diff), kind)

        if kind is PatchKind.EDIT_SCRIPT:
            if not self._config.is_lua_path(path):
                raise UnsupportedPatchError(
                    f"Edit scripts need a Lua file; {path} is treated as opaque text"
                )
            outcome = self._patcher.apply_edit_script(current, patch)
            return Candidate(outcome.content, kind, outcome.diagnostics)

        if text_mode == "merge":
            return self._merge_candidate(current, patch, path)
        if text_mode == "append":
            outcome = append_text(current, patch)
            return Candidate(outcome.content, kind, outcome.diagnostics)
        return Candidate(patch, kind)

    def _merge_candidate(self, current: str, incoming: str, path: str) -> Candidate:
        if not self._config.is_lua_path(path):
            raise UnsupportedPatchError(
                f"Declaration-level merge needs a Lua file; {path} is treated "
                "as opaque text"
            )
        outcome = self._patcher.merge(current, incoming)
        diagnostics = list(outcome.diagnostics)
        if outcome.used_fallback:
            diagnostics.append(Diagnostic.warning(
                "No declarations found; sources were concatenated",
                code="merge_fallback",
            ))
        return Candidate(outcome.content, PatchKind.TEXT, diagnostics)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply_patch(
        self,
        path: str,
        patch: str,
        dry_run: Optional[bool] = None,
        backup_path: Optional[str] = None,
        text_mode: str = "replace",
    ) -> ApplyResult:
        """Preview (dry run, the default) or apply *patch* to *path*."""
        if has_conflict_markers(patch):
            return self._failure(
                f"Patch for {path} contains merge conflict markers", "parse",
            )
        return self._run(
            path,
            lambda current: self.build_candidate(current, patch, path, text_mode),
            dry_run,
            backup_path,
        )

    def merge_file(
        self,
        path: str,
        incoming: str,
        dry_run: Optional[bool] = None,
        backup_path: Optional[str] = None,
    ) -> ApplyResult:
        """Merge *incoming* into the Lua file at *path* by declaration."""
        return self._run(
            path,
            lambda current: self._merge_candidate(current, incoming, path),
            dry_run,
            backup_path,
        )

    def _run(
        self,
        path: str,
        build: Callable[[str], Candidate],
        dry_run: Optional[bool],
        backup_path: Optional[str],
    ) -> ApplyResult:
        if dry_run is None:
            dry_run = self._config.DRY_RUN_DEFAULT

        try:
            path, backup_path = self._check_paths(path, backup_path)
        except PathOutsideBaseError as exc:
            return self._failure(str(exc), "path")

        try:
            current = self._gate.read_current(path)
            candidate = build(current)
        except DiffParseError as exc:
            return self._failure(str(exc), "parse")
        except DiffApplyError as exc:
            return self._failure(str(exc), "context")
        except LuaParseFailure as exc:
            return self._failure(str(exc), "syntax")
        except UnsupportedPatchError as exc:
            return self._failure(str(exc), "unsupported")
        except ApplyIOError as exc:
            return self._failure(str(exc), "io")

        warnings = [d.format() for d in candidate.diagnostics]

        if self._config.is_lua_path(path):
            if self._lua.initialized:
                syntax = self._lua.validate_syntax(candidate.content)
                errors = [d for d in syntax if d.is_error]
                if errors and self._config.BLOCK_ON_SYNTAX_ERROR:
                    logger.warning("[Patch] Refusing %s: %d syntax error(s) in candidate",
                                   path, len(errors))
                    result = self._failure(
                        f"Candidate content for {path} has {len(errors)} syntax "
                        f"error(s): {errors[0].message}",
                        "syntax",
                    )
                    result.diff_preview = self.preview(current, candidate.content, path, path)
                    result.warnings = warnings + [d.format() for d in syntax]
                    return result
                warnings.extend(d.format() for d in syntax)
            else:
                warnings.append("Lua grammar unavailable; syntax was not validated")

        try:
            result = self._gate.apply(
                path,
                candidate.content,
                dry_run=dry_run,
                backup_path=backup_path,
                expected_current=current,
            )
        except StaleContentError as exc:
            return self._failure(str(exc), "context")
        except ApplyIOError as exc:
            return self._failure(str(exc), "io")

        result.warnings = warnings + result.warnings
        if dry_run:
            result.warnings.append("Dry run - no changes applied")
        elif self._config.RECORD_METRICS:
            log_apply_metric({
                "path": os.path.abspath(path),
                "patch_kind": candidate.patch_kind.value,
                "success": result.success,
                "lines_added": result.lines_added,
                "lines_removed": result.lines_removed,
            }, metrics_dir=self._config.METRICS_DIR)
        return result

    def restore_backup(self, path: str, backup_path: str) -> ApplyResult:
        """Put a backup written by an earlier apply back into *path*."""
        try:
            path, backup_path = self._check_paths(path, backup_path)
            return self._gate.restore(path, backup_path)
        except PathOutsideBaseError as exc:
            return self._failure(str(exc), "path")
        except ApplyIOError as exc:
            return self._failure(str(exc), "io")

    def _check_paths(
        self, path: str, backup_path: Optional[str],
    ) -> tuple[str, Optional[str]]:
        base = self._config.ALLOWED_BASE
        if base is None:
            return path, backup_path
        path = resolve_within_base(path, base)
        if backup_path is not None:
            backup_path = resolve_within_base(backup_path, base)
        return path, backup_path

    @staticmethod
    def _failure(message: str, kind: str) -> ApplyResult:
        logger.warning("[Patch] %s error: %s", kind, message)
        return ApplyResult(success=False, error=message, error_kind=kind)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_source(
        self,
        source: str,
        label: str = "<source>",
        language: Optional[str] = None,
    ) -> ValidationResult:
        """Syntax-only validation; ``language="lua"`` (or a Lua *label*) parses it."""
        is_lua = language == "lua" or (language is None and self._config.is_lua_path(label))
        return validate_source(source, label, self._lua if is_lua else None)

    def validate_file(self, path: str) -> ValidationResult:
        try:
            with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
                source = f.read()
        except OSError as exc:
            return ValidationResult(
                success=False,
                errors=[f"Failed to read {path}: {exc}"],
                logs=f"Starting validation for {path}\nRead failed: {exc}",
            )
        return self.validate_source(source, path)
