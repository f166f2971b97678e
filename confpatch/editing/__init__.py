"""Line-oriented editing — unified diffs, strict application, guarded writes."""

from .hunks import Hunk, HunkLine, LineKind, UnifiedDiff, join_lines, split_lines
from .diff_generator import DiffGenerator, generate_diff, unified_diff
from .diff_parser import DiffParseError, DiffParser, parse_unified_diff
from .patch_applier import (
    ContextMismatchError,
    DiffApplyError,
    PatchApplier,
    apply_diff,
    apply_diff_text,
)
from .apply_gate import (
    ApplyGate,
    ApplyIOError,
    ApplyResult,
    PathLockRegistry,
    StaleContentError,
    atomic_write_bytes,
)
from .patch_kind import PatchKind, detect_patch_kind, has_conflict_markers
from .validation import ValidationResult, validate_source
from .metrics import log_apply_metric, read_apply_stats

__all__ = [
    "Hunk", "HunkLine", "LineKind", "UnifiedDiff", "join_lines", "split_lines",
    "DiffGenerator", "generate_diff", "unified_diff",
    "DiffParseError", "DiffParser", "parse_unified_diff",
    "ContextMismatchError", "DiffApplyError", "PatchApplier",
    "apply_diff", "apply_diff_text",
    "ApplyGate", "ApplyIOError", "ApplyResult", "PathLockRegistry",
    "StaleContentError", "atomic_write_bytes",
    "PatchKind", "detect_patch_kind", "has_conflict_markers",
    "ValidationResult", "validate_source",
    "log_apply_metric", "read_apply_stats",
]
