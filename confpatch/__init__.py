"""
confpatch — safe patching engine for editor configuration files.

Public API for library usage::

    from confpatch import ConfigEditor

    editor = ConfigEditor()
    result = editor.apply_patch("init.lua", diff_text, dry_run=True)
    print(result.diff_preview)
"""

from .config import Config
from .diagnostics import Diagnostic, DiagnosticCollection, Severity
from .editor import Candidate, ConfigEditor, UnsupportedPatchError
from .paths import PathOutsideBaseError, resolve_within_base

__all__ = [
    "Config",
    "Diagnostic", "DiagnosticCollection", "Severity",
    "Candidate", "ConfigEditor", "UnsupportedPatchError",
    "PathOutsideBaseError", "resolve_within_base",
]
