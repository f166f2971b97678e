"""
Path policy — keeps every write inside an allowed base directory.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


class PathOutsideBaseError(ValueError):
    """Raised when a path resolves outside the allowed base directory."""

    def __init__(self, path: str, base: str) -> None:
        self.path = path
        self.base = base
        super().__init__(f"Path {path} is not within allowed directory {base}")


def resolve_within_base(path: str, base: str) -> str:
    """Return the canonical form of *path*, checked against *base*.

    A relative *path* is taken relative to *base*.  Symlinks are resolved
    on both sides before comparing, so a link inside *base* that points
    elsewhere is refused.  The path itself need not exist yet.

    Raises
    ------
    PathOutsideBaseError
        When the resolved path is not *base* itself or below it.
    """
    canonical_base = os.path.realpath(os.path.expanduser(base))
    candidate = os.path.expanduser(path)
    if not os.path.isabs(candidate):
        candidate = os.path.join(canonical_base, candidate)
    canonical = os.path.realpath(candidate)

    if os.path.commonpath([canonical_base, canonical]) != canonical_base:
        logger.warning("[Path] Refusing %s: outside %s", path, canonical_base)
        raise PathOutsideBaseError(path, canonical_base)
    return canonical
