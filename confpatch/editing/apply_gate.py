"""
Apply gate — previews a candidate content (dry run) or commits it with a
backup and an atomic temp-file + rename, one writer per target path.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .diff_generator import DiffGenerator
from .hunks import UnifiedDiff

logger = logging.getLogger(__name__)

DRY_RUN_BACKUP = "dry-run"


class StaleContentError(Exception):
    """Raised when the target changed after the candidate was computed."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"{path} changed since the patch was computed; re-read and retry"
        )


class ApplyIOError(Exception):
    """Raised when the environment (not the patch) prevents an apply."""

    def __init__(self, path: str, operation: str, cause: Exception) -> None:
        self.path = path
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation} {path}: {cause}")


@dataclass
class ApplyResult:
    """Result of previewing or applying a candidate content."""
    success: bool = False
    diff_preview: str = ""
    backup_path: str = DRY_RUN_BACKUP
    warnings: list[str] = field(default_factory=list)
    error: str = ""
    error_kind: str = ""  # "" | "parse" | "context" | "syntax" | "io" | "unsupported" | "path"
    lines_added: int = 0
    lines_removed: int = 0

    @property
    def dry_run(self) -> bool:
        return self.backup_path == DRY_RUN_BACKUP


class PathLockRegistry:
    """One lock per canonical target path, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @staticmethod
    def canonical(path: str) -> str:
        return os.path.realpath(os.path.abspath(path))

    def lock_for(self, path: str) -> threading.Lock:
        key = self.canonical(path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every gate that is not handed its own registry
_DEFAULT_LOCKS = PathLockRegistry()


class ApplyGate:
    """Dry-run preview vs. real commit of a candidate content."""

    def __init__(
        self,
        generator: Optional[DiffGenerator] = None,
        backup_suffix: str = ".backup",
        locks: Optional[PathLockRegistry] = None,
    ) -> None:
        self._generator = generator or DiffGenerator()
        self._backup_suffix = backup_suffix
        self._locks = locks if locks is not None else _DEFAULT_LOCKS

    def apply(
        self,
        target_path: str,
        new_content: str,
        dry_run: bool = True,
        backup_path: Optional[str] = None,
        expected_current: Optional[str] = None,
    ) -> ApplyResult:
        """Preview or commit *new_content* for *target_path*.

        On a dry run nothing is written and ``backup_path`` is
        ``"dry-run"``.  Otherwise the current content is backed up and the
        target is replaced atomically.  When *expected_current* is given the
        commit only proceeds if the target still holds exactly that text.

        Raises
        ------
        StaleContentError
            When the target no longer matches *expected_current*.
        ApplyIOError
            When reading, backing up or replacing the target fails; the
            target keeps its previous content.
        """
        if dry_run:
            current = self.read_current(target_path)
            diff = self._preview(target_path, current, new_content)
            logger.info("[Apply] Dry run for %s: +%d -%d",
                        target_path, diff.added_count, diff.removed_count)
            return self._result(diff, DRY_RUN_BACKUP)

        with self._locks.lock_for(target_path):
            current_bytes = self._read_bytes(target_path)
            current = current_bytes.decode("utf-8", errors="replace")
            if expected_current is not None and current != expected_current:
                logger.warning("[Apply] %s changed under a pending apply", target_path)
                raise StaleContentError(target_path)
            diff = self._preview(target_path, current, new_content)

            backup = backup_path or self.backup_path_for(target_path)
            try:
                atomic_write_bytes(backup, current_bytes)
            except OSError as exc:
                logger.error("[Apply] Backup of %s to %s failed: %s",
                             target_path, backup, exc)
                raise ApplyIOError(backup, "write backup", exc) from exc

            try:
                atomic_write_bytes(target_path, new_content.encode("utf-8"))
            except OSError as exc:
                logger.error("[Apply] Atomic replace of %s failed: %s",
                             target_path, exc)
                raise ApplyIOError(target_path, "replace", exc) from exc

        logger.info("[Apply] Wrote %s (+%d -%d), backup at %s",
                    target_path, diff.added_count, diff.removed_count, backup)
        return self._result(diff, backup)

    def backup_path_for(self, target_path: str) -> str:
        """Free sibling backup path: ``<name><suffix>.<YYYYmmdd_HHMMSS_ffffff>``.

        A numeric suffix is added when that name is already taken, so every
        commit keeps its own backup.
        """
        directory, name = os.path.split(os.path.abspath(target_path))
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        base = os.path.join(directory, f"{name}{self._backup_suffix}.{timestamp}")
        candidate = base
        counter = 1
        while os.path.lexists(candidate):
            candidate = f"{base}.{counter}"
            counter += 1
        return candidate

    def restore(self, target_path: str, backup_path: str) -> ApplyResult:
        """Put the content of *backup_path* back into *target_path*.

        The replace is atomic and runs under the target's lock.  The
        result's ``backup_path`` names the backup that was restored.

        Raises
        ------
        ApplyIOError
            When the backup is missing or unreadable, or the replace fails.
        """
        try:
            with open(backup_path, "rb") as f:
                restored = f.read()
        except OSError as exc:
            logger.error("[Apply] Cannot read backup %s: %s", backup_path, exc)
            raise ApplyIOError(backup_path, "read backup", exc) from exc

        with self._locks.lock_for(target_path):
            current = self.read_current(target_path)
            diff = self._preview(
                target_path, current, restored.decode("utf-8", errors="replace"),
            )
            try:
                atomic_write_bytes(target_path, restored)
            except OSError as exc:
                logger.error("[Apply] Restore of %s from %s failed: %s",
                             target_path, backup_path, exc)
                raise ApplyIOError(target_path, "restore", exc) from exc

        logger.info("[Apply] Restored %s from %s (+%d -%d)",
                    target_path, backup_path, diff.added_count, diff.removed_count)
        return self._result(diff, backup_path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _preview(self, target_path: str, current: str, new_content: str) -> UnifiedDiff:
        return self._generator.generate(current, new_content, target_path, target_path)

    @staticmethod
    def _result(diff: UnifiedDiff, backup_path: str) -> ApplyResult:
        return ApplyResult(
            success=True,
            diff_preview=diff.render(),
            backup_path=backup_path,
            lines_added=diff.added_count,
            lines_removed=diff.removed_count,
        )

    @staticmethod
    def _read_bytes(path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return b""
        except OSError as exc:
            raise ApplyIOError(path, "read", exc) from exc

    @classmethod
    def read_current(cls, path: str) -> str:
        """Current text of *path*; an absent file reads as empty."""
        return cls._read_bytes(path).decode("utf-8", errors="replace")


def atomic_write_bytes(path: str, data: bytes) -> None:
    """Write *data* to *path* via a sibling temp file + ``os.replace``.

    Readers observe either the old file or the complete new one.  The
    existing file's permission bits are carried over.  A symlinked *path*
    is written through: the link stays and its target gets the new content.
    """
    abs_path = os.path.realpath(os.path.abspath(path))
    directory, name = os.path.split(abs_path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if os.path.exists(abs_path):
            shutil.copymode(abs_path, tmp_path)
        os.replace(tmp_path, abs_path)
    except BaseException:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
