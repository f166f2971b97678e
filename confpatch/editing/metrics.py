"""
Apply metrics — tracks committed applies in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_FILE = "apply_metrics.jsonl"


def _metrics_path(metrics_dir: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = metrics_dir or os.path.join(os.getcwd(), ".confpatch")
    return os.path.join(os.path.abspath(base), _METRICS_FILE)


def log_apply_metric(data: dict, metrics_dir: str | None = None) -> None:
    """Append a single apply metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (path, patch_kind, success, lines_added, ...).
    metrics_dir:
        Directory holding the log. Defaults to ``.confpatch`` under CWD.
    """
    path = _metrics_path(metrics_dir)

    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def read_apply_stats(
    last_n: int = 50,
    metrics_dir: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Returns
    -------
    dict
        ``total_applies``, ``success_rate``, ``avg_lines_changed`` and the
        ``patch_kinds`` breakdown (percent per kind).
    """
    path = _metrics_path(metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Metrics] Failed to read metrics: %s", exc)

    entries = entries[-last_n:]

    if not entries:
        return {
            "total_applies": 0,
            "success_rate": 0.0,
            "avg_lines_changed": 0.0,
            "patch_kinds": {},
        }

    total = len(entries)
    successes = sum(1 for e in entries if e.get("success", False))
    changed = [
        e.get("lines_added", 0) + e.get("lines_removed", 0) for e in entries
    ]
    kinds = Counter(e.get("patch_kind", "unknown") for e in entries)

    return {
        "total_applies": total,
        "success_rate": successes / total * 100,
        "avg_lines_changed": sum(changed) / total,
        "patch_kinds": {
            kind: count / total * 100
            for kind, count in kinds.most_common()
        },
    }
