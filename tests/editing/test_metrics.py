"""Tests for apply metrics logging and stats."""

import json
import os

import pytest

from confpatch.editing.metrics import log_apply_metric, read_apply_stats


@pytest.fixture
def metrics_dir(tmp_path):
    """A fresh metrics directory (not created yet)."""
    return str(tmp_path / ".confpatch")


class TestLogApplyMetric:
    def test_creates_file_and_writes_entry(self, metrics_dir):
        log_apply_metric(
            {"path": "init.lua", "patch_kind": "unified_diff", "success": True},
            metrics_dir=metrics_dir,
        )

        path = os.path.join(metrics_dir, "apply_metrics.jsonl")
        assert os.path.isfile(path)

        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 1

        entry = json.loads(lines[0])
        assert entry["path"] == "init.lua"
        assert entry["patch_kind"] == "unified_diff"
        assert "timestamp" in entry

    def test_appends_multiple_entries(self, metrics_dir):
        for name in ("a.lua", "b.lua", "c.lua"):
            log_apply_metric({"path": name}, metrics_dir=metrics_dir)

        with open(os.path.join(metrics_dir, "apply_metrics.jsonl")) as f:
            assert len(f.readlines()) == 3


class TestReadApplyStats:
    def test_empty_stats(self, metrics_dir):
        stats = read_apply_stats(metrics_dir=metrics_dir)

        assert stats["total_applies"] == 0
        assert stats["success_rate"] == 0.0
        assert stats["avg_lines_changed"] == 0.0
        assert stats["patch_kinds"] == {}

    def test_stats_from_entries(self, metrics_dir):
        entries = [
            {"patch_kind": "unified_diff", "success": True, "lines_added": 2, "lines_removed": 1},
            {"patch_kind": "unified_diff", "success": True, "lines_added": 1, "lines_removed": 0},
            {"patch_kind": "text", "success": False, "lines_added": 0, "lines_removed": 0},
            {"patch_kind": "edit_script", "success": True, "lines_added": 4, "lines_removed": 0},
        ]
        for entry in entries:
            log_apply_metric(entry, metrics_dir=metrics_dir)

        stats = read_apply_stats(metrics_dir=metrics_dir)

        assert stats["total_applies"] == 4
        assert stats["success_rate"] == 75.0
        assert stats["avg_lines_changed"] == 2.0
        assert stats["patch_kinds"]["unified_diff"] == 50.0
        assert stats["patch_kinds"]["text"] == 25.0

    def test_last_n_window(self, metrics_dir):
        for i in range(10):
            log_apply_metric({"success": i >= 5}, metrics_dir=metrics_dir)

        stats = read_apply_stats(last_n=5, metrics_dir=metrics_dir)

        assert stats["total_applies"] == 5
        assert stats["success_rate"] == 100.0

    def test_skips_corrupt_lines(self, metrics_dir):
        os.makedirs(metrics_dir)
        with open(os.path.join(metrics_dir, "apply_metrics.jsonl"), "w") as f:
            f.write('{"success": true}\nnot json\n{"success": false}\n')

        stats = read_apply_stats(metrics_dir=metrics_dir)

        assert stats["total_applies"] == 2
        assert stats["success_rate"] == 50.0
