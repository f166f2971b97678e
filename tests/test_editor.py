"""End-to-end tests for ConfigEditor over real files."""

import json
import os

import pytest

from confpatch.config import Config
from confpatch.editing.apply_gate import DRY_RUN_BACKUP, PathLockRegistry
from confpatch.editing.metrics import read_apply_stats
from confpatch.editor import ConfigEditor
from confpatch.lua.parser import LuaGrammar


@pytest.fixture(scope="module")
def grammar():
    return LuaGrammar.load()


@pytest.fixture
def lua_grammar(grammar):
    if not grammar.initialized:
        pytest.skip(f"tree-sitter-lua unavailable: {grammar.error}")
    return grammar


def _editor(grammar, **settings) -> ConfigEditor:
    return ConfigEditor(Config(settings), grammar=grammar, locks=PathLockRegistry())


KITTY_CONF = "font_size 12.0\nbackground #000000\nforeground #ffffff\n"

KITTY_DIFF = """\
--- kitty.conf
+++ kitty.conf
@@ -1,2 +1,2 @@
-font_size 12.0
+font_size 14.0
 background #000000
"""


@pytest.fixture
def kitty(tmp_path):
    path = tmp_path / "kitty.conf"
    path.write_text(KITTY_CONF, encoding="utf-8")
    return path


class TestPreview:
    def test_preview_matches_generator_output(self, grammar):
        text = _editor(grammar).preview("line1\nline2\nline3", "line1\nline2_modified\nline3")

        assert " line1\n-line2\n+line2_modified\n line3\n" in text


class TestApplyPatchText:
    def test_dry_run_is_default(self, grammar, kitty):
        result = _editor(grammar).apply_patch(str(kitty), KITTY_DIFF)

        assert result.success is True
        assert result.backup_path == DRY_RUN_BACKUP
        assert "Dry run - no changes applied" in result.warnings
        assert "+font_size 14.0" in result.diff_preview
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_dry_run_default_from_config(self, grammar, kitty):
        result = _editor(grammar, dry_run_default=False).apply_patch(str(kitty), KITTY_DIFF)

        assert result.success is True
        assert not result.dry_run
        assert kitty.read_text(encoding="utf-8").startswith("font_size 14.0\n")

    def test_apply_diff_with_backup(self, grammar, kitty):
        result = _editor(grammar).apply_patch(str(kitty), KITTY_DIFF, dry_run=False)

        assert result.success is True
        assert result.lines_added == 1
        assert result.lines_removed == 1
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF.replace("12.0", "14.0")
        with open(result.backup_path, encoding="utf-8") as f:
            assert f.read() == KITTY_CONF

    def test_context_mismatch_leaves_file(self, grammar, kitty):
        kitty.write_text("font_size 11.0\nbackground #000000\n", encoding="utf-8")

        result = _editor(grammar).apply_patch(str(kitty), KITTY_DIFF, dry_run=False)

        assert result.success is False
        assert result.error_kind == "context"
        assert "font_size 12.0" in result.error
        assert kitty.read_text(encoding="utf-8") == "font_size 11.0\nbackground #000000\n"
        assert len(os.listdir(kitty.parent)) == 1

    def test_malformed_diff(self, grammar, kitty):
        bad = "--- kitty.conf\n+++ kitty.conf\n@@ -1 +1 @@\n?what\n"

        result = _editor(grammar).apply_patch(str(kitty), bad, dry_run=False)

        assert result.success is False
        assert result.error_kind == "parse"
        assert "?what" in result.error

    def test_conflict_markers_rejected(self, grammar, kitty):
        result = _editor(grammar).apply_patch(
            str(kitty), "<<<<<<< HEAD\nfont_size 1\n=======\n>>>>>>> x\n", dry_run=False,
        )

        assert result.error_kind == "parse"
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_full_replacement_text(self, grammar, kitty):
        result = _editor(grammar).apply_patch(str(kitty), "font_size 9\n", dry_run=False)

        assert result.success is True
        assert kitty.read_text(encoding="utf-8") == "font_size 9\n"

    def test_append_mode(self, grammar, kitty):
        result = _editor(grammar).apply_patch(
            str(kitty), "cursor #cccccc", dry_run=False, text_mode="append",
        )

        assert result.success is True
        assert kitty.read_text(encoding="utf-8").endswith("-- Patched content:\ncursor #cccccc")
        assert any("text_append_fallback" in w for w in result.warnings)

    def test_merge_needs_lua(self, grammar, kitty):
        result = _editor(grammar).apply_patch(str(kitty), "x", text_mode="merge")

        assert result.error_kind == "unsupported"

    def test_edit_script_needs_lua(self, grammar, kitty):
        script = json.dumps({"operations": [{"type": "insert", "value": "x"}]})

        result = _editor(grammar).apply_patch(str(kitty), script)

        assert result.error_kind == "unsupported"

    def test_unknown_text_mode(self, grammar, kitty):
        with pytest.raises(ValueError, match="Unknown text mode"):
            _editor(grammar).apply_patch(str(kitty), "x", text_mode="splice")

    def test_new_file(self, grammar, tmp_path):
        path = tmp_path / "alacritty.toml"

        result = _editor(grammar).apply_patch(str(path), "[font]\nsize = 11\n", dry_run=False)

        assert result.success is True
        assert path.read_text(encoding="utf-8") == "[font]\nsize = 11\n"

    def test_io_error_category(self, grammar, kitty, tmp_path):
        result = _editor(grammar).apply_patch(
            str(kitty), KITTY_DIFF, dry_run=False,
            backup_path=str(tmp_path / "no-such-dir" / "bak"),
        )

        assert result.success is False
        assert result.error_kind == "io"
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_metrics_recorded_when_enabled(self, grammar, kitty, tmp_path):
        metrics_dir = str(tmp_path / "metrics")
        editor = _editor(grammar, record_metrics=True, metrics_dir=metrics_dir)

        editor.apply_patch(str(kitty), KITTY_DIFF, dry_run=True)
        editor.apply_patch(str(kitty), KITTY_DIFF, dry_run=False)

        stats = read_apply_stats(metrics_dir=metrics_dir)
        assert stats["total_applies"] == 1
        assert stats["patch_kinds"] == {"unified_diff": 100.0}


INIT_LUA = """\
vim.opt.number = true
vim.opt.tabstop = 4

function M.setup()
  return true
end
"""


@pytest.fixture
def init_lua(tmp_path):
    path = tmp_path / "init.lua"
    path.write_text(INIT_LUA, encoding="utf-8")
    return path


class TestApplyPatchLua:
    def test_diff_on_lua_file(self, lua_grammar, init_lua):
        diff = (
            "--- init.lua\n+++ init.lua\n"
            "@@ -2,1 +2,1 @@\n-vim.opt.tabstop = 4\n+vim.opt.tabstop = 2\n"
        )

        result = _editor(lua_grammar).apply_patch(str(init_lua), diff, dry_run=False)

        assert result.success is True, result.error
        assert "vim.opt.tabstop = 2" in init_lua.read_text(encoding="utf-8")

    def test_syntax_error_blocks_apply(self, lua_grammar, init_lua):
        result = _editor(lua_grammar).apply_patch(
            str(init_lua), "function broken()\n  return 1\n", dry_run=False,
        )

        assert result.success is False
        assert result.error_kind == "syntax"
        assert "+function broken()" in result.diff_preview
        assert any("missing_end" in w for w in result.warnings)
        assert init_lua.read_text(encoding="utf-8") == INIT_LUA

    def test_syntax_error_allowed_when_not_blocking(self, lua_grammar, init_lua):
        result = _editor(lua_grammar, block_on_syntax_error=False).apply_patch(
            str(init_lua), "function broken()\n", dry_run=True,
        )

        assert result.success is True
        assert any("syntax_error" in w or "missing_end" in w for w in result.warnings)

    def test_edit_script_insert(self, lua_grammar, init_lua):
        script = json.dumps({"operations": [
            {"type": "insert", "path": ["assignments"], "value": "vim.opt.wrap = false"},
            {"type": "remove", "path": ["assignments", 0]},
        ]})

        result = _editor(lua_grammar).apply_patch(str(init_lua), script, dry_run=False)

        assert result.success is True
        assert init_lua.read_text(encoding="utf-8") == INIT_LUA + "\nvim.opt.wrap = false"
        assert any("not_implemented" in w for w in result.warnings)

    def test_merge_file(self, lua_grammar, init_lua):
        incoming = "vim.opt.tabstop = 2\nvim.opt.wrap = false\n"

        result = _editor(lua_grammar).merge_file(str(init_lua), incoming, dry_run=False)

        assert result.success is True
        merged = init_lua.read_text(encoding="utf-8")
        assert merged == (
            "vim.opt.number = true\nvim.opt.tabstop = 2\nvim.opt.wrap = false\n"
            "\nfunction M.setup()\n  return true\nend\n"
        )

    def test_merge_fallback_is_flagged(self, lua_grammar, tmp_path):
        path = tmp_path / "empty.lua"
        path.write_text("-- nothing yet\n", encoding="utf-8")

        result = _editor(lua_grammar).merge_file(str(path), "-- still nothing\n")

        assert result.success is True
        assert any("merge_fallback" in w for w in result.warnings)


class TestApplyPatchWithoutGrammar:
    def test_lua_edit_script_reports_syntax_kind(self, init_lua):
        editor = _editor(LuaGrammar(None, "not loaded"))
        script = json.dumps({"operations": [{"type": "insert", "value": "x = 1"}]})

        result = editor.apply_patch(str(init_lua), script)

        assert result.error_kind == "syntax"
        assert "not initialized" in result.error

    def test_text_replacement_warns_unvalidated(self, init_lua):
        editor = _editor(LuaGrammar(None, "not loaded"))

        result = editor.apply_patch(str(init_lua), "x = 1\n")

        assert result.success is True
        assert "Lua grammar unavailable; syntax was not validated" in result.warnings


class TestValidate:
    def test_validate_lua_source(self, lua_grammar):
        result = _editor(lua_grammar).validate_source("function f()\n", language="lua")

        assert result.success is False

    def test_validate_opaque_source(self, grammar):
        result = _editor(grammar).validate_source("function f()\n", "vimrc")

        assert result.success is True

    def test_validate_file(self, lua_grammar, init_lua):
        result = _editor(lua_grammar).validate_file(str(init_lua))

        assert result.success is True
        assert f"Starting validation for {init_lua}" in result.logs

    def test_validate_missing_file(self, grammar, tmp_path):
        result = _editor(grammar).validate_file(str(tmp_path / "absent.lua"))

        assert result.success is False
        assert "Failed to read" in result.errors[0]


class TestAllowedBase:
    def test_write_inside_base(self, grammar, kitty):
        editor = _editor(grammar, allowed_base=str(kitty.parent))

        result = editor.apply_patch("kitty.conf", KITTY_DIFF, dry_run=False)

        assert result.success is True, result.error
        assert kitty.read_text(encoding="utf-8").startswith("font_size 14.0\n")

    def test_write_outside_base_refused(self, grammar, kitty, tmp_path):
        base = tmp_path / "allowed"
        base.mkdir()
        editor = _editor(grammar, allowed_base=str(base))

        result = editor.apply_patch(str(kitty), KITTY_DIFF, dry_run=False)

        assert result.success is False
        assert result.error_kind == "path"
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_backup_outside_base_refused(self, grammar, kitty, tmp_path):
        editor = _editor(grammar, allowed_base=str(kitty.parent))

        result = editor.apply_patch(
            str(kitty), KITTY_DIFF, dry_run=False,
            backup_path=str(tmp_path.parent / "stolen.backup"),
        )

        assert result.error_kind == "path"
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_merge_outside_base_refused(self, grammar, tmp_path):
        base = tmp_path / "allowed"
        base.mkdir()

        result = _editor(grammar, allowed_base=str(base)).merge_file(
            str(tmp_path / "init.lua"), "x = 1\n",
        )

        assert result.error_kind == "path"


class TestRestoreBackup:
    def test_round_trip(self, grammar, kitty):
        editor = _editor(grammar)
        applied = editor.apply_patch(str(kitty), KITTY_DIFF, dry_run=False)

        result = editor.restore_backup(str(kitty), applied.backup_path)

        assert result.success is True
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_missing_backup_is_io_error(self, grammar, kitty, tmp_path):
        result = _editor(grammar).restore_backup(str(kitty), str(tmp_path / "gone"))

        assert result.success is False
        assert result.error_kind == "io"
        assert kitty.read_text(encoding="utf-8") == KITTY_CONF

    def test_restore_outside_base_refused(self, grammar, kitty, tmp_path):
        base = tmp_path / "allowed"
        base.mkdir()

        result = _editor(grammar, allowed_base=str(base)).restore_backup(
            str(kitty), str(kitty),
        )

        assert result.error_kind == "path"


class TestLoad:
    def test_file_log_uses_configured_dir(self, grammar, tmp_path):
        import logging

        log_dir = tmp_path / "logs"
        config_file = tmp_path / ".confpatch.yaml"
        config_file.write_text(f"log_dir: {log_dir}\ncontext_lines: 1\n")

        editor = ConfigEditor.load(str(config_file), file_log=True, grammar=grammar)
        try:
            assert editor.preview("a\nb\nc\nd", "a\nb\nX\nd").count("\n ") == 2
            assert len(os.listdir(log_dir)) == 1
        finally:
            logger = logging.getLogger("confpatch")
            for handler in list(logger.handlers):
                if isinstance(handler, logging.FileHandler):
                    logger.removeHandler(handler)
                    handler.close()

    def test_no_file_log_by_default(self, grammar, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        ConfigEditor.load(grammar=grammar)

        assert not (tmp_path / ".confpatch").exists()
