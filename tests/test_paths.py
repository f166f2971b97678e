"""Tests for keeping paths inside an allowed base directory."""

import os

import pytest

from confpatch.paths import PathOutsideBaseError, resolve_within_base


@pytest.fixture
def base(tmp_path):
    path = tmp_path / "kitty"
    path.mkdir()
    return path


class TestResolveWithinBase:
    def test_relative_path_resolved_against_base(self, base):
        resolved = resolve_within_base("kitty.conf", str(base))

        assert resolved == os.path.join(os.path.realpath(base), "kitty.conf")

    def test_absolute_path_inside(self, base):
        inner = base / "themes" / "dark.conf"

        assert resolve_within_base(str(inner), str(base)) == os.path.realpath(inner)

    def test_base_itself_allowed(self, base):
        assert resolve_within_base(str(base), str(base)) == os.path.realpath(base)

    def test_parent_traversal_refused(self, base):
        with pytest.raises(PathOutsideBaseError) as exc_info:
            resolve_within_base("../escape.conf", str(base))
        assert exc_info.value.base == os.path.realpath(base)

    def test_sibling_with_common_prefix_refused(self, base, tmp_path):
        with pytest.raises(PathOutsideBaseError):
            resolve_within_base(str(tmp_path / "kitty-other" / "x.conf"), str(base))

    def test_symlink_escaping_base_refused(self, base, tmp_path):
        outside = tmp_path / "outside.conf"
        outside.write_text("")
        (base / "link.conf").symlink_to(outside)

        with pytest.raises(PathOutsideBaseError):
            resolve_within_base("link.conf", str(base))

    def test_is_value_error(self):
        assert issubclass(PathOutsideBaseError, ValueError)
