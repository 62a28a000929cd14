"""
Tests for Editors — the transformations translators are made of

These tests validate:
- Renamer prefix and regex mappings, strictness, collisions, inverse
- Filter settings and per-expression option
- Shell and patch editors on a copy of the tree
- Unknown editor types are configuration errors
"""

import shutil

import pytest

from moesync.core.codebase import Codebase
from moesync.errors import CodebaseCreationError, InvalidProject
from moesync.translation.editors import (
    FileFilterEditor, IdentityEditor, RenamingEditor, create_editor,
)
from tests.factories import read_tree


@pytest.fixture
def context(moe_factory):
    return moe_factory.create_context()


def make_codebase(moe_factory, files, space="internal", name="input"):
    return Codebase(moe_factory.write_tree(name, files), space)


class TestRenamer:
    """Prefix and regex renaming."""

    def test_longest_prefix_wins(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"java/": "src/", "java/test/": "tests/"}})
        codebase = make_codebase(moe_factory, {"java/a.txt": "a", "java/test/t.txt": "t"})

        result = editor.edit(codebase, {}, context)

        assert read_tree(result.path) == {"src/a.txt": "a", "tests/t.txt": "t"}
        assert result.project_space == "internal"

    def test_unmatched_file_is_an_error_when_strict(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"java/": "src/"}})
        codebase = make_codebase(moe_factory, {"java/a.txt": "a", "README": "r"})
        with pytest.raises(CodebaseCreationError, match="README"):
            editor.edit(codebase, {}, context)

    def test_unmatched_file_kept_when_not_strict(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"java/": "src/"}})
        codebase = make_codebase(moe_factory, {"java/a.txt": "a", "README": "r"})
        result = editor.edit(codebase, {"strict": "false"}, context)
        assert sorted(read_tree(result.path)) == ["README", "src/a.txt"]

    def test_collision_is_an_error(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"a/": "x/", "b/": "x/"}})
        codebase = make_codebase(moe_factory, {"a/f.txt": "1", "b/f.txt": "2"})
        with pytest.raises(CodebaseCreationError, match="more than one file"):
            editor.edit(codebase, {}, context)

    def test_nothing_moved_returns_input(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"src/": "src/"}})
        codebase = make_codebase(moe_factory, {"src/a.txt": "a"})
        assert editor.edit(codebase, {}, context) is codebase

    def test_regex_mappings(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {r"^lib/(\w+)\.py$": r"pkg/\1.py"}, "use_regex": True})
        codebase = make_codebase(moe_factory, {"lib/core.py": "c"})
        result = editor.edit(codebase, {}, context)
        assert read_tree(result.path) == {"pkg/core.py": "c"}

    def test_inverse_undoes_rename(self, moe_factory, context):
        editor = RenamingEditor("move", {"mappings": {"java/": "src/"}})
        codebase = make_codebase(moe_factory, {"src/a.txt": "a"}, space="public")
        result = editor.inverse().inverse_edit(codebase, None, None, {}, context)
        assert read_tree(result.path) == {"java/a.txt": "a"}

    def test_regex_renamer_has_no_inverse(self):
        editor = RenamingEditor("move", {"mappings": {"a": "b"}, "use_regex": True})
        with pytest.raises(InvalidProject):
            editor.inverse()

    def test_needs_mappings(self):
        with pytest.raises(InvalidProject, match="mappings"):
            RenamingEditor("move", {})


class TestFilter:
    """Dropping files by regex."""

    def test_settings_and_option(self, moe_factory, context):
        editor = FileFilterEditor("scrub", {"ignore_file_res": [r"\.log$"]})
        codebase = make_codebase(moe_factory, {"a.py": "a", "b.log": "b", "c.tmp": "c"})

        assert editor.filter_options({"ignore_file_re": "tmp", "strict": "x"}) == {"ignore_file_re": "tmp"}
        result = editor.edit(codebase, {"ignore_file_re": r"\.tmp$"}, context)

        assert read_tree(result.path) == {"a.py": "a"}

    def test_nothing_dropped_returns_input(self, moe_factory, context):
        editor = FileFilterEditor("scrub", {"ignore_file_res": ["nomatch"]})
        codebase = make_codebase(moe_factory, {"a.py": "a"})
        assert editor.edit(codebase, {}, context) is codebase

    def test_invalid_regex(self):
        with pytest.raises(InvalidProject, match="invalid regex"):
            FileFilterEditor("scrub", {"ignore_file_res": ["("]})

    def test_inverse_restores_from_reference(self, moe_factory, context):
        editor = FileFilterEditor("scrub", {"ignore_file_res": ["^secret/"]})
        public = make_codebase(moe_factory, {"a.py": "new"}, space="public", name="pub")
        internal = make_codebase(moe_factory, {"a.py": "old", "secret/k": "k"}, name="int")

        result = editor.inverse().inverse_edit(public, internal, None, {}, context)

        assert read_tree(result.path) == {"a.py": "new", "secret/k": "k"}


class TestIdentity:

    def test_identity(self, moe_factory, context):
        codebase = make_codebase(moe_factory, {"a": "a"})
        assert IdentityEditor("same").edit(codebase, {}, context) is codebase
        assert IdentityEditor("same").inverse().inverse_edit(codebase, None, None, {}, context) is codebase


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not available")
class TestShell:
    """Commands run in a copy of the codebase."""

    def test_runs_in_copy(self, moe_factory, context):
        editor = create_editor("stamp", "shell", {"command": "echo stamped > STAMP"})
        codebase = make_codebase(moe_factory, {"a.txt": "a"})

        result = editor.edit(codebase, {}, context)

        assert read_tree(result.path) == {"a.txt": "a", "STAMP": "stamped\n"}
        assert read_tree(codebase.path) == {"a.txt": "a"}

    def test_failure_reported(self, moe_factory, context):
        editor = create_editor("broken", "shell", {"command": "echo bad >&2; exit 3"})
        codebase = make_codebase(moe_factory, {"a.txt": "a"})
        with pytest.raises(CodebaseCreationError, match="exit status 3: bad"):
            editor.edit(codebase, {}, context)

    def test_needs_command(self):
        with pytest.raises(InvalidProject):
            create_editor("broken", "shell", {})


@pytest.mark.skipif(shutil.which("patch") is None, reason="patch is not available")
class TestPatcher:
    """Patch files named by the 'file' option."""

    def test_applies_patch(self, moe_factory, context, tmp_path):
        codebase = make_codebase(moe_factory, {"a.txt": "one\n"})
        patch = tmp_path / "change.patch"
        patch.write_text("--- a.txt\n+++ a.txt\n@@ -1 +1 @@\n-one\n+two\n")

        result = create_editor("patch", "patcher").edit(codebase, {"file": str(patch)}, context)

        assert read_tree(result.path)["a.txt"] == "two\n"

    def test_without_file_is_unchanged(self, moe_factory, context):
        codebase = make_codebase(moe_factory, {"a.txt": "one\n"})
        assert create_editor("patch", "patcher").edit(codebase, {}, context) is codebase

    def test_missing_file(self, moe_factory, context, tmp_path):
        codebase = make_codebase(moe_factory, {"a.txt": "one\n"})
        with pytest.raises(CodebaseCreationError, match="not found"):
            create_editor("patch", "patcher").edit(codebase, {"file": str(tmp_path / "nope")}, context)


class TestRegistry:

    def test_unknown_type_suggests(self):
        with pytest.raises(InvalidProject, match="did you mean 'renamer'"):
            create_editor("x", "renamr")
