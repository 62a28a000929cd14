"""
Tests for the Run File System — temporary directory lifetimes

These tests validate:
- Task scopes remove what they still own, on success and on error
- persist() hands a directory to the enclosing scope
- retain() and keep() for cached and final codebases
- Tree helpers skip version control metadata
"""

import threading

import pytest

from moesync.core.filesystem import (
    RunFileSystem, copy_tree, is_executable, list_files, set_executable,
)
from tests.factories import write_tree


@pytest.fixture
def fs(tmp_path):
    filesystem = RunFileSystem(base_dir=tmp_path / "run")
    yield filesystem
    filesystem.cleanup()


class TestScopes:
    """Lifetimes of temporary directories."""

    def test_task_removes_owned_directories(self, fs):
        with fs.task("work"):
            path = fs.temp_dir("scratch")
            assert path.is_dir()
        assert not path.exists()
        assert not fs.owns(path)

    def test_task_removes_on_error(self, fs):
        with pytest.raises(RuntimeError):
            with fs.task("work"):
                path = fs.temp_dir("scratch")
                raise RuntimeError("boom")
        assert not path.exists()

    def test_persist_hands_to_parent(self, fs):
        with fs.task("outer"):
            with fs.task("inner"):
                kept = fs.temp_dir("kept")
                dropped = fs.temp_dir("dropped")
                fs.persist(kept)
            assert kept.exists()
            assert not dropped.exists()
        # Not persisted again, so the outer scope removes it
        assert not kept.exists()
        assert fs.is_persisted(kept)

    def test_run_scope_lives_until_cleanup(self, fs):
        path = fs.temp_dir("run-level")
        with fs.task("work"):
            pass
        assert path.exists()
        fs.cleanup()
        assert not path.exists()

    def test_retain_moves_to_run_scope(self, fs):
        with fs.task("work"):
            path = fs.temp_dir("cached")
            fs.retain(path)
        assert path.exists()
        assert not fs.is_persisted(path)

    def test_keep_survives_cleanup(self, fs):
        path = fs.temp_dir("output")
        fs.keep(path)
        fs.cleanup()
        assert path.exists()
        assert fs.is_persisted(path)

    def test_no_allocation_after_cleanup(self, fs):
        fs.cleanup()
        with pytest.raises(RuntimeError):
            fs.temp_dir()

    def test_scopes_are_per_thread(self, fs):
        """A task on one thread does not adopt another thread's directories."""
        started = threading.Event()
        release = threading.Event()
        paths = {}

        def worker():
            with fs.task("worker"):
                paths["worker"] = fs.temp_dir("worker")
                started.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=worker)
        thread.start()
        started.wait(timeout=5)
        with fs.task("main"):
            paths["main"] = fs.temp_dir("main")
        release.set()
        thread.join(timeout=5)

        assert not paths["main"].exists()
        assert not paths["worker"].exists()

    def test_context_manager_cleans_up(self, tmp_path):
        with RunFileSystem(base_dir=tmp_path / "run") as filesystem:
            path = filesystem.temp_dir()
        assert not path.exists()


class TestTreeHelpers:
    """File listing and copying."""

    def test_list_files_sorted_and_skips_metadirs(self, tmp_path):
        root = write_tree(tmp_path / "tree", {
            "b.txt": "b",
            "a/c.txt": "c",
            ".git/config": "x",
        })
        assert list_files(root) == ["a/c.txt", "b.txt"]

    def test_copy_tree_into_existing(self, tmp_path):
        src = write_tree(tmp_path / "src", {"x/y.txt": "y", ".hg/store": "s"})
        dest = tmp_path / "dest"
        dest.mkdir()
        copy_tree(src, dest)
        assert list_files(dest) == ["x/y.txt"]
        assert not (dest / ".hg").exists()

    def test_executable_bit(self, tmp_path):
        root = write_tree(tmp_path / "t", {"run.sh": "#!/bin/sh\n"})
        script = root / "run.sh"
        set_executable(script, True)
        assert is_executable(script)
        set_executable(script, False)
        assert not is_executable(script)
