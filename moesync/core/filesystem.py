"""
Run File System — Temporary directory lifetimes for one run

Every codebase lives in a directory. Directories allocated during a run are
owned by a lifetime scope:

    with fs.task("translate"):
        out = fs.temp_dir("renamer")   # owned by the 'translate' scope
        fs.persist(out)                # survives the scope, handed to the parent

- Closing a scope removes every directory it still owns, error or not
- persist() hands a directory to the enclosing scope
- retain() hands it straight to the run scope (cached codebases)
- keep() exempts it from cleanup altogether (a command's final output)
- cleanup() ends the run

Scope stacks are per thread so independent evaluations can run
concurrently. The run scope is shared.
"""

import logging
import os
import shutil
import stat
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

# Version control metadata never belongs to a codebase
METADIRS = (".git", ".hg", ".svn", "_darcs", ".bzr")


class _Scope:
    def __init__(self, name: str, parent: Optional['_Scope'] = None):
        self.name = name
        self.parent = parent
        self.paths: List[Path] = []
        self.persisted: Set[Path] = set()


class RunFileSystem:
    """Allocates and cleans up the temporary directories of one run."""

    def __init__(self, base_dir: Optional[Path] = None, prefix: str = "moesync-"):
        self.base_dir = Path(base_dir) if base_dir else None
        self.prefix = prefix
        self._lock = threading.Lock()
        self._run = _Scope("run")
        self._local = threading.local()
        self._owners: Dict[Path, _Scope] = {}
        self._kept: Set[Path] = set()
        self._ever_persisted: Set[Path] = set()
        self._closed = False

    def __enter__(self) -> 'RunFileSystem':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    def _stack(self) -> List[_Scope]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _current(self) -> _Scope:
        stack = self._stack()
        return stack[-1] if stack else self._run

    @contextmanager
    def task(self, name: str) -> Iterator[None]:
        """Open a lifetime scope; directories it still owns are removed on exit."""
        stack = self._stack()
        scope = _Scope(name, parent=stack[-1] if stack else self._run)
        stack.append(scope)
        try:
            yield
        finally:
            stack.pop()
            self._close(scope)

    def _close(self, scope: _Scope) -> None:
        doomed = []
        with self._lock:
            for path in scope.paths:
                if self._owners.get(path) is not scope:
                    continue
                if path in scope.persisted:
                    self._owners[path] = scope.parent
                    scope.parent.paths.append(path)
                else:
                    del self._owners[path]
                    doomed.append(path)
        for path in doomed:
            _remove(path)
        if doomed:
            logger.debug("Task %r removed %d temporary director%s",
                         scope.name, len(doomed), "y" if len(doomed) == 1 else "ies")

    # -------------------------------------------------------------------------
    # Allocation and ownership
    # -------------------------------------------------------------------------

    def temp_dir(self, hint: str = "tmp") -> Path:
        """Create an empty directory owned by the current scope."""
        if self._closed:
            raise RuntimeError("Run file system is already cleaned up")
        if self.base_dir:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"{self.prefix}{hint}-",
                                     dir=str(self.base_dir) if self.base_dir else None))
        scope = self._current()
        with self._lock:
            self._owners[path] = scope
            scope.paths.append(path)
        return path

    def owns(self, path: Path) -> bool:
        with self._lock:
            return Path(path) in self._owners

    def persist(self, path: Path) -> None:
        """Let `path` outlive the scope that owns it (handed to the parent)."""
        path = Path(path)
        with self._lock:
            owner = self._owners.get(path)
            if owner is None:
                return
            owner.persisted.add(path)
            self._ever_persisted.add(path)

    def is_persisted(self, path: Path) -> bool:
        """Whether `path` was ever marked to outlive its scope or the run."""
        path = Path(path)
        with self._lock:
            return path in self._ever_persisted or path in self._kept

    def retain(self, path: Path) -> None:
        """Hand `path` to the run scope so it lives until cleanup()."""
        path = Path(path)
        with self._lock:
            owner = self._owners.get(path)
            if owner is None or owner is self._run:
                return
            self._owners[path] = self._run
            self._run.paths.append(path)

    def keep(self, path: Path) -> None:
        """Never remove `path`, not even at the end of the run."""
        path = Path(path)
        with self._lock:
            self._owners.pop(path, None)
            self._kept.add(path)

    def cleanup(self) -> None:
        """Remove everything the run still owns."""
        with self._lock:
            doomed = list(self._owners)
            self._owners.clear()
            self._run.paths.clear()
            self._closed = True
        for path in doomed:
            _remove(path)
        if doomed:
            logger.debug("Run cleanup removed %d temporary directories", len(doomed))


def _remove(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning("Could not remove temporary directory %s", path)


# =============================================================================
# Tree helpers
# =============================================================================

def list_files(root: Path) -> List[str]:
    """Relative POSIX paths of every file under root, sorted, metadirs skipped."""
    root = Path(root)
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in METADIRS]
        for filename in filenames:
            full = Path(dirpath) / filename
            files.append(full.relative_to(root).as_posix())
    return sorted(files)


def copy_tree(src: Path, dest: Path) -> None:
    """Copy the contents of src into dest (which may exist), skipping metadirs."""
    shutil.copytree(str(src), str(dest), symlinks=True, dirs_exist_ok=True,
                    ignore=shutil.ignore_patterns(*METADIRS))


def copy_file(src: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(str(src), str(dest))


def is_executable(path: Path) -> bool:
    return bool(Path(path).stat().st_mode & stat.S_IXUSR)


def set_executable(path: Path, executable: bool) -> None:
    mode = Path(path).stat().st_mode
    bits = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    os.chmod(path, (mode | bits) if executable else (mode & ~bits))
