"""
Git repository — Reads history and exports trees with the git CLI

Remote URLs are mirrored once into ~/.moesync/mirrors (override with
MOESYNC_MIRROR_DIR); local paths are read in place.
"""

import io
import logging
import os
import subprocess
import tarfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import xxhash

from ..core.revision import Revision, RevisionMetadata
from ..errors import RepositoryError
from .base import Repository

logger = logging.getLogger(__name__)

# Fields of `git log` separated by NUL: hash, author, date, parents, body
LOG_FORMAT = "%H%x00%an <%ae>%x00%aI%x00%P%x00%B"


class GitRepository(Repository):
    type_name = "git"

    def __init__(self, name, config):
        super().__init__(name, config)
        self._local_path: Optional[Path] = None

    @property
    def local_path(self) -> Path:
        if self._local_path is None:
            self._local_path = self._ensure_local()
        return self._local_path

    def _ensure_local(self) -> Path:
        candidate = Path(self.config.url).expanduser()
        if candidate.is_dir():
            return candidate

        mirrors = Path(os.environ.get("MOESYNC_MIRROR_DIR", Path.home() / ".moesync" / "mirrors"))
        mirror = mirrors / f"{self.name}-{xxhash.xxh64(self.config.url.encode()).hexdigest()[:12]}"
        if mirror.is_dir():
            self._run_git(["fetch", "--prune", "origin"], cwd=mirror)
        else:
            mirrors.mkdir(parents=True, exist_ok=True)
            logger.info("Mirroring %s into %s", self.config.url, mirror)
            self._run_git(["clone", "--mirror", self.config.url, str(mirror)], cwd=mirrors)
        return mirror

    def _git(self, args: List[str], cwd: Optional[Path] = None, binary: bool = False):
        try:
            return subprocess.run(
                ["git"] + args,
                cwd=cwd or self.local_path,
                capture_output=True,
                text=not binary,
            )
        except OSError as e:
            raise RepositoryError(f"Could not run git for '{self.name}': {e}")

    def _run_git(self, args: List[str], cwd: Optional[Path] = None, binary: bool = False):
        """Run git and return stdout; raise RepositoryError on failure."""
        result = self._git(args, cwd=cwd, binary=binary)
        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace") if binary else result.stderr
            raise RepositoryError(f"git {' '.join(args)} failed for '{self.name}': {stderr.strip()}")
        return result.stdout

    def resolve(self, spec: Optional[str] = None) -> Revision:
        spec = spec or self.config.branch or "HEAD"
        rev_id = self._run_git(["rev-parse", "--verify", f"{spec}^{{commit}}"]).strip()
        return Revision(rev_id, self.name)

    def metadata(self, revision: Revision) -> RevisionMetadata:
        output = self._run_git(["log", "-1", f"--format={LOG_FORMAT}", revision.rev_id])
        rev_id, author, date, parents, body = output.split("\x00", 4)
        return RevisionMetadata(
            id=rev_id,
            author=author,
            date=datetime.fromisoformat(date),
            description=body.rstrip("\n"),
            parents=tuple(Revision(p, self.name) for p in parents.split()),
        )

    def export(self, revision: Revision, destination: Path) -> None:
        archive = self._run_git(["archive", "--format=tar", revision.rev_id], binary=True)
        with tarfile.open(fileobj=io.BytesIO(archive)) as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(destination, filter="data")
            else:
                tar.extractall(destination)

    def list_revisions(self, start: Optional[str] = None, limit: Optional[int] = None) -> List[Revision]:
        args = ["rev-list"]
        if limit:
            args.append(f"--max-count={limit}")
        args.append(self.resolve(start).rev_id)
        return [Revision(line, self.name) for line in self._run_git(args).split()]

    def compare_order(self, a: Revision, b: Revision) -> int:
        if a == b:
            return 0
        if self._is_ancestor(a, b):
            return -1
        if self._is_ancestor(b, a):
            return 1
        return 0

    def _is_ancestor(self, a: Revision, b: Revision) -> bool:
        # Non-zero covers "not an ancestor" and unknown revisions alike
        return self._git(["merge-base", "--is-ancestor", a.rev_id, b.rev_id]).returncode == 0
