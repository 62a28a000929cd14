"""
Repository — The version control boundary

The core only needs a few capabilities from a repository:
- resolve a revision spec to a Revision
- read a revision's metadata
- export a revision's files into a directory
- list revisions, newest first
- compare two revisions in the repository's own order

Concrete backends live next to this module. Wall-clock dates are never used
for ordering; compare_order() is the repository's native order.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from ..core.filesystem import list_files, set_executable
from ..core.revision import Revision, RevisionMetadata

logger = logging.getLogger(__name__)


class Repository(ABC):
    """A named repository configured by a RepositoryConfig."""

    type_name = ""

    def __init__(self, name: str, config):
        self.name = name
        self.config = config

    @property
    def project_space(self) -> str:
        return self.config.project_space

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"

    @abstractmethod
    def resolve(self, spec: Optional[str] = None) -> Revision:
        """Revision for `spec`; None means the head of the configured branch."""

    @abstractmethod
    def metadata(self, revision: Revision) -> RevisionMetadata:
        """Author, date, description and parents of `revision`."""

    @abstractmethod
    def export(self, revision: Revision, destination: Path) -> None:
        """Write the files of `revision` into `destination`."""

    @abstractmethod
    def list_revisions(self, start: Optional[str] = None, limit: Optional[int] = None) -> List[Revision]:
        """History reachable from `start` (default: head), newest first."""

    def compare_order(self, a: Revision, b: Revision) -> int:
        """
        Negative if a comes before b, positive if after, 0 if the same or
        if the repository cannot tell.
        """
        if a == b:
            return 0
        history = self.list_revisions()
        positions = {rev: i for i, rev in enumerate(history)}
        if a not in positions or b not in positions:
            return 0
        # Newest first: a larger index means older
        return positions[b] - positions[a]

    def checkout(self, spec: Optional[str], destination: Path) -> Tuple[Path, RevisionMetadata]:
        """Export `spec` into `destination`, applying path and mode rules."""
        revision = self.resolve(spec)
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        self.export(revision, destination)
        self._apply_rules(destination)
        return destination, self.metadata(revision)

    def _apply_rules(self, root: Path) -> None:
        paths = [p.strip("/") for p in self.config.paths if p.strip("/")]
        executable = [re.compile(p) for p in self.config.executable_file_res]
        for relative in list_files(root):
            if paths and not any(relative == p or relative.startswith(p + "/") for p in paths):
                (root / relative).unlink()
                continue
            if executable:
                set_executable(root / relative, any(p.search(relative) for p in executable))
        if paths:
            _prune_empty_dirs(root)


def _prune_empty_dirs(root: Path) -> None:
    for directory in sorted((d for d in root.rglob("*") if d.is_dir()), reverse=True):
        if not any(directory.iterdir()):
            directory.rmdir()
