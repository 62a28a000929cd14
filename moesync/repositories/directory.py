"""
Directory repository — A plain tree on disk with a single revision

Useful for one-off snapshots and tests. The only revision is 'local'.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..core.filesystem import copy_tree, list_files
from ..core.revision import Revision, RevisionMetadata
from ..errors import RepositoryError
from .base import Repository

LOCAL_REVISION = "local"


class DirectoryRepository(Repository):
    type_name = "directory"

    @property
    def root(self) -> Path:
        return Path(self.config.url).expanduser()

    def resolve(self, spec: Optional[str] = None) -> Revision:
        if spec not in (None, LOCAL_REVISION, "HEAD"):
            raise RepositoryError(f"Directory repository '{self.name}' only has revision '{LOCAL_REVISION}'")
        if not self.root.is_dir():
            raise RepositoryError(f"Directory repository '{self.name}': {self.root} does not exist")
        return Revision(LOCAL_REVISION, self.name)

    def metadata(self, revision: Revision) -> RevisionMetadata:
        mtimes = [(self.root / f).stat().st_mtime for f in list_files(self.root)]
        date = datetime.fromtimestamp(max(mtimes), tz=timezone.utc) if mtimes else datetime.now(timezone.utc)
        return RevisionMetadata(
            id=revision.rev_id,
            author="",
            date=date,
            description=f"Contents of {self.root}",
            parents=(),
        )

    def export(self, revision: Revision, destination: Path) -> None:
        copy_tree(self.root, destination)

    def list_revisions(self, start: Optional[str] = None, limit: Optional[int] = None) -> List[Revision]:
        return [self.resolve(start)]
