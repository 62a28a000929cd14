"""
Equivalence Matcher — Where the last migration left off

Given a 'from' and a 'to' repository, find the most recent known
equivalence between them and the 'from' revisions after it:

    match = EquivalenceMatcher(db).match(internal, public)
    match.revisions        # to migrate, oldest first
    match.to_baseline      # 'to' revision to diff against

Sources, in order:
1. The equivalence database (native per-repository order decides recency)
2. MOE_MIGRATED_REVID markers in the 'to' repository's history

The walk over 'from' history stops at the equivalent revision, or earlier
at any revision the database already knows as equivalent or migrated.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..core.revision import Revision
from ..errors import RepositoryError
from .db import EquivalenceDb

logger = logging.getLogger(__name__)

SOURCE_DATABASE = "database"
SOURCE_MARKER = "marker"


@dataclass
class EquivalenceMatch:
    from_repository: str
    to_repository: str
    equivalence: Optional[Tuple[Revision, Revision]] = None
    source: Optional[str] = None
    revisions: List[Revision] = field(default_factory=list)

    @property
    def from_baseline(self) -> Optional[Revision]:
        return self.equivalence[0] if self.equivalence else None

    @property
    def to_baseline(self) -> Optional[Revision]:
        return self.equivalence[1] if self.equivalence else None

    @property
    def up_to_date(self) -> bool:
        return not self.revisions


class EquivalenceMatcher:
    """Finds merge bases for incremental migration."""

    def __init__(self, db: EquivalenceDb, marker_scan_limit: Optional[int] = 500):
        self.db = db
        self.marker_scan_limit = marker_scan_limit

    def latest_equivalence(self, from_repo, to_repo) -> Tuple[Optional[Tuple[Revision, Revision]], Optional[str]]:
        """Most recent equivalence as ((from_rev, to_rev), source), or (None, None)."""
        found = self.db.find_latest_equivalence(
            from_repo.name, to_repo.name, from_repo.compare_order, to_repo.compare_order)
        if found is not None:
            return found, SOURCE_DATABASE

        found = self.equivalence_from_markers(from_repo, to_repo)
        if found is not None:
            return found, SOURCE_MARKER
        return None, None

    def equivalence_from_markers(self, from_repo, to_repo) -> Optional[Tuple[Revision, Revision]]:
        """
        Newest 'to' revision whose description records a migration from 'from_repo'.

        A marker whose id does not resolve in 'from_repo' was left by a
        migration from some other repository and is skipped.
        """
        for to_revision in to_repo.list_revisions(limit=self.marker_scan_limit):
            migrated = to_repo.metadata(to_revision).migrated_from
            if not migrated:
                continue
            try:
                from_revision = from_repo.resolve(migrated)
            except RepositoryError:
                logger.debug("Ignoring marker %s in %s: not a revision of %s",
                             migrated, to_revision, from_repo.name)
                continue
            logger.info("Found migration marker for %s in %s", from_revision, to_revision)
            return from_revision, to_revision
        return None

    def match(self, from_repo, to_repo, start: Optional[str] = None) -> EquivalenceMatch:
        """Revisions of `from_repo` not yet migrated to `to_repo`."""
        equivalence, source = self.latest_equivalence(from_repo, to_repo)
        result = EquivalenceMatch(from_repo.name, to_repo.name, equivalence, source)

        pending: List[Revision] = []
        reached = equivalence is None
        for revision in from_repo.list_revisions(start):
            if equivalence is not None and revision == equivalence[0]:
                reached = True
                break
            if self._already_migrated(revision, to_repo.name):
                logger.info("Stopping at %s, already equivalent to %s", revision, to_repo.name)
                reached = True
                break
            pending.append(revision)

        if not reached:
            logger.warning("Equivalent revision %s is not in the history of %s; "
                           "considering the whole history", equivalence[0], from_repo.name)

        pending.reverse()
        result.revisions = pending
        return result

    def _already_migrated(self, revision: Revision, to_repository: str) -> bool:
        if self.db.find_equivalences(revision, to_repository):
            return True
        migration = self.db.find_migration(revision)
        return migration is not None and migration.to_revision.repository_name == to_repository
