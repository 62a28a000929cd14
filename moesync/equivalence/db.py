"""
Equivalence Database — Which revisions hold the same content across repositories

Facts are only ever added. Each fact is an unordered pair of revisions from
two different repositories. The database also remembers submitted
migrations (source revision -> target revision).

Persisted format (JSON, written with orjson):

    {
      "equivalences": {
        "internal|public": [
          {"rev1": {"rev_id": "...", "repository_name": "internal"},
           "rev2": {"rev_id": "...", "repository_name": "public"}}
        ]
      },
      "migrations": [{"from": {...}, "to": {...}}]
    }

Pair keys are the two repository names, sorted, joined by '|'. Records keep
insertion order, which breaks ties between equally recent facts.

Writes go to a temporary file in the same directory which then replaces the
database, so readers never see a partial file. Malformed files are fatal at
load: partial equivalence knowledge risks re-migrating history.
"""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import orjson

from ..core.revision import Revision
from ..errors import EquivalenceDbError

logger = logging.getLogger(__name__)

OrderFn = Callable[[Revision, Revision], int]


@dataclass(frozen=True, eq=False)
class RepositoryEquivalence:
    """Two revisions believed to hold the same logical content. Unordered."""
    rev1: Revision
    rev2: Revision

    def __post_init__(self):
        if self.rev1.repository_name == self.rev2.repository_name:
            raise ValueError(f"Equivalence must span two repositories: {self.rev1}, {self.rev2}")

    def __eq__(self, other):
        if not isinstance(other, RepositoryEquivalence):
            return NotImplemented
        return {self.rev1, self.rev2} == {other.rev1, other.rev2}

    def __hash__(self):
        return hash(frozenset((self.rev1, self.rev2)))

    def __str__(self) -> str:
        return f"{self.rev1} == {self.rev2}"

    @property
    def repositories(self) -> Tuple[str, str]:
        return tuple(sorted((self.rev1.repository_name, self.rev2.repository_name)))

    @property
    def pair_key(self) -> str:
        return pair_key(*self.repositories)

    def involves(self, repository_a: str, repository_b: str) -> bool:
        return set(self.repositories) == {repository_a, repository_b}

    def revision_in(self, repository_name: str) -> Optional[Revision]:
        for revision in (self.rev1, self.rev2):
            if revision.repository_name == repository_name:
                return revision
        return None

    def other_than(self, revision: Revision) -> Optional[Revision]:
        if revision == self.rev1:
            return self.rev2
        if revision == self.rev2:
            return self.rev1
        return None

    def to_dict(self) -> Dict:
        return {"rev1": self.rev1.to_dict(), "rev2": self.rev2.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict) -> 'RepositoryEquivalence':
        return cls(Revision.from_dict(data["rev1"]), Revision.from_dict(data["rev2"]))


@dataclass(frozen=True)
class SubmittedMigration:
    from_revision: Revision
    to_revision: Revision

    def to_dict(self) -> Dict:
        return {"from": self.from_revision.to_dict(), "to": self.to_revision.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict) -> 'SubmittedMigration':
        return cls(Revision.from_dict(data["from"]), Revision.from_dict(data["to"]))


def pair_key(repository_a: str, repository_b: str) -> str:
    return "|".join(sorted((repository_a, repository_b)))


class EquivalenceDb:
    """
    In-memory equivalence store, optionally backed by a file.

    Without a path the database lives only in memory (tests, dry runs).
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._equivalences: List[RepositoryEquivalence] = []
        self._known = set()
        self._migrations: List[SubmittedMigration] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._equivalences)

    @classmethod
    def load(cls, path: Path) -> 'EquivalenceDb':
        """
        Load a database file; a missing file is an empty database.

        Raises:
            EquivalenceDbError: if the file exists but is malformed
        """
        db = cls(path)
        path = Path(path)
        if not path.exists():
            logger.info("No equivalence database at %s, starting empty", path)
            return db

        try:
            data = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as e:
            raise EquivalenceDbError(f"Equivalence database {path} is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise EquivalenceDbError(f"Equivalence database {path} must hold a JSON object")

        try:
            for key, records in (data.get("equivalences") or {}).items():
                for record in records:
                    equivalence = RepositoryEquivalence.from_dict(record)
                    if equivalence.pair_key != key:
                        raise EquivalenceDbError(
                            f"Equivalence {equivalence} filed under '{key}' in {path}")
                    db._add(equivalence)
            for record in data.get("migrations") or []:
                db._migrations.append(SubmittedMigration.from_dict(record))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise EquivalenceDbError(f"Malformed record in equivalence database {path}: {e!r}")

        logger.debug("Loaded %d equivalences from %s", len(db._equivalences), path)
        return db

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def _add(self, equivalence: RepositoryEquivalence) -> bool:
        if equivalence in self._known:
            return False
        self._known.add(equivalence)
        self._equivalences.append(equivalence)
        return True

    def record_equivalence(self, revision_a: Revision, revision_b: Revision) -> bool:
        """Add a fact. Returns False (and changes nothing) if already known."""
        equivalence = RepositoryEquivalence(revision_a, revision_b)
        with self._lock:
            added = self._add(equivalence)
        if added:
            logger.info("Recorded equivalence %s", equivalence)
        return added

    def note_migration(self, from_revision: Revision, to_revision: Revision) -> bool:
        migration = SubmittedMigration(from_revision, to_revision)
        with self._lock:
            if migration in self._migrations:
                return False
            self._migrations.append(migration)
        return True

    def record_and_save(self, revision_a: Revision, revision_b: Revision) -> bool:
        """Record a fact and persist, as one unit."""
        with self._lock:
            added = self.record_equivalence(revision_a, revision_b)
            self.save()
        return added

    def save(self, path: Optional[Path] = None) -> None:
        """Atomically write the database (temporary file, then replace)."""
        target = Path(path) if path else self.path
        if target is None:
            return
        with self._lock:
            payload = orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    def to_dict(self) -> Dict:
        with self._lock:
            grouped: Dict[str, List[Dict]] = {}
            for equivalence in self._equivalences:
                grouped.setdefault(equivalence.pair_key, []).append(equivalence.to_dict())
            return {
                "equivalences": grouped,
                "migrations": [m.to_dict() for m in self._migrations],
            }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def equivalences(self, repository_a: Optional[str] = None,
                     repository_b: Optional[str] = None) -> List[RepositoryEquivalence]:
        """Facts in insertion order, optionally only those between two repositories."""
        with self._lock:
            facts = list(self._equivalences)
        if repository_a is None or repository_b is None:
            return facts
        return [e for e in facts if e.involves(repository_a, repository_b)]

    def find_equivalences(self, revision: Revision, other_repository: str) -> List[Revision]:
        """Revisions in `other_repository` equivalent to `revision`."""
        found = []
        for equivalence in self.equivalences(revision.repository_name, other_repository):
            other = equivalence.other_than(revision)
            if other is not None:
                found.append(other)
        return found

    def find_latest_equivalence(
        self,
        repository_a: str,
        repository_b: str,
        order_a: Optional[OrderFn] = None,
        order_b: Optional[OrderFn] = None,
    ) -> Optional[Tuple[Revision, Revision]]:
        """
        Most recent equivalence between two repositories, as (rev in a, rev in b).

        Recency is `repository_a`'s native order: the fact whose revision
        there comes last wins, and a tie goes to whichever fact was added
        last. `order_b` is consulted only when `order_a` is not given.
        Without order functions the last added fact wins.
        """
        best: Optional[Tuple[Revision, Revision]] = None
        for equivalence in self.equivalences(repository_a, repository_b):
            candidate = (equivalence.revision_in(repository_a), equivalence.revision_in(repository_b))
            if best is None or _not_older(candidate, best, order_a, order_b):
                best = candidate
        return best

    def find_migration(self, from_revision: Revision) -> Optional[SubmittedMigration]:
        with self._lock:
            for migration in self._migrations:
                if migration.from_revision == from_revision:
                    return migration
        return None

    @property
    def migrations(self) -> List[SubmittedMigration]:
        with self._lock:
            return list(self._migrations)


def _not_older(candidate, best, order_a: Optional[OrderFn], order_b: Optional[OrderFn]) -> bool:
    # Facts arrive in insertion order, so a tie goes to the candidate
    if order_a is not None:
        return order_a(candidate[0], best[0]) >= 0
    if order_b is not None:
        return order_b(candidate[1], best[1]) >= 0
    return True
