"""
Revisions — Immutable identifiers and metadata for commits

A Revision names a commit in one repository. RevisionMetadata describes it.
Several metadata records can be squashed into one synthetic commit with
RevisionMetadata.concatenate, which also stamps the migration marker that
later runs use to recognise already-migrated history.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple


DESCRIPTION_SEPARATOR = "\n-------------\n"
MIGRATION_ATTRIBUTION = "Created by MOE: https://github.com/google/moe"
MIGRATED_REVID_PREFIX = "MOE_MIGRATED_REVID="

_MIGRATED_REVID_RE = re.compile(r"^" + re.escape(MIGRATED_REVID_PREFIX) + r"(\S+)$", re.MULTILINE)


@dataclass(frozen=True)
class Revision:
    """A commit identifier, unique within a repository."""
    rev_id: str
    repository_name: str

    def __str__(self) -> str:
        return f"{self.repository_name}{{{self.rev_id}}}"

    def to_dict(self) -> Dict[str, str]:
        return {"rev_id": self.rev_id, "repository_name": self.repository_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Revision':
        return cls(rev_id=data["rev_id"], repository_name=data["repository_name"])

    @classmethod
    def parse(cls, text: str) -> 'Revision':
        """Parse 'repository:rev_id' as typed on the command line."""
        repository_name, sep, rev_id = text.partition(":")
        if not sep or not repository_name or not rev_id:
            raise ValueError(f"Expected 'repository:revision', got {text!r}")
        return cls(rev_id=rev_id, repository_name=repository_name)


@dataclass(frozen=True)
class RevisionMetadata:
    """Author, date, description and parentage of one commit."""
    id: str
    author: str
    date: datetime
    description: str
    parents: Tuple[Revision, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence but store a tuple so instances stay hashable
        if not isinstance(self.parents, tuple):
            object.__setattr__(self, "parents", tuple(self.parents))

    @property
    def migrated_from(self) -> Optional[str]:
        """Source revision id recorded by a previous migration, if any."""
        return find_migrated_revid(self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "date": self.date.isoformat(),
            "description": self.description,
            "parents": [p.to_dict() for p in self.parents],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RevisionMetadata':
        return cls(
            id=data["id"],
            author=data["author"],
            date=datetime.fromisoformat(data["date"]),
            description=data.get("description", ""),
            parents=tuple(Revision.from_dict(p) for p in data.get("parents", [])),
        )

    @staticmethod
    def concatenate(
        metadata: Sequence['RevisionMetadata'],
        migration_from: Optional[Revision] = None,
    ) -> 'RevisionMetadata':
        """
        Squash several revisions' metadata into one, in input order.

        Ids and authors are joined with ", ", descriptions with a separator
        line, parents are concatenated and the date is the latest one. When
        `migration_from` is given, an attribution block ending in the
        MOE_MIGRATED_REVID marker is appended to the description.

        Raises:
            ValueError: if `metadata` is empty
        """
        if not metadata:
            raise ValueError("Cannot concatenate an empty list of revision metadata")

        if len(metadata) == 1 and migration_from is None:
            return metadata[0]

        description = DESCRIPTION_SEPARATOR.join(m.description for m in metadata)
        if migration_from is not None:
            description += (
                DESCRIPTION_SEPARATOR
                + MIGRATION_ATTRIBUTION + "\n"
                + MIGRATED_REVID_PREFIX + migration_from.rev_id
            )

        parents: List[Revision] = []
        for m in metadata:
            parents.extend(m.parents)

        return RevisionMetadata(
            id=", ".join(m.id for m in metadata),
            author=", ".join(m.author for m in metadata),
            date=max(m.date for m in metadata),
            description=description,
            parents=tuple(parents),
        )


def find_migrated_revid(description: str) -> Optional[str]:
    """Return the id in the last MOE_MIGRATED_REVID line of a description."""
    matches = _MIGRATED_REVID_RE.findall(description or "")
    return matches[-1] if matches else None


def timestamp(seconds: float) -> datetime:
    """UTC datetime for a POSIX timestamp."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
