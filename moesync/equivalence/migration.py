"""
Migration Planner — Turn unmigrated history into migrations

    planner = MigrationPlanner(context, db)
    for migration in planner.plan("internal_to_public"):
        codebase = engine.create_codebase(migration.codebase_expression(), context)
        ...write codebase to the target with migration.metadata...
        planner.complete(migration, new_target_rev_id)

A migration either squashes every pending revision into one commit or, with
separate_revisions, carries one revision each. Its metadata comes from
RevisionMetadata.concatenate with the newest carried revision as migration
source, so the target commit carries a MOE_MIGRATED_REVID marker.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..config import MigrationConfig
from ..core.expression import Expression, RepositoryExpression
from ..core.revision import Revision, RevisionMetadata
from ..errors import InvalidProject, unknown_name_message
from .db import EquivalenceDb, RepositoryEquivalence
from .matcher import EquivalenceMatch, EquivalenceMatcher

logger = logging.getLogger(__name__)


@dataclass
class Migration:
    config: MigrationConfig
    revisions: List[Revision]
    from_project_space: str
    to_project_space: str
    from_baseline: Optional[Revision] = None
    to_baseline: Optional[Revision] = None
    metadata: Optional[RevisionMetadata] = field(default=None, compare=False)

    @property
    def from_repository(self) -> str:
        return self.config.from_repository

    @property
    def to_repository(self) -> str:
        return self.config.to_repository

    @property
    def source_revision(self) -> Revision:
        """Newest revision carried; recorded as equivalent once submitted."""
        return self.revisions[-1]

    def codebase_expression(self) -> Expression:
        """
        Expression for the migrated tree, in the target project space.

        With a baseline, translation gets the baseline trees as reference
        codebases, which inverse translators use to restore what the forward
        direction dropped.
        """
        expression = RepositoryExpression(self.from_repository).at_revision(self.source_revision.rev_id)
        if self.from_project_space == self.to_project_space:
            return expression
        translated = expression.translate_to(self.to_project_space)
        if self.to_baseline is not None:
            translated = translated.with_reference_from_codebase(
                RepositoryExpression(self.to_repository).at_revision(self.to_baseline.rev_id))
        if self.from_baseline is not None:
            translated = translated.with_reference_target_codebase(
                RepositoryExpression(self.from_repository).at_revision(self.from_baseline.rev_id))
        return translated

    def baseline_expression(self) -> Optional[Expression]:
        """The target tree the migration applies on top of."""
        if self.to_baseline is None:
            return None
        return RepositoryExpression(self.to_repository).at_revision(self.to_baseline.rev_id)

    def __str__(self) -> str:
        ids = ", ".join(r.rev_id for r in self.revisions)
        return f"{self.config.name}: {self.from_repository}[{ids}] -> {self.to_repository}"


class MigrationPlanner:
    """Plans migrations from the equivalence database and records their completion."""

    def __init__(self, context, db: EquivalenceDb, matcher: Optional[EquivalenceMatcher] = None):
        self.context = context
        self.db = db
        self.matcher = matcher or EquivalenceMatcher(db)

    def _repository(self, name: str):
        repository = self.context.repositories.get(name)
        if repository is None:
            raise InvalidProject(unknown_name_message("repository", name, self.context.repositories))
        return repository

    def match(self, config: MigrationConfig) -> EquivalenceMatch:
        return self.matcher.match(self._repository(config.from_repository),
                                  self._repository(config.to_repository))

    def plan(self, name: str) -> List[Migration]:
        """
        Pending migrations for the configured migration `name`, oldest first.

        Separate-revision migrations are chained: each one after the first
        starts from the previous one's source revision. Its target baseline
        is the commit the previous migration has yet to create, so it stays
        None until that migration is completed and planning runs again.

        Source authors are carried only when the target repository sets
        preserve_authors; otherwise the author is left to the committer.
        """
        config = self.context.config.migration(name)
        from_repo = self._repository(config.from_repository)
        to_repo = self._repository(config.to_repository)
        match = self.match(config)

        if match.up_to_date:
            logger.info("Migration %r is up to date", name)
            return []

        groups = [[r] for r in match.revisions] if config.separate_revisions else [match.revisions]
        migrations = []
        from_baseline, to_baseline = match.from_baseline, match.to_baseline
        for revisions in groups:
            metadata = RevisionMetadata.concatenate(
                [from_repo.metadata(r) for r in revisions], migration_from=revisions[-1])
            if not to_repo.config.preserve_authors:
                metadata = replace(metadata, author="")
            migrations.append(Migration(
                config=config,
                revisions=revisions,
                from_project_space=from_repo.project_space,
                to_project_space=to_repo.project_space,
                from_baseline=from_baseline,
                to_baseline=to_baseline,
                metadata=metadata,
            ))
            from_baseline, to_baseline = revisions[-1], None
        return migrations

    def complete(self, migration: Migration, to_rev_id: str) -> RepositoryEquivalence:
        """Record that `to_rev_id` in the target now holds the migrated source revision."""
        to_revision = Revision(to_rev_id, migration.to_repository)
        self.db.note_migration(migration.source_revision, to_revision)
        self.db.record_and_save(migration.source_revision, to_revision)
        return RepositoryEquivalence(migration.source_revision, to_revision)
