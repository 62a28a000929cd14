"""
Equivalence — Cross-repository revision equivalence and migration planning
"""

from .db import EquivalenceDb, RepositoryEquivalence, SubmittedMigration, pair_key
from .matcher import EquivalenceMatch, EquivalenceMatcher
from .migration import Migration, MigrationPlanner

__all__ = [
    'EquivalenceDb', 'RepositoryEquivalence', 'SubmittedMigration', 'pair_key',
    'EquivalenceMatch', 'EquivalenceMatcher',
    'Migration', 'MigrationPlanner',
]
