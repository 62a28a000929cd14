"""
moesync — Keep equivalent codebases in sync across repositories

A project names repositories, the project space each one lives in, and
translators that carry a codebase from one space to another. Codebases are
described by expressions:

    internal(revision=42)>public|scrub

An equivalence database records which revisions hold the same code in two
repositories; migrations carry everything newer across.

Usage:
    moesync create_codebase 'internal>public'
    moesync determine_migrations internal_to_public
"""

__version__ = "0.1.0"

from .core.codebase import Codebase
from .core.engine import ExpressionEngine
from .core.parser import parse
from .core.revision import Revision, RevisionMetadata
from .equivalence.db import EquivalenceDb, RepositoryEquivalence
from .errors import CodebaseCreationError, InvalidProject, MoeError, TranslatorNotFound
from .project import ProjectContext

__all__ = [
    "__version__",
    "Codebase",
    "ExpressionEngine",
    "parse",
    "Revision",
    "RevisionMetadata",
    "EquivalenceDb",
    "RepositoryEquivalence",
    "CodebaseCreationError",
    "InvalidProject",
    "MoeError",
    "TranslatorNotFound",
    "ProjectContext",
]
