"""
Core — Revisions, expressions, codebases and the engine that builds them
"""

from .revision import Revision, RevisionMetadata, find_migrated_revid
from .expression import (
    Expression, RepositoryExpression, TranslateExpression, EditExpression, render,
)
from .parser import parse
from .codebase import Codebase
from .filesystem import RunFileSystem
from .differ import CodebaseDiff, diff_codebases
from .engine import ExpressionEngine

__all__ = [
    'Revision', 'RevisionMetadata', 'find_migrated_revid',
    'Expression', 'RepositoryExpression', 'TranslateExpression', 'EditExpression', 'render',
    'parse', 'Codebase', 'RunFileSystem', 'CodebaseDiff', 'diff_codebases', 'ExpressionEngine',
]
