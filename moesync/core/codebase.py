"""
Codebase — A materialized file tree tagged with its project space

Two codebases are equal when they share a path and a project space. The
originating expression is provenance only, so a translation that hands back
its input unchanged compares equal to that input.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

from .expression import Expression
from .filesystem import list_files


@dataclass(frozen=True)
class Codebase:
    path: Path
    project_space: str
    expression: Optional[Expression] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))

    def copy_with_expression(self, expression: Expression) -> 'Codebase':
        return replace(self, expression=expression)

    def copy_with_project_space(self, project_space: str) -> 'Codebase':
        return replace(self, project_space=project_space)

    def files(self) -> List[str]:
        """Relative paths of all files in the codebase."""
        return list_files(self.path)

    def file(self, relative: str) -> Path:
        return self.path / relative

    def __str__(self) -> str:
        return str(self.expression) if self.expression is not None else str(self.path)
