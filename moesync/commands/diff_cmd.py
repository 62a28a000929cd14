"""
DiffCodebasesCommand — Evaluate two expressions and show their differences

Both sides are evaluated concurrently when settings.parallel is on. Files
matched by the ignore_file_res of either side's repository are left out.
Exit status is 1 when the codebases differ, like diff(1).
"""

from typing import List

from ..core.differ import diff_codebases
from ..core.expression import root_repository
from .base import BaseCommand


class DiffCodebasesCommand(BaseCommand):

    def _ignored(self, codebases) -> List[str]:
        patterns: List[str] = []
        for codebase in codebases:
            repository = self.context.repositories[root_repository(codebase.expression).repository_name]
            patterns.extend(p for p in repository.config.ignore_file_res if p not in patterns)
        return patterns

    def diff(self, expression1: str, expression2: str, summary_only: bool = False) -> int:
        codebase1, codebase2 = self.engine.create_codebases(
            [expression1, expression2], self.context, parallel=self.config.settings.parallel)

        diff = diff_codebases(codebase1, codebase2, self._ignored([codebase1, codebase2]))
        if diff.is_empty:
            print(f"No difference between {codebase1} and {codebase2}")
            return 0

        print(f"{codebase1} -> {codebase2}: {diff.summary}")
        if not summary_only:
            print(diff.unified(), end="")
        return 1


COMMAND_NAMES = ['diff_codebases']


def register_parser(subparsers):
    p = subparsers.add_parser('diff_codebases', help='Show differences between two codebases')
    p.add_argument('expression1', help='Codebase expression (before)')
    p.add_argument('expression2', help='Codebase expression (after)')
    p.add_argument('--summary', dest='summary_only', action='store_true',
                   help='Only print a one-line summary')
    return p


def handle(cli, args):
    return DiffCodebasesCommand(cli).diff(args.expression1, args.expression2, args.summary_only)
