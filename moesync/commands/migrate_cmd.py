"""
MigrationCommand — Plan migrations and record their completion

determine_migrations lists what would be migrated and the commit metadata
the target would receive. complete_migration records, after the target
commit exists, that it is equivalent to the first pending migration's
source revision.
"""

from ..core.differ import diff_codebases
from .base import BaseCommand


class MigrationCommand(BaseCommand):

    def determine(self, name: str, show_codebase: bool = False) -> int:
        migrations = self.planner.plan(name)
        if not migrations:
            print(f"Migration '{name}' is up to date")
            return 0

        for migration in migrations:
            print(migration)
            if migration.to_baseline is not None:
                print(f"  baseline: {migration.to_baseline}")
            elif migration.from_baseline is not None:
                print("  baseline: result of the previous migration")
            print(f"  expression: {migration.codebase_expression()}")
            if show_codebase:
                self._show_codebase(migration)
            print("  metadata:")
            print(f"    author: {migration.metadata.author or '(committer)'}")
            for line in migration.metadata.description.splitlines():
                print(f"    | {line}")
        return 0

    def _show_codebase(self, migration) -> None:
        codebase = self.engine.create_codebase(migration.codebase_expression(), self.context)
        self.filesystem.keep(codebase.path)
        print(f"  codebase: {codebase.path}")
        baseline_expression = migration.baseline_expression()
        if baseline_expression is not None:
            baseline = self.engine.create_codebase(baseline_expression, self.context)
            ignored = self.context.repositories[migration.to_repository].config.ignore_file_res
            print(f"  changes: {diff_codebases(baseline, codebase, ignored).summary}")

    def complete(self, name: str, to_rev_id: str) -> int:
        migrations = self.planner.plan(name)
        if not migrations:
            print(f"Migration '{name}' has nothing pending")
            return 1
        equivalence = self.planner.complete(migrations[0], to_rev_id)
        print(f"Recorded {equivalence}")
        return 0


COMMAND_NAMES = ['determine_migrations', 'complete_migration']


def register_parser(subparsers):
    p1 = subparsers.add_parser('determine_migrations', help='List pending migrations')
    p1.add_argument('name', help='Migration name from the project configuration')
    p1.add_argument('--codebase', dest='show_codebase', action='store_true',
                    help='Also create each migrated codebase')

    p2 = subparsers.add_parser('complete_migration', help='Record a submitted migration')
    p2.add_argument('name', help='Migration name from the project configuration')
    p2.add_argument('to_revision', help='Revision id created in the target repository')
    return p1, p2


def handle(cli, args):
    command = MigrationCommand(cli)
    if args.command == 'determine_migrations':
        return command.determine(args.name, args.show_codebase)
    return command.complete(args.name, args.to_revision)
