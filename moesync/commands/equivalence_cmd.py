"""
EquivalenceCommand — Query and record cross-repository equivalences
"""

from ..core.revision import Revision
from ..errors import InvalidProject, unknown_name_message
from .base import BaseCommand


class EquivalenceCommand(BaseCommand):

    def _repository(self, name: str):
        repository = self.context.repositories.get(name)
        if repository is None:
            raise InvalidProject(unknown_name_message("repository", name, self.context.repositories))
        return repository

    def last_equivalence(self, from_name: str, to_name: str) -> int:
        from_repo = self._repository(from_name)
        to_repo = self._repository(to_name)
        found = self.db.find_latest_equivalence(
            from_repo.name, to_repo.name, from_repo.compare_order, to_repo.compare_order)
        if found is None:
            print(f"No equivalence between {from_name} and {to_name}")
            return 1
        print(f"Last equivalence: {found[0]} == {found[1]}")
        return 0

    def note_equivalence(self, revision1: str, revision2: str) -> int:
        try:
            rev1, rev2 = Revision.parse(revision1), Revision.parse(revision2)
        except ValueError as e:
            raise InvalidProject(str(e)) from e
        for rev in (rev1, rev2):
            self._repository(rev.repository_name)

        if self.db.record_and_save(rev1, rev2):
            print(f"Noted equivalence {rev1} == {rev2}")
        else:
            print(f"Equivalence {rev1} == {rev2} already known")
        return 0


COMMAND_NAMES = ['last_equivalence', 'note_equivalence']


def register_parser(subparsers):
    p1 = subparsers.add_parser('last_equivalence', help='Show the latest equivalence between two repositories')
    p1.add_argument('from_repository')
    p1.add_argument('to_repository')

    p2 = subparsers.add_parser('note_equivalence', help='Record that two revisions are equivalent')
    p2.add_argument('revision1', help='repository:revision')
    p2.add_argument('revision2', help='repository:revision')
    return p1, p2


def handle(cli, args):
    command = EquivalenceCommand(cli)
    if args.command == 'last_equivalence':
        return command.last_equivalence(args.from_repository, args.to_repository)
    return command.note_equivalence(args.revision1, args.revision2)
