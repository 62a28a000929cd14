"""
CreateCodebaseCommand — Evaluate an expression and keep the result
"""

from .base import BaseCommand


class CreateCodebaseCommand(BaseCommand):

    def create(self, expression: str, keep: bool = True) -> int:
        codebase = self.engine.create_codebase(expression, self.context)
        if keep:
            self.filesystem.keep(codebase.path)
        print(f"Codebase \"{codebase}\" created at {codebase.path}")
        return 0


COMMAND_NAMES = ['create_codebase']


def register_parser(subparsers):
    p = subparsers.add_parser('create_codebase', help='Create a codebase from an expression')
    p.add_argument('expression', help='Codebase expression, e.g. internal(revision=42)>public')
    p.add_argument('--no-keep', dest='keep', action='store_false',
                   help='Remove the codebase when the command ends')
    return p


def handle(cli, args):
    return CreateCodebaseCommand(cli).create(args.expression, keep=args.keep)
