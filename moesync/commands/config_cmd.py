"""
CheckConfigCommand — Load the project and list what it defines
"""

from .base import BaseCommand


class CheckConfigCommand(BaseCommand):

    def check(self) -> int:
        config = self.config
        lines = [
            f"Project: {config.name}",
            f"Database: {config.database_path}",
            "",
            "Repositories:",
        ]
        for name, repo in sorted(config.repositories.items()):
            lines.append(f"  {name} ({repo.type}, project space \"{repo.project_space}\")")
        lines.append("")
        lines.append("Translators:")
        for path, pipeline in sorted(self.context.translators.items(), key=lambda item: str(item[0])):
            steps = ", ".join(step.name for step in pipeline.steps)
            lines.append(f"  {path}: {steps}")
        lines.append("")
        lines.append("Migrations:")
        for migration in config.migrations:
            lines.append(f"  {migration.name}: {migration.from_repository} -> {migration.to_repository}")
        print("\n".join(lines))
        return 0


COMMAND_NAMES = ['check_config']


def register_parser(subparsers):
    return subparsers.add_parser('check_config', help='Validate and summarize the project configuration')


def handle(cli, args):
    return CheckConfigCommand(cli).check()
