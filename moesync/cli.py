"""
CLI — Command interface

    moesync create_codebase 'internal(revision=42)>public'
    moesync diff_codebases internal>public public
    moesync determine_migrations internal_to_public

One MoeCLI per process. It loads the project, builds the context, owns the
run file system and the expression engine, and opens the equivalence
database only when a command asks for it. Temporary trees are removed when
the run ends; trees a command keeps survive.

Exit status:
    0 success
    1 the command failed or found a difference
    2 the project configuration is unusable
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import ConfigManager
from .core.engine import ExpressionEngine
from .core.filesystem import RunFileSystem
from .equivalence.db import EquivalenceDb
from .equivalence.migration import MigrationPlanner
from .errors import MoeError
from .project import ProjectContext

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """Send moesync logs to stderr at `level`."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


class MoeCLI:
    """Resources shared by all directives of one run."""

    def __init__(self, project_dir: Path, config_path: Optional[Path] = None,
                 filesystem: Optional[RunFileSystem] = None, repository_factory=None):
        self.project_dir = Path(project_dir)
        self.config_manager = ConfigManager(self.project_dir, config_path)
        self.config = self.config_manager.load()

        self.filesystem = filesystem or RunFileSystem()
        kwargs = {"repository_factory": repository_factory} if repository_factory else {}
        self.context = ProjectContext.from_config(self.config, filesystem=self.filesystem, **kwargs)
        self.engine = ExpressionEngine(max_workers=self.config.settings.workers)

        self._db: Optional[EquivalenceDb] = None
        self._planner: Optional[MigrationPlanner] = None

    @property
    def db(self) -> EquivalenceDb:
        if self._db is None:
            self._db = EquivalenceDb.load(self.config.database_path)
        return self._db

    @property
    def planner(self) -> MigrationPlanner:
        if self._planner is None:
            self._planner = MigrationPlanner(self.context, self.db)
        return self._planner

    def close(self) -> None:
        self.filesystem.cleanup()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="moesync",
        description="moesync -- Keep equivalent codebases in sync across repositories",
    )
    parser.add_argument(
        '--project', '-p',
        default=os.environ.get("MOESYNC_PROJECT_PATH", "."),
        help='Project directory (default: MOESYNC_PROJECT_PATH or current)'
    )
    parser.add_argument(
        '--config', '-c',
        default=None,
        help='Project configuration file (default: <project>/moesync.yaml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log at DEBUG level'
    )
    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'moesync {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    from .commands import register_all
    register_all(subparsers)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Uses the command registry pattern: parser definitions and handlers live
    in the command modules.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging("DEBUG" if args.verbose else os.environ.get("MOESYNC_LOG_LEVEL", "WARNING"))

    from .commands import dispatch
    cli = None
    try:
        cli = MoeCLI(Path(args.project), Path(args.config) if args.config else None)
        if not args.verbose:
            logging.getLogger().setLevel(cli.config.settings.log_level)
        return dispatch(args.command, cli, args)
    except MoeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2 if e.is_configuration_error else 1
    finally:
        if cli is not None:
            cli.close()


if __name__ == '__main__':
    sys.exit(main())
