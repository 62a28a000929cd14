"""
Configuration — Project description and run settings

Config hierarchy (highest to lowest priority):
  1. Environment variables (MOESYNC_*)
  2. Project config (moesync.yaml, or an explicit path)
  3. User settings (~/.moesync/config.yaml, 'settings' section only)
  4. Defaults

A project names its repositories, editors, translators between project
spaces, and migrations. Problems are reported as InvalidProject with the
list of valid alternatives where there is one.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import InvalidProject, unknown_name_message

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "moesync.yaml"
DEFAULT_DATABASE = ".moesync/db.json"
DEFAULT_PROJECT_SPACE = "public"

# Kept in step with moesync.repositories.REPOSITORY_TYPES
REPOSITORY_TYPES = ("directory", "git")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class RepositoryConfig:
    """One repository and the rules for reading it."""
    type: str
    url: str = ""
    project_space: str = DEFAULT_PROJECT_SPACE
    branch: Optional[str] = None
    paths: List[str] = field(default_factory=list)
    ignore_file_res: List[str] = field(default_factory=list)
    executable_file_res: List[str] = field(default_factory=list)
    preserve_authors: bool = False

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if self.type not in REPOSITORY_TYPES:
            return f"Invalid repository type '{self.type}'. Valid: {', '.join(REPOSITORY_TYPES)}"
        if not self.url:
            return "Repository needs a 'url'"
        for pattern in self.ignore_file_res + self.executable_file_res:
            try:
                re.compile(pattern)
            except re.error as e:
                return f"Invalid regex {pattern!r}: {e}"
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepositoryConfig':
        return cls(
            type=data.get("type", ""),
            url=str(data.get("url", "")),
            project_space=data.get("project_space", DEFAULT_PROJECT_SPACE),
            branch=data.get("branch"),
            paths=list(data.get("paths") or []),
            ignore_file_res=list(data.get("ignore_file_res") or []),
            executable_file_res=list(data.get("executable_file_res") or []),
            preserve_authors=bool(data.get("preserve_authors", False)),
        )


@dataclass
class EditorConfig:
    """An editor type plus its type-specific settings."""
    type: str
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EditorConfig':
        settings = {k: v for k, v in data.items() if k != "type"}
        return cls(type=data.get("type", ""), settings=settings)


@dataclass
class StepConfig:
    name: str
    editor: Union[str, EditorConfig]  # name of a configured editor, or inline


@dataclass
class TranslatorConfig:
    """
    Steps between two project spaces.

    An inverse translator declares no steps: it reverses the forward
    translator of the opposite direction.
    """
    from_project_space: str
    to_project_space: str
    steps: List[StepConfig] = field(default_factory=list)
    inverse: bool = False

    def validate(self) -> Optional[str]:
        if not self.from_project_space or not self.to_project_space:
            return "Translator needs 'from_project_space' and 'to_project_space'"
        if self.inverse and self.steps:
            return "An inverse translator takes its steps from the forward translator"
        if not self.inverse and not self.steps:
            return (f"Translator {self.from_project_space}>{self.to_project_space} has no steps")
        return None


@dataclass
class MigrationConfig:
    name: str
    from_repository: str
    to_repository: str
    separate_revisions: bool = False


@dataclass
class Settings:
    """Run preferences."""
    log_level: str = "WARNING"
    parallel: bool = True
    workers: int = 4

    def validate(self) -> Optional[str]:
        if self.log_level.upper() not in LOG_LEVELS:
            return f"Unknown log level '{self.log_level}'. Valid: {', '.join(LOG_LEVELS)}"
        if self.workers < 1:
            return "settings.workers must be >= 1"
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        try:
            workers = int(data.get("workers", 4))
        except (TypeError, ValueError):
            raise InvalidProject(f"settings.workers must be an integer, got {data.get('workers')!r}")
        return cls(
            log_level=str(data.get("log_level", "WARNING")).upper(),
            parallel=_as_bool(data.get("parallel", True)),
            workers=workers,
        )


@dataclass
class ProjectConfig:
    """Everything a run needs to know about a project."""
    name: str
    project_dir: Path = field(default_factory=Path.cwd)
    database: str = DEFAULT_DATABASE
    repositories: Dict[str, RepositoryConfig] = field(default_factory=dict)
    editors: Dict[str, EditorConfig] = field(default_factory=dict)
    translators: List[TranslatorConfig] = field(default_factory=list)
    migrations: List[MigrationConfig] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)

    @property
    def database_path(self) -> Path:
        path = Path(self.database).expanduser()
        return path if path.is_absolute() else self.project_dir / path

    def migration(self, name: str) -> MigrationConfig:
        for migration in self.migrations:
            if migration.name == name:
                return migration
        raise InvalidProject(unknown_name_message("migration", name, [m.name for m in self.migrations]))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_dir: Optional[Path] = None) -> 'ProjectConfig':
        """
        Build and validate a project config.

        Raises:
            InvalidProject: on any structural or semantic problem
        """
        if not isinstance(data, dict):
            raise InvalidProject("Project configuration must be a mapping")
        if not data.get("name"):
            raise InvalidProject("Project configuration needs a 'name'")

        repositories = {}
        for repo_name, repo_data in (data.get("repositories") or {}).items():
            repo = RepositoryConfig.from_dict(repo_data or {})
            error = repo.validate()
            if error:
                raise InvalidProject(f"Repository '{repo_name}': {error}")
            repositories[repo_name] = repo

        editors = {
            editor_name: EditorConfig.from_dict(editor_data or {})
            for editor_name, editor_data in (data.get("editors") or {}).items()
        }

        translators = []
        seen = set()
        for translator_data in data.get("translators") or []:
            translator = TranslatorConfig(
                from_project_space=translator_data.get("from_project_space", ""),
                to_project_space=translator_data.get("to_project_space", ""),
                steps=[_step_from_dict(s, editors) for s in translator_data.get("steps") or []],
                inverse=bool(translator_data.get("inverse", False)),
            )
            error = translator.validate()
            if error:
                raise InvalidProject(error)
            key = (translator.from_project_space, translator.to_project_space)
            if key in seen:
                raise InvalidProject(f"Duplicate translator {key[0]}>{key[1]}")
            seen.add(key)
            translators.append(translator)

        migrations = []
        for migration_data in data.get("migrations") or []:
            migration = MigrationConfig(
                name=migration_data.get("name", ""),
                from_repository=migration_data.get("from_repository", ""),
                to_repository=migration_data.get("to_repository", ""),
                separate_revisions=bool(migration_data.get("separate_revisions", False)),
            )
            for repo_name in (migration.from_repository, migration.to_repository):
                if repo_name not in repositories:
                    raise InvalidProject(
                        f"Migration '{migration.name}' names unknown repository '{repo_name}'. "
                        f"Valid: {', '.join(sorted(repositories))}")
            migrations.append(migration)

        settings = Settings.from_dict(data.get("settings") or {})
        error = settings.validate()
        if error:
            raise InvalidProject(error)

        return cls(
            name=data["name"],
            project_dir=Path(project_dir) if project_dir else Path.cwd(),
            database=data.get("database", DEFAULT_DATABASE),
            repositories=repositories,
            editors=editors,
            translators=translators,
            migrations=migrations,
            settings=settings,
        )


def _step_from_dict(data: Dict[str, Any], editors: Dict[str, EditorConfig]) -> StepConfig:
    name = data.get("name", "")
    editor = data.get("editor")
    if isinstance(editor, dict):
        return StepConfig(name=name or editor.get("type", ""), editor=EditorConfig.from_dict(editor))
    if isinstance(editor, str):
        if editor not in editors:
            raise InvalidProject(
                f"Step '{name}' names unknown editor '{editor}'. Valid: {', '.join(sorted(editors))}")
        return StepConfig(name=name or editor, editor=editor)
    raise InvalidProject(f"Step '{name}' needs an 'editor' (a name or an inline table)")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


class ConfigManager:
    """
    Loads the project configuration and layers settings over it.

    Hierarchy:
      1. Environment (MOESYNC_DB_PATH, MOESYNC_LOG_LEVEL, MOESYNC_PARALLEL, MOESYNC_WORKERS)
      2. Project config (moesync.yaml)
      3. User settings (~/.moesync/config.yaml)
      4. Defaults
    """

    USER_CONFIG_DIR = Path.home() / ".moesync"
    USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"

    def __init__(self, project_dir: Optional[Path] = None, config_path: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._config_path = Path(config_path) if config_path else None
        self._config: Optional[ProjectConfig] = None

    @property
    def project_config_path(self) -> Path:
        if self._config_path:
            return self._config_path
        return self.project_dir / DEFAULT_CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self.USER_CONFIG_FILE

    def load(self) -> ProjectConfig:
        """Load configuration from all sources."""
        if self._config is not None:
            return self._config

        path = self.project_config_path
        if not path.exists():
            raise InvalidProject(f"No project configuration at {path}")
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidProject(f"Malformed project configuration {path}: {e}")
        if not isinstance(data, dict):
            raise InvalidProject(f"Project configuration {path} must be a mapping")

        settings = self._merge(self._user_settings(), data.get("settings") or {})
        settings = self._merge(settings, self._env_settings())
        data = dict(data, settings=settings)
        if os.environ.get("MOESYNC_DB_PATH"):
            data["database"] = os.environ["MOESYNC_DB_PATH"]

        self._config = ProjectConfig.from_dict(data, project_dir=path.parent.resolve())
        return self._config

    def _user_settings(self) -> Dict[str, Any]:
        if not self.user_config_path.exists():
            return {}
        try:
            with open(self.user_config_path) as f:
                user_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable user settings %s: %s", self.user_config_path, e)
            return {}
        settings = user_data.get("settings") if isinstance(user_data, dict) else None
        return settings if isinstance(settings, dict) else {}

    @staticmethod
    def _env_settings() -> Dict[str, Any]:
        env = {}
        if os.environ.get("MOESYNC_LOG_LEVEL"):
            env["log_level"] = os.environ["MOESYNC_LOG_LEVEL"]
        if os.environ.get("MOESYNC_PARALLEL"):
            env["parallel"] = os.environ["MOESYNC_PARALLEL"]
        if os.environ.get("MOESYNC_WORKERS"):
            env["workers"] = os.environ["MOESYNC_WORKERS"]
        return env

    def _merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts, override wins."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value
        return result
