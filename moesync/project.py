"""
Project Context — Repositories, editors and translators for one run

Built from a ProjectConfig. The expression engine reads everything it needs
from here: repositories by name, editors by name, pipelines by
TranslationPath, and the run file system that owns temporary trees.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .config import EditorConfig, ProjectConfig
from .core.filesystem import RunFileSystem
from .errors import InvalidProject
from .repositories import Repository, create_repository
from .translation.editors import Editor, create_editor
from .translation.pipeline import (
    InverseTranslationPipeline, TranslationPath, TranslationPipeline, TranslationStep,
)

logger = logging.getLogger(__name__)


@dataclass
class ProjectContext:
    config: Optional[ProjectConfig] = None
    repositories: Dict[str, Repository] = field(default_factory=dict)
    editors: Dict[str, Editor] = field(default_factory=dict)
    translators: Dict[TranslationPath, TranslationPipeline] = field(default_factory=dict)
    filesystem: RunFileSystem = field(default_factory=RunFileSystem)

    @classmethod
    def from_config(
        cls,
        config: ProjectConfig,
        filesystem: Optional[RunFileSystem] = None,
        repository_factory: Callable = create_repository,
    ) -> 'ProjectContext':
        """
        Instantiate every configured component.

        Raises:
            InvalidProject: if a component cannot be built
        """
        repositories = {name: repository_factory(name, repo) for name, repo in config.repositories.items()}
        editors = {name: create_editor(name, ed.type, ed.settings) for name, ed in config.editors.items()}

        translators: Dict[TranslationPath, TranslationPipeline] = {}
        forward = [t for t in config.translators if not t.inverse]
        for translator in forward:
            path = TranslationPath(translator.from_project_space, translator.to_project_space)
            steps = [TranslationStep(step.name, _step_editor(step.name, step.editor, editors))
                     for step in translator.steps]
            translators[path] = TranslationPipeline(path, steps)

        for translator in config.translators:
            if translator.inverse:
                path = TranslationPath(translator.from_project_space, translator.to_project_space)
                translators[path] = _inverse_pipeline(path, translators)

        logger.debug("Project %r: %d repositories, %d editors, %d translators",
                     config.name, len(repositories), len(editors), len(translators))
        return cls(
            config=config,
            repositories=repositories,
            editors=editors,
            translators=translators,
            filesystem=filesystem or RunFileSystem(),
        )


def _step_editor(step_name: str, editor, editors: Dict[str, Editor]) -> Editor:
    if isinstance(editor, EditorConfig):
        return create_editor(step_name, editor.type, editor.settings)
    return editors[editor]


def _inverse_pipeline(path: TranslationPath, translators) -> InverseTranslationPipeline:
    forward_path = TranslationPath(path.to_project_space, path.from_project_space)
    forward = translators.get(forward_path)
    if forward is None or isinstance(forward, InverseTranslationPipeline):
        raise InvalidProject(
            f"Inverse translator {path} needs a forward translator {forward_path}")
    steps = [TranslationStep(f"inverse_{step.name}", step.editor.inverse())
             for step in reversed(forward.steps)]
    return InverseTranslationPipeline(path, steps)
