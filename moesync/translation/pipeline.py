"""
Translation Pipeline — Ordered editor steps between two project spaces

A pipeline is registered once per TranslationPath and applies its steps in
declared order, each step receiving the previous step's output and the
caller's options filtered to the keys that step accepts.

Lifetimes: steps run inside a file system task. Intermediate trees die with
the task; the final tree is persisted to the caller's scope only when it
differs from the input. A pipeline whose steps all hand back their input
returns a codebase equal to it, and nothing is persisted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.codebase import Codebase
from ..core.expression import REFERENCE_FROM_CODEBASE, REFERENCE_TARGET_CODEBASE
from ..core.parser import parse
from ..errors import CodebaseCreationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationPath:
    """Lookup key for a pipeline: from one project space to another."""
    from_project_space: str
    to_project_space: str

    def __str__(self) -> str:
        return f"{self.from_project_space}>{self.to_project_space}"


@dataclass(frozen=True)
class TranslationStep:
    name: str
    editor: Any  # Editor for forward pipelines, InverseEditor for inverse ones


class TranslationPipeline:
    """Forward translation: each step's editor edit()s the codebase."""

    def __init__(self, path: TranslationPath, steps: List[TranslationStep]):
        self.path = path
        self.steps = list(steps)

    def __repr__(self) -> str:
        names = ", ".join(step.name for step in self.steps)
        return f"{self.__class__.__name__}({self.path}: {names})"

    def translate(self, codebase: Codebase, options: Dict[str, str], context, engine=None) -> Codebase:
        """
        Run every step over `codebase`.

        `engine` is only needed by pipelines that evaluate reference
        codebases named in the options.
        """
        fs = context.filesystem
        with fs.task(f"translate {self.path}"):
            current = self._run_steps(codebase, options, context, engine)
            if current != codebase:
                fs.persist(current.path)
        return current

    def _run_steps(self, codebase, options, context, engine) -> Codebase:
        current = codebase
        for step in self.steps:
            step_options = step.editor.filter_options(options)
            logger.info("Step %r: editing %s", step.name, current.path)
            current = step.editor.edit(current, step_options, context)
        return current


class InverseTranslationPipeline(TranslationPipeline):
    """
    Inverse translation: steps undo a forward translator, last step first.

    The referenceFromCodebase / referenceTargetCodebase options hold rendered
    expressions; they are evaluated through the engine and handed to every
    step.
    """

    def _run_steps(self, codebase, options, context, engine) -> Codebase:
        reference_from = self._reference(options, REFERENCE_FROM_CODEBASE, context, engine)
        reference_to = self._reference(options, REFERENCE_TARGET_CODEBASE, context, engine)

        current = codebase
        for step in self.steps:
            step_options = step.editor.filter_options(options)
            logger.info("Step %r: inverse editing %s", step.name, current.path)
            current = step.editor.inverse_edit(current, reference_from, reference_to, step_options, context)
        return current

    @staticmethod
    def _reference(options, key, context, engine) -> Optional[Codebase]:
        text = options.get(key)
        if not text:
            return None
        if engine is None:
            raise CodebaseCreationError(f"Cannot evaluate {key} {text!r} without an expression engine")
        return engine.create_codebase(parse(text), context)
