"""
Expression Engine — Evaluates expressions into codebases

    engine = ExpressionEngine()
    codebase = engine.create_codebase(parse("internal>public"), context)

Dispatch is on the expression variant:
- RepositoryExpression: check out the repository at the requested revision
- TranslateExpression: run the registered pipeline for (space, target)
- EditExpression: run one named editor, no registered path needed

Memoization: results are cached by rendered expression for the lifetime of
the engine (one run). The cache holds a Future per key, so a second caller
asking for a key that is still being computed waits for the first instead
of computing it again. Repeated evaluation therefore returns the identical
Codebase object.

Failures surface as CodebaseCreationError tagged with the innermost failing
expression. Configuration errors pass through untouched.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Sequence, Union

from ..errors import CodebaseCreationError, MoeError, TranslatorNotFound, unknown_name_message
from .codebase import Codebase
from .expression import (
    EditExpression, Expression, RepositoryExpression, TranslateExpression, render,
)
from .parser import parse
from ..translation.pipeline import TranslationPath

logger = logging.getLogger(__name__)


class ExpressionEngine:
    """Evaluates expressions, at most once per rendered form."""

    def __init__(self, max_workers: int = 4):
        self.max_workers = max(1, max_workers)
        self._cache: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for f in self._cache.values() if f.done() and not f.exception())

    def create_codebase(self, expression: Union[Expression, str], context) -> Codebase:
        """
        Evaluate `expression` in `context`.

        Raises:
            CodebaseCreationError: if any part of the evaluation fails
            InvalidProject: on configuration problems met along the way
        """
        if isinstance(expression, str):
            expression = parse(expression)
        key = render(expression)

        with self._lock:
            future = self._cache.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._cache[key] = future

        if not owner:
            return future.result()

        try:
            codebase = self._evaluate(expression, context)
            # Cached results must outlive any task scope open on this thread
            context.filesystem.retain(codebase.path)
        except BaseException as e:
            tagged = _tagged(e, key)
            with self._lock:
                self._cache.pop(key, None)
            future.set_exception(tagged)
            if tagged is e:
                raise
            raise tagged from e

        future.set_result(codebase)
        return codebase

    def create_codebases(self, expressions: Sequence[Union[Expression, str]], context,
                         parallel: bool = True) -> List[Codebase]:
        """Evaluate several independent expressions, concurrently when allowed."""
        if not parallel or len(expressions) < 2 or self.max_workers == 1:
            return [self.create_codebase(e, context) for e in expressions]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(expressions)),
                                thread_name_prefix="moesync-eval-") as pool:
            futures = [pool.submit(self.create_codebase, e, context) for e in expressions]
            return [f.result() for f in futures]

    # -------------------------------------------------------------------------
    # Processors
    # -------------------------------------------------------------------------

    def _evaluate(self, expression: Expression, context) -> Codebase:
        if isinstance(expression, RepositoryExpression):
            return self._create_repository_codebase(expression, context)
        if isinstance(expression, TranslateExpression):
            return self._create_translated_codebase(expression, context)
        if isinstance(expression, EditExpression):
            return self._create_edited_codebase(expression, context)
        raise TypeError(f"Not an expression: {expression!r}")

    def _create_repository_codebase(self, expression: RepositoryExpression, context) -> Codebase:
        name = expression.repository_name
        repository = context.repositories.get(name)
        if repository is None:
            raise CodebaseCreationError(unknown_name_message("repository", name, context.repositories))

        revision_spec = expression.option("revision")
        destination = context.filesystem.temp_dir(f"checkout-{name}")
        logger.info("Checking out %s at %s", name, revision_spec or "head")
        repository.checkout(revision_spec, destination)
        return Codebase(destination, repository.project_space, expression)

    def _create_translated_codebase(self, expression: TranslateExpression, context) -> Codebase:
        to_translate = self.create_codebase(expression.inner, context)
        target = expression.project_space

        path = TranslationPath(to_translate.project_space, target)
        pipeline = context.translators.get(path)
        if pipeline is None:
            raise TranslatorNotFound(to_translate.project_space, target, context.translators.keys())

        logger.info('Translating %s from project space "%s" to "%s"',
                    to_translate.path, to_translate.project_space, target)
        translated = pipeline.translate(to_translate, expression.options_dict, context, engine=self)
        if translated == to_translate:
            logger.info("%s (unmodified)", translated.path)
        return translated.copy_with_expression(expression).copy_with_project_space(target)

    def _create_edited_codebase(self, expression: EditExpression, context) -> Codebase:
        to_edit = self.create_codebase(expression.inner, context)
        editor = context.editors.get(expression.editor_name)
        if editor is None:
            raise CodebaseCreationError(
                unknown_name_message("editor", expression.editor_name, context.editors))

        fs = context.filesystem
        logger.info("Editing %s with %r", to_edit.path, editor.name)
        with fs.task(f"edit {editor.name}"):
            edited = editor.edit(to_edit, editor.filter_options(expression.options_dict), context)
            if edited != to_edit:
                fs.persist(edited.path)
        return edited.copy_with_expression(expression).copy_with_project_space(to_edit.project_space)


def _tagged(error: BaseException, key: str) -> BaseException:
    """Tag creation errors with the expression that failed; wrap VCS errors."""
    if isinstance(error, CodebaseCreationError):
        if error.expression is None:
            error.expression = key
        return error
    if isinstance(error, MoeError) and not error.is_configuration_error:
        wrapped = CodebaseCreationError(str(error), expression=key)
        wrapped.__cause__ = error
        return wrapped
    return error
