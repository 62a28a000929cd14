"""
Tests for the Expression Engine — evaluation, memoization, failures

These tests validate:
- Repository, translate and edit expressions produce the right trees
- Repeated evaluation returns the identical Codebase
- Concurrent requests for one expression compute it once
- Missing translators and editors are reported with what exists
- Failures are tagged with the innermost failing expression
"""

import pytest

from moesync.core.engine import ExpressionEngine
from moesync.core.expression import RepositoryExpression
from moesync.errors import (
    CodebaseCreationError, ExpressionParseError, MoeError, TranslatorNotFound,
)
from tests.factories import read_tree


class TestEvaluation:
    """Each expression variant."""

    def test_repository_head(self, moe_env, engine):
        codebase = engine.create_codebase("internal", moe_env.create_context())
        assert codebase.project_space == "internal"
        assert read_tree(codebase.path)["src/app.py"] == "v3\n"
        assert str(codebase) == "internal"

    def test_repository_at_revision(self, moe_env, engine):
        codebase = engine.create_codebase("internal(revision=r1)", moe_env.create_context())
        assert read_tree(codebase.path) == {"src/app.py": "v1\n", "secret/key.txt": "k1\n"}

    def test_translate(self, moe_env, engine):
        codebase = engine.create_codebase("internal(revision=r3)>public", moe_env.create_context())
        assert codebase.project_space == "public"
        assert read_tree(codebase.path) == {"src/app.py": "v3\n", "src/util.py": "u\n"}
        assert str(codebase) == "internal(revision=r3)>public"

    def test_edit_keeps_project_space(self, moe_env, engine):
        moe_env.add_editor("no_util", "filter", ignore_file_res=["util"])
        codebase = engine.create_codebase("internal|no_util", moe_env.create_context())
        assert codebase.project_space == "internal"
        assert "src/util.py" not in codebase.files()

    def test_accepts_parsed_expression(self, moe_env, engine):
        expression = RepositoryExpression("public").at_revision("p1")
        codebase = engine.create_codebase(expression, moe_env.create_context())
        assert codebase.expression == expression

    def test_parse_error_propagates(self, moe_env, engine):
        with pytest.raises(ExpressionParseError):
            engine.create_codebase("internal>", moe_env.create_context())


class TestMemoization:
    """One evaluation per rendered expression per engine."""

    def test_identical_codebase_returned(self, moe_env, engine):
        context = moe_env.create_context()
        first = engine.create_codebase("internal>public", context)
        second = engine.create_codebase("internal>public", context)
        assert first is second
        assert moe_env.repositories["internal"].exports == 1

    def test_subexpressions_shared(self, moe_env, engine):
        context = moe_env.create_context()
        engine.create_codebase("internal(revision=r2)", context)
        engine.create_codebase("internal(revision=r2)>public", context)
        assert moe_env.repositories["internal"].exports == 1

    def test_concurrent_requests_compute_once(self, moe_env):
        repository = moe_env.repositories["internal"]
        repository.export_delay = 0.2
        engine = ExpressionEngine(max_workers=4)

        results = engine.create_codebases(["internal>public"] * 4, moe_env.create_context())

        assert repository.exports == 1
        assert all(result is results[0] for result in results)

    def test_separate_engines_do_not_share(self, moe_env):
        context = moe_env.create_context()
        ExpressionEngine().create_codebase("internal", context)
        ExpressionEngine().create_codebase("internal", context)
        assert moe_env.repositories["internal"].exports == 2

    def test_cached_codebase_survives_tasks(self, moe_env, engine):
        context = moe_env.create_context()
        with context.filesystem.task("command"):
            codebase = engine.create_codebase("internal", context)
        assert codebase.path.is_dir()
        assert len(engine) == 1

    def test_parallel_and_serial_agree(self, moe_env):
        context = moe_env.create_context()
        parallel = ExpressionEngine().create_codebases(["internal", "public"], context)
        serial = ExpressionEngine().create_codebases(["internal", "public"], context, parallel=False)
        assert [c.files() for c in parallel] == [c.files() for c in serial]


class TestFailures:
    """Error reporting."""

    def test_missing_translator_lists_available(self, moe_env, engine):
        with pytest.raises(TranslatorNotFound) as exc_info:
            engine.create_codebase("internal>private", moe_env.create_context())

        error = exc_info.value
        assert error.is_configuration_error
        message = str(error)
        assert 'Could not find translator from project space "internal" to "private"' in message
        assert "Translators only available for [internal>public, public>internal]" in message

    def test_unknown_repository(self, moe_env, engine):
        with pytest.raises(CodebaseCreationError, match="Unknown repository 'internl'"):
            engine.create_codebase("internl", moe_env.create_context())

    def test_unknown_repository_suggests(self, moe_env, engine):
        with pytest.raises(CodebaseCreationError, match="did you mean 'internal'"):
            engine.create_codebase("internl", moe_env.create_context())

    def test_unknown_editor(self, moe_env, engine):
        with pytest.raises(CodebaseCreationError, match="Unknown editor 'nope'"):
            engine.create_codebase("internal|nope", moe_env.create_context())

    def test_tagged_with_innermost_expression(self, moe_env, engine):
        with pytest.raises(CodebaseCreationError) as exc_info:
            engine.create_codebase("internal(revision=r9)>public", moe_env.create_context())
        assert exc_info.value.expression == "internal(revision=r9)"
        assert "while creating internal(revision=r9)" in str(exc_info.value)

    def test_repository_error_wrapped(self, moe_env, engine):
        with pytest.raises(CodebaseCreationError) as exc_info:
            engine.create_codebase("internal(revision=r9)", moe_env.create_context())
        assert isinstance(exc_info.value.__cause__, MoeError)

    def test_failure_not_cached(self, moe_env, engine):
        context = moe_env.create_context()
        with pytest.raises(CodebaseCreationError):
            engine.create_codebase("internal(revision=r4)", context)

        moe_env.repositories["internal"].commit("r4", {"new.txt": "n\n"})
        codebase = engine.create_codebase("internal(revision=r4)", context)
        assert codebase.files() == ["new.txt"]

    def test_concurrent_waiters_see_failure(self, moe_env):
        moe_env.repositories["internal"].export_delay = 0.1
        engine = ExpressionEngine(max_workers=3)
        with pytest.raises(TranslatorNotFound):
            engine.create_codebases(["internal>private"] * 3, moe_env.create_context())
