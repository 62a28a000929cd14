"""
Tests for Translation Pipelines — step order, options, lifetimes

These tests validate:
- Steps run in order, each on the previous step's output
- Each step only sees the options it accepts
- A pipeline that changes nothing returns its input and persists nothing
- Intermediate trees are removed, the final tree is kept
- Inverse pipelines restore filtered files from a reference codebase
"""

import pytest

from moesync.core.codebase import Codebase
from moesync.core.expression import RepositoryExpression
from moesync.errors import CodebaseCreationError
from moesync.translation.editors import Editor
from moesync.translation.pipeline import TranslationPath, TranslationPipeline, TranslationStep
from tests.factories import read_tree


class RecordingEditor(Editor):
    """Identity editor that records the options it was given."""

    type_name = "recording"
    accepted_options = frozenset({"mine"})

    def __init__(self, name):
        super().__init__(name)
        self.seen = []

    def edit(self, codebase, options, context):
        self.seen.append(dict(options))
        return codebase


class TestForwardPipeline:
    """internal>public translation."""

    def test_options_filtered_per_step(self, moe_factory, engine):
        repo = moe_factory.add_repository("internal", "internal")
        repo.commit("r1", {"a.txt": "a"})
        first, second = RecordingEditor("first"), RecordingEditor("second")
        path = TranslationPath("internal", "public")
        moe_factory.translators[path] = TranslationPipeline(
            path, [TranslationStep("first", first), TranslationStep("second", second)])
        context = moe_factory.create_context()

        engine.create_codebase("internal>public(mine=1,other=2)", context)

        assert first.seen == [{"mine": "1"}]
        assert second.seen == [{"mine": "1"}]

    def test_no_op_returns_input_unpersisted(self, moe_factory, engine):
        repo = moe_factory.add_repository("internal", "internal")
        repo.commit("r1", {"a.txt": "a"})
        moe_factory.add_editor("same", "identity")
        moe_factory.add_translator("internal", "public", "same")
        context = moe_factory.create_context()

        source = engine.create_codebase("internal", context)
        translated = engine.create_codebase("internal>public", context)

        assert translated.path == source.path
        assert translated.project_space == "public"
        assert not context.filesystem.is_persisted(translated.path)

    def test_changed_result_persisted_intermediates_removed(self, moe_factory, engine):
        repo = moe_factory.add_repository("internal", "internal")
        repo.commit("r1", {"java/a.txt": "a", "java/secret.txt": "s"})
        moe_factory.add_editor("move", "renamer", mappings={"java/": "src/"})
        moe_factory.add_editor("scrub", "filter", ignore_file_res=["secret"])
        moe_factory.add_translator("internal", "public", "move", "scrub")
        context = moe_factory.create_context()

        translated = engine.create_codebase("internal>public", context)

        assert read_tree(translated.path) == {"src/a.txt": "a"}
        assert context.filesystem.is_persisted(translated.path)
        # Only the checkout and the final tree remain
        remaining = sorted(p.name.split("-")[1] for p in moe_factory.run_dir.iterdir())
        assert remaining == ["checkout", "filter"]

    def test_step_failure_cleans_up(self, moe_factory, engine):
        repo = moe_factory.add_repository("internal", "internal")
        repo.commit("r1", {"java/a.txt": "a", "other/b.txt": "b"})
        moe_factory.add_editor("scrub", "filter", ignore_file_res=["nothing-matches-this"])
        moe_factory.add_editor("move", "renamer", mappings={"java/": "src/"})
        moe_factory.add_translator("internal", "public", "scrub", "move")
        context = moe_factory.create_context()

        with pytest.raises(CodebaseCreationError, match="no mapping applies to other/b.txt"):
            engine.create_codebase("internal>public", context)
        remaining = [p.name for p in moe_factory.run_dir.iterdir()]
        assert len(remaining) == 1 and "checkout" in remaining[0]


class TestInversePipeline:
    """public>internal translation with reference codebases."""

    def test_restores_filtered_files(self, moe_env, engine):
        context = moe_env.create_context()
        expression = (RepositoryExpression("public").at_revision("p1")
                      .translate_to("internal")
                      .with_reference_from_codebase(RepositoryExpression("internal").at_revision("r1")))

        restored = engine.create_codebase(expression, context)

        assert restored.project_space == "internal"
        assert read_tree(restored.path) == {"src/app.py": "v1\n", "secret/key.txt": "k1\n"}

    def test_without_reference_is_unchanged(self, moe_env, engine):
        context = moe_env.create_context()
        public = engine.create_codebase("public", context)
        translated = engine.create_codebase("public>internal", context)
        assert translated.path == public.path

    def test_reference_needs_engine(self, moe_env):
        context = moe_env.create_context()
        pipeline = context.translators[TranslationPath("public", "internal")]
        codebase = Codebase(moe_env.write_tree("pub", {"a": "a"}), "public")
        with pytest.raises(CodebaseCreationError, match="without an expression engine"):
            pipeline.translate(codebase, {"referenceFromCodebase": "internal"}, context)

    def test_step_names(self, moe_env):
        context = moe_env.create_context()
        pipeline = context.translators[TranslationPath("public", "internal")]
        assert [step.name for step in pipeline.steps] == ["inverse_scrub"]
