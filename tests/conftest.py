"""
Shared pytest fixtures for the moesync test suite.

Provides common fixtures using the MoeTestFactory pattern: in-memory
repositories, real editors and pipelines, temporary trees under tmp_path.

Usage in tests:
    def test_something(moe_factory):
        repo = moe_factory.add_repository("internal")
        repo.commit("r1", {"a.txt": "a"})
        context = moe_factory.create_context()

    def test_with_data(moe_env):
        # moe_env comes pre-populated with the sample project
        codebase = engine.create_codebase("internal>public", moe_env.create_context())
"""

import pytest

from moesync.config import ConfigManager
from moesync.core.engine import ExpressionEngine
from tests.factories import MoeTestFactory


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path_factory, monkeypatch):
    """Keep the developer's ~/.moesync and MOESYNC_* variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(ConfigManager, "USER_CONFIG_FILE", home / "config.yaml")
    monkeypatch.setenv("MOESYNC_MIRROR_DIR", str(home / "mirrors"))
    for var in ("MOESYNC_DB_PATH", "MOESYNC_LOG_LEVEL", "MOESYNC_PARALLEL",
                "MOESYNC_WORKERS", "MOESYNC_PROJECT_PATH"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def moe_factory(tmp_path):
    """
    Create an empty MoeTestFactory.

    Use this when you need fine-grained control over the project.
    """
    factory = MoeTestFactory(tmp_path)
    yield factory
    factory.filesystem.cleanup()


@pytest.fixture
def moe_env(moe_factory):
    """
    MoeTestFactory with the sample project.

    Pre-populated with:
    - internal repository (r1, r2, r3) in project space 'internal'
    - public repository (p1) in project space 'public'
    - internal>public filter translator and its inverse
    - internal_to_public migration
    """
    moe_factory.create_sample_project()
    return moe_factory


@pytest.fixture
def engine():
    return ExpressionEngine(max_workers=4)
