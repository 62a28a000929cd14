"""
BaseCommand — Shared foundation for all directives

Commands receive the CLI instance and reach its resources through
properties; they never build their own.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..cli import MoeCLI


class BaseCommand:
    """Base class for directives with access to shared run resources."""

    def __init__(self, cli: 'MoeCLI'):
        self._cli = cli

    @property
    def config(self):
        """Loaded project configuration."""
        return self._cli.config

    @property
    def context(self):
        """Project context: repositories, editors, translators."""
        return self._cli.context

    @property
    def engine(self):
        """Expression engine for this run."""
        return self._cli.engine

    @property
    def filesystem(self):
        """Run file system owning temporary codebases."""
        return self._cli.filesystem

    @property
    def db(self):
        """Equivalence database (loaded on first use)."""
        return self._cli.db

    @property
    def planner(self):
        """Migration planner over the equivalence database."""
        return self._cli.planner
