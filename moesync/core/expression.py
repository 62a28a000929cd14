"""
Expressions — Immutable descriptions of how to build a codebase

An expression starts from a repository and applies zero or more operations:

    internal                         the internal repository at head
    internal(revision=42)>public     ...translated to the public project space
    public|renamer(verbose=true)     ...passed through the 'renamer' editor

Three variants form a closed set: RepositoryExpression (leaf),
TranslateExpression and EditExpression. Consumers dispatch on them with
isinstance checks (see render() here and the engine), so a new variant is a
localized change.

Nodes are frozen. Adding an option returns a new node; sub-expressions are
shared freely between derived expressions.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

Options = Tuple[Tuple[str, str], ...]

TRANSLATE_OPERATOR = ">"
EDIT_OPERATOR = "|"

# Option keys the inverse translation pipeline reads
REFERENCE_FROM_CODEBASE = "referenceFromCodebase"
REFERENCE_TARGET_CODEBASE = "referenceTargetCodebase"

IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_.\-]+")
BARE_VALUE_RE = re.compile(r"[A-Za-z0-9_.\-/:@~^+]+")


def _freeze_options(options) -> Options:
    if options is None:
        return ()
    if isinstance(options, dict):
        return tuple((str(k), str(v)) for k, v in options.items())
    return tuple((str(k), str(v)) for k, v in options)


def _with_option(options: Options, key: str, value: str) -> Options:
    """Copy of `options` with key set; an existing key keeps its position."""
    if any(k == key for k, _ in options):
        return tuple((k, value if k == key else v) for k, v in options)
    return options + ((key, value),)


class _Operations:
    """Chaining helpers shared by every variant."""

    def translate_to(self, project_space: str, options=None) -> 'TranslateExpression':
        return TranslateExpression(self, project_space, _freeze_options(options))

    def edit_with(self, editor_name: str, options=None) -> 'EditExpression':
        return EditExpression(self, editor_name, _freeze_options(options))

    def option(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for k, v in self.options:
            if k == key:
                return v
        return default

    @property
    def options_dict(self) -> Dict[str, str]:
        return dict(self.options)

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True, repr=False)
class RepositoryExpression(_Operations):
    """Leaf: the contents of a repository, optionally at a given revision."""
    repository_name: str
    options: Options = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "options", _freeze_options(self.options))

    def with_option(self, key: str, value: str) -> 'RepositoryExpression':
        return RepositoryExpression(self.repository_name, _with_option(self.options, key, value))

    def at_revision(self, rev_id: str) -> 'RepositoryExpression':
        return self.with_option("revision", rev_id)

    def __repr__(self) -> str:
        return f"RepositoryExpression({render(self)!r})"


@dataclass(frozen=True, repr=False)
class TranslateExpression(_Operations):
    """The inner expression's codebase translated into another project space."""
    inner: 'Expression'
    project_space: str
    options: Options = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "options", _freeze_options(self.options))

    def with_option(self, key: str, value: str) -> 'TranslateExpression':
        return TranslateExpression(self.inner, self.project_space, _with_option(self.options, key, value))

    def with_reference_target_codebase(self, reference: 'Expression') -> 'TranslateExpression':
        """
        Translate with a reference codebase in the target project space.

        Inverse translation inspects it, for example to undo renamings.
        """
        return self.with_option(REFERENCE_TARGET_CODEBASE, render(reference))

    def with_reference_from_codebase(self, reference: 'Expression') -> 'TranslateExpression':
        """
        Translate with a reference codebase in the source project space.

        Inverse translation merges the input and the reference target
        codebase onto it.
        """
        return self.with_option(REFERENCE_FROM_CODEBASE, render(reference))

    def __repr__(self) -> str:
        return f"TranslateExpression({render(self)!r})"


@dataclass(frozen=True, repr=False)
class EditExpression(_Operations):
    """The inner expression's codebase passed through one named editor."""
    inner: 'Expression'
    editor_name: str
    options: Options = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "options", _freeze_options(self.options))

    def with_option(self, key: str, value: str) -> 'EditExpression':
        return EditExpression(self.inner, self.editor_name, _with_option(self.options, key, value))

    def __repr__(self) -> str:
        return f"EditExpression({render(self)!r})"


Expression = Union[RepositoryExpression, TranslateExpression, EditExpression]


def render_value(value: str) -> str:
    """Render an option value, quoting only when the bare form would not parse."""
    if BARE_VALUE_RE.fullmatch(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_term(identifier: str, options: Options) -> str:
    if not options:
        return identifier
    rendered = ",".join(f"{k}={render_value(v)}" for k, v in options)
    return f"{identifier}({rendered})"


def render(expression: Expression) -> str:
    """
    Canonical text of an expression.

    parse(render(e)) == e, and this string is the engine's cache key.
    """
    if isinstance(expression, RepositoryExpression):
        return render_term(expression.repository_name, expression.options)
    if isinstance(expression, TranslateExpression):
        return (render(expression.inner) + TRANSLATE_OPERATOR
                + render_term(expression.project_space, expression.options))
    if isinstance(expression, EditExpression):
        return (render(expression.inner) + EDIT_OPERATOR
                + render_term(expression.editor_name, expression.options))
    raise TypeError(f"Not an expression: {expression!r}")


def root_repository(expression: Expression) -> RepositoryExpression:
    """The leaf an expression starts from."""
    while not isinstance(expression, RepositoryExpression):
        if isinstance(expression, (TranslateExpression, EditExpression)):
            expression = expression.inner
        else:
            raise TypeError(f"Not an expression: {expression!r}")
    return expression
