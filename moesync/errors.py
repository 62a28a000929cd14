"""
Errors — Failure kinds surfaced to the command boundary

Three kinds matter to callers:
- Configuration errors (InvalidProject, TranslatorNotFound): fatal, never retried
- Evaluation failures (CodebaseCreationError): tagged with the failing expression
- Database inconsistency (EquivalenceDbError): fatal at load time

Nothing in the core recovers from these. The CLI picks the exit status.
"""

from typing import Iterable, List, Optional

from rapidfuzz import process


class MoeError(Exception):
    """Root of all moesync errors."""

    is_configuration_error = False


class InvalidProject(MoeError):
    """Project configuration is unusable."""

    is_configuration_error = True


class ExpressionParseError(MoeError):
    """An expression string does not follow the grammar."""

    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)


class CodebaseCreationError(MoeError):
    """Evaluating an expression into a codebase failed."""

    def __init__(self, message: str, expression: Optional[str] = None):
        self.expression = expression
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.expression:
            return f"{message} (while creating {self.expression})"
        return message


class TranslatorNotFound(CodebaseCreationError):
    """No pipeline is registered for the requested project space pair."""

    is_configuration_error = True

    def __init__(self, from_space: str, to_space: str, available: Iterable = ()):
        self.from_space = from_space
        self.to_space = to_space
        self.available = sorted(available, key=str)
        listed = ", ".join(str(p) for p in self.available) or "none"
        super().__init__(
            f'Could not find translator from project space "{from_space}" to "{to_space}".\n'
            f"Translators only available for [{listed}]"
        )


class EquivalenceDbError(MoeError):
    """The persisted equivalence database is malformed."""


class RepositoryError(MoeError):
    """A version control operation failed."""


def suggest(name: str, choices: Iterable[str], cutoff: float = 60.0) -> Optional[str]:
    """Return the closest known name to `name`, or None if nothing is close."""
    choices = list(choices)
    if not choices:
        return None
    match = process.extractOne(name, choices, score_cutoff=cutoff)
    return match[0] if match else None


def unknown_name_message(kind: str, name: str, choices: Iterable[str]) -> str:
    """Format an 'unknown X' message listing valid names and a suggestion."""
    known: List[str] = sorted(choices)
    message = f"Unknown {kind} '{name}'. Valid: {', '.join(known) or 'none'}"
    guess = suggest(name, known)
    if guess:
        message += f" (did you mean '{guess}'?)"
    return message
