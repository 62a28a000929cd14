"""
Parser — Expression strings to Expression trees

Grammar (no whitespace anywhere outside quoted values):

    expr       := term ( '>' term | '|' term )*
    term       := identifier ( '(' option ( ',' option )* ')' )?
    option     := identifier '=' value
    value      := bare | '"' chars '"'

Operators associate to the left: 'a>b|c' edits the translation of a.
Quotes are only accepted where a value could not be written bare, and keys
may not repeat, so every accepted string is the canonical rendering of the
expression it parses to: render(parse(s)) == s.
"""

from typing import List, Tuple

from ..errors import ExpressionParseError
from .expression import (
    BARE_VALUE_RE, EDIT_OPERATOR, IDENTIFIER_RE, TRANSLATE_OPERATOR,
    EditExpression, Expression, Options, RepositoryExpression, TranslateExpression,
)


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str) -> ExpressionParseError:
        return ExpressionParseError(message, self.text, self.pos)

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            found = repr(self.peek()) if self.peek() else "end of input"
            raise self.error(f"Expected {char!r} but found {found}")
        self.pos += 1

    def identifier(self, what: str) -> str:
        match = IDENTIFIER_RE.match(self.text, self.pos)
        if not match:
            raise self.error(f"Expected {what}")
        self.pos = match.end()
        return match.group(0)

    def value(self) -> str:
        if self.peek() != '"':
            match = BARE_VALUE_RE.match(self.text, self.pos)
            if not match:
                raise self.error("Expected option value")
            self.pos = match.end()
            return match.group(0)

        start = self.pos
        self.pos += 1
        chars: List[str] = []
        while True:
            if self.at_end():
                self.pos = start
                raise self.error("Unterminated quoted value")
            char = self.text[self.pos]
            if char == '"':
                self.pos += 1
                break
            if char == "\\":
                escaped = self.text[self.pos + 1:self.pos + 2]
                if escaped not in ('"', "\\"):
                    raise self.error("Invalid escape in quoted value")
                chars.append(escaped)
                self.pos += 2
                continue
            chars.append(char)
            self.pos += 1

        value = "".join(chars)
        if BARE_VALUE_RE.fullmatch(value):
            self.pos = start
            raise self.error(f"Value {value!r} must not be quoted")
        return value

    def term(self, what: str) -> Tuple[str, Options]:
        identifier = self.identifier(what)
        options: List[Tuple[str, str]] = []
        if self.peek() == "(":
            self.pos += 1
            seen = set()
            while True:
                key_pos = self.pos
                key = self.identifier("option name")
                if key in seen:
                    self.pos = key_pos
                    raise self.error(f"Duplicate option {key!r}")
                seen.add(key)
                self.expect("=")
                options.append((key, self.value()))
                if self.peek() == ",":
                    self.pos += 1
                    continue
                self.expect(")")
                break
        return identifier, tuple(options)


def parse(text: str) -> Expression:
    """
    Parse an expression string.

    Raises:
        ExpressionParseError: if `text` is not a canonical expression
    """
    if not isinstance(text, str) or not text:
        raise ExpressionParseError("Empty expression")

    scanner = _Scanner(text)
    name, options = scanner.term("repository name")
    expression: Expression = RepositoryExpression(name, options)

    while not scanner.at_end():
        operator = scanner.peek()
        if operator == TRANSLATE_OPERATOR:
            scanner.pos += 1
            space, options = scanner.term("project space")
            expression = TranslateExpression(expression, space, options)
        elif operator == EDIT_OPERATOR:
            scanner.pos += 1
            editor, options = scanner.term("editor name")
            expression = EditExpression(expression, editor, options)
        else:
            raise scanner.error(f"Unexpected character {operator!r}")

    return expression


def parse_repository_expression(text: str) -> RepositoryExpression:
    """Parse an expression that must be a bare repository term."""
    expression = parse(text)
    if not isinstance(expression, RepositoryExpression):
        raise ExpressionParseError(f"Expected a repository expression, got {text!r}")
    return expression
