"""
Pytest configuration and shared fixtures for devcmd tests.
"""

from typing import Union

import pytest

from devcmd.compiler import ParseOptions, ParseResult, parse_text
from devcmd.compiler.ast_nodes import Program
from devcmd.compiler.lexer import Lexer
from devcmd.compiler.source import SourceFile
from devcmd.compiler.tokens import Token
from devcmd.utils.diagnostics import Diagnostic

Text = Union[str, bytes]


@pytest.fixture
def source_factory():
    """Factory fixture for creating source files."""

    def _create_source(text: Text, name: str = "test.cli") -> SourceFile:
        return SourceFile(name, text)

    return _create_source


@pytest.fixture
def lex(source_factory):
    """Fixture to tokenize source text, returning tokens and diagnostics."""

    def _lex(text: Text) -> tuple[list[Token], list[Diagnostic]]:
        lexer = Lexer(source_factory(text))
        tokens = lexer.tokenize()
        return tokens, lexer.diagnostics

    return _lex


@pytest.fixture
def tokenize(lex):
    """Fixture to tokenize source text into default-channel tokens."""

    def _tokenize(text: Text) -> list[Token]:
        tokens, _ = lex(text)
        return [token for token in tokens if not token.is_hidden]

    return _tokenize


@pytest.fixture
def parse():
    """Fixture to parse source text; keyword arguments become ParseOptions."""

    def _parse(text: Text, **options) -> ParseResult:
        return parse_text(text, "test.cli", ParseOptions(**options))

    return _parse


@pytest.fixture
def parse_ok(parse):
    """Fixture to parse source text that must produce no diagnostics."""

    def _parse_ok(text: Text, **options) -> Program:
        result = parse(text, **options)
        assert result.diagnostics == [], [d.to_simple_message() for d in result.diagnostics]
        return result.program

    return _parse_ok
