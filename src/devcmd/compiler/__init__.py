"""
devcmd compiler front-end.

This package turns a devcmd source file into a typed Program:

1. Lexing - Tokenize the source (hidden channel for whitespace/comments)
2. Parsing - Recursive descent over the default channel, with recovery
3. Semantic checks - Duplicates, decorator allow-list, lifecycle links

Example:
    result = parse_text("build: make all;\\n")
    if not result.has_errors:
        for command in result.program.commands():
            print(command.name, command.body)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from devcmd.compiler.ast_nodes import Program
from devcmd.compiler.checker import SemanticChecker
from devcmd.compiler.lexer import Lexer, lex
from devcmd.compiler.options import BUILTIN_DECORATORS, ParseOptions
from devcmd.compiler.parser import Parser
from devcmd.compiler.source import SourceFile, Span
from devcmd.compiler.tokens import Token, TokenKind
from devcmd.utils.diagnostics import Diagnostic, DiagnosticCode, DiagnosticSink
from devcmd.utils.errors import DevcmdError

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """
    Result of parsing one devcmd file.

    Attributes:
        program: The parsed program; always present, possibly partial
        diagnostics: Errors and warnings in emission order
        source: The source file that was parsed
    """

    program: Program
    diagnostics: list[Diagnostic] = field(default_factory=list)
    source: Optional[SourceFile] = None

    def __str__(self) -> str:
        lines = ["Parse Result:"]
        if self.source is not None:
            lines.append(f"  File: {self.source.name}")
        lines.append(f"  Items: {len(self.program.items)}")
        lines.append(f"  Errors: {len(self.errors)}")
        lines.append(f"  Warnings: {len(self.warnings)}")
        for diagnostic in self.diagnostics[:5]:
            lines.append(f"    - {diagnostic.to_simple_message()}")
        if len(self.diagnostics) > 5:
            lines.append(f"    ... and {len(self.diagnostics) - 5} more")
        return "\n".join(lines)

    @property
    def has_errors(self) -> bool:
        """Check if any error-severity diagnostic was reported."""
        return any(d.is_error for d in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_warning]


def parse(source: SourceFile, options: Optional[ParseOptions] = None) -> ParseResult:
    """
    Parse a devcmd source file.

    Never raises for any input: every problem is reported as a diagnostic
    and a (possibly partial) Program is always returned.

    Args:
        source: The source file
        options: Parse options; defaults accept every decorator

    Returns:
        ParseResult with the program and diagnostics
    """
    options = options if options is not None else ParseOptions()
    sink = DiagnosticSink()

    if options.max_input_bytes is not None and source.size > options.max_input_bytes:
        start = Span.point(0, 1, 1)
        sink.error(
            DiagnosticCode.INPUT_TOO_LARGE,
            f"input is {source.size} bytes, exceeding the limit of {options.max_input_bytes} bytes",
            start,
        ).emit()
        logger.debug("skipped %s: %d bytes over budget", source.name, source.size)
        return ParseResult(Program((), start), sink.diagnostics, source)

    tokens = Lexer(source, sink).tokenize()
    program = Parser(tokens, source, sink).parse()
    SemanticChecker(sink, options.known_decorators).check(program)

    if options.strict:
        sink.promote_warnings()

    logger.debug(
        "parsed %s: %d bytes, %d tokens, %d diagnostic(s)",
        source.name,
        source.size,
        len(tokens),
        len(sink),
    )
    return ParseResult(program, sink.diagnostics, source)


def parse_text(
    text: Union[str, bytes],
    name: str = "<input>",
    options: Optional[ParseOptions] = None,
) -> ParseResult:
    """Parse devcmd source given as a string or bytes."""
    return parse(SourceFile(name, text), options)


def parse_file(path: Union[Path, str], options: Optional[ParseOptions] = None) -> ParseResult:
    """
    Read and parse a devcmd file.

    Raises:
        DevcmdError: If the file cannot be read
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DevcmdError(f"cannot read file: {e.strerror or e}", str(path)) from e
    return parse(SourceFile(str(path), data), options)


__all__ = [
    "BUILTIN_DECORATORS",
    "Lexer",
    "ParseOptions",
    "ParseResult",
    "Parser",
    "Program",
    "SourceFile",
    "Span",
    "Token",
    "TokenKind",
    "lex",
    "parse",
    "parse_file",
    "parse_text",
]
