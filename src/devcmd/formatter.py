"""
devcmd Code Formatter.

Provides AST-based formatting for devcmd files: one definition per line,
blocks with one statement per line, continuation lines indented one level.
Command text is re-emitted exactly as parsed, so formatting never changes
what a command runs; comments are carried over from the token stream.

Usage:
    devcmd fmt commands.cli
    devcmd fmt --check commands.cli
    devcmd fmt --diff commands.cli
"""

from __future__ import annotations

import difflib
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from devcmd.compiler import ParseOptions, lex, parse
from devcmd.compiler.ast_nodes import (
    BlankLine,
    BlockBody,
    CommandBody,
    CommandDef,
    CommandText,
    DecoratedBody,
    Decorator,
    DecoratorContent,
    EscapedChar,
    InlineDecorator,
    Literal,
    NestedDecorator,
    Newline,
    ParenGroup,
    PlainCommand,
    Program,
    ShellVarRef,
    SimpleBody,
    TextRun,
    TopLevelItem,
    VariableDef,
    VarRef,
)
from devcmd.compiler.source import SourceFile
from devcmd.compiler.tokens import Token, TokenKind
from devcmd.utils.errors import FormatError

# =============================================================================
# Formatter Configuration
# =============================================================================


@dataclass
class FormatConfig:
    """Configuration for the code formatter."""

    indent_size: int = 4
    use_spaces: bool = True
    trailing_newline: bool = True
    keep_comments: bool = True


# =============================================================================
# Formatter
# =============================================================================


class Formatter:
    """
    AST-based code formatter for devcmd.

    Traverses the AST and produces consistently laid out source. Parsing
    the output yields the same AST up to spans.
    """

    def __init__(self, config: FormatConfig | None = None) -> None:
        """Initialize the formatter with optional configuration."""
        self.config = config or FormatConfig()
        self._indent_level = 0
        self._output_lines: list[str] = []
        self._comments: deque[Token] = deque()

    def format_program(self, program: Program, comments: Iterable[Token] = ()) -> str:
        """
        Format a complete program.

        Args:
            program: The program to format
            comments: COMMENT tokens from the same source, re-emitted
                before the first item that follows them
        """
        self._output_lines = []
        self._indent_level = 0
        self._comments = deque()
        if self.config.keep_comments:
            self._comments = deque(sorted(comments, key=lambda t: t.span.start_offset))

        for item in program.items:
            self._flush_comments(item.span.start_offset)
            self._format_item(item)
        self._flush_comments(None)

        result = "\n".join(self._output_lines)
        if self.config.trailing_newline and result and not result.endswith("\n"):
            result += "\n"
        return result

    def _indent(self) -> str:
        """Get the current indentation string."""
        if self.config.use_spaces:
            return " " * (self._indent_level * self.config.indent_size)
        return "\t" * self._indent_level

    def _emit_line(self, line: str = "") -> None:
        """Emit a line of output."""
        if line:
            self._output_lines.append(self._indent() + line)
        else:
            self._output_lines.append("")

    def _flush_comments(self, before: Optional[int]) -> None:
        """Emit pending comments that start before an offset (all if None)."""
        while self._comments and (before is None or self._comments[0].span.start_offset < before):
            self._emit_line(self._comments.popleft().lexeme.rstrip())

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def _format_item(self, item: TopLevelItem) -> None:
        if isinstance(item, BlankLine):
            self._emit_line()
        elif isinstance(item, VariableDef):
            self._emit_line(f"def {item.name} = {self._format_text(item.value)};")
        elif isinstance(item, CommandDef):
            head = f"{item.qualified_name}:"
            self._format_body(head, item.body)

    def _format_body(self, head: str, body: CommandBody) -> None:
        if isinstance(body, SimpleBody):
            self._format_lines(head, body.text, body.continuations, ";")
        elif isinstance(body, BlockBody):
            self._format_block(head, body, "")
        else:
            self._format_decorated(head, body, terminator=";", block_suffix="")

    def _format_lines(
        self,
        head: str,
        text: CommandText,
        continuations: tuple[CommandText, ...],
        terminator: str,
    ) -> None:
        """Emit a command line and its continuation lines."""
        first = _join(head, self._format_text(text))
        if not continuations:
            self._emit_line(first + terminator)
            return

        self._emit_line(first + "\\")
        self._indent_level += 1
        for index, line in enumerate(continuations):
            end = terminator if index == len(continuations) - 1 else "\\"
            self._emit_line(self._format_text(line) + end)
        self._indent_level -= 1

    def _format_block(self, head: str, block: BlockBody, suffix: str) -> None:
        has_comments = bool(self._comments) and (
            self._comments[0].span.start_offset < block.span.end_offset
        )
        if not block.statements and not has_comments:
            self._emit_line(_join(head, "{}") + suffix)
            return

        self._emit_line(_join(head, "{"))
        self._indent_level += 1
        for statement in block.statements:
            self._flush_comments(statement.span.start_offset)
            if isinstance(statement, PlainCommand):
                first = len(self._output_lines)
                self._format_lines("", statement.text, statement.continuations, ";")
                if self._output_lines[first].lstrip().startswith("#"):
                    self._attach_to_previous(first)
            else:
                self._format_decorated("", statement, terminator=";", block_suffix=";")
        self._flush_comments(block.span.end_offset)
        self._indent_level -= 1
        self._emit_line("}" + suffix)

    def _attach_to_previous(self, index: int) -> None:
        """
        Move an output line onto the end of the line before it.

        A statement starting with '#' only lexes as text when something
        precedes it on its line; at the start of a line it is a comment.
        """
        previous = self._output_lines[index - 1]
        if previous.lstrip().startswith("#"):
            raise FormatError("a statement starting with '#' cannot follow a comment line")
        self._output_lines[index - 1] = f"{previous} {self._output_lines.pop(index).lstrip()}"

    def _format_decorated(
        self,
        head: str,
        body: DecoratedBody,
        terminator: str,
        block_suffix: str,
    ) -> None:
        """Emit a decorator chain followed by its innermost body."""
        parts = [head] if head else []
        current: Optional[CommandBody] = body

        while isinstance(current, DecoratedBody):
            decorator = current.decorator
            if decorator.parenthesized:
                parts.append(self._format_decorator(decorator))
            else:
                parts.append(f"@{decorator.name}:")
            current = current.inner

        line = " ".join(parts)
        if current is None:
            self._emit_line(line + terminator)
        elif isinstance(current, BlockBody):
            self._format_block(line, current, block_suffix)
        else:
            self._format_lines(line, current.text, current.continuations, terminator)

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    def _format_text(self, text: CommandText) -> str:
        """Render command text back to source form."""
        parts = []
        for element in text.elements:
            if isinstance(element, Literal):
                parts.append(element.text)
            elif isinstance(element, EscapedChar):
                parts.append("\\" + element.char)
            elif isinstance(element, VarRef):
                parts.append(f"$({element.name})")
            elif isinstance(element, ShellVarRef):
                parts.append(f"${element.name}")
            elif isinstance(element, InlineDecorator):
                parts.append(self._format_decorator(element.decorator))
        return "".join(parts)

    def _format_decorator(self, decorator: Decorator) -> str:
        return f"@{decorator.name}({self._format_content(decorator.args)})"

    def _format_content(self, content: DecoratorContent) -> str:
        """Render decorator arguments, keeping a space where the source had a gap."""
        parts = []
        previous = None
        for element in content.elements:
            if (
                previous is not None
                and not isinstance(previous, Newline)
                and not isinstance(element, Newline)
                and previous.span.end_offset < element.span.start_offset
            ):
                parts.append(" ")

            if isinstance(element, TextRun):
                parts.append(element.text)
            elif isinstance(element, NestedDecorator):
                parts.append(self._format_decorator(element.decorator))
            elif isinstance(element, ParenGroup):
                parts.append(f"({self._format_content(element.content)})")
            else:
                parts.append("\n")
            previous = element
        return "".join(parts)


def _join(head: str, text: str) -> str:
    return f"{head} {text}" if head else text


# =============================================================================
# Convenience Functions
# =============================================================================


def format_source(
    source: str | bytes,
    config: FormatConfig | None = None,
    filename: str = "<input>",
    options: ParseOptions | None = None,
) -> str:
    """
    Format devcmd source code.

    Args:
        source: The devcmd source to format
        config: Optional formatting configuration
        filename: Name used in error messages
        options: Parse options the source must satisfy

    Returns:
        The formatted source code

    Raises:
        FormatError: If the source has errors
    """
    source_file = SourceFile(filename, source)
    result = parse(source_file, options)
    if result.has_errors:
        first = result.errors[0]
        raise FormatError(
            f"cannot format a file with errors ({first.span}: {first.message})", filename
        )

    tokens, _ = lex(source_file)
    comments = [token for token in tokens if token.kind is TokenKind.COMMENT]
    return Formatter(config).format_program(result.program, comments)


def format_file(
    filepath: str | Path,
    config: FormatConfig | None = None,
    in_place: bool = False,
    options: ParseOptions | None = None,
) -> str:
    """
    Format a devcmd file.

    Args:
        filepath: Path to the file
        config: Optional formatting configuration
        in_place: If True, write the formatted output back to the file
        options: Parse options the file must satisfy

    Returns:
        The formatted source code

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If the source has errors
    """
    path = Path(filepath)
    formatted = format_source(path.read_bytes(), config, str(path), options)

    if in_place:
        path.write_text(formatted, encoding="utf-8", errors="surrogateescape")

    return formatted


def check_format(
    source: str | bytes,
    config: FormatConfig | None = None,
    options: ParseOptions | None = None,
) -> bool:
    """
    Check if source code is already formatted.

    Raises:
        FormatError: If the source has errors
    """
    return _as_text(source) == format_source(source, config, options=options)


def get_diff(
    source: str | bytes,
    config: FormatConfig | None = None,
    filename: str = "<input>",
    options: ParseOptions | None = None,
) -> str:
    """
    Get a diff showing formatting changes.

    Returns:
        A unified diff string, or empty string if no changes needed
    """
    text = _as_text(source)
    formatted = format_source(source, config, filename, options)
    if text == formatted:
        return ""

    diff = difflib.unified_diff(
        text.splitlines(keepends=True),
        formatted.splitlines(keepends=True),
        fromfile=f"a/{filename}",
        tofile=f"b/{filename}",
    )
    return "".join(diff)


def _as_text(source: str | bytes) -> str:
    if isinstance(source, bytes):
        return source.decode("utf-8", "surrogateescape")
    return source
