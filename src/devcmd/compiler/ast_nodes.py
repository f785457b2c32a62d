"""
Abstract Syntax Tree (AST) node definitions for devcmd.

This module defines the closed set of node types a devcmd program is made
of. Each node is an immutable dataclass carrying the span it was parsed
from; variants are grouped by Union aliases (CommandBody, BlockStatement,
CommandTextElement, DecoratorElement, TopLevelItem) and consumers dispatch
on them with isinstance.

Nodes copy the text they retain, so a Program stays usable after its
SourceFile is dropped.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Union

from devcmd.compiler.source import Span


class ASTNode:
    """Base class for all AST nodes."""

    __slots__ = ()

    span: Span


class Modifier(Enum):
    """Lifecycle modifier of a command definition."""

    NONE = "none"
    WATCH = "watch"
    STOP = "stop"

    @property
    def keyword(self) -> str:
        """The source keyword, empty for plain commands."""
        return "" if self is Modifier.NONE else self.value


class DecoratorForm(Enum):
    """
    Syntactic form of a decorator.

    FUNC:   @name(args)            no body, or wrapping another decorator
    BLOCK:  @name: { ... }  or  @name(args) { ... }
    SIMPLE: @name: command text
    """

    FUNC = "func"
    BLOCK = "block"
    SIMPLE = "simple"


# -----------------------------------------------------------------------------
# Decorators
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextRun(ASTNode):
    """A run of argument text, as written."""

    text: str
    span: Span


@dataclass(frozen=True, slots=True)
class NestedDecorator(ASTNode):
    """A decorator call inside another decorator's arguments."""

    decorator: "Decorator"
    span: Span


@dataclass(frozen=True, slots=True)
class ParenGroup(ASTNode):
    """A parenthesised group inside decorator arguments."""

    content: "DecoratorContent"
    span: Span


@dataclass(frozen=True, slots=True)
class Newline(ASTNode):
    """A line break inside decorator arguments."""

    span: Span


DecoratorElement = Union[TextRun, NestedDecorator, ParenGroup, Newline]


@dataclass(frozen=True, slots=True)
class DecoratorContent(ASTNode):
    """
    The argument content of a decorator.

    Examples:
        @retry(3)                  -> [TextRun("3")]
        @when(ENV, @env(CI))       -> [TextRun("ENV,"), NestedDecorator(env)]
    """

    elements: tuple[DecoratorElement, ...]
    span: Span

    @property
    def is_empty(self) -> bool:
        return not self.elements

    @property
    def text(self) -> str:
        """Canonical source form of the content."""
        parts = []
        for element in self.elements:
            if isinstance(element, TextRun):
                parts.append(element.text)
            elif isinstance(element, NestedDecorator):
                parts.append(element.decorator.signature)
            elif isinstance(element, ParenGroup):
                parts.append(f"({element.content.text})")
            else:
                parts.append("\n")
        return "".join(parts)


@dataclass(frozen=True, slots=True)
class Decorator(ASTNode):
    """
    A decorator application.

    Attributes:
        name: Decorator name without the '@'
        form: FUNC, BLOCK or SIMPLE
        args: Argument content; empty when written without parentheses
        span: Span of the decorator head ('@name(...)' or '@name')
        name_span: Span of the name
        parenthesized: Whether the source wrote an argument list
    """

    name: str
    form: DecoratorForm
    args: DecoratorContent
    span: Span
    name_span: Span
    parenthesized: bool = True

    @property
    def signature(self) -> str:
        """Canonical source form of the decorator head."""
        if self.parenthesized:
            return f"@{self.name}({self.args.text})"
        return f"@{self.name}"


# -----------------------------------------------------------------------------
# Command Text
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Literal(ASTNode):
    """Literal shell text, whitespace included."""

    text: str
    span: Span


@dataclass(frozen=True, slots=True)
class InlineDecorator(ASTNode):
    """A decorator call embedded in command text."""

    decorator: Decorator
    span: Span


@dataclass(frozen=True, slots=True)
class VarRef(ASTNode):
    """A devcmd variable reference: $(NAME)."""

    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class ShellVarRef(ASTNode):
    """A shell variable reference: $NAME. Left for the shell to expand."""

    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class EscapedChar(ASTNode):
    """A user-escaped character (the backslash is consumed)."""

    char: str
    span: Span


CommandTextElement = Union[Literal, InlineDecorator, VarRef, ShellVarRef, EscapedChar]


@dataclass(frozen=True, slots=True)
class CommandText(ASTNode):
    """
    One line of command text.

    Variable references and inline decorators stay structural; `text`
    renders the canonical string with them written back in source form.
    """

    elements: tuple[CommandTextElement, ...]
    span: Span

    @property
    def is_empty(self) -> bool:
        return not self.elements

    @property
    def text(self) -> str:
        parts = []
        for element in self.elements:
            if isinstance(element, Literal):
                parts.append(element.text)
            elif isinstance(element, EscapedChar):
                parts.append(element.char)
            elif isinstance(element, VarRef):
                parts.append(f"$({element.name})")
            elif isinstance(element, ShellVarRef):
                parts.append(f"${element.name}")
            else:
                parts.append(element.decorator.signature)
        return "".join(parts)

    @property
    def var_refs(self) -> tuple[VarRef, ...]:
        return tuple(e for e in self.elements if isinstance(e, VarRef))


def join_lines(lines: Iterable[str]) -> str:
    """
    Join continued command lines with exactly one space at each seam.

    Whitespace already present on either side of a seam collapses into the
    single space; empty lines contribute nothing.
    """
    result = ""
    for line in lines:
        if not line.strip(" \t"):
            continue
        if result:
            result = result.rstrip(" \t") + " " + line.lstrip(" \t")
        else:
            result = line
    return result


# -----------------------------------------------------------------------------
# Command Bodies
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SimpleBody(ASTNode):
    """
    A single command, optionally continued over several lines.

    Example:
        long: echo one \\
              two;
    """

    text: CommandText
    continuations: tuple[CommandText, ...]
    span: Span

    @property
    def lines(self) -> tuple[CommandText, ...]:
        return (self.text,) + self.continuations

    def joined(self) -> str:
        """The effective command string with continuation lines joined."""
        return join_lines(line.text for line in self.lines)


@dataclass(frozen=True, slots=True)
class PlainCommand(ASTNode):
    """An undecorated statement inside a block."""

    text: CommandText
    continuations: tuple[CommandText, ...]
    span: Span

    @property
    def lines(self) -> tuple[CommandText, ...]:
        return (self.text,) + self.continuations

    def joined(self) -> str:
        return join_lines(line.text for line in self.lines)


@dataclass(frozen=True, slots=True)
class BlockBody(ASTNode):
    """
    A braced sequence of statements.

    Example:
        build: {
            go generate;
            go build ./...;
        }
    """

    statements: tuple["BlockStatement", ...]
    span: Span
    has_error: bool = False


@dataclass(frozen=True, slots=True)
class DecoratedBody(ASTNode):
    """
    A decorator applied to an (optional) inner body.

    Examples:
        @retry(3) { make test; }      BLOCK form with arguments
        @parallel: { a; b; }          BLOCK form without arguments
        @sh: echo hi                  SIMPLE form
        @confirm(Ship it?)            FUNC form, no inner body
        @retry(3) @timeout(1m) { }    FUNC form wrapping another decorator
    """

    decorator: Decorator
    inner: Optional["CommandBody"]
    span: Span

    def decorators(self) -> list[Decorator]:
        """This decorator followed by every directly chained one."""
        result = [self.decorator]
        inner = self.inner
        while isinstance(inner, DecoratedBody):
            result.append(inner.decorator)
            inner = inner.inner
        return result

    @property
    def innermost(self) -> Optional["CommandBody"]:
        """The first non-decorated body under the decorator chain."""
        inner = self.inner
        while isinstance(inner, DecoratedBody):
            inner = inner.inner
        return inner


# A decorated statement inside a block has the same shape as a decorated body
DecoratedCommand = DecoratedBody

CommandBody = Union[SimpleBody, BlockBody, DecoratedBody]
BlockStatement = Union[DecoratedBody, PlainCommand]


# -----------------------------------------------------------------------------
# Top-level Items
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VariableDef(ASTNode):
    """
    A variable definition.

    Example:
        def PORT = 8080;
    """

    name: str
    value: CommandText
    span: Span
    name_span: Span
    has_error: bool = False


@dataclass(frozen=True, slots=True)
class CommandDef(ASTNode):
    """
    A command definition, optionally with a watch/stop modifier.

    Example:
        watch web: npm run dev;
    """

    modifier: Modifier
    name: str
    body: CommandBody
    span: Span
    name_span: Span
    has_error: bool = False

    @property
    def qualified_name(self) -> str:
        """'web', 'watch web' or 'stop web'."""
        if self.modifier is Modifier.NONE:
            return self.name
        return f"{self.modifier.keyword} {self.name}"


@dataclass(frozen=True, slots=True)
class BlankLine(ASTNode):
    """An empty line between definitions."""

    span: Span


TopLevelItem = Union[VariableDef, CommandDef, BlankLine]


@dataclass(frozen=True, slots=True)
class Program(ASTNode):
    """
    Root of a parsed devcmd file.

    Items are kept in source order. When a name is defined more than once,
    every definition stays in `items` and the lookup helpers return the last.
    """

    items: tuple[TopLevelItem, ...]
    span: Span

    @property
    def variables(self) -> tuple[VariableDef, ...]:
        """All variable definitions in source order."""
        return tuple(item for item in self.items if isinstance(item, VariableDef))

    def variable(self, name: str) -> Optional[VariableDef]:
        """Look up a variable definition by name."""
        found = None
        for item in self.variables:
            if item.name == name:
                found = item
        return found

    def commands(self, modifier: Optional[Modifier] = None) -> tuple[CommandDef, ...]:
        """All command definitions in source order, optionally filtered by modifier."""
        return tuple(
            item
            for item in self.items
            if isinstance(item, CommandDef) and (modifier is None or item.modifier is modifier)
        )

    def command(self, name: str, modifier: Modifier = Modifier.NONE) -> Optional[CommandDef]:
        """Look up a command definition by name and modifier."""
        found = None
        for item in self.commands(modifier):
            if item.name == name:
                found = item
        return found

    def command_names(self) -> list[str]:
        """Distinct command names in order of first appearance."""
        return list(dict.fromkeys(item.name for item in self.commands()))

    def lifecycle(
        self, name: str
    ) -> tuple[Optional[CommandDef], Optional[CommandDef], Optional[CommandDef]]:
        """The (plain, watch, stop) commands linked by a name."""
        return (
            self.command(name),
            self.command(name, Modifier.WATCH),
            self.command(name, Modifier.STOP),
        )


# -----------------------------------------------------------------------------
# Traversal
# -----------------------------------------------------------------------------


def iter_children(node: ASTNode) -> Iterator[ASTNode]:
    """Yield the direct child nodes of a node in source order."""
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, ASTNode):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if isinstance(item, ASTNode):
                    yield item


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """
    Yield a node and all its descendants in pre-order (source order).

    Traversal uses an explicit stack, so deeply nested arguments do not
    hit the interpreter's recursion limit.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_children(current))))


def to_dict(node: ASTNode, include_spans: bool = True) -> dict[str, Any]:
    """
    Convert a node to a JSON-serializable dictionary.

    Each dictionary carries a "type" key with the node class name. With
    include_spans=False the result compares equal for trees that differ
    only in source positions.
    """
    result: dict[str, Any] = {"type": type(node).__name__}
    for f in fields(node):
        if not include_spans and (f.name == "span" or f.name.endswith("_span")):
            continue
        result[f.name] = _to_plain(getattr(node, f.name), include_spans)
    return result


def _to_plain(value: Any, include_spans: bool) -> Any:
    if isinstance(value, ASTNode):
        return to_dict(value, include_spans)
    if isinstance(value, Span):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_to_plain(item, include_spans) for item in value]
    return value
