"""Tests for devcmd LSP document symbols."""

from lsprotocol import types

from devcmd.compiler import parse_text
from devcmd.lsp.symbols import describe_body, document_symbols


def symbols_for(text: str) -> list[types.DocumentSymbol]:
    return document_symbols(parse_text(text).program)


class TestDescribeBody:
    """Test suite for body descriptions."""

    def test_simple_body_joined(self) -> None:
        """Continuation lines are joined into one string."""
        body = parse_text("x: echo one \\\n  two;").program.command("x").body
        assert describe_body(body) == "echo one two"

    def test_single_statement_block(self) -> None:
        """Singular form for one statement."""
        body = parse_text("x: { a; }").program.command("x").body
        assert describe_body(body) == "{ 1 statement }"

    def test_decorated_block(self) -> None:
        """Decorator signatures lead the description."""
        body = parse_text("x: @retry(3) @timeout(1m) { a; b; }").program.command("x").body
        assert describe_body(body) == "@retry(3) @timeout(1m) { 2 statements }"

    def test_function_decorator(self) -> None:
        """A bare function decorator is described by its signature."""
        body = parse_text("x: @confirm(Sure?);").program.command("x").body
        assert describe_body(body) == "@confirm(Sure?)"

    def test_none(self) -> None:
        """A missing body describes as empty."""
        assert describe_body(None) == ""


class TestDocumentSymbols:
    """Test suite for document_symbols."""

    def test_blank_lines_skipped(self) -> None:
        """Only definitions become symbols."""
        assert [s.name for s in symbols_for("a: x;\n\n\nb: y;")] == ["a", "b"]

    def test_stop_is_event(self) -> None:
        """stop commands are events."""
        symbol = symbols_for("a: x;\nstop a: y;")[1]
        assert symbol.name == "stop a"
        assert symbol.kind == types.SymbolKind.Event

    def test_decorated_block_children(self) -> None:
        """Children come from the block under a decorator chain."""
        symbol = symbols_for("x: @parallel: { a; @sh: b; }")[0]
        assert [(c.name, c.kind) for c in symbol.children] == [
            ("a", types.SymbolKind.Method),
            ("@sh", types.SymbolKind.Property),
        ]

    def test_simple_body_has_no_children(self) -> None:
        """Simple commands have no children."""
        assert symbols_for("x: a;")[0].children is None

    def test_empty_statement_name(self) -> None:
        """Empty statements get a placeholder name."""
        symbol = symbols_for("x: { ; a; }")[0]
        assert [c.name for c in symbol.children] == ["(empty)", "a"]

    def test_partial_program(self) -> None:
        """Symbols are produced even when the document has errors."""
        assert [s.name for s in symbols_for("a: x;\nb: y\nc: z;")] == ["a", "b", "c"]

    def test_unnamed_variable_skipped(self) -> None:
        """A half-typed variable definition has no outline entry."""
        assert [s.name for s in symbols_for("build: make;\ndef \n")] == ["build"]

    def test_unnamed_command_skipped(self) -> None:
        """A modifier without a command name has no outline entry."""
        assert [s.name for s in symbols_for("build: make;\nwatch ;\nstop build: x;")] == [
            "build",
            "stop build",
        ]
