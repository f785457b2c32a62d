"""
Unit tests for the devcmd formatter.
"""

import pytest

from devcmd.compiler.ast_nodes import to_dict
from devcmd.formatter import FormatConfig, check_format, format_file, format_source, get_diff
from devcmd.utils.errors import FormatError


class TestFormatDefinitions:
    """Tests for top-level layout."""

    def test_simple_command(self):
        """Spacing around the colon and before ';' is normalized."""
        assert format_source("build:make all   ;") == "build: make all;\n"

    def test_inner_whitespace_preserved(self):
        """Whitespace inside command text is never touched."""
        assert format_source("x:  echo  a\tb;") == "x: echo  a\tb;\n"

    def test_variable(self):
        """Variables are written as 'def NAME = value;'."""
        assert format_source("def   PORT=8080;") == "def PORT = 8080;\n"

    def test_empty_variable(self):
        """An empty value keeps its place."""
        assert format_source("def X = ;") == "def X = ;\n"

    def test_lifecycle_modifiers(self):
        """watch and stop are written before the name."""
        source = "web: serve;\nwatch   web: dev;\nstop web:kill;\n"
        assert format_source(source) == "web: serve;\nwatch web: dev;\nstop web: kill;\n"

    def test_blank_lines_kept(self):
        """Blank lines between definitions are kept."""
        assert format_source("a: x;\n\nb: y;") == "a: x;\n\nb: y;\n"

    def test_leading_blank_lines_dropped(self):
        """Blank lines before the first definition are dropped."""
        assert format_source("\n\n\na: x;\n\n") == "a: x;\n"

    def test_empty_file(self):
        """An empty file formats to nothing."""
        assert format_source("") == ""

    def test_references_and_escapes(self):
        """Variable references and escapes are written back as source."""
        source = "def A = 1;\nx: echo $(A) $HOME \\$ \\;;"
        assert format_source(source) == "def A = 1;\nx: echo $(A) $HOME \\$ \\;;\n"


class TestFormatBlocks:
    """Tests for blocks and decorators."""

    def test_block_one_statement_per_line(self):
        """Block statements each get their own indented line."""
        source = "build: { echo step1; echo step2 }"
        assert format_source(source) == "build: {\n    echo step1;\n    echo step2;\n}\n"

    def test_hash_statement_stays_on_previous_line(self):
        """A statement starting with '#' is kept off the start of a line."""
        source = "build: { echo a; #x; }\n"
        assert format_source(source) == "build: {\n    echo a; #x;\n}\n"

    def test_hash_statement_first_in_block(self):
        """A leading '#' statement stays after the opening brace."""
        assert format_source("x: { #a; b; }") == "x: { #a;\n    b;\n}\n"

    def test_hash_statement_keeps_count(self, parse_ok):
        """No statement is lost when a '#' statement is formatted."""
        formatted = format_source("build: { echo a; #x; }")
        assert len(parse_ok(formatted).command("build").body.statements) == 2

    def test_empty_block(self):
        """An empty block stays on one line."""
        assert format_source("x: {  }") == "x: {}\n"

    def test_block_decorator_with_args(self):
        """@name(args) { ... } keeps the decorator on the head line."""
        source = "release: @retry(3) { make test; make ship; }"
        assert format_source(source) == "release: @retry(3) {\n    make test;\n    make ship;\n}\n"

    def test_block_decorator_without_args(self):
        """@name: { ... } keeps its colon."""
        source = "all: @parallel: {a; b}"
        assert format_source(source) == "all: @parallel: {\n    a;\n    b;\n}\n"

    def test_simple_decorator(self):
        """@name: text formats like a simple command."""
        assert format_source("x: @sh:   echo hi;") == "x: @sh: echo hi;\n"

    def test_function_decorator_without_body(self):
        """A bare function decorator is terminated with ';'."""
        assert format_source("ship: @confirm(Ship it?);") == "ship: @confirm(Ship it?);\n"

    def test_chained_decorators(self):
        """Chained decorators stay on one line."""
        source = "t: @retry(3) @timeout(1m) { go test; }"
        assert format_source(source) == "t: @retry(3) @timeout(1m) {\n    go test;\n}\n"

    def test_nested_block_in_block(self):
        """A decorated block inside a block is indented and terminated."""
        source = "x: { @parallel: { a; b; }; c; }"
        assert format_source(source) == (
            "x: {\n    @parallel: {\n        a;\n        b;\n    };\n    c;\n}\n"
        )

    def test_nested_decorator_arguments(self):
        """Nested decorators and groups in arguments are kept."""
        source = "x: @when(CI, @env(X)) { a; }"
        assert format_source(source) == "x: @when(CI, @env(X)) {\n    a;\n}\n"


class TestFormatContinuations:
    """Tests for continuation lines."""

    def test_continuation_indented(self):
        """Continuation lines are indented one level."""
        source = "long: echo one \\\ntwo \\\n      three;"
        assert format_source(source) == "long: echo one \\\n    two \\\n    three;\n"

    def test_continuation_in_block(self):
        """Continuations inside blocks indent past the statement."""
        source = "x: {\n  a \\\n  b;\n}"
        assert format_source(source) == "x: {\n    a \\\n        b;\n}\n"


class TestFormatComments:
    """Tests for comment preservation."""

    def test_comment_before_definition(self):
        """Comments are re-emitted before the item that follows them."""
        source = "# build it\nbuild: make;\n"
        assert format_source(source) == source

    def test_comment_inside_block(self):
        """Comments inside a block stay inside it."""
        source = "x: {\n    # first\n    a;\n}\n"
        assert format_source(source) == source

    def test_trailing_comment(self):
        """A comment after the last definition is kept."""
        assert format_source("a: x;\n# end\n") == "a: x;\n# end\n"

    def test_comments_dropped_when_disabled(self):
        """keep_comments=False drops comments."""
        config = FormatConfig(keep_comments=False)
        assert format_source("# c\na: x;\n", config) == "a: x;\n"


class TestFormatConfig:
    """Tests for formatter options."""

    def test_indent_size(self):
        """indent_size controls block indentation."""
        config = FormatConfig(indent_size=2)
        assert format_source("x: { a; }", config) == "x: {\n  a;\n}\n"

    def test_tabs(self):
        """use_spaces=False indents with tabs."""
        config = FormatConfig(use_spaces=False)
        assert format_source("x: { a; }", config) == "x: {\n\ta;\n}\n"

    def test_no_trailing_newline(self):
        """trailing_newline=False leaves the last line open."""
        config = FormatConfig(trailing_newline=False)
        assert format_source("a: x;", config) == "a: x;"


class TestFormatHelpers:
    """Tests for check_format, get_diff and format_file."""

    def test_errors_refuse_to_format(self):
        """Sources with errors raise FormatError."""
        with pytest.raises(FormatError, match="cannot format a file with errors"):
            format_source("build: make")

    def test_warnings_do_not_block(self):
        """Warnings alone do not stop formatting."""
        assert format_source("watch web:dev;") == "watch web: dev;\n"

    def test_check_format(self):
        """check_format compares against the formatted output."""
        assert check_format("build: make;\n")
        assert not check_format("build:make;")

    def test_get_diff(self):
        """get_diff returns a unified diff with a/ and b/ prefixes."""
        diff = get_diff("build:make;\n", filename="commands.cli")
        assert "--- a/commands.cli" in diff
        assert "+++ b/commands.cli" in diff
        assert "-build:make;" in diff
        assert "+build: make;" in diff

    def test_get_diff_clean(self):
        """A formatted source has no diff."""
        assert get_diff("build: make;\n") == ""

    def test_format_file_in_place(self, tmp_path):
        """format_file can rewrite the file."""
        path = tmp_path / "commands.cli"
        path.write_text("build:make;")
        assert format_file(path, in_place=True) == "build: make;\n"
        assert path.read_text() == "build: make;\n"


class TestFormatterStability:
    """Formatting must not change meaning and must be idempotent."""

    SOURCES = [
        "def A = 1;\nx: echo $(A);",
        "build: { echo step1; echo step2 }",
        "release: @retry(3) { make test; make ship; }",
        "long: echo one \\\ntwo \\\n three;",
        "# c\nweb: serve;\n\nwatch web: dev;\nstop web: kill;",
        "x: { @parallel: { a; b; }; @sh: echo hi; c }",
        "x: @when(CI, (a (b))) @timeout(1m) { a; }",
        "ship: echo @var(NAME) done;",
        "build: { echo a; #x; #y; }",
    ]

    @pytest.mark.parametrize("source", SOURCES)
    def test_idempotent(self, source):
        """Formatting twice gives the same text as formatting once."""
        once = format_source(source)
        assert format_source(once) == once

    @pytest.mark.parametrize("source", SOURCES)
    def test_same_tree(self, source, parse_ok):
        """The formatted source parses to the same tree, positions aside."""
        formatted = format_source(source)
        assert to_dict(parse_ok(formatted), include_spans=False) == to_dict(
            parse_ok(source), include_spans=False
        )
