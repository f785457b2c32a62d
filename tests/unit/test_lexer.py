"""
Unit tests for the devcmd Lexer.
"""

import pytest

from devcmd.compiler.lexer import Lexer, lex
from devcmd.compiler.source import SourceFile
from devcmd.compiler.tokens import Channel, TokenKind
from devcmd.utils.diagnostics import DiagnosticCode


def kinds(tokens):
    return [token.kind for token in tokens]


class TestLexerBasics:
    """Basic lexer functionality tests."""

    def test_empty_source(self, lex):
        """Empty source should produce only a zero-width EOF."""
        tokens, diagnostics = lex("")
        assert kinds(tokens) == [TokenKind.EOF]
        assert tokens[0].span.start_offset == tokens[0].span.end_offset == 0
        assert diagnostics == []

    def test_simple_command(self, tokenize):
        """A simple command definition tokenizes into its parts."""
        tokens = tokenize("build: make all;")
        assert kinds(tokens) == [
            TokenKind.NAME,
            TokenKind.COLON,
            TokenKind.NAME,
            TokenKind.NAME,
            TokenKind.SEMICOLON,
            TokenKind.EOF,
        ]

    def test_whitespace_is_hidden(self, lex):
        """Spaces and tabs are emitted as WS on the hidden channel."""
        tokens, _ = lex("a \t b")
        ws = [t for t in tokens if t.kind is TokenKind.WS]
        assert len(ws) == 1
        assert ws[0].lexeme == " \t "
        assert ws[0].channel is Channel.HIDDEN

    def test_eof_at_end_of_input(self, lex):
        """EOF is zero-width at the end of the input."""
        tokens, _ = lex("x: y;\n")
        eof = tokens[-1]
        assert eof.kind is TokenKind.EOF
        assert eof.lexeme == ""
        assert eof.span.start_offset == eof.span.end_offset == 6

    def test_iterating_yields_default_channel(self):
        """Iterating a lexer yields only default-channel tokens."""
        lexer = Lexer("# comment\nx: y;")
        assert all(token.channel is Channel.DEFAULT for token in lexer)
        assert TokenKind.COMMENT not in kinds(lexer)

    def test_lex_function(self):
        """lex() returns tokens and diagnostics together."""
        tokens, diagnostics = lex("x: y;")
        assert tokens[-1].kind is TokenKind.EOF
        assert diagnostics == []


class TestLexerKeywordsAndNames:
    """Tests for keywords and names."""

    def test_keywords(self, tokenize):
        """def, watch and stop are recognized as keywords."""
        tokens = tokenize("def watch stop")
        assert kinds(tokens)[:3] == [TokenKind.DEF, TokenKind.WATCH, TokenKind.STOP]

    def test_keyword_prefix_is_name(self, tokenize):
        """Words that only start with a keyword are names."""
        tokens = tokenize("define watcher stopped")
        assert kinds(tokens)[:3] == [TokenKind.NAME] * 3

    def test_name_with_dash_and_digits(self, tokenize):
        """Names continue with letters, digits, underscores and dashes."""
        tokens = tokenize("run-tests_2")
        assert tokens[0].kind is TokenKind.NAME
        assert tokens[0].lexeme == "run-tests_2"

    def test_unicode_name(self, tokenize):
        """Names may start with a Unicode letter."""
        tokens = tokenize("café")
        assert tokens[0].kind is TokenKind.NAME
        assert tokens[0].lexeme == "café"


class TestLexerNumbersAndPaths:
    """Tests for numbers and path runs."""

    @pytest.mark.parametrize("text", ["8080", "-1", "3.14", "-0.5"])
    def test_numbers(self, tokenize, text):
        """Numbers have an optional sign and fractional part."""
        tokens = tokenize(text)
        assert tokens[0].kind is TokenKind.NUMBER
        assert tokens[0].lexeme == text

    def test_number_without_fraction_digits(self, tokenize):
        """A trailing dot is not part of a number."""
        tokens = tokenize("1.")
        assert kinds(tokens)[:2] == [TokenKind.NUMBER, TokenKind.DOT]

    @pytest.mark.parametrize("text", ["./build/out", "/usr/bin", "~/.config", "../x"])
    def test_paths(self, tokenize, text):
        """Path-looking runs are a single PATH_CONTENT token."""
        tokens = tokenize(text)
        assert tokens[0].kind is TokenKind.PATH_CONTENT
        assert tokens[0].lexeme == text

    def test_lone_path_starters(self, tokenize):
        """A lone '.', '/' or '~' is punctuation."""
        tokens = tokenize(". / ~")
        assert kinds(tokens)[:3] == [TokenKind.DOT, TokenKind.SLASH, TokenKind.TILDE]


class TestLexerPunctuation:
    """Tests for single-character tokens."""

    def test_structural_punctuation(self, tokenize):
        """Structural punctuation has dedicated kinds."""
        tokens = tokenize("@=:;{}()")
        assert kinds(tokens)[:-1] == [
            TokenKind.AT,
            TokenKind.EQUALS,
            TokenKind.COLON,
            TokenKind.SEMICOLON,
            TokenKind.LBRACE,
            TokenKind.RBRACE,
            TokenKind.LPAREN,
            TokenKind.RPAREN,
        ]

    def test_shell_punctuation(self, tokenize):
        """Shell punctuation has one kind per character."""
        tokens = tokenize("&|<>,*+?!%^[]`_")
        assert kinds(tokens)[:-1] == [
            TokenKind.AMPERSAND,
            TokenKind.PIPE,
            TokenKind.LT,
            TokenKind.GT,
            TokenKind.COMMA,
            TokenKind.STAR,
            TokenKind.PLUS,
            TokenKind.QUESTION,
            TokenKind.EXCLAIM,
            TokenKind.PERCENT,
            TokenKind.CARET,
            TokenKind.LBRACKET,
            TokenKind.RBRACKET,
            TokenKind.BACKTICK,
            TokenKind.UNDERSCORE,
        ]

    def test_dash_before_non_digit(self, tokenize):
        """A dash not followed by a digit is DASH."""
        tokens = tokenize("--force")
        assert kinds(tokens)[:3] == [TokenKind.DASH, TokenKind.DASH, TokenKind.NAME]


class TestLexerComments:
    """Tests for the comment-at-line-start rule."""

    def test_comment_at_line_start(self, lex):
        """# at the start of a line begins a hidden comment."""
        tokens, _ = lex("# header\nx: y;")
        assert tokens[0].kind is TokenKind.COMMENT
        assert tokens[0].lexeme == "# header"
        assert tokens[0].is_hidden

    def test_indented_comment(self, lex):
        """# after only spaces and tabs is still a comment."""
        tokens, _ = lex("  \t# note")
        assert TokenKind.COMMENT in kinds(tokens)

    def test_hash_mid_line(self, tokenize):
        """# after other text on the line is HASH punctuation."""
        tokens = tokenize("x: echo a # b;")
        assert TokenKind.HASH in kinds(tokens)

    def test_comment_excludes_newline(self, lex):
        """The NEWLINE after a comment is a separate token."""
        tokens, _ = lex("# c\n")
        assert kinds(tokens) == [TokenKind.COMMENT, TokenKind.NEWLINE, TokenKind.EOF]

    def test_comment_after_newline_resets(self, lex):
        """The line-blank state resets after every NEWLINE."""
        tokens, _ = lex("x: y;\n# c")
        assert tokens[-2].kind is TokenKind.COMMENT


class TestLexerStrings:
    """Tests for quoted strings."""

    def test_double_quoted(self, tokenize):
        """Double-quoted strings are one STRING token."""
        tokens = tokenize('"hello world"')
        assert tokens[0].kind is TokenKind.STRING
        assert tokens[0].lexeme == '"hello world"'

    def test_single_quoted(self, tokenize):
        """Single-quoted strings are one SINGLE_STRING token."""
        tokens = tokenize("'a b'")
        assert tokens[0].kind is TokenKind.SINGLE_STRING

    def test_escaped_quote_inside_string(self, tokenize):
        """A backslash escapes the closing quote."""
        tokens = tokenize(r'"say \"hi\""')
        assert kinds(tokens) == [TokenKind.STRING, TokenKind.EOF]

    def test_delimiters_inside_string(self, tokenize):
        """Semicolons and braces inside strings are not structural."""
        tokens = tokenize('"a;b{c}"')
        assert kinds(tokens) == [TokenKind.STRING, TokenKind.EOF]

    def test_string_spans_lines(self, tokenize):
        """Strings may continue over line breaks."""
        tokens = tokenize('"one\ntwo"')
        assert tokens[0].kind is TokenKind.STRING
        assert tokens[0].span.end_line == 2

    def test_unterminated_string(self, lex):
        """An unterminated string is a LexError and hidden ERROR text."""
        tokens, diagnostics = lex('x: echo "oops')
        assert len(diagnostics) == 1
        assert diagnostics[0].code is DiagnosticCode.LEX_ERROR
        assert diagnostics[0].message == "unterminated string literal"
        error = [t for t in tokens if t.kind is TokenKind.ERROR][0]
        assert error.lexeme == '"oops'
        assert error.is_hidden
        assert tokens[-1].kind is TokenKind.EOF


class TestLexerVariables:
    """Tests for $(NAME) and $NAME references."""

    def test_var_ref(self, tokenize):
        """$(NAME) is a single VAR_REF carrying the name."""
        tokens = tokenize("$(PORT)")
        assert tokens[0].kind is TokenKind.VAR_REF
        assert tokens[0].value == "PORT"
        assert tokens[0].lexeme == "$(PORT)"

    def test_var_ref_with_dash(self, tokenize):
        """Variable names in $(...) may contain dashes."""
        tokens = tokenize("$(MY-VAR)")
        assert tokens[0].value == "MY-VAR"

    def test_var_ref_with_space_is_not_a_reference(self, tokenize):
        """Interior whitespace breaks the $(NAME) form."""
        tokens = tokenize("$( PORT)")
        assert kinds(tokens)[:4] == [
            TokenKind.DOLLAR,
            TokenKind.LPAREN,
            TokenKind.NAME,
            TokenKind.RPAREN,
        ]

    def test_shell_var(self, tokenize):
        """$NAME is a single SHELL_VAR carrying the name."""
        tokens = tokenize("$HOME")
        assert tokens[0].kind is TokenKind.SHELL_VAR
        assert tokens[0].value == "HOME"

    def test_shell_var_stops_at_dash(self, tokenize):
        """Shell variable names follow shell rules."""
        tokens = tokenize("$my-var")
        assert tokens[0].value == "my"
        assert tokens[1].kind is TokenKind.DASH

    def test_shell_var_with_underscore(self, tokenize):
        """Shell variable names may start with an underscore."""
        tokens = tokenize("$_x1")
        assert tokens[0].kind is TokenKind.SHELL_VAR
        assert tokens[0].value == "_x1"

    def test_bare_dollar(self, tokenize):
        """$ before anything else is DOLLAR."""
        tokens = tokenize("$1")
        assert kinds(tokens)[:2] == [TokenKind.DOLLAR, TokenKind.NUMBER]


class TestLexerEscapes:
    """Tests for escapes and line continuations."""

    @pytest.mark.parametrize(
        "text,kind,char",
        [
            (r"\$", TokenKind.ESCAPED_DOLLAR, "$"),
            (r"\;", TokenKind.ESCAPED_SEMICOLON, ";"),
            (r"\{", TokenKind.ESCAPED_BRACE, "{"),
            (r"\}", TokenKind.ESCAPED_BRACE, "}"),
            (r"\n", TokenKind.ESCAPED_CHAR, "n"),
            ("\\\\", TokenKind.ESCAPED_CHAR, "\\"),
        ],
    )
    def test_escapes(self, tokenize, text, kind, char):
        """Backslash escapes carry the escaped character."""
        tokens = tokenize(text)
        assert tokens[0].kind is kind
        assert tokens[0].value == char
        assert tokens[0].is_escape

    def test_continuation(self, tokenize):
        """A backslash directly before a newline is BACKSLASH."""
        tokens = tokenize("a \\\nb")
        assert kinds(tokens) == [
            TokenKind.NAME,
            TokenKind.BACKSLASH,
            TokenKind.NEWLINE,
            TokenKind.NAME,
            TokenKind.EOF,
        ]

    def test_continuation_crlf(self, tokenize):
        """A backslash before CRLF is also a continuation."""
        tokens = tokenize("a \\\r\nb")
        assert kinds(tokens)[1:3] == [TokenKind.BACKSLASH, TokenKind.NEWLINE]
        assert tokens[2].lexeme == "\r\n"

    def test_backslash_at_eof(self, lex):
        """A backslash at end of input is a LexError."""
        tokens, diagnostics = lex("x: echo \\")
        assert [d.message for d in diagnostics] == ["backslash at end of input"]
        assert tokens[-1].kind is TokenKind.EOF


class TestLexerLineEndings:
    """Tests for line endings, BOM and illegal input."""

    def test_crlf_newline(self, tokenize):
        """CRLF is a single NEWLINE."""
        tokens = tokenize("a: b;\r\nc: d;")
        newline = [t for t in tokens if t.kind is TokenKind.NEWLINE][0]
        assert newline.lexeme == "\r\n"
        c = [t for t in tokens if t.lexeme == "c"][0]
        assert (c.span.start_line, c.span.start_col) == (2, 1)

    def test_stray_carriage_return(self, lex):
        """A lone CR is a LexError but still counts as a line break."""
        tokens, diagnostics = lex("a: b;\rc: d;")
        assert len(diagnostics) == 1
        assert diagnostics[0].message.startswith("stray carriage return")
        c = [t for t in tokens if t.lexeme == "c"][0]
        assert c.span.start_line == 2

    def test_bom_is_hidden(self, lex):
        """A UTF-8 BOM at the start is hidden whitespace."""
        tokens, diagnostics = lex(b"\xef\xbb\xbfx: y;")
        assert tokens[0].kind is TokenKind.WS
        assert tokens[0].is_hidden
        assert diagnostics == []

    def test_comment_after_bom(self, lex):
        """A comment directly after the BOM is still at line start."""
        tokens, _ = lex(b"\xef\xbb\xbf# c")
        assert tokens[1].kind is TokenKind.COMMENT

    def test_unexpected_character(self, lex):
        """Characters outside the token set are LexErrors."""
        tokens, diagnostics = lex("x: a\x01b;")
        assert len(diagnostics) == 1
        assert diagnostics[0].code is DiagnosticCode.LEX_ERROR
        assert "unexpected character" in diagnostics[0].message
        assert TokenKind.ERROR in kinds(tokens)

    def test_invalid_utf8(self, lex):
        """Undecodable bytes are reported and kept for the round-trip."""
        data = b"x: \xff;"
        tokens, diagnostics = lex(data)
        assert len(diagnostics) == 1
        joined = "".join(t.lexeme for t in tokens)
        assert joined.encode("utf-8", "surrogateescape") == data


class TestLexerSpans:
    """Tests for token spans."""

    def test_columns(self, tokenize):
        """Columns are 1-indexed characters within the line."""
        tokens = tokenize("x: y")
        y = tokens[2]
        assert (y.span.start_line, y.span.start_col, y.span.end_col) == (1, 4, 5)

    def test_multibyte_offsets(self, tokenize):
        """Offsets count bytes while columns count characters."""
        tokens = tokenize("x: é;")
        e = tokens[2]
        assert (e.span.start_offset, e.span.end_offset) == (3, 5)
        assert (e.span.start_col, e.span.end_col) == (4, 5)

    def test_round_trip(self, lex):
        """Concatenated lexemes reproduce the source exactly."""
        text = 'def A = 1;\n# c\nx: {\n  echo "$(A)" \\\n    $HOME\\;;\n}\n'
        tokens, _ = lex(text)
        assert "".join(t.lexeme for t in tokens) == text

    def test_spans_are_monotonic(self, lex):
        """Each token ends before the next one starts."""
        tokens, _ = lex("a: b \\\n c;\r\nd: @x(1) { e; }\n")
        for first, second in zip(tokens, tokens[1:]):
            assert first.span.end_offset <= second.span.start_offset

    def test_source_file_input(self):
        """A lexer accepts a SourceFile directly."""
        source = SourceFile("commands.cli", "x: y;")
        tokens = Lexer(source).tokenize()
        assert tokens[0].lexeme == "x"
