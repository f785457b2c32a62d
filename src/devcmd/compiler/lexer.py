"""
devcmd Lexer (Tokenizer).

Transforms a devcmd source file into a stream of tokens. Whitespace,
comments and rejected text are kept on the hidden channel so that the
concatenation of every token's lexeme reproduces the source exactly;
the parser only consumes the default channel.
"""

from typing import Optional, Union

from devcmd.compiler.source import SourceFile, Span
from devcmd.compiler.tokens import (
    ESCAPE_KINDS,
    KEYWORDS,
    PATH_CHARS,
    PATH_START_CHARS,
    SINGLE_CHAR_TOKENS,
    Channel,
    Token,
    TokenKind,
)
from devcmd.utils.diagnostics import Diagnostic, DiagnosticCode, DiagnosticSink

BOM = "\ufeff"


def _is_name_start(char: str) -> bool:
    return char.isalpha()


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char in "_-"


def _is_shell_name_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_shell_name_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _is_digit(char: Optional[str]) -> bool:
    return char is not None and "0" <= char <= "9"


class Lexer:
    """
    Tokenizer for devcmd source files.

    The lexer recognizes:
    - Keywords (def, watch, stop) and names
    - Numbers, path-like runs, quoted strings
    - Variable references: $(NAME) and $NAME
    - Escapes: \\$ \\; \\{ \\} and \\<any character>
    - Line continuations (a backslash directly before a line break)
    - Line comments, but only when # is the first non-blank on its line

    It never raises: illegal input is reported as a LexError diagnostic and
    emitted as a hidden ERROR token.

    Usage:
        lexer = Lexer(SourceFile("commands.cli", data))
        tokens = lexer.tokenize()
        errors = lexer.diagnostics
    """

    def __init__(
        self,
        source: Union[SourceFile, str, bytes],
        sink: Optional[DiagnosticSink] = None,
    ) -> None:
        """
        Initialize the lexer.

        Args:
            source: The source file (raw text is wrapped as "<input>")
            sink: Diagnostic sink to report into; a private one is created if omitted
        """
        if not isinstance(source, SourceFile):
            source = SourceFile("<input>", source)
        self.source = source
        self.text = source.content
        self.sink = sink if sink is not None else DiagnosticSink()
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: list[Token] = []

        # True while the current line holds nothing but spaces and tabs so far
        self._line_blank = True

        # Start of the token being scanned
        self._start = 0
        self._start_line = 1
        self._start_column = 1

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self.sink.diagnostics

    @property
    def _current_char(self) -> Optional[str]:
        """Return the current character or None if at end."""
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    @property
    def _peek_char(self) -> Optional[str]:
        """Return the next character without consuming it."""
        return self._peek_ahead(1)

    def _peek_ahead(self, n: int) -> Optional[str]:
        """Return the character n positions ahead."""
        peek_pos = self.pos + n
        if peek_pos >= len(self.text):
            return None
        return self.text[peek_pos]

    def _advance(self) -> str:
        """Consume and return the current character."""
        char = self.text[self.pos]
        self.pos += 1

        if char == "\n" or (char == "\r" and self._current_char != "\n"):
            self.line += 1
            self.column = 1
        else:
            self.column += 1

        return char

    def _begin(self) -> None:
        self._start = self.pos
        self._start_line = self.line
        self._start_column = self.column

    def _span(self) -> Span:
        """Span from the start of the current token to the current position."""
        return Span(
            self.source.byte_offset(self._start),
            self.source.byte_offset(self.pos),
            self._start_line,
            self._start_column,
            self.line,
            self.column,
        )

    def _emit(
        self,
        kind: TokenKind,
        channel: Channel = Channel.DEFAULT,
        value: Optional[str] = None,
    ) -> Token:
        token = Token(kind, self.text[self._start : self.pos], self._span(), channel, value)
        self.tokens.append(token)
        return token

    def _reject(self, message: str) -> None:
        """Emit the current token as hidden ERROR text and report it."""
        token = self._emit(TokenKind.ERROR, Channel.HIDDEN)
        self.sink.error(DiagnosticCode.LEX_ERROR, message, token.span).emit()

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def tokenize(self) -> list[Token]:
        """
        Tokenize the entire source.

        Returns:
            All tokens, hidden ones included, terminated by a zero-width EOF.
        """
        while self.pos < len(self.text):
            self._scan_token()

        self._begin()
        self._emit(TokenKind.EOF)
        return self.tokens

    def _scan_token(self) -> None:
        self._begin()
        char = self._advance()

        if char == BOM and self._start == 0:
            self._emit(TokenKind.WS, Channel.HIDDEN)
            return

        if char in " \t":
            while self._current_char is not None and self._current_char in " \t":
                self._advance()
            self._emit(TokenKind.WS, Channel.HIDDEN)
            return

        if char == "\n":
            self._emit(TokenKind.NEWLINE)
            self._line_blank = True
            return

        if char == "\r":
            self._line_blank = True
            if self._current_char == "\n":
                self._advance()
                self._emit(TokenKind.NEWLINE)
            else:
                self._reject("stray carriage return (line endings must be \\n or \\r\\n)")
            return

        if char == "#" and self._line_blank:
            while self._current_char is not None and self._current_char not in "\r\n":
                self._advance()
            self._emit(TokenKind.COMMENT, Channel.HIDDEN)
            return

        self._line_blank = False

        if char in "\"'":
            self._read_string(char)
        elif char == "\\":
            self._read_escape()
        elif char == "$":
            self._read_dollar()
        elif _is_name_start(char):
            self._read_name()
        elif _is_digit(char) or (char == "-" and _is_digit(self._current_char)):
            self._read_number()
        elif char in PATH_START_CHARS and self._current_char in PATH_CHARS:
            self._read_path()
        elif char in SINGLE_CHAR_TOKENS:
            self._emit(SINGLE_CHAR_TOKENS[char])
        else:
            self._reject(f"unexpected character {char!r}")

    def _read_string(self, quote: str) -> None:
        """Read a quoted string; the opening quote is already consumed."""
        kind = TokenKind.STRING if quote == '"' else TokenKind.SINGLE_STRING

        while self._current_char is not None:
            char = self._advance()
            if char == "\\":
                if self._current_char is not None:
                    self._advance()
            elif char == quote:
                self._emit(kind)
                return

        self._reject("unterminated string literal")

    def _read_escape(self) -> None:
        """Read a backslash escape or a line continuation."""
        char = self._current_char
        if char is None:
            self._reject("backslash at end of input")
            return

        if char in "\r\n":
            # The line break itself is emitted as the following NEWLINE
            self._emit(TokenKind.BACKSLASH)
            return

        self._advance()
        self._emit(ESCAPE_KINDS.get(char, TokenKind.ESCAPED_CHAR), value=char)

    def _read_dollar(self) -> None:
        """Read $(NAME), $NAME, or a bare $."""
        if self._current_char == "(" and _is_name_start(self._peek_char or ""):
            end = self.pos + 2
            while end < len(self.text) and _is_name_char(self.text[end]):
                end += 1
            if end < len(self.text) and self.text[end] == ")":
                name = self.text[self.pos + 1 : end]
                while self.pos <= end:
                    self._advance()
                self._emit(TokenKind.VAR_REF, value=name)
                return

        if self._current_char is not None and _is_shell_name_start(self._current_char):
            while self._current_char is not None and _is_shell_name_char(self._current_char):
                self._advance()
            self._emit(TokenKind.SHELL_VAR, value=self.text[self._start + 1 : self.pos])
            return

        self._emit(TokenKind.DOLLAR)

    def _read_name(self) -> None:
        """Read a name or keyword."""
        while self._current_char is not None and _is_name_char(self._current_char):
            self._advance()
        word = self.text[self._start : self.pos]
        self._emit(KEYWORDS.get(word, TokenKind.NAME))

    def _read_number(self) -> None:
        """Read -?digits(.digits)?; the first character is already consumed."""
        while _is_digit(self._current_char):
            self._advance()
        if self._current_char == "." and _is_digit(self._peek_char):
            self._advance()
            while _is_digit(self._current_char):
                self._advance()
        self._emit(TokenKind.NUMBER)

    def _read_path(self) -> None:
        """Read a run of path characters starting with '.', '/' or '~'."""
        while self._current_char is not None and self._current_char in PATH_CHARS:
            self._advance()
        self._emit(TokenKind.PATH_CONTENT)


def lex(source: Union[SourceFile, str, bytes]) -> tuple[list[Token], list[Diagnostic]]:
    """
    Tokenize a source file.

    Returns:
        (tokens, diagnostics). Tokens include the hidden channel and end
        with EOF; diagnostics hold any LexError reports.
    """
    lexer = Lexer(source)
    tokens = lexer.tokenize()
    return tokens, lexer.diagnostics
