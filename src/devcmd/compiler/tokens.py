"""
Token definitions for the devcmd lexer.

This module defines the closed set of token kinds recognized in devcmd
files, the channel a token is emitted on, and the lookup tables the lexer
uses for keywords and single-character punctuation.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from devcmd.compiler.source import Span


class TokenKind(Enum):
    """Enumeration of all token kinds in devcmd."""

    # End of file
    EOF = auto()

    # Keywords
    DEF = auto()
    WATCH = auto()
    STOP = auto()

    # Structural punctuation
    AT = auto()            # @
    EQUALS = auto()        # =
    COLON = auto()         # :
    SEMICOLON = auto()     # ;
    LBRACE = auto()        # {
    RBRACE = auto()        # }
    LPAREN = auto()        # (
    RPAREN = auto()        # )
    BACKSLASH = auto()     # \ directly before a line break

    # Variable references
    VAR_REF = auto()       # $(NAME)
    SHELL_VAR = auto()     # $NAME

    # Escapes inside command text
    ESCAPED_DOLLAR = auto()     # \$
    ESCAPED_SEMICOLON = auto()  # \;
    ESCAPED_BRACE = auto()      # \{ or \}
    ESCAPED_CHAR = auto()       # \ followed by any other character

    # Literals
    STRING = auto()         # "..."
    SINGLE_STRING = auto()  # '...'
    NAME = auto()
    NUMBER = auto()
    PATH_CONTENT = auto()   # ./x, /usr/bin, ~/.config

    # Shell punctuation
    AMPERSAND = auto()     # &
    PIPE = auto()          # |
    LT = auto()            # <
    GT = auto()            # >
    DOT = auto()           # .
    COMMA = auto()         # ,
    SLASH = auto()         # /
    DASH = auto()          # -
    STAR = auto()          # *
    PLUS = auto()          # +
    QUESTION = auto()      # ?
    EXCLAIM = auto()       # !
    PERCENT = auto()       # %
    CARET = auto()         # ^
    TILDE = auto()         # ~
    UNDERSCORE = auto()    # _
    LBRACKET = auto()      # [
    RBRACKET = auto()      # ]
    DOLLAR = auto()        # $
    HASH = auto()          # # when not starting a comment
    DOUBLEQUOTE = auto()   # never produced: " always opens a STRING
    BACKTICK = auto()      # `

    # Layout
    NEWLINE = auto()
    COMMENT = auto()
    WS = auto()

    # Text the lexer rejected (hidden, paired with a LexError diagnostic)
    ERROR = auto()


class Channel(Enum):
    """Channel a token is emitted on."""

    DEFAULT = "default"
    HIDDEN = "hidden"


# Keyword lookup table
KEYWORDS: dict[str, TokenKind] = {
    "def": TokenKind.DEF,
    "watch": TokenKind.WATCH,
    "stop": TokenKind.STOP,
}

# Single-character tokens
SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "@": TokenKind.AT,
    "=": TokenKind.EQUALS,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "&": TokenKind.AMPERSAND,
    "|": TokenKind.PIPE,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    ".": TokenKind.DOT,
    ",": TokenKind.COMMA,
    "/": TokenKind.SLASH,
    "-": TokenKind.DASH,
    "*": TokenKind.STAR,
    "+": TokenKind.PLUS,
    "?": TokenKind.QUESTION,
    "!": TokenKind.EXCLAIM,
    "%": TokenKind.PERCENT,
    "^": TokenKind.CARET,
    "~": TokenKind.TILDE,
    "_": TokenKind.UNDERSCORE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "$": TokenKind.DOLLAR,
    "#": TokenKind.HASH,
    "`": TokenKind.BACKTICK,
}

# Escape kinds whose escaped character is a devcmd delimiter
ESCAPE_KINDS: dict[str, TokenKind] = {
    "$": TokenKind.ESCAPED_DOLLAR,
    ";": TokenKind.ESCAPED_SEMICOLON,
    "{": TokenKind.ESCAPED_BRACE,
    "}": TokenKind.ESCAPED_BRACE,
}

ESCAPED_KINDS: frozenset[TokenKind] = frozenset(
    {
        TokenKind.ESCAPED_DOLLAR,
        TokenKind.ESCAPED_SEMICOLON,
        TokenKind.ESCAPED_BRACE,
        TokenKind.ESCAPED_CHAR,
    }
)

HIDDEN_KINDS: frozenset[TokenKind] = frozenset(
    {TokenKind.WS, TokenKind.COMMENT, TokenKind.ERROR}
)

# Characters that may continue a PATH_CONTENT run
PATH_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._/~-"
)
PATH_START_CHARS = frozenset("./~")


@dataclass(frozen=True, slots=True)
class Token:
    """
    Represents a single token from a devcmd file.

    Attributes:
        kind: The kind of this token
        lexeme: The exact source text of the token
        span: Source span of the token
        channel: DEFAULT for tokens the parser consumes, HIDDEN otherwise
        value: The referenced name for VAR_REF/SHELL_VAR, the escaped
            character for escape tokens, None otherwise
    """

    kind: TokenKind
    lexeme: str
    span: Span
    channel: Channel = Channel.DEFAULT
    value: Optional[str] = None

    def __repr__(self) -> str:
        if self.value is not None:
            return f"Token({self.kind.name}, {self.lexeme!r}, value={self.value!r}, {self.span})"
        return f"Token({self.kind.name}, {self.lexeme!r}, {self.span})"

    @property
    def is_hidden(self) -> bool:
        return self.channel is Channel.HIDDEN

    @property
    def is_escape(self) -> bool:
        """Check if this token is a user-escaped character."""
        return self.kind in ESCAPED_KINDS

