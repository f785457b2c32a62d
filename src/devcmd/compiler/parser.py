"""
devcmd Parser.

A recursive descent parser that transforms the default-channel token
stream into a Program AST. Ambiguous productions are decided with fixed
lookahead; the only unbounded lookahead is the scan over a decorator's
balanced argument list that decides whether `@name(...)` heads a decorated
body or is an inline decorator at the start of a plain command.

Parse errors are data. A failed production records a ParseError, puts the
parser into panic mode and returns its partial node; the top level
resynchronizes at the next NEWLINE and blocks at their closing brace.
"""

import logging
from dataclasses import replace
from typing import Optional

from devcmd.compiler.ast_nodes import (
    BlankLine,
    BlockBody,
    BlockStatement,
    CommandBody,
    CommandDef,
    CommandText,
    DecoratedBody,
    Decorator,
    DecoratorContent,
    DecoratorForm,
    InlineDecorator,
    Modifier,
    NestedDecorator,
    ParenGroup,
    PlainCommand,
    Program,
    SimpleBody,
    TopLevelItem,
    VariableDef,
)
from devcmd.compiler.builder import ASTBuilder, ContentPiece, TextPiece
from devcmd.compiler.source import SourceFile, Span
from devcmd.compiler.tokens import Channel, Token, TokenKind
from devcmd.utils.diagnostics import DiagnosticCode, DiagnosticSink

logger = logging.getLogger(__name__)

# Blocks, decorator chains and parenthesised argument groups
MAX_NESTING_DEPTH = 128

# Tokens accepted where a definition name is expected
NAME_KINDS = (TokenKind.NAME, TokenKind.DEF, TokenKind.WATCH, TokenKind.STOP)

# Tokens that end a line of command text
LINE_END_KINDS = (TokenKind.SEMICOLON, TokenKind.NEWLINE, TokenKind.EOF)

# Tokens after `@name(...)` that make it a decorated body rather than text
DECORATED_FOLLOW_KINDS = (
    TokenKind.LBRACE,
    TokenKind.SEMICOLON,
    TokenKind.NEWLINE,
    TokenKind.EOF,
)


def _describe(token: Token) -> str:
    """Describe a token for an error message."""
    if token.kind is TokenKind.EOF:
        return "end of file"
    if token.kind is TokenKind.NEWLINE:
        return "newline"
    return f"'{token.lexeme}'"


def _adjacent(first: Token, second: Token) -> bool:
    return first.span.end_offset == second.span.start_offset


def _ends_with_block(statement: BlockStatement) -> bool:
    """Check if a decorated statement ends with its own closing brace."""
    return isinstance(statement, DecoratedBody) and isinstance(statement.innermost, BlockBody)


class Parser:
    """
    Recursive descent parser for devcmd.

    Usage:
        tokens = Lexer(source).tokenize()
        parser = Parser(tokens, source)
        program = parser.parse()
        errors = parser.diagnostics
    """

    def __init__(
        self,
        tokens: list[Token],
        source: SourceFile,
        sink: Optional[DiagnosticSink] = None,
    ) -> None:
        """
        Initialize the parser.

        Args:
            tokens: Tokens from the lexer; hidden-channel tokens are ignored
            source: The source file the tokens were produced from
            sink: Diagnostic sink to report into
        """
        self.tokens = [token for token in tokens if token.channel is Channel.DEFAULT]
        if not self.tokens or self.tokens[-1].kind is not TokenKind.EOF:
            end = source.span_of(source.size, source.size)
            self.tokens.append(Token(TokenKind.EOF, "", end))
        self.source = source
        self.sink = sink if sink is not None else DiagnosticSink()
        self.builder = ASTBuilder(source)
        self.pos = 0
        self._panic = False
        self._depth = 0

    @property
    def diagnostics(self):
        return self.sink.diagnostics

    # -------------------------------------------------------------------------
    # Token Navigation
    # -------------------------------------------------------------------------

    @property
    def _current(self) -> Token:
        """Get the current token."""
        return self._token_at(self.pos)

    @property
    def _previous(self) -> Token:
        """Get the previous token."""
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _peek(self, offset: int = 1) -> Token:
        """Peek at a token ahead of the current position."""
        return self._token_at(self.pos + offset)

    def _token_at(self, index: int) -> Token:
        if index >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[index]

    def _is_at_end(self) -> bool:
        """Check if we've reached the end of tokens."""
        return self._current.kind is TokenKind.EOF

    def _check(self, *kinds: TokenKind) -> bool:
        """Check if the current token is one of the given kinds."""
        return self._current.kind in kinds

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._current
        if not self._is_at_end():
            self.pos += 1
        return token

    def _match(self, *kinds: TokenKind) -> bool:
        """Consume current token if it matches one of the given kinds."""
        if self._check(*kinds):
            self._advance()
            return True
        return False

    def _skip_newlines(self) -> None:
        """Skip any newline tokens."""
        while self._match(TokenKind.NEWLINE):
            pass

    # -------------------------------------------------------------------------
    # Errors and Recovery
    # -------------------------------------------------------------------------

    def _error(
        self,
        message: str,
        token: Optional[Token] = None,
        note: Optional[tuple[Span, str]] = None,
        hint: Optional[str] = None,
    ) -> None:
        """Record a ParseError and enter panic mode."""
        if self._panic:
            return
        token = token if token is not None else self._current
        builder = self.sink.error(DiagnosticCode.PARSE_ERROR, message, token.span)
        if note is not None:
            builder.note(*note)
        if hint is not None:
            builder.help(hint)
        builder.emit()
        self._panic = True

    def _expect(self, kind: TokenKind, message: str) -> Optional[Token]:
        """Consume the current token if it matches, else record an error."""
        if self._check(kind):
            return self._advance()
        self._error(f"{message}, found {_describe(self._current)}")
        return None

    def _expect_name(self, message: str) -> Optional[Token]:
        if self._check(*NAME_KINDS):
            return self._advance()
        self._error(f"{message}, found {_describe(self._current)}")
        return None

    def _expect_closing(self, kind: TokenKind, opening: Token, what: str) -> Optional[Token]:
        """Consume a closing delimiter, pointing back at its opener if missing."""
        if self._check(kind):
            return self._advance()
        self._error(
            f"unclosed '{opening.lexeme}' in {what}, found {_describe(self._current)}",
            note=(opening.span, f"'{opening.lexeme}' opened here"),
        )
        return None

    def _enter(self, token: Token) -> bool:
        """Enter one nesting level, or record an error past the limit."""
        if self._depth >= MAX_NESTING_DEPTH:
            self._error(
                f"nesting too deep (more than {MAX_NESTING_DEPTH} levels)",
                token,
            )
            return False
        self._depth += 1
        return True

    def _leave(self) -> None:
        self._depth -= 1

    def _synchronize(self) -> None:
        """
        Recover from a parse error at top level.

        Discards tokens through the next NEWLINE that is not inside braces.
        """
        skipped_from = self._current
        depth = 0
        while not self._is_at_end():
            token = self._advance()
            if token.kind is TokenKind.LBRACE:
                depth += 1
            elif token.kind is TokenKind.RBRACE:
                depth = max(0, depth - 1)
            elif token.kind is TokenKind.NEWLINE and depth == 0:
                break
        logger.debug("resynchronized from %s to %s", skipped_from.span, self._current.span)
        self._panic = False

    def _recover_block(self) -> None:
        """Recover from a parse error inside a block by skipping to its '}'."""
        depth = 0
        while not self._is_at_end():
            token = self._advance()
            if token.kind is TokenKind.LBRACE:
                depth += 1
            elif token.kind is TokenKind.RBRACE:
                if depth == 0:
                    break
                depth -= 1
        self._panic = False

    # -------------------------------------------------------------------------
    # Program Parsing
    # -------------------------------------------------------------------------

    def parse(self) -> Program:
        """
        Parse the entire program.

        Returns:
            The root Program AST node. Always returned, even when errors
            were reported.
        """
        items: list[TopLevelItem] = []

        while not self._is_at_end():
            if self._check(TokenKind.NEWLINE):
                if self._is_blank_line(self.pos):
                    items.append(BlankLine(self._current.span))
                self._advance()
                continue

            item = self._parse_line()
            if item is not None:
                items.append(item)
            if self._panic:
                self._synchronize()

        return Program(tuple(_trim_blank_lines(items)), self.source.span_of(0, self.source.size))

    def _is_blank_line(self, index: int) -> bool:
        """Check if the NEWLINE at index ends a line holding only whitespace."""
        if index > 0 and self.tokens[index - 1].kind is not TokenKind.NEWLINE:
            return False
        line = self.tokens[index].span.start_line
        return not self.source.line_text(line).strip(" \t\ufeff")

    def _parse_line(self) -> Optional[TopLevelItem]:
        """Parse one definition, dispatching on its first token."""
        if self._check(TokenKind.DEF) and self._peek().kind is not TokenKind.COLON:
            return self._parse_variable_def()
        if self._check(*NAME_KINDS):
            return self._parse_command_def()

        self._error(
            f"expected a variable or command definition, found {_describe(self._current)}"
        )
        return None

    def _parse_variable_def(self) -> VariableDef:
        """
        Parse a variable definition.

        Grammar:
            VariableDef := DEF NAME EQUALS CommandText? SEMICOLON
        """
        def_token = self._advance()

        name_token = self._expect_name("expected a variable name after 'def'")
        if name_token is None:
            return VariableDef(
                "", CommandText((), def_token.span.end), def_token.span, def_token.span, True
            )

        name = name_token.lexeme
        if self._expect(TokenKind.EQUALS, f"expected '=' after variable name '{name}'") is None:
            span = Span.covering(def_token.span, name_token.span)
            return VariableDef(name, CommandText((), name_token.span.end), span, name_token.span, True)

        value = self._parse_command_text(in_block=False)
        if not self._panic:
            self._expect(TokenKind.SEMICOLON, "expected ';' after variable value")

        return VariableDef(
            name,
            value,
            Span.covering(def_token.span, self._previous.span),
            name_token.span,
            has_error=self._panic,
        )

    def _parse_command_def(self) -> CommandDef:
        """
        Parse a command definition.

        Grammar:
            CommandDef := (WATCH | STOP)? NAME COLON CommandBody
        """
        start = self._current
        modifier = Modifier.NONE
        if self._check(TokenKind.WATCH, TokenKind.STOP) and self._peek().kind is not TokenKind.COLON:
            modifier = Modifier.WATCH if self._advance().kind is TokenKind.WATCH else Modifier.STOP

        if modifier is Modifier.NONE:
            message = "expected a command name"
        else:
            message = f"expected a command name after '{modifier.keyword}'"
        name_token = self._expect_name(message)
        if name_token is None:
            return CommandDef(
                modifier,
                "",
                _empty_body(start.span.end),
                start.span,
                start.span,
                has_error=True,
            )

        name = name_token.lexeme
        if self._expect(TokenKind.COLON, f"expected ':' after command name '{name}'") is None:
            return CommandDef(
                modifier,
                name,
                _empty_body(name_token.span.end),
                Span.covering(start.span, name_token.span),
                name_token.span,
                has_error=True,
            )

        body = self._parse_command_body()
        return CommandDef(
            modifier,
            name,
            body,
            Span.covering(start.span, self._previous.span),
            name_token.span,
            has_error=self._panic,
        )

    def _parse_command_body(self) -> CommandBody:
        """
        Parse the body of a top-level command.

        Grammar:
            CommandBody := DecoratedCommand | BlockCommand | SimpleCommand
        """
        if self._is_decorated_start(in_block=False):
            body: CommandBody = self._parse_decorated_body(in_block=False)
        elif self._check(TokenKind.LBRACE):
            body = self._parse_block()
        else:
            return self._parse_simple_body()

        if not self._panic:
            self._match(TokenKind.SEMICOLON)
        return body

    def _parse_simple_body(self) -> SimpleBody:
        """
        Parse a simple command.

        Grammar:
            SimpleCommand := CommandText ContinuationLine* SEMICOLON
        """
        text, continuations = self._parse_command_lines(in_block=False)
        body = SimpleBody(text, continuations, _lines_span(text, continuations))
        if not self._panic:
            self._expect(TokenKind.SEMICOLON, "expected ';' at end of command")
        return body

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _parse_block(self) -> BlockBody:
        """
        Parse a braced block of statements.

        Grammar:
            BlockCommand    := LBRACE NEWLINE? BlockStatements RBRACE
            BlockStatements := (BlockStatement (SEMICOLON NEWLINE* BlockStatement)* SEMICOLON?)? NEWLINE*
        """
        lbrace = self._advance()
        if not self._enter(lbrace):
            self._recover_block()
            return BlockBody((), Span.covering(lbrace.span, self._previous.span), has_error=True)

        try:
            statements: list[BlockStatement] = []
            self._skip_newlines()

            while not self._check(TokenKind.RBRACE, TokenKind.EOF):
                statement = self._parse_block_statement()
                statements.append(statement)
                if self._panic:
                    break

                if self._match(TokenKind.SEMICOLON):
                    self._skip_newlines()
                    continue

                if self._check(TokenKind.NEWLINE):
                    self._skip_newlines()
                    if self._check(TokenKind.RBRACE) or _ends_with_block(statement):
                        continue
                    self._error(
                        f"expected ';' between block statements, found {_describe(self._current)}",
                        hint="separate statements inside a block with ';'",
                    )
                    break

                if self._check(TokenKind.RBRACE, TokenKind.EOF):
                    continue

                self._error(
                    f"expected ';' or '}}' after block statement, found {_describe(self._current)}"
                )
                break

            if self._panic:
                # At end of input there is nothing to skip; the error propagates
                if not self._is_at_end():
                    self._recover_block()
                return BlockBody(
                    tuple(statements),
                    Span.covering(lbrace.span, self._previous.span),
                    has_error=True,
                )

            rbrace = self._expect_closing(TokenKind.RBRACE, lbrace, "block")
            if rbrace is None:
                return BlockBody(
                    tuple(statements),
                    Span.covering(lbrace.span, self._previous.span),
                    has_error=True,
                )
            return BlockBody(tuple(statements), Span.covering(lbrace.span, rbrace.span))
        finally:
            self._leave()

    def _parse_block_statement(self) -> BlockStatement:
        """
        Parse one statement inside a block.

        Grammar:
            BlockStatement := DecoratedCommand | CommandText ContinuationLine*
        """
        if self._is_decorated_start(in_block=True):
            return self._parse_decorated_body(in_block=True)
        text, continuations = self._parse_command_lines(in_block=True)
        return PlainCommand(text, continuations, _lines_span(text, continuations))

    # -------------------------------------------------------------------------
    # Command Text
    # -------------------------------------------------------------------------

    def _is_continuation(self) -> bool:
        return self._check(TokenKind.BACKSLASH) and self._peek().kind is TokenKind.NEWLINE

    def _parse_command_lines(self, in_block: bool) -> tuple[CommandText, tuple[CommandText, ...]]:
        """
        Parse a line of command text and its continuation lines.

        Grammar:
            ContinuationLine := BACKSLASH NEWLINE CommandText
        """
        text = self._parse_command_text(in_block)
        continuations = []
        while not self._panic and self._is_continuation():
            self._advance()
            self._advance()
            continuations.append(self._parse_command_text(in_block))
        return text, tuple(continuations)

    def _parse_command_text(self, in_block: bool) -> CommandText:
        """
        Parse command text up to the end of the line.

        Every token is text except the line terminators, a continuation
        backslash and, inside a block, an unbalanced '}'. `@name(...)` is
        parsed as an inline decorator.
        """
        at = self._previous.span.end
        pieces: list[TextPiece] = []
        depth = 0

        while True:
            token = self._current
            kind = token.kind

            if kind in LINE_END_KINDS:
                break
            if self._is_continuation():
                return self.builder.command_text(pieces, at, end=token.span)
            if in_block:
                if kind is TokenKind.LBRACE:
                    depth += 1
                elif kind is TokenKind.RBRACE:
                    if depth == 0:
                        break
                    depth -= 1

            if self._is_inline_decorator_at(self.pos):
                decorator = self._parse_decorator_call()
                pieces.append(InlineDecorator(decorator, decorator.span))
                if self._panic:
                    break
                continue

            pieces.append(self._advance())

        return self.builder.command_text(pieces, at)

    # -------------------------------------------------------------------------
    # Decorators
    # -------------------------------------------------------------------------

    def _is_decorator_head_at(self, index: int) -> bool:
        """Check for '@' immediately followed by a name at index."""
        at = self._token_at(index)
        name = self._token_at(index + 1)
        return at.kind is TokenKind.AT and name.kind in NAME_KINDS and _adjacent(at, name)

    def _is_inline_decorator_at(self, index: int) -> bool:
        """Check for '@name(' with no whitespace in between at index."""
        if not self._is_decorator_head_at(index):
            return False
        name = self._token_at(index + 1)
        paren = self._token_at(index + 2)
        return paren.kind is TokenKind.LPAREN and _adjacent(name, paren)

    def _scan_balanced_parens(self, index: int) -> Optional[int]:
        """Return the index of the ')' matching the '(' at index, if any."""
        depth = 0
        for position in range(index, len(self.tokens)):
            kind = self.tokens[position].kind
            if kind is TokenKind.LPAREN:
                depth += 1
            elif kind is TokenKind.RPAREN:
                depth -= 1
                if depth == 0:
                    return position
        return None

    def _is_decorated_start(self, in_block: bool) -> bool:
        """
        Decide whether the body at the current position is decorated.

        `@name:` always is. `@name(...)` is when the argument list is
        followed by '{', another decorator, or the end of the statement;
        otherwise it is an inline decorator at the head of command text.
        """
        index = self.pos
        while True:
            if not self._is_decorator_head_at(index):
                return False
            if self._token_at(index + 2).kind is TokenKind.COLON:
                return True
            if not self._is_inline_decorator_at(index):
                return False

            close = self._scan_balanced_parens(index + 2)
            if close is None:
                # Unclosed; the decorator production reports it
                return True

            after = self._token_at(close + 1)
            if after.kind in DECORATED_FOLLOW_KINDS:
                return True
            if in_block and after.kind is TokenKind.RBRACE:
                return True
            index = close + 1

    def _parse_decorated_body(self, in_block: bool) -> DecoratedBody:
        """
        Parse a decorated body.

        Grammar:
            DecoratedCommand  := FunctionDecorator (BlockCommand | DecoratedCommand)? SEMICOLON?
                               | BlockDecorator | SimpleDecorator
            BlockDecorator    := AT NAME COLON BlockCommand
            SimpleDecorator   := AT NAME COLON CommandText ContinuationLine*
        """
        at = self._current
        name = self._peek()
        if not self._enter(at):
            head = Span.covering(at.span, name.span)
            decorator = Decorator(
                name.lexeme,
                DecoratorForm.FUNC,
                DecoratorContent((), name.span.end),
                head,
                name.span,
                parenthesized=False,
            )
            return DecoratedBody(decorator, None, head)

        try:
            if self._peek(2).kind is TokenKind.COLON:
                return self._parse_colon_decorated(in_block)
            return self._parse_call_decorated(in_block)
        finally:
            self._leave()

    def _parse_colon_decorated(self, in_block: bool) -> DecoratedBody:
        """Parse `@name: { ... }` or `@name: command text`."""
        at = self._advance()
        name = self._advance()
        self._advance()

        head = Span.covering(at.span, name.span)
        no_args = DecoratorContent((), name.span.end)

        if self._check(TokenKind.LBRACE):
            block = self._parse_block()
            decorator = Decorator(
                name.lexeme, DecoratorForm.BLOCK, no_args, head, name.span, parenthesized=False
            )
            return DecoratedBody(decorator, block, Span.covering(at.span, block.span))

        text, continuations = self._parse_command_lines(in_block)
        simple = SimpleBody(text, continuations, _lines_span(text, continuations))
        decorator = Decorator(
            name.lexeme, DecoratorForm.SIMPLE, no_args, head, name.span, parenthesized=False
        )
        return DecoratedBody(decorator, simple, Span.covering(at.span, simple.span))

    def _parse_call_decorated(self, in_block: bool) -> DecoratedBody:
        """Parse `@name(args)` optionally followed by a block or another decorator."""
        decorator = self._parse_decorator_call()
        if self._panic:
            return DecoratedBody(decorator, None, decorator.span)

        if self._check(TokenKind.LBRACE):
            block = self._parse_block()
            decorator = replace(decorator, form=DecoratorForm.BLOCK)
            return DecoratedBody(decorator, block, Span.covering(decorator.span, block.span))

        if self._is_decorator_head_at(self.pos):
            inner = self._parse_decorated_body(in_block)
            return DecoratedBody(decorator, inner, Span.covering(decorator.span, inner.span))

        return DecoratedBody(decorator, None, decorator.span)

    def _parse_decorator_call(self) -> Decorator:
        """
        Parse a parenthesised decorator.

        Grammar:
            FunctionDecorator := AT NAME LPAREN DecoratorContent RPAREN
        """
        at = self._advance()
        name = self._advance()
        lparen = self._advance()

        args = self._parse_decorator_content(lparen)
        if not self._panic:
            self._expect_closing(TokenKind.RPAREN, lparen, f"arguments of '@{name.lexeme}'")

        return Decorator(
            name.lexeme,
            DecoratorForm.FUNC,
            args,
            Span.covering(at.span, self._previous.span),
            name.span,
        )

    def _parse_decorator_content(self, opening: Token) -> DecoratorContent:
        """
        Parse decorator arguments up to (not including) the closing ')'.

        Grammar:
            DecoratorContent := DecoratorElement*
            DecoratorElement := NestedDecorator | LPAREN DecoratorContent RPAREN
                              | NEWLINE | <any other token>
        """
        if not self._enter(opening):
            return DecoratorContent((), opening.span.end)

        try:
            pieces: list[ContentPiece] = []
            while not self._check(TokenKind.RPAREN, TokenKind.EOF):
                if self._is_inline_decorator_at(self.pos):
                    decorator = self._parse_decorator_call()
                    pieces.append(NestedDecorator(decorator, decorator.span))
                elif self._check(TokenKind.LPAREN):
                    lparen = self._advance()
                    content = self._parse_decorator_content(lparen)
                    if not self._panic:
                        self._expect_closing(TokenKind.RPAREN, lparen, "decorator arguments")
                    span = Span.covering(lparen.span, self._previous.span)
                    pieces.append(ParenGroup(content, span))
                else:
                    pieces.append(self._advance())

                if self._panic:
                    break

            return self.builder.decorator_content(pieces, opening.span)
        finally:
            self._leave()


def _empty_body(at: Span) -> SimpleBody:
    return SimpleBody(CommandText((), at), (), at)


def _lines_span(text: CommandText, continuations: tuple[CommandText, ...]) -> Span:
    if continuations:
        return Span.covering(text.span, continuations[-1].span)
    return text.span


def _trim_blank_lines(items: list[TopLevelItem]) -> list[TopLevelItem]:
    """Drop blank lines before the first and after the last definition."""
    start = 0
    while start < len(items) and isinstance(items[start], BlankLine):
        start += 1
    end = len(items)
    while end > start and isinstance(items[end - 1], BlankLine):
        end -= 1
    return items[start:end]

