"""
AST builder for devcmd command text and decorator arguments.

The parser hands the builder the pieces of one line of command text, or of
one decorator argument list, in source order: raw tokens plus the nodes it
already built for nested decorators. The builder folds them into
CommandText / DecoratorContent nodes:

- Literal text is sliced from the source between structural elements, so
  the whitespace the lexer put on the hidden channel is kept verbatim
  inside a line.
- Escape tokens become EscapedChar nodes carrying the escaped character.
- $(NAME) and $NAME stay structural as VarRef / ShellVarRef.
"""

from typing import Optional, Sequence, Union

from devcmd.compiler.ast_nodes import (
    CommandText,
    CommandTextElement,
    DecoratorContent,
    DecoratorElement,
    EscapedChar,
    InlineDecorator,
    Literal,
    NestedDecorator,
    Newline,
    ParenGroup,
    ShellVarRef,
    TextRun,
    VarRef,
)
from devcmd.compiler.source import SourceFile, Span
from devcmd.compiler.tokens import Token, TokenKind

TextPiece = Union[Token, InlineDecorator]
ContentPiece = Union[Token, NestedDecorator, ParenGroup]


class ASTBuilder:
    """
    Folds parser pieces into command text and decorator content nodes.

    Usage:
        builder = ASTBuilder(source)
        text = builder.command_text(pieces, at=colon.span.end)
    """

    def __init__(self, source: SourceFile) -> None:
        self.source = source

    def command_text(
        self,
        pieces: Sequence[TextPiece],
        at: Span,
        end: Optional[Span] = None,
    ) -> CommandText:
        """
        Build one line of command text.

        Args:
            pieces: Tokens and inline decorators of the line, in order
            at: Where an empty line is located
            end: A continuation backslash ending the line; whitespace
                before it stays part of the text

        Returns:
            The CommandText node
        """
        if not pieces:
            return CommandText((), at.start)

        elements: list[CommandTextElement] = []
        cursor = pieces[0].span.start

        for piece in pieces:
            node = self._structural(piece)
            if node is None:
                continue
            self._flush_literal(elements, cursor, piece.span)
            elements.append(node)
            cursor = piece.span.end

        last = end.start if end is not None else pieces[-1].span.end
        self._flush_literal(elements, cursor, last)

        return CommandText(tuple(elements), Span.covering(pieces[0].span, last))

    def _structural(self, piece: TextPiece) -> Optional[CommandTextElement]:
        """The node for a piece that is not plain text, or None."""
        if isinstance(piece, InlineDecorator):
            return piece
        if piece.kind is TokenKind.VAR_REF:
            return VarRef(piece.value or "", piece.span)
        if piece.kind is TokenKind.SHELL_VAR:
            return ShellVarRef(piece.value or "", piece.span)
        if piece.is_escape:
            return EscapedChar(piece.value or "", piece.span)
        return None

    def _flush_literal(
        self, elements: list[CommandTextElement], cursor: Span, until: Span
    ) -> None:
        span = Span.gap(cursor, until)
        if span.is_empty:
            return
        elements.append(Literal(self.source.text_at(span), span))

    def decorator_content(self, pieces: Sequence[ContentPiece], at: Span) -> DecoratorContent:
        """
        Build the argument content of a decorator.

        Contiguous text tokens form one TextRun covering the source from the
        first to the last token of the run; NEWLINE tokens become Newline
        elements.
        """
        elements: list[DecoratorElement] = []
        run: list[Token] = []

        for piece in pieces:
            if isinstance(piece, Token) and piece.kind is not TokenKind.NEWLINE:
                run.append(piece)
                continue
            self._flush_run(elements, run)
            if isinstance(piece, Token):
                elements.append(Newline(piece.span))
            else:
                elements.append(piece)

        self._flush_run(elements, run)

        if not pieces:
            return DecoratorContent((), at.end)
        return DecoratorContent(tuple(elements), Span.covering(pieces[0].span, pieces[-1].span))

    def _flush_run(self, elements: list[DecoratorElement], run: list[Token]) -> None:
        if not run:
            return
        span = Span.covering(run[0].span, run[-1].span)
        elements.append(TextRun(self.source.text_at(span), span))
        run.clear()
