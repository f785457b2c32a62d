"""
Document symbols for the devcmd LSP.

Variables and commands become top-level outline entries; the statements
of a block-bodied command are listed under it.
"""

from typing import Optional

from lsprotocol import types

from devcmd.compiler.ast_nodes import (
    BlockBody,
    BlockStatement,
    CommandBody,
    CommandDef,
    DecoratedBody,
    Modifier,
    PlainCommand,
    Program,
    SimpleBody,
    VariableDef,
)
from devcmd.lsp.diagnostics import span_to_range

# Map command modifiers to LSP symbol kinds
MODIFIER_TO_LSP: dict[Modifier, types.SymbolKind] = {
    Modifier.NONE: types.SymbolKind.Function,
    Modifier.WATCH: types.SymbolKind.Event,
    Modifier.STOP: types.SymbolKind.Event,
}


def describe_body(body: Optional[CommandBody]) -> str:
    """Short description of a command body for the outline."""
    if body is None:
        return ""
    if isinstance(body, SimpleBody):
        return body.joined()
    if isinstance(body, BlockBody):
        count = len(body.statements)
        return f"{{ {count} statement{'s' if count != 1 else ''} }}"
    chain = " ".join(decorator.signature for decorator in body.decorators())
    inner = describe_body(body.innermost)
    return f"{chain} {inner}" if inner else chain


def _block_of(body: CommandBody) -> Optional[BlockBody]:
    if isinstance(body, DecoratedBody):
        inner = body.innermost
        return inner if isinstance(inner, BlockBody) else None
    return body if isinstance(body, BlockBody) else None


def statement_symbol(statement: BlockStatement) -> types.DocumentSymbol:
    if isinstance(statement, PlainCommand):
        name = statement.joined() or "(empty)"
        kind = types.SymbolKind.Method
    else:
        name = " ".join(decorator.signature for decorator in statement.decorators())
        kind = types.SymbolKind.Property
    range_ = span_to_range(statement.span)
    return types.DocumentSymbol(name=name, kind=kind, range=range_, selection_range=range_)


def variable_symbol(variable: VariableDef) -> types.DocumentSymbol:
    return types.DocumentSymbol(
        name=variable.name,
        kind=types.SymbolKind.Variable,
        range=span_to_range(variable.span),
        selection_range=span_to_range(variable.name_span),
        detail=variable.value.text,
    )


def command_symbol(command: CommandDef) -> types.DocumentSymbol:
    """Outline entry for a command, with its block statements as children."""
    block = _block_of(command.body)
    children = [statement_symbol(s) for s in block.statements] if block is not None else []
    return types.DocumentSymbol(
        name=command.qualified_name,
        kind=MODIFIER_TO_LSP[command.modifier],
        range=span_to_range(command.span),
        selection_range=span_to_range(command.name_span),
        detail=describe_body(command.body),
        children=children or None,
    )


def document_symbols(program: Program) -> list[types.DocumentSymbol]:
    """All outline entries of a program, in source order."""
    symbols = []
    for item in program.items:
        # Recovery nodes for a half-typed `def` or `watch` have no name yet
        if isinstance(item, VariableDef) and item.name:
            symbols.append(variable_symbol(item))
        elif isinstance(item, CommandDef) and item.name:
            symbols.append(command_symbol(item))
    return symbols
