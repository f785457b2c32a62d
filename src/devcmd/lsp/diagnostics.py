"""
Diagnostic conversion for the devcmd LSP.

This module turns front-end diagnostics into LSP diagnostics. Front-end
positions are 1-indexed; LSP positions are 0-indexed.
"""

from typing import Optional

from lsprotocol import types

from devcmd.compiler import ParseOptions, parse_text
from devcmd.compiler.source import Span
from devcmd.utils.diagnostics import Diagnostic, Severity

SEVERITY_TO_LSP: dict[Severity, types.DiagnosticSeverity] = {
    Severity.ERROR: types.DiagnosticSeverity.Error,
    Severity.WARNING: types.DiagnosticSeverity.Warning,
}


def span_to_range(span: Span) -> types.Range:
    """Convert a source span to an LSP range."""
    return types.Range(
        start=types.Position(line=max(0, span.start_line - 1), character=max(0, span.start_col - 1)),
        end=types.Position(line=max(0, span.end_line - 1), character=max(0, span.end_col - 1)),
    )


def to_lsp_diagnostic(diagnostic: Diagnostic, uri: str) -> types.Diagnostic:
    """
    Convert a devcmd diagnostic to an LSP diagnostic.

    Notes become related information pointing into the same document;
    help lines are appended to the message.

    Args:
        diagnostic: The front-end diagnostic
        uri: The document URI the diagnostic's spans point into
    """
    message_parts = [diagnostic.message]
    for help_msg in diagnostic.helps:
        message_parts.append(f"help: {help_msg}")

    related = [
        types.DiagnosticRelatedInformation(
            location=types.Location(uri=uri, range=span_to_range(note.span)),
            message=note.message,
        )
        for note in diagnostic.notes
    ]

    return types.Diagnostic(
        range=span_to_range(diagnostic.span),
        message="\n".join(message_parts),
        severity=SEVERITY_TO_LSP[diagnostic.severity],
        source="devcmd",
        code=diagnostic.code_id,
        related_information=related or None,
    )


def get_diagnostics_for_document(
    source: str, uri: str, options: Optional[ParseOptions] = None
) -> list[types.Diagnostic]:
    """Parse a document and return its diagnostics in LSP form."""
    result = parse_text(source, uri, options)
    return [to_lsp_diagnostic(d, uri) for d in result.diagnostics]
