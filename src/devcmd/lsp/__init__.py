"""
Language Server Protocol support for devcmd.

Provides diagnostics, document symbols, go-to-definition and formatting
for devcmd files in any LSP-capable editor.
"""

from devcmd.lsp.analyzer import DocumentAnalyzer
from devcmd.lsp.diagnostics import get_diagnostics_for_document, to_lsp_diagnostic
from devcmd.lsp.formatting import LSPFormatter

__all__ = [
    "DocumentAnalyzer",
    "LSPFormatter",
    "get_diagnostics_for_document",
    "to_lsp_diagnostic",
]
