"""
Document analysis for the devcmd LSP.

A DocumentAnalyzer parses one open document and answers position-based
queries against the result. LSP positions are 0-indexed; character
offsets are taken as code points within the line.
"""

import logging
from typing import Optional

from lsprotocol import types

from devcmd.compiler import ParseOptions, ParseResult, parse
from devcmd.compiler.ast_nodes import VarRef, walk
from devcmd.compiler.source import SourceFile
from devcmd.lsp.diagnostics import span_to_range, to_lsp_diagnostic
from devcmd.lsp.symbols import document_symbols

logger = logging.getLogger("devcmd-lsp")


class DocumentAnalyzer:
    """Parses a document and answers symbol and definition queries."""

    def __init__(self, text: str, uri: str, options: Optional[ParseOptions] = None) -> None:
        self.uri = uri
        self.source = SourceFile(uri, text)
        self.options = options
        self.result: Optional[ParseResult] = None

    def analyze(self) -> ParseResult:
        """Parse the document; later queries use this result."""
        self.result = parse(self.source, self.options)
        logger.debug("analyzed %s: %d diagnostic(s)", self.uri, len(self.result.diagnostics))
        return self.result

    def _ensure(self) -> ParseResult:
        if self.result is None:
            return self.analyze()
        return self.result

    @property
    def diagnostics(self) -> list[types.Diagnostic]:
        return [to_lsp_diagnostic(d, self.uri) for d in self._ensure().diagnostics]

    def get_document_symbols(self) -> list[types.DocumentSymbol]:
        return document_symbols(self._ensure().program)

    def reference_at(self, line: int, character: int) -> Optional[VarRef]:
        """The $(NAME) reference under a 0-indexed position, if any."""
        offset = self.source.offset_at(line + 1, character + 1)
        for node in walk(self._ensure().program):
            if isinstance(node, VarRef) and node.span.contains(offset):
                return node
        return None

    def get_definition(self, line: int, character: int) -> Optional[types.Location]:
        """Location of the variable a $(NAME) reference points to."""
        ref = self.reference_at(line, character)
        if ref is None:
            return None
        variable = self._ensure().program.variable(ref.name)
        if variable is None:
            return None
        return types.Location(uri=self.uri, range=span_to_range(variable.name_span))

    def get_references(
        self, line: int, character: int, include_declaration: bool = True
    ) -> list[types.Location]:
        """Every $(NAME) reference to the variable under a position."""
        ref = self.reference_at(line, character)
        program = self._ensure().program
        if ref is None:
            return []

        locations = []
        if include_declaration:
            for variable in program.variables:
                if variable.name == ref.name:
                    locations.append(
                        types.Location(uri=self.uri, range=span_to_range(variable.name_span))
                    )
        for node in walk(program):
            if isinstance(node, VarRef) and node.name == ref.name:
                locations.append(types.Location(uri=self.uri, range=span_to_range(node.span)))
        return locations
