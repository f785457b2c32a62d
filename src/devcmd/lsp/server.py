"""
devcmd Language Server Protocol (LSP) Server.

This module implements an LSP server for devcmd files using pygls. It
provides:

- Document synchronization (open, change, save, close)
- Diagnostics (errors, warnings)
- Go-to-definition and find-references for $(NAME) variable references
- Document symbols (outline)
- Document formatting

Usage:
    # Start the server in stdio mode (for IDE integration)
    devcmd-lsp

    # Start in TCP mode (for debugging)
    devcmd-lsp --tcp --port 2087
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from devcmd import __version__
from devcmd.compiler import ParseOptions
from devcmd.config import load_options
from devcmd.lsp.analyzer import DocumentAnalyzer
from devcmd.lsp.formatting import LSPFormatter
from devcmd.utils.errors import ConfigError

logger = logging.getLogger("devcmd-lsp")


class DevcmdLanguageServer(LanguageServer):
    """
    Language Server Protocol implementation for devcmd.

    Keeps one analyzer per open document and re-parses on every change.
    """

    def __init__(self) -> None:
        super().__init__(
            name="devcmd-lsp",
            version=f"v{__version__}",
        )

        # Document analyzers cache (uri -> analyzer)
        self._analyzers: dict[str, DocumentAnalyzer] = {}

        self._formatter = LSPFormatter()

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register all LSP request and notification handlers."""
        # Document synchronization
        self.feature(types.TEXT_DOCUMENT_DID_OPEN)(self._on_did_open)
        self.feature(types.TEXT_DOCUMENT_DID_CHANGE)(self._on_did_change)
        self.feature(types.TEXT_DOCUMENT_DID_SAVE)(self._on_did_save)
        self.feature(types.TEXT_DOCUMENT_DID_CLOSE)(self._on_did_close)

        self.feature(types.TEXT_DOCUMENT_DEFINITION)(self._on_definition)
        self.feature(types.TEXT_DOCUMENT_REFERENCES)(self._on_references)
        self.feature(types.TEXT_DOCUMENT_DOCUMENT_SYMBOL)(self._on_document_symbol)
        self.feature(types.TEXT_DOCUMENT_FORMATTING)(self._on_formatting)

    def _options_for(self, path: Optional[str]) -> Optional[ParseOptions]:
        """Parse options from the configuration next to a document."""
        if not path:
            return None
        try:
            return load_options(Path(path).parent)
        except ConfigError as e:
            logger.warning("ignoring configuration for %s: %s", path, e)
            return None

    def _analyze_document(self, uri: str) -> Optional[DocumentAnalyzer]:
        """Analyze the current text of a document and cache the result."""
        doc = self.workspace.get_text_document(uri)
        if doc is None:
            return None

        analyzer = DocumentAnalyzer(doc.source, uri, self._options_for(doc.path))
        analyzer.analyze()
        self._analyzers[uri] = analyzer
        return analyzer

    def _get_analyzer(self, uri: str) -> Optional[DocumentAnalyzer]:
        return self._analyzers.get(uri) or self._analyze_document(uri)

    def _publish_diagnostics(self, uri: str, diagnostics: list[types.Diagnostic]) -> None:
        """Publish diagnostics to the client."""
        self.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
        )

    def _refresh(self, uri: str) -> None:
        analyzer = self._analyze_document(uri)
        if analyzer is not None:
            self._publish_diagnostics(uri, analyzer.diagnostics)

    # =========================================================================
    # Document Synchronization
    # =========================================================================

    def _on_did_open(self, params: types.DidOpenTextDocumentParams) -> None:
        """Handle document open notification."""
        uri = params.text_document.uri
        logger.info("Document opened: %s", uri)
        self._refresh(uri)

    def _on_did_change(self, params: types.DidChangeTextDocumentParams) -> None:
        """Handle document change notification."""
        uri = params.text_document.uri
        logger.debug("Document changed: %s", uri)
        self._refresh(uri)

    def _on_did_save(self, params: types.DidSaveTextDocumentParams) -> None:
        """Handle document save notification."""
        uri = params.text_document.uri
        logger.info("Document saved: %s", uri)
        self._refresh(uri)

    def _on_did_close(self, params: types.DidCloseTextDocumentParams) -> None:
        """Handle document close notification."""
        uri = params.text_document.uri
        logger.info("Document closed: %s", uri)

        self._analyzers.pop(uri, None)
        self._publish_diagnostics(uri, [])

    # =========================================================================
    # Navigation
    # =========================================================================

    def _on_definition(self, params: types.DefinitionParams) -> Optional[types.Location]:
        """Handle go-to-definition request."""
        analyzer = self._get_analyzer(params.text_document.uri)
        if analyzer is None:
            return None
        return analyzer.get_definition(params.position.line, params.position.character)

    def _on_references(self, params: types.ReferenceParams) -> Optional[list[types.Location]]:
        """Handle find-references request."""
        analyzer = self._get_analyzer(params.text_document.uri)
        if analyzer is None:
            return None
        return analyzer.get_references(
            params.position.line,
            params.position.character,
            params.context.include_declaration,
        )

    def _on_document_symbol(
        self, params: types.DocumentSymbolParams
    ) -> Optional[list[types.DocumentSymbol]]:
        """Handle document symbols request (for outline view)."""
        analyzer = self._get_analyzer(params.text_document.uri)
        if analyzer is None:
            return None
        return analyzer.get_document_symbols()

    # =========================================================================
    # Formatting
    # =========================================================================

    def _on_formatting(
        self, params: types.DocumentFormattingParams
    ) -> Optional[list[types.TextEdit]]:
        """Handle document formatting request."""
        uri = params.text_document.uri
        doc = self.workspace.get_text_document(uri)
        if doc is None:
            return None
        return self._formatter.format_document(doc.source, uri)


def create_server() -> DevcmdLanguageServer:
    """Create and configure a devcmd language server instance."""
    server = DevcmdLanguageServer()

    @server.feature(types.INITIALIZED)
    def on_initialized(
        params: types.InitializedParams,  # noqa: ARG001
    ) -> None:
        """Handle initialized notification."""
        logger.info("devcmd Language Server initialized successfully")

    return server


def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the devcmd language server.

    Starts the server in stdio mode unless --tcp is given.
    """
    parser = argparse.ArgumentParser(
        description="devcmd Language Server",
        prog="devcmd-lsp",
    )
    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Start server in TCP mode instead of stdio",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to in TCP mode (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="Port to listen on in TCP mode (default: 2087)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging level (default: info)",
    )

    args = parser.parse_args(argv)

    # Logs go to stderr; stdout carries the protocol in stdio mode
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.setLevel(getattr(logging, args.log_level.upper()))

    server = create_server()

    if args.tcp:
        logger.info("Starting devcmd LSP in TCP mode on %s:%s", args.host, args.port)
        server.start_tcp(args.host, args.port)
    else:
        logger.info("Starting devcmd LSP in stdio mode")
        server.start_io()


if __name__ == "__main__":
    main()
