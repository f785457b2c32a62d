"""
Document formatting for the devcmd LSP.

Wraps the devcmd formatter to produce LSP text edits.
"""

import logging

from lsprotocol import types

from devcmd.formatter import FormatConfig, format_source
from devcmd.utils.errors import FormatError

logger = logging.getLogger("devcmd-lsp")


class LSPFormatter:
    """Produces whole-document formatting edits."""

    def __init__(self, config: FormatConfig | None = None) -> None:
        self.config = config or FormatConfig()

    def format_document(self, source: str, uri: str = "<input>") -> list[types.TextEdit]:
        """
        Format an entire document.

        Returns:
            A single edit replacing the whole document, or no edits when
            the document is already formatted or has errors
        """
        try:
            formatted = format_source(source, self.config, uri)
        except FormatError as e:
            # Errors are already published as diagnostics
            logger.debug("not formatting %s: %s", uri, e.message)
            return []

        if source == formatted:
            return []

        lines = source.split("\n")
        return [
            types.TextEdit(
                range=types.Range(
                    start=types.Position(line=0, character=0),
                    end=types.Position(line=len(lines) - 1, character=len(lines[-1])),
                ),
                new_text=formatted,
            )
        ]
