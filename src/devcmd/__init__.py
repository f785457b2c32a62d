"""
devcmd - a declarative language for developer commands.

A devcmd file defines named shell commands, reusable variables, watch/stop
lifecycle variants and decorated bodies. This package provides the
front-end that turns such a file into a typed, validated program tree,
plus the tooling built on it (formatter, CLI, language server).
"""

from devcmd.compiler import ParseOptions, ParseResult, parse, parse_file, parse_text
from devcmd.compiler.ast_nodes import Program
from devcmd.compiler.lexer import Lexer
from devcmd.compiler.parser import Parser
from devcmd.compiler.source import SourceFile

__version__ = "0.1.0"
__all__ = [
    "parse",
    "parse_text",
    "parse_file",
    "ParseOptions",
    "ParseResult",
    "SourceFile",
    "Lexer",
    "Parser",
    "Program",
]
