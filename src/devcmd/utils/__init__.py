"""Utility modules for devcmd."""

from devcmd.utils.diagnostics import (
    Diagnostic,
    DiagnosticCode,
    DiagnosticSink,
    Note,
    Severity,
)
from devcmd.utils.errors import ConfigError, DevcmdError, FormatError

__all__ = [
    "Diagnostic",
    "DiagnosticCode",
    "DiagnosticSink",
    "Note",
    "Severity",
    "ConfigError",
    "DevcmdError",
    "FormatError",
]
