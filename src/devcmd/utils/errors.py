"""
Exception types for devcmd.

Parsing never raises for bad input; problems in a devcmd file are reported
as diagnostics. Exceptions are reserved for misuse of the API and for
configuration that cannot be loaded.
"""

from typing import Optional


class DevcmdError(Exception):
    """Base exception for all devcmd errors."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.path:
            return f"[{self.path}] {self.message}"
        return self.message


class ConfigError(DevcmdError):
    """Raised when parse options or a configuration file are invalid."""

    pass


class FormatError(DevcmdError):
    """Raised when a file cannot be formatted because it does not parse cleanly."""

    pass
