"""
Structured diagnostics for devcmd.

Diagnostics are plain data: a severity, a stable machine-readable code, a
message, the span they point at, and optional notes (secondary spans with
messages) and help lines. The lexer, parser and semantic checker append
them to a shared DiagnosticSink in emission order; nothing in the pipeline
raises for bad input.

Example:
    sink = DiagnosticSink()
    sink.error(DiagnosticCode.DUPLICATE_VARIABLE, "variable 'X' is defined twice", span)
        .note(first_span, "first defined here")
        .emit()
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable

from devcmd.compiler.source import Span


# =============================================================================
# Diagnostic Codes Catalog
# =============================================================================


class DiagnosticCode(str, Enum):
    """
    Stable diagnostic codes.

    The value is the machine-readable name. CODE_IDS maps each code to its
    catalogue id:
    - E01xx: Lexical errors
    - E02xx: Syntax errors
    - E03xx: Semantic errors
    - W03xx: Warnings
    """

    LEX_ERROR = "LexError"
    PARSE_ERROR = "ParseError"
    DUPLICATE_VARIABLE = "DuplicateVariable"
    DUPLICATE_COMMAND = "DuplicateCommand"
    UNKNOWN_DECORATOR = "UnknownDecorator"
    ORPHAN_LIFECYCLE = "OrphanLifecycle"
    UNDEFINED_VARIABLE = "UndefinedVariable"
    INPUT_TOO_LARGE = "InputTooLarge"

    def __str__(self) -> str:
        return self.value


CODE_IDS: dict[DiagnosticCode, str] = {
    DiagnosticCode.LEX_ERROR: "E0101",
    DiagnosticCode.INPUT_TOO_LARGE: "E0102",
    DiagnosticCode.PARSE_ERROR: "E0201",
    DiagnosticCode.DUPLICATE_VARIABLE: "E0301",
    DiagnosticCode.DUPLICATE_COMMAND: "E0302",
    DiagnosticCode.UNKNOWN_DECORATOR: "E0303",
    DiagnosticCode.ORPHAN_LIFECYCLE: "W0301",
    DiagnosticCode.UNDEFINED_VARIABLE: "W0302",
}

# Code descriptions for documentation
CODE_DESCRIPTIONS: dict[DiagnosticCode, str] = {
    DiagnosticCode.LEX_ERROR: "illegal character, unterminated string or stray carriage return",
    DiagnosticCode.INPUT_TOO_LARGE: "input exceeds the configured size budget",
    DiagnosticCode.PARSE_ERROR: "token does not fit the grammar here",
    DiagnosticCode.DUPLICATE_VARIABLE: "variable defined more than once",
    DiagnosticCode.DUPLICATE_COMMAND: "command defined more than once",
    DiagnosticCode.UNKNOWN_DECORATOR: "decorator is not in the allow-list",
    DiagnosticCode.ORPHAN_LIFECYCLE: "watch/stop command without a plain command",
    DiagnosticCode.UNDEFINED_VARIABLE: "reference to an undefined variable",
}


# =============================================================================
# Diagnostic Types
# =============================================================================


class Severity(Enum):
    """Severity level of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Note:
    """A secondary span with a message, attached to a diagnostic."""

    span: Span
    message: str


@dataclass(frozen=True)
class Diagnostic:
    """
    A structured error or warning.

    Attributes:
        severity: ERROR or WARNING
        code: Stable machine-readable code
        message: Human-readable message
        span: The primary source span
        notes: Secondary spans with messages
        helps: Free-text hints, e.g. spelling suggestions
    """

    severity: Severity
    code: DiagnosticCode
    message: str
    span: Span
    notes: tuple[Note, ...] = ()
    helps: tuple[str, ...] = ()

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    @property
    def code_id(self) -> str:
        """The catalogue id of this diagnostic's code (e.g. "E0201")."""
        return CODE_IDS[self.code]

    def promoted(self) -> "Diagnostic":
        """Return this diagnostic with warning severity raised to error."""
        if self.severity is Severity.ERROR:
            return self
        return replace(self, severity=Severity.ERROR)

    def to_simple_message(self) -> str:
        """Get a one-line message: "3:5: error[ParseError]: ..."."""
        return f"{self.span}: {self.severity.value}[{self.code.value}]: {self.message}"

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "id": self.code_id,
            "message": self.message,
            "span": self.span.to_dict(),
            "notes": [{"span": n.span.to_dict(), "message": n.message} for n in self.notes],
            "helps": list(self.helps),
        }


# =============================================================================
# Diagnostic Builder (Fluent API)
# =============================================================================


class DiagnosticBuilder:
    """
    Fluent builder for constructing Diagnostic objects.

        sink.error(DiagnosticCode.PARSE_ERROR, "expected ';'", span)
            .note(open_span, "command starts here")
            .help("terminate the command with ';'")
            .emit()
    """

    def __init__(
        self,
        sink: "DiagnosticSink",
        code: DiagnosticCode,
        severity: Severity,
        message: str,
        span: Span,
    ) -> None:
        self._sink = sink
        self._code = code
        self._severity = severity
        self._message = message
        self._span = span
        self._notes: list[Note] = []
        self._helps: list[str] = []

    def note(self, span: Span, message: str) -> "DiagnosticBuilder":
        """Add a note pointing at a secondary span."""
        self._notes.append(Note(span, message))
        return self

    def help(self, message: str) -> "DiagnosticBuilder":
        """Add a help message."""
        self._helps.append(message)
        return self

    def build(self) -> Diagnostic:
        """Build the diagnostic without emitting."""
        return Diagnostic(
            severity=self._severity,
            code=self._code,
            message=self._message,
            span=self._span,
            notes=tuple(self._notes),
            helps=tuple(self._helps),
        )

    def emit(self) -> Diagnostic:
        """Build the diagnostic and append it to the sink."""
        diagnostic = self.build()
        self._sink.add(diagnostic)
        return diagnostic


# =============================================================================
# Diagnostic Sink
# =============================================================================


class DiagnosticSink:
    """
    Ordered collection of diagnostics for one parse.

    Usage:
        sink = DiagnosticSink()
        sink.error(DiagnosticCode.LEX_ERROR, "unexpected character", span).emit()
        for diagnostic in sink.diagnostics:
            ...
    """

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def __len__(self) -> int:
        return len(self.diagnostics)

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic to the collection."""
        self.diagnostics.append(diagnostic)

    def error(self, code: DiagnosticCode, message: str, span: Span) -> DiagnosticBuilder:
        """Create an error diagnostic builder."""
        return DiagnosticBuilder(self, code, Severity.ERROR, message, span)

    def warning(self, code: DiagnosticCode, message: str, span: Span) -> DiagnosticBuilder:
        """Create a warning diagnostic builder."""
        return DiagnosticBuilder(self, code, Severity.WARNING, message, span)

    def promote_warnings(self) -> None:
        """Raise every warning to error severity, keeping emission order."""
        self.diagnostics = [d.promoted() for d in self.diagnostics]


# =============================================================================
# String Similarity (Levenshtein Distance)
# =============================================================================


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate the Levenshtein (edit) distance between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        The minimum number of single-character edits to turn s1 into s2
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def suggest_similar(
    name: str,
    candidates: Iterable[str],
    max_distance: int = 2,
    max_suggestions: int = 3,
) -> list[str]:
    """
    Find similar names from a collection of candidates.

    Used for "did you mean?" hints on unknown decorator names.

    Args:
        name: The name to find suggestions for
        candidates: Valid names to compare against
        max_distance: Maximum edit distance to consider
        max_suggestions: Maximum number of suggestions to return

    Returns:
        Similar names, closest first, ties broken alphabetically
    """
    scored = []
    for candidate in candidates:
        if candidate == name or abs(len(candidate) - len(name)) > max_distance:
            continue
        distance = levenshtein_distance(name.lower(), candidate.lower())
        if distance <= max_distance:
            scored.append((candidate, distance))

    scored.sort(key=lambda x: (x[1], x[0]))
    return [candidate for candidate, _ in scored[:max_suggestions]]
