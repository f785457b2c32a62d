"""
Terminal rendering of devcmd diagnostics.

Produces Rust-style reports:

    error[E0201]: expected ';' at end of command, found newline
      --> commands.cli:2:16
       |
     2 | build: make all
       |                ^
       |
       = help: ...
"""

from dataclasses import dataclass
from typing import Iterable

from devcmd.compiler.source import SourceFile, Span
from devcmd.utils.diagnostics import Diagnostic, Severity

RESET = "\033[0m"
BOLD = "\033[1m"
BLUE = "\033[94m"
GREEN = "\033[92m"

SEVERITY_COLORS: dict[Severity, str] = {
    Severity.ERROR: "\033[91m",  # Red
    Severity.WARNING: "\033[93m",  # Yellow
}


@dataclass(frozen=True, slots=True)
class _Label:
    span: Span
    message: str
    is_primary: bool


def render_diagnostic(diagnostic: Diagnostic, source: SourceFile, use_color: bool = True) -> str:
    """
    Render a diagnostic as a formatted string.

    Args:
        diagnostic: The diagnostic to render
        source: The file the diagnostic's spans point into
        use_color: Whether to use ANSI color codes

    Returns:
        A formatted multi-line string
    """
    lines: list[str] = []

    reset = RESET if use_color else ""
    bold = BOLD if use_color else ""
    blue = BLUE if use_color else ""
    green = GREEN if use_color else ""
    level_color = SEVERITY_COLORS[diagnostic.severity] if use_color else ""

    # Header line: error[E0301]: variable 'X' is defined more than once
    level = diagnostic.severity.value
    lines.append(
        f"{level_color}{bold}{level}[{diagnostic.code_id}]{reset}: {bold}{diagnostic.message}{reset}"
    )

    # Location line: --> commands.cli:3:1
    span = diagnostic.span
    lines.append(f"  {blue}-->{reset} {source.name}:{span.start_line}:{span.start_col}")

    labels = [_Label(span, "", True)]
    labels.extend(_Label(note.span, note.message, False) for note in diagnostic.notes)

    labels_by_line: dict[int, list[_Label]] = {}
    for label in labels:
        labels_by_line.setdefault(label.span.start_line, []).append(label)

    lines.append(f"    {blue}|{reset}")
    for line_num in sorted(labels_by_line):
        if not 1 <= line_num <= source.line_count:
            continue
        source_line = source.line_text(line_num)
        lines.append(f"{blue}{line_num:3} |{reset} {source_line}")

        for label in labels_by_line[line_num]:
            underline_char = "^" if label.is_primary else "-"
            underline_color = level_color if label.is_primary else blue

            padding = " " * (label.span.start_col - 1)
            underline = underline_char * _underline_width(label.span, source_line)

            underline_line = f"    {blue}|{reset} {padding}{underline_color}{underline}{reset}"
            if label.message:
                underline_line += f" {underline_color}{label.message}{reset}"
            lines.append(underline_line)
    lines.append(f"    {blue}|{reset}")

    for help_msg in diagnostic.helps:
        lines.append(f"    {blue}={reset} {green}help:{reset} {help_msg}")

    return "\n".join(lines)


def _underline_width(span: Span, source_line: str) -> int:
    if span.is_multiline:
        return max(1, len(source_line) - span.start_col + 1)
    return max(1, span.end_col - span.start_col)


def render_all(
    diagnostics: Iterable[Diagnostic], source: SourceFile, use_color: bool = True
) -> str:
    """Render all diagnostics as a single string."""
    return "\n\n".join(render_diagnostic(d, source, use_color) for d in diagnostics)


def render_summary(diagnostics: list[Diagnostic], use_color: bool = True) -> str:
    """One-line summary such as "2 errors, 1 warning"."""
    errors = sum(1 for d in diagnostics if d.is_error)
    warnings = len(diagnostics) - errors
    parts = []
    if errors:
        parts.append(f"{errors} error{'s' if errors != 1 else ''}")
    if warnings:
        parts.append(f"{warnings} warning{'s' if warnings != 1 else ''}")
    if not parts:
        return "no problems found"
    text = ", ".join(parts)
    if use_color:
        color = SEVERITY_COLORS[Severity.ERROR if errors else Severity.WARNING]
        return f"{color}{BOLD}{text}{RESET}"
    return text
