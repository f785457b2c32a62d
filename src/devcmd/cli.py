"""
devcmd Command-Line Interface.

Provides commands to check, inspect and format devcmd files.

Usage:
    devcmd check commands.cli          # Report errors and warnings
    devcmd tokens commands.cli         # Dump the token stream
    devcmd ast commands.cli            # Dump the program tree as JSON
    devcmd fmt commands.cli            # Print the formatted file
    devcmd fmt --check commands.cli    # Exit 1 if a file needs formatting
    devcmd list commands.cli           # List commands and lifecycles
"""

import argparse
import io
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from devcmd import __version__
from devcmd.compiler import ParseOptions, ParseResult, parse_file
from devcmd.compiler.ast_nodes import Modifier, to_dict
from devcmd.compiler.lexer import Lexer
from devcmd.compiler.options import BUILTIN_DECORATORS
from devcmd.compiler.source import SourceFile
from devcmd.config import load_config, load_options
from devcmd.formatter import check_format, format_source, get_diff
from devcmd.render import render_all, render_summary
from devcmd.utils.errors import DevcmdError

logger = logging.getLogger("devcmd")


class Colors:
    """ANSI escape codes for colored terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"

    BOLD = "\033[1m"
    DIM = "\033[2m"

    RESET = "\033[0m"

    @classmethod
    def disable(cls) -> None:
        """Disable all colors (for non-TTY output)."""
        cls.RED = ""
        cls.GREEN = ""
        cls.YELLOW = ""
        cls.BLUE = ""
        cls.CYAN = ""
        cls.GRAY = ""
        cls.BOLD = ""
        cls.DIM = ""
        cls.RESET = ""


def _init_colors() -> None:
    """Initialize colors based on terminal capabilities."""
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        Colors.disable()


_init_colors()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="devcmd",
        description="devcmd - check, inspect and format developer command files",
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: nearest devcmd.toml or pyproject.toml)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as errors",
    )
    parser.add_argument(
        "--known-decorators",
        default=None,
        metavar="NAMES",
        help="Comma-separated list of accepted decorator names",
    )
    parser.add_argument(
        "--builtin-decorators",
        action="store_true",
        help="Accept only the decorators provided by the devcmd runtime",
    )
    parser.add_argument(
        "--max-bytes",
        type=int,
        default=None,
        help="Skip files larger than this many bytes",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser(
        "check",
        help="Check devcmd files for errors",
    )
    check_parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="devcmd files to check",
    )

    tokens_parser = subparsers.add_parser(
        "tokens",
        help="Show the tokens of a file (debug)",
    )
    tokens_parser.add_argument("input", type=Path, help="devcmd file")
    tokens_parser.add_argument(
        "--all",
        action="store_true",
        help="Include hidden tokens (whitespace, comments)",
    )

    ast_parser = subparsers.add_parser(
        "ast",
        help="Show the program tree of a file as JSON (debug)",
    )
    ast_parser.add_argument("input", type=Path, help="devcmd file")
    ast_parser.add_argument(
        "--no-spans",
        action="store_true",
        help="Leave source spans out of the output",
    )

    fmt_parser = subparsers.add_parser(
        "fmt",
        aliases=["format"],
        help="Format devcmd files",
    )
    fmt_parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="devcmd files to format",
    )
    fmt_mode = fmt_parser.add_mutually_exclusive_group()
    fmt_mode.add_argument(
        "--check",
        action="store_true",
        help="Check if files are formatted (exit 1 if not)",
    )
    fmt_mode.add_argument(
        "--diff",
        action="store_true",
        help="Show the changes formatting would make",
    )
    fmt_mode.add_argument(
        "-w",
        "--write",
        action="store_true",
        help="Rewrite files in place",
    )

    list_parser = subparsers.add_parser(
        "list",
        aliases=["ls"],
        help="List the commands defined in a file",
    )
    list_parser.add_argument("input", type=Path, help="devcmd file")

    return parser


def _resolve_options(args: argparse.Namespace, input_path: Path) -> ParseOptions:
    """Combine the configuration file with command-line overrides."""
    if args.config is not None:
        options = load_config(args.config)
    else:
        options = load_options(input_path.parent)

    known = options.known_decorators
    if args.builtin_decorators:
        known = BUILTIN_DECORATORS
    if args.known_decorators is not None:
        names = [name.strip() for name in args.known_decorators.split(",") if name.strip()]
        known = (known or frozenset()) | frozenset(name.lstrip("@") for name in names)

    return ParseOptions(
        known_decorators=known,
        strict=options.strict or args.strict,
        max_input_bytes=args.max_bytes if args.max_bytes is not None else options.max_input_bytes,
    )


def _parse_input(args: argparse.Namespace, input_path: Path) -> ParseResult:
    return parse_file(input_path, _resolve_options(args, input_path))


def _use_color(args: argparse.Namespace) -> bool:
    return not args.no_color and sys.stderr.isatty() and not os.environ.get("NO_COLOR")


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the check command."""
    exit_code = 0
    use_color = _use_color(args)

    for input_path in args.inputs:
        if not input_path.is_file():
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            exit_code = 1
            continue

        try:
            result = _parse_input(args, input_path)
        except DevcmdError as e:
            print(f"{Colors.RED}Error:{Colors.RESET} {e}", file=sys.stderr)
            exit_code = 1
            continue

        if result.diagnostics:
            print(render_all(result.diagnostics, result.source, use_color), file=sys.stderr)
            print(file=sys.stderr)
            print(
                f"{input_path}: {render_summary(result.diagnostics, use_color)}",
                file=sys.stderr,
            )
        if result.has_errors:
            exit_code = 1
        elif not result.diagnostics:
            print(f"{Colors.GREEN}OK:{Colors.RESET} {input_path}")

    return exit_code


def cmd_tokens(args: argparse.Namespace) -> int:
    """Handle the tokens command (debug)."""
    input_path: Path = args.input

    if not input_path.is_file():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    source = SourceFile(str(input_path), input_path.read_bytes())
    lexer = Lexer(source)
    tokens = lexer.tokenize()

    for token in tokens:
        if token.is_hidden and not args.all:
            continue
        print(token)

    return 1 if lexer.diagnostics else 0


def cmd_ast(args: argparse.Namespace) -> int:
    """Handle the ast command (debug)."""
    input_path: Path = args.input

    if not input_path.is_file():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    try:
        result = _parse_input(args, input_path)
    except DevcmdError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    tree = to_dict(result.program, include_spans=not args.no_spans)
    print(json.dumps(tree, indent=2, ensure_ascii=False))

    if result.has_errors:
        print(render_all(result.errors, result.source, _use_color(args)), file=sys.stderr)
        return 1
    return 0


def cmd_fmt(args: argparse.Namespace) -> int:
    """Handle the fmt command - format source files."""
    exit_code = 0

    for filepath in args.inputs:
        if not filepath.is_file():
            print(f"Error: File not found: {filepath}", file=sys.stderr)
            exit_code = 1
            continue

        try:
            options = _resolve_options(args, filepath)
            source = filepath.read_bytes().decode("utf-8", "surrogateescape")
            name = str(filepath)

            if args.check:
                if not check_format(source, options=options):
                    print(f"{Colors.YELLOW}Would reformat:{Colors.RESET} {filepath}")
                    exit_code = 1
            elif args.diff:
                diff = get_diff(source, filename=name, options=options)
                if diff:
                    print(diff, end="")
                    exit_code = 1
            elif args.write:
                formatted = format_source(source, filename=name, options=options)
                if source != formatted:
                    filepath.write_text(formatted, encoding="utf-8", errors="surrogateescape")
                    print(f"{Colors.GREEN}Formatted:{Colors.RESET} {filepath}")
            else:
                print(format_source(source, filename=name, options=options), end="")

        except DevcmdError as e:
            print(f"{Colors.RED}Error formatting {filepath}:{Colors.RESET} {e}", file=sys.stderr)
            exit_code = 1

    if args.check and exit_code == 0:
        print(f"{Colors.GREEN}All files are properly formatted{Colors.RESET}")

    return exit_code


def cmd_list(args: argparse.Namespace) -> int:
    """Handle the list command."""
    input_path: Path = args.input

    if not input_path.is_file():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    try:
        result = _parse_input(args, input_path)
    except DevcmdError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    program = result.program
    plain_names = list(dict.fromkeys(c.name for c in program.commands(Modifier.NONE)))
    for name in plain_names:
        _, watch, stop = program.lifecycle(name)
        extras = [
            modifier.keyword
            for modifier, command in ((Modifier.WATCH, watch), (Modifier.STOP, stop))
            if command is not None
        ]
        suffix = f" {Colors.GRAY}({', '.join(extras)}){Colors.RESET}" if extras else ""
        print(f"{Colors.BOLD}{name}{Colors.RESET}{suffix}")

    # Lifecycle variants with no plain command of the same name
    for command in program.commands():
        if command.modifier is not Modifier.NONE and command.name not in plain_names:
            print(f"{Colors.YELLOW}{command.qualified_name}{Colors.RESET}")

    if program.variables:
        print()
        for variable in program.variables:
            print(f"{Colors.CYAN}$({variable.name}){Colors.RESET} = {variable.value.text}")

    return 1 if result.has_errors else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.no_color:
        Colors.disable()

    # Undecodable input bytes are carried as surrogates; write them back out unchanged
    for stream in (sys.stdout, sys.stderr):
        if isinstance(stream, io.TextIOWrapper):
            stream.reconfigure(errors="surrogateescape")

    if args.command is None:
        parser.print_help()
        return 0

    command_handlers = {
        "check": cmd_check,
        "tokens": cmd_tokens,
        "ast": cmd_ast,
        "fmt": cmd_fmt,
        "format": cmd_fmt,
        "list": cmd_list,
        "ls": cmd_list,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
