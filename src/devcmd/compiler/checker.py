"""
Semantic checker for devcmd programs.

Runs after the AST is built and reports problems the grammar cannot
express:

- DuplicateVariable: a variable defined more than once
- DuplicateCommand: a (modifier, name) pair defined more than once, or a
  plain command sharing its name with a variable
- UnknownDecorator: a decorator outside the allow-list, when one is given
- OrphanLifecycle (warning): watch/stop without a plain command
- UndefinedVariable (warning): $(NAME) with no matching definition
"""

import logging
from typing import Optional

from devcmd.compiler.ast_nodes import (
    CommandDef,
    Decorator,
    Modifier,
    Program,
    VariableDef,
    VarRef,
    walk,
)
from devcmd.utils.diagnostics import DiagnosticCode, DiagnosticSink, suggest_similar

logger = logging.getLogger(__name__)


class SemanticChecker:
    """
    Validates a parsed Program and reports into a diagnostic sink.

    Usage:
        checker = SemanticChecker(sink, known_decorators=BUILTIN_DECORATORS)
        checker.check(program)
    """

    def __init__(
        self,
        sink: Optional[DiagnosticSink] = None,
        known_decorators: Optional[frozenset[str]] = None,
    ) -> None:
        self.sink = sink if sink is not None else DiagnosticSink()
        self.known_decorators = known_decorators

    def check(self, program: Program) -> None:
        """Run every check over a program."""
        before = len(self.sink)
        self._check_variables(program)
        self._check_commands(program)
        self._check_decorators(program)
        self._check_lifecycles(program)
        self._check_variable_refs(program)
        logger.debug("semantic checks reported %d diagnostic(s)", len(self.sink) - before)

    def _check_variables(self, program: Program) -> None:
        first_seen: dict[str, VariableDef] = {}
        for variable in program.variables:
            if not variable.name:
                continue
            first = first_seen.get(variable.name)
            if first is None:
                first_seen[variable.name] = variable
                continue
            (
                self.sink.error(
                    DiagnosticCode.DUPLICATE_VARIABLE,
                    f"variable '{variable.name}' is defined more than once",
                    variable.span,
                )
                .note(first.span, f"'{variable.name}' first defined here")
                .note(variable.span, f"'{variable.name}' redefined here; this definition is used")
                .emit()
            )

    def _check_commands(self, program: Program) -> None:
        first_seen: dict[tuple[Modifier, str], CommandDef] = {}
        for command in program.commands():
            if not command.name:
                continue
            key = (command.modifier, command.name)
            first = first_seen.get(key)
            if first is not None:
                (
                    self.sink.error(
                        DiagnosticCode.DUPLICATE_COMMAND,
                        f"command '{command.qualified_name}' is defined more than once",
                        command.span,
                    )
                    .note(first.span, f"'{command.qualified_name}' first defined here")
                    .emit()
                )
                continue
            first_seen[key] = command

            if command.modifier is Modifier.NONE:
                variable = program.variable(command.name)
                if variable is not None:
                    (
                        self.sink.error(
                            DiagnosticCode.DUPLICATE_COMMAND,
                            f"command '{command.name}' has the same name as a variable",
                            command.name_span,
                        )
                        .note(variable.span, f"variable '{command.name}' defined here")
                        .emit()
                    )

    def _check_decorators(self, program: Program) -> None:
        if self.known_decorators is None:
            return
        for node in walk(program):
            if not isinstance(node, Decorator) or node.name in self.known_decorators:
                continue
            builder = self.sink.error(
                DiagnosticCode.UNKNOWN_DECORATOR,
                f"unknown decorator '@{node.name}'",
                node.name_span,
            )
            suggestions = suggest_similar(node.name, self.known_decorators)
            if suggestions:
                names = ", ".join(f"'@{name}'" for name in suggestions)
                builder.help(f"did you mean {names}?")
            builder.emit()

    def _check_lifecycles(self, program: Program) -> None:
        plain = {command.name for command in program.commands(Modifier.NONE)}
        for command in program.commands():
            if command.modifier is Modifier.NONE or not command.name or command.name in plain:
                continue
            (
                self.sink.warning(
                    DiagnosticCode.ORPHAN_LIFECYCLE,
                    f"'{command.qualified_name}' has no matching command '{command.name}'",
                    command.name_span,
                )
                .help(f"define '{command.name}: ...;' to link this {command.modifier.keyword} command")
                .emit()
            )

    def _check_variable_refs(self, program: Program) -> None:
        defined = {variable.name for variable in program.variables}
        for node in walk(program):
            if isinstance(node, VarRef) and node.name not in defined:
                self.sink.warning(
                    DiagnosticCode.UNDEFINED_VARIABLE,
                    f"variable '{node.name}' is not defined",
                    node.span,
                ).emit()
