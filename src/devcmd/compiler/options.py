"""
Parse options for devcmd.

ParseOptions is the closed set of knobs a caller can pass to parse():
an optional decorator allow-list, strict mode, and an input size budget.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from devcmd.utils.errors import ConfigError

# Decorators provided by the devcmd runtime
BUILTIN_DECORATORS: frozenset[str] = frozenset(
    {
        "cmd",
        "confirm",
        "env",
        "parallel",
        "retry",
        "sh",
        "timeout",
        "try",
        "var",
        "when",
        "workdir",
    }
)

OPTION_KEYS = ("known_decorators", "strict", "max_input_bytes")


@dataclass(frozen=True, slots=True)
class ParseOptions:
    """
    Options controlling a parse.

    Attributes:
        known_decorators: If set, decorators outside this set are reported
            as UnknownDecorator; if None, every decorator name is accepted
        strict: Promote warnings to errors
        max_input_bytes: If set and the input is larger, parsing is skipped
            and a single InputTooLarge error is reported
    """

    known_decorators: Optional[frozenset[str]] = None
    strict: bool = False
    max_input_bytes: Optional[int] = None

    def __post_init__(self) -> None:
        if self.known_decorators is not None and not isinstance(self.known_decorators, frozenset):
            object.__setattr__(self, "known_decorators", _decorator_set(self.known_decorators))
        if self.max_input_bytes is not None:
            if isinstance(self.max_input_bytes, bool) or not isinstance(self.max_input_bytes, int):
                raise ConfigError(
                    f"max_input_bytes must be an integer, got {self.max_input_bytes!r}"
                )
            if self.max_input_bytes < 0:
                raise ConfigError(f"max_input_bytes must not be negative, got {self.max_input_bytes}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], path: Optional[str] = None) -> "ParseOptions":
        """
        Build options from a mapping such as a parsed TOML table.

        `known_decorators` may be a list of names or the string "builtin".

        Raises:
            ConfigError: On unknown keys or values of the wrong type
        """
        unknown = sorted(set(values) - set(OPTION_KEYS))
        if unknown:
            raise ConfigError(f"unknown option(s): {', '.join(unknown)}", path)

        known = values.get("known_decorators")
        if known == "builtin":
            known = BUILTIN_DECORATORS
        elif known is not None and (isinstance(known, str) or not isinstance(known, Iterable)):
            raise ConfigError(
                f"known_decorators must be a list of names or \"builtin\", got {known!r}", path
            )

        strict = values.get("strict", False)
        if not isinstance(strict, bool):
            raise ConfigError(f"strict must be true or false, got {strict!r}", path)

        try:
            return cls(
                known_decorators=None if known is None else _decorator_set(known),
                strict=strict,
                max_input_bytes=values.get("max_input_bytes"),
            )
        except ConfigError as e:
            raise ConfigError(e.message, path) from e

    def with_decorators(self, names: Iterable[str]) -> "ParseOptions":
        """Return a copy whose allow-list also includes names."""
        current = self.known_decorators or frozenset()
        return ParseOptions(
            known_decorators=current | _decorator_set(names),
            strict=self.strict,
            max_input_bytes=self.max_input_bytes,
        )


def _decorator_set(names: Iterable[str]) -> frozenset[str]:
    result = set()
    for name in names:
        if not isinstance(name, str):
            raise ConfigError(f"decorator names must be strings, got {name!r}")
        result.add(name.lstrip("@"))
    return frozenset(result)
