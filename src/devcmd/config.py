"""
Configuration loading for devcmd.

Parse options can be kept next to a project in either of two places:

    # devcmd.toml
    known_decorators = "builtin"
    strict = true

    # pyproject.toml
    [tool.devcmd]
    known_decorators = ["retry", "parallel", "sh"]
    max_input_bytes = 1048576

The nearest directory (walking up from the start directory) that has a
devcmd.toml, or a pyproject.toml with a [tool.devcmd] table, wins.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional, Union

from devcmd.compiler.options import ParseOptions
from devcmd.utils.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "devcmd.toml"
PYPROJECT_FILENAME = "pyproject.toml"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read configuration: {e.strerror or e}", str(path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML: {e}", str(path)) from e


def _options_table(path: Path) -> Optional[dict[str, Any]]:
    """The devcmd settings stored in a config file, or None if it has none."""
    data = _read_toml(path)
    if path.name != PYPROJECT_FILENAME:
        return data
    table = data.get("tool", {}).get("devcmd")
    if table is None:
        return None
    if not isinstance(table, dict):
        raise ConfigError("[tool.devcmd] must be a table", str(path))
    return table


def find_config(start_dir: Union[Path, str, None] = None) -> Optional[Path]:
    """
    Find the configuration file that applies to a directory.

    Args:
        start_dir: Directory to start from (default: current directory)

    Returns:
        Path to devcmd.toml or pyproject.toml, or None if none applies
    """
    directory = Path(start_dir) if start_dir is not None else Path.cwd()
    directory = directory.resolve()
    if directory.is_file():
        directory = directory.parent

    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        pyproject = candidate_dir / PYPROJECT_FILENAME
        if pyproject.is_file() and _options_table(pyproject) is not None:
            return pyproject
    return None


def load_config(path: Union[Path, str]) -> ParseOptions:
    """
    Load parse options from a specific file.

    Raises:
        ConfigError: If the file cannot be read or holds invalid settings
    """
    path = Path(path)
    table = _options_table(path)
    options = ParseOptions.from_mapping(table or {}, str(path))
    logger.debug("loaded options from %s: %s", path, options)
    return options


def load_options(start_dir: Union[Path, str, None] = None) -> ParseOptions:
    """
    Load the parse options that apply to a directory.

    Returns default options when no configuration file is found.
    """
    path = find_config(start_dir)
    if path is None:
        logger.debug("no devcmd configuration found; using defaults")
        return ParseOptions()
    return load_config(path)
