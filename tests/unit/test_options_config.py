"""
Unit tests for parse options and configuration loading.
"""

import pytest

from devcmd.compiler.options import BUILTIN_DECORATORS, ParseOptions
from devcmd.config import find_config, load_config, load_options
from devcmd.utils.errors import ConfigError


class TestParseOptions:
    """Tests for the ParseOptions value."""

    def test_defaults(self):
        """Default options accept everything and are lenient."""
        options = ParseOptions()
        assert options.known_decorators is None
        assert options.strict is False
        assert options.max_input_bytes is None

    def test_decorator_names_normalized(self):
        """Allow-list entries become a frozenset without '@'."""
        options = ParseOptions(known_decorators=["@retry", "sh"])
        assert options.known_decorators == frozenset({"retry", "sh"})

    def test_negative_budget_rejected(self):
        """max_input_bytes must not be negative."""
        with pytest.raises(ConfigError, match="must not be negative"):
            ParseOptions(max_input_bytes=-1)

    def test_bool_budget_rejected(self):
        """A bool is not a byte count."""
        with pytest.raises(ConfigError, match="must be an integer"):
            ParseOptions(max_input_bytes=True)

    def test_with_decorators(self):
        """with_decorators extends the allow-list and keeps other fields."""
        options = ParseOptions(known_decorators={"retry"}, strict=True)
        extended = options.with_decorators(["@deploy"])
        assert extended.known_decorators == frozenset({"retry", "deploy"})
        assert extended.strict is True
        assert options.known_decorators == frozenset({"retry"})

    def test_with_decorators_from_none(self):
        """Extending an open allow-list makes it closed."""
        assert ParseOptions().with_decorators(["x"]).known_decorators == frozenset({"x"})


class TestOptionsFromMapping:
    """Tests for ParseOptions.from_mapping."""

    def test_builtin_keyword(self):
        """'builtin' selects the runtime's decorators."""
        options = ParseOptions.from_mapping({"known_decorators": "builtin"})
        assert options.known_decorators == BUILTIN_DECORATORS

    def test_full_mapping(self):
        """Every key is read."""
        options = ParseOptions.from_mapping(
            {"known_decorators": ["retry"], "strict": True, "max_input_bytes": 10}
        )
        assert options == ParseOptions(
            known_decorators=frozenset({"retry"}), strict=True, max_input_bytes=10
        )

    def test_unknown_keys(self):
        """Unknown keys are rejected by name."""
        with pytest.raises(ConfigError, match=r"unknown option\(s\): colour, indent"):
            ParseOptions.from_mapping({"indent": 2, "colour": True})

    def test_strict_must_be_bool(self):
        """strict rejects non-bool values."""
        with pytest.raises(ConfigError, match="strict must be true or false"):
            ParseOptions.from_mapping({"strict": "yes"})

    def test_decorators_must_be_list(self):
        """A string other than 'builtin' is rejected."""
        with pytest.raises(ConfigError, match="known_decorators must be a list"):
            ParseOptions.from_mapping({"known_decorators": "retry"})

    def test_decorator_names_must_be_strings(self):
        """Non-string names are rejected."""
        with pytest.raises(ConfigError, match="decorator names must be strings"):
            ParseOptions.from_mapping({"known_decorators": [1]})

    def test_path_in_error(self):
        """The config path prefixes the error message."""
        with pytest.raises(ConfigError) as excinfo:
            ParseOptions.from_mapping({"max_input_bytes": -5}, "devcmd.toml")
        assert str(excinfo.value) == "[devcmd.toml] max_input_bytes must not be negative, got -5"
        assert excinfo.value.path == "devcmd.toml"


class TestFindConfig:
    """Tests for locating configuration files."""

    def test_devcmd_toml(self, tmp_path):
        """devcmd.toml in the start directory is found."""
        config = tmp_path / "devcmd.toml"
        config.write_text("strict = true\n")
        assert find_config(tmp_path) == config.resolve()

    def test_walks_up(self, tmp_path):
        """Parent directories are searched."""
        config = tmp_path / "devcmd.toml"
        config.write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == config.resolve()

    def test_devcmd_toml_beats_pyproject(self, tmp_path):
        """devcmd.toml wins over pyproject.toml in the same directory."""
        (tmp_path / "pyproject.toml").write_text("[tool.devcmd]\nstrict = true\n")
        (tmp_path / "devcmd.toml").write_text("")
        assert find_config(tmp_path).name == "devcmd.toml"

    def test_pyproject_without_table_skipped(self, tmp_path):
        """A pyproject.toml without [tool.devcmd] does not stop the search."""
        (tmp_path / "devcmd.toml").write_text("")
        nested = tmp_path / "pkg"
        nested.mkdir()
        (nested / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        assert find_config(nested) == (tmp_path / "devcmd.toml").resolve()

    def test_start_from_file(self, tmp_path):
        """A file path starts the search in its directory."""
        (tmp_path / "devcmd.toml").write_text("")
        commands = tmp_path / "commands.cli"
        commands.write_text("")
        assert find_config(commands).name == "devcmd.toml"


class TestLoadConfig:
    """Tests for reading options from files."""

    def test_devcmd_toml(self, tmp_path):
        """Top-level keys of devcmd.toml are options."""
        path = tmp_path / "devcmd.toml"
        path.write_text('known_decorators = "builtin"\nstrict = true\n')
        options = load_config(path)
        assert options.known_decorators == BUILTIN_DECORATORS
        assert options.strict is True

    def test_pyproject_table(self, tmp_path):
        """pyproject.toml options live under [tool.devcmd]."""
        path = tmp_path / "pyproject.toml"
        path.write_text('[tool.devcmd]\nknown_decorators = ["sh"]\nmax_input_bytes = 100\n')
        options = load_config(path)
        assert options.known_decorators == frozenset({"sh"})
        assert options.max_input_bytes == 100

    def test_invalid_toml(self, tmp_path):
        """Broken TOML raises ConfigError naming the file."""
        path = tmp_path / "devcmd.toml"
        path.write_text("strict = \n")
        with pytest.raises(ConfigError, match="invalid TOML") as excinfo:
            load_config(path)
        assert excinfo.value.path == str(path)

    def test_tool_devcmd_not_a_table(self, tmp_path):
        """[tool.devcmd] must be a table."""
        path = tmp_path / "pyproject.toml"
        path.write_text('[tool]\ndevcmd = "strict"\n')
        with pytest.raises(ConfigError, match=r"\[tool.devcmd\] must be a table"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """An unreadable file raises ConfigError."""
        with pytest.raises(ConfigError, match="cannot read configuration"):
            load_config(tmp_path / "devcmd.toml")

    def test_load_options_defaults(self, tmp_path):
        """Without a config file the defaults apply."""
        assert load_options(tmp_path) == ParseOptions()

    def test_load_options_found(self, tmp_path):
        """load_options reads the config that applies."""
        (tmp_path / "devcmd.toml").write_text("strict = true\n")
        assert load_options(tmp_path).strict is True
