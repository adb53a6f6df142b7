"""
Tests for host settings.

This test suite covers:
1. Schema field validation (types, constraints)
2. Loading settings from TOML
3. Generated default settings files
4. Error cases
"""

import tempfile
from pathlib import Path

import pytest

from plughost.config import (
    ConfigError,
    HostSettings,
    SETTINGS_SCHEMA,
    load_settings,
    write_default_config,
)
from plughost.config.schema import ConfigField, SchemaError, ValidationError, validate_table


class TestSchemaValidation:
    """Test schema field validation."""

    def test_field_default_type_mismatch(self):
        """ConfigField should reject default value that doesn't match type."""
        with pytest.raises(SchemaError, match="does not match type"):
            ConfigField(int, "not an int", "Bad default")

    def test_min_max_only_for_numbers(self):
        with pytest.raises(SchemaError, match="min/max"):
            ConfigField(str, "x", min=1)

    def test_default_must_be_a_choice(self):
        with pytest.raises(SchemaError, match="not in choices"):
            ConfigField(str, "TRACE", choices=["INFO"])

    def test_range_constraints(self):
        field = ConfigField(float, 1.0, min=0.5, max=2.0)

        assert field.validate(2.0) == 2.0
        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate(0.1)
        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate(3.0)

    def test_int_accepted_for_float(self):
        """An integer should be coerced for a float field."""
        value = ConfigField(float, 1.0).validate(3)

        assert value == 3.0
        assert isinstance(value, float)

    def test_bool_rejected_for_numbers(self):
        """True is an int in Python but not a valid number setting."""
        with pytest.raises(ValidationError, match="Expected type"):
            ConfigField(int, 1).validate(True)

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError, match="Unknown setting: colour"):
            validate_table({"colour": "red"}, SETTINGS_SCHEMA)

    def test_defaults_filled(self):
        values = validate_table({"log_level": "DEBUG"}, SETTINGS_SCHEMA)

        assert values["log_level"] == "DEBUG"
        assert values["host_namespace"] == "lapce"


class TestLoadSettings:
    """Test reading settings files."""

    def test_defaults(self):
        settings = HostSettings.defaults()

        assert settings.plugins_dir == Path("~/.lapce/plugins").expanduser()
        assert settings.manifest_name == "manifest.toml"
        assert settings.host_namespace == "lapce"
        assert settings.log_level == "INFO"
        assert settings.rpc_timeout == 30.0
        assert settings.shutdown_timeout == 5.0

    def test_load_host_table(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plughost.toml"
            path.write_text(
                '[host]\nplugins_dir = "/srv/plugins"\nhost_namespace = "editor"\n'
                "rpc_timeout = 2\n"
            )

            settings = load_settings(path)

            assert settings.plugins_dir == Path("/srv/plugins")
            assert settings.host_namespace == "editor"
            assert settings.rpc_timeout == 2.0
            assert settings.log_level == "INFO"

    def test_missing_host_table_uses_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plughost.toml"
            path.write_text("[other]\nkey = 1\n")

            assert load_settings(path) == HostSettings.defaults()

    def test_invalid_value(self):
        """Validation errors should surface as ConfigError naming the setting."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plughost.toml"
            path.write_text('[host]\nlog_level = "LOUD"\n')

            with pytest.raises(ConfigError, match="log_level"):
                load_settings(path)

    def test_host_not_a_table(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plughost.toml"
            path.write_text('host = "nope"\n')

            with pytest.raises(ConfigError, match="must be a table"):
                load_settings(path)

    def test_explicit_missing_file(self):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(Path("/nonexistent/plughost.toml"))

    def test_malformed_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plughost.toml"
            path.write_text("[host\n")

            with pytest.raises(ConfigError, match="Failed to parse"):
                load_settings(path)


class TestDefaultConfig:
    """Test generated settings files."""

    def test_written_file_loads_as_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config" / "plughost.toml"

            assert write_default_config(path) == path
            assert load_settings(path) == HostSettings.defaults()

    def test_descriptions_written_as_comments(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_default_config(Path(tmpdir) / "plughost.toml")
            text = path.read_text()

            assert "[host]" in text
            assert "# Logging level" in text
            assert "# choices: DEBUG, INFO, WARNING, ERROR" in text
