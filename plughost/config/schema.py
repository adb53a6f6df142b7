"""
Host Settings Schema.

This module provides field declarations and validation for host settings.

Key features:
- Typed field definitions with range and choice constraints
- Validation of a whole settings table against a schema
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a field declaration itself is invalid."""

    pass


class ValidationError(SchemaError):
    """Raised when a settings value fails validation."""

    pass


@dataclass
class ConfigField:
    """
    One declared host setting.

    Attributes:
        type_: Expected type of the value
        default: Default value
        description: Human-readable description (written as a TOML comment)
        min: Minimum value for numbers
        max: Maximum value for numbers
        choices: Allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not isinstance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
        ):
            raise SchemaError(
                f"min/max constraints only apply to int and float, got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def validate(self, value: Any) -> Any:
        """
        Validate a value against this field.

        Integers are accepted for float fields, since TOML writes ``30``
        and ``30.0`` differently.

        Args:
            value: The value to validate

        Returns:
            The value, coerced to the field type

        Raises:
            ValidationError: If validation fails
        """
        if self.type_ is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)

        if not isinstance(value, self.type_) or (
            self.type_ is not bool and isinstance(value, bool)
        ):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        if self.min is not None and value < self.min:
            raise ValidationError(f"Value {value} is less than minimum {self.min}")
        if self.max is not None and value > self.max:
            raise ValidationError(f"Value {value} is greater than maximum {self.max}")

        return value


def validate_table(
    table: dict[str, Any], schema: dict[str, ConfigField]
) -> dict[str, Any]:
    """
    Validate a settings table and fill in defaults for missing fields.

    Args:
        table: Parsed settings table
        schema: Schema dictionary (field_name -> ConfigField)

    Returns:
        Complete settings dictionary

    Raises:
        ValidationError: On unknown fields or invalid values
    """
    for key in table:
        if key not in schema:
            raise ValidationError(f"Unknown setting: {key}")

    values = {}
    for name, field in schema.items():
        if name not in table:
            values[name] = field.default
            continue
        try:
            values[name] = field.validate(table[name])
        except ValidationError as e:
            raise ValidationError(f"Setting '{name}': {e}") from e
    return values
