"""
Field type definitions for the schemaforge IR.

This module contains the closed set of abstract field types, validation
rules, and the field declaration itself.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldTypeKind(str, Enum):
    """Abstract field types understood by the compiler."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    TEXT = "text"
    JSON = "json"
    DECIMAL = "decimal"


# Spellings accepted from older descriptors, normalized at construction
FIELD_TYPE_ALIASES: dict[str, FieldTypeKind] = {
    "str": FieldTypeKind.STRING,
    "email": FieldTypeKind.STRING,
    "url": FieldTypeKind.STRING,
    "uuid": FieldTypeKind.STRING,
    "int": FieldTypeKind.INTEGER,
    "bool": FieldTypeKind.BOOLEAN,
    "date": FieldTypeKind.DATETIME,
    "float": FieldTypeKind.DECIMAL,
}


def parse_field_type(value: Any) -> FieldTypeKind | None:
    """
    Normalize a field type spelling to a ``FieldTypeKind``.

    ``None`` passes through (a missing type is reported by the validator).

    Raises:
        ValueError: If the spelling is not a known type or alias
    """
    if value is None or isinstance(value, FieldTypeKind):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in FIELD_TYPE_ALIASES:
            return FIELD_TYPE_ALIASES[key]
        try:
            return FieldTypeKind(key)
        except ValueError:
            pass
    allowed = ", ".join(k.value for k in FieldTypeKind)
    raise ValueError(f"Unknown field type {value!r}; expected one of: {allowed}")


class ValidationKind(str, Enum):
    """Kinds of validation constraints a field may carry."""

    MAX_LENGTH = "max_length"
    MIN_LENGTH = "min_length"
    PATTERN = "pattern"
    ENUM = "enum"
    MIN = "min"
    MAX = "max"


class ValidationRule(BaseModel):
    """
    One validation constraint on a field.

    Examples:
        - ValidationRule(kind="max_length", value=120)
        - ValidationRule(kind="enum", value=["draft", "published"])
    """

    kind: ValidationKind
    value: Any = None
    message: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept camelCase spellings such as ``maxLength``."""
        if isinstance(v, str):
            return {"maxLength": "max_length", "minLength": "min_length"}.get(v, v)
        return v


class FieldSpec(BaseModel):
    """
    Declaration of a single field on a model.

    Attributes:
        name: Field identifier (camelCase by convention)
        type: Abstract type; None means the descriptor omitted it
        required: Whether the column is NOT NULL
        unique: Whether values must be unique
        default: Literal default value (``"now"`` for datetimes)
        primary_key: Whether this field alone is the primary key
        auto_increment: Integer autoincrement, or a generated UUID for string keys
        indexed: Whether to emit a secondary index
        validation: Validation constraints (max_length feeds column sizing)
        db_type: Explicit native type annotation, e.g. ``@db.Char(2)``
        db_default: Explicit raw default expression, e.g. ``dbgenerated("(UUID())")``
        ui: Presentation metadata, ignored by the compiler
    """

    name: str = ""
    type: FieldTypeKind | None = None
    required: bool = False
    unique: bool = False
    default: Any = None
    primary_key: bool = False
    auto_increment: bool = False
    indexed: bool = False
    validation: list[ValidationRule] = Field(default_factory=list)
    db_type: str | None = None
    db_default: str | None = None
    description: str | None = None
    ui: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v: Any) -> FieldTypeKind | None:
        return parse_field_type(v)

    def get_rule(self, kind: ValidationKind) -> ValidationRule | None:
        """Return the first validation rule of the given kind."""
        for rule in self.validation:
            if rule.kind == kind:
                return rule
        return None

    @property
    def max_length(self) -> int | None:
        """Max length from validation metadata, if declared."""
        rule = self.get_rule(ValidationKind.MAX_LENGTH)
        if rule is None or rule.value is None:
            return None
        return int(rule.value)
