"""
Dialect profiles.

Each supported engine family differs in which native column annotations it
accepts, whether it has a JSON column type, how a generated UUID default is
spelled, and whether models can live in separate database schemas.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.config import Dialect
from ..core.ir import FieldTypeKind

# Abstract type -> document scalar type, shared by every dialect
BASE_SCALAR_TYPES: dict[FieldTypeKind, str] = {
    FieldTypeKind.STRING: "String",
    FieldTypeKind.TEXT: "String",
    FieldTypeKind.INTEGER: "Int",
    FieldTypeKind.BOOLEAN: "Boolean",
    FieldTypeKind.DATETIME: "DateTime",
    FieldTypeKind.JSON: "Json",
    FieldTypeKind.DECIMAL: "Decimal",
}


@dataclass(frozen=True)
class DialectProfile:
    """
    Column conventions for one database engine family.

    Attributes:
        dialect: Engine family
        native_types: Native annotation per abstract type (absent means none)
        scalar_overrides: Scalar types replaced for this dialect
        bounded_string: Annotation template for strings with a max length
        default_string_length: Length used when a string declares no max length
            (None means leave the column unannotated)
        string_key_length: Length for string primary keys without max length
        uuid_default: Default expression for generated string keys
        native_annotations: Whether ``@db.*`` annotations are accepted at all
        supports_schemas: Whether non-core modules map to database schemas
    """

    dialect: Dialect
    native_types: dict[FieldTypeKind, str] = field(default_factory=dict)
    scalar_overrides: dict[FieldTypeKind, str] = field(default_factory=dict)
    bounded_string: str = "@db.VarChar({length})"
    default_string_length: int | None = None
    string_key_length: int | None = None
    uuid_default: str = "uuid()"
    native_annotations: bool = True
    supports_schemas: bool = False

    @property
    def provider(self) -> str:
        return self.dialect.value

    def scalar_type(self, kind: FieldTypeKind) -> str | None:
        """Scalar type for an abstract type, or None when the dialect has none."""
        if kind in self.scalar_overrides:
            return self.scalar_overrides[kind]
        return BASE_SCALAR_TYPES.get(kind)

    def native_type(
        self, kind: FieldTypeKind, max_length: int | None = None, is_key: bool = False
    ) -> str | None:
        """Native column annotation for an abstract type, or None."""
        if not self.native_annotations:
            return None
        if kind == FieldTypeKind.STRING:
            length = max_length
            if length is None:
                length = self.string_key_length if is_key else self.default_string_length
            return self.bounded_string.format(length=length) if length is not None else None
        return self.native_types.get(kind)


MYSQL = DialectProfile(
    dialect=Dialect.MYSQL,
    native_types={
        FieldTypeKind.TEXT: "@db.Text",
        FieldTypeKind.DATETIME: "@db.DateTime(3)",
        FieldTypeKind.DECIMAL: "@db.Decimal(10, 2)",
    },
    default_string_length=255,
    string_key_length=36,
    uuid_default='dbgenerated("(UUID())")',
)

POSTGRESQL = DialectProfile(
    dialect=Dialect.POSTGRESQL,
    native_types={
        FieldTypeKind.TEXT: "@db.Text",
        FieldTypeKind.DATETIME: "@db.Timestamptz(3)",
        FieldTypeKind.JSON: "@db.JsonB",
        FieldTypeKind.DECIMAL: "@db.Decimal(10, 2)",
    },
    uuid_default='dbgenerated("gen_random_uuid()")',
    supports_schemas=True,
)

SQLITE = DialectProfile(
    dialect=Dialect.SQLITE,
    scalar_overrides={FieldTypeKind.JSON: "String"},
    native_annotations=False,
)

PROFILES: dict[Dialect, DialectProfile] = {
    Dialect.MYSQL: MYSQL,
    Dialect.POSTGRESQL: POSTGRESQL,
    Dialect.SQLITE: SQLITE,
}


def get_profile(dialect: Dialect | str) -> DialectProfile:
    """
    Look up the profile for a dialect name.

    Raises:
        ValueError: If the dialect is not supported
    """
    return PROFILES[Dialect(dialect)]
