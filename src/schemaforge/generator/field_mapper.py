"""
Field mapping.

Turns one abstract field declaration into a dialect-specific column
definition, and synthesizes the standard audit columns.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..core.config import Dialect
from ..core.errors import PerModelGenerationError
from ..core.ir import FieldSpec, FieldTypeKind, ModelSpec
from ..core.strings import needs_column_map, snake_case
from .dialects import DialectProfile, get_profile

AUDIT_FIELD_NAMES = ("createdAt", "updatedAt", "createdBy", "updatedBy")

_NOW_LITERALS = frozenset({"now", "now()", "current_timestamp"})


@dataclass
class ColumnDef:
    """
    One rendered member line of a model block: a scalar column or a relation.

    Attributes:
        name: Member name
        type: Type expression without the optional marker (``String``, ``Post[]``)
        optional: Whether a ``?`` follows the type
        attributes: Attribute strings in emission order
    """

    name: str
    type: str
    optional: bool = False
    attributes: list[str] = field(default_factory=list)

    @property
    def type_decl(self) -> str:
        return f"{self.type}?" if self.optional else self.type

    def render(self) -> str:
        parts = [self.name, self.type_decl, *self.attributes]
        return " ".join(parts)


class FieldMapper:
    """
    Maps abstract field declarations to column definitions for one dialect.

    Args:
        dialect: Target engine family
        actor_type: Type of the createdBy/updatedBy audit columns
    """

    def __init__(
        self,
        dialect: Dialect | str = Dialect.MYSQL,
        actor_type: FieldTypeKind = FieldTypeKind.INTEGER,
    ):
        self.profile: DialectProfile = get_profile(dialect)
        self.actor_type = actor_type

    @property
    def dialect(self) -> Dialect:
        return self.profile.dialect

    def map_field(
        self,
        spec: FieldSpec,
        *,
        model: str = "",
        inline_id: bool = True,
        in_composite_key: bool = False,
        references: FieldSpec | None = None,
    ) -> ColumnDef:
        """
        Map one field declaration to a column definition.

        Args:
            spec: Field to map
            model: Owning model name, for error reporting
            inline_id: Emit ``@id`` when the field is the primary key
            in_composite_key: The field is part of a composite key (never
                optional, never ``@id``)
            references: Key field this column references; its native type is
                reused so both ends of a foreign key agree

        Raises:
            PerModelGenerationError: If the type has no mapping for the dialect
                or the default is not valid for the type
        """
        kind = spec.type
        scalar = self.profile.scalar_type(kind) if isinstance(kind, FieldTypeKind) else None
        if scalar is None:
            raise PerModelGenerationError(
                model,
                f"field '{spec.name}' has type {getattr(kind, 'value', kind)!r} "
                f"with no mapping for dialect '{self.profile.provider}'",
                field=spec.name,
            )

        is_key = (spec.primary_key or spec.name == "id") and inline_id and not in_composite_key
        attributes: list[str] = []
        if is_key:
            attributes.append("@id")

        default = self._default_expression(spec, model)
        if default is not None:
            attributes.append(f"@default({default})")
        if spec.unique and not is_key:
            attributes.append("@unique")

        native = self._native_annotation(spec, is_key, references)
        if native:
            attributes.append(native)
        if needs_column_map(spec.name):
            attributes.append(f'@map("{snake_case(spec.name)}")')

        optional = not (spec.required or is_key or in_composite_key)
        return ColumnDef(name=spec.name, type=scalar, optional=optional, attributes=attributes)

    def map_model_fields(
        self, model: ModelSpec, references: Mapping[str, FieldSpec] | None = None
    ) -> list[ColumnDef]:
        """
        Map every declared field of a model, honouring its key form.

        ``references`` maps foreign key field names to the key they point at.
        """
        composite = set(model.composite_key or [])
        keys = {f.name for f in model.primary_key_fields}
        references = references or {}
        return [
            self.map_field(
                f,
                model=model.name,
                inline_id=not composite and f.name in keys,
                in_composite_key=f.name in composite,
                references=references.get(f.name),
            )
            for f in model.fields
        ]

    def _native_annotation(
        self, spec: FieldSpec, is_key: bool, references: FieldSpec | None
    ) -> str | None:
        if not self.profile.native_annotations:
            return None
        if spec.db_type:
            return spec.db_type if spec.db_type.startswith("@") else f"@db.{spec.db_type}"
        if references is not None and references.type == spec.type:
            return self._native_annotation(references, True, None)
        assert spec.type is not None
        return self.profile.native_type(spec.type, spec.max_length, is_key=is_key)

    def _default_expression(self, spec: FieldSpec, model: str) -> str | None:
        if spec.db_default:
            expression = spec.db_default
            if (
                self.dialect == Dialect.SQLITE
                and "dbgenerated" in expression
                and "uuid" in expression.lower()
            ):
                return "uuid()"
            return expression

        if spec.auto_increment:
            if spec.type == FieldTypeKind.INTEGER:
                return "autoincrement()"
            if spec.type == FieldTypeKind.STRING:
                return self.profile.uuid_default
            raise PerModelGenerationError(
                model,
                f"field '{spec.name}' is auto_increment but has type {spec.type.value}; "
                f"only integer and string fields can be generated",
                field=spec.name,
            )

        if spec.default is None:
            return None
        return self.format_default(spec, model)

    def format_default(self, spec: FieldSpec, model: str = "") -> str:
        """
        Render a literal default for the field's type.

        Raises:
            PerModelGenerationError: If the value does not fit the type
        """
        value: Any = spec.default
        kind = spec.type

        def incompatible() -> PerModelGenerationError:
            return PerModelGenerationError(
                model,
                f"default {value!r} is not valid for {kind.value} field '{spec.name}'",
                field=spec.name,
            )

        if kind in (FieldTypeKind.STRING, FieldTypeKind.TEXT):
            if not isinstance(value, str):
                raise incompatible()
            return json.dumps(value)
        if kind == FieldTypeKind.BOOLEAN:
            if not isinstance(value, bool):
                raise incompatible()
            return "true" if value else "false"
        if kind == FieldTypeKind.INTEGER:
            if isinstance(value, bool) or not isinstance(value, int):
                raise incompatible()
            return str(value)
        if kind == FieldTypeKind.DECIMAL:
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                raise incompatible()
            return str(value)
        if kind == FieldTypeKind.DATETIME:
            if not isinstance(value, str):
                raise incompatible()
            if value.strip().lower() in _NOW_LITERALS:
                return "now()"
            return json.dumps(value)
        if kind == FieldTypeKind.JSON:
            try:
                return json.dumps(json.dumps(value, sort_keys=True, separators=(",", ":")))
            except (TypeError, ValueError) as e:
                raise incompatible() from e
        raise incompatible()

    def generate_audit_fields(self, exclude: Iterable[str] = ()) -> list[ColumnDef]:
        """
        Standard bookkeeping columns, skipping any name in ``exclude``.

        createdAt defaults to the current time, updatedAt is refreshed on
        every write, createdBy/updatedBy are optional actor references.
        """
        skip = set(exclude)
        columns: list[ColumnDef] = []
        for name in AUDIT_FIELD_NAMES:
            if name in skip:
                continue
            if name == "createdAt":
                columns.append(
                    self.map_field(
                        FieldSpec(
                            name=name, type=FieldTypeKind.DATETIME, required=True, default="now"
                        )
                    )
                )
            elif name == "updatedAt":
                column = self.map_field(
                    FieldSpec(name=name, type=FieldTypeKind.DATETIME, required=True)
                )
                column.attributes.insert(0, "@updatedAt")
                columns.append(column)
            else:
                columns.append(self.map_field(FieldSpec(name=name, type=self.actor_type)))
        return columns

    def is_audit_field(self, name: str) -> bool:
        return name in AUDIT_FIELD_NAMES
