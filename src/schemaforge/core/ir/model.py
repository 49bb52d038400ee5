"""
Model descriptor types for the schemaforge IR.

This module contains the model descriptor, its table reference, constraints,
access control, ownership, and event configuration.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..strings import snake_case
from .fields import FieldSpec
from .relations import RelationKind, RelationSpec

DEFAULT_MODULE = "core"


class ConstraintKind(str, Enum):
    """Types of model-level constraints."""

    UNIQUE = "unique"
    INDEX = "index"


class Constraint(BaseModel):
    """
    Model-level constraint over one or more fields.

    Attributes:
        kind: Type of constraint
        fields: Field names involved, in index order
    """

    kind: ConstraintKind
    fields: list[str]

    model_config = ConfigDict(frozen=True)


class AccessSpec(BaseModel):
    """Role lists allowed to perform each operation on a model."""

    create: list[str] = Field(default_factory=list)
    read: list[str] = Field(default_factory=list)
    update: list[str] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)
    count: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class OwnershipSpec(BaseModel):
    """
    Ownership configuration for automatic resource filtering.

    Attributes:
        field: Field that identifies the owner (e.g. ``userId``)
        auto_filter: Inject an owner filter on reads
        operations: Operations the filter applies to
        admin_bypass: Whether admins see all records
    """

    field: str
    auto_filter: bool = False
    operations: list[str] = Field(default_factory=lambda: ["read", "update", "delete"])
    admin_bypass: bool = True

    model_config = ConfigDict(frozen=True)


class EventsSpec(BaseModel):
    """Event names emitted after successful writes."""

    after_create: str | None = None
    after_update: str | None = None
    after_delete: str | None = None

    model_config = ConfigDict(frozen=True)


class ModelConfig(BaseModel):
    """Per-model generation flags."""

    timestamps: bool = True

    model_config = ConfigDict(frozen=True)


class TableRef(BaseModel):
    """
    Structured table name: owning module plus bare table name.

    Carried through the pipeline unrendered; only the schema formatter turns
    it into a dialect-specific string.
    """

    module: str
    table: str

    model_config = ConfigDict(frozen=True)

    @property
    def is_core(self) -> bool:
        return self.module == DEFAULT_MODULE


class ModelSpec(BaseModel):
    """
    Declarative descriptor of one data entity.

    Attributes:
        name: Unique PascalCase model name
        module: Owning module; models are grouped by it in the output
        table_name: Table name without module prefix (defaults to snake_case name)
        fields: Ordered field declarations
        relations: Relation declarations
        primary_key: Composite primary key, as an ordered list of field names
        constraints: Model-level unique/index constraints
        access: Role-based access rules (not used by the compiler)
        ownership: Ownership filtering configuration (not used by the compiler)
        events: Event emission configuration (not used by the compiler)
        config: Generation flags such as automatic timestamps
    """

    name: str = ""
    module: str = DEFAULT_MODULE
    table_name: str | None = None
    fields: list[FieldSpec] = Field(default_factory=list)
    relations: list[RelationSpec] = Field(default_factory=list)
    primary_key: list[str] | None = None
    constraints: list[Constraint] = Field(default_factory=list)
    access: AccessSpec | None = None
    ownership: OwnershipSpec | None = None
    events: EventsSpec | None = None
    config: ModelConfig = Field(default_factory=ModelConfig)
    description: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def table(self) -> TableRef:
        return TableRef(
            module=self.module or DEFAULT_MODULE,
            table=self.table_name or snake_case(self.name),
        )

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def composite_key(self) -> list[str] | None:
        """The composite primary key, or None when the key is a single field."""
        return list(self.primary_key) if self.primary_key else None

    @property
    def primary_key_fields(self) -> list[FieldSpec]:
        """
        Fields forming the primary key, in key order.

        Resolution order: composite key, then flagged fields, then a field
        literally named ``id``.
        """
        if self.primary_key:
            return [f for name in self.primary_key if (f := self.get_field(name)) is not None]
        flagged = [f for f in self.fields if f.primary_key]
        if flagged:
            return flagged
        id_field = self.get_field("id")
        return [id_field] if id_field else []

    def get_field(self, name: str) -> FieldSpec | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_relation(self, name: str) -> RelationSpec | None:
        for r in self.relations:
            if r.name == name:
                return r
        return None

    def relations_of(self, kind: RelationKind) -> list[RelationSpec]:
        return [r for r in self.relations if r.kind == kind]
