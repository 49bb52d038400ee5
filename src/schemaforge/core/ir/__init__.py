"""
schemaforge Intermediate Representation (IR) types.

Model descriptors arrive as already-constructed in-memory values built from
these types. All types are frozen pydantic models and are re-exported here.
"""

from .fields import (
    FIELD_TYPE_ALIASES,
    FieldSpec,
    FieldTypeKind,
    ValidationKind,
    ValidationRule,
    parse_field_type,
)
from .model import (
    DEFAULT_MODULE,
    AccessSpec,
    Constraint,
    ConstraintKind,
    EventsSpec,
    ModelConfig,
    ModelSpec,
    OwnershipSpec,
    TableRef,
)
from .relations import (
    RELATION_KIND_ALIASES,
    ReferentialAction,
    RelationKind,
    RelationSpec,
    ThroughSpec,
)

__all__ = [
    # Fields
    "FIELD_TYPE_ALIASES",
    "FieldSpec",
    "FieldTypeKind",
    "ValidationKind",
    "ValidationRule",
    "parse_field_type",
    # Relations
    "RELATION_KIND_ALIASES",
    "ReferentialAction",
    "RelationKind",
    "RelationSpec",
    "ThroughSpec",
    # Models
    "DEFAULT_MODULE",
    "AccessSpec",
    "Constraint",
    "ConstraintKind",
    "EventsSpec",
    "ModelConfig",
    "ModelSpec",
    "OwnershipSpec",
    "TableRef",
]
