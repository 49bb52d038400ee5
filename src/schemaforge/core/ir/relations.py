"""
Relation definitions for the schemaforge IR.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class RelationKind(str, Enum):
    """Cardinality of a relation, seen from the declaring model."""

    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"
    BELONGS_TO = "belongsTo"
    MANY_TO_MANY = "manyToMany"


# Older descriptors used 'one'/'many'
RELATION_KIND_ALIASES: dict[str, RelationKind] = {
    "one": RelationKind.BELONGS_TO,
    "many": RelationKind.HAS_MANY,
}


class ReferentialAction(str, Enum):
    """What happens to referencing rows when the referenced row is deleted."""

    CASCADE = "Cascade"
    RESTRICT = "Restrict"
    SET_NULL = "SetNull"
    NO_ACTION = "NoAction"


class ThroughSpec(BaseModel):
    """
    Explicit junction for a manyToMany relation.

    Attributes:
        model: Junction model name (must be registered)
        source_key: Junction field pointing at the declaring model
        target_key: Junction field pointing at the relation target
    """

    model: str
    source_key: str
    target_key: str

    model_config = ConfigDict(frozen=True)


class RelationSpec(BaseModel):
    """
    Declaration of a relation from one model to another.

    Examples:
        - belongsTo User via authorId:
          RelationSpec(name="author", kind="belongsTo", target="User", foreign_key="authorId")
        - hasMany Post: RelationSpec(name="posts", kind="hasMany", target="Post", inverse="author")
        - manyToMany Tag through ItemTag:
          RelationSpec(name="tags", kind="manyToMany", target="Tag",
                       through=ThroughSpec(model="ItemTag", source_key="itemId",
                                           target_key="tagId"))
    """

    name: str = ""
    kind: RelationKind | None = None
    target: str = ""
    foreign_key: str | None = None
    inverse: str | None = None
    through: ThroughSpec | None = None
    required: bool = False
    on_delete: ReferentialAction | None = None
    description: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("kind", mode="before")
    @classmethod
    def validate_kind(cls, v: Any) -> Any:
        if isinstance(v, str) and v in RELATION_KIND_ALIASES:
            return RELATION_KIND_ALIASES[v]
        return v

    @property
    def is_belongs_to(self) -> bool:
        return self.kind == RelationKind.BELONGS_TO

    @property
    def is_many_to_many(self) -> bool:
        return self.kind == RelationKind.MANY_TO_MANY
