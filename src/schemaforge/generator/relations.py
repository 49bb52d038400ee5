"""
Relation resolution.

Computes, across the whole registry, the foreign key fields that belongsTo
relations need, the relation members each model renders, and the junction
entities implicit manyToMany relations require.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..core.errors import PerModelGenerationError
from ..core.ir import (
    FieldSpec,
    ModelConfig,
    ModelSpec,
    ReferentialAction,
    RelationKind,
    RelationSpec,
    ValidationKind,
    ValidationRule,
)
from ..core.references import (
    JunctionSide,
    ManyToManyPlan,
    canonical_pair,
    expected_foreign_key,
    plan_many_to_many,
    reference_key,
)
from .field_mapper import ColumnDef

logger = logging.getLogger(__name__)


__all__ = ["ForeignKeyRef", "RelationResolver", "canonical_pair"]


def _length_rules(key: FieldSpec) -> list[ValidationRule]:
    """Length rules a referencing column copies so both ends size alike."""
    return [r for r in key.validation if r.kind == ValidationKind.MAX_LENGTH]


@dataclass(frozen=True)
class ForeignKeyRef:
    """
    A foreign key column and the key it references.

    Attributes:
        field: The foreign key field (declared or synthesized)
        target: Referenced model name
        key: Referenced key field
        synthesized: Whether the resolver created the field
    """

    field: FieldSpec
    target: str
    key: FieldSpec
    synthesized: bool


class RelationResolver:
    """
    Resolves declared relations against the full set of models.

    The many-to-many pairing plan is computed per model collection and cached,
    so repeated per-model calls during one generation run do not re-pair.
    """

    def __init__(self) -> None:
        self._plan_key: tuple[str, ...] | None = None
        self._plan: ManyToManyPlan | None = None

    def plan(self, all_models: Sequence[ModelSpec]) -> ManyToManyPlan:
        key = tuple(m.name for m in all_models)
        if self._plan is None or self._plan_key != key:
            self._plan = plan_many_to_many(all_models)
            self._plan_key = key
        return self._plan

    # =========================================================================
    # Foreign keys
    # =========================================================================

    def foreign_key_refs(
        self, model: ModelSpec, all_models: Sequence[ModelSpec]
    ) -> list[ForeignKeyRef]:
        """
        Every belongsTo foreign key of a model with the key it references.

        Declared fields are returned as-is; missing ones are synthesized with
        the abstract type of the target key.

        Raises:
            PerModelGenerationError: If a target is missing or has no single key
        """
        by_name = {m.name: m for m in all_models}
        refs: list[ForeignKeyRef] = []
        seen: set[str] = set()

        for relation in model.relations_of(RelationKind.BELONGS_TO):
            target = by_name.get(relation.target)
            if target is None:
                raise PerModelGenerationError(
                    model.name,
                    f"relation '{relation.name}' targets unknown model '{relation.target}'",
                )
            key = reference_key(target)
            if key is None:
                raise PerModelGenerationError(
                    model.name,
                    f"relation '{relation.name}' targets '{target.name}', which has no single key",
                )

            fk_name = expected_foreign_key(relation)
            if fk_name in seen:
                continue
            seen.add(fk_name)

            declared = model.get_field(fk_name)
            if declared is not None:
                refs.append(ForeignKeyRef(declared, target.name, key, synthesized=False))
                continue

            counterpart = self._counterpart_of_belongs_to(model, relation, target)
            fk = FieldSpec(
                name=fk_name,
                type=key.type,
                required=relation.required,
                unique=counterpart is not None and counterpart.kind == RelationKind.HAS_ONE,
                validation=_length_rules(key),
                db_type=key.db_type,
            )
            refs.append(ForeignKeyRef(fk, target.name, key, synthesized=True))
        return refs

    def get_foreign_key_fields(
        self, model: ModelSpec, all_models: Sequence[ModelSpec]
    ) -> list[FieldSpec]:
        """Foreign key fields the model does not declare and must gain."""
        return [ref.field for ref in self.foreign_key_refs(model, all_models) if ref.synthesized]

    # =========================================================================
    # Relation members
    # =========================================================================

    def generate_model_relations(
        self, model: ModelSpec, all_models: Sequence[ModelSpec]
    ) -> list[ColumnDef]:
        """
        Render-ready relation members for one model.

        belongsTo owns the reference (fields/references/onDelete); hasOne and
        hasMany point back through the foreign key on the other side;
        manyToMany points at the junction entity, declared or synthesized.

        Raises:
            PerModelGenerationError: If a relation cannot be resolved
        """
        by_name = {m.name: m for m in all_models}
        plan = self.plan(all_models)
        junctions = {j.name: j for j in plan.junctions}
        refs = {ref.field.name: ref for ref in self.foreign_key_refs(model, all_models)}
        members: list[ColumnDef] = []

        for relation in model.relations:
            target = by_name.get(relation.target)
            if target is None:
                raise PerModelGenerationError(
                    model.name,
                    f"relation '{relation.name}' targets unknown model '{relation.target}'",
                )

            if relation.kind == RelationKind.BELONGS_TO:
                ref = refs[expected_foreign_key(relation)]
                if model.name in junctions:
                    label = self._junction_side(junctions[model.name].sides, ref.field.name).label
                else:
                    label = self.belongs_to_label(model, relation)
                args = [
                    f'"{label}"',
                    f"fields: [{ref.field.name}]",
                    f"references: [{ref.key.name}]",
                ]
                if relation.on_delete is not None:
                    args.append(f"onDelete: {relation.on_delete.value}")
                optional = not (relation.required or ref.field.required)
                members.append(
                    ColumnDef(
                        relation.name,
                        target.name,
                        optional=optional,
                        attributes=[f"@relation({', '.join(args)})"],
                    )
                )

            elif relation.kind in (RelationKind.HAS_ONE, RelationKind.HAS_MANY):
                owner = self._counterpart_of_back_reference(model, relation, target)
                type_name = target.name
                if relation.kind == RelationKind.HAS_MANY:
                    type_name = f"{target.name}[]"
                attributes = (
                    [f'@relation("{self.belongs_to_label(target, owner)}")'] if owner else []
                )
                members.append(
                    ColumnDef(
                        relation.name,
                        type_name,
                        optional=relation.kind == RelationKind.HAS_ONE,
                        attributes=attributes,
                    )
                )

            elif relation.kind == RelationKind.MANY_TO_MANY:
                members.append(self._many_to_many_member(model, relation, by_name, plan))

        return members

    def _many_to_many_member(
        self,
        model: ModelSpec,
        relation: RelationSpec,
        by_name: dict[str, ModelSpec],
        plan: ManyToManyPlan,
    ) -> ColumnDef:
        if relation.through is not None:
            junction = by_name.get(relation.through.model)
            if junction is None:
                raise PerModelGenerationError(
                    model.name,
                    f"relation '{relation.name}' uses unknown junction '{relation.through.model}'",
                )
            owner = next(
                (
                    r
                    for r in junction.relations_of(RelationKind.BELONGS_TO)
                    if r.target == model.name
                    and expected_foreign_key(r) == relation.through.source_key
                ),
                None,
            )
            attributes = [f'@relation("{self.belongs_to_label(junction, owner)}")'] if owner else []
            return ColumnDef(relation.name, f"{junction.name}[]", attributes=attributes)

        side = plan.sides.get((model.name, relation.name))
        if side is None:
            raise PerModelGenerationError(
                model.name,
                f"manyToMany relation '{relation.name}' has no matching declaration on "
                f"'{relation.target}'",
            )
        return ColumnDef(
            relation.name, f"{side.junction}[]", attributes=[f'@relation("{side.label}")']
        )

    @staticmethod
    def belongs_to_label(model: ModelSpec, relation: RelationSpec) -> str:
        """Relation name shared by a belongsTo member and its back reference."""
        return f"{model.name}_{relation.name}"

    @staticmethod
    def _junction_side(sides: Iterable[JunctionSide], foreign_key: str) -> JunctionSide:
        return next(s for s in sides if s.foreign_key == foreign_key)

    @staticmethod
    def _links(owner: RelationSpec, back: RelationSpec) -> bool:
        if owner.inverse is not None and owner.inverse != back.name:
            return False
        return back.inverse is None or back.inverse == owner.name

    def _counterpart_of_belongs_to(
        self, model: ModelSpec, relation: RelationSpec, target: ModelSpec
    ) -> RelationSpec | None:
        candidates = [
            r
            for r in target.relations
            if r.kind in (RelationKind.HAS_ONE, RelationKind.HAS_MANY)
            and r.target == model.name
            and self._links(relation, r)
        ]
        return self._pick(relation.name, candidates)

    def _counterpart_of_back_reference(
        self, model: ModelSpec, relation: RelationSpec, target: ModelSpec
    ) -> RelationSpec | None:
        candidates = [
            r
            for r in target.relations_of(RelationKind.BELONGS_TO)
            if r.target == model.name and self._links(r, relation)
        ]
        return self._pick(relation.name, candidates, prefer=relation.inverse)

    @staticmethod
    def _pick(
        name: str, candidates: list[RelationSpec], prefer: str | None = None
    ) -> RelationSpec | None:
        if prefer is not None:
            return next((r for r in candidates if r.name == prefer), None)
        explicit = [r for r in candidates if r.inverse == name]
        if explicit:
            return explicit[0]
        return candidates[0] if len(candidates) == 1 else None

    # =========================================================================
    # Junctions
    # =========================================================================

    def junction_name_for(
        self, model: ModelSpec, relation: RelationSpec, all_models: Sequence[ModelSpec]
    ) -> str | None:
        """Junction entity backing a manyToMany relation, or None for other kinds."""
        if relation.kind != RelationKind.MANY_TO_MANY:
            return None
        if relation.through is not None:
            return relation.through.model
        side = self.plan(all_models).sides.get((model.name, relation.name))
        return side.junction if side else None

    def get_required_junction_models(self, models: Sequence[ModelSpec]) -> list[ModelSpec]:
        """
        Junction entities to synthesize for implicit manyToMany relations.

        Exactly one per canonical model pair, however many times and in
        whichever order the pair was declared. Explicit ``through``
        junctions are never synthesized.
        """
        by_name = {m.name: m for m in models}
        junctions: list[ModelSpec] = []

        for junction in self.plan(models).junctions:
            first = by_name[junction.pair[0]]
            second = by_name[junction.pair[1]]
            fields: list[FieldSpec] = []
            relations: list[RelationSpec] = []
            for side in junction.sides:
                key = reference_key(by_name[side.model])
                if key is None:
                    raise PerModelGenerationError(
                        junction.name, f"participant '{side.model}' has no single key"
                    )
                fields.append(
                    FieldSpec(
                        name=side.foreign_key,
                        type=key.type,
                        required=True,
                        validation=_length_rules(key),
                        db_type=key.db_type,
                    )
                )
                relations.append(
                    RelationSpec(
                        name=side.foreign_key.removesuffix("Id"),
                        kind=RelationKind.BELONGS_TO,
                        target=side.model,
                        foreign_key=side.foreign_key,
                        required=True,
                        on_delete=ReferentialAction.CASCADE,
                    )
                )

            junctions.append(
                ModelSpec(
                    name=junction.name,
                    module=first.module,
                    table_name=f"{first.table.table}_to_{second.table.table}",
                    fields=fields,
                    relations=relations,
                    primary_key=[f.name for f in fields],
                    config=ModelConfig(timestamps=False),
                    description=f"Junction for {first.name} <-> {second.name}",
                )
            )
            logger.debug("Synthesized junction %s", junction.name)

        return junctions
