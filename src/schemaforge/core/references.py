"""
Cross-model reference helpers.

Shared by the validator and the relation resolver so that both agree on
foreign key naming, key types, and how manyToMany declarations pair up.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from . import ir
from .strings import foreign_key_name, lower_first


def expected_foreign_key(relation: ir.RelationSpec) -> str:
    """Foreign key field a belongsTo relation uses: explicit, else ``<relationName>Id``."""
    return relation.foreign_key or foreign_key_name(relation.name)


def reference_key(model: ir.ModelSpec) -> ir.FieldSpec | None:
    """
    The single key field other models reference, or None.

    Returns None when the model has no key or a composite key; composite keys
    cannot be the target of a single-column reference.
    """
    if model.composite_key:
        return None
    keys = model.primary_key_fields
    return keys[0] if len(keys) == 1 else None


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order two model names so a pair has one identity regardless of direction."""
    return (a, b) if a <= b else (b, a)


def junction_name(pair: tuple[str, str]) -> str:
    return f"{pair[0]}To{pair[1]}"


@dataclass(frozen=True)
class JunctionSide:
    """One end of a synthesized junction, as seen from a declaring model."""

    junction: str
    model: str
    relation: str
    foreign_key: str

    @property
    def label(self) -> str:
        """Relation name shared by the declaring model's list field and the junction side."""
        return f"{self.junction}_{self.foreign_key}"


@dataclass(frozen=True)
class ImplicitJunction:
    """A junction entity the resolver must synthesize for one model pair."""

    name: str
    pair: tuple[str, str]
    sides: tuple[JunctionSide, JunctionSide]


@dataclass
class ManyToManyPlan:
    """
    Result of pairing implicit manyToMany declarations across the registry.

    Attributes:
        junctions: One junction per canonical model pair, in discovery order
        sides: (model, relation) -> the junction side that relation uses
        problems: (model, relation, reason) for declarations that cannot pair
    """

    junctions: list[ImplicitJunction] = field(default_factory=list)
    sides: dict[tuple[str, str], JunctionSide] = field(default_factory=dict)
    problems: list[tuple[str, str, str]] = field(default_factory=list)


def _declarations_match(
    first: tuple[ir.ModelSpec, ir.RelationSpec],
    second: tuple[ir.ModelSpec, ir.RelationSpec],
) -> bool:
    (model_a, rel_a), (model_b, rel_b) = first, second
    if rel_a.target != model_b.name or rel_b.target != model_a.name:
        return False
    a_ok = rel_a.inverse is None or rel_a.inverse == rel_b.name
    b_ok = rel_b.inverse is None or rel_b.inverse == rel_a.name
    if model_a.name == model_b.name:
        # Two self-relations only pair when they name each other
        return (rel_a.inverse == rel_b.name or rel_b.inverse == rel_a.name) and a_ok and b_ok
    return a_ok and b_ok


def plan_many_to_many(models: Iterable[ir.ModelSpec]) -> ManyToManyPlan:
    """
    Pair implicit manyToMany declarations and decide which junctions to synthesize.

    A relation with an explicit ``through`` is never part of the plan. Every
    other manyToMany must be declared from both participating models; the two
    declarations collapse onto one junction named after the canonical
    (lexicographically ordered) model pair, so declaration order and the
    number of declaring sides cannot produce a second junction.
    """
    model_list = list(models)
    by_name: Mapping[str, ir.ModelSpec] = {m.name: m for m in model_list}
    plan = ManyToManyPlan()

    groups: dict[tuple[str, str], list[tuple[ir.ModelSpec, ir.RelationSpec]]] = {}
    for model in model_list:
        for relation in model.relations:
            if relation.kind != ir.RelationKind.MANY_TO_MANY or relation.through is not None:
                continue
            if relation.target not in by_name:
                continue
            pair = canonical_pair(model.name, relation.target)
            groups.setdefault(pair, []).append((model, relation))

    for pair, declarations in groups.items():
        remaining = list(declarations)
        matched: list[tuple[tuple[ir.ModelSpec, ir.RelationSpec], ...]] = []
        while remaining:
            current = remaining.pop(0)
            partner = next((d for d in remaining if _declarations_match(current, d)), None)
            if partner is None:
                model, relation = current
                plan.problems.append(
                    (
                        model.name,
                        relation.name,
                        f"manyToMany relation to '{relation.target}' is declared on one side only; "
                        f"declare the inverse relation on '{relation.target}' or use an explicit "
                        f"'through' junction",
                    )
                )
                continue
            remaining.remove(partner)
            matched.append((current, partner))

        if len(matched) > 1:
            for (model, relation), _ in matched[1:]:
                plan.problems.append(
                    (
                        model.name,
                        relation.name,
                        f"more than one implicit manyToMany between '{pair[0]}' and '{pair[1]}'; "
                        f"declare an explicit 'through' junction for all but one",
                    )
                )
        if not matched:
            continue

        first, second = matched[0]
        if first[0].name != pair[0]:
            first, second = second, first
        name = junction_name(pair)
        first_fk = f"{lower_first(pair[0])}Id"
        second_fk = f"{lower_first(pair[1])}Id"
        if first_fk == second_fk:
            second_fk = f"related{pair[1]}Id"
        sides = (
            JunctionSide(name, first[0].name, first[1].name, first_fk),
            JunctionSide(name, second[0].name, second[1].name, second_fk),
        )
        plan.junctions.append(ImplicitJunction(name=name, pair=pair, sides=sides))
        for side in sides:
            plan.sides[(side.model, side.relation)] = side

    return plan
