"""
Structural validation for model descriptors.

Runs before any generation. Every model is checked and all problems are
collected together, so the caller can fix everything in one pass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from . import ir
from .errors import RelationIntegrityError, StructuralError, ValidationError
from .references import expected_foreign_key, plan_many_to_many, reference_key

logger = logging.getLogger(__name__)

# =============================================================================
# Validation Constants
# =============================================================================

STRING_MAX_LENGTH_WARN_THRESHOLD = 10000  # Suggest text type above this

# SQL reserved words (common across SQLite, PostgreSQL, MySQL)
# These can cause issues when used unquoted in SQL statements
SQL_RESERVED_WORDS = frozenset(
    {
        "order",
        "group",
        "select",
        "table",
        "index",
        "key",
        "user",
        "check",
        "primary",
        "foreign",
        "references",
        "constraint",
        "default",
        "null",
        "where",
        "from",
        "join",
        "column",
        "limit",
        "offset",
        "union",
        "having",
        "trigger",
        "view",
        "unique",
        "current_date",
        "current_time",
        "current_timestamp",
        "transaction",
        "grant",
        "revoke",
        "values",
        "database",
        "schema",
        "range",
        "rows",
    }
)


@dataclass
class ValidationReport:
    """
    Outcome of validating a registry snapshot.

    Attributes:
        errors: Fatal problems; generation must not proceed when non-empty
        warnings: Non-fatal findings
    """

    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def structural(self, reason: str, model: str, **where: str | None) -> None:
        self.errors.append(StructuralError(reason, model=model, **where))

    def integrity(self, reason: str, model: str, **where: str | None) -> None:
        self.errors.append(RelationIntegrityError(reason, model=model, **where))


def _validate_primary_key(model: ir.ModelSpec, report: ValidationReport) -> None:
    flagged = [f.name for f in model.fields if f.primary_key]
    has_id = model.get_field("id") is not None

    if model.primary_key is not None and not model.primary_key:
        report.structural("composite primary key is an empty list", model.name)
    composite = model.composite_key

    if not flagged and not has_id and not composite:
        report.structural(
            "model has no primary key: flag a field as primary, add an 'id' field, "
            "or declare a composite primary key",
            model.name,
        )
        return

    if composite and flagged:
        report.structural(
            f"model declares both a composite primary key {composite} and primary field(s) "
            f"{flagged}; use exactly one form",
            model.name,
        )
    if len(flagged) > 1:
        report.structural(
            f"model flags {len(flagged)} fields as primary ({', '.join(flagged)}); "
            f"use a composite primary key instead",
            model.name,
        )
    if composite:
        for name in composite:
            if model.get_field(name) is None:
                report.structural(
                    f"composite primary key references unknown field '{name}'", model.name
                )
        if len(set(composite)) != len(composite):
            report.structural(
                f"composite primary key {composite} lists a field more than once", model.name
            )


def _validate_fields(model: ir.ModelSpec, report: ValidationReport) -> None:
    seen: set[str] = set()
    for index, spec in enumerate(model.fields):
        if not spec.name or spec.type is None:
            report.structural(
                f"field #{index + 1} is missing its "
                + ("name" if not spec.name else "type"),
                model.name,
                field=spec.name or None,
            )
            continue
        if spec.name in seen:
            report.structural(f"duplicate field name: {spec.name}", model.name, field=spec.name)
        seen.add(spec.name)

        if spec.name.lower() in SQL_RESERVED_WORDS:
            report.warnings.append(
                f"Model '{model.name}' field '{spec.name}' uses SQL reserved word as name"
            )
        max_length = spec.max_length
        if max_length is not None and max_length > STRING_MAX_LENGTH_WARN_THRESHOLD:
            report.warnings.append(
                f"Model '{model.name}' field '{spec.name}' has very large max_length: "
                f"{max_length}. Consider using 'text' type."
            )

    for constraint in model.constraints:
        for name in constraint.fields:
            if model.get_field(name) is None:
                report.structural(
                    f"{constraint.kind.value} constraint references unknown field '{name}'",
                    model.name,
                )


def _validate_relations(
    model: ir.ModelSpec,
    by_name: dict[str, ir.ModelSpec],
    report: ValidationReport,
) -> None:
    seen: set[str] = set()
    synthesized: dict[str, str] = {}

    for relation in model.relations:
        if not relation.name or relation.kind is None or not relation.target:
            missing = [
                label
                for label, value in (
                    ("name", relation.name),
                    ("kind", relation.kind),
                    ("target", relation.target),
                )
                if not value
            ]
            report.structural(
                f"relation is missing {', '.join(missing)}",
                model.name,
                relation=relation.name or None,
            )
            continue

        if relation.name in seen:
            report.structural(
                f"duplicate relation name: {relation.name}", model.name, relation=relation.name
            )
        seen.add(relation.name)

        if model.get_field(relation.name) is not None:
            report.structural(
                f"relation '{relation.name}' has the same name as a field",
                model.name,
                relation=relation.name,
            )

        target = by_name.get(relation.target)
        if target is None:
            report.integrity(
                f"target model not found: {relation.target}", model.name, relation=relation.name
            )
            continue

        if relation.through is not None:
            _validate_through(model, relation, by_name, report)

        if relation.kind == ir.RelationKind.BELONGS_TO:
            _validate_foreign_key(model, relation, target, synthesized, report)

        if relation.kind == ir.RelationKind.HAS_MANY and not relation.inverse:
            report.warnings.append(
                f"Model '{model.name}' hasMany relation '{relation.name}' should specify "
                f"inverse for clarity"
            )
        if relation.inverse and target.get_relation(relation.inverse) is None:
            report.warnings.append(
                f"Model '{model.name}' relation '{relation.name}': inverse "
                f"'{relation.inverse}' not found in target model '{target.name}'"
            )


def _validate_through(
    model: ir.ModelSpec,
    relation: ir.RelationSpec,
    by_name: dict[str, ir.ModelSpec],
    report: ValidationReport,
) -> None:
    through = relation.through
    assert through is not None
    junction = by_name.get(through.model)
    if junction is None:
        report.integrity(
            f"junction model not found: {through.model}", model.name, relation=relation.name
        )
        return
    for key in (through.source_key, through.target_key):
        if junction.get_field(key) is None:
            report.integrity(
                f"junction model '{junction.name}' has no field '{key}'",
                model.name,
                relation=relation.name,
            )


def _validate_foreign_key(
    model: ir.ModelSpec,
    relation: ir.RelationSpec,
    target: ir.ModelSpec,
    synthesized: dict[str, str],
    report: ValidationReport,
) -> None:
    fk_name = expected_foreign_key(relation)
    key = reference_key(target)
    if key is None:
        report.structural(
            f"belongsTo target '{target.name}' has no single-field primary key to reference",
            model.name,
            relation=relation.name,
        )
        return

    declared = model.get_field(fk_name)
    if declared is not None:
        if declared.type is not None and key.type is not None and declared.type != key.type:
            report.structural(
                f"field '{fk_name}' collides with the foreign key for relation "
                f"'{relation.name}': it is {declared.type.value} but "
                f"'{target.name}.{key.name}' is {key.type.value}",
                model.name,
                field=fk_name,
            )
        return

    if fk_name in synthesized:
        report.structural(
            f"relations '{synthesized[fk_name]}' and '{relation.name}' would both synthesize "
            f"foreign key '{fk_name}'",
            model.name,
            relation=relation.name,
        )
    elif model.get_relation(fk_name) is not None:
        report.structural(
            f"foreign key '{fk_name}' for relation '{relation.name}' collides with a relation name",
            model.name,
            relation=relation.name,
        )
    synthesized.setdefault(fk_name, relation.name)


def validate_models(models: Iterable[ir.ModelSpec]) -> ValidationReport:
    """
    Validate every model descriptor and collect all problems.

    Checks per model, in order: name present; non-empty field list; exactly
    one primary key form; field names and types; relation name, kind and
    target; relation targets and explicit junctions registered; foreign key
    collisions. Then, across the registry: implicit manyToMany pairing and
    synthesized junction names.

    Returns:
        ValidationReport with errors (fatal) and warnings
    """
    model_list = list(models)
    by_name = {m.name: m for m in model_list if m.name}
    report = ValidationReport()

    for index, model in enumerate(model_list):
        if not model.name:
            report.structural(f"model #{index + 1} is missing its name", "")
            continue
        if not model.fields:
            report.structural("model has no fields", model.name)
            continue

        if model.name.lower() in SQL_RESERVED_WORDS:
            report.warnings.append(
                f"Model '{model.name}' uses SQL reserved word as name; check its table mapping"
            )

        _validate_primary_key(model, report)
        _validate_fields(model, report)
        _validate_relations(model, by_name, report)

    plan = plan_many_to_many(m for m in model_list if m.name and m.fields)
    for model_name, relation_name, reason in plan.problems:
        report.structural(reason, model_name, relation=relation_name)
    junction_pairs: dict[str, tuple[str, str]] = {}
    for junction in plan.junctions:
        earlier = junction_pairs.setdefault(junction.name, junction.pair)
        if earlier != junction.pair:
            report.structural(
                f"synthesized junction name '{junction.name}' is produced by both "
                f"{earlier[0]}/{earlier[1]} and {junction.pair[0]}/{junction.pair[1]}; "
                f"declare one of the relations with an explicit 'through' junction",
                junction.pair[0],
            )
        if junction.name in by_name:
            report.structural(
                f"synthesized junction name '{junction.name}' collides with a registered model; "
                f"declare the relation with an explicit 'through' junction",
                junction.pair[0],
            )
        for side in junction.sides:
            other = by_name[side.model]
            if reference_key(other) is None:
                report.structural(
                    f"manyToMany participant '{other.name}' has no single-field primary key",
                    side.model,
                    relation=side.relation,
                )

    if report.errors:
        logger.error("Validation found %d error(s)", len(report.errors))
    return report


def format_report(report: ValidationReport) -> str:
    """Format a validation report for display."""
    if not report.errors and not report.warnings:
        return "No validation errors found"

    lines = [
        f"Validation found {len(report.errors)} error(s) and {len(report.warnings)} warning(s):",
        "",
    ]
    for error in report.errors:
        kind = "integrity" if isinstance(error, RelationIntegrityError) else "structure"
        lines.append(f"  ERROR   ({kind}) {error}")
    for warning in report.warnings:
        lines.append(f"  WARNING {warning}")
    return "\n".join(lines)


__all__ = [
    "SQL_RESERVED_WORDS",
    "ValidationReport",
    "format_report",
    "validate_models",
]
