"""
Schema generation orchestrator.

``SchemaGenerator.generate`` is a pure function from a frozen registry and
an options record to a ``GeneratedDocument``. ``compile_schema`` wraps it
with the only I/O in the pipeline: reading an optional baseline document
at the start and one atomic write at the end.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ..core.config import GenerationOptions
from ..core.errors import PerModelGenerationError, SchemaValidationFailed
from ..core.ir import DEFAULT_MODULE, ModelSpec
from ..core.registry import ModelRegistry
from ..core.validator import validate_models
from .field_mapper import FieldMapper
from .formatter import RULE, SchemaBlock, SchemaFormatter, banner, extract_blocks, lint_document
from .relations import RelationResolver

logger = logging.getLogger(__name__)

# Block kinds carried over from a baseline document
LEGACY_BLOCK_KINDS = frozenset({"model", "enum", "view", "type"})


@dataclass(frozen=True)
class GenerationStats:
    """Counts summarizing one generation run."""

    modules: tuple[str, ...]
    total_models: int
    total_junctions: int
    total_legacy: int
    total_skipped: int
    total_warnings: int

    def summary(self) -> str:
        parts = [
            f"{self.total_models} model(s)",
            f"{self.total_junctions} junction(s)",
            f"{len(self.modules)} module(s)",
        ]
        if self.total_legacy:
            parts.append(f"{self.total_legacy} legacy block(s)")
        if self.total_skipped:
            parts.append(f"{self.total_skipped} skipped")
        if self.total_warnings:
            parts.append(f"{self.total_warnings} warning(s)")
        return ", ".join(parts)


@dataclass
class GeneratedDocument:
    """
    Result of a generation run.

    Attributes:
        content: The complete schema document
        warnings: Non-fatal findings (validator warnings, cycles, skipped models)
        modules: Module names in emission order
        model_count: Declared models rendered into the document
        junction_count: Junction entities synthesized
        skipped_models: Models whose generation failed and were left out
        legacy_models: Blocks carried over from the baseline document
        cycles: Multi-model reference cycles found in the registry
    """

    content: str
    warnings: list[str] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)
    model_count: int = 0
    junction_count: int = 0
    skipped_models: list[str] = field(default_factory=list)
    legacy_models: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def stats(self) -> GenerationStats:
        return GenerationStats(
            modules=tuple(self.modules),
            total_models=self.model_count,
            total_junctions=self.junction_count,
            total_legacy=len(self.legacy_models),
            total_skipped=len(self.skipped_models),
            total_warnings=len(self.warnings),
        )


def extract_legacy_models(baseline: str, exclude: Iterable[str]) -> list[SchemaBlock]:
    """
    Blocks from a hand-authored baseline that the compiler does not produce.

    Datasource and generator blocks are dropped (the compiler emits its own),
    as is every block whose name is in ``exclude``.
    """
    skip = set(exclude)
    return [
        block
        for block in extract_blocks(baseline)
        if block.kind in LEGACY_BLOCK_KINDS and block.name not in skip
    ]


def group_by_module(models: Iterable[ModelSpec]) -> dict[str, list[ModelSpec]]:
    """Group models by module, preserving first-registration order."""
    groups: dict[str, list[ModelSpec]] = {}
    for model in models:
        groups.setdefault(model.module or DEFAULT_MODULE, []).append(model)
    return groups


class SchemaGenerator:
    """
    Builds a complete schema document from a registry snapshot.

    Args:
        options: Generation options; defaults apply when omitted
    """

    def __init__(self, options: GenerationOptions | None = None):
        self.options = options or GenerationOptions()
        self.mapper = FieldMapper(self.options.dialect, actor_type=self.options.audit_actor_type)
        self.resolver = RelationResolver()

    def generate(
        self,
        registry: ModelRegistry | Iterable[ModelSpec],
        baseline: str | None = None,
    ) -> GeneratedDocument:
        """
        Generate the schema document.

        Args:
            registry: Frozen registry snapshot (or any iterable of models)
            baseline: Text of an existing hand-authored schema; its models are
                carried over unless the compiler produces a model of that name

        Returns:
            The generated document with warnings and counts

        Raises:
            SchemaValidationFailed: If any model fails validation; carries
                every error found
        """
        if not isinstance(registry, ModelRegistry):
            registry = ModelRegistry(registry)
        models = registry.get_all()
        logger.info(
            "Generating %s schema for %d model(s)", self.options.dialect.value, len(models)
        )

        report = validate_models(models)
        if report.errors:
            raise SchemaValidationFailed(report.errors, report.warnings)
        warnings = list(report.warnings)

        cycles = registry.detect_cycles()
        for cycle in cycles:
            path = " -> ".join([*cycle, cycle[0]])
            logger.warning("Reference cycle: %s", path)
            warnings.append(f"Reference cycle: {path}")

        junctions = self.resolver.get_required_junction_models(models)
        all_models = [*models, *junctions]
        junction_names = {j.name for j in junctions}

        groups = group_by_module(models)
        for junction in junctions:
            groups.setdefault(junction.module, []).append(junction)

        formatter = SchemaFormatter(
            self.options.output_format,
            self.options.dialect,
            multi_schema=any(module != DEFAULT_MODULE for module in groups),
        )

        sections: list[str] = []
        skipped: list[str] = []
        rendered_models = 0
        for module, module_models in groups.items():
            blocks: list[str] = []
            rendered: list[ModelSpec] = []
            for model in module_models:
                try:
                    blocks.append(self.build_model_block(model, all_models, formatter))
                except PerModelGenerationError as e:
                    logger.warning("Skipped model %s: %s", model.name, e)
                    warnings.append(f"Skipped model {model.name}: {e}")
                    skipped.append(model.name)
                    continue
                except Exception as e:
                    logger.exception("Unexpected failure generating model %s", model.name)
                    warnings.append(f"Skipped model {model.name}: unexpected error: {e}")
                    skipped.append(model.name)
                    continue
                rendered.append(model)
                if model.name not in junction_names:
                    rendered_models += 1
            if blocks:
                sections.append(formatter.format_module_section(module, rendered, blocks))

        legacy: list[SchemaBlock] = []
        if baseline:
            produced = [m.name for m in all_models if m.name not in skipped]
            legacy = extract_legacy_models(baseline, produced)
            if legacy:
                logger.info("Carrying over %d legacy block(s) from baseline", len(legacy))

        schemas: list[str] = []
        if formatter.multi_schema:
            schemas = sorted({formatter.schema_name(m.table) for m in all_models})
        content = self.assemble(sections, legacy, schemas)
        warnings.extend(lint_document(content))

        return GeneratedDocument(
            content=content,
            warnings=warnings,
            modules=list(groups),
            model_count=rendered_models,
            junction_count=len([j for j in junctions if j.name not in skipped]),
            skipped_models=skipped,
            legacy_models=[b.name for b in legacy],
            cycles=cycles,
        )

    def build_model_block(
        self,
        model: ModelSpec,
        all_models: Sequence[ModelSpec],
        formatter: SchemaFormatter,
    ) -> str:
        """
        Render one model: declared fields, synthesized foreign keys, audit
        fields, relation members, then indexes and table mapping.

        Raises:
            PerModelGenerationError: If any field or relation cannot be mapped
        """
        refs = self.resolver.foreign_key_refs(model, all_models)
        references = {ref.field.name: ref.key for ref in refs}

        columns = self.mapper.map_model_fields(model, references)
        synthesized = [ref for ref in refs if ref.synthesized]
        for ref in synthesized:
            columns.append(
                self.mapper.map_field(
                    ref.field, model=model.name, inline_id=False, references=ref.key
                )
            )

        if self.options.include_audit_fields and model.config.timestamps:
            taken = [
                *model.field_names,
                *(ref.field.name for ref in synthesized),
                *(r.name for r in model.relations),
            ]
            columns.extend(self.mapper.generate_audit_fields(exclude=taken))

        relations = self.resolver.generate_model_relations(model, all_models)

        indexes = []
        if self.options.include_indexes:
            indexed_keys = [ref.field.name for ref in refs if not ref.field.unique]
            indexes = formatter.build_indexes(model, indexed_keys)

        return formatter.format_model(
            model.name,
            columns,
            relations,
            indexes,
            table=model.table,
            composite_key=model.composite_key,
            description=model.description,
        )

    # =========================================================================
    # Document assembly
    # =========================================================================

    def build_header(self) -> str:
        lines = [
            RULE,
            "// PRISMA SCHEMA - GENERATED BY SCHEMAFORGE",
            RULE,
            f"// Provider: {self.options.dialect.value}",
        ]
        if self.options.include_timestamp:
            lines.append(f"// Generated: {datetime.now(UTC).isoformat(timespec='seconds')}")
        lines.extend(
            [
                "// DO NOT EDIT THIS FILE MANUALLY. Edit the model descriptors and regenerate.",
                RULE,
            ]
        )
        return "\n".join(lines)

    def build_datasource(self, schemas: Sequence[str] = ()) -> str:
        """Connection directive; the URL is always read from the environment."""
        entries = [
            ("provider", f'"{self.options.dialect.value}"'),
            ("url", f'env("{self.options.connection_env}")'),
        ]
        if schemas:
            entries.append(("schemas", "[" + ", ".join(f'"{s}"' for s in schemas) + "]"))
        return _config_block("datasource db", entries)

    def build_generator(self, preview_features: Sequence[str] = ()) -> str:
        entries = [
            ("provider", '"prisma-client-js"'),
            ("output", f'"{self.options.client_output}"'),
        ]
        if self.options.binary_targets:
            targets = ", ".join(f'"{t}"' for t in self.options.binary_targets)
            entries.append(("binaryTargets", f"[{targets}]"))
        if preview_features:
            entries.append(
                ("previewFeatures", "[" + ", ".join(f'"{p}"' for p in preview_features) + "]")
            )
        return _config_block("generator client", entries)

    def assemble(
        self,
        sections: Sequence[str],
        legacy: Sequence[SchemaBlock] = (),
        schemas: Sequence[str] = (),
    ) -> str:
        """Join header, datasource, generator, legacy blocks and module sections."""
        parts = [
            self.build_header(),
            self.build_datasource(schemas),
            self.build_generator(["multiSchema"] if schemas else []),
        ]
        if legacy:
            parts.append("\n".join(banner("LEGACY MODELS (NOT YET DECLARED AS DESCRIPTORS)")))
            parts.extend(block.text for block in legacy)
        if sections:
            parts.append("\n".join(banner("GENERATED MODELS")))
            parts.extend(sections)
        return "\n\n".join(parts) + "\n"


def _config_block(opener: str, entries: Sequence[tuple[str, str]]) -> str:
    width = max(len(key) for key, _ in entries)
    body = "\n".join(f"  {key.ljust(width)} = {value}" for key, value in entries)
    return f"{opener} {{\n{body}\n}}"


def write_document(content: str, path: Path) -> Path:
    """
    Write the document atomically.

    The content goes to a temporary file in the target directory which then
    replaces the destination, so readers never see a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %d bytes to %s", len(content.encode("utf-8")), path)
    return path


def read_baseline(path: Path | None) -> str | None:
    """Read the baseline document, or None when unset or absent."""
    if path is None:
        return None
    if not path.is_file():
        logger.info("No baseline found at %s; generating descriptors only", path)
        return None
    return path.read_text(encoding="utf-8")


def compile_schema(
    registry: ModelRegistry | Iterable[ModelSpec],
    options: GenerationOptions | None = None,
) -> GeneratedDocument:
    """
    Generate the schema and write it to ``options.output_path``.

    Nothing is written when validation fails.

    Raises:
        SchemaValidationFailed: If any model fails validation
    """
    options = options or GenerationOptions()
    baseline = read_baseline(options.baseline_path)
    document = SchemaGenerator(options).generate(registry, baseline=baseline)
    write_document(document.content, options.output_path)
    logger.info("Generated %s: %s", options.output_path, document.stats.summary())
    return document
