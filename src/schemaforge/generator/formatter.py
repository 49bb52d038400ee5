"""
Schema formatting.

Renders model members into ``model X { ... }`` blocks, groups blocks into
module sections, and parses existing documents back into blocks.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from ..core.config import Dialect, OutputFormat
from ..core.ir import ConstraintKind, ModelSpec, TableRef
from ..core.strings import snake_case
from .dialects import get_profile
from .field_mapper import ColumnDef

RULE = "// " + "=" * 77

# Schema that core models live in when modules map to database schemas
DEFAULT_DB_SCHEMA = "public"

_BLOCK_START = re.compile(r"^\s*(model|enum|view|type|datasource|generator)\s+(\w+)\s*\{")


@dataclass(frozen=True)
class IndexDef:
    """A block-level ``@@index`` or ``@@unique`` directive."""

    kind: ConstraintKind
    fields: tuple[str, ...]
    name: str

    def render(self) -> str:
        directive = "@@unique" if self.kind == ConstraintKind.UNIQUE else "@@index"
        return f'{directive}([{", ".join(self.fields)}], map: "{self.name}")'


@dataclass(frozen=True)
class SchemaBlock:
    """A top-level block found in a schema document."""

    kind: str
    name: str
    text: str


def banner(title: str) -> list[str]:
    return [RULE, f"// {title}", RULE]


class SchemaFormatter:
    """
    Renders model blocks and module sections.

    Args:
        output_format: ``pretty`` aligns members and adds comments;
            ``compact`` separates tokens with single spaces
        dialect: Decides how a module-scoped table is mapped
        multi_schema: Place each module in its own database schema; only
            honoured by dialects that support schemas
    """

    indent = "  "

    def __init__(
        self,
        output_format: OutputFormat | str = OutputFormat.PRETTY,
        dialect: Dialect | str = Dialect.MYSQL,
        multi_schema: bool = False,
    ):
        self.output_format = OutputFormat(output_format)
        self.profile = get_profile(dialect)
        self.multi_schema = multi_schema and self.profile.supports_schemas

    @property
    def pretty(self) -> bool:
        return self.output_format == OutputFormat.PRETTY

    # =========================================================================
    # Table naming
    # =========================================================================

    def schema_name(self, table: TableRef) -> str:
        return DEFAULT_DB_SCHEMA if table.is_core else table.module

    def physical_table(self, table: TableRef) -> str:
        """Table name as it exists in the database namespace of its module."""
        if table.is_core or self.multi_schema:
            return table.table
        return f"{table.module}_{table.table}"

    def table_directives(self, table: TableRef) -> list[str]:
        directives = [f'@@map("{self.physical_table(table)}")']
        if self.multi_schema:
            directives.append(f'@@schema("{self.schema_name(table)}")')
        return directives

    # =========================================================================
    # Indexes
    # =========================================================================

    def build_indexes(self, model: ModelSpec, foreign_keys: Sequence[str] = ()) -> list[IndexDef]:
        """
        Secondary indexes for a model.

        Foreign key columns and fields flagged ``indexed`` get an index unless
        a key or unique constraint already leads with them; model-level
        constraints map one to one.
        """
        table = self.physical_table(model.table)
        covered: set[tuple[str, ...]] = set()
        leading: set[str] = set()

        composite = model.composite_key
        if composite:
            leading.add(composite[0])
        for key in model.primary_key_fields:
            if not composite:
                leading.add(key.name)
        for f in model.fields:
            if f.unique:
                leading.add(f.name)

        indexes: list[IndexDef] = []

        def add(kind: ConstraintKind, fields: Sequence[str]) -> None:
            columns = tuple(fields)
            if columns in covered:
                return
            covered.add(columns)
            prefix = "uq" if kind == ConstraintKind.UNIQUE else "idx"
            name = "_".join([prefix, table, *(snake_case(c) for c in columns)])
            indexes.append(IndexDef(kind=kind, fields=columns, name=name))

        for constraint in model.constraints:
            if constraint.kind == ConstraintKind.UNIQUE:
                add(constraint.kind, constraint.fields)
                leading.add(constraint.fields[0])
        for name in foreign_keys:
            if name not in leading:
                add(ConstraintKind.INDEX, [name])
        for f in model.fields:
            if f.indexed and f.name not in leading:
                add(ConstraintKind.INDEX, [f.name])
        for constraint in model.constraints:
            if constraint.kind == ConstraintKind.INDEX:
                add(constraint.kind, constraint.fields)
        return indexes

    # =========================================================================
    # Blocks
    # =========================================================================

    def _member_lines(self, members: Sequence[ColumnDef], widths: tuple[int, int]) -> list[str]:
        lines = []
        for member in members:
            if self.pretty:
                name = member.name.ljust(widths[0])
                type_decl = member.type_decl.ljust(widths[1])
                line = " ".join([name, type_decl, *member.attributes])
            else:
                line = member.render()
            lines.append(self.indent + line.rstrip())
        return lines

    def format_model(
        self,
        model_name: str,
        columns: Sequence[ColumnDef],
        relations: Sequence[ColumnDef] = (),
        indexes: Sequence[IndexDef] = (),
        table: TableRef | None = None,
        composite_key: Sequence[str] | None = None,
        description: str | None = None,
    ) -> str:
        """
        Render one model block.

        A composite key is emitted as a single ``@@id`` directive; columns
        never carry ``@id`` alongside it.
        """
        members = [*columns, *relations]
        widths = (
            max((len(m.name) for m in members), default=0),
            max((len(m.type_decl) for m in members), default=0),
        )

        lines: list[str] = []
        if self.pretty and description:
            lines.append(f"/// {description}")
        lines.append(f"model {model_name} {{")
        lines.extend(self._member_lines(columns, widths))

        if relations:
            if self.pretty:
                lines.append("")
                lines.append(f"{self.indent}// Relations")
            lines.extend(self._member_lines(relations, widths))

        directives: list[str] = []
        if composite_key:
            directives.append(f"@@id([{', '.join(composite_key)}])")
        directives.extend(index.render() for index in indexes)
        if table is not None:
            directives.extend(self.table_directives(table))
        if directives:
            if self.pretty:
                lines.append("")
            lines.extend(f"{self.indent}{d}" for d in directives)

        lines.append("}")
        return "\n".join(lines)

    def format_module_section(
        self, module: str, models: Sequence[ModelSpec], blocks: Sequence[str]
    ) -> str:
        """Group a module's rendered blocks under its header."""
        parts: list[str] = []
        if self.pretty:
            parts.append("\n".join(banner(f"MODULE: {module.upper()}")))
            listing = ["// Models in this module:"]
            for model in models:
                listing.append(
                    f"// - {model.name} (table: {self.physical_table(model.table)}, "
                    f"fields: {len(model.fields)}, relations: {len(model.relations)})"
                )
            parts.append("\n".join(listing))
        else:
            parts.append(f"// Module: {module}")
        parts.extend(blocks)
        return "\n\n".join(parts)


# =============================================================================
# Parsing existing documents
# =============================================================================


def extract_blocks(text: str) -> list[SchemaBlock]:
    """
    Split a schema document into its top-level blocks.

    Braces are counted line by line, so nested braces inside a block (for
    example in a default expression) do not end it early. Text outside
    blocks is dropped.
    """
    blocks: list[SchemaBlock] = []
    current: list[str] = []
    kind = name = ""
    depth = 0

    for line in text.splitlines():
        code = line.split("//", 1)[0]
        if not current:
            match = _BLOCK_START.match(line)
            if match is None:
                continue
            kind, name = match.group(1), match.group(2)
            current = [line]
            depth = code.count("{") - code.count("}")
        else:
            current.append(line)
            depth += code.count("{") - code.count("}")
        if depth <= 0:
            blocks.append(SchemaBlock(kind=kind, name=name, text="\n".join(current)))
            current = []

    return blocks


def lint_document(text: str) -> list[str]:
    """Non-fatal checks on a finished document."""
    warnings: list[str] = []
    for block in extract_blocks(text):
        if block.kind != "model":
            continue
        if not re.search(r"@id\b|@@id\(", block.text):
            warnings.append(f"Model {block.name} appears to be missing a primary key")
    return warnings
