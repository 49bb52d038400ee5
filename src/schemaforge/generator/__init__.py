"""
Schema generation: field mapping, relation resolution, formatting and the
orchestrator that drives them.
"""

from .dialects import DialectProfile, get_profile
from .field_mapper import AUDIT_FIELD_NAMES, ColumnDef, FieldMapper
from .formatter import IndexDef, SchemaBlock, SchemaFormatter, extract_blocks, lint_document
from .orchestrator import (
    GeneratedDocument,
    GenerationStats,
    SchemaGenerator,
    compile_schema,
    extract_legacy_models,
    read_baseline,
    write_document,
)
from .relations import ForeignKeyRef, RelationResolver

__all__ = [
    "AUDIT_FIELD_NAMES",
    "ColumnDef",
    "DialectProfile",
    "FieldMapper",
    "ForeignKeyRef",
    "GeneratedDocument",
    "GenerationStats",
    "IndexDef",
    "RelationResolver",
    "SchemaBlock",
    "SchemaFormatter",
    "SchemaGenerator",
    "compile_schema",
    "extract_blocks",
    "extract_legacy_models",
    "read_baseline",
    "get_profile",
    "lint_document",
    "write_document",
]
