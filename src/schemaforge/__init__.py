"""
schemaforge - declarative schema compiler.

Applications register model descriptors with a ``RegistryBuilder``, freeze
them with ``build()``, and compile the snapshot into one dialect-specific
schema document.
"""

from __future__ import annotations

from ._version import get_version

# Re-export commonly used types for convenience
from .core import ir
from .core.config import Dialect, GenerationOptions, OutputFormat, load_options
from .core.errors import (
    PerModelGenerationError,
    RelationIntegrityError,
    SchemaForgeError,
    SchemaValidationFailed,
    StructuralError,
)
from .core.ir import FieldSpec, ModelSpec, RelationSpec, ThroughSpec
from .core.registry import ModelRegistry, ReadinessSignal, RegistryBuilder, collect_models
from .core.validator import validate_models
from .generator import GeneratedDocument, SchemaGenerator, compile_schema

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    # Descriptors
    "FieldSpec",
    "ModelSpec",
    "RelationSpec",
    "ThroughSpec",
    # Registry
    "ModelRegistry",
    "ReadinessSignal",
    "RegistryBuilder",
    "collect_models",
    # Generation
    "Dialect",
    "GeneratedDocument",
    "GenerationOptions",
    "OutputFormat",
    "SchemaGenerator",
    "compile_schema",
    "load_options",
    "validate_models",
    # Errors
    "PerModelGenerationError",
    "RelationIntegrityError",
    "SchemaForgeError",
    "SchemaValidationFailed",
    "StructuralError",
]
