"""Core schemaforge functionality: IR, registry, validator, configuration."""

from . import ir
from .config import Dialect, GenerationOptions, OutputFormat, load_options
from .errors import (
    ConfigError,
    DuplicateModelError,
    ErrorLocation,
    ModelLoadError,
    ModelNotFoundError,
    PerModelGenerationError,
    RegistryError,
    RelationIntegrityError,
    SchemaForgeError,
    SchemaValidationFailed,
    StructuralError,
    ValidationError,
)
from .registry import ModelRegistry, ReadinessSignal, RegistryBuilder, collect_models
from .validator import ValidationReport, format_report, validate_models

__all__ = [
    "ir",
    # Config
    "Dialect",
    "GenerationOptions",
    "OutputFormat",
    "load_options",
    # Errors
    "ConfigError",
    "DuplicateModelError",
    "ErrorLocation",
    "ModelLoadError",
    "ModelNotFoundError",
    "PerModelGenerationError",
    "RegistryError",
    "RelationIntegrityError",
    "SchemaForgeError",
    "SchemaValidationFailed",
    "StructuralError",
    "ValidationError",
    # Registry
    "ModelRegistry",
    "ReadinessSignal",
    "RegistryBuilder",
    "collect_models",
    # Validation
    "ValidationReport",
    "format_report",
    "validate_models",
]
