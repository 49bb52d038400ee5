"""
Error types for schemaforge registration, validation, and generation.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ErrorLocation:
    """
    Where in the model descriptors an error was found.

    Attributes:
        model: Model name (may be empty when the model itself has no name)
        field: Optional field name inside the model
        relation: Optional relation name inside the model
    """

    model: str
    field: str | None = None
    relation: str | None = None

    def format(self) -> str:
        """
        Format the location as ``Model``, ``Model.field`` or ``Model.relation``.
        """
        model = self.model or "<unnamed model>"
        member = self.relation or self.field
        return f"{model}.{member}" if member else model


class SchemaForgeError(Exception):
    """Base exception for all schemaforge errors."""

    def __init__(self, message: str, location: ErrorLocation | None = None):
        self.message = message
        self.location = location
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with location if available."""
        if self.location:
            return f"[{self.location.format()}] {self.message}"
        return self.message


class RegistryError(SchemaForgeError):
    """
    Raised when the model registry is misused.

    Examples:
    - Registering after the registry was built
    - Looking up a model that was never registered
    """

    pass


class DuplicateModelError(RegistryError):
    """Raised when two descriptors are registered under the same model name."""

    pass


class ModelNotFoundError(RegistryError):
    """Raised by ``ModelRegistry.get_by_name`` for an unknown model."""

    pass


class ValidationError(SchemaForgeError):
    """
    A fatal problem with one model descriptor.

    Validation errors are collected across all models rather than raised one
    at a time, so every instance carries enough detail to fix the descriptor
    without re-running.
    """

    def __init__(
        self,
        reason: str,
        model: str = "",
        field: str | None = None,
        relation: str | None = None,
    ):
        self.reason = reason
        self.model = model
        self.field = field
        self.relation = relation
        super().__init__(reason, ErrorLocation(model=model, field=field, relation=relation))


class StructuralError(ValidationError):
    """
    Raised for malformed models.

    Examples:
    - Model without a name or without fields
    - No primary key in any of the accepted forms
    - Field missing its name or type
    - Relation missing its name, kind, or target
    - Foreign key name collisions
    """

    pass


class RelationIntegrityError(ValidationError):
    """
    Raised when a relation points at something that is not registered.

    Examples:
    - Relation target model missing from the registry
    - Explicit junction model missing, or missing one of its keys
    """

    pass


class SchemaValidationFailed(SchemaForgeError):
    """
    Raised when validation produced fatal errors; nothing is generated.

    Attributes:
        errors: Every fatal ``ValidationError`` found, across all models
        warnings: Non-fatal findings from the same pass
    """

    def __init__(self, errors: list[ValidationError], warnings: list[str] | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Model validation failed with {len(self.errors)} error(s):\n{lines}")


class PerModelGenerationError(SchemaForgeError):
    """
    Raised while mapping one model's fields or relations.

    The orchestrator recovers from it: the model is skipped and a warning
    naming it is recorded.
    """

    def __init__(self, model: str, message: str, field: str | None = None):
        self.model = model
        super().__init__(message, ErrorLocation(model=model, field=field))


class ConfigError(SchemaForgeError):
    """Raised when generation options cannot be loaded or are invalid."""

    pass


class ModelLoadError(SchemaForgeError):
    """Raised when the CLI cannot import the models target."""

    pass
