"""
Generation options for schemaforge.

Options can be built directly or loaded from a ``schemaforge.toml`` file:

    [generator]
    dialect = "postgresql"
    output_path = "prisma/schema.prisma"
    include_audit_fields = true
    include_indexes = true
    output_format = "pretty"
    baseline_path = "prisma/legacy.prisma"

When the file does not name a dialect, the ``DB_PROVIDER`` environment
variable is used.
"""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigError
from .ir import FieldTypeKind

CONFIG_FILENAME = "schemaforge.toml"
DIALECT_ENV_VAR = "DB_PROVIDER"

DEFAULT_BINARY_TARGETS = ["native", "debian-openssl-3.0.x", "debian-openssl-1.1.x"]


class Dialect(str, Enum):
    """Supported database engine families."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class OutputFormat(str, Enum):
    PRETTY = "pretty"
    COMPACT = "compact"


class GenerationOptions(BaseModel):
    """
    Options record consumed by the schema generator.

    Attributes:
        dialect: Target database engine family
        output_path: Where ``compile_schema`` writes the document
        include_audit_fields: Append createdAt/updatedAt/createdBy/updatedBy
        include_indexes: Emit @@index/@@unique directives
        output_format: ``pretty`` (aligned, commented) or ``compact``
        baseline_path: Existing hand-authored schema to carry legacy models from
        connection_env: Environment variable holding the connection string
        client_output: Output directory of the generated client
        binary_targets: Engine binary targets for the client generator
        include_timestamp: Stamp the header with the generation time
        audit_actor_type: Type of the createdBy/updatedBy columns
    """

    dialect: Dialect = Dialect.MYSQL
    output_path: Path = Path("prisma/schema.prisma")
    include_audit_fields: bool = True
    include_indexes: bool = True
    output_format: OutputFormat = OutputFormat.PRETTY
    baseline_path: Path | None = None
    connection_env: str = "DATABASE_URL"
    client_output: str = "../generated/client"
    binary_targets: list[str] = Field(default_factory=lambda: list(DEFAULT_BINARY_TARGETS))
    include_timestamp: bool = False
    audit_actor_type: FieldTypeKind = FieldTypeKind.INTEGER

    model_config = ConfigDict(frozen=True)

    @property
    def is_pretty(self) -> bool:
        return self.output_format == OutputFormat.PRETTY


def find_config(start: Path | None = None) -> Path | None:
    """Look for ``schemaforge.toml`` in ``start`` and its parents."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_options(path: Path | None = None, **overrides: Any) -> GenerationOptions:
    """
    Build generation options from a config file, the environment and overrides.

    Precedence, lowest to highest: defaults, the ``[generator]`` table,
    ``DB_PROVIDER`` (only when the file sets no dialect), explicit overrides.
    Overrides whose value is None are ignored, so CLI flags can be passed
    straight through.

    Relative paths in the file are resolved against the file's directory.

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid
    """
    values: dict[str, Any] = {}

    if path is not None:
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

        generator = data.get("generator", {})
        if not isinstance(generator, dict):
            raise ConfigError(f"[generator] in {path} must be a table")
        values.update(generator)

        base = path.parent
        for key in ("output_path", "baseline_path"):
            if key in values and values[key] is not None:
                candidate = Path(values[key])
                values[key] = candidate if candidate.is_absolute() else base / candidate

    if "dialect" not in values:
        env_dialect = os.environ.get(DIALECT_ENV_VAR)
        if env_dialect:
            values["dialect"] = env_dialect.strip().lower()

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return GenerationOptions(**values)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid generation options: {problems}") from e
