"""
schemaforge command line interface.

Commands:
- generate: Validate the models and write the schema document
- validate: Report validation errors and warnings without generating
- cycles:   List multi-model reference cycles

Models are loaded from a ``--models`` target, either ``package.module:attr``
or ``path/to/file.py:attr``. ``attr`` may be a callable taking a
``RegistryBuilder``, an iterable of ``ModelSpec``, or a built
``ModelRegistry``.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import platform
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ._version import get_version
from .core.config import Dialect, OutputFormat, find_config, load_options
from .core.errors import ConfigError, ModelLoadError, RegistryError, SchemaValidationFailed
from .core.ir import ModelSpec
from .core.registry import ModelRegistry, RegistryBuilder
from .core.validator import validate_models
from .generator import SchemaGenerator, compile_schema, read_baseline
from .logging import get_logger, setup_logging

app = typer.Typer(
    help="schemaforge - compile declarative model descriptors into a database schema",
    no_args_is_help=True,
)

console = Console()
logger = get_logger("cli")

MODELS_HELP = "Models target (module:attr or file.py:attr)"


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        console.print(f"schemaforge {get_version()}")
        console.print(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version information",
    ),
) -> None:
    """schemaforge CLI main callback for global options."""
    pass


# =============================================================================
# Model loading
# =============================================================================


def _import_target_module(module_ref: str) -> Any:
    if module_ref.endswith(".py") or "/" in module_ref or "\\" in module_ref:
        path = Path(module_ref).resolve()
        if not path.is_file():
            raise ModelLoadError(f"Models file not found: {path}")
        module_name = f"_schemaforge_models_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ModelLoadError(f"Cannot import models file: {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise ModelLoadError(f"Error while importing {path}: {e}") from e
        return module

    try:
        return importlib.import_module(module_ref)
    except ImportError as e:
        raise ModelLoadError(f"Cannot import module '{module_ref}': {e}") from e
    except Exception as e:
        raise ModelLoadError(f"Error while importing '{module_ref}': {e}") from e


def load_models(target: str) -> ModelRegistry:
    """
    Load a models target and return the frozen registry.

    Raises:
        ModelLoadError: If the target cannot be imported or has an unusable shape
    """
    module_ref, sep, attr = target.rpartition(":")
    if not sep or not module_ref or not attr:
        raise ModelLoadError(
            f"Invalid models target '{target}'; expected 'package.module:attr' "
            f"or 'path/to/file.py:attr'"
        )

    module = _import_target_module(module_ref)
    try:
        value = getattr(module, attr)
    except AttributeError as e:
        raise ModelLoadError(f"'{module_ref}' has no attribute '{attr}'") from e

    if isinstance(value, ModelRegistry):
        return value

    builder = RegistryBuilder()
    if callable(value):
        try:
            result = value(builder)
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"'{target}' failed while registering models: {e}") from e
        if isinstance(result, ModelRegistry):
            return result
        if result is not None:
            _register_iterable(builder, result, target)
    else:
        _register_iterable(builder, value, target)

    logger.debug("Loaded %d model(s) from %s", len(builder), target)
    return builder.build()


def _register_iterable(builder: RegistryBuilder, value: Any, target: str) -> None:
    if not isinstance(value, Iterable):
        raise ModelLoadError(
            f"'{target}' must be a callable, an iterable of ModelSpec, or a ModelRegistry"
        )
    models = list(value)
    for model in models:
        if not isinstance(model, ModelSpec):
            raise ModelLoadError(f"'{target}' yielded {type(model).__name__}, expected ModelSpec")
    builder.register_many(models)


def _configure_logging(verbose: bool) -> None:
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)


def _load_or_exit(target: str) -> ModelRegistry:
    try:
        return load_models(target)
    except (ModelLoadError, RegistryError) as e:
        console.print(f"[red]Failed to load models:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _print_validation_failure(error: SchemaValidationFailed) -> None:
    console.print(f"[red]Validation failed with {len(error.errors)} error(s):[/red]")
    for item in error.errors:
        console.print(f"  [red]✗[/red] {escape(str(item))}")
    for warning in error.warnings:
        console.print(f"  [yellow]![/yellow] {escape(warning)}")


# =============================================================================
# Commands
# =============================================================================


@app.command(name="generate")
def generate_command(
    models: str = typer.Option(..., "--models", "-m", help=MODELS_HELP),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to schemaforge.toml (default: search upwards)"
    ),
    dialect: Dialect | None = typer.Option(None, "--dialect", "-d", help="Target database dialect"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file path"),
    output_format: OutputFormat | None = typer.Option(None, "--format", help="Output format"),
    audit: bool | None = typer.Option(
        None, "--audit/--no-audit", help="Append createdAt/updatedAt/createdBy/updatedBy"
    ),
    indexes: bool | None = typer.Option(
        None, "--indexes/--no-indexes", help="Emit secondary indexes"
    ),
    baseline: Path | None = typer.Option(
        None, "--baseline", help="Existing schema whose other models are carried over"
    ),
    stdout: bool = typer.Option(False, "--stdout", help="Print the document instead of writing it"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Validate the models and generate the schema document."""
    _configure_logging(verbose)

    try:
        options = load_options(
            config or find_config(),
            dialect=dialect,
            output_path=output,
            output_format=output_format,
            include_audit_fields=audit,
            include_indexes=indexes,
            baseline_path=baseline,
        )
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {escape(e.message)}")
        raise typer.Exit(1)

    registry = _load_or_exit(models)

    try:
        if stdout:
            baseline_text = read_baseline(options.baseline_path)
            document = SchemaGenerator(options).generate(registry, baseline=baseline_text)
            typer.echo(document.content, nl=False)
            return
        document = compile_schema(registry, options)
    except SchemaValidationFailed as e:
        _print_validation_failure(e)
        raise typer.Exit(1)

    for warning in document.warnings:
        console.print(f"[yellow]![/yellow] {escape(warning)}")
    console.print(f"[green]✓[/green] Wrote {options.output_path} ({document.stats.summary()})")


@app.command(name="validate")
def validate_command(
    models: str = typer.Option(..., "--models", "-m", help=MODELS_HELP),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Check model descriptors without generating anything."""
    _configure_logging(verbose)
    registry = _load_or_exit(models)

    report = validate_models(registry)
    for error in report.errors:
        console.print(f"  [red]✗[/red] {escape(str(error))}")
    for warning in report.warnings:
        console.print(f"  [yellow]![/yellow] {escape(warning)}")

    if report.errors:
        console.print(f"[red]{len(report.errors)} error(s) in {len(registry)} model(s)[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {len(registry)} model(s) valid")


@app.command(name="cycles")
def cycles_command(
    models: str = typer.Option(..., "--models", "-m", help=MODELS_HELP),
) -> None:
    """List reference cycles that span more than one model."""
    _configure_logging(False)
    registry = _load_or_exit(models)

    cycles = registry.detect_cycles()
    if not cycles:
        console.print("[green]No reference cycles found[/green]")
        return

    table = Table(title=f"{len(cycles)} reference cycle(s)")
    table.add_column("#", justify="right")
    table.add_column("Cycle")
    for index, cycle in enumerate(cycles, start=1):
        table.add_row(str(index), escape(" -> ".join([*cycle, cycle[0]])))
    console.print(table)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


__all__ = ["app", "load_models", "main"]


if __name__ == "__main__":
    main(sys.argv[1:])
