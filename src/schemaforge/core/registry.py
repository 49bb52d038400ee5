"""
Model registry for schemaforge.

Registration is explicit: the embedding application owns a
``RegistryBuilder``, producers call ``register`` on it, and ``build()``
returns a frozen ``ModelRegistry`` snapshot. Generation only ever sees the
snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator

from . import ir
from .errors import DuplicateModelError, ModelNotFoundError, RegistryError

logger = logging.getLogger(__name__)


class ModelRegistry:
    """
    Immutable, ordered collection of model descriptors.

    Models keep their registration order, which drives module and model
    ordering in the generated document.
    """

    def __init__(self, models: Iterable[ir.ModelSpec]):
        self._models: tuple[ir.ModelSpec, ...] = tuple(models)
        self._by_name: dict[str, ir.ModelSpec] = {m.name: m for m in self._models}

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ir.ModelSpec]:
        return iter(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def get_all(self) -> list[ir.ModelSpec]:
        """Return the snapshot as a new list (callers cannot mutate the registry)."""
        return list(self._models)

    def get_by_name(self, name: str) -> ir.ModelSpec:
        """
        Look up a model by name.

        Raises:
            ModelNotFoundError: If no model with that name was registered
        """
        model = self._by_name.get(name)
        if model is None:
            raise ModelNotFoundError(
                f"Model '{name}' not found. Registered models: {sorted(self._by_name)}"
            )
        return model

    def find(self, name: str) -> ir.ModelSpec | None:
        """Look up a model by name, returning None when absent."""
        return self._by_name.get(name)

    def has_model(self, name: str) -> bool:
        return name in self._by_name

    def get_by_module(self, module: str) -> list[ir.ModelSpec]:
        return [m for m in self._models if m.module == module]

    def modules(self) -> list[str]:
        """Module names in order of first registration."""
        return list(dict.fromkeys(m.module for m in self._models))

    def model_names(self) -> list[str]:
        return [m.name for m in self._models]

    def detect_cycles(self) -> list[list[str]]:
        """
        Find reference cycles spanning more than one model.

        Edges follow the direction of the foreign key: a belongsTo relation
        on A adds A -> target, a hasMany relation on A adds target -> A.
        Self-references (a task with a parent task) are legal and never
        reported. Each cycle is returned once, rotated so that it starts at
        its lexicographically smallest model.

        Returns:
            List of cycles, each a list of model names; empty when acyclic
        """
        graph: dict[str, set[str]] = {name: set() for name in self._by_name}
        for model in self._models:
            for relation in model.relations:
                if relation.target not in self._by_name or relation.target == model.name:
                    continue
                if relation.kind == ir.RelationKind.BELONGS_TO:
                    graph[model.name].add(relation.target)
                elif relation.kind == ir.RelationKind.HAS_MANY:
                    graph[relation.target].add(model.name)

        cycles: list[list[str]] = []
        seen: set[tuple[str, ...]] = set()

        def visit(node: str, path: list[str], on_path: set[str]) -> None:
            for nxt in sorted(graph[node]):
                if nxt in on_path:
                    cycle = path[path.index(nxt) :]
                    start = cycle.index(min(cycle))
                    key = tuple(cycle[start:] + cycle[:start])
                    if key not in seen:
                        seen.add(key)
                        cycles.append(list(key))
                    continue
                path.append(nxt)
                on_path.add(nxt)
                visit(nxt, path, on_path)
                on_path.discard(nxt)
                path.pop()

        for start in sorted(graph):
            visit(start, [start], {start})

        return cycles


class RegistryBuilder:
    """
    Mutable collector of model descriptors.

    Once ``build()`` has been called the builder is sealed and further
    registration raises ``RegistryError``.
    """

    def __init__(self) -> None:
        self._models: dict[str, ir.ModelSpec] = {}
        self._built = False

    def __len__(self) -> int:
        return len(self._models)

    @property
    def is_built(self) -> bool:
        return self._built

    def register(self, model: ir.ModelSpec, skip_if_exists: bool = False) -> None:
        """
        Add a model descriptor.

        Args:
            model: Descriptor to register
            skip_if_exists: Ignore (rather than reject) a second registration
                under the same name, for producers that may scan twice

        Raises:
            DuplicateModelError: If the name is taken and skip_if_exists is False
            RegistryError: If the registry was already built
        """
        if self._built:
            raise RegistryError(
                f"Cannot register model '{model.name}': registry has already been built"
            )

        existing = self._models.get(model.name)
        if existing is not None:
            if skip_if_exists:
                logger.debug(
                    "Model '%s' already registered by module '%s', skipping duplicate",
                    model.name,
                    existing.module,
                )
                return
            raise DuplicateModelError(
                f"Model name collision: '{model.name}' already registered by module "
                f"'{existing.module}', cannot register from module '{model.module}'"
            )

        logger.debug("Registering model '%s' (module: %s)", model.name, model.module)
        self._models[model.name] = model

    def register_many(self, models: Iterable[ir.ModelSpec], skip_if_exists: bool = False) -> None:
        for model in models:
            self.register(model, skip_if_exists=skip_if_exists)

    def build(self) -> ModelRegistry:
        """Seal the builder and return the immutable snapshot."""
        self._built = True
        registry = ModelRegistry(self._models.values())
        logger.info("Model registry built with %d model(s)", len(registry))
        return registry


class ReadinessSignal:
    """
    Completion signal for asynchronous model producers.

    Each expected producer calls ``mark_ready`` when it has finished
    registering; ``wait`` resolves once all of them have.
    """

    def __init__(self, expected: Iterable[str]):
        self._pending: set[str] = set(expected)
        self._event = asyncio.Event()
        if not self._pending:
            self._event.set()

    @property
    def pending(self) -> set[str]:
        return set(self._pending)

    @property
    def is_ready(self) -> bool:
        return self._event.is_set()

    def mark_ready(self, producer: str) -> None:
        if producer not in self._pending:
            logger.debug("Producer '%s' signalled ready but was not expected", producer)
            return
        self._pending.discard(producer)
        if not self._pending:
            self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """
        Wait until every expected producer is ready.

        Returns:
            True if all producers finished, False if the timeout elapsed first
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True


async def collect_models(
    builder: RegistryBuilder,
    signal: ReadinessSignal,
    timeout: float = 5.0,
) -> ModelRegistry:
    """
    Wait for registration to finish, then freeze the registry.

    The wait is bounded: if some producer never signals, a warning naming it
    is logged and the registry is built from what has been registered.

    Args:
        builder: Builder the producers register into
        signal: Readiness signal the producers complete
        timeout: Seconds to wait before falling back

    Returns:
        The frozen registry snapshot
    """
    if not await signal.wait(timeout):
        logger.warning(
            "Timed out after %.1fs waiting for model producers: %s; "
            "continuing with %d registered model(s)",
            timeout,
            ", ".join(sorted(signal.pending)),
            len(builder),
        )
    return builder.build()
