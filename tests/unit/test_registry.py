"""Tests for the model registry, its builder, and producer readiness."""

from __future__ import annotations

import asyncio
import logging

import pytest

from schemaforge.core import ir
from schemaforge.core.errors import DuplicateModelError, ModelNotFoundError, RegistryError
from schemaforge.core.registry import (
    ModelRegistry,
    ReadinessSignal,
    RegistryBuilder,
    collect_models,
)


def _model(name: str, module: str = "core", *relations: ir.RelationSpec) -> ir.ModelSpec:
    return ir.ModelSpec(
        name=name,
        module=module,
        fields=[ir.FieldSpec(name="id", type="integer", primary_key=True)],
        relations=list(relations),
    )


def _belongs_to(name: str, target: str) -> ir.RelationSpec:
    return ir.RelationSpec(name=name, kind="belongsTo", target=target)


class TestRegistryBuilder:
    def test_register_and_build_preserves_order(self):
        builder = RegistryBuilder()
        builder.register(_model("Zebra"))
        builder.register(_model("Apple"))

        registry = builder.build()

        assert registry.model_names() == ["Zebra", "Apple"]
        assert len(registry) == 2

    def test_duplicate_name_rejected(self):
        builder = RegistryBuilder()
        builder.register(_model("User", module="auth"))

        with pytest.raises(DuplicateModelError) as exc_info:
            builder.register(_model("User", module="billing"))

        message = str(exc_info.value)
        assert "User" in message
        assert "auth" in message
        assert "billing" in message

    def test_duplicate_skipped_when_requested(self):
        builder = RegistryBuilder()
        builder.register(_model("User", module="auth"))
        builder.register(_model("User", module="billing"), skip_if_exists=True)

        registry = builder.build()

        assert len(registry) == 1
        assert registry.get_by_name("User").module == "auth"

    def test_register_after_build_fails(self):
        builder = RegistryBuilder()
        builder.build()

        assert builder.is_built
        with pytest.raises(RegistryError, match="already been built"):
            builder.register(_model("Late"))

    def test_empty_registry_builds(self):
        registry = RegistryBuilder().build()

        assert registry.get_all() == []
        assert registry.modules() == []


class TestModelRegistry:
    @pytest.fixture
    def registry(self) -> ModelRegistry:
        builder = RegistryBuilder()
        builder.register_many(
            [_model("User", "auth"), _model("Invoice", "billing"), _model("Role", "auth")]
        )
        return builder.build()

    def test_get_by_name_unknown_raises(self, registry: ModelRegistry):
        with pytest.raises(ModelNotFoundError, match="Missing"):
            registry.get_by_name("Missing")

    def test_find_returns_none_for_unknown(self, registry: ModelRegistry):
        assert registry.find("Missing") is None
        assert registry.find("User") is not None

    def test_contains_and_has_model(self, registry: ModelRegistry):
        assert "Invoice" in registry
        assert registry.has_model("Role")
        assert not registry.has_model("Nope")

    def test_modules_in_first_registration_order(self, registry: ModelRegistry):
        assert registry.modules() == ["auth", "billing"]
        assert [m.name for m in registry.get_by_module("auth")] == ["User", "Role"]

    def test_get_all_returns_a_copy(self, registry: ModelRegistry):
        models = registry.get_all()
        models.clear()

        assert len(registry.get_all()) == 3


class TestCycleDetection:
    def _registry(self, *models: ir.ModelSpec) -> ModelRegistry:
        return ModelRegistry(models)

    def test_acyclic_registry(self, blog_registry: ModelRegistry):
        assert blog_registry.detect_cycles() == []

    def test_self_reference_not_reported(self):
        registry = self._registry(_model("Task", "core", _belongs_to("parent", "Task")))

        assert registry.detect_cycles() == []

    def test_two_model_cycle_reported_once(self):
        registry = self._registry(
            _model("B", "core", _belongs_to("a", "A")),
            _model("A", "core", _belongs_to("b", "B")),
        )

        assert registry.detect_cycles() == [["A", "B"]]

    def test_three_model_cycle_rotated_to_smallest(self):
        registry = self._registry(
            _model("Country", "core", _belongs_to("capital", "City")),
            _model("City", "core", _belongs_to("mayor", "Person")),
            _model("Person", "core", _belongs_to("country", "Country")),
        )

        assert registry.detect_cycles() == [["City", "Person", "Country"]]

    def test_has_many_edge_points_from_target(self):
        # Org hasMany Team adds Team -> Org; Org belongsTo Team closes the loop
        registry = self._registry(
            _model(
                "Org",
                "core",
                ir.RelationSpec(name="teams", kind="hasMany", target="Team"),
                _belongs_to("owningTeam", "Team"),
            ),
            _model("Team", "core"),
        )

        assert registry.detect_cycles() == [["Org", "Team"]]

    def test_unknown_targets_ignored(self):
        registry = self._registry(_model("Post", "core", _belongs_to("author", "Ghost")))

        assert registry.detect_cycles() == []


class TestReadiness:
    @pytest.mark.asyncio
    async def test_no_expected_producers_is_ready(self):
        signal = ReadinessSignal([])

        assert signal.is_ready
        assert await signal.wait(timeout=0.01) is True

    @pytest.mark.asyncio
    async def test_waits_for_all_producers(self):
        builder = RegistryBuilder()
        signal = ReadinessSignal(["auth", "billing"])

        async def producer(name: str, model: ir.ModelSpec) -> None:
            await asyncio.sleep(0)
            builder.register(model)
            signal.mark_ready(name)

        tasks = [
            asyncio.create_task(producer("auth", _model("User", "auth"))),
            asyncio.create_task(producer("billing", _model("Invoice", "billing"))),
        ]
        registry = await collect_models(builder, signal, timeout=1.0)
        await asyncio.gather(*tasks)

        assert sorted(registry.model_names()) == ["Invoice", "User"]
        assert builder.is_built

    @pytest.mark.asyncio
    async def test_timeout_builds_partial_registry(self, caplog: pytest.LogCaptureFixture):
        builder = RegistryBuilder()
        builder.register(_model("User", "auth"))
        signal = ReadinessSignal(["auth", "billing"])
        signal.mark_ready("auth")

        with caplog.at_level(logging.WARNING, logger="schemaforge"):
            registry = await collect_models(builder, signal, timeout=0.01)

        assert registry.model_names() == ["User"]
        assert signal.pending == {"billing"}
        assert "billing" in caplog.text

    def test_unexpected_producer_ignored(self):
        signal = ReadinessSignal(["auth"])
        signal.mark_ready("other")

        assert not signal.is_ready
        signal.mark_ready("auth")
        assert signal.is_ready
