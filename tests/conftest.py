"""Shared pytest fixtures for schemaforge tests."""

from __future__ import annotations

import logging

import pytest

from schemaforge.core import ir
from schemaforge.core.config import Dialect, GenerationOptions, OutputFormat
from schemaforge.core.registry import ModelRegistry, RegistryBuilder


@pytest.fixture(autouse=True)
def _reset_schemaforge_logger():
    """Drop handlers installed by CLI tests so they never leak between tests."""
    yield
    root = logging.getLogger("schemaforge")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _no_provider_env(monkeypatch: pytest.MonkeyPatch):
    """Tests choose their dialect explicitly."""
    monkeypatch.delenv("DB_PROVIDER", raising=False)


@pytest.fixture
def user_model() -> ir.ModelSpec:
    """User with an autoincrement key and a hasMany back reference to Post."""
    return ir.ModelSpec(
        name="User",
        fields=[
            ir.FieldSpec(name="id", type="integer", primary_key=True, auto_increment=True),
            ir.FieldSpec(
                name="email",
                type="string",
                required=True,
                unique=True,
                validation=[ir.ValidationRule(kind="max_length", value=120)],
            ),
            ir.FieldSpec(name="displayName", type="string"),
        ],
        relations=[
            ir.RelationSpec(name="posts", kind="hasMany", target="Post", inverse="author"),
        ],
    )


@pytest.fixture
def post_model() -> ir.ModelSpec:
    """Post belonging to a User via a synthesized authorId."""
    return ir.ModelSpec(
        name="Post",
        fields=[
            ir.FieldSpec(name="id", type="integer", primary_key=True, auto_increment=True),
            ir.FieldSpec(name="title", type="string", required=True),
            ir.FieldSpec(name="body", type="text"),
            ir.FieldSpec(name="published", type="boolean", required=True, default=False),
        ],
        relations=[
            ir.RelationSpec(
                name="author",
                kind="belongsTo",
                target="User",
                required=True,
                inverse="posts",
                on_delete="Cascade",
            ),
        ],
    )


@pytest.fixture
def blog_registry(user_model: ir.ModelSpec, post_model: ir.ModelSpec) -> ModelRegistry:
    builder = RegistryBuilder()
    builder.register_many([user_model, post_model])
    return builder.build()


@pytest.fixture
def mysql_options(tmp_path) -> GenerationOptions:
    return GenerationOptions(
        dialect=Dialect.MYSQL,
        output_path=tmp_path / "prisma" / "schema.prisma",
        output_format=OutputFormat.PRETTY,
    )
