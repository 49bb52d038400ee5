"""Tests for end-to-end schema generation."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from schemaforge.core import ir
from schemaforge.core.config import Dialect, GenerationOptions, OutputFormat
from schemaforge.core.errors import SchemaValidationFailed, StructuralError
from schemaforge.core.registry import ModelRegistry
from schemaforge.generator import orchestrator
from schemaforge.generator.formatter import RULE
from schemaforge.generator.orchestrator import (
    SchemaGenerator,
    compile_schema,
    extract_legacy_models,
    write_document,
)

LEGACY = """\
datasource db {
  provider = "mysql"
  url      = env("LEGACY_URL")
}

model LegacyOrder {
  id    Int    @id
  total Decimal
}

model User {
  id Int @id
}

enum OrderStatus {
  OPEN
  CLOSED
}
"""


def _id() -> ir.FieldSpec:
    return ir.FieldSpec(name="id", type="integer", primary_key=True, auto_increment=True)


def _model(name: str, *relations: ir.RelationSpec, **kwargs) -> ir.ModelSpec:
    fields = kwargs.pop("fields", None) or [_id()]
    return ir.ModelSpec(name=name, fields=fields, relations=list(relations), **kwargs)


def _options(tmp_path: Path, **kwargs) -> GenerationOptions:
    return GenerationOptions(output_path=tmp_path / "schema.prisma", **kwargs)


def _member_line(content: str, name: str) -> list[str]:
    """Whitespace-split tokens of the first member line with this name."""
    match = re.search(rf"^\s+{name}\s.*$", content, re.MULTILINE)
    assert match is not None, f"no member line for {name}"
    return match.group(0).split()


class TestBlogSchema:
    def test_belongs_to_synthesizes_foreign_key(self, blog_registry, mysql_options):
        document = SchemaGenerator(mysql_options).generate(blog_registry)
        content = document.content

        assert content.index("model User {") < content.index("model Post {")
        assert _member_line(content, "authorId") == ["authorId", "Int", '@map("author_id")']
        assert (
            '@relation("Post_author", fields: [authorId], references: [id], onDelete: Cascade)'
            in content
        )
        assert _member_line(content, "posts") == ["posts", "Post[]", '@relation("Post_author")']
        assert '@@index([authorId], map: "idx_post_author_id")' in content
        assert document.model_count == 2
        assert document.junction_count == 0
        assert document.modules == ["core"]

    def test_columns_follow_dialect(self, blog_registry, mysql_options):
        content = SchemaGenerator(mysql_options).generate(blog_registry).content

        assert _member_line(content, "email") == ["email", "String", "@unique", "@db.VarChar(120)"]
        assert _member_line(content, "body") == ["body", "String?", "@db.Text"]
        assert _member_line(content, "published") == ["published", "Boolean", "@default(false)"]

    def test_audit_fields_appended(self, blog_registry, mysql_options):
        content = SchemaGenerator(mysql_options).generate(blog_registry).content

        assert content.count("@updatedAt") == 2
        assert _member_line(content, "createdBy") == ["createdBy", "Int?", '@map("created_by")']

    def test_audit_fields_disabled(self, blog_registry, tmp_path):
        options = _options(tmp_path, include_audit_fields=False)

        content = SchemaGenerator(options).generate(blog_registry).content

        assert "createdAt" not in content

    def test_model_opting_out_of_timestamps(self, tmp_path):
        model = _model("Setting", config=ir.ModelConfig(timestamps=False))

        content = SchemaGenerator(_options(tmp_path)).generate([model]).content

        assert "updatedAt" not in content

    def test_relation_named_like_audit_field_is_not_duplicated(self, tmp_path):
        doc = _model(
            "Doc", ir.RelationSpec(name="createdBy", kind="belongsTo", target="Account")
        )

        content = SchemaGenerator(_options(tmp_path)).generate([_model("Account"), doc]).content

        block = content[content.index("model Doc {") :]
        block = block[: block.index("}")]
        names = [line.split()[0] for line in block.splitlines()[1:] if line.strip()]
        assert names.count("createdBy") == 1
        assert _member_line(block, "createdBy")[1] == "Account?"
        assert "createdById" in names
        assert "updatedBy" in names

    def test_header_and_directives(self, blog_registry, mysql_options):
        content = SchemaGenerator(mysql_options).generate(blog_registry).content

        assert content.startswith(RULE)
        assert "// PRISMA SCHEMA - GENERATED BY SCHEMAFORGE" in content
        assert "// Provider: mysql" in content
        assert "Generated:" not in content
        assert 'provider = "mysql"' in content
        assert 'url      = env("DATABASE_URL")' in content
        assert 'provider      = "prisma-client-js"' in content
        assert "previewFeatures" not in content
        assert content.endswith("}\n")

    def test_timestamp_in_header_when_enabled(self, blog_registry, tmp_path):
        options = _options(tmp_path, include_timestamp=True)

        content = SchemaGenerator(options).generate(blog_registry).content

        assert "// Generated: " in content

    def test_output_is_deterministic(self, blog_registry, mysql_options):
        generator = SchemaGenerator(mysql_options)

        first = generator.generate(blog_registry).content
        second = generator.generate(blog_registry).content

        assert first == second

    def test_compact_format(self, blog_registry, tmp_path):
        options = _options(tmp_path, output_format=OutputFormat.COMPACT)

        content = SchemaGenerator(options).generate(blog_registry).content

        assert "// Module: core" in content
        assert "  title String @db.VarChar(255)" in content.splitlines()
        assert "// Relations" not in content

    def test_reserved_model_name_warns(self, blog_registry, mysql_options):
        document = SchemaGenerator(mysql_options).generate(blog_registry)

        assert any("reserved word" in w for w in document.warnings)
        assert document.stats.summary().startswith("2 model(s), 0 junction(s), 1 module(s)")


class TestManyToMany:
    def test_implicit_pair_gets_one_junction(self, tmp_path):
        article = _model("Article", ir.RelationSpec(name="tags", kind="manyToMany", target="Tag"))
        tag = _model("Tag", ir.RelationSpec(name="articles", kind="manyToMany", target="Article"))

        document = SchemaGenerator(_options(tmp_path)).generate([tag, article])
        content = document.content

        assert content.count("model ArticleToTag {") == 1
        assert "@@id([articleId, tagId])" in content
        assert '@@map("article_to_tag")' in content
        assert _member_line(content, "tags") == [
            "tags",
            "ArticleToTag[]",
            '@relation("ArticleToTag_articleId")',
        ]
        assert document.junction_count == 1
        assert document.model_count == 2
        assert "updatedAt" not in content.split("model ArticleToTag {")[1].split("}")[0]

    def test_explicit_junction_is_not_duplicated(self, tmp_path):
        through = ir.ThroughSpec(model="ItemTag", source_key="itemId", target_key="tagId")
        back = ir.ThroughSpec(model="ItemTag", source_key="tagId", target_key="itemId")
        item = _model(
            "Item", ir.RelationSpec(name="tags", kind="manyToMany", target="Tag", through=through)
        )
        tag = _model(
            "Tag", ir.RelationSpec(name="items", kind="manyToMany", target="Item", through=back)
        )
        item_tag = _model(
            "ItemTag",
            ir.RelationSpec(name="item", kind="belongsTo", target="Item", foreign_key="itemId"),
            ir.RelationSpec(name="tag", kind="belongsTo", target="Tag", foreign_key="tagId"),
            fields=[
                ir.FieldSpec(name="itemId", type="integer", required=True),
                ir.FieldSpec(name="tagId", type="integer", required=True),
            ],
            primary_key=["itemId", "tagId"],
        )

        document = SchemaGenerator(_options(tmp_path)).generate([item, tag, item_tag])
        content = document.content

        assert "ItemToTag" not in content
        assert content.count("model ItemTag {") == 1
        assert "@@id([itemId, tagId])" in content
        assert _member_line(content, "items") == ["items", "ItemTag[]", '@relation("ItemTag_tag")']
        assert document.junction_count == 0

    def test_one_sided_declaration_fails_validation(self, tmp_path):
        article = _model("Article", ir.RelationSpec(name="tags", kind="manyToMany", target="Tag"))

        with pytest.raises(SchemaValidationFailed) as exc_info:
            SchemaGenerator(_options(tmp_path)).generate([article, _model("Tag")])

        (error,) = exc_info.value.errors
        assert isinstance(error, StructuralError)
        assert error.relation == "tags"


class TestModules:
    def _billing(self) -> list[ir.ModelSpec]:
        return [
            _model("Customer"),
            _model(
                "Invoice",
                ir.RelationSpec(name="customer", kind="belongsTo", target="Customer"),
                module="billing",
            ),
        ]

    def test_postgresql_uses_schemas(self, tmp_path):
        options = _options(tmp_path, dialect=Dialect.POSTGRESQL)

        content = SchemaGenerator(options).generate(self._billing()).content

        assert 'schemas  = ["billing", "public"]' in content
        assert 'previewFeatures = ["multiSchema"]' in content
        assert '@@schema("billing")' in content
        assert '@@schema("public")' in content
        assert '@@map("invoice")' in content

    def test_mysql_prefixes_module_tables(self, tmp_path):
        document = SchemaGenerator(_options(tmp_path)).generate(self._billing())

        assert '@@map("billing_invoice")' in document.content
        assert "@@schema" not in document.content
        assert document.modules == ["core", "billing"]
        assert "// MODULE: BILLING" in document.content

    def test_sqlite_has_no_native_annotations(self, tmp_path):
        options = _options(tmp_path, dialect=Dialect.SQLITE)

        content = SchemaGenerator(options).generate(self._billing()).content

        assert "@db." not in content
        assert 'provider = "sqlite"' in content


class TestFailureHandling:
    def test_broken_model_is_skipped(self, blog_registry, mysql_options):
        broken = _model(
            "Broken",
            fields=[_id(), ir.FieldSpec.model_construct(name="payload", type="blob")],
        )
        registry = ModelRegistry([*blog_registry, broken])

        document = SchemaGenerator(mysql_options).generate(registry)

        assert "model User {" in document.content
        assert "model Post {" in document.content
        assert "model Broken {" not in document.content
        assert document.skipped_models == ["Broken"]
        assert any(w.startswith("Skipped model Broken") for w in document.warnings)
        assert document.model_count == 2

    def test_validation_failure_collects_all_and_writes_nothing(self, tmp_path):
        options = _options(tmp_path)
        models = [
            _model("Empty", fields=[ir.FieldSpec()]),
            _model("Post", ir.RelationSpec(name="author", kind="belongsTo", target="Ghost")),
        ]

        with pytest.raises(SchemaValidationFailed) as exc_info:
            compile_schema(models, options)

        assert {e.model for e in exc_info.value.errors} == {"Empty", "Post"}
        assert not options.output_path.exists()

    def test_reference_cycle_is_a_warning(self, tmp_path):
        models = [
            _model("A", ir.RelationSpec(name="b", kind="belongsTo", target="B")),
            _model("B", ir.RelationSpec(name="a", kind="belongsTo", target="A")),
        ]

        document = SchemaGenerator(_options(tmp_path)).generate(models)

        assert document.cycles == [["A", "B"]]
        assert "Reference cycle: A -> B -> A" in document.warnings
        assert "model A {" in document.content


class TestLegacyBaseline:
    def test_extract_skips_registered_and_config_blocks(self):
        blocks = extract_legacy_models(LEGACY, exclude=["User"])

        assert [b.name for b in blocks] == ["LegacyOrder", "OrderStatus"]

    def test_legacy_models_carried_over(self, blog_registry, mysql_options):
        document = SchemaGenerator(mysql_options).generate(blog_registry, baseline=LEGACY)
        content = document.content

        assert document.legacy_models == ["LegacyOrder", "OrderStatus"]
        assert "LEGACY MODELS (NOT YET DECLARED AS DESCRIPTORS)" in content
        assert content.count("model User {") == 1
        assert content.count("datasource db {") == 1
        assert "LEGACY_URL" not in content
        assert content.index("model LegacyOrder {") < content.index("GENERATED MODELS")

    def test_skipped_model_keeps_its_baseline_block(self, blog_registry, mysql_options):
        broken = _model(
            "Broken",
            fields=[_id(), ir.FieldSpec.model_construct(name="payload", type="blob")],
        )
        baseline = "model Broken {\n  id      Int   @id\n  payload Bytes\n}\n"

        document = SchemaGenerator(mysql_options).generate(
            ModelRegistry([*blog_registry, broken]), baseline=baseline
        )

        assert document.skipped_models == ["Broken"]
        assert document.legacy_models == ["Broken"]
        assert document.content.count("model Broken {") == 1
        assert "payload Bytes" in document.content

    def test_compile_reads_baseline_path(self, blog_registry, tmp_path):
        baseline = tmp_path / "legacy.prisma"
        baseline.write_text(LEGACY, encoding="utf-8")
        options = _options(tmp_path, baseline_path=baseline)

        document = compile_schema(blog_registry, options)

        assert "model LegacyOrder {" in options.output_path.read_text(encoding="utf-8")
        assert document.stats.total_legacy == 2

    def test_missing_baseline_is_ignored(self, blog_registry, tmp_path):
        options = _options(tmp_path, baseline_path=tmp_path / "absent.prisma")

        document = compile_schema(blog_registry, options)

        assert document.legacy_models == []


class TestWriteDocument:
    def test_compile_writes_once(self, blog_registry, mysql_options):
        document = compile_schema(blog_registry, mysql_options)

        assert mysql_options.output_path.read_text(encoding="utf-8") == document.content
        leftovers = [p.name for p in mysql_options.output_path.parent.iterdir()]
        assert leftovers == ["schema.prisma"]

    def test_failed_replace_keeps_original(self, tmp_path, monkeypatch):
        target = tmp_path / "schema.prisma"
        target.write_text("original", encoding="utf-8")

        def fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(orchestrator.os, "replace", fail)

        with pytest.raises(OSError, match="disk full"):
            write_document("new content", target)

        assert target.read_text(encoding="utf-8") == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["schema.prisma"]
