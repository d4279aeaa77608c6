#!/usr/bin/env python3

import pytest

from proto_schema_gen.annotations import Annotation
from proto_schema_gen.config import GenerationStrategy, OutputFormat, ProtoConfig
from proto_schema_gen.errors import GenerationError, ValidationError
from proto_schema_gen.formats.json_schema import JsonSchemaEmitter
from proto_schema_gen.formats.markdown import MarkdownEmitter
from proto_schema_gen.generator import SchemaGenerator
from proto_schema_gen.ir import CompositeType, EnumType, EnumValue, Field, GenerationContext, parse_type_expr
from proto_schema_gen.planner import (
    MultiFilePlanner,
    format_file_name,
    group_base_name,
    partition_key,
    resolve_file_name,
)


def field(name, type_text="string", *annotations):
    return Field(name, parse_type_expr(type_text), annotations=list(annotations))


def user(**kwargs):
    return CompositeType("User", fields=[field("Id"), field("Status", "Status")], **kwargs)


def order(**kwargs):
    return CompositeType("Order", fields=[field("Id"), field("Buyer", "*User")], **kwargs)


def status(**kwargs):
    return EnumType("Status", values=[EnumValue("Unknown", 0), EnumValue("Active", 1)], **kwargs)


def planner(strategy, composites=(), enums=(), **config):
    ctx = GenerationContext(composites=list(composites), enums=list(enums))
    return MultiFilePlanner(ctx, ProtoConfig(generation_strategy=strategy, **config))


class TestFileNames:
    """File name patterns"""

    def test_resolve_file_name(self):
        assert resolve_file_name("{schema_name}.proto", "users", "users") == "users.proto"
        assert resolve_file_name("{name}_{format}.proto", "api", "users", "markdown") == "users_markdown.proto"
        assert resolve_file_name("", "api", "api") == "api.proto"

    def test_format_file_name_swaps_extension(self):
        assert format_file_name("users.proto", "{schema_name}.proto", "users", "markdown", ".md") == "users.md"
        assert format_file_name("api/users.proto", "api/{name}.proto", "users", "typescript", ".ts") == "api/users.ts"

    def test_format_file_name_with_format_placeholder(self):
        path = format_file_name("users.proto", "{name}.{format}.proto", "users", "json-schema", ".schema.json")
        assert path == "users.json-schema.schema.json"

    def test_partition_keys(self):
        composite = CompositeType("User", package="example.com/app/users", source_file="models/user.go")
        assert partition_key(GenerationStrategy.FOLLOW, composite, "schema") == "models/user.go"
        assert partition_key(GenerationStrategy.PACKAGE, composite, "schema") == "example.com/app/users"
        assert partition_key(GenerationStrategy.NAMESPACE, composite, "schema") == "default"
        assert partition_key(GenerationStrategy.SINGLE, composite, "schema") == "schema"
        assert partition_key(GenerationStrategy.FOLLOW, CompositeType("Loose"), "schema") == "schema"

    def test_namespace_annotation_wins(self):
        composite = CompositeType("Invoice", namespace="sales", annotations=[Annotation.of("namespace", name="billing")])
        assert partition_key(GenerationStrategy.NAMESPACE, composite, "schema") == "billing"
        assert partition_key(GenerationStrategy.NAMESPACE, CompositeType("Deal", namespace="sales"), "schema") == "sales"

    def test_group_base_names(self):
        assert group_base_name(GenerationStrategy.FOLLOW, "models/user.go") == "user"
        assert group_base_name(GenerationStrategy.FOLLOW, "models\\order.py") == "order"
        assert group_base_name(GenerationStrategy.PACKAGE, "example.com/app/users") == "users"
        assert group_base_name(GenerationStrategy.NAMESPACE, "billing") == "billing"


class TestMultiFilePlanner:
    """Partitioning and per-group generation"""

    def test_single_strategy(self):
        output = planner(GenerationStrategy.SINGLE, [user(), order()], [status()]).generate()
        assert output.multi_file is False
        assert output.paths() == ["schema.proto"]
        content = output.files[0].content
        assert "message User" in content and "message Order" in content and "enum Status" in content
        assert "import" not in content

    def test_empty_ir_produces_one_file(self):
        output = planner(GenerationStrategy.FOLLOW).generate()
        assert output.paths() == ["schema.proto"]
        assert output.files[0].content == 'syntax = "proto3";\n\n'

    def test_follow_strategy_with_cross_file_imports(self):
        composites = [user(source_file="models/user.go"), order(source_file="models/order.go")]
        enums = [status(source_file="models/status.go")]
        output = planner(GenerationStrategy.FOLLOW, composites, enums).generate()

        assert output.multi_file is True
        assert output.paths() == ["user.proto", "order.proto", "status.proto"]
        files = {f.path: f for f in output.files}
        assert 'import "status.proto";\n' in files["user.proto"].content
        assert 'import "user.proto";\n' in files["order.proto"].content
        assert "import" not in files["status.proto"].content
        assert "message Order" not in files["user.proto"].content
        assert files["order.proto"].metadata == {
            "strategy": "follow",
            "group": "models/order.go",
            "source_file": "models/order.go",
            "format": "proto",
        }

    def test_package_strategy(self):
        composites = [
            user(package="example.com/app/users"),
            order(package="example.com/app/orders"),
        ]
        output = planner(GenerationStrategy.PACKAGE, composites, [status(package="example.com/app/users")]).generate()
        assert output.paths() == ["users.proto", "orders.proto"]
        files = {f.path: f.content for f in output.files}
        assert "enum Status" in files["users.proto"]
        assert "message Order" in files["orders.proto"]
        assert 'import "users.proto";\n' in files["orders.proto"]

    def test_namespace_strategy(self):
        composites = [
            user(annotations=[Annotation.of("namespace", name="accounts")]),
            order(),
        ]
        output = planner(GenerationStrategy.NAMESPACE, composites, [status(namespace="accounts")]).generate()
        assert output.paths() == ["accounts.proto", "default.proto"]
        assert output.files[1].metadata["namespace"] == "default"

    def test_output_file_name_pattern(self):
        composites = [user(source_file="user.go"), order(source_file="order.go")]
        output = planner(
            GenerationStrategy.FOLLOW,
            composites,
            [status(source_file="user.go")],
            output_file_name="api/{name}_types.proto",
        ).generate()
        assert output.paths() == ["api/user_types.proto", "api/order_types.proto"]
        assert 'import "api/user_types.proto";\n' in output.files[1].content

    def test_additional_formats_follow_each_group(self):
        composites = [user(source_file="user.go"), order(source_file="order.go")]
        output = planner(
            GenerationStrategy.FOLLOW,
            composites,
            [status(source_file="user.go")],
            output_formats=[OutputFormat.PROTO, OutputFormat.MARKDOWN, OutputFormat.TYPESCRIPT],
        ).generate()
        assert output.paths() == ["user.proto", "user.md", "user.ts", "order.proto", "order.md", "order.ts"]
        assert [f.metadata["format"] for f in output.files[:3]] == ["proto", "markdown", "typescript"]
        assert "### Order" in output.files[4].content
        assert "### User" not in output.files[4].content

    def test_validation_error_aborts_the_run(self):
        broken = CompositeType(
            "Broken",
            source_file="broken.go",
            fields=[field("A", "string", Annotation.of("field", number="1")), field("B")],
        )
        with pytest.raises(ValidationError):
            planner(GenerationStrategy.FOLLOW, [user(source_file="user.go"), broken], [status()]).generate()

    def test_format_failure_names_the_group(self, monkeypatch):
        def fail(self, ctx, config):
            raise ValueError("boom")

        monkeypatch.setattr(JsonSchemaEmitter, "emit", fail)
        with pytest.raises(GenerationError, match="failed to generate group 'schema': json-schema output failed: boom"):
            planner(
                GenerationStrategy.SINGLE,
                [user()],
                [status()],
                output_formats=[OutputFormat.PROTO, OutputFormat.JSON_SCHEMA],
            ).generate()

    def test_unexpected_format_error_names_the_group(self, monkeypatch):
        def fail(self, ctx, config):
            raise RuntimeError("template exploded")

        monkeypatch.setattr(MarkdownEmitter, "emit", fail)
        with pytest.raises(GenerationError, match="failed to generate group 'user.go': markdown output failed: template exploded"):
            planner(
                GenerationStrategy.FOLLOW,
                [user(source_file="user.go"), order(source_file="order.go")],
                [status(source_file="user.go")],
                output_formats=[OutputFormat.PROTO, OutputFormat.MARKDOWN],
            ).generate()

    def test_unexpected_schema_error_names_the_group(self, monkeypatch):
        def fail(self):
            raise AttributeError("missing attribute")

        monkeypatch.setattr(SchemaGenerator, "generate", fail)
        with pytest.raises(GenerationError, match="failed to generate group 'schema': missing attribute") as raised:
            planner(GenerationStrategy.SINGLE, [user()], [status()]).generate()
        assert isinstance(raised.value.__cause__, AttributeError)

    def test_same_file_name_from_two_source_files(self):
        composites = [user(source_file="a/models.go"), order(source_file="b/models.go")]
        with pytest.raises(GenerationError, match="groups 'a/models.go' and 'b/models.go' both map to output file 'models.proto'"):
            planner(GenerationStrategy.FOLLOW, composites, [status(source_file="a/models.go")]).generate()

    def test_same_file_name_from_two_packages(self):
        composites = [user(package="example.com/a/models"), order(package="example.com/b/models")]
        p = planner(GenerationStrategy.PACKAGE, composites, [status(package="example.com/a/models")])
        with pytest.raises(GenerationError, match="both map to output file 'models.proto'"):
            p.partition()

    def test_register_types(self):
        renamed = CompositeType("Account", annotations=[Annotation.of("message", name="AccountRecord")])
        p = planner(
            GenerationStrategy.FOLLOW,
            [renamed],
            [status(annotations=[Annotation.of("enum", name="AccountStatus")])],
        )
        type_files = p.register_types(p.partition())
        assert type_files == {
            "Account": "schema.proto",
            "AccountRecord": "schema.proto",
            "Status": "schema.proto",
            "AccountStatus": "schema.proto",
        }


if __name__ == "__main__":
    pytest.main([__file__])
