import pytest

from proto_schema_gen.config import KnownType, ProtoConfig
from proto_schema_gen.ir import CompositeType, GenerationContext, TypeExpr, TypeKind, parse_type_expr
from proto_schema_gen.type_mapping import TypeMapper
from proto_schema_gen.utils import sanitize_type_name, snake_to_pascal_case, to_screaming_snake_case, to_snake_case


class TestNaming:
    """Identifier case conversions"""

    def test_to_snake_case(self):
        assert to_snake_case("CreatedAt") == "created_at"
        assert to_snake_case("UserID") == "user_id"
        assert to_snake_case("HTTPServer") == "http_server"
        assert to_snake_case("already_snake") == "already_snake"

    def test_to_screaming_snake_case(self):
        assert to_screaming_snake_case("StatusActive") == "STATUS_ACTIVE"

    def test_snake_to_pascal_case(self):
        assert snake_to_pascal_case("first_name") == "FirstName"
        assert snake_to_pascal_case("") == ""

    def test_sanitize_type_name(self):
        assert sanitize_type_name("*User") == "StarUser"
        assert sanitize_type_name("[]*models.User") == "SliceStarmodels_User"
        assert sanitize_type_name("Page[User]") == "Page_User"


class TestTypeParsing:
    """Textual type notation"""

    def test_nested_expression_round_trips(self):
        text = "map[string][]*models.User"
        expr = parse_type_expr(text)
        assert expr.kind == TypeKind.MAP
        assert expr.value.kind == TypeKind.SEQUENCE
        assert expr.value.elem.kind == TypeKind.POINTER
        assert expr.value.unwrap() == TypeExpr.named("User", "models")
        assert str(expr) == text

    def test_generic_arguments(self):
        expr = parse_type_expr("Page[User, int64]")
        assert expr.kind == TypeKind.GENERIC
        assert expr.name == "Page"
        assert expr.args == (TypeExpr.named("User"), TypeExpr.named("int64"))

    def test_byte_sequence_is_not_unwrapped(self):
        expr = parse_type_expr("[]byte")
        assert expr.is_byte_sequence
        assert expr.unwrap() is expr

    def test_empty_interface(self):
        assert parse_type_expr("interface{}") == TypeExpr.named("interface{}")

    @pytest.mark.parametrize("text", ["", "map[string", "Page[User", "User)"])
    def test_invalid_expressions(self, text):
        with pytest.raises(ValueError):
            parse_type_expr(text)


class TestTypeMapper:
    """Host type to protobuf type mapping"""

    def test_builtin_table(self):
        mapper = TypeMapper(ProtoConfig())
        assert mapper.proto_type(parse_type_expr("int")) == "int32"
        assert mapper.proto_type(parse_type_expr("float64")) == "double"
        assert mapper.proto_type(parse_type_expr("*time.Time")) == "google.protobuf.Timestamp"
        assert mapper.proto_type(parse_type_expr("[]byte")) == "bytes"
        assert mapper.proto_type(parse_type_expr("[]*models.User")) == "User"
        assert mapper.proto_type(parse_type_expr("map[string]int64")) == "map<string, int64>"

    def test_configured_mappings_take_precedence(self):
        config = ProtoConfig(
            type_mappings={"decimal.Decimal": "string", "int": "sint64"},
            known_types={"money.Money": KnownType("google.type.Money", "google/type/money.proto")},
        )
        mapper = TypeMapper(config)
        assert mapper.proto_type(parse_type_expr("decimal.Decimal")) == "string"
        assert mapper.proto_type(parse_type_expr("int")) == "sint64"
        assert mapper.proto_type(parse_type_expr("money.Money")) == "google.type.Money"
        assert mapper.import_for("google.type.Money", "money.Money") == "google/type/money.proto"

    def test_well_known_imports(self):
        mapper = TypeMapper(ProtoConfig())
        assert mapper.import_for("google.protobuf.Duration") == "google/protobuf/duration.proto"
        assert mapper.import_for("User") == ""

    def test_generic_without_alias_gets_composed_name(self):
        mapper = TypeMapper(ProtoConfig())
        assert mapper.proto_type(parse_type_expr("Page[User]")) == "PageUser"
        assert mapper.proto_type(parse_type_expr("Page[int64]")) == "PageInt64"

    def test_generic_with_alias_uses_alias_name(self):
        alias = CompositeType(
            name="UserPage",
            is_alias=True,
            alias_target="Page",
            alias_type_args=[TypeExpr.named("User")],
        )
        mapper = TypeMapper(ProtoConfig(), GenerationContext(composites=[alias]))
        assert mapper.proto_type(parse_type_expr("Page[User]")) == "UserPage"
        assert mapper.proto_type(parse_type_expr("[]Page[User]")) == "UserPage"


if __name__ == "__main__":
    pytest.main([__file__])
