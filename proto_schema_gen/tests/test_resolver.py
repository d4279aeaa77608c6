#!/usr/bin/env python3

import pytest

from proto_schema_gen.annotations import Annotation
from proto_schema_gen.config import ProtoConfig
from proto_schema_gen.ir import CompositeType, EnumValue, Field, GenerationContext, parse_type_expr
from proto_schema_gen.resolver import (
    FieldShape,
    Inclusion,
    MessageResolver,
    compact_reserved_ranges,
    enum_value_name,
    enum_value_number,
    message_names,
    parse_reserved_numbers,
    resolve_inclusion,
)


def make_field(name, type_text="string", *annotations, **kwargs):
    return Field(name, parse_type_expr(type_text), annotations=list(annotations), **kwargs)


def decide(f, message_name="User", composite_annotations=()):
    composite = CompositeType(name="User", fields=[f], annotations=list(composite_annotations))
    return resolve_inclusion(f, message_name, composite, GenerationContext(composites=[composite]))


class TestCompactReservedRanges:
    """Compaction of reserved numbers"""

    def test_mixed_runs(self):
        assert compact_reserved_ranges([1, 2, 3, 5, 7, 8, 9]) == ["1 to 3", "5", "7 to 9"]

    def test_run_of_two(self):
        assert compact_reserved_ranges([4, 5]) == ["4, 5"]

    def test_single_and_empty(self):
        assert compact_reserved_ranges([9]) == ["9"]
        assert compact_reserved_ranges([]) == []

    def test_duplicates_collapse(self):
        assert compact_reserved_ranges([3, 3, 4, 5]) == ["3 to 5"]

    def test_parse_reserved_numbers(self):
        assert parse_reserved_numbers(["6-8", "15", "20 to 21", "", "junk"]) == [6, 7, 8, 15, 20, 21]


class TestInclusion:
    """Inclusion decision for one field in one message"""

    @pytest.mark.parametrize(
        "f, expected",
        [
            (make_field("Name"), Inclusion.KEEP),
            (make_field("Name", exported=False), Inclusion.DROP),
            (make_field("_hidden"), Inclusion.DROP),
            (Field("Name", parse_type_expr("string"), tag='proto:"-"'), Inclusion.DROP),
            (make_field("Name", "string", Annotation.of("ignore")), Inclusion.DROP),
            (make_field("Name", "string", Annotation.of("skip", reserved=True)), Inclusion.DROP_AND_RESERVE),
            (make_field("Name", "string", Annotation.of("ignore", **{"for": "Admin"})), Inclusion.KEEP),
            (make_field("Name", "string", Annotation.of("include", **{"for": "Admin"})), Inclusion.DROP),
            (make_field("Name", "string", Annotation.of("include", **{"for": "User"})), Inclusion.KEEP),
            (make_field("Name", "string", Annotation.of("field", omit=True)), Inclusion.DROP),
            (make_field("Name", "string", Annotation.of("field", ignore="User", reserved=True)), Inclusion.DROP_AND_RESERVE),
            (make_field("Name", "string", Annotation.of("field", include="Admin")), Inclusion.DROP),
            (make_field("Name", "string", Annotation.of("field", include="User, Admin")), Inclusion.KEEP),
            (make_field("Name", "string", Annotation.of("field", **{"for": "Admin", "reserved": True})), Inclusion.DROP),
        ],
    )
    def test_decision_table(self, f, expected):
        assert decide(f) == expected

    def test_message_level_reservation(self):
        f = make_field("Name", "string", Annotation.of("ignore"))
        assert decide(f, composite_annotations=[Annotation.of("message", reserved=True)]) == Inclusion.DROP_AND_RESERVE
        assert decide(f, composite_annotations=[Annotation.of("reserved")]) == Inclusion.DROP_AND_RESERVE

    def test_message_level_reservation_is_scoped_by_name(self):
        f = make_field("Name", "string", Annotation.of("ignore"))
        anns = [Annotation.of("message", name="Admin", reserved=True)]
        assert decide(f, "User", anns) == Inclusion.DROP


class TestMessageResolver:
    """Per-message field plans"""

    def plan(self, fields, annotations=(), config=None, name=None):
        composite = CompositeType(name="User", fields=fields, annotations=list(annotations))
        ctx = GenerationContext(composites=[composite])
        resolver = MessageResolver(ctx, config or ProtoConfig())
        return resolver.plan(composite, name or "User")

    def test_auto_numbering_skips_explicit_numbers(self):
        plan = self.plan(
            [
                make_field("A"),
                make_field("B", "string", Annotation.of("field", number="10")),
                make_field("C"),
            ]
        )
        assert [(r.name, r.number, r.explicit_number) for r in plan.fields] == [
            ("a", 1, False),
            ("b", 10, True),
            ("c", 2, False),
        ]

    def test_number_precedence(self):
        f = Field(
            "A",
            parse_type_expr("string"),
            tag='proto:"a,number=4"',
            annotations=[Annotation.of("map", number="9")],
        )
        assert self.plan([f]).fields[0].number == 9
        tagged = Field("A", parse_type_expr("string"), tag='proto:"a,number=4"')
        assert self.plan([tagged]).fields[0].number == 4

    def test_start_field_number(self):
        plan = self.plan([make_field("A"), make_field("B")], config=ProtoConfig(start_field_number=5))
        assert [r.number for r in plan.fields] == [5, 6]

    def test_dropped_fields_do_not_consume_numbers(self):
        plan = self.plan([make_field("A", "string", Annotation.of("ignore")), make_field("B")])
        assert [(r.name, r.number) for r in plan.fields] == [("b", 1)]
        assert plan.reserved_numbers == []

    def test_reserved_auto_numbered_field_keeps_its_number(self):
        plan = self.plan(
            [
                make_field("A"),
                make_field("B", "string", Annotation.of("ignore", reserved=True)),
                make_field("C"),
            ]
        )
        assert [(r.name, r.number) for r in plan.fields] == [("a", 1), ("c", 3)]
        assert plan.reserved_numbers == [2]

    def test_reserved_tag_number(self):
        f = Field("A", parse_type_expr("string"), tag='proto:"a,number=7"', annotations=[Annotation.of("omit", reserved=True)])
        plan = self.plan([f, make_field("B")])
        assert [(r.name, r.number) for r in plan.fields] == [("b", 1)]
        assert plan.reserved_numbers == [7]

    def test_per_message_field_overrides(self):
        fields = [
            make_field("A"),
            make_field(
                "B",
                "string",
                Annotation.of("field", name="b_for_x", number="5", **{"for": "X"}),
                Annotation.of("field", name="b_for_y", type="bytes", **{"for": "Y"}),
            ),
        ]
        x = self.plan(fields, name="X")
        y = self.plan(fields, name="Y")
        z = self.plan(fields, name="Z")
        assert [(r.name, r.number, r.proto_type) for r in x.fields] == [("a", 1, "string"), ("b_for_x", 5, "string")]
        assert [(r.name, r.number, r.proto_type) for r in y.fields] == [("a", 1, "string"), ("b_for_y", 2, "bytes")]
        assert [r.name for r in z.fields] == ["a"]

    def test_unscoped_and_scoped_field_annotations_combine(self):
        fields = [
            make_field(
                "B",
                "string",
                Annotation.of("field", json_name="bee"),
                Annotation.of("field", name="b_admin", **{"for": "Admin"}),
            )
        ]
        admin = self.plan(fields, name="Admin").fields
        assert [(r.name, r.options) for r in admin] == [("b_admin", ['json_name = "bee"'])]
        assert self.plan(fields, name="Guest").fields == []

    def test_reserved_field_number_is_recorded(self):
        plan = self.plan(
            [
                make_field("A"),
                make_field("B", "string", Annotation.of("field", number="3"), Annotation.of("ignore", reserved=True)),
            ]
        )
        assert [r.name for r in plan.fields] == ["a"]
        assert plan.reserved_numbers == [3]
        assert plan.reserved_ranges == ["3"]

    def test_declared_reservations(self):
        plan = self.plan([make_field("A")], [Annotation.of("reserved", numbers="6-8, 15", names="old_name")])
        assert plan.reserved_ranges == ["6 to 8", "15"]
        assert plan.reserved_names == ["old_name"]

    def test_shapes(self):
        plan = self.plan(
            [
                make_field("Tags", "[]string"),
                make_field("Data", "[]byte"),
                make_field("Nick", "*string"),
                make_field("Labels", "map[string]int64"),
                make_field("Scores", "map[float64]string"),
                make_field("Extra", "string", Annotation.of("map", key="string", value="User")),
                make_field("Ids", "string", Annotation.of("field", repeated=True)),
            ]
        )
        shapes = {r.field.name: (r.shape, r.proto_type) for r in plan.fields}
        assert shapes["Tags"] == (FieldShape.REPEATED, "string")
        assert shapes["Data"] == (FieldShape.SCALAR, "bytes")
        assert shapes["Nick"] == (FieldShape.OPTIONAL, "string")
        assert shapes["Labels"][0] == FieldShape.MAP
        assert shapes["Ids"] == (FieldShape.REPEATED, "string")
        assert "Scores" not in shapes
        assert [f.name for f in plan.unsupported] == ["Scores"]

        extra = next(r for r in plan.fields if r.field.name == "Extra")
        assert (extra.map_key, extra.map_value) == ("string", "User")
        labels = next(r for r in plan.fields if r.field.name == "Labels")
        assert (labels.map_key, labels.map_value) == ("string", "int64")

    def test_unsupported_map_does_not_consume_number(self):
        plan = self.plan([make_field("Scores", "map[float64]string"), make_field("Name")])
        assert [(r.name, r.number) for r in plan.fields] == [("name", 1)]

    def test_names_and_type_overrides(self):
        plan = self.plan(
            [
                make_field("UserID", "int64", Annotation.of("field", name="uid", type="sint64")),
                Field("Email", parse_type_expr("string"), tag='proto:"mail,type=bytes"'),
            ]
        )
        assert [(r.name, r.proto_type) for r in plan.fields] == [("uid", "sint64"), ("mail", "bytes")]

    def test_field_options(self):
        plan = self.plan(
            [
                make_field("Ids", "[]int32", Annotation.of("field", packed=True, deprecated="true")),
                make_field("Name", "string", Annotation.of("option", name="(validate.rules).string.min_len", value="1")),
                Field("Label", parse_type_expr("string"), tag='proto:"label,json_name=lbl"'),
            ]
        )
        assert [r.options for r in plan.fields] == [
            ["packed = true", "deprecated = true"],
            ["(validate.rules).string.min_len = 1"],
            ['json_name = "lbl"'],
        ]


class TestMessageNames:
    """Message name resolution"""

    def test_default_is_type_name(self):
        assert message_names(CompositeType(name="User")) == ["User"]

    def test_one_name_per_message_annotation(self):
        composite = CompositeType(
            name="User",
            annotations=[Annotation.of("message", name="UserRecord"), Annotation.of("message", name="UserSummary")],
        )
        assert message_names(composite) == ["UserRecord", "UserSummary"]

    def test_empty_name_uses_first_annotation_name(self):
        composite = CompositeType(
            name="User",
            annotations=[Annotation.of("message", name="UserRecord"), Annotation.of("message")],
        )
        assert message_names(composite) == ["UserRecord", "UserRecord"]


class TestEnumValues:
    def test_defaults_and_overrides(self):
        value = EnumValue("StatusActive", 1)
        assert enum_value_name(value) == "STATUS_ACTIVE"
        assert enum_value_number(value) == 1
        custom = EnumValue("Active", 1, annotations=[Annotation.of("enumvalue", name="ACTIVE_USER", number="5")])
        assert enum_value_name(custom) == "ACTIVE_USER"
        assert enum_value_number(custom) == 5


if __name__ == "__main__":
    pytest.main([__file__])
