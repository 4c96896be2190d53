"""Enum collection: validation and storage slot naming."""

import pytest

from sumgo.internals.errors import CompileError
from sumgo.internals.parser import parse_enum
from sumgo.internals.report import Reporter
from sumgo.semantics.collect import EnumCollector, EnumTable, assign_slot_names


def collect(*sources):
    reporter = Reporter()
    table = EnumTable()
    EnumCollector(reporter, table).collect(parse_enum(s) for s in sources)
    return table, reporter


class TestSlotNames:
    def test_struct_fields_use_their_names(self, shape_enum):
        names = assign_slot_names(parse_enum(shape_enum))
        assert names == {"Point": [], "Circle": ["radius"], "Rect": ["w", "h"]}

    def test_tuple_fields_use_variant_and_index(self):
        table, reporter = collect("enum Pair { Both(int, string), One(int) }")
        assert not reporter.items
        assert table.get("Pair").slot_names == {"Both": ["both0", "both1"], "One": ["one0"]}

    def test_reserved_and_keyword_names_fall_back(self):
        names = assign_slot_names(parse_enum("enum Token { Word { tag: string, type: int } }"))
        assert names["Word"] == ["word0", "word1"]

    def test_field_shared_between_variants_falls_back(self):
        names = assign_slot_names(parse_enum("enum E { A { x: int }, B { x: string } }"))
        assert names == {"A": ["x"], "B": ["b0"]}

    def test_collision_after_fallback(self):
        with pytest.raises(CompileError) as exc:
            assign_slot_names(parse_enum("enum E { A { c0: int, x: int }, C { x: int } }"))
        assert exc.value.message.code == "SG1003"
        assert exc.value.kind.value == "FieldNameCollision"

    def test_duplicate_field_in_one_variant(self):
        with pytest.raises(CompileError) as exc:
            assign_slot_names(parse_enum("enum E { A { x: int, x: string } }"))
        assert exc.value.message.code == "SG1004"


class TestCollector:
    def test_collects_in_declaration_order(self, status_enum, shape_enum):
        table, reporter = collect(shape_enum, status_enum)
        assert not reporter.items
        assert table.order == ["Shape", "Status"]
        assert "Status" in table

    def test_duplicate_enum_name(self, status_enum):
        table, reporter = collect(status_enum, "enum Status { Other }")
        assert [d.code for d in reporter.items] == ["SG1001"]
        assert [v.name for v in table.get("Status").decl.variants] == ["Active", "Inactive", "Pending"]

    def test_every_duplicate_variant_is_reported(self):
        table, reporter = collect("enum E { A, A, B, B }")
        assert [d.code for d in reporter.items] == ["SG1002", "SG1002"]
        assert [d.error_kind for d in reporter.items] == ["DuplicateVariant"] * 2
        assert "E" not in table

    def test_variant_names_are_case_sensitive(self):
        table, reporter = collect("enum E { Open, OPEN }")
        assert not reporter.items

    def test_duplicate_type_parameter(self):
        _, reporter = collect("enum E<T, T> { A(T) }")
        assert [d.code for d in reporter.items] == ["SG1007"]

    def test_one_bad_enum_does_not_stop_the_rest(self, status_enum):
        table, reporter = collect("enum Bad { A, A }", status_enum)
        assert reporter.has_errors
        assert table.order == ["Status"]
