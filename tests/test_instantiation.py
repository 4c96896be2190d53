"""Generic instantiation: name mangling, reference rewriting and the declaration registry."""

import pytest

from sumgo.internals.errors import CompileError
from sumgo.semantics.instantiate import (
    EnumUsage,
    GenericRewriter,
    find_generic_refs,
    substitute_type_params,
)
from sumgo.semantics.name_mangling import mangle_enum_name, sanitize_type
from tests.test_utils import OPTION_RESULT_ENUMS, STATUS_ENUM, prepare


class TestNameMangling:
    @pytest.mark.parametrize("type_str, expected", [
        ("int", "int"),
        ("[]string", "arr_string"),
        ("[4]byte", "arr4_byte"),
        ("*User", "ptr_User"),
        ("map[string]int", "map_string_int"),
        ("pkg.Type", "pkg_Type"),
    ])
    def test_sanitize(self, type_str, expected):
        assert sanitize_type(type_str) == expected

    def test_mangled_names(self):
        assert mangle_enum_name("Option", ("int",)) == "Option_int"
        assert mangle_enum_name("Result", ("int", "error")) == "Result_int_error"
        assert mangle_enum_name("Option", ("[]string",)) == "Option_arr_string"

    def test_non_generic_keeps_its_name(self):
        assert mangle_enum_name("Shape", ()) == "Shape"

    def test_substitution_is_whole_word(self):
        assert substitute_type_params("map[K][]V", {"K": "string", "V": "int"}) == "map[string][]int"
        assert substitute_type_params("Tx", {"T": "int"}) == "Tx"


class TestGenericReferences:
    def test_finds_types_and_constructors(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        text = "var o Option<int> = Option<int>.Some(3)\nif a < b && c > d {}"
        refs = find_generic_refs(text, uc.unit.enums)
        assert [(r.name, r.args, r.variant) for r in refs] == [
            ("Option", ("int",), None),
            ("Option", ("int",), "Some"),
        ]

    def test_ignores_literals_and_comments(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        text = 's := "Option<int>" // Result<int, error>'
        assert find_generic_refs(text, uc.unit.enums) == []

    def test_rewrite_discovers_nested_instantiations(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        registry = uc.unit.registry
        rewriter = GenericRewriter(uc.unit.enums, lambda usage: registry.discover(usage).name)
        out = rewriter.rewrite("func f(r Result<Option<int>, error>) Option<int> { return Option<int>.None() }")
        assert out == "func f(r Result_Option_int_error) Option_int { return Option_intNone() }"
        assert [u.name for u in registry.unions] == ["Option_int", "Result_Option_int_error"]


class TestRegistry:
    def test_discovery_is_idempotent(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        registry = uc.unit.registry
        first = registry.discover(EnumUsage("Option", ("int",)))
        again = registry.discover(EnumUsage("Option", ("int",)))
        assert first is again
        assert len(registry) == 1

    def test_non_generic_enums_are_discovered_up_front(self):
        uc, _ = prepare(STATUS_ENUM)
        assert [u.name for u in uc.unit.registry.unions] == ["Status"]

    def test_drain_happens_once(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        registry = uc.unit.registry
        registry.discover(EnumUsage("Option", ("string",)))
        declarations = registry.drain()
        assert [d.name for d in declarations] == ["Option_string"]
        assert registry.drained
        with pytest.raises(RuntimeError, match="IE0001"):
            registry.drain()
        with pytest.raises(RuntimeError, match="IE0001"):
            registry.discover(EnumUsage("Option", ("int",)))

    def test_wrong_number_of_type_arguments(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        with pytest.raises(CompileError) as exc:
            uc.unit.registry.discover(EnumUsage("Option", ("int", "string")))
        assert exc.value.message.code == "SG1501"
        assert len(uc.unit.registry) == 0

    def test_type_arguments_on_a_plain_enum(self):
        uc, _ = prepare(STATUS_ENUM)
        with pytest.raises(CompileError) as exc:
            uc.unit.registry.discover(EnumUsage("Status", ("int",)))
        assert exc.value.message.code == "SG1502"

    def test_runaway_instantiation_is_cut_off(self):
        source = OPTION_RESULT_ENUMS + "\nenum Nest<T> {\n    More(Nest<Option<T>>),\n    Stop(T),\n}\n"
        uc, _ = prepare(source)
        with pytest.raises(CompileError) as exc:
            uc.unit.registry.discover(EnumUsage("Nest", ("int",)))
        assert exc.value.message.code == "SG1503"

    def test_payload_types_are_concrete(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        union = uc.unit.registry.discover(EnumUsage("Result", ("Option<int>", "error")))
        assert union.name == "Result_Option_int_error"
        assert [(s.name, s.type) for s in union.slots] == [("ok0", "Option_int"), ("err0", "error")]
        assert uc.unit.union_for_type("Option_int") is not None
