"""Generated Go declarations for tagged unions."""

import pytest

from sumgo.backend.sum_types import SumTypeGenerator, _param_names
from sumgo.compiler.config import CodegenConfig, SumgoConfig, load_config_from_string
from sumgo.internals.parser import parse_enum
from sumgo.internals.report import Reporter
from sumgo.semantics.ast import EnumDecl, FieldDecl, VariantDecl, VariantKind
from sumgo.semantics.collect import EnumCollector, EnumTable
from sumgo.semantics.instantiate import EnumUsage
from tests.test_utils import OPTION_RESULT_ENUMS, SHAPE_ENUM, STATUS_ENUM, prepare


SHAPE_GO = """\
// sumgo:enum Shape
type ShapeTag uint8

const (
\tShapeTagPoint ShapeTag = iota
\tShapeTagCircle
\tShapeTagRect
)

type Shape struct {
\ttag    ShapeTag
\tradius *float64
\tw      *float64
\th      *float64
}

func ShapePoint() Shape {
\treturn Shape{tag: ShapeTagPoint}
}

func ShapeCircle(radius float64) Shape {
\treturn Shape{tag: ShapeTagCircle, radius: &radius}
}

func ShapeRect(w float64, h float64) Shape {
\treturn Shape{tag: ShapeTagRect, w: &w, h: &h}
}

func (e Shape) IsPoint() bool {
\treturn e.tag == ShapeTagPoint
}

func (e Shape) IsCircle() bool {
\treturn e.tag == ShapeTagCircle
}

func (e Shape) IsRect() bool {
\treturn e.tag == ShapeTagRect
}"""


OPTION_MAP_GO = """\
func (o Option_int) Map(fn func(int) int) Option_int {
\tswitch o.tag {
\tcase Option_intTagSome:
\t\tif o.some0 != nil {
\t\t\treturn Option_intSome(fn(*o.some0))
\t\t}
\tcase Option_intTagNone:
\t\treturn o
\t}
\tpanic("invalid Option_int state")
}"""


OPTION_UNWRAP_GO = """\
func (o Option_int) Unwrap() int {
\tif o.tag == Option_intTagSome && o.some0 != nil {
\t\treturn *o.some0
\t}
\tpanic("sumgo: called Option_int.Unwrap on None")
}"""


def render(source, name, config=None, usage=None):
    config = config or SumgoConfig()
    uc, _ = prepare(source, config)
    if usage is not None:
        uc.unit.registry.discover(usage)
    union = uc.unit.union_named(name)
    return "\n".join(SumTypeGenerator(uc.unit.enums, config.codegen).render(union))


class TestDeclarations:
    def test_shape(self):
        assert render(SHAPE_ENUM, "Shape") == SHAPE_GO

    def test_tag_constants_follow_declaration_order(self):
        text = render(STATUS_ENUM, "Status")
        assert text.index("StatusTagActive StatusTag = iota") < text.index("\tStatusTagInactive\n")
        assert text.index("\tStatusTagInactive\n") < text.index("\tStatusTagPending\n")

    def test_unit_only_union_has_just_a_tag(self):
        text = render(STATUS_ENUM, "Status")
        assert "type Status struct {\n\ttag StatusTag\n}" in text
        assert "func StatusActive() Status {\n\treturn Status{tag: StatusTagActive}\n}" in text

    def test_tuple_payloads(self):
        text = render(OPTION_RESULT_ENUMS, "Option_int", usage=EnumUsage("Option", ("int",)))
        assert "func Option_intSome(arg0 int) Option_int {" in text
        assert "return Option_int{tag: Option_intTagSome, some0: &arg0}" in text
        assert "\tsome0 *int" in text

    def test_generic_payload_types_are_concrete(self):
        text = render(OPTION_RESULT_ENUMS, "Result_Option_int_error",
                      usage=EnumUsage("Result", ("Option<int>", "error")))
        assert "\tok0  *Option_int" in text
        assert "func Result_Option_int_errorOk(arg0 Option_int) Result_Option_int_error {" in text

    def test_declaration_names(self):
        uc, _ = prepare(STATUS_ENUM)
        (decl,) = uc.unit.registry.drain()
        assert decl.name == "Status"
        assert decl.names[:4] == ("StatusTag", "StatusTagActive", "StatusTagInactive", "StatusTagPending")
        assert "Status.IsPending" in decl.names
        assert decl.origin is not None and decl.origin.line == 1


class TestHelpers:
    def test_option_map(self):
        text = render(OPTION_RESULT_ENUMS, "Option_int", usage=EnumUsage("Option", ("int",)))
        assert OPTION_MAP_GO in text
        assert "func (o Option_int) AndThen(fn func(int) Option_int) Option_int {" in text
        assert "\t\t\treturn fn(*o.some0)" in text

    def test_result_helpers(self):
        text = render(OPTION_RESULT_ENUMS, "Result_int_error",
                      usage=EnumUsage("Result", ("int", "error")))
        assert "func (r Result_int_error) Map(fn func(int) int) Result_int_error {" in text
        assert "\tcase Result_int_errorTagErr:\n\t\treturn r" in text

    def test_option_unwrap(self):
        text = render(OPTION_RESULT_ENUMS, "Option_int", usage=EnumUsage("Option", ("int",)))
        assert OPTION_UNWRAP_GO in text
        assert ("func (o Option_int) UnwrapOr(fallback int) int {\n"
                "\tif o.tag == Option_intTagSome && o.some0 != nil {\n"
                "\t\treturn *o.some0\n"
                "\t}\n"
                "\treturn fallback\n"
                "}") in text
        assert "UnwrapErr" not in text

    def test_result_unwrap_err(self):
        text = render(OPTION_RESULT_ENUMS, "Result_int_error",
                      usage=EnumUsage("Result", ("int", "error")))
        assert "func (r Result_int_error) Unwrap() int {" in text
        assert 'panic("sumgo: called Result_int_error.Unwrap on Err")' in text
        assert ("func (r Result_int_error) UnwrapErr() error {\n"
                "\tif r.tag == Result_int_errorTagErr && r.err0 != nil {\n"
                "\t\treturn *r.err0\n"
                "\t}\n"
                '\tpanic("sumgo: called Result_int_error.UnwrapErr on Ok")\n'
                "}") in text

    def test_helper_names_are_declared(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        uc.unit.registry.discover(EnumUsage("Option", ("string",)))
        (decl,) = uc.unit.registry.drain()
        assert decl.names[-4:] == ("Option_string.Map", "Option_string.AndThen",
                                   "Option_string.Unwrap", "Option_string.UnwrapOr")

    def test_result_helper_names_include_unwrap_err(self):
        uc, _ = prepare(OPTION_RESULT_ENUMS)
        uc.unit.registry.discover(EnumUsage("Result", ("int", "error")))
        (decl,) = uc.unit.registry.drain()
        assert decl.names[-5:] == ("Result_int_error.Map", "Result_int_error.AndThen",
                                   "Result_int_error.Unwrap", "Result_int_error.UnwrapOr",
                                   "Result_int_error.UnwrapErr")

    def test_no_helpers_for_other_shapes(self):
        assert "Map(" not in render(SHAPE_ENUM, "Shape")

    def test_helpers_can_be_turned_off(self):
        config = load_config_from_string("[codegen]\nhelpers = false\n")
        text = render(OPTION_RESULT_ENUMS, "Option_int", config, EnumUsage("Option", ("int",)))
        assert "Map(" not in text and "AndThen(" not in text
        assert "Unwrap" not in text

    def test_helper_names_follow_the_switch(self):
        config = load_config_from_string("[codegen]\nhelpers = false\n")
        uc, _ = prepare(OPTION_RESULT_ENUMS, config)
        uc.unit.registry.discover(EnumUsage("Option", ("int",)))
        (decl,) = uc.unit.registry.drain()
        assert decl.names[-1] == "Option_int.IsNone"


class TestCodegenOptions:
    def test_markers_can_be_turned_off(self):
        config = load_config_from_string("[codegen]\nmarkers = false\n")
        text = render(STATUS_ENUM, "Status", config)
        assert text.startswith("type StatusTag uint8")
        assert "sumgo:enum" not in text

    def test_tag_type(self):
        config = load_config_from_string('[codegen]\ntag_type = "uint16"\n')
        assert "type StatusTag uint16" in render(STATUS_ENUM, "Status", config)

    def test_indent(self):
        config = load_config_from_string('[codegen]\nindent = "    "\n')
        assert "    return e.tag == StatusTagActive" in render(STATUS_ENUM, "Status", config)

    def test_too_many_variants_for_the_tag_type(self):
        names = ", ".join(f"V{i}" for i in range(257))
        reporter = Reporter()
        table = EnumTable()
        EnumCollector(reporter, table, "uint8").collect([parse_enum(f"enum Big {{ {names} }}")])
        assert [d.code for d in reporter.items] == ["SG1006"]

        reporter = Reporter()
        EnumCollector(reporter, EnumTable(), "uint16").collect([parse_enum(f"enum Big {{ {names} }}")])
        assert not reporter.items


class TestParamNames:
    @pytest.mark.parametrize("source, expected", [
        ("enum Token { Word { type: int, text: string } }", ["arg0", "text"]),
        ("enum Pair { Both(int, string) }", ["arg0", "arg1"]),
    ])
    def test_param_names(self, source, expected):
        uc, _ = prepare(source)
        union = uc.unit.unions[0]
        assert _param_names(union.variants[0]) == expected

    def test_default_codegen(self):
        assert CodegenConfig().indent == "\t"


class TestMissingFieldMetadata:
    def test_variant_without_field_list_is_a_unit_variant(self):
        decl = EnumDecl("Mode", variants=[
            VariantDecl("Off", fields=None),
            VariantDecl("Level", fields=[FieldDecl("int")]),
        ])
        assert decl.variants[0].kind is VariantKind.UNIT

        reporter = Reporter()
        table = EnumTable()
        EnumCollector(reporter, table).collect([decl])
        assert not reporter.items

        generator = SumTypeGenerator(table, CodegenConfig())
        union = generator.instantiate(EnumUsage("Mode"), lambda usage: usage.name)
        assert union.get_variant("Off").slots == ()
        assert [s.name for s in union.slots] == ["level0"]

        text = "\n".join(generator.render(union))
        assert "type Mode struct {\n\ttag    ModeTag\n\tlevel0 *int\n}" in text
        assert "func ModeOff() Mode {\n\treturn Mode{tag: ModeTagOff}\n}" in text
        assert "func (e Mode) IsOff() bool {\n\treturn e.tag == ModeTagOff\n}" in text
