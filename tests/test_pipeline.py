"""Whole-file compilation: splicing, declarations, diagnostics and source maps."""

import pytest

from sumgo.backend.sourcemap import SourceMap
from sumgo.compiler.config import load_config_from_string
from sumgo.compiler.pipeline import compile_file, compile_source
from tests.test_utils import OPTION_RESULT_ENUMS, SHAPE_ENUM


DESCRIBE = f"""\
package main

import "fmt"

{SHAPE_ENUM}
func describe(s Shape) {{
\tmatch s {{
\t\tPoint => fmt.Println("point")
\t\tCircle {{ radius }} => fmt.Println(radius)
\t\t_ => fmt.Println("other")
\t}}
}}
"""

AREA = f"""\
package main

{SHAPE_ENUM}
func area(s Shape) float64 {{
\tvar a float64 = match s {{
\t\tPoint => 0.0
\t\tCircle {{ radius }} => 3.14 * radius * radius
\t\tRect {{ w, h }} => w * h
\t}}
\treturn a
}}
"""

GENERIC = f"""\
package main

{OPTION_RESULT_ENUMS}
func first(xs []int) Option<int> {{
\tif len(xs) == 0 {{
\t\treturn Option<int>.None()
\t}}
\treturn Option<int>.Some(xs[0])
}}
"""

NESTED = f"""\
package main

{OPTION_RESULT_ENUMS}
func g(r Result<Option<int>, error>) {{
\tmatch r {{
\t\tOk(o) => match o {{
\t\t\tSome(v) => use(v)
\t\t\tNone => none()
\t\t}}
\t\tErr(e) => fail(e)
\t}}
}}
"""

CLASSIFY = f"""\
package main

{OPTION_RESULT_ENUMS}
func classify(r Result<Option<int>, error>) string {{
\tx := match r {{
\t\tOk(Some(v)) where v > 0 => "pos",
\t\tOk(Some(_)) => "nonpos",
\t\tOk(None) => "none",
\t\tErr(_) => "err",
\t}}
\treturn x
}}
"""


def line_of(text, needle):
    """1-based number of the first line of `text` equal to `needle` once stripped."""
    for i, line in enumerate(text.split("\n"), 1):
        if line.strip() == needle:
            return i
    raise AssertionError(f"{needle!r} not found")


class TestSplicing:
    def test_statement_match(self, compile_sgo):
        result = compile_sgo(DESCRIBE)
        assert result.ok and result.exit_code == 0
        assert (
            "func describe(s Shape) {\n"
            "\tswitch s.tag {\n"
            "\tcase ShapeTagPoint:\n"
            "\t\tfmt.Println(\"point\")\n"
            "\tcase ShapeTagCircle:\n"
            "\t\tradius := *s.radius\n"
            "\t\tfmt.Println(radius)\n"
            "\tdefault:\n"
            "\t\tfmt.Println(\"other\")\n"
            "\t}\n"
            "}\n"
        ) in result.code

    def test_enum_is_replaced_by_declarations_after_imports(self, compile_sgo):
        code = compile_sgo(DESCRIBE).code
        assert "enum Shape {" not in code
        assert code.startswith('package main\n\nimport "fmt"\n\n// sumgo:enum Shape\ntype ShapeTag uint8\n')
        assert "\treturn e.tag == ShapeTagRect\n}\n\nfunc describe(s Shape) {" in code

    def test_expression_match_is_hoisted(self, compile_sgo):
        result = compile_sgo(AREA)
        assert result.ok
        assert (
            "func area(s Shape) float64 {\n"
            "\tvar __match_result_1 float64\n"
            "\tswitch s.tag {\n"
            "\tcase ShapeTagPoint:\n"
            "\t\t__match_result_1 = 0.0\n"
            "\tcase ShapeTagCircle:\n"
            "\t\tradius := *s.radius\n"
            "\t\t__match_result_1 = 3.14 * radius * radius\n"
            "\tcase ShapeTagRect:\n"
            "\t\tw := *s.w\n"
            "\t\th := *s.h\n"
            "\t\t__match_result_1 = w * h\n"
            "\tdefault:\n"
            "\t\tpanic(\"sumgo: unreachable case in s\")\n"
            "\t}\n"
            "\tvar a float64 = __match_result_1\n"
            "\treturn a\n"
        ) in result.code

    def test_generic_references_are_rewritten(self, compile_sgo):
        result = compile_sgo(GENERIC)
        assert result.ok
        assert "func first(xs []int) Option_int {" in result.code
        assert "\t\treturn Option_intNone()" in result.code
        assert "\treturn Option_intSome(xs[0])" in result.code
        assert "<" not in result.code.replace("<-", "")
        assert [d.name for d in result.declarations] == ["Option_int"]

    def test_match_nested_in_an_arm(self, compile_sgo):
        result = compile_sgo(NESTED)
        assert result.ok
        assert "\tcase Result_Option_int_errorTagOk:\n\t\to := *r.ok0\n\t\tswitch o.tag {" in result.code
        assert "\t\tcase Option_intTagSome:\n\t\t\tv := *o.some0\n\t\t\tuse(v)" in result.code
        assert 'panic("sumgo: unreachable case in o")' in result.code
        assert [d.name for d in result.declarations] == ["Option_int", "Result_Option_int_error"]

    def test_string_results_of_a_nested_match(self, compile_sgo):
        result = compile_sgo(CLASSIFY)
        assert result.ok
        code = result.code
        assert "\tvar __match_result_1 string\n\tswitch r.tag {" in code
        for word in ("pos", "nonpos", "none", "err"):
            assert f'__match_result_1 = "{word}"\n' in code
        assert "\tx := __match_result_1\n\treturn x\n" in code
        assert '\t\t\t"pos"' not in code

    def test_literals_and_comments_are_left_alone(self, compile_sgo):
        source = ('package main\n\n// enum Fake { A }\n'
                  'func f() {\n\ts := "match x { A => 1 }"\n\t// match y { B => 2 }\n\t_ = s\n}\n')
        result = compile_sgo(source)
        assert result.ok
        assert result.code == source

    def test_units_do_not_share_counters(self, compile_sgo):
        first, second = compile_sgo(AREA), compile_sgo(AREA)
        assert first.code == second.code
        assert "__match_result_2" not in second.code


class TestDiagnostics:
    def test_a_bad_site_does_not_stop_the_next(self, compile_sgo):
        source = DESCRIBE.replace("Point => fmt.Println", "Shape.Square => fmt.Println") + (
            "\nfunc other(s Shape) {\n\tmatch s {\n\t\tPoint => a()\n\t\t_ => b()\n\t}\n}\n")
        result = compile_sgo(source)
        assert not result.ok and result.exit_code == 2
        assert [d.code for d in result.reporter.items] == ["SG2005"]
        assert "\tmatch s {\n\t\tShape.Square" in result.code
        assert "func other(s Shape) {\n\tswitch s.tag {" in result.code

    def test_errors_in_two_sites(self, compile_sgo):
        body = "\tmatch s {\n\t\tShape.Square => a()\n\t\t_ => b()\n\t}\n"
        source = f"package main\n\n{SHAPE_ENUM}\nfunc f(s Shape) {{\n{body}}}\n\nfunc g(s Shape) {{\n{body}}}\n"
        result = compile_sgo(source)
        assert [d.code for d in result.reporter.items] == ["SG2005", "SG2005"]
        assert result.reporter.items[0].span.line < result.reporter.items[1].span.line

    def test_enum_errors_are_reported(self, compile_sgo):
        result = compile_sgo("package main\n\nenum E {\n    A,\n    A,\n}\n")
        assert [d.code for d in result.reporter.items] == ["SG1002"]
        assert result.reporter.items[0].span.line == 5

    def test_unterminated_match(self, compile_sgo):
        result = compile_sgo(f"package main\n\n{SHAPE_ENUM}\nfunc f(s Shape) {{\n\tmatch s {{\n\t\tPoint => a()\n")
        assert [d.code for d in result.reporter.items] == ["SG2003"]

    def test_unknown_config_key_is_a_warning(self, compile_sgo):
        config = load_config_from_string("[match]\nguard_keyword = [\"if\"]\n")
        result = compile_sgo(DESCRIBE, config)
        assert result.ok
        assert result.exit_code == 1
        assert [(d.kind, d.code) for d in result.reporter.items] == [("warning", "SGW3002")]


class TestSourceMaps:
    def test_lines_map_back(self, compile_sgo):
        result = compile_sgo(DESCRIBE)
        smap = result.source_map("describe.go")

        m = smap.lookup(line_of(result.code, "func describe(s Shape) {"))
        assert m.original_line == line_of(DESCRIBE, "func describe(s Shape) {")

        m = smap.lookup(line_of(result.code, "radius := *s.radius"))
        assert m.original_line == line_of(DESCRIBE, "Circle { radius } => fmt.Println(radius)")
        assert m.name == "radius"

        m = smap.lookup(line_of(result.code, "type ShapeTag uint8"))
        assert (m.original_line, m.name) == (line_of(DESCRIBE, "enum Shape {"), "Shape")

    def test_blank_lines_are_not_mapped(self, compile_sgo):
        result = compile_sgo(DESCRIBE)
        mapped = {m.generated_line for m in result.mappings}
        for i, line in enumerate(result.code.split("\n"), 1):
            if not line.strip():
                assert i not in mapped

    def test_json_round_trip(self, compile_sgo):
        smap = compile_sgo(AREA).source_map("area.go")
        data = smap.to_dict()
        assert data["version"] == 1 and data["file"] == "area.go" and data["source"] == "test.sgo"
        assert SourceMap.from_dict(data) == smap

    def test_unknown_version(self):
        with pytest.raises(ValueError):
            SourceMap.from_dict({"version": 99, "source": "a", "file": "b"})

    def test_can_be_disabled(self, compile_sgo):
        config = load_config_from_string("[sourcemaps]\nenabled = false\n")
        assert compile_sgo(DESCRIBE, config).mappings == []


class TestFiles:
    def test_compile_file_reads_the_local_config(self, tmp_path):
        (tmp_path / "sumgo.toml").write_text("[codegen]\nmarkers = false\n")
        source = tmp_path / "shapes.sgo"
        source.write_text(DESCRIBE)
        result = compile_file(source)
        assert result.ok
        assert "sumgo:enum" not in result.code
        assert result.filename == str(source)

    def test_compile_file_with_explicit_config(self, tmp_path, config):
        (tmp_path / "sumgo.toml").write_text("[codegen]\nmarkers = false\n")
        source = tmp_path / "shapes.sgo"
        source.write_text(DESCRIBE)
        assert "// sumgo:enum Shape" in compile_file(source, config).code

    def test_source_without_package_clause(self):
        result = compile_source("enum Flag { On, Off }\n\nvar f = FlagOn()\n")
        assert result.ok
        assert result.code.startswith("// sumgo:enum Flag\n")
        assert result.code.endswith("}\n\nvar f = FlagOn()\n")
