# backend/sum_types.py
"""Sum-type generator: one Go tagged union per enum instantiation.

For `enum Shape { Point, Circle { radius: float64 } }` this emits:

    type ShapeTag uint8
    const ( ShapeTagPoint ShapeTag = iota; ShapeTagCircle )
    type Shape struct { tag ShapeTag; radius *float64 }
    func ShapePoint() Shape / func ShapeCircle(radius float64) Shape
    func (e Shape) IsPoint() bool / func (e Shape) IsCircle() bool

Option-like (Some/None) and Result-like (Ok/Err) enums also get Map,
AndThen, Unwrap and UnwrapOr methods unless `codegen.helpers` is off.
Result-like enums add UnwrapErr.
"""
from __future__ import annotations
import logging
from typing import Callable, List, TYPE_CHECKING

from sumgo.internals.errors import ERR, CompileError, raise_internal_error
from sumgo.semantics.collect import EnumTable
from sumgo.semantics.instantiate import EnumUsage, GenericRewriter, substitute_type_params
from sumgo.semantics.name_mangling import mangle_enum_name
from sumgo.semantics.registry import Declaration
from sumgo.semantics.typesys import GO_KEYWORDS, Slot, TaggedUnion, VariantInfo

if TYPE_CHECKING:
    from sumgo.compiler.config import CodegenConfig

logger = logging.getLogger(__name__)

MARKER_PREFIX = "// sumgo:enum"


class SumTypeGenerator:
    """Declaration provider backing every unit's DeclarationRegistry."""

    def __init__(self, enums: EnumTable, codegen: "CodegenConfig") -> None:
        self.enums = enums
        self.codegen = codegen

    # ---------- model ----------

    def instantiate(self, usage: EnumUsage, request: Callable[[EnumUsage], str]) -> TaggedUnion:
        info = self.enums.get(usage.name)
        if info is None:
            raise_internal_error("IE0003", name=usage.name)
        decl = info.decl

        if decl.type_params and len(usage.type_args) != len(decl.type_params):
            raise CompileError(ERR.SG1501, usage.span, enum=decl.name,
                               expected=len(decl.type_params), got=len(usage.type_args))
        if not decl.type_params and usage.type_args:
            raise CompileError(ERR.SG1502, usage.span, enum=decl.name)

        mapping = dict(zip(decl.type_params, usage.type_args))
        rewriter = GenericRewriter(self.enums, request)

        variants: List[VariantInfo] = []
        for tag, v in enumerate(decl.variants):
            slots = tuple(
                Slot(
                    name=info.slot_names[v.name][i],
                    type=rewriter.rewrite_type(substitute_type_params(f.type, mapping)),
                    index=i,
                    field_name=f.name,
                )
                for i, f in enumerate(v.fields)
            )
            variants.append(VariantInfo(v.name, v.kind, tag, slots))

        return TaggedUnion(
            name=mangle_enum_name(decl.name, usage.type_args),
            enum_name=decl.name,
            variants=tuple(variants),
            type_args=usage.type_args,
            tag_type=self.codegen.tag_type,
        )

    # ---------- text ----------

    def declare(self, union: TaggedUnion) -> Declaration:
        info = self.enums.get(union.enum_name)
        lines = self.render(union)
        names = union.defined_names() + self._helper_names(union)
        return Declaration(
            key=union.key,
            name=union.name,
            text="\n".join(lines),
            names=tuple(names),
            origin=info.decl.name_span if info is not None else None,
        )

    def render(self, union: TaggedUnion) -> List[str]:
        ind = self.codegen.indent
        lines: List[str] = []
        if self.codegen.markers:
            lines.append(f"{MARKER_PREFIX} {union.name}")

        # 1. discriminant
        lines.append(f"type {union.tag_type_name} {union.tag_type}")
        if union.variants:
            lines.append("")
            lines.append("const (")
            for i, v in enumerate(union.variants):
                if i == 0:
                    lines.append(f"{ind}{union.tag_constant(v.name)} {union.tag_type_name} = iota")
                else:
                    lines.append(f"{ind}{union.tag_constant(v.name)}")
            lines.append(")")

        # 2. union struct, one nullable slot per payload field
        fields = [("tag", union.tag_type_name)] + [(s.name, f"*{s.type}") for s in union.slots]
        width = max(len(n) for n, _ in fields)
        lines.append("")
        lines.append(f"type {union.name} struct {{")
        for n, t in fields:
            lines.append(f"{ind}{n.ljust(width)} {t}")
        lines.append("}")

        # 3. constructors
        for v in union.variants:
            lines.append("")
            lines += self._constructor(union, v)

        # 4. predicates
        for v in union.variants:
            lines.append("")
            lines.append(f"func (e {union.name}) {union.predicate(v.name)}() bool {{")
            lines.append(f"{ind}return e.tag == {union.tag_constant(v.name)}")
            lines.append("}")

        if self.codegen.helpers:
            lines += self._helpers(union)
        return lines

    def _constructor(self, union: TaggedUnion, v: VariantInfo) -> List[str]:
        ind = self.codegen.indent
        params = _param_names(v)
        sig = ", ".join(f"{p} {s.type}" for p, s in zip(params, v.slots))
        inits = [f"tag: {union.tag_constant(v.name)}"]
        inits += [f"{s.name}: &{p}" for p, s in zip(params, v.slots)]
        return [
            f"func {union.constructor(v.name)}({sig}) {union.name} {{",
            f"{ind}return {union.name}{{{', '.join(inits)}}}",
            "}",
        ]

    # ---------- Map / AndThen / Unwrap ----------

    @staticmethod
    def _helper_shape(union: TaggedUnion):
        """(value variant, empty variant) for Option/Result-like unions, else None."""
        some, none = union.get_variant("Some"), union.get_variant("None")
        if some is not None and none is not None and some.arity == 1 and none.arity == 0:
            return some, none
        ok, err = union.get_variant("Ok"), union.get_variant("Err")
        if ok is not None and err is not None and ok.arity == 1 and err.arity == 1:
            return ok, err
        return None

    def _helper_names(self, union: TaggedUnion) -> List[str]:
        if not self.codegen.helpers:
            return []
        shape = self._helper_shape(union)
        if shape is None:
            return []
        methods = ["Map", "AndThen", "Unwrap", "UnwrapOr"]
        if shape[1].arity:
            methods.append("UnwrapErr")
        return [f"{union.name}.{m}" for m in methods]

    def _helpers(self, union: TaggedUnion) -> List[str]:
        shape = self._helper_shape(union)
        if shape is None:
            return []
        value, empty = shape
        ind = self.codegen.indent
        slot = value.slots[0]
        recv = "o" if value.name == "Some" else "r"
        lines: List[str] = []
        for method, result, wrap in (
            ("Map", slot.type, lambda call: f"{union.constructor(value.name)}({call})"),
            ("AndThen", union.name, lambda call: call),
        ):
            lines += [
                "",
                f"func ({recv} {union.name}) {method}(fn func({slot.type}) {result}) {union.name} {{",
                f"{ind}switch {recv}.tag {{",
                f"{ind}case {union.tag_constant(value.name)}:",
                f"{ind * 2}if {recv}.{slot.name} != nil {{",
                f"{ind * 3}return {wrap(f'fn(*{recv}.{slot.name})')}",
                f"{ind * 2}}}",
                f"{ind}case {union.tag_constant(empty.name)}:",
                f"{ind * 2}return {recv}",
                f"{ind}}}",
                f'{ind}panic("invalid {union.name} state")',
                "}",
            ]

        lines += self._unwrap(union, recv, "Unwrap", value, empty)
        lines += [
            "",
            f"func ({recv} {union.name}) UnwrapOr(fallback {slot.type}) {slot.type} {{",
            f"{ind}if {recv}.tag == {union.tag_constant(value.name)} && {recv}.{slot.name} != nil {{",
            f"{ind * 2}return *{recv}.{slot.name}",
            f"{ind}}}",
            f"{ind}return fallback",
            "}",
        ]
        if empty.arity:
            lines += self._unwrap(union, recv, "UnwrapErr", empty, value)
        return lines

    def _unwrap(self, union: TaggedUnion, recv: str, method: str,
                want: VariantInfo, other: VariantInfo) -> List[str]:
        """`method()` returns the payload of `want` and panics on `other`."""
        ind = self.codegen.indent
        slot = want.slots[0]
        message = f"sumgo: called {union.name}.{method} on {other.name}"
        return [
            "",
            f"func ({recv} {union.name}) {method}() {slot.type} {{",
            f"{ind}if {recv}.tag == {union.tag_constant(want.name)} && {recv}.{slot.name} != nil {{",
            f"{ind * 2}return *{recv}.{slot.name}",
            f"{ind}}}",
            f'{ind}panic("{message}")',
            "}",
        ]


def _param_names(v: VariantInfo) -> List[str]:
    """Constructor parameter names: declared field names where usable, else argN."""
    names: List[str] = []
    for s in v.slots:
        candidate = s.field_name
        if (candidate is None or not candidate.isidentifier() or candidate in GO_KEYWORDS
                or candidate in names):
            candidate = f"arg{s.index}"
        names.append(candidate)
    return names
