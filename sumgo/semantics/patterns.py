# semantics/patterns.py
"""Pattern resolution: attach tagged unions and variants to parsed patterns.

For every scrutinee component (a column) the resolver decides which union
is being matched, then walks each arm's pattern for that column:

- `Name` alone is a unit variant when the union has one, else a binding
- `Variant(p, ...)` needs one sub-pattern per payload field
- `Variant{field: p}` maps fields by declared name, missing ones are `_`
- a sub-pattern that names a variant needs a payload whose type is a union
- variant nesting deeper than match.max_nesting_depth is rejected

The union of a column comes from a type hint when the extractor found one,
otherwise from the variant names the arms use (`Enum.Variant` or
`Enum_Variant` qualifies a pattern explicitly).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from sumgo.internals.errors import ERR, CompileError, raise_internal_error
from sumgo.semantics.ast import (
    Arm,
    BindingPattern,
    MatchExpression,
    Pattern,
    TuplePattern,
    VariantKind,
    VariantPattern,
    WildcardPattern,
)
from sumgo.semantics.typesys import TaggedUnion
from sumgo.semantics.units import CompilationUnit

logger = logging.getLogger(__name__)


@dataclass
class Row:
    """One arm as a row of per-column patterns."""
    arm: Arm
    patterns: List[Pattern]


@dataclass
class ResolvedMatch:
    match: MatchExpression
    # None for a column that only ever meets wildcards and bindings
    columns: List[Optional[TaggedUnion]] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)

    def binding_types(self, row: Row) -> Dict[str, str]:
        """Go type of every name the row binds, where it is known."""
        types: Dict[str, str] = {}

        def visit(p: Pattern, type_name: Optional[str]) -> None:
            if isinstance(p, BindingPattern) and type_name:
                types[p.name] = type_name
            elif isinstance(p, VariantPattern) and p.info is not None:
                for arg, slot in zip(p.args, p.info.slots):
                    visit(arg, slot.type)

        for p, union in zip(row.patterns, self.columns):
            visit(p, union.name if union is not None else None)
        return types


def is_catch_all(p: Pattern) -> bool:
    return isinstance(p, (WildcardPattern, BindingPattern))


class PatternResolver:
    def __init__(self, unit: CompilationUnit) -> None:
        self.unit = unit
        self.max_depth = unit.config.match.max_nesting_depth

    def resolve(self, match: MatchExpression) -> ResolvedMatch:
        width = len(match.scrutinee)
        rows = [Row(arm, self._columns(arm, width)) for arm in match.arms]

        for row in rows:
            for p in row.patterns:
                self._unqualify(p)

        columns: List[Optional[TaggedUnion]] = []
        for c in range(width):
            hint = match.type_hints[c] if c < len(match.type_hints) else None
            columns.append(self._infer_union([r.patterns[c] for r in rows], hint))

        for row in rows:
            bound: Set[str] = set()
            row.patterns = [
                self._resolve(p, union, 1, row.arm.pattern, bound)
                for p, union in zip(row.patterns, columns)
            ]

        logger.debug("resolved match on %s: columns=%s",
                     match.scrutinee_text, [u.name if u else None for u in columns])
        return ResolvedMatch(match, columns, rows)

    # ---------- columns ----------

    def _columns(self, arm: Arm, width: int) -> List[Pattern]:
        p = arm.pattern
        if isinstance(p, TuplePattern) and len(p.items) == 1:
            p = p.items[0]
        if width == 1:
            if isinstance(p, TuplePattern):
                raise CompileError(ERR.SG2011, p.span or arm.span, expected=1,
                                   text=p.text, got=len(p.items))
            return [p]

        if isinstance(p, WildcardPattern):
            return [WildcardPattern(span=p.span, text="_") for _ in range(width)]
        if isinstance(p, TuplePattern) and len(p.items) == width:
            return list(p.items)
        got = len(p.items) if isinstance(p, TuplePattern) else 1
        raise CompileError(ERR.SG2011, p.span or arm.span, expected=width, text=p.text, got=got)

    # ---------- union inference ----------

    def _unqualify(self, p: Pattern) -> None:
        """Split `Enum_Variant` into qualifier and variant where that names a union variant."""
        if isinstance(p, TuplePattern):
            for item in p.items:
                self._unqualify(item)
            return
        if not isinstance(p, VariantPattern):
            return
        for arg in p.args:
            self._unqualify(arg)
        if p.qualifier is not None or "_" not in p.variant:
            return
        if any(u.get_variant(p.variant) for u in self.unit.unions):
            return
        for u in self.unit.unions:
            for prefix in (u.name, u.enum_name):
                rest = p.variant[len(prefix) + 1:]
                if p.variant.startswith(prefix + "_") and u.get_variant(rest):
                    p.qualifier, p.variant = prefix, rest
                    return

    def _infer_union(self, patterns: List[Pattern], hint: Optional[str]) -> Optional[TaggedUnion]:
        if hint:
            union = self.unit.union_for_type(hint)
            if union is not None:
                return union

        explicit: Dict[str, VariantPattern] = {}
        qualifiers: Set[str] = set()
        bare: Dict[str, BindingPattern] = {}
        for p in patterns:
            if isinstance(p, VariantPattern):
                explicit.setdefault(p.variant, p)
                if p.qualifier is not None:
                    qualifiers.add(p.qualifier)
            elif isinstance(p, BindingPattern):
                bare.setdefault(p.name, p)

        unions = self.unit.unions
        unit_names = {n for n in bare
                      if any(_is_unit_variant(u, n) for u in unions)}
        if not explicit and not unit_names:
            return None

        pool = [u for u in unions if all(u.answers_to(q) for q in qualifiers)]
        candidates = [u for u in pool if all(u.get_variant(v) for v in explicit)]
        if unit_names:
            narrowed = [u for u in candidates if all(_is_unit_variant(u, n) for n in unit_names)]
            if not narrowed and not explicit:
                narrowed = [u for u in candidates if any(_is_unit_variant(u, n) for n in unit_names)]
            if narrowed:
                candidates = narrowed

        if len(candidates) == 1:
            return candidates[0]

        names = sorted(set(explicit) | unit_names)
        if len(candidates) > 1:
            first = next(iter(explicit.values()), None) or bare[sorted(unit_names)[0]]
            raise CompileError(ERR.SG2008, first.span,
                               variants=", ".join(names),
                               candidates=", ".join(u.name for u in candidates))

        # Nothing fits: blame the closest union when there is one.
        best, best_hits = None, 0
        for u in pool or unions:
            hits = sum(1 for v in explicit if u.get_variant(v))
            if hits > best_hits:
                best, best_hits = u, hits
        if best is not None:
            missing = next(p for v, p in explicit.items() if not best.get_variant(v))
            raise CompileError(ERR.SG2005, missing.span, enum=best.name, variant=missing.variant)
        first = next(iter(explicit.values()))
        raise CompileError(ERR.SG2006, first.span, variants=", ".join(names))

    # ---------- per-pattern resolution ----------

    def _resolve(self, p: Pattern, union: Optional[TaggedUnion], depth: int,
                 root: Pattern, bound: Set[str]) -> Pattern:
        if isinstance(p, WildcardPattern):
            return p

        if isinstance(p, BindingPattern):
            info = union.get_variant(p.name) if union is not None else None
            if info is None:
                if p.name in bound:
                    raise CompileError(ERR.SG2014, p.span, name=p.name, text=root.text)
                bound.add(p.name)
                return p
            if info.kind is not VariantKind.UNIT:
                raise CompileError(ERR.SG2009, p.span, variant=p.name, expected=info.arity, got=0)
            p = VariantPattern(variant=p.name, span=p.span, text=p.text)

        if isinstance(p, TuplePattern):
            raise CompileError(ERR.SG2004, p.span, text=p.text)

        if not isinstance(p, VariantPattern):
            raise_internal_error("IE0004", node=type(p).__name__, text=root.text)
        if union is None:
            raise CompileError(ERR.SG2006, p.span, variants=p.variant)
        if p.qualifier is not None and not union.answers_to(p.qualifier):
            raise CompileError(ERR.SG2005, p.span, enum=p.qualifier, variant=p.variant)
        info = union.get_variant(p.variant)
        if info is None:
            raise CompileError(ERR.SG2005, p.span, enum=union.name, variant=p.variant)
        if depth > self.max_depth:
            raise CompileError(ERR.SG2012, root.span or p.span, text=root.text,
                               depth=depth, limit=self.max_depth)

        args = self._positional_args(p, info)
        resolved: List[Pattern] = []
        for arg, slot in zip(args, info.slots):
            sub_union = self.unit.union_for_type(slot.type)
            if isinstance(arg, VariantPattern) and sub_union is None:
                raise CompileError(ERR.SG2007, arg.span, type=slot.type, text=arg.text)
            resolved.append(self._resolve(arg, sub_union, depth + 1, root, bound))

        return VariantPattern(variant=info.name, qualifier=p.qualifier, args=resolved,
                              union=union, info=info, span=p.span, text=p.text)

    @staticmethod
    def _positional_args(p: VariantPattern, info) -> List[Pattern]:
        if p.field_names is None:
            if len(p.args) != info.arity:
                raise CompileError(ERR.SG2009, p.span, variant=info.name,
                                   expected=info.arity, got=len(p.args))
            return list(p.args)

        args: List[Pattern] = [WildcardPattern(span=p.span, text="_") for _ in info.slots]
        for name, arg in zip(p.field_names, p.args):
            i = info.field_index(name)
            if i is None:
                raise CompileError(ERR.SG2010, arg.span or p.span, variant=info.name, field=name)
            args[i] = arg
        return args


def _is_unit_variant(union: TaggedUnion, name: str) -> bool:
    info = union.get_variant(name)
    return info is not None and info.kind is VariantKind.UNIT
