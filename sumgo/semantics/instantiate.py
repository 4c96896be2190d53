# semantics/instantiate.py
"""Generic enum references: type-parameter substitution and `Name<Args>` rewriting.

Every `Name<Args>` that names a declared enum is replaced by the concrete
instantiation's Go name (`Option<int>` -> `Option_int`), and
`Name<Args>.Variant` by that instantiation's constructor. Resolving the name
is left to a callback, which is where discovery happens.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from lark import UnexpectedInput

from sumgo.internals.parser import parse_type
from sumgo.internals.report import Span
from sumgo.internals.scanning import LineIndex, blank_non_code
from sumgo.semantics.collect import EnumTable

_REF_HEAD = re.compile(r"(?<![\w.])([A-Za-z_]\w*)\s*<")
_VARIANT_SUFFIX = re.compile(r"\s*(?:\.|::)\s*([A-Za-z_]\w*)")
_ANGLE_STOP = set(";{}\n")


@dataclass(frozen=True)
class EnumUsage:
    """One reference to an enum, generic or not, with concrete type arguments."""
    name: str
    type_args: Tuple[str, ...] = ()
    span: Optional[Span] = None

    @property
    def key(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.name, self.type_args)


@dataclass(frozen=True)
class GenericRef:
    start: int
    end: int
    name: str
    args: Tuple[str, ...]
    variant: Optional[str] = None


def substitute_type_params(type_text: str, mapping: Dict[str, str]) -> str:
    """Replace whole-word type parameters in a type string."""
    if not mapping:
        return type_text
    pattern = re.compile(r"(?<![\w.])(" + "|".join(re.escape(p) for p in mapping) + r")(?!\w)")
    return pattern.sub(lambda m: mapping[m.group(1)], type_text)


def _closing_angle(text: str, lt: int, end: int) -> int:
    depth = 0
    for i in range(lt, end):
        c = text[i]
        if c == "<":
            depth += 1
        elif c == ">":
            depth -= 1
            if depth == 0:
                return i
        elif c in _ANGLE_STOP:
            return -1
    return -1


def _split_args(text: str) -> List[str]:
    args, depth, last = [], 0, 0
    for i, c in enumerate(text):
        if c in "<([{":
            depth += 1
        elif c in ">)]}":
            depth -= 1
        elif c == "," and depth == 0:
            args.append(text[last:i])
            last = i + 1
    args.append(text[last:])
    return [a.strip() for a in args]


def find_generic_refs(text: str, enums: EnumTable, start: int = 0,
                      end: Optional[int] = None) -> List[GenericRef]:
    """Outermost `Name<Args>` references to declared enums in text[start:end].

    Literals and comments are skipped. A `<` whose contents do not parse as
    Go types (a comparison, for instance) is not a reference.
    """
    end = len(text) if end is None else end
    blank = blank_non_code(text)
    refs: List[GenericRef] = []
    last_end = start
    for m in _REF_HEAD.finditer(blank, start, end):
        if m.start(1) < last_end:
            continue
        name = m.group(1)
        info = enums.get(name)
        if info is None:
            continue
        lt = m.end() - 1
        gt = _closing_angle(blank, lt, end)
        if gt < 0:
            continue
        raw_args = _split_args(text[lt + 1:gt])
        if not all(raw_args):
            continue
        try:
            args = tuple(parse_type(a) for a in raw_args)
        except UnexpectedInput:
            continue

        stop = gt + 1
        variant = None
        suffix = _VARIANT_SUFFIX.match(blank, stop, end)
        if suffix and any(v.name == suffix.group(1) for v in info.decl.variants):
            variant = suffix.group(1)
            stop = suffix.end()
        refs.append(GenericRef(m.start(1), stop, name, args, variant))
        last_end = stop
    return refs


class GenericRewriter:
    """Rewrite enum references in Go text or type text to concrete names.

    `resolve` maps an EnumUsage to the concrete Go type name; the pipeline
    passes a callback that discovers the instantiation in the unit's
    registry, the sum-type generator one that queues nested instantiations.
    """

    def __init__(self, enums: EnumTable, resolve: Callable[[EnumUsage], str],
                 index: Optional[LineIndex] = None) -> None:
        self.enums = enums
        self.resolve = resolve
        self.index = index

    def rewrite(self, text: str, start: int = 0, end: Optional[int] = None) -> str:
        """Rewritten copy of text[start:end]."""
        end = len(text) if end is None else end
        refs = find_generic_refs(text, self.enums, start, end)
        if not refs:
            return text[start:end]
        out: List[str] = []
        cursor = start
        for ref in refs:
            out.append(text[cursor:ref.start])
            out.append(self.replacement(ref))
            cursor = ref.end
        out.append(text[cursor:end])
        return "".join(out)

    def rewrite_type(self, type_text: str) -> str:
        """Rewrite a canonical type string (no literals, no comments)."""
        return self.rewrite(type_text)

    def replacement(self, ref: GenericRef) -> str:
        span = self.index.span(ref.start, ref.end) if self.index is not None else None
        args = tuple(self.rewrite_type(a) for a in ref.args)
        concrete = self.resolve(EnumUsage(ref.name, args, span))
        if ref.variant is not None:
            return f"{concrete}{ref.variant}"
        return concrete
