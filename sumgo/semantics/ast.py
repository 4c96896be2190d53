# semantics/ast.py
"""Declarations, patterns and match sites.

Enum declarations come out of the lark enum grammar; patterns come out of the
pattern grammar and are later resolved against the tagged unions they match
(see semantics/patterns.py), which fills in the `union`/`info` fields.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from sumgo.internals.report import Span

if TYPE_CHECKING:
    from sumgo.semantics.typesys import TaggedUnion, VariantInfo


# ---------- Enums ----------

class VariantKind(Enum):
    UNIT = "unit"
    TUPLE = "tuple"
    STRUCT = "struct"


@dataclass(frozen=True)
class FieldDecl:
    """One payload field. `name` is None for tuple fields."""
    type: str
    name: Optional[str] = None
    span: Optional[Span] = None


@dataclass
class VariantDecl:
    name: str
    fields: Optional[List[FieldDecl]] = None
    span: Optional[Span] = None

    def __post_init__(self) -> None:
        # Absent field metadata means a unit variant.
        if self.fields is None:
            self.fields = []

    @property
    def kind(self) -> VariantKind:
        if not self.fields:
            return VariantKind.UNIT
        if any(f.name is not None for f in self.fields):
            return VariantKind.STRUCT
        return VariantKind.TUPLE


@dataclass
class EnumDecl:
    name: str
    type_params: List[str] = field(default_factory=list)
    variants: List[VariantDecl] = field(default_factory=list)
    span: Optional[Span] = None
    name_span: Optional[Span] = None

    @property
    def is_generic(self) -> bool:
        return bool(self.type_params)


# ---------- Patterns ----------

@dataclass
class Pattern:
    span: Optional[Span] = field(default=None, kw_only=True)
    text: str = field(default="", kw_only=True)


@dataclass
class WildcardPattern(Pattern):
    pass


@dataclass
class BindingPattern(Pattern):
    name: str = ""


@dataclass
class VariantPattern(Pattern):
    """`Variant`, `Variant(p, ...)`, `Enum.Variant(...)` or `Variant{field: p}`.

    `field_names` is set for brace patterns; the resolver turns them into
    positional `args` (missing fields become wildcards).
    """
    variant: str = ""
    qualifier: Optional[str] = None
    args: List[Pattern] = field(default_factory=list)
    field_names: Optional[List[str]] = None
    # filled in by resolution
    union: Optional["TaggedUnion"] = None
    info: Optional["VariantInfo"] = None


@dataclass
class TuplePattern(Pattern):
    items: List[Pattern] = field(default_factory=list)


# ---------- Matches ----------

class MatchContext(Enum):
    STATEMENT = "statement"
    EXPRESSION = "expression"


@dataclass
class Arm:
    pattern: Pattern
    guard: Optional[str]
    body: str
    is_block: bool = False
    span: Optional[Span] = None         # whole arm
    guard_span: Optional[Span] = None
    body_span: Optional[Span] = None
    index: int = 0                      # source order
    body_start: int = -1                # offsets of `body` in the file
    body_end: int = -1


@dataclass
class MatchExpression:
    """One `match` site: scrutinee component(s), ordered arms and context."""
    scrutinee: List[str]
    arms: List[Arm]
    context: MatchContext = MatchContext.STATEMENT
    is_tuple: bool = False
    span: Optional[Span] = None
    result_type: Optional[str] = None
    # enum (or concrete union) names known for each scrutinee component
    type_hints: List[Optional[str]] = field(default_factory=list)

    @property
    def scrutinee_text(self) -> str:
        if self.is_tuple:
            return "(" + ", ".join(self.scrutinee) + ")"
        return self.scrutinee[0]
