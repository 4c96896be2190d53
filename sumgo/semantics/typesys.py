# semantics/typesys.py
"""The tagged-union model shared by the generator and the pattern compiler.

A TaggedUnion is one concrete instantiation of an enum. The pattern compiler
reads names (tag constants, slots) from here and never from generated text.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sumgo.semantics.ast import VariantKind

GO_KEYWORDS = frozenset({
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type",
    "var",
})

# The discriminant field lives next to the slots in the union struct.
TAG_FIELD = "tag"

# Largest variant count each supported tag type can number.
TAG_TYPE_CAPACITY: Dict[str, int] = {
    "uint8": 1 << 8,
    "uint16": 1 << 16,
    "uint32": 1 << 32,
    "int": 1 << 31,
}

InstantiationKey = Tuple[str, Tuple[str, ...]]


@dataclass(frozen=True)
class Slot:
    """Nullable storage for one payload field, `*type` in the union struct."""
    name: str
    type: str
    index: int
    field_name: Optional[str] = None


@dataclass(frozen=True)
class VariantInfo:
    name: str
    kind: VariantKind
    tag: int
    slots: Tuple[Slot, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.slots)

    def field_index(self, field_name: str) -> Optional[int]:
        for slot in self.slots:
            if slot.field_name == field_name:
                return slot.index
        return None


@dataclass(frozen=True)
class TaggedUnion:
    name: str
    enum_name: str
    variants: Tuple[VariantInfo, ...]
    type_args: Tuple[str, ...] = ()
    tag_type: str = "uint8"

    @property
    def key(self) -> InstantiationKey:
        return (self.enum_name, self.type_args)

    @property
    def tag_type_name(self) -> str:
        return f"{self.name}Tag"

    def tag_constant(self, variant: str) -> str:
        return f"{self.name}Tag{variant}"

    def constructor(self, variant: str) -> str:
        return f"{self.name}{variant}"

    @staticmethod
    def predicate(variant: str) -> str:
        return f"Is{variant}"

    @property
    def slots(self) -> List[Slot]:
        return [s for v in self.variants for s in v.slots]

    def get_variant(self, name: str) -> Optional[VariantInfo]:
        for v in self.variants:
            if v.name == name:
                return v
        return None

    def answers_to(self, qualifier: str) -> bool:
        """True when `qualifier` (from `X.Variant` or `X_Variant`) names this union."""
        return qualifier in (self.name, self.enum_name)

    def defined_names(self) -> List[str]:
        """Every top-level name and method the declaration set defines."""
        names = [self.tag_type_name]
        names += [self.tag_constant(v.name) for v in self.variants]
        names.append(self.name)
        names += [self.constructor(v.name) for v in self.variants]
        names += [f"{self.name}.{self.predicate(v.name)}" for v in self.variants]
        return names
