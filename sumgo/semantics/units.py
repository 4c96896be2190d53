# semantics/units.py
"""
Per-file compilation state.

A CompilationUnit owns everything that must not leak from one file to the
next: its reporter, its enum table, its declaration registry and the
counters behind synthesized names. Compiling another file means starting a
new unit.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Optional, TYPE_CHECKING

from sumgo.internals.report import Reporter
from sumgo.internals.scanning import LineIndex
from sumgo.semantics.collect import EnumTable
from sumgo.semantics.registry import DeclarationRegistry
from sumgo.semantics.typesys import TaggedUnion

if TYPE_CHECKING:
    from sumgo.compiler.config import SumgoConfig


class NameAllocator:
    """Unique synthesized identifiers (`__match_1`, `__match_result_1`, ...).

    One counter per prefix, starting at 1 for every new unit.
    """

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}

    def fresh(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = n
        return f"{prefix}_{n}"


@dataclass
class CompilationUnit:
    source: str
    filename: str
    config: "SumgoConfig"
    reporter: Reporter
    registry: DeclarationRegistry
    enums: EnumTable = field(default_factory=EnumTable)
    names: NameAllocator = field(default_factory=NameAllocator)

    @classmethod
    def start(cls, source: str, filename: str, config: "SumgoConfig") -> "CompilationUnit":
        """Fresh unit: new reporter, registry, enum table and name counters."""
        from sumgo.backend.sum_types import SumTypeGenerator

        enums = EnumTable()
        generator = SumTypeGenerator(enums, config.codegen)
        return cls(
            source=source,
            filename=filename,
            config=config,
            reporter=Reporter(source=source, filename=filename),
            registry=DeclarationRegistry(generator),
            enums=enums,
        )

    @cached_property
    def index(self) -> LineIndex:
        return LineIndex(self.source)

    @property
    def unions(self) -> List[TaggedUnion]:
        return self.registry.unions

    def union_named(self, name: str) -> Optional[TaggedUnion]:
        """Union by concrete name; a non-generic enum name is its own concrete name."""
        return self.registry.lookup_name(name)

    def union_for_type(self, type_text: str) -> Optional[TaggedUnion]:
        """Union a payload of this Go type holds, if it is one (pointers allowed)."""
        t = type_text.strip()
        if t.startswith("*"):
            t = t[1:].strip()
        return self.registry.lookup_name(t)

    def union_for_constructor(self, func_name: str) -> Optional[TaggedUnion]:
        for u in self.unions:
            if func_name.startswith(u.name) and u.get_variant(func_name[len(u.name):]):
                return u
        return None
