# semantics/registry.py
"""Per-unit declaration registry: discover first, drain once.

Discovery records every concrete enum instantiation the unit needs and
builds its TaggedUnion model right away, so the pattern compiler can look
names up while the unit is still being scanned. No declaration text leaves
the registry until `drain()`, which happens exactly once, after discovery of
the whole unit is complete.
"""
from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Protocol, Tuple

from sumgo.internals.errors import ERR, CompileError, raise_internal_error
from sumgo.internals.report import Span
from sumgo.semantics.instantiate import EnumUsage
from sumgo.semantics.name_mangling import mangle_enum_name
from sumgo.semantics.typesys import InstantiationKey, TaggedUnion

logger = logging.getLogger(__name__)

MAX_INSTANTIATION_DEPTH = 16


class InsertionPoint(Enum):
    FILE_SCOPE = "file_scope"


@dataclass(frozen=True)
class Declaration:
    """Generated Go text for one instantiation, plus where it must go."""
    key: InstantiationKey
    name: str
    text: str
    names: Tuple[str, ...] = ()
    origin: Optional[Span] = None
    insertion_point: InsertionPoint = InsertionPoint.FILE_SCOPE


class DeclarationProvider(Protocol):
    def instantiate(self, usage: EnumUsage, request: Callable[[EnumUsage], str]) -> TaggedUnion:
        """Build the model for one instantiation.

        `request` queues a nested instantiation (a generic enum named in a
        payload type) and returns its concrete name.
        """
        ...

    def declare(self, union: TaggedUnion) -> Declaration:
        ...


class DeclarationRegistry:
    def __init__(self, provider: DeclarationProvider,
                 max_depth: int = MAX_INSTANTIATION_DEPTH) -> None:
        self.provider = provider
        self.max_depth = max_depth
        self._unions: Dict[InstantiationKey, TaggedUnion] = {}
        self._by_name: Dict[str, TaggedUnion] = {}
        self._order: List[InstantiationKey] = []
        self._pending: Deque[Tuple[EnumUsage, int]] = deque()
        self._drained = False

    def __len__(self) -> int:
        return len(self._order)

    @property
    def drained(self) -> bool:
        return self._drained

    @property
    def unions(self) -> List[TaggedUnion]:
        """Every discovered union, in first-discovery order."""
        return [self._unions[k] for k in self._order]

    def discover(self, usage: EnumUsage) -> TaggedUnion:
        """Record an instantiation (idempotent per key) and return its model."""
        if self._drained:
            raise_internal_error("IE0001", action=f"discover '{usage.name}'")
        union = self._unions.get(usage.key)
        if union is not None:
            return union
        self._pending.append((usage, 0))
        try:
            self._process()
        except CompileError:
            self._pending.clear()
            raise
        return self._unions[usage.key]

    def lookup(self, key: InstantiationKey) -> Optional[TaggedUnion]:
        return self._unions.get(key)

    def lookup_name(self, concrete_name: str) -> Optional[TaggedUnion]:
        return self._by_name.get(concrete_name)

    def drain(self) -> List[Declaration]:
        """Declarations in first-discovery order; the registry is empty afterwards."""
        if self._drained:
            raise_internal_error("IE0001", action="drain twice")
        declarations = [self.provider.declare(self._unions[k]) for k in self._order]
        logger.debug("drained %d declaration(s): %s",
                     len(declarations), ", ".join(d.name for d in declarations))
        self._unions.clear()
        self._by_name.clear()
        self._order.clear()
        self._pending.clear()
        self._drained = True
        return declarations

    def _process(self) -> None:
        while self._pending:
            usage, depth = self._pending.popleft()
            if usage.key in self._unions:
                continue
            if depth > self.max_depth:
                raise CompileError(ERR.SG1503, usage.span,
                                   name=mangle_enum_name(usage.name, usage.type_args),
                                   limit=self.max_depth)

            def request(nested: EnumUsage, _depth: int = depth) -> str:
                if nested.key not in self._unions:
                    self._pending.append((nested, _depth + 1))
                return mangle_enum_name(nested.name, nested.type_args)

            union = self.provider.instantiate(usage, request)
            self._unions[usage.key] = union
            self._by_name[union.name] = union
            self._order.append(usage.key)
            logger.debug("discovered %s", union.name)
