# semantics/collect.py
"""Enum declaration collection and validation.

Runs once per declaration, before any instantiation:
- no duplicate enum names within the unit
- no duplicate variant names (case-sensitive) within an enum
- storage slot names assigned and checked for collisions
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sumgo.internals.errors import ERR, CompileError
from sumgo.internals.report import Reporter
from sumgo.semantics.ast import EnumDecl
from sumgo.semantics.typesys import GO_KEYWORDS, TAG_FIELD, TAG_TYPE_CAPACITY

logger = logging.getLogger(__name__)


@dataclass
class EnumInfo:
    """A validated declaration plus its slot names, per variant, by field index."""
    decl: EnumDecl
    slot_names: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.decl.name

    @property
    def is_generic(self) -> bool:
        return self.decl.is_generic


@dataclass
class EnumTable:
    by_name: Dict[str, EnumInfo] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[EnumInfo]:
        return self.by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.by_name


def assign_slot_names(decl: EnumDecl) -> Dict[str, List[str]]:
    """Deterministic storage slot names for every payload field.

    Tuple fields are `{lowercased variant}{index}`. Struct fields use the
    lowercased declared name, falling back to the tuple scheme when that name
    is taken, reserved (`tag`) or a Go keyword. Tuple names are reserved
    first, so the fallback never steals a tuple slot.

    Raises:
        CompileError: FieldNameCollision when a slot name is still taken.
    """
    owners: Dict[str, str] = {TAG_FIELD: "the tag field"}
    names: Dict[str, List[str]] = {v.name: [""] * len(v.fields) for v in decl.variants}

    def claim(slot: str, owner: str, variant) -> None:
        if slot in owners:
            raise CompileError(ERR.SG1003, variant.span, enum=decl.name,
                               names=f"'{slot}' used by {owners[slot]} and {owner}")
        owners[slot] = owner

    for v in decl.variants:
        for i, f in enumerate(v.fields):
            if f.name is None:
                slot = f"{v.name.lower()}{i}"
                claim(slot, f"{v.name}.{i}", v)
                names[v.name][i] = slot

    for v in decl.variants:
        seen = set()
        for i, f in enumerate(v.fields):
            if f.name is None:
                continue
            if f.name in seen:
                raise CompileError(ERR.SG1004, f.span or v.span, field=f.name, variant=v.name, enum=decl.name)
            seen.add(f.name)
            slot = f.name.lower()
            if slot in owners or slot in GO_KEYWORDS:
                slot = f"{v.name.lower()}{i}"
            claim(slot, f"{v.name}.{f.name}", v)
            names[v.name][i] = slot

    return names


class EnumCollector:
    """Collector for enum declarations of one compilation unit."""

    def __init__(self, reporter: Reporter, enums: EnumTable, tag_type: str = "uint8") -> None:
        self.r = reporter
        self.enums = enums
        self.tag_type = tag_type

    def collect(self, decls: Iterable[EnumDecl]) -> None:
        """Validate and register every declaration; errors are reported per enum."""
        for decl in decls:
            try:
                self._collect_enum_decl(decl)
            except CompileError as e:
                e.emit(self.r)

    def _collect_enum_decl(self, decl: EnumDecl) -> None:
        if decl.name in self.enums.by_name:
            raise CompileError(ERR.SG1001, decl.name_span or decl.span, name=decl.name)

        params_seen = set()
        for p in decl.type_params:
            if p in params_seen:
                raise CompileError(ERR.SG1007, decl.name_span or decl.span, param=p, enum=decl.name)
            params_seen.add(p)

        # Report every duplicate variant, then give up on this enum.
        seen = set()
        duplicates = []
        for v in decl.variants:
            if v.name in seen:
                duplicates.append(CompileError(ERR.SG1002, v.span, variant=v.name, enum=decl.name))
            seen.add(v.name)
        if duplicates:
            for d in duplicates[:-1]:
                d.emit(self.r)
            raise duplicates[-1]

        capacity = TAG_TYPE_CAPACITY[self.tag_type]
        if len(decl.variants) > capacity:
            raise CompileError(ERR.SG1006, decl.name_span or decl.span, enum=decl.name,
                               count=len(decl.variants), tag_type=self.tag_type)

        info = EnumInfo(decl, assign_slot_names(decl))
        self.enums.by_name[decl.name] = info
        self.enums.order.append(decl.name)
        logger.debug("collected enum %s (%d variants, params=%s)",
                     decl.name, len(decl.variants), decl.type_params)
