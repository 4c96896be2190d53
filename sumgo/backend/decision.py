# backend/decision.py
"""Decision tree produced by the pattern compiler and rendered by the Go emitter.

    Switch       switch on one union value's tag, one Case per variant
    GuardChain   if / else if / else over guarded arms, in arm order
    Leaf         an arm that matched; run its body
    Unreachable  nothing matches; panics at runtime

`Bind`s travel with leaves and guard branches; the emitter declares only
those the guard or body actually uses.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Union

from sumgo.internals.report import Span
from sumgo.semantics.ast import Arm
from sumgo.semantics.typesys import TaggedUnion, VariantInfo


@dataclass(frozen=True)
class Bind:
    name: str
    expr: str           # Go expression, e.g. `*__match_1.ok0`


@dataclass
class Leaf:
    arm: Arm
    binds: List[Bind] = field(default_factory=list)


@dataclass
class GuardBranch:
    arm: Arm
    binds: List[Bind] = field(default_factory=list)

    @property
    def guard(self) -> str:
        return self.arm.guard or "true"


@dataclass
class GuardChain:
    branches: List[GuardBranch]
    fallback: "Node"


@dataclass
class Case:
    variant: VariantInfo
    node: "Node"
    span: Optional[Span] = None     # first pattern naming the variant


@dataclass
class Switch:
    subject: str                    # value switched on (an identifier)
    union: TaggedUnion
    cases: List[Case]
    default: "Node"
    # `temp := source` precedes the switch when the value is a payload
    temp: Optional[str] = None
    source: Optional[str] = None


@dataclass
class Unreachable:
    reason: str = "variant"         # "variant" | "guard"


Node = Union[Switch, GuardChain, Leaf, Unreachable]


def walk(node: Node):
    """Every node of a tree, depth first."""
    yield node
    if isinstance(node, Switch):
        for case in node.cases:
            yield from walk(case.node)
        yield from walk(node.default)
    elif isinstance(node, GuardChain):
        yield from walk(node.fallback)
