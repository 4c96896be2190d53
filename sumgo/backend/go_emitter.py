# backend/go_emitter.py
"""Render decision trees and arm bodies as Go lines.

Lines carry a nesting depth instead of indentation so that lowered code can
be dropped into any enclosing block; `render()` turns depth into the
configured indent. Every line remembers the source span it came from, which
is what the source map is built from.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sumgo.internals.errors import raise_internal_error
from sumgo.internals.report import Span
from sumgo.internals.scanning import CLOSERS, OPENERS, references, segments
from sumgo.backend.decision import Bind, GuardBranch, GuardChain, Leaf, Node, Switch, Unreachable
from sumgo.semantics.ast import Arm

logger = logging.getLogger(__name__)

UNREACHABLE_PREFIX = "sumgo: unreachable case in "


@dataclass
class GoLine:
    text: str
    depth: int = 0
    span: Optional[Span] = None
    name: Optional[str] = None
    # continuation of a multi-line raw string or comment; never re-indented
    verbatim: bool = False


def shift(lines: Sequence[GoLine], depth: int) -> List[GoLine]:
    return [replace(l, depth=l.depth + depth) for l in lines]


def render(lines: Sequence[GoLine], indent: str = "\t", base: str = "") -> str:
    out = []
    for l in lines:
        if l.verbatim:
            out.append(l.text)
        elif not l.text:
            out.append("")
        else:
            out.append(f"{base}{indent * l.depth}{l.text}")
    return "\n".join(out)


def go_quote(text: str) -> str:
    """Go interpreted string literal for `text`."""
    out = ['"']
    for ch in text:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


# (line, col, name): where the first non-blank character of a line came from
Origin = Optional[Tuple[int, int, Optional[str]]]


def reindent(text: str, origins: Optional[Sequence[Origin]] = None, trim: bool = True) -> List[GoLine]:
    """Split Go text into lines with depths recomputed from its brackets.

    `origins[k]` locates raw line k in the file. Lines that begin inside a
    multi-line raw string or comment are kept verbatim. Leading and trailing
    blank lines are dropped when `trim`.
    """
    raw = text.split("\n")
    starts = [0]
    for line in raw[:-1]:
        starts.append(starts[-1] + len(line) + 1)

    delta = [0] * (len(text) + 1)
    verbatim_lines = set()
    for kind, s, e in segments(text):
        if kind == "code":
            for i in range(s, e):
                if text[i] in OPENERS:
                    delta[i] += 1
                elif text[i] in CLOSERS:
                    delta[i] -= 1
        else:
            for k, st in enumerate(starts):
                if s < st < e:
                    verbatim_lines.add(k)

    lines: List[GoLine] = []
    depth = 0
    for k, line in enumerate(raw):
        st = starts[k]
        stripped = line.strip()
        origin = origins[k] if origins is not None and k < len(origins) else None
        if k in verbatim_lines:
            lines.append(GoLine(line, depth, None, verbatim=True))
        elif not stripped:
            lines.append(GoLine("", 0))
        else:
            own = depth - (len(stripped) - len(stripped.lstrip(CLOSERS)))
            if stripped.startswith("case ") or stripped.startswith("default:"):
                own -= 1
            span = name = None
            if origin is not None:
                line_no, col, name = origin
                span = Span(line_no, col, line_no, col + len(stripped))
            lines.append(GoLine(stripped, own, span, name))
        depth += sum(delta[st:st + len(line)])

    if trim:
        while lines and not lines[0].text:
            lines.pop(0)
        while lines and not lines[-1].text:
            lines.pop()

    low = min((l.depth for l in lines if l.text and not l.verbatim), default=0)
    if low:
        lines = [l if l.verbatim else replace(l, depth=l.depth - low) for l in lines]
    return lines


class GoEmitter:
    """Decision tree -> Go lines for one match site.

    `body_lines(arm)` supplies an arm's body (already lowered for the match
    context) as depth-relative lines.
    """

    def __init__(self, scrutinee_text: str, body_lines: Callable[[Arm], List[GoLine]],
                 span: Optional[Span] = None) -> None:
        self.scrutinee_text = scrutinee_text
        self.body_lines = body_lines
        self.span = span
        self._bodies: Dict[int, List[GoLine]] = {}

    def emit_root(self, node: Node) -> List[GoLine]:
        lines = self.emit(node, 0, {})
        if not isinstance(node, (Switch, Unreachable)) and any(
                l.name is not None and l.depth == 0 for l in lines):
            # root-level bindings get their own block
            lines = [GoLine("{", 0, self.span)] + shift(lines, 1) + [GoLine("}", 0, self.span)]
        return lines

    def emit(self, node: Node, depth: int, scope: Dict[str, str]) -> List[GoLine]:
        if isinstance(node, Switch):
            return self._switch(node, depth, scope)
        if isinstance(node, GuardChain):
            return self._chain(node.branches, node.fallback, depth, dict(scope))
        if isinstance(node, Leaf):
            return self._leaf(node.arm, node.binds, depth, dict(scope))
        if isinstance(node, Unreachable):
            return [self.unreachable(depth)]
        raise_internal_error("IE0002", node=type(node).__name__)

    def unreachable(self, depth: int) -> GoLine:
        message = go_quote(UNREACHABLE_PREFIX + self.scrutinee_text)
        return GoLine(f"panic({message})", depth, self.span)

    # ---------- nodes ----------

    def _switch(self, node: Switch, depth: int, scope: Dict[str, str]) -> List[GoLine]:
        lines: List[GoLine] = []
        if node.temp is not None:
            lines.append(GoLine(f"{node.temp} := {node.source}", depth, self.span, node.temp))
        lines.append(GoLine(f"switch {node.subject}.tag {{", depth, self.span))
        for case in node.cases:
            lines.append(GoLine(f"case {node.union.tag_constant(case.variant.name)}:", depth,
                                case.span or self.span))
            lines += self.emit(case.node, depth + 1, dict(scope))
        lines.append(GoLine("default:", depth, self.span))
        lines += self.emit(node.default, depth + 1, dict(scope))
        lines.append(GoLine("}", depth, self.span))
        return lines

    def _leaf(self, arm: Arm, binds: List[Bind], depth: int, scope: Dict[str, str]) -> List[GoLine]:
        body = self._body(arm)
        text = "\n".join(l.text for l in body)
        used = [b for b in binds if references(b.name, text)]
        return self._declare(used, arm, depth, scope) + shift(body, depth)

    def _chain(self, branches: List[GuardBranch], fallback: Node, depth: int,
               scope: Dict[str, str]) -> List[GoLine]:
        first, rest = branches[0], branches[1:]
        lines = self._declare(self._guard_binds(first), first.arm, depth, scope)
        lines.append(GoLine(f"if {first.guard} {{", depth, first.arm.guard_span))
        lines += self._leaf(first.arm, first.binds, depth + 1, dict(scope))

        while rest and all(scope.get(b.name) == b.expr for b in self._guard_binds(rest[0])):
            branch, rest = rest[0], rest[1:]
            lines.append(GoLine(f"}} else if {branch.guard} {{", depth, branch.arm.guard_span))
            lines += self._leaf(branch.arm, branch.binds, depth + 1, dict(scope))

        lines.append(GoLine("} else {", depth, self.span))
        if rest:
            lines += self._chain(rest, fallback, depth + 1, dict(scope))
        else:
            lines += self.emit(fallback, depth + 1, dict(scope))
        lines.append(GoLine("}", depth, self.span))
        return lines

    # ---------- helpers ----------

    def _body(self, arm: Arm) -> List[GoLine]:
        if arm.index not in self._bodies:
            self._bodies[arm.index] = self.body_lines(arm)
        return self._bodies[arm.index]

    @staticmethod
    def _guard_binds(branch: GuardBranch) -> List[Bind]:
        return [b for b in branch.binds if references(b.name, branch.guard)]

    def _declare(self, binds: List[Bind], arm: Arm, depth: int, scope: Dict[str, str]) -> List[GoLine]:
        lines = []
        for b in binds:
            if scope.get(b.name) == b.expr:
                continue
            scope[b.name] = b.expr
            lines.append(GoLine(f"{b.name} := {b.expr}", depth, arm.pattern.span, b.name))
        return lines
