# backend/matching.py
"""Lower one `match` site to a Go switch.

The arms become rows of per-column patterns (one column per scrutinee
component). An arm whose every component is a wildcard or binding is a
catch-all and is moved behind the other arms once, before lowering starts.
From there rows keep that order at every switch level and the first row
that matches wins:

    1. the first row picks the column to switch on (its first variant pattern)
    2. each variant gets a case holding, in order, the rows that name it or
       have a wildcard or binding in that column, with the column replaced
       by the payload fields
    3. the wildcard and binding rows form the `default`; with none, or
       when every variant has a case, the default panics
    4. a row with nothing left to test is a leaf, or a guarded branch whose
       fallback is the rest of the rows

Guards therefore see every binding of their arm, nested or not, and arms
sharing a case chain up as `if / else if / else` in arm order.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from sumgo.backend.decision import Bind, Case, GuardBranch, GuardChain, Leaf, Node, Switch, Unreachable
from sumgo.backend.go_emitter import GoEmitter, GoLine, Origin, reindent
from sumgo.internals.errors import ERR, CompileError
from sumgo.internals.scanning import LineIndex, blank_non_code, references
from sumgo.semantics.ast import (
    Arm,
    BindingPattern,
    MatchContext,
    MatchExpression,
    Pattern,
    VariantPattern,
    WildcardPattern,
)
from sumgo.semantics.patterns import PatternResolver, ResolvedMatch, is_catch_all
from sumgo.semantics.typesys import TaggedUnion
from sumgo.semantics.units import CompilationUnit

logger = logging.getLogger(__name__)

IDENT = re.compile(r"[A-Za-z_]\w*")

DEFAULT_RESULT_TYPE = "interface{}"

_TERMINATING = re.compile(r"(?:return|break|continue|goto|fallthrough)\b|panic\s*\(")
_STATEMENT_KEYWORD = re.compile(
    r"(?:if|for|switch|select|var|const|type|defer|go|return|break|continue|goto|fallthrough)\b")
_ASSIGNMENT = re.compile(r":=|(?<![=!<>])=(?!=)")
_SEND = re.compile(r"[\w)\]]\s*<-")
_CONTINUED = tuple("+-*/%&|^<>=!.,(")

_STRING_LIT = re.compile(r'"(?:[^"\\\n]|\\.)*"|`[^`]*`')
_RUNE_LIT = re.compile(r"'(?:[^'\\\n]|\\[^'\n]+)'")
_INT_LIT = re.compile(r"-?(?:0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO]?[0-7_]+|[1-9][\d_]*|0)")
_FLOAT_LIT = re.compile(r"-?(?:\d[\d_]*\.\d*(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?|\d+[eE][-+]?\d+)")
_CALL = re.compile(r"([A-Za-z_]\w*)\s*\(")

# (arm, result variable or None, Go types of the names the arm binds)
BodyLowering = Callable[[Arm, Optional[str], Dict[str, str]], List[GoLine]]


@dataclass
class MatchLowering:
    """Go lines replacing one match site."""
    lines: List[GoLine]
    tree: Node
    resolved: ResolvedMatch
    result_var: Optional[str] = None
    result_type: Optional[str] = None


@dataclass
class _Row:
    patterns: List[Pattern]
    arm: Arm
    binds: List[Bind] = field(default_factory=list)

    @property
    def irrefutable(self) -> bool:
        return all(is_catch_all(p) for p in self.patterns)


# ---------- bodies ----------

def origins_for(index: LineIndex, start: int, text: str) -> List[Origin]:
    """Origin of each line of `text`, which sits at offset `start` in the file."""
    origins: List[Origin] = []
    offset = start
    for line in text.split("\n"):
        lead = len(line) - len(line.lstrip())
        origins.append(index.position(offset + lead) + (None,))
        offset += len(line) + 1
    return origins


def is_terminating(statement: str) -> bool:
    return _TERMINATING.match(statement.strip()) is not None


def _is_value(statement: str) -> bool:
    raw = statement.strip()
    if _STRING_LIT.fullmatch(raw) or _RUNE_LIT.fullmatch(raw):
        return True
    s = blank_non_code(statement).strip()
    if not s or s[0] in ")]}" or _STATEMENT_KEYWORD.match(s):
        return False
    if s.endswith(("++", "--")):
        return False
    depth = 0
    flat = []
    for ch in s:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        flat.append(ch if depth == 0 else " ")
    flat_text = "".join(flat)
    return _ASSIGNMENT.search(flat_text) is None and _SEND.search(flat_text) is None


def assign_result(lines: List[GoLine], result_var: str) -> List[GoLine]:
    """Turn the last statement of a body into `result_var = <value>`.

    Terminating statements (return, panic, ...) and statements that are not
    values (assignments, keyword statements, inc/dec) are left alone.
    """
    idx = next((i for i in range(len(lines) - 1, -1, -1)
                if lines[i].text and not lines[i].verbatim), None)
    if idx is None:
        return lines

    k = idx
    while k > 0:
        cur = lines[k]
        prev = next((lines[i] for i in range(k - 1, -1, -1) if lines[i].text), None)
        if prev is None:
            break
        if cur.depth > 0 or cur.verbatim or cur.text[0] in ")]}." or prev.text.endswith(_CONTINUED):
            k -= 1
            continue
        break

    head = lines[k]
    prefix, last = "", head.text
    if k == idx:
        cut = _last_top_level_semicolon(head.text)
        if cut >= 0:
            prefix, last = head.text[:cut + 1] + " ", head.text[cut + 1:].strip()

    statement = "\n".join(l.text for l in lines[k:idx + 1]) if k != idx else last
    if is_terminating(statement) or not _is_value(statement):
        return lines

    out = list(lines)
    out[k] = GoLine(f"{prefix}{result_var} = {last}", head.depth, head.span, head.name)
    return out


def _last_top_level_semicolon(text: str) -> int:
    blank = blank_non_code(text)
    depth = 0
    last = -1
    for i, ch in enumerate(blank):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == ";" and depth == 0 and blank[i + 1:].strip():
            last = i
    return last


def arm_value(arm: Arm) -> Optional[str]:
    """The expression an arm produces in expression context, if any."""
    if not arm.is_block:
        value = arm.body.strip()
    else:
        lines = [l for l in reindent(arm.body) if l.text]
        if not lines or lines[-1].depth != 0:
            return None
        value = lines[-1].text
        cut = _last_top_level_semicolon(value)
        if cut >= 0:
            value = value[cut + 1:].strip()
    if not value or is_terminating(value) or not _is_value(value):
        return None
    return value


# ---------- compiler ----------

class PatternCompiler:
    """Pattern compiler for the match sites of one compilation unit.

    `lower_body(arm, result_var, bound)` returns an arm body as depth-relative Go
    lines; the pipeline supplies one that also lowers matches nested inside
    bodies. `rewrite` maps raw Go text to its output form (generic enum
    references) before result types are inferred from it.
    """

    def __init__(self, unit: CompilationUnit, lower_body: Optional[BodyLowering] = None,
                 rewrite: Optional[Callable[[str], str]] = None) -> None:
        self.unit = unit
        self.lower_body = lower_body or self.plain_body
        self.rewrite = rewrite or (lambda text: text)
        self.strict = unit.config.match.non_exhaustive == "error"
        self._scrutinee = ""

    def compile(self, match: MatchExpression, result_var: Optional[str] = None) -> MatchLowering:
        """Lower `match`. A given `result_var` is assigned, not declared
        (a match that is the whole body of an outer expression arm)."""
        resolved = PatternResolver(self.unit).resolve(match)

        subjects: List[str] = []
        temps = []
        for expr in match.scrutinee:
            expr = expr.strip()
            if IDENT.fullmatch(expr):
                subjects.append(expr)
            else:
                temp = self.unit.names.fresh("__match")
                temps.append((temp, expr))
                subjects.append(temp)

        self._scrutinee = match.scrutinee_text
        tree = self.build(resolved, subjects)

        declare_result = False
        result_type = None
        if match.context is MatchContext.EXPRESSION:
            if result_var is None:
                result_var = self.unit.names.fresh("__match_result")
                declare_result = True
                result_type = match.result_type or self.infer_result_type(match.arms)

        bound = {row.arm.index: resolved.binding_types(row) for row in resolved.rows}
        emitter = GoEmitter(match.scrutinee_text,
                            lambda arm: self.lower_body(arm, result_var, bound.get(arm.index, {})),
                            match.span)
        body = emitter.emit_root(tree)
        rendered = "\n".join(l.text for l in body)

        lines: List[GoLine] = []
        if declare_result:
            lines.append(GoLine(f"var {result_var} {result_type}", 0, match.span, result_var))
        for temp, expr in temps:
            if references(temp, rendered):
                lines.append(GoLine(f"{temp} := {expr}", 0, match.span, temp))
            else:
                lines.append(GoLine(f"_ = {expr}", 0, match.span))
        lines += body

        logger.debug("lowered match on %s: %d arm(s), %d line(s)",
                     match.scrutinee_text, len(match.arms), len(lines))
        return MatchLowering(lines, tree, resolved, result_var, result_type)

    # ---------- decision tree ----------

    def build(self, resolved: ResolvedMatch, subjects: Sequence[str]) -> Node:
        rows = [_Row(list(r.patterns), r.arm) for r in resolved.rows]
        rows = [r for r in rows if not r.irrefutable] + [r for r in rows if r.irrefutable]
        return self._build(list(subjects), list(resolved.columns), rows, [])

    def _build(self, occs: List[str], unions: List[Optional[TaggedUnion]],
               rows: List[_Row], path: List[str]) -> Node:
        if not rows:
            return Unreachable("variant")

        first = rows[0]
        j = next((i for i, p in enumerate(first.patterns) if isinstance(p, VariantPattern)), None)
        if j is None:
            return self._accept(occs, unions, rows, path)

        union = unions[j]
        subject = occs[j]
        temp = source = None
        if not IDENT.fullmatch(subject):
            temp, source = self.unit.names.fresh("__nested"), subject
            subject = temp

        order: List[str] = []
        for row in rows:
            p = row.patterns[j]
            if isinstance(p, VariantPattern) and p.info.name not in order:
                order.append(p.info.name)

        cases: List[Case] = []
        for name in order:
            info = union.get_variant(name)
            sub_occs = occs[:j] + [f"*{subject}.{s.name}" for s in info.slots] + occs[j + 1:]
            sub_unions = (unions[:j] + [self.unit.union_for_type(s.type) for s in info.slots]
                          + unions[j + 1:])
            sub_rows: List[_Row] = []
            span = None
            for row in rows:
                p = row.patterns[j]
                binds = list(row.binds)
                if isinstance(p, VariantPattern):
                    if p.info.name != name:
                        continue
                    span = span or p.span
                    args = list(p.args)
                else:
                    args = [WildcardPattern(span=p.span, text="_") for _ in info.slots]
                    if isinstance(p, BindingPattern):
                        binds.append(Bind(p.name, subject))
                sub_rows.append(_Row(row.patterns[:j] + args + row.patterns[j + 1:], row.arm, binds))
            node = self._build(sub_occs, sub_unions, sub_rows, path + [name])
            cases.append(Case(info, node, span))

        default_rows: List[_Row] = []
        if len(order) < len(union.variants):
            for row in rows:
                p = row.patterns[j]
                if isinstance(p, VariantPattern):
                    continue
                binds = list(row.binds)
                if isinstance(p, BindingPattern):
                    binds.append(Bind(p.name, subject))
                default_rows.append(_Row(row.patterns[:j] + row.patterns[j + 1:], row.arm, binds))
        if default_rows:
            default = self._build(occs[:j] + occs[j + 1:], unions[:j] + unions[j + 1:],
                                  default_rows, path + ["_"])
        else:
            default = Unreachable("variant")

        return Switch(subject, union, cases, default, temp, source)

    def _accept(self, occs: List[str], unions: List[Optional[TaggedUnion]],
                rows: List[_Row], path: List[str]) -> Node:
        first, rest = rows[0], rows[1:]
        binds = list(first.binds) + [Bind(p.name, occ) for p, occ in zip(first.patterns, occs)
                                     if isinstance(p, BindingPattern)]
        if first.arm.guard is None:
            return Leaf(first.arm, binds)

        if rest:
            fallback = self._build(occs, unions, rest, path)
        elif self.strict:
            where = " > ".join(path) if path else f"'{self._scrutinee}'"
            raise CompileError(ERR.SG2013, first.arm.span, where=where)
        else:
            fallback = Unreachable("guard")

        branch = GuardBranch(first.arm, binds)
        if isinstance(fallback, GuardChain):
            return GuardChain([branch] + fallback.branches, fallback.fallback)
        return GuardChain([branch], fallback)

    # ---------- bodies and result types ----------

    def plain_body(self, arm: Arm, result_var: Optional[str],
                   bound: Optional[Dict[str, str]] = None) -> List[GoLine]:
        text = self.rewrite(arm.body)
        origins = origins_for(self.unit.index, arm.body_start, arm.body) if arm.body_start >= 0 else None
        lines = reindent(text, origins)
        if result_var is not None:
            lines = assign_result(lines, result_var)
        return lines

    def infer_result_type(self, arms: Sequence[Arm]) -> str:
        """Result type from the literal or constructor values the arms produce."""
        kinds = []
        for arm in arms:
            value = arm_value(arm)
            if value is None:
                continue
            kind = self._value_type(self.rewrite(value))
            if kind is None:
                return DEFAULT_RESULT_TYPE
            kinds.append(kind)
        if not kinds:
            return DEFAULT_RESULT_TYPE
        distinct = set(kinds)
        if distinct == {"int", "float64"}:
            return "float64"
        return kinds[0] if len(distinct) == 1 else DEFAULT_RESULT_TYPE

    def _value_type(self, value: str) -> Optional[str]:
        if _STRING_LIT.fullmatch(value):
            return "string"
        if _RUNE_LIT.fullmatch(value):
            return "rune"
        if value in ("true", "false"):
            return "bool"
        if _FLOAT_LIT.fullmatch(value):
            return "float64"
        if _INT_LIT.fullmatch(value):
            return "int"
        call = _CALL.match(value)
        if call and value.endswith(")"):
            union = self.unit.union_for_constructor(call.group(1))
            if union is not None:
                return union.name
        return None
