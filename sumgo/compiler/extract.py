"""Locate enum declarations, match sites and type hints in .sgo text.

The surrounding Go is never parsed. Everything here works on the text with
literals and comments blanked out, so `match` or `enum` inside a string or a
comment is never taken for syntax.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import List, Optional

from sumgo.internals.errors import ERR, CompileError
from sumgo.internals.scanning import (
    LineIndex,
    UnbalancedText,
    blank_non_code,
    find_closing,
    split_top_level,
)
from sumgo.semantics.ast import MatchContext

_MATCH = re.compile(r"(?<![\w.])match(?!\w)")
_ENUM = re.compile(r"^[ \t]*(enum)[ \t]+[A-Za-z_]", re.MULTILINE)
_PACKAGE = re.compile(r"^[ \t]*package[ \t]+\w+[^\n]*", re.MULTILINE)
_IMPORT = re.compile(r"import(?!\w)")
_VAR_DECL = re.compile(r"var\s+\w+\s+(.+?)\s*=\s*$")
_TYPE_NAME = re.compile(r"[A-Za-z_][\w.]*")
_CTOR_SUFFIX = re.compile(r"(\s*(?:\.|::)\s*\w+)?\s*\(")
_CASE_LABEL = re.compile(r"\s*(?:case\b.*|default\s*):$")
_BLOCK_OPENER = re.compile(r"(?:if|for|switch|select|else|func|go|defer|case|default|type)\b|.*\)\s*\{$|\}")

# A line ending in one of these continues on the next line.
CONTINUATION_CHARS = ",([=+-*/%&|^<>!."


@dataclass
class EnumSite:
    start: int          # offset of `enum`
    end: int            # just past the closing brace
    error: Optional[CompileError] = None


@dataclass
class MatchSite:
    start: int                  # offset of `match`
    end: int                    # just past the closing brace
    scrutinee: List[str] = field(default_factory=list)
    is_tuple: bool = False
    arms_start: int = 0
    arms_end: int = 0
    context: MatchContext = MatchContext.STATEMENT
    statement_start: int = 0    # where an expression site's lowering goes
    result_type: Optional[str] = None
    error: Optional[CompileError] = None


@dataclass
class TypeHint:
    text: str
    constructor: bool = False   # `text` is a constructor call's callee


class SourceScanner:
    """Syntax-site lookup over one source text."""

    def __init__(self, source: str, index: Optional[LineIndex] = None) -> None:
        self.source = source
        self.index = index or LineIndex(source)

    @cached_property
    def blank(self) -> str:
        return blank_non_code(self.source)

    # ---------- enums ----------

    def find_enums(self) -> List[EnumSite]:
        """Every `enum Name ... { ... }` that starts a line."""
        sites: List[EnumSite] = []
        for m in _ENUM.finditer(self.blank):
            start = m.start(1)
            if sites and start < sites[-1].end:
                continue
            brace = self.blank.find("{", start)
            stop = self.index.line_end(start)
            if brace < 0:
                sites.append(EnumSite(start, stop, CompileError(
                    ERR.SG1005, self.index.span(start, stop), reason="missing '{'")))
                continue
            try:
                close = find_closing(self.source, brace)
            except UnbalancedText:
                sites.append(EnumSite(start, stop, CompileError(
                    ERR.SG1005, self.index.span(start, stop), reason="unclosed '{'")))
                continue
            sites.append(EnumSite(start, close + 1))
        return sites

    def removal_range(self, site: EnumSite) -> tuple:
        """Source range that disappears with an enum: its lines, when it has them to itself."""
        start = self.index.line_start(site.start)
        end = site.end
        rest = self.blank[end:self.index.line_end(end)]
        if not rest.strip():
            end = self.index.line_end(end)
            if end < len(self.source):
                end += 1
            # one blank line goes too when the enum sat between blank lines
            before_blank = start == 0 or not self.blank[self.index.line_start(start - 1):start].strip()
            after = self.blank[end:self.index.line_end(end)]
            if before_blank and end < len(self.source) and not after.strip():
                end = min(self.index.line_end(end) + 1, len(self.source))
        return start, end

    # ---------- declarations ----------

    def declarations_offset(self) -> int:
        """Offset of the line after the package clause and every import."""
        m = _PACKAGE.search(self.blank)
        if m is None:
            return 0
        pos = m.end()
        while True:
            at = pos
            while at < len(self.blank) and self.blank[at].isspace():
                at += 1
            if not _IMPORT.match(self.blank, at):
                break
            paren = at + len("import")
            while paren < len(self.blank) and self.blank[paren] in " \t":
                paren += 1
            if paren < len(self.blank) and self.blank[paren] == "(":
                try:
                    pos = find_closing(self.source, paren) + 1
                except UnbalancedText:
                    break
            else:
                pos = self.index.line_end(at)
        pos = self.index.line_end(pos)
        return pos + 1 if pos < len(self.source) else pos

    # ---------- match sites ----------

    def find_matches(self, start: int = 0, end: Optional[int] = None,
                     exclude: Optional[List[EnumSite]] = None) -> List[MatchSite]:
        """Outermost match sites in source[start:end]."""
        end = len(self.source) if end is None else end
        exclude = exclude or []
        sites: List[MatchSite] = []
        pos = start
        for m in _MATCH.finditer(self.blank, start, end):
            at = m.start()
            if at < pos or any(e.start <= at < e.end for e in exclude):
                continue
            site = self._match_at(at, start, end)
            if site is None:
                continue
            sites.append(site)
            pos = site.end
        return sites

    def match_spanning(self, start: int, end: int) -> Optional[MatchSite]:
        """The match site that is exactly source[start:end], if there is one."""
        text = self.blank[start:end]
        lead = len(text) - len(text.lstrip())
        at = start + lead
        if not _MATCH.match(self.blank, at):
            return None
        site = self._match_at(at, start, end)
        if site is None or site.error is not None or self.blank[site.end:end].strip():
            return None
        return site

    def _match_at(self, at: int, floor: int, end: int) -> Optional[MatchSite]:
        blank = self.blank
        i = at + len("match")
        line_end = min(self.index.line_end(at), end)

        # the scrutinee runs to the first top-level `{` on the line
        depth = 0
        brace = -1
        j = i
        while j < line_end:
            ch = blank[j]
            if ch in "([":
                depth += 1
            elif ch in ")]":
                depth -= 1
                if depth < 0:
                    return None
            elif ch == "{" and depth == 0:
                brace = j
                break
            elif ch in ";}" and depth == 0:
                return None
            j += 1
        if brace < 0:
            return None
        scrutinee_text = self.source[i:brace].strip()
        if not scrutinee_text or re.match(r"(?::=|=(?!=)|\.)", blank[i:brace].strip()):
            return None

        try:
            close = find_closing(self.source, brace)
        except UnbalancedText:
            return MatchSite(at, line_end, [scrutinee_text], error=CompileError(
                ERR.SG2003, self.index.span(brace, brace + 1), what="match", text=scrutinee_text))
        if close >= end:
            return None

        components, is_tuple = self._scrutinee(scrutinee_text)
        site = MatchSite(
            start=at,
            end=close + 1,
            scrutinee=components,
            is_tuple=is_tuple,
            arms_start=brace + 1,
            arms_end=close,
            context=self._context(at),
        )
        if site.context is MatchContext.EXPRESSION:
            site.statement_start = self._statement_start(at, floor)
            head = blank[site.statement_start:at].strip()
            m = _VAR_DECL.match(head)
            if m:
                site.result_type = self.source[site.statement_start:at].strip()[m.start(1):m.end(1)]
        else:
            site.statement_start = at
        return site

    @staticmethod
    def _scrutinee(text: str):
        if text.startswith("(") and text.endswith(")"):
            inner = text[1:-1]
            try:
                parts = [p.strip() for p, _ in split_top_level(inner)]
            except UnbalancedText:
                return [text], False
            parts = [p for p in parts if p]
            if len(parts) > 1:
                return parts, True
        return [text], False

    def _context(self, at: int) -> MatchContext:
        ls = self.index.line_start(at)
        before = self.blank[ls:at]
        stripped = before.strip()
        if not stripped:
            prev = self._previous_line(ls)
            if prev and prev[-1] in CONTINUATION_CHARS:
                return MatchContext.EXPRESSION
            return MatchContext.STATEMENT
        if stripped[-1] in "{};":
            return MatchContext.STATEMENT
        if stripped.endswith(":") and not stripped.endswith(":=") and _CASE_LABEL.match(before):
            return MatchContext.STATEMENT
        return MatchContext.EXPRESSION

    def _previous_line(self, line_start: int) -> str:
        if line_start == 0:
            return ""
        prev_start = self.index.line_start(line_start - 1)
        return self.blank[prev_start:line_start - 1].strip()

    def _statement_start(self, at: int, floor: int) -> int:
        """Start of the line the statement holding `at` begins on."""
        ls = self.index.line_start(at)
        while ls > floor:
            prev = self._previous_line(ls)
            cur = self.blank[ls:at].lstrip()
            if not prev:
                break
            continued = (prev[-1] in CONTINUATION_CHARS
                         or (prev.endswith("{") and not _BLOCK_OPENER.match(prev))
                         or cur[:1] in (".", ")", "]"))
            if not continued:
                break
            ls = self.index.line_start(ls - 1)
        return max(ls, floor)

    # ---------- type hints ----------

    def type_hint(self, name: str, before: int) -> Optional[TypeHint]:
        """Declared type of identifier `name` from the text before `before`.

        Recognizes `var name T`, a `name T` parameter and `name := Ctor(...)`.
        The last declaration wins.
        """
        if not re.fullmatch(r"[A-Za-z_]\w*", name):
            return None
        n = re.escape(name)
        text = self.blank[:before]
        best: Optional[TypeHint] = None
        best_at = -1

        for m in re.finditer(rf"(?<![\w.])var\s+{n}\s+", text):
            stop = _type_end(text, m.end())
            if stop > 0 and m.start() > best_at:
                best_at, best = m.start(), TypeHint(self.source[m.end():stop])

        for m in re.finditer(rf"[(,]\s*{n}\s+", text):
            stop = _type_end(text, m.end())
            if stop > 0 and re.match(r"\s*[,)]", text[stop:]) and m.start() > best_at:
                best_at, best = m.start(), TypeHint(self.source[m.end():stop])

        for m in re.finditer(rf"(?<![\w.]){n}\s*:=\s*", text):
            stop = _type_end(text, m.end(), pointer=False)
            if stop < 0:
                continue
            suffix = _CTOR_SUFFIX.match(text, stop)
            if suffix is None or m.start() <= best_at:
                continue
            callee_end = suffix.end(1) if suffix.group(1) else stop
            callee = self.source[m.end():callee_end]
            best_at, best = m.start(), TypeHint(callee.strip(), constructor=True)
        return best


def _type_end(text: str, pos: int, pointer: bool = True) -> int:
    """End of a `*pkg.Name<Args>` type starting at `pos`, or -1."""
    if pointer and text.startswith("*", pos):
        pos += 1
    m = _TYPE_NAME.match(text, pos)
    if m is None:
        return -1
    stop = m.end()
    lt = stop
    while lt < len(text) and text[lt] in " \t":
        lt += 1
    if not text.startswith("<", lt):
        return stop
    depth = 0
    for i in range(lt, len(text)):
        ch = text[i]
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
            if depth == 0:
                return i + 1
        elif ch in "\n;{}":
            break
    return -1
