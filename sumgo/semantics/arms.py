# semantics/arms.py
"""Split the region between a match's braces into arms.

    pattern [where|if guard] => body [,]

Everything is located with the literal-aware scanner, so `=>`, commas and
braces inside strings, runes or comments never split an arm. Offsets are
absolute positions in the file; spans point into the original source.
"""
from __future__ import annotations
import logging
from typing import List, Optional, Sequence, Tuple

from sumgo.internals.errors import ERR, CompileError
from sumgo.internals.parser import parse_pattern
from sumgo.internals.scanning import (
    LineIndex,
    UnbalancedText,
    blank_non_code,
    check_balanced,
    find_closing,
    find_top_level,
    scan_depth,
)
from sumgo.semantics.ast import Arm

logger = logging.getLogger(__name__)

ARROW = "=>"

# An expression body never ends on a line whose last character is one of these.
_CONTINUATION = set("+-*/%&|^<>=!.,(")


def excerpt(text: str, limit: int = 40) -> str:
    """First line of `text`, shortened for diagnostics."""
    line = text.strip().split("\n", 1)[0].strip()
    return line if len(line) <= limit else line[:limit - 3] + "..."


def _skip_trivia(text: str, pos: int, end: int) -> int:
    while pos < end:
        if text[pos].isspace():
            pos += 1
        elif text.startswith("//", pos):
            nl = text.find("\n", pos, end)
            pos = end if nl < 0 else nl + 1
        elif text.startswith("/*", pos):
            close = text.find("*/", pos + 2, end)
            pos = end if close < 0 else close + 2
        else:
            break
    return pos


def parse_arms(source: str, start: int, end: int, index: LineIndex,
               guard_keywords: Sequence[str] = ("where", "if")) -> List[Arm]:
    """Parse every arm in source[start:end].

    Raises:
        CompileError: UnbalancedDelimiters, MalformedArm or NoArmsFound.
    """
    try:
        check_balanced(source[start:end])
    except UnbalancedText as e:
        at = start + e.offset
        raise CompileError(ERR.SG2003, index.span(at, at + 1),
                           what="match arms", text=excerpt(source[at:end])) from None

    parser = _ArmParser(source, end, index, guard_keywords)
    arms: List[Arm] = []
    pos = _skip_trivia(source, start, end)
    while pos < end:
        arm, pos = parser.arm(pos, len(arms))
        arms.append(arm)
        pos = _skip_trivia(source, pos, end)

    if not arms:
        raise CompileError(ERR.SG2001, index.span(start, end))
    logger.debug("parsed %d arm(s) at %s", len(arms), index.position(start))
    return arms


class _ArmParser:
    def __init__(self, source: str, end: int, index: LineIndex, guard_keywords: Sequence[str]) -> None:
        self.src = source
        self.end = end
        self.index = index
        self.guard_keywords = tuple(guard_keywords)

    def _malformed(self, start: int, stop: int, reason: str) -> CompileError:
        return CompileError(ERR.SG2002, self.index.span(start, stop),
                            text=excerpt(self.src[start:stop]), reason=reason)

    def arm(self, pos: int, n: int) -> Tuple[Arm, int]:
        src, end = self.src, self.end
        arrow = find_top_level(src, ARROW, pos, end)
        if arrow < 0:
            raise self._malformed(pos, self.index.line_end(pos), f"missing '{ARROW}'")

        guard_at, keyword = self._find_guard(pos, arrow)
        pattern_end = guard_at if guard_at >= 0 else arrow
        pattern_text = src[pos:pattern_end]
        if not pattern_text.strip():
            raise self._malformed(pos, arrow + len(ARROW), "missing pattern")

        guard: Optional[str] = None
        guard_span = None
        if guard_at >= 0:
            g_start = guard_at + len(keyword)
            guard = src[g_start:arrow].strip()
            if not guard:
                raise self._malformed(pos, arrow + len(ARROW), f"empty '{keyword}' guard")
            guard_span = self.index.span(g_start, arrow)

        b = arrow + len(ARROW)
        while b < end and src[b].isspace():
            b += 1
        if b >= end or src[b] == ",":
            raise self._malformed(pos, b, "missing body")

        if src[b] == "{":
            close = find_closing(src, b)
            body, is_block, stop = src[b + 1:close], True, close + 1
            body_start, body_end = b + 1, close
        else:
            stop = self._expression_end(b)
            body, is_block = src[b:stop].strip(), False
            body_start, body_end = b, b + len(body)

        line, col = self.index.position(pos)
        pattern = parse_pattern(pattern_text, line, col)
        arm = Arm(
            pattern=pattern,
            guard=guard,
            body=body,
            is_block=is_block,
            span=self.index.span(pos, stop),
            guard_span=guard_span,
            body_span=self.index.span(b, stop),
            index=n,
            body_start=body_start,
            body_end=body_end,
        )

        after = _skip_trivia(src, stop, end)
        if after < end and src[after] == ",":
            stop = after + 1
        return arm, stop

    def _find_guard(self, start: int, stop: int) -> Tuple[int, str]:
        """Earliest top-level guard keyword in the pattern half of an arm."""
        best, keyword = -1, ""
        for kw in self.guard_keywords:
            at = find_top_level(self.src, kw, start, stop, word=True)
            if at >= 0 and (best < 0 or at < best):
                best, keyword = at, kw
        return best, keyword

    def _expression_end(self, b: int) -> int:
        """End of an expression body: a top-level comma, or a line break
        after a complete expression, or the end of the region."""
        src, end = self.src, self.end
        for i, ch, depth in scan_depth(src, b, end):
            if depth != 0:
                continue
            if ch == ",":
                return i
            if ch == "\n" and self._ends_expression(b, i):
                return i
        return end

    def _ends_expression(self, b: int, nl: int) -> bool:
        so_far = blank_non_code(self.src[b:nl]).rstrip()
        if not so_far:
            return False
        if so_far[-1] in _CONTINUATION and not so_far.endswith(("++", "--")):
            return False
        nxt = _skip_trivia(self.src, nl, self.end)
        return nxt >= self.end or self.src[nxt] != "."
