"""Literal- and delimiter-aware scanning over Go source text.

Every place that looks for syntax inside host-language text (arm separators,
guard keywords, the end of an arm body, `match` sites, enum declarations)
goes through these helpers, so a comma or brace inside a string literal or
a comment never ends a construct early.

Two layers:
    segments()   - split text into code / string / comment runs
    scan_depth() - walk the code characters with ()[]{} nesting depth
"""
from __future__ import annotations

import re
from bisect import bisect_right
from typing import Iterator, List, Optional, Tuple

from sumgo.internals.report import Span

OPENERS = "([{"
CLOSERS = ")]}"
PAIRS = {")": "(", "]": "[", "}": "{"}

_WORD = re.compile(r"\w")


class UnbalancedText(ValueError):
    """Raised when brackets or literals in a piece of text do not close."""

    def __init__(self, offset: int, reason: str) -> None:
        super().__init__(f"{reason} at offset {offset}")
        self.offset = offset
        self.reason = reason


def segments(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[str, int, int]]:
    """Split text[start:end] into ("code" | "string" | "comment", start, end) runs.

    Go literal forms: interpreted strings, runes (both with backslash escapes,
    single line) and raw `backtick` strings (may span lines).
    """
    end = len(text) if end is None else end
    i = start
    code_start = start
    while i < end:
        ch = text[i]
        if ch == '"' or ch == "'":
            j = i + 1
            while j < end and text[j] != ch and text[j] != "\n":
                j += 2 if text[j] == "\\" else 1
            if j >= end or text[j] != ch:
                raise UnbalancedText(i, "unterminated string literal")
            kind, stop = "string", j + 1
        elif ch == "`":
            j = text.find("`", i + 1, end)
            if j < 0:
                raise UnbalancedText(i, "unterminated raw string")
            kind, stop = "string", j + 1
        elif text.startswith("//", i):
            j = text.find("\n", i, end)
            kind, stop = "comment", end if j < 0 else j
        elif text.startswith("/*", i):
            j = text.find("*/", i + 2, end)
            if j < 0:
                raise UnbalancedText(i, "unterminated block comment")
            kind, stop = "comment", j + 2
        else:
            i += 1
            continue

        if code_start < i:
            yield "code", code_start, i
        yield kind, i, stop
        i = code_start = stop

    if code_start < end:
        yield "code", code_start, end


def code_chars(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[int, str]]:
    """Yield (index, char) for every character outside literals and comments."""
    for kind, s, e in segments(text, start, end):
        if kind == "code":
            for i in range(s, e):
                yield i, text[i]


def scan_depth(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[int, str, int]]:
    """Yield (index, char, depth) for code characters.

    Depth is the nesting level the character sits at: an opening bracket
    reports the level outside it, and so does its closing partner.
    """
    stack: List[Tuple[str, int]] = []
    for i, ch in code_chars(text, start, end):
        if ch in CLOSERS:
            if not stack or stack[-1][0] != PAIRS[ch]:
                raise UnbalancedText(i, f"unexpected '{ch}'")
            stack.pop()
            yield i, ch, len(stack)
        elif ch in OPENERS:
            yield i, ch, len(stack)
            stack.append((ch, i))
        else:
            yield i, ch, len(stack)
    if stack:
        opener, offset = stack[-1]
        raise UnbalancedText(offset, f"unclosed '{opener}'")


def check_balanced(text: str) -> None:
    """Raise UnbalancedText unless every bracket and literal in text closes."""
    for _ in scan_depth(text):
        pass


def is_word_at(text: str, index: int, word: str) -> bool:
    """True when `word` occurs at `index` as a whole identifier."""
    if not text.startswith(word, index):
        return False
    before = text[index - 1] if index > 0 else ""
    after = text[index + len(word)] if index + len(word) < len(text) else ""
    return not (before and _WORD.match(before)) and not (after and _WORD.match(after))


def find_top_level(text: str, needle: str, start: int = 0, end: Optional[int] = None,
                   word: bool = False) -> int:
    """Index of the first depth-0 occurrence of `needle` in code, or -1.

    Scanning stops at the first bracket that closes below depth 0, so the
    search never leaves the region it started in.
    """
    end = len(text) if end is None else end
    depth = 0
    for i, ch in code_chars(text, start, end):
        if depth == 0 and text.startswith(needle, i) and i + len(needle) <= end:
            if not word or is_word_at(text, i, needle):
                return i
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth < 0:
                return -1
    return -1


def find_closing(text: str, open_index: int) -> int:
    """Index of the bracket closing the one at `open_index`."""
    for i, ch, depth in scan_depth_from(text, open_index):
        if ch in CLOSERS and depth == 0:
            return i
    raise UnbalancedText(open_index, f"unclosed '{text[open_index]}'")


def scan_depth_from(text: str, start: int) -> Iterator[Tuple[int, str, int]]:
    """Like scan_depth, but stop quietly at the end of text.

    Used when the region of interest ends before the text does; an unclosed
    bracket surfaces as the caller never seeing its partner.
    """
    depth = 0
    for i, ch in code_chars(text, start):
        if ch in CLOSERS:
            depth -= 1
            if depth < 0:
                raise UnbalancedText(i, f"unexpected '{ch}'")
            yield i, ch, depth
        elif ch in OPENERS:
            yield i, ch, depth
            depth += 1
        else:
            yield i, ch, depth


def split_top_level(text: str, sep: str = ",") -> List[Tuple[str, int]]:
    """Split text at depth-0 separators. Returns (piece, offset) pairs."""
    pieces: List[Tuple[str, int]] = []
    last = 0
    for i, ch, depth in scan_depth(text):
        if depth == 0 and ch == sep:
            pieces.append((text[last:i], last))
            last = i + 1
    pieces.append((text[last:], last))
    return pieces


def blank_non_code(text: str) -> str:
    """Copy of text with literals and comments replaced by spaces (newlines kept)."""
    out = list(text)
    for kind, s, e in segments(text):
        if kind != "code":
            for i in range(s, e):
                if out[i] != "\n":
                    out[i] = " "
    return "".join(out)


def references(name: str, text: str) -> bool:
    """True when identifier `name` is used in Go text (field selectors excluded)."""
    pattern = re.compile(rf"(?<![\w.]){re.escape(name)}(?!\w)")
    return pattern.search(blank_non_code(text)) is not None


class LineIndex:
    """Offset <-> (line, column) conversion, both 1-based."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.starts = [0] + [i + 1 for i, c in enumerate(text) if c == "\n"]

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect_right(self.starts, offset)
        return line, offset - self.starts[line - 1] + 1

    def span(self, start: int, end: int) -> Span:
        line, col = self.position(start)
        end_line, end_col = self.position(max(start, end))
        return Span(line, col, end_line, end_col)

    def line_start(self, offset: int) -> int:
        return self.starts[bisect_right(self.starts, offset) - 1]

    def line_end(self, offset: int) -> int:
        nl = self.text.find("\n", offset)
        return len(self.text) if nl < 0 else nl
