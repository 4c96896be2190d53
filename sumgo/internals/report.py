from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Any

from lark import Token

class C:
    """ANSI color/style escape codes."""
    RESET = "\x1b[0m"
    BOLD  = "\x1b[1m"
    DIM   = "\x1b[2m"
    RED   = "\x1b[31m"
    YELLOW = "\x1b[33m"
    CYAN  = "\x1b[36m"
    GRAY  = "\x1b[90m"

@dataclass(frozen=True)
class Span:
    line: int
    col: int
    end_line: int
    end_col: int

@dataclass
class Diagnostic:
    kind: str
    code: str
    message: str
    span: Optional[Span] = None
    filename: Optional[str] = None
    error_kind: Optional[str] = None  # taxonomy name, e.g. "UnknownVariant"
    subject: Optional[str] = None     # offending name or text

def span_of(t: Any, base_line: int = 1, base_col: int = 1) -> Optional[Span]:
    """Span of a lark tree or token, shifted by the position its text started at.

    Pattern and enum snippets are parsed on their own, so lark positions are
    relative to the snippet; `base_line`/`base_col` place them in the file.
    """
    m = getattr(t, "meta", None)
    if m is not None and not getattr(m, "empty", True):
        return shift_span(Span(m.line, m.column, m.end_line, m.end_column), base_line, base_col)
    if isinstance(t, Token):
        line = getattr(t, "line", None)
        col = getattr(t, "column", None)
        end_line = getattr(t, "end_line", None)
        end_col = getattr(t, "end_column", None)
        if line is not None and col is not None:
            return shift_span(Span(line, col, end_line or line, end_col or col), base_line, base_col)
    return None

def shift_span(s: Span, base_line: int, base_col: int) -> Span:
    """Move a snippet-relative span to where the snippet starts in its file."""
    col = s.col + base_col - 1 if s.line == 1 else s.col
    end_col = s.end_col + base_col - 1 if s.end_line == 1 else s.end_col
    return Span(s.line + base_line - 1, col, s.end_line + base_line - 1, end_col)


class Reporter:
    def __init__(self, source: Optional[str] = None, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.items: List[Diagnostic] = []

    def error(self, code: str, msg: str, span: Optional[Span],
              error_kind: Optional[str] = None, subject: Optional[str] = None):
        self.items.append(Diagnostic("error", code, msg, span, filename=self.filename,
                                     error_kind=error_kind, subject=subject))

    def warn(self, code: str, msg: str, span: Optional[Span],
             error_kind: Optional[str] = None, subject: Optional[str] = None):
        self.items.append(Diagnostic("warning", code, msg, span, filename=self.filename,
                                     error_kind=error_kind, subject=subject))

    @property
    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.items)

    @property
    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.items)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.items if d.kind == "error"]

    def format(self, use_color: bool = True, use_unicode: bool = True) -> str:
        """Render all diagnostics.

        use_color   → ANSI colorize location/kind/guide/markers
        use_unicode → use │ / ╰ / ╯ and a separate caret line above the guide
        """
        out: List[str] = []
        src_lines = self.source.splitlines() if self.source else None

        for d in self.items:
            filename = d.filename or self.filename

            # Relative path with ./ prefix when the file lives under cwd
            try:
                rel_path = Path(filename).resolve().relative_to(Path.cwd())
                filename = f"./{rel_path}"
            except ValueError:
                filename = Path(filename).name

            loc = f"{filename}:{d.span.line}:{d.span.col}" if d.span else filename

            message = d.message if d.message.endswith('.') else f"{d.message}."

            if use_color:
                kind = f"{C.BOLD}{C.RED}error{C.RESET}" if d.kind == "error" else f"{C.BOLD}{C.YELLOW}warning{C.RESET}"
                head = f"{C.CYAN}{loc}{C.RESET}: {kind} [{C.DIM}{d.code}{C.RESET}]: {message}"
            else:
                head = f"{loc}: {d.kind} [{d.code}]: {message}"

            if d.span is None:
                out.append(head)
                continue

            if src_lines is not None:
                line_idx = d.span.line - 1
                line_text = src_lines[line_idx] if 0 <= line_idx < len(src_lines) else ""
            else:
                line_text = ""

            # 1-based columns; ensure at least one column
            start = max(1, d.span.col)

            if use_unicode:
                error_color = C.RED if d.kind == "error" else C.YELLOW
                gray = (lambda s: f"{C.GRAY}{s}{C.RESET}") if use_color else (lambda s: s)

                out.append(f"{gray('  ╭──┤ ')}{head}")
                out.append(f"{gray('  │')}  {line_text}")

                caret = " " * (start - 1) + "┯"
                if use_color:
                    caret = f"{error_color}{caret}{C.RESET}"
                out.append(f"{gray('  │')}  {caret}")

                guide = "─" * (start + 1)
                if use_color:
                    out.append(f"{gray('  ╰' + guide)}{error_color}╯{C.RESET}")
                else:
                    out.append(f"  ╰{guide}╯")
            else:
                # ASCII fallback: header on top, then source and caret
                out.append(head)
                out.append(f"  | {line_text}")
                out.append(f"  ` {' ' * (start - 1) + '^'}")

        return "\n".join(out)

    def print(self, stream=None, use_color: Optional[bool] = None, use_unicode: Optional[bool] = None) -> None:
        """Print diagnostics to `stream` (default: sys.stderr).

        Color is auto-enabled for TTY unless NO_COLOR or TERM=dumb.
        Unicode prefixes (│ / ╰) are auto-enabled for TTY unless NO_UNICODE or TERM=dumb.
        """
        import os, sys
        stream = stream or sys.stderr

        is_tty = getattr(stream, "isatty", lambda: False)()
        dumb = os.getenv("TERM") == "dumb"
        if use_color is None:
            use_color = bool(is_tty and os.getenv("NO_COLOR") is None and not dumb)
        if use_unicode is None:
            use_unicode = bool(is_tty and os.getenv("NO_UNICODE") is None and not dumb)

        text = self.format(use_color=use_color, use_unicode=use_unicode)
        if text:
            print(text, file=stream)
