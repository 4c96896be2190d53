"""Lark parser setup and AST construction for enum bodies and patterns."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Transformer, UnexpectedInput, v_args

from sumgo.internals import errors as er
from sumgo.internals.errors import CompileError
from sumgo.internals.report import Span, shift_span, span_of
from sumgo.semantics.ast import (
    BindingPattern,
    EnumDecl,
    FieldDecl,
    Pattern,
    TuplePattern,
    VariantDecl,
    VariantPattern,
    WildcardPattern,
)

GRAMMAR_PATH = Path(__file__).parent.parent / "grammar.lark"


@lru_cache(maxsize=1)
def get_parser() -> Lark:
    return Lark.open(
        str(GRAMMAR_PATH),
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=False,
        start=["enum_decl", "pattern", "type"],
    )


class _TypeParams(list):
    pass


class _Variants(list):
    pass


class _FuncResult(str):
    pass


@v_args(meta=True)
class ASTBuilder(Transformer):
    """Turn enum/pattern/type parse trees into AST nodes and type strings.

    Snippets are parsed in isolation; `base_line`/`base_col` are where the
    snippet starts in its file, so every span points into the real source.
    """

    def __init__(self, text: str, base_line: int = 1, base_col: int = 1) -> None:
        super().__init__()
        self.text = text
        self.base_line = base_line
        self.base_col = base_col

    def _span(self, meta) -> Optional[Span]:
        if getattr(meta, "empty", True):
            return None
        return shift_span(Span(meta.line, meta.column, meta.end_line, meta.end_column),
                          self.base_line, self.base_col)

    def _tok_span(self, tok: Token) -> Optional[Span]:
        return span_of(tok, self.base_line, self.base_col)

    def _src(self, meta) -> str:
        if getattr(meta, "empty", True):
            return ""
        return self.text[meta.start_pos:meta.end_pos]

    # ---------- enums ----------

    def enum_decl(self, meta, children):
        name_tok = children[0]
        params: List[str] = []
        variants: List[VariantDecl] = []
        for c in children[1:]:
            if isinstance(c, _TypeParams):
                params = list(c)
            elif isinstance(c, _Variants):
                variants = list(c)
        return EnumDecl(
            name=str(name_tok),
            type_params=params,
            variants=variants,
            span=self._span(meta),
            name_span=self._tok_span(name_tok),
        )

    def type_params(self, meta, children):
        return _TypeParams(str(t) for t in children)

    def variant_list(self, meta, children):
        return _Variants(children)

    def unit_variant(self, meta, children):
        return VariantDecl(str(children[0]), None, self._span(meta))

    def tuple_variant(self, meta, children):
        name, types = children[0], children[1:]
        fields = [FieldDecl(t) for t in types]
        return VariantDecl(str(name), fields, self._span(meta))

    def struct_variant(self, meta, children):
        return VariantDecl(str(children[0]), list(children[1:]), self._span(meta))

    def field(self, meta, children):
        name, type_ = children
        return FieldDecl(type_, str(name), self._span(meta))

    # ---------- types ----------

    def pointer_type(self, meta, children):
        return f"*{children[0]}"

    def slice_type(self, meta, children):
        return f"[]{children[0]}"

    def array_type(self, meta, children):
        size, elem = children
        return f"[{size}]{elem}"

    def map_type(self, meta, children):
        key, value = children
        return f"map[{key}]{value}"

    def chan_type(self, meta, children):
        return f"chan {children[0]}"

    def func_type(self, meta, children):
        params = [c for c in children if not isinstance(c, _FuncResult)]
        results = [c for c in children if isinstance(c, _FuncResult)]
        text = f"func({', '.join(params)})"
        if results:
            text += f" {results[0]}"
        return text

    def func_result(self, meta, children):
        if len(children) == 1 and not self._src(meta).lstrip().startswith("("):
            return _FuncResult(children[0])
        return _FuncResult(f"({', '.join(children)})")

    def interface_type(self, meta, children):
        return "any" if self._src(meta).strip() == "any" else "interface{}"

    def named_type(self, meta, children):
        name = children[0]
        if len(children) > 1:
            return f"{name}<{', '.join(children[1])}>"
        return name

    def qualified(self, meta, children):
        return ".".join(str(t) for t in children)

    def type_args(self, meta, children):
        return list(children)

    # ---------- patterns ----------

    def path(self, meta, children) -> Tuple[Optional[str], str]:
        if len(children) == 2:
            return str(children[0]), str(children[1])
        return None, str(children[0])

    def wildcard(self, meta, children):
        return WildcardPattern(span=self._span(meta), text="_")

    def name_pattern(self, meta, children):
        qualifier, name = children[0]
        if qualifier is not None:
            return VariantPattern(variant=name, qualifier=qualifier,
                                  span=self._span(meta), text=self._src(meta))
        return BindingPattern(name=name, span=self._span(meta), text=self._src(meta))

    def variant_pattern(self, meta, children):
        qualifier, name = children[0]
        return VariantPattern(variant=name, qualifier=qualifier, args=list(children[1:]),
                              span=self._span(meta), text=self._src(meta))

    def struct_pattern(self, meta, children):
        qualifier, name = children[0]
        names = [n for n, _ in children[1:]]
        args = [p for _, p in children[1:]]
        return VariantPattern(variant=name, qualifier=qualifier, args=args, field_names=names,
                              span=self._span(meta), text=self._src(meta))

    def named_field(self, meta, children):
        name, pattern = children
        return str(name), pattern

    def short_field(self, meta, children):
        name = str(children[0])
        return name, BindingPattern(name=name, span=self._span(meta), text=name)

    def tuple_pattern(self, meta, children):
        if len(children) == 1 and not self._src(meta).rstrip().rstrip(")").rstrip().endswith(","):
            return children[0]
        return TuplePattern(items=list(children), span=self._span(meta), text=self._src(meta))


def improve_parse_error(e: UnexpectedInput) -> str:
    """Short, single-line reason for a parse failure inside a snippet."""
    token = getattr(e, "token", None)
    if token is not None and str(token):
        return f"unexpected '{token}'"
    char = getattr(e, "char", None)
    if char:
        return f"unexpected '{char}'"
    return "unexpected end of input"


def _error_span(e: UnexpectedInput, base_line: int, base_col: int) -> Optional[Span]:
    line = getattr(e, "line", None)
    col = getattr(e, "column", None)
    if line is None or col is None or line < 1:
        return None
    if line == 1:
        col += base_col - 1
    return Span(line + base_line - 1, col, line + base_line - 1, col)


def parse_enum(text: str, base_line: int = 1, base_col: int = 1) -> EnumDecl:
    """Parse one `enum Name<T> { ... }` declaration.

    Raises:
        CompileError: MalformedEnum when the text does not parse.
    """
    try:
        tree = get_parser().parse(text, start="enum_decl")
    except UnexpectedInput as e:
        raise CompileError(er.ERR.SG1005, _error_span(e, base_line, base_col),
                           reason=improve_parse_error(e)) from None
    return ASTBuilder(text, base_line, base_col).transform(tree)


def parse_pattern(text: str, base_line: int = 1, base_col: int = 1) -> Pattern:
    """Parse the pattern half of a match arm."""
    try:
        tree = get_parser().parse(text, start="pattern")
    except UnexpectedInput as e:
        span = _error_span(e, base_line, base_col) or Span(base_line, base_col, base_line, base_col)
        raise CompileError(er.ERR.SG2004, span, text=text.strip()) from None
    return ASTBuilder(text, base_line, base_col).transform(tree)


def parse_type(text: str) -> str:
    """Canonical spelling of a Go type (generic references kept as Name<Args>).

    Raises:
        lark.UnexpectedInput: when the text is not a type.
    """
    tree = get_parser().parse(text, start="type")
    result = ASTBuilder(text).transform(tree)
    return str(result)
