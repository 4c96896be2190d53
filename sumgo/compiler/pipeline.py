"""Compilation pipeline: one .sgo source in, Go source and mappings out.

Phases, per compilation unit:

    1. collect      enum declarations are parsed and validated
    2. discover     every non-generic enum and every `Name<Args>` reference
                    is registered with the unit's declaration registry
    3. lower        every match site is compiled; an error in one site is
                    reported and the next site is still compiled
    4. drain        the registry hands over all declarations, once
    5. splice       enums are removed, matches replaced, generic references
                    rewritten and declarations inserted after the imports
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from sumgo.backend.go_emitter import GoLine, Origin, reindent
from sumgo.backend.matching import PatternCompiler, assign_result
from sumgo.backend.sourcemap import Mapping, SourceMap
from sumgo.compiler.config import SumgoConfig, find_config, load_config
from sumgo.compiler.extract import EnumSite, MatchSite, SourceScanner
from sumgo.internals import errors as er
from sumgo.internals.errors import CompileError
from sumgo.internals.parser import parse_enum
from sumgo.internals.report import Reporter
from sumgo.semantics.arms import parse_arms
from sumgo.semantics.ast import Arm, MatchContext, MatchExpression
from sumgo.semantics.collect import EnumCollector
from sumgo.semantics.instantiate import EnumUsage, GenericRewriter, find_generic_refs
from sumgo.semantics.name_mangling import mangle_enum_name
from sumgo.semantics.registry import Declaration
from sumgo.semantics.units import CompilationUnit

logger = logging.getLogger(__name__)

Piece = Tuple[str, Origin]


@dataclass
class CompileResult:
    code: str
    reporter: Reporter
    filename: str
    mappings: List[Mapping] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.reporter.has_errors

    @property
    def exit_code(self) -> int:
        """0 clean, 1 warnings only, 2 errors."""
        if self.reporter.has_errors:
            return 2
        return 1 if self.reporter.has_warnings else 0

    def source_map(self, generated_file: str) -> SourceMap:
        return SourceMap(source=self.filename, file=generated_file, mappings=list(self.mappings))


@dataclass
class _Edit:
    start: int
    end: int
    pieces: List[Piece] = field(default_factory=list)


class _LineBuilder:
    """Accumulate output text line by line, remembering where each line came from."""

    def __init__(self, unit: CompilationUnit) -> None:
        self.source = unit.source
        self.index = unit.index
        self.lines: List[Piece] = []
        self._cur: List[str] = []
        self._origin: Origin = None

    def _newline(self) -> None:
        self.lines.append(("".join(self._cur), self._origin))
        self._cur = []
        self._origin = None

    def add_source(self, a: int, b: int) -> None:
        pos = a
        while pos < b:
            nl = self.source.find("\n", pos, b)
            stop = b if nl < 0 else nl
            chunk = self.source[pos:stop]
            if self._origin is None and chunk.strip():
                lead = len(chunk) - len(chunk.lstrip())
                self._origin = self.index.position(pos + lead) + (None,)
            self._cur.append(chunk)
            if nl < 0:
                break
            self._newline()
            pos = nl + 1

    def add_text(self, text: str, origin: Origin = None) -> None:
        for k, piece in enumerate(text.split("\n")):
            if k:
                self._newline()
            if self._origin is None and piece.strip():
                self._origin = origin
            self._cur.append(piece)

    def add_pieces(self, pieces: List[Piece]) -> None:
        for k, (text, origin) in enumerate(pieces):
            if k:
                self._newline()
            self.add_text(text, origin)

    def finish(self) -> List[Piece]:
        self._newline()
        return self.lines


class UnitCompiler:
    def __init__(self, unit: CompilationUnit) -> None:
        self.unit = unit
        self.source = unit.source
        self.index = unit.index
        self.r = unit.reporter
        self.scanner = SourceScanner(unit.source, unit.index)
        self.compiler = PatternCompiler(unit, self._lower_body, self._rewrite_text)
        self.indent = unit.config.codegen.indent
        self.rewriter = GenericRewriter(unit.enums, self._resolve, unit.index)

    def run(self) -> CompileResult:
        enum_sites = self.collect_enums()
        self.discover(enum_sites)
        edits = self._lower_matches(enum_sites)

        declarations = self.unit.registry.drain()

        for site in enum_sites:
            start, end = self.scanner.removal_range(site)
            edits.append(_Edit(start, end))
        edits += self._declaration_edits(declarations)

        lines = self._assemble(0, len(self.source), edits)
        code = "\n".join(text for text, _ in lines)
        mappings = self._mappings(lines) if self.unit.config.sourcemaps.enabled else []
        logger.debug("%s: %d declaration(s), %d mapping(s), %d diagnostic(s)",
                     self.unit.filename, len(declarations), len(mappings), len(self.r.items))
        return CompileResult(code, self.r, self.unit.filename, mappings, declarations)

    # ---------- phases ----------

    def collect_enums(self) -> List[EnumSite]:
        sites = self.scanner.find_enums()
        decls = []
        for site in sites:
            if site.error is not None:
                site.error.emit(self.r)
                continue
            line, col = self.index.position(site.start)
            try:
                decls.append(parse_enum(self.source[site.start:site.end], line, col))
            except CompileError as e:
                e.emit(self.r)
        EnumCollector(self.r, self.unit.enums, self.unit.config.codegen.tag_type).collect(decls)
        return sites

    def discover(self, enum_sites: List[EnumSite]) -> None:
        enums = self.unit.enums
        for name in enums.order:
            info = enums.get(name)
            if info.is_generic:
                continue
            try:
                self.unit.registry.discover(EnumUsage(name, (), info.decl.name_span))
            except CompileError as e:
                e.emit(self.r)

        for a, b in self._code_regions(enum_sites):
            for ref in find_generic_refs(self.source, enums, a, b):
                try:
                    self.rewriter.replacement(ref)
                except CompileError as e:
                    e.emit(self.r)
        logger.debug("discovered %d instantiation(s)", len(self.unit.registry))

    def _lower_matches(self, enum_sites: List[EnumSite]) -> List[_Edit]:
        edits: List[_Edit] = []
        for site in self.scanner.find_matches(0, len(self.source), exclude=enum_sites):
            try:
                edits += self._site_edits(site, {})
            except CompileError as e:
                e.emit(self.r)
        return edits

    def _code_regions(self, enum_sites: List[EnumSite]) -> List[Tuple[int, int]]:
        regions, cursor = [], 0
        for site in enum_sites:
            regions.append((cursor, site.start))
            cursor = site.end
        regions.append((cursor, len(self.source)))
        return regions

    # ---------- generic references ----------

    def _resolve(self, usage: EnumUsage) -> str:
        if self.unit.registry.drained:
            return mangle_enum_name(usage.name, usage.type_args)
        return self.unit.registry.discover(usage).name

    def _rewrite_text(self, text: str) -> str:
        return GenericRewriter(self.unit.enums, self._resolve).rewrite(text)

    # ---------- match sites ----------

    def match_expression(self, site: MatchSite, context: MatchContext, bound: dict) -> MatchExpression:
        if site.error is not None:
            raise site.error
        arms = parse_arms(self.source, site.arms_start, site.arms_end, self.index,
                          self.unit.config.match.guard_keywords)
        for arm in arms:
            if arm.guard is not None:
                arm.guard = self._rewrite_text(arm.guard)
        return MatchExpression(
            scrutinee=[self._rewrite_text(s) for s in site.scrutinee],
            arms=arms,
            context=context,
            is_tuple=site.is_tuple,
            span=self.index.span(site.start, site.end),
            result_type=self._rewrite_text(site.result_type) if site.result_type else None,
            type_hints=[self._hint(s, site.start, bound) for s in site.scrutinee],
        )

    def _hint(self, scrutinee: str, before: int, bound: dict) -> Optional[str]:
        name = scrutinee.strip()
        if name in bound:
            return bound[name]
        hint = self.scanner.type_hint(name, before)
        if hint is None:
            return None
        try:
            text = "".join(self._rewrite_text(hint.text).split())
        except CompileError:
            # a malformed reference; discovery reports it
            return None
        if hint.constructor:
            union = self.unit.union_for_constructor(text.replace("::", "").replace(".", ""))
            return union.name if union is not None else None
        return text.lstrip("*")

    def _site_edits(self, site: MatchSite, bound: dict) -> List[_Edit]:
        match = self.match_expression(site, site.context, bound)
        lowering = self.compiler.compile(match)

        if site.context is MatchContext.STATEMENT:
            base = self._indentation(site.start)
            return [_Edit(site.start, site.end, self._pieces(lowering.lines, base, inline=True))]

        base = self._indentation(site.statement_start)
        prelude = self._pieces(lowering.lines, base, inline=False)
        return [
            _Edit(site.statement_start, site.statement_start, prelude),
            _Edit(site.start, site.end, [(lowering.result_var, None)]),
        ]

    def _lower_body(self, arm: Arm, result_var: Optional[str], bound: dict) -> List[GoLine]:
        """Body lines for one arm, with matches nested in the body lowered too."""
        if not arm.is_block:
            site = self.scanner.match_spanning(arm.body_start, arm.body_end)
            if site is not None:
                # the whole body is a match: it produces the outer result directly
                context = MatchContext.EXPRESSION if result_var else MatchContext.STATEMENT
                match = self.match_expression(site, context, bound)
                return self.compiler.compile(match, result_var=result_var).lines

        edits: List[_Edit] = []
        for site in self.scanner.find_matches(arm.body_start, arm.body_end):
            edits += self._site_edits(site, bound)
        pieces = self._assemble(arm.body_start, arm.body_end, edits)
        lines = reindent("\n".join(text for text, _ in pieces), [origin for _, origin in pieces])
        if result_var is not None:
            lines = assign_result(lines, result_var)
        return lines

    # ---------- splicing ----------

    def _indentation(self, offset: int) -> str:
        start = self.index.line_start(offset)
        line = self.source[start:self.index.line_end(offset)]
        return line[:len(line) - len(line.lstrip())]

    def _pieces(self, lines: List[GoLine], base: str, inline: bool) -> List[Piece]:
        """Rendered lines. An inline first line continues the current output
        line; otherwise a trailing empty piece lets the source resume on a fresh line."""
        pieces: List[Piece] = []
        for k, l in enumerate(lines):
            if l.verbatim or not l.text:
                text = l.text
            else:
                text = ("" if inline and k == 0 else base) + self.indent * l.depth + l.text
            origin = (l.span.line, l.span.col, l.name) if l.span is not None else None
            pieces.append((text, origin))
        if not inline:
            pieces.append(("", None))
        return pieces

    def _declaration_edits(self, declarations: List[Declaration]) -> List[_Edit]:
        if not declarations:
            return []
        offset = self.scanner.declarations_offset()
        pieces: List[Piece] = [("", None)] if offset > 0 else []
        for k, decl in enumerate(declarations):
            if k:
                pieces.append(("", None))
            origin = (decl.origin.line, decl.origin.col, decl.name) if decl.origin else None
            pieces += [(line, origin if line else None) for line in decl.text.split("\n")]
        pieces.append(("", None))
        if offset == 0:
            pieces.append(("", None))
        return [_Edit(offset, offset, pieces)]

    def _assemble(self, start: int, end: int, edits: List[_Edit]) -> List[Piece]:
        builder = _LineBuilder(self.unit)
        cursor = start
        for edit in sorted(edits, key=lambda e: e.start):
            if edit.start > cursor:
                self._copy(builder, cursor, edit.start)
            builder.add_pieces(edit.pieces)
            cursor = max(cursor, edit.end)
        if cursor < end:
            self._copy(builder, cursor, end)
        return builder.finish()

    def _copy(self, builder: _LineBuilder, a: int, b: int) -> None:
        """Copy source text, rewriting generic enum references on the way."""
        cursor = a
        for ref in find_generic_refs(self.source, self.unit.enums, a, b):
            builder.add_source(cursor, ref.start)
            try:
                text = self.rewriter.replacement(ref)
            except CompileError:
                # already reported by the discovery pass
                text = self.source[ref.start:ref.end]
            builder.add_text(text)
            cursor = ref.end
        builder.add_source(cursor, b)

    @staticmethod
    def _mappings(lines: List[Piece]) -> List[Mapping]:
        mappings = []
        for i, (text, origin) in enumerate(lines, 1):
            if origin is None or not text.strip():
                continue
            lead = len(text) - len(text.lstrip())
            line, col, name = origin
            mappings.append(Mapping(i, lead + 1, line, col, len(text.strip()), name))
        return mappings


def compile_source(source: str, filename: str = "<input>",
                   config: Optional[SumgoConfig] = None) -> CompileResult:
    """Compile one .sgo source text in a fresh compilation unit."""
    config = config or SumgoConfig()
    unit = CompilationUnit.start(source, filename, config)
    for key in config.unknown_keys:
        er.emit(unit.reporter, er.ERR.SGW3002, None, key=key, path=str(config.path or "<config>"))
    return UnitCompiler(unit).run()


def compile_file(path: Path, config: Optional[SumgoConfig] = None) -> CompileResult:
    """Compile a file; without an explicit config, sumgo.toml next to it is used.

    Raises:
        OSError: the source cannot be read.
        ConfigError: the config file is invalid.
    """
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    if config is None:
        config = load_config(find_config(path.parent))
    return compile_source(source, str(path), config)
