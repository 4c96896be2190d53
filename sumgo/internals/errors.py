# internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sumgo.internals.report import Span, Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    GENERAL   = "general"
    ENUM      = "enum"
    GENERIC   = "generic"
    PATTERN   = "pattern"
    MATCH     = "match"
    CONFIG    = "config"
    INTERNAL  = "internal"


class ErrorKind(str, Enum):
    """User-facing error taxonomy. Every catalog entry belongs to one kind."""
    DUPLICATE_ENUM_NAME        = "DuplicateEnumName"
    DUPLICATE_VARIANT          = "DuplicateVariant"
    FIELD_NAME_COLLISION       = "FieldNameCollision"
    MALFORMED_ENUM             = "MalformedEnum"
    GENERIC_ARITY              = "GenericArity"
    INSTANTIATION_DEPTH        = "InstantiationDepth"
    NO_ARMS_FOUND              = "NoArmsFound"
    MALFORMED_ARM              = "MalformedArm"
    UNKNOWN_VARIANT            = "UnknownVariant"
    UNKNOWN_ENUM               = "UnknownEnum"
    AMBIGUOUS_SCRUTINEE        = "AmbiguousScrutinee"
    PATTERN_ARITY              = "PatternArity"
    UNBALANCED_DELIMITERS      = "UnbalancedDelimiters"
    EXCESSIVE_NESTING_DEPTH    = "ExcessiveNestingDepth"
    NON_EXHAUSTIVE_GUARD_GROUP = "NonExhaustiveGuardGroup"
    CONFIG                     = "Config"
    INTERNAL                   = "Internal"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    category: Category = Category.GENERAL
    kind: ErrorKind = ErrorKind.INTERNAL
    subject_key: str = ""
    doc: str = ""


REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)


class CompileError(Exception):
    """A user-facing error detected while compiling one enum or one match.

    Raised at the point of detection and caught at the item boundary in the
    pipeline, where it is emitted into the unit's reporter. This keeps errors
    per-item: one bad match never stops the others from compiling.
    """

    def __init__(self, message: ErrorMessage, span: Optional[Span] = None, **params) -> None:
        self.message = message
        self.span = span
        self.params = params
        super().__init__(f"{message.code}: {_fmt(message.code, **params)}")

    @property
    def kind(self) -> ErrorKind:
        return self.message.kind

    @property
    def subject(self) -> Optional[str]:
        value = self.params.get(self.message.subject_key)
        return None if value is None else str(value)

    def emit(self, r: Reporter) -> None:
        emit(r, self.message, self.span, **self.params)


def emit(r: Reporter, em: ErrorMessage, span: Optional[Span], **kwargs) -> None:
    text = _fmt(em.code, **kwargs)
    subject = kwargs.get(em.subject_key)
    subject = None if subject is None else str(subject)
    if em.severity == Severity.ERROR:
        r.error(em.code, text, span, error_kind=em.kind.value, subject=subject)
    else:
        r.warn(em.code, text, span, error_kind=em.kind.value, subject=subject)

def raise_internal_error(code: str, **kwargs) -> None:
    """Raise a RuntimeError for internal compiler errors.

    Internal errors (IE codes) indicate compiler bugs, not user code issues,
    such as draining a declaration registry twice.

    Args:
        code: Error code (e.g., "IE0001")
        **kwargs: Format parameters for the error message

    Raises:
        RuntimeError: Always raises with formatted error message
    """
    text = _fmt(code, **kwargs)
    raise RuntimeError(f"{code}: {text}")


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Internal errors (compiler bugs) - IE0xxx range
_add(ErrorMessage("IE0001", Severity.ERROR,
    "declaration registry already drained; cannot {action}",
    Category.INTERNAL, ErrorKind.INTERNAL,
    doc="Discovery and injection are two phases; nothing may be discovered after the drain."))

_add(ErrorMessage("IE0002", Severity.ERROR,
    "unknown decision node '{node}'",
    Category.INTERNAL, ErrorKind.INTERNAL,
    doc="The Go emitter met a node type it cannot render."))

_add(ErrorMessage("IE0003", Severity.ERROR,
    "no tagged union for '{name}' after discovery",
    Category.INTERNAL, ErrorKind.INTERNAL,
    doc="A lookup happened for an instantiation that was never discovered."))

_add(ErrorMessage("IE0004", Severity.ERROR,
    "unexpected pattern node '{node}' while resolving '{text}'",
    Category.INTERNAL, ErrorKind.INTERNAL,
    doc="The pattern resolver met a parsed pattern it has no rule for."))

# Enum declarations - SG1xxx range
_add(ErrorMessage("SG1001", Severity.ERROR,
    "enum '{name}' is already declared",
    Category.ENUM, ErrorKind.DUPLICATE_ENUM_NAME, "name",
    "Enum names must be unique within a compilation unit."))

_add(ErrorMessage("SG1002", Severity.ERROR,
    "duplicate variant '{variant}' in enum '{enum}'",
    Category.ENUM, ErrorKind.DUPLICATE_VARIANT, "variant",
    "Variant names are case-sensitive and must be unique within one enum."))

_add(ErrorMessage("SG1003", Severity.ERROR,
    "storage slot names collide in enum '{enum}': {names}",
    Category.ENUM, ErrorKind.FIELD_NAME_COLLISION, "names",
    "Two payload fields map to the same slot name even after falling back to numeric names."))

_add(ErrorMessage("SG1004", Severity.ERROR,
    "duplicate field '{field}' in variant '{variant}' of enum '{enum}'",
    Category.ENUM, ErrorKind.FIELD_NAME_COLLISION, "field",
    "Field names of a struct variant must be unique."))

_add(ErrorMessage("SG1005", Severity.ERROR,
    "malformed enum declaration: {reason}",
    Category.ENUM, ErrorKind.MALFORMED_ENUM, "reason",
    "The enum body could not be parsed."))

_add(ErrorMessage("SG1006", Severity.ERROR,
    "enum '{enum}' has {count} variants, more than tag type '{tag_type}' can hold",
    Category.ENUM, ErrorKind.MALFORMED_ENUM, "enum",
    "Raise codegen.tag_type in sumgo.toml or split the enum."))

_add(ErrorMessage("SG1007", Severity.ERROR,
    "duplicate type parameter '{param}' in enum '{enum}'",
    Category.ENUM, ErrorKind.MALFORMED_ENUM, "param",
    "Type parameter names must be unique."))

# Generic instantiation - SG15xx range
_add(ErrorMessage("SG1501", Severity.ERROR,
    "enum '{enum}' expects {expected} type argument(s), got {got}",
    Category.GENERIC, ErrorKind.GENERIC_ARITY, "enum",
    "A generic enum reference must supply one type argument per type parameter."))

_add(ErrorMessage("SG1502", Severity.ERROR,
    "enum '{enum}' is not generic",
    Category.GENERIC, ErrorKind.GENERIC_ARITY, "enum",
    "Type arguments were supplied to an enum without type parameters."))

_add(ErrorMessage("SG1503", Severity.ERROR,
    "instantiating '{name}' nests generic enums more than {limit} levels deep",
    Category.GENERIC, ErrorKind.INSTANTIATION_DEPTH, "name",
    "A generic enum that refers to a growing instantiation of itself never terminates."))

# Patterns and matches - SG2xxx range
_add(ErrorMessage("SG2001", Severity.ERROR,
    "match has no arms",
    Category.MATCH, ErrorKind.NO_ARMS_FOUND, "",
    "The arms region parsed to zero arms."))

_add(ErrorMessage("SG2002", Severity.ERROR,
    "malformed match arm '{text}': {reason}",
    Category.MATCH, ErrorKind.MALFORMED_ARM, "text",
    "Arms have the form `pattern [where|if guard] => body`."))

_add(ErrorMessage("SG2003", Severity.ERROR,
    "unbalanced delimiters in {what} '{text}'",
    Category.MATCH, ErrorKind.UNBALANCED_DELIMITERS, "text",
    "Brackets, braces, parentheses or a string literal are not closed."))

_add(ErrorMessage("SG2004", Severity.ERROR,
    "invalid pattern '{text}'",
    Category.PATTERN, ErrorKind.MALFORMED_ARM, "text",
    "The pattern text does not follow the pattern grammar."))

_add(ErrorMessage("SG2005", Severity.ERROR,
    "enum '{enum}' has no variant '{variant}'",
    Category.PATTERN, ErrorKind.UNKNOWN_VARIANT, "variant",
    "The pattern names a variant absent from the enum being matched."))

_add(ErrorMessage("SG2006", Severity.ERROR,
    "no enum defines variant(s) {variants}",
    Category.PATTERN, ErrorKind.UNKNOWN_ENUM, "variants",
    "The matched enum could not be determined from the patterns."))

_add(ErrorMessage("SG2007", Severity.ERROR,
    "field of type '{type}' is not an enum; pattern '{text}' cannot match it",
    Category.PATTERN, ErrorKind.UNKNOWN_ENUM, "text",
    "Nested variant patterns need a payload whose type is a sum type."))

_add(ErrorMessage("SG2008", Severity.ERROR,
    "ambiguous scrutinee: variants {variants} exist in {candidates}",
    Category.MATCH, ErrorKind.AMBIGUOUS_SCRUTINEE, "variants",
    "Declare the scrutinee with an explicit enum type or qualify a pattern (Enum.Variant)."))

_add(ErrorMessage("SG2009", Severity.ERROR,
    "variant '{variant}' carries {expected} field(s), pattern gives {got}",
    Category.PATTERN, ErrorKind.PATTERN_ARITY, "variant",
    "A variant pattern needs one sub-pattern per payload field."))

_add(ErrorMessage("SG2010", Severity.ERROR,
    "variant '{variant}' has no field '{field}'",
    Category.PATTERN, ErrorKind.PATTERN_ARITY, "field",
    "Brace patterns may only name declared fields of a struct variant."))

_add(ErrorMessage("SG2011", Severity.ERROR,
    "match has {expected} subject(s), pattern '{text}' has {got}",
    Category.PATTERN, ErrorKind.PATTERN_ARITY, "text",
    "Tuple patterns need one component per scrutinee component."))

_add(ErrorMessage("SG2012", Severity.ERROR,
    "pattern '{text}' nests variants {depth} levels deep (limit {limit})",
    Category.PATTERN, ErrorKind.EXCESSIVE_NESTING_DEPTH, "text",
    "Raise match.max_nesting_depth in sumgo.toml to allow deeper patterns."))

_add(ErrorMessage("SG2013", Severity.ERROR,
    "every arm for {where} has a guard and no arm handles the remaining values",
    Category.MATCH, ErrorKind.NON_EXHAUSTIVE_GUARD_GROUP, "where",
    "Reported only when match.non_exhaustive = \"error\"; otherwise such values panic at runtime."))

_add(ErrorMessage("SG2014", Severity.ERROR,
    "binding '{name}' appears twice in pattern '{text}'",
    Category.PATTERN, ErrorKind.MALFORMED_ARM, "name",
    "A name may be bound only once per arm."))

# Configuration - SG3xxx range
_add(ErrorMessage("SG3001", Severity.ERROR,
    "invalid configuration in '{path}': {reason}",
    Category.CONFIG, ErrorKind.CONFIG, "path",
    "sumgo.toml could not be loaded."))

_add(ErrorMessage("SGW3002", Severity.WARNING,
    "unknown configuration key '{key}' in '{path}'",
    Category.CONFIG, ErrorKind.CONFIG, "key",
    "The key is ignored."))
