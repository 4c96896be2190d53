"""sumgo.toml loading and validation."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from sumgo.semantics.typesys import TAG_TYPE_CAPACITY

CONFIG_NAME = "sumgo.toml"

NON_EXHAUSTIVE_MODES = ("panic", "error")

_KNOWN_KEYS = {
    "match": {"guard_keywords", "max_nesting_depth", "non_exhaustive"},
    "codegen": {"indent", "tag_type", "helpers", "markers"},
    "sourcemaps": {"enabled"},
}


class ConfigError(Exception):
    pass


@dataclass
class MatchConfig:
    guard_keywords: List[str] = field(default_factory=lambda: ["where", "if"])
    max_nesting_depth: int = 2
    # "panic": values no guard accepts panic at runtime
    # "error": such guard groups are rejected at compile time
    non_exhaustive: str = "panic"


@dataclass
class CodegenConfig:
    indent: str = "\t"
    tag_type: str = "uint8"
    helpers: bool = True
    markers: bool = True


@dataclass
class SourceMapConfig:
    enabled: bool = True


@dataclass
class SumgoConfig:
    match: MatchConfig = field(default_factory=MatchConfig)
    codegen: CodegenConfig = field(default_factory=CodegenConfig)
    sourcemaps: SourceMapConfig = field(default_factory=SourceMapConfig)
    path: Optional[Path] = None
    unknown_keys: List[str] = field(default_factory=list)

    def validate(self) -> None:
        m, c = self.match, self.codegen
        if not m.guard_keywords or not all(isinstance(k, str) and k.isidentifier() for k in m.guard_keywords):
            raise ConfigError("[match] guard_keywords must be a non-empty list of identifiers")
        if not isinstance(m.max_nesting_depth, int) or m.max_nesting_depth < 1:
            raise ConfigError("[match] max_nesting_depth must be a positive integer")
        if m.non_exhaustive not in NON_EXHAUSTIVE_MODES:
            raise ConfigError(
                f"[match] non_exhaustive must be one of {', '.join(NON_EXHAUSTIVE_MODES)}, "
                f"got '{m.non_exhaustive}'"
            )
        if c.tag_type not in TAG_TYPE_CAPACITY:
            raise ConfigError(
                f"[codegen] tag_type must be one of {', '.join(TAG_TYPE_CAPACITY)}, got '{c.tag_type}'"
            )
        if not isinstance(c.indent, str) or c.indent.strip():
            raise ConfigError("[codegen] indent must be whitespace")


def find_config(directory: Path) -> Optional[Path]:
    """sumgo.toml in `directory`, if there is one."""
    candidate = directory / CONFIG_NAME
    return candidate if candidate.is_file() else None


def load_config(path: Path | None = None) -> SumgoConfig:
    """Load and validate a config file. No path means defaults."""
    if path is None:
        return SumgoConfig()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e.strerror}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(e)) from e
    return _parse_config(data, path)


def load_config_from_string(text: str) -> SumgoConfig:
    """Load config from a TOML string (tests, embedded configs)."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(e)) from e
    return _parse_config(data, None)


def _parse_config(data: dict, path: Optional[Path]) -> SumgoConfig:
    unknown: List[str] = []
    for section, values in data.items():
        if section not in _KNOWN_KEYS:
            unknown.append(section)
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"[{section}] must be a table")
        unknown += [f"{section}.{k}" for k in values if k not in _KNOWN_KEYS[section]]

    m = data.get("match", {})
    c = data.get("codegen", {})
    s = data.get("sourcemaps", {})
    if not isinstance(m.get("guard_keywords", []), list):
        raise ConfigError("[match] guard_keywords must be a list")
    defaults_m, defaults_c = MatchConfig(), CodegenConfig()
    config = SumgoConfig(
        match=MatchConfig(
            guard_keywords=list(m.get("guard_keywords", defaults_m.guard_keywords)),
            max_nesting_depth=m.get("max_nesting_depth", defaults_m.max_nesting_depth),
            non_exhaustive=m.get("non_exhaustive", defaults_m.non_exhaustive),
        ),
        codegen=CodegenConfig(
            indent=c.get("indent", defaults_c.indent),
            tag_type=c.get("tag_type", defaults_c.tag_type),
            helpers=bool(c.get("helpers", defaults_c.helpers)),
            markers=bool(c.get("markers", defaults_c.markers)),
        ),
        sourcemaps=SourceMapConfig(enabled=bool(s.get("enabled", True))),
        path=path,
        unknown_keys=unknown,
    )
    config.validate()
    return config
