# backend/sourcemap.py
"""Line-level source maps from generated Go back to the .sgo source.

One Mapping per generated line that has an origin: copied lines map to the
line they were copied from, lowered match code to the arm (pattern, guard or
body) it came from, and generated declarations to the enum's name.
"""
from __future__ import annotations
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

SOURCEMAP_VERSION = 1


@dataclass(frozen=True)
class Mapping:
    generated_line: int
    generated_column: int
    original_line: int
    original_column: int
    length: int = 0
    name: Optional[str] = None


@dataclass
class SourceMap:
    source: str
    file: str
    mappings: List[Mapping] = field(default_factory=list)

    def lookup(self, generated_line: int) -> Optional[Mapping]:
        """Mapping for a generated line (1-based), if it has one."""
        for m in self.mappings:
            if m.generated_line == generated_line:
                return m
        return None

    def to_dict(self) -> dict:
        return {
            "version": SOURCEMAP_VERSION,
            "file": self.file,
            "source": self.source,
            "mappings": [asdict(m) for m in self.mappings],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def write(self, path: Path) -> None:
        path.write_text(self.to_json() + "\n", encoding="utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> "SourceMap":
        if data.get("version") != SOURCEMAP_VERSION:
            raise ValueError(f"unsupported source map version: {data.get('version')!r}")
        return cls(
            source=data["source"],
            file=data["file"],
            mappings=[Mapping(**m) for m in data.get("mappings", [])],
        )
