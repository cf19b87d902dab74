"""Protocol for container build engines."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class BuildRequest:
    context: Path
    build_file: Path
    platforms: tuple[str, ...]
    cache_from: Path
    cache_to: Path


@dataclass(frozen=True, slots=True)
class BuildResult:
    ok: bool
    returncode: int = 0
    stderr: str = ""


class BuildEngine(Protocol):
    name: str

    def build(self, request: BuildRequest) -> BuildResult:
        """Build the image, reading cache from ``cache_from`` and exporting to ``cache_to``."""
