"""Digest manifest export and comparison helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import cbor2

from layercache.digest.aggregate import aggregate_digest
from layercache.digest.tree import HASH_ALGORITHM, DigestSet

ChangeReason = Literal["added", "removed", "changed"]


@dataclass(frozen=True, slots=True)
class ManifestChange:
    path: str
    reason: ChangeReason
    expected: str | None
    actual: str | None


@dataclass(frozen=True, slots=True)
class ManifestComparison:
    ok: bool
    changes: tuple[ManifestChange, ...] = ()


@dataclass(frozen=True, slots=True)
class DigestManifest:
    """Record of which files contributed to an aggregate digest."""

    aggregate: str
    files: dict[str, str] = field(default_factory=dict)
    algorithm: str = HASH_ALGORITHM
    schema_version: int = 1

    @classmethod
    def from_digest_set(cls, digests: DigestSet) -> DigestManifest:
        files = {digest.path: digest.digest for digest in digests}
        return cls(aggregate=aggregate_digest(digests), files=files)

    @classmethod
    def from_json(cls, raw: str) -> DigestManifest:
        payload = json.loads(raw)
        return cls(
            aggregate=str(payload["aggregate"]),
            files={str(k): str(v) for k, v in payload["files"].items()},
            algorithm=str(payload.get("algorithm", HASH_ALGORITHM)),
            schema_version=int(payload.get("schema_version", 1)),
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def compare(self, previous: DigestManifest) -> ManifestComparison:
        """Explain how this manifest differs from *previous*."""
        changes: list[ManifestChange] = []
        for path, expected in sorted(previous.files.items()):
            actual = self.files.get(path)
            if actual is None:
                changes.append(ManifestChange(path, "removed", expected, None))
            elif actual != expected:
                changes.append(ManifestChange(path, "changed", expected, actual))
        for path, actual in sorted(self.files.items()):
            if path not in previous.files:
                changes.append(ManifestChange(path, "added", None, actual))
        return ManifestComparison(ok=not changes, changes=tuple(changes))

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "algorithm": self.algorithm,
            "aggregate": self.aggregate,
            "files": dict(sorted(self.files.items())),
        }
