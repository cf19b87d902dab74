"""Key-addressed cache stores: the consumed protocol and a local adapter."""

from __future__ import annotations

import hashlib
import json
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from layercache.errors import ReproducibilityError, ValidationError

KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True, slots=True)
class StoreEntry:
    key: str
    blob: bytes


class CacheStore(Protocol):
    def get(self, key: str) -> bytes | None:
        """Return the blob stored under exactly *key*, or ``None``."""

    def get_by_prefix(self, prefix: str) -> StoreEntry | None:
        """Return the store's chosen entry among keys starting with *prefix*."""

    def put(self, key: str, blob: bytes) -> bool:
        """Upload *blob* under *key*; return whether the store accepted it."""


class DirectoryCacheStore:
    """Cache store backed by a local directory with manifest verification.

    Entries are immutable once written: a second ``put`` for the same key is
    rejected. Prefix lookups return the most recently written match.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> bytes | None:
        _validate_key(key)
        entry = self.root / key
        blob_path = entry / "blob.bin"
        manifest_path = entry / "manifest.json"
        if not blob_path.exists() or not manifest_path.exists():
            return None

        manifest = self._read_manifest(manifest_path)
        if manifest.get("key") != key:
            raise ReproducibilityError(
                "Cache manifest key mismatch.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_get", "key": key},
            )
        blob = blob_path.read_bytes()
        if manifest.get("blob_sha256") != hashlib.sha256(blob).hexdigest():
            raise ReproducibilityError(
                "Cache blob digest mismatch.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_get", "key": key},
            )
        return blob

    def get_by_prefix(self, prefix: str) -> StoreEntry | None:
        candidates = [
            (sequence, key) for key, sequence in self._sequences().items() if key.startswith(prefix)
        ]
        if not candidates:
            return None
        _, key = max(candidates)
        blob = self.get(key)
        if blob is None:
            return None
        return StoreEntry(key=key, blob=blob)

    def put(self, key: str, blob: bytes) -> bool:
        _validate_key(key)
        entry = self.root / key
        if entry.exists():
            return False

        manifest = {
            "key": key,
            "blob_sha256": hashlib.sha256(blob).hexdigest(),
            "sequence": max(self._sequences().values(), default=0) + 1,
        }
        staging = Path(tempfile.mkdtemp(prefix=".tmp-", dir=str(self.root)))
        try:
            (staging / "blob.bin").write_bytes(blob)
            (staging / "manifest.json").write_text(
                json.dumps(manifest, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            os.replace(staging, entry)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
        return True

    def keys(self) -> list[str]:
        return sorted(self._sequences())

    def _sequences(self) -> dict[str, int]:
        sequences: dict[str, int] = {}
        for entry in self.root.iterdir():
            manifest_path = entry / "manifest.json"
            if entry.name.startswith(".") or not manifest_path.exists():
                continue
            try:
                manifest = self._read_manifest(manifest_path)
            except ReproducibilityError:
                # Unreadable entries are never chosen; get() still reports them.
                continue
            sequence = manifest.get("sequence")
            sequences[entry.name] = sequence if isinstance(sequence, int) else 0
        return sequences

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ReproducibilityError(
                "Cache manifest is not valid JSON.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise ReproducibilityError(
                "Cache manifest has invalid structure.",
                hint="Invalidate the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            )
        return parsed


def _validate_key(key: str) -> None:
    if not KEY_PATTERN.fullmatch(key):
        raise ValidationError(
            "Cache key contains unsupported characters.",
            hint="Keys may contain letters, digits, '.', '_' and '-'.",
            context={"operation": "cache_store", "key": key},
        )
