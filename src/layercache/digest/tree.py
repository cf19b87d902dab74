"""Content hashing of a build context: one digest per regular file."""

from __future__ import annotations

import hashlib
import os
import stat
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from layercache.errors import HashingError, MissingInputError, MissingRootError, ValidationError

HASH_ALGORITHM = "sha256"
DIGEST_HEX_LENGTH = 64


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A file found while walking the context; ``path`` is its identity."""

    path: str
    source: Path


@dataclass(frozen=True, slots=True)
class FileDigest:
    path: str
    digest: str

    def line(self) -> str:
        """Render in ``sha256sum`` output format: ``<hex>  <path>``."""
        if "\\" in self.path or "\n" in self.path:
            escaped = self.path.replace("\\", "\\\\").replace("\n", "\\n")
            return f"\\{self.digest}  {escaped}"
        return f"{self.digest}  {self.path}"


class DigestSet:
    """Unordered accumulation of file digests from one hashing pass.

    Insertion is lock-guarded so a parallel walk may add from worker threads.
    Once frozen (aggregation has begun) the set rejects further additions.
    """

    __slots__ = ("_digests", "_frozen", "_lock")

    def __init__(self, digests: Iterable[FileDigest] = ()) -> None:
        self._digests: list[FileDigest] = []
        self._frozen = False
        self._lock = threading.Lock()
        for digest in digests:
            self.add(digest)

    def add(self, digest: FileDigest) -> None:
        with self._lock:
            if self._frozen:
                raise ValidationError(
                    "Digest set is frozen; aggregation has already begun.",
                    context={"operation": "digest_set_add", "path": digest.path},
                )
            self._digests.append(digest)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def paths(self) -> set[str]:
        return {digest.path for digest in self._digests}

    def __iter__(self) -> Iterator[FileDigest]:
        return iter(list(self._digests))

    def __len__(self) -> int:
        return len(self._digests)

    def __contains__(self, item: object) -> bool:
        return item in self._digests


def hash_tree(
    root: str | Path,
    additional_files: Iterable[str | Path] = (),
    *,
    context: str | Path | None = None,
    workers: int = 1,
) -> DigestSet:
    """Hash every regular file under *root* plus each of *additional_files*.

    Relative paths are resolved against *context* (the current directory by
    default) and file identities are rendered relative to it. All inputs are
    validated before any file is read.
    """
    if workers < 1:
        raise ValidationError(
            "hash_tree() requires at least one worker.",
            context={"operation": "hash_tree", "workers": str(workers)},
        )
    base = Path(context).absolute() if context is not None else Path.cwd()
    root_path = _resolve(root, base)
    if not root_path.is_dir():
        raise MissingRootError(
            f"Build context root does not exist: {root}",
            hint="Check the root directory path relative to the build context.",
            context={"operation": "hash_tree", "path": str(root_path)},
        )
    _identity(root_path, base)

    entries: list[FileEntry] = []
    for item in additional_files:
        path = _resolve(item, base)
        if not path.is_file():
            raise MissingInputError(
                f"Additional input file does not exist: {item}",
                hint="Every declared additional file must be present before hashing.",
                context={"operation": "hash_tree", "path": str(path)},
            )
        entries.append(FileEntry(path=_identity(path, base), source=path))
    entries.extend(_walk_files(root_path, base))

    digests = DigestSet()
    if workers == 1:
        for entry in entries:
            digests.add(hash_entry(entry))
        return digests

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_hash_into, digests, entry) for entry in entries]
        for future in futures:
            future.result()
    return digests


def hash_entry(entry: FileEntry) -> FileDigest:
    return FileDigest(path=entry.path, digest=hash_file(entry.source))


def hash_file(path: Path) -> str:
    try:
        with path.open("rb") as handle:
            return hashlib.file_digest(handle, HASH_ALGORITHM).hexdigest()
    except OSError as exc:
        raise HashingError(
            f"Unable to read file for hashing: {path}",
            hint=exc.strerror,
            context={"operation": "hash_file", "path": str(path)},
        ) from exc


def _hash_into(digests: DigestSet, entry: FileEntry) -> None:
    digests.add(hash_entry(entry))


def _walk_files(root: Path, base: Path) -> Iterator[FileEntry]:
    # Regular files only: symlinks, sockets and fifos never contribute.
    for current, _dirs, files in os.walk(root, followlinks=False):
        for name in files:
            path = Path(current) / name
            try:
                mode = path.lstat().st_mode
            except OSError as exc:
                raise HashingError(
                    f"Unable to stat file: {path}",
                    context={"operation": "hash_tree", "path": str(path)},
                ) from exc
            if stat.S_ISREG(mode):
                yield FileEntry(path=_identity(path, base), source=path)


def _resolve(path: str | Path, base: Path) -> Path:
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return base / candidate


def _identity(path: Path, base: Path) -> str:
    # Host-specific absolute paths must never reach a digest line.
    try:
        return path.relative_to(base).as_posix()
    except ValueError as exc:
        raise ValidationError(
            f"Input lies outside the build context: {path}",
            hint="Pass paths inside the context directory, or widen the context.",
            context={"operation": "hash_tree", "path": str(path), "context": str(base)},
        ) from exc
