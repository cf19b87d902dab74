"""Order-independent reduction of a digest set to one aggregate digest."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path

from layercache.digest.tree import HASH_ALGORITHM, DigestSet, FileDigest, hash_tree
from layercache.errors import ValidationError


def canonical_lines(digests: Iterable[FileDigest]) -> list[str]:
    """Return digest lines sorted by byte value, never by path or input order."""
    return sorted((digest.line() for digest in digests), key=_sort_key)


def aggregate_digest(digests: DigestSet | Iterable[FileDigest]) -> str:
    if isinstance(digests, DigestSet):
        digests.freeze()
    lines = canonical_lines(digests)
    if not lines:
        raise ValidationError(
            "Cannot aggregate an empty digest set.",
            hint="The build context must contain at least one file.",
            context={"operation": "aggregate_digest"},
        )
    payload = "".join(f"{line}\n" for line in lines)
    return hashlib.new(HASH_ALGORITHM, _encode(payload)).hexdigest()


def derive_digest(
    root: str | Path,
    additional_files: Iterable[str | Path] = (),
    *,
    context: str | Path | None = None,
    workers: int = 1,
) -> str:
    """Hash the build context and reduce it to a single aggregate digest."""
    return aggregate_digest(
        hash_tree(root, additional_files, context=context, workers=workers),
    )


def _sort_key(line: str) -> bytes:
    return _encode(line)


def _encode(text: str) -> bytes:
    # surrogateescape round-trips undecodable filename bytes.
    return text.encode("utf-8", "surrogateescape")
