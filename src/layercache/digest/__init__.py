"""Deterministic build-context digests."""

from .aggregate import aggregate_digest, canonical_lines, derive_digest
from .manifest import DigestManifest, ManifestChange, ManifestComparison
from .tree import DigestSet, FileDigest, FileEntry, hash_file, hash_tree

__all__ = [
    "DigestManifest",
    "DigestSet",
    "FileDigest",
    "FileEntry",
    "ManifestChange",
    "ManifestComparison",
    "aggregate_digest",
    "canonical_lines",
    "derive_digest",
    "hash_file",
    "hash_tree",
]
