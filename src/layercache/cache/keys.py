"""Cache key derivation."""

from __future__ import annotations

import re
from dataclasses import dataclass

from layercache.errors import ValidationError

DEFAULT_PREFIX = "cache-buildx-"

DIGEST_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class CacheKeyBuilder:
    """Build flat ``prefix + digest`` keys.

    The prefix alone is only a restore hint: a prefix hit seeds a warm cache
    but must never be taken as a reason to skip a build.
    """

    prefix: str = DEFAULT_PREFIX

    def __post_init__(self) -> None:
        if not self.prefix:
            raise ValidationError(
                "Cache key prefix must not be empty.",
                hint="Use a stable prefix such as 'cache-buildx-'.",
            )

    def build(self, digest: str) -> str:
        if not DIGEST_PATTERN.fullmatch(digest):
            raise ValidationError(
                "Cache key digest must be a 64-character lowercase hex string.",
                context={"operation": "cache_key", "digest": digest},
            )
        return f"{self.prefix}{digest}"

    def prefix_only(self) -> str:
        return self.prefix

    def is_exact(self, key: str) -> bool:
        """Return whether *key* is a full key built by this builder."""
        return key.startswith(self.prefix) and bool(
            DIGEST_PATTERN.fullmatch(key[len(self.prefix) :])
        )
