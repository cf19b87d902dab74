"""Cache keys, stores, and directory replacement."""

from .archive import pack_directory, unpack_into
from .keys import DEFAULT_PREFIX, CacheKeyBuilder
from .replace import CacheReplacer, ReplaceOutcome
from .store import CacheStore, DirectoryCacheStore, StoreEntry

__all__ = [
    "DEFAULT_PREFIX",
    "CacheKeyBuilder",
    "CacheReplacer",
    "CacheStore",
    "DirectoryCacheStore",
    "ReplaceOutcome",
    "StoreEntry",
    "pack_directory",
    "unpack_into",
]
