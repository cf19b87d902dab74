"""Public package entrypoint for the content-keyed layer cache."""

from .cache import (
    CacheKeyBuilder,
    CacheReplacer,
    CacheStore,
    DirectoryCacheStore,
    ReplaceOutcome,
    StoreEntry,
)
from .config import CacheConfig, load_config
from .digest import (
    DigestManifest,
    DigestSet,
    FileDigest,
    aggregate_digest,
    derive_digest,
    hash_tree,
)
from .errors import (
    BuildEngineError,
    BuildFailedError,
    ColdCacheWarning,
    ConfigError,
    DeleteFailedError,
    HashingError,
    LayerCacheError,
    MissingInputError,
    MissingRootError,
    MoveFailedError,
    ReproducibilityError,
    StoreRejectedWarning,
    ValidationError,
)
from .pipeline import CachePipeline, PipelineResult, RestoreResult

__all__ = [
    "BuildEngineError",
    "BuildFailedError",
    "CacheConfig",
    "CacheKeyBuilder",
    "CachePipeline",
    "CacheReplacer",
    "CacheStore",
    "ColdCacheWarning",
    "ConfigError",
    "DeleteFailedError",
    "DigestManifest",
    "DigestSet",
    "DirectoryCacheStore",
    "FileDigest",
    "HashingError",
    "LayerCacheError",
    "MissingInputError",
    "MissingRootError",
    "MoveFailedError",
    "PipelineResult",
    "ReplaceOutcome",
    "ReproducibilityError",
    "RestoreResult",
    "StoreEntry",
    "StoreRejectedWarning",
    "ValidationError",
    "aggregate_digest",
    "derive_digest",
    "hash_tree",
    "load_config",
]
