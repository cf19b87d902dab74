"""Restore, build, replace, and save a layer cache keyed by context content."""

from __future__ import annotations

import shutil
import tarfile
import warnings
from dataclasses import dataclass, field
from pathlib import Path

from layercache.cache.archive import pack_directory, unpack_into
from layercache.cache.keys import CacheKeyBuilder
from layercache.cache.replace import CacheReplacer, ReplaceOutcome
from layercache.cache.store import CacheStore
from layercache.config import CacheConfig
from layercache.digest.aggregate import derive_digest
from layercache.engines.base import BuildEngine, BuildRequest, BuildResult
from layercache.errors import (
    BuildFailedError,
    DeleteFailedError,
    LayerCacheError,
    StoreRejectedWarning,
)
from layercache.observability import StructuredLogger


@dataclass(frozen=True, slots=True)
class RestoreResult:
    key: str | None = None
    exact: bool = False

    @property
    def hit(self) -> bool:
        return self.key is not None


@dataclass(slots=True)
class PipelineResult:
    digest: str
    cache_key: str
    cache_hit: bool = False
    restored_key: str | None = None
    built: bool = False
    replaced: bool = False
    saved: bool = False
    replace_error: LayerCacheError | None = None

    def outputs(self) -> dict[str, str]:
        return {
            "digest": self.digest,
            "cache-key": self.cache_key,
            "cache-hit": "true" if self.cache_hit else "false",
        }


@dataclass(slots=True)
class CachePipeline:
    config: CacheConfig
    store: CacheStore
    engine: BuildEngine
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    @property
    def keys(self) -> CacheKeyBuilder:
        return CacheKeyBuilder(self.config.key_prefix)

    @property
    def cache_dir(self) -> Path:
        return self.config.resolve(self.config.cache_dir)

    @property
    def fresh_cache_dir(self) -> Path:
        return self.config.resolve(self.config.fresh_cache_dir)

    def derive_key(self) -> tuple[str, str]:
        """Return ``(digest, cache_key)`` for the configured build context."""
        digest = derive_digest(
            self.config.root,
            self.config.additional_files,
            context=self.config.context_dir,
            workers=self.config.workers,
        )
        key = self.keys.build(digest)
        self.logger.log(operation="derive_key", phase="hash", message="Derived cache key", key=key)
        return digest, key

    def restore(self, key: str) -> RestoreResult:
        """Restore by exact key, falling back to the most recent prefix match.

        An unusable store entry or archive counts as a miss; the build then
        starts from whatever warmer tier remains, or cold.
        """
        try:
            blob = self.store.get(key)
        except LayerCacheError as exc:
            self._restore_failed(key, phase="exact", error=exc)
            blob = None
        if blob is not None and self._unpack(key, blob, phase="exact"):
            self.logger.log(operation="restore", phase="exact", message="Exact cache hit", key=key)
            return RestoreResult(key=key, exact=True)

        try:
            fallback = self.store.get_by_prefix(self.keys.prefix_only())
        except LayerCacheError as exc:
            self._restore_failed(key, phase="prefix", error=exc)
            fallback = None
        if fallback is not None and self._unpack(key, fallback.blob, phase="prefix"):
            self.logger.log(
                operation="restore",
                phase="prefix",
                message=f"Restored warm cache from {fallback.key}",
                key=key,
            )
            return RestoreResult(key=fallback.key, exact=False)

        self.logger.log(
            operation="restore", phase="miss", message="No cache; starting cold", key=key
        )
        return RestoreResult()

    def _unpack(self, key: str, blob: bytes, *, phase: str) -> bool:
        try:
            unpack_into(blob, self.cache_dir)
        except (LayerCacheError, tarfile.TarError, EOFError, OSError) as exc:
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            self._restore_failed(key, phase=phase, error=exc)
            return False
        return True

    def _restore_failed(self, key: str, *, phase: str, error: Exception) -> None:
        code = error.code if isinstance(error, LayerCacheError) else type(error).__name__
        self.logger.log(
            operation="restore",
            phase=phase,
            message=f"Unusable cache entry treated as a miss: {error}",
            level="warning",
            key=key,
            extra={"code": code},
        )

    def build(self) -> BuildResult:
        fresh = self.fresh_cache_dir
        if fresh.exists():
            shutil.rmtree(fresh)
        request = BuildRequest(
            context=self.config.context_dir,
            build_file=self.config.resolve(self.config.build_file),
            platforms=self.config.platforms,
            cache_from=self.cache_dir,
            cache_to=fresh,
        )
        result = self.engine.build(request)
        if not result.ok:
            self.logger.log(
                operation="build",
                phase="engine",
                message="Build failed",
                level="error",
                extra={"engine": self.engine.name, "returncode": result.returncode},
            )
            raise BuildFailedError(
                "Container build failed.",
                hint="The restored cache was left untouched.",
                context={
                    "operation": "build",
                    "engine": self.engine.name,
                    "returncode": str(result.returncode),
                    "stderr": result.stderr,
                },
            )
        self.logger.log(operation="build", phase="engine", message="Build succeeded")
        return result

    def replace(self) -> ReplaceOutcome:
        replacer = CacheReplacer(logger=self.logger)
        return replacer.replace(self.cache_dir, self.fresh_cache_dir)

    def save(self, key: str) -> bool:
        cache_dir = self.cache_dir
        if not cache_dir.is_dir():
            self.logger.log(operation="save", phase="pack", message="No cache to save", key=key)
            return False
        accepted = self.store.put(key, pack_directory(cache_dir))
        if not accepted:
            self.logger.log(
                operation="save",
                phase="upload",
                message="Store rejected cache upload",
                level="warning",
                key=key,
            )
            warnings.warn(
                f"Cache store rejected upload for {key}", StoreRejectedWarning, stacklevel=2
            )
            return False
        self.logger.log(operation="save", phase="upload", message="Saved cache", key=key)
        return True

    def run(self) -> PipelineResult:
        digest, key = self.derive_key()
        restored = self.restore(key)
        result = PipelineResult(
            digest=digest,
            cache_key=key,
            cache_hit=restored.exact,
            restored_key=restored.key,
        )
        if restored.exact and self.config.skip_on_hit:
            self.logger.log(
                operation="run", phase="skip", message="Exact hit; build skipped", key=key
            )
            return result

        self.build()
        result.built = True

        try:
            outcome = self.replace()
        except DeleteFailedError as exc:
            # The build already succeeded; only caching is lost.
            self.logger.log(
                operation="run",
                phase="replace",
                message=str(exc),
                level="error",
                key=key,
                extra={"code": exc.code},
            )
            result.replace_error = exc
            return result
        if not outcome.ok:
            result.replace_error = outcome.error
            return result
        result.replaced = True

        if not restored.exact:
            try:
                result.saved = self.save(key)
            except LayerCacheError as exc:
                self.logger.log(
                    operation="save",
                    phase="upload",
                    message=str(exc),
                    level="warning",
                    key=key,
                    extra={"code": exc.code},
                )
                warnings.warn(
                    f"Cache upload for {key} failed: {exc}", StoreRejectedWarning, stacklevel=2
                )
        return result


def write_outputs(path: str | Path, values: dict[str, str]) -> Path:
    """Append ``name=value`` lines to an orchestrator output file."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("a", encoding="utf-8") as handle:
        for name, value in values.items():
            handle.write(f"{name}={value}\n")
    return output_path
