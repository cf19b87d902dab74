"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from layercache.cache.store import DirectoryCacheStore
from layercache.config import CacheConfig
from layercache.engines.inprocess import InProcessEngine


@pytest.fixture
def build_context(tmp_path: Path) -> Path:
    """A build context with ``target/a/file1``, ``target/a/file2`` and a Dockerfile."""
    context = tmp_path / "context"
    (context / "target" / "a").mkdir(parents=True)
    (context / "target" / "a" / "file1").write_bytes(b"x")
    (context / "target" / "a" / "file2").write_bytes(b"y")
    (context / "Dockerfile").write_bytes(b"FROM scratch")
    return context


@pytest.fixture
def cache_config(build_context: Path, tmp_path: Path) -> CacheConfig:
    return CacheConfig(
        context_dir=build_context,
        cache_dir=tmp_path / "buildx-cache",
        fresh_cache_dir=tmp_path / "buildx-cache-new",
    )


@pytest.fixture
def store(tmp_path: Path) -> DirectoryCacheStore:
    return DirectoryCacheStore(tmp_path / "store")


@pytest.fixture
def inprocess_engine() -> InProcessEngine:
    """Provide an in-process engine for tests that run the pipeline."""
    return InProcessEngine()
