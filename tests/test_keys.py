import pytest

from layercache.cache import DEFAULT_PREFIX, CacheKeyBuilder
from layercache.errors import ValidationError

DIGEST = "ab" * 32


def test_cache_key_is_prefix_plus_digest() -> None:
    builder = CacheKeyBuilder()

    assert builder.build(DIGEST) == f"cache-buildx-{DIGEST}"
    assert builder.prefix_only() == DEFAULT_PREFIX


def test_cache_key_is_deterministic() -> None:
    assert CacheKeyBuilder("img-").build(DIGEST) == CacheKeyBuilder("img-").build(DIGEST)


def test_prefix_only_is_strict_prefix_of_every_key() -> None:
    builder = CacheKeyBuilder("img-")
    keys = [builder.build(DIGEST), builder.build("0" * 64), builder.build("f" * 64)]

    for key in keys:
        assert key.startswith(builder.prefix_only())
        assert key != builder.prefix_only()
        assert builder.is_exact(key)
    assert not builder.is_exact(builder.prefix_only())


def test_empty_prefix_rejected() -> None:
    with pytest.raises(ValidationError):
        CacheKeyBuilder("")


@pytest.mark.parametrize("digest", ["", "AB" * 32, "ab" * 31, "zz" * 32])
def test_malformed_digest_rejected(digest: str) -> None:
    with pytest.raises(ValidationError):
        CacheKeyBuilder().build(digest)
