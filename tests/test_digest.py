import hashlib
import os
import random
import sys
from pathlib import Path

import pytest

from layercache.digest import (
    DigestSet,
    FileDigest,
    aggregate_digest,
    canonical_lines,
    derive_digest,
    hash_tree,
)
from layercache.errors import MissingInputError, MissingRootError, ValidationError


def _reference_digest(files: dict[str, bytes]) -> str:
    # find target -type f -exec sha256sum Dockerfile {} + | sort | sha256sum
    lines = sorted(f"{hashlib.sha256(data).hexdigest()}  {path}" for path, data in files.items())
    return hashlib.sha256("".join(f"{line}\n" for line in lines).encode()).hexdigest()


def test_digest_matches_sorted_sha256sum_listing(build_context: Path) -> None:
    digest = derive_digest("target", ["Dockerfile"], context=build_context)

    assert digest == _reference_digest(
        {
            "Dockerfile": b"FROM scratch",
            "target/a/file1": b"x",
            "target/a/file2": b"y",
        }
    )


def test_hash_tree_yields_one_digest_per_file(build_context: Path) -> None:
    (build_context / "target" / "empty-dir").mkdir()

    digests = hash_tree("target", ["Dockerfile"], context=build_context)

    assert digests.paths() == {"Dockerfile", "target/a/file1", "target/a/file2"}
    assert len(digests) == 3


def test_digest_is_independent_of_traversal_order(
    build_context: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    for index in range(8):
        (build_context / "target" / f"b{index}").mkdir()
        (build_context / "target" / f"b{index}" / "data").write_text(str(index), encoding="utf-8")
    expected = derive_digest("target", ["Dockerfile"], context=build_context)

    real_walk = os.walk

    def reversed_walk(top, *args, **kwargs):  # type: ignore[no-untyped-def]
        for current, dirs, files in real_walk(top, *args, **kwargs):
            dirs.reverse()
            yield current, dirs, list(reversed(files))

    monkeypatch.setattr("layercache.digest.tree.os.walk", reversed_walk)

    assert derive_digest("target", ["Dockerfile"], context=build_context) == expected


def test_aggregate_ignores_insertion_order() -> None:
    digests = [
        FileDigest(path=f"target/file{index}", digest=hashlib.sha256(bytes([index])).hexdigest())
        for index in range(20)
    ]
    shuffled = list(digests)
    random.Random(7).shuffle(shuffled)

    assert aggregate_digest(DigestSet(digests)) == aggregate_digest(DigestSet(shuffled))


def test_canonical_lines_sort_by_digest_not_path() -> None:
    low = FileDigest(path="z-last-by-path", digest="0" * 64)
    high = FileDigest(path="a-first-by-path", digest="f" * 64)

    assert canonical_lines([high, low]) == [
        f"{'0' * 64}  z-last-by-path",
        f"{'f' * 64}  a-first-by-path",
    ]


def test_single_byte_change_changes_digest(build_context: Path) -> None:
    before = derive_digest("target", ["Dockerfile"], context=build_context)
    (build_context / "target" / "a" / "file2").write_bytes(b"z")

    assert derive_digest("target", ["Dockerfile"], context=build_context) != before


def test_add_remove_and_rename_change_digest(build_context: Path) -> None:
    original = derive_digest("target", ["Dockerfile"], context=build_context)

    (build_context / "target" / "a" / "file3").write_bytes(b"new")
    added = derive_digest("target", ["Dockerfile"], context=build_context)
    (build_context / "target" / "a" / "file3").unlink()
    (build_context / "target" / "a" / "file2").unlink()
    removed = derive_digest("target", ["Dockerfile"], context=build_context)
    (build_context / "target" / "a" / "file2").write_bytes(b"y")
    assert derive_digest("target", ["Dockerfile"], context=build_context) == original
    (build_context / "target" / "a" / "file2").rename(build_context / "target" / "a" / "renamed")
    renamed = derive_digest("target", ["Dockerfile"], context=build_context)

    assert len({original, added, removed, renamed}) == 4


def test_metadata_changes_do_not_change_digest(build_context: Path) -> None:
    before = derive_digest("target", ["Dockerfile"], context=build_context)
    target = build_context / "target" / "a" / "file1"
    os.utime(target, (1_000_000, 1_000_000))
    target.chmod(0o600)

    assert derive_digest("target", ["Dockerfile"], context=build_context) == before


@pytest.mark.skipif(sys.platform.startswith("win"), reason="Symlinks need privileges on Windows.")
def test_symlinks_are_not_hashed(build_context: Path) -> None:
    before = derive_digest("target", ["Dockerfile"], context=build_context)
    (build_context / "target" / "link").symlink_to(build_context / "Dockerfile")
    (build_context / "target" / "dirlink").symlink_to(build_context / "target" / "a")

    assert derive_digest("target", ["Dockerfile"], context=build_context) == before


def test_parallel_hashing_matches_sequential(build_context: Path) -> None:
    for index in range(32):
        (build_context / "target" / f"f{index}").write_bytes(os.urandom(64))

    sequential = derive_digest("target", ["Dockerfile"], context=build_context)
    parallel = derive_digest("target", ["Dockerfile"], context=build_context, workers=4)

    assert parallel == sequential


def test_missing_additional_file_fails_before_hashing(
    build_context: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _unexpected(path: Path) -> str:
        raise AssertionError(f"hashed {path} before validating inputs")

    monkeypatch.setattr("layercache.digest.tree.hash_file", _unexpected)

    with pytest.raises(MissingInputError) as excinfo:
        hash_tree("target", ["Dockerfile", "Missing.dockerfile"], context=build_context)

    assert "Missing.dockerfile" in str(excinfo.value)
    assert excinfo.value.code == "E_MISSING_INPUT"


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(MissingRootError):
        hash_tree(tmp_path / "does-not-exist", [])


def test_root_outside_context_is_rejected(build_context: Path, tmp_path: Path) -> None:
    (tmp_path / "elsewhere").mkdir()

    with pytest.raises(ValidationError) as excinfo:
        hash_tree(tmp_path / "elsewhere", [], context=build_context)

    assert excinfo.value.context["operation"] == "hash_tree"


def test_additional_file_outside_context_is_rejected(build_context: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside.dockerfile"
    outside.write_bytes(b"FROM scratch")

    with pytest.raises(ValidationError):
        hash_tree("target", [outside], context=build_context)


def test_invalid_worker_count_rejected(build_context: Path) -> None:
    with pytest.raises(ValidationError):
        hash_tree("target", [], context=build_context, workers=0)


def test_frozen_digest_set_rejects_additions() -> None:
    digests = DigestSet([FileDigest(path="a", digest="1" * 64)])
    aggregate_digest(digests)

    assert digests.frozen
    with pytest.raises(ValidationError):
        digests.add(FileDigest(path="b", digest="2" * 64))


def test_empty_digest_set_cannot_be_aggregated() -> None:
    with pytest.raises(ValidationError):
        aggregate_digest(DigestSet())


def test_line_escapes_backslashes_and_newlines() -> None:
    digest = FileDigest(path="dir\\name\nx", digest="a" * 64)

    assert digest.line() == f"\\{'a' * 64}  dir\\\\name\\nx"
