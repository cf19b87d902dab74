import json
from pathlib import Path

import pytest

from layercache.cache import DirectoryCacheStore
from layercache.cli import main
from layercache.digest import derive_digest
from layercache.errors import StoreRejectedWarning


def _common_args(context: Path, tmp_path: Path) -> list[str]:
    return [
        "--context",
        str(context),
        "--cache-dir",
        str(tmp_path / "cache"),
        "--fresh-cache-dir",
        str(tmp_path / "cache-new"),
    ]


def test_key_prints_cache_key_and_writes_digest_output(
    build_context: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    output = tmp_path / "outputs"

    status = main([*_common_args(build_context, tmp_path), "key", "--output", str(output)])

    digest = derive_digest("target", ["Dockerfile"], context=build_context)
    assert status == 0
    assert capsys.readouterr().out.strip() == f"cache-buildx-{digest}"
    assert output.read_text(encoding="utf-8") == f"digest={digest}\n"


def test_key_writes_manifest(build_context: Path, tmp_path: Path) -> None:
    manifest = tmp_path / "manifest.json"

    status = main([*_common_args(build_context, tmp_path), "key", "--manifest", str(manifest)])

    payload = json.loads(manifest.read_text(encoding="utf-8"))
    assert status == 0
    assert sorted(payload["files"]) == ["Dockerfile", "target/a/file1", "target/a/file2"]


def test_missing_input_reports_error_code(
    build_context: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    status = main([*_common_args(build_context, tmp_path), "-f", "Missing", "key"])

    assert status == 1
    assert "E_MISSING_INPUT" in capsys.readouterr().err


def test_run_then_restore_reports_exact_hit(build_context: Path, tmp_path: Path) -> None:
    store = tmp_path / "store"
    outputs = tmp_path / "outputs"
    common = _common_args(build_context, tmp_path)

    assert main([*common, "run", "--store", str(store), "--engine", "inprocess"]) == 0
    assert main([*common, "restore", "--store", str(store), "--output", str(outputs)]) == 0

    assert outputs.read_text(encoding="utf-8") == "cache-hit=true\n"
    assert (tmp_path / "cache" / "index.json").exists()


def test_replace_command_swaps_directories(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    (tmp_path / "cache").mkdir()
    (tmp_path / "cache" / "a.txt").write_text("stale", encoding="utf-8")
    (tmp_path / "cache-new").mkdir()
    (tmp_path / "cache-new" / "b.txt").write_text("fresh", encoding="utf-8")

    status = main([*_common_args(tmp_path, tmp_path), "replace"])

    assert status == 0
    assert capsys.readouterr().out.strip() == "replaced"
    assert [child.name for child in (tmp_path / "cache").iterdir()] == ["b.txt"]


def test_log_json_exports_records(build_context: Path, tmp_path: Path) -> None:
    log_path = tmp_path / "log.jsonl"

    main([*_common_args(build_context, tmp_path), "--log-json", str(log_path), "key"])

    records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert records[0]["operation"] == "derive_key"


def test_save_uploads_cache_once(
    build_context: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    store = tmp_path / "store"
    (tmp_path / "cache").mkdir()
    (tmp_path / "cache" / "index.json").write_text("{}", encoding="utf-8")
    common = _common_args(build_context, tmp_path)

    assert main([*common, "save", "--store", str(store)]) == 0
    assert capsys.readouterr().out.strip() == "saved"
    digest = derive_digest("target", ["Dockerfile"], context=build_context)
    assert DirectoryCacheStore(store).keys() == [f"cache-buildx-{digest}"]

    with pytest.warns(StoreRejectedWarning):
        assert main([*common, "save", "--store", str(store)]) == 0
    assert capsys.readouterr().out.strip() == "skipped"


def test_save_without_cache_dir_is_skipped(
    build_context: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    store = tmp_path / "store"

    assert main([*_common_args(build_context, tmp_path), "save", "--store", str(store)]) == 0

    assert capsys.readouterr().out.strip() == "skipped"
    assert DirectoryCacheStore(store).keys() == []
