"""Deterministic packing of a cache directory into a store blob."""

from __future__ import annotations

import gzip
import io
import os
import shutil
import stat
import tarfile
from pathlib import Path, PurePosixPath

from layercache.errors import ValidationError


def pack_directory(path: str | Path) -> bytes:
    """Return a gzip tar of *path* with sorted entries and fixed metadata."""
    root = Path(path)
    if not root.is_dir():
        raise ValidationError(
            f"Cache directory does not exist: {root}",
            context={"operation": "cache_pack", "path": str(root)},
        )
    epoch = _source_date_epoch()
    dirs, files = _iter_tree(root)

    buffer = io.BytesIO()
    with gzip.GzipFile(filename="", mode="wb", fileobj=buffer, mtime=epoch) as gz:
        with tarfile.open(fileobj=gz, mode="w|") as tf:
            for rel in dirs:
                info = tarfile.TarInfo(rel)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                _normalize(info, epoch)
                tf.addfile(info)
            for rel in files:
                source = root / rel
                info = tarfile.TarInfo(rel)
                info.type = tarfile.REGTYPE
                info.size = source.stat().st_size
                info.mode = source.stat().st_mode & 0o777
                _normalize(info, epoch)
                with source.open("rb") as handle:
                    tf.addfile(info, fileobj=handle)
    return buffer.getvalue()


def unpack_into(blob: bytes, path: str | Path) -> Path:
    """Replace the contents of *path* with the archive in *blob*."""
    target = Path(path)
    with tarfile.open(fileobj=io.BytesIO(blob), mode="r:gz") as tf:
        members = tf.getmembers()
        for member in members:
            _check_member(member)
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True)
        tf.extractall(target, members=members, filter="data")
    return target


def _iter_tree(root: Path) -> tuple[list[str], list[str]]:
    dirs: list[str] = []
    files: list[str] = []
    for current, cur_dirs, cur_files in os.walk(root, followlinks=False):
        rel_root = Path(current).relative_to(root)
        for name in cur_dirs:
            candidate = Path(current) / name
            if not candidate.is_symlink():
                dirs.append((rel_root / name).as_posix())
        for name in cur_files:
            candidate = Path(current) / name
            if stat.S_ISREG(candidate.lstat().st_mode):
                files.append((rel_root / name).as_posix())
    return sorted(dirs), sorted(files)


def _normalize(info: tarfile.TarInfo, epoch: int) -> None:
    info.mtime = epoch
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""


def _check_member(member: tarfile.TarInfo) -> None:
    name = PurePosixPath(member.name)
    if name.is_absolute() or ".." in name.parts:
        raise ValidationError(
            "Cache archive member escapes the target directory.",
            hint="Discard the cache entry; it was not produced by this tool.",
            context={"operation": "cache_unpack", "member": member.name},
        )
    if not (member.isfile() or member.isdir()):
        raise ValidationError(
            "Cache archive contains an unsupported member type.",
            context={"operation": "cache_unpack", "member": member.name},
        )


def _source_date_epoch() -> int:
    value = os.environ.get("SOURCE_DATE_EPOCH", "").strip()
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0
