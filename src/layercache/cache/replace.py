"""Replace a restored cache directory with a freshly written one.

Delete-then-move, never merge: after a successful build the fresh cache
becomes the canonical one so stale layers are not carried forward. A failed
delete aborts before anything is moved. A failed move leaves an empty
directory behind, which is a cold cache rather than a corrupt one.
"""

from __future__ import annotations

import os
import shutil
import uuid
import warnings
from dataclasses import dataclass, field
from pathlib import Path

from layercache.errors import ColdCacheWarning, DeleteFailedError, MoveFailedError, ValidationError
from layercache.observability import StructuredLogger


@dataclass(frozen=True, slots=True)
class ReplaceOutcome:
    current: Path
    error: MoveFailedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cold_cache(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class CacheReplacer:
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def replace(self, current: str | Path, fresh: str | Path) -> ReplaceOutcome:
        """Make *fresh* occupy *current*.

        Raises :class:`DeleteFailedError` when the stale directory cannot be
        removed. A move failure is returned on the outcome, not raised.
        """
        current_path = Path(current)
        fresh_path = Path(fresh)
        if current_path.absolute() == fresh_path.absolute():
            raise ValidationError(
                "Current and fresh cache directories must differ.",
                context={"operation": "cache_replace", "path": str(current_path)},
            )

        self._delete(current_path)
        self.logger.log(
            operation="cache_replace",
            phase="delete",
            message=f"Removed stale cache at {current_path}",
        )

        try:
            self._move(fresh_path, current_path)
        except MoveFailedError as exc:
            self._leave_empty(current_path)
            self.logger.log(
                operation="cache_replace",
                phase="move",
                message=str(exc),
                level="warning",
                extra={"code": exc.code},
            )
            warnings.warn(
                f"Cache at {current_path} is cold: {exc}",
                ColdCacheWarning,
                stacklevel=2,
            )
            return ReplaceOutcome(current=current_path, error=exc)

        self.logger.log(
            operation="cache_replace",
            phase="move",
            message=f"Moved {fresh_path} to {current_path}",
        )
        return ReplaceOutcome(current=current_path)

    def _delete(self, current: Path) -> None:
        if not current.exists() and not current.is_symlink():
            return
        if current.is_symlink() or not current.is_dir():
            try:
                current.unlink()
            except OSError as exc:
                raise _delete_failed(current, exc, restored=True) from exc
            return

        # Rename aside first so the visible path is never half-deleted.
        tombstone = current.with_name(f".{current.name}.stale-{uuid.uuid4().hex[:8]}")
        try:
            os.rename(current, tombstone)
        except OSError as exc:
            raise _delete_failed(current, exc, restored=True) from exc
        try:
            shutil.rmtree(tombstone)
        except OSError as exc:
            restored = _restore(tombstone, current)
            raise _delete_failed(current, exc, restored=restored) from exc

    def _leave_empty(self, current: Path) -> None:
        try:
            current.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self.logger.log(
                operation="cache_replace",
                phase="move",
                message=f"Unable to recreate empty cache directory {current}",
                level="warning",
                extra={"error": exc.strerror or str(exc)},
            )

    def _move(self, fresh: Path, current: Path) -> None:
        if not fresh.is_dir():
            raise MoveFailedError(
                f"Fresh cache directory does not exist: {fresh}",
                hint="The build did not export a cache; the next run starts cold.",
                context={"operation": "cache_replace", "path": str(fresh)},
            )
        try:
            current.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(fresh), str(current))
        except OSError as exc:
            if current.exists():
                shutil.rmtree(current, ignore_errors=True)
            raise MoveFailedError(
                f"Unable to move fresh cache into {current}",
                hint="The next run starts with a cold cache.",
                context={
                    "operation": "cache_replace",
                    "source": str(fresh),
                    "target": str(current),
                    "error": exc.strerror or str(exc),
                },
            ) from exc


def _delete_failed(current: Path, exc: OSError, *, restored: bool) -> DeleteFailedError:
    return DeleteFailedError(
        f"Unable to delete stale cache directory: {current}",
        hint="Check permissions and that no process holds the cache directory.",
        context={
            "operation": "cache_replace",
            "path": str(current),
            "error": exc.strerror or str(exc),
            "restored": str(restored).lower(),
        },
    )


def _restore(tombstone: Path, current: Path) -> bool:
    try:
        os.rename(tombstone, current)
    except OSError:
        return False
    return True
