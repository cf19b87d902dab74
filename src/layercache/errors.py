"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    CONFIG = "E_CONFIG"
    MISSING_ROOT = "E_MISSING_ROOT"
    MISSING_INPUT = "E_MISSING_INPUT"
    HASHING = "E_HASHING"
    DELETE_FAILED = "E_DELETE_FAILED"
    MOVE_FAILED = "E_MOVE_FAILED"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"
    BUILD_ENGINE = "E_BUILD_ENGINE"
    BUILD_FAILED = "E_BUILD_FAILED"


class LayerCacheError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class ConfigError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class MissingRootError(LayerCacheError):
    """The build context root directory does not exist."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_ROOT, hint=hint, context=context)


class MissingInputError(LayerCacheError):
    """A declared additional input file does not exist."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_INPUT, hint=hint, context=context)


class HashingError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.HASHING, hint=hint, context=context)


class DeleteFailedError(LayerCacheError):
    """The stale cache directory could not be removed; nothing was moved."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.DELETE_FAILED, hint=hint, context=context)


class MoveFailedError(LayerCacheError):
    """The fresh cache could not be moved into place; the cache is now cold."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MOVE_FAILED, hint=hint, context=context)


class ReproducibilityError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REPRODUCIBILITY, hint=hint, context=context)


class BuildEngineError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_ENGINE, hint=hint, context=context)


class BuildFailedError(LayerCacheError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_FAILED, hint=hint, context=context)


class ColdCacheWarning(UserWarning):
    """Warning raised when a cache directory degrades to a cold cache."""


class StoreRejectedWarning(UserWarning):
    """Warning raised when the cache store declines an upload."""


__all__ = [
    "BuildEngineError",
    "BuildFailedError",
    "ColdCacheWarning",
    "ConfigError",
    "DeleteFailedError",
    "ErrorCode",
    "HashingError",
    "LayerCacheError",
    "MissingInputError",
    "MissingRootError",
    "MoveFailedError",
    "ReproducibilityError",
    "StoreRejectedWarning",
    "ValidationError",
]
