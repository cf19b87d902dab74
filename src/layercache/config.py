"""Pipeline configuration and loading helpers."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from layercache.cache.keys import DEFAULT_PREFIX
from layercache.errors import ConfigError


@dataclass(frozen=True, slots=True)
class CacheConfig:
    context_dir: Path = Path(".")
    root: Path = Path("target")
    additional_files: tuple[str, ...] = ("Dockerfile",)
    key_prefix: str = DEFAULT_PREFIX
    cache_dir: Path = Path("/tmp/.buildx-cache")
    fresh_cache_dir: Path = Path("/tmp/.buildx-cache-new")
    build_file: Path = Path("Dockerfile")
    platforms: tuple[str, ...] = ("linux/amd64",)
    skip_on_hit: bool = True
    workers: int = 1

    def with_overrides(self, **overrides: Any) -> CacheConfig:
        """Return a copy with every non-``None`` override applied."""
        changes = {name: value for name, value in overrides.items() if value is not None}
        return _from_payload({**_to_payload(self), **changes}, source="overrides")

    def resolve(self, path: Path) -> Path:
        """Resolve *path* against the build context directory."""
        return path if path.is_absolute() else self.context_dir / path


_PATH_FIELDS = frozenset({"context_dir", "root", "cache_dir", "fresh_cache_dir", "build_file"})
_TUPLE_FIELDS = frozenset({"additional_files", "platforms"})


def parse_config(raw: str, *, source: str = "<string>") -> CacheConfig:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            "Invalid configuration JSON.",
            hint=str(exc),
            context={"source": source},
        ) from exc
    if not isinstance(payload, dict):
        raise ConfigError("Configuration must be a JSON object.", context={"source": source})
    return _from_payload(payload, source=source)


def load_config(path: str | Path) -> CacheConfig:
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(
            "Configuration file does not exist.",
            context={"path": str(config_path)},
        ) from exc
    config = parse_config(raw, source=str(config_path))
    # A relative context is relative to the file that declared it.
    if not config.context_dir.is_absolute():
        config = dataclasses.replace(config, context_dir=config_path.parent / config.context_dir)
    return config


def _from_payload(payload: dict[str, Any], *, source: str) -> CacheConfig:
    known = {f.name for f in dataclasses.fields(CacheConfig)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigError(
            "Unknown configuration keys.",
            hint=f"Supported keys: {', '.join(sorted(known))}",
            context={"source": source, "keys": ", ".join(unknown)},
        )
    values: dict[str, Any] = {}
    for name, value in payload.items():
        if name in _PATH_FIELDS:
            values[name] = Path(_required_str(name, value, source=source))
        elif name in _TUPLE_FIELDS:
            values[name] = _required_str_tuple(name, value, source=source)
        elif name == "key_prefix":
            values[name] = _required_str(name, value, source=source)
        elif name == "skip_on_hit":
            if not isinstance(value, bool):
                raise _type_error(name, "a boolean", source=source)
            values[name] = value
        elif name == "workers":
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise _type_error(name, "a positive integer", source=source)
            values[name] = value
    return CacheConfig(**values)


def _to_payload(config: CacheConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for f in dataclasses.fields(config):
        value = getattr(config, f.name)
        if isinstance(value, Path):
            value = str(value)
        elif isinstance(value, tuple):
            value = list(value)
        payload[f.name] = value
    return payload


def _required_str(name: str, value: Any, *, source: str) -> str:
    if isinstance(value, Path):
        return str(value)
    if not isinstance(value, str) or not value:
        raise _type_error(name, "a non-empty string", source=source)
    return value


def _required_str_tuple(name: str, value: Any, *, source: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, str) and item for item in value
    ):
        raise _type_error(name, "a list of non-empty strings", source=source)
    return tuple(value)


def _type_error(name: str, expected: str, *, source: str) -> ConfigError:
    return ConfigError(
        f"Configuration key `{name}` must be {expected}.",
        context={"source": source, "key": name},
    )
