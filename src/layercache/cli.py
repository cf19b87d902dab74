"""Command-line entry point: ``layercache <command>``."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from layercache.cache.keys import CacheKeyBuilder
from layercache.cache.replace import CacheReplacer
from layercache.cache.store import DirectoryCacheStore
from layercache.config import CacheConfig, load_config
from layercache.digest.manifest import DigestManifest
from layercache.digest.tree import hash_tree
from layercache.engines.base import BuildEngine
from layercache.engines.buildx import BuildxEngine
from layercache.engines.inprocess import InProcessEngine
from layercache.errors import LayerCacheError, ValidationError
from layercache.observability import StructuredLogger
from layercache.pipeline import CachePipeline, write_outputs

ENGINES = ("buildx", "inprocess")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layercache",
        description="Content-keyed container layer cache for CI pipelines.",
    )
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--context", dest="context_dir", type=Path, help="build context directory")
    parser.add_argument("--root", type=Path, help="directory tree to hash, relative to context")
    parser.add_argument(
        "-f",
        "--file",
        dest="additional_files",
        action="append",
        help="additional input file to hash (repeatable)",
    )
    parser.add_argument("--prefix", dest="key_prefix", help="cache key prefix")
    parser.add_argument("--cache-dir", type=Path, help="restored cache directory")
    parser.add_argument("--fresh-cache-dir", type=Path, help="directory the build exports to")
    parser.add_argument("--build-file", type=Path, help="Dockerfile used for the build")
    parser.add_argument(
        "--platform",
        dest="platforms",
        action="append",
        help="target platform (repeatable)",
    )
    parser.add_argument("--workers", type=int, help="parallel file hashing workers")
    parser.add_argument("--log-json", type=Path, help="write structured log records here")

    commands = parser.add_subparsers(dest="command", required=True)

    key = commands.add_parser("key", help="print the cache key for the build context")
    key.add_argument("--output", type=Path, help="append digest=<hex> to this file")
    key.add_argument("--manifest", type=Path, help="write the digest manifest (.json or .cbor)")

    restore = commands.add_parser("restore", help="restore the cache directory from the store")
    restore.add_argument("--store", type=Path, required=True)
    restore.add_argument("--output", type=Path, help="append cache-hit=<bool> to this file")

    commands.add_parser("replace", help="swap the fresh cache into the cache directory")

    save = commands.add_parser("save", help="upload the cache directory under the exact key")
    save.add_argument("--store", type=Path, required=True)

    run = commands.add_parser("run", help="restore, build, replace, and save")
    run.add_argument("--store", type=Path, required=True)
    run.add_argument("--engine", choices=ENGINES, default="buildx")
    run.add_argument("--output", type=Path, help="append pipeline outputs to this file")
    run.add_argument(
        "--always-build",
        action="store_true",
        help="build even when the exact key is already cached",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = StructuredLogger()
    try:
        config = _config_from_args(args)
        status = _dispatch(args, config, logger)
    except LayerCacheError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        status = 1
    if args.log_json is not None:
        logger.to_json_lines(args.log_json)
    return status


def _dispatch(args: argparse.Namespace, config: CacheConfig, logger: StructuredLogger) -> int:
    if args.command == "key":
        return _cmd_key(args, config, logger)
    if args.command == "replace":
        outcome = CacheReplacer(logger=logger).replace(
            config.resolve(config.cache_dir),
            config.resolve(config.fresh_cache_dir),
        )
        print("replaced" if outcome.ok else "cold")
        return 0

    store = DirectoryCacheStore(args.store)
    engine: BuildEngine = BuildxEngine()
    if getattr(args, "engine", "") == "inprocess":
        engine = InProcessEngine()
    pipeline = CachePipeline(config=config, store=store, engine=engine, logger=logger)

    if args.command == "restore":
        _, key = pipeline.derive_key()
        restored = pipeline.restore(key)
        print(restored.key or "")
        if args.output is not None:
            write_outputs(args.output, {"cache-hit": "true" if restored.exact else "false"})
        return 0
    if args.command == "save":
        _, key = pipeline.derive_key()
        print("saved" if pipeline.save(key) else "skipped")
        return 0
    if args.command == "run":
        result = pipeline.run()
        print(result.cache_key)
        if args.output is not None:
            write_outputs(args.output, result.outputs())
        return 0
    raise ValidationError(f"Unsupported command: {args.command}")


def _cmd_key(args: argparse.Namespace, config: CacheConfig, logger: StructuredLogger) -> int:
    digests = hash_tree(
        config.root,
        config.additional_files,
        context=config.context_dir,
        workers=config.workers,
    )
    manifest = DigestManifest.from_digest_set(digests)
    key = CacheKeyBuilder(config.key_prefix).build(manifest.aggregate)
    logger.log(operation="derive_key", phase="hash", message="Derived cache key", key=key)
    print(key)
    if args.output is not None:
        write_outputs(args.output, {"digest": manifest.aggregate})
    if args.manifest is not None:
        if args.manifest.suffix == ".cbor":
            manifest.to_cbor(args.manifest)
        else:
            manifest.to_json(args.manifest)
    return 0


def _config_from_args(args: argparse.Namespace) -> CacheConfig:
    config = load_config(args.config) if args.config is not None else CacheConfig()
    skip_on_hit = False if getattr(args, "always_build", False) else None
    return config.with_overrides(
        context_dir=args.context_dir,
        root=args.root,
        additional_files=args.additional_files,
        key_prefix=args.key_prefix,
        cache_dir=args.cache_dir,
        fresh_cache_dir=args.fresh_cache_dir,
        build_file=args.build_file,
        platforms=args.platforms,
        workers=args.workers,
        skip_on_hit=skip_on_hit,
    )


if __name__ == "__main__":
    raise SystemExit(main())
