"""In-process build engine for tests and development.

Writes a deterministic layer cache into ``cache_to`` without invoking any
container tooling, so the restore/replace/save pipeline can be exercised on
hosts without Docker.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field

from layercache.engines.base import BuildRequest, BuildResult


@dataclass(slots=True)
class InProcessEngine:
    """Engine that exports a placeholder cache, or fails on request."""

    name: str = "inprocess"
    fail: bool = False
    requests: list[BuildRequest] = field(default_factory=list)

    def build(self, request: BuildRequest) -> BuildResult:
        self.requests.append(request)
        if self.fail:
            return BuildResult(ok=False, returncode=1, stderr="simulated build failure")

        request.cache_to.mkdir(parents=True, exist_ok=True)
        seed = request.build_file.read_bytes() if request.build_file.is_file() else b""
        digest = hashlib.sha256(seed + ",".join(request.platforms).encode()).hexdigest()
        blobs = request.cache_to / "blobs" / "sha256"
        blobs.mkdir(parents=True, exist_ok=True)
        (blobs / digest).write_bytes(seed)
        index = {
            "schemaVersion": 2,
            "manifests": [{"digest": f"sha256:{digest}", "platforms": list(request.platforms)}],
        }
        (request.cache_to / "index.json").write_text(
            json.dumps(index, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return BuildResult(ok=True)
