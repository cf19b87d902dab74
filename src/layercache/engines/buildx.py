"""Docker Buildx engine with a local layer cache.

Builds for the requested platforms, imports the layer cache from the
restored directory, and exports every layer (``mode=max``) to a separate
directory. The image itself is not exported (``type=cacheonly``) and
provenance attestations are disabled, so the only output is the cache.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field

from layercache.engines.base import BuildRequest, BuildResult
from layercache.errors import BuildEngineError, ValidationError


@dataclass(slots=True)
class BuildxEngine:
    name: str = "buildx"
    docker: str = "docker"
    extra_args: list[str] = field(default_factory=list)

    def command(self, request: BuildRequest) -> list[str]:
        if not request.platforms:
            raise ValidationError(
                "At least one build platform is required.",
                hint="Pass a platform such as 'linux/amd64'.",
                context={"operation": "build"},
            )
        return [
            self.docker,
            "buildx",
            "build",
            f"--file={request.build_file}",
            f"--platform={','.join(request.platforms)}",
            f"--cache-from=type=local,src={request.cache_from}",
            f"--cache-to=type=local,dest={request.cache_to},mode=max",
            "--output=type=cacheonly",
            "--provenance=false",
            *self.extra_args,
            str(request.context),
        ]

    def build(self, request: BuildRequest) -> BuildResult:
        command = self.command(request)
        if shutil.which(self.docker) is None:
            raise BuildEngineError(
                f"`{self.docker}` was not found on PATH.",
                hint="Install Docker with the buildx plugin on the build host.",
                context={"operation": "build", "engine": self.name},
            )
        completed = subprocess.run(
            command,
            cwd=str(request.context),
            check=False,
            text=True,
            capture_output=True,
        )
        return BuildResult(
            ok=completed.returncode == 0,
            returncode=completed.returncode,
            stderr=completed.stderr[-2000:] if completed.stderr else "",
        )
