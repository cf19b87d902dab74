"""Build engine adapters."""

from .base import BuildEngine, BuildRequest, BuildResult
from .buildx import BuildxEngine
from .inprocess import InProcessEngine

__all__ = ["BuildEngine", "BuildRequest", "BuildResult", "BuildxEngine", "InProcessEngine"]
