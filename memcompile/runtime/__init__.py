"""Long-lived runtime state: the artifact store and its loader."""

from .artifact_store import ArtifactEntry, ArtifactStore
from .context import ArtifactFinder, RuntimeContext
from .errors import (
    ArtifactNotFoundError,
    ConfigurationError,
    InternalAdapterError,
    MemcompileError,
    NotReadyError,
)

__all__ = [
    "ArtifactEntry",
    "ArtifactFinder",
    "ArtifactNotFoundError",
    "ArtifactStore",
    "ConfigurationError",
    "InternalAdapterError",
    "MemcompileError",
    "NotReadyError",
    "RuntimeContext",
]
