"""Error taxonomy shared by the compiler adapter and the runtime context."""
from __future__ import annotations


class MemcompileError(RuntimeError):
    """Base class for errors raised by the in-memory compiler."""


class ConfigurationError(MemcompileError):
    """Raised when classpath entries or compiler options are invalid.

    Detected before the compiler service is invoked.
    """


class InternalAdapterError(MemcompileError):
    """Raised when the adapter reaches a state it should never be in."""


class NotReadyError(InternalAdapterError):
    """Raised when an artifact is read before its write stream was sealed."""


class ArtifactNotFoundError(MemcompileError, KeyError):
    """Raised when a stored artifact is required but missing."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


__all__ = [
    "ArtifactNotFoundError",
    "ConfigurationError",
    "InternalAdapterError",
    "MemcompileError",
    "NotReadyError",
]
