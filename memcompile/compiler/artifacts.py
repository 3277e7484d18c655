"""In-memory source units and compiled artifacts."""
from __future__ import annotations

import codecs
import io
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from memcompile.runtime.artifact_store import package_of
from memcompile.runtime.errors import ConfigurationError, InternalAdapterError, NotReadyError


class Location(Enum):
    """Named search and output locations understood by file managers."""

    CLASS_PATH = "class_path"
    EXTENSION_PATH = "extension_path"
    SOURCE_PATH = "source_path"
    CLASS_OUTPUT = "class_output"


class Kind(Enum):
    SOURCE = ".py"
    CLASS = ".pyc"
    OTHER = ""

    @property
    def extension(self) -> str:
        return self.value


@dataclass(frozen=True)
class CompilationUnit:
    """Generated source text for one fully-qualified unit name."""

    unit_name: str
    source_text: str
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        try:
            codecs.lookup(self.encoding)
        except LookupError as exc:
            raise ConfigurationError(f"Unknown source encoding '{self.encoding}'") from exc
        try:
            self.source_text.encode(self.encoding)
        except UnicodeEncodeError as exc:
            raise ConfigurationError(
                f"Source for '{self.unit_name}' cannot be represented in {self.encoding}: {exc}"
            ) from exc

    @property
    def uri(self) -> str:
        return f"string:///{self.unit_name.replace('.', '/')}{Kind.SOURCE.extension}"

    @property
    def kind(self) -> Kind:
        return Kind.SOURCE

    def get_char_content(self) -> str:
        return self.source_text


class CompiledArtifact:
    """Binary output for a single class name.

    Content is only readable after the writer returned by ``open_writer`` has
    been sealed; from then on it never changes.
    """

    def __init__(self, class_name: str, kind: Kind = Kind.CLASS, uri: Optional[str] = None) -> None:
        self.class_name = class_name
        self.kind = kind
        self.uri = uri or f"mem:///{class_name.replace('.', '/')}{kind.extension}"
        self._content: Optional[bytes] = None
        self._writer: Optional[ArtifactWriter] = None

    @classmethod
    def sealed(cls, class_name: str, content: bytes, kind: Kind = Kind.CLASS) -> "CompiledArtifact":
        """Build a read-only artifact around content that is already committed."""

        artifact = cls(class_name, kind)
        artifact._content = bytes(content)
        return artifact

    @property
    def package(self) -> str:
        return package_of(self.class_name)

    @property
    def is_sealed(self) -> bool:
        return self._content is not None

    @property
    def content(self) -> bytes:
        if self._content is None:
            raise NotReadyError(f"Artifact '{self.class_name}' has not been sealed yet")
        return self._content

    def open_writer(self) -> "ArtifactWriter":
        if self._content is not None:
            raise InternalAdapterError(f"Artifact '{self.class_name}' is already sealed")
        if self._writer is None:
            self._writer = ArtifactWriter(self)
        return self._writer

    def _commit(self, content: bytes) -> None:
        if self._content is not None:
            raise InternalAdapterError(f"Artifact '{self.class_name}' is already sealed")
        self._content = content

    def __repr__(self) -> str:
        state = f"{len(self._content)} bytes" if self._content is not None else "unsealed"
        return f"CompiledArtifact({self.class_name!r}, {state})"


class ArtifactWriter:
    """Buffer whose ``seal`` call is the single commit point for an artifact."""

    def __init__(self, artifact: CompiledArtifact) -> None:
        self._artifact = artifact
        self._buffer = io.BytesIO()
        self._sealed = False

    @property
    def artifact(self) -> CompiledArtifact:
        return self._artifact

    def write(self, data: bytes) -> int:
        if self._sealed:
            raise InternalAdapterError(f"Write to sealed artifact '{self._artifact.class_name}'")
        return self._buffer.write(data)

    def seal(self) -> CompiledArtifact:
        if self._sealed:
            raise InternalAdapterError(f"Artifact '{self._artifact.class_name}' sealed twice")
        content = self._buffer.getvalue()
        if not content:
            raise InternalAdapterError(
                f"Artifact '{self._artifact.class_name}' sealed with no bytes written"
            )
        self._sealed = True
        self._artifact._commit(content)
        self._buffer = io.BytesIO()
        return self._artifact


class PackageIndex:
    """Artifacts produced during one compile session, grouped by package."""

    def __init__(self) -> None:
        self._packages: Dict[str, List[CompiledArtifact]] = {}
        self._order: List[CompiledArtifact] = []

    def register(self, artifact: CompiledArtifact) -> None:
        self._packages.setdefault(artifact.package, []).append(artifact)
        self._order.append(artifact)

    def members(self, package_name: str) -> List[CompiledArtifact]:
        return list(self._packages.get(package_name, ()))

    def artifacts(self) -> List[CompiledArtifact]:
        return list(self._order)

    def clear(self) -> None:
        self._packages.clear()
        self._order.clear()

    def __iter__(self) -> Iterator[CompiledArtifact]:
        return iter(list(self._order))

    def __len__(self) -> int:
        return len(self._order)


__all__ = [
    "ArtifactWriter",
    "CompilationUnit",
    "CompiledArtifact",
    "Kind",
    "Location",
    "PackageIndex",
]
