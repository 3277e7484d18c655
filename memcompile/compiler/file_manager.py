"""File managers used by the compiler service to locate inputs and outputs."""
from __future__ import annotations

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Collection, Dict, Iterable, List, Optional, Sequence

from memcompile.runtime.artifact_store import ArtifactStore
from memcompile.runtime.errors import ConfigurationError, InternalAdapterError

from .artifacts import ArtifactWriter, CompiledArtifact, Kind, Location, PackageIndex

logger = logging.getLogger(__name__)

_KIND_BY_SUFFIX = {kind.extension: kind for kind in Kind if kind.extension}


class FileManager(ABC):
    """Interface through which a compiler service reaches files."""

    @abstractmethod
    def set_location(self, location: Location, paths: Iterable[Path]) -> None: ...

    @abstractmethod
    def get_location(self, location: Location) -> List[Path]: ...

    @abstractmethod
    def list_package_members(
        self,
        location: Location,
        package_name: str,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[Any]: ...

    @abstractmethod
    def resolve_binary_name(self, location: Location, file_object: Any) -> Optional[str]: ...

    @abstractmethod
    def resolve_output_artifact(self, location: Location, class_name: str, kind: Kind) -> Any: ...

    @abstractmethod
    def bind_write_stream(self, file_object: Any) -> Any: ...

    @abstractmethod
    def bind_read_stream(self, file_object: Any) -> BinaryIO: ...

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None


@dataclass(frozen=True)
class DiskFileObject:
    """A module found on, or destined for, a classpath-style root."""

    root: Path
    relative_path: PurePosixPath
    kind: Kind

    @property
    def binary_name(self) -> str:
        parts = list(self.relative_path.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        return ".".join(parts)

    @property
    def is_archive_member(self) -> bool:
        return self.root.is_file()


class StandardFileManager(FileManager):
    """Disk-backed file manager over directory and zip classpath entries."""

    def __init__(self) -> None:
        self._locations: Dict[Location, List[Path]] = {}

    def set_location(self, location: Location, paths: Iterable[Path]) -> None:
        self._locations[location] = [Path(path) for path in paths]

    def get_location(self, location: Location) -> List[Path]:
        return list(self._locations.get(location, ()))

    def list_package_members(
        self,
        location: Location,
        package_name: str,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[DiskFileObject]:
        members: List[DiskFileObject] = []
        package_path = PurePosixPath(*package_name.split(".")) if package_name else PurePosixPath()
        for root in self.get_location(location):
            if root.is_dir():
                members.extend(self._list_directory(root, package_path, kinds, recurse))
            elif zipfile.is_zipfile(root):
                members.extend(self._list_archive(root, package_path, kinds, recurse))
        return members

    def resolve_binary_name(self, location: Location, file_object: Any) -> Optional[str]:
        if isinstance(file_object, DiskFileObject):
            return file_object.binary_name
        return None

    def resolve_output_artifact(self, location: Location, class_name: str, kind: Kind) -> DiskFileObject:
        roots = self.get_location(location)
        if not roots:
            raise ConfigurationError(f"No directory configured for {location.name}")
        relative = PurePosixPath(*class_name.split(".")).with_suffix(kind.extension)
        return DiskFileObject(root=roots[0], relative_path=relative, kind=kind)

    def bind_write_stream(self, file_object: Any) -> BinaryIO:
        if not isinstance(file_object, DiskFileObject) or file_object.is_archive_member:
            raise InternalAdapterError(f"Cannot write to {file_object!r}")
        target = file_object.root / Path(file_object.relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        return target.open("wb")

    def bind_read_stream(self, file_object: Any) -> BinaryIO:
        if not isinstance(file_object, DiskFileObject):
            raise InternalAdapterError(f"Cannot read from {file_object!r}")
        if file_object.is_archive_member:
            with zipfile.ZipFile(file_object.root) as archive:
                return io.BytesIO(archive.read(str(file_object.relative_path)))
        return (file_object.root / Path(file_object.relative_path)).open("rb")

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _list_directory(
        root: Path,
        package_path: PurePosixPath,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[DiskFileObject]:
        base = root / Path(package_path)
        if not base.is_dir():
            return []
        candidates = base.rglob("*") if recurse else base.iterdir()
        found: List[DiskFileObject] = []
        for path in sorted(candidates):
            kind = _KIND_BY_SUFFIX.get(path.suffix)
            if kind is None or kind not in kinds or not path.is_file():
                continue
            found.append(DiskFileObject(root, PurePosixPath(path.relative_to(root).as_posix()), kind))
        return found

    @staticmethod
    def _list_archive(
        root: Path,
        package_path: PurePosixPath,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[DiskFileObject]:
        found: List[DiskFileObject] = []
        with zipfile.ZipFile(root) as archive:
            for name in sorted(archive.namelist()):
                member = PurePosixPath(name)
                kind = _KIND_BY_SUFFIX.get(member.suffix)
                if kind is None or kind not in kinds:
                    continue
                parent = member.parent
                if parent == package_path or (recurse and package_path in parent.parents):
                    found.append(DiskFileObject(root, member, kind))
        return found


class ForwardingFileManager(FileManager):
    """Delegates every operation to a wrapped file manager."""

    def __init__(self, delegate: FileManager) -> None:
        self._delegate = delegate

    @property
    def delegate(self) -> FileManager:
        return self._delegate

    def set_location(self, location: Location, paths: Iterable[Path]) -> None:
        self._delegate.set_location(location, paths)

    def get_location(self, location: Location) -> List[Path]:
        return self._delegate.get_location(location)

    def list_package_members(
        self,
        location: Location,
        package_name: str,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[Any]:
        return self._delegate.list_package_members(location, package_name, kinds, recurse)

    def resolve_binary_name(self, location: Location, file_object: Any) -> Optional[str]:
        return self._delegate.resolve_binary_name(location, file_object)

    def resolve_output_artifact(self, location: Location, class_name: str, kind: Kind) -> Any:
        return self._delegate.resolve_output_artifact(location, class_name, kind)

    def bind_write_stream(self, file_object: Any) -> Any:
        return self._delegate.bind_write_stream(file_object)

    def bind_read_stream(self, file_object: Any) -> BinaryIO:
        return self._delegate.bind_read_stream(file_object)

    def flush(self) -> None:
        self._delegate.flush()

    def close(self) -> None:
        self._delegate.close()


class VirtualFileManager(ForwardingFileManager):
    """Keeps compiler output in memory and serves generated packages from the store.

    Output requests create a fresh ``CompiledArtifact`` registered in the
    session's ``PackageIndex``. Classpath listings for packages under the
    reserved namespace come from the ``ArtifactStore`` and never reach the
    delegate.
    """

    def __init__(
        self,
        delegate: FileManager,
        artifact_store: ArtifactStore,
        package_index: PackageIndex,
        reserved_namespace: str,
    ) -> None:
        super().__init__(delegate)
        if not reserved_namespace:
            raise ConfigurationError("reserved_namespace must be a non-empty package name")
        self._store = artifact_store
        self._package_index = package_index
        self._reserved_namespace = reserved_namespace

    @property
    def package_index(self) -> PackageIndex:
        return self._package_index

    def is_reserved(self, package_name: str) -> bool:
        namespace = self._reserved_namespace
        return package_name == namespace or package_name.startswith(namespace + ".")

    def resolve_output_artifact(self, location: Location, class_name: str, kind: Kind) -> CompiledArtifact:
        if not class_name:
            raise InternalAdapterError("Output requested without a class name")
        artifact = CompiledArtifact(class_name, kind)
        self._package_index.register(artifact)
        logger.debug("Allocated in-memory artifact %s for %s", artifact.uri, location.name)
        return artifact

    def bind_write_stream(self, file_object: Any) -> Any:
        if isinstance(file_object, CompiledArtifact):
            return file_object.open_writer()
        return super().bind_write_stream(file_object)

    def bind_read_stream(self, file_object: Any) -> BinaryIO:
        if isinstance(file_object, CompiledArtifact):
            return io.BytesIO(file_object.content)
        return super().bind_read_stream(file_object)

    def resolve_binary_name(self, location: Location, file_object: Any) -> Optional[str]:
        if isinstance(file_object, CompiledArtifact):
            return file_object.class_name
        return super().resolve_binary_name(location, file_object)

    def list_package_members(
        self,
        location: Location,
        package_name: str,
        kinds: Collection[Kind],
        recurse: bool,
    ) -> List[Any]:
        if location is Location.CLASS_PATH and self.is_reserved(package_name):
            if Kind.CLASS not in kinds:
                return []
            members: List[CompiledArtifact] = []
            for class_name in self._store.list_by_package(package_name, recurse=recurse):
                content = self._store.get(class_name)
                if content is not None:
                    members.append(CompiledArtifact.sealed(class_name, content))
            return members
        return super().list_package_members(location, package_name, kinds, recurse)


def write_artifact(file_manager: FileManager, file_object: Any, payload: Sequence[bytes]) -> Any:
    """Write ``payload`` through ``file_manager`` and commit it."""

    stream = file_manager.bind_write_stream(file_object)
    if isinstance(stream, ArtifactWriter):
        for chunk in payload:
            stream.write(chunk)
        return stream.seal()
    with stream:
        for chunk in payload:
            stream.write(chunk)
    return file_object


__all__ = [
    "DiskFileObject",
    "FileManager",
    "ForwardingFileManager",
    "StandardFileManager",
    "VirtualFileManager",
    "write_artifact",
]
