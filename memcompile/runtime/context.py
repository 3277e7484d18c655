"""Runtime context owning the artifact store for the life of an application."""
from __future__ import annotations

import importlib.abc
import importlib.machinery
import importlib.util
import logging
import sys
import types
from typing import List, Optional, Set

from .artifact_store import ArtifactStore
from .bytecode import load_code
from .errors import ArtifactNotFoundError, ConfigurationError, InternalAdapterError

logger = logging.getLogger(__name__)


DEFAULT_RESERVED_NAMESPACE = "generated"


class ArtifactFinder(importlib.abc.MetaPathFinder, importlib.abc.Loader):
    """Import hook serving modules straight from an ``ArtifactStore``.

    Only names inside the reserved namespace are answered. Packages that only
    exist as prefixes of stored names are synthesized as empty namespace
    packages, as are parents of a dotted namespace that nothing else provides.
    """

    def __init__(self, store: ArtifactStore, reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE) -> None:
        if not reserved_namespace:
            raise ConfigurationError("reserved_namespace must be a non-empty package name")
        self._store = store
        self._reserved_namespace = reserved_namespace
        self.loaded: Set[str] = set()

    def is_reserved(self, fullname: str) -> bool:
        namespace = self._reserved_namespace
        return fullname == namespace or fullname.startswith(namespace + ".")

    def find_spec(self, fullname, path=None, target=None):
        if not self.is_reserved(fullname):
            if self._reserved_namespace.startswith(fullname + "."):
                if importlib.machinery.PathFinder.find_spec(fullname, path) is None:
                    return self._package_spec(fullname)
            return None
        if fullname in self._store:
            spec = importlib.util.spec_from_loader(fullname, self, origin=f"mem:///{fullname}")
            if self._is_generated_package(fullname):
                spec.submodule_search_locations = []
            return spec
        if fullname == self._reserved_namespace or self._is_generated_package(fullname):
            return self._package_spec(fullname)
        return None

    def create_module(self, spec):
        return None

    def exec_module(self, module: types.ModuleType) -> None:
        name = module.__spec__.name
        self.loaded.add(name)
        content = self._store.get(name)
        if content is None:
            return
        exec(_code_from_content(name, content), module.__dict__)

    def _package_spec(self, fullname: str) -> importlib.machinery.ModuleSpec:
        spec = importlib.machinery.ModuleSpec(fullname, self, is_package=True)
        spec.submodule_search_locations = []
        return spec

    def _is_generated_package(self, fullname: str) -> bool:
        prefix = fullname + "."
        return any(package == fullname or package.startswith(prefix) for package in self._store.packages())


class RuntimeContext:
    """Holds the shared ``ArtifactStore`` between ``start`` and ``shutdown``."""

    def __init__(
        self,
        artifact_store: Optional[ArtifactStore] = None,
        reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE,
    ) -> None:
        if not reserved_namespace:
            raise ConfigurationError("reserved_namespace must be a non-empty package name")
        self._store = artifact_store if artifact_store is not None else ArtifactStore()
        self._reserved_namespace = reserved_namespace
        self._finder: Optional[ArtifactFinder] = None

    @property
    def artifact_store(self) -> ArtifactStore:
        return self._store

    @property
    def reserved_namespace(self) -> str:
        return self._reserved_namespace

    @property
    def started(self) -> bool:
        return self._finder is not None

    def start(self) -> "RuntimeContext":
        if self._finder is None:
            self._finder = ArtifactFinder(self._store, self._reserved_namespace)
            sys.meta_path.insert(0, self._finder)
            logger.debug("Runtime context started with %d stored artifact(s)", len(self._store))
        return self

    def shutdown(self) -> None:
        finder = self._finder
        if finder is None:
            return
        self._finder = None
        if finder in sys.meta_path:
            sys.meta_path.remove(finder)
        for name in sorted(finder.loaded, reverse=True):
            sys.modules.pop(name, None)
        logger.debug("Runtime context shut down; evicted %d module(s)", len(finder.loaded))

    def load_module(self, class_name: str) -> types.ModuleType:
        """Execute a stored artifact in a new module not registered in ``sys.modules``."""

        content = self._store.get(class_name)
        if content is None:
            raise ArtifactNotFoundError(f"No compiled artifact stored for '{class_name}'")
        module = types.ModuleType(class_name)
        module.__file__ = f"mem:///{class_name}"
        exec(_code_from_content(class_name, content), module.__dict__)
        return module

    def loaded_modules(self) -> List[str]:
        return sorted(self._finder.loaded) if self._finder else []

    def __enter__(self) -> "RuntimeContext":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def _code_from_content(class_name: str, content: bytes) -> types.CodeType:
    try:
        return load_code(content)
    except (ValueError, EOFError, TypeError) as exc:
        raise InternalAdapterError(f"Stored artifact for '{class_name}' is corrupt: {exc}") from exc


__all__ = ["ArtifactFinder", "DEFAULT_RESERVED_NAMESPACE", "RuntimeContext"]
