"""Session-spanning store of compiled artifacts keyed by class name."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ArtifactNotFoundError

logger = logging.getLogger(__name__)


def package_of(class_name: str) -> str:
    """Return the package prefix of a dotted class name ("" for top level)."""

    return class_name.rpartition(".")[0]


@dataclass(frozen=True)
class ArtifactEntry:
    """Immutable snapshot of one stored artifact."""

    class_name: str
    content: bytes
    created_at: float

    @property
    def package(self) -> str:
        return package_of(self.class_name)


class ArtifactStore:
    """Thread-safe mapping from class name to compiled content.

    Entries are replaced wholesale under the lock, so readers only ever see a
    complete ``ArtifactEntry``. Package listings follow first-insertion order.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: Dict[str, ArtifactEntry] = {}
        self._packages: Dict[str, List[str]] = {}

    def put(self, class_name: str, content: bytes) -> ArtifactEntry:
        with self._lock:
            return self._put_locked(class_name, content)

    def put_many(self, items: Iterable[Tuple[str, bytes]]) -> List[ArtifactEntry]:
        """Store several artifacts as one unit; other callers see all or none."""

        pending = [(name, bytes(content)) for name, content in items]
        with self._lock:
            return [self._put_locked(name, content) for name, content in pending]

    def get(self, class_name: str) -> Optional[bytes]:
        entry = self.entry(class_name)
        return entry.content if entry else None

    def get_timestamp(self, class_name: str) -> Optional[float]:
        entry = self.entry(class_name)
        return entry.created_at if entry else None

    def entry(self, class_name: str) -> Optional[ArtifactEntry]:
        with self._lock:
            return self._entries.get(class_name)

    def list_by_package(self, package_name: str, *, recurse: bool = False) -> List[str]:
        with self._lock:
            names = list(self._packages.get(package_name, ()))
            if recurse:
                prefix = f"{package_name}." if package_name else ""
                for package, members in self._packages.items():
                    if package != package_name and package.startswith(prefix):
                        names.extend(members)
        return names

    def packages(self) -> List[str]:
        with self._lock:
            return list(self._packages)

    def remove(self, class_name: str) -> bool:
        with self._lock:
            entry = self._entries.pop(class_name, None)
            if entry is None:
                return False
            members = self._packages.get(entry.package, [])
            members.remove(class_name)
            if not members:
                self._packages.pop(entry.package, None)
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._packages.clear()

    def save(self, class_name: str, path: Path) -> Path:
        """Write one artifact's content to ``path``."""

        content = self.get(class_name)
        if content is None:
            raise ArtifactNotFoundError(f"No compiled artifact stored for '{class_name}'")
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info("Saved artifact %s (%d bytes) to %s", class_name, len(content), target)
        return target

    def __contains__(self, class_name: object) -> bool:
        with self._lock:
            return class_name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _put_locked(self, class_name: str, content: bytes) -> ArtifactEntry:
        previous = self._entries.get(class_name)
        created_at = time.time()
        if previous is not None and previous.created_at > created_at:
            created_at = previous.created_at
        entry = ArtifactEntry(class_name=class_name, content=bytes(content), created_at=created_at)
        if previous is None:
            self._packages.setdefault(entry.package, []).append(class_name)
        self._entries[class_name] = entry
        return entry


__all__ = ["ArtifactEntry", "ArtifactStore", "package_of"]
