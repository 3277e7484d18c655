"""In-memory compilation adapter driving a compiler service end to end."""
from __future__ import annotations

import io
import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Union

from memcompile.logging_utils import COMPILER_LOGGER_NAME, DIAGNOSTICS_LOGGER_NAME
from memcompile.runtime.artifact_store import ArtifactStore
from memcompile.runtime.context import DEFAULT_RESERVED_NAMESPACE
from memcompile.runtime.errors import ConfigurationError, InternalAdapterError, MemcompileError

from .artifacts import CompilationUnit, Location, PackageIndex
from .diagnostics import CompilationError, Diagnostic, DiagnosticCollector, DiagnosticTranslator, LineMap
from .file_manager import FileManager, StandardFileManager, VirtualFileManager
from .options import CompilerOptions
from .service import CompilerService, PythonCompilerService

if TYPE_CHECKING:
    from memcompile.config import CompilerSettings

PathLike = Union[str, os.PathLike]


class PageCompilationError(MemcompileError):
    """Raised on demand for a failed compile; carries the structured errors."""

    def __init__(self, unit_name: str, errors: Sequence[CompilationError]) -> None:
        self.unit_name = unit_name
        self.errors = list(errors)
        details = "\n".join(f"  {error}" for error in self.errors) or "  (no diagnostics reported)"
        super().__init__(f"Compilation of '{unit_name}' failed:\n{details}")


@dataclass
class CompilationResult:
    unit_name: str
    success: bool
    errors: List[CompilationError] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

    def raise_for_errors(self) -> None:
        if not self.success:
            raise PageCompilationError(self.unit_name, self.errors)


class InMemoryCompiler:
    """Compiles one generated unit at a time without touching disk.

    Source is written into the sink returned by ``open_source_sink``. A
    successful ``compile`` publishes every artifact of the session into the
    artifact store at once; a failed one publishes nothing and returns the
    translated diagnostics.
    """

    def __init__(
        self,
        artifact_store: ArtifactStore,
        *,
        compiler_service: Optional[CompilerService] = None,
        file_manager: Optional[FileManager] = None,
        reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE,
        include_notes: bool = False,
    ) -> None:
        if not reserved_namespace:
            raise ConfigurationError("reserved_namespace must be a non-empty package name")
        self._store = artifact_store
        self._service = compiler_service or PythonCompilerService()
        self._file_manager = file_manager or StandardFileManager()
        self._reserved_namespace = reserved_namespace
        self._include_notes = include_notes
        self._classpath: List[Path] = []
        self._options = CompilerOptions()
        self._sink: Optional[io.StringIO] = None
        self._encoding = "utf-8"
        self._logger = logging.getLogger(COMPILER_LOGGER_NAME)

    @classmethod
    def from_settings(
        cls,
        settings: "CompilerSettings",
        artifact_store: ArtifactStore,
        **kwargs,
    ) -> "InMemoryCompiler":
        kwargs.setdefault("reserved_namespace", settings.reserved_namespace)
        kwargs.setdefault("include_notes", settings.include_notes)
        compiler = cls(artifact_store, **kwargs)
        compiler.configure(
            classpath=settings.classpath,
            source_level=settings.source_level,
            target_level=settings.target_level,
            debug=settings.debug,
            ext_dirs=settings.ext_dirs,
        )
        for option in settings.extra_options:
            compiler.add_option(*option.split())
        return compiler

    # ------------------------------------------------------------------
    # Configuration

    @property
    def artifact_store(self) -> ArtifactStore:
        return self._store

    @property
    def options(self) -> List[str]:
        return self._options.as_list()

    @property
    def classpath(self) -> List[Path]:
        return list(self._classpath)

    def configure(
        self,
        classpath: Optional[Iterable[PathLike]] = None,
        source_level: Optional[str] = None,
        target_level: Optional[str] = None,
        debug: bool = False,
        ext_dirs: Optional[Union[str, Sequence[PathLike]]] = None,
    ) -> None:
        """Add settings to the accumulated configuration.

        Options are appended, never replaced: calling this twice with the same
        level produces the flag twice.
        """

        if classpath is not None:
            self.set_classpath(classpath)
        if ext_dirs:
            self.set_extdirs(ext_dirs)
        if source_level:
            self.set_source_level(source_level)
        if target_level:
            self.set_target_level(target_level)
        self.set_debug(debug)

    def set_classpath(self, classpath: Iterable[PathLike]) -> None:
        self._classpath = [Path(entry) for entry in classpath]

    def set_extdirs(self, ext_dirs: Union[str, Sequence[PathLike]]) -> None:
        self._options.add_extdirs(ext_dirs if isinstance(ext_dirs, str) else [str(e) for e in ext_dirs])

    def set_source_level(self, level: str) -> None:
        self._options.add_source_level(level)

    def set_target_level(self, level: str) -> None:
        self._options.add_target_level(level)

    def set_debug(self, debug: bool) -> None:
        self._options.add_debug(debug)

    def add_option(self, flag: str, *args: str) -> None:
        self._options.add(flag, *args)

    # ------------------------------------------------------------------
    # Compilation

    def open_source_sink(self, unit_name: str, encoding: str = "utf-8") -> io.StringIO:
        """Return a fresh buffer for the generated source of ``unit_name``."""

        del unit_name  # the unit name is supplied again to compile()
        self._sink = io.StringIO()
        self._encoding = encoding
        return self._sink

    def compile(self, unit_name: str, line_map: Optional[LineMap] = None) -> CompilationResult:
        if self._sink is None:
            raise InternalAdapterError("compile() called before open_source_sink()")
        if not unit_name or unit_name.startswith(".") or unit_name.endswith("."):
            raise ConfigurationError(f"'{unit_name}' is not a fully-qualified unit name")
        unit = CompilationUnit(unit_name, self._sink.getvalue(), self._encoding)
        self._validate_classpath()
        options = self._options.as_list()
        self._service.validate_options(options)

        package_index = PackageIndex()
        file_manager = VirtualFileManager(
            self._file_manager,
            self._store,
            package_index,
            self._reserved_namespace,
        )
        file_manager.set_location(Location.CLASS_PATH, self._classpath)
        collector = DiagnosticCollector()
        task = self._service.get_task(file_manager, collector, options, [unit])
        succeeded = task.run()

        if succeeded:
            self._commit(unit_name, package_index)
            self._log_diagnostics(unit_name, collector.diagnostics)
            return CompilationResult(unit_name=unit_name, success=True)

        errors = self._translate(collector.diagnostics, line_map)
        self._logger.info("Compilation of %s failed with %d diagnostic(s)", unit_name, len(errors))
        logging.getLogger(DIAGNOSTICS_LOGGER_NAME).debug(
            "Generated source for %s:\n%s", unit_name, unit.source_text
        )
        return CompilationResult(unit_name=unit_name, success=False, errors=errors)

    def get_artifact_timestamp(self, class_name: str) -> Optional[float]:
        return self._store.get_timestamp(class_name)

    def save_artifact(self, class_name: str, path: PathLike) -> Path:
        """Persist one stored artifact to disk at the caller's request."""

        return self._store.save(class_name, Path(path))

    # ------------------------------------------------------------------
    # Internal helpers

    def _validate_classpath(self) -> None:
        for entry in self._classpath:
            if entry.is_dir():
                continue
            if entry.is_file() and zipfile.is_zipfile(entry):
                continue
            raise ConfigurationError(f"Classpath entry '{entry}' is not a directory or zip archive")

    def _commit(self, unit_name: str, package_index: PackageIndex) -> None:
        artifacts = package_index.artifacts()
        if not any(artifact.class_name == unit_name for artifact in artifacts):
            raise InternalAdapterError(f"Compiler reported success but produced no artifact for '{unit_name}'")
        unsealed = [artifact.class_name for artifact in artifacts if not artifact.is_sealed]
        if unsealed:
            raise InternalAdapterError(f"Artifacts were never sealed: {', '.join(unsealed)}")
        entries = self._store.put_many((artifact.class_name, artifact.content) for artifact in artifacts)
        for entry in entries:
            self._logger.info("Committed %s (%d bytes)", entry.class_name, len(entry.content))

    def _translate(self, diagnostics: List[Diagnostic], line_map: Optional[LineMap]) -> List[CompilationError]:
        translator = DiagnosticTranslator(line_map, include_notes=self._include_notes)
        try:
            return translator.translate(diagnostics)
        except Exception:  # untranslated diagnostics are still returned
            logging.getLogger(DIAGNOSTICS_LOGGER_NAME).warning(
                "Diagnostic translation failed; returning %d untranslated diagnostic(s)",
                len(diagnostics),
                exc_info=True,
            )
            return [CompilationError.unmapped(item) for item in translator.select(diagnostics)]

    def _log_diagnostics(self, unit_name: str, diagnostics: List[Diagnostic]) -> None:
        for item in diagnostics:
            self._logger.debug("%s line %s: %s: %s", unit_name, item.line, item.severity.value, item.message)


__all__ = [
    "CompilationResult",
    "DEFAULT_RESERVED_NAMESPACE",
    "InMemoryCompiler",
    "PageCompilationError",
]
