"""Compiler services that turn in-memory units into artifacts."""
from __future__ import annotations

import ast
import logging
import os
import sys
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from memcompile.runtime.bytecode import dump_code
from memcompile.runtime.errors import ConfigurationError, InternalAdapterError

from .artifacts import CompilationUnit, Kind, Location
from .diagnostics import Diagnostic, DiagnosticCollector, Severity
from .file_manager import FileManager, write_artifact
from .options import (
    DEBUG_FLAG,
    EXTDIRS_FLAG,
    NOWARN_FLAG,
    SOURCE_FLAG,
    TARGET_FLAG,
    WERROR_FLAG,
    parse_version,
)

logger = logging.getLogger(__name__)

_MIN_SOURCE_LEVEL = (3, 7)


class CompilationTask(ABC):
    """One configured compilation, run exactly once."""

    @abstractmethod
    def run(self) -> bool:
        """Compile every unit; return ``True`` when no errors were reported."""


class CompilerService(ABC):
    """A compiler usable as a library: configure a task, run it, read diagnostics."""

    @abstractmethod
    def is_supported_option(self, flag: str) -> int:
        """Return the number of arguments ``flag`` takes, or -1 if unknown."""

    @abstractmethod
    def get_task(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticCollector,
        options: Sequence[str],
        units: Sequence[CompilationUnit],
    ) -> CompilationTask: ...

    def validate_options(self, options: Sequence[str]) -> None:
        """Raise ``ConfigurationError`` for unknown flags or malformed arguments."""

        for flag, args in self._split_options(options):
            self.check_option_value(flag, args)

    def check_option_value(self, flag: str, args: Sequence[str]) -> None:
        return None

    def _split_options(self, options: Sequence[str]) -> List[Tuple[str, List[str]]]:
        pairs: List[Tuple[str, List[str]]] = []
        index = 0
        while index < len(options):
            flag = options[index]
            arity = self.is_supported_option(flag)
            if arity < 0:
                raise ConfigurationError(f"Unsupported compiler option '{flag}'")
            args = list(options[index + 1 : index + 1 + arity])
            if len(args) < arity or any(arg.startswith("-") or not arg for arg in args):
                raise ConfigurationError(f"Compiler option '{flag}' expects {arity} argument(s)")
            pairs.append((flag, args))
            index += 1 + arity
        return pairs


@dataclass
class _TaskSettings:
    feature_version: Optional[Tuple[int, int]] = None
    optimize: int = -1
    ext_dirs: List[Path] = field(default_factory=list)
    warnings_as_errors: bool = False
    report_warnings: bool = True


class PythonCompilerService(CompilerService):
    """Compiles generated Python source with the running interpreter.

    Each unit becomes one artifact laid out like a ``.pyc`` file. Nothing is
    read from or written to disk; output goes through the file manager.
    """

    _OPTION_ARITY: Dict[str, int] = {
        SOURCE_FLAG: 1,
        TARGET_FLAG: 1,
        DEBUG_FLAG: 0,
        EXTDIRS_FLAG: 1,
        WERROR_FLAG: 0,
        NOWARN_FLAG: 0,
    }

    def is_supported_option(self, flag: str) -> int:
        return self._OPTION_ARITY.get(flag, -1)

    def check_option_value(self, flag: str, args: Sequence[str]) -> None:
        current = sys.version_info[:2]
        if flag == SOURCE_FLAG:
            level = parse_version(args[0], flag)
            if level < _MIN_SOURCE_LEVEL or level > current:
                raise ConfigurationError(
                    f"Source level {args[0]} is outside the supported range "
                    f"{_MIN_SOURCE_LEVEL[0]}.{_MIN_SOURCE_LEVEL[1]}-{current[0]}.{current[1]}"
                )
        elif flag == TARGET_FLAG:
            if parse_version(args[0], flag) != current:
                raise ConfigurationError(
                    f"Target level {args[0]} cannot be produced by Python {current[0]}.{current[1]}"
                )
        elif flag == EXTDIRS_FLAG:
            for entry in _split_path_list(args[0]):
                if not entry.is_dir():
                    raise ConfigurationError(f"Extension directory '{entry}' does not exist")

    def get_task(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticCollector,
        options: Sequence[str],
        units: Sequence[CompilationUnit],
    ) -> CompilationTask:
        settings = _TaskSettings()
        for flag, args in self._split_options(options):
            self.check_option_value(flag, args)
            if flag == SOURCE_FLAG:
                settings.feature_version = parse_version(args[0], flag)
            elif flag == DEBUG_FLAG:
                settings.optimize = 0
            elif flag == EXTDIRS_FLAG:
                settings.ext_dirs.extend(_split_path_list(args[0]))
            elif flag == WERROR_FLAG:
                settings.warnings_as_errors = True
            elif flag == NOWARN_FLAG:
                settings.report_warnings = False
        return _PythonCompilationTask(file_manager, diagnostics, settings, list(units))


class _PythonCompilationTask(CompilationTask):
    def __init__(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticCollector,
        settings: _TaskSettings,
        units: List[CompilationUnit],
    ) -> None:
        self._file_manager = file_manager
        self._diagnostics = diagnostics
        self._settings = settings
        self._units = units
        self._listings: Dict[str, List[str]] = {}
        self._ran = False

    def run(self) -> bool:
        if self._ran:
            raise InternalAdapterError("Compilation task was already run")
        self._ran = True
        if self._settings.ext_dirs:
            self._file_manager.set_location(Location.EXTENSION_PATH, self._settings.ext_dirs)
        success = True
        for unit in self._units:
            success = self._compile_unit(unit) and success
        self._file_manager.flush()
        return success

    def _compile_unit(self, unit: CompilationUnit) -> bool:
        source = unit.get_char_content()
        tree = None
        syntax_error: Optional[SyntaxError] = None
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                tree = ast.parse(source, filename=unit.uri, feature_version=self._settings.feature_version)
            except SyntaxError as exc:
                syntax_error = exc
        warned = self._report_warnings(unit, caught)
        if syntax_error is not None:
            self._report(unit, Severity.ERROR, syntax_error.msg, syntax_error.lineno)
            return False

        resolved = self._check_imports(unit, tree)

        code = None
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                code = compile(tree, unit.uri, "exec", dont_inherit=True, optimize=self._settings.optimize)
            except SyntaxError as exc:
                syntax_error = exc
        warned = self._report_warnings(unit, caught) or warned
        if syntax_error is not None:
            self._report(unit, Severity.ERROR, syntax_error.msg, syntax_error.lineno)
            return False
        if not resolved:
            return False
        if warned and self._settings.warnings_as_errors:
            self._report(unit, Severity.ERROR, "warnings found and -Werror specified", None)
            return False

        encoded = source.encode(unit.encoding)
        artifact = self._file_manager.resolve_output_artifact(Location.CLASS_OUTPUT, unit.unit_name, Kind.CLASS)
        write_artifact(self._file_manager, artifact, [dump_code(code, len(encoded))])
        logger.debug("Compiled %s", unit.unit_name)
        return True

    def _check_imports(self, unit: CompilationUnit, tree: ast.AST) -> bool:
        resolved = True
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                names = [alias.name for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                names = [node.module]
            else:
                continue
            for module_name in names:
                if not self._module_visible(module_name):
                    self._report(unit, Severity.ERROR, f"cannot find module '{module_name}'", node.lineno)
                    resolved = False
        return resolved

    def _module_visible(self, module_name: str) -> bool:
        package = module_name.rpartition(".")[0]
        if not package:
            # top-level imports are resolved by the interpreter at load time
            return True
        if package not in self._listings:
            members = self._file_manager.list_package_members(
                Location.CLASS_PATH, package, {Kind.SOURCE, Kind.CLASS}, True
            )
            names = (self._file_manager.resolve_binary_name(Location.CLASS_PATH, member) for member in members)
            self._listings[package] = [name for name in names if name]
        listing = self._listings[package]
        if not listing:
            return True
        prefix = module_name + "."
        return any(name == module_name or name.startswith(prefix) for name in listing)

    def _report_warnings(self, unit: CompilationUnit, caught: List[warnings.WarningMessage]) -> bool:
        if not caught:
            return False
        if self._settings.report_warnings:
            for item in caught:
                line = item.lineno if item.filename == unit.uri else None
                self._report(unit, Severity.WARNING, str(item.message), line)
        return True

    def _report(self, unit: CompilationUnit, severity: Severity, message: str, line: Optional[int]) -> None:
        self._diagnostics.report(Diagnostic(severity=severity, message=message, line=line, source=unit.uri))


def _split_path_list(value: str) -> List[Path]:
    return [Path(entry) for entry in value.split(os.pathsep) if entry]


__all__ = [
    "CompilationTask",
    "CompilerService",
    "PythonCompilerService",
]
