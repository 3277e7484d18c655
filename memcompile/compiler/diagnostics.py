"""Compiler diagnostics and their translation into caller-facing errors."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from memcompile.logging_utils import DIAGNOSTICS_LOGGER_NAME


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


@dataclass(frozen=True)
class Diagnostic:
    """A raw message reported by the compiler service against generated source."""

    severity: Severity
    message: str
    line: Optional[int] = None
    source: Optional[str] = None


class DiagnosticCollector:
    """Accumulates diagnostics in the order the compiler reports them."""

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def has_errors(self) -> bool:
        return any(item.severity is Severity.ERROR for item in self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)


@dataclass(frozen=True)
class TemplatePosition:
    file: Optional[str]
    line: int


class LineMap:
    """Maps generated-source lines back to positions in the original template."""

    def __init__(self) -> None:
        self._positions: Dict[int, TemplatePosition] = {}

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[int, Union[int, TemplatePosition]],
        *,
        file: Optional[str] = None,
    ) -> "LineMap":
        line_map = cls()
        for generated_line, target in mapping.items():
            if isinstance(target, TemplatePosition):
                line_map._positions[int(generated_line)] = target
            else:
                line_map.add(int(generated_line), int(target), file=file)
        return line_map

    def add(self, generated_line: int, template_line: int, *, file: Optional[str] = None) -> None:
        if generated_line < 1 or template_line < 1:
            raise ValueError("Line numbers are 1-based")
        self._positions[generated_line] = TemplatePosition(file=file, line=template_line)

    def add_range(
        self,
        first_generated_line: int,
        last_generated_line: int,
        template_line: int,
        *,
        file: Optional[str] = None,
    ) -> None:
        """Map every generated line in the inclusive range to one template line."""

        if last_generated_line < first_generated_line:
            raise ValueError("Range end precedes range start")
        for generated_line in range(first_generated_line, last_generated_line + 1):
            self.add(generated_line, template_line, file=file)

    def lookup(self, generated_line: int) -> Optional[TemplatePosition]:
        return self._positions.get(generated_line)

    def __len__(self) -> int:
        return len(self._positions)


@dataclass(frozen=True)
class CompilationError:
    """Structured error handed back to the caller of a failed compile."""

    severity: Severity
    message: str
    line: Optional[int]
    generated_line: Optional[int]
    file: Optional[str] = None
    mapped: bool = False

    @classmethod
    def unmapped(cls, diagnostic: Diagnostic) -> "CompilationError":
        return cls(
            severity=diagnostic.severity,
            message=diagnostic.message,
            line=diagnostic.line,
            generated_line=diagnostic.line,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "message": self.message,
            "line": self.line,
            "generated_line": self.generated_line,
            "file": self.file,
            "mapped": self.mapped,
        }

    def __str__(self) -> str:
        location = self.file or "<generated>"
        if self.line is not None:
            location += f":{self.line}"
        return f"{location}: {self.severity.value}: {self.message}"


class DiagnosticTranslator:
    """Turns raw diagnostics into ``CompilationError`` values via a line map.

    Errors and warnings always come out one-for-one; notes are dropped unless
    ``include_notes`` is set. Lines without a mapping pass through unchanged.
    """

    def __init__(self, line_map: Optional[LineMap] = None, *, include_notes: bool = False) -> None:
        self._line_map = line_map
        self._include_notes = include_notes

    def translate(self, diagnostics: Iterable[Diagnostic]) -> List[CompilationError]:
        return [self._translate_one(item) for item in self.select(diagnostics)]

    def select(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        if self._include_notes:
            return list(diagnostics)
        return [item for item in diagnostics if item.severity is not Severity.NOTE]

    def _translate_one(self, diagnostic: Diagnostic) -> CompilationError:
        if self._line_map is None or diagnostic.line is None:
            return CompilationError.unmapped(diagnostic)
        try:
            position = self._line_map.lookup(diagnostic.line)
        except Exception:  # line maps come from the upstream generator
            logging.getLogger(DIAGNOSTICS_LOGGER_NAME).warning(
                "Line map lookup failed for generated line %s; reporting it unmapped",
                diagnostic.line,
                exc_info=True,
            )
            return CompilationError.unmapped(diagnostic)
        if position is None:
            return CompilationError.unmapped(diagnostic)
        return CompilationError(
            severity=diagnostic.severity,
            message=diagnostic.message,
            line=position.line,
            generated_line=diagnostic.line,
            file=position.file,
            mapped=True,
        )


__all__ = [
    "CompilationError",
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticTranslator",
    "LineMap",
    "Severity",
    "TemplatePosition",
]
