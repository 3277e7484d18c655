"""In-memory compilation of generated source units."""

from .adapter import CompilationResult, InMemoryCompiler, PageCompilationError
from .artifacts import ArtifactWriter, CompilationUnit, CompiledArtifact, Kind, Location, PackageIndex
from .diagnostics import (
    CompilationError,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticTranslator,
    LineMap,
    Severity,
    TemplatePosition,
)
from .file_manager import FileManager, ForwardingFileManager, StandardFileManager, VirtualFileManager
from .options import CompilerOptions
from .service import CompilationTask, CompilerService, PythonCompilerService

__all__ = [
    "ArtifactWriter",
    "CompilationError",
    "CompilationResult",
    "CompilationTask",
    "CompilationUnit",
    "CompiledArtifact",
    "CompilerOptions",
    "CompilerService",
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticTranslator",
    "FileManager",
    "ForwardingFileManager",
    "InMemoryCompiler",
    "Kind",
    "LineMap",
    "Location",
    "PackageIndex",
    "PageCompilationError",
    "PythonCompilerService",
    "Severity",
    "StandardFileManager",
    "TemplatePosition",
    "VirtualFileManager",
]
