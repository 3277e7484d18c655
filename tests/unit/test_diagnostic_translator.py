from __future__ import annotations

import pytest

from memcompile.compiler import (
    CompilationError,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticTranslator,
    LineMap,
    Severity,
    TemplatePosition,
)


def _diagnostics():
    return [
        Diagnostic(Severity.ERROR, "invalid syntax", 4),
        Diagnostic(Severity.NOTE, "compiled with -g", None),
        Diagnostic(Severity.WARNING, "invalid escape sequence", 9),
        Diagnostic(Severity.ERROR, "cannot find module 'pkg.Missing'", 2),
    ]


def test_mapped_lines_point_at_the_template():
    line_map = LineMap()
    line_map.add(4, 12, file="index.tpl")
    line_map.add(9, 20, file="index.tpl")

    errors = DiagnosticTranslator(line_map).translate(_diagnostics())

    assert [(error.line, error.generated_line, error.mapped) for error in errors] == [
        (12, 4, True),
        (20, 9, True),
        (2, 2, False),
    ]
    assert errors[0].file == "index.tpl"
    assert errors[2].file is None


def test_error_and_warning_count_is_preserved():
    diagnostics = _diagnostics()
    expected = sum(1 for item in diagnostics if item.severity is not Severity.NOTE)

    errors = DiagnosticTranslator(LineMap()).translate(diagnostics)

    assert len(errors) == expected
    assert [error.message for error in errors] == [
        "invalid syntax",
        "invalid escape sequence",
        "cannot find module 'pkg.Missing'",
    ]


def test_notes_can_be_kept_by_policy():
    errors = DiagnosticTranslator(None, include_notes=True).translate(_diagnostics())

    assert [error.severity for error in errors] == [
        Severity.ERROR,
        Severity.NOTE,
        Severity.WARNING,
        Severity.ERROR,
    ]


def test_failing_line_map_still_surfaces_every_diagnostic():
    class ExplodingLineMap(LineMap):
        def lookup(self, generated_line):
            raise RuntimeError("corrupt map")

    errors = DiagnosticTranslator(ExplodingLineMap()).translate(_diagnostics())

    assert len(errors) == 3
    assert all(not error.mapped for error in errors)
    assert errors[0].line == 4


def test_line_map_ranges_and_mappings():
    line_map = LineMap.from_mapping({1: 1, 2: TemplatePosition("layout.tpl", 7)}, file="page.tpl")
    line_map.add_range(10, 12, 30, file="page.tpl")

    assert line_map.lookup(1) == TemplatePosition("page.tpl", 1)
    assert line_map.lookup(2) == TemplatePosition("layout.tpl", 7)
    assert [line_map.lookup(line).line for line in (10, 11, 12)] == [30, 30, 30]
    assert line_map.lookup(13) is None
    assert len(line_map) == 5


@pytest.mark.parametrize("generated, template", [(0, 1), (1, 0)])
def test_line_map_rejects_zero_based_lines(generated, template):
    with pytest.raises(ValueError):
        LineMap().add(generated, template)


def test_compilation_error_rendering():
    error = CompilationError(Severity.ERROR, "invalid syntax", 12, 4, file="index.tpl", mapped=True)

    assert str(error) == "index.tpl:12: error: invalid syntax"
    assert error.to_dict() == {
        "severity": "error",
        "message": "invalid syntax",
        "line": 12,
        "generated_line": 4,
        "file": "index.tpl",
        "mapped": True,
    }


def test_collector_keeps_report_order():
    collector = DiagnosticCollector()
    for item in _diagnostics():
        collector.report(item)

    assert collector.diagnostics == _diagnostics()
    assert collector.has_errors()
    assert len(collector) == 4
