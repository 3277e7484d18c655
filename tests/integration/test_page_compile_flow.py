from __future__ import annotations

import importlib
from typing import Dict, List, Sequence, Tuple

import compile_page
from memcompile.compiler import InMemoryCompiler, LineMap, Severity
from memcompile.runtime import ArtifactStore, RuntimeContext

_NAMESPACE = "flow_pages"


class TemplateGenerator:
    """Tiny template translator that records where each generated line came from."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name

    def generate(self, template: str, imports: Sequence[str] = ()) -> Tuple[str, LineMap]:
        lines: List[str] = [f"import {name}" for name in imports]
        lines.append("def render(context):")
        lines.append("    out = []")
        mapping: Dict[int, int] = {}
        for template_line, text in enumerate(template.splitlines(), start=1):
            if text.startswith("{{") and text.endswith("}}"):
                lines.append(f"    out.append(str({text[2:-2].strip()}))")
            else:
                lines.append(f"    out.append({text!r})")
            mapping[len(lines)] = template_line
        lines.append("    return ''.join(out)")
        return "\n".join(lines) + "\n", LineMap.from_mapping(mapping, file=self.template_name)


def _compile(compiler: InMemoryCompiler, unit_name: str, source: str, line_map=None):
    compiler.open_source_sink(unit_name).write(source)
    return compiler.compile(unit_name, line_map)


def test_generated_pages_compile_import_each_other_and_render():
    store = ArtifactStore()
    compiler = InMemoryCompiler(store, reserved_namespace=_NAMESPACE)

    header_source, header_map = TemplateGenerator("header.tpl").generate("<header>\n{{ context['site'] }}")
    assert _compile(compiler, f"{_NAMESPACE}.header", header_source, header_map)

    page_source = (
        f"from {_NAMESPACE}.header import render as header\n"
        "\n"
        "def render(context):\n"
        "    return header(context) + '<main/>'\n"
    )
    assert _compile(compiler, f"{_NAMESPACE}.index", page_source)

    assert store.list_by_package(_NAMESPACE) == [f"{_NAMESPACE}.header", f"{_NAMESPACE}.index"]
    with RuntimeContext(store, reserved_namespace=_NAMESPACE):
        index = importlib.import_module(f"{_NAMESPACE}.index")
        assert index.render({"site": "docs"}) == "<header>docs<main/>"


def test_template_errors_are_reported_against_template_lines():
    store = ArtifactStore()
    compiler = InMemoryCompiler(store, reserved_namespace=_NAMESPACE)
    generator = TemplateGenerator("broken.tpl")

    source, line_map = generator.generate("<p>\n{{ context['title' }}\n</p>")
    result = _compile(compiler, f"{_NAMESPACE}.broken", source, line_map)

    assert not result
    [error] = result.errors
    assert error.severity is Severity.ERROR
    assert (error.file, error.line, error.mapped) == ("broken.tpl", 2, True)
    assert error.generated_line == 4
    assert str(error).startswith("broken.tpl:2: error:")
    assert len(store) == 0


def test_missing_generated_import_is_reported_at_the_import_line():
    store = ArtifactStore()
    compiler = InMemoryCompiler(store, reserved_namespace=_NAMESPACE)
    header_source, _ = TemplateGenerator("header.tpl").generate("<header/>")
    assert _compile(compiler, f"{_NAMESPACE}.header", header_source)

    source, line_map = TemplateGenerator("footer.tpl").generate("<footer/>", imports=[f"{_NAMESPACE}.missing"])
    result = _compile(compiler, f"{_NAMESPACE}.footer", source, line_map)

    assert [(error.message, error.line, error.mapped) for error in result.errors] == [
        (f"cannot find module '{_NAMESPACE}.missing'", 1, False)
    ]


def test_command_line_compiles_and_saves(tmp_path, capsys):
    source = tmp_path / "index.py"
    source.write_text("def render(context):\n    return 'ok'\n", encoding="utf-8")
    target = tmp_path / "out" / "index.pyc"

    code = compile_page.main([str(source), "generated.index", "--save", str(target)])

    assert code == 0
    output = capsys.readouterr().out
    assert output.startswith("compiled generated.index (")
    assert target.read_bytes()


def test_command_line_reports_mapped_errors(tmp_path, capsys):
    source = tmp_path / "index.py"
    source.write_text("x = 1\ny = (\n", encoding="utf-8")
    line_map = tmp_path / "index.map.json"
    line_map.write_text('{"2": 14}', encoding="utf-8")

    code = compile_page.main([str(source), "generated.index", "--line-map", str(line_map)])

    assert code == 1
    assert ":14: error:" in capsys.readouterr().out


def test_command_line_rejects_missing_config(tmp_path, capsys):
    source = tmp_path / "index.py"
    source.write_text("x = 1\n", encoding="utf-8")

    code = compile_page.main([str(source), "generated.index", "--config", str(tmp_path / "nope.yaml")])

    assert code == 2
    assert "not found" in capsys.readouterr().err
