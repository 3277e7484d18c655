import importlib
import sys

import pytest

from memcompile.compiler import InMemoryCompiler
from memcompile.runtime import (
    ArtifactFinder,
    ArtifactNotFoundError,
    ArtifactStore,
    ConfigurationError,
    InternalAdapterError,
    RuntimeContext,
)

_PAGE = """
TITLE = "Welcome"

def render():
    return "<h1>" + TITLE + "</h1>"
""".lstrip()


@pytest.fixture
def store() -> ArtifactStore:
    store = ArtifactStore()
    compiler = InMemoryCompiler(store, reserved_namespace="memtest_pages")
    compiler.open_source_sink("memtest_pages.home").write(_PAGE)
    compiler.compile("memtest_pages.home").raise_for_errors()
    return store


def test_stored_pages_are_importable_while_started(store):
    with RuntimeContext(store, reserved_namespace="memtest_pages") as context:
        module = importlib.import_module("memtest_pages.home")

        assert module.render() == "<h1>Welcome</h1>"
        assert module.__spec__.origin == "mem:///memtest_pages.home"
        assert context.loaded_modules() == ["memtest_pages", "memtest_pages.home"]


def test_shutdown_evicts_loaded_modules(store):
    context = RuntimeContext(store, reserved_namespace="memtest_pages").start()
    importlib.import_module("memtest_pages.home")

    context.shutdown()

    assert "memtest_pages.home" not in sys.modules
    assert "memtest_pages" not in sys.modules
    assert not context.started
    with pytest.raises(ImportError):
        importlib.import_module("memtest_pages.home")


def test_unknown_names_are_left_to_other_finders(store):
    with RuntimeContext(store, reserved_namespace="memtest_pages"):
        with pytest.raises(ImportError):
            importlib.import_module("memtest_pages.missing")


def test_load_module_does_not_register_the_module(store):
    context = RuntimeContext(store, reserved_namespace="memtest_pages")

    module = context.load_module("memtest_pages.home")

    assert module.TITLE == "Welcome"
    assert "memtest_pages.home" not in sys.modules


def test_load_module_for_missing_artifact():
    with pytest.raises(ArtifactNotFoundError):
        RuntimeContext().load_module("memtest_pages.nothing")


def test_corrupt_artifact_is_an_adapter_error():
    store = ArtifactStore()
    store.put("memtest_pages.broken", b"not bytecode at all")

    with pytest.raises(InternalAdapterError, match="corrupt"):
        RuntimeContext(store, reserved_namespace="memtest_pages").load_module("memtest_pages.broken")


def test_context_creates_its_own_store_by_default():
    context = RuntimeContext()

    assert len(context.artifact_store) == 0
    assert context.loaded_modules() == []


def test_stored_module_with_children_is_importable_as_a_package(store):
    compiler = InMemoryCompiler(store, reserved_namespace="memtest_pages")
    for name in ("memtest_pages.section", "memtest_pages.section.index"):
        compiler.open_source_sink(name).write("NAME = __name__\n")
        compiler.compile(name).raise_for_errors()

    with RuntimeContext(store, reserved_namespace="memtest_pages"):
        index = importlib.import_module("memtest_pages.section.index")
        section = sys.modules["memtest_pages.section"]

        assert index.NAME == "memtest_pages.section.index"
        assert section.NAME == "memtest_pages.section"
        assert section.__path__ == []


def test_finder_ignores_stored_names_outside_the_namespace():
    store = ArtifactStore()
    store.put("json.helpers", b"not consulted")
    finder = ArtifactFinder(store, "memtest_pages")

    assert finder.find_spec("json") is None
    assert finder.find_spec("json.helpers") is None


def test_parents_of_a_dotted_namespace_defer_to_real_packages():
    store = ArtifactStore()

    assert ArtifactFinder(store, "json.memtest_pages").find_spec("json") is None
    spec = ArtifactFinder(store, "memtest_root.pages").find_spec("memtest_root")
    assert spec.submodule_search_locations == []


def test_empty_namespace_is_rejected():
    with pytest.raises(ConfigurationError):
        RuntimeContext(ArtifactStore(), reserved_namespace="")
