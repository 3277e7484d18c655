from __future__ import annotations

import zipfile

import pytest

from memcompile.compiler import Kind, Location, StandardFileManager
from memcompile.runtime import ConfigurationError


@pytest.fixture
def classpath_dir(tmp_path):
    root = tmp_path / "lib"
    (root / "shared" / "widgets").mkdir(parents=True)
    (root / "shared" / "__init__.py").write_text("")
    (root / "shared" / "format.py").write_text("def upper(value):\n    return value.upper()\n")
    (root / "shared" / "notes.txt").write_text("ignored")
    (root / "shared" / "widgets" / "table.py").write_text("ROWS = 3\n")
    return root


def _names(manager, members):
    return [manager.resolve_binary_name(Location.CLASS_PATH, member) for member in members]


def test_lists_modules_of_a_package_directory(classpath_dir):
    manager = StandardFileManager()
    manager.set_location(Location.CLASS_PATH, [classpath_dir])

    members = manager.list_package_members(Location.CLASS_PATH, "shared", {Kind.SOURCE}, False)

    assert _names(manager, members) == ["shared", "shared.format"]


def test_recursive_listing_includes_subpackages(classpath_dir):
    manager = StandardFileManager()
    manager.set_location(Location.CLASS_PATH, [classpath_dir])

    members = manager.list_package_members(Location.CLASS_PATH, "shared", {Kind.SOURCE}, True)

    assert "shared.widgets.table" in _names(manager, members)


def test_lists_modules_inside_zip_archives(tmp_path):
    archive_path = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("bundle_pkg/__init__.py", "")
        archive.writestr("bundle_pkg/helpers.py", "VALUE = 1\n")
    manager = StandardFileManager()
    manager.set_location(Location.CLASS_PATH, [archive_path])

    members = manager.list_package_members(Location.CLASS_PATH, "bundle_pkg", {Kind.SOURCE}, False)

    assert _names(manager, members) == ["bundle_pkg", "bundle_pkg.helpers"]
    assert manager.bind_read_stream(members[1]).read() == b"VALUE = 1\n"


def test_missing_package_lists_nothing(classpath_dir):
    manager = StandardFileManager()
    manager.set_location(Location.CLASS_PATH, [classpath_dir])

    assert manager.list_package_members(Location.CLASS_PATH, "absent", {Kind.SOURCE}, False) == []


def test_output_requires_a_configured_directory(tmp_path):
    manager = StandardFileManager()

    with pytest.raises(ConfigurationError):
        manager.resolve_output_artifact(Location.CLASS_OUTPUT, "pkg.Page1", Kind.CLASS)

    manager.set_location(Location.CLASS_OUTPUT, [tmp_path])
    target = manager.resolve_output_artifact(Location.CLASS_OUTPUT, "pkg.Page1", Kind.CLASS)
    with manager.bind_write_stream(target) as stream:
        stream.write(b"bytes")

    assert (tmp_path / "pkg" / "Page1.pyc").read_bytes() == b"bytes"
