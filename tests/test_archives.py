"""Tests for archive introspection."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from genbuild.archives import ArchiveIndex
from genbuild.errors import ArchiveFormatError
from tests._fixtures.project_builder import ProjectBuilder


def test_scan_lists_namespaces_and_classes(project_builder: ProjectBuilder) -> None:
    jar = project_builder.jar(
        "widget.jar",
        {
            "widget/core.clj": "(ns widget.core (:require [widget.util]))",
            "widget/util.cljc": "(ns widget.util)",
            "widget/web.cljs": "(ns widget.web)",
            "widget/Native.class": b"\xca\xfe\xba\xbe",
            "widget/core$fn__1.class": b"\xca\xfe\xba\xbe",
            "META-INF/MANIFEST.MF": "Manifest-Version: 1.0\n",
            "data.clj": "{:not :a-namespace}",
        },
    )

    contents = ArchiveIndex().scan(jar)

    assert [decl.name for decl in contents.ns_decls] == ["widget.core", "widget.util"]
    assert contents.namespaces == frozenset({"widget.core", "widget.util"})
    assert contents.classes == frozenset({"widget.Native", "widget.core$fn__1"})
    assert contents.compiled


def test_scan_keeps_duplicate_declarations_in_entry_order(project_builder: ProjectBuilder) -> None:
    jar = project_builder.jar(
        "dupes.jar",
        {
            "a/markdown/core.clj": "(ns markdown.core (:require first.dep))",
            "b/markdown/core.clj": "(ns markdown.core (:require second.dep))",
        },
    )

    contents = ArchiveIndex().scan(jar)

    assert [sorted(decl.requires) for decl in contents.ns_decls] == [["first.dep"], ["second.dep"]]
    assert not contents.compiled


def test_scan_is_cached_per_path(project_builder: ProjectBuilder) -> None:
    jar = project_builder.jar("one.jar", {"one.clj": "(ns one)"})
    index = ArchiveIndex()

    assert index.scan(jar) is index.scan(jar)


def test_unreadable_entries_are_skipped(project_builder: ProjectBuilder) -> None:
    jar = project_builder.jar(
        "mixed.jar",
        {
            "ok.clj": "(ns ok)",
            "broken.clj": "(ns broken (:require",
            "latin1.clj": "(ns caf\xe9)".encode("latin-1"),
        },
    )

    assert ArchiveIndex().scan(jar).namespaces == frozenset({"ok"})


def test_corrupt_archive_raises(tmp_path: Path) -> None:
    jar = tmp_path / "corrupt.jar"
    jar.write_bytes(b"this is not a zip file")

    with pytest.raises(ArchiveFormatError):
        ArchiveIndex().scan(jar)


def test_only_jars_are_supported(tmp_path: Path) -> None:
    with pytest.raises(ArchiveFormatError):
        ArchiveIndex().scan(tmp_path / "classes")


def test_corrupt_compressed_entry_raises(tmp_path: Path) -> None:
    jar = tmp_path / "damaged.jar"
    source = "(ns a.core)\n" + "".join(f"(defn f{i} [] {i})\n" for i in range(50))
    with zipfile.ZipFile(jar, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("a/core.clj", source)
    with zipfile.ZipFile(jar) as archive:
        info = archive.getinfo("a/core.clj")
    payload_start = info.header_offset + 30 + len(info.filename.encode("utf-8")) + len(info.extra)
    data = bytearray(jar.read_bytes())
    for offset in range(payload_start, payload_start + min(38, info.compress_size)):
        data[offset] ^= 0xFF
    jar.write_bytes(bytes(data))

    with pytest.raises(ArchiveFormatError, match="a/core.clj"):
        ArchiveIndex().scan(jar)
