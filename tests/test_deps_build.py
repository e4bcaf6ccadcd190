"""Tests for the dependency repository BUILD file."""

from __future__ import annotations

from pathlib import Path

import pytest

from genbuild.classpath import ClasspathIndex
from genbuild.config import GenerationSettings
from genbuild.deps_build import LibraryBuildGenerator, first_decl_per_namespace, maven_install
from genbuild.emit import emit
from genbuild.errors import ArchiveFormatError
from genbuild.manifest import OverrideBlock
from genbuild.models import ResolvedBasis, TraceRecord
from genbuild.namespaces import read_ns_decl_text
from genbuild.targets import TargetKind
from tests._fixtures.project_builder import ProjectBuilder

WIDGET = "acme-corp/widget-lib"
CLOJURE = "org.clojure/clojure"


def _generator(project_builder: ProjectBuilder, overrides: OverrideBlock | None = None) -> LibraryBuildGenerator:
    widget = project_builder.jar(
        "widget-lib.jar",
        {
            "widget/core.clj": "(ns widget.core (:require [widget.util]))",
            "widget/util.clj": "(ns widget.util)",
            "copy/widget/core.clj": "(ns widget.core (:require [clojure.string]))",
        },
    )
    clojure = project_builder.jar(
        "clojure.jar",
        {"clojure/core.clj": "(ns clojure.core)", "clojure/string.clj": "(ns clojure.string)"},
    )
    basis = project_builder.basis(
        libraries=[(WIDGET, widget), (CLOJURE, clojure)],
        trace=[
            TraceRecord(path=(), lib=WIDGET, reason="new-top-dep"),
            TraceRecord(path=(WIDGET,), lib=CLOJURE, reason="new-dep"),
        ],
    )
    index = ClasspathIndex.build(basis, deps_edn_dir=project_builder.path())
    return LibraryBuildGenerator(
        index=index,
        overrides=overrides or OverrideBlock(),
        settings=GenerationSettings(),
        deps_build_dir=project_builder.jars_dir.parent / "external",
    )


def test_targets_are_grouped_per_library_in_label_order(project_builder: ProjectBuilder) -> None:
    targets = _generator(project_builder).targets()

    assert [(t.kind, t.name) for t in targets] == [
        (TargetKind.ARCHIVE_IMPORT, "acme_corp_widget_lib"),
        (TargetKind.COMPILED_MODULE, "ns_acme_corp_widget_lib_widget_core"),
        (TargetKind.COMPILED_MODULE, "ns_acme_corp_widget_lib_widget_util"),
        (TargetKind.ARCHIVE_IMPORT, "org_clojure_clojure"),
        (TargetKind.COMPILED_MODULE, "ns_org_clojure_clojure_clojure_string"),
        (TargetKind.AGGREGATE_LIBRARY, "__all"),
    ]


def test_archive_import_carries_resolver_edges(project_builder: ProjectBuilder) -> None:
    widget, _, _, clojure, _, everything = _generator(project_builder).targets()

    assert widget.attrs == {
        "name": "acme_corp_widget_lib",
        "jars": ["../jars/widget-lib.jar"],
        "deps": [":org_clojure_clojure"],
        "runtime_deps": [":org_clojure_clojure"],
    }
    assert clojure.attrs == {"name": "org_clojure_clojure", "jars": ["../jars/clojure.jar"]}
    assert everything.deps == [":acme_corp_widget_lib", ":org_clojure_clojure"]


def test_override_extends_archive_import(project_builder: ProjectBuilder) -> None:
    overrides = OverrideBlock(
        deps={
            "@deps//:acme_corp_widget_lib": {"deps": ["@deps//:native_lib"], "data": ["//native:so"]},
            "@deps//:ns_acme_corp_widget_lib_widget_util": {"jvm_flags": ["-Dx=1"]},
        }
    )
    targets = {t.name: t for t in _generator(project_builder, overrides).targets()}

    widget = targets["acme_corp_widget_lib"]
    assert widget.deps == [":org_clojure_clojure", "@deps//:native_lib"]
    assert widget.attrs["runtime_deps"] == [":org_clojure_clojure"]
    assert widget.attrs["data"] == ["//native:so"]
    assert targets["ns_acme_corp_widget_lib_widget_util"].attrs["jvm_flags"] == ["-Dx=1"]


def test_compiled_module_uses_first_declaration_in_archive(project_builder: ProjectBuilder) -> None:
    targets = {t.name: t for t in _generator(project_builder).targets()}

    core = targets["ns_acme_corp_widget_lib_widget_core"]
    assert core.attrs == {
        "name": "ns_acme_corp_widget_lib_widget_core",
        "aot": ["widget.core"],
        "deps": ["@deps//:acme_corp_widget_lib", "@deps//:ns_acme_corp_widget_lib_widget_util"],
        "runtime_deps": [],
    }
    assert "ns_org_clojure_clojure_clojure_core" not in targets


def test_library_modules_ignore_project_sources(project_builder: ProjectBuilder) -> None:
    project_builder.write({"src/widget/util.clj": "(ns widget.util)"})

    targets = {t.name: t for t in _generator(project_builder).targets()}

    assert "@deps//:ns_acme_corp_widget_lib_widget_util" in targets["ns_acme_corp_widget_lib_widget_core"].deps


def test_generate_writes_build_file(project_builder: ProjectBuilder) -> None:
    generator = _generator(project_builder)

    output = generator.generate()
    content = output.read_text(encoding="utf-8")

    assert output == generator.deps_build_dir / "BUILD.bazel"
    assert content.startswith(
        'package(default_visibility = ["//visibility:public"])\n\n'
        'load("@rules_clojure//:rules.bzl", "clojure_library")\n\n'
        'java_import(name = "acme_corp_widget_lib",\n'
    )
    assert content.endswith(
        'clojure_library(name = "__all",\n\tdeps = [":acme_corp_widget_lib", ":org_clojure_clojure"])\n'
    )
    assert generator.generate() == output
    assert output.read_text(encoding="utf-8") == content


def test_only_jars_are_supported(project_builder: ProjectBuilder) -> None:
    generator = _generator(project_builder)

    with pytest.raises(ArchiveFormatError):
        generator.import_target(Path("/m2/classes.zip"), "acme/classes")


def test_first_decl_per_namespace() -> None:
    first = read_ns_decl_text("(ns a (:require b))", "one")
    second = read_ns_decl_text("(ns a (:require c))", "two")
    other = read_ns_decl_text("(ns z)", "three")

    assert first_decl_per_namespace([first, other, second]) == [first, other]


def test_maven_install_block() -> None:
    basis = ResolvedBasis(
        classpath=(),
        deps={
            "org.clojure/data.json": {"mvn/version": "2.4.0"},
            "org.clojure/clojure": {"mvn/version": "1.11.1"},
            "acme/local": {"local/root": "vendor/local.jar"},
        },
    )

    assert emit(maven_install(basis)) == (
        "maven_install(artifacts = "
        '["org.clojure:clojure:1.11.1", "org.clojure:data.json:2.4.0"],\n'
        '\trepositories = ["https://repo1.maven.org/maven2/"])'
    )

    custom = ResolvedBasis(classpath=(), deps={}, repos=("https://clojars.org/repo",))
    assert emit(maven_install(custom)).endswith('repositories = ["https://clojars.org/repo"])')
