"""Tests for the classpath indices."""

from __future__ import annotations

import pytest

from genbuild.classpath import ClasspathIndex, DEFAULT_NO_AOT, build_jar_to_lib, build_lib_to_deps
from genbuild.errors import ConfigValidationError, ResolutionError
from genbuild.models import ClasspathEntry, ResolvedBasis, TraceRecord
from tests._fixtures.project_builder import ProjectBuilder


def _clojure_jar(project_builder: ProjectBuilder):
    return project_builder.jar(
        "clojure.jar",
        {
            "clojure/core.clj": "(ns clojure.core)",
            "clojure/string.clj": "(ns clojure.string)",
            "clojure/lang/RT.class": b"\xca\xfe",
        },
    )


def test_index_maps_archives_classes_and_namespaces(project_builder: ProjectBuilder) -> None:
    project_builder.write({"src/app/core.clj": "(ns app.core)"})
    clojure = _clojure_jar(project_builder)
    basis = project_builder.basis(libraries=[("org.clojure/clojure", clojure)])

    index = ClasspathIndex.build(basis, deps_edn_dir=project_builder.path())

    assert index.jar_to_lib == {clojure: "org.clojure/clojure"}
    assert index.lib_to_jar == {"org.clojure/clojure": clojure}
    assert index.class_to_jar == {"clojure.lang.RT": clojure}
    assert index.src_ns_to_label == {"app.core": "//src/app:core.clj"}
    assert index.dep_ns_to_label == {
        # bootstrap namespace is never compiled, so it points at the whole library
        "clojure.core": "org_clojure_clojure",
        "clojure.string": "ns_org_clojure_clojure_clojure_string",
    }


def test_no_aot_extends_the_bootstrap_set(project_builder: ProjectBuilder) -> None:
    clojure = _clojure_jar(project_builder)
    basis = project_builder.basis(libraries=[("org.clojure/clojure", clojure)])

    index = ClasspathIndex.build(basis, deps_edn_dir=project_builder.path(), no_aot=["clojure.string"])

    assert index.no_aot == DEFAULT_NO_AOT | {"clojure.string"}
    assert not index.compiles("clojure.core")
    assert not index.compiles("clojure.string")
    assert index.compiles("app.core")
    assert index.dep_ns_to_label["clojure.string"] == "org_clojure_clojure"


def test_same_namespace_in_two_archives_last_archive_wins(project_builder: ProjectBuilder) -> None:
    first = project_builder.jar("first.jar", {"shared/ns.clj": "(ns shared.ns)"})
    second = project_builder.jar("second.jar", {"shared/ns.clj": "(ns shared.ns)"})

    forward = ClasspathIndex.build(
        project_builder.basis(libraries=[("acme/first", first), ("acme/second", second)]),
        deps_edn_dir=project_builder.path(),
    )
    backward = ClasspathIndex.build(
        project_builder.basis(libraries=[("acme/second", second), ("acme/first", first)]),
        deps_edn_dir=project_builder.path(),
    )

    assert forward.dep_ns_to_label["shared.ns"] == "ns_acme_second_shared_ns"
    assert backward.dep_ns_to_label["shared.ns"] == "ns_acme_first_shared_ns"


def test_archive_claimed_twice_is_a_resolution_error(project_builder: ProjectBuilder) -> None:
    jar = project_builder.jar("x.jar", {})
    basis = project_builder.basis(paths=(), libraries=[("acme/x", jar), ("acme/y", jar)])

    with pytest.raises(ResolutionError):
        build_jar_to_lib(basis)


def test_lib_to_deps_folds_the_trace() -> None:
    trace = (
        TraceRecord(path=(), lib="a/a", reason="new-top-dep"),
        TraceRecord(path=("a/a",), lib="b/b", reason="new-dep"),
        TraceRecord(path=("a/a",), lib="c/c", reason="excluded"),
        TraceRecord(path=("a/a", "b/b"), lib="d/d", reason="new-dep"),
        TraceRecord(path=("a/a", "b/b"), lib="a/a", reason="use-top"),
        TraceRecord(path=("a/a", "b/b"), lib="e/e", reason="parent-omitted"),
    )

    graph = build_lib_to_deps(ResolvedBasis(classpath=(), trace=trace))

    assert graph == {"a/a": frozenset({"b/b"}), "b/b": frozenset({"d/d", "a/a"})}


def test_source_path_outside_the_project_is_rejected(project_builder: ProjectBuilder) -> None:
    shared = project_builder.path().parent / "shared"
    (shared / "a").mkdir(parents=True)
    (shared / "a" / "util.clj").write_text("(ns a.util)", encoding="utf-8")
    basis = ResolvedBasis(classpath=(ClasspathEntry(path=shared, path_key="paths"),), paths=("../shared",))

    with pytest.raises(ConfigValidationError, match="shared"):
        ClasspathIndex.build(basis, deps_edn_dir=project_builder.path())


def test_libraries_pairs_archives_with_names(project_builder: ProjectBuilder) -> None:
    clojure = _clojure_jar(project_builder)
    basis = project_builder.basis(libraries=[("org.clojure/clojure", clojure)])

    assert basis.libraries() == ((clojure, "org.clojure/clojure"),)
    assert build_jar_to_lib(basis) == {clojure: "org.clojure/clojure"}
