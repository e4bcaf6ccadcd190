"""Tests for per-directory BUILD generation."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from genbuild.classpath import ClasspathIndex
from genbuild.config import GenerationSettings
from genbuild.manifest import OverrideBlock
from genbuild.srcs import DirectoryAggregator, gen_source_paths, ignored_paths, source_directories
from genbuild.targets import TargetSynthesizer
from tests._fixtures.project_builder import ProjectBuilder

SOURCES = {
    "src/app/core.clj": "(ns app.core (:require [app.util.strings :as s]))",
    "src/app/shared.cljc": "(ns app.shared)",
    "src/app/web.cljs": "(ns app.web)",
    "src/app/util/strings.clj": "(ns app.util.strings)",
    "src/app/util/notes.txt": "not clojure",
}


def _generate(project_builder: ProjectBuilder, ignore: Sequence[str] = ()) -> List[Path]:
    root = project_builder.path()
    clojure = project_builder.jar("clojure.jar", {"clojure/core.clj": "(ns clojure.core)"})
    basis = project_builder.basis(libraries=[("org.clojure/clojure", clojure)])
    settings = GenerationSettings()
    synthesizer = TargetSynthesizer(
        index=ClasspathIndex.build(basis, deps_edn_dir=root),
        overrides=OverrideBlock(),
        settings=settings,
        deps_edn_dir=root,
        source_paths=basis.paths,
    )
    ignored = ignored_paths(root, ignore)

    def factory(directories):
        return DirectoryAggregator(
            synthesizer=synthesizer,
            settings=settings,
            deps_edn_dir=root,
            generated_dirs=directories,
            ignore=ignored,
        )

    return gen_source_paths(factory, [root / "src"], ignored)


def test_every_directory_gets_a_build_file_deepest_first(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)
    root = project_builder.path()

    written = _generate(project_builder)

    assert written == [
        root / "src/app/util/BUILD.bazel",
        root / "src/app/BUILD.bazel",
        root / "src/BUILD.bazel",
    ]


def test_directory_without_sources_only_aggregates_children(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)

    _generate(project_builder)

    assert (project_builder.path() / "src/BUILD.bazel").read_text(encoding="utf-8") == (
        "#autogenerated, do not edit\n"
        'package(default_visibility = ["//visibility:public"])\n'
        'load("@rules_clojure//:rules.bzl", "clojure_library", "clojure_test")\n'
        "\n"
        'clojure_library(name = "__clj_lib",\n'
        "\tresources = [],\n"
        '\tresource_strip_prefix = "src",\n'
        '\tdeps = ["//src/app:__clj_lib"])\n'
        "\n"
        'filegroup(name = "__clj_files",\n'
        "\tsrcs = [],\n"
        '\tdata = ["//src/app:__clj_files"])\n'
        "\n"
        'clojure_library(name = "__cljs_lib",\n'
        "\tresources = [],\n"
        '\tresource_strip_prefix = "src",\n'
        '\tdeps = ["//src/app:__cljs_lib"])\n'
        "\n"
        'filegroup(name = "__cljs_files",\n'
        "\tsrcs = [],\n"
        '\tdata = ["//src/app:__cljs_files"])\n'
    )


def test_directory_with_sources(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)

    _generate(project_builder)
    content = (project_builder.path() / "src/app/BUILD.bazel").read_text(encoding="utf-8")

    assert (
        'clojure_library(name = "core.clj",\n'
        '\tdeps = ["//src/app/util:strings.clj", "@deps//:org_clojure_clojure"],\n'
        '\tsrcs = ["core.clj"],\n'
        '\taot = ["app.core"],\n'
        '\tresource_strip_prefix = "src")'
    ) in content
    assert 'clojure_library(name = "shared.cljc",' in content
    assert 'name = "web.cljs"' not in content
    assert (
        'clojure_library(name = "__clj_lib",\n'
        '\tresources = ["core.clj", "shared.cljc"],\n'
        '\tresource_strip_prefix = "src",\n'
        '\tdeps = ["//src/app/util:__clj_lib"])'
    ) in content
    assert (
        'filegroup(name = "__cljs_files",\n'
        '\tsrcs = ["shared.cljc", "web.cljs"],\n'
        '\tdata = ["//src/app/util:__cljs_files"])'
    ) in content
    assert content.index('name = "core.clj"') < content.index('name = "__clj_lib"')


def test_generation_is_idempotent(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)
    written = _generate(project_builder)
    first = {path: path.read_text(encoding="utf-8") for path in written}

    again = _generate(project_builder)

    assert again == written
    assert {path: path.read_text(encoding="utf-8") for path in again} == first


def test_output_does_not_depend_on_directory_order(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)
    root = project_builder.path()
    clojure = project_builder.jar("clojure.jar", {"clojure/core.clj": "(ns clojure.core)"})
    basis = project_builder.basis(libraries=[("org.clojure/clojure", clojure)])
    settings = GenerationSettings()
    synthesizer = TargetSynthesizer(
        index=ClasspathIndex.build(basis, deps_edn_dir=root),
        overrides=OverrideBlock(),
        settings=settings,
        deps_edn_dir=root,
        source_paths=basis.paths,
    )
    directories = source_directories([root / "src"])
    aggregator = DirectoryAggregator(
        synthesizer=synthesizer, settings=settings, deps_edn_dir=root, generated_dirs=directories
    )

    parents_first = [aggregator.render(d) for d in reversed(directories)]
    children_first = [aggregator.render(d) for d in directories]

    assert parents_first == list(reversed(children_first))


def test_ignored_paths_prune_subtrees(project_builder: ProjectBuilder) -> None:
    project_builder.write(SOURCES)
    root = project_builder.path()

    written = _generate(project_builder, ignore=["src/app/util"])

    assert root / "src/app/util/BUILD.bazel" not in written
    assert not (root / "src/app/util/BUILD.bazel").exists()
    content = (root / "src/app/BUILD.bazel").read_text(encoding="utf-8")
    assert "//src/app/util:" not in content.split('name = "__clj_lib"')[1]


def test_source_directories_include_ancestors(tmp_path: Path) -> None:
    (tmp_path / "src/a/b/c").mkdir(parents=True)
    (tmp_path / "src/a/b/c/x.clj").write_text("(ns a.b.c.x)", encoding="utf-8")
    (tmp_path / "src/empty").mkdir()

    directories = source_directories([tmp_path / "src", tmp_path / "missing"])

    assert directories == [
        tmp_path / "src/a/b/c",
        tmp_path / "src/a/b",
        tmp_path / "src/a",
        tmp_path / "src",
    ]


def test_children_are_direct_generated_subdirectories(tmp_path: Path) -> None:
    src = tmp_path / "src"
    directories = [src / "b", src / "a" / "x", src / "a", src, tmp_path / "other"]
    aggregator = DirectoryAggregator(
        synthesizer=None,
        settings=GenerationSettings(),
        deps_edn_dir=tmp_path,
        generated_dirs=directories,
    )

    assert aggregator.children(src) == [src / "a", src / "b"]
    assert aggregator.children(src / "a") == [src / "a" / "x"]
    assert aggregator.children(src / "b") == []
