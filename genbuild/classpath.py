"""Indices derived once from a resolved basis and read-only afterwards."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping, Set

from .archives import ArchiveIndex
from .errors import ResolutionError
from .labels import library_to_label, ns_aot_label, relative_posix, src_path_to_label
from .logging import get_logger
from .models import ResolvedBasis
from .namespaces import CLJ, find_ns_decls_in_dir

logger = get_logger("classpath")

# Bootstrap namespaces that are loaded from source and never compiled ahead of time.
DEFAULT_NO_AOT: FrozenSet[str] = frozenset({"clojure.core"})

_IGNORED_TRACE_REASONS = frozenset({"excluded", "parent-omitted"})


def no_aot_set(extra: Iterable[str] = ()) -> FrozenSet[str]:
    return DEFAULT_NO_AOT | frozenset(extra)


def aot_namespace(ns: str, no_aot: FrozenSet[str]) -> bool:
    return ns not in (no_aot | DEFAULT_NO_AOT)


def build_jar_to_lib(basis: ResolvedBasis) -> Dict[Path, str]:
    """Map every library archive on the classpath to its library name."""
    jar_to_lib: Dict[Path, str] = {}
    seen_libs: Dict[str, Path] = {}
    for jar, lib in basis.libraries():
        if jar in jar_to_lib:
            raise ResolutionError(f"archive {jar} is claimed by both {jar_to_lib[jar]} and {lib}")
        if lib in seen_libs:
            raise ResolutionError(f"library {lib} resolved to two archives: {seen_libs[lib]}, {jar}")
        jar_to_lib[jar] = lib
        seen_libs[lib] = jar
    return jar_to_lib


def build_class_to_jar(basis: ResolvedBasis, archives: ArchiveIndex) -> Dict[str, Path]:
    """Map every compiled class name to the archive containing it."""
    class_to_jar: Dict[str, Path] = {}
    for jar, _ in basis.libraries():
        for class_name in sorted(archives.scan(jar).classes):
            class_to_jar[class_name] = jar
    return class_to_jar


def build_lib_to_deps(basis: ResolvedBasis) -> Dict[str, FrozenSet[str]]:
    """Fold the resolution trace into library -> direct dependency libraries."""
    graph: Dict[str, Set[str]] = {}
    for record in basis.trace:
        parent = record.parent
        # top-level deps have no parent and add no edge
        if parent is None or record.reason in _IGNORED_TRACE_REASONS:
            continue
        graph.setdefault(parent, set()).add(record.lib)
    return {lib: frozenset(children) for lib, children in graph.items()}


def build_src_ns_to_label(basis: ResolvedBasis, deps_edn_dir: Path) -> Dict[str, str]:
    """Bind every namespace declared under a source path to its file label."""
    src_ns_to_label: Dict[str, str] = {}
    for entry in basis.source_entries():
        # raises when the source path lies outside the deps.edn directory
        relative_posix(deps_edn_dir, entry.path)
        for path, decl in find_ns_decls_in_dir(entry.path, CLJ):
            src_ns_to_label[decl.name] = src_path_to_label(deps_edn_dir, path)
    return src_ns_to_label


def build_dep_ns_to_label(
    basis: ResolvedBasis, archives: ArchiveIndex, no_aot: FrozenSet[str]
) -> Dict[str, str]:
    """Bind every namespace found in a library archive to its target name.

    Compilable namespaces map to their own ``ns_<lib>_<ns>`` target, the rest to
    the whole-library target. When two archives declare the same namespace the
    archive later in classpath order wins.
    """
    dep_ns_to_label: Dict[str, str] = {}
    owner: Dict[str, str] = {}
    for jar, lib in basis.libraries():
        for ns in sorted(archives.scan(jar).namespaces):
            label = ns_aot_label(lib, ns) if aot_namespace(ns, no_aot) else library_to_label(lib)
            if ns in owner and owner[ns] != lib:
                logger.debug("Namespace %s in %s shadows the copy in %s", ns, lib, owner[ns])
            dep_ns_to_label[ns] = label
            owner[ns] = lib
    return dep_ns_to_label


@dataclass(frozen=True)
class ClasspathIndex:
    """All lookup tables the synthesizers need, built by pure folds over a basis."""

    jar_to_lib: Mapping[Path, str]
    lib_to_jar: Mapping[str, Path]
    class_to_jar: Mapping[str, Path]
    lib_to_deps: Mapping[str, FrozenSet[str]]
    src_ns_to_label: Mapping[str, str]
    dep_ns_to_label: Mapping[str, str]
    no_aot: FrozenSet[str] = DEFAULT_NO_AOT
    archives: ArchiveIndex = field(default_factory=ArchiveIndex, compare=False)

    @classmethod
    def build(
        cls,
        basis: ResolvedBasis,
        *,
        deps_edn_dir: Path,
        no_aot: Iterable[str] = (),
        archives: ArchiveIndex | None = None,
    ) -> "ClasspathIndex":
        archive_index = archives or ArchiveIndex()
        excluded = no_aot_set(no_aot)
        jar_to_lib = build_jar_to_lib(basis)
        index = cls(
            jar_to_lib=jar_to_lib,
            lib_to_jar={lib: jar for jar, lib in jar_to_lib.items()},
            class_to_jar=build_class_to_jar(basis, archive_index),
            lib_to_deps=build_lib_to_deps(basis),
            src_ns_to_label=build_src_ns_to_label(basis, deps_edn_dir),
            dep_ns_to_label=build_dep_ns_to_label(basis, archive_index, excluded),
            no_aot=excluded,
            archives=archive_index,
        )
        logger.debug(
            "Indexed %d libraries, %d classes, %d source namespaces, %d library namespaces",
            len(index.jar_to_lib),
            len(index.class_to_jar),
            len(index.src_ns_to_label),
            len(index.dep_ns_to_label),
        )
        return index

    def compiles(self, ns: str) -> bool:
        return aot_namespace(ns, self.no_aot)


__all__ = [
    "ClasspathIndex",
    "DEFAULT_NO_AOT",
    "aot_namespace",
    "build_class_to_jar",
    "build_dep_ns_to_label",
    "build_jar_to_lib",
    "build_lib_to_deps",
    "build_src_ns_to_label",
    "no_aot_set",
]
