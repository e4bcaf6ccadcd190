"""Namespace label resolution and dependency edge extraction."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Mapping, Optional, Set

from .classpath import ClasspathIndex
from .errors import require_key
from .labels import library_to_label, qualify
from .namespaces import NamespaceDecl


@dataclass(frozen=True)
class LabelResolver:
    """Maps a namespace to the label that defines it; source paths shadow libraries."""

    src_ns_to_label: Mapping[str, str]
    dep_ns_to_label: Mapping[str, str]
    deps_repo_tag: str

    def resolve(self, ns: str) -> Optional[str]:
        """Return the label for ``ns`` or ``None`` when nothing on the classpath declares it."""
        label = self.src_ns_to_label.get(ns)
        if label is not None:
            return label
        dep_label = self.dep_ns_to_label.get(ns)
        if dep_label is not None:
            return qualify(self.deps_repo_tag, dep_label)
        return None


@dataclass(frozen=True)
class DependencyExtractor:
    """Turns a namespace declaration into the set of labels it depends on."""

    resolver: LabelResolver
    class_to_jar: Mapping[str, Path]
    jar_to_lib: Mapping[Path, str]

    @classmethod
    def from_index(
        cls, index: ClasspathIndex, deps_repo_tag: str, *, include_sources: bool = True
    ) -> "DependencyExtractor":
        resolver = LabelResolver(
            src_ns_to_label=index.src_ns_to_label if include_sources else {},
            dep_ns_to_label=index.dep_ns_to_label,
            deps_repo_tag=deps_repo_tag,
        )
        return cls(resolver=resolver, class_to_jar=index.class_to_jar, jar_to_lib=index.jar_to_lib)

    @property
    def deps_repo_tag(self) -> str:
        return self.resolver.deps_repo_tag

    def jar_label(self, jar: Path) -> str:
        """Label of the ``java_import`` wrapping ``jar``."""
        return qualify(self.deps_repo_tag, library_to_label(require_key(self.jar_to_lib, jar)))

    def class_label(self, class_name: str) -> Optional[str]:
        jar = self.class_to_jar.get(class_name)
        if jar is None:
            return None
        return self.jar_label(jar)

    def require_deps(self, decl: NamespaceDecl) -> Set[str]:
        labels: Set[str] = set()
        for ns in decl.requires:
            if ns == decl.name:
                continue
            label = self.resolver.resolve(ns)
            if label is not None:
                labels.add(label)
        return labels

    def import_deps(self, decl: NamespaceDecl) -> Set[str]:
        labels: Set[str] = set()
        for class_name in decl.imports:
            label = self.class_label(class_name)
            if label is not None:
                labels.add(label)
        return labels

    def gen_class_deps(self, decl: NamespaceDecl) -> Set[str]:
        extends = decl.gen_class_extends
        if extends is None:
            return set()
        label = self.class_label(extends)
        return {label} if label is not None else set()

    def extract(self, decl: NamespaceDecl) -> FrozenSet[str]:
        """Union of require, import and gen-class edges; unresolved names are dropped."""
        return frozenset(
            self.require_deps(decl) | self.import_deps(decl) | self.gen_class_deps(decl)
        )


__all__ = ["DependencyExtractor", "LabelResolver"]
