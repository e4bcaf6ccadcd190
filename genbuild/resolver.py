"""Dependency resolution: turning a manifest into a resolved classpath and trace."""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

from .errors import ResolutionError
from .logging import get_logger
from .manifest import Manifest
from .models import ClasspathEntry, Coordinate, ResolvedBasis, TraceRecord

logger = get_logger("resolver")

_PROPERTY = re.compile(r"\$\{([^}]+)\}")
_FOLLOWED_SCOPES = frozenset({"compile", "runtime"})


class Resolver(Protocol):
    """Anything that can produce a :class:`ResolvedBasis` for a manifest."""

    def resolve(self, manifest: Manifest, aliases: Sequence[str] = ()) -> ResolvedBasis:
        """Resolve ``manifest`` with ``aliases`` applied."""


def canonical_lib(name: str) -> str:
    """``foo`` and ``foo/foo`` name the same library."""
    return name if "/" in name else f"{name}/{name}"


def source_entries(manifest: Manifest, aliases: Sequence[str]) -> Tuple[List[ClasspathEntry], List[str]]:
    """Classpath entries and relative path strings for the manifest's source paths.

    The manifest's own ``:paths`` come first, tagged ``paths``; alias extra paths
    follow, tagged with the alias that contributed them.
    """
    entries: List[ClasspathEntry] = []
    paths: List[str] = []

    def add(path: str, key: str) -> None:
        if path in paths:
            return
        paths.append(path)
        entries.append(ClasspathEntry(path=(manifest.directory / path).resolve(), path_key=key))

    for path in manifest.paths:
        add(path, "paths")
    for raw in aliases:
        name = raw.lstrip(":")
        alias = manifest.aliases.get(name)
        if alias is None:
            continue
        for path in alias.extra_paths:
            add(path, name)
    return entries, paths


def top_level_deps(manifest: Manifest, aliases: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    combined = dict(manifest.deps)
    combined.update(manifest.combine_aliases(aliases).extra_deps)
    return {canonical_lib(lib): coordinate for lib, coordinate in combined.items()}


class BasisFileResolver:
    """Loads an already resolved basis from a JSON file.

    Expected shape::

        {"classpath": [{"path": "src", "path_key": "paths"},
                       {"path": "/m2/x.jar", "lib": "org.clojure/clojure"}],
         "trace": [{"path": ["a/a"], "lib": "b/b", "reason": "new-dep"}],
         "repos": ["https://repo1.maven.org/maven2/"]}

    Relative paths are taken relative to the manifest directory. ``paths``,
    ``deps`` and ``repos`` default to the manifest's own values.
    """

    def __init__(self, basis_file: Path) -> None:
        self.basis_file = basis_file

    def resolve(self, manifest: Manifest, aliases: Sequence[str] = ()) -> ResolvedBasis:
        try:
            payload = json.loads(self.basis_file.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ResolutionError(f"basis file not found: {self.basis_file}") from exc
        except json.JSONDecodeError as exc:
            raise ResolutionError(f"invalid basis file {self.basis_file}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResolutionError(f"basis file {self.basis_file} must contain an object")

        classpath = tuple(
            self._entry(manifest.directory, raw) for raw in payload.get("classpath", [])
        )
        trace = tuple(self._trace(raw) for raw in payload.get("trace", []))
        _, default_paths = source_entries(manifest, aliases)
        deps = payload.get("deps")
        logger.debug("Loaded basis with %d classpath entries from %s", len(classpath), self.basis_file)
        return ResolvedBasis(
            classpath=classpath,
            trace=trace,
            paths=tuple(payload.get("paths", default_paths)),
            deps=deps if isinstance(deps, dict) else dict(manifest.deps),
            repos=tuple(payload.get("repos", manifest.repos.values())),
        )

    def _entry(self, base: Path, raw: Any) -> ClasspathEntry:
        if not isinstance(raw, dict) or not isinstance(raw.get("path"), str):
            raise ResolutionError(f"malformed classpath entry in {self.basis_file}: {raw!r}")
        path = (base / raw["path"]).resolve()
        lib = raw.get("lib")
        if lib is not None:
            return ClasspathEntry(path=path, lib_name=canonical_lib(str(lib)))
        return ClasspathEntry(path=path, path_key=str(raw.get("path_key", "paths")))

    def _trace(self, raw: Any) -> TraceRecord:
        if not isinstance(raw, dict) or "lib" not in raw:
            raise ResolutionError(f"malformed trace record in {self.basis_file}: {raw!r}")
        return TraceRecord(
            path=tuple(canonical_lib(str(item)) for item in raw.get("path", [])),
            lib=canonical_lib(str(raw["lib"])),
            reason=str(raw.get("reason", "new-dep")),
        )


@dataclass(frozen=True)
class PomDependency:
    lib: str
    version: str
    exclusions: FrozenSet[str] = frozenset()


@dataclass
class _PomModel:
    properties: Dict[str, str] = field(default_factory=dict)
    managed: Dict[str, str] = field(default_factory=dict)
    dependencies: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class _Selection:
    lib: str
    path: Tuple[str, ...]
    version: Optional[str] = None
    jar: Optional[Path] = None
    exclusions: FrozenSet[str] = frozenset()


class LocalRepositoryResolver:
    """Resolves Maven coordinates against a local Maven-layout repository.

    Breadth first. Top-level versions always win; otherwise the first version
    reached wins. Only ``compile`` and ``runtime`` scoped, non-optional POM
    dependencies are followed.
    """

    def __init__(self, repository: Path, *, max_workers: int = 2) -> None:
        self.repository = repository
        self.max_workers = max_workers
        self._pom_cache: Dict[Coordinate, Optional[_PomModel]] = {}

    def resolve(self, manifest: Manifest, aliases: Sequence[str] = ()) -> ResolvedBasis:
        sources, paths = source_entries(manifest, aliases)
        top = top_level_deps(manifest, aliases)
        selected: Dict[str, _Selection] = {}
        trace: List[TraceRecord] = []

        frontier: List[_Selection] = []
        for lib in sorted(top):
            selection = self._top_level(manifest, lib, top[lib])
            selected[lib] = selection
            trace.append(TraceRecord(path=(), lib=lib, reason="new-top-dep"))
            frontier.append(selection)

        while frontier:
            maven = [
                (item, Coordinate.from_lib(item.lib, item.version))
                for item in frontier
                if item.version is not None
            ]
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                children = list(executor.map(self._dependencies_of, [coordinate for _, coordinate in maven]))
            next_frontier: List[_Selection] = []
            for (parent, _), deps in zip(maven, children):
                path = parent.path + (parent.lib,)
                for dep in deps:
                    if dep.lib in parent.exclusions:
                        trace.append(TraceRecord(path=path, lib=dep.lib, reason="excluded"))
                        continue
                    if dep.lib in top:
                        trace.append(TraceRecord(path=path, lib=dep.lib, reason="use-top"))
                        continue
                    existing = selected.get(dep.lib)
                    if existing is not None:
                        reason = "same-version" if existing.version == dep.version else "version-conflict"
                        if reason == "version-conflict":
                            logger.debug(
                                "%s wants %s %s, keeping %s", parent.lib, dep.lib, dep.version, existing.version
                            )
                        trace.append(TraceRecord(path=path, lib=dep.lib, reason=reason))
                        continue
                    selection = _Selection(
                        lib=dep.lib,
                        path=path,
                        version=dep.version,
                        jar=self._jar(dep.lib, dep.version),
                        exclusions=parent.exclusions | dep.exclusions,
                    )
                    selected[dep.lib] = selection
                    trace.append(TraceRecord(path=path, lib=dep.lib, reason="new-dep"))
                    next_frontier.append(selection)
            frontier = next_frontier

        libraries = [
            ClasspathEntry(path=selection.jar, lib_name=lib)
            for lib, selection in sorted(selected.items())
            if selection.jar is not None
        ]
        logger.info("Resolved %d libraries from %s", len(libraries), self.repository)
        return ResolvedBasis(
            classpath=tuple(sources + libraries),
            trace=tuple(trace),
            paths=tuple(paths),
            deps=dict(top),
            repos=tuple(manifest.repos.values()),
        )

    def _top_level(self, manifest: Manifest, lib: str, coordinate: Dict[str, Any]) -> _Selection:
        exclusions = frozenset(canonical_lib(str(item)) for item in coordinate.get("exclusions", []))
        local_root = coordinate.get("local/root")
        if local_root is not None:
            jar = (manifest.directory / str(local_root)).resolve()
            if not jar.exists():
                raise ResolutionError(f"{lib}: local root {jar} does not exist")
            return _Selection(lib=lib, path=(), jar=jar, exclusions=exclusions)
        version = coordinate.get("mvn/version")
        if version is None:
            raise ResolutionError(f"{lib}: unsupported coordinate {coordinate!r}")
        return _Selection(
            lib=lib,
            path=(),
            version=str(version),
            jar=self._jar(lib, str(version)),
            exclusions=exclusions,
        )

    def _jar(self, lib: str, version: str) -> Path:
        jar = Coordinate.from_lib(lib, version).jar_path(self.repository)
        if not jar.exists():
            raise ResolutionError(f"{lib} {version} not found in {self.repository} (expected {jar})")
        return jar

    def _dependencies_of(self, coordinate: Coordinate) -> List[PomDependency]:
        model = self._load_pom(coordinate)
        if model is None:
            logger.debug("No POM for %s %s, assuming no dependencies", coordinate.lib_name, coordinate.version)
            return []
        return _followed_dependencies(model, coordinate)

    def _load_pom(self, coordinate: Coordinate) -> Optional[_PomModel]:
        if coordinate in self._pom_cache:
            return self._pom_cache[coordinate]
        model = self._read_pom(coordinate)
        self._pom_cache[coordinate] = model
        return model

    def _read_pom(self, coordinate: Coordinate) -> Optional[_PomModel]:
        pom = coordinate.pom_path(self.repository)
        if not pom.exists():
            return None
        try:
            root = ET.fromstring(pom.read_text(encoding="utf-8"))
        except ET.ParseError as exc:
            raise ResolutionError(f"cannot parse {pom}: {exc}") from exc

        ns = _detect_xml_namespace(root)

        def tag(name: str) -> str:
            return f"{{{ns}}}{name}" if ns else name

        model = _PomModel()
        parent = root.find(tag("parent"))
        if parent is not None:
            parent_coordinate = Coordinate(
                group=parent.findtext(tag("groupId"), default="").strip(),
                artifact=parent.findtext(tag("artifactId"), default="").strip(),
                version=parent.findtext(tag("version"), default="").strip(),
            )
            parent_model = self._load_pom(parent_coordinate)
            if parent_model is not None:
                model.properties.update(parent_model.properties)
                model.managed.update(parent_model.managed)
            model.properties.setdefault("project.parent.version", parent_coordinate.version)

        model.properties.update(
            {
                "project.groupId": coordinate.group,
                "project.artifactId": coordinate.artifact,
                "project.version": coordinate.version,
                "pom.version": coordinate.version,
            }
        )
        properties = root.find(tag("properties"))
        if properties is not None:
            for prop in properties:
                name = prop.tag.split("}", 1)[-1]
                model.properties[name] = (prop.text or "").strip()

        management = root.find(f"{tag('dependencyManagement')}/{tag('dependencies')}")
        if management is not None:
            for dep in management.findall(tag("dependency")):
                raw = _dependency_fields(dep, tag)
                if raw["version"]:
                    lib = f"{_expand(raw['groupId'], model.properties)}/{_expand(raw['artifactId'], model.properties)}"
                    model.managed[lib] = raw["version"]

        dependencies = root.find(tag("dependencies"))
        if dependencies is not None:
            model.dependencies = [_dependency_fields(dep, tag) for dep in dependencies.findall(tag("dependency"))]
        return model


def _dependency_fields(dep: ET.Element, tag: Callable[[str], str]) -> Dict[str, Any]:
    exclusions = []
    for exclusion in dep.findall(f"{tag('exclusions')}/{tag('exclusion')}"):
        group = exclusion.findtext(tag("groupId"), default="").strip()
        artifact = exclusion.findtext(tag("artifactId"), default="").strip()
        if group and artifact:
            exclusions.append(f"{group}/{artifact}")
    return {
        "groupId": dep.findtext(tag("groupId"), default="").strip(),
        "artifactId": dep.findtext(tag("artifactId"), default="").strip(),
        "version": dep.findtext(tag("version"), default="").strip(),
        "scope": dep.findtext(tag("scope"), default="compile").strip() or "compile",
        "optional": dep.findtext(tag("optional"), default="false").strip() == "true",
        "type": dep.findtext(tag("type"), default="jar").strip() or "jar",
        "classifier": dep.findtext(tag("classifier"), default="").strip(),
        "exclusions": exclusions,
    }


def _followed_dependencies(model: _PomModel, coordinate: Coordinate) -> List[PomDependency]:
    followed: List[PomDependency] = []
    for raw in model.dependencies:
        if raw["scope"] not in _FOLLOWED_SCOPES or raw["optional"]:
            continue
        if raw["type"] != "jar" or raw["classifier"]:
            logger.debug("Skipping %s:%s (%s %s)", raw["groupId"], raw["artifactId"], raw["type"], raw["classifier"])
            continue
        lib = f"{_expand(raw['groupId'], model.properties)}/{_expand(raw['artifactId'], model.properties)}"
        version = _expand(raw["version"], model.properties) or model.managed.get(lib, "")
        version = _expand(version, model.properties)
        if not version:
            raise ResolutionError(f"{coordinate.lib_name} {coordinate.version}: no version for dependency {lib}")
        followed.append(PomDependency(lib=lib, version=version, exclusions=frozenset(raw["exclusions"])))
    return followed


def _expand(value: str, properties: Dict[str, str]) -> str:
    for _ in range(10):
        expanded = _PROPERTY.sub(lambda match: properties.get(match.group(1), match.group(0)), value)
        if expanded == value:
            break
        value = expanded
    return value


def _detect_xml_namespace(element: ET.Element) -> str | None:
    match = re.match(r"\{(.+)}", element.tag)
    return match.group(1) if match else None


__all__ = [
    "BasisFileResolver",
    "LocalRepositoryResolver",
    "PomDependency",
    "Resolver",
    "canonical_lib",
    "source_entries",
    "top_level_deps",
]
