"""BUILD file generation for the external dependency repository."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from .classpath import ClasspathIndex
from .config import GenerationSettings
from .edges import DependencyExtractor
from .emit import Call, KwArgs, emit, load_call, package_call
from .errors import ArchiveFormatError
from .labels import library_to_label, ns_aot_label, qualify
from .logging import get_logger
from .manifest import OverrideBlock
from .models import ResolvedBasis
from .namespaces import NamespaceDecl
from .targets import BuildTarget, TargetKind, merge_attrs, normalize_label_lists, validate_target
from .writer import write_atomic

logger = get_logger("deps_build")

DEFAULT_MAVEN_REPOSITORIES = ("https://repo1.maven.org/maven2/",)


def first_decl_per_namespace(decls: Iterable[NamespaceDecl]) -> List[NamespaceDecl]:
    """Keep the first declaration of every namespace, in archive order."""
    seen: Dict[str, NamespaceDecl] = {}
    for decl in decls:
        seen.setdefault(decl.name, decl)
    return list(seen.values())


class LibraryBuildGenerator:
    """Writes the single BUILD.bazel of the dependency repository.

    One ``java_import`` per library archive, one ahead-of-time compiled
    ``clojure_library`` per namespace found in the archive, and an ``__all``
    aggregate over every library.
    """

    def __init__(
        self,
        *,
        index: ClasspathIndex,
        overrides: OverrideBlock,
        settings: GenerationSettings,
        deps_build_dir: Path,
    ) -> None:
        self.index = index
        self.overrides = overrides
        self.settings = settings
        self.deps_build_dir = deps_build_dir
        # library archives only know about other libraries
        self.extractor = DependencyExtractor.from_index(
            index, settings.deps_repo_tag, include_sources=False
        )

    @property
    def output_path(self) -> Path:
        return self.deps_build_dir / "BUILD.bazel"

    def libraries(self) -> List[Tuple[Path, str]]:
        return sorted(
            ((jar, lib) for jar, lib in self.index.jar_to_lib.items()),
            key=lambda item: library_to_label(item[1]),
        )

    def import_target(self, jar: Path, lib: str) -> BuildTarget:
        if jar.suffix != ".jar":
            raise ArchiveFormatError(f"only .jar archives are supported: {jar}")
        label = library_to_label(lib)
        deps = [f":{library_to_label(dep)}" for dep in sorted(self.index.lib_to_deps.get(lib, ()))]
        extra = self.overrides.deps.get(qualify(self.settings.deps_repo_tag, label))
        if extra:
            logger.info("%s extra-args: %s", lib, extra)
        attrs = merge_attrs(
            {"name": label, "jars": [self._relative_jar(jar)]},
            {"deps": deps, "runtime_deps": deps} if deps else None,
            extra,
        )
        return self._finish(BuildTarget(TargetKind.ARCHIVE_IMPORT, normalize_label_lists(attrs)))

    def module_targets(self, jar: Path, lib: str) -> List[BuildTarget]:
        label = library_to_label(lib)
        contents = self.index.archives.scan(jar)
        targets: List[BuildTarget] = []
        for decl in first_decl_per_namespace(contents.ns_decls):
            if not self.index.compiles(decl.name):
                continue
            name = ns_aot_label(lib, decl.name)
            attrs = merge_attrs(
                {
                    "name": name,
                    "aot": [decl.name],
                    "deps": [qualify(self.settings.deps_repo_tag, label)],
                    "runtime_deps": [],
                },
                {"deps": sorted(self.extractor.extract(decl))},
                self.overrides.deps.get(qualify(self.settings.deps_repo_tag, name)),
            )
            targets.append(
                self._finish(BuildTarget(TargetKind.COMPILED_MODULE, normalize_label_lists(attrs)))
            )
        return targets

    def aggregate_target(self) -> BuildTarget:
        return BuildTarget(
            TargetKind.AGGREGATE_LIBRARY,
            {"name": "__all", "deps": [f":{library_to_label(lib)}" for _, lib in self.libraries()]},
        )

    def targets(self) -> List[BuildTarget]:
        targets: List[BuildTarget] = []
        for jar, lib in self.libraries():
            targets.append(self.import_target(jar, lib))
            targets.extend(self.module_targets(jar, lib))
        targets.append(self.aggregate_target())
        return targets

    def render(self) -> str:
        blocks = [
            emit(package_call()),
            emit(load_call(self.settings.rules_bzl, "clojure_library")),
        ]
        blocks.extend(target.render() for target in self.targets())
        return "\n\n".join(blocks) + "\n"

    def generate(self) -> Path:
        """Render and atomically write the dependency repository BUILD file."""
        logger.info("Writing to %s", self.output_path)
        write_atomic(self.output_path, self.render())
        return self.output_path

    def _relative_jar(self, jar: Path) -> str:
        return Path(os.path.relpath(jar, self.deps_build_dir)).as_posix()

    def _finish(self, target: BuildTarget) -> BuildTarget:
        if self.settings.validate:
            validate_target(target)
        return target


def maven_install(basis: ResolvedBasis) -> Call:
    """A ``maven_install(...)`` block listing the manifest's Maven coordinates."""
    artifacts: List[str] = []
    for lib, info in basis.deps.items():
        version = info.get("mvn/version")
        if version is None:
            logger.warning("Unsupported dep type: %s %s", lib, info)
            continue
        artifacts.append(f"{lib.replace('/', ':')}:{version}")
    repositories: List[Any] = list(basis.repos) or list(DEFAULT_MAVEN_REPOSITORIES)
    return Call(
        "maven_install",
        (KwArgs.of({"artifacts": sorted(artifacts), "repositories": repositories}),),
    )


__all__ = [
    "DEFAULT_MAVEN_REPOSITORIES",
    "LibraryBuildGenerator",
    "first_decl_per_namespace",
    "maven_install",
]
