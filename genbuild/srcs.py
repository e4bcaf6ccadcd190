"""Per-directory BUILD.bazel generation for workspace source paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set

from .config import GenerationSettings
from .emit import emit, load_call, package_call
from .labels import package_label
from .logging import get_logger
from .namespaces import CLJ, CLJS, Platform
from .targets import BuildTarget, TargetKind, TargetSynthesizer
from .writer import write_atomic

logger = get_logger("srcs")

BUILD_FILENAME = "BUILD.bazel"
HEADER = "#autogenerated, do not edit"

# (platform, library aggregate, filegroup aggregate)
_DIALECTS = (
    (CLJ, "__clj_lib", "__clj_files"),
    (CLJS, "__cljs_lib", "__cljs_files"),
)


def is_ignored(path: Path, ignore: FrozenSet[Path]) -> bool:
    return any(path == ignored or ignored in path.parents for ignored in ignore)


class DirectoryAggregator:
    """Writes one BUILD.bazel per source directory (non-recursive per call).

    ``generated_dirs`` is the full set of directories the run will generate;
    a child directory's aggregates are referenced only when it is in that set.
    """

    def __init__(
        self,
        *,
        synthesizer: TargetSynthesizer,
        settings: GenerationSettings,
        deps_edn_dir: Path,
        generated_dirs: Iterable[Path],
        ignore: Iterable[Path] = (),
    ) -> None:
        self.synthesizer = synthesizer
        self.settings = settings
        self.deps_edn_dir = deps_edn_dir
        self.generated_dirs = frozenset(generated_dirs)
        self.ignore = frozenset(ignore)
        self._children: Dict[Path, List[Path]] = {}
        for directory in sorted(self.generated_dirs):
            self._children.setdefault(directory.parent, []).append(directory)

    def children(self, directory: Path) -> List[Path]:
        return list(self._children.get(directory, []))

    def files(self, directory: Path, platform: Platform) -> List[Path]:
        found = []
        for entry in sorted(directory.iterdir()):
            if entry.is_file() and platform.matches(entry.name) and not is_ignored(entry, self.ignore):
                found.append(entry)
        return found

    def file_targets(self, directory: Path) -> List[BuildTarget]:
        targets: List[BuildTarget] = []
        for path in self.files(directory, CLJ):
            targets.extend(self.synthesizer.synthesize(path))
        return targets

    def aggregate_targets(self, directory: Path) -> List[BuildTarget]:
        children = self.children(directory)
        strip = self.synthesizer.strip_prefix(directory)
        targets: List[BuildTarget] = []
        for platform, lib_name, files_name in _DIALECTS:
            filenames = [path.name for path in self.files(directory, platform)]
            lib_attrs: Dict[str, object] = {"name": lib_name, "resources": filenames}
            if strip:
                lib_attrs["resource_strip_prefix"] = strip
            lib_attrs["deps"] = [package_label(self.deps_edn_dir, child, lib_name) for child in children]
            targets.append(BuildTarget(TargetKind.AGGREGATE_LIBRARY, lib_attrs))
            targets.append(
                BuildTarget(
                    TargetKind.AGGREGATE_FILEGROUP,
                    {
                        "name": files_name,
                        "srcs": filenames,
                        "data": [package_label(self.deps_edn_dir, child, files_name) for child in children],
                    },
                )
            )
        return targets

    def render(self, directory: Path) -> str:
        rules = [target.render() for target in self.file_targets(directory)]
        aggregates = [target.render() for target in self.aggregate_targets(directory)]
        head = "\n".join(
            [
                HEADER,
                emit(package_call()),
                emit(load_call(self.settings.rules_bzl, "clojure_library", "clojure_test")),
            ]
        )
        sections = [head]
        if rules:
            sections.append("\n\n".join(rules))
        sections.append("\n\n".join(aggregates))
        return "\n\n".join(sections) + "\n"

    def generate(self, directory: Path) -> Path:
        """Render and atomically write ``directory``/BUILD.bazel."""
        output = directory / BUILD_FILENAME
        changed = write_atomic(output, self.render(directory))
        logger.debug("%s %s", "Wrote" if changed else "Unchanged", output)
        return output


def source_directories(roots: Sequence[Path], ignore: FrozenSet[Path] = frozenset()) -> List[Path]:
    """Every directory holding a file under ``roots`` plus its ancestors up to the root.

    Ordered deepest first so children are written before their parents.
    """
    dirs: Set[Path] = set()
    for root in roots:
        if not root.is_dir() or is_ignored(root, ignore):
            continue
        dirs.add(root)
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(name for name in dirnames if not is_ignored(current / name, ignore))
            if not filenames:
                continue
            while current != root and root in current.parents:
                dirs.add(current)
                current = current.parent
    return sorted(dirs, key=lambda d: (-len(d.parts), str(d)))


def gen_source_paths(
    aggregator_factory,
    roots: Sequence[Path],
    ignore: FrozenSet[Path] = frozenset(),
) -> List[Path]:
    """Generate a BUILD file for every directory under ``roots``.

    ``aggregator_factory`` receives the directory set and returns a
    :class:`DirectoryAggregator`.
    """
    directories = source_directories(roots, ignore)
    aggregator: DirectoryAggregator = aggregator_factory(directories)
    written: List[Path] = []
    for directory in directories:
        written.append(aggregator.generate(directory))
    logger.info("Generated %d BUILD files under %d source paths", len(written), len(roots))
    return written


def ignored_paths(deps_edn_dir: Path, patterns: Iterable[str]) -> FrozenSet[Path]:
    return frozenset((deps_edn_dir / pattern).resolve() for pattern in patterns)


def resolve_roots(source_entries: Iterable[Path], ignore: FrozenSet[Path]) -> List[Path]:
    """Distinct source roots in classpath order, minus ignored ones."""
    roots: List[Path] = []
    for entry in source_entries:
        if is_ignored(entry, ignore):
            logger.info("Ignoring source path %s", entry)
            continue
        if entry not in roots:
            roots.append(entry)
    return roots


__all__ = [
    "BUILD_FILENAME",
    "DirectoryAggregator",
    "gen_source_paths",
    "ignored_paths",
    "is_ignored",
    "resolve_roots",
    "source_directories",
]
