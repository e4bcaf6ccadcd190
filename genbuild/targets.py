"""Build targets and the per-file synthesizer for workspace sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .classpath import ClasspathIndex
from .config import GenerationSettings
from .edges import DependencyExtractor
from .edn import Keyword, Symbol, to_python
from .emit import Call, KwArgs, emit
from .errors import ConfigValidationError, ParseError
from .labels import src_path_to_label
from .logging import get_logger
from .manifest import OverrideBlock
from .namespaces import NamespaceDecl, read_ns_decl

logger = get_logger("targets")

_TEST_FILE = re.compile(r"_test\.clj")
_LABEL_LIST_ATTRS = ("deps", "runtime_deps")
_LABEL_PREFIXES = ("@", "//", ":")

LIBRARY_META = Keyword("clojure_library", "bazel")
TEST_META = Keyword("clojure_test", "bazel")


class TargetKind(str, Enum):
    SOURCE_LIBRARY = "source-library"
    TEST = "test"
    ARCHIVE_IMPORT = "archive-import"
    COMPILED_MODULE = "compiled-module"
    AGGREGATE_LIBRARY = "aggregate-library"
    AGGREGATE_FILEGROUP = "aggregate-filegroup"


_RULES = {
    TargetKind.SOURCE_LIBRARY: "clojure_library",
    TargetKind.TEST: "clojure_test",
    TargetKind.ARCHIVE_IMPORT: "java_import",
    TargetKind.COMPILED_MODULE: "clojure_library",
    TargetKind.AGGREGATE_LIBRARY: "clojure_library",
    TargetKind.AGGREGATE_FILEGROUP: "filegroup",
}


@dataclass
class BuildTarget:
    """One generated rule invocation: its kind and ordered attributes."""

    kind: TargetKind
    attrs: Dict[str, Any]

    @property
    def name(self) -> str:
        return str(self.attrs["name"])

    @property
    def rule(self) -> str:
        return _RULES[self.kind]

    @property
    def deps(self) -> List[str]:
        return list(self.attrs.get("deps", []))

    def to_call(self) -> Call:
        return Call(self.rule, (KwArgs.of(self.attrs),))

    def render(self) -> str:
        return emit(self.to_call())


def merge_attrs(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge attribute maps left to right; lists concatenate, other values are replaced."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, list) and isinstance(value, (list, tuple)):
                merged[key] = current + list(value)
            elif isinstance(value, (list, tuple)):
                merged[key] = list(value)
            else:
                merged[key] = value
    return merged


def normalize_label_lists(attrs: Dict[str, Any], *, sort: bool = True) -> Dict[str, Any]:
    """Deduplicate (and sort) every label-list attribute in place."""
    for key in _LABEL_LIST_ATTRS:
        if key in attrs:
            unique = list(dict.fromkeys(attrs[key]))
            attrs[key] = sorted(unique, key=str) if sort else unique
    return attrs


def validate_target(target: BuildTarget) -> BuildTarget:
    for key in _LABEL_LIST_ATTRS:
        for label in target.attrs.get(key, []):
            if not isinstance(label, str) or not label.startswith(_LABEL_PREFIXES):
                raise ConfigValidationError(
                    f"target {target.name!r} has malformed {key} entry {label!r}"
                )
    return target


def is_test_file(path: Path) -> bool:
    return bool(_TEST_FILE.search(path.name))


def _name(value: Any) -> str:
    if isinstance(value, (Keyword, Symbol)):
        return value.name
    return str(value)


def _metadata_attrs(
    raw: Any, list_keys: Iterable[str] = (), scalar_keys: Iterable[str] = ()
) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    list_keys, scalar_keys = set(list_keys), set(scalar_keys)
    attrs: Dict[str, Any] = {}
    for key, value in raw.items():
        attr = _name(key)
        if attr in list_keys and isinstance(value, (list, tuple)):
            attrs[attr] = [_name(item) for item in value]
        elif attr in scalar_keys:
            attrs[attr] = _name(value)
        else:
            attrs[attr] = to_python(value)
    return attrs


def inline_library_metadata(decl: NamespaceDecl) -> Dict[str, Any]:
    """Inline ``:bazel/clojure_library`` metadata from the ns declaration."""
    return _metadata_attrs(decl.metadata.get(LIBRARY_META), list_keys=_LABEL_LIST_ATTRS)


def inline_test_metadata(decl: NamespaceDecl) -> Dict[str, Any]:
    """Inline ``:bazel/clojure_test`` metadata from the ns declaration."""
    return _metadata_attrs(
        decl.metadata.get(TEST_META),
        list_keys=("tags", "deps"),
        scalar_keys=("size", "timeout"),
    )


class TargetSynthesizer:
    """Builds the ``clojure_library`` (and ``clojure_test``) targets for one source file."""

    def __init__(
        self,
        *,
        index: ClasspathIndex,
        overrides: OverrideBlock,
        settings: GenerationSettings,
        deps_edn_dir: Path,
        source_paths: Sequence[str] = (),
    ) -> None:
        self.index = index
        self.overrides = overrides
        self.settings = settings
        self.deps_edn_dir = deps_edn_dir
        self.source_paths = tuple(source_paths)
        self.extractor = DependencyExtractor.from_index(index, settings.deps_repo_tag)

    def strip_prefix(self, path: Path) -> Optional[str]:
        """The manifest source path that ``path`` lives under, if any."""
        for source_path in self.source_paths:
            root = self.deps_edn_dir / source_path
            if path == root or root in path.parents:
                return source_path
        return None

    def synthesize(self, path: Path) -> List[BuildTarget]:
        """Return the targets for ``path``; files without an ns form yield nothing."""
        try:
            decl = read_ns_decl(path)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return []
        if decl is None:
            logger.warning("Skipping %s due to no ns declaration", path)
            return []
        return self.targets_for(path, decl)

    def targets_for(self, path: Path, decl: NamespaceDecl) -> List[BuildTarget]:
        test = is_test_file(path)
        compiles = self.index.compiles(decl.name)
        if decl.requires_aot and not compiles:
            logger.warning("%s declares :gen-class but is excluded from AOT compilation", decl.name)

        label = src_path_to_label(self.deps_edn_dir, path)
        library_meta = inline_library_metadata(decl)
        if library_meta:
            logger.info("%s extra: %s", decl.name, library_meta)

        if not test and compiles:
            sources: Dict[str, Any] = {"srcs": [path.name], "aot": [decl.name]}
        else:
            sources = {"resources": [path.name], "aot": []}
        strip = self.strip_prefix(path)

        attrs = merge_attrs(
            {"name": path.name, "deps": [self.settings.base_label]},
            sources,
            {"resource_strip_prefix": strip} if strip else None,
            {"deps": sorted(self.extractor.extract(decl))},
            self.overrides.clojure_library,
            self.overrides.deps.get(label),
            library_meta,
        )
        targets = [self._finish(BuildTarget(TargetKind.SOURCE_LIBRARY, normalize_label_lists(attrs)))]

        if test:
            test_meta = inline_test_metadata(decl)
            if test_meta:
                logger.info("%s test extra: %s", decl.name, test_meta)
            test_name = f"{path.name}.test"
            test_attrs = merge_attrs(
                {"name": test_name, "test_ns": decl.name, "deps": [f":{path.name}"]},
                self.overrides.clojure_test,
                self.overrides.deps.get(f"{label}.test"),
                test_meta,
            )
            targets.append(self._finish(BuildTarget(TargetKind.TEST, normalize_label_lists(test_attrs))))
        return targets

    def _finish(self, target: BuildTarget) -> BuildTarget:
        if self.settings.validate:
            validate_target(target)
        return target


__all__ = [
    "BuildTarget",
    "TargetKind",
    "TargetSynthesizer",
    "is_test_file",
    "inline_library_metadata",
    "merge_attrs",
    "normalize_label_lists",
    "inline_test_metadata",
    "validate_target",
]
