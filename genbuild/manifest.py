"""Loading of ``deps.edn`` manifests and their ``:bazel`` override block."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .edn import Keyword, ReaderError, Symbol, read_string, to_python
from .errors import ConfigValidationError
from .logging import get_logger

logger = get_logger("manifest")


class OverrideBlock(BaseModel):
    """Extra data under ``:bazel`` in a deps.edn file.

    ``deps`` maps a fully-qualified bazel label to extra attributes merged into
    the target with that label, e.g. native library dependencies for a
    ``java_import``. ``clojure_library`` / ``clojure_test`` are merged into every
    generated source target of that kind. ``ignore`` lists source paths
    (relative to the deps.edn directory) to skip and ``no_aot`` lists namespaces
    that must never be compiled ahead of time.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    clojure_library: Dict[str, Any] = Field(default_factory=dict)
    clojure_test: Dict[str, Any] = Field(default_factory=dict)
    deps: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    ignore: List[str] = Field(default_factory=list)
    no_aot: List[str] = Field(default_factory=list, alias="no-aot")

    @field_validator("deps")
    @classmethod
    def _labels_are_qualified(cls, value: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        for label in value:
            if "//" not in label and not label.startswith(":"):
                raise ValueError(f"override key {label!r} is not a bazel label")
        return value


@dataclass(frozen=True)
class Alias:
    """Extra paths and dependencies merged in when an alias is requested."""

    extra_paths: Tuple[str, ...] = ()
    extra_deps: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class Manifest:
    """Normalized view of a deps.edn file."""

    path: Path
    paths: Tuple[str, ...] = ()
    deps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    aliases: Dict[str, Alias] = field(default_factory=dict)
    repos: Dict[str, str] = field(default_factory=dict)
    overrides: OverrideBlock = field(default_factory=OverrideBlock)

    @property
    def directory(self) -> Path:
        return self.path.parent

    def combine_aliases(self, names: Sequence[str]) -> Alias:
        """Merge the requested aliases in order; later aliases win on dep conflicts."""
        extra_paths: List[str] = []
        extra_deps: Dict[str, Dict[str, Any]] = {}
        for raw in names:
            name = raw.lstrip(":")
            alias = self.aliases.get(name)
            if alias is None:
                logger.warning("Alias :%s is not defined in %s", name, self.path.name)
                continue
            for path in alias.extra_paths:
                if path not in extra_paths:
                    extra_paths.append(path)
            extra_deps.update(alias.extra_deps)
        return Alias(extra_paths=tuple(extra_paths), extra_deps=extra_deps)


def load_manifest(path: Path) -> Manifest:
    """Read and validate a deps.edn file."""
    manifest_path = path.expanduser().resolve()
    if manifest_path.is_dir():
        manifest_path = manifest_path / "deps.edn"
    if not manifest_path.exists():
        raise FileNotFoundError(f"deps.edn not found: {manifest_path}")

    try:
        data = read_string(manifest_path.read_text(encoding="utf-8"))
    except ReaderError as exc:
        raise ConfigValidationError(f"Failed to parse {manifest_path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{manifest_path.name} must contain a map at the root")

    paths = tuple(_as_str_list(data.get(Keyword("paths")), "paths"))
    deps = _parse_deps(data.get(Keyword("deps")))
    aliases = _parse_aliases(data.get(Keyword("aliases")))
    repos = _parse_repos(data.get(Keyword("repos", "mvn")))
    overrides = parse_override_block(data.get(Keyword("bazel")))

    return Manifest(
        path=manifest_path,
        paths=paths,
        deps=deps,
        aliases=aliases,
        repos=repos,
        overrides=overrides,
    )


def parse_override_block(raw: Any) -> OverrideBlock:
    """Validate the ``:bazel`` map; raises :class:`ConfigValidationError` on schema errors."""
    if raw is None:
        return OverrideBlock()
    if not isinstance(raw, dict):
        raise ConfigValidationError(":bazel must be a map")
    try:
        return OverrideBlock.model_validate(to_python(raw))
    except ValidationError as exc:
        raise ConfigValidationError(f"invalid :bazel override block: {exc}") from exc


def _parse_deps(raw: Any) -> Dict[str, Dict[str, Any]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(":deps must be a map of library to coordinate")
    deps: Dict[str, Dict[str, Any]] = {}
    for lib, coordinate in raw.items():
        if not isinstance(lib, Symbol):
            raise ConfigValidationError(f"dependency name must be a symbol, got {lib!r}")
        if not isinstance(coordinate, dict):
            raise ConfigValidationError(f"coordinate for {lib} must be a map")
        deps[str(lib)] = to_python(coordinate)
    return deps


def _parse_aliases(raw: Any) -> Dict[str, Alias]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(":aliases must be a map")
    aliases: Dict[str, Alias] = {}
    for name, body in raw.items():
        if not isinstance(name, Keyword) or not isinstance(body, dict):
            raise ConfigValidationError(f"alias {name!r} must be a keyword mapped to a map")
        aliases[str(name)[1:]] = Alias(
            extra_paths=tuple(_as_str_list(body.get(Keyword("extra-paths")), "extra-paths")),
            extra_deps=_parse_deps(body.get(Keyword("extra-deps"))),
        )
    return aliases


def _parse_repos(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    repos: Dict[str, str] = {}
    for name, info in raw.items():
        if isinstance(info, dict) and isinstance(info.get(Keyword("url")), str):
            repos[str(name)] = info[Keyword("url")]
    return repos


def _as_str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise ConfigValidationError(f":{key} must be a vector of strings")
    return list(value)


__all__ = ["Alias", "Manifest", "OverrideBlock", "load_manifest", "parse_override_block"]
