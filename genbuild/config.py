"""Configuration loading for genbuild (.genbuild.yml) and per-run settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigValidationError, GenBuildError
from .labels import BASE_LIBRARY, library_to_label, qualify

CONFIG_FILENAME = ".genbuild.yml"
DEFAULT_DEPS_REPO_TAG = "@deps"
DEFAULT_RULES_BZL = "@rules_clojure//:rules.bzl"


class ConfigError(GenBuildError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GenBuildConfig:
    """Represents the settings defined in .genbuild.yml next to deps.edn."""

    root: Path
    deps_repo_tag: str = DEFAULT_DEPS_REPO_TAG
    aliases: List[str] = field(default_factory=list)
    repository_dir: Optional[Path] = None
    basis_file: Optional[Path] = None
    rules_bzl: str = DEFAULT_RULES_BZL
    base_library: str = BASE_LIBRARY
    validate: bool = False


@dataclass(frozen=True)
class GenerationSettings:
    """Explicit switches passed into the synthesizers for one run."""

    deps_repo_tag: str = DEFAULT_DEPS_REPO_TAG
    rules_bzl: str = DEFAULT_RULES_BZL
    base_library: str = BASE_LIBRARY
    validate: bool = False

    def __post_init__(self) -> None:
        if not self.deps_repo_tag.startswith("@"):
            raise ConfigValidationError(
                f"deps repo tag must start with @, got {self.deps_repo_tag!r}"
            )

    @property
    def base_label(self) -> str:
        return qualify(self.deps_repo_tag, library_to_label(self.base_library))

    @classmethod
    def from_config(cls, config: GenBuildConfig) -> "GenerationSettings":
        return cls(
            deps_repo_tag=config.deps_repo_tag,
            rules_bzl=config.rules_bzl,
            base_library=config.base_library,
            validate=config.validate,
        )


def load_config(config_path: Path) -> GenBuildConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return GenBuildConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = GenBuildConfig(root=root)
    tag = _as_str(data.get("deps_repo_tag"))
    if tag:
        config.deps_repo_tag = tag
    config.aliases = _as_str_list(data.get("aliases"))

    repository_dir = _as_str(data.get("repository_dir"))
    if repository_dir:
        config.repository_dir = (root / repository_dir).expanduser()
    basis_file = _as_str(data.get("basis_file"))
    if basis_file:
        config.basis_file = root / basis_file

    rules_bzl = _as_str(data.get("rules_bzl"))
    if rules_bzl:
        config.rules_bzl = rules_bzl
    base_library = _as_str(data.get("base_library"))
    if base_library:
        config.base_library = base_library
    config.validate = _as_bool(data.get("validate")) or False
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GenBuildConfig",
    "GenerationSettings",
    "load_config",
]
