"""Error taxonomy shared by the generation pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, TypeVar

_V = TypeVar("_V")


class GenBuildError(RuntimeError):
    """Base class for every fatal genbuild failure."""


class ResolutionError(GenBuildError):
    """Raised when library coordinates cannot be resolved to archives."""


class ParseError(GenBuildError):
    """Raised when a single source file cannot be read. Callers skip the file."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class DeclarationError(GenBuildError):
    """Raised when a file starts with an ns form that cannot be read."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"malformed ns declaration in {path}: {message}")
        self.path = path


class ArchiveFormatError(GenBuildError):
    """Raised when a library archive is unreadable or not a supported format."""


class ConfigValidationError(GenBuildError):
    """Raised when the manifest override block or run settings are invalid."""


class MissingKeyError(GenBuildError, KeyError):
    """Raised when a required key is absent from an index."""

    def __init__(self, mapping: Mapping[Any, Any], key: Any) -> None:
        preview = ", ".join(sorted(str(k) for k in list(mapping)[:10]))
        super().__init__(f"couldn't find key {key!r} (available: {preview or 'none'})")
        self.mapping = mapping
        self.key = key

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


def require_key(mapping: Mapping[Any, _V], key: Any) -> _V:
    """Return ``mapping[key]`` or raise :class:`MissingKeyError` carrying both."""
    if key not in mapping:
        raise MissingKeyError(mapping, key)
    return mapping[key]


__all__ = [
    "ArchiveFormatError",
    "ConfigValidationError",
    "DeclarationError",
    "GenBuildError",
    "MissingKeyError",
    "ParseError",
    "ResolutionError",
    "require_key",
]
