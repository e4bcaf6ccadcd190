"""Core data models shared across genbuild components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class ClasspathEntry:
    """One classpath element: a source directory or a library archive."""

    path: Path
    path_key: Optional[str] = None
    lib_name: Optional[str] = None

    @property
    def is_library(self) -> bool:
        return self.lib_name is not None


@dataclass(frozen=True)
class TraceRecord:
    """A single resolver decision: ``lib`` reached through ``path`` for ``reason``."""

    path: Tuple[str, ...]
    lib: str
    reason: str

    @property
    def parent(self) -> Optional[str]:
        return self.path[-1] if self.path else None


@dataclass(frozen=True)
class ResolvedBasis:
    """Immutable output of dependency resolution."""

    classpath: Tuple[ClasspathEntry, ...]
    trace: Tuple[TraceRecord, ...] = ()
    paths: Tuple[str, ...] = ()
    deps: Dict[str, Dict[str, object]] = field(default_factory=dict)
    repos: Tuple[str, ...] = ()

    def source_entries(self) -> Tuple[ClasspathEntry, ...]:
        return tuple(entry for entry in self.classpath if not entry.is_library)

    def library_entries(self) -> Tuple[ClasspathEntry, ...]:
        return tuple(entry for entry in self.classpath if entry.is_library)

    def libraries(self) -> Tuple[Tuple[Path, str], ...]:
        """``(archive, library name)`` pairs in classpath order."""
        return tuple(
            (entry.path, entry.lib_name) for entry in self.classpath if entry.lib_name is not None
        )


@dataclass(frozen=True)
class Coordinate:
    """Maven coordinate for a ``group/artifact`` library at ``version``."""

    group: str
    artifact: str
    version: str

    @classmethod
    def from_lib(cls, lib_name: str, version: str) -> "Coordinate":
        group, _, artifact = lib_name.partition("/")
        if not artifact:
            artifact = group
        return cls(group=group, artifact=artifact, version=version)

    @property
    def lib_name(self) -> str:
        return f"{self.group}/{self.artifact}"

    def relative_dir(self) -> Path:
        return Path(*self.group.split(".")) / self.artifact / self.version

    def jar_path(self, repository: Path) -> Path:
        return repository / self.relative_dir() / f"{self.artifact}-{self.version}.jar"

    def pom_path(self, repository: Path) -> Path:
        return repository / self.relative_dir() / f"{self.artifact}-{self.version}.pom"


__all__ = ["ClasspathEntry", "Coordinate", "ResolvedBasis", "TraceRecord"]
