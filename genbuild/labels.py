"""Pure functions that turn libraries, namespaces and paths into bazel labels."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from .errors import ConfigValidationError

_NON_WORD = re.compile(r"[^\w]")

BASE_LIBRARY = "org.clojure/clojure"


def library_to_label(lib_name: str) -> str:
    """Munge a library name such as ``org.clojure/clojure`` into ``org_clojure_clojure``."""
    return _NON_WORD.sub("_", lib_name.replace("-", "_"))


def ns_aot_label(lib_name: str, ns: str) -> str:
    """Name of the target that compiles ``ns`` out of the archive for ``lib_name``."""
    return f"ns_{library_to_label(lib_name)}_{library_to_label(ns)}"


def qualify(deps_repo_tag: str, name: str) -> str:
    """Return ``name`` as a label in the dependency repository, e.g. ``@deps//:name``."""
    return f"{deps_repo_tag}//:{name}"


def relative_posix(base: Path, path: Path) -> PurePosixPath:
    """``path`` relative to ``base``; bazel cannot label anything outside the workspace."""
    try:
        return PurePosixPath(path.relative_to(base).as_posix())
    except ValueError as exc:
        raise ConfigValidationError(
            f"{path} is outside {base}; source paths must live under the deps.edn directory"
        ) from exc


def package_label(deps_edn_dir: Path, directory: Path, name: str) -> str:
    """Label for target ``name`` in the package rooted at ``directory``."""
    rel = relative_posix(deps_edn_dir, directory).as_posix()
    return f"//{'' if rel == '.' else rel}:{name}"


def src_path_to_label(deps_edn_dir: Path, path: Path) -> str:
    """File-based label: ``//<dir relative to deps.edn>:<basename>``."""
    return package_label(deps_edn_dir, path.parent, path.name)


__all__ = [
    "BASE_LIBRARY",
    "library_to_label",
    "ns_aot_label",
    "package_label",
    "qualify",
    "relative_posix",
    "src_path_to_label",
]
