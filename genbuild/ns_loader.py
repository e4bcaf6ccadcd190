"""Generation of a namespace that requires every namespace under a set of directories.

Useful for static analysis and ClojureScript test runners, which need one
entry point that loads everything.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from jinja2 import Environment, FileSystemLoader

from .logging import get_logger
from .namespaces import CLJ, CLJS, PLATFORMS, Platform, find_ns_decls_in_dir
from .writer import write_atomic

logger = get_logger("ns_loader")

TEMPLATE_NAME = "ns_loader.clj.j2"


def platform_for(name: str | None) -> Platform:
    """``:clj`` / ``:cljs`` (colon optional); anything else falls back to clj."""
    if not name:
        return CLJ
    return PLATFORMS.get(name.lstrip(":"), CLJ)


def _create_env(templates_dir: Path | None = None) -> Environment:
    directory = templates_dir or Path(__file__).with_name("templates")
    return Environment(
        loader=FileSystemLoader(str(directory)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def collect_namespaces(
    in_dirs: Iterable[Path], platform: Platform, exclude: Iterable[str] = ()
) -> List[str]:
    """Sorted names of every namespace declared under ``in_dirs`` minus ``exclude``."""
    found = set()
    for directory in in_dirs:
        for _, decl in find_ns_decls_in_dir(directory, platform):
            found.add(decl.name)
    return sorted(found - set(exclude))


def render_namespace_loader(
    *,
    output_filename: str,
    output_ns_name: str,
    output_fn_name: str,
    namespaces: List[str],
    platform: Platform = CLJ,
    templates_dir: Path | None = None,
) -> str:
    conditional = output_filename.endswith(".cljc")
    feature = ":cljs" if platform is CLJS else ":clj"
    template = _create_env(templates_dir).get_template(TEMPLATE_NAME)
    return template.render(
        ns_name=output_ns_name,
        fn_name=output_fn_name,
        namespaces=namespaces,
        open_conditional=f"#?({feature}" if conditional else "",
        close_conditional=")" if conditional else "",
    )


def generate_namespace_loader(
    *,
    workspace_root: Path,
    output_filename: str,
    output_ns_name: str,
    output_fn_name: str,
    in_dirs: Iterable[str],
    exclude_nses: Iterable[str] = (),
    platform: str | None = None,
) -> Path:
    """Write the loader namespace to ``workspace_root / output_filename``.

    The loader never requires itself; list whatever else would create a cycle
    in ``exclude_nses``.
    """
    if not output_filename or not output_ns_name or not output_fn_name:
        raise ValueError("output filename, namespace name and function name are required")
    selected = platform_for(platform)
    directories = [workspace_root / directory for directory in in_dirs]
    namespaces = collect_namespaces(
        directories, selected, exclude=[output_ns_name, *exclude_nses]
    )
    content = render_namespace_loader(
        output_filename=output_filename,
        output_ns_name=output_ns_name,
        output_fn_name=output_fn_name,
        namespaces=namespaces,
        platform=selected,
    )
    output = workspace_root / output_filename
    write_atomic(output, content)
    logger.info("Wrote %s requiring %d namespaces", output, len(namespaces))
    return output


__all__ = [
    "collect_namespaces",
    "generate_namespace_loader",
    "platform_for",
    "render_namespace_loader",
]
