"""CLI entrypoints for genbuild commands."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .errors import GenBuildError
from .logging import configure_logging
from .orchestrator import Orchestrator, RunOptions

WORKSPACE_ENV = "BUILD_WORKSPACE_DIRECTORY"


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _deps_repo_tag(value: str) -> str:
    if not value.startswith("@"):
        raise argparse.ArgumentTypeError("deps repo tag must start with @")
    return value


def _add_manifest_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--deps-edn",
        default="deps.edn",
        help="Path to deps.edn, relative to the workspace root (default: deps.edn).",
    )
    parser.add_argument(
        "--aliases",
        nargs="*",
        default=None,
        help="deps.edn aliases to apply, e.g. --aliases dev test.",
    )


def _add_resolution_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repository-dir",
        default=None,
        help="Local Maven repository holding the resolved archives.",
    )
    parser.add_argument(
        "--basis",
        dest="basis_file",
        default=None,
        help="Pre-resolved basis JSON file; takes precedence over --repository-dir.",
    )
    parser.add_argument(
        "--deps-repo-tag",
        type=_deps_repo_tag,
        default=None,
        help="Name of the external dependency repository (default: @deps).",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        default=None,
        help="Check every generated dependency label before writing.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genbuild",
        description="Generate Bazel BUILD files for a Clojure deps.edn project.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--workspace-root",
        default=None,
        help=f"Workspace root (default: ${WORKSPACE_ENV} or the current directory).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deps_parser = subparsers.add_parser(
        "deps",
        help="Write the BUILD file for the external dependency repository.",
    )
    _add_verbose_option(deps_parser, suppress_default=True)
    _add_manifest_options(deps_parser)
    _add_resolution_options(deps_parser)
    deps_parser.add_argument(
        "--deps-build-dir",
        required=True,
        help="Directory of the dependency repository's BUILD.bazel.",
    )

    srcs_parser = subparsers.add_parser(
        "srcs",
        help="Write a BUILD file for every directory under the project's source paths.",
    )
    _add_verbose_option(srcs_parser, suppress_default=True)
    _add_manifest_options(srcs_parser)
    _add_resolution_options(srcs_parser)

    loader_parser = subparsers.add_parser(
        "ns-loader",
        help="Generate a namespace that requires every namespace under some directories.",
    )
    _add_verbose_option(loader_parser, suppress_default=True)
    loader_parser.add_argument("--output-filename", required=True, help="Output path relative to the workspace root.")
    loader_parser.add_argument("--output-ns-name", required=True, help="Name of the generated namespace.")
    loader_parser.add_argument("--output-fn-name", required=True, help="Name of the generated function.")
    loader_parser.add_argument(
        "--in-dirs",
        nargs="+",
        required=True,
        help="Directories, relative to the workspace root, to search for namespaces.",
    )
    loader_parser.add_argument(
        "--exclude-nses",
        nargs="*",
        default=[],
        help="Namespaces to leave out, typically the ones that require the loader.",
    )
    loader_parser.add_argument(
        "--platform",
        choices=[":clj", ":cljs", "clj", "cljs"],
        default=":clj",
        help="Dialect to collect namespaces for (default: :clj).",
    )

    maven_parser = subparsers.add_parser(
        "maven-install",
        help="Print a maven_install() block for the WORKSPACE file.",
    )
    _add_verbose_option(maven_parser, suppress_default=True)
    _add_manifest_options(maven_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for genbuild commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=args.command == "maven-install",
        log_file=Path(args.log_file).expanduser() if args.log_file else None,
    )

    workspace_root = _workspace_root(args.workspace_root)
    orchestrator = Orchestrator()

    try:
        if args.command == "deps":
            output = orchestrator.run_deps(
                _run_options(args, workspace_root),
                _within(workspace_root, args.deps_build_dir),
            )
            print(f"BUILD file written to {_relativize(output)}")
        elif args.command == "srcs":
            written = orchestrator.run_srcs(_run_options(args, workspace_root))
            print(f"{len(written)} BUILD files written")
        elif args.command == "ns-loader":
            output = orchestrator.run_ns_loader(
                workspace_root=workspace_root,
                output_filename=args.output_filename,
                output_ns_name=args.output_ns_name,
                output_fn_name=args.output_fn_name,
                in_dirs=args.in_dirs,
                exclude_nses=args.exclude_nses,
                platform=args.platform,
            )
            print(f"Namespace loader written to {_relativize(output)}")
        elif args.command == "maven-install":
            print(orchestrator.run_maven_install(_run_options(args, workspace_root)))
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except GenBuildError as exc:
        parser.exit(1, f"genbuild {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _workspace_root(raw: str | None) -> Path:
    if raw:
        return Path(raw).expanduser().resolve()
    env = os.environ.get(WORKSPACE_ENV)
    if env:
        return Path(env).resolve()
    return Path.cwd()


def _within(workspace_root: Path, raw: str | None) -> Path | None:
    if raw is None:
        return None
    path = Path(raw).expanduser()
    return path if path.is_absolute() else workspace_root / path


def _run_options(args: argparse.Namespace, workspace_root: Path) -> RunOptions:
    return RunOptions(
        deps_edn=_within(workspace_root, args.deps_edn),
        repository_dir=_within(workspace_root, getattr(args, "repository_dir", None)),
        basis_file=_within(workspace_root, getattr(args, "basis_file", None)),
        deps_repo_tag=getattr(args, "deps_repo_tag", None),
        aliases=args.aliases,
        validate=getattr(args, "validate", None),
    )


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
