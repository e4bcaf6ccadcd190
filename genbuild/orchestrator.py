"""Pipeline orchestration for the deps/srcs/ns-loader/maven-install commands."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence

from .archives import ArchiveIndex
from .classpath import ClasspathIndex
from .config import GenBuildConfig, GenerationSettings, load_config
from .deps_build import LibraryBuildGenerator, maven_install
from .emit import emit
from .errors import ResolutionError
from .logging import get_logger
from .manifest import Manifest, load_manifest
from .models import ResolvedBasis
from .ns_loader import generate_namespace_loader
from .resolver import BasisFileResolver, LocalRepositoryResolver, Resolver, top_level_deps
from .srcs import DirectoryAggregator, gen_source_paths, ignored_paths, resolve_roots
from .targets import TargetSynthesizer


@dataclass
class RunOptions:
    """Command-line choices for one run; ``None`` defers to ``.genbuild.yml``."""

    deps_edn: Path
    repository_dir: Optional[Path] = None
    basis_file: Optional[Path] = None
    deps_repo_tag: Optional[str] = None
    aliases: Optional[List[str]] = None
    validate: Optional[bool] = None


@dataclass
class PipelineContext:
    """Everything derived from the manifest before any file is generated."""

    manifest: Manifest
    config: GenBuildConfig
    settings: GenerationSettings
    aliases: List[str]
    basis: ResolvedBasis
    index: ClasspathIndex = field(repr=False)

    @property
    def deps_edn_dir(self) -> Path:
        return self.manifest.directory


class Orchestrator:
    """Coordinates manifest loading, resolution, indexing and generation."""

    def __init__(
        self,
        resolver: Resolver | None = None,
        archives: ArchiveIndex | None = None,
    ) -> None:
        self._resolver = resolver
        self.archives = archives or ArchiveIndex()
        self.logger = get_logger("orchestrator")

    def prepare(self, options: RunOptions) -> PipelineContext:
        """Load, resolve and index; shared by the ``deps`` and ``srcs`` flows."""
        manifest = load_manifest(options.deps_edn)
        config = load_config(manifest.directory)
        settings = self._settings(config, options)
        aliases = self._aliases(config, options)
        self.logger.info("Loaded %s (aliases: %s)", manifest.path, ", ".join(aliases) or "none")

        resolver = self._select_resolver(config, options)
        basis = resolver.resolve(manifest, aliases)
        self.logger.debug(
            "Resolved %d source paths and %d libraries",
            len(basis.source_entries()),
            len(basis.library_entries()),
        )
        index = ClasspathIndex.build(
            basis,
            deps_edn_dir=manifest.directory,
            no_aot=manifest.overrides.no_aot,
            archives=self.archives,
        )
        return PipelineContext(
            manifest=manifest,
            config=config,
            settings=settings,
            aliases=aliases,
            basis=basis,
            index=index,
        )

    def run_deps(self, options: RunOptions, deps_build_dir: Path) -> Path:
        """Write the BUILD file of the external dependency repository."""
        context = self.prepare(options)
        generator = LibraryBuildGenerator(
            index=context.index,
            overrides=context.manifest.overrides,
            settings=context.settings,
            deps_build_dir=deps_build_dir.expanduser().resolve(),
        )
        output = generator.generate()
        self.logger.info("Generated %d library targets", len(context.index.jar_to_lib))
        return output

    def run_srcs(self, options: RunOptions) -> List[Path]:
        """Write one BUILD file per directory under the manifest's source paths."""
        context = self.prepare(options)
        deps_edn_dir = context.deps_edn_dir
        ignore = ignored_paths(deps_edn_dir, context.manifest.overrides.ignore)
        roots = resolve_roots([entry.path for entry in context.basis.source_entries()], ignore)
        synthesizer = TargetSynthesizer(
            index=context.index,
            overrides=context.manifest.overrides,
            settings=context.settings,
            deps_edn_dir=deps_edn_dir,
            source_paths=context.basis.paths,
        )

        def aggregator(directories: Sequence[Path]) -> DirectoryAggregator:
            return DirectoryAggregator(
                synthesizer=synthesizer,
                settings=context.settings,
                deps_edn_dir=deps_edn_dir,
                generated_dirs=directories,
                ignore=ignore,
            )

        return gen_source_paths(aggregator, roots, ignore)

    def run_ns_loader(
        self,
        *,
        workspace_root: Path,
        output_filename: str,
        output_ns_name: str,
        output_fn_name: str,
        in_dirs: Sequence[str],
        exclude_nses: Sequence[str] = (),
        platform: str | None = None,
    ) -> Path:
        self.logger.info("Generating namespace loader %s", output_ns_name)
        return generate_namespace_loader(
            workspace_root=workspace_root,
            output_filename=output_filename,
            output_ns_name=output_ns_name,
            output_fn_name=output_fn_name,
            in_dirs=in_dirs,
            exclude_nses=exclude_nses,
            platform=platform,
        )

    def run_maven_install(self, options: RunOptions) -> str:
        """Render a ``maven_install(...)`` block for the manifest's direct dependencies."""
        manifest = load_manifest(options.deps_edn)
        config = load_config(manifest.directory)
        aliases = self._aliases(config, options)
        basis = ResolvedBasis(
            classpath=(),
            deps=top_level_deps(manifest, aliases),
            repos=tuple(manifest.repos.values()),
        )
        return emit(maven_install(basis))

    def _settings(self, config: GenBuildConfig, options: RunOptions) -> GenerationSettings:
        settings = GenerationSettings.from_config(config)
        if options.deps_repo_tag is not None:
            settings = replace(settings, deps_repo_tag=options.deps_repo_tag)
        if options.validate is not None:
            settings = replace(settings, validate=options.validate)
        return settings

    def _aliases(self, config: GenBuildConfig, options: RunOptions) -> List[str]:
        raw = options.aliases if options.aliases is not None else config.aliases
        return [alias.lstrip(":") for alias in raw]

    def _select_resolver(self, config: GenBuildConfig, options: RunOptions) -> Resolver:
        if self._resolver is not None:
            return self._resolver
        basis_file = options.basis_file or config.basis_file
        if basis_file is not None:
            self.logger.debug("Using resolved basis from %s", basis_file)
            return BasisFileResolver(basis_file)
        repository = options.repository_dir or config.repository_dir
        if repository is None:
            raise ResolutionError(
                "no repository directory or basis file configured; pass --repository-dir or --basis"
            )
        self.logger.debug("Resolving against local repository %s", repository)
        return LocalRepositoryResolver(repository.expanduser().resolve())


__all__ = ["Orchestrator", "PipelineContext", "RunOptions"]
