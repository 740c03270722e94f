"""Code generation module for oasforge.

This module provides the Codegen class that drives a build from an API
document to files on disk: schema resolution, operation resolution, the
plugin pipeline, index generation, the atomic write and post-build hooks.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from upath import UPath

from oasforge.codegen.document import Document
from oasforge.codegen.files.manager import FileManager, ManifestEntry
from oasforge.codegen.files.writer import FileWriter, WriteResult
from oasforge.codegen.operations import OperationDescriptor, OperationGenerator
from oasforge.codegen.plugins import Plugin, PluginManager, load_plugins
from oasforge.codegen.registry import SchemaRegistry
from oasforge.codegen.schema import SchemaResolver
from oasforge.config import BuildConfig
from oasforge.exceptions import OperationGenerationError
from oasforge.hooks import HookResult, run_hooks

logger = logging.getLogger(__name__)

__all__ = ['BuildIR', 'BuildResult', 'Codegen']


@dataclass(frozen=True)
class BuildIR:
    """Read-only state shared by every plugin of a build.

    Attributes:
        document: The loaded API document.
        registry: The frozen registry of named definitions.
        operations: Resolved operations in document order.
        build_root: Root the output paths are resolved against.
        output_root: Output directory, relative to the build root or absolute.
    """

    document: Document
    registry: SchemaRegistry
    operations: tuple[OperationDescriptor, ...]
    build_root: Path
    output_root: str


@dataclass
class BuildResult:
    """Outcome of a build.

    Attributes:
        files: Rendered content keyed by path.
        manifest: Exports, producing plugins and checksum of every file.
        results: Finalized plugin results keyed by plugin name.
        operation_errors: Operations dropped after a resolution error.
        hook_results: Results of the post-build hooks, empty for dry builds.
        written: What the write changed on disk, None for dry builds.
    """

    files: Mapping[str, str]
    manifest: list[ManifestEntry]
    results: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    operation_errors: list[OperationGenerationError] = field(default_factory=list)
    hook_results: list[HookResult] = field(default_factory=list)
    written: WriteResult | None = None


class Codegen:
    """Main code generator of oasforge.

    Example:
        >>> from oasforge.config import get_config
        >>> codegen = Codegen(get_config())
        >>> result = codegen.generate()
        >>> sorted(result.files)
        ['/project/out/__init__.py', '/project/out/models.py']

    Note:
        ``build`` renders without touching the disk, ``generate`` also
        writes the files and runs the hooks.
    """

    def __init__(
        self,
        config: BuildConfig,
        document: Document | None = None,
        plugins: list[Plugin] | None = None,
    ):
        """Initialize the code generator.

        Args:
            config: The build configuration.
            document: An already loaded document, loaded from
                ``config.input.path`` otherwise.
            plugins: Plugin instances, instantiated from ``config.plugins``
                otherwise.
        """
        self.config = config
        self.build_root = Path(config.root).resolve()
        self._document = document
        self._plugins = plugins

    @property
    def output_root(self) -> UPath:
        return UPath(self.build_root).joinpath(self.config.output.path)

    def load_document(self) -> Document:
        if self._document is None:
            source = Path(self.config.input.path)
            if not source.is_absolute():
                source = self.build_root / source
            self._document = Document.load(source)
        return self._document

    def prepare(self) -> tuple[BuildIR, list[OperationGenerationError]]:
        """Resolve the document into the IR shared by the plugins."""
        document = self.load_document()
        resolver = SchemaResolver(document, self.config.resolver)
        registry = SchemaRegistry(document, resolver).build().freeze()
        logger.info(f'Resolved {len(registry)} schema definition(s)')

        operations, errors = OperationGenerator(
            document, registry, resolver, max_workers=self.config.max_workers
        ).build()
        logger.info(
            f'Resolved {len(operations)} operation(s), dropped {len(errors)}'
        )

        ir = BuildIR(
            document=document,
            registry=registry,
            operations=tuple(operations),
            build_root=self.build_root,
            output_root=self.config.output.path,
        )
        return ir, errors

    def build(self) -> BuildResult:
        """Run the plugin pipeline and render every file, without writing.

        Raises:
            ConfigurationError: If the plugin set or an option set is invalid.
                Nothing is resolved in that case.
            PluginError: If a plugin fails.
            FileConflictError: If two units claim the same file or symbol.
        """
        plugins = self._plugins
        if plugins is None:
            plugins = load_plugins(self.config.plugins)
        # validates the dependency graph before any resolution work
        manager = PluginManager(plugins, max_workers=self.config.max_workers)
        manager.setup()

        ir, errors = self.prepare()

        file_manager = FileManager(self.output_root, banner=self.config.output.banner)
        results = manager.run(ir, file_manager)
        file_manager.index_files()

        return BuildResult(
            files=file_manager.contents(),
            manifest=file_manager.manifest(),
            results=MappingProxyType(dict(results)),
            operation_errors=errors,
        )

    def generate(self) -> BuildResult:
        """Build, write the files and run the post-build hooks.

        Raises:
            CodeGenerationError: If a generated file does not compile. Nothing
                is written in that case.
            OutputError: If a file cannot be written.
        """
        result = self.build()

        result.written = FileWriter().write(
            result.files, self.output_root, clean=self.config.output.clean
        )
        logger.info(f'Generated {len(result.files)} file(s) in {self.output_root}')

        if self.config.hooks.done:
            result.hook_results = run_hooks(self.config.hooks.done, cwd=self.build_root)
        return result
