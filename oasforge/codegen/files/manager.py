"""Output file set of a build.

This module provides the FileManager class that accumulates the output units
produced by plugins, detects conflicting units, generates ``__init__.py``
index files and renders every file to its final source text:
- Path resolution for the single, grouped and per-item path modes
- Append mode concatenation with byte-identical block deduplication
- Symbol-level conflict detection
- Import merging across the units of a file
"""

import ast
import hashlib
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from upath import UPath

from oasforge.codegen.ast_utils import ImportCollector, _all
from oasforge.codegen.utils import relative_module, to_snake_case
from oasforge.exceptions import FileConflictError

logger = logging.getLogger(__name__)

__all__ = [
    'PathMode',
    'Import',
    'OutputUnit',
    'OutputFile',
    'ManifestEntry',
    'FileManager',
    'infer_mode',
    'resolve_path',
]

INDEX_FILENAME = '__init__.py'


class PathMode(str, Enum):
    SINGLE = 'single'
    GROUPED = 'grouped'
    PER_ITEM = 'per_item'


def infer_mode(output_path: str, group=None) -> PathMode:
    """Derive the path mode from an output sub-path.

    A sub-path with a file extension is a single file, otherwise a grouping
    configuration selects grouped mode and anything else is per-item.
    """
    if PurePosixPath(output_path).suffix:
        return PathMode.SINGLE
    if group is not None:
        return PathMode.GROUPED
    return PathMode.PER_ITEM


def resolve_path(
    build_root: str | Path | UPath,
    output_root: str | Path | UPath,
    sub_path: str,
    mode: PathMode,
    base_name: str,
    group_dir: str | None = None,
) -> UPath:
    """Destination of one output unit.

    Args:
        build_root: Root all relative output paths are resolved against.
        output_root: Output directory of the build.
        sub_path: The plugin's output sub-path.
        mode: The plugin's path mode.
        base_name: Name of the item, transformed to a snake_case file name.
        group_dir: Directory of the item's group, required in grouped mode.

    Returns:
        The absolute destination, identical for identical inputs.

    Raises:
        ValueError: If grouped mode is missing its group directory.
    """
    base = UPath(build_root).joinpath(str(output_root), sub_path)

    if mode is PathMode.SINGLE:
        if not base.suffix:
            return base.with_suffix('.py')
        return base

    filename = f'{to_snake_case(base_name) or "index"}.py'
    if mode is PathMode.GROUPED:
        if not group_dir:
            raise ValueError(f"Grouped path mode requires a group directory for '{base_name}'")
        return base / group_dir / filename
    return base / filename


@dataclass(frozen=True)
class Import:
    """Names imported by a unit, from a module or from another generated file.

    Attributes:
        names: Imported names.
        module: Absolute module name (``pydantic``, ``typing``...).
        path: Destination of another generated file, imported relatively.
    """

    names: tuple[str, ...]
    module: str | None = None
    path: str | None = None

    def module_for(self, file_path: str) -> str:
        if self.module is not None:
            return self.module
        return relative_module(file_path, self.path)


@dataclass(frozen=True)
class OutputUnit:
    """Content produced by one plugin for one semantic target.

    Attributes:
        path: Resolved destination.
        source: Python source of the unit body, without imports.
        exports: Ordered names the unit declares.
        imports: Names the body needs.
        is_exported: Whether index files re-export the unit's names.
        plugin: Name of the producing plugin.
        name: The semantic target (schema name, operation id...).
        append: Whether the unit may be appended to an existing file.
    """

    path: UPath
    source: str
    exports: tuple[str, ...] = ()
    imports: tuple[Import, ...] = ()
    is_exported: bool = True
    plugin: str | None = None
    name: str | None = None
    append: bool = False


@dataclass
class OutputFile:
    path: UPath
    units: list[OutputUnit] = field(default_factory=list)

    @property
    def exports(self) -> tuple[str, ...]:
        names: list[str] = []
        for unit in self.units:
            for name in unit.exports:
                if name not in names:
                    names.append(name)
        return tuple(names)

    @property
    def index_exports(self) -> tuple[str, ...]:
        names: list[str] = []
        for unit in self.units:
            if not unit.is_exported:
                continue
            for name in unit.exports:
                if name not in names:
                    names.append(name)
        return tuple(names)

    @property
    def plugins(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(unit.plugin for unit in self.units if unit.plugin))


@dataclass(frozen=True)
class ManifestEntry:
    path: str
    exports: tuple[str, ...]
    plugins: tuple[str, ...]
    sha256: str


class FileManager:
    """Accumulates the output units of one build.

    Example:
        >>> manager = FileManager(output_root='/project/src/client')
        >>> manager.add(unit, append=True)
        >>> manager.index_files()
        >>> contents = manager.contents()
    """

    def __init__(
        self, output_root: str | Path | UPath | None = None, banner: str | None = None
    ):
        self.output_root = UPath(output_root) if output_root is not None else None
        self.banner = banner
        self.files: dict[str, OutputFile] = {}

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path) -> bool:
        return str(path) in self.files

    @property
    def units(self) -> list[OutputUnit]:
        return [unit for file in self.files.values() for unit in file.units]

    def add(self, unit: OutputUnit, append: bool = False) -> bool:
        """Add a unit to the file set.

        Args:
            unit: The unit to add.
            append: Concatenate with units already targeting the same path.

        Returns:
            False if the unit was dropped as a byte-identical duplicate.

        Raises:
            FileConflictError: If the unit exports a name already exported
                with different content, or collides with distinct content
                outside append mode.
        """
        key = str(unit.path)
        file = self.files.get(key)
        if file is None:
            self.files[key] = OutputFile(unit.path, [unit])
            return True

        if any(existing.source == unit.source for existing in file.units):
            logger.debug(f"Dropping duplicate block '{unit.name}' in {key}")
            return False

        for symbol in unit.exports:
            for existing in file.units:
                if symbol in existing.exports:
                    raise FileConflictError(
                        key,
                        symbol=symbol,
                        plugins=self._plugins(existing, unit),
                    )

        if not (append or unit.append):
            raise FileConflictError(key, plugins=self._plugins(*file.units, unit))

        file.units.append(unit)
        return True

    def extend(self, units: Iterable[OutputUnit]) -> None:
        for unit in units:
            self.add(unit)

    @staticmethod
    def _plugins(*units: OutputUnit) -> tuple[str, ...]:
        return tuple(dict.fromkeys(unit.plugin or '<unknown>' for unit in units))

    def _directories(self) -> Iterator[UPath]:
        seen: dict[str, UPath] = {}
        root = str(self.output_root) if self.output_root is not None else None
        for file in self.files.values():
            directory = file.path.parent
            chain = []
            while True:
                chain.append(directory)
                if root is None or str(directory) == root:
                    break
                if not str(directory).startswith(root.rstrip('/') + '/'):
                    break
                directory = directory.parent
            for directory in reversed(chain):
                seen.setdefault(str(directory), directory)
        yield from seen.values()

    def index_files(self) -> list[UPath]:
        """Add one ``__init__.py`` per output directory.

        Each index re-exports the exported names of the files placed
        directly in its directory, in insertion order. Directories already
        holding an ``__init__.py`` unit are left alone.

        Returns:
            The paths of the added index files.
        """
        created = []
        for directory in list(self._directories()):
            index_path = directory / INDEX_FILENAME
            if str(index_path) in self.files:
                continue

            imports = []
            exports: list[str] = []
            for file in list(self.files.values()):
                if str(file.path.parent) != str(directory):
                    continue
                names = []
                for name in file.index_exports:
                    if name in exports:
                        logger.warning(
                            f"'{name}' from {file.path} is shadowed in {index_path}, skipping"
                        )
                        continue
                    names.append(name)
                    exports.append(name)
                if names:
                    imports.append(Import(tuple(names), path=str(file.path)))

            self.files[str(index_path)] = OutputFile(
                index_path,
                [
                    OutputUnit(
                        path=index_path,
                        source='',
                        exports=tuple(exports),
                        imports=tuple(imports),
                        is_exported=False,
                        name='index',
                    )
                ],
            )
            created.append(index_path)
        return created

    def render(self, path) -> str:
        """Render one file: banner, merged imports, unit bodies and ``__all__``."""
        key = str(path)
        file = self.files[key]
        exports = file.exports

        collector = ImportCollector()
        for unit in file.units:
            for spec in unit.imports:
                if spec.path is not None and str(spec.path) == key:
                    continue
                names = [name for name in spec.names if name not in exports or not unit.source]
                if names:
                    collector.add_imports({spec.module_for(key): names})

        header = []
        if self.banner:
            header.extend(f'# {line}' for line in self.banner.splitlines())
        if collector.has_imports():
            if header:
                header.append('')
            header.append(collector.render())

        chunks = []
        if header:
            chunks.append('\n'.join(header))
        chunks.extend(unit.source for unit in file.units if unit.source)
        if exports:
            chunks.append(ast.unparse(ast.fix_missing_locations(_all(exports))))
        return '\n\n\n'.join(chunks) + '\n'

    def contents(self) -> dict[str, str]:
        """Rendered content of every file, keyed by path in sorted order."""
        return {key: self.render(key) for key in sorted(self.files)}

    def manifest(self) -> list[ManifestEntry]:
        entries = []
        for key in sorted(self.files):
            file = self.files[key]
            content = self.render(key)
            entries.append(
                ManifestEntry(
                    path=key,
                    exports=file.exports,
                    plugins=file.plugins,
                    sha256=hashlib.sha256(content.encode('utf-8')).hexdigest(),
                )
            )
        return entries
