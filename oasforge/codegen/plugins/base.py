"""Plugin interface of the code generation pipeline.

A plugin turns the build IR into output units for one consumption pattern.
Its lifecycle is ``setup`` (validate options), ``build`` (emit units) and
``complete`` (emit aggregates once its own units are known); the finalized
``result()`` is then published to the plugins declaring it in ``pre``.
"""

import logging
import threading
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from upath import UPath

from oasforge.codegen.files.grouping import Group, GroupResolver
from oasforge.codegen.files.manager import OutputUnit, PathMode, infer_mode, resolve_path
from oasforge.codegen.operations import Exclude, Include, Override
from oasforge.codegen.utils import deep_merge
from oasforge.exceptions import ConfigurationError, PluginDependencyError

if TYPE_CHECKING:
    from oasforge.codegen.codegen import BuildIR
    from oasforge.codegen.operations import OperationDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    'OutputOptions',
    'PluginOptions',
    'Plugin',
    'PluginContext',
    'PluginResults',
]


class OutputOptions(BaseModel):
    model_config = ConfigDict(extra='forbid')

    path: str = Field(
        ..., description='Output sub-path, a file for single mode or a directory.'
    )

    mode: PathMode | None = Field(
        None, description='Path mode, inferred from path and group when unset.'
    )

    index: bool = Field(
        True, description='Re-export the emitted names from index files.'
    )


class PluginOptions(BaseModel):
    """Options shared by every plugin."""

    model_config = ConfigDict(extra='forbid')

    output: OutputOptions

    group: Group | None = Field(
        None, description='Grouping of operations into directories.'
    )

    include: list[Include] = Field(default_factory=list)

    exclude: list[Exclude] = Field(default_factory=list)

    override: list[Override] = Field(default_factory=list)

    content_type: str | None = Field(
        None, description='Preferred media type for bodies and responses.'
    )

    @property
    def mode(self) -> PathMode:
        return self.output.mode or infer_mode(self.output.path, self.group)


class PluginResults(Mapping):
    """Build-scoped registry of finalized plugin results.

    Results are published by the PluginManager once a plugin completed, in
    dependency order. Plugins only see it through PluginContext.get_result.
    """

    def __init__(self):
        self._results: dict[str, Any] = {}
        self._lock = threading.Lock()

    def publish(self, name: str, result: Any) -> None:
        with self._lock:
            if name in self._results:
                raise RuntimeError(f"Result of plugin '{name}' already published")
            self._results[name] = result

    def __getitem__(self, name: str) -> Any:
        return self._results[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)


class PluginContext:
    """What one plugin sees of the build.

    Each plugin owns its context and its unit list; the manager merges the
    units into the file set after the plugin completed.
    """

    def __init__(self, plugin: 'Plugin', ir: 'BuildIR', results: PluginResults):
        self.plugin = plugin
        self.ir = ir
        self.units: list[OutputUnit] = []
        self._results = results

    @property
    def operations(self) -> tuple['OperationDescriptor', ...]:
        return self.ir.operations

    @property
    def registry(self):
        return self.ir.registry

    def get_result(self, name: str) -> Any:
        """Finalized result of a plugin declared in ``pre``.

        Raises:
            PluginDependencyError: If the plugin did not declare the dependency.
        """
        if name not in self.plugin.pre:
            raise PluginDependencyError(
                self.plugin.name,
                name,
                f"result of '{name}' requested without declaring it in pre",
            )
        return self._results[name]

    def resolve_path(
        self,
        base_name: str,
        operation: 'OperationDescriptor | None' = None,
        options: PluginOptions | None = None,
    ) -> UPath:
        """Destination of the unit emitted for one item.

        Args:
            base_name: Name of the schema or operation.
            operation: The operation, used to pick the group directory.
            options: Per-operation options, defaults to the plugin options.
        """
        options = options or self.plugin.options
        mode = options.mode
        group_dir = None
        if mode is PathMode.GROUPED:
            resolver = GroupResolver(options.group or Group())
            if operation is not None:
                group_dir = resolver.resolve(operation)
            else:
                group_dir = resolver.directory(resolver.group.fallback)
        return resolve_path(
            self.ir.build_root,
            self.ir.output_root,
            options.output.path,
            mode,
            base_name,
            group_dir,
        )

    def emit(self, unit: OutputUnit) -> OutputUnit:
        self.units.append(unit)
        return unit


class Plugin:
    """Base class of output plugins.

    Subclasses set ``name``, ``pre``, ``options_model`` and
    ``default_output`` and implement ``build``.

    Example:
        >>> class DocsPlugin(Plugin):
        ...     name = 'docs'
        ...     default_output = 'docs'
        ...
        ...     def build(self, context):
        ...         for operation in context.operations:
        ...             context.emit(...)
    """

    name: str = ''
    pre: tuple[str, ...] = ()
    options_model: ClassVar[type[PluginOptions]] = PluginOptions
    default_output: ClassVar[str] = ''

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        name: str | None = None,
        pre: tuple[str, ...] | None = None,
    ):
        if name is not None:
            self.name = name
        if pre is not None:
            self.pre = tuple(pre)
        self.raw_options = dict(options or {})
        self.options: PluginOptions | None = None
        self._state = 'new'

    def __repr__(self) -> str:
        return f'{type(self).__name__}(name={self.name!r})'

    @property
    def state(self) -> str:
        return self._state

    def setup(self) -> None:
        """Validate and normalize the plugin options.

        Raises:
            ConfigurationError: If the options do not validate.
            RuntimeError: If the plugin instance was already used for a build.
        """
        if self._state != 'new':
            raise RuntimeError(f"Plugin '{self.name}' can only run one build")

        defaults = {'output': {'path': self.default_output}}
        try:
            self.options = self.options_model.model_validate(
                deep_merge(defaults, self.raw_options)
            )
        except ValidationError as e:
            first = e.errors()[0]
            raise ConfigurationError(
                f"Invalid options for plugin '{self.name}': {first['msg']}",
                field='.'.join(str(part) for part in first['loc']),
            )
        self._state = 'setup'

    def run(self, context: PluginContext) -> None:
        """Build and complete, once, after setup."""
        if self._state != 'setup':
            raise RuntimeError(f"Plugin '{self.name}' must be set up before it runs")
        self._state = 'running'
        self.build(context)
        self.complete(context)
        self._state = 'done'

    def build(self, context: PluginContext) -> None:
        raise NotImplementedError

    def complete(self, context: PluginContext) -> None:
        pass

    def result(self) -> Any:
        return None

    def unit(
        self,
        path: UPath,
        source: str,
        exports: tuple[str, ...] = (),
        imports: tuple = (),
        name: str | None = None,
        options: PluginOptions | None = None,
    ) -> OutputUnit:
        options = options or self.options
        return OutputUnit(
            path=path,
            source=source,
            exports=tuple(exports),
            imports=tuple(imports),
            is_exported=options.output.index,
            plugin=self.name,
            name=name,
            append=options.mode is PathMode.SINGLE,
        )
