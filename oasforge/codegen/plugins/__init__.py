"""Output plugins of the code generation pipeline.

This package provides the plugin interface, the dependency ordered plugin
manager and the built-in plugins:

Classes:
    - Plugin: Base class of output plugins
    - PluginContext: What one plugin sees of the build
    - PluginManager: Orders and runs a validated plugin set
    - ModelsPlugin: pydantic models of schemas and operations
    - ClientPlugin: httpx functions calling every operation
    - FactoriesPlugin: Example payload factories of schemas

Functions:
    - load_plugins: Instantiate the configured plugin set
"""

from collections.abc import Iterable

from oasforge.codegen.plugins.base import (
    OutputOptions,
    Plugin,
    PluginContext,
    PluginOptions,
    PluginResults,
)
from oasforge.codegen.plugins.client import ClientOptions, ClientPlugin
from oasforge.codegen.plugins.factories import FactoriesOptions, FactoriesPlugin
from oasforge.codegen.plugins.manager import PluginManager
from oasforge.codegen.plugins.models import (
    CoercionOptions,
    ModelsOptions,
    ModelsPlugin,
    ModelsResult,
    OperationTypes,
    Symbol,
)
from oasforge.config import PluginEntry
from oasforge.exceptions import ConfigurationError

BUILTIN_PLUGINS: dict[str, type[Plugin]] = {
    ModelsPlugin.name: ModelsPlugin,
    ClientPlugin.name: ClientPlugin,
    FactoriesPlugin.name: FactoriesPlugin,
}


def load_plugins(entries: Iterable[PluginEntry]) -> list[Plugin]:
    """Instantiate the plugins of the configured entries, in entry order.

    Raises:
        ConfigurationError: If an entry names no built-in plugin.
    """
    plugins = []
    for index, entry in enumerate(entries):
        plugin_class = BUILTIN_PLUGINS.get(entry.name)
        if plugin_class is None:
            raise ConfigurationError(
                f"Unknown plugin '{entry.name}', expected one of: "
                f'{", ".join(sorted(BUILTIN_PLUGINS))}',
                field=f'plugins.{index}.name',
            )
        plugins.append(plugin_class(entry.options))
    return plugins


__all__ = [
    'BUILTIN_PLUGINS',
    'ClientOptions',
    'ClientPlugin',
    'CoercionOptions',
    'FactoriesOptions',
    'FactoriesPlugin',
    'ModelsOptions',
    'ModelsPlugin',
    'ModelsResult',
    'OperationTypes',
    'OutputOptions',
    'Plugin',
    'PluginContext',
    'PluginManager',
    'PluginOptions',
    'PluginResults',
    'Symbol',
    'load_plugins',
]
