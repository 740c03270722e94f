"""Dependency ordering and execution of plugins.

The PluginManager validates the declared plugin set before anything runs
and then drives every plugin through its lifecycle, one topological
generation at a time.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import networkx as nx

from oasforge.codegen.files.manager import FileManager, OutputUnit
from oasforge.codegen.plugins.base import Plugin, PluginContext, PluginResults
from oasforge.exceptions import PluginDependencyError, PluginError

if TYPE_CHECKING:
    from oasforge.codegen.codegen import BuildIR

logger = logging.getLogger(__name__)

__all__ = ['PluginManager']


class PluginManager:
    """Runs an ordered set of plugins against shared build state.

    The dependency graph has an edge from every ``pre`` entry to the plugin
    declaring it. Plugins of the same topological generation do not depend
    on each other and may run concurrently; their units and results are
    merged in declaration order once the whole generation completed.

    Example:
        >>> manager = PluginManager([ModelsPlugin(), ClientPlugin()])
        >>> manager.order
        ['models', 'client']
        >>> results = manager.run(ir, file_manager)
    """

    def __init__(self, plugins: Iterable[Plugin], max_workers: int = 1):
        """Initialize and validate the plugin set.

        Raises:
            PluginDependencyError: On duplicate names, dependencies missing
                from the set or dependency cycles.
        """
        self.plugins = list(plugins)
        self.max_workers = max_workers
        self._position: dict[str, int] = {}
        self._by_name: dict[str, Plugin] = {}

        for index, plugin in enumerate(self.plugins):
            if plugin.name in self._by_name:
                raise PluginDependencyError(
                    plugin.name, None, 'declared more than once in the plugin set'
                )
            self._by_name[plugin.name] = plugin
            self._position[plugin.name] = index

        self.graph = self._build_graph()

    def _build_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for plugin in self.plugins:
            graph.add_node(plugin.name)

        for plugin in self.plugins:
            for dependency in plugin.pre:
                if dependency not in self._by_name:
                    raise PluginDependencyError(
                        plugin.name,
                        dependency,
                        f"depends on '{dependency}' which is not in the plugin set",
                    )
                graph.add_edge(dependency, plugin.name)

        if not nx.is_directed_acyclic_graph(graph):
            names = [u for u, _ in nx.find_cycle(graph)]
            cycle_str = ' -> '.join([*names, names[0]])
            raise PluginDependencyError(names[0], None, f'dependency cycle: {cycle_str}')
        return graph

    @property
    def order(self) -> list[str]:
        """Plugin names in execution order, ties broken by declaration order."""
        return list(
            nx.lexicographical_topological_sort(
                self.graph, key=lambda name: self._position[name]
            )
        )

    @property
    def generations(self) -> list[list[str]]:
        return [
            sorted(generation, key=lambda name: self._position[name])
            for generation in nx.topological_generations(self.graph)
        ]

    def get(self, name: str) -> Plugin:
        return self._by_name[name]

    def setup(self) -> None:
        """Validate the options of every plugin not set up yet.

        Raises:
            ConfigurationError: If a plugin rejects its options.
        """
        for name in self.order:
            plugin = self._by_name[name]
            if plugin.state == 'new':
                plugin.setup()

    def run(self, ir: 'BuildIR', file_manager: FileManager) -> PluginResults:
        """Run every plugin once and merge its units into the file set.

        Raises:
            ConfigurationError: If a plugin rejects its options. Nothing has
                been built at that point.
            PluginError: If a plugin fails to build or complete.
            FileConflictError: If units of the build conflict.
        """
        self.setup()

        results = PluginResults()
        completed: list[OutputUnit] = []

        for generation in self.generations:
            plugins = [self._by_name[name] for name in generation]
            contexts = [PluginContext(plugin, ir, results) for plugin in plugins]

            if self.max_workers > 1 and len(plugins) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    failures = list(executor.map(self._run_plugin, contexts))
            else:
                failures = [self._run_plugin(context) for context in contexts]

            for context, failure in zip(contexts, failures):
                if failure is None:
                    completed.extend(context.units)

            for context, failure in zip(contexts, failures):
                if failure is not None:
                    logger.error(f"Plugin '{context.plugin.name}' failed: {failure}")
                    raise PluginError(
                        context.plugin.name, cause=failure, partial_units=completed
                    )

            for context in contexts:
                for unit in context.units:
                    file_manager.add(unit)
                results.publish(context.plugin.name, context.plugin.result())

        return results

    @staticmethod
    def _run_plugin(context: PluginContext) -> Exception | None:
        plugin = context.plugin
        logger.info(f"Running plugin '{plugin.name}'")
        try:
            plugin.run(context)
        except Exception as e:
            return e
        logger.info(f"Plugin '{plugin.name}' emitted {len(context.units)} unit(s)")
        return None
