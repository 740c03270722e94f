"""Registry of resolved schema definitions.

This module provides the SchemaRegistry class, the arena holding one
SchemaTree per named definition of a document. Trees refer to each other
through ``ref`` nodes only, so recursive definitions are stored once and
expanded lazily through ``lookup``.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from types import MappingProxyType

import networkx as nx

from oasforge.codegen.document import Document
from oasforge.codegen.keywords import Keyword, SchemaNode, SchemaTree, iter_refs
from oasforge.codegen.schema import SchemaResolver
from oasforge.exceptions import SchemaReferenceError

logger = logging.getLogger(__name__)

__all__ = ['DefinitionInfo', 'SchemaRegistry']


@dataclass
class DefinitionInfo:
    """Information about a registered definition.

    Attributes:
        name: The definition name under ``components/schemas``.
        reference: The JSON reference of the definition.
        tree: The resolved SchemaTree, shared by every reuse site.
        dependencies: Names of the definitions the tree references.
    """

    name: str
    reference: str
    tree: SchemaTree
    dependencies: set[str] = field(default_factory=set)


class SchemaRegistry:
    """Arena of resolved schema definitions.

    The registry is filled once per build and frozen before any plugin runs.
    Afterwards ``definitions`` is a read-only mapping and every ``get`` for a
    name returns the very same tree instance.

    Definitions whose resolution raises a SchemaReferenceError are kept out
    of the arena and recorded in ``failed``, together with every definition
    depending on them. Operations reaching one of them are dropped while the
    rest of the build goes on.

    Example:
        >>> registry = SchemaRegistry(document, resolver).build().freeze()
        >>> pet = registry.get('Pet')
        >>> for info in registry.in_dependency_order():
        ...     emit(info.name, info.tree)
    """

    def __init__(self, document: Document, resolver: SchemaResolver | None = None):
        self.document = document
        self.resolver = resolver or SchemaResolver(document)
        self._definitions: dict[str, DefinitionInfo] = {}
        self._failed: dict[str, SchemaReferenceError] = {}
        self._frozen = False
        self._graph: nx.DiGraph | None = None
        self._positions: dict[str, int] | None = None

    @property
    def definitions(self):
        if self._frozen:
            return MappingProxyType(self._definitions)
        return dict(self._definitions)

    @property
    def failed(self):
        """Names of definitions that could not be resolved, with the error."""
        if self._frozen:
            return MappingProxyType(self._failed)
        return dict(self._failed)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def build(self) -> 'SchemaRegistry':
        """Resolve every named definition of the document, in document order."""
        for name in self.document.schemas:
            try:
                self.register(name)
            except SchemaReferenceError as e:
                logger.warning(f"Schema '{name}' could not be resolved: {e}")
                self._failed[name] = e
        self._drop_dependents()
        return self

    def _drop_dependents(self) -> None:
        # until no remaining definition references a failed one
        changed = bool(self._failed)
        while changed:
            changed = False
            for name, info in list(self._definitions.items()):
                broken = sorted(info.dependencies & self._failed.keys())
                if not broken:
                    continue
                logger.warning(f"Schema '{name}' depends on unresolvable '{broken[0]}'")
                self._failed[name] = SchemaReferenceError(
                    info.reference,
                    f"depends on unresolvable schema '{broken[0]}'",
                )
                del self._definitions[name]
                changed = True

    def register(self, name: str) -> DefinitionInfo:
        """Resolve and register a definition, unless it already is.

        Raises:
            RuntimeError: If the registry has been frozen.
            SchemaReferenceError: If a reference the definition needs is
                missing.
        """
        if name in self._definitions:
            return self._definitions[name]
        if self._frozen:
            raise RuntimeError(f"Cannot register '{name}', the registry is frozen")

        tree = self.resolver.resolve_definition(name)
        info = DefinitionInfo(
            name=name,
            reference=f'#/components/schemas/{name}',
            tree=tree,
            dependencies={ref.name for ref in iter_refs(tree)},
        )
        self._definitions[name] = info
        return info

    def freeze(self) -> 'SchemaRegistry':
        self._frozen = True
        self._graph = self._build_graph()
        self._positions = {name: index for index, name in enumerate(self._definitions)}
        return self

    def get(self, name: str) -> SchemaTree | None:
        info = self._definitions.get(name)
        return info.tree if info else None

    def lookup(self, node: SchemaNode) -> SchemaTree | None:
        """Expand a ``ref`` node into the referenced definition tree.

        Args:
            node: A node of keyword ``ref``.

        Returns:
            The shared tree, or None if the name is unknown.
        """
        if node.keyword is not Keyword.REF:
            raise ValueError(f"Expected a ref node, got '{node.keyword.value}'")
        return self.get(node.args.name)

    def dependencies(self, name: str) -> set[str]:
        """Return the names the definition references directly.

        Raises:
            KeyError: If the definition is not registered.
        """
        if name not in self._definitions:
            raise KeyError(f"Schema '{name}' is not registered")
        return self._definitions[name].dependencies.copy()

    def in_dependency_order(self) -> list[DefinitionInfo]:
        """Return definitions so that dependencies come before their dependents.

        Definitions are visited in document order; members of a cycle keep
        the order in which the walk first reaches them.
        """
        positions = self._positions
        if positions is None:
            positions = {name: index for index, name in enumerate(self._definitions)}
        result: list[DefinitionInfo] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in visited or name in visiting:
                return
            if name not in self._definitions:
                return

            visiting.add(name)
            info = self._definitions[name]
            for dep in sorted(info.dependencies, key=lambda d: positions.get(d, len(positions))):
                visit(dep)
            visiting.remove(name)
            visited.add(name)
            result.append(info)

        for name in self._definitions:
            visit(name)

        return result

    def dependency_graph(self) -> nx.DiGraph:
        """Directed graph with an edge from each definition to its dependencies."""
        if self._graph is not None:
            return self._graph.copy()
        return self._build_graph()

    def _build_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for name, info in self._definitions.items():
            graph.add_node(name)
            for dep in info.dependencies:
                if dep in self._definitions:
                    graph.add_edge(name, dep)
        return graph

    def is_recursive(self, source: str, target: str) -> bool:
        """Whether a reference from source to target closes a cycle."""
        graph = self._graph if self._graph is not None else self._build_graph()
        if source not in graph or target not in graph:
            return False
        return nx.has_path(graph, target, source)

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[DefinitionInfo]:
        return iter(self._definitions.values())

    def __contains__(self, name: str) -> bool:
        return name in self._definitions
