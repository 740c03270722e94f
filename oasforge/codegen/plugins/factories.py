"""Example payload factories plugin.

Emits one ``create_<schema>(**overrides)`` function per schema definition.
Each function returns a JSON compatible example of the definition, built
from declared examples and defaults first and from the type otherwise.
References to other definitions call their factory, except inside a cycle
where the reference is left as None so the factories always terminate.
"""

import ast
import logging
from collections.abc import Mapping
from types import MappingProxyType

import networkx as nx
from upath import UPath

from oasforge.codegen.ast_utils import (
    _argument,
    _call,
    _dict,
    _func,
    _literal,
    _name,
    _subscript,
    _tuple,
    unparse,
)
from oasforge.codegen.files.manager import Import
from oasforge.codegen.keywords import Keyword, SchemaNode, SchemaTree
from oasforge.codegen.plugins.base import Plugin, PluginContext, PluginOptions
from oasforge.codegen.plugins.models import Symbol
from oasforge.codegen.utils import to_snake_case

logger = logging.getLogger(__name__)

__all__ = ['FactoriesOptions', 'FactoriesPlugin', 'EXAMPLE_VALUES']


class FactoriesOptions(PluginOptions):
    pass


# Placeholder values of primary keywords without structure
EXAMPLE_VALUES: dict[Keyword, object] = {
    Keyword.ANY: None,
    Keyword.UNKNOWN: None,
    Keyword.VOID: None,
    Keyword.NULL: None,
    Keyword.BOOLEAN: False,
    Keyword.STRING: 'string',
    Keyword.NUMBER: 0.0,
    Keyword.INTEGER: 0,
    Keyword.BLOB: '',
    Keyword.DATETIME: '1970-01-01T00:00:00Z',
    Keyword.DATE: '1970-01-01',
    Keyword.TIME: '00:00:00',
    Keyword.UUID: '00000000-0000-0000-0000-000000000000',
    Keyword.URL: 'https://example.com',
    Keyword.EMAIL: 'user@example.com',
}


class FactoriesPlugin(Plugin):
    """Emits example payload factories for every schema definition."""

    name = 'factories'
    options_model = FactoriesOptions
    default_output = 'factories.py'

    def __init__(self, options=None, name=None, pre=None):
        super().__init__(options, name=name, pre=pre)
        self.factories: dict[str, Symbol] = {}
        self._components: dict[str, frozenset[str]] = {}

    def build(self, context: PluginContext) -> None:
        registry = context.registry
        graph = registry.dependency_graph()
        for component in nx.strongly_connected_components(graph):
            members = frozenset(component)
            for name in members:
                self._components[name] = members

        definitions = registry.in_dependency_order()
        for info in definitions:
            self.factories[info.name] = Symbol(
                f'create_{to_snake_case(info.name)}',
                str(context.resolve_path(info.name)),
                'function',
            )

        for info in definitions:
            symbol = self.factories[info.name]
            builder = _ExampleBuilder(self, info.name, symbol.path)
            function = builder.function(symbol.name, info.tree)
            context.emit(
                self.unit(
                    path=UPath(symbol.path),
                    source=unparse([function]),
                    exports=(symbol.name,),
                    imports=builder.import_list(),
                    name=info.name,
                )
            )
        logger.debug(f'Emitted {len(definitions)} factories')

    def in_cycle(self, source: str, target: str) -> bool:
        return target in self._components.get(source, ())

    def result(self) -> Mapping[str, Symbol]:
        """Schema definition name to its factory."""
        return MappingProxyType(dict(self.factories))


class _ExampleBuilder:
    def __init__(self, plugin: FactoriesPlugin, owner: str, path: str):
        self.plugin = plugin
        self.owner = owner
        self.path = path
        self.imports: dict[str, set[str]] = {}
        self.file_imports: dict[str, set[str]] = {}

    def import_list(self) -> tuple[Import, ...]:
        imports = [
            Import(tuple(sorted(names)), module=module)
            for module, names in sorted(self.imports.items())
        ]
        imports.extend(
            Import(tuple(sorted(names)), path=path)
            for path, names in sorted(self.file_imports.items())
        )
        return tuple(imports)

    def function(self, name: str, tree: SchemaTree) -> ast.FunctionDef:
        self.imports.setdefault('typing', set()).add('Any')
        value = self.example(tree)
        primary = tree.primary

        if primary is not None and primary.keyword in (Keyword.OBJECT, Keyword.AND):
            if isinstance(value, ast.Dict):
                value.keys.append(None)
                value.values.append(_name('overrides'))
            elif isinstance(value, ast.Call):
                value = ast.Dict(keys=[None, None], values=[value, _name('overrides')])
            else:
                value = ast.Dict(keys=[None], values=[_name('overrides')])
            returns = _subscript('dict', _tuple([_name('str'), _name('Any')]))
            kwargs = _argument('overrides', _name('Any'))
        else:
            returns = _name('Any')
            kwargs = None

        return _func(
            name=name,
            args=[],
            body=[ast.Return(value=value)],
            returns=returns,
            kwargs=kwargs,
            docstring=f'Example payload of {tree.name or self.owner}.',
        )

    def example(self, tree: SchemaTree) -> ast.expr:
        for keyword in (Keyword.EXAMPLE, Keyword.DEFAULT):
            node = tree.find(keyword)
            if node is not None:
                return _literal(node.args)

        primary = tree.primary
        if primary is None:
            return ast.Constant(value=None)
        return self.primary(primary)

    def primary(self, node: SchemaNode) -> ast.expr:
        keyword = node.keyword
        if keyword in EXAMPLE_VALUES:
            return _literal(EXAMPLE_VALUES[keyword])

        if keyword is Keyword.OBJECT:
            return _dict(
                {
                    key: self.example(tree)
                    for key, tree in node.args.properties
                    if not (tree.has(Keyword.OPTIONAL) or tree.has(Keyword.NULLISH))
                }
            )
        if keyword is Keyword.ARRAY:
            if node.args.max == 0:
                return ast.List(elts=[], ctx=ast.Load())
            count = max(node.args.min or 1, 1)
            item = self.example(node.args.items)
            return ast.List(elts=[item] * count, ctx=ast.Load())
        if keyword is Keyword.TUPLE:
            return ast.List(
                elts=[self.example(item) for item in node.args.items], ctx=ast.Load()
            )
        if keyword is Keyword.ENUM:
            return _literal(node.args.items[0].value)
        if keyword is Keyword.CONST:
            return _literal(node.args.value)
        if keyword is Keyword.UNION:
            return self.example(node.args.members[0])
        if keyword is Keyword.AND:
            merged = ast.Dict(keys=[], values=[])
            for member in node.args.members:
                value = self.example(member)
                if isinstance(value, (ast.Dict, ast.Call)):
                    merged.keys.append(None)
                    merged.values.append(value)
            return merged
        if keyword is Keyword.REF:
            return self.reference(node.args.name)

        logger.debug(f'No example for keyword {keyword.value}')
        return ast.Constant(value=None)

    def reference(self, name: str) -> ast.expr:
        symbol = self.plugin.factories.get(name)
        if symbol is None or self.plugin.in_cycle(self.owner, name):
            return ast.Constant(value=None)
        if symbol.path != self.path:
            self.file_imports.setdefault(symbol.path, set()).add(symbol.name)
        return _call(_name(symbol.name))
