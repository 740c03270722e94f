"""Pydantic models plugin.

Emits one pydantic class per schema definition, plus per-operation models
for path parameters, query parameters, headers, request bodies and
responses. Keywords are mapped through two dictionaries that together cover
every member of Keyword: PRIMARY_MAPPERS produce the annotation of a tree,
MODIFIER_MAPPERS turn modifier siblings into ``Field(...)`` arguments.
"""

import ast
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field
from upath import UPath

from oasforge.codegen.ast_utils import (
    _annassign,
    _attr,
    _call,
    _class,
    _keyword,
    _literal,
    _name,
    _subscript,
    _tuple,
    _union_expr,
    unparse,
)
from oasforge.codegen.files.manager import Import, PathMode
from oasforge.codegen.keywords import (
    EnumArgs,
    Keyword,
    ObjectArgs,
    SchemaNode,
    SchemaTree,
)
from oasforge.codegen.operations import filter_operations
from oasforge.codegen.plugins.base import Plugin, PluginContext, PluginOptions
from oasforge.codegen.utils import (
    relative_module,
    sanitize_identifier,
    sanitize_parameter_field_name,
)

if TYPE_CHECKING:
    from oasforge.codegen.operations import OperationDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    'CoercionOptions',
    'ModelsOptions',
    'ModelsPlugin',
    'ModelsResult',
    'OperationTypes',
    'Symbol',
    'PRIMARY_MAPPERS',
    'MODIFIER_MAPPERS',
]


class CoercionOptions(BaseModel):
    """Which input types generated models coerce in lax mode."""

    model_config = ConfigDict(extra='forbid')

    dates: bool = Field(True, description='Parse date/time strings into date objects.')

    strings: bool = Field(True, description='Accept non-string input for strings.')

    numbers: bool = Field(True, description='Accept numeric strings for numbers.')


class ModelsOptions(PluginOptions):
    coercion: bool | CoercionOptions = Field(
        True, description='Coercion of inputs, False uses strict types.'
    )

    strict: bool = Field(False, description='Forbid undeclared fields on every model.')

    enum_type: Literal['enum', 'literal'] = Field(
        'enum', description='Emit named enumerations as Enum classes or Literal aliases.'
    )

    @property
    def coercion_options(self) -> CoercionOptions:
        if isinstance(self.coercion, CoercionOptions):
            return self.coercion
        flag = bool(self.coercion)
        return CoercionOptions(dates=flag, strings=flag, numbers=flag)


@dataclass(frozen=True)
class Symbol:
    """A generated name and the file declaring it."""

    name: str
    path: str
    kind: Literal['model', 'root', 'enum', 'alias', 'function'] = 'model'


@dataclass(frozen=True)
class OperationTypes:
    operation_id: str
    path_params: Symbol | None = None
    query_params: Symbol | None = None
    headers: Symbol | None = None
    body: Symbol | None = None
    response: Symbol | None = None


@dataclass(frozen=True)
class ModelsResult:
    """Finalized result of the models plugin.

    Attributes:
        options: The validated options of the plugin.
        symbols: Schema definition name to generated symbol.
        operations: Operation id to the operation's generated types.
    """

    options: ModelsOptions
    symbols: Mapping[str, Symbol] = field(default_factory=lambda: MappingProxyType({}))
    operations: Mapping[str, OperationTypes] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def defined(self) -> Mapping[str, set[str]]:
        defined: dict[str, set[str]] = {}
        for symbol in self.symbols.values():
            defined.setdefault(symbol.path, set()).add(symbol.name)
        return defined


_LENGTH_PRIMARIES = frozenset(
    {Keyword.STRING, Keyword.URL, Keyword.EMAIL, Keyword.ARRAY, Keyword.BLOB}
)


class ModelEmitter:
    """Builds the statements of one output unit.

    Tracks the imports the statements need, the helper classes emitted for
    inline objects and the names that must be rebuilt once every forward
    reference is defined.

    The symbol table is the running ModelsPlugin while models are emitted,
    or the finalized ModelsResult for plugins annotating with the models.
    Only the running plugin knows the cycles between definitions, so an
    ``owner`` definition can only be given together with it.
    """

    def __init__(
        self,
        table: 'ModelsPlugin | ModelsResult',
        path: str,
        owner: str | None = None,
    ):
        if owner is not None and not isinstance(table, ModelsPlugin):
            raise ValueError('An owner definition needs the running ModelsPlugin')
        self.table = table
        self.options: ModelsOptions = table.options
        self.path = path
        self.owner = owner
        self.imports: dict[str, set[str]] = {}
        self.file_imports: dict[str, set[str]] = {}
        self.helpers: list[ast.stmt] = []
        self.tail: list[ast.stmt] = []
        self.exports: list[str] = []
        self.rebuild: list[str] = []
        self._forward = False

    def need(self, module: str, name: str) -> ast.Name:
        self.imports.setdefault(module, set()).add(name)
        return _name(name)

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

    def ref(self, name: str) -> ast.expr:
        symbol = self.table.symbols.get(name)
        if symbol is None:
            logger.debug(f"Reference to unknown schema '{name}', using Any")
            return self.need('typing', 'Any')

        if symbol.path == self.path:
            if symbol.name not in self.table.defined.get(self.path, ()):
                self._forward = True
            return _name(symbol.name)

        if self.owner and self.table.is_recursive(self.owner, name):
            # cyclic imports are resolved at the bottom of the module
            self._forward = True
            module = relative_module(self.path, symbol.path)
            tail_import = ast.ImportFrom(
                module=module.lstrip('.') or None,
                names=[ast.alias(name=symbol.name)],
                level=len(module) - len(module.lstrip('.')),
            )
            if not any(ast.unparse(stmt) == ast.unparse(tail_import) for stmt in self.tail):
                self.tail.insert(0, tail_import)
            return _name(symbol.name)

        self.file_imports.setdefault(symbol.path, set()).add(symbol.name)
        return _name(symbol.name)

    def ref_symbol(self, symbol: Symbol) -> ast.Name:
        """Name of a generated symbol, imported when declared in another file."""
        if symbol.path != self.path:
            self.file_imports.setdefault(symbol.path, set()).add(symbol.name)
        return _name(symbol.name)

    def type_of(self, tree: SchemaTree, hint: str) -> ast.expr:
        primary = tree.primary
        if primary is None:
            expr = self.need('typing', 'Any')
        else:
            expr = PRIMARY_MAPPERS[primary.keyword](self, primary, hint)
        if any(tree.has(k) for k in (Keyword.NULLABLE, Keyword.NULLISH, Keyword.OPTIONAL)):
            if not (isinstance(expr, ast.Constant) and expr.value is None):
                expr = _union_expr([expr, ast.Constant(value=None)])
        return expr

    def constraints(self, tree: SchemaTree) -> dict[str, ast.expr]:
        kwargs: dict[str, ast.expr] = {}
        primary = tree.primary
        if primary is not None and primary.keyword is Keyword.ARRAY:
            if primary.args.min is not None:
                kwargs['min_length'] = ast.Constant(value=primary.args.min)
            if primary.args.max is not None:
                kwargs['max_length'] = ast.Constant(value=primary.args.max)
        for node in tree:
            mapper = MODIFIER_MAPPERS.get(node.keyword)
            if mapper is not None:
                mapper(self, node, tree, kwargs)
        return kwargs

    def nested(self, tree: SchemaTree, hint: str) -> ast.expr:
        expr = self.type_of(tree, hint)
        kwargs = {
            key: value
            for key, value in self.constraints(tree).items()
            if key in ('ge', 'le', 'min_length', 'max_length', 'pattern')
        }
        if not kwargs:
            return expr
        field_call = _call(
            self.need('pydantic', 'Field'),
            keywords=[_keyword(key, value) for key, value in kwargs.items()],
        )
        return _subscript(
            self.need('typing', 'Annotated'), _tuple([expr, field_call])
        )

    def field(self, key: str, tree: SchemaTree, owner: str) -> ast.AnnAssign:
        name = sanitize_parameter_field_name(key)
        if name.startswith('_'):
            name = f'field{name}'

        outer, self._forward = self._forward, False
        annotation = self.type_of(tree, f'{owner}_{key}')
        if self._forward:
            annotation = _quoted(annotation)
            if owner not in self.rebuild:
                self.rebuild.append(owner)
        self._forward = outer

        kwargs = self.constraints(tree)
        if name != key and 'alias' not in kwargs:
            kwargs['alias'] = ast.Constant(value=key)

        value = None
        if list(kwargs) == ['default']:
            value = kwargs['default']
        elif kwargs:
            value = _call(
                self.need('pydantic', 'Field'),
                keywords=[_keyword(k, v) for k, v in kwargs.items()],
            )
        return _annassign(name, annotation, value)

    def model_class(
        self,
        name: str,
        args: ObjectArgs,
        bases: list[ast.expr] | None = None,
        description: str | None = None,
    ) -> ast.ClassDef:
        body: list[ast.stmt] = [self.field(key, tree, name) for key, tree in args.properties]

        config = []
        if args.strict or self.options.strict:
            config.append(_keyword('extra', ast.Constant(value='forbid')))
        elif args.additional_properties is not None:
            config.append(_keyword('extra', ast.Constant(value='allow')))
        if any(
            isinstance(stmt.value, ast.Call)
            and any(kw.arg == 'alias' for kw in stmt.value.keywords)
            for stmt in body
            if isinstance(stmt, ast.AnnAssign)
        ):
            config.append(_keyword('populate_by_name', ast.Constant(value=True)))
        if config:
            body.insert(
                0,
                ast.Assign(
                    targets=[ast.Name(id='model_config', ctx=ast.Store())],
                    value=_call(self.need('pydantic', 'ConfigDict'), keywords=config),
                ),
            )

        return _class(
            name,
            bases or [self.need('pydantic', 'BaseModel')],
            body,
            docstring=description,
        )

    def root_class(self, name: str, tree: SchemaTree) -> ast.ClassDef:
        self._forward = False
        annotation = self.nested(tree, name)
        root_model = self.need('pydantic', 'RootModel')
        if self._forward:
            self.rebuild.append(name)
            return _class(
                name,
                [root_model],
                [_annassign('root', _quoted(annotation))],
                docstring=tree.description,
            )
        return _class(
            name,
            [_subscript(root_model, annotation)],
            [],
            docstring=tree.description,
        )

    def enum_class(self, name: str, args: EnumArgs, description: str | None = None):
        values = [item.value for item in args.items]
        if self.options.enum_type == 'literal':
            return ast.Assign(
                targets=[ast.Name(id=name, ctx=ast.Store())],
                value=self._literal_type(values),
            )

        members: list[ast.stmt] = []
        seen: dict[str, int] = {}
        for item in args.items:
            member = _enum_member_name(item.name or item.value)
            if member in seen:
                seen[member] += 1
                member = f'{member}_{seen[member]}'
            else:
                seen[member] = 0
            members.append(
                ast.Assign(
                    targets=[ast.Name(id=member, ctx=ast.Store())],
                    value=ast.Constant(value=item.value),
                )
            )

        formats = {item.format for item in args.items}
        bases: list[ast.expr] = []
        if formats == {'string'}:
            bases.append(_name('str'))
        elif all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            bases.append(_name('int'))
        bases.append(self.need('enum', 'Enum'))
        return _class(name, bases, members, docstring=description)

    def _literal_type(self, values: list) -> ast.expr:
        literal = self.need('typing', 'Literal')
        elts = [ast.Constant(value=v) for v in values]
        return _subscript(literal, elts[0] if len(elts) == 1 else _tuple(elts))

    def definition(self, name: str, tree: SchemaTree) -> list[ast.stmt]:
        """Statements declaring a named definition, helpers included."""
        primary = tree.primary
        keyword = primary.keyword if primary is not None else None

        if keyword is Keyword.OBJECT and primary.args.properties:
            statement = self.model_class(name, primary.args, description=tree.description)
        elif keyword is Keyword.ENUM:
            statement = self.enum_class(name, primary.args, tree.description)
        elif keyword is Keyword.AND and self._class_members(primary.args.members):
            statement = self._intersection_class(name, tree)
        else:
            statement = self.root_class(name, tree)

        statements = [*self.helpers, statement]
        self.helpers = []
        return statements

    @staticmethod
    def _class_members(members: tuple[SchemaTree, ...]) -> bool:
        return all(
            member.primary is not None
            and member.primary.keyword in (Keyword.REF, Keyword.OBJECT)
            for member in members
        )

    def _intersection_class(self, name: str, tree: SchemaTree) -> ast.ClassDef:
        bases: list[ast.expr] = []
        properties: list = []
        strict = False
        for member in tree.primary.args.members:
            primary = member.primary
            if primary.keyword is Keyword.REF:
                symbol = self.table.symbols.get(primary.args.name)
                if symbol is not None and symbol.kind == 'model':
                    bases.append(self.ref(primary.args.name))
                    continue
                logger.debug(f"Cannot inherit from '{primary.args.name}' in {name}")
                continue
            properties.extend(primary.args.properties)
            strict = strict or primary.args.strict
        return self.model_class(
            name,
            ObjectArgs(tuple(properties), strict=strict),
            bases=bases or None,
            description=tree.description,
        )


def _quoted(annotation: ast.expr) -> ast.Constant:
    return ast.Constant(value=ast.unparse(ast.fix_missing_locations(annotation)))


def _enum_member_name(value) -> str:
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, (int, float)):
        text = str(value).replace('-', 'MINUS_').replace('.', '_')
        return f'VALUE_{text}'
    member = sanitize_parameter_field_name(str(value) or 'empty').upper()
    if member.startswith('_'):
        member = f'VALUE{member}'
    return member


def _map_simple(module: str | None, name: str, strict_name: str | None = None, flag: str | None = None):
    def mapper(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
        coercion = emitter.options.coercion_options
        if strict_name and flag and not getattr(coercion, flag):
            return emitter.need('pydantic', strict_name)
        if module is None:
            return _name(name)
        return emitter.need(module, name)

    return mapper


def _map_none(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return ast.Constant(value=None)


def _map_any(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return emitter.need('typing', 'Any')


def _map_date(kind: str):
    def mapper(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
        as_date = emitter.options.coercion_options.dates or (
            node.args is not None and getattr(node.args, 'type', None) == 'date'
        )
        if not as_date:
            return _name('str')
        return emitter.need('datetime', kind)

    return mapper


def _map_object(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    args: ObjectArgs = node.args
    if not args.properties:
        value = (
            emitter.nested(args.additional_properties, hint)
            if args.additional_properties is not None
            else emitter.need('typing', 'Any')
        )
        return _subscript('dict', _tuple([_name('str'), value]))

    name = sanitize_identifier(hint)
    if name not in emitter.exports:
        emitter.helpers.append(emitter.model_class(name, args))
        emitter.exports.append(name)
    return _name(name)


def _map_array(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return _subscript('list', emitter.nested(node.args.items, f'{hint}_item'))


def _map_tuple(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    if node.args.rest is not None or not node.args.items:
        return _subscript('tuple', _tuple([emitter.need('typing', 'Any'), ast.Constant(value=...)]))
    return _subscript(
        'tuple',
        _tuple(
            emitter.nested(item, f'{hint}_{index}')
            for index, item in enumerate(node.args.items)
        ),
    )


def _map_enum(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return emitter._literal_type([item.value for item in node.args.items])


def _map_const(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    if node.args.value is None:
        return ast.Constant(value=None)
    return emitter._literal_type([node.args.value])


def _map_union(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return _union_expr(
        [
            emitter.nested(member, f'{hint}_{index}')
            for index, member in enumerate(node.args.members)
        ]
    )


def _map_and(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    # inline intersections have no annotation equivalent
    return emitter.need('typing', 'Any')


def _map_ref(emitter: ModelEmitter, node: SchemaNode, hint: str) -> ast.expr:
    return emitter.ref(node.args.name)


PrimaryMapper = Callable[[ModelEmitter, SchemaNode, str], ast.expr]

PRIMARY_MAPPERS: dict[Keyword, PrimaryMapper] = {
    Keyword.ANY: _map_any,
    Keyword.UNKNOWN: _map_any,
    Keyword.VOID: _map_none,
    Keyword.NULL: _map_none,
    Keyword.BOOLEAN: _map_simple(None, 'bool', 'StrictBool', 'numbers'),
    Keyword.STRING: _map_simple(None, 'str', 'StrictStr', 'strings'),
    Keyword.NUMBER: _map_simple(None, 'float', 'StrictFloat', 'numbers'),
    Keyword.INTEGER: _map_simple(None, 'int', 'StrictInt', 'numbers'),
    Keyword.BLOB: _map_simple(None, 'bytes'),
    Keyword.OBJECT: _map_object,
    Keyword.ARRAY: _map_array,
    Keyword.TUPLE: _map_tuple,
    Keyword.ENUM: _map_enum,
    Keyword.UNION: _map_union,
    Keyword.AND: _map_and,
    Keyword.REF: _map_ref,
    Keyword.CONST: _map_const,
    Keyword.DATETIME: _map_date('datetime'),
    Keyword.DATE: _map_date('date'),
    Keyword.TIME: _map_date('time'),
    Keyword.UUID: _map_simple('uuid', 'UUID'),
    Keyword.URL: _map_simple('pydantic', 'AnyUrl'),
    Keyword.EMAIL: _map_simple(None, 'str', 'StrictStr', 'strings'),
}


def _mod_default(emitter, node, tree, kwargs):
    kwargs['default'] = _literal(node.args)


def _mod_optional(emitter, node, tree, kwargs):
    kwargs.setdefault('default', ast.Constant(value=None))


def _mod_describe(emitter, node, tree, kwargs):
    kwargs['description'] = ast.Constant(value=node.args)


def _bound(lower: bool):
    def mapper(emitter, node, tree, kwargs):
        primary = tree.primary
        if primary is not None and primary.keyword in _LENGTH_PRIMARIES:
            key = 'min_length' if lower else 'max_length'
        else:
            key = 'ge' if lower else 'le'
        kwargs[key] = ast.Constant(value=node.args)

    return mapper


def _mod_matches(emitter, node, tree, kwargs):
    kwargs['pattern'] = ast.Constant(value=node.args)


def _mod_deprecated(emitter, node, tree, kwargs):
    kwargs['deprecated'] = ast.Constant(value=True)


def _mod_example(emitter, node, tree, kwargs):
    kwargs['examples'] = ast.List(elts=[_literal(node.args)], ctx=ast.Load())


def _mod_name(emitter, node, tree, kwargs):
    kwargs['alias'] = ast.Constant(value=node.args)


def _mod_ignore(emitter, node, tree, kwargs):
    pass


ModifierMapper = Callable[[ModelEmitter, SchemaNode, SchemaTree, dict], None]

MODIFIER_MAPPERS: dict[Keyword, ModifierMapper] = {
    # nullability is part of the annotation
    Keyword.NULLABLE: _mod_ignore,
    Keyword.OPTIONAL: _mod_optional,
    Keyword.NULLISH: _mod_optional,
    Keyword.DEFAULT: _mod_default,
    Keyword.DESCRIBE: _mod_describe,
    Keyword.MIN: _bound(lower=True),
    Keyword.MAX: _bound(lower=False),
    Keyword.MATCHES: _mod_matches,
    Keyword.READ_ONLY: _mod_ignore,
    Keyword.WRITE_ONLY: _mod_ignore,
    Keyword.DEPRECATED: _mod_deprecated,
    Keyword.EXAMPLE: _mod_example,
    Keyword.NAME: _mod_name,
    Keyword.SCHEMA: _mod_ignore,
}


class ModelsPlugin(Plugin):
    """Emits pydantic models for schema definitions and operations.

    Definitions are emitted in dependency order so that, within one file,
    a referenced model is declared before the models using it. References
    that cannot be ordered (recursion) become string annotations resolved
    by ``model_rebuild()`` once every model of the cycle is declared.
    """

    name = 'models'
    options_model = ModelsOptions
    default_output = 'models.py'

    def __init__(self, options=None, name=None, pre=None):
        super().__init__(options, name=name, pre=pre)
        self.symbols: dict[str, Symbol] = {}
        self.defined: dict[str, set[str]] = {}
        self.operation_types: dict[str, OperationTypes] = {}
        self._rebuild: dict[str, list[str]] = {}
        self._registry = None

    def is_recursive(self, source: str, target: str) -> bool:
        if self._registry is None:
            return False
        return self._registry.is_recursive(source, target)

    def _kind(self, tree: SchemaTree) -> str:
        primary = tree.primary
        if primary is None:
            return 'root'
        if primary.keyword is Keyword.ENUM:
            return 'alias' if self.options.enum_type == 'literal' else 'enum'
        if primary.keyword is Keyword.OBJECT and primary.args.properties:
            return 'model'
        if primary.keyword is Keyword.AND and ModelEmitter._class_members(
            primary.args.members
        ):
            return 'model'
        return 'root'

    def build(self, context: PluginContext) -> None:
        self._registry = context.registry
        definitions = context.registry.in_dependency_order()

        for info in definitions:
            path = str(context.resolve_path(info.name))
            self.symbols[info.name] = Symbol(
                sanitize_identifier(info.name), path, self._kind(info.tree)
            )
        logger.debug(f'Emitting {len(definitions)} schema definition(s)')

        for info in definitions:
            symbol = self.symbols[info.name]
            emitter = ModelEmitter(self, symbol.path, owner=info.name)
            statements = emitter.definition(symbol.name, info.tree)
            self._flush(context, emitter, statements, (symbol.name,), info.name)

        for operation, options in filter_operations(context.operations, self.options):
            self._emit_operation(context, operation, options)

    def _flush(
        self,
        context: PluginContext,
        emitter: ModelEmitter,
        statements: list[ast.stmt],
        exports: tuple[str, ...],
        unit_name: str,
        options: ModelsOptions | None = None,
    ) -> None:
        options = options or self.options
        path = emitter.path
        self.defined.setdefault(path, set()).update([*exports, *emitter.exports])

        if emitter.rebuild and options.mode is PathMode.SINGLE:
            pending = self._rebuild.setdefault(path, [])
            pending.extend(model for model in emitter.rebuild if model not in pending)
        elif emitter.rebuild:
            # the other side of the cycle may still be importing this module
            statements = [
                *statements,
                *emitter.tail,
                *[
                    ast.Expr(
                        value=_call(
                            _attr(model, 'model_rebuild'),
                            keywords=[_keyword('raise_errors', ast.Constant(value=False))],
                        )
                    )
                    for model in emitter.rebuild
                ],
            ]

        context.emit(
            self.unit(
                path=UPath(path),
                source=unparse(statements),
                exports=(*emitter.exports, *exports),
                imports=emitter.import_list(),
                name=unit_name,
                options=options,
            )
        )

    def _emit_operation(
        self, context: PluginContext, operation: 'OperationDescriptor', options: ModelsOptions
    ) -> None:
        path = str(context.resolve_path(operation.name, operation, options))
        type_name = operation.type_name
        types: dict[str, Symbol | None] = {}
        # every model of one operation lands in a single unit
        emitter = ModelEmitter(self, path)
        statements: list[ast.stmt] = []
        exports: list[str] = []

        for attr, tree, suffix in (
            ('path_params', operation.path_params, 'PathParams'),
            ('query_params', operation.query_params, 'QueryParams'),
            ('headers', operation.header_params, 'Headers'),
        ):
            if tree is None:
                types[attr] = None
                continue
            name = f'{type_name}{suffix}'
            statement = emitter.model_class(name, tree.primary.args)
            statements.extend([*emitter.helpers, statement])
            emitter.helpers = []
            exports.append(name)
            types[attr] = Symbol(name, path, 'model')

        for attr, media, suffix in (
            ('body', operation.request_body(options.content_type), 'Body'),
            ('response', operation.success_response(options.content_type), 'Response'),
        ):
            types[attr] = self._media_symbol(
                emitter, media, f'{type_name}{suffix}', statements, exports
            )

        if statements:
            self._flush(
                context, emitter, statements, tuple(exports), operation.operation_id, options
            )
        self.operation_types[operation.operation_id] = OperationTypes(
            operation_id=operation.operation_id, **types
        )

    def _media_symbol(self, emitter, media, name, statements, exports) -> Symbol | None:
        if media is None:
            return None
        if media.ref is not None and media.ref in self.symbols:
            return self.symbols[media.ref]

        primary = media.tree.primary
        if primary is None or primary.keyword in (Keyword.ANY, Keyword.UNKNOWN, Keyword.VOID):
            return None

        statements.extend(emitter.definition(name, media.tree))
        exports.append(name)
        return Symbol(name, emitter.path, self._kind(media.tree))

    def complete(self, context: PluginContext) -> None:
        for path, models in self._rebuild.items():
            statements = [
                ast.Expr(value=_call(_attr(model, 'model_rebuild'))) for model in models
            ]
            context.emit(
                self.unit(path=UPath(path), source=unparse(statements), name='model_rebuild')
            )

    def result(self) -> ModelsResult:
        return ModelsResult(
            options=self.options,
            symbols=MappingProxyType(dict(self.symbols)),
            operations=MappingProxyType(dict(self.operation_types)),
        )
