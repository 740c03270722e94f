"""HTTP client plugin.

Emits one httpx based function per operation, annotated with the types of
the models plugin, and an ``operations.py`` aggregate mapping operation ids
onto the generated functions.
"""

import ast
import logging
import textwrap
from collections.abc import Mapping
from types import MappingProxyType

from pydantic import Field
from upath import UPath

from oasforge.codegen.ast_utils import (
    _argument,
    _assign,
    _async_func,
    _attr,
    _call,
    _dict,
    _fstring,
    _func,
    _keyword,
    _name,
    _union_expr,
    unparse,
)
from oasforge.codegen.files.manager import Import, PathMode, resolve_path
from oasforge.codegen.keywords import Keyword
from oasforge.codegen.operations import (
    MediaSchema,
    OperationDescriptor,
    filter_operations,
    is_json,
)
from oasforge.codegen.plugins.base import Plugin, PluginContext, PluginOptions
from oasforge.codegen.plugins.models import ModelEmitter, ModelsResult, Symbol
from oasforge.codegen.utils import sanitize_parameter_field_name

logger = logging.getLogger(__name__)

__all__ = ['ClientOptions', 'ClientPlugin']

_RESERVED = frozenset({'client', 'body', 'response'})

AGGREGATE_NAME = 'operations'


class ClientOptions(PluginOptions):
    base_url: str = Field('', description='Prefix of every request path.')

    asynchronous: bool = Field(
        False, description='Also emit an async variant of every operation.'
    )

    aggregate: bool = Field(
        True, description='Emit an OPERATIONS mapping of operation ids to functions.'
    )


class ClientPlugin(Plugin):
    """Emits a function per operation calling the API with httpx."""

    name = 'client'
    pre = ('models',)
    options_model = ClientOptions
    default_output = 'clients'

    def __init__(self, options=None, name=None, pre=None):
        super().__init__(options, name=name, pre=pre)
        self.functions: dict[str, Symbol] = {}

    def build(self, context: PluginContext) -> None:
        models: ModelsResult = context.get_result('models')

        for operation, options in filter_operations(context.operations, self.options):
            path = str(context.resolve_path(operation.name, operation, options))
            emitter = ModelEmitter(models, path)
            statements, exports = self._functions(operation, models, emitter, options)
            context.emit(
                self.unit(
                    path=UPath(path),
                    source=unparse([*emitter.helpers, *statements]),
                    exports=(*emitter.exports, *exports),
                    imports=emitter.import_list(),
                    name=operation.operation_id,
                    options=options,
                )
            )
            self.functions[operation.operation_id] = Symbol(operation.name, path, 'function')

    def complete(self, context: PluginContext) -> None:
        if not self.options.aggregate or not self.functions:
            return

        if self.options.mode is PathMode.SINGLE:
            path = context.resolve_path(AGGREGATE_NAME)
        else:
            path = resolve_path(
                context.ir.build_root,
                context.ir.output_root,
                self.options.output.path,
                PathMode.PER_ITEM,
                AGGREGATE_NAME,
            )

        mapping = _dict(
            {
                operation_id: _name(symbol.name)
                for operation_id, symbol in self.functions.items()
            }
        )
        imports = tuple(
            Import((symbol.name,), path=symbol.path)
            for symbol in self.functions.values()
            if symbol.path != str(path)
        )
        context.emit(
            self.unit(
                path=path,
                source=unparse([_assign(_name('OPERATIONS'), mapping)]),
                exports=('OPERATIONS',),
                imports=imports,
                name=AGGREGATE_NAME,
            )
        )

    def result(self) -> Mapping[str, Symbol]:
        """Operation id to the generated function."""
        return MappingProxyType(dict(self.functions))

    def _functions(
        self,
        operation: OperationDescriptor,
        models: ModelsResult,
        emitter: ModelEmitter,
        options: ClientOptions,
    ) -> tuple[list[ast.stmt], list[str]]:
        statements = [self._function(operation, models, emitter, options, is_async=False)]
        exports = [operation.name]
        if options.asynchronous:
            statements.append(
                self._function(operation, models, emitter, options, is_async=True)
            )
            exports.append(f'a{operation.name}')
        return statements, exports

    def _function(
        self,
        operation: OperationDescriptor,
        models: ModelsResult,
        emitter: ModelEmitter,
        options: ClientOptions,
        is_async: bool,
    ) -> ast.FunctionDef | ast.AsyncFunctionDef:
        types = models.operations.get(operation.operation_id)
        names = _python_names(operation)
        client_type = emitter.need('httpx', 'AsyncClient' if is_async else 'Client')

        args = [_argument('client', client_type)]
        for parameter in operation.params('path'):
            hint = f'{operation.type_name}_{parameter.name}'
            args.append(_argument(names[parameter.name], emitter.type_of(parameter.tree, hint)))

        kwonlyargs, kw_defaults = [], []
        for parameter in (*operation.params('query'), *operation.params('header')):
            hint = f'{operation.type_name}_{parameter.name}'
            annotation = emitter.type_of(parameter.tree, hint)
            if not parameter.required:
                annotation = _union_expr([annotation, ast.Constant(value=None)])
            kwonlyargs.append(_argument(names[parameter.name], annotation))
            kw_defaults.append(None if parameter.required else ast.Constant(value=None))

        call_args = [
            ast.Constant(value=operation.method.upper()),
            _fstring(
                options.base_url + operation.path,
                {p.name: names[p.name] for p in operation.params('path')},
            ),
        ]
        call_keywords = []

        query = _present({p.name: names[p.name] for p in operation.params('query')})
        if query is not None:
            call_keywords.append(_keyword('params', query))
        headers = _present(
            {p.name: names[p.name] for p in operation.params('header')}, as_text=True
        )
        if headers is not None:
            call_keywords.append(_keyword('headers', headers))

        body = operation.request_body(options.content_type)
        if body is not None:
            annotation, body_keyword = self._body(body, types, emitter)
            if operation.body_required:
                kwonlyargs.append(_argument('body', annotation))
                kw_defaults.append(None)
            else:
                kwonlyargs.append(
                    _argument('body', _union_expr([annotation, ast.Constant(value=None)]))
                )
                kw_defaults.append(ast.Constant(value=None))
            call_keywords.append(body_keyword)

        request = _call(_attr('client', 'request'), call_args, call_keywords)
        if is_async:
            request = ast.Await(value=request)

        returns, result = self._response(
            operation.success_response(options.content_type), types, emitter
        )
        body_statements: list[ast.stmt] = [
            _assign(_name('response'), request),
            ast.Expr(value=_call(_attr('response', 'raise_for_status'))),
        ]
        if result is not None:
            body_statements.append(ast.Return(value=result))

        factory = _async_func if is_async else _func
        return factory(
            name=f'a{operation.name}' if is_async else operation.name,
            args=args,
            body=body_statements,
            returns=returns,
            kwonlyargs=kwonlyargs,
            kw_defaults=kw_defaults,
            docstring=_docs(operation),
        )

    @staticmethod
    def _body(
        media: MediaSchema, types, emitter: ModelEmitter
    ) -> tuple[ast.expr, ast.keyword]:
        symbol = types.body if types is not None else None
        if symbol is not None:
            annotation = emitter.ref_symbol(symbol)
        else:
            annotation = emitter.type_of(media.tree, 'body')

        if not is_json(media.content_type) and media.content_type.startswith(
            ('application/octet-stream', 'text/')
        ):
            return emitter.need('typing', 'Any'), _keyword('content', _name('body'))

        dumped = _call(
            _attr(_call(emitter.need('pydantic', 'TypeAdapter'), [annotation]), 'dump_python'),
            [_name('body')],
            [
                _keyword('mode', ast.Constant(value='json')),
                _keyword('by_alias', ast.Constant(value=True)),
                _keyword('exclude_none', ast.Constant(value=True)),
            ],
        )
        value = ast.IfExp(
            test=ast.Compare(
                left=_name('body'), ops=[ast.IsNot()], comparators=[ast.Constant(value=None)]
            ),
            body=dumped,
            orelse=ast.Constant(value=None),
        )
        keyword = 'json' if is_json(media.content_type) else 'data'
        return annotation, _keyword(keyword, value)

    @staticmethod
    def _response(
        media: MediaSchema | None, types, emitter: ModelEmitter
    ) -> tuple[ast.expr, ast.expr | None]:
        if media is None:
            return ast.Constant(value=None), None

        if not is_json(media.content_type):
            return _name('bytes'), _attr('response', 'content')

        symbol = types.response if types is not None else None
        primary = media.tree.primary
        if symbol is None and (
            primary is None or primary.keyword in (Keyword.ANY, Keyword.UNKNOWN)
        ):
            return emitter.need('typing', 'Any'), _call(_attr('response', 'json'))

        if symbol is not None:
            annotation = emitter.ref_symbol(symbol)
        else:
            annotation = emitter.type_of(media.tree, 'response')
        validated = _call(
            _attr(
                _call(emitter.need('pydantic', 'TypeAdapter'), [annotation]),
                'validate_python',
            ),
            [_call(_attr('response', 'json'))],
        )
        return annotation, validated


def _python_names(operation: OperationDescriptor) -> dict[str, str]:
    """Unique Python argument names for the operation's parameters."""
    names: dict[str, str] = {}
    taken = set(_RESERVED)
    for parameter in operation.parameters:
        name = sanitize_parameter_field_name(parameter.name).lstrip('_') or 'param'
        if name in taken:
            name = f'{name}_{parameter.location}'
        while name in taken:
            name = f'{name}_'
        taken.add(name)
        names[parameter.name] = name
    return names


def _present(values: dict[str, str], as_text: bool = False) -> ast.expr | None:
    """``{key: value for key, value in {...}.items() if value is not None}``."""
    if not values:
        return None
    value = _name('value')
    if as_text:
        value = _call(_name('str'), [value])
    return ast.DictComp(
        key=_name('key'),
        value=value,
        generators=[
            ast.comprehension(
                target=ast.Tuple(
                    elts=[
                        ast.Name(id='key', ctx=ast.Store()),
                        ast.Name(id='value', ctx=ast.Store()),
                    ],
                    ctx=ast.Store(),
                ),
                iter=_call(
                    _attr(_dict({key: _name(name) for key, name in values.items()}), 'items')
                ),
                ifs=[
                    ast.Compare(
                        left=_name('value'),
                        ops=[ast.IsNot()],
                        comparators=[ast.Constant(value=None)],
                    )
                ],
                is_async=0,
            )
        ],
    )


def _docs(operation: OperationDescriptor) -> str | None:
    docs = operation.summary or operation.description
    if operation.deprecated:
        docs = f'{docs}\n\nDeprecated.' if docs else 'Deprecated.'
    if not docs:
        return None
    return textwrap.dedent(f'\n{docs}\n').strip()
