"""AST helpers and import collection for emitted Python sources.

Plugins build their output as ast nodes and turn them into source text with
``unparse``; the FileManager later merges the imports of every unit landing
in the same file through an ImportCollector.
"""

import ast
import re
import sys
from collections.abc import Iterable

__all__ = [
    '_name',
    '_attr',
    '_subscript',
    '_tuple',
    '_union_expr',
    '_argument',
    '_assign',
    '_annassign',
    '_call',
    '_keyword',
    '_func',
    '_async_func',
    '_class',
    '_docstring',
    '_fstring',
    '_literal',
    '_dict',
    '_all',
    'unparse',
    'ImportCollector',
]

_PLACEHOLDER = re.compile(r'\{([^{}]+)\}')


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _attr(value: str | ast.expr, attr: str) -> ast.Attribute:
    return ast.Attribute(
        value=_name(value) if isinstance(value, str) else value,
        attr=attr,
        ctx=ast.Load(),
    )


def _subscript(generic: str | ast.expr, inner: ast.expr) -> ast.Subscript:
    return ast.Subscript(
        value=_name(generic) if isinstance(generic, str) else generic,
        slice=inner,
        ctx=ast.Load(),
    )


def _tuple(elts: Iterable[ast.expr]) -> ast.Tuple:
    return ast.Tuple(elts=list(elts), ctx=ast.Load())


def _union_expr(types: list[ast.expr]) -> ast.expr:
    # A | B | C, members compared by source text to drop duplicates
    unique: list[ast.expr] = []
    seen: set[str] = set()
    for t in types:
        key = ast.unparse(t)
        if key not in seen:
            seen.add(key)
            unique.append(t)
    if not unique:
        raise ValueError('_union_expr requires at least one type')
    result = unique[0]
    for t in unique[1:]:
        result = ast.BinOp(left=result, op=ast.BitOr(), right=t)
    return result


def _argument(name: str, annotation: ast.expr | None = None) -> ast.arg:
    return ast.arg(arg=name, annotation=annotation)


def _assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    if isinstance(target, ast.Name):
        target = ast.Name(id=target.id, ctx=ast.Store())
    elif isinstance(target, (ast.Attribute, ast.Subscript)):
        target.ctx = ast.Store()
    return ast.Assign(targets=[target], value=value)


def _annassign(
    target: str, annotation: ast.expr, value: ast.expr | None = None
) -> ast.AnnAssign:
    return ast.AnnAssign(
        target=ast.Name(id=target, ctx=ast.Store()),
        annotation=annotation,
        value=value,
        simple=1,
    )


def _call(
    func: ast.expr,
    args: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    return ast.Call(func=func, args=args or [], keywords=keywords or [])


def _keyword(arg: str | None, value: ast.expr) -> ast.keyword:
    return ast.keyword(arg=arg, value=value)


def _docstring(text: str) -> ast.Expr:
    return ast.Expr(value=ast.Constant(value=text))


def _func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    kwargs: ast.arg | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
    defaults: list[ast.expr] | None = None,
    docstring: str | None = None,
) -> ast.FunctionDef:
    if docstring:
        body = [_docstring(docstring), *body]
    return ast.FunctionDef(
        name=name,
        args=ast.arguments(
            posonlyargs=[],
            args=args,
            vararg=None,
            kwarg=kwargs,
            kwonlyargs=kwonlyargs or [],
            kw_defaults=kw_defaults or [None] * len(kwonlyargs or []),
            defaults=defaults or [],
        ),
        body=body or [ast.Pass()],
        decorator_list=[],
        returns=returns,
        type_params=[],
    )


def _async_func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
    docstring: str | None = None,
) -> ast.AsyncFunctionDef:
    func = _func(
        name,
        args,
        body,
        returns=returns,
        kwonlyargs=kwonlyargs,
        kw_defaults=kw_defaults,
        docstring=docstring,
    )
    return ast.AsyncFunctionDef(
        name=func.name,
        args=func.args,
        body=func.body,
        decorator_list=[],
        returns=func.returns,
        type_params=[],
    )


def _class(
    name: str,
    bases: list[ast.expr],
    body: list[ast.stmt],
    keywords: list[ast.keyword] | None = None,
    docstring: str | None = None,
) -> ast.ClassDef:
    if docstring:
        body = [_docstring(docstring), *body]
    return ast.ClassDef(
        name=name,
        bases=bases,
        keywords=keywords or [],
        body=body or [ast.Pass()],
        decorator_list=[],
        type_params=[],
    )


def _fstring(template: str, names: dict[str, str] | None = None) -> ast.expr:
    """Turn a '/pets/{petId}' style template into an f-string expression.

    Args:
        template: The template with ``{placeholder}`` segments.
        names: Maps placeholders onto the Python names to interpolate.
    """
    names = names or {}
    values: list[ast.expr] = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        if match.start() > position:
            values.append(ast.Constant(value=template[position : match.start()]))
        placeholder = match.group(1)
        values.append(
            ast.FormattedValue(
                value=_name(names.get(placeholder, placeholder)), conversion=-1
            )
        )
        position = match.end()
    if position < len(template):
        values.append(ast.Constant(value=template[position:]))

    if not any(isinstance(v, ast.FormattedValue) for v in values):
        return ast.Constant(value=template)
    return ast.JoinedStr(values=values)


def _literal(value) -> ast.expr:
    """Expression for a JSON compatible value."""
    if isinstance(value, dict):
        return ast.Dict(
            keys=[ast.Constant(value=str(key)) for key in value],
            values=[_literal(item) for item in value.values()],
        )
    if isinstance(value, (list, tuple)):
        return ast.List(elts=[_literal(item) for item in value], ctx=ast.Load())
    if value is None or isinstance(value, (str, int, float, bool)):
        return ast.Constant(value=value)
    return ast.Constant(value=str(value))


def _dict(items: dict[str, ast.expr]) -> ast.Dict:
    return ast.Dict(
        keys=[ast.Constant(value=key) for key in items],
        values=list(items.values()),
    )


def _all(names: Iterable[str]) -> ast.Assign:
    return _assign(
        target=_name('__all__'),
        value=_tuple(ast.Constant(value=name) for name in names),
    )


def unparse(nodes: Iterable[ast.stmt]) -> str:
    """Source text of a list of statements, separated like a formatted module."""
    chunks = []
    for node in nodes:
        ast.fix_missing_locations(node)
        chunks.append(ast.unparse(node))
    return '\n\n\n'.join(chunks)


class ImportCollector:
    """Collects ``from module import name`` imports of one generated file.

    Modules are sorted standard library first, then third-party, then
    relative; names are sorted within each module.

    Example:
        >>> collector = ImportCollector()
        >>> collector.add_import('pydantic', 'BaseModel')
        >>> collector.add_imports({'typing': {'Any'}, '.models': {'Pet'}})
        >>> print(collector.render())
        from typing import Any
        from pydantic import BaseModel
        from .models import Pet
    """

    def __init__(self):
        self._imports: dict[str, set[str]] = {}

    def add_import(self, module: str, name: str) -> None:
        self._imports.setdefault(module, set()).add(name)

    def add_imports(self, imports: dict[str, Iterable[str]]) -> None:
        for module, names in imports.items():
            self._imports.setdefault(module, set()).update(names)

    def merge(self, other: 'ImportCollector') -> None:
        self.add_imports(other._imports)

    def discard_module(self, module: str) -> None:
        self._imports.pop(module, None)

    @staticmethod
    def _category(module: str) -> int:
        if module.startswith('.'):
            return 2
        if module.split('.')[0] in sys.stdlib_module_names:
            return 0
        return 1

    def to_ast(self) -> list[ast.ImportFrom]:
        statements = []
        for module, names in sorted(
            self._imports.items(), key=lambda item: (self._category(item[0]), item[0])
        ):
            level = len(module) - len(module.lstrip('.'))
            statements.append(
                ast.ImportFrom(
                    module=module.lstrip('.') or None,
                    names=[ast.alias(name=name) for name in sorted(names)],
                    level=level,
                )
            )
        return statements

    def render(self) -> str:
        return '\n'.join(ast.unparse(statement) for statement in self.to_ast())

    def has_imports(self) -> bool:
        return bool(self._imports)

    def modules(self) -> set[str]:
        return set(self._imports)

    def names(self, module: str) -> set[str]:
        return set(self._imports.get(module, ()))
