"""Keyword-tagged intermediate representation of schemas.

Every data shape of an API document is described by a SchemaTree: an ordered
set of sibling SchemaNodes. The first node is usually the primary type
(``string``, ``object``, ``ref``...), the following ones are modifiers
(``min``, ``default``, ``optional``...) that output plugins apply one after the
other. Nodes are frozen so a tree can be shared by every plugin of a build.

The keyword set is closed. Output plugins map keywords through a dictionary
covering every member of Keyword, so adding a keyword means touching each
mapper in one place.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Any, Literal

__all__ = [
    'Keyword',
    'SchemaNode',
    'SchemaTree',
    'ObjectArgs',
    'ArrayArgs',
    'TupleArgs',
    'EnumItem',
    'EnumArgs',
    'UnionArgs',
    'AndArgs',
    'RefArgs',
    'ConstArgs',
    'DatetimeArgs',
    'DateArgs',
    'TypeArgs',
    'KEYWORD_ORDER',
    'MODIFIER_KEYWORDS',
    'sort_nodes',
    'iter_nodes',
    'iter_refs',
]


class Keyword(str, Enum):
    ANY = 'any'
    UNKNOWN = 'unknown'
    VOID = 'void'
    NULL = 'null'
    BOOLEAN = 'boolean'
    STRING = 'string'
    NUMBER = 'number'
    INTEGER = 'integer'
    BLOB = 'blob'

    OBJECT = 'object'
    ARRAY = 'array'
    TUPLE = 'tuple'
    ENUM = 'enum'
    UNION = 'union'
    AND = 'and'
    REF = 'ref'
    CONST = 'const'

    NULLABLE = 'nullable'
    OPTIONAL = 'optional'
    NULLISH = 'nullish'
    DEFAULT = 'default'
    DESCRIBE = 'describe'
    MIN = 'min'
    MAX = 'max'
    MATCHES = 'matches'

    DATETIME = 'datetime'
    DATE = 'date'
    TIME = 'time'
    UUID = 'uuid'
    URL = 'url'
    EMAIL = 'email'

    READ_ONLY = 'readOnly'
    WRITE_ONLY = 'writeOnly'
    DEPRECATED = 'deprecated'
    EXAMPLE = 'example'
    NAME = 'name'
    SCHEMA = 'schema'


# Sibling order shared by every plugin that chains modifiers. Primary keywords
# missing from the list keep rank -1 and stay in front, unlisted metadata
# modifiers rank with describe.
KEYWORD_ORDER: tuple[Keyword, ...] = (
    Keyword.STRING,
    Keyword.DATETIME,
    Keyword.DATE,
    Keyword.TIME,
    Keyword.TUPLE,
    Keyword.NUMBER,
    Keyword.OBJECT,
    Keyword.ENUM,
    Keyword.URL,
    Keyword.EMAIL,
    Keyword.MATCHES,
    Keyword.UUID,
    Keyword.NULL,
    Keyword.MIN,
    Keyword.MAX,
    Keyword.DEFAULT,
    Keyword.DESCRIBE,
    Keyword.OPTIONAL,
    Keyword.NULLABLE,
    Keyword.NULLISH,
)

_ORDER_INDEX = {keyword: index for index, keyword in enumerate(KEYWORD_ORDER)}

MODIFIER_KEYWORDS: frozenset[Keyword] = frozenset(
    {
        Keyword.NULLABLE,
        Keyword.OPTIONAL,
        Keyword.NULLISH,
        Keyword.DEFAULT,
        Keyword.DESCRIBE,
        Keyword.MIN,
        Keyword.MAX,
        Keyword.MATCHES,
        Keyword.READ_ONLY,
        Keyword.WRITE_ONLY,
        Keyword.DEPRECATED,
        Keyword.EXAMPLE,
        Keyword.NAME,
        Keyword.SCHEMA,
    }
)


@dataclasses.dataclass(frozen=True)
class SchemaNode:
    keyword: Keyword
    args: Any = None

    def is_keyword(self, keyword: Keyword) -> bool:
        return self.keyword is keyword


@dataclasses.dataclass(frozen=True)
class SchemaTree:
    """An ordered set of sibling nodes describing one data shape.

    Attributes:
        nodes: The sibling nodes, in canonical order.
        name: The definition name for named trees (components), else None.
        description: Optional human readable description.
    """

    nodes: tuple[SchemaNode, ...] = ()
    name: str | None = None
    description: str | None = None

    def __iter__(self) -> Iterator[SchemaNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def keywords(self) -> tuple[Keyword, ...]:
        return tuple(node.keyword for node in self.nodes)

    @property
    def primary(self) -> SchemaNode | None:
        """The first non-modifier node, if any."""
        for node in self.nodes:
            if node.keyword not in MODIFIER_KEYWORDS:
                return node
        return None

    def find(self, keyword: Keyword) -> SchemaNode | None:
        for node in self.nodes:
            if node.keyword is keyword:
                return node
        return None

    def has(self, keyword: Keyword) -> bool:
        return self.find(keyword) is not None

    def is_empty(self) -> bool:
        return not self.nodes


@dataclasses.dataclass(frozen=True)
class ObjectArgs:
    """Arguments of an ``object`` node.

    Attributes:
        properties: Ordered (property name, property tree) pairs.
        additional_properties: Catch-all tree for undeclared keys, if any.
        strict: True when ``additionalProperties: false`` forbids extra keys.
    """

    properties: tuple[tuple[str, SchemaTree], ...] = ()
    additional_properties: SchemaTree | None = None
    strict: bool = False

    def get_property(self, name: str) -> SchemaTree | None:
        for key, tree in self.properties:
            if key == name:
                return tree
        return None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.properties)


@dataclasses.dataclass(frozen=True)
class ArrayArgs:
    items: SchemaTree
    min: int | None = None
    max: int | None = None
    unique: bool = False


@dataclasses.dataclass(frozen=True)
class TupleArgs:
    items: tuple[SchemaTree, ...] = ()
    rest: SchemaTree | None = None
    min: int | None = None
    max: int | None = None


@dataclasses.dataclass(frozen=True)
class EnumItem:
    value: Any
    format: Literal['string', 'number', 'boolean']
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class EnumArgs:
    items: tuple[EnumItem, ...]
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class UnionArgs:
    members: tuple[SchemaTree, ...]
    discriminator: str | None = None


@dataclasses.dataclass(frozen=True)
class AndArgs:
    members: tuple[SchemaTree, ...]


@dataclasses.dataclass(frozen=True)
class RefArgs:
    """A symbolic reference to a named definition.

    Attributes:
        name: The definition name, looked up in the schema registry.
        ref: The original JSON reference (e.g. '#/components/schemas/Pet').
    """

    name: str
    ref: str


@dataclasses.dataclass(frozen=True)
class ConstArgs:
    value: Any
    format: Literal['string', 'number', 'boolean', 'null']
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class DatetimeArgs:
    offset: bool = False
    local: bool = False


@dataclasses.dataclass(frozen=True)
class DateArgs:
    type: Literal['string', 'date'] = 'string'


@dataclasses.dataclass(frozen=True)
class TypeArgs:
    type: str | None
    format: str | None = None


def _rank(keyword: Keyword) -> int:
    if keyword in _ORDER_INDEX:
        return _ORDER_INDEX[keyword]
    if keyword in MODIFIER_KEYWORDS:
        return _ORDER_INDEX[Keyword.DESCRIBE]
    return -1


def sort_nodes(nodes: Iterable[SchemaNode]) -> tuple[SchemaNode, ...]:
    """Return nodes in canonical sibling order (stable for equal ranks)."""
    return tuple(sorted(nodes, key=lambda node: _rank(node.keyword)))


def _children(node: SchemaNode) -> Iterator[SchemaTree]:
    args = node.args
    if isinstance(args, ObjectArgs):
        for _, tree in args.properties:
            yield tree
        if args.additional_properties is not None:
            yield args.additional_properties
    elif isinstance(args, ArrayArgs):
        yield args.items
    elif isinstance(args, TupleArgs):
        yield from args.items
        if args.rest is not None:
            yield args.rest
    elif isinstance(args, (UnionArgs, AndArgs)):
        yield from args.members


def iter_nodes(tree: SchemaTree) -> Iterator[SchemaNode]:
    """Walk every node of a tree depth-first without following references."""
    for node in tree:
        yield node
        for child in _children(node):
            yield from iter_nodes(child)


def iter_refs(tree: SchemaTree) -> Iterator[RefArgs]:
    for node in iter_nodes(tree):
        if node.keyword is Keyword.REF:
            yield node.args
