"""Schema resolution engine.

This module turns raw OpenAPI schema objects into SchemaTrees:
- Each combinator maps to one or more keyword nodes
- Named definitions are never inlined, they become ``ref`` nodes
- Constraints and formats become sibling modifiers in canonical order
- Unsupported or broken constructs degrade to ``any`` instead of failing
"""

import logging
from keyword import iskeyword
from typing import Any

from oasforge.codegen.document import SCHEMA_REF_PREFIX, Document
from oasforge.codegen.keywords import (
    MODIFIER_KEYWORDS,
    AndArgs,
    ArrayArgs,
    ConstArgs,
    DateArgs,
    DatetimeArgs,
    EnumArgs,
    EnumItem,
    Keyword,
    ObjectArgs,
    RefArgs,
    SchemaNode,
    SchemaTree,
    TupleArgs,
    TypeArgs,
    UnionArgs,
    sort_nodes,
)
from oasforge.config import ResolverOptions
from oasforge.exceptions import SchemaReferenceError

logger = logging.getLogger(__name__)

__all__ = ['SchemaResolver']

_STRING_FORMATS = {
    'uuid': Keyword.UUID,
    'uri': Keyword.URL,
    'url': Keyword.URL,
    'uri-reference': Keyword.URL,
    'email': Keyword.EMAIL,
    'idn-email': Keyword.EMAIL,
    'binary': Keyword.BLOB,
}

_COMBINATORS = ('allOf', 'oneOf', 'anyOf')


def _literal_format(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    return 'string'


def _dedupe_modifiers(nodes: list[SchemaNode]) -> list[SchemaNode]:
    # the last occurrence of a modifier wins, primaries are kept as they are
    seen: set[Keyword] = set()
    result: list[SchemaNode] = []
    for node in reversed(nodes):
        if node.keyword in MODIFIER_KEYWORDS:
            if node.keyword in seen:
                continue
            seen.add(node.keyword)
        result.append(node)
    result.reverse()
    return result


class SchemaResolver:
    """Resolves schema objects of a Document into SchemaTrees.

    The resolver is stateless apart from its document and options, so one
    instance can be shared by every operation of a build.

    Example:
        >>> resolver = SchemaResolver(document)
        >>> tree = resolver.resolve_definition('Pet')
        >>> [node.keyword for node in tree]
        [<Keyword.OBJECT: 'object'>]
    """

    def __init__(self, document: Document, options: ResolverOptions | None = None):
        self.document = document
        self.options = options or ResolverOptions()

    def resolve_definition(
        self, name: str, guard: frozenset[str] = frozenset()
    ) -> SchemaTree:
        """Resolve the named definition ``components/schemas/<name>``.

        Args:
            name: The definition name.
            guard: Names (and JSON pointers) currently being expanded. A
                guarded name short-circuits to a ``ref`` node.

        Returns:
            The resolved tree, carrying the definition name.
        """
        ref = f'{SCHEMA_REF_PREFIX}{name}'
        if name in guard:
            return SchemaTree((self._ref_node(name, ref),), name=name)

        schema = self.document.get_schema(name)
        if schema is None:
            logger.warning(f"Schema '{name}' not found, falling back to any")
            return SchemaTree((SchemaNode(Keyword.ANY),), name=name)

        nodes = self._expand(schema, name, guard | {name})
        return SchemaTree(nodes, name=name, description=self._description(schema))

    def resolve(
        self,
        schema: Any,
        name: str | None = None,
        guard: frozenset[str] = frozenset(),
    ) -> SchemaTree:
        """Resolve an inline schema.

        Args:
            schema: The raw schema object.
            name: Optional base name, used to name nested enumerations.
            guard: Names currently being expanded.
        """
        return SchemaTree(
            self._parse(schema, name, guard),
            name=name,
            description=self._description(schema),
        )

    @staticmethod
    def _description(schema: Any) -> str | None:
        if isinstance(schema, dict) and isinstance(schema.get('description'), str):
            return schema['description']
        return None

    @staticmethod
    def _ref_node(name: str, ref: str) -> SchemaNode:
        return SchemaNode(Keyword.REF, RefArgs(name=name, ref=ref))

    def _unknown_node(self) -> SchemaNode:
        if self.options.unknown_type == 'unknown':
            return SchemaNode(Keyword.UNKNOWN)
        return SchemaNode(Keyword.ANY)

    def _tree(self, schema: Any, name: str | None, guard: frozenset[str]) -> SchemaTree:
        return SchemaTree(self._parse(schema, name, guard))

    def _parse(
        self, schema: Any, name: str | None, guard: frozenset[str]
    ) -> tuple[SchemaNode, ...]:
        # Dereferenced documents embed the component mapping itself
        if isinstance(schema, dict):
            component = self.document.component_name(schema)
            if component is not None:
                return (self._ref_node(component, f'{SCHEMA_REF_PREFIX}{component}'),)
        return self._expand(schema, name, guard)

    def _expand(
        self, schema: Any, name: str | None, guard: frozenset[str]
    ) -> tuple[SchemaNode, ...]:
        if schema is True or schema == {}:
            return (self._unknown_node(),)
        if not isinstance(schema, dict):
            logger.debug(f'Invalid schema {schema!r}, falling back to any')
            return (SchemaNode(Keyword.ANY),)

        if '$ref' in schema:
            nodes = self._parse_ref(schema['$ref'], name, guard)
            nodes.extend(self._modifiers(schema, self._is_nullable(schema)))
            return sort_nodes(_dedupe_modifiers(nodes))

        nullable = self._is_nullable(schema)
        nodes, nullable_member = self._primary(schema, name, guard)
        nodes.extend(self._modifiers(schema, nullable or nullable_member))
        return sort_nodes(_dedupe_modifiers(nodes))

    def _is_nullable(self, schema: dict) -> bool:
        if schema.get('nullable') is True:
            return True
        types = schema.get('type')
        if isinstance(types, list) and 'null' in types:
            return True
        enum = schema.get('enum')
        return isinstance(enum, list) and None in enum and len(enum) > 1

    def _modifiers(self, schema: dict, nullable: bool) -> list[SchemaNode]:
        nodes = []
        if 'default' in schema:
            nodes.append(SchemaNode(Keyword.DEFAULT, schema['default']))
        if isinstance(schema.get('description'), str):
            nodes.append(SchemaNode(Keyword.DESCRIBE, schema['description']))
        if schema.get('readOnly'):
            nodes.append(SchemaNode(Keyword.READ_ONLY))
        if schema.get('writeOnly'):
            nodes.append(SchemaNode(Keyword.WRITE_ONLY))
        if schema.get('deprecated'):
            nodes.append(SchemaNode(Keyword.DEPRECATED))
        if 'example' in schema:
            nodes.append(SchemaNode(Keyword.EXAMPLE, schema['example']))
        if nullable:
            nodes.append(SchemaNode(Keyword.NULLABLE))
        return nodes

    def _parse_ref(
        self,
        ref: str,
        name: str | None,
        guard: frozenset[str],
        required: bool = False,
    ) -> list[SchemaNode]:
        component = Document.ref_name(ref)
        if component is not None:
            if not self.document.has_schema(component):
                if required:
                    raise SchemaReferenceError(ref, 'referenced schema does not exist')
                logger.warning(f"Unresolvable reference '{ref}', falling back to any")
                return [SchemaNode(Keyword.ANY)]
            return [self._ref_node(component, ref)]

        if ref in guard:
            logger.warning(f"Recursive reference '{ref}' cannot be expanded inline")
            return [SchemaNode(Keyword.ANY)]

        try:
            target = self.document.dereference(ref)
        except KeyError as e:
            if required:
                raise SchemaReferenceError(ref, str(e))
            logger.warning(f"Unresolvable reference '{ref}', falling back to any")
            return [SchemaNode(Keyword.ANY)]
        return list(self._parse(target, name, guard | {ref}))

    def _primary(
        self, schema: dict, name: str | None, guard: frozenset[str]
    ) -> tuple[list[SchemaNode], bool]:
        """Build the primary nodes of a schema.

        Returns:
            The nodes and whether a ``null`` union member made the schema nullable.
        """
        has_object_keys = 'properties' in schema or 'additionalProperties' in schema

        if 'allOf' in schema:
            members = [
                self._tree(member, name, guard)
                for member in schema.get('allOf') or []
            ]
            nullable = False
            if 'oneOf' in schema or 'anyOf' in schema:
                union, nullable = self._union(schema, name, guard)
                if union:
                    members.append(SchemaTree(tuple(union)))
            if has_object_keys:
                members.append(SchemaTree(sort_nodes([self._object(schema, name, guard)])))
            return self._intersection(members), nullable

        if 'oneOf' in schema or 'anyOf' in schema:
            union, nullable = self._union(schema, name, guard)
            if has_object_keys and union:
                members = [
                    SchemaTree(tuple(union)),
                    SchemaTree(sort_nodes([self._object(schema, name, guard)])),
                ]
                return self._intersection(members), nullable
            return union, nullable

        if 'const' in schema:
            value = schema['const']
            return [SchemaNode(Keyword.CONST, ConstArgs(value, _literal_format(value)))], False

        if isinstance(schema.get('enum'), list):
            return self._enum(schema, name), False

        types = schema.get('type')
        if isinstance(types, list):
            non_null = [t for t in types if t != 'null']
            if len(non_null) > 1:
                base = {
                    key: value
                    for key, value in schema.items()
                    if key not in ('type', 'description', 'default', 'nullable', 'example')
                }
                members = tuple(
                    self._tree({**base, 'type': t}, name, guard) for t in non_null
                )
                return [SchemaNode(Keyword.UNION, UnionArgs(members))], False
            types = non_null[0] if non_null else 'null'

        if types is None:
            if has_object_keys:
                types = 'object'
            elif 'items' in schema or 'prefixItems' in schema:
                types = 'array'
            else:
                return [self._unknown_node()], False

        return self._typed(types, schema, name, guard), False

    def _typed(
        self, type_: Any, schema: dict, name: str | None, guard: frozenset[str]
    ) -> list[SchemaNode]:
        if type_ == 'string':
            return self._string(schema)
        if type_ in ('integer', 'number'):
            keyword = Keyword.INTEGER if type_ == 'integer' else Keyword.NUMBER
            nodes = [SchemaNode(keyword)]
            if schema.get('format'):
                nodes.append(SchemaNode(Keyword.SCHEMA, TypeArgs(type_, schema['format'])))
            nodes.extend(self._bounds(schema, 'minimum', 'maximum'))
            return nodes
        if type_ == 'boolean':
            return [SchemaNode(Keyword.BOOLEAN)]
        if type_ == 'null':
            return [SchemaNode(Keyword.NULL)]
        if type_ == 'array':
            return [self._array(schema, name, guard)]
        if type_ == 'object':
            return [self._object(schema, name, guard)]

        logger.debug(f"Unrecognized type '{type_}' skipped")
        return []

    @staticmethod
    def _bounds(schema: dict, lower: str, upper: str) -> list[SchemaNode]:
        nodes = []
        if isinstance(schema.get(lower), (int, float)) and not isinstance(
            schema.get(lower), bool
        ):
            nodes.append(SchemaNode(Keyword.MIN, schema[lower]))
        if isinstance(schema.get(upper), (int, float)) and not isinstance(
            schema.get(upper), bool
        ):
            nodes.append(SchemaNode(Keyword.MAX, schema[upper]))
        return nodes

    def _string(self, schema: dict) -> list[SchemaNode]:
        fmt = schema.get('format')
        if fmt == 'date-time':
            nodes = [SchemaNode(Keyword.DATETIME, DatetimeArgs(offset=True))]
        elif fmt == 'date':
            nodes = [SchemaNode(Keyword.DATE, DateArgs(self.options.date_type))]
        elif fmt == 'time':
            nodes = [SchemaNode(Keyword.TIME, DateArgs(self.options.date_type))]
        elif fmt in _STRING_FORMATS:
            nodes = [SchemaNode(_STRING_FORMATS[fmt])]
        else:
            nodes = [SchemaNode(Keyword.STRING)]

        nodes.extend(self._bounds(schema, 'minLength', 'maxLength'))
        if isinstance(schema.get('pattern'), str):
            nodes.append(SchemaNode(Keyword.MATCHES, schema['pattern']))
        return nodes

    def _array(self, schema: dict, name: str | None, guard: frozenset[str]) -> SchemaNode:
        prefix_items = schema.get('prefixItems')
        items = schema.get('items')
        if isinstance(items, list):
            prefix_items, items = items, None

        if isinstance(prefix_items, list):
            rest = self._tree(items, name, guard) if isinstance(items, dict) else None
            return SchemaNode(
                Keyword.TUPLE,
                TupleArgs(
                    items=tuple(self._tree(item, name, guard) for item in prefix_items),
                    rest=rest,
                    min=schema.get('minItems'),
                    max=schema.get('maxItems'),
                ),
            )

        if items is None:
            logger.debug('Array schema without items, falling back to any')
            return SchemaNode(Keyword.ANY)

        return SchemaNode(
            Keyword.ARRAY,
            ArrayArgs(
                items=self._tree(items, name, guard),
                min=schema.get('minItems'),
                max=schema.get('maxItems'),
                unique=bool(schema.get('uniqueItems')),
            ),
        )

    def _object(self, schema: dict, name: str | None, guard: frozenset[str]) -> SchemaNode:
        required = set(schema.get('required') or [])
        properties: list[tuple[str, SchemaTree]] = []

        for key, property_schema in (schema.get('properties') or {}).items():
            child_name = f'{name}_{key}' if name else key
            nodes = list(self._parse(property_schema, child_name, guard))
            if key not in required:
                if any(node.keyword is Keyword.NULLABLE for node in nodes):
                    nodes = [node for node in nodes if node.keyword is not Keyword.NULLABLE]
                    nodes.append(SchemaNode(Keyword.NULLISH))
                else:
                    nodes.append(SchemaNode(Keyword.OPTIONAL))
            if not key.isidentifier() or iskeyword(key):
                nodes.append(SchemaNode(Keyword.NAME, key))
            properties.append(
                (key, SchemaTree(sort_nodes(nodes), description=self._description(property_schema)))
            )

        additional = schema.get('additionalProperties')
        strict = additional is False
        if additional is True or additional == {}:
            additional_tree = SchemaTree((self._unknown_node(),))
        elif isinstance(additional, dict):
            additional_tree = self._tree(additional, name, guard)
        else:
            additional_tree = None

        return SchemaNode(
            Keyword.OBJECT,
            ObjectArgs(tuple(properties), additional_tree, strict),
        )

    @staticmethod
    def _intersection(members: list[SchemaTree]) -> list[SchemaNode]:
        members = [member for member in members if not member.is_empty()]
        if not members:
            return []
        if len(members) == 1:
            return list(members[0].nodes)
        return [SchemaNode(Keyword.AND, AndArgs(tuple(members)))]

    def _union(
        self, schema: dict, name: str | None, guard: frozenset[str]
    ) -> tuple[list[SchemaNode], bool]:
        raw_members = (schema.get('oneOf') or []) + (schema.get('anyOf') or [])
        discriminator = schema.get('discriminator')
        property_name = None

        if isinstance(discriminator, dict):
            property_name = discriminator.get('propertyName')
            for target in (discriminator.get('mapping') or {}).values():
                target_name = (
                    Document.ref_name(target) if target.startswith('#') else target
                )
                if target_name is None or not self.document.has_schema(target_name):
                    raise SchemaReferenceError(
                        target, 'discriminator mapping target does not exist'
                    )

        members: list[SchemaTree] = []
        nullable = False
        for member in raw_members:
            if isinstance(member, dict) and member.get('type') == 'null' and len(member) == 1:
                nullable = True
                continue
            if discriminator and isinstance(member, dict) and '$ref' in member:
                tree = SchemaTree(tuple(self._parse_ref(member['$ref'], name, guard, required=True)))
            else:
                tree = self._tree(member, name, guard)
            if not tree.is_empty():
                members.append(tree)

        if not members:
            return [], nullable
        if len(members) == 1:
            return list(members[0].nodes), nullable
        return [
            SchemaNode(Keyword.UNION, UnionArgs(tuple(members), property_name))
        ], nullable

    def _enum(self, schema: dict, name: str | None) -> list[SchemaNode]:
        values = [value for value in schema['enum'] if value is not None]
        if not values:
            return [SchemaNode(Keyword.NULL)]

        names = schema.get('x-enumNames') or schema.get('x-enum-varnames') or []
        if len(names) != len(values):
            names = [None] * len(values)

        formats = {_literal_format(value) for value in values}

        if self.options.enum_as_const or len(formats) > 1:
            consts = [
                SchemaNode(Keyword.CONST, ConstArgs(value, _literal_format(value), item_name))
                for value, item_name in zip(values, names)
            ]
            if len(consts) == 1:
                return consts
            return [
                SchemaNode(
                    Keyword.UNION,
                    UnionArgs(tuple(SchemaTree((const,)) for const in consts)),
                )
            ]

        (fmt,) = formats
        items = tuple(
            EnumItem(value=value, format=fmt, name=item_name)
            for value, item_name in zip(values, names)
        )
        return [SchemaNode(Keyword.ENUM, EnumArgs(items=items, name=name))]
