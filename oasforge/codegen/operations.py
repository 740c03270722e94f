"""Operation descriptors and operation filters.

This module walks every operation of a document and produces frozen
OperationDescriptors whose parameter, body and response schemas are resolved
through the schema resolution engine. It also holds the include, exclude and
override filters that plugins use to select operations and adjust their
options per operation.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from keyword import iskeyword
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from oasforge.codegen.document import Document
from oasforge.codegen.keywords import (
    Keyword,
    ObjectArgs,
    SchemaNode,
    SchemaTree,
    iter_refs,
    sort_nodes,
)
from oasforge.codegen.registry import SchemaRegistry
from oasforge.codegen.schema import SchemaResolver
from oasforge.codegen.utils import deep_merge, sanitize_identifier, to_snake_case
from oasforge.exceptions import OperationGenerationError, SchemaReferenceError

logger = logging.getLogger(__name__)

__all__ = [
    'MediaSchema',
    'Parameter',
    'OperationDescriptor',
    'OperationGenerator',
    'select_content_type',
    'is_json',
    'FilterType',
    'Include',
    'Exclude',
    'Override',
    'is_included',
    'resolve_options',
    'filter_operations',
]

_STATUS_PATTERN = re.compile(r'^([1-5][0-9]{2}|[1-5]XX|default)$')

_PARAMETER_LOCATIONS = ('path', 'query', 'header')


def is_json(content_type: str) -> bool:
    media_type = content_type.split(';', 1)[0].strip().lower()
    return media_type == 'application/json' or media_type.endswith('+json')


def select_content_type(
    content: Mapping[str, Any], preferred: str | None = None
) -> str | None:
    """Pick the media type to use from a content mapping.

    The preferred media type wins when declared, otherwise the first JSON
    compatible one, otherwise the first declared one.
    """
    if not content:
        return None
    if preferred and preferred in content:
        return preferred
    for content_type in content:
        if is_json(content_type):
            return content_type
    return next(iter(content))


@dataclass(frozen=True)
class MediaSchema:
    """A resolved body schema for one content type.

    Attributes:
        content_type: The media type, e.g. 'application/json'.
        tree: The resolved tree. Bodies referencing a named definition share
            the registry instance.
        ref: The definition name when the body is a named definition.
    """

    content_type: str
    tree: SchemaTree
    ref: str | None = None


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool
    tree: SchemaTree
    description: str | None = None


@dataclass(frozen=True)
class OperationDescriptor:
    """Resolved, read-only view of one API operation.

    Attributes:
        operation_id: The operationId, derived from method and path if absent.
        method: Lower case HTTP method.
        path: The URL path template.
        tags: Operation tags in document order.
        parameters: Merged path, query and header parameters.
        request_bodies: Request body schemas keyed by content type.
        responses: Response schemas keyed by status code, then content type.
        index: Position of the operation in the document.
    """

    operation_id: str
    method: str
    path: str
    tags: tuple[str, ...] = ()
    summary: str | None = None
    description: str | None = None
    deprecated: bool = False
    parameters: tuple[Parameter, ...] = ()
    path_params: SchemaTree | None = None
    query_params: SchemaTree | None = None
    header_params: SchemaTree | None = None
    request_bodies: Mapping[str, MediaSchema] = field(
        default_factory=lambda: MappingProxyType({})
    )
    body_required: bool = False
    responses: Mapping[str, Mapping[str, MediaSchema]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    index: int = 0

    @property
    def name(self) -> str:
        """snake_case name used for generated functions and files."""
        return to_snake_case(self.operation_id)

    @property
    def type_name(self) -> str:
        """PascalCase prefix used for generated per-operation types."""
        return sanitize_identifier(self.operation_id)

    def params(self, location: str) -> tuple[Parameter, ...]:
        return tuple(p for p in self.parameters if p.location == location)

    def request_body(self, content_type: str | None = None) -> MediaSchema | None:
        selected = select_content_type(self.request_bodies, content_type)
        return self.request_bodies[selected] if selected else None

    def response(
        self, status: str, content_type: str | None = None
    ) -> MediaSchema | None:
        content = self.responses.get(str(status))
        if not content:
            return None
        return content[select_content_type(content, content_type)]

    def success_status(self) -> str | None:
        """The first declared 2xx status, else 'default' if declared."""
        for status in self.responses:
            if status.startswith('2'):
                return status
        return 'default' if 'default' in self.responses else None

    def success_response(self, content_type: str | None = None) -> MediaSchema | None:
        status = self.success_status()
        if status is None:
            return None
        return self.response(status, content_type)

    def trees(self) -> Iterator[SchemaTree]:
        """Every schema tree of the operation, parameters first."""
        for parameter in self.parameters:
            yield parameter.tree
        for media in self.request_bodies.values():
            yield media.tree
        for content in self.responses.values():
            for media in content.values():
                yield media.tree


class OperationGenerator:
    """Builds OperationDescriptors for every operation of a document.

    Example:
        >>> generator = OperationGenerator(document, registry)
        >>> descriptors, errors = generator.build()
    """

    def __init__(
        self,
        document: Document,
        registry: SchemaRegistry,
        resolver: SchemaResolver | None = None,
        max_workers: int = 1,
    ):
        self.document = document
        self.registry = registry
        self.resolver = resolver or registry.resolver
        self.max_workers = max_workers

    def build(
        self,
    ) -> tuple[list[OperationDescriptor], list[OperationGenerationError]]:
        """Resolve every operation, in document order.

        Returns:
            The descriptors and the errors of operations that were dropped.
        """
        entries = list(enumerate(self.document.operations()))

        if self.max_workers > 1 and len(entries) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(self._safe_build, entries))
        else:
            outcomes = [self._safe_build(entry) for entry in entries]

        descriptors = []
        errors = []
        for outcome in outcomes:
            if isinstance(outcome, OperationGenerationError):
                errors.append(outcome)
            else:
                descriptors.append(outcome)
        return descriptors, errors

    def _safe_build(self, entry) -> 'OperationDescriptor | OperationGenerationError':
        index, (path, method, operation, path_item) = entry
        operation_id = self.operation_id(path, method, operation)
        try:
            return self.build_operation(index, path, method, operation, path_item)
        except SchemaReferenceError as e:
            logger.error(f"Skipping operation '{operation_id}': {e}")
            return OperationGenerationError(operation_id, method, path, cause=e)

    @staticmethod
    def operation_id(path: str, method: str, operation: dict) -> str:
        if operation.get('operationId'):
            return operation['operationId']
        segments = [
            segment.strip('{}') for segment in path.split('/') if segment.strip()
        ]
        return to_snake_case('_'.join([method, *segments]) or method)

    def build_operation(
        self, index: int, path: str, method: str, operation: dict, path_item: dict
    ) -> OperationDescriptor:
        operation_id = self.operation_id(path, method, operation)
        type_name = sanitize_identifier(operation_id)

        parameters = tuple(
            self._parameter(parameter, type_name)
            for parameter in self.document.parameters(path_item, operation)
            if parameter.get('in', 'query') in _PARAMETER_LOCATIONS
        )

        request_body = self.document.resolve(operation.get('requestBody') or {})
        request_bodies = self._content(
            request_body.get('content') or {}, f'{type_name}Body'
        )

        responses: dict[str, Mapping[str, MediaSchema]] = {}
        for status, response in (operation.get('responses') or {}).items():
            status = str(status)
            if not _STATUS_PATTERN.match(status):
                logger.debug(f"Unrecognized status code '{status}' in {operation_id}")
                continue
            response = self.document.resolve(response)
            responses[status] = MappingProxyType(
                self._content(response.get('content') or {}, f'{type_name}{status}Response')
            )

        descriptor = OperationDescriptor(
            operation_id=operation_id,
            method=method,
            path=path,
            tags=tuple(operation.get('tags') or ()),
            summary=operation.get('summary'),
            description=operation.get('description'),
            deprecated=bool(operation.get('deprecated')),
            parameters=parameters,
            path_params=self._parameter_tree(parameters, 'path'),
            query_params=self._parameter_tree(parameters, 'query'),
            header_params=self._parameter_tree(parameters, 'header'),
            request_bodies=MappingProxyType(request_bodies),
            body_required=bool(request_body.get('required')),
            responses=MappingProxyType(responses),
            index=index,
        )
        self._check_references(descriptor)
        return descriptor

    def _check_references(self, descriptor: OperationDescriptor) -> None:
        failed = self.registry.failed
        if not failed:
            return
        for tree in descriptor.trees():
            for ref in iter_refs(tree):
                if ref.name in failed:
                    raise SchemaReferenceError(
                        ref.ref,
                        f"schema '{ref.name}' could not be resolved",
                    )

    def _schema_tree(self, schema: Any, name: str) -> tuple[SchemaTree, str | None]:
        ref_name = None
        if isinstance(schema, dict):
            if isinstance(schema.get('$ref'), str) and len(schema) == 1:
                ref_name = Document.ref_name(schema['$ref'])
            else:
                ref_name = self.document.component_name(schema)

        if ref_name is not None:
            tree = self.registry.get(ref_name)
            if tree is not None:
                return tree, ref_name

        return self.resolver.resolve(schema, name=name), None

    def _content(self, content: Mapping[str, Any], name: str) -> dict[str, MediaSchema]:
        result = {}
        for content_type, media in content.items():
            schema = (media or {}).get('schema')
            if schema is None:
                tree, ref_name = SchemaTree((SchemaNode(Keyword.ANY),)), None
            else:
                tree, ref_name = self._schema_tree(schema, name)
            result[content_type] = MediaSchema(content_type, tree, ref_name)
        return result

    def _parameter(self, parameter: dict, type_name: str) -> Parameter:
        name = parameter['name']
        location = parameter.get('in', 'query')
        required = bool(parameter.get('required')) or location == 'path'

        schema = parameter.get('schema')
        if schema is None and parameter.get('content'):
            content = parameter['content']
            schema = (content[select_content_type(content)] or {}).get('schema')

        tree = self.resolver.resolve(
            schema if schema is not None else {'type': 'string'},
            name=f'{type_name}_{name}',
        )
        return Parameter(name, location, required, tree, parameter.get('description'))

    @staticmethod
    def _parameter_tree(
        parameters: Iterable[Parameter], location: str
    ) -> SchemaTree | None:
        properties = []
        for parameter in parameters:
            if parameter.location != location:
                continue
            nodes = list(parameter.tree.nodes)
            if not parameter.required:
                nodes.append(SchemaNode(Keyword.OPTIONAL))
            if not parameter.name.isidentifier() or iskeyword(parameter.name):
                nodes.append(SchemaNode(Keyword.NAME, parameter.name))
            properties.append(
                (parameter.name, SchemaTree(sort_nodes(nodes), description=parameter.description))
            )
        if not properties:
            return None
        return SchemaTree((SchemaNode(Keyword.OBJECT, ObjectArgs(tuple(properties))),))


class FilterType(str, Enum):
    TAG = 'tag'
    PATH = 'path'
    METHOD = 'method'
    OPERATION_ID = 'operationId'


FILTER_ORDER = (
    FilterType.TAG,
    FilterType.PATH,
    FilterType.METHOD,
    FilterType.OPERATION_ID,
)


class OperationFilter(BaseModel):
    type: FilterType = Field(..., description='Operation attribute matched.')

    pattern: str = Field(
        ..., description='Regular expression searched in the attribute value.'
    )

    def matches(self, operation: OperationDescriptor) -> bool:
        if self.type is FilterType.TAG:
            values = operation.tags
        elif self.type is FilterType.PATH:
            values = (operation.path,)
        elif self.type is FilterType.METHOD:
            values = (operation.method,)
        else:
            values = (operation.operation_id,)
        return any(re.search(self.pattern, value) for value in values)


class Include(OperationFilter):
    """Keep only operations matching at least one include filter."""


class Exclude(OperationFilter):
    """Drop operations matching any exclude filter."""


class Override(OperationFilter):
    """Options layered on top of a plugin's options for matching operations."""

    options: dict[str, Any] = Field(default_factory=dict)


def _by_filter_order(filters: Iterable[OperationFilter]) -> list[OperationFilter]:
    return sorted(filters, key=lambda f: FILTER_ORDER.index(f.type))


def is_included(
    operation: OperationDescriptor,
    include: Iterable[Include] = (),
    exclude: Iterable[Exclude] = (),
) -> bool:
    include = _by_filter_order(include)
    if include and not any(f.matches(operation) for f in include):
        return False
    return not any(f.matches(operation) for f in _by_filter_order(exclude))


def resolve_options(
    operation: OperationDescriptor,
    base_options: BaseModel,
    override: Iterable[Override] = (),
) -> BaseModel:
    """Apply every matching override on top of the base options.

    Overrides are applied tag first, then path, method and operationId, so
    the most specific filter wins. The merged options are validated again
    with the model of the base options.
    """
    matching = [f for f in _by_filter_order(override) if f.matches(operation)]
    if not matching:
        return base_options

    merged = base_options.model_dump()
    for f in matching:
        merged = deep_merge(merged, f.options)
    return type(base_options).model_validate(merged)


def filter_operations(
    operations: Iterable[OperationDescriptor], options: BaseModel
) -> Iterator[tuple[OperationDescriptor, BaseModel]]:
    """Yield (operation, options) pairs for the operations a plugin keeps.

    Args:
        operations: Descriptors in document order.
        options: Plugin options providing ``include``, ``exclude`` and
            ``override`` lists.
    """
    for operation in operations:
        if not is_included(operation, options.include, options.exclude):
            continue
        yield operation, resolve_options(operation, options, options.override)
