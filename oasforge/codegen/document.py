"""Loading and querying of OpenAPI documents.

This module provides the Document class, a thin query surface over a raw
OpenAPI 3.x document:
- Loading from local JSON or YAML files
- Version detection (Swagger 2.0 documents are rejected) and validation
  against the openapi-pydantic models
- JSON pointer dereferencing of local $ref values
- Enumeration of operations in document order, with merged parameters
"""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml
from openapi_pydantic.v3.parser import parse_obj
from pydantic import ValidationError

from oasforge.exceptions import (
    SchemaLoadError,
    SchemaValidationError,
    UnsupportedFeatureError,
)

logger = logging.getLogger(__name__)

__all__ = ['Document', 'HTTP_METHODS', 'SCHEMA_REF_PREFIX']

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

SCHEMA_REF_PREFIX = '#/components/schemas/'


def _format_error(error: dict) -> str:
    location = '.'.join(str(part) for part in error['loc'])
    return f"{location}: {error['msg']}" if location else error['msg']


class Document:
    """Query surface over an OpenAPI 3.0/3.1 document.

    Documents may still contain $ref pointers or be fully dereferenced
    already; in the latter case named definitions are recognized by identity
    with the mappings stored under ``components/schemas``.

    Example:
        >>> document = Document.load('./petstore.yaml')
        >>> for path, method, operation, path_item in document.operations():
        ...     print(method, path)
    """

    def __init__(self, data: dict, source: str | None = None):
        """Initialize the document.

        Args:
            data: The parsed document.
            source: Where the document came from, used in error messages.

        Raises:
            SchemaValidationError: If data is not an OpenAPI 3.x document.
            UnsupportedFeatureError: If data is a Swagger 2.0 document.
        """
        self.source = source or '<memory>'
        self._validate(data)
        self.data = data
        self._names_by_id = {id(schema): name for name, schema in self.schemas.items()}

    @classmethod
    def load(cls, source: str | Path) -> 'Document':
        """Load a document from a local JSON or YAML file.

        Raises:
            SchemaLoadError: If the file cannot be read or parsed.
        """
        path = Path(source)
        if not path.exists():
            raise SchemaLoadError(
                str(source), cause=FileNotFoundError(f'File not found: {path}')
            )

        try:
            content = path.read_text(encoding='utf-8')
            if path.suffix.lower() in ('.yaml', '.yml'):
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(str(source), cause=e)
        except OSError as e:
            raise SchemaLoadError(str(source), cause=e)

        return cls(data, source=str(source))

    def _validate(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise SchemaValidationError(
                self.source, errors=['document root must be a mapping']
            )
        if 'swagger' in data:
            raise UnsupportedFeatureError(
                f"Swagger {data['swagger']} documents",
                'Convert the document to OpenAPI 3.x first',
            )
        version = str(data.get('openapi', ''))
        if not version.startswith('3.'):
            raise SchemaValidationError(
                self.source, errors=[f"unsupported openapi version '{version}'"]
            )

        try:
            parse_obj(data)
        except ValidationError as e:
            # dereferenced documents may embed recursive schemas by identity
            errors = [
                _format_error(error)
                for error in e.errors()
                if error['type'] != 'recursion_loop'
            ]
            if errors:
                raise SchemaValidationError(self.source, errors=errors)
            logger.debug(f'{self.source} embeds recursive schemas, skipped their validation')
        except ValueError as e:
            raise SchemaValidationError(self.source, errors=[str(e)])

    @property
    def version(self) -> str:
        return str(self.data.get('openapi'))

    @property
    def title(self) -> str:
        return self.data.get('info', {}).get('title', '')

    @property
    def schemas(self) -> dict[str, Any]:
        """All named schema definitions, in document order."""
        components = self.data.get('components') or {}
        return components.get('schemas') or {}

    def has_schema(self, name: str) -> bool:
        return name in self.schemas

    def get_schema(self, name: str) -> Any:
        return self.schemas.get(name)

    def component_name(self, schema: Any) -> str | None:
        """Return the definition name if schema is a components/schemas entry."""
        return self._names_by_id.get(id(schema))

    @staticmethod
    def ref_name(ref: str) -> str | None:
        """Return the definition name of a '#/components/schemas/<name>' ref."""
        if not ref.startswith(SCHEMA_REF_PREFIX):
            return None
        name = ref[len(SCHEMA_REF_PREFIX) :]
        if not name or '/' in name:
            return None
        return name.replace('~1', '/').replace('~0', '~')

    def dereference(self, ref: str) -> Any:
        """Resolve a local JSON pointer.

        Raises:
            KeyError: If the pointer does not point into this document.
        """
        if not ref.startswith('#'):
            raise KeyError(f'External reference not supported: {ref}')

        pointer = ref[1:]
        if not pointer or pointer == '/':
            return self.data

        current: Any = self.data
        for part in pointer.strip('/').split('/'):
            part = part.replace('~1', '/').replace('~0', '~')
            if isinstance(current, dict):
                if part not in current:
                    raise KeyError(f'JSON pointer path not found: {ref}')
                current = current[part]
            elif isinstance(current, list):
                try:
                    current = current[int(part)]
                except (ValueError, IndexError):
                    raise KeyError(f'JSON pointer path not found: {ref}')
            else:
                raise KeyError(f'JSON pointer path not found: {ref}')
        return current

    def resolve(self, obj: Any) -> Any:
        """Follow $ref chains of non-schema objects (parameters, bodies, responses)."""
        seen: set[str] = set()
        while isinstance(obj, dict) and '$ref' in obj:
            ref = obj['$ref']
            if ref in seen:
                logger.warning(f'Circular reference detected: {ref}')
                return {}
            seen.add(ref)
            try:
                obj = self.dereference(ref)
            except KeyError:
                logger.warning(f'Failed to resolve reference: {ref}')
                return {}
        return obj

    def operations(self) -> Iterator[tuple[str, str, dict, dict]]:
        """Yield (path, method, operation, path_item) in document order."""
        for path, path_item in (self.data.get('paths') or {}).items():
            path_item = self.resolve(path_item)
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                yield path, method.lower(), operation, path_item

    def parameters(self, path_item: dict, operation: dict) -> list[dict]:
        """Return resolved parameters, operation-level entries win over path-level ones."""
        merged: dict[tuple[str, str], dict] = {}
        for source in (path_item.get('parameters') or [], operation.get('parameters') or []):
            for parameter in source:
                parameter = self.resolve(parameter)
                if not isinstance(parameter, dict) or 'name' not in parameter:
                    continue
                merged[(parameter['name'], parameter.get('in', 'query'))] = parameter
        return list(merged.values())
