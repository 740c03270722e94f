import keyword
import posixpath
import re
import unicodedata
from collections.abc import Mapping
from typing import Any

__all__ = (
    'capitalize',
    'deep_merge',
    'relative_module',
    'sanitize_identifier',
    'sanitize_parameter_field_name',
    'to_snake_case',
)


def capitalize(input_string):
    if not input_string:
        return ''
    return input_string[0].upper() + input_string[1:]


def remove_accents(input_str):
    nfkd_form = unicodedata.normalize('NFKD', input_str)
    return ''.join(c for c in nfkd_form if not unicodedata.combining(c))


def sanitize_name_python_keywords(name: str) -> str:
    if keyword.iskeyword(name):
        return f'{name}_'
    return name


def sanitize_parameter_field_name(name: str) -> str:
    """Sanitize parameter or field names to be valid Python identifiers.

    - Replace spaces, dots and hyphens with underscores
    - Remove other invalid characters
    - Ensure it doesn't start with a digit or clash with a keyword
    """
    if not name:
        raise ValueError('Name cannot be empty')

    sanitized = re.sub(r'[-\s.]+', '_', remove_accents(name))
    sanitized = re.sub(r'[^A-Za-z0-9_]', '', sanitized)

    if sanitized and sanitized[0].isdigit():
        sanitized = '_' + sanitized
    return sanitize_name_python_keywords(sanitized or 'field')


def sanitize_identifier(name: str) -> str:
    """Convert a string into a PascalCase Python class name."""
    if not name:
        return 'UnnamedType'

    parts = re.sub(r'[^A-Za-z0-9]+', '_', remove_accents(name)).split('_')

    if len(parts) == 1:
        sanitized = capitalize(parts[0])
    else:
        sanitized = ''.join(capitalize(part) for part in parts if part)

    if sanitized and sanitized[0].isdigit():
        sanitized = '_' + sanitized

    return sanitized or 'UnnamedType'


def to_snake_case(name: str) -> str:
    """Convert camelCase, PascalCase or kebab-case to snake_case."""
    if not name:
        return ''
    name = remove_accents(name)
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)
    name = re.sub(r'[^A-Za-z0-9]+', '_', name).strip('_').lower()
    if name and name[0].isdigit():
        name = '_' + name
    return sanitize_name_python_keywords(name)


def relative_module(from_file: str, to_file: str) -> str:
    """Relative import path from one generated file to another.

    Example:
        >>> relative_module('/out/clients/pets/get_pet.py', '/out/models.py')
        '...models'
    """
    from_dir = posixpath.dirname(from_file)
    target, _ = posixpath.splitext(to_file)
    if posixpath.basename(target) == '__init__':
        target = posixpath.dirname(target)

    relative = posixpath.relpath(target, from_dir)
    parts = relative.split('/')
    ups = 0
    while parts and parts[0] == '..':
        ups += 1
        parts.pop(0)
    parts = [part for part in parts if part != '.']
    return '.' * (ups + 1) + '.'.join(parts)


def deep_merge(base: dict, update: Mapping[str, Any]) -> dict:
    """Merge update into a copy of base, recursing into nested mappings."""
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged
