"""Group resolver for placing operations into sub-directories.

This module provides the Group options model and the GroupResolver class
that determines the directory an operation is emitted into when a plugin
runs in grouped path mode.
"""

import keyword
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from oasforge.codegen.utils import to_snake_case

if TYPE_CHECKING:
    from oasforge.codegen.operations import OperationDescriptor

__all__ = ['Group', 'GroupResolver']


class Group(BaseModel):
    """How operations are grouped into directories.

    Example:
        >>> Group(type='tag', name='{group}_api')
    """

    type: Literal['tag', 'path'] = Field(
        'tag', description='Group by first tag or by first path segment.'
    )

    name: str | Callable[[str], str] | None = Field(
        None,
        description=(
            "Directory name template containing '{group}', or a callable "
            'receiving the group key. Defaults to the snake_case key.'
        ),
    )

    fallback: str = Field(
        'default', description='Group key for operations without tag or segments.'
    )


class GroupResolver:
    """Resolves operations to group directories.

    Resolution is a pure function of the group options and the operation,
    so operations sharing a key always land in the same directory.

    Example:
        >>> resolver = GroupResolver(Group(type='path'))
        >>> resolver.key_for('/pets/{id}', tags=())
        'pets'
        >>> resolver.directory('pets')
        'pets'
    """

    def __init__(self, group: Group):
        self.group = group

    def key_for(self, path: str, tags: tuple[str, ...] | list[str] = ()) -> str:
        if self.group.type == 'tag':
            return tags[0] if tags else self.group.fallback

        segments = [s for s in path.split('/') if s and not s.startswith('{')]
        return segments[0] if segments else self.group.fallback

    def directory(self, key: str) -> str:
        name = self.group.name
        if name is None:
            raw = to_snake_case(key)
        elif callable(name):
            raw = name(key)
        else:
            raw = name.format(group=key)
        return self._sanitize(raw)

    def resolve(self, operation: 'OperationDescriptor') -> str:
        return self.directory(self.key_for(operation.path, operation.tags))

    @staticmethod
    def _sanitize(name: str) -> str:
        sanitized = re.sub(r'[-\s.]+', '_', name)
        sanitized = re.sub(r'[^A-Za-z0-9_]', '', sanitized)

        if sanitized and sanitized[0].isdigit():
            sanitized = '_' + sanitized

        if keyword.iskeyword(sanitized):
            sanitized = sanitized + '_'

        return sanitized or 'default'
