"""Code generation module for oasforge.

This module provides the schema resolution engine, the operation generator
and the build orchestration of oasforge.

Main Components:
    - Codegen: Drives a build from the document to files on disk
    - Document: Query surface over an OpenAPI document
    - SchemaResolver: Turns JSON schemas into keyword trees
    - SchemaRegistry: Arena of the named definitions of a build
    - OperationGenerator: Resolves every operation into a descriptor
    - ImportCollector: Merges the imports of generated files

Example:
    >>> from oasforge.codegen import Codegen
    >>> from oasforge.config import get_config
    >>>
    >>> codegen = Codegen(get_config())
    >>> codegen.generate()
"""

from oasforge.codegen.ast_utils import ImportCollector
from oasforge.codegen.codegen import BuildIR, BuildResult, Codegen
from oasforge.codegen.document import Document
from oasforge.codegen.keywords import Keyword, SchemaNode, SchemaTree
from oasforge.codegen.operations import (
    Exclude,
    Include,
    OperationDescriptor,
    OperationGenerator,
    Override,
)
from oasforge.codegen.registry import DefinitionInfo, SchemaRegistry
from oasforge.codegen.schema import SchemaResolver

__all__ = [
    'BuildIR',
    'BuildResult',
    'Codegen',
    'DefinitionInfo',
    'Document',
    'Exclude',
    'ImportCollector',
    'Include',
    'Keyword',
    'OperationDescriptor',
    'OperationGenerator',
    'Override',
    'SchemaNode',
    'SchemaRegistry',
    'SchemaResolver',
    'SchemaTree',
]
