"""oasforge - Schema driven code generation from OpenAPI documents.

oasforge resolves the schemas and operations of an OpenAPI 3.x document into
a keyword-tagged intermediate representation and runs a set of output
plugins over it: pydantic models, httpx client functions and example
payload factories.

Quick Start:
    >>> from oasforge import Codegen, get_config
    >>>
    >>> codegen = Codegen(get_config('oasforge.yaml'))
    >>> codegen.generate()

CLI Usage:
    $ oasforge generate --config oasforge.yaml
    $ oasforge version
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version('oasforge')
except PackageNotFoundError:
    __version__ = 'unknown'

from oasforge.codegen.codegen import BuildResult, Codegen
from oasforge.config import BuildConfig, get_config
from oasforge.exceptions import (
    CodeGenerationError,
    ConfigurationError,
    FileConflictError,
    HookError,
    OasForgeError,
    OperationGenerationError,
    OutputError,
    PluginDependencyError,
    PluginError,
    SchemaError,
    SchemaLoadError,
    SchemaReferenceError,
    SchemaValidationError,
    UnsupportedFeatureError,
)

__all__ = [
    # Main classes
    'Codegen',
    'BuildResult',
    # Configuration
    'BuildConfig',
    'get_config',
    # Exceptions
    'OasForgeError',
    'SchemaError',
    'SchemaLoadError',
    'SchemaValidationError',
    'SchemaReferenceError',
    'CodeGenerationError',
    'OperationGenerationError',
    'PluginError',
    'ConfigurationError',
    'PluginDependencyError',
    'OutputError',
    'FileConflictError',
    'HookError',
    'UnsupportedFeatureError',
]
