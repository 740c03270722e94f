"""Custom exceptions for oasforge.

This module defines the exception hierarchy used throughout oasforge. Every
error raised by the engine derives from OasForgeError so a caller can catch
them all with a single except clause, while the subclasses tell apart the
configuration, resolution, conflict and plugin failure classes.
"""


class OasForgeError(Exception):
    """Base exception for all oasforge errors.

    Example:
        try:
            codegen.generate()
        except OasForgeError as e:
            print(f"oasforge error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class SchemaError(OasForgeError):
    """Base exception for schema-related errors."""

    pass


class SchemaLoadError(SchemaError):
    """Failed to load an API document from a source.

    Attributes:
        source: The source path that failed to load.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, source: str, cause: Exception | None = None):
        self.source = source
        self.cause = cause
        message = f"Failed to load schema from '{source}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


class SchemaValidationError(SchemaError):
    """The loaded document is not a usable OpenAPI document.

    Attributes:
        source: The source path of the invalid document.
        errors: List of validation error messages.
    """

    def __init__(self, source: str, errors: list[str] | None = None):
        self.source = source
        self.errors = errors or []
        message = f"Schema validation failed for '{source}'"
        if errors:
            message += f': {"; ".join(errors)}'
        super().__init__(message)


class SchemaReferenceError(SchemaError):
    """Failed to resolve a $ref reference in the schema.

    Most unresolvable references degrade to an ``any`` node. This error is
    only raised when the missing name is needed to tell union members apart
    (discriminator mappings).

    Attributes:
        reference: The $ref string that could not be resolved.
        reason: Explanation of why the reference couldn't be resolved.
    """

    def __init__(self, reference: str, reason: str | None = None):
        self.reference = reference
        self.reason = reason
        message = f"Failed to resolve reference '{reference}'"
        if reason:
            message += f': {reason}'
        super().__init__(message)


class CodeGenerationError(OasForgeError):
    """Error during code generation.

    Attributes:
        context: Additional context about what was being generated.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self, message: str, context: str | None = None, cause: Exception | None = None
    ):
        self.context = context
        self.cause = cause
        full_message = message
        if context:
            full_message = f'{message} (while generating {context})'
        if cause:
            full_message += f': {cause}'
        super().__init__(full_message)


class OperationGenerationError(CodeGenerationError):
    """An operation could not be turned into an operation descriptor.

    The build keeps going for the other operations; the error is collected
    and reported with the build result.

    Attributes:
        operation_id: The operationId of the operation.
        method: The HTTP method of the operation.
        path: The URL path of the operation.
    """

    def __init__(
        self,
        operation_id: str,
        method: str | None = None,
        path: str | None = None,
        cause: Exception | None = None,
    ):
        self.operation_id = operation_id
        self.method = method
        self.path = path
        message = f"Failed to generate operation '{operation_id}'"
        if method and path:
            message += f' ({method.upper()} {path})'
        super().__init__(message, context=operation_id, cause=cause)


class PluginError(CodeGenerationError):
    """A plugin failed while setting up, building or completing.

    The whole orchestration run is aborted. Units produced by plugins that
    completed before the failure are kept for diagnostics.

    Attributes:
        plugin_name: The name of the failing plugin.
        partial_units: Output units of the plugins that completed successfully.
    """

    def __init__(
        self,
        plugin_name: str,
        cause: Exception | None = None,
        partial_units: list | None = None,
    ):
        self.plugin_name = plugin_name
        self.partial_units = partial_units or []
        super().__init__(
            f"Plugin '{plugin_name}' failed", context=plugin_name, cause=cause
        )


class ConfigurationError(OasForgeError):
    """Error in configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class PluginDependencyError(ConfigurationError):
    """A plugin declares a dependency that cannot be satisfied.

    Raised for dependencies on plugins missing from the active set, for
    dependency cycles and for result lookups of undeclared peers.

    Attributes:
        plugin_name: The plugin declaring the dependency.
        dependency: The offending dependency name, if any.
    """

    def __init__(self, plugin_name: str, dependency: str | None, reason: str):
        self.plugin_name = plugin_name
        self.dependency = dependency
        super().__init__(f"Plugin '{plugin_name}': {reason}")


class OutputError(OasForgeError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


class FileConflictError(OutputError):
    """Two output units claim the same path with incompatible content.

    Attributes:
        symbol: The conflicting export name, if the conflict is symbol-level.
        plugins: Names of the plugins that produced the conflicting units.
    """

    def __init__(
        self,
        output_path: str,
        symbol: str | None = None,
        plugins: tuple[str, ...] = (),
    ):
        self.symbol = symbol
        self.plugins = plugins
        super().__init__(output_path)
        message = f"Conflicting output for '{output_path}'"
        if symbol:
            message += f": export '{symbol}' is declared with different content"
        if plugins:
            message += f' (plugins: {", ".join(plugins)})'
        self.message = message
        self.args = (message,)


class HookError(OasForgeError):
    """A post-build hook command failed.

    Attributes:
        command: The hook command line.
        returncode: The exit status, None if the command could not start.
    """

    def __init__(self, command: str, returncode: int | None = None, output: str = ''):
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"Hook '{command}' failed"
        if returncode is not None:
            message += f' with exit code {returncode}'
        super().__init__(message)


class UnsupportedFeatureError(OasForgeError):
    """Attempted to use an unsupported feature.

    Attributes:
        feature: Description of the unsupported feature.
        suggestion: Optional suggestion for a workaround.
    """

    def __init__(self, feature: str, suggestion: str | None = None):
        self.feature = feature
        self.suggestion = suggestion
        message = f'Unsupported feature: {feature}'
        if suggestion:
            message += f'. {suggestion}'
        super().__init__(message)
