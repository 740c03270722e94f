import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FILENAMES = ['oasforge.yaml', 'oasforge.yml']


class InputConfig(BaseModel):
    """Where the API document is read from."""

    path: str = Field(..., description='Path to the OpenAPI document.')


class OutputConfig(BaseModel):
    """Where generated files are written."""

    path: str = Field(..., description='Output directory, relative to the build root.')

    clean: bool = Field(
        False,
        description='Remove the previous output directory once every plugin succeeded.',
    )

    banner: str | None = Field(
        'Generated by oasforge. Do not edit manually.',
        description='Comment placed on top of every generated file.',
    )


class HooksConfig(BaseModel):
    done: list[str] = Field(
        default_factory=list,
        description='Commands run in order after every file has been written.',
    )


class ResolverOptions(BaseModel):
    """Options of the schema resolution engine."""

    enum_as_const: bool = Field(
        False, description='Represent enumerations as literal constants.'
    )

    date_type: Literal['string', 'date'] = Field(
        'string', description='Whether date/time formats stay strings or become dates.'
    )

    unknown_type: Literal['any', 'unknown'] = Field(
        'any', description='Keyword used for schemas without any type information.'
    )


class PluginEntry(BaseModel):
    """A plugin of the active set, by name, with its raw options."""

    name: str = Field(..., description='Name of a built-in plugin.')

    options: dict[str, Any] = Field(
        default_factory=dict, description='Options validated by the plugin at setup.'
    )


class BuildConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='OASFORGE_')

    root: str = Field('.', description='Build root, output paths are relative to it.')

    input: InputConfig = Field(..., description='The API document.')

    output: OutputConfig = Field(..., description='Output settings.')

    plugins: list[PluginEntry] = Field(
        default_factory=list, description='Ordered list of output plugins.'
    )

    hooks: HooksConfig = Field(default_factory=HooksConfig)

    resolver: ResolverOptions = Field(default_factory=ResolverOptions)

    max_workers: int = Field(
        1, ge=1, description='Threads used for independent plugins and operations.'
    )


def load_yaml(path: str | Path) -> dict:
    import yaml

    return yaml.safe_load(Path(path).read_text())


def load_json(path: str | Path) -> dict:
    return json.loads(Path(path).read_text())


def load_config_file(path: str | Path) -> BuildConfig:
    path = Path(path)
    if path.suffix.lower() == '.json':
        return BuildConfig.model_validate(load_json(path))
    return BuildConfig.model_validate(load_yaml(path))


def get_config(path: str | None = None) -> BuildConfig:
    """Load configuration from a file, a default file or pyproject.toml."""
    if path:
        return load_config_file(path)

    cwd = os.getcwd()

    for filename in DEFAULT_FILENAMES:
        candidate = Path(cwd) / filename
        if candidate.exists():
            return load_config_file(candidate)

    candidate = Path(cwd) / 'pyproject.toml'

    if candidate.exists():
        import tomllib

        pyproject = tomllib.loads(candidate.read_text())
        tools = pyproject.get('tool', {})

        if 'oasforge' in tools:
            return BuildConfig.model_validate(tools['oasforge'])

    raise FileNotFoundError('config not found')
