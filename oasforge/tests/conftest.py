"""Shared fixtures for building, writing and importing generated packages."""

import importlib
import sys

import pytest

from oasforge.codegen.codegen import Codegen
from oasforge.codegen.document import Document
from oasforge.config import BuildConfig, InputConfig, OutputConfig


@pytest.fixture
def make_codegen(tmp_path):
    """Factory of Codegen instances building into ``tmp_path``.

    The document is passed in memory; ``openapi.yaml`` is only named in the
    configuration and never read.
    """

    def make(spec, plugins, output='generated', **config):
        build_config = BuildConfig(
            root=str(tmp_path),
            input=InputConfig(path='openapi.yaml'),
            output=OutputConfig(path=output, banner=None),
            **config,
        )
        return Codegen(build_config, document=Document(spec), plugins=plugins)

    return make


@pytest.fixture
def import_package(tmp_path, monkeypatch):
    """Import a package generated below ``tmp_path``.

    The package and its submodules are dropped from ``sys.modules``
    afterwards so that later tests can generate a package of the same name.
    """
    monkeypatch.syspath_prepend(str(tmp_path))
    imported = []

    def load(name):
        imported.append(name.split('.')[0])
        importlib.invalidate_caches()
        return importlib.import_module(name)

    yield load

    for module in list(sys.modules):
        if any(module == name or module.startswith(f'{name}.') for name in imported):
            del sys.modules[module]
