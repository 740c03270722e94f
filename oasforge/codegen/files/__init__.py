"""Output file management for oasforge.

This package resolves where output units land, accumulates them into a file
set and writes the file set to disk.

Classes:
    FileManager: Accumulates units, detects conflicts and renders files.
    FileWriter: Validates and writes the rendered file set.
    GroupResolver: Resolves operations to group directories.
    OutputUnit: Content produced by one plugin for one target.
"""

from oasforge.codegen.files.grouping import Group, GroupResolver
from oasforge.codegen.files.manager import (
    FileManager,
    Import,
    ManifestEntry,
    OutputFile,
    OutputUnit,
    PathMode,
    infer_mode,
    resolve_path,
)
from oasforge.codegen.files.writer import FileWriter, WriteResult

__all__ = [
    'FileManager',
    'FileWriter',
    'Group',
    'GroupResolver',
    'Import',
    'ManifestEntry',
    'OutputFile',
    'OutputUnit',
    'PathMode',
    'WriteResult',
    'infer_mode',
    'resolve_path',
]
