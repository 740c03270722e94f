"""Writing of the rendered file set to disk.

Every Python file is compiled before anything touches the disk. Files are
then staged in a sibling directory and moved in place one by one, so an
interrupted write never leaves a half written file behind.
"""

import logging
import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from upath import UPath

from oasforge.exceptions import CodeGenerationError, OutputError

logger = logging.getLogger(__name__)

__all__ = ['FileWriter', 'WriteResult']


@dataclass
class WriteResult:
    """What a write changed on disk.

    Attributes:
        written: Files created or rewritten.
        unchanged: Files whose content was already up to date.
        removed: Stale files deleted by clean mode.
    """

    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


class FileWriter:
    """Writes a rendered file set below an output root.

    Example:
        >>> writer = FileWriter()
        >>> result = writer.write({'/out/models.py': source}, '/out', clean=True)
        >>> result.written
        ['/out/models.py']
    """

    def __init__(self, validate_syntax: bool = True):
        self.validate_syntax = validate_syntax

    def write(
        self,
        files: Mapping[str, str],
        output_root: str | Path | UPath,
        clean: bool = False,
    ) -> WriteResult:
        """Write every file, leaving unchanged files untouched.

        Args:
            files: Absolute path to content.
            output_root: Directory every file must live in.
            clean: Remove files of a previous build that are no longer
                produced, once every new file is in place.

        Raises:
            CodeGenerationError: If a Python file does not compile. Nothing
                has been written at that point.
            OutputError: If a file lies outside the output root or cannot be
                written.
        """
        root = Path(str(output_root))

        relative: dict[Path, str] = {}
        for path, content in files.items():
            try:
                rel = Path(str(path)).relative_to(root)
            except ValueError as e:
                raise OutputError(str(path), cause=e)
            if self.validate_syntax and rel.suffix == '.py':
                self._validate_python_syntax(content, str(path))
            relative[rel] = content

        previous = self._existing_files(root) if clean else set()

        staging = root.parent / f'.{root.name}.staging'
        result = WriteResult()
        try:
            if staging.exists():
                shutil.rmtree(staging)

            for rel, content in relative.items():
                target = root / rel
                if target.is_file() and target.read_text(encoding='utf-8') == content:
                    result.unchanged.append(str(target))
                    continue
                staged = staging / rel
                staged.parent.mkdir(parents=True, exist_ok=True)
                staged.write_text(content, encoding='utf-8')

            for rel in relative:
                staged = staging / rel
                if not staged.exists():
                    continue
                target = root / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(staged, target)
                result.written.append(str(target))
        except OSError as e:
            raise OutputError(str(root), cause=e)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        if clean:
            result.removed = self._remove_stale(root, previous, set(relative))

        logger.info(
            f'Wrote {len(result.written)} file(s), {len(result.unchanged)} unchanged, '
            f'{len(result.removed)} removed'
        )
        return result

    @staticmethod
    def _validate_python_syntax(content: str, path: str) -> None:
        try:
            compile(content, path, 'exec')
        except SyntaxError as e:
            raise CodeGenerationError(
                'Generated code is not valid Python', context=path, cause=e
            )

    @staticmethod
    def _existing_files(root: Path) -> set[Path]:
        if not root.is_dir():
            return set()
        return {path.relative_to(root) for path in root.rglob('*') if path.is_file()}

    @staticmethod
    def _remove_stale(root: Path, previous: set[Path], current: set[Path]) -> list[str]:
        removed = []
        for rel in sorted(previous - current):
            path = root / rel
            path.unlink(missing_ok=True)
            removed.append(str(path))

        # deepest first so emptied parents can go too
        directories = sorted(
            (p for p in root.rglob('*') if p.is_dir()),
            key=lambda p: len(p.parts),
            reverse=True,
        )
        for directory in directories:
            if not any(directory.iterdir()):
                directory.rmdir()
        return removed
