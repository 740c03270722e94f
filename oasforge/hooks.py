"""Post-build hook runner.

Hooks are shell commands run in order once every generated file has been
written, typically formatters or linters. A failing hook is logged and
reported in its HookResult; it never undoes the files already written.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from oasforge.exceptions import HookError

logger = logging.getLogger(__name__)

__all__ = ['HookResult', 'run_hooks']


@dataclass(frozen=True)
class HookResult:
    command: str
    returncode: int | None
    output: str = ''
    error: HookError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_hooks(commands: list[str], cwd: str | Path, timeout: float | None = None) -> list[HookResult]:
    """Run hook commands sequentially in ``cwd``.

    Every command runs, failing or not, so that the results report each of
    them.
    """
    results = []
    for command in commands:
        logger.info(f'Running hook: {command}')
        try:
            completed = subprocess.run(
                shlex.split(command),
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (FileNotFoundError, subprocess.SubprocessError) as e:
            error = HookError(command, output=str(e))
            logger.warning(f'{error}: {e}')
            results.append(HookResult(command, None, str(e), error))
            continue

        output = (completed.stdout or '') + (completed.stderr or '')
        if completed.returncode != 0:
            error = HookError(command, completed.returncode, output)
            logger.warning(str(error))
            results.append(HookResult(command, completed.returncode, output, error))
        else:
            results.append(HookResult(command, 0, output))
    return results
