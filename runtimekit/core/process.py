"""
Subprocess runner.

External tools (the interpreter's venv module, pip, ldd) are invoked
through ``run_command`` so callers only decide *which* command runs with
*what* arguments and environment, and tests can replace a single function.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Exit status and captured output of an external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def error_summary(self, max_lines: int = 10) -> str:
        """Last lines of stderr (or stdout) for error messages."""
        text = (self.stderr or self.stdout or "").strip()
        if not text:
            return f"exit status {self.returncode}"
        lines = text.splitlines()[-max_lines:]
        return "\n".join(lines)


def run_command(
    args: Sequence[Union[str, Path]],
    env: Optional[Dict[str, str]] = None,
    capture: bool = True,
) -> CommandResult:
    """
    Run an external command and wait for it.

    Args:
        args: Program and arguments
        env: Extra environment variables layered over ``os.environ``
        capture: Capture stdout/stderr; when False the child inherits them

    Returns:
        CommandResult

    Raises:
        OSError: If the program cannot be started at all
    """
    cmd = [str(a) for a in args]
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    logger.debug(f"Running: {' '.join(cmd)}")
    result = subprocess.run(
        cmd,
        env=full_env,
        capture_output=capture,
        text=capture,
        check=False,
    )
    logger.debug(f"Command exited with {result.returncode}: {cmd[0]}")

    return CommandResult(
        args=cmd,
        returncode=result.returncode,
        stdout=(result.stdout or "") if capture else "",
        stderr=(result.stderr or "") if capture else "",
    )
