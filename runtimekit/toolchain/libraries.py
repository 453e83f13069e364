"""
Shared library validation for freshly installed interpreters (Linux).

Standalone Python builds still link against a handful of system libraries
(libcrypt, libz, ...). When one of them is missing the interpreter cannot
start at all, so this check runs ``ldd`` right after installation and
fails with the list of missing libraries instead of an opaque loader error
later on.
"""

import logging
from pathlib import Path
from typing import List

from runtimekit.core.exceptions import MissingSharedLibrariesError, RuntimeKitError
from runtimekit.core.process import run_command

logger = logging.getLogger(__name__)

NOT_FOUND = "not found"


def parse_missing_libraries(ldd_output: str) -> List[str]:
    """
    Extract the unresolved dependencies from ``ldd`` output.

    Lines have the form ``libfoo.so.1 => /lib/libfoo.so.1 (0x...)``; a
    resolution of exactly ``not found`` marks a missing library.

    Returns:
        Sorted, de-duplicated library names
    """
    missing = set()
    for line in ldd_output.splitlines():
        line = line.strip()
        if " => " not in line:
            continue
        before, after = line.split(" => ", 1)
        if after.strip() == NOT_FOUND:
            missing.add(before.strip())
    return sorted(missing)


def validate_shared_libraries(py_bin: Path) -> None:
    """
    Fail if the interpreter has unresolved shared library dependencies.

    Args:
        py_bin: Path to the installed interpreter

    Raises:
        MissingSharedLibrariesError: If any dependency is not found
        RuntimeKitError: If ``ldd`` cannot be invoked
    """
    try:
        result = run_command(["ldd", py_bin])
    except OSError as e:
        raise RuntimeKitError(
            f"unable to invoke ldd on downloaded python binary {py_bin}: {e}"
        ) from e

    missing = parse_missing_libraries(result.stdout)
    if not missing:
        logger.debug(f"All shared libraries of {py_bin} resolved")
        return

    logger.error(f"Missing shared libraries for {py_bin}: {', '.join(missing)}")
    raise MissingSharedLibrariesError(missing)
