"""
Platform detection for RuntimeKit.

This module detects the current operating system and CPU architecture and
normalizes them to the identifiers used by the known-builds table
(e.g. ``linux``/``x64``, ``macos``/``arm64``). It also answers platform
capability questions that change how runtimes are installed, such as
whether the process may create symbolic links.

Usage:
    from runtimekit.core.platform import detect_platform

    platform_info = detect_platform()
    print(f"Platform string: {platform_info.platform_string()}")
"""

import functools
import logging
import os
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformInfo:
    """
    Platform identifiers used for build selection.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
    """

    os: str
    arch: str

    def platform_string(self) -> str:
        """
        Get canonical platform string (e.g., 'linux-x64', 'macos-arm64').

        Example:
            >>> PlatformInfo('linux', 'x64').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def is_linux(self) -> bool:
        return self.os == "linux"

    def __str__(self) -> str:
        return self.platform_string()


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo instance with detected platform information

    Raises:
        RuntimeError: If the operating system is not supported
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


@functools.lru_cache(maxsize=1)
def symlinks_supported() -> bool:
    """
    Check whether this process can create symbolic links.

    Always true on POSIX. On Windows symlink creation needs either the
    SeCreateSymbolicLink privilege or developer mode, so it is probed by
    creating a throwaway link in the temp directory.
    """
    if os.name != "nt":
        return True

    temp_dir = Path(tempfile.gettempdir())
    test_target = temp_dir / f"runtimekit_symlink_target_{os.getpid()}"
    test_link = temp_dir / f"runtimekit_symlink_{os.getpid()}"

    try:
        test_target.touch(exist_ok=True)
        os.symlink(test_target, test_link)
        return True
    except OSError as e:
        logger.debug(f"Symlinks not supported: {e}")
        return False
    finally:
        for path in (test_link, test_target):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                pass


def clear_platform_cache():
    """
    Clear the cached platform detection results.

    Useful for testing or when platform information changes.
    """
    detect_platform.cache_clear()
    symlinks_supported.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "symlinks_supported",
    "clear_platform_cache",
]
