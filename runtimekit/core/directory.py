"""
Directory structure management for RuntimeKit.

This module resolves the application directory and the fixed layout below
it. Every other module asks this one for paths instead of joining them
itself, so the on-disk layout is defined in exactly one place.

Directory Structure:
    Application directory (~/.runtimekit/ or %USERPROFILE%\\.runtimekit\\):
        - self/               : Self-environment (isolated venv for internals)
          - tool-version.txt  : Internal tool version the venv was built for
        - pip-tools/          : Legacy tool directory removed on rebuild
        - py/<version>/       : Installed runtime toolchains
        - shims/              : Published python/python3 entrypoints
        - config.yaml         : Optional user configuration
"""

import os
from pathlib import Path

from runtimekit.core.exceptions import RuntimeKitError

APP_DIR_ENV = "RUNTIMEKIT_HOME"

SELF_DIR_NAME = "self"
PIP_TOOLS_DIR_NAME = "pip-tools"
TOOLCHAINS_DIR_NAME = "py"
SHIMS_DIR_NAME = "shims"
TOOL_VERSION_FILE = "tool-version.txt"
CONFIG_FILE_NAME = "config.yaml"


class DirectoryError(RuntimeKitError):
    """Base exception for directory-related errors."""

    pass


def get_app_dir() -> Path:
    """
    Get the application directory path.

    The ``RUNTIMEKIT_HOME`` environment variable takes precedence over the
    platform default. A relative override is made absolute against the
    current directory.

    Returns:
        Path: The application directory path.
            - Windows: %USERPROFILE%\\.runtimekit
            - Linux/macOS: ~/.runtimekit

    Example:
        >>> app_dir = get_app_dir()
        >>> print(app_dir)
        /home/user/.runtimekit  # on Linux
    """
    override = os.environ.get(APP_DIR_ENV)
    if override:
        return Path(override).expanduser().absolute()

    if os.name == "nt":  # Windows
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine application directory."
            )
        return Path(user_profile) / ".runtimekit"
    else:  # Linux/macOS
        return Path.home() / ".runtimekit"


def get_self_venv_dir(app_dir: Path) -> Path:
    """Self-environment root."""
    return app_dir / SELF_DIR_NAME


def get_pip_tools_dir(app_dir: Path) -> Path:
    return app_dir / PIP_TOOLS_DIR_NAME


def get_tool_version_file(app_dir: Path) -> Path:
    """Marker recording the internal tool version of the self-environment."""
    return get_self_venv_dir(app_dir) / TOOL_VERSION_FILE


def get_toolchains_dir(app_dir: Path) -> Path:
    return app_dir / TOOLCHAINS_DIR_NAME


def get_shims_dir(app_dir: Path) -> Path:
    return app_dir / SHIMS_DIR_NAME


def get_config_file(app_dir: Path) -> Path:
    return app_dir / CONFIG_FILE_NAME


def get_canonical_py_path(app_dir: Path, version) -> Path:
    """
    Get the install directory for a resolved runtime version.

    Args:
        app_dir: Application directory.
        version: Resolved ``Version``; its canonical string is the key.

    Returns:
        Path: ``<app_dir>/py/<version>``

    Example:
        >>> get_canonical_py_path(Path("/home/u/.runtimekit"), version)
        PosixPath('/home/u/.runtimekit/py/cpython@3.10.11')
    """
    return get_toolchains_dir(app_dir) / str(version)


def get_toolchain_python_bin(app_dir: Path, version, os_name: str = "") -> Path:
    """
    Get the interpreter path inside an install directory.

    The presence of this file is the signal that an installation completed.

    Args:
        app_dir: Application directory.
        version: Resolved ``Version``.
        os_name: Normalized OS name; defaults to the running OS.

    Returns:
        Path: ``py/<version>/python.exe`` on Windows,
        ``py/<version>/bin/python3`` elsewhere.
    """
    if not os_name:
        os_name = "windows" if os.name == "nt" else "posix"

    install_dir = get_canonical_py_path(app_dir, version)
    if os_name == "windows":
        return install_dir / "python.exe"
    return install_dir / "bin" / "python3"
