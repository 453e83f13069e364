"""
Core functionality for RuntimeKit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_app_dir,
    get_canonical_py_path,
    get_toolchain_python_bin,
    DirectoryError,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    symlinks_supported,
    clear_platform_cache,
)

from .output import CommandOutput

from .exceptions import (
    RuntimeKitError,
    ConfigError,
    InvalidVersionError,
    UnknownVersionError,
    DownloadFailedError,
    InsecureDownloadError,
    IntegrityMismatchError,
    ExtractionFailedError,
    MissingSharedLibrariesError,
    SelfEnvironmentError,
    EnvironmentSetupFailedError,
    ShimPublishFailedError,
)

__all__ = [
    "get_app_dir",
    "get_canonical_py_path",
    "get_toolchain_python_bin",
    "DirectoryError",
    "PlatformInfo",
    "detect_platform",
    "symlinks_supported",
    "clear_platform_cache",
    "CommandOutput",
    "RuntimeKitError",
    "ConfigError",
    "InvalidVersionError",
    "UnknownVersionError",
    "DownloadFailedError",
    "InsecureDownloadError",
    "IntegrityMismatchError",
    "ExtractionFailedError",
    "MissingSharedLibrariesError",
    "SelfEnvironmentError",
    "EnvironmentSetupFailedError",
    "ShimPublishFailedError",
]
