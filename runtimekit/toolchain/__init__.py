"""
Runtime toolchain acquisition: version resolution, installation,
shared library validation and shim publication.
"""

from .versions import Version, VersionRequest
from .metadata_registry import (
    DownloadDescriptor,
    KnownBuild,
    RegistryError,
    RuntimeMetadataRegistry,
)
from .installer import RuntimeInstaller, is_installed
from .libraries import parse_missing_libraries, validate_shared_libraries
from .linking import LinkType, ShimPublisher, find_managing_executable, shim_names

__all__ = [
    "Version",
    "VersionRequest",
    "DownloadDescriptor",
    "KnownBuild",
    "RegistryError",
    "RuntimeMetadataRegistry",
    "RuntimeInstaller",
    "is_installed",
    "parse_missing_libraries",
    "validate_shared_libraries",
    "LinkType",
    "ShimPublisher",
    "find_managing_executable",
    "shim_names",
]
