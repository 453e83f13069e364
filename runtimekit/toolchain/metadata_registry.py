"""
Known-builds registry and version resolution.

This module loads the table of downloadable runtime builds and resolves a
possibly partial ``VersionRequest`` for a platform into a concrete
``Version`` plus the ``DownloadDescriptor`` needed to fetch it.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from runtimekit.core.exceptions import (
    InvalidVersionError,
    RuntimeKitError,
    UnknownVersionError,
)
from runtimekit.toolchain.versions import Version, VersionRequest

logger = logging.getLogger(__name__)


class RegistryError(RuntimeKitError):
    """Raised when the known-builds table cannot be loaded."""

    pass


@dataclass(frozen=True)
class DownloadDescriptor:
    """Where to fetch a build and, if known, its SHA256 digest."""

    url: str
    sha256: Optional[str] = None


@dataclass(frozen=True)
class KnownBuild:
    """One row of the known-builds table."""

    version: Version
    os: str
    arch: str
    url: str
    sha256: Optional[str] = None

    @property
    def descriptor(self) -> DownloadDescriptor:
        return DownloadDescriptor(url=self.url, sha256=self.sha256)


def _specificity(request: VersionRequest, version: Version) -> int:
    """
    Count how closely a candidate agrees with the request.

    Every pinned field that matches scores a point. When the request leaves
    the suffix open, plain builds score above suffixed variant builds.
    """
    score = 0
    for name in ("kind", "minor", "patch", "suffix"):
        wanted = getattr(request, name)
        if wanted is not None and wanted == getattr(version, name):
            score += 1
    if request.suffix is None and version.suffix is None:
        score += 1
    return score


class RuntimeMetadataRegistry:
    """
    Read-only table of known runtime builds.

    Example:
        >>> registry = RuntimeMetadataRegistry()
        >>> version, descriptor = registry.resolve(
        ...     VersionRequest.parse("3.10"), "linux", "x64"
        ... )
        >>> print(version, descriptor.url)
    """

    def __init__(
        self,
        metadata_path: Optional[Path] = None,
        builds: Optional[List[KnownBuild]] = None,
    ):
        """
        Args:
            metadata_path: Optional path to a builds JSON file. If None, uses
                the embedded python_builds.json
            builds: Explicit rows; when given no file is read

        Raises:
            RegistryError: If the metadata file cannot be loaded
        """
        if builds is not None:
            self.metadata_path = None
            self.builds = list(builds)
        else:
            self.metadata_path = metadata_path or self._get_default_metadata_path()
            self.builds = self._load_builds(self.metadata_path)
        logger.debug(f"Loaded registry with {len(self.builds)} builds")

    @staticmethod
    def _get_default_metadata_path() -> Path:
        return Path(__file__).parent.parent / "data" / "python_builds.json"

    @staticmethod
    def _load_builds(path: Path) -> List[KnownBuild]:
        if not path.exists():
            raise RegistryError(f"Metadata file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RegistryError(
                f"Invalid JSON in metadata file: {e}\nFile: {path}"
            ) from e

        if "builds" not in data:
            raise RegistryError(
                f"Invalid metadata structure: missing 'builds' key\nFile: {path}"
            )

        builds = []
        for entry in data["builds"]:
            builds.append(_parse_entry(entry, path))
        return builds

    def candidates(
        self, request: VersionRequest, os_name: str, arch: str
    ) -> List[KnownBuild]:
        """All builds for the platform that match every pinned field."""
        return [
            build
            for build in self.builds
            if build.os == os_name
            and build.arch == arch
            and request.matches(build.version)
        ]

    def lookup(
        self, request: VersionRequest, os_name: str, arch: str
    ) -> Optional[KnownBuild]:
        """
        Pick the best build for a request, or None.

        The most specific candidate wins; ties go to the newest version.
        """
        matching = self.candidates(request, os_name, arch)
        if not matching:
            return None
        return max(
            matching,
            key=lambda b: (_specificity(request, b.version), b.version.sort_key()),
        )

    def resolve(
        self, request: VersionRequest, os_name: str, arch: str
    ) -> Tuple[Version, DownloadDescriptor]:
        """
        Resolve a request to a concrete version and its download descriptor.

        Raises:
            UnknownVersionError: If no known build matches
        """
        build = self.lookup(request, os_name, arch)
        if build is None:
            raise UnknownVersionError(request, os_name, arch)
        logger.debug(f"Resolved {request} on {os_name}-{arch} to {build.version}")
        return build.version, build.descriptor

    def list_versions(self, os_name: str, arch: str) -> List[Version]:
        """Distinct versions available for a platform, newest first."""
        versions = {b.version for b in self.builds if b.os == os_name and b.arch == arch}
        return sorted(versions, key=Version.sort_key, reverse=True)


def _parse_entry(entry: Dict[str, Any], path: Path) -> KnownBuild:
    try:
        return KnownBuild(
            version=Version.parse(entry["version"]),
            os=entry["os"],
            arch=entry["arch"],
            url=entry["url"],
            sha256=entry.get("sha256") or None,
        )
    except (KeyError, TypeError, InvalidVersionError) as e:
        raise RegistryError(f"Invalid build entry {entry!r} in {path}: {e}") from e
