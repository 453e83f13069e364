"""
Runtime download and installation.

This module orchestrates acquiring a runtime build:
1. Return early if the requested version is already installed
2. Resolve the request against the known-builds registry
3. Download the archive over HTTPS
4. Verify its SHA256 digest (or report that no digest was available)
5. Unpack it into ``<app_dir>/py/<version>``

An install directory counts as installed only when the interpreter exists
at its known path inside it.
"""

import logging
from pathlib import Path
from typing import Optional

from runtimekit.core.config import Config
from runtimekit.core.directory import (
    get_app_dir,
    get_canonical_py_path,
    get_toolchain_python_bin,
)
from runtimekit.core.download import download_url
from runtimekit.core.exceptions import ExtractionFailedError
from runtimekit.core.filesystem import unpack_archive
from runtimekit.core.output import CommandOutput, echo, echo_verbose
from runtimekit.core.platform import PlatformInfo, detect_platform
from runtimekit.core.verification import verify_download
from runtimekit.toolchain.metadata_registry import RuntimeMetadataRegistry
from runtimekit.toolchain.versions import Version, VersionRequest

logger = logging.getLogger(__name__)

# python-build-standalone archives nest everything under "python/"
ARCHIVE_STRIP_COMPONENTS = 1


def is_installed(app_dir: Path, version: Version, platform: PlatformInfo) -> bool:
    """Both the install directory and its interpreter must exist."""
    target_dir = get_canonical_py_path(app_dir, version)
    py_bin = get_toolchain_python_bin(app_dir, version, platform.os)
    return target_dir.is_dir() and py_bin.is_file()


class RuntimeInstaller:
    """
    Fetches runtime builds into the application directory.

    Example:
        >>> installer = RuntimeInstaller()
        >>> version = installer.fetch(VersionRequest.parse("3.10"))
        >>> print(installer.python_bin(version))
    """

    def __init__(
        self,
        app_dir: Optional[Path] = None,
        registry: Optional[RuntimeMetadataRegistry] = None,
        platform: Optional[PlatformInfo] = None,
        config: Optional[Config] = None,
    ):
        self.app_dir = app_dir or get_app_dir()
        self.registry = registry or RuntimeMetadataRegistry()
        self.platform = platform or detect_platform()
        self.config = config or Config.load(self.app_dir)

    def install_dir(self, version: Version) -> Path:
        return get_canonical_py_path(self.app_dir, version)

    def python_bin(self, version: Version) -> Path:
        return get_toolchain_python_bin(self.app_dir, version, self.platform.os)

    def fetch(
        self,
        request: VersionRequest,
        output: CommandOutput = CommandOutput.NORMAL,
    ) -> Version:
        """
        Fetch a version if missing.

        Args:
            request: Version request; may be partial
            output: Verbosity for status lines and the progress bar

        Returns:
            The resolved version, installed

        Raises:
            UnknownVersionError: No known build matches the request
            DownloadFailedError: Transport error or non-2xx status
            IntegrityMismatchError: Digest mismatch
            ExtractionFailedError: Archive could not be unpacked
        """
        # Fully qualified requests can be satisfied without the table
        exact = request.to_version()
        if exact is not None and is_installed(self.app_dir, exact, self.platform):
            echo_verbose(output, "Python version already downloaded. Skipping.")
            return exact

        version, descriptor = self.registry.resolve(
            request, self.platform.os, self.platform.arch
        )

        target_dir = self.install_dir(version)
        echo_verbose(output, f"target dir: {target_dir}")
        if is_installed(self.app_dir, version, self.platform):
            echo_verbose(output, "Python version already downloaded. Skipping.")
            return version

        echo_verbose(output, f"download url: {descriptor.url}")
        echo(output, f"Downloading {version}")
        archive = download_url(descriptor.url, output, config=self.config)

        verify_download(archive, descriptor.sha256, output, source=descriptor.url)

        unpack_archive(archive, target_dir, ARCHIVE_STRIP_COMPONENTS)

        py_bin = self.python_bin(version)
        if not py_bin.is_file():
            raise ExtractionFailedError(
                f"Archive {descriptor.url} did not contain an interpreter at {py_bin}"
            )

        echo(output, f"success: Downloaded {version}")
        logger.info(f"Installed {version} into {target_dir}")
        return version
