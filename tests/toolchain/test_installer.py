"""
Unit tests for runtime download and installation.

HTTP is mocked with ``responses``; an unregistered URL makes any
unexpected download fail loudly.
"""

import hashlib

import pytest
import responses

from runtimekit.core.config import Config
from runtimekit.core.exceptions import (
    DownloadFailedError,
    ExtractionFailedError,
    IntegrityMismatchError,
    UnknownVersionError,
)
from runtimekit.core.output import CommandOutput
from runtimekit.toolchain.installer import RuntimeInstaller, is_installed
from runtimekit.toolchain.metadata_registry import KnownBuild, RuntimeMetadataRegistry
from runtimekit.toolchain.versions import Version, VersionRequest
from tests.fixtures.runtimes import build_tar

URL = "https://example.com/cpython-3.10.11-linux-x64.tar.gz"
VERSION = Version("cpython", 3, 10, 11)


def _installer(app_dir, platform, sha256):
    registry = RuntimeMetadataRegistry(
        builds=[KnownBuild(VERSION, "linux", "x64", URL, sha256)]
    )
    return RuntimeInstaller(
        app_dir=app_dir, registry=registry, platform=platform, config=Config()
    )


class TestFetch:
    """Tests for RuntimeInstaller.fetch()."""

    @responses.activate
    def test_fresh_install(self, app_dir, linux_x64, python_archive, capsys):
        responses.add(responses.GET, URL, body=python_archive)
        installer = _installer(
            app_dir, linux_x64, hashlib.sha256(python_archive).hexdigest()
        )

        version = installer.fetch(VersionRequest.parse("3.10"))

        assert version == VERSION
        py_bin = app_dir / "py" / "cpython@3.10.11" / "bin" / "python3"
        assert installer.python_bin(version) == py_bin
        assert py_bin.is_file()
        assert is_installed(app_dir, VERSION, linux_x64)

        err = capsys.readouterr().err
        assert "Downloading cpython@3.10.11" in err
        assert "Checking hash" in err
        assert "success: Downloaded cpython@3.10.11" in err

    @responses.activate
    def test_already_installed_skips_download(self, app_dir, linux_x64, python_archive):
        responses.add(responses.GET, URL, body=python_archive)
        installer = _installer(app_dir, linux_x64, None)

        installer.fetch(VersionRequest.parse("3.10"), CommandOutput.QUIET)
        installer.fetch(VersionRequest.parse("3.10"), CommandOutput.QUIET)

        assert len(responses.calls) == 1

    def test_exact_request_skips_registry(self, app_dir, linux_x64):
        py_bin = app_dir / "py" / "cpython@3.10.11" / "bin" / "python3"
        py_bin.parent.mkdir(parents=True)
        py_bin.write_text("")
        installer = RuntimeInstaller(
            app_dir=app_dir,
            registry=RuntimeMetadataRegistry(builds=[]),
            platform=linux_x64,
            config=Config(),
        )

        assert installer.fetch(VersionRequest.parse("cpython@3.10.11")) == VERSION

    @responses.activate
    def test_directory_without_binary_is_reinstalled(
        self, app_dir, linux_x64, python_archive
    ):
        leftover = app_dir / "py" / "cpython@3.10.11"
        (leftover / "lib").mkdir(parents=True)
        responses.add(responses.GET, URL, body=python_archive)

        assert not is_installed(app_dir, VERSION, linux_x64)
        _installer(app_dir, linux_x64, None).fetch(
            VersionRequest.parse("cpython@3.10.11"), CommandOutput.QUIET
        )

        assert len(responses.calls) == 1
        assert is_installed(app_dir, VERSION, linux_x64)

    @responses.activate
    def test_missing_digest_proceeds_and_says_so(
        self, app_dir, linux_x64, python_archive, capsys
    ):
        responses.add(responses.GET, URL, body=python_archive)

        _installer(app_dir, linux_x64, None).fetch(VersionRequest.parse("3.10"))

        assert "hash check skipped (no hash available)" in capsys.readouterr().err
        assert is_installed(app_dir, VERSION, linux_x64)

    @responses.activate
    def test_integrity_mismatch_installs_nothing(self, app_dir, linux_x64, python_archive):
        responses.add(responses.GET, URL, body=python_archive)
        installer = _installer(app_dir, linux_x64, "0" * 64)

        with pytest.raises(IntegrityMismatchError):
            installer.fetch(VersionRequest.parse("3.10"), CommandOutput.QUIET)

        assert not (app_dir / "py" / "cpython@3.10.11").exists()

    @responses.activate
    def test_download_failure(self, app_dir, linux_x64):
        responses.add(responses.GET, URL, status=503)

        with pytest.raises(DownloadFailedError):
            _installer(app_dir, linux_x64, None).fetch(
                VersionRequest.parse("3.10"), CommandOutput.QUIET
            )

        assert not (app_dir / "py" / "cpython@3.10.11").exists()

    @responses.activate
    def test_unknown_version_makes_no_request(self, app_dir, linux_x64):
        with pytest.raises(UnknownVersionError):
            _installer(app_dir, linux_x64, None).fetch(VersionRequest.parse("3.12"))

        assert len(responses.calls) == 0

    @responses.activate
    def test_archive_without_interpreter(self, app_dir, linux_x64):
        archive = build_tar({"python/README": b"nothing to see"})
        responses.add(responses.GET, URL, body=archive)

        with pytest.raises(ExtractionFailedError, match="did not contain an interpreter"):
            _installer(app_dir, linux_x64, None).fetch(
                VersionRequest.parse("3.10"), CommandOutput.QUIET
            )

        assert not is_installed(app_dir, VERSION, linux_x64)

    @responses.activate
    def test_verbose_details(self, app_dir, linux_x64, python_archive, capsys):
        responses.add(responses.GET, URL, body=python_archive)

        _installer(app_dir, linux_x64, None).fetch(
            VersionRequest.parse("3.10"), CommandOutput.VERBOSE
        )

        err = capsys.readouterr().err
        assert f"download url: {URL}" in err
        assert "target dir:" in err
