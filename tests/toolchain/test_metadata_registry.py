"""
Unit tests for the known-builds registry and version resolution.
"""

import json

import pytest

from runtimekit.core.exceptions import UnknownVersionError
from runtimekit.toolchain.metadata_registry import (
    DownloadDescriptor,
    KnownBuild,
    RegistryError,
    RuntimeMetadataRegistry,
)
from runtimekit.toolchain.versions import Version, VersionRequest


def _build(version, os_name="linux", arch="x64", sha256=None):
    parsed = Version.parse(version)
    return KnownBuild(
        version=parsed,
        os=os_name,
        arch=arch,
        url=f"https://example.com/{parsed}-{os_name}-{arch}.tar.gz",
        sha256=sha256,
    )


@pytest.fixture
def registry():
    return RuntimeMetadataRegistry(
        builds=[
            _build("cpython@3.10.9"),
            _build("cpython@3.10.11", sha256="ab" * 32),
            _build("cpython@3.10.11d"),
            _build("cpython@3.11.3"),
            _build("cpython@3.11.3", os_name="macos", arch="arm64"),
        ]
    )


class TestResolve:
    """Tests for RuntimeMetadataRegistry.resolve()."""

    def test_partial_request_picks_newest(self, registry):
        version, descriptor = registry.resolve(VersionRequest.parse("3.10"), "linux", "x64")

        assert version == Version("cpython", 3, 10, 11)
        assert descriptor == DownloadDescriptor(
            url="https://example.com/cpython@3.10.11-linux-x64.tar.gz",
            sha256="ab" * 32,
        )

    def test_major_only(self, registry):
        version, _ = registry.resolve(VersionRequest.parse("3"), "linux", "x64")
        assert version == Version("cpython", 3, 11, 3)

    def test_exact_request(self, registry):
        version, _ = registry.resolve(VersionRequest.parse("cpython@3.10.9"), "linux", "x64")
        assert version == Version("cpython", 3, 10, 9)

    def test_plain_build_preferred_over_variant(self, registry):
        version, _ = registry.resolve(VersionRequest.parse("3.10.11"), "linux", "x64")
        assert version.suffix is None

    def test_variant_on_request(self, registry):
        version, descriptor = registry.resolve(
            VersionRequest.parse("3.10.11d"), "linux", "x64"
        )
        assert version.suffix == "d"
        assert descriptor.sha256 is None

    def test_platform_filter(self, registry):
        version, _ = registry.resolve(VersionRequest.parse("3"), "macos", "arm64")
        assert version == Version("cpython", 3, 11, 3)

    def test_unknown_version(self, registry):
        with pytest.raises(UnknownVersionError) as exc_info:
            registry.resolve(VersionRequest.parse("3.7"), "linux", "x64")

        assert str(exc_info.value) == "unknown version 3.7 for linux-x64"

    def test_unknown_platform(self, registry):
        with pytest.raises(UnknownVersionError):
            registry.resolve(VersionRequest.parse("3.10"), "windows", "x64")

    def test_list_versions(self, registry):
        versions = registry.list_versions("linux", "x64")
        assert versions[0] == Version("cpython", 3, 11, 3)
        assert Version("cpython", 3, 10, 9) == versions[-1]


class TestEmbeddedTable:
    def test_internal_runtime_is_available_everywhere(self):
        registry = RuntimeMetadataRegistry()
        for os_name, arch in [
            ("linux", "x64"),
            ("linux", "arm64"),
            ("macos", "x64"),
            ("macos", "arm64"),
            ("windows", "x64"),
        ]:
            version, descriptor = registry.resolve(
                VersionRequest.parse("cpython@3.10"), os_name, arch
            )
            assert version == Version("cpython", 3, 10, 11)
            assert descriptor.url.startswith("https://")

    def test_every_url_is_https(self):
        for build in RuntimeMetadataRegistry().builds:
            assert build.url.startswith("https://")


class TestLoading:
    def test_custom_path(self, tmp_path):
        path = tmp_path / "builds.json"
        path.write_text(
            json.dumps(
                {
                    "builds": [
                        {
                            "version": "cpython@3.12.0",
                            "os": "linux",
                            "arch": "x64",
                            "url": "https://example.com/3.12.tar.gz",
                        }
                    ]
                }
            )
        )

        registry = RuntimeMetadataRegistry(metadata_path=path)

        assert registry.builds[0].sha256 is None
        assert registry.builds[0].version == Version("cpython", 3, 12, 0)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError, match="not found"):
            RuntimeMetadataRegistry(metadata_path=tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "builds.json"
        path.write_text("{nope")
        with pytest.raises(RegistryError, match="Invalid JSON"):
            RuntimeMetadataRegistry(metadata_path=path)

    def test_missing_builds_key(self, tmp_path):
        path = tmp_path / "builds.json"
        path.write_text("{}")
        with pytest.raises(RegistryError, match="missing 'builds' key"):
            RuntimeMetadataRegistry(metadata_path=path)

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "builds.json"
        path.write_text(json.dumps({"builds": [{"version": "3.10", "os": "linux"}]}))
        with pytest.raises(RegistryError, match="Invalid build entry"):
            RuntimeMetadataRegistry(metadata_path=path)
