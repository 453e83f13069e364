"""
Pytest configuration and shared fixtures for RuntimeKit tests.
"""

from pathlib import Path

import pytest

from runtimekit.core.directory import APP_DIR_ENV
from runtimekit.core.platform import PlatformInfo, clear_platform_cache
from runtimekit.core.state import reset_forced_update

# Import test fixtures to make them available to all tests
# ruff: noqa: F401
from tests.fixtures.runtimes import fake_runner, python_archive

PROXY_VARIABLES = ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as fast unit tests")
    config.addinivalue_line(
        "markers",
        "integration: marks tests exercising several components on a real filesystem",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_process_state():
    """Forget per-process state between tests."""
    reset_forced_update()
    clear_platform_cache()
    yield
    reset_forced_update()
    clear_platform_cache()


@pytest.fixture
def app_dir(tmp_path: Path, monkeypatch) -> Path:
    """Isolated application directory, with proxies cleared."""
    directory = tmp_path / "runtimekit-home"
    directory.mkdir()
    monkeypatch.setenv(APP_DIR_ENV, str(directory))
    for var in PROXY_VARIABLES:
        monkeypatch.delenv(var, raising=False)
    return directory


@pytest.fixture
def linux_x64() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="x64")


@pytest.fixture
def windows_x64() -> PlatformInfo:
    return PlatformInfo(os="windows", arch="x64")
