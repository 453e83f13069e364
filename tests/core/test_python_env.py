"""
Unit tests for the isolated environment builder.

External commands are recorded by a fake runner; these tests check which
commands run, in what order, with which arguments and environment.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from runtimekit.core.config import Config
from runtimekit.core.exceptions import EnvironmentSetupFailedError
from runtimekit.core.output import CommandOutput
from runtimekit.core.python_env import (
    SELF_REQUIREMENTS,
    STEP_CREATE,
    STEP_INSTALL_DEPS,
    STEP_UPGRADE_PIP,
    EnvironmentBuilder,
    get_pip_module,
    get_pip_runner,
    get_site_packages,
    parse_pinned_requirements,
    venv_python,
)
from tests.fixtures.runtimes import FakeRunner

PY_BIN = Path("/opt/rk/py/cpython@3.10.11/bin/python3")


@pytest.fixture(autouse=True)
def no_proxies(monkeypatch):
    for var in ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"):
        monkeypatch.delenv(var, raising=False)


class TestParsePinnedRequirements:
    def test_self_requirements_are_pinned(self):
        pinned = parse_pinned_requirements(SELF_REQUIREMENTS)
        assert "pip-tools==6.13.0" in pinned
        assert len(pinned) == 17

    def test_comments_and_blank_lines(self):
        assert parse_pinned_requirements("\n# tools\nbuild==0.10.0  # pep517\n") == [
            "build==0.10.0"
        ]

    @pytest.mark.parametrize(
        "line", ["build", "build>=0.10", "build==0.*", "build==1.0,<2", "not a req!"]
    )
    def test_rejects_unpinned(self, line):
        with pytest.raises(ValueError):
            parse_pinned_requirements(line)


class TestVenvPaths:
    def test_posix(self, tmp_path, linux_x64):
        assert venv_python(tmp_path, linux_x64) == tmp_path / "bin" / "python"
        assert get_site_packages(tmp_path, (3, 10), linux_x64) == (
            tmp_path / "lib" / "python3.10" / "site-packages"
        )

    def test_windows(self, tmp_path, windows_x64):
        assert venv_python(tmp_path, windows_x64) == tmp_path / "Scripts" / "python.exe"
        assert get_site_packages(tmp_path, (3, 10), windows_x64) == (
            tmp_path / "Lib" / "site-packages"
        )

    def test_pip_locations(self, tmp_path, linux_x64):
        pip = tmp_path / "lib" / "python3.10" / "site-packages" / "pip"
        assert get_pip_module(tmp_path, (3, 10), linux_x64) == pip
        assert get_pip_runner(tmp_path, (3, 10), linux_x64) == pip / "__pip-runner__.py"


class TestEnvironmentBuilder:
    """Tests for EnvironmentBuilder.build()."""

    def test_command_sequence(self, tmp_path, linux_x64, fake_runner):
        venv_dir = tmp_path / "self"
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=fake_runner)

        builder.build(PY_BIN, venv_dir, CommandOutput.NORMAL)

        calls = [c["args"] for c in fake_runner.calls]
        venv_py = str(venv_dir / "bin" / "python")
        assert calls[0] == [str(PY_BIN), "-m", "venv", "--upgrade-deps", str(venv_dir)]
        assert calls[1] == [venv_py, "-m", "pip", "install", "--upgrade", "pip", "--quiet"]
        assert calls[2][:5] == [venv_py, "-m", "pip", "install", "-r"]
        assert calls[2][-1] == "--quiet"
        assert len(calls) == 3

    def test_quiet_pip_suppresses_warnings(self, tmp_path, linux_x64, fake_runner):
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=fake_runner)
        builder.build(PY_BIN, tmp_path / "self", CommandOutput.NORMAL)

        for call in fake_runner.calls[1:]:
            assert call["env"]["PYTHONWARNINGS"] == "ignore"
            assert call["capture"] is True

    def test_verbose_pip(self, tmp_path, linux_x64, fake_runner):
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=fake_runner)
        builder.build(PY_BIN, tmp_path / "self", CommandOutput.VERBOSE)

        for call in fake_runner.calls[1:]:
            assert call["args"][-1] == "--verbose"
            assert "PYTHONWARNINGS" not in call["env"]
            assert call["capture"] is False

    def test_status_lines(self, tmp_path, linux_x64, fake_runner, capsys):
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=fake_runner)
        builder.build(PY_BIN, tmp_path / "self", CommandOutput.NORMAL)

        err = capsys.readouterr().err
        assert "Upgrading pip" in err
        assert "Installing internal dependencies" in err

    def test_requirements_file_contents_and_cleanup(self, tmp_path, linux_x64):
        seen = {}

        def capture_requirements(args):
            if "-r" in args:
                path = Path(args[args.index("-r") + 1])
                seen["path"] = path
                seen["content"] = path.read_text(encoding="utf-8")

        runner = FakeRunner(on_call=capture_requirements)
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=runner)
        builder.build(PY_BIN, tmp_path / "self", requirements="build==0.10.0\nidna==3.4\n")

        assert seen["content"] == "build==0.10.0\nidna==3.4\n"
        assert not seen["path"].exists()

    def test_proxy_exported_to_every_step(self, tmp_path, linux_x64, fake_runner):
        config = Config(https_proxy="http://proxy.internal:3128")
        builder = EnvironmentBuilder(platform=linux_x64, config=config, runner=fake_runner)

        builder.build(PY_BIN, tmp_path / "self")

        for call in fake_runner.calls:
            assert call["env"]["HTTPS_PROXY"] == "http://proxy.internal:3128"
            assert call["env"]["https_proxy"] == "http://proxy.internal:3128"

    def test_windows_symlinks_flag(self, tmp_path, windows_x64, fake_runner):
        builder = EnvironmentBuilder(
            platform=windows_x64, config=Config(use_symlinks=True), runner=fake_runner
        )
        builder.build(PY_BIN, tmp_path / "self")

        create = fake_runner.calls[0]["args"]
        assert create[-2:] == ["--symlinks", str(tmp_path / "self")]
        assert fake_runner.calls[1]["args"][0] == str(
            tmp_path / "self" / "Scripts" / "python.exe"
        )

    def test_windows_without_symlink_support(self, windows_x64):
        builder = EnvironmentBuilder(platform=windows_x64, config=Config())
        with patch(
            "runtimekit.core.python_env.symlinks_supported", return_value=False
        ):
            assert builder.use_symlinks() is False

    def test_posix_never_passes_symlinks(self, linux_x64):
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(use_symlinks=True))
        assert builder.use_symlinks() is False

    @pytest.mark.parametrize(
        "failing_call,step",
        [(0, STEP_CREATE), (1, STEP_UPGRADE_PIP), (2, STEP_INSTALL_DEPS)],
    )
    def test_failure_names_step_and_stops(self, tmp_path, linux_x64, failing_call, step):
        runner = FakeRunner(results={failing_call: 1})
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=runner)

        with pytest.raises(EnvironmentSetupFailedError) as exc_info:
            builder.build(PY_BIN, tmp_path / "self")

        assert exc_info.value.step == step
        assert "something broke" in str(exc_info.value)
        assert len(runner.calls) == failing_call + 1

    def test_runner_oserror(self, tmp_path, linux_x64):
        def broken_runner(args, env=None, capture=True):
            raise FileNotFoundError(args[0])

        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=broken_runner)

        with pytest.raises(EnvironmentSetupFailedError) as exc_info:
            builder.build(PY_BIN, tmp_path / "self")

        assert exc_info.value.step == STEP_CREATE

    def test_invalid_manifest_fails_before_running_pip(self, tmp_path, linux_x64, fake_runner):
        builder = EnvironmentBuilder(platform=linux_x64, config=Config(), runner=fake_runner)

        with pytest.raises(EnvironmentSetupFailedError) as exc_info:
            builder.build(PY_BIN, tmp_path / "self", requirements="build>=1\n")

        assert exc_info.value.step == STEP_INSTALL_DEPS
        assert len(fake_runner.calls) == 2
