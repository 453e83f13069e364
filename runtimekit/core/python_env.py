"""
Isolated Python environment construction.

This module turns an installed interpreter into the self-environment that
runtimekit runs its own tooling in:

1. ``python -m venv --upgrade-deps`` creates the environment (with
   ``--symlinks`` on Windows when the host allows it, since the stdlib
   venv module does not detect symlink support there by itself)
2. pip inside the environment is upgraded to the latest release
3. A pinned, fully version-locked manifest of internal dependencies is
   installed, so every machine ends up with identical tooling

Each step is an external command. A non-zero exit from any of them is
fatal; nothing continues after a failed step.
"""

import logging
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

from packaging.requirements import InvalidRequirement, Requirement

from runtimekit.core.config import Config, set_proxy_variables
from runtimekit.core.exceptions import EnvironmentSetupFailedError
from runtimekit.core.output import CommandOutput, echo
from runtimekit.core.platform import PlatformInfo, detect_platform, symlinks_supported
from runtimekit.core.process import CommandResult, run_command

logger = logging.getLogger(__name__)

# Internal dependencies of the self-environment. Every entry must be pinned
# with ``==``; bump them together with SELF_VERSION.
SELF_REQUIREMENTS = """
build==0.10.0
certifi==2022.12.7
charset-normalizer==3.1.0
click==8.1.3
distlib==0.3.6
filelock==3.12.0
idna==3.4
packaging==23.1
pip-tools==6.13.0
platformdirs==3.4.0
pyproject_hooks==1.0.0
requests==2.29.0
tomli==2.0.1
twine==4.0.2
unearth==0.9.0
urllib3==1.26.15
virtualenv==20.22.0
"""

STEP_CREATE = "create virtualenv"
STEP_UPGRADE_PIP = "upgrade pip"
STEP_INSTALL_DEPS = "install dependencies"


def parse_pinned_requirements(manifest: str) -> List[str]:
    """
    Parse a requirements manifest, insisting on exact pins.

    Blank lines and ``#`` comments are ignored.

    Returns:
        The requirement lines, normalized

    Raises:
        ValueError: If a line is not a valid requirement or is not pinned
            to a single exact version
    """
    requirements = []
    for raw_line in manifest.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            req = Requirement(line)
        except InvalidRequirement as e:
            raise ValueError(f"Invalid requirement {line!r}: {e}") from e

        specs = list(req.specifier)
        if len(specs) != 1 or specs[0].operator not in ("==", "==="):
            raise ValueError(f"Requirement {line!r} is not pinned to an exact version")
        if "*" in specs[0].version:
            raise ValueError(f"Requirement {line!r} uses a wildcard version")
        requirements.append(str(req))
    return requirements


def venv_bin_dir(venv_dir: Path, platform: Optional[PlatformInfo] = None) -> Path:
    """Scripts directory of a virtualenv."""
    platform = platform or detect_platform()
    return venv_dir / ("Scripts" if platform.is_windows else "bin")


def venv_python(venv_dir: Path, platform: Optional[PlatformInfo] = None) -> Path:
    """Interpreter of a virtualenv."""
    platform = platform or detect_platform()
    name = "python.exe" if platform.is_windows else "python"
    return venv_bin_dir(venv_dir, platform) / name


def get_site_packages(
    venv_dir: Path,
    python_version: tuple,
    platform: Optional[PlatformInfo] = None,
) -> Path:
    """
    site-packages of a virtualenv.

    Args:
        venv_dir: Environment root
        python_version: ``(major, minor)`` of the environment's interpreter
    """
    platform = platform or detect_platform()
    if platform.is_windows:
        return venv_dir / "Lib" / "site-packages"
    major, minor = python_version[:2]
    return venv_dir / "lib" / f"python{major}.{minor}" / "site-packages"


def get_pip_module(
    venv_dir: Path,
    python_version: tuple,
    platform: Optional[PlatformInfo] = None,
) -> Path:
    """Returns the pip package directory of a virtualenv."""
    return get_site_packages(venv_dir, python_version, platform) / "pip"


def get_pip_runner(
    venv_dir: Path,
    python_version: tuple,
    platform: Optional[PlatformInfo] = None,
) -> Path:
    """Returns pip's standalone runner script inside a virtualenv."""
    return get_pip_module(venv_dir, python_version, platform) / "__pip-runner__.py"


class EnvironmentBuilder:
    """
    Builds an isolated environment from an installed interpreter.

    Example:
        >>> builder = EnvironmentBuilder()
        >>> builder.build(py_bin, app_dir / "self", CommandOutput.NORMAL)
    """

    def __init__(
        self,
        platform: Optional[PlatformInfo] = None,
        config: Optional[Config] = None,
        runner: Callable[..., CommandResult] = run_command,
    ):
        self.platform = platform or detect_platform()
        self.config = config or Config()
        self.runner = runner

    def use_symlinks(self) -> bool:
        """Whether ``--symlinks`` must be passed to the venv module."""
        if not self.platform.is_windows:
            # venv already defaults to symlinks on POSIX
            return False
        if self.config.use_symlinks is not None:
            return self.config.use_symlinks
        return symlinks_supported()

    def build(
        self,
        py_bin: Path,
        venv_dir: Path,
        output: CommandOutput = CommandOutput.NORMAL,
        requirements: str = SELF_REQUIREMENTS,
    ) -> Path:
        """
        Create the environment and install the pinned requirements.

        Returns:
            The environment directory

        Raises:
            EnvironmentSetupFailedError: Naming the step that failed
        """
        self.create_venv(py_bin, venv_dir)
        self.upgrade_pip(venv_dir, output)
        self.install_requirements(venv_dir, output, requirements)
        return venv_dir

    def create_venv(self, py_bin: Path, venv_dir: Path) -> None:
        args = [str(py_bin), "-m", "venv", "--upgrade-deps"]
        if self.use_symlinks():
            args.append("--symlinks")
        args.append(str(venv_dir))

        self._run(STEP_CREATE, args, self._base_env(), capture=True)
        logger.info(f"Created virtualenv at {venv_dir}")

    def upgrade_pip(
        self, venv_dir: Path, output: CommandOutput = CommandOutput.NORMAL
    ) -> None:
        echo(output, "Upgrading pip")
        args = [str(venv_python(venv_dir, self.platform)), "-m", "pip"]
        args += ["install", "--upgrade", "pip"]
        self._run_pip(STEP_UPGRADE_PIP, args, output)

    def install_requirements(
        self,
        venv_dir: Path,
        output: CommandOutput = CommandOutput.NORMAL,
        requirements: str = SELF_REQUIREMENTS,
    ) -> None:
        try:
            pinned = parse_pinned_requirements(requirements)
        except ValueError as e:
            raise EnvironmentSetupFailedError(STEP_INSTALL_DEPS, str(e)) from e

        # delete=False: Windows cannot reopen a file that is still open
        with tempfile.NamedTemporaryFile(
            "w", suffix=".txt", prefix="requirements-", delete=False, encoding="utf-8"
        ) as req_file:
            req_file.write("\n".join(pinned) + "\n")
        req_path = Path(req_file.name)

        try:
            echo(output, "Installing internal dependencies")
            args = [str(venv_python(venv_dir, self.platform)), "-m", "pip"]
            args += ["install", "-r", str(req_path)]
            self._run_pip(STEP_INSTALL_DEPS, args, output)
        finally:
            req_path.unlink(missing_ok=True)

    def _base_env(self) -> Dict[str, str]:
        return set_proxy_variables({}, self.config)

    def _run_pip(self, step: str, args: List[str], output: CommandOutput) -> None:
        env = self._base_env()
        if output.is_verbose:
            args.append("--verbose")
        else:
            args.append("--quiet")
            env["PYTHONWARNINGS"] = "ignore"
        # Let verbose pip output reach the terminal directly
        self._run(step, args, env, capture=not output.is_verbose)

    def _run(
        self, step: str, args: List[str], env: Dict[str, str], capture: bool
    ) -> CommandResult:
        try:
            result = self.runner(args, env=env, capture=capture)
        except OSError as e:
            raise EnvironmentSetupFailedError(
                step, f"unable to run {args[0]}: {e}"
            ) from e

        if not result.success:
            logger.error(f"Step '{step}' failed: {result.error_summary()}")
            raise EnvironmentSetupFailedError(step, result.error_summary())
        return result

