"""
Self-environment bootstrap.

runtimekit runs its internal tooling (pip-tools, build, twine, ...) from a
private virtualenv in ``<app_dir>/self``. ``ensure_self_venv`` makes sure
that environment exists and matches the running version of runtimekit:

    gate current?  -> done
    stale          -> remove old self/ and pip-tools/
                   -> fetch pinned interpreter (resolve, download, verify,
                      unpack)
                   -> check shared libraries (Linux only)
                   -> create venv, upgrade pip, install pinned requirements
                   -> republish the python shims
                   -> record the tool version (last)

Any failure leaves the tool version unrecorded, so the next invocation
repeats the whole sequence.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from runtimekit.core.config import Config
from runtimekit.core.directory import (
    get_app_dir,
    get_pip_tools_dir,
    get_self_venv_dir,
    get_shims_dir,
)
from runtimekit.core.exceptions import SelfEnvironmentError
from runtimekit.core.filesystem import FilesystemError, safe_rmtree
from runtimekit.core.output import CommandOutput, echo
from runtimekit.core.platform import PlatformInfo, detect_platform
from runtimekit.core.python_env import EnvironmentBuilder
from runtimekit.core.state import SelfUpdateGate
from runtimekit.toolchain.installer import RuntimeInstaller
from runtimekit.toolchain.libraries import validate_shared_libraries
from runtimekit.toolchain.linking import ShimPublisher, find_managing_executable
from runtimekit.toolchain.versions import VersionRequest

logger = logging.getLogger(__name__)

SELF_PYTHON_VERSION = VersionRequest(kind="cpython", major=3, minor=10)

# Bump on every change that needs the self-environment rebuilt.
SELF_VERSION = 3


class SelfBootstrapper:
    """
    Builds and refreshes the self-environment.

    Collaborators default to the real implementations and can be replaced
    individually.
    """

    def __init__(
        self,
        app_dir: Optional[Path] = None,
        platform: Optional[PlatformInfo] = None,
        config: Optional[Config] = None,
        installer: Optional[RuntimeInstaller] = None,
        builder: Optional[EnvironmentBuilder] = None,
        publisher: Optional[ShimPublisher] = None,
        gate: Optional[SelfUpdateGate] = None,
        tool_version: int = SELF_VERSION,
    ):
        self.app_dir = app_dir or get_app_dir()
        self.platform = platform or detect_platform()
        self.config = config or Config.load(self.app_dir)
        self.installer = installer or RuntimeInstaller(
            app_dir=self.app_dir, platform=self.platform, config=self.config
        )
        self.builder = builder or EnvironmentBuilder(
            platform=self.platform, config=self.config
        )
        self.publisher = publisher or ShimPublisher(
            platform=self.platform, config=self.config
        )
        self.gate = gate or SelfUpdateGate(self.app_dir, tool_version)

        # Only Linux resolves shared libraries in a way worth checking up front
        self.library_validator: Optional[Callable[[Path], None]] = (
            validate_shared_libraries if self.platform.is_linux else None
        )

    @property
    def venv_dir(self) -> Path:
        return get_self_venv_dir(self.app_dir)

    def ensure(self, output: CommandOutput = CommandOutput.NORMAL) -> Path:
        """
        Return the self-environment, bootstrapping it if needed.

        Raises:
            RuntimeKitError: Any failure of a bootstrap step
        """
        venv_dir = self.venv_dir

        if venv_dir.is_dir():
            if self.gate.is_up_to_date():
                return venv_dir
            echo(output, "detected outdated runtimekit internals. Refreshing")
            self._remove_previous()

        echo(output, "Bootstrapping runtimekit internals")

        version = self.installer.fetch(SELF_PYTHON_VERSION, output)
        py_bin = self.installer.python_bin(version)

        if self.library_validator is not None:
            self.library_validator(py_bin)

        self.builder.build(py_bin, venv_dir, output)
        self.update_shims()

        self.gate.mark_current()
        logger.info(f"Self-environment ready at {venv_dir} (internal {version})")
        return venv_dir

    def update_shims(self) -> None:
        """Republish the core shims pointing at the managing executable."""
        shims_dir = get_shims_dir(self.app_dir)
        shims_dir.mkdir(parents=True, exist_ok=True)
        target = find_managing_executable(shims_dir, self.platform)
        self.publisher.publish(shims_dir, target)

    def _remove_previous(self) -> None:
        for path in (self.venv_dir, get_pip_tools_dir(self.app_dir)):
            try:
                safe_rmtree(path, require_prefix=self.app_dir)
            except (FilesystemError, ValueError) as e:
                raise SelfEnvironmentError(
                    f"could not remove {path.name} for update: {e}"
                ) from e
            logger.debug(f"Removed {path}")


def ensure_self_venv(
    output: CommandOutput = CommandOutput.NORMAL, app_dir: Optional[Path] = None
) -> Path:
    """
    Bootstrap the venv for runtimekit itself.

    Example:
        >>> venv = ensure_self_venv(CommandOutput.QUIET)
    """
    return SelfBootstrapper(app_dir=app_dir).ensure(output)


def update_core_shims(
    shims_dir: Path,
    target: Path,
    platform: Optional[PlatformInfo] = None,
    config: Optional[Config] = None,
) -> None:
    """Publish python shims in ``shims_dir`` pointing at ``target``."""
    ShimPublisher(platform=platform, config=config).publish(shims_dir, target)
