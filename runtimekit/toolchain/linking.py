"""
Shim publication.

The shims directory holds ``python``/``python3`` (``python.exe``/
``pythonw.exe`` on Windows) entrypoints that are links to the runtimekit
executable, so running ``python`` from a shell goes through runtimekit.

Which kind of link is tried first is a per-platform policy: an ordered
list of strategies, each tried until one succeeds. The defaults prefer a
symbolic link and fall back to a hard link; the order can be overridden
per platform in the configuration.
"""

import logging
import os
import shutil
import sys
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from runtimekit.core.config import Config
from runtimekit.core.exceptions import RuntimeKitError, ShimPublishFailedError
from runtimekit.core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)

EXECUTABLE_NAME = "runtimekit"


class LinkType(Enum):
    """Types of filesystem links."""

    SYMLINK = "symlink"
    HARDLINK = "hardlink"


# Windows symlinks need a privilege not everyone has; hard links do not.
DEFAULT_LINK_ORDER: Dict[str, List[LinkType]] = {
    "linux": [LinkType.SYMLINK, LinkType.HARDLINK],
    "macos": [LinkType.SYMLINK, LinkType.HARDLINK],
    "windows": [LinkType.SYMLINK, LinkType.HARDLINK],
}
FALLBACK_LINK_ORDER = [LinkType.SYMLINK, LinkType.HARDLINK]


def shim_names(platform: PlatformInfo) -> List[str]:
    """Entrypoint names published for a platform."""
    if platform.is_windows:
        return ["python.exe", "pythonw.exe"]
    return ["python", "python3"]


def executable_name(platform: PlatformInfo) -> str:
    return EXECUTABLE_NAME + (".exe" if platform.is_windows else "")


def current_executable() -> Path:
    """
    Locate the runtimekit executable of the running process.

    Raises:
        RuntimeKitError: If it cannot be determined
    """
    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if argv0 is not None and argv0.name.startswith(EXECUTABLE_NAME) and argv0.is_file():
        return argv0.resolve()

    # Started as ``python -m runtimekit``; use the installed console script
    found = shutil.which(EXECUTABLE_NAME)
    if found:
        return Path(found).resolve()

    raise RuntimeKitError("Unable to determine the path of the runtimekit executable")


def find_managing_executable(shims_dir: Path, platform: PlatformInfo) -> Path:
    """
    Pick the executable shims should point to.

    If runtimekit is itself installed into the shims folder, that copy is
    used. Otherwise the currently running executable is.
    """
    installed = shims_dir / executable_name(platform)
    if installed.is_file():
        return installed
    return current_executable()


def resolves_to(shim: Path, target: Path) -> bool:
    """Check that a shim is a symlink to, or a hard link of, ``target``."""
    if not (shim.exists() and target.exists()):
        return False
    if shim.is_symlink():
        return shim.resolve() == target.resolve()
    try:
        return os.path.samefile(shim, target)
    except OSError:
        return False


class ShimPublisher:
    """
    Publishes entrypoint links in a shims directory.

    Example:
        >>> publisher = ShimPublisher()
        >>> publisher.publish(app_dir / "shims", Path("/usr/local/bin/runtimekit"))
    """

    def __init__(
        self,
        platform: Optional[PlatformInfo] = None,
        config: Optional[Config] = None,
        link_order: Optional[Sequence[LinkType]] = None,
    ):
        """
        Args:
            platform: PlatformInfo instance (auto-detected if None)
            config: Configuration; ``shims.link_order`` overrides the default
            link_order: Explicit order, taking precedence over everything
        """
        self.platform = platform or detect_platform()
        self.config = config or Config()
        self._link_order = list(link_order) if link_order else None

    def link_strategies(self) -> List[LinkType]:
        """The ordered link strategies for this platform."""
        if self._link_order:
            return self._link_order
        configured = self.config.link_order.get(self.platform.os)
        if configured:
            return [LinkType(name) for name in configured]
        return list(DEFAULT_LINK_ORDER.get(self.platform.os, FALLBACK_LINK_ORDER))

    def publish(self, shims_dir: Path, target: Path) -> List[Path]:
        """
        (Re)create every entrypoint shim as a link to ``target``.

        Any existing file at a shim path is removed first, so a shim never
        keeps pointing at a previous executable.

        Returns:
            The published shim paths

        Raises:
            ShimPublishFailedError: If every link strategy fails for a shim
        """
        shims_dir = Path(shims_dir)
        shims_dir.mkdir(parents=True, exist_ok=True)

        published = []
        for name in shim_names(self.platform):
            shim = shims_dir / name
            self.publish_one(shim, target)
            published.append(shim)
        return published

    def publish_one(self, shim: Path, target: Path) -> LinkType:
        """Publish a single shim, returning the strategy that worked."""
        # A relative symlink would be resolved against the shims directory
        target = Path(target).absolute()
        try:
            _remove_existing(shim)
        except OSError as e:
            raise ShimPublishFailedError(shim, target, [f"remove: {e}"]) from e

        errors = []
        for strategy in self.link_strategies():
            try:
                _create_link(strategy, shim, target)
            except OSError as e:
                logger.debug(f"{strategy.value} {shim} -> {target} failed: {e}")
                errors.append(f"{strategy.value}: {e}")
                continue
            logger.info(f"Created {strategy.value}: {shim} -> {target}")
            return strategy

        logger.error(f"Failed to publish shim {shim}")
        raise ShimPublishFailedError(shim, target, errors)


def _remove_existing(path: Path) -> None:
    # A dangling symlink does not "exist" but still occupies the name
    try:
        path.unlink()
        logger.debug(f"Removed existing shim {path}")
    except FileNotFoundError:
        pass


def _create_link(strategy: LinkType, shim: Path, target: Path) -> None:
    if strategy is LinkType.SYMLINK:
        os.symlink(target, shim)
    elif strategy is LinkType.HARDLINK:
        os.link(target, shim)
    else:
        raise ValueError(f"Unsupported link type: {strategy}")
