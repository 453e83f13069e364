"""
Self-environment state tracking.

The self-environment records the internal tool version it was built for in
``<app_dir>/self/tool-version.txt``. When that marker is missing or holds a
different number than the running runtimekit expects, the environment is
stale and must be rebuilt from scratch before it is used.

Example:
    >>> gate = SelfUpdateGate(app_dir, tool_version=3)
    >>> if not gate.is_up_to_date():
    ...     rebuild()
    ...     gate.mark_current()
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from runtimekit.core.directory import get_tool_version_file
from runtimekit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

# Set once a bootstrap succeeded in this process; later checks skip the disk.
_forced_to_update = threading.Event()


def reset_forced_update() -> None:
    """Forget that this process already brought the self-environment up to date."""
    _forced_to_update.clear()


class SelfUpdateGate:
    """
    Decides whether the self-environment has to be rebuilt.

    Attributes:
        app_dir: Application directory
        tool_version: Internal tool version of the running runtimekit
        marker_file: Path to tool-version.txt
    """

    def __init__(self, app_dir: Path, tool_version: int):
        self.app_dir = Path(app_dir)
        self.tool_version = tool_version
        self.marker_file = get_tool_version_file(self.app_dir)

    def read_marker(self) -> Optional[int]:
        """
        Read the recorded tool version.

        Returns:
            The recorded version, or None if the marker is missing or unreadable
        """
        try:
            content = self.marker_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"Tool version marker not found: {self.marker_file}")
            return None
        except OSError as e:
            logger.warning(f"Unable to read {self.marker_file}: {e}")
            return None

        try:
            return int(content.strip())
        except ValueError:
            logger.warning(f"Invalid tool version marker {content.strip()!r}")
            return None

    def is_up_to_date(self) -> bool:
        """Current if this process already updated, or the marker matches."""
        if _forced_to_update.is_set():
            return True
        return self.read_marker() == self.tool_version

    def is_stale(self) -> bool:
        return not self.is_up_to_date()

    def mark_current(self) -> None:
        """
        Record a successful rebuild.

        Must be the last step of a bootstrap; a failure anywhere before it
        leaves the environment stale so the next run starts over.
        """
        atomic_write(self.marker_file, str(self.tool_version))
        _forced_to_update.set()
        logger.debug(f"Recorded tool version {self.tool_version} in {self.marker_file}")
