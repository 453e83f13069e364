"""
Fetch command implementation.

Downloads a Python runtime into the application directory.
"""

import logging

from runtimekit.core.output import CommandOutput
from runtimekit.toolchain.installer import RuntimeInstaller
from runtimekit.toolchain.versions import VersionRequest

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the fetch command.

    Args:
        args: Parsed command-line arguments with:
            - version: Version request string

    Returns:
        Exit code (0 for success)
    """
    output = CommandOutput.from_flags(args.verbose, args.quiet)
    request = VersionRequest.parse(args.version)

    version = RuntimeInstaller().fetch(request, output)

    # Resolved version on stdout so scripts can capture it
    print(version)
    return 0
