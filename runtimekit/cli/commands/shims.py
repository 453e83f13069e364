"""
Shims command implementation.

Republishes the python entrypoints without touching the internal environment.
"""

import logging

from runtimekit.bootstrap.self_env import SelfBootstrapper

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the shims command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    SelfBootstrapper().update_shims()
    logger.info("Shims updated")
    return 0
