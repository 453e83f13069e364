"""
Self-update command implementation.

Bootstraps the internal environment, or rebuilds it when it is outdated.
"""

import logging

from runtimekit.bootstrap.self_env import ensure_self_venv
from runtimekit.core.output import CommandOutput

logger = logging.getLogger(__name__)


def run(args) -> int:
    output = CommandOutput.from_flags(args.verbose, args.quiet)
    venv_dir = ensure_self_venv(output)
    logger.debug(f"Internal environment: {venv_dir}")
    return 0
