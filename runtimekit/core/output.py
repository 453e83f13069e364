"""
User-visible status output.

Status lines are written to stderr so that stdout stays free for the
structured output of the commands built on top of this package. How much
is shown depends on the ``CommandOutput`` level.
"""

import sys
from enum import Enum


class CommandOutput(Enum):
    """Verbosity levels for status output and sub-process flags."""

    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"

    @classmethod
    def from_flags(cls, verbose: bool = False, quiet: bool = False) -> "CommandOutput":
        if verbose:
            return cls.VERBOSE
        if quiet:
            return cls.QUIET
        return cls.NORMAL

    @property
    def is_quiet(self) -> bool:
        return self is CommandOutput.QUIET

    @property
    def is_verbose(self) -> bool:
        return self is CommandOutput.VERBOSE


def echo(output: CommandOutput, message: str) -> None:
    """Print a status line unless output is quiet."""
    if not output.is_quiet:
        print(message, file=sys.stderr, flush=True)


def echo_verbose(output: CommandOutput, message: str) -> None:
    """Print a status line only in verbose mode."""
    if output.is_verbose:
        print(message, file=sys.stderr, flush=True)
