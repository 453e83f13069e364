"""
RuntimeKit CLI argument parser.

This module implements the command-line interface for RuntimeKit using argparse.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import List, Optional

from runtimekit.core.exceptions import RuntimeKitError

try:
    __version__ = version("runtimekit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """RuntimeKit command-line interface."""

    COMMANDS = {
        "fetch": "runtimekit.cli.commands.fetch",
        "self-update": "runtimekit.cli.commands.self_update",
        "shims": "runtimekit.cli.commands.shims",
    }

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="runtimekit",
            description="RuntimeKit - Python runtime acquisition and self-bootstrap",
            epilog='Use "runtimekit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        parser.add_argument(
            "--version", action="version", version=f"RuntimeKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_fetch_command(subparsers)
        self._add_self_update_command(subparsers)
        self._add_shims_command(subparsers)

        return parser

    def _add_fetch_command(self, subparsers):
        """Add 'fetch' subcommand."""
        parser = subparsers.add_parser(
            "fetch",
            help="Download a Python runtime",
            description="Resolve, download, verify and install a Python runtime",
        )
        parser.add_argument(
            "version",
            metavar="VERSION",
            help="Version request (e.g., 3.10, cpython@3.11.3)",
        )

    def _add_self_update_command(self, subparsers):
        """Add 'self-update' subcommand."""
        subparsers.add_parser(
            "self-update",
            help="Bootstrap or refresh the internal environment",
            description=(
                "Make sure the internal environment exists and matches this "
                "version of runtimekit, rebuilding it if it is outdated"
            ),
        )

    def _add_shims_command(self, subparsers):
        """Add 'shims' subcommand."""
        subparsers.add_parser(
            "shims",
            help="Republish the python shims",
            description="Recreate the python entrypoints in the shims directory",
        )

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except RuntimeKitError as e:
            logger.error(f"error: {e}")
            if parsed_args.verbose:
                logger.debug("Traceback:", exc_info=True)
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        else:
            # Errors already carry an "error:" prefix
            level = logging.ERROR if args.quiet else logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )
        # Keep urllib3 connection chatter out of normal output
        if not args.verbose:
            logging.getLogger("urllib3").setLevel(logging.WARNING)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = self.COMMANDS.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
