"""
RuntimeKit CLI module.

This module provides the command-line interface for RuntimeKit.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
