"""
blockutils CLI - Command-line interface.
"""

from blockutils.cli.main import cli, main

__all__ = ["cli", "main"]
