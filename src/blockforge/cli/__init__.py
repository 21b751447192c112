"""
BlockForge CLI Module.

Provides command-line interface for BlockForge operations.
"""

from blockforge.cli.main import main, cli

__all__ = ["main", "cli"]
