"""
Command-line tools for patchlog.

Tools:
- history_cli: diff/apply snapshots and inspect or audit stored history
"""

from .history_cli import HistoryCLI, main

__all__ = ["HistoryCLI", "main"]
