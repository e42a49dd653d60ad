"""
Guzzle — Reporting
===================
Console rendering of task progress.
"""

from guzzle.reporting.console import ConsoleReporter, format_elapsed

__all__ = ["ConsoleReporter", "format_elapsed"]
