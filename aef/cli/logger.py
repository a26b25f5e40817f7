"""
CLI logger adapter - implements LoggerProtocol for command-line usage.

Writes to stderr so that JSON output on stdout stays machine-readable.
"""

from __future__ import annotations

import typer


class CLILogger:
    """
    Logger implementation for CLI (implements LoggerProtocol from aef.protocols).

    Outputs messages to stderr with optional verbose mode.
    """

    def __init__(self, verbose: bool = False) -> None:
        """
        Initialize CLI logger.

        Args:
            verbose: If True, show info and warning messages. If False, only errors.
        """
        self.verbose = verbose

    async def info(self, message: str) -> None:
        """Log info message (only if verbose)."""
        if self.verbose:
            typer.echo(f'[INFO] {message}', err=True)

    async def warning(self, message: str) -> None:
        """Log warning message (only if verbose; invalid lines are reported by the command itself)."""
        if self.verbose:
            typer.echo(f'[WARNING] {message}', err=True)

    async def error(self, message: str) -> None:
        """Log error message."""
        typer.echo(f'[ERROR] {message}', err=True)
