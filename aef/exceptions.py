"""
Shared exceptions for aef.

Exception Hierarchy:
    AefError (base)
    ├── LogFileError (log file cannot be read as JSONL)
    ├── UnknownAdapterError (adapter id not in the registry)
    └── SemanticPreconditionError (validator handed something that is not a parsed entry list)

A log that violates the format is NOT an exception - validators report it
in their result models. These exceptions cover I/O failures and
programming-contract violations only.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class AefError(Exception):
    """Base exception for all aef errors."""


class LogFileError(AefError):
    """Raised when a log file cannot be read or decoded as UTF-8 text."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'Cannot read log file {path}: {reason}')


class UnknownAdapterError(AefError):
    """Raised when an adapter id is not registered."""

    def __init__(self, adapter_id: str, available: Iterable[str]) -> None:
        self.adapter_id = adapter_id
        self.available = sorted(available)
        super().__init__(f'Unknown adapter: {adapter_id}. Available: {", ".join(self.available)}')


class SemanticPreconditionError(AefError):
    """Raised when the semantic validator's input is not a sequence of parsed entries.

    This is a bug in the calling layer (structural validation was skipped),
    never a data-quality problem in the log itself.
    """
