"""
Adapter interface.

Adapters transform vendor-specific logs into AEF entries. The only contract
is the output: entries in document order, one session's entries contiguous.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Sequence
from typing import Protocol

import uuid6

from aef.schemas.entries import BaseEntry


class LogAdapter(Protocol):
    """Protocol for log format adapters."""

    id: str  # Adapter identifier used on the command line
    name: str  # Human-readable name
    patterns: Sequence[str]  # Source file globs this adapter understands

    def parse(self, lines: AsyncIterable[str]) -> AsyncIterator[BaseEntry]:
        """Parse source lines and yield AEF entries."""
        ...


def generate_id() -> str:
    """Generate an entry ID as a UUIDv7 string, so IDs sort by creation time."""
    return str(uuid6.uuid7())
