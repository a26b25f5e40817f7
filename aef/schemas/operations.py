"""
Operation result schemas.

Models returned by the loader and info services and rendered by the CLI.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import pydantic

from aef.schemas.entries import Entry
from aef.schemas.types import BaseStrictModel
from aef.schemas.validation import LineValidation, SemanticValidationResult


class LoadStats(BaseStrictModel):
    """Classification counts for the non-blank lines of a file."""

    total: int
    core: int
    extension: int
    invalid: int


class LoadedLog(BaseStrictModel):
    """
    A JSONL file after structural validation.

    entries holds only structurally valid entries, in document order, with
    line_numbers parallel to it - exactly the input the semantic validator
    expects. failures holds the lines that were dropped.
    """

    path: str
    entries: Sequence[Entry]
    line_numbers: Sequence[int]
    failures: Sequence[LineValidation]
    stats: LoadStats

    @pydantic.computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        """True if every non-blank line passed structural validation."""
        return not self.failures


class TimeRange(BaseStrictModel):
    """Earliest and latest entry timestamps (ms). All None for an empty log."""

    start: int | None
    end: int | None
    durationMs: int | None


class LogInfo(BaseStrictModel):
    """Summary of a log file, as printed by `aef info`."""

    entries: int
    sessions: int
    types: Mapping[str, int]  # Entry type -> count, in order of first appearance
    agents: Sequence[str]  # From session.start entries
    models: Sequence[str]  # From session.start and message entries
    timeRange: TimeRange


class ValidationReport(BaseStrictModel):
    """Combined structural and semantic outcome, as printed by `aef validate --format json`."""

    file: str
    valid: bool
    strict: bool
    stats: LoadStats
    structuralErrors: Sequence[LineValidation]
    semantic: SemanticValidationResult | None  # None when skipped (--no-semantic or structural failure)
