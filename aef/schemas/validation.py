"""
Validation result schemas.

Both validators return plain result models rather than raising: a log that
breaks the format is an expected outcome, not an exceptional condition.
Field names are camelCase where the result is consumed as JSON by other
tooling (specRef, entryIds, entryType).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

import pydantic

from aef.schemas.entries import Entry, EntryCategory
from aef.schemas.types import BaseStrictModel

# Hard errors (MUST violations) - any of these makes a log invalid
ErrorRule = Literal[
    'session-start-first',
    'session-end-last',
    'session-contiguous',
    'seq-monotonic',
    'call-id-match',
    'error-required',
    'pid-exists',
    'pid-same-session',
    'deps-exist',
    'deps-same-session',
]

# Soft warnings (SHOULD violations) - advisory only
WarningRule = Literal[
    'ts-monotonic',
    'id-unique',
    'result-expected',
]

RuleId = ErrorRule | WarningRule


# ==============================================================================
# Semantic Validation
# ==============================================================================


class Violation(BaseStrictModel):
    """A single rule violation, attributable to the exact entries involved."""

    rule: RuleId
    message: str
    specRef: str  # Section of the format specification, e.g. "§3.1.4"
    entryIds: Sequence[str]  # Offending entry first, related entries after
    line: int | None = None  # 1-based source line of the offending entry, when known


class SemanticValidationResult(BaseStrictModel):
    """Outcome of semantic validation over one log document."""

    errors: Sequence[Violation] = ()
    warnings: Sequence[Violation] = ()

    @pydantic.computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        """True iff there are no MUST violations. Warnings never affect this."""
        return not self.errors


# ==============================================================================
# Structural Validation
# ==============================================================================


class ShapeValidationResult(BaseStrictModel):
    """Outcome of validating a single raw record's shape."""

    valid: bool
    entryType: EntryCategory
    errors: Sequence[str] = ()
    entry: Entry | None = pydantic.Field(default=None, exclude=True)  # Parsed entry when valid


class LineValidation(BaseStrictModel):
    """Structural validation result for one non-blank line of a JSONL stream."""

    line: int  # 1-based, counting blank lines
    result: ShapeValidationResult
