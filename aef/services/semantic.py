"""
Semantic validation for AEF logs.

Cross-entry rules that a per-record schema check cannot express, because they
relate entries to each other: session boundaries and contiguity, sequence
ordering, tool call/result correlation and causal references (pid, deps).

Input contract:
- An ordered sequence of parsed entries (see aef.schemas.entries), i.e. the
  output of structural validation with invalid records already dropped.
- The validator never mutates its input and keeps no state between calls,
  so the same input always yields the same result.

Output:
- errors: MUST violations. Any error makes the log invalid.
- warnings: SHOULD violations. Advisory only.

Validation is exhaustive, not fail-fast: every check runs over the whole log
so one pass reports every problem.

Algorithm: two indexes are built once per call (id -> position,
sid -> positions in document order) so that every reference check is a dict
lookup rather than a scan of the log.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from aef.exceptions import SemanticPreconditionError
from aef.schemas.entries import BaseEntry, ToolCallEntry, ToolResultEntry
from aef.schemas.validation import RuleId, SemanticValidationResult, Violation

__all__ = [
    'SPEC_REFS',
    'validate_semantics',
]

# Section of the format specification each rule enforces
SPEC_REFS: Mapping[RuleId, str] = {
    'session-start-first': '§3.1.4',
    'session-end-last': '§3.1.4',
    'session-contiguous': '§3.1.4',
    'seq-monotonic': '§3.2.1',
    'call-id-match': '§4.4/§4.5',
    'error-required': '§4.5',
    'pid-exists': '§3.2.2',
    'pid-same-session': '§3.2.2',
    'deps-exist': '§3.2.3',
    'deps-same-session': '§3.2.3',
    'ts-monotonic': '§3.1.2',
    'id-unique': '§3.1.1',
    'result-expected': '§4.5',
}

ReferenceProblem = Literal['missing', 'future', 'cross-session']


# ==============================================================================
# Index
# ==============================================================================


@dataclass(frozen=True)
class _IndexedEntry:
    entry: BaseEntry
    position: int


@dataclass(frozen=True)
class _LogIndex:
    """Lookup tables over one log, built once per validation call."""

    entries: Sequence[BaseEntry]
    entry_by_id: Mapping[str, _IndexedEntry]
    positions_by_session: Mapping[str, Sequence[int]]  # Sessions in order of first appearance
    line_numbers: Sequence[int] | None

    @classmethod
    def build(cls, entries: Sequence[BaseEntry], line_numbers: Sequence[int] | None) -> _LogIndex:
        entry_by_id: dict[str, _IndexedEntry] = {}
        positions_by_session: dict[str, list[int]] = {}

        for position, entry in enumerate(entries):
            # Later duplicates win; duplicate ids are reported separately by id-unique
            entry_by_id[entry.id] = _IndexedEntry(entry, position)
            positions_by_session.setdefault(entry.sid, []).append(position)

        return cls(entries, entry_by_id, positions_by_session, line_numbers)

    def violation(self, rule: RuleId, message: str, entry_ids: Sequence[str], position: int) -> Violation:
        """Build a violation attributed to the entry at `position`."""
        line = self.line_numbers[position] if self.line_numbers is not None else None
        return Violation(rule=rule, message=message, specRef=SPEC_REFS[rule], entryIds=list(entry_ids), line=line)

    def resolve_reference(self, ref_id: str, position: int) -> tuple[ReferenceProblem | None, _IndexedEntry | None]:
        """Check that `ref_id` names an earlier entry in the same session as the entry at `position`."""
        target = self.entry_by_id.get(ref_id)
        if target is None:
            return 'missing', None
        if target.position >= position:
            return 'future', target
        if target.entry.sid != self.entries[position].sid:
            return 'cross-session', target
        return None, target


# ==============================================================================
# Main Validator
# ==============================================================================


def validate_semantics(
    entries: Sequence[BaseEntry],
    line_numbers: Sequence[int] | None = None,
) -> SemanticValidationResult:
    """
    Validate cross-entry constraints over an ordered list of parsed entries.

    Args:
        entries: Structurally valid entries in document order
        line_numbers: Optional 1-based source line of each entry (parallel to entries),
            used to attribute violations to lines

    Returns:
        SemanticValidationResult; valid is False iff at least one MUST rule is violated

    Raises:
        SemanticPreconditionError: If entries is not a sequence of parsed entries
    """
    _check_preconditions(entries, line_numbers)

    if not entries:
        return SemanticValidationResult()

    index = _LogIndex.build(entries, line_numbers)

    errors = [
        *_check_session_boundaries(index),
        *_check_session_contiguity(index),
        *_check_seq_monotonic(index),
        *_check_tool_correlation(index),
        *_check_error_required(index),
        *_check_parent_references(index),
        *_check_dependency_references(index),
    ]
    warnings = [
        *_check_timestamp_monotonic(index),
        *_check_id_uniqueness(index),
        *_check_result_expected(index),
    ]

    return SemanticValidationResult(errors=errors, warnings=warnings)


def _check_preconditions(entries: object, line_numbers: Sequence[int] | None) -> None:
    if not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
        raise SemanticPreconditionError(f'Expected a sequence of entries, got {type(entries).__name__}')

    for position, entry in enumerate(entries):
        if not isinstance(entry, BaseEntry):
            raise SemanticPreconditionError(
                f'Element {position} is {type(entry).__name__}, not a parsed entry. '
                f'Run structural validation before semantic validation.'
            )

    if line_numbers is not None and len(line_numbers) != len(entries):
        raise SemanticPreconditionError(
            f'line_numbers has {len(line_numbers)} items but there are {len(entries)} entries'
        )


# ==============================================================================
# MUST Rules
# ==============================================================================


def _check_session_boundaries(index: _LogIndex) -> Iterator[Violation]:
    """§3.1.4: session.start MUST be first in its session, session.end MUST be last."""
    entries = index.entries

    for sid, positions in index.positions_by_session.items():
        first = entries[positions[0]]
        last = entries[positions[-1]]

        for position in positions:
            entry = entries[position]
            if entry.type == 'session.start' and position != positions[0]:
                yield index.violation(
                    'session-start-first',
                    f"session.start must be first entry for session '{sid}', but found '{first.type}' first",
                    [entry.id, first.id],
                    position,
                )
            elif entry.type == 'session.end' and position != positions[-1]:
                yield index.violation(
                    'session-end-last',
                    f"session.end must be last entry for session '{sid}', but found '{last.type}' last",
                    [entry.id, last.id],
                    position,
                )


def _check_session_contiguity(index: _LogIndex) -> Iterator[Violation]:
    """§3.1.4: entries of one session MUST NOT be interleaved with other sessions.

    Only the first gap per session is reported.
    """
    entries = index.entries

    for sid, positions in index.positions_by_session.items():
        for previous, current in itertools.pairwise(positions):
            if current == previous + 1:
                continue

            interleaved = dict.fromkeys(entries[p].sid for p in range(previous + 1, current) if entries[p].sid != sid)
            if interleaved:
                yield index.violation(
                    'session-contiguous',
                    f"Session '{sid}' entries are interleaved with session(s): {', '.join(interleaved)}",
                    [entries[previous].id, entries[current].id],
                    current,
                )
                break


def _check_seq_monotonic(index: _LogIndex) -> Iterator[Violation]:
    """§3.2.1: seq, where present, MUST strictly increase within a session."""
    entries = index.entries

    for sid, positions in index.positions_by_session.items():
        last: BaseEntry | None = None

        for position in positions:
            entry = entries[position]
            if entry.seq is None:
                continue

            if last is not None and last.seq is not None and entry.seq <= last.seq:
                yield index.violation(
                    'seq-monotonic',
                    f"seq must be monotonically increasing: found {entry.seq} after {last.seq} in session '{sid}'",
                    [last.id, entry.id],
                    position,
                )
            last = entry


def _check_tool_correlation(index: _LogIndex) -> Iterator[Violation]:
    """§4.4/§4.5: a tool.result call_id MUST match the call_id of some tool.call.

    The reverse is not required - truncated logs may end with unanswered calls.
    """
    call_ids = {entry.call_id for entry in index.entries if isinstance(entry, ToolCallEntry) and entry.call_id}

    for position, entry in enumerate(index.entries):
        if isinstance(entry, ToolResultEntry) and entry.call_id and entry.call_id not in call_ids:
            yield index.violation(
                'call-id-match',
                f"tool.result has call_id '{entry.call_id}' with no matching tool.call",
                [entry.id],
                position,
            )


def _check_error_required(index: _LogIndex) -> Iterator[Violation]:
    """§4.5: a failed tool.result MUST carry error.message."""
    for position, entry in enumerate(index.entries):
        if not isinstance(entry, ToolResultEntry) or entry.success:
            continue

        if entry.error is None:
            message = 'tool.result with success=false must have error.message'
        elif not entry.error.message:
            message = 'tool.result with success=false must have a non-empty error.message'
        else:
            continue

        yield index.violation('error-required', message, [entry.id], position)


def _check_parent_references(index: _LogIndex) -> Iterator[Violation]:
    """§3.2.2: pid MUST reference an earlier entry of the same session."""
    for position, entry in enumerate(index.entries):
        if not entry.pid:
            continue

        problem, target = index.resolve_reference(entry.pid, position)
        if problem == 'missing':
            yield index.violation(
                'pid-exists',
                f"pid '{entry.pid}' references non-existent entry",
                [entry.id],
                position,
            )
        elif problem == 'future':
            yield index.violation(
                'pid-exists',
                f"pid '{entry.pid}' references a future entry (must be earlier)",
                [entry.id, entry.pid],
                position,
            )
        elif problem == 'cross-session' and target is not None:
            yield index.violation(
                'pid-same-session',
                f"pid '{entry.pid}' references entry in different session '{target.entry.sid}'",
                [entry.id, entry.pid],
                position,
            )


def _check_dependency_references(index: _LogIndex) -> Iterator[Violation]:
    """§3.2.3: every id in deps MUST reference an earlier entry of the same session.

    Same three-way check as pid, reported once per offending dependency.
    """
    for position, entry in enumerate(index.entries):
        if not entry.deps:
            continue

        for dep_id in entry.deps:
            problem, target = index.resolve_reference(dep_id, position)
            if problem == 'missing':
                yield index.violation(
                    'deps-exist',
                    f"deps contains '{dep_id}' which references non-existent entry",
                    [entry.id],
                    position,
                )
            elif problem == 'future':
                yield index.violation(
                    'deps-exist',
                    f"deps contains '{dep_id}' which references a future entry (must be earlier)",
                    [entry.id, dep_id],
                    position,
                )
            elif problem == 'cross-session' and target is not None:
                yield index.violation(
                    'deps-same-session',
                    f"deps contains '{dep_id}' which references entry in different session '{target.entry.sid}'",
                    [entry.id, dep_id],
                    position,
                )


# ==============================================================================
# SHOULD Rules (Warnings)
# ==============================================================================


def _check_timestamp_monotonic(index: _LogIndex) -> Iterator[Violation]:
    """§3.1.2: ts SHOULD NOT decrease within a session (equal timestamps are fine)."""
    entries = index.entries

    for sid, positions in index.positions_by_session.items():
        for previous, current in itertools.pairwise(positions):
            before, after = entries[previous], entries[current]
            if after.ts < before.ts:
                yield index.violation(
                    'ts-monotonic',
                    f"Timestamp decreased from {before.ts} to {after.ts} in session '{sid}'",
                    [before.id, after.id],
                    current,
                )


def _check_id_uniqueness(index: _LogIndex) -> Iterator[Violation]:
    """§3.1.1: entry ids SHOULD be unique across the whole log (not per session)."""
    first_seen: dict[str, int] = {}

    for position, entry in enumerate(index.entries):
        first = first_seen.setdefault(entry.id, position)
        if first != position:
            yield index.violation(
                'id-unique',
                f"Duplicate entry ID '{entry.id}' found at positions {first} and {position}",
                [entry.id],
                position,
            )


def _check_result_expected(index: _LogIndex) -> Iterator[Violation]:
    """§4.5: a successful tool.result SHOULD carry result (side-effect-only tools may omit it)."""
    for position, entry in enumerate(index.entries):
        if isinstance(entry, ToolResultEntry) and entry.success and not entry.has_result:
            yield index.violation(
                'result-expected',
                'tool.result with success=true should have result field',
                [entry.id],
                position,
            )
