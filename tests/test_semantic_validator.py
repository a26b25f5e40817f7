"""
Tests for semantic (cross-entry) validation.

Each rule is exercised with a minimal hand-built log, plus a negative case
showing the rule does not fire on the neighbouring valid shape.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from aef.exceptions import SemanticPreconditionError
from aef.schemas.entries import Entry, dump_entry, parse_entry
from aef.schemas.validation import SemanticValidationResult
from aef.services.semantic import SPEC_REFS, validate_semantics
from aef.services.structural import validate_stream

FIXTURES_DIR = Path(__file__).parent.parent / 'fixtures'
VALID_FIXTURES = [
    'valid/minimal-session.aef.jsonl',
    'valid/tool-flow.aef.jsonl',
    'valid/multi-tool-session.aef.jsonl',
    'valid/parallel-tools.aef.jsonl',
    'valid/with-extensions.aef.jsonl',
]


def _entry(id: str, ts: int, type: str, sid: str = 's1', **fields: Any) -> Entry:
    """Parse one entry from its wire fields."""
    return parse_entry({'v': 1, 'id': id, 'ts': ts, 'type': type, 'sid': sid, **fields})


def _start(id: str, ts: int, sid: str = 's1', **fields: Any) -> Entry:
    return _entry(id, ts, 'session.start', sid, agent='test', **fields)


def _end(id: str, ts: int, sid: str = 's1', **fields: Any) -> Entry:
    return _entry(id, ts, 'session.end', sid, status='complete', **fields)


def _message(id: str, ts: int, sid: str = 's1', **fields: Any) -> Entry:
    fields.setdefault('role', 'user')
    fields.setdefault('content', 'hi')
    return _entry(id, ts, 'message', sid, **fields)


def _tool_result(id: str, ts: int, sid: str = 's1', **fields: Any) -> Entry:
    fields.setdefault('tool', 'bash')
    return _entry(id, ts, 'tool.result', sid, **fields)


def _load_fixture(relative_path: str) -> tuple[list[Entry], list[int]]:
    lines = (FIXTURES_DIR / relative_path).read_text(encoding='utf-8').split('\n')
    entries, line_numbers = [], []
    for line_result in validate_stream(lines):
        assert line_result.result.valid, f'{relative_path}:{line_result.line}: {line_result.result.errors}'
        assert line_result.result.entry is not None
        entries.append(line_result.result.entry)
        line_numbers.append(line_result.line)
    return entries, line_numbers


def _rules(violations: Any) -> list[str]:
    return [v.rule for v in violations]


# ==============================================================================
# Valid Logs
# ==============================================================================


@pytest.mark.parametrize('fixture', VALID_FIXTURES)
def test_valid_fixtures_have_no_violations(fixture: str) -> None:
    entries, _ = _load_fixture(fixture)

    result = validate_semantics(entries)

    assert result.valid
    assert list(result.errors) == []
    assert list(result.warnings) == []


def test_empty_log_is_valid() -> None:
    result = validate_semantics([])

    assert result == SemanticValidationResult()
    assert result.valid
    assert list(result.errors) == []
    assert list(result.warnings) == []


def test_consecutive_sessions_are_valid() -> None:
    entries = [
        _start('01', 1000),
        _message('02', 1001),
        _end('03', 1002),
        _start('04', 500, sid='s2'),  # Earlier ts than s1: ts order is per session
        _message('05', 501, sid='s2', pid='04'),
        _end('06', 502, sid='s2'),
    ]

    result = validate_semantics(entries)

    assert result.valid
    assert list(result.warnings) == []


def test_session_without_boundaries_is_valid() -> None:
    """A truncated log (no session.start/end) breaks no MUST rule."""
    entries = [_message('01', 1000), _message('02', 1001, role='assistant', pid='01')]

    assert validate_semantics(entries).valid


# ==============================================================================
# Session Boundaries (§3.1.4)
# ==============================================================================


def test_session_start_not_first() -> None:
    entries, _ = _load_fixture('invalid/session-start-not-first.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'session-start-first')
    assert error.specRef == '§3.1.4'
    assert list(error.entryIds) == ['ssf-02', 'ssf-01']
    assert "found 'message' first" in error.message


def test_every_misplaced_session_start_is_reported() -> None:
    entries = [_start('01', 1000), _start('02', 1001), _start('03', 1002), _end('04', 1003)]

    result = validate_semantics(entries)

    starts = [e for e in result.errors if e.rule == 'session-start-first']
    assert [e.entryIds[0] for e in starts] == ['02', '03']


def test_session_end_not_last() -> None:
    entries, _ = _load_fixture('invalid/session-end-not-last.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'session-end-last')
    assert error.specRef == '§3.1.4'
    assert list(error.entryIds) == ['sel-03', 'sel-04']


def test_interleaved_sessions() -> None:
    entries, _ = _load_fixture('invalid/interleaved-sessions.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    contiguity = [e for e in result.errors if e.rule == 'session-contiguous']
    assert len(contiguity) == 2  # One per session
    assert contiguity[0].specRef == '§3.1.4'
    assert "Session 'sess-a'" in contiguity[0].message
    assert 'sess-b' in contiguity[0].message


def test_contiguity_reports_only_first_gap_per_session() -> None:
    entries = [
        _message('01', 1000, sid='a'),
        _message('02', 1001, sid='b'),
        _message('03', 1002, sid='a'),
        _message('04', 1003, sid='b'),
        _message('05', 1004, sid='a'),
    ]

    result = validate_semantics(entries)

    contiguity = [e for e in result.errors if e.rule == 'session-contiguous']
    assert [list(e.entryIds) for e in contiguity] == [['01', '03'], ['02', '04']]


# ==============================================================================
# Sequence Numbers (§3.2.1)
# ==============================================================================


def test_decreasing_seq() -> None:
    entries, _ = _load_fixture('invalid/decreasing-seq.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'seq-monotonic')
    assert error.specRef == '§3.2.1'
    assert 'found 2 after 3' in error.message
    assert list(error.entryIds) == ['ds-03', 'ds-04']


def test_repeated_seq_is_rejected() -> None:
    entries = [_start('01', 1000, seq=0), _message('02', 1001, seq=1), _message('03', 1002, seq=1)]

    assert 'seq-monotonic' in _rules(validate_semantics(entries).errors)


def test_seq_is_optional_and_may_skip_entries() -> None:
    entries = [
        _start('01', 1000),
        _message('02', 1001, seq=5),
        _message('03', 1002),  # No seq: ignored
        _message('04', 1003, seq=9),
        _end('05', 1004),
    ]

    assert 'seq-monotonic' not in _rules(validate_semantics(entries).errors)


def test_seq_restarts_per_session() -> None:
    entries = [
        _start('01', 1000, seq=0),
        _end('02', 1001, seq=1),
        _start('03', 1002, sid='s2', seq=0),
        _end('04', 1003, sid='s2', seq=1),
    ]

    assert validate_semantics(entries).valid


# ==============================================================================
# Tool Correlation (§4.4/§4.5)
# ==============================================================================


def test_mismatched_call_ids() -> None:
    entries, _ = _load_fixture('invalid/mismatched-call-ids.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'call-id-match')
    assert error.specRef == '§4.4/§4.5'
    assert 'tc999' in error.message


def test_result_without_call_id_is_not_correlated() -> None:
    entries = [
        _start('01', 1000),
        _entry('02', 1001, 'tool.call', tool='bash', args={}),
        _tool_result('03', 1002, success=True, result='ok'),
        _end('04', 1003),
    ]

    assert 'call-id-match' not in _rules(validate_semantics(entries).errors)


def test_unanswered_tool_call_is_allowed() -> None:
    entries = [
        _start('01', 1000),
        _entry('02', 1001, 'tool.call', tool='bash', args={'command': 'sleep 100'}, call_id='tc1'),
    ]

    assert validate_semantics(entries).valid


# ==============================================================================
# Error Reporting on Failed Tools (§4.5)
# ==============================================================================


def test_failure_without_error() -> None:
    entries, _ = _load_fixture('invalid/missing-error-on-failure.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'error-required')
    assert error.specRef == '§4.5'
    assert list(error.entryIds) == ['me-03']


def test_failure_with_empty_error_message() -> None:
    entries = [_tool_result('01', 1000, success=False, error={'message': ''})]

    assert _rules(validate_semantics(entries).errors) == ['error-required']


def test_failure_with_error_message_is_valid() -> None:
    entries = [
        _start('01', 1000),
        _tool_result('02', 1001, success=False, error={'message': 'Command failed'}),
        _end('03', 1002),
    ]

    result = validate_semantics(entries)

    assert 'error-required' not in _rules(result.errors)
    assert 'result-expected' not in _rules(result.warnings)


# ==============================================================================
# Parent References (§3.2.2)
# ==============================================================================


def test_pid_future_reference() -> None:
    entries, _ = _load_fixture('invalid/pid-future-ref.aef.jsonl')

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'pid-exists')
    assert error.specRef == '§3.2.2'
    assert 'future' in error.message


def test_pid_self_reference_is_future() -> None:
    entries = [_start('01', 1000), _message('02', 1001, pid='02')]

    error = next(e for e in validate_semantics(entries).errors if e.rule == 'pid-exists')
    assert 'future' in error.message


def test_pid_missing_target() -> None:
    entries = [_start('01', 1000), _message('02', 1001, pid='nonexistent'), _end('03', 1002)]

    result = validate_semantics(entries)

    error = next(e for e in result.errors if e.rule == 'pid-exists')
    assert 'non-existent' in error.message
    assert list(error.entryIds) == ['02']


def test_pid_chain_is_valid() -> None:
    entries = [
        _start('01', 1000),
        _message('02', 1001),
        _message('03', 1002, role='assistant', content='hello', pid='02'),
        _end('04', 1003, pid='03'),
    ]

    assert validate_semantics(entries).valid


def test_pid_cross_session() -> None:
    entries = [
        _start('01', 1000),
        _message('02', 1001),
        _end('03', 1002),
        _start('04', 2000, sid='s2'),
        _message('05', 2001, sid='s2', pid='02'),
        _end('06', 2002, sid='s2'),
    ]

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'pid-same-session')
    assert error.specRef == '§3.2.2'
    assert 'different session' in error.message
    assert list(error.entryIds) == ['05', '02']


def test_empty_pid_is_ignored() -> None:
    entries = [_start('01', 1000), _message('02', 1001, pid='')]

    assert validate_semantics(entries).valid


# ==============================================================================
# Dependency References (§3.2.3)
# ==============================================================================


def test_deps_missing_target() -> None:
    entries = [_start('01', 1000), _message('02', 1001, deps=['nonexistent']), _end('03', 1002)]

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'deps-exist')
    assert error.specRef == '§3.2.3'
    assert 'nonexistent' in error.message


def test_deps_future_reference() -> None:
    entries = [
        _start('01', 1000),
        _message('02', 1001, deps=['03']),
        _message('03', 1002, role='assistant', content='hello'),
        _end('04', 1003),
    ]

    error = next(e for e in validate_semantics(entries).errors if e.rule == 'deps-exist')
    assert 'future' in error.message


def test_deps_report_each_bad_reference() -> None:
    entries = [_start('01', 1000), _message('02', 1001, deps=['01', 'x', 'y'])]

    errors = validate_semantics(entries).errors

    assert _rules(errors) == ['deps-exist', 'deps-exist']


def test_deps_valid() -> None:
    entries = [
        _start('01', 1000),
        _tool_result('02', 1001, tool='a', success=True, result='r1'),
        _tool_result('03', 1002, tool='b', success=True, result='r2'),
        _message('04', 1003, role='assistant', content='done', deps=['02', '03']),
        _end('05', 1004),
    ]

    assert validate_semantics(entries).valid


def test_deps_cross_session() -> None:
    entries = [
        _start('01', 1000),
        _tool_result('02', 1001, tool='a', success=True, result='r1'),
        _end('03', 1002),
        _start('04', 2000, sid='s2'),
        _tool_result('05', 2001, sid='s2', tool='b', success=True, result='r2'),
        _message('06', 2002, sid='s2', role='assistant', content='done', deps=['02', '05']),
        _end('07', 2003, sid='s2'),
    ]

    result = validate_semantics(entries)

    assert not result.valid
    error = next(e for e in result.errors if e.rule == 'deps-same-session')
    assert error.specRef == '§3.2.3'
    assert 'different session' in error.message
    assert list(error.entryIds) == ['06', '02']


# ==============================================================================
# Warnings
# ==============================================================================


def test_decreasing_timestamp_is_a_warning() -> None:
    entries = [_start('01', 1000), _message('02', 999), _end('03', 1002)]

    result = validate_semantics(entries)

    assert result.valid
    warning = next(w for w in result.warnings if w.rule == 'ts-monotonic')
    assert warning.specRef == '§3.1.2'
    assert 'from 1000 to 999' in warning.message


def test_equal_timestamps_are_allowed() -> None:
    entries = [_start('01', 1000), _message('02', 1000), _end('03', 1001)]

    assert 'ts-monotonic' not in _rules(validate_semantics(entries).warnings)


def test_duplicate_id_is_a_warning() -> None:
    entries = [_start('01', 1000), _message('01', 1001), _end('03', 1002)]

    result = validate_semantics(entries)

    assert result.valid
    warning = next(w for w in result.warnings if w.rule == 'id-unique')
    assert warning.specRef == '§3.1.1'
    assert 'positions 0 and 1' in warning.message


def test_duplicate_ids_across_sessions_are_detected() -> None:
    entries = [_start('x', 1000), _end('e1', 1001), _start('x', 1002, sid='s2'), _end('e2', 1003, sid='s2')]

    assert _rules(validate_semantics(entries).warnings) == ['id-unique']


def test_pid_to_duplicated_id_resolves_to_last_occurrence() -> None:
    entries = [_start('01', 1000), _message('dup', 1001), _message('02', 1002, pid='dup'), _message('dup', 1003)]

    result = validate_semantics(entries)

    error = next(e for e in result.errors if e.rule == 'pid-exists')
    assert 'future' in error.message


def test_success_without_result_is_a_warning() -> None:
    entries = [_start('01', 1000), _tool_result('02', 1001, success=True), _end('03', 1002)]

    result = validate_semantics(entries)

    assert result.valid
    warning = next(w for w in result.warnings if w.rule == 'result-expected')
    assert warning.specRef == '§4.5'


def test_explicit_null_result_counts_as_present() -> None:
    entries = [_start('01', 1000), _tool_result('02', 1001, success=True, result=None), _end('03', 1002)]

    assert 'result-expected' not in _rules(validate_semantics(entries).warnings)


# ==============================================================================
# Result Properties
# ==============================================================================


def test_every_violation_is_attributable() -> None:
    entries, _ = _load_fixture('invalid/interleaved-sessions.aef.jsonl')
    entries += [_tool_result('z', 0, sid='sess-b', success=False)]

    result = validate_semantics(entries)

    for violation in [*result.errors, *result.warnings]:
        assert violation.rule
        assert violation.specRef == SPEC_REFS[violation.rule]
        assert violation.specRef.startswith('§')
        assert len(violation.entryIds) >= 1


# Invalid logs whose violations do not involve their final session.end
CONTENT_INVALID_FIXTURES = [
    'invalid/mismatched-call-ids.aef.jsonl',
    'invalid/missing-error-on-failure.aef.jsonl',
    'invalid/pid-future-ref.aef.jsonl',
    'invalid/decreasing-seq.aef.jsonl',
]


@pytest.mark.parametrize('fixture', [*VALID_FIXTURES, *CONTENT_INVALID_FIXTURES])
@pytest.mark.parametrize(
    'bad_fields',
    [
        {'type': 'message', 'role': 'user', 'content': 'hi', 'pid': 'no-such-entry'},
        {'type': 'tool.result', 'tool': 'bash', 'success': True, 'result': 'ok', 'call_id': 'no-such-call'},
        {'type': 'tool.result', 'tool': 'bash', 'success': False},
    ],
    ids=['dangling-pid', 'unmatched-call-id', 'missing-error'],
)
def test_added_bad_entry_adds_error_and_keeps_existing(fixture: str, bad_fields: dict[str, Any]) -> None:
    entries, _ = _load_fixture(fixture)
    before = validate_semantics(entries)

    # Inserted just before the last entry, in its session and at its ts, so order and contiguity hold
    last = entries[-1]
    bad = parse_entry({'v': 1, 'id': 'added-bad-entry', 'ts': last.ts, 'sid': last.sid, **bad_fields})
    after = validate_semantics([*entries[:-1], bad, last])

    assert not after.valid
    assert any(bad.id in error.entryIds for error in after.errors)
    for violation in [*before.errors, *before.warnings]:
        assert violation in [*after.errors, *after.warnings]


def test_line_numbers_are_attached() -> None:
    entries, line_numbers = _load_fixture('invalid/decreasing-seq.aef.jsonl')

    result = validate_semantics(entries, line_numbers)

    error = next(e for e in result.errors if e.rule == 'seq-monotonic')
    assert error.line == 4


def test_line_numbers_default_to_none() -> None:
    entries, _ = _load_fixture('invalid/decreasing-seq.aef.jsonl')

    assert all(e.line is None for e in validate_semantics(entries).errors)


def test_validation_is_deterministic() -> None:
    entries, _ = _load_fixture('invalid/interleaved-sessions.aef.jsonl')

    assert validate_semantics(entries) == validate_semantics(entries)


def test_validation_does_not_modify_input() -> None:
    entries, _ = _load_fixture('invalid/session-start-not-first.aef.jsonl')
    before = [dump_entry(entry) for entry in entries]
    order = list(entries)

    validate_semantics(entries)

    assert [dump_entry(entry) for entry in entries] == before
    assert entries == order


def test_result_serializes_with_valid_flag() -> None:
    entries, _ = _load_fixture('invalid/mismatched-call-ids.aef.jsonl')

    data = validate_semantics(entries, [1, 2, 3, 4]).model_dump(mode='json')

    assert data['valid'] is False
    assert data['errors'][0] == {
        'rule': 'call-id-match',
        'message': "tool.result has call_id 'tc999' with no matching tool.call",
        'specRef': '§4.4/§4.5',
        'entryIds': ['mc-03'],
        'line': 3,
    }


# ==============================================================================
# Preconditions
# ==============================================================================


def test_raw_dicts_are_rejected() -> None:
    raw = [{'v': 1, 'id': '01', 'ts': 1000, 'type': 'session.start', 'sid': 's1', 'agent': 'test'}]

    with pytest.raises(SemanticPreconditionError, match='not a parsed entry'):
        validate_semantics(raw)  # type: ignore[arg-type]


@pytest.mark.parametrize('value', [None, 'entries', {'id': '01'}])
def test_non_sequence_input_is_rejected(value: object) -> None:
    with pytest.raises(SemanticPreconditionError):
        validate_semantics(value)  # type: ignore[arg-type]


def test_mismatched_line_numbers_are_rejected() -> None:
    with pytest.raises(SemanticPreconditionError, match='line_numbers'):
        validate_semantics([_start('01', 1000)], [1, 2])
