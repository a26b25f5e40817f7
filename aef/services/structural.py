"""
Structural validation - per-record shape checks.

Validates one raw record at a time against the entry models and classifies
it as core, extension or invalid. Has no notion of document order; the
semantic validator relies on this pass having already dropped invalid
records.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

import orjson
import pydantic

from aef.schemas.entries import (
    SCHEMA_VERSION,
    CORE_ENTRY_MODELS,
    ExtensionEntry,
    classify,
    has_valid_base_fields,
)
from aef.schemas.validation import LineValidation, ShapeValidationResult

__all__ = [
    'validate_entry',
    'validate_line',
    'validate_stream',
]


def validate_entry(raw: object) -> ShapeValidationResult:
    """
    Validate a single decoded record.

    Args:
        raw: Decoded JSON value (normally a dict)

    Returns:
        ShapeValidationResult with entryType core/extension/invalid and, when valid,
        the parsed entry model
    """
    if not isinstance(raw, dict):
        return ShapeValidationResult(
            valid=False,
            entryType='invalid',
            errors=[f'Entry must be a JSON object, got {_json_type_name(raw)}'],
        )

    if not has_valid_base_fields(raw):
        return ShapeValidationResult(valid=False, entryType='invalid', errors=_base_field_errors(raw))

    category = classify(raw)
    if category == 'invalid':
        return ShapeValidationResult(
            valid=False,
            entryType='invalid',
            errors=[
                f"Unknown entry type '{raw['type']}': must be a core type or a namespaced "
                f'extension type (vendor.category.type)'
            ],
        )

    try:
        if category == 'core':
            entry = CORE_ENTRY_MODELS[raw['type']].model_validate(raw)
        else:
            entry = ExtensionEntry.model_validate(raw)
    except pydantic.ValidationError as e:
        # Core shape violations make the record unusable: report it as invalid
        return ShapeValidationResult(valid=False, entryType='invalid', errors=_format_errors(e))

    return ShapeValidationResult(valid=True, entryType=category, entry=entry)


def validate_line(text: str) -> ShapeValidationResult:
    """Decode one JSONL line and validate it."""
    try:
        raw = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        return ShapeValidationResult(valid=False, entryType='invalid', errors=[f'Invalid JSON: {e}'])

    return validate_entry(raw)


def validate_stream(lines: Iterable[str]) -> Iterator[LineValidation]:
    """
    Validate a JSONL stream line by line.

    Blank and whitespace-only lines are skipped but still counted, so the
    reported line numbers match the source file. Invalid JSON does not stop
    the stream.
    """
    for line_num, text in enumerate(lines, 1):
        if not text.strip():
            continue
        yield LineValidation(line=line_num, result=validate_line(text))


# ==============================================================================
# Error Formatting
# ==============================================================================


def _base_field_errors(raw: dict[str, Any]) -> list[str]:
    errors = []
    v = raw.get('v')
    if not (_matches(v, 'integer') and v == SCHEMA_VERSION):
        errors.append(f'v: must be {SCHEMA_VERSION}, got {v!r}')
    for field, expected in (('id', 'string'), ('ts', 'integer'), ('type', 'string'), ('sid', 'string')):
        if field not in raw:
            errors.append(f'{field}: required field missing')
        elif not _matches(raw[field], expected):
            errors.append(f'{field}: must be {expected}, got {_json_type_name(raw[field])}')
    return errors


def _matches(value: object, expected: str) -> bool:
    if expected == 'integer':
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, str)


def _format_errors(error: pydantic.ValidationError) -> list[str]:
    """Flatten pydantic errors to '<loc>: <msg>' strings."""
    formatted = []
    for detail in error.errors(include_url=False):
        loc = '.'.join(str(part) for part in detail['loc'])
        formatted.append(f'{loc or "<root>"}: {detail["msg"]}')
    return formatted


def _json_type_name(value: object) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'array'
    if isinstance(value, dict):
        return 'object'
    return type(value).__name__
