"""
JSON Schema export for the entry model.

The generated document lets non-Python tooling validate entry shapes
(type generation, editor support, cross-language validation).
"""

from __future__ import annotations

from typing import Any

from aef.schemas.entries import EXTENSION_TYPE_PATTERN, SCHEMA_VERSION, EntryAdapter

SCHEMA_DIALECT = 'https://json-schema.org/draft/2020-12/schema'


def export_entry_schema() -> dict[str, Any]:
    """Build the JSON Schema for a single AEF entry (one JSONL line)."""
    schema = EntryAdapter.json_schema()

    schema['$schema'] = SCHEMA_DIALECT
    schema['title'] = 'AEF Entry'
    schema['description'] = 'One line of an Agent Event Format (AEF) JSONL log'

    schema['x-schema-version'] = SCHEMA_VERSION
    schema['x-extension-type-pattern'] = EXTENSION_TYPE_PATTERN

    return schema
