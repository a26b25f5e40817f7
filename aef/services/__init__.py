"""Service layer for AEF operations."""

from aef.services.info import summarize_log
from aef.services.parser import EntryParserService
from aef.services.schema import export_entry_schema
from aef.services.semantic import validate_semantics
from aef.services.structural import validate_entry, validate_line, validate_stream

__all__ = [
    'EntryParserService',
    'export_entry_schema',
    'summarize_log',
    'validate_entry',
    'validate_line',
    'validate_semantics',
    'validate_stream',
]
