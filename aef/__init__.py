"""
Agent Event Format (AEF).

Normalized JSONL event-log format for AI-agent execution traces, with
structural and semantic validation, adapters and a command-line interface.
"""

from __future__ import annotations

from aef.schemas.entries import SCHEMA_VERSION, Entry, EntryAdapter, classify
from aef.schemas.validation import SemanticValidationResult, Violation
from aef.services.semantic import validate_semantics
from aef.services.structural import validate_entry, validate_stream

__version__ = '0.1.0'

__all__ = [
    'SCHEMA_VERSION',
    'Entry',
    'EntryAdapter',
    'SemanticValidationResult',
    'Violation',
    'classify',
    'validate_entry',
    'validate_semantics',
    'validate_stream',
]
