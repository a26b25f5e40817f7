"""
Schema definitions for aef.

This package contains Pydantic models for:
- entries: AEF entry types (core and extension)
- validation: structural and semantic validation results
- operations: loader and info service results
"""

from __future__ import annotations

from aef.schemas.entries import Entry, EntryAdapter, classify
from aef.schemas.types import BaseStrictModel, JsonDatetime, PermissiveModel

__all__ = [
    'BaseStrictModel',
    'Entry',
    'EntryAdapter',
    'JsonDatetime',
    'PermissiveModel',
    'classify',
]
