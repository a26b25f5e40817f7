"""
Log format adapters.

Each adapter converts one vendor's session logs into AEF entries. The
registry maps adapter ids (as used by `aef convert --adapter`) to instances.
"""

from __future__ import annotations

from collections.abc import Mapping

from aef.adapters.base import LogAdapter, generate_id
from aef.adapters.claude_code import ClaudeCodeAdapter
from aef.exceptions import UnknownAdapterError

ADAPTERS: Mapping[str, LogAdapter] = {
    adapter.id: adapter
    for adapter in (ClaudeCodeAdapter(),)
}


def get_adapter(adapter_id: str) -> LogAdapter:
    """
    Look up an adapter by id.

    Raises:
        UnknownAdapterError: If no adapter is registered under adapter_id
    """
    try:
        return ADAPTERS[adapter_id]
    except KeyError:
        raise UnknownAdapterError(adapter_id, ADAPTERS) from None


__all__ = [
    'ADAPTERS',
    'ClaudeCodeAdapter',
    'LogAdapter',
    'generate_id',
    'get_adapter',
]
