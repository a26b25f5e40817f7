"""
Log info service - summary statistics for an entry list.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from aef.schemas.entries import BaseEntry, MessageEntry, SessionStartEntry
from aef.schemas.operations import LogInfo, TimeRange


def summarize_log(entries: Sequence[BaseEntry]) -> LogInfo:
    """
    Summarize entry counts, sessions, agents, models and time span.

    Agents come from session.start; models from session.start and from
    per-message overrides. Both are deduplicated in first-seen order.
    """
    types = Counter(entry.type for entry in entries)
    sessions = {entry.sid for entry in entries}

    agents: dict[str, None] = {}
    models: dict[str, None] = {}
    for entry in entries:
        if isinstance(entry, SessionStartEntry):
            agents[entry.agent] = None
            if entry.model:
                models[entry.model] = None
        elif isinstance(entry, MessageEntry) and entry.model:
            models[entry.model] = None

    if entries:
        start = min(entry.ts for entry in entries)
        end = max(entry.ts for entry in entries)
        time_range = TimeRange(start=start, end=end, durationMs=end - start)
    else:
        time_range = TimeRange(start=None, end=None, durationMs=None)

    return LogInfo(
        entries=len(entries),
        sessions=len(sessions),
        types=dict(types),
        agents=list(agents),
        models=list(models),
        timeRange=time_range,
    )
