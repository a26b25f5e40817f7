"""
Claude Code adapter.

Converts Claude Code session transcripts (~/.claude/projects/**/*.jsonl)
into AEF entries.

Source records are typed with permissive models: only the fields the
conversion reads are declared, everything else Claude Code writes is
tolerated. Only user and assistant records carry conversation content;
summaries, file-history snapshots, queue operations and other bookkeeping
records are skipped.

Output order for one transcript:
- session.start (no seq), stamped with the first record's timestamp
- body entries in source order with seq 0, 1, 2, ...
- session.end (no seq), stamped with the last record's timestamp
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Mapping, Sequence
from typing import Any, Literal

import orjson
import pydantic

from aef.adapters.base import generate_id
from aef.schemas.entries import (
    SCHEMA_VERSION,
    BaseEntry,
    MessageEntry,
    MessageTokens,
    SessionEndEntry,
    SessionStartEntry,
    SessionSummary,
    TextBlock,
    TokenTotals,
    ToolCallEntry,
    ToolError,
    ToolResultEntry,
)
from aef.schemas.types import JsonDatetime, PermissiveModel

logger = logging.getLogger(__name__)

AGENT_NAME = 'claude-code'


# ==============================================================================
# Source Record Models
# ==============================================================================


class ClaudeCodeUsage(PermissiveModel):
    """Token usage reported on assistant messages."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None


class ClaudeCodeMessage(PermissiveModel):
    """The API message embedded in a user/assistant record."""

    role: str
    content: str | Sequence[Mapping[str, Any]]
    model: str | None = None
    usage: ClaudeCodeUsage | None = None


class ClaudeCodeRecord(PermissiveModel):
    """A user or assistant transcript record."""

    type: Literal['user', 'assistant']
    sessionId: str
    timestamp: JsonDatetime
    message: ClaudeCodeMessage
    uuid: str | None = None
    parentUuid: str | None = None
    cwd: str | None = None
    version: str | None = None
    gitBranch: str | None = None

    @property
    def ts(self) -> int:
        """Timestamp in Unix milliseconds."""
        return round(self.timestamp.timestamp() * 1000)


# ==============================================================================
# Conversion
# ==============================================================================


class _SessionBuilder:
    """Accumulates body entries for one transcript, tracking IDs for pid/call correlation."""

    def __init__(self, first: ClaudeCodeRecord) -> None:
        self.sid = first.sessionId
        self.body: list[BaseEntry] = []
        self.entry_by_uuid: dict[str, str] = {}  # Source uuid -> last AEF entry emitted for it
        self.call_entry_ids: dict[str, str] = {}  # tool_use id -> tool.call entry id
        self.call_tools: dict[str, str] = {}  # tool_use id -> tool name
        self.message_count = 0
        self.tool_call_count = 0
        self.input_tokens = 0
        self.output_tokens = 0

    def _base(self, ts: int, pid: str | None, entry_id: str | None = None) -> dict[str, Any]:
        fields: dict[str, Any] = {
            'v': SCHEMA_VERSION,
            'id': entry_id or generate_id(),
            'ts': ts,
            'sid': self.sid,
            'seq': len(self.body),
        }
        if pid is not None:
            fields['pid'] = pid
        return fields

    def add(self, record: ClaudeCodeRecord) -> None:
        parent_id = self.entry_by_uuid.get(record.parentUuid) if record.parentUuid else None
        usage = record.message.usage
        if usage is not None:
            self.input_tokens += usage.input_tokens or 0
            self.output_tokens += usage.output_tokens or 0
        last_id: str | None = None

        content = record.message.content
        if isinstance(content, str):
            last_id = self._add_message(record, content, parent_id)
        else:
            text_blocks = [
                TextBlock(type='text', text=block['text'])
                for block in content
                if block.get('type') == 'text' and isinstance(block.get('text'), str)
            ]
            if text_blocks:
                last_id = self._add_message(record, text_blocks, parent_id)

            for block in content:
                block_type = block.get('type')
                if block_type == 'tool_use':
                    last_id = self._add_tool_call(record, block, last_id or parent_id)
                elif block_type == 'tool_result':
                    last_id = self._add_tool_result(record, block, parent_id)

        if record.uuid and last_id:
            self.entry_by_uuid[record.uuid] = last_id

    def _add_message(
        self,
        record: ClaudeCodeRecord,
        content: str | list[TextBlock],
        pid: str | None,
    ) -> str:
        fields = self._base(record.ts, pid, entry_id=record.uuid)
        role: Literal['user', 'assistant'] = record.type
        fields.update(type='message', role=role, content=content)
        if record.message.model:
            fields['model'] = record.message.model

        usage = record.message.usage
        if usage is not None:
            fields['tokens'] = _tokens(usage)

        entry = MessageEntry(**fields)
        self.body.append(entry)
        self.message_count += 1
        return entry.id

    def _add_tool_call(self, record: ClaudeCodeRecord, block: Mapping[str, Any], pid: str | None) -> str:
        call_id = block.get('id')
        tool = block.get('name') or 'unknown'
        args = block.get('input')

        fields = self._base(record.ts, pid)
        fields.update(type='tool.call', tool=tool, args=dict(args) if isinstance(args, Mapping) else {})
        if isinstance(call_id, str) and call_id:
            fields['call_id'] = call_id

        entry = ToolCallEntry(**fields)
        self.body.append(entry)
        self.tool_call_count += 1
        if entry.call_id:
            self.call_entry_ids[entry.call_id] = entry.id
            self.call_tools[entry.call_id] = tool
        return entry.id

    def _add_tool_result(self, record: ClaudeCodeRecord, block: Mapping[str, Any], parent_id: str | None) -> str:
        tool_use_id = block.get('tool_use_id')
        # Only ids of tool_use blocks seen earlier in this transcript are kept
        call_id = tool_use_id if isinstance(tool_use_id, str) and tool_use_id in self.call_entry_ids else None
        is_error = block.get('is_error') is True
        output = _result_text(block.get('content'))

        fields = self._base(record.ts, self.call_entry_ids[call_id] if call_id else parent_id)
        fields.update(
            type='tool.result',
            tool=self.call_tools[call_id] if call_id else 'unknown',
            success=not is_error,
        )
        if call_id:
            fields['call_id'] = call_id
        if is_error:
            fields['error'] = ToolError(message=output or 'Tool execution failed')
        else:
            fields['result'] = output

        entry = ToolResultEntry(**fields)
        self.body.append(entry)
        return entry.id


def _tokens(usage: ClaudeCodeUsage) -> MessageTokens:
    """Per-message usage. cached sums cache reads and cache writes."""
    tokens: dict[str, int] = {}
    if usage.input_tokens is not None:
        tokens['input'] = usage.input_tokens
    if usage.output_tokens is not None:
        tokens['output'] = usage.output_tokens
    if usage.cache_read_input_tokens is not None or usage.cache_creation_input_tokens is not None:
        tokens['cached'] = (usage.cache_read_input_tokens or 0) + (usage.cache_creation_input_tokens or 0)
    return MessageTokens(**tokens)


def _result_text(content: object) -> str:
    """Flatten tool_result content (a string or a list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return '\n'.join(
            block['text']
            for block in content
            if isinstance(block, Mapping) and block.get('type') == 'text' and isinstance(block.get('text'), str)
        )
    return ''


def _session_start(records: Sequence[ClaudeCodeRecord], sid: str) -> SessionStartEntry:
    first = records[0]
    fields: dict[str, Any] = {
        'v': SCHEMA_VERSION,
        'id': generate_id(),
        'ts': first.ts,
        'type': 'session.start',
        'sid': sid,
        'agent': AGENT_NAME,
    }
    if first.version:
        fields['version'] = first.version
    if first.cwd:
        fields['workspace'] = first.cwd
    model = next((r.message.model for r in records if r.type == 'assistant' and r.message.model), None)
    if model:
        fields['model'] = model
    if first.gitBranch:
        fields['meta'] = {'gitBranch': first.gitBranch}
    return SessionStartEntry(**fields)


def _session_end(builder: _SessionBuilder, start_ts: int, end_ts: int) -> SessionEndEntry:
    summary = SessionSummary(
        messages=builder.message_count,
        tool_calls=builder.tool_call_count,
        duration_ms=end_ts - start_ts,
        tokens=TokenTotals(input=builder.input_tokens, output=builder.output_tokens),
    )
    return SessionEndEntry(
        v=SCHEMA_VERSION,
        id=generate_id(),
        ts=end_ts,
        type='session.end',
        sid=builder.sid,
        status='complete',
        summary=summary,
    )


# ==============================================================================
# Adapter
# ==============================================================================


class ClaudeCodeAdapter:
    """Adapter for Claude Code session transcripts (implements LogAdapter)."""

    id = 'claude-code'
    name = 'Claude Code'
    patterns: Sequence[str] = ('~/.claude/projects/**/*.jsonl',)

    async def parse(self, lines: AsyncIterable[str]) -> AsyncIterator[BaseEntry]:
        """
        Convert a transcript to AEF entries.

        The whole transcript is buffered first: session.start needs the model
        from the first assistant message, and session.end needs the totals.
        A transcript without user or assistant records produces nothing.
        """
        records: list[ClaudeCodeRecord] = []
        line_num = 0
        async for line in lines:
            line_num += 1
            record = _parse_record(line, line_num)
            if record is not None:
                records.append(record)

        if not records:
            logger.debug('No user or assistant records found')
            return

        builder = _SessionBuilder(records[0])
        for record in records:
            builder.add(record)

        start = _session_start(records, builder.sid)
        yield start
        for entry in builder.body:
            yield entry
        yield _session_end(builder, start.ts, records[-1].ts)


def _parse_record(line: str, line_num: int) -> ClaudeCodeRecord | None:
    """Decode one transcript line, returning None for anything that is not a usable user/assistant record."""
    if not line.strip():
        return None

    try:
        raw = orjson.loads(line)
    except orjson.JSONDecodeError:
        logger.debug('Skipping line %d: invalid JSON', line_num)
        return None

    if not isinstance(raw, dict) or raw.get('type') not in ('user', 'assistant'):
        return None

    try:
        return ClaudeCodeRecord.model_validate(raw)
    except pydantic.ValidationError as e:
        logger.debug('Skipping line %d: %s', line_num, e.errors(include_url=False))
        return None
