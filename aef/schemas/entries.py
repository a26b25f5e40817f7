"""
Pydantic models for AEF JSONL entries.

Every line of an AEF file is one entry. All entries share the base fields
(v, id, ts, type, sid, pid?, seq?, deps?). The six core entry types add
type-specific fields and are parsed through a discriminated union on `type`.
Anything else must be a namespaced extension type (vendor.category.type, at
least three segments) and is parsed as an open ExtensionEntry that keeps
its vendor fields.

Field names mirror the wire format exactly:
- v: schema version (always 1)
- ts: Unix timestamp in milliseconds
- sid: session ID, groups entries into one conversation/execution
- pid: parent entry ID (causal reference)
- seq: sequence number within the session
- deps: additional causal references for multi-parent entries

Round-trip serialization:
- Use model_dump(exclude_unset=True, mode='json') (see dump_entry) so that
  optional fields that were absent stay absent. tool.result relies on this:
  an explicit "result": null is different from no result at all.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal

import pydantic

from aef.schemas.types import BaseStrictModel, PermissiveModel

# ==============================================================================
# Schema Version
# ==============================================================================

SCHEMA_VERSION = 1

CORE_TYPES: frozenset[str] = frozenset(
    {
        'session.start',
        'session.end',
        'message',
        'tool.call',
        'tool.result',
        'error',
    }
)

# Lowercase alphanumeric + hyphen segments, no leading digit, at least three segments
EXTENSION_TYPE_PATTERN = r'^[a-z-][a-z0-9-]*(\.[a-z-][a-z0-9-]*){2,}$'
EXTENSION_TYPE_RE = re.compile(EXTENSION_TYPE_PATTERN)

EntryCategory = Literal['core', 'extension', 'invalid']


# ==============================================================================
# Base Configuration
# ==============================================================================


class StrictModel(BaseStrictModel):
    """Entry-layer strict model (extra='forbid', strict=True, frozen=True)."""

    pass


class BaseEntry(StrictModel):
    """Fields shared by every AEF entry."""

    v: Literal[1]
    id: str
    ts: int = pydantic.Field(ge=0)
    type: str
    sid: str = pydantic.Field(min_length=1)
    pid: str | None = None
    seq: int | None = None
    deps: Sequence[str] | None = None


# ==============================================================================
# Message Content Blocks (Discriminated Union)
# ==============================================================================


class TextBlock(StrictModel):
    """Plain text content block."""

    type: Literal['text']
    text: str


class ToolUseBlock(StrictModel):
    """Tool invocation embedded in message content."""

    type: Literal['tool_use']
    id: str
    name: str
    input: Mapping[str, Any]


class ToolResultBlock(StrictModel):
    """Tool output embedded in message content."""

    type: Literal['tool_result']
    tool_use_id: str
    content: str
    is_error: bool | None = None


ContentBlock = Annotated[
    TextBlock | ToolUseBlock | ToolResultBlock,
    pydantic.Field(discriminator='type'),
]


# ==============================================================================
# Core Entries
# ==============================================================================


class SessionStartEntry(BaseEntry):
    """First entry of a session."""

    type: Literal['session.start']
    agent: str
    version: str | None = None
    workspace: str | None = None
    model: str | None = None
    meta: Mapping[str, Any] | None = None


class TokenTotals(StrictModel):
    """Aggregate token usage for a session."""

    input: int
    output: int


class SessionSummary(StrictModel):
    """Optional roll-up attached to session.end."""

    messages: int | None = None
    tool_calls: int | None = None
    duration_ms: int | None = None
    tokens: TokenTotals | None = None


SessionStatus = Literal['complete', 'error', 'timeout', 'user_abort']


class SessionEndEntry(BaseEntry):
    """Last entry of a session."""

    type: Literal['session.end']
    status: SessionStatus
    summary: SessionSummary | None = None


class MessageTokens(StrictModel):
    """Per-message token usage. cached counts cache reads and cache writes."""

    input: int | None = None
    output: int | None = None
    cached: int | None = None


class MessageEntry(BaseEntry):
    """User, assistant or system message."""

    type: Literal['message']
    role: Literal['user', 'assistant', 'system']
    content: str | Sequence[ContentBlock]
    model: str | None = None  # Overrides session.start.model for multi-model sessions
    tokens: MessageTokens | None = None


class ToolCallEntry(BaseEntry):
    """Tool invocation. call_id correlates it with the tool.result."""

    type: Literal['tool.call']
    tool: str
    args: Mapping[str, Any]
    call_id: str | None = None


class ToolError(StrictModel):
    """Failure details on an unsuccessful tool.result."""

    code: str | None = None
    message: str


class ToolResultEntry(BaseEntry):
    """
    Tool output.

    Output requirements (checked by the semantic validator, not here):
    - success=True: result SHOULD be present
    - success=False: error MUST be present with a non-empty message
    """

    type: Literal['tool.result']
    tool: str
    call_id: str | None = None
    result: Any = None
    success: bool
    duration_ms: int | None = None
    error: ToolError | None = None

    @property
    def has_result(self) -> bool:
        """True if the record carried a result field (even an explicit null)."""
        return 'result' in self.model_fields_set


class ErrorEntry(BaseEntry):
    """Agent-level error (not tied to a tool invocation)."""

    type: Literal['error']
    code: str | None = None
    message: str
    stack: str | None = None
    recoverable: bool | None = None


CoreEntry = Annotated[
    SessionStartEntry | SessionEndEntry | MessageEntry | ToolCallEntry | ToolResultEntry | ErrorEntry,
    pydantic.Field(discriminator='type'),
]

# Variant model per core type, for validating a record whose type is already known
CORE_ENTRY_MODELS: Mapping[str, type[BaseEntry]] = {
    'session.start': SessionStartEntry,
    'session.end': SessionEndEntry,
    'message': MessageEntry,
    'tool.call': ToolCallEntry,
    'tool.result': ToolResultEntry,
    'error': ErrorEntry,
}


# ==============================================================================
# Extension Entries
# ==============================================================================


class ExtensionEntry(BaseEntry, PermissiveModel):
    """
    Namespaced entry (e.g. warmhub.react.step) with arbitrary vendor fields.

    Only the base fields are typed. Everything else is kept as-is and is
    available through get_extra_fields().
    """

    model_config = PermissiveModel.model_config

    type: Annotated[str, pydantic.StringConstraints(pattern=EXTENSION_TYPE_PATTERN)]


# ==============================================================================
# Entry (Core | Extension)
# ==============================================================================


def _entry_kind(value: Any) -> str:
    """Route raw records and parsed models to the core or extension branch."""
    entry_type = value.get('type') if isinstance(value, Mapping) else getattr(value, 'type', None)
    return 'core' if entry_type in CORE_TYPES else 'extension'


Entry = Annotated[
    Annotated[CoreEntry, pydantic.Tag('core')] | Annotated[ExtensionEntry, pydantic.Tag('extension')],
    pydantic.Discriminator(_entry_kind),
]

# Type adapter for validating entries (required for union types)
EntryAdapter: pydantic.TypeAdapter[Entry] = pydantic.TypeAdapter(Entry)


# ==============================================================================
# Classification and Predicates
# ==============================================================================


def classify(entry: Mapping[str, Any] | BaseEntry) -> EntryCategory:
    """
    Classify an entry by its type string alone.

    Exact match against the six core types gives 'core'; a namespaced type
    with at least three segments gives 'extension'; anything else (including
    a missing or non-string type) is 'invalid'. Independent of the entry's
    position in a log and of its other fields.
    """
    if isinstance(entry, BaseEntry):
        entry_type: object = entry.type
    elif isinstance(entry, Mapping):
        entry_type = entry.get('type')
    else:
        return 'invalid'

    if not isinstance(entry_type, str):
        return 'invalid'
    if entry_type in CORE_TYPES:
        return 'core'
    if EXTENSION_TYPE_RE.fullmatch(entry_type):
        return 'extension'
    return 'invalid'


def is_core_entry(entry: Mapping[str, Any] | BaseEntry) -> bool:
    return classify(entry) == 'core'


def is_extension_entry(entry: Mapping[str, Any] | BaseEntry) -> bool:
    return classify(entry) == 'extension'


def _is_int(value: object) -> bool:
    # bool is a subclass of int but never a valid v/ts
    return isinstance(value, int) and not isinstance(value, bool)


def has_valid_base_fields(raw: object) -> bool:
    """Check the minimum shape every entry needs before variant validation."""
    if not isinstance(raw, Mapping):
        return False
    v = raw.get('v')
    return (
        _is_int(v)
        and v == SCHEMA_VERSION
        and isinstance(raw.get('id'), str)
        and _is_int(raw.get('ts'))
        and isinstance(raw.get('type'), str)
        and isinstance(raw.get('sid'), str)
    )


def parse_entry(raw: Mapping[str, Any]) -> Entry:
    """Parse a raw record into its typed entry model (raises pydantic.ValidationError)."""
    return EntryAdapter.validate_python(raw)


def dump_entry(entry: BaseEntry) -> dict[str, Any]:
    """Serialize an entry back to its wire shape, keeping absent fields absent."""
    return entry.model_dump(mode='json', exclude_unset=True)
