"""
Entry parser service - JSONL file loading and structural validation.

Framework-agnostic service for turning an AEF file on disk into the ordered
entry list the semantic validator consumes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from pathlib import Path

from aef.exceptions import LogFileError
from aef.protocols import LoggerProtocol, NullLogger
from aef.schemas.entries import Entry
from aef.schemas.operations import LoadedLog, LoadStats
from aef.schemas.validation import LineValidation
from aef.services.structural import validate_stream


def read_lines(path: Path) -> list[str]:
    """
    Read a UTF-8 text file as a list of lines.

    Splits on '\\n' only: JSON strings may legally contain U+2028/U+2029,
    which str.splitlines() would treat as line breaks.

    Raises:
        FileNotFoundError: If the file does not exist
        LogFileError: If the file is not valid UTF-8
    """
    try:
        text = path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        raise LogFileError(path, f'not valid UTF-8 ({e.reason} at byte {e.start})') from e

    lines = text.split('\n')
    if lines and lines[-1] == '':
        lines.pop()  # Trailing newline
    return [line.removesuffix('\r') for line in lines]


async def aiter_lines(lines: Sequence[str]) -> AsyncIterator[str]:
    """Expose already-read lines as an async stream (the adapter input type)."""
    for line in lines:
        yield line


class EntryParserService:
    """
    Service for parsing AEF JSONL files.

    Pure domain logic - loads a file and validates each line into typed entries.
    Invalid lines are collected, not raised, so one pass reports every problem.
    """

    async def load(self, path: Path, logger: LoggerProtocol | None = None) -> LoadedLog:
        """
        Load and structurally validate an AEF file.

        Args:
            path: Path to the JSONL file
            logger: Logger instance (defaults to NullLogger)

        Returns:
            LoadedLog with valid entries, their line numbers and the failed lines
        """
        logger = logger or NullLogger()
        await logger.info(f'Loading {path.name}')

        entries: list[Entry] = []
        line_numbers: list[int] = []
        failures: list[LineValidation] = []
        counts = {'core': 0, 'extension': 0, 'invalid': 0}

        for line_result in validate_stream(read_lines(path)):
            result = line_result.result
            counts[result.entryType] += 1

            if result.valid and result.entry is not None:
                entries.append(result.entry)
                line_numbers.append(line_result.line)
            else:
                failures.append(line_result)
                await logger.warning(f'Line {line_result.line}: {"; ".join(result.errors)}')

        stats = LoadStats(total=sum(counts.values()), **counts)
        await logger.info(
            f'Loaded {stats.total} entries from {path.name} '
            f'({stats.core} core, {stats.extension} extension, {stats.invalid} invalid)'
        )

        return LoadedLog(
            path=str(path),
            entries=entries,
            line_numbers=line_numbers,
            failures=failures,
            stats=stats,
        )
