#!/usr/bin/env python3
"""
Command-line interface for aef.

Provides commands to validate, inspect and convert Agent Event Format logs.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, TypeGuard

import orjson
import pydantic
import typer

from aef.adapters import get_adapter
from aef.cli.logger import CLILogger
from aef.config import settings
from aef.exceptions import AefError
from aef.schemas.entries import dump_entry
from aef.schemas.operations import LogInfo, ValidationReport
from aef.schemas.validation import Violation
from aef.services.info import summarize_log
from aef.services.parser import EntryParserService, aiter_lines, read_lines
from aef.services.schema import export_entry_schema
from aef.services.semantic import validate_semantics

app = typer.Typer(
    name='aef',
    help='Validate, inspect and convert Agent Event Format (AEF) logs',
    add_completion=False,
)

OutputFormat = Literal['text', 'json']


def _is_output_format(value: str) -> TypeGuard[OutputFormat]:
    """Type guard for valid output formats."""
    return value in ('text', 'json')


def _validate_output_format(value: str) -> OutputFormat:
    """Validate and narrow output format for typer callback."""
    if _is_output_format(value):
        return value
    raise typer.BadParameter("Must be 'text' or 'json'")


def _fail(message: str) -> typer.Exit:
    typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def _setting(name: str) -> Any:
    """Read a setting, turning misconfiguration into a CLI error."""
    try:
        return getattr(settings, name)
    except (pydantic.ValidationError, OSError) as e:
        raise _fail(f'Invalid configuration: {e}')


@app.command()
def validate(
    file: Path = typer.Argument(..., help='AEF JSONL file to validate'),
    no_semantic: bool = typer.Option(False, '--no-semantic', help='Only run per-line structural validation'),
    strict: bool = typer.Option(False, '--strict', help='Treat semantic warnings as failures'),
    format: str = typer.Option(
        'text', '--format', '-f', help='Output format: text or json', callback=_validate_output_format
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Show loader progress on stderr'),
) -> None:
    """Validate an AEF log file.

    Runs structural validation on every line, then semantic validation over
    the whole document if every line passed. Exits with status 1 if the log
    is invalid (or, with --strict, if there are warnings).

    Examples:
        aef validate session.aef.jsonl
        aef validate session.aef.jsonl --strict --format json
    """
    asyncio.run(_validate_async(file, not no_semantic, strict or _setting('WARNINGS_AS_ERRORS'), format, verbose))


async def _validate_async(
    file: Path,
    semantic: bool,
    strict: bool,
    format: OutputFormat,
    verbose: bool,
) -> None:
    """Async implementation of validate command."""
    logger = CLILogger(verbose=verbose)
    try:
        loaded = await EntryParserService().load(file, logger)
    except (AefError, OSError) as e:
        raise _fail(str(e))

    semantic_result = None
    if semantic and loaded.valid:
        semantic_result = validate_semantics(loaded.entries, loaded.line_numbers)

    valid = loaded.valid and (
        semantic_result is None or (semantic_result.valid and not (strict and semantic_result.warnings))
    )

    if format == 'json':
        report = ValidationReport(
            file=str(file),
            valid=valid,
            strict=strict,
            stats=loaded.stats,
            structuralErrors=loaded.failures,
            semantic=semantic_result,
        )
        typer.echo(report.model_dump_json(indent=2))
        if not valid:
            raise typer.Exit(1)
        return

    # Text format
    stats = loaded.stats
    typer.echo(f'File: {file}')
    typer.echo(
        f'Structural: {stats.total} entries '
        f'({stats.core} core, {stats.extension} extension, {stats.invalid} invalid)'
    )
    for failure in loaded.failures:
        for error in failure.result.errors:
            typer.secho(f'  Line {failure.line}: {error}', fg=typer.colors.RED)

    if semantic_result is not None:
        typer.echo(
            f'Semantic: {_plural(len(semantic_result.errors), "error")}, '
            f'{_plural(len(semantic_result.warnings), "warning")}'
        )
        for violation in semantic_result.errors:
            typer.secho(f'  ERROR {_format_violation(violation)}', fg=typer.colors.RED)
        for violation in semantic_result.warnings:
            typer.secho(f'  WARNING {_format_violation(violation)}', fg=typer.colors.YELLOW)
    elif not semantic:
        typer.echo('Semantic: skipped')
    else:
        typer.echo('Semantic: skipped (structural errors)')

    typer.echo()
    if valid:
        typer.secho('✓ Valid', fg=typer.colors.GREEN)
    else:
        typer.secho('✗ Invalid', fg=typer.colors.RED)
        raise typer.Exit(1)


def _plural(count: int, noun: str) -> str:
    return f'{count} {noun}' if count == 1 else f'{count} {noun}s'


def _format_violation(violation: Violation) -> str:
    location = f' (line {violation.line})' if violation.line is not None else ''
    return f'[{violation.rule}] {violation.message} ({violation.specRef}){location}'


@app.command()
def info(
    file: Path = typer.Argument(..., help='AEF JSONL file to summarize'),
    format: str = typer.Option(
        'text', '--format', '-f', help='Output format: text or json', callback=_validate_output_format
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Show loader progress on stderr'),
) -> None:
    """Display summary information about an AEF log.

    Shows entry and session counts, entry types, time range, agents and
    models. Lines that fail structural validation are left out of the summary.

    Examples:
        aef info session.aef.jsonl
        aef info session.aef.jsonl --format json
    """
    asyncio.run(_info_async(file, format, verbose))


async def _info_async(file: Path, format: OutputFormat, verbose: bool) -> None:
    """Async implementation of info command."""
    logger = CLILogger(verbose=verbose)
    try:
        loaded = await EntryParserService().load(file, logger)
    except (AefError, OSError) as e:
        raise _fail(str(e))

    summary = summarize_log(loaded.entries)

    if format == 'json':
        typer.echo(summary.model_dump_json(indent=2))
        return

    _print_info(file, summary)
    if loaded.failures:
        typer.echo()
        typer.secho(
            f'Skipped {_plural(len(loaded.failures), "invalid line")} (run `aef validate` for details)',
            fg=typer.colors.YELLOW,
        )


def _print_info(file: Path, summary: LogInfo) -> None:
    typer.echo(f'File: {file}')
    typer.echo(f'Entries: {summary.entries}')
    typer.echo(f'Sessions: {summary.sessions}')
    typer.echo()

    typer.secho('Entry Types:', bold=True)
    for entry_type, count in summary.types.items():
        typer.echo(f'  {entry_type}: {count}')
    typer.echo()

    time_range = summary.timeRange
    if time_range.start is not None and time_range.end is not None:
        typer.secho('Time Range:', bold=True)
        typer.echo(f'  Start: {_format_ts(time_range.start)}')
        typer.echo(f'  End: {_format_ts(time_range.end)}')
        typer.echo(f'  Duration: {(time_range.durationMs or 0) / 1000:.1f}s')
        typer.echo()

    if summary.agents:
        typer.echo(f'Agents: {", ".join(summary.agents)}')
    if summary.models:
        typer.echo(f'Models: {", ".join(summary.models)}')


def _format_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000, UTC).isoformat(timespec='milliseconds')


@app.command()
def convert(
    file: Path = typer.Argument(..., help='Source log file (e.g. a Claude Code transcript)'),
    adapter: str | None = typer.Option(None, '--adapter', '-a', help='Adapter id (default: AEF_DEFAULT_ADAPTER)'),
    output: Path | None = typer.Option(None, '--output', '-o', help='Output file (default: stdout)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Show progress on stderr'),
) -> None:
    """Convert a vendor log to AEF JSONL.

    Examples:
        aef convert ~/.claude/projects/-home-me-app/abc123.jsonl
        aef convert transcript.jsonl --adapter claude-code -o session.aef.jsonl
    """
    asyncio.run(_convert_async(file, adapter or _setting('DEFAULT_ADAPTER'), output, verbose))


async def _convert_async(file: Path, adapter_id: str, output: Path | None, verbose: bool) -> None:
    """Async implementation of convert command."""
    logger = CLILogger(verbose=verbose)
    try:
        source = get_adapter(adapter_id)
        lines = read_lines(file)
    except (AefError, OSError) as e:
        raise _fail(str(e))

    await logger.info(f'Converting {file.name} with {source.name} adapter')
    entries = [entry async for entry in source.parse(aiter_lines(lines))]
    if not entries:
        raise _fail(f'No convertible records found in {file}')

    payload = b''.join(orjson.dumps(dump_entry(entry)) + b'\n' for entry in entries)

    if output is None:
        typer.echo(payload.decode(), nl=False)
        return

    try:
        output.write_bytes(payload)
    except OSError as e:
        raise _fail(str(e))
    typer.secho(f'✓ Wrote {len(entries)} entries to {output}', fg=typer.colors.GREEN, err=True)


@app.command()
def schema(
    output: Path | None = typer.Option(None, '--output', '-o', help='Output file (default: stdout)'),
) -> None:
    """Export the JSON Schema for AEF entries."""
    data = orjson.dumps(export_entry_schema(), option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)

    if output is None:
        typer.echo(data.decode())
        return

    try:
        output.write_bytes(data + b'\n')
    except OSError as e:
        raise _fail(str(e))
    typer.secho(f'✓ Exported JSON Schema to: {output}', fg=typer.colors.GREEN, err=True)


def main() -> None:
    """Entry point for the aef CLI."""
    app()


if __name__ == '__main__':
    main()
