"""Output formatting with strict stdout/stderr discipline.

* **stdout** -- primary data only: the JSON envelope, a table, or CSV.
  This is what downstream tools pipe and parse.
* **stderr** -- all diagnostics (status, warnings, errors, suggestions).
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag. Without colour, tables are plain aligned text.

The module exposes two layers:

1. :class:`OutputManager` -- holds the format preferences and Rich consoles.
   Created once in :func:`~xcodecloud.app.main_callback` and installed via
   :func:`set_output`.
2. Module-level convenience functions (:func:`info`, :func:`error`, ...)
   that delegate to the installed manager.

Each CI resource has a fixed set of table columns, registered in
:data:`TABLE_COLUMNS`.
"""

from __future__ import annotations

import csv
import io
import json
import os
import sys
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from xcodecloud.models import (
    CiArtifact,
    CiBuildAction,
    CiBuildRun,
    CiIssue,
    CiProduct,
    CiTestResult,
    CiWorkflow,
)

NO_RESULTS = "No results"


class OutputFormat(str, Enum):
    """Formats accepted by ``-o/--output``."""

    JSON = "json"
    TABLE = "table"
    CSV = "csv"


# ------------------------------------------------------------------ #
# Cell formatting
# ------------------------------------------------------------------ #


def format_date(value: Optional[str]) -> str:
    """Render an ISO 8601 timestamp as ``YYYY-MM-DD HH:MM``.

    Unparseable values are returned unchanged; ``None`` becomes ``-``.
    """
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M")


def format_file_size(size: Optional[int]) -> str:
    """Human-readable size using binary steps: ``512 B``, ``1.5 KB``, ``2.0 GB``."""
    if size is None:
        return "-"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{size} B"
    return f"{value:.1f} {units[unit]}"


def _text(value: Any) -> str:
    return "-" if value is None else str(value)


def _yes_no(value: Optional[bool]) -> str:
    return "Yes" if value else "No"


def _product_row(item: CiProduct) -> list[str]:
    attrs = item.attributes
    return [
        item.id,
        _text(attrs and attrs.name),
        _text(attrs and attrs.product_type),
        format_date(attrs and attrs.created_date),
    ]


def _workflow_row(item: CiWorkflow) -> list[str]:
    attrs = item.attributes
    return [
        item.id,
        _text(attrs and attrs.name),
        _yes_no(attrs and attrs.is_enabled),
        _yes_no(attrs and attrs.clean),
        format_date(attrs and attrs.last_modified_date),
    ]


def _build_run_row(item: CiBuildRun) -> list[str]:
    attrs = item.attributes
    commit = attrs.source_commit if attrs else None
    sha = commit.commit_sha if commit else None
    return [
        item.id,
        _text(attrs and attrs.number),
        _text(attrs and attrs.completion_status),
        _text(attrs and attrs.execution_progress),
        format_date(attrs and attrs.started_date),
        sha[:7] if sha else "-",
    ]


def _build_action_row(item: CiBuildAction) -> list[str]:
    attrs = item.attributes
    return [
        item.id,
        _text(attrs and attrs.name),
        _text(attrs and attrs.action_type),
        _text(attrs and attrs.completion_status),
        _yes_no(attrs and attrs.is_required_to_pass),
    ]


def _artifact_row(item: CiArtifact) -> list[str]:
    attrs = item.attributes
    return [
        item.id,
        _text(attrs and attrs.file_name),
        _text(attrs and attrs.file_type),
        format_file_size(attrs.file_size if attrs else None),
    ]


def _issue_row(item: CiIssue) -> list[str]:
    attrs = item.attributes
    source = attrs.file_source if attrs else None
    return [
        _text(attrs and attrs.issue_type),
        _text(attrs and attrs.category),
        _text(source and source.path),
        _text(source and source.line_number),
        _text(attrs and attrs.message),
    ]


def _test_result_row(item: CiTestResult) -> list[str]:
    attrs = item.attributes
    return [
        _text(attrs and attrs.status),
        _text(attrs and attrs.class_name),
        _text(attrs and attrs.name),
        _text(attrs and attrs.message),
    ]


TABLE_COLUMNS: dict[type, tuple[list[str], Callable[[Any], list[str]]]] = {
    CiProduct: (["ID", "NAME", "TYPE", "CREATED"], _product_row),
    CiWorkflow: (["ID", "NAME", "ENABLED", "CLEAN", "MODIFIED"], _workflow_row),
    CiBuildRun: (["ID", "NUMBER", "STATUS", "PROGRESS", "STARTED", "COMMIT"], _build_run_row),
    CiBuildAction: (["ID", "NAME", "TYPE", "STATUS", "REQUIRED"], _build_action_row),
    CiArtifact: (["ID", "FILENAME", "TYPE", "SIZE"], _artifact_row),
    CiIssue: (["TYPE", "CATEGORY", "FILE", "LINE", "MESSAGE"], _issue_row),
    CiTestResult: (["STATUS", "CLASS", "TEST", "MESSAGE"], _test_result_row),
}
"""Column headers and row builder per CI resource model."""


def table_rows(
    model: type, items: Sequence[BaseModel]
) -> tuple[list[str], list[list[str]]]:
    """Return ``(headers, rows)`` for *items* of resource type *model*."""
    headers, build_row = TABLE_COLUMNS[model]
    return headers, [build_row(item) for item in items]


def to_jsonable(data: Union[BaseModel, Any]) -> Any:
    """Dump a model with its wire (camelCase) keys, dropping unset fields."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(data, (list, tuple)):
        return [to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    return data


# ------------------------------------------------------------------ #
# Output manager
# ------------------------------------------------------------------ #


class OutputManager:
    """Central manager for all CLI output.

    Args:
        format: Data format for stdout.
        pretty: Indent JSON output and sort its keys.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential messages on stderr.
        verbose: Show debug messages on stderr.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.JSON,
        pretty: bool = False,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._format = format
        self._pretty = pretty
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        self._stdout = Console(file=sys.stdout, no_color=self._no_color)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def render(
        self,
        response: Union[BaseModel, Any],
        model: type,
        items: Sequence[BaseModel],
    ) -> None:
        """Print an API result in the active format.

        JSON prints the whole *response* envelope; table and CSV print one
        row per entry of *items*, using the columns registered for *model*.
        """
        if self._format == OutputFormat.JSON:
            self.print_json(response)
            return
        headers, rows = table_rows(model, items)
        if self._format == OutputFormat.CSV:
            self.print_csv(headers, rows)
        else:
            self.print_table(headers, rows)

    def print_json(self, data: Union[BaseModel, Any]) -> None:
        """Print *data* as compact JSON, or indented with sorted keys under ``--pretty``."""
        payload = to_jsonable(data)
        if self._pretty:
            text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
        else:
            text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        self.print_data(text)

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_table(self, headers: list[str], rows: list[list[str]]) -> None:
        """Print a Rich table, or plain space-aligned columns without colour."""
        if not rows:
            self.print_data(NO_RESULTS)
            return

        if self._no_color:
            widths = [len(h) for h in headers]
            for row in rows:
                for i, cell in enumerate(row[: len(widths)]):
                    widths[i] = max(widths[i], len(cell))
            lines = [
                "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)),
                "  ".join("-" * w for w in widths),
            ]
            for row in rows:
                lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)))
            self.print_data("\n".join(line.rstrip() for line in lines))
            return

        table = Table(show_header=True, header_style="bold cyan")
        for h in headers:
            table.add_column(h)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    def print_csv(self, headers: list[str], rows: list[list[str]]) -> None:
        """Print RFC 4180 CSV with a header row. Nothing is printed for no rows."""
        if not rows:
            return
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(headers)
        writer.writerows(rows)
        self.print_data(buffer.getvalue().rstrip("\n"))

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(message, markup=False, highlight=False)

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(message, style="green", markup=False, highlight=False)

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        if self._no_color:
            print(f"Warning: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[yellow]Warning:[/yellow] {_escape(message)}")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        if self._no_color:
            print(f"Error: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[bold red]Error:[/bold red] {_escape(message)}")

    def suggest(self, message: str) -> None:
        """Print a dimmed next-step suggestion to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            formatted = f"→ {message}"
            if self._no_color:
                print(formatted, file=sys.stderr, flush=True)
            else:
                self._stderr.print(formatted, style="dim", markup=False, highlight=False)

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown with ``--verbose``."""
        if self._verbose:
            if self._no_color:
                print(f"[debug] {message}", file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[debug] {message}", style="dim", markup=False, highlight=False)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _escape(message: str) -> str:
    return message.replace("[", "\\[")


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager. Used by tests."""
    global _output
    _output = None


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
