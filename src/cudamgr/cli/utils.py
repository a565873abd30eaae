"""Shared utilities for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, NoReturn

import typer
from pydantic import BaseModel
from rich.console import Console

from cudamgr.models.version import VersionId, is_latest
from cudamgr.utils.errors import CudaMgrError

if TYPE_CHECKING:
    from cudamgr.core.manager import ToolkitManager

# Shared console instance
console = Console()

_manager_factory: Callable[[], "ToolkitManager"] | None = None


def set_manager_factory(factory: Callable[[], "ToolkitManager"] | None) -> None:
    """Override how commands build their manager (None restores the default)."""
    global _manager_factory
    _manager_factory = factory


def get_manager() -> "ToolkitManager":
    """Build the engine from the global configuration, exiting on errors."""
    if _manager_factory is not None:
        return _manager_factory()

    from cudamgr.core.manager import ToolkitManager

    try:
        return ToolkitManager()
    except CudaMgrError as e:
        fail(e)


def fail(error: CudaMgrError) -> NoReturn:
    """Print an engine error with its hint and exit with status 1.

    Args:
        error: The error raised by the engine
    """
    console.print(f"[red]Error:[/red] {error.message}")
    if error.requires_inspection:
        console.print(
            "[bold yellow]Warning:[/bold yellow] the active version may be inconsistent; "
            "inspect the activation with 'cudamgr current' before retrying"
        )
    elif error.hint:
        console.print(f"[yellow]Hint:[/yellow] {error.hint}")
    raise typer.Exit(1)


def parse_version_arg(value: str, allow_latest: bool = True) -> str | VersionId:
    """Validate a version argument, exiting on malformed input."""
    if allow_latest and is_latest(value):
        return "latest"
    try:
        return VersionId.parse(value)
    except CudaMgrError as e:
        fail(e)


def output_json(data: dict[str, Any] | list[Any] | BaseModel, output: Path | None = None) -> None:
    """Output data as JSON to console or file.

    Args:
        data: Data to output (dict, list, or Pydantic model)
        output: Optional output file path
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]

    json_str = json.dumps(data, indent=2, default=str)

    if output:
        output.write_text(json_str)
        console.print(f"Report written to {output}")
    else:
        typer.echo(json_str)


def status_icon(success: bool) -> str:
    """Get a colored status icon.

    Args:
        success: Whether the status is successful

    Returns:
        Formatted status string
    """
    return "[green]OK[/green]" if success else "[red]FAIL[/red]"


def format_size(size_bytes: int) -> str:
    """Human-readable size (GiB/MiB/KiB)."""
    for unit, factor in (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)):
        if size_bytes >= factor:
            return f"{size_bytes / factor:.1f} {unit}"
    return f"{size_bytes} B"
