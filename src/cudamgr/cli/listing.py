"""List command."""

import typer
from rich.table import Table

from cudamgr.cli.utils import console, fail, format_size, get_manager, output_json, status_icon
from cudamgr.utils.errors import CudaMgrError
from cudamgr.utils.hashing import short_hash


def list_cmd(
    available: bool = typer.Option(False, "--available", "-a", help="List installable versions instead"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show paths, sizes and reasons"),
    format: str = typer.Option("terminal", "--format", "-f", help="Output format (terminal, json)"),
) -> None:
    """
    List installed (or available) CUDA toolkit versions.

    Examples:

        cudamgr list

        cudamgr list --available --verbose

        cudamgr list --format json
    """
    manager = get_manager()

    try:
        if available:
            with console.status("Probing system..."):
                rows = manager.available()
        else:
            rows = manager.list()
    except CudaMgrError as e:
        fail(e)

    if format == "json":
        output_json(rows)
        return

    if available:
        _print_available(rows, verbose)
    else:
        _print_installed(rows, verbose)


def _print_installed(rows: list, verbose: bool) -> None:
    if not rows:
        console.print("No CUDA versions installed. Try: cudamgr install latest")
        return

    table = Table(title="Installed CUDA versions")
    table.add_column("", width=1)
    table.add_column("Version", style="cyan")
    table.add_column("Validated")
    if verbose:
        table.add_column("Installed")
        table.add_column("Checksum")
        table.add_column("Path")

    for row in rows:
        cells = ["*" if row.active else "", str(row.version), status_icon(row.validated)]
        if verbose:
            cells.append(row.installed_at.strftime("%Y-%m-%d %H:%M") if row.installed_at else "")
            cells.append(short_hash(row.checksum) if row.checksum else "")
            cells.append(row.install_path)
        table.add_row(*cells)

    console.print(table)


def _print_available(rows: list, verbose: bool) -> None:
    if not rows:
        console.print("No releases known for this platform. Configure a manifest under paths.manifest")
        return

    table = Table(title="Available CUDA versions")
    table.add_column("Version", style="cyan")
    table.add_column("Compatible")
    table.add_column("Installed")
    if verbose:
        table.add_column("Size")
        table.add_column("Notes")

    for row in rows:
        cells = [str(row.version), status_icon(row.compatible), "yes" if row.installed else ""]
        if verbose:
            cells.append(format_size(row.size_estimate) if row.size_estimate else "")
            cells.append(row.reason or "")
        table.add_row(*cells)

    console.print(table)
