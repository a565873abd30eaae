"""Logs command."""

import typer

from cudamgr.cli.utils import console, get_manager


def logs_cmd(
    lines: int = typer.Option(50, "--lines", "-n", min=1, max=10000, help="Number of lines to show"),
) -> None:
    """
    Show recent cudamgr log entries.

    Examples:

        cudamgr logs --lines 200
    """
    from cudamgr.utils.logging import tail_log

    log_file = get_manager().paths.log_file
    entries = tail_log(log_file, lines)
    if not entries:
        console.print(f"No log entries in {log_file}")
        return
    for entry in entries:
        typer.echo(entry)
