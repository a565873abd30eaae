"""Main CLI entry point for cudamgr."""

import typer

from cudamgr.cli import doctor, install, listing, logs, switch
from cudamgr.cli.utils import console, fail
from cudamgr.utils.errors import ConfigurationError

app = typer.Typer(
    name="cudamgr",
    help="Install and switch between CUDA toolkit versions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register subcommands
app.command(name="doctor")(doctor.doctor_cmd)
app.command(name="install")(install.install_cmd)
app.command(name="use")(switch.use_cmd)
app.command(name="list")(listing.list_cmd)
app.command(name="uninstall")(install.uninstall_cmd)
app.command(name="verify")(install.verify_cmd)
app.command(name="current")(switch.current_cmd)
app.command(name="shell-init")(switch.shell_init_cmd)
app.command(name="logs")(logs.logs_cmd)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output"),
) -> None:
    """
    cudamgr: install and switch between CUDA toolkit versions.

    - [bold]doctor[/bold]: Check GPU, driver and compiler compatibility
    - [bold]install[/bold]: Download, verify and install a version
    - [bold]use[/bold]: Atomically switch the active version
    - [bold]list[/bold]: Show installed or available versions
    - [bold]uninstall[/bold]: Remove an installed version
    """
    from cudamgr.utils.config import get_config
    from cudamgr.utils.logging import configure_logging

    try:
        config = get_config()
    except ConfigurationError as e:
        fail(e)

    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "WARNING"
    else:
        level = config.logging.level

    log_file = config.layout().log_file if config.logging.file else None
    configure_logging(level=level, log_file=log_file)


@app.command()
def version() -> None:
    """Show the cudamgr version."""
    from cudamgr import __version__

    console.print(f"cudamgr version {__version__}")


if __name__ == "__main__":
    app()
