"""Install, uninstall and verify commands."""

import typer
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from cudamgr.cli.utils import console, fail, get_manager, parse_version_arg
from cudamgr.models.outcomes import InstallStatus
from cudamgr.utils.errors import CudaMgrError


def install_cmd(
    version: str = typer.Argument("latest", help="CUDA version to install, or 'latest'"),
    force: bool = typer.Option(False, "--force", help="Reinstall even if already installed"),
) -> None:
    """
    Download, verify and install a CUDA toolkit version.

    Examples:

        cudamgr install 12.4

        cudamgr install latest

        cudamgr install 12.4 --force
    """
    requested = parse_version_arg(version)
    manager = get_manager()
    run_install(manager, requested, force)


def run_install(manager, requested, force: bool = False) -> None:
    """Install with a progress bar; shared with ``use --install``."""
    progress = Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
    )
    task = progress.add_task(f"CUDA {requested}", total=None)

    def on_progress(downloaded: int, total: int | None) -> None:
        progress.update(task, completed=downloaded, total=total)

    try:
        with progress:
            outcome = manager.install(requested, force=force, on_progress=on_progress)
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow] Partial downloads were removed.")
        raise typer.Exit(130)
    except CudaMgrError as e:
        fail(e)

    if outcome.status == InstallStatus.ALREADY_INSTALLED:
        console.print(f"CUDA {outcome.version} is already installed at {outcome.install_path}")
        return

    verb = "Reinstalled" if outcome.replaced else "Installed"
    console.print(f"[green]{verb}[/green] CUDA {outcome.version} at {outcome.install_path}")
    console.print(f"Activate it with: cudamgr use {outcome.version}")


def uninstall_cmd(
    version: str = typer.Argument(..., help="CUDA version to remove"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    deactivate: bool = typer.Option(False, "--deactivate", help="Deactivate the version first if it is active"),
) -> None:
    """
    Remove an installed CUDA toolkit version.

    The active version is refused unless --deactivate is given; no other
    version is activated in its place.

    Examples:

        cudamgr uninstall 11.8

        cudamgr uninstall 12.4 --deactivate --yes
    """
    target = parse_version_arg(version, allow_latest=False)
    manager = get_manager()

    if not yes and not typer.confirm(f"Remove CUDA {target}?"):
        console.print("Aborted.")
        raise typer.Exit(0)

    try:
        outcome = manager.uninstall(target, deactivate=deactivate)
    except CudaMgrError as e:
        fail(e)

    if outcome.deactivated:
        console.print(f"Deactivated CUDA {outcome.version}")
    console.print(f"[green]Removed[/green] CUDA {outcome.version}")


def verify_cmd(
    version: str = typer.Argument(..., help="Installed CUDA version to check"),
) -> None:
    """
    Re-run the install checks for an installed version.

    A version that passes is marked validated and can be activated.

    Examples:

        cudamgr verify 12.4
    """
    target = parse_version_arg(version, allow_latest=False)
    manager = get_manager()

    try:
        with console.status(f"Verifying CUDA {target}..."):
            record = manager.verify(target)
    except CudaMgrError as e:
        fail(e)

    console.print(f"[green]OK[/green] CUDA {record.version} at {record.install_path} is valid")
