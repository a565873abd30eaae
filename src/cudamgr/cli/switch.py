"""Use, current and shell-init commands."""

from typing import Optional

import typer

from cudamgr.cli.install import run_install
from cudamgr.cli.utils import console, fail, get_manager, parse_version_arg
from cudamgr.models.outcomes import SwitchStatus
from cudamgr.utils.errors import CudaMgrError


def use_cmd(
    version: str = typer.Argument(..., help="Installed CUDA version to activate, or 'latest'"),
    install: bool = typer.Option(False, "--install", help="Install the version first if it is missing"),
) -> None:
    """
    Switch the active CUDA toolkit version.

    Examples:

        cudamgr use 12.4

        cudamgr use 12.6 --install
    """
    target = parse_version_arg(version)
    manager = get_manager()

    try:
        missing = target != "latest" and manager.get_installed(target) is None
    except CudaMgrError as e:
        fail(e)

    if install and missing:
        run_install(manager, target)

    try:
        outcome = manager.use_version(target)
    except CudaMgrError as e:
        fail(e)

    if outcome.status == SwitchStatus.NOOP:
        console.print(f"CUDA {outcome.current} is already active")
        return

    previous = f" (was {outcome.previous})" if outcome.previous else ""
    console.print(f"[green]Switched[/green] to CUDA {outcome.current}{previous}")
    console.print("New shells pick it up once the hook is installed: cudamgr shell-init --install")


def current_cmd(
    path_only: bool = typer.Option(False, "--path", help="Print only the install path"),
) -> None:
    """
    Show the active CUDA toolkit version.

    Examples:

        cudamgr current

        export CUDA_HOME=$(cudamgr current --path)
    """
    manager = get_manager()

    try:
        active = manager.active()
        record = manager.get_installed(active) if active else None
    except CudaMgrError as e:
        fail(e)

    if active is None:
        if not path_only:
            console.print("No active CUDA version")
        raise typer.Exit(1 if path_only else 0)

    install_path = record.install_path if record else "[red]missing record[/red]"
    if path_only:
        typer.echo(record.install_path if record else "")
        return

    console.print(f"CUDA {active}")
    console.print(f"  Path: {install_path}")
    live = manager.switcher.activation.query()
    console.print(f"  Activation: {manager.switcher.activation.location} -> {live or '[red]missing[/red]'}")


def shell_init_cmd(
    shell: Optional[str] = typer.Option(None, "--shell", "-s", help="Shell: bash, zsh or powershell"),
    install: bool = typer.Option(False, "--install", help="Add the hook to the shell profile"),
    uninstall: bool = typer.Option(False, "--uninstall", help="Remove the hook from the shell profile"),
) -> None:
    """
    Set up shell integration for the active CUDA version.

    Writes env.sh / env.ps1 under the cudamgr root. Without --install the
    profile hook is printed so you can add it yourself.

    Examples:

        cudamgr shell-init

        cudamgr shell-init --shell zsh --install

        cudamgr shell-init --uninstall
    """
    from cudamgr.core.shell import (
        SUPPORTED_SHELLS,
        detect_shell,
        hook_block,
        install_hook,
        profile_path,
        remove_hook,
    )

    if install and uninstall:
        console.print("[red]Error:[/red] --install and --uninstall cannot be combined")
        raise typer.Exit(1)

    shell = shell or detect_shell()
    if shell not in SUPPORTED_SHELLS:
        console.print(f"[red]Error:[/red] Unsupported shell '{shell}' (choose from {', '.join(SUPPORTED_SHELLS)})")
        raise typer.Exit(1)

    if uninstall:
        profile = profile_path(shell)
        try:
            removed = remove_hook(profile)
        except OSError as e:
            console.print(f"[red]Error:[/red] Cannot update {profile}: {e}")
            raise typer.Exit(1)
        if removed:
            console.print(f"[green]Removed[/green] the cudamgr hook from {profile}")
        else:
            console.print(f"No cudamgr hook in {profile}")
        return

    manager = get_manager()
    try:
        manager.write_shell_scripts()
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot write environment scripts: {e}")
        raise typer.Exit(1)

    block = hook_block(shell, manager.paths.root)
    if not install:
        typer.echo(block, nl=False)
        return

    profile = profile_path(shell)
    try:
        changed = install_hook(profile, block)
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot update {profile}: {e}")
        raise typer.Exit(1)

    if changed:
        console.print(f"[green]Updated[/green] {profile}; open a new shell to apply")
    else:
        console.print(f"Hook already present in {profile}")
