"""Doctor command: system compatibility report."""

from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from cudamgr.cli.utils import console, fail, format_size, get_manager, output_json, status_icon
from cudamgr.models.environment import EnvironmentReport
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.utils.errors import CudaMgrError


def doctor_cmd(
    format: str = typer.Option("terminal", "--format", "-f", help="Output format (terminal, json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also list release compatibility"),
) -> None:
    """
    Check this machine for CUDA toolkit compatibility.

    Reports the GPU, driver, host compiler, free disk space and the
    newest CUDA release the driver supports, along with CUDA installs
    outside cudamgr and settings that conflict with it.

    Examples:

        cudamgr doctor

        cudamgr doctor --verbose

        cudamgr doctor --format json
    """
    from cudamgr.knowledge.driver_matrix import max_cuda_for_driver
    from cudamgr.knowledge.gpu_matrix import lookup_gpu
    from cudamgr.system.environment import build_recommendations

    manager = get_manager()

    try:
        with console.status("Probing system..."):
            report = manager.system_report()
            environment = manager.environment_report()
        active = manager.active()
        available = manager.resolver.available(report, manager.store.installed()) if verbose or format == "json" else []
    except CudaMgrError as e:
        fail(e)

    gpu_info = lookup_gpu(report.gpu_name)
    max_cuda = max_cuda_for_driver(report.driver_version) if report.driver_version else None
    recommendations = build_recommendations(report, environment)

    if format == "json":
        data = report.model_dump(mode="json")
        data["gpu_architecture"] = gpu_info
        data["max_cuda_version"] = max_cuda
        data["active_version"] = str(active) if active else None
        data["environment"] = environment.model_dump(mode="json")
        data["recommendations"] = recommendations
        data["releases"] = [row.model_dump(mode="json") for row in available]
        output_json(data)
        return

    _print_report(report, environment, gpu_info, max_cuda, active)
    _print_environment(environment, recommendations)

    if verbose:
        table = Table(title="Releases")
        table.add_column("Version", style="cyan")
        table.add_column("Compatible")
        table.add_column("Installed")
        table.add_column("Notes")
        for row in available:
            table.add_row(
                str(row.version),
                status_icon(row.compatible),
                "yes" if row.installed else "",
                row.reason or "",
            )
        console.print(table)


def _print_report(
    report: SystemReport,
    environment: EnvironmentReport,
    gpu_info: Optional[dict],
    max_cuda: Optional[str],
    active: object,
) -> None:
    """Print the system report as a panel."""
    lines = [
        f"[bold]OS:[/bold] {report.os.value}" + (f" ({report.distro})" if report.distro else ""),
    ]

    wsl = environment.wsl
    if wsl.is_wsl:
        distribution = f" ({wsl.distribution})" if wsl.distribution else ""
        lines.append(f"[bold]WSL:[/bold] version {wsl.version}{distribution}")

    if report.gpu_present:
        gpu_line = f"[bold]GPU:[/bold] {report.gpu_name}"
        if gpu_info:
            gpu_line += f" ({gpu_info['architecture']}, compute {gpu_info['compute_capability']})"
        lines.append(gpu_line)
    else:
        lines.append("[bold]GPU:[/bold] [red]no NVIDIA GPU detected[/red]")

    lines.append(f"[bold]Driver:[/bold] {report.driver_version or '[yellow]not detected[/yellow]'}")
    if max_cuda:
        lines.append(f"[bold]Max CUDA:[/bold] {max_cuda}")

    compiler = (
        f"{report.compiler_name} {report.compiler_version}"
        if report.compiler_version
        else "[yellow]not detected[/yellow]"
    )
    lines.append(f"[bold]Compiler:[/bold] {compiler}")

    if report.os == OsKind.WINDOWS:
        vs = environment.visual_studio
        vs_line = f"{vs.name} {vs.version}" if vs else "[yellow]C++ build tools not found[/yellow]"
        lines.append(f"[bold]Visual Studio:[/bold] {vs_line}")

    lines.append(f"[bold]Free disk:[/bold] {format_size(report.free_disk_bytes)}")
    lines.append(f"[bold]Elevated:[/bold] {'yes' if report.elevated else 'no'}")
    lines.append(f"[bold]Active CUDA:[/bold] {active or 'none'}")

    system_cuda = environment.system_cuda
    if system_cuda is not None:
        owner = "cudamgr" if system_cuda.managed else "external"
        lines.append(f"[bold]nvcc on PATH:[/bold] {system_cuda.version or 'unknown'} ({owner})")

    ready = report.gpu_present and report.driver_version is not None
    title = "[green]System ready[/green]" if ready else "[yellow]System not ready[/yellow]"
    console.print(Panel("\n".join(lines), title=title, expand=False))

    if not report.gpu_present:
        console.print("[yellow]Warning:[/yellow] installs are refused until an NVIDIA GPU and driver are detected")


def _print_environment(environment: EnvironmentReport, recommendations: list[str]) -> None:
    """Print external installs, conflicts and recommendations."""
    if environment.installations:
        table = Table(title="CUDA installs outside cudamgr")
        table.add_column("Version", style="cyan")
        table.add_column("Path")
        for install in environment.installations:
            table.add_row(str(install.version or "unknown"), install.install_path)
        console.print(table)

    for conflict in environment.conflicts:
        console.print(f"[yellow]Conflict:[/yellow] {conflict.description}")

    if recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for item in recommendations:
            console.print(f"  - {item}")
