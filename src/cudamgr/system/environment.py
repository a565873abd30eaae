"""Detection of CUDA installs and settings that cudamgr does not manage.

Doctor uses this to explain why a shell may not see the toolkit cudamgr
activated, for example when a distro toolkit comes first on PATH.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from pathlib import Path
from typing import Iterable, Mapping, Optional

from cudamgr.models.environment import (
    ConflictType,
    EnvironmentConflict,
    EnvironmentReport,
    ExternalInstall,
    SystemCuda,
    VisualStudioInfo,
    WslInfo,
)
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.version import VersionId
from cudamgr.system import probe
from cudamgr.utils.errors import InvalidVersionError
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)

LINUX_SEARCH_DIRS = ("/usr/local", "/opt", "/usr")
CUDA_ENV_VARS = ("CUDA_HOME", "CUDA_PATH")
VSWHERE_ARGS = (
    "-latest",
    "-products",
    "*",
    "-requires",
    "Microsoft.VisualStudio.Component.VC.Tools.x86.x64",
    "-format",
    "json",
)

_NVCC_RELEASE_RE = re.compile(r"release\s+(\d+(?:\.\d+)*)")


def _nvcc_name(os_kind: OsKind) -> str:
    return "nvcc.exe" if os_kind == OsKind.WINDOWS else "nvcc"


def _norm(path: Path | str) -> str:
    return os.path.normcase(os.path.abspath(os.path.expanduser(str(path))))


def _resolved(path: Path | str) -> Path:
    try:
        return Path(path).resolve()
    except OSError:
        return Path(os.path.abspath(path))


def _is_within(path: Path, root: Path) -> bool:
    try:
        _resolved(path).relative_to(_resolved(root))
    except ValueError:
        return False
    return True


def nvcc_version(nvcc: Path | str) -> Optional[VersionId]:
    """Release reported by ``nvcc --version``, or None."""
    output = probe.run_command([str(nvcc), "--version"])
    match = _NVCC_RELEASE_RE.search(output or "")
    if not match:
        return None
    try:
        return VersionId.parse(match.group(1))
    except InvalidVersionError:
        return None


def candidate_cuda_paths(
    os_kind: OsKind,
    environ: Mapping[str, str],
    search_dirs: Iterable[Path | str] | None = None,
) -> list[Path]:
    """Directories that commonly hold a CUDA toolkit.

    Args:
        os_kind: Operating system to search
        environ: Environment (``CUDA_HOME``/``CUDA_PATH`` are candidates too)
        search_dirs: Parent directories to scan instead of the OS defaults

    Returns:
        Existing candidate directories, one per resolved location
    """
    if search_dirs is None:
        if os_kind == OsKind.WINDOWS:
            program_files = environ.get("ProgramFiles", r"C:\Program Files")
            search_dirs = [Path(program_files) / "NVIDIA GPU Computing Toolkit" / "CUDA"]
        else:
            search_dirs = LINUX_SEARCH_DIRS

    patterns = ("v*",) if os_kind == OsKind.WINDOWS else ("cuda", "cuda-*")
    candidates: list[Path] = []
    for directory in search_dirs:
        directory = Path(directory)
        if not directory.is_dir():
            continue
        for pattern in patterns:
            candidates.extend(sorted(p for p in directory.glob(pattern) if p.is_dir()))

    for var in CUDA_ENV_VARS:
        if environ.get(var):
            candidates.append(Path(environ[var]))

    unique: list[Path] = []
    seen: set[Path] = set()
    for path in candidates:
        key = _resolved(path)
        if key in seen or not path.is_dir():
            continue
        seen.add(key)
        unique.append(path)
    return unique


def inspect_install(path: Path, os_kind: OsKind) -> Optional[ExternalInstall]:
    """Describe the toolkit at ``path``; None if it has no nvcc."""
    nvcc = path / "bin" / _nvcc_name(os_kind)
    if not nvcc.is_file():
        return None
    return ExternalInstall(install_path=str(path), nvcc_path=str(nvcc), version=nvcc_version(nvcc))


def detect_installations(
    os_kind: OsKind,
    root: Path,
    environ: Mapping[str, str],
    search_dirs: Iterable[Path | str] | None = None,
) -> list[ExternalInstall]:
    """Toolkits on this machine that live outside the cudamgr root."""
    installs = []
    for path in candidate_cuda_paths(os_kind, environ, search_dirs):
        if _is_within(path, root):
            continue
        install = inspect_install(path, os_kind)
        if install is not None:
            installs.append(install)
    return installs


def nvcc_dirs_on_path(os_kind: OsKind, environ: Mapping[str, str]) -> list[str]:
    """PATH entries that contain an nvcc, in PATH order, one per resolved directory."""
    found: list[str] = []
    seen: set[Path] = set()
    for entry in environ.get("PATH", "").split(os.pathsep):
        if not entry or not (Path(entry) / _nvcc_name(os_kind)).is_file():
            continue
        key = _resolved(entry)
        if key not in seen:
            seen.add(key)
            found.append(entry)
    return found


def detect_system_cuda(root: Path, environ: Mapping[str, str]) -> Optional[SystemCuda]:
    """The nvcc a shell with this environment would run."""
    nvcc = shutil.which("nvcc", path=environ.get("PATH"))
    if nvcc is None:
        return None
    return SystemCuda(nvcc_path=nvcc, version=nvcc_version(nvcc), managed=_is_within(Path(nvcc), root))


def detect_conflicts(
    installs: list[ExternalInstall],
    system_cuda: Optional[SystemCuda],
    path_nvcc_dirs: list[str],
    environ: Mapping[str, str],
    root: Path,
    active_path: Optional[Path],
) -> list[EnvironmentConflict]:
    """Find settings that would hide or contradict cudamgr's activation.

    Args:
        installs: Toolkits outside the cudamgr root
        system_cuda: nvcc resolved from PATH
        path_nvcc_dirs: PATH entries holding an nvcc
        environ: Environment to check
        root: cudamgr root
        active_path: Install directory of the active version, if any
    """
    conflicts: list[EnvironmentConflict] = []
    current = root / "current"

    if active_path is not None and system_cuda is not None and not system_cuda.managed:
        conflicts.append(
            EnvironmentConflict(
                conflict_type=ConflictType.MULTIPLE_VERSIONS_IN_PATH,
                description=f"PATH resolves nvcc to {system_cuda.nvcc_path}, not the toolkit cudamgr activated",
                affected=[system_cuda.nvcc_path],
                resolution="Put cudamgr first on PATH: cudamgr shell-init --install, then open a new shell",
            )
        )
    elif len(path_nvcc_dirs) > 1:
        conflicts.append(
            EnvironmentConflict(
                conflict_type=ConflictType.MULTIPLE_VERSIONS_IN_PATH,
                description=f"nvcc found in {len(path_nvcc_dirs)} PATH directories",
                affected=path_nvcc_dirs,
                resolution="Remove all but one CUDA bin directory from PATH, or let cudamgr manage it",
            )
        )
    elif len(installs) > 1 and system_cuda is not None:
        conflicts.append(
            EnvironmentConflict(
                conflict_type=ConflictType.MULTIPLE_VERSIONS_IN_PATH,
                description=f"{len(installs)} CUDA toolkits are installed outside cudamgr",
                affected=[i.install_path for i in installs],
                resolution="Use cudamgr to manage CUDA versions and ensure only one is active",
            )
        )

    if active_path is not None:
        expected = {_norm(current), _norm(active_path)}
        target = current
    else:
        expected = {_norm(i.install_path) for i in installs}
        target = None

    for var in CUDA_ENV_VARS:
        value = environ.get(var)
        if not value or not expected or _norm(value) in expected:
            continue
        if target is not None:
            description = f"{var} points to {value}, not {target}"
            resolution = f"Set {var} to {target} (cudamgr shell-init --install does this)"
        else:
            description = f"{var} points to {value}, which is not a detected CUDA installation"
            resolution = f"Update {var} to point to the desired CUDA installation"
        conflicts.append(
            EnvironmentConflict(
                conflict_type=ConflictType.ENVIRONMENT_VARIABLE_MISMATCH,
                description=description,
                affected=[var],
                resolution=resolution,
            )
        )

    return conflicts


def detect_wsl(environ: Mapping[str, str], proc_version: Path = Path("/proc/version")) -> WslInfo:
    """Detect a WSL guest from the kernel banner and ``WSL_DISTRO_NAME``."""
    version: int | None = None
    is_wsl = False

    try:
        banner = proc_version.read_text(errors="replace").lower()
    except OSError:
        banner = ""
    if "microsoft" in banner:
        is_wsl = True
        version = 2 if "wsl2" in banner else 1

    distribution = environ.get("WSL_DISTRO_NAME") or None
    if distribution:
        is_wsl = True
        # Without a kernel hint, assume the current default
        version = version or 2

    return WslInfo(is_wsl=is_wsl, version=version, distribution=distribution)


def vswhere_paths(environ: Mapping[str, str]) -> list[Path]:
    """Where the Visual Studio installer keeps vswhere.exe."""
    bases = [
        environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)"),
        environ.get("ProgramFiles", r"C:\Program Files"),
    ]
    return [Path(base) / "Microsoft Visual Studio" / "Installer" / "vswhere.exe" for base in bases]


def detect_visual_studio(os_kind: OsKind, environ: Mapping[str, str]) -> Optional[VisualStudioInfo]:
    """Newest Visual Studio with the x64 C++ tools (Windows only)."""
    if os_kind != OsKind.WINDOWS:
        return None

    vswhere = next((p for p in vswhere_paths(environ) if p.is_file()), None)
    if vswhere is None:
        return None

    output = probe.run_command([str(vswhere), *VSWHERE_ARGS])
    if not output:
        return None
    try:
        entries = json.loads(output)
    except json.JSONDecodeError as e:
        logger.debug("Unreadable vswhere output: %s", e)
        return None
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return None

    first = entries[0]
    catalog = first.get("catalog") or {}
    return VisualStudioInfo(
        name=first.get("displayName") or "Visual Studio",
        version=catalog.get("productDisplayVersion") or first.get("installationVersion") or "unknown",
        install_path=first.get("installationPath") or "",
    )


def scan_environment(
    os_kind: OsKind,
    root: Path | str,
    active_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EnvironmentReport:
    """Run every environment probe.

    Args:
        os_kind: Operating system
        root: cudamgr root; toolkits below it are cudamgr's own
        active_path: Install directory of the active version, if any
        environ: Environment to inspect (defaults to ``os.environ``)

    Returns:
        Environment report for doctor
    """
    root = Path(root)
    environ = os.environ if environ is None else environ
    active = Path(active_path) if active_path is not None else None

    installs = detect_installations(os_kind, root, environ)
    system_cuda = detect_system_cuda(root, environ)
    conflicts = detect_conflicts(
        installs,
        system_cuda,
        nvcc_dirs_on_path(os_kind, environ),
        environ,
        root,
        active,
    )

    report = EnvironmentReport(
        installations=installs,
        system_cuda=system_cuda,
        conflicts=conflicts,
        wsl=detect_wsl(environ) if os_kind == OsKind.LINUX else WslInfo(),
        visual_studio=detect_visual_studio(os_kind, environ),
    )
    logger.debug("Environment report: %s", report.model_dump(mode="json"))
    return report


def build_recommendations(system: SystemReport, environment: EnvironmentReport) -> list[str]:
    """Actionable advice derived from the system and environment reports."""
    recommendations: list[str] = []

    if environment.wsl.is_wsl:
        recommendations.append("Install the NVIDIA driver on the Windows host, not inside WSL")

    if system.os == OsKind.WINDOWS and environment.visual_studio is None:
        recommendations.append("Install Visual Studio with the 'Desktop development with C++' workload")

    if system.driver_version is None:
        recommendations.append("Install NVIDIA drivers before installing CUDA")

    if system.compiler_version is None:
        recommendations.append("Install a supported host compiler (gcc on Linux, MSVC on Windows)")

    for conflict in environment.conflicts:
        if conflict.resolution not in recommendations:
            recommendations.append(conflict.resolution)

    return recommendations
