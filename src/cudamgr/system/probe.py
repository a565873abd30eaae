"""Probes that describe the host system."""

from __future__ import annotations

import ctypes
import os
import platform
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.version import VersionId
from cudamgr.utils.errors import InvalidVersionError
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)

PROBE_TIMEOUT = 10.0

_VERSION_RE = re.compile(r"(\d+(?:\.\d+){0,3})")


def run_command(cmd: list[str], stderr: bool = False) -> Optional[str]:
    """Run a probe command; None if the tool is missing or fails."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=PROBE_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Probe %s unavailable: %s", cmd[0], e)
        return None
    if result.returncode != 0 and not stderr:
        logger.debug("Probe %s exited with %d", cmd[0], result.returncode)
        return None
    return result.stderr if stderr else result.stdout


def parse_version(text: str | None) -> Optional[VersionId]:
    """Extract the first version-looking token from tool output."""
    if not text:
        return None
    match = _VERSION_RE.search(text)
    if not match:
        return None
    try:
        return VersionId.parse(match.group(1))
    except InvalidVersionError:
        return None


def detect_gpu() -> tuple[Optional[str], Optional[str]]:
    """Detect local GPU and driver version.

    Returns:
        Tuple of (gpu_name, driver_version)
    """
    output = run_command(["nvidia-smi", "--query-gpu=name,driver_version", "--format=csv,noheader"])
    if not output:
        return None, None

    line = output.strip().split("\n")[0]
    parts = line.split(",")
    if len(parts) < 2:
        return None, None

    gpu_name = parts[0].strip()
    for prefix in ["NVIDIA ", "GeForce "]:
        if gpu_name.startswith(prefix):
            gpu_name = gpu_name[len(prefix):]
    return gpu_name, parts[1].strip()


def detect_compiler(os_kind: OsKind) -> tuple[Optional[str], Optional[VersionId]]:
    """Detect the host compiler nvcc will use.

    Returns:
        Tuple of (compiler name, version)
    """
    if os_kind == OsKind.WINDOWS:
        # cl prints its banner on stderr: "... Compiler Version 19.38.33130 for x64"
        banner = run_command(["cl"], stderr=True)
        match = re.search(r"Version\s+(\d+(?:\.\d+)+)", banner or "")
        return ("cl", parse_version(match.group(1))) if match else (None, None)

    if os_kind == OsKind.MACOS:
        version = parse_version(run_command(["clang", "-dumpversion"]))
        return ("clang", version) if version else (None, None)

    version = parse_version(run_command(["gcc", "-dumpfullversion", "-dumpversion"]))
    return ("gcc", version) if version else (None, None)


def detect_distro(os_kind: OsKind) -> Optional[str]:
    """Human-readable OS release, e.g. "Ubuntu 22.04.4 LTS"."""
    if os_kind == OsKind.LINUX:
        os_release = Path("/etc/os-release")
        if os_release.exists():
            for line in os_release.read_text(errors="replace").splitlines():
                if line.startswith("PRETTY_NAME="):
                    return line.split("=", 1)[1].strip().strip('"')
        return None
    return platform.platform(terse=True)


def free_disk_bytes(path: Path | str) -> int:
    """Free space on the volume that holds (or will hold) ``path``."""
    path = Path(path).expanduser().absolute()
    while not path.exists() and path != path.parent:
        path = path.parent
    try:
        return shutil.disk_usage(path).free
    except OSError as e:
        logger.debug("Cannot read disk usage of %s: %s", path, e)
        return 0


def is_elevated(os_kind: OsKind) -> bool:
    """Whether the process runs as root / Administrator."""
    if os_kind == OsKind.WINDOWS:
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            return False
    return hasattr(os, "geteuid") and os.geteuid() == 0


def detect_system(install_root: Path | str) -> SystemReport:
    """Probe the machine.

    Every probe tolerates a missing tool; absent facts are reported as
    None (or False) and left to the resolver to judge.

    Args:
        install_root: Directory whose volume receives installs

    Returns:
        Snapshot of the system
    """
    os_kind = OsKind.current()
    gpu_name, driver = detect_gpu()
    compiler_name, compiler_version = detect_compiler(os_kind)

    report = SystemReport(
        gpu_present=gpu_name is not None,
        gpu_name=gpu_name,
        driver_version=parse_version(driver),
        compiler_version=compiler_version,
        compiler_name=compiler_name,
        os=os_kind,
        distro=detect_distro(os_kind),
        free_disk_bytes=free_disk_bytes(install_root),
        elevated=is_elevated(os_kind),
    )
    logger.debug("System report: %s", report.model_dump(mode="json"))
    return report
