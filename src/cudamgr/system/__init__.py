"""Host system detection."""

from cudamgr.system.probe import (
    detect_compiler,
    detect_distro,
    detect_gpu,
    detect_system,
    free_disk_bytes,
    is_elevated,
    parse_version,
)
from cudamgr.system.environment import build_recommendations, scan_environment

__all__ = [
    "detect_compiler",
    "detect_distro",
    "detect_gpu",
    "detect_system",
    "free_disk_bytes",
    "is_elevated",
    "parse_version",
    "build_recommendations",
    "scan_environment",
]
