"""Built-in table of CUDA toolkit releases.

The table lists the NVIDIA local runfile installers for Linux x86_64. NVIDIA
publishes their checksums next to the installers, so entries ship without one;
supply checksums (or other platforms) through a local YAML manifest.
"""

from cudamgr.models.package import ArtifactKind, PackageMetadata
from cudamgr.models.system import OsKind

NVIDIA_DOWNLOAD_BASE = "https://developer.download.nvidia.com/compute/cuda"

GIB = 1024**3

# (release, bundled driver, minimum driver, minimum gcc, approximate installed size)
_LINUX_RELEASES: list[tuple[str, str, str, str, float]] = [
    ("11.8.0", "520.61.05", "520.61.05", "5.0", 3.9),
    ("12.0.0", "525.60.13", "525.60.13", "6.0", 4.0),
    ("12.1.0", "530.30.02", "530.30.02", "6.0", 4.1),
    ("12.2.0", "535.54.03", "535.54.03", "6.0", 4.2),
    ("12.3.0", "545.23.06", "545.23.06", "6.0", 4.3),
    ("12.4.0", "550.54.14", "550.54.14", "6.0", 4.4),
    ("12.5.0", "555.42.02", "555.42.02", "6.0", 4.5),
    ("12.6.0", "560.28.03", "560.28.03", "6.0", 4.6),
    ("12.8.0", "570.86.10", "570.26", "6.0", 5.1),
]

LINUX_EXPECTED_FILES = (
    "bin/nvcc",
    "include/cuda_runtime.h",
    "lib64/libcudart.so",
)

WINDOWS_EXPECTED_FILES = (
    "bin/nvcc.exe",
    "include/cuda_runtime.h",
    "lib/x64/cudart.lib",
)


def runfile_url(release: str, driver: str) -> str:
    """Build the download URL of a Linux local runfile installer."""
    return f"{NVIDIA_DOWNLOAD_BASE}/{release}/local_installers/cuda_{release}_{driver}_linux.run"


def expected_files_for(os_kind: OsKind) -> tuple[str, ...]:
    """Files every toolkit install is expected to contain on the given OS."""
    if os_kind == OsKind.WINDOWS:
        return WINDOWS_EXPECTED_FILES
    return LINUX_EXPECTED_FILES


def nvcc_self_check(os_kind: OsKind) -> tuple[str, ...]:
    """Self-check argv that asks nvcc for its release."""
    nvcc = "bin/nvcc.exe" if os_kind == OsKind.WINDOWS else "bin/nvcc"
    return (nvcc, "--version")


def nvcc_release_pattern(version: str) -> str:
    """Regex matching the ``release X.Y`` line printed by ``nvcc --version``."""
    major, minor = version.split(".")[:2]
    return rf"release {major}\.{minor}\b"


def get_releases(os_kind: OsKind) -> list[PackageMetadata]:
    """Get the built-in releases for an operating system.

    Args:
        os_kind: Target operating system

    Returns:
        Package metadata, oldest first (empty where no built-in table exists)
    """
    if os_kind != OsKind.LINUX:
        return []

    releases = []
    for release, bundled_driver, min_driver, min_gcc, size_gb in _LINUX_RELEASES:
        releases.append(
            PackageMetadata(
                version=release,
                artifact_url=runfile_url(release, bundled_driver),
                checksum=None,
                min_driver=min_driver,
                min_compiler=min_gcc,
                size_estimate=int(size_gb * GIB),
                os=OsKind.LINUX,
                artifact_kind=ArtifactKind.RUNFILE,
                expected_files=LINUX_EXPECTED_FILES,
                self_check=nvcc_self_check(OsKind.LINUX),
                self_check_pattern=nvcc_release_pattern(release),
            )
        )
    return releases
