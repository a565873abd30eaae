"""cudamgr: install and switch between CUDA toolkit versions.

This package checks a machine for CUDA compatibility, installs toolkit
versions side by side under ``~/.cudamgr/installs`` and switches the active
version atomically, rolling back any partially applied change:

- **Resolver**: Match a requested version against the registry and the system
- **Downloader**: Stream artifacts into staging with checksum verification
- **Installer**: Unpack into a temporary directory and rename into place
- **Validator**: Check expected files and run ``nvcc --version``
- **Switcher**: Swap the ``current`` activation and the active pointer

Usage:
    # Library API
    from cudamgr import ToolkitManager

    manager = ToolkitManager()
    manager.install("12.4")
    manager.use_version("12.4")

    for row in manager.list():
        print(row.version, row.validated, row.active)

CLI:
    cudamgr doctor
    cudamgr install <version>
    cudamgr use <version>
    cudamgr list [--available]
    cudamgr uninstall <version>
"""

__version__ = "0.1.0"

# Engine
from cudamgr.core.manager import ToolkitManager
from cudamgr.core.downloader import CancelToken

# Models (commonly used)
from cudamgr.models.version import VersionId
from cudamgr.models.package import ArtifactKind, PackageMetadata
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.state import InstalledVersion
from cudamgr.models.outcomes import (
    AvailableVersion,
    InstallOutcome,
    InstallStatus,
    SwitchOutcome,
    SwitchStatus,
    UninstallOutcome,
    VersionListing,
)

# Registry
from cudamgr.registry import PackageRegistry, StaticRegistry, load_registry

# Errors
from cudamgr.utils.errors import CudaMgrError

__all__ = [
    # Version
    "__version__",
    # Engine
    "ToolkitManager",
    "CancelToken",
    # Models
    "VersionId",
    "ArtifactKind",
    "PackageMetadata",
    "OsKind",
    "SystemReport",
    "InstalledVersion",
    # Outcomes
    "AvailableVersion",
    "InstallOutcome",
    "InstallStatus",
    "SwitchOutcome",
    "SwitchStatus",
    "UninstallOutcome",
    "VersionListing",
    # Registry
    "PackageRegistry",
    "StaticRegistry",
    "load_registry",
    # Errors
    "CudaMgrError",
]
