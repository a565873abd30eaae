"""Data models for cudamgr.

All records are Pydantic BaseModel with frozen=True for immutability.
"""

from cudamgr.models.common import OperationError
from cudamgr.models.version import LATEST, VersionId, is_latest
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.environment import (
    ConflictType,
    EnvironmentConflict,
    EnvironmentReport,
    ExternalInstall,
    SystemCuda,
    VisualStudioInfo,
    WslInfo,
)
from cudamgr.models.package import ArtifactKind, PackageMetadata
from cudamgr.models.state import InstalledVersion, StateFile
from cudamgr.models.outcomes import (
    AvailableVersion,
    InstallOutcome,
    InstallStatus,
    SwitchOutcome,
    SwitchStatus,
    UninstallOutcome,
    VersionListing,
)

__all__ = [
    # Common
    "OperationError",
    # Version
    "LATEST",
    "VersionId",
    "is_latest",
    # System
    "OsKind",
    "SystemReport",
    # Environment
    "ConflictType",
    "EnvironmentConflict",
    "EnvironmentReport",
    "ExternalInstall",
    "SystemCuda",
    "VisualStudioInfo",
    "WslInfo",
    # Package
    "ArtifactKind",
    "PackageMetadata",
    # State
    "InstalledVersion",
    "StateFile",
    # Outcomes
    "AvailableVersion",
    "InstallOutcome",
    "InstallStatus",
    "SwitchOutcome",
    "SwitchStatus",
    "UninstallOutcome",
    "VersionListing",
]
