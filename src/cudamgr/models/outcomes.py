"""Results returned by the engine to the CLI layer."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from cudamgr.models.version import VersionId


class InstallStatus(str, Enum):
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"


class SwitchStatus(str, Enum):
    SWITCHED = "switched"
    NOOP = "noop"
    DEACTIVATED = "deactivated"


class InstallOutcome(BaseModel):
    """Result of an install operation."""

    model_config = {"frozen": True}

    status: InstallStatus = Field(description="What the install did")
    version: VersionId = Field(description="Resolved version")
    install_path: str = Field(description="Canonical install directory")
    replaced: bool = Field(default=False, description="An existing install was replaced (--force)")


class SwitchOutcome(BaseModel):
    """Result of a use/deactivate operation."""

    model_config = {"frozen": True}

    status: SwitchStatus = Field(description="What the switch did")
    previous: VersionId | None = Field(default=None, description="Version active before the call")
    current: VersionId | None = Field(default=None, description="Version active after the call")


class UninstallOutcome(BaseModel):
    """Result of an uninstall operation."""

    model_config = {"frozen": True}

    version: VersionId = Field(description="Removed version")
    install_path: str = Field(description="Directory that was removed")
    deactivated: bool = Field(default=False, description="The version was active and got deactivated")


class VersionListing(BaseModel):
    """One row of ``list`` output."""

    model_config = {"frozen": True}

    version: VersionId
    validated: bool
    active: bool
    install_path: str
    installed_at: datetime | None = None
    checksum: str | None = None


class AvailableVersion(BaseModel):
    """One row of ``list --available`` output."""

    model_config = {"frozen": True}

    version: VersionId
    compatible: bool
    installed: bool
    reason: str | None = Field(default=None, description="Why the version is incompatible")
    size_estimate: int = 0
