"""Persisted installation state models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from cudamgr.models.version import VersionId


class InstalledVersion(BaseModel):
    """A toolkit version recorded in the state store."""

    model_config = {"frozen": True}

    version: VersionId = Field(description="Installed toolkit version")
    install_path: str = Field(description="Canonical install directory")
    installed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the install was committed",
    )
    validated: bool = Field(default=False, description="Passed post-install checks")
    checksum: str | None = Field(default=None, description="Checksum of the installed artifact")
    size_bytes: int = Field(default=0, ge=0, description="Size of the downloaded artifact")


class StateFile(BaseModel):
    """On-disk layout of the installed-versions record store."""

    schema_version: int = Field(default=1, description="Record store format version")
    installed: dict[str, InstalledVersion] = Field(
        default_factory=dict,
        description="Records keyed by normalized version string",
    )
