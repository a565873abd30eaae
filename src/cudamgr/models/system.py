"""System probe data models."""

from __future__ import annotations

import sys
from enum import Enum

from pydantic import BaseModel, Field

from cudamgr.models.version import VersionId


class OsKind(str, Enum):
    """Operating system family."""

    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"

    @classmethod
    def current(cls) -> "OsKind":
        """Get the OS family of the running interpreter."""
        if sys.platform.startswith("win"):
            return cls.WINDOWS
        if sys.platform == "darwin":
            return cls.MACOS
        return cls.LINUX


class SystemReport(BaseModel):
    """Snapshot of system probe results.

    Produced by the detection probes (or by tests) and consumed read-only by
    the resolver.
    """

    model_config = {"frozen": True}

    gpu_present: bool = Field(description="Whether an NVIDIA GPU was detected")
    gpu_name: str | None = Field(default=None, description="GPU model name")
    driver_version: VersionId | None = Field(default=None, description="NVIDIA driver version")
    compiler_version: VersionId | None = Field(default=None, description="Host compiler version")
    compiler_name: str | None = Field(default=None, description="Host compiler (gcc, clang, cl)")
    os: OsKind = Field(default_factory=OsKind.current, description="Operating system family")
    distro: str | None = Field(default=None, description="Distribution or OS release name")
    free_disk_bytes: int = Field(default=0, ge=0, description="Free space on the install volume")
    elevated: bool = Field(default=False, description="Running with administrator privileges")

    @property
    def free_disk_gb(self) -> float:
        return self.free_disk_bytes / 1024**3
