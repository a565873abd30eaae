"""Models describing the CUDA environment outside cudamgr's control."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from cudamgr.models.version import VersionId


class ConflictType(str, Enum):
    """Kinds of environment conflicts doctor reports."""

    MULTIPLE_VERSIONS_IN_PATH = "multiple_versions_in_path"
    ENVIRONMENT_VARIABLE_MISMATCH = "environment_variable_mismatch"


class ExternalInstall(BaseModel):
    """A CUDA toolkit found outside the cudamgr root (distro package, runfile, etc.)."""

    model_config = {"frozen": True}

    install_path: str = Field(description="Toolkit root directory")
    nvcc_path: str = Field(description="nvcc executable inside the toolkit")
    version: VersionId | None = Field(default=None, description="Release reported by nvcc")


class SystemCuda(BaseModel):
    """The nvcc a shell would run from PATH."""

    model_config = {"frozen": True}

    nvcc_path: str = Field(description="Resolved nvcc location")
    version: VersionId | None = Field(default=None, description="Release reported by nvcc")
    managed: bool = Field(default=False, description="nvcc comes from cudamgr's active version")


class EnvironmentConflict(BaseModel):
    """Something in the environment that competes with cudamgr's activation."""

    model_config = {"frozen": True}

    conflict_type: ConflictType
    description: str
    affected: list[str] = Field(default_factory=list, description="Paths or variables involved")
    resolution: str = Field(description="Suggested fix")


class WslInfo(BaseModel):
    """Windows Subsystem for Linux detection result."""

    model_config = {"frozen": True}

    is_wsl: bool = False
    version: int | None = Field(default=None, description="1 or 2 when running under WSL")
    distribution: str | None = Field(default=None, description="WSL_DISTRO_NAME")


class VisualStudioInfo(BaseModel):
    """Visual Studio install with the C++ toolchain, as reported by vswhere."""

    model_config = {"frozen": True}

    name: str
    version: str
    install_path: str
    has_cpp_tools: bool = True


class EnvironmentReport(BaseModel):
    """Everything doctor knows about CUDA beyond the host probes."""

    model_config = {"frozen": True}

    installations: list[ExternalInstall] = Field(default_factory=list)
    system_cuda: SystemCuda | None = None
    conflicts: list[EnvironmentConflict] = Field(default_factory=list)
    wsl: WslInfo = Field(default_factory=WslInfo)
    visual_studio: VisualStudioInfo | None = None
