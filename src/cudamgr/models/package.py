"""Package metadata models."""

from __future__ import annotations

import hashlib
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, Field, field_validator

from cudamgr.models.system import OsKind
from cudamgr.models.version import VersionId

DEFAULT_CHECKSUM_ALGORITHM = "sha256"

# shake digests have no fixed length, so a hexdigest cannot be compared
CHECKSUM_ALGORITHMS = frozenset(
    name.lower() for name in hashlib.algorithms_available if not name.lower().startswith("shake")
)


class ArtifactKind(str, Enum):
    """How a downloaded artifact is turned into an install tree."""

    ARCHIVE = "archive"
    RUNFILE = "runfile"


class PackageMetadata(BaseModel):
    """Registry record describing one installable toolkit version."""

    model_config = {"frozen": True}

    version: VersionId = Field(description="Toolkit version")
    artifact_url: str = Field(description="Download URL (http(s), file:// or local path)")
    checksum: str | None = Field(
        default=None,
        description="Published checksum as 'algorithm:hexdigest' (sha256 if no prefix)",
    )
    min_driver: VersionId | None = Field(default=None, description="Minimum NVIDIA driver version")
    min_compiler: VersionId | None = Field(default=None, description="Minimum host compiler version")
    size_estimate: int = Field(default=0, ge=0, description="Installed size estimate in bytes")
    os: OsKind = Field(default=OsKind.LINUX, description="Target operating system")
    artifact_kind: ArtifactKind = Field(default=ArtifactKind.ARCHIVE, description="Artifact format")
    expected_files: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Paths (relative to the install root) that must exist after install",
    )
    self_check: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Self-check argv; the first element is relative to the install root",
    )
    self_check_pattern: str | None = Field(
        default=None,
        description="Regex the self-check output must match",
    )

    @field_validator("checksum")
    @classmethod
    def _normalize_checksum(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        if not value:
            return None
        if ":" not in value:
            value = f"{DEFAULT_CHECKSUM_ALGORITHM}:{value}"
        algorithm, digest = value.split(":", 1)
        if algorithm not in CHECKSUM_ALGORITHMS:
            raise ValueError(f"unsupported checksum algorithm: {algorithm}")
        if not digest or any(c not in "0123456789abcdef" for c in digest):
            raise ValueError(f"checksum digest must be hexadecimal: {value}")
        return f"{algorithm}:{digest}"

    @field_validator("expected_files")
    @classmethod
    def _relative_paths(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for entry in value:
            path = PurePosixPath(entry)
            if path.is_absolute() or ".." in path.parts:
                raise ValueError(f"expected file must be relative to the install root: {entry}")
        return value

    @property
    def checksum_algorithm(self) -> str | None:
        if self.checksum is None:
            return None
        return self.checksum.split(":", 1)[0]

    @property
    def checksum_digest(self) -> str | None:
        if self.checksum is None:
            return None
        return self.checksum.split(":", 1)[1]

    @property
    def size_estimate_gb(self) -> float:
        return self.size_estimate / 1024**3
