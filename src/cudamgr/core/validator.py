"""Post-download and post-install verification."""

from __future__ import annotations

import os
import re
import subprocess
from pathlib import Path

from pydantic import BaseModel, Field

from cudamgr.core.downloader import VerifiedArtifact
from cudamgr.models.package import PackageMetadata
from cudamgr.models.version import VersionId
from cudamgr.utils.config import ValidationConfig
from cudamgr.utils.errors import (
    IntegrityError,
    MissingFilesError,
    SmokeTestFailedError,
    SmokeTestTimeoutError,
)
from cudamgr.utils.hashing import digests_match, hash_file
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class ValidationReport(BaseModel):
    """What a successful validation checked."""

    model_config = {"frozen": True}

    version: VersionId
    install_path: Path
    checked_files: int = Field(default=0, description="Expected files found")
    self_check_ran: bool = Field(default=False, description="Whether the self-check command ran")
    self_check_output: str | None = Field(default=None, description="First line of self-check output")


class InstallValidator:
    """Checks artifacts and install trees before they are registered.

    Example:
        validator = InstallValidator(config.validation)
        validator.verify_checksum(artifact, package)
        report = validator.verify(install_path, package)
    """

    def __init__(self, config: ValidationConfig | None = None) -> None:
        self._config = config or ValidationConfig()

    def verify_checksum(self, artifact: VerifiedArtifact, package: PackageMetadata) -> None:
        """Re-hash a staged artifact against the published checksum.

        Raises:
            IntegrityError: The staged bytes do not match
        """
        if package.checksum is None:
            logger.debug("No published checksum for CUDA %s; skipping re-hash", package.version)
            return

        algorithm = package.checksum_algorithm or "sha256"
        actual = hash_file(artifact.path, algorithm)
        if not digests_match(package.checksum_digest or "", actual):
            raise IntegrityError(
                f"Staged artifact for CUDA {package.version} does not match its checksum",
                expected=package.checksum,
                actual=f"{algorithm}:{actual}",
            )
        logger.debug("Checksum verified for %s", artifact.path.name)

    def verify(self, install_path: Path | str, package: PackageMetadata) -> ValidationReport:
        """Run the expected-files check and the self-check command.

        Args:
            install_path: Root of the install tree
            package: Package describing what the tree must contain

        Raises:
            MissingFilesError: Expected files are absent
            SmokeTestTimeoutError: The self-check did not finish in time
            SmokeTestFailedError: The self-check could not run, exited
                non-zero, or printed unexpected output
        """
        root = Path(install_path)
        version = package.version

        missing = [f for f in package.expected_files if not (root / f).exists()]
        if missing:
            raise MissingFilesError(str(version), missing)

        output = None
        ran = False
        if package.self_check and self._config.run_self_check:
            output = self._run_self_check(root, package)
            ran = True

        logger.info("CUDA %s passed validation", version)
        return ValidationReport(
            version=version,
            install_path=root,
            checked_files=len(package.expected_files),
            self_check_ran=ran,
            self_check_output=output,
        )

    def _run_self_check(self, root: Path, package: PackageMetadata) -> str:
        version = str(package.version)
        executable = root / package.self_check[0]
        if not executable.exists():
            raise SmokeTestFailedError(version, f"{package.self_check[0]} not found")

        cmd = [str(executable), *package.self_check[1:]]
        env = dict(os.environ)
        env["CUDA_HOME"] = str(root)
        env["CUDA_PATH"] = str(root)

        logger.debug("Running self-check: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._config.smoke_timeout,
                cwd=root,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise SmokeTestTimeoutError(version, self._config.smoke_timeout) from e
        except OSError as e:
            raise SmokeTestFailedError(version, f"could not run {package.self_check[0]}: {e}") from e

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            lines = output.strip().splitlines()
            detail = lines[-1] if lines else "no output"
            raise SmokeTestFailedError(version, f"exit code {result.returncode}: {detail}")

        if package.self_check_pattern and not re.search(package.self_check_pattern, output):
            raise SmokeTestFailedError(
                version,
                f"output does not match '{package.self_check_pattern}'",
            )

        lines = output.strip().splitlines()
        return lines[-1] if lines else ""
