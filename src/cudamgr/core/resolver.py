"""Version resolution against the registry and the probed system."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field

from cudamgr.models.outcomes import AvailableVersion
from cudamgr.models.package import PackageMetadata
from cudamgr.models.state import InstalledVersion
from cudamgr.models.system import SystemReport
from cudamgr.models.version import VersionId, is_latest
from cudamgr.registry.base import PackageRegistry
from cudamgr.utils.errors import (
    AlreadyInstalledError,
    IncompatibleError,
    NotValidatedError,
    VersionNotFoundError,
)
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class Resolution(BaseModel):
    """A request resolved to exactly one package."""

    model_config = {"frozen": True}

    package: PackageMetadata = Field(description="Package to install")
    already_installed: bool = Field(
        default=False,
        description="A validated install exists; installing again is a no-op",
    )
    existing: InstalledVersion | None = Field(default=None, description="Record of the existing install")

    @property
    def version(self) -> VersionId:
        return self.package.version


class VersionResolver:
    """Resolves version requests to packages.

    Resolution is pure: it reads the registry, a system report and the
    installed records passed in, and performs no I/O. In particular an
    unknown version is rejected before anything is downloaded.

    Example:
        resolver = VersionResolver(registry)
        resolution = resolver.resolve("12.4", report, store.installed())
        if not resolution.already_installed:
            download(resolution.package)
    """

    def __init__(self, registry: PackageRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> PackageRegistry:
        return self._registry

    def incompatibility(self, package: PackageMetadata, report: SystemReport) -> str | None:
        """Explain why a package cannot be installed on a system.

        Returns:
            None if compatible, else a human-readable reason
        """
        if package.os != report.os:
            return f"package targets {package.os.value}, this system is {report.os.value}"
        if not report.gpu_present:
            return "no NVIDIA GPU detected"
        if package.min_driver is not None:
            if report.driver_version is None:
                return f"NVIDIA driver not detected (>= {package.min_driver} required)"
            if report.driver_version < package.min_driver:
                return f"driver {report.driver_version} is older than the required {package.min_driver}"
        if package.min_compiler is not None:
            if report.compiler_version is None:
                return f"host compiler not detected (>= {package.min_compiler} required)"
            if report.compiler_version < package.min_compiler:
                name = report.compiler_name or "compiler"
                return f"{name} {report.compiler_version} is older than the required {package.min_compiler}"
        if report.free_disk_bytes < package.size_estimate:
            return (
                f"{package.size_estimate_gb:.1f} GB of free disk space required, "
                f"{report.free_disk_gb:.1f} GB available"
            )
        return None

    def resolve(
        self,
        requested: str | VersionId,
        report: SystemReport,
        installed: Iterable[InstalledVersion] = (),
        force: bool = False,
    ) -> Resolution:
        """Resolve an install request.

        Args:
            requested: A version string, a VersionId, or ``"latest"``
            report: System probe results
            installed: Current installed records
            force: Resolve even if the version is already installed

        Returns:
            Resolution naming the package and whether it is already installed

        Raises:
            VersionNotFoundError: Version absent from the registry
            IncompatibleError: System does not satisfy the package
            AlreadyInstalledError: Installed but not validated, without force
            InvalidVersionError: Malformed version string
        """
        records = {r.version: r for r in installed}

        if isinstance(requested, str) and is_latest(requested):
            package = self._latest_compatible(report)
        else:
            version = VersionId.parse(requested)
            package = self._registry.get(version)
            if package is None:
                raise VersionNotFoundError(str(version))

        existing = records.get(package.version)
        if existing is not None and not force:
            if existing.validated:
                logger.info("CUDA %s is already installed", package.version)
                return Resolution(package=package, already_installed=True, existing=existing)
            raise AlreadyInstalledError(str(package.version), existing.install_path)

        reason = self.incompatibility(package, report)
        if reason is not None:
            raise IncompatibleError(str(package.version), reason)

        logger.debug("Resolved %s to %s", requested, package.artifact_url)
        return Resolution(package=package, existing=existing)

    def _latest_compatible(self, report: SystemReport) -> PackageMetadata:
        packages = self._registry.all()
        if not packages:
            raise VersionNotFoundError("latest")

        reasons = []
        for package in reversed(packages):
            reason = self.incompatibility(package, report)
            if reason is None:
                return package
            reasons.append(f"{package.version}: {reason}")

        raise IncompatibleError("latest", "no release is compatible (" + "; ".join(reasons[:3]) + ")")

    def check_installed(
        self,
        version: str | VersionId,
        installed: Iterable[InstalledVersion],
        require_validated: bool = True,
    ) -> InstalledVersion:
        """Find the installed record a switch or uninstall refers to.

        Raises:
            VersionNotFoundError: The version has no installed record
            NotValidatedError: The record exists but failed validation
        """
        version = VersionId.parse(version)
        for record in installed:
            if record.version == version:
                if require_validated and not record.validated:
                    raise NotValidatedError(str(version))
                return record
        raise VersionNotFoundError(str(version), where="installed versions")

    def available(
        self,
        report: SystemReport,
        installed: Iterable[InstalledVersion] = (),
    ) -> list[AvailableVersion]:
        """List registry versions with their compatibility for this system."""
        installed_versions = {r.version for r in installed}
        rows = []
        for package in self._registry.all():
            reason = self.incompatibility(package, report)
            rows.append(
                AvailableVersion(
                    version=package.version,
                    compatible=reason is None,
                    installed=package.version in installed_versions,
                    reason=reason,
                    size_estimate=package.size_estimate,
                )
            )
        return rows
