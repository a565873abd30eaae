"""ToolkitManager: the install and version-switching engine."""

from __future__ import annotations

import functools
import shutil
from pathlib import Path
from typing import Callable

import httpx

from cudamgr.core.activation import Activation, default_activation
from cudamgr.core.downloader import CancelToken, PackageDownloader, ProgressCallback
from cudamgr.core.installer import ToolkitInstaller
from cudamgr.core.lock import OperationLock
from cudamgr.core.resolver import VersionResolver
from cudamgr.core.shell import write_env_scripts
from cudamgr.core.store import StateStore
from cudamgr.core.switcher import VersionSwitcher
from cudamgr.core.transaction import EffectKind, InstallTransaction
from cudamgr.core.validator import InstallValidator
from cudamgr.knowledge.releases import expected_files_for, nvcc_release_pattern, nvcc_self_check
from cudamgr.models.outcomes import (
    AvailableVersion,
    InstallOutcome,
    InstallStatus,
    SwitchOutcome,
    UninstallOutcome,
    VersionListing,
)
from cudamgr.models.environment import EnvironmentReport
from cudamgr.models.package import PackageMetadata
from cudamgr.models.state import InstalledVersion
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.version import VersionId, is_latest
from cudamgr.registry.base import PackageRegistry
from cudamgr.registry.static import load_registry
from cudamgr.utils.config import CudaMgrConfig, ManagerPaths, get_config
from cudamgr.utils.errors import (
    ActiveVersionError,
    NotInstalledError,
    SwitchError,
    UninstallError,
    ValidationError,
    VersionNotFoundError,
)
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class ToolkitManager:
    """Installs, switches and removes CUDA toolkit versions.

    Mutating operations (install, use, uninstall, verify) hold the machine
    lock for their whole duration and fail fast with ``LockBusyError`` when
    another one is running. Read-only queries take no lock.

    Every install runs its stages strictly in order (resolve, download,
    checksum, unpack, validate, register) inside a transaction; any failure
    rolls back what earlier stages did and re-raises the original error.

    Example:
        manager = ToolkitManager()
        manager.install("12.4")
        manager.use_version("12.4")
        for row in manager.list():
            print(row.version, row.active)
    """

    def __init__(
        self,
        config: CudaMgrConfig | None = None,
        registry: PackageRegistry | None = None,
        probe: Callable[[], SystemReport] | None = None,
        transport: httpx.BaseTransport | None = None,
        activation: Activation | None = None,
        os_kind: OsKind | None = None,
        environment_scanner: Callable[[], EnvironmentReport] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Configuration (defaults to the global config)
            registry: Package registry (defaults to built-in releases plus manifest)
            probe: System probe (defaults to ``detect_system``)
            transport: httpx transport for downloads
            activation: Activation mechanism (defaults to the OS default)
            os_kind: Operating system (defaults to the running one)
            environment_scanner: Environment scan for doctor (defaults to ``scan_environment``)
        """
        self._config = config or get_config()
        self._paths = self._config.layout()
        self._os = os_kind or OsKind.current()

        if registry is None:
            registry = load_registry(self._os, self._config.manifest_path)
        if probe is None:
            from cudamgr.system.probe import detect_system

            probe = functools.partial(detect_system, self._paths.root)
        self._probe = probe
        self._environment_scanner = environment_scanner

        self.store = StateStore(self._paths)
        self.resolver = VersionResolver(registry)
        self.downloader = PackageDownloader(self._paths.staging, self._config.downloads, transport)
        self.installer = ToolkitInstaller(self._paths.installs)
        self.validator = InstallValidator(self._config.validation)
        self.switcher = VersionSwitcher(self.store, activation or default_activation(self._os, self._paths.root))

    @property
    def paths(self) -> ManagerPaths:
        return self._paths

    @property
    def config(self) -> CudaMgrConfig:
        return self._config

    @property
    def registry(self) -> PackageRegistry:
        return self.resolver.registry

    def lock(self) -> OperationLock:
        return OperationLock(self._paths.lock_file)

    def system_report(self) -> SystemReport:
        return self._probe()

    def environment_report(self) -> EnvironmentReport:
        """Scan for CUDA installs and settings outside cudamgr."""
        if self._environment_scanner is not None:
            return self._environment_scanner()
        from cudamgr.system.environment import scan_environment

        active = self.store.active()
        record = self.store.get(active) if active is not None else None
        active_path = record.install_path if record is not None else None
        return scan_environment(self._os, self._paths.root, active_path)

    # Mutating operations

    def install(
        self,
        version: str | VersionId = "latest",
        force: bool = False,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> InstallOutcome:
        """Install a toolkit version (or the newest compatible one).

        Args:
            version: Version string, VersionId, or ``"latest"``
            force: Reinstall even if the version is already installed
            on_progress: Download progress callback
            cancel: Token to cancel the download

        Returns:
            InstallOutcome; ``already_installed`` for a validated existing install

        Raises:
            ResolutionError: Unknown or incompatible version
            DownloadError: Download or checksum failure
            InstallError: Unpack failure, disk full, or already installed
            ValidationError: The install tree failed its checks
            ActiveVersionError: ``force`` on the active version
            LockBusyError: Another operation is running
        """
        with self.lock():
            self._paths.ensure()
            self.installer.sweep_stale(self._paths.staging)

            report = self._probe()
            resolution = self.resolver.resolve(version, report, self.store.installed(), force=force)
            package = resolution.package

            if resolution.already_installed:
                return InstallOutcome(
                    status=InstallStatus.ALREADY_INSTALLED,
                    version=package.version,
                    install_path=resolution.existing.install_path,
                )

            if force and self.store.active() == package.version:
                raise ActiveVersionError(str(package.version))

            return self._install_package(package, resolution.existing, force, on_progress, cancel)

    def _install_package(
        self,
        package: PackageMetadata,
        existing: InstalledVersion | None,
        force: bool,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
    ) -> InstallOutcome:
        version = package.version
        txn = InstallTransaction(version)
        replaced = False

        try:
            if force:
                replaced = self._displace_existing(txn, version, existing)

            staging = self.downloader.staging_path(package)
            artifact = self.downloader.fetch(package, staging, on_progress=on_progress, cancel=cancel)
            txn.record(EffectKind.STAGING_FILE, str(artifact.path), lambda: artifact.path.unlink(missing_ok=True))
            txn.on_commit(lambda: artifact.path.unlink(missing_ok=True))

            self.validator.verify_checksum(artifact, package)

            handle = self.installer.place(artifact, package)
            txn.record(EffectKind.INSTALL_DIR, str(handle.path), lambda: self.installer.remove(version))

            self.validator.verify(handle.path, package)

            record = InstalledVersion(
                version=version,
                install_path=str(handle.path),
                validated=True,
                checksum=artifact.checksum,
                size_bytes=artifact.size_bytes,
            )
            self.store.add(record)
            txn.record(EffectKind.REGISTRY_ENTRY, str(version), lambda: self.store.remove(version))

            txn.commit()
        except BaseException as e:
            logger.warning("Install of CUDA %s failed, rolling back: %s", version, e)
            failed = txn.rollback()
            if failed:
                logger.error("Rollback left %d effect(s) behind: %s", len(failed), failed)
            raise

        logger.info("CUDA %s installed at %s", version, record.install_path)
        return InstallOutcome(
            status=InstallStatus.INSTALLED,
            version=version,
            install_path=record.install_path,
            replaced=replaced,
        )

    def _displace_existing(
        self,
        txn: InstallTransaction,
        version: VersionId,
        existing: InstalledVersion | None,
    ) -> bool:
        """Move an existing install out of the way for a forced reinstall."""
        displaced = False
        if existing is not None:
            self.store.remove(version)
            txn.record(EffectKind.DISPLACED_INSTALL, f"record of {version}", lambda: self.store.add(existing))
            displaced = True

        if self.installer.canonical_path(version).exists():
            trash = self.installer.displace(version)
            txn.record(EffectKind.DISPLACED_INSTALL, str(trash), lambda: self.installer.restore(trash, version))
            txn.on_commit(lambda: shutil.rmtree(trash, ignore_errors=True))
            displaced = True

        return displaced

    def use_version(self, version: str | VersionId) -> SwitchOutcome:
        """Make an installed, validated version the active one.

        ``"latest"`` selects the newest validated installed version.

        Raises:
            VersionNotFoundError: The version is not installed
            NotValidatedError: The version failed validation
            SwitchError: The switch failed (pointer unchanged)
            SwapFailedError: The swap failed midway; inspect the activation
            LockBusyError: Another operation is running
        """
        with self.lock():
            records = self.store.installed()
            if isinstance(version, str) and is_latest(version):
                validated = [r for r in records if r.validated]
                if not validated:
                    raise VersionNotFoundError("latest", where="installed versions")
                version = validated[-1].version

            record = self.resolver.check_installed(version, records)
            self.write_shell_scripts()
            transition = self.switcher.transition(record)

        return SwitchOutcome(status=transition.status, previous=transition.previous, current=transition.current)

    def deactivate(self) -> SwitchOutcome:
        """Clear the active version without selecting another one."""
        with self.lock():
            transition = self.switcher.transition(None)
        return SwitchOutcome(status=transition.status, previous=transition.previous, current=transition.current)

    def uninstall(self, version: str | VersionId, deactivate: bool = False) -> UninstallOutcome:
        """Remove an installed version.

        The active version is refused unless ``deactivate`` is set, in which
        case it is deactivated first. No other version is activated in its
        place.

        Raises:
            NotInstalledError: The version is not installed
            ActiveVersionError: The version is active and ``deactivate`` is False
            LockBusyError: Another operation is running
        """
        version = VersionId.parse(version)
        with self.lock():
            record = self.store.get(version)
            install_dir = self.installer.canonical_path(version)
            if record is None and not install_dir.exists():
                raise NotInstalledError(str(version))

            is_active = self.store.active() == version
            if is_active and not deactivate:
                raise ActiveVersionError(str(version))
            if is_active and record is None:
                # Rollback could not reactivate it without a record
                raise UninstallError(
                    f"CUDA {version} is active but has no install record",
                    code="ACTIVE_WITHOUT_RECORD",
                    details={"version": str(version)},
                )

            txn = InstallTransaction(version)
            try:
                if is_active:
                    self.switcher.transition(None)
                    txn.record(EffectKind.POINTER, f"active {version}", lambda: self.switcher.transition(record))

                if record is not None:
                    self.store.remove(version)
                    txn.record(EffectKind.REGISTRY_ENTRY, str(version), lambda: self.store.add(record))

                if install_dir.exists():
                    trash = self.installer.displace(version)
                    txn.record(EffectKind.DISPLACED_INSTALL, str(trash), lambda: self.installer.restore(trash, version))
                    txn.on_commit(lambda: shutil.rmtree(trash, ignore_errors=True))

                txn.commit()
            except BaseException:
                txn.rollback()
                raise

        logger.info("Uninstalled CUDA %s", version)
        return UninstallOutcome(version=version, install_path=str(install_dir), deactivated=is_active)

    def verify(self, version: str | VersionId) -> InstalledVersion:
        """Re-run the install checks and record the result.

        A version that fails while active is deactivated, so the active
        pointer always names a validated install.

        Returns:
            The updated record (validated)

        Raises:
            NotInstalledError: The version is not installed
            ValidationError: The checks failed; the record is now unvalidated
            LockBusyError: Another operation is running
        """
        version = VersionId.parse(version)
        with self.lock():
            record = self.store.get(version)
            if record is None:
                raise NotInstalledError(str(version))

            package = self.registry.get(version) or self._fallback_package(version)
            try:
                self.validator.verify(record.install_path, package)
            except ValidationError:
                self.store.add(record.model_copy(update={"validated": False}))
                if self.store.active() == version:
                    logger.warning("CUDA %s failed validation and is being deactivated", version)
                    try:
                        self.switcher.transition(None)
                    except SwitchError as e:
                        logger.error("Could not deactivate CUDA %s: %s", version, e.message)
                raise

            updated = record.model_copy(update={"validated": True})
            self.store.add(updated)
            return updated

    def _fallback_package(self, version: VersionId) -> PackageMetadata:
        # Installed from a manifest entry that no longer exists: check the nvcc layout
        return PackageMetadata(
            version=version,
            artifact_url="",
            os=self._os,
            expected_files=expected_files_for(self._os),
            self_check=nvcc_self_check(self._os),
            self_check_pattern=nvcc_release_pattern(str(version)),
        )

    def write_shell_scripts(self) -> list[Path]:
        """Write the environment scripts shells source."""
        return write_env_scripts(self._paths.root)

    # Read-only queries

    def active(self) -> VersionId | None:
        return self.store.active()

    def get_installed(self, version: str | VersionId) -> InstalledVersion | None:
        return self.store.get(VersionId.parse(version))

    def list(self) -> list[VersionListing]:
        """Installed versions, oldest first."""
        active = self.store.active()
        return [
            VersionListing(
                version=r.version,
                validated=r.validated,
                active=r.version == active,
                install_path=r.install_path,
                installed_at=r.installed_at,
                checksum=r.checksum,
            )
            for r in self.store.installed()
        ]

    def available(self) -> list[AvailableVersion]:
        """Registry versions with their compatibility for this machine."""
        return self.resolver.available(self._probe(), self.store.installed())
