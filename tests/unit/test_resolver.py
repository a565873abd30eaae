"""Unit tests for version resolution."""

import pytest

from cudamgr.core.resolver import VersionResolver
from cudamgr.models.package import PackageMetadata
from cudamgr.models.state import InstalledVersion
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.models.version import VersionId
from cudamgr.registry.static import StaticRegistry
from cudamgr.utils.errors import (
    AlreadyInstalledError,
    IncompatibleError,
    InvalidVersionError,
    NotValidatedError,
    VersionNotFoundError,
)

GIB = 1024**3


def _pkg(version: str, **overrides) -> PackageMetadata:
    fields = {
        "version": version,
        "artifact_url": f"https://example.invalid/cuda-{version}.tar.gz",
        "checksum": "sha256:" + "ab" * 32,
        "min_driver": "525.60.13",
        "min_compiler": "6.0",
        "size_estimate": 4 * GIB,
        "os": OsKind.LINUX,
    }
    fields.update(overrides)
    return PackageMetadata(**fields)


def _record(version: str, validated: bool = True) -> InstalledVersion:
    return InstalledVersion(version=version, install_path=f"/opt/cuda-{version}", validated=validated)


@pytest.fixture
def resolver() -> VersionResolver:
    return VersionResolver(
        StaticRegistry(
            [
                _pkg("11.8.0"),
                _pkg("12.4.1"),
                _pkg("12.8.0", min_driver="570.26"),
            ]
        )
    )


class TestResolve:
    """Tests for resolving install requests."""

    def test_exact_version(self, resolver, linux_report):
        """Test that an exact version resolves to its package."""
        resolution = resolver.resolve("12.4.1", linux_report)
        assert resolution.version == VersionId.parse("12.4.1")
        assert not resolution.already_installed

    def test_unknown_version(self, resolver, linux_report):
        """Test that versions absent from the registry are rejected."""
        with pytest.raises(VersionNotFoundError) as exc_info:
            resolver.resolve("10.2", linux_report)
        assert exc_info.value.code == "VERSION_NOT_FOUND"

    def test_malformed_version(self, resolver, linux_report):
        """Test that malformed requests raise InvalidVersionError."""
        with pytest.raises(InvalidVersionError):
            resolver.resolve("twelve", linux_report)

    def test_latest_skips_incompatible(self, resolver, linux_report):
        """Test that latest picks the newest release the driver supports."""
        resolution = resolver.resolve("latest", linux_report)
        assert resolution.version == VersionId.parse("12.4.1")

    def test_latest_with_new_driver(self, resolver, linux_report):
        """Test that latest picks the newest release when all are compatible."""
        report = linux_report.model_copy(update={"driver_version": VersionId.parse("570.86.10")})
        assert resolver.resolve("latest", report).version == VersionId.parse("12.8.0")

    def test_latest_nothing_compatible(self, resolver, linux_report):
        """Test that latest fails when no release fits the system."""
        report = linux_report.model_copy(update={"gpu_present": False})
        with pytest.raises(IncompatibleError):
            resolver.resolve("latest", report)

    def test_latest_empty_registry(self, linux_report):
        """Test that an empty registry has no latest version."""
        with pytest.raises(VersionNotFoundError):
            VersionResolver(StaticRegistry([])).resolve("latest", linux_report)

    def test_driver_too_old(self, resolver, linux_report):
        """Test that an old driver makes the request incompatible."""
        with pytest.raises(IncompatibleError) as exc_info:
            resolver.resolve("12.8", linux_report)
        assert "driver" in exc_info.value.message

    def test_already_installed_validated(self, resolver, linux_report):
        """Test that a validated install short-circuits."""
        resolution = resolver.resolve("12.4.1", linux_report, [_record("12.4.1")])
        assert resolution.already_installed
        assert resolution.existing is not None

    def test_already_installed_unvalidated(self, resolver, linux_report):
        """Test that an unvalidated install requires force."""
        with pytest.raises(AlreadyInstalledError):
            resolver.resolve("12.4.1", linux_report, [_record("12.4.1", validated=False)])

    def test_force_reinstall(self, resolver, linux_report):
        """Test that force resolves despite an existing install."""
        resolution = resolver.resolve("12.4.1", linux_report, [_record("12.4.1")], force=True)
        assert not resolution.already_installed
        assert resolution.existing is not None


class TestIncompatibility:
    """Tests for compatibility reasons."""

    def test_compatible(self, resolver, linux_report):
        """Test that a fitting system has no reason."""
        assert resolver.incompatibility(_pkg("12.4.1"), linux_report) is None

    def test_wrong_os(self, resolver, linux_report):
        """Test OS mismatch."""
        reason = resolver.incompatibility(_pkg("12.4.1", os=OsKind.WINDOWS), linux_report)
        assert "windows" in reason

    def test_no_gpu(self, resolver, linux_report):
        """Test missing GPU."""
        report = linux_report.model_copy(update={"gpu_present": False})
        assert "GPU" in resolver.incompatibility(_pkg("12.4.1"), report)

    def test_compiler_too_old(self, resolver, linux_report):
        """Test old host compiler."""
        reason = resolver.incompatibility(_pkg("12.4.1", min_compiler="12.0"), linux_report)
        assert "gcc" in reason

    def test_missing_compiler(self, resolver):
        """Test undetected host compiler."""
        report = SystemReport(
            gpu_present=True,
            driver_version="550.54.14",
            os=OsKind.LINUX,
            free_disk_bytes=200 * GIB,
        )
        assert "compiler not detected" in resolver.incompatibility(_pkg("12.4.1"), report)

    def test_disk_space(self, resolver, linux_report):
        """Test insufficient free space."""
        report = linux_report.model_copy(update={"free_disk_bytes": GIB})
        assert "disk space" in resolver.incompatibility(_pkg("12.4.1"), report)


class TestCheckInstalled:
    """Tests for looking up installed versions."""

    def test_found(self, resolver):
        """Test finding a validated record."""
        record = resolver.check_installed("12.4", [_record("12.4.0")])
        assert record.version == VersionId.parse("12.4")

    def test_not_installed(self, resolver):
        """Test that missing versions raise VersionNotFoundError."""
        with pytest.raises(VersionNotFoundError):
            resolver.check_installed("12.6", [_record("12.4")])

    def test_not_validated(self, resolver):
        """Test that unvalidated records are refused."""
        with pytest.raises(NotValidatedError):
            resolver.check_installed("12.4", [_record("12.4", validated=False)])

    def test_not_validated_allowed(self, resolver):
        """Test that validation can be waived."""
        record = resolver.check_installed("12.4", [_record("12.4", validated=False)], require_validated=False)
        assert not record.validated


class TestAvailable:
    """Tests for listing available versions."""

    def test_rows(self, resolver, linux_report):
        """Test that every registry version is listed with compatibility."""
        rows = resolver.available(linux_report, [_record("11.8.0")])
        by_version = {str(r.version): r for r in rows}
        assert set(by_version) == {"11.8.0", "12.4.1", "12.8.0"}
        assert by_version["11.8.0"].installed
        assert by_version["12.4.1"].compatible
        assert not by_version["12.8.0"].compatible
        assert by_version["12.8.0"].reason
