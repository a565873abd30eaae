"""Unit tests for install validation."""

import hashlib
import sys
from pathlib import Path

import pytest

from cudamgr.core.downloader import VerifiedArtifact
from cudamgr.core.validator import InstallValidator
from cudamgr.knowledge.releases import LINUX_EXPECTED_FILES, nvcc_release_pattern, nvcc_self_check
from cudamgr.models.package import PackageMetadata
from cudamgr.models.system import OsKind
from cudamgr.utils.config import ValidationConfig
from cudamgr.utils.errors import (
    IntegrityError,
    MissingFilesError,
    SmokeTestFailedError,
    SmokeTestTimeoutError,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell self-checks")


def _tree(root: Path, files: dict[str, tuple[bytes, int]]) -> Path:
    for name, (content, mode) in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        path.chmod(mode)
    return root


def _package(version: str = "12.4.1", **overrides) -> PackageMetadata:
    fields = {
        "version": version,
        "artifact_url": "file:///unused",
        "expected_files": LINUX_EXPECTED_FILES,
        "self_check": nvcc_self_check(OsKind.LINUX),
        "self_check_pattern": nvcc_release_pattern(version),
    }
    fields.update(overrides)
    return PackageMetadata(**fields)


@pytest.fixture
def validator() -> InstallValidator:
    return InstallValidator(ValidationConfig(smoke_timeout=10))


class TestVerify:
    """Tests for validating install trees."""

    def test_valid_tree(self, validator, tmp_path, toolkit_tree):
        """Test that a complete tree with a working nvcc passes."""
        root = _tree(tmp_path / "12.4.1", toolkit_tree("12.4.1"))
        report = validator.verify(root, _package())

        assert report.self_check_ran
        assert report.checked_files == len(LINUX_EXPECTED_FILES)
        assert "release 12.4" in report.self_check_output

    def test_missing_files(self, validator, tmp_path, toolkit_tree):
        """Test that absent expected files are listed."""
        root = _tree(tmp_path / "12.4.1", toolkit_tree("12.4.1", omit=("lib64/libcudart.so",)))
        with pytest.raises(MissingFilesError) as exc_info:
            validator.verify(root, _package())
        assert exc_info.value.details["missing"] == ["lib64/libcudart.so"]

    def test_self_check_exit_code(self, validator, tmp_path, toolkit_tree):
        """Test that a failing self-check is reported."""
        root = _tree(tmp_path / "12.4.1", toolkit_tree("12.4.1", nvcc_exit=2))
        with pytest.raises(SmokeTestFailedError) as exc_info:
            validator.verify(root, _package())
        assert "exit code 2" in exc_info.value.message

    def test_self_check_wrong_release(self, validator, tmp_path, toolkit_tree):
        """Test that nvcc reporting another release fails validation."""
        root = _tree(tmp_path / "12.4.1", toolkit_tree("11.8.0"))
        with pytest.raises(SmokeTestFailedError):
            validator.verify(root, _package())

    def test_self_check_timeout(self, tmp_path, toolkit_tree):
        """Test that a hanging self-check times out."""
        files = toolkit_tree("12.4.1")
        files["bin/nvcc"] = (b"#!/bin/sh\nexec sleep 5\n", 0o755)
        root = _tree(tmp_path / "12.4.1", files)

        validator = InstallValidator(ValidationConfig(smoke_timeout=0.2))
        with pytest.raises(SmokeTestTimeoutError):
            validator.verify(root, _package())

    def test_self_check_not_executable(self, validator, tmp_path, toolkit_tree):
        """Test that an nvcc that cannot run fails validation."""
        files = toolkit_tree("12.4.1")
        files["bin/nvcc"] = (files["bin/nvcc"][0], 0o644)
        root = _tree(tmp_path / "12.4.1", files)
        with pytest.raises(SmokeTestFailedError):
            validator.verify(root, _package())

    def test_self_check_disabled(self, tmp_path, toolkit_tree):
        """Test that the self-check can be switched off."""
        root = _tree(tmp_path / "12.4.1", toolkit_tree("12.4.1", nvcc_exit=1))
        report = InstallValidator(ValidationConfig(run_self_check=False)).verify(root, _package())
        assert not report.self_check_ran


class TestVerifyChecksum:
    """Tests for re-hashing staged artifacts."""

    def _artifact(self, path: Path) -> VerifiedArtifact:
        return VerifiedArtifact(
            path=path,
            version="12.4.1",
            checksum="sha256:" + hashlib.sha256(path.read_bytes()).hexdigest(),
            size_bytes=path.stat().st_size,
            verified=True,
        )

    def test_match(self, validator, tmp_path):
        """Test that matching bytes pass."""
        path = tmp_path / "artifact"
        path.write_bytes(b"payload")
        checksum = "sha256:" + hashlib.sha256(b"payload").hexdigest()
        validator.verify_checksum(self._artifact(path), _package(checksum=checksum))

    def test_tampered(self, validator, tmp_path):
        """Test that bytes changed after download are caught."""
        path = tmp_path / "artifact"
        path.write_bytes(b"payload")
        artifact = self._artifact(path)
        checksum = artifact.checksum
        path.write_bytes(b"tampered")

        with pytest.raises(IntegrityError):
            validator.verify_checksum(artifact, _package(checksum=checksum))

    def test_no_published_checksum(self, validator, tmp_path):
        """Test that packages without a checksum are not re-hashed."""
        path = tmp_path / "artifact"
        path.write_bytes(b"payload")
        validator.verify_checksum(self._artifact(path), _package(checksum=None))
