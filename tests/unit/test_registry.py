"""Unit tests for the static registry and manifest loading."""

import pytest

from cudamgr.knowledge.releases import LINUX_EXPECTED_FILES, WINDOWS_EXPECTED_FILES
from cudamgr.models.package import ArtifactKind, PackageMetadata
from cudamgr.models.system import OsKind
from cudamgr.models.version import VersionId
from cudamgr.registry.base import PackageRegistry
from cudamgr.registry.static import StaticRegistry, load_manifest, load_registry
from cudamgr.utils.errors import ConfigurationError

MANIFEST = """
releases:
  - version: "12.4.1"
    artifact_url: https://mirror.example/cuda-12.4.1-linux.tar.gz
    checksum: ABCDEF0123456789abcdef0123456789abcdef0123456789abcdef0123456789
    min_driver: "550.54.15"
    size_estimate: 4500000000
  - version: "12.4.1"
    os: windows
    artifact_url: https://mirror.example/cuda-12.4.1-windows.zip
    checksum: sha256:0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef
  - version: "12.6"
    artifact_url: /srv/mirror/cuda-12.6.tar.gz
    expected_files: [bin/nvcc]
    self_check: [bin/nvcc, --version]
    self_check_pattern: "release 12"
"""


def _pkg(version: str, url: str = "https://example.invalid/a.tar.gz") -> PackageMetadata:
    return PackageMetadata(version=version, artifact_url=url)


class TestStaticRegistry:
    """Tests for StaticRegistry."""

    def test_protocol(self):
        """Test that StaticRegistry satisfies the registry protocol."""
        assert isinstance(StaticRegistry(), PackageRegistry)

    def test_get_and_all(self):
        """Test lookup and ordering."""
        registry = StaticRegistry([_pkg("12.4"), _pkg("11.8"), _pkg("12.10")])
        assert registry.get(VersionId.parse("12.4.0")) is not None
        assert registry.get(VersionId.parse("12.5")) is None
        assert [str(p.version) for p in registry.all()] == ["11.8", "12.4", "12.10"]
        assert len(registry) == 3
        assert VersionId.parse("11.8") in registry

    def test_later_entries_override(self):
        """Test that duplicates keep the last entry."""
        registry = StaticRegistry([_pkg("12.4", "https://a/"), _pkg("12.4", "https://b/")])
        assert len(registry) == 1
        assert registry.get(VersionId.parse("12.4")).artifact_url == "https://b/"


class TestLoadManifest:
    """Tests for YAML manifest loading."""

    def test_load(self, tmp_path):
        """Test parsing entries and applying defaults."""
        path = tmp_path / "releases.yaml"
        path.write_text(MANIFEST)
        packages = load_manifest(path)

        assert len(packages) == 3
        linux = packages[0]
        assert linux.checksum == "sha256:abcdef0123456789abcdef0123456789abcdef0123456789abcdef0123456789"
        assert linux.expected_files == LINUX_EXPECTED_FILES
        assert linux.self_check == ("bin/nvcc", "--version")
        assert linux.self_check_pattern == r"release 12\.4\b"
        assert linux.artifact_kind == ArtifactKind.ARCHIVE

        windows = packages[1]
        assert windows.os == OsKind.WINDOWS
        assert windows.expected_files == WINDOWS_EXPECTED_FILES
        assert windows.self_check[0] == "bin/nvcc.exe"

        custom = packages[2]
        assert custom.expected_files == ("bin/nvcc",)
        assert custom.self_check_pattern == "release 12"

    def test_filter_by_os(self, tmp_path):
        """Test keeping only one OS."""
        path = tmp_path / "releases.yaml"
        path.write_text(MANIFEST)
        packages = load_manifest(path, OsKind.WINDOWS)
        assert [p.os for p in packages] == [OsKind.WINDOWS]

    def test_empty_file(self, tmp_path):
        """Test that an empty manifest has no releases."""
        path = tmp_path / "releases.yaml"
        path.write_text("")
        assert load_manifest(path) == []

    def test_missing_file(self, tmp_path):
        """Test that a missing manifest is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_manifest(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path):
        """Test that the top level must be a mapping."""
        path = tmp_path / "releases.yaml"
        path.write_text("- version: '12.4'\n")
        with pytest.raises(ConfigurationError):
            load_manifest(path)

    def test_invalid_version(self, tmp_path):
        """Test that a malformed version is reported with its index."""
        path = tmp_path / "releases.yaml"
        path.write_text("releases:\n  - version: twelve\n    artifact_url: https://x/\n")
        with pytest.raises(ConfigurationError, match="release #0"):
            load_manifest(path)

    def test_bad_checksum(self, tmp_path):
        """Test that non-hex checksums are rejected."""
        path = tmp_path / "releases.yaml"
        path.write_text("releases:\n  - version: '12.4'\n    artifact_url: https://x/\n    checksum: sha256:xyz\n")
        with pytest.raises(ConfigurationError):
            load_manifest(path)

    def test_unknown_checksum_algorithm(self, tmp_path):
        """Test that an unsupported hash algorithm is a configuration error."""
        path = tmp_path / "releases.yaml"
        path.write_text(
            "releases:\n  - version: '12.4'\n    artifact_url: https://x/\n"
            "    checksum: sha3000:" + "ab" * 32 + "\n"
        )
        with pytest.raises(ConfigurationError, match="sha3000"):
            load_manifest(path)

    def test_shake_checksum_rejected(self):
        """Test that variable-length digests are not accepted."""
        with pytest.raises(ValueError, match="shake_128"):
            PackageMetadata(version="12.4", artifact_url="https://x/", checksum="shake_128:" + "ab" * 16)

    def test_other_algorithm_accepted(self):
        """Test that any fixed-length hashlib algorithm is accepted."""
        package = PackageMetadata(version="12.4", artifact_url="https://x/", checksum="SHA512:" + "AB" * 64)
        assert package.checksum_algorithm == "sha512"


class TestLoadRegistry:
    """Tests for building the effective registry."""

    def test_builtin_linux(self):
        """Test that Linux has built-in releases."""
        registry = load_registry(OsKind.LINUX)
        versions = [str(p.version) for p in registry.all()]
        assert "11.8" in versions
        assert "12.4" in versions
        assert all(p.artifact_kind == ArtifactKind.RUNFILE for p in registry.all())

    def test_builtin_windows_empty(self):
        """Test that other platforms rely on a manifest."""
        assert len(load_registry(OsKind.WINDOWS)) == 0

    def test_manifest_overrides_builtin(self, tmp_path):
        """Test that manifest entries replace built-in ones."""
        path = tmp_path / "releases.yaml"
        path.write_text(
            "releases:\n"
            "  - version: '12.4'\n"
            "    artifact_url: https://mirror.example/cuda-12.4.tar.gz\n"
            "    checksum: " + "ab" * 32 + "\n"
        )
        registry = load_registry(OsKind.LINUX, path)
        package = registry.get(VersionId.parse("12.4"))
        assert package.artifact_url == "https://mirror.example/cuda-12.4.tar.gz"
        assert package.checksum is not None
        assert len(registry) == len(load_registry(OsKind.LINUX))
