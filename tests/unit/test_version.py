"""Unit tests for version identifiers."""

import pytest

from cudamgr.models.state import InstalledVersion
from cudamgr.models.version import VersionId, is_latest
from cudamgr.utils.errors import InvalidVersionError


class TestVersionParse:
    """Tests for VersionId.parse normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12.4", "12.4"),
            ("12", "12.0"),
            ("12.0.0", "12.0"),
            ("11.08", "11.8"),
            (" 12.4.1 ", "12.4.1"),
            ("12.4.0.0", "12.4"),
            ("1.2.3.4", "1.2.3.4"),
        ],
    )
    def test_normalizes(self, raw, expected):
        """Test that equivalent spellings normalize to one form."""
        assert str(VersionId.parse(raw)) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "12.x", "12..4", "-12.4", "+12", "12.4-rc1", "1.2.3.4.5", "１２.4", "v12.4"])
    def test_rejects_malformed(self, raw):
        """Test that malformed strings raise InvalidVersionError."""
        with pytest.raises(InvalidVersionError) as exc_info:
            VersionId.parse(raw)
        assert exc_info.value.code == "INVALID_VERSION"

    def test_parse_returns_existing_instance(self):
        """Test that parsing a VersionId is a no-op."""
        version = VersionId.parse("12.4")
        assert VersionId.parse(version) is version

    def test_major_minor(self):
        """Test component accessors."""
        version = VersionId.parse("12.4.1")
        assert version.major == 12
        assert version.minor == 4


class TestVersionOrdering:
    """Tests for comparison and hashing."""

    def test_numeric_ordering(self):
        """Test that components compare numerically, not lexically."""
        assert VersionId.parse("11.8") < VersionId.parse("12.0")
        assert VersionId.parse("12.2") < VersionId.parse("12.10")
        assert VersionId.parse("12.4") < VersionId.parse("12.4.1")

    def test_equality_after_normalization(self):
        """Test that normalized equal versions are equal and hash alike."""
        assert VersionId.parse("12") == VersionId.parse("12.0.0")
        assert len({VersionId.parse("12"), VersionId.parse("12.0"), VersionId.parse("12.0.0")}) == 1

    def test_sorting(self):
        """Test sorting a mixed list."""
        versions = [VersionId.parse(v) for v in ["12.4", "11.8", "12.10", "12.0"]]
        assert [str(v) for v in sorted(versions)] == ["11.8", "12.0", "12.4", "12.10"]

    def test_not_equal_to_string(self):
        """Test that comparison with plain strings is not implicit."""
        assert VersionId.parse("12.4") != "12.4"


class TestVersionInModels:
    """Tests for VersionId fields inside models."""

    def test_string_field_is_parsed(self):
        """Test that models accept plain version strings."""
        record = InstalledVersion(version="12.04", install_path="/opt/cuda")
        assert record.version == VersionId.parse("12.4")

    def test_serializes_to_string(self):
        """Test that dumps contain the normalized string."""
        record = InstalledVersion(version="12.0.0", install_path="/opt/cuda")
        assert record.model_dump(mode="json")["version"] == "12.0"

    def test_json_round_trip(self):
        """Test that a dumped record validates back to an equal record."""
        record = InstalledVersion(version="11.8", install_path="/opt/cuda", validated=True)
        restored = InstalledVersion.model_validate_json(record.model_dump_json())
        assert restored == record

    def test_invalid_string_rejected(self):
        """Test that malformed versions fail model validation."""
        with pytest.raises(ValueError):
            InstalledVersion(version="twelve", install_path="/opt/cuda")


class TestIsLatest:
    """Tests for the latest keyword."""

    @pytest.mark.parametrize("value", ["latest", "LATEST", " Latest "])
    def test_latest(self, value):
        """Test keyword detection is case- and space-insensitive."""
        assert is_latest(value)

    def test_not_latest(self):
        """Test that versions are not the keyword."""
        assert not is_latest("12.4")
