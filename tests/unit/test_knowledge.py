"""Unit tests for the driver and GPU knowledge tables."""

from cudamgr.knowledge.driver_matrix import get_driver_matrix, max_cuda_for_driver
from cudamgr.knowledge.gpu_matrix import get_gpu_matrix, lookup_gpu
from cudamgr.knowledge.releases import nvcc_release_pattern, runfile_url


class TestDriverMatrix:
    """Tests for driver compatibility lookups."""

    def test_matrix_newest_first(self):
        """Test that the table is ordered newest first."""
        drivers = [driver for driver, _ in get_driver_matrix()]
        assert drivers == sorted(drivers, reverse=True)

    def test_exact_branch(self):
        """Test drivers inside the table."""
        assert max_cuda_for_driver("550.54.14") == "12.4"
        assert max_cuda_for_driver("535.104.05") == "12.2"
        assert max_cuda_for_driver("570.86.10") == "12.8"

    def test_newer_than_table(self):
        """Test drivers newer than any known branch."""
        assert max_cuda_for_driver("575.51.03") == "12.8+"

    def test_older_than_table(self):
        """Test drivers too old for any release."""
        assert max_cuda_for_driver("440.33") is None


class TestGpuMatrix:
    """Tests for GPU architecture lookups."""

    def test_matrix_entries(self):
        """Test the matrix shape."""
        matrix = get_gpu_matrix()
        assert matrix["h100"]["architecture"] == "Hopper"
        assert matrix["rtx 4090"]["compute_capability"] == "8.9"

    def test_lookup(self):
        """Test looking up an nvidia-smi name."""
        info = lookup_gpu("NVIDIA GeForce RTX 4090")
        assert info["model"] == "rtx 4090"
        assert info["architecture"] == "Ada Lovelace"

    def test_longest_key_wins(self):
        """Test that A100 is not mistaken for A10."""
        assert lookup_gpu("NVIDIA A100-SXM4-80GB")["model"] == "a100"
        assert lookup_gpu("NVIDIA L40S")["model"] == "l40"

    def test_unknown(self):
        """Test unknown and missing names."""
        assert lookup_gpu("Matrox G200") is None
        assert lookup_gpu(None) is None


class TestReleases:
    """Tests for release helpers."""

    def test_runfile_url(self):
        """Test the NVIDIA runfile URL layout."""
        url = runfile_url("12.4.0", "550.54.14")
        assert url.endswith("/12.4.0/local_installers/cuda_12.4.0_550.54.14_linux.run")

    def test_release_pattern(self):
        """Test the nvcc release regex."""
        assert nvcc_release_pattern("12.4.1") == r"release 12\.4\b"
