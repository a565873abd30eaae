"""Unit tests for configuration utilities."""

from pathlib import Path

import pytest

from cudamgr.utils.config import (
    CudaMgrConfig,
    ManagerPaths,
    get_config,
    get_config_paths,
    load_config,
    set_config,
)
from cudamgr.utils.errors import ConfigurationError


class TestCudaMgrConfig:
    """Tests for the config model."""

    def test_defaults(self):
        """Test default values."""
        config = CudaMgrConfig()
        assert config.downloads.max_attempts == 3
        assert config.downloads.require_checksum is True
        assert config.validation.run_self_check is True
        assert config.root == Path.home() / ".cudamgr"
        assert config.manifest_path is None

    def test_root_expands_user(self):
        """Test that ~ in the root is expanded."""
        config = CudaMgrConfig.model_validate({"paths": {"root": "~/cuda-root"}})
        assert config.root == Path.home() / "cuda-root"


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load_explicit_file(self, tmp_path, monkeypatch):
        """Test loading a YAML file."""
        monkeypatch.delenv("CUDAMGR_ROOT", raising=False)
        monkeypatch.delenv("CUDAMGR_MANIFEST", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("downloads:\n  max_attempts: 5\n  proxy: http://proxy:3128\nvalidation:\n  smoke_timeout: 5\n")

        config = load_config(path)
        assert config.downloads.max_attempts == 5
        assert config.downloads.proxy == "http://proxy:3128"
        assert config.validation.smoke_timeout == 5

    def test_missing_explicit_file(self, tmp_path):
        """Test that a missing explicit file is an error."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test that malformed YAML is reported."""
        path = tmp_path / "config.yaml"
        path.write_text("downloads: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        """Test that out-of-range values are reported."""
        path = tmp_path / "config.yaml"
        path.write_text("downloads:\n  max_attempts: 0\n")
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_config(path)

    def test_empty_file_gives_defaults(self, tmp_path):
        """Test that an empty file yields the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).downloads.max_attempts == 3

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test CUDAMGR_ROOT and CUDAMGR_MANIFEST take precedence."""
        path = tmp_path / "config.yaml"
        path.write_text("paths:\n  root: /elsewhere\n")
        monkeypatch.setenv("CUDAMGR_ROOT", str(tmp_path / "root"))
        monkeypatch.setenv("CUDAMGR_MANIFEST", str(tmp_path / "manifest.yaml"))

        config = load_config(path)
        assert config.root == tmp_path / "root"
        assert config.manifest_path == tmp_path / "manifest.yaml"

    def test_search_paths_include_cwd_and_home(self, monkeypatch):
        """Test the default search order."""
        monkeypatch.delenv("CUDAMGR_CONFIG", raising=False)
        paths = get_config_paths()
        assert paths[0] == Path.cwd() / ".cudamgr.yaml"
        assert Path.home() / ".cudamgr" / "config.yaml" in paths

    def test_explicit_env_path_first(self, tmp_path, monkeypatch):
        """Test CUDAMGR_CONFIG is searched first."""
        monkeypatch.setenv("CUDAMGR_CONFIG", str(tmp_path / "c.yaml"))
        assert get_config_paths()[0] == tmp_path / "c.yaml"


class TestGlobalConfig:
    """Tests for the global config instance."""

    def test_set_and_get(self):
        """Test that set_config replaces the instance."""
        config = CudaMgrConfig.model_validate({"downloads": {"timeout": 5}})
        set_config(config)
        assert get_config() is config


class TestManagerPaths:
    """Tests for the on-disk layout."""

    def test_layout(self, tmp_path):
        """Test derived locations."""
        paths = ManagerPaths(tmp_path)
        assert paths.install_dir("12.4") == tmp_path / "installs" / "12.4"
        assert paths.records_file == tmp_path / "state" / "installed.json"
        assert paths.pointer_file == tmp_path / "state" / "active"
        assert paths.log_file == tmp_path / "logs" / "cudamgr.log"

    def test_ensure_creates_directories(self, tmp_path):
        """Test that ensure builds the skeleton."""
        paths = ManagerPaths(tmp_path / "root")
        paths.ensure()
        for directory in (paths.installs, paths.staging, paths.state, paths.logs):
            assert directory.is_dir()
