"""Configuration file support for cudamgr."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from cudamgr.utils.errors import ConfigurationError

ENV_ROOT = "CUDAMGR_ROOT"
ENV_MANIFEST = "CUDAMGR_MANIFEST"
ENV_CONFIG = "CUDAMGR_CONFIG"


def default_root() -> Path:
    """Default state root: ``~/.cudamgr``."""
    return Path.home() / ".cudamgr"


class PathsConfig(BaseModel):
    """Filesystem locations."""

    root: str | None = Field(default=None, description="State root (defaults to ~/.cudamgr)")
    manifest: str | None = Field(default=None, description="Local YAML release manifest")


class DownloadConfig(BaseModel):
    """Downloader behaviour."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts per download")
    retry_delay: float = Field(default=2.0, ge=0, description="Initial delay between attempts")
    retry_backoff: float = Field(default=2.0, ge=1, description="Delay multiplier per attempt")
    timeout: float = Field(default=60.0, gt=0, description="Network timeout in seconds")
    chunk_size: int = Field(default=1 << 20, gt=0, description="Streaming chunk size in bytes")
    require_checksum: bool = Field(
        default=True,
        description="Refuse artifacts without a published checksum",
    )
    proxy: str | None = Field(default=None, description="HTTP(S) proxy URL")


class ValidationConfig(BaseModel):
    """Post-install validation behaviour."""

    run_self_check: bool = Field(default=True, description="Run the package self-check command")
    smoke_timeout: float = Field(default=30.0, gt=0, description="Self-check timeout in seconds")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING", description="Console log level")
    file: bool = Field(default=True, description="Write a rotating log file under the root")


class CudaMgrConfig(BaseModel):
    """Main configuration for cudamgr."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    downloads: DownloadConfig = Field(default_factory=DownloadConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def root(self) -> Path:
        """Resolved state root."""
        if self.paths.root:
            return Path(self.paths.root).expanduser()
        return default_root()

    @property
    def manifest_path(self) -> Path | None:
        if self.paths.manifest:
            return Path(self.paths.manifest).expanduser()
        return None

    def layout(self) -> "ManagerPaths":
        return ManagerPaths(self.root)


class ManagerPaths:
    """On-disk layout under the state root.

    ::

        <root>/
            installs/<version>/      per-version install trees
            installs/.tmp-*          unpack directories (renamed into place)
            staging/                 in-progress downloads
            state/installed.json     installed-version records
            state/active             active version pointer
            current                  live activation (symlink or script)
            env.sh, env.ps1          shell environment scripts
            logs/cudamgr.log
            cudamgr.lock
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def installs(self) -> Path:
        return self.root / "installs"

    @property
    def staging(self) -> Path:
        return self.root / "staging"

    @property
    def state(self) -> Path:
        return self.root / "state"

    @property
    def records_file(self) -> Path:
        return self.state / "installed.json"

    @property
    def pointer_file(self) -> Path:
        return self.state / "active"

    @property
    def lock_file(self) -> Path:
        return self.root / "cudamgr.lock"

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    @property
    def log_file(self) -> Path:
        return self.logs / "cudamgr.log"

    def install_dir(self, version: object) -> Path:
        return self.installs / str(version)

    def ensure(self) -> None:
        """Create the directory skeleton."""
        for directory in (self.root, self.installs, self.staging, self.state, self.logs):
            directory.mkdir(parents=True, exist_ok=True)


def get_config_paths() -> list[Path]:
    """Get possible configuration file paths.

    Returns:
        List of paths to check for configuration files
    """
    paths = []

    explicit = os.environ.get(ENV_CONFIG)
    if explicit:
        paths.append(Path(explicit))

    # Current directory
    paths.append(Path.cwd() / ".cudamgr.yaml")
    paths.append(Path.cwd() / ".cudamgr.yml")

    # Home directory
    home = Path.home()
    paths.append(home / ".cudamgr" / "config.yaml")
    paths.append(home / ".config" / "cudamgr" / "config.yaml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        paths.append(Path(xdg_config) / "cudamgr" / "config.yaml")

    return paths


def load_config(config_path: Path | str | None = None) -> CudaMgrConfig:
    """Load configuration from file, then apply environment overrides.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file is missing, not YAML, or invalid
    """
    config: CudaMgrConfig | None = None

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config = _load_config_file(path)
    else:
        for path in get_config_paths():
            if path.exists():
                config = _load_config_file(path)
                break

    if config is None:
        config = CudaMgrConfig()

    return _apply_env_overrides(config)


def _load_config_file(path: Path) -> CudaMgrConfig:
    """Load configuration from a specific file."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if data is None:
        return CudaMgrConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    try:
        return CudaMgrConfig.model_validate(data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e


def _apply_env_overrides(config: CudaMgrConfig) -> CudaMgrConfig:
    root = os.environ.get(ENV_ROOT)
    manifest = os.environ.get(ENV_MANIFEST)
    if not root and not manifest:
        return config

    paths = config.paths.model_copy(
        update={
            "root": root or config.paths.root,
            "manifest": manifest or config.paths.manifest,
        }
    )
    return config.model_copy(update={"paths": paths})


# Global config instance
_config: CudaMgrConfig | None = None


def get_config() -> CudaMgrConfig:
    """Get the global configuration instance.

    Loads from file on first call.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: CudaMgrConfig | None) -> None:
    """Set (or reset with None) the global configuration instance."""
    global _config
    _config = config
