"""Utility functions for cudamgr."""

from cudamgr.utils.hashing import digests_match, hash_file, new_hasher, short_hash, split_checksum
from cudamgr.utils.logging import configure_logging, get_logger, get_logger_with_context, tail_log
from cudamgr.utils.errors import (
    ActiveVersionError,
    AlreadyInstalledError,
    ConfigurationError,
    CudaMgrError,
    DiskFullError,
    DownloadCancelledError,
    DownloadError,
    IncompatibleError,
    InstallError,
    InstallMissingError,
    IntegrityError,
    InvalidVersionError,
    LockBusyError,
    MissingFilesError,
    NetworkFailureError,
    NotInstalledError,
    NotValidatedError,
    ResolutionError,
    RetriesExhaustedError,
    SmokeTestFailedError,
    SmokeTestTimeoutError,
    StateCorruptedError,
    SwapFailedError,
    SwitchError,
    UninstallError,
    UnpackFailedError,
    ValidationError,
    VersionNotFoundError,
    retry,
)
from cudamgr.utils.config import (
    CudaMgrConfig,
    DownloadConfig,
    LoggingConfig,
    ManagerPaths,
    PathsConfig,
    ValidationConfig,
    get_config,
    load_config,
    set_config,
)

__all__ = [
    # Hashing
    "digests_match",
    "hash_file",
    "new_hasher",
    "short_hash",
    "split_checksum",
    # Logging
    "configure_logging",
    "get_logger",
    "get_logger_with_context",
    "tail_log",
    # Errors
    "CudaMgrError",
    "InvalidVersionError",
    "ConfigurationError",
    "StateCorruptedError",
    "ResolutionError",
    "IncompatibleError",
    "VersionNotFoundError",
    "DownloadError",
    "NetworkFailureError",
    "IntegrityError",
    "RetriesExhaustedError",
    "DownloadCancelledError",
    "InstallError",
    "AlreadyInstalledError",
    "DiskFullError",
    "UnpackFailedError",
    "ValidationError",
    "MissingFilesError",
    "SmokeTestFailedError",
    "SmokeTestTimeoutError",
    "SwitchError",
    "InstallMissingError",
    "NotValidatedError",
    "LockBusyError",
    "SwapFailedError",
    "UninstallError",
    "NotInstalledError",
    "ActiveVersionError",
    "retry",
    # Config
    "CudaMgrConfig",
    "DownloadConfig",
    "LoggingConfig",
    "ManagerPaths",
    "PathsConfig",
    "ValidationConfig",
    "get_config",
    "load_config",
    "set_config",
]
