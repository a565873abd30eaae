"""Error handling utilities for cudamgr."""

from __future__ import annotations

import functools
import time
from typing import TYPE_CHECKING, Any, Callable, TypeVar

if TYPE_CHECKING:
    from cudamgr.models.common import OperationError

T = TypeVar("T")


class CudaMgrError(Exception):
    """Base exception for cudamgr."""

    recoverable: bool = False
    requires_inspection: bool = False
    hint: str | None = None

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_operation_error(self) -> "OperationError":
        """Convert to OperationError model."""
        from cudamgr.models.common import OperationError

        return OperationError(
            code=self.code,
            message=self.message,
            details=self.details,
            recoverable=self.recoverable,
        )


class InvalidVersionError(CudaMgrError):
    """A version string could not be parsed."""

    def __init__(self, value: str, reason: str):
        super().__init__(
            f"Invalid version '{value}': {reason}",
            code="INVALID_VERSION",
            details={"value": value, "reason": reason},
        )


class ConfigurationError(CudaMgrError):
    """Configuration error."""

    def __init__(self, message: str, config_key: str | None = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, code="CONFIG_ERROR", details=details)


class StateCorruptedError(CudaMgrError):
    """A persisted state file could not be read back."""

    requires_inspection = True

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"State file {path} is unreadable: {reason}",
            code="STATE_CORRUPTED",
            details={"path": path},
        )


# Resolution


class ResolutionError(CudaMgrError):
    """A requested version could not be resolved to an installable package."""


class VersionNotFoundError(ResolutionError):
    """Version is not present in the registry (or not installed)."""

    def __init__(self, version: str, where: str = "registry"):
        super().__init__(
            f"CUDA {version} not found in {where}",
            code="VERSION_NOT_FOUND",
            details={"version": version, "where": where},
        )


class IncompatibleError(ResolutionError):
    """The system does not satisfy the package requirements."""

    recoverable = True
    hint = "Upgrade the driver or compiler, free disk space, or pick another version."

    def __init__(self, version: str, reason: str):
        super().__init__(
            f"CUDA {version} is not compatible with this system: {reason}",
            code="INCOMPATIBLE",
            details={"version": version, "reason": reason},
        )
        self.reason = reason


# Download


class DownloadError(CudaMgrError):
    """Fetching a package artifact failed."""


class NetworkFailureError(DownloadError):
    """A transient network failure."""

    recoverable = True
    hint = "Check your network connection and re-run the command."

    def __init__(self, message: str, url: str | None = None):
        details = {"url": url} if url else {}
        super().__init__(message, code="NETWORK_FAILURE", details=details)


class IntegrityError(DownloadError):
    """Downloaded bytes do not match the published checksum."""

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        details: dict[str, Any] = {}
        if expected:
            details["expected"] = expected
        if actual:
            details["actual"] = actual
        super().__init__(message, code="INTEGRITY_ERROR", details=details)


class RetriesExhaustedError(DownloadError):
    """All download attempts failed."""

    recoverable = True
    hint = "The download server may be unavailable; try again later."

    def __init__(self, url: str, attempts: int):
        super().__init__(
            f"Download of {url} failed after {attempts} attempts",
            code="RETRIES_EXHAUSTED",
            details={"url": url, "attempts": attempts},
        )


class DownloadCancelledError(DownloadError):
    """The download was cancelled by the user."""

    def __init__(self, url: str):
        super().__init__(f"Download of {url} was cancelled", code="CANCELLED", details={"url": url})


# Install


class InstallError(CudaMgrError):
    """Placing an artifact into its install directory failed."""


class AlreadyInstalledError(InstallError):
    """The version-scoped install directory already exists."""

    hint = "Uninstall the version first, or re-run with --force."

    def __init__(self, version: str, path: str | None = None):
        details = {"version": version}
        if path:
            details["path"] = path
        super().__init__(f"CUDA {version} is already installed", code="ALREADY_INSTALLED", details=details)


class DiskFullError(InstallError):
    """The filesystem ran out of space."""

    recoverable = True
    hint = "Free some disk space and re-run the command."

    def __init__(self, path: str):
        super().__init__(f"No space left while writing {path}", code="DISK_FULL", details={"path": path})


class UnpackFailedError(InstallError):
    """The artifact could not be unpacked."""

    def __init__(self, message: str, path: str | None = None):
        details = {"path": path} if path else {}
        super().__init__(message, code="UNPACK_FAILED", details=details)


# Validation


class ValidationError(CudaMgrError):
    """Post-install validation failed."""


class MissingFilesError(ValidationError):
    """Expected files are absent from the install tree."""

    def __init__(self, version: str, missing: list[str]):
        shown = ", ".join(missing[:5]) + ("..." if len(missing) > 5 else "")
        super().__init__(
            f"CUDA {version} install is missing {len(missing)} expected file(s): {shown}",
            code="MISSING_FILES",
            details={"version": version, "missing": missing},
        )
        self.missing = missing


class SmokeTestFailedError(ValidationError):
    """The self-check executable did not succeed."""

    def __init__(self, version: str, reason: str):
        super().__init__(
            f"Self-check for CUDA {version} failed: {reason}",
            code="SMOKE_TEST_FAILED",
            details={"version": version, "reason": reason},
        )


class SmokeTestTimeoutError(ValidationError):
    """The self-check executable did not finish in time."""

    def __init__(self, version: str, timeout: float):
        super().__init__(
            f"Self-check for CUDA {version} timed out after {timeout:g}s",
            code="SMOKE_TEST_TIMEOUT",
            details={"version": version, "timeout": timeout},
        )


# Switch


class SwitchError(CudaMgrError):
    """Changing the active version failed."""


class NotValidatedError(SwitchError):
    """The target version has not passed validation."""

    hint = "Run 'cudamgr verify <version>' or reinstall with --force."

    def __init__(self, version: str):
        super().__init__(
            f"CUDA {version} is installed but not validated",
            code="NOT_VALIDATED",
            details={"version": version},
        )


class InstallMissingError(SwitchError):
    """The recorded install directory no longer exists."""

    hint = "Reinstall with 'cudamgr install <version> --force' or remove it with 'cudamgr uninstall'."

    def __init__(self, version: str, install_path: str):
        super().__init__(
            f"Install directory for CUDA {version} is missing: {install_path}",
            code="INSTALL_MISSING",
            details={"version": version, "install_path": install_path},
        )


class LockBusyError(SwitchError):
    """Another mutating operation holds the lock."""

    recoverable = True
    hint = "Wait for the other cudamgr process to finish."

    def __init__(self, lock_path: str):
        super().__init__(
            "Another cudamgr operation is in progress",
            code="LOCK_BUSY",
            details={"lock": lock_path},
        )


class SwapFailedError(SwitchError):
    """The atomic pointer swap itself misbehaved."""

    requires_inspection = True

    def __init__(self, message: str, pointer: str | None = None):
        details = {"pointer": pointer} if pointer else {}
        super().__init__(message, code="SWAP_FAILED", details=details)


# Uninstall


class UninstallError(CudaMgrError):
    """Removing an installed version failed."""


class NotInstalledError(UninstallError):
    """The version is not installed."""

    def __init__(self, version: str):
        super().__init__(f"CUDA {version} is not installed", code="NOT_INSTALLED", details={"version": version})


class ActiveVersionError(UninstallError):
    """The operation would remove the active version."""

    hint = "Switch to another version first, or pass --deactivate."

    def __init__(self, version: str):
        super().__init__(
            f"CUDA {version} is the active version",
            code="VERSION_ACTIVE",
            details={"version": version},
        )


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to retry a function on failure.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Called with (attempt, exception) before each retry sleep

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        if on_retry is not None:
                            on_retry(attempt + 1, e)
                        time.sleep(current_delay)
                        current_delay *= backoff

            if last_exception:
                raise last_exception
            raise RuntimeError("Retry failed without exception")

        return wrapper

    return decorator
