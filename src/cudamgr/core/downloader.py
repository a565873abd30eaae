"""Artifact download with streaming checksum verification."""

from __future__ import annotations

import errno
import threading
from pathlib import Path
from typing import Callable
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import httpx
from pydantic import BaseModel, Field

from cudamgr.models.package import PackageMetadata
from cudamgr.models.version import VersionId
from cudamgr.utils.config import DownloadConfig
from cudamgr.utils.errors import (
    DiskFullError,
    DownloadCancelledError,
    DownloadError,
    IntegrityError,
    NetworkFailureError,
    RetriesExhaustedError,
    retry,
)
from cudamgr.utils.hashing import DEFAULT_CHECKSUM_ALGORITHM, digests_match, new_hasher
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int, "int | None"], None]

# HTTP statuses worth retrying; other 4xx responses are permanent
RETRYABLE_STATUS = {408, 429}


class CancelToken:
    """Thread-safe cancellation flag checked between download chunks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class VerifiedArtifact(BaseModel):
    """A downloaded artifact sitting in the staging area."""

    model_config = {"frozen": True}

    path: Path = Field(description="Staged file")
    version: VersionId = Field(description="Toolkit version the artifact belongs to")
    checksum: str = Field(description="Checksum of the staged bytes as 'algorithm:hexdigest'")
    size_bytes: int = Field(ge=0, description="Size of the staged file")
    verified: bool = Field(description="Checksum matched a published value")


class PackageDownloader:
    """Fetches package artifacts into the staging directory.

    Bytes are hashed while they stream, so verification costs no extra pass.
    Transient failures (transport errors, HTTP 5xx/408/429) are retried with
    exponential backoff; checksum mismatches and other HTTP errors are not.
    A failed, cancelled or mismatched download never leaves a partial file
    behind.

    Example:
        downloader = PackageDownloader(paths.staging, config.downloads)
        artifact = downloader.fetch(package, on_progress=lambda done, total: ...)
    """

    def __init__(
        self,
        staging_dir: Path | str,
        config: DownloadConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            staging_dir: Directory receiving in-progress downloads
            config: Download settings (attempts, backoff, timeout, proxy)
            transport: Custom httpx transport, e.g. ``httpx.MockTransport`` in tests
        """
        self._staging_dir = Path(staging_dir)
        self._config = config or DownloadConfig()
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Create an HTTP client."""
        transport = self._transport or httpx.HTTPTransport(proxy=self._config.proxy)
        return httpx.Client(
            timeout=self._config.timeout,
            transport=transport,
            follow_redirects=True,
        )

    def staging_path(self, package: PackageMetadata) -> Path:
        """Staging file name for a package's artifact."""
        name = Path(urlparse(package.artifact_url).path).name or "artifact"
        return self._staging_dir / f"{package.version}-{unquote(name)}.part"

    def fetch(
        self,
        package: PackageMetadata,
        dest: Path | str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> VerifiedArtifact:
        """Download and verify a package artifact.

        Args:
            package: Package to download
            dest: Staging file (defaults to ``staging_path(package)``)
            on_progress: Called with (downloaded bytes, total bytes or None)
            cancel: Token checked between chunks

        Returns:
            The verified artifact

        Raises:
            IntegrityError: Checksum missing (when required) or mismatched
            RetriesExhaustedError: Transient failures on every attempt
            DownloadCancelledError: The cancel token was set
            DownloadError: Permanent HTTP error or missing local source
        """
        url = package.artifact_url
        if package.checksum is None and self._config.require_checksum:
            raise IntegrityError(
                f"No checksum is published for CUDA {package.version}; "
                "add one to the manifest or set downloads.require_checksum to false"
            )

        dest = Path(dest) if dest is not None else self.staging_path(package)
        dest.parent.mkdir(parents=True, exist_ok=True)
        algorithm = package.checksum_algorithm or DEFAULT_CHECKSUM_ALGORITHM

        attempt = retry(
            max_attempts=self._config.max_attempts,
            delay=self._config.retry_delay,
            backoff=self._config.retry_backoff,
            exceptions=(NetworkFailureError,),
            on_retry=lambda n, e: logger.warning("Download attempt %d of %s failed: %s", n, url, e.message),
        )(self._fetch_once)

        logger.info("Downloading CUDA %s from %s", package.version, url)
        try:
            digest, size = attempt(url, dest, algorithm, on_progress, cancel)
        except NetworkFailureError as e:
            raise RetriesExhaustedError(url, self._config.max_attempts) from e

        actual = f"{algorithm}:{digest}"
        if package.checksum_digest is not None and not digests_match(package.checksum_digest, digest):
            dest.unlink(missing_ok=True)
            raise IntegrityError(
                f"Checksum mismatch for CUDA {package.version}",
                expected=package.checksum,
                actual=actual,
            )
        if package.checksum is None:
            logger.warning("CUDA %s has no published checksum; artifact is unverified", package.version)

        logger.info("Downloaded %s (%d bytes)", dest.name, size)
        return VerifiedArtifact(
            path=dest,
            version=package.version,
            checksum=actual,
            size_bytes=size,
            verified=package.checksum is not None,
        )

    def _fetch_once(
        self,
        url: str,
        dest: Path,
        algorithm: str,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
    ) -> tuple[str, int]:
        """One download attempt; removes the partial file on any failure."""
        try:
            local = _local_source(url)
            if local is not None:
                return self._copy_local(url, local, dest, algorithm, on_progress, cancel)
            return self._stream_http(url, dest, algorithm, on_progress, cancel)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise

    def _stream_http(
        self,
        url: str,
        dest: Path,
        algorithm: str,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
    ) -> tuple[str, int]:
        hasher = new_hasher(algorithm)
        downloaded = 0
        try:
            with self._get_client() as client, client.stream("GET", url) as response:
                status = response.status_code
                if status >= 500 or status in RETRYABLE_STATUS:
                    raise NetworkFailureError(f"HTTP {status} from {url}", url)
                if status >= 400:
                    raise DownloadError(
                        f"HTTP {status} from {url}",
                        code="HTTP_ERROR",
                        details={"url": url, "status": status},
                    )

                length = response.headers.get("content-length")
                total = int(length) if length and length.isdigit() else None

                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes(self._config.chunk_size):
                        _check_cancel(cancel, url)
                        hasher.update(chunk)
                        _write(f, chunk, dest)
                        downloaded += len(chunk)
                        if on_progress is not None:
                            on_progress(downloaded, total)
        except httpx.TooManyRedirects as e:
            raise DownloadError(
                f"Too many redirects fetching {url}",
                code="TOO_MANY_REDIRECTS",
                details={"url": url},
            ) from e
        except (httpx.TransportError, httpx.DecodingError) as e:
            raise NetworkFailureError(f"Network error fetching {url}: {e}", url) from e
        except httpx.RequestError as e:
            raise DownloadError(f"Request for {url} failed: {e}", code="REQUEST_FAILED", details={"url": url}) from e

        return hasher.hexdigest(), downloaded

    def _copy_local(
        self,
        url: str,
        source: Path,
        dest: Path,
        algorithm: str,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
    ) -> tuple[str, int]:
        if not source.is_file():
            raise DownloadError(
                f"Artifact not found: {source}",
                code="SOURCE_NOT_FOUND",
                details={"url": url},
            )

        hasher = new_hasher(algorithm)
        total = source.stat().st_size
        copied = 0
        with open(source, "rb") as src, open(dest, "wb") as f:
            while chunk := src.read(self._config.chunk_size):
                _check_cancel(cancel, url)
                hasher.update(chunk)
                _write(f, chunk, dest)
                copied += len(chunk)
                if on_progress is not None:
                    on_progress(copied, total)
        return hasher.hexdigest(), copied


def _local_source(url: str) -> Path | None:
    """Map ``file://`` URLs and plain paths to a local file, else None."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    # No scheme, or a Windows drive letter parsed as one
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return Path(url)
    return None


def _check_cancel(cancel: CancelToken | None, url: str) -> None:
    if cancel is not None and cancel.cancelled:
        raise DownloadCancelledError(url)


def _write(f, chunk: bytes, dest: Path) -> None:
    try:
        f.write(chunk)
    except OSError as e:
        if e.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
            raise DiskFullError(str(dest)) from e
        raise
