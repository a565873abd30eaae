"""Placement of artifacts into per-version install directories."""

from __future__ import annotations

import errno
import os
import shutil
import stat
import subprocess
import tarfile
import uuid
import zipfile
from pathlib import Path

from pydantic import BaseModel, Field

from cudamgr.core.downloader import VerifiedArtifact
from cudamgr.models.package import ArtifactKind, PackageMetadata
from cudamgr.models.version import VersionId
from cudamgr.utils.errors import AlreadyInstalledError, DiskFullError, UnpackFailedError
from cudamgr.utils.fs import dir_size
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)

TMP_PREFIX = ".tmp-"
TRASH_PREFIX = ".trash-"
STAGING_SUFFIX = ".part"

# Top-level directory names that belong to a toolkit tree itself
TOOLKIT_DIRS = {"bin", "include", "lib", "lib64", "nvvm", "targets"}

_DISK_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class InstallDirHandle(BaseModel):
    """A fully placed install directory."""

    model_config = {"frozen": True}

    version: VersionId = Field(description="Installed toolkit version")
    path: Path = Field(description="Canonical install directory")
    size_bytes: int = Field(default=0, ge=0, description="Size of the installed tree")


class ToolkitInstaller:
    """Unpacks artifacts into ``<installs>/<version>/``.

    The artifact is unpacked into a temporary sibling directory which is
    renamed into place in one step, so the canonical directory either does
    not exist or holds a complete tree. Any failure deletes the temporary
    directory.

    Example:
        installer = ToolkitInstaller(paths.installs)
        handle = installer.place(artifact, package)
    """

    def __init__(self, installs_dir: Path | str, runfile_timeout: float = 1800.0) -> None:
        self._installs_dir = Path(installs_dir)
        self._runfile_timeout = runfile_timeout

    @property
    def installs_dir(self) -> Path:
        return self._installs_dir

    def canonical_path(self, version: VersionId) -> Path:
        return self._installs_dir / str(version)

    def place(self, artifact: VerifiedArtifact, package: PackageMetadata) -> InstallDirHandle:
        """Unpack an artifact into its canonical install directory.

        Raises:
            AlreadyInstalledError: The canonical directory already exists
            DiskFullError: The filesystem ran out of space
            UnpackFailedError: The artifact could not be unpacked
        """
        version = package.version
        target = self.canonical_path(version)
        if target.exists() or target.is_symlink():
            raise AlreadyInstalledError(str(version), str(target))

        self._installs_dir.mkdir(parents=True, exist_ok=True)
        tmp = self._installs_dir / f"{TMP_PREFIX}{version}-{uuid.uuid4().hex[:8]}"
        tmp.mkdir()
        logger.info("Unpacking CUDA %s", version)

        try:
            if package.artifact_kind == ArtifactKind.RUNFILE:
                self._run_runfile(artifact.path, tmp, version)
            else:
                self._extract_archive(artifact.path, tmp)
                _strip_top_level(tmp, package.expected_files)
            os.rename(tmp, target)
        except BaseException as e:
            shutil.rmtree(tmp, ignore_errors=True)
            if isinstance(e, OSError) and e.errno in _DISK_FULL_ERRNOS:
                raise DiskFullError(str(tmp)) from e
            if isinstance(e, (OSError, tarfile.TarError, zipfile.BadZipFile)):
                raise UnpackFailedError(f"Failed to unpack {artifact.path.name}: {e}", str(artifact.path)) from e
            raise

        size = dir_size(target)
        logger.info("Installed CUDA %s into %s", version, target)
        return InstallDirHandle(version=version, path=target, size_bytes=size)

    def _extract_archive(self, archive: Path, dest: Path) -> None:
        if tarfile.is_tarfile(archive):
            with tarfile.open(archive) as tar:
                members = tar.getmembers()
                for member in members:
                    _check_tar_member(member, dest)
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(dest, members=members, filter="data")
                else:
                    tar.extractall(dest, members=members)
        elif zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for info in zf.infolist():
                    _check_member_path(info.filename, dest)
                    extracted = Path(zf.extract(info, dest))
                    # zipfile drops permissions; restore executable bits
                    mode = (info.external_attr >> 16) & 0o777
                    if mode and not info.is_dir():
                        os.chmod(extracted, mode)
        else:
            raise UnpackFailedError(f"Unsupported archive format: {archive.name}", str(archive))

    def _run_runfile(self, runfile: Path, dest: Path, version: VersionId) -> None:
        runfile.chmod(runfile.stat().st_mode | stat.S_IXUSR)
        cmd = [
            str(runfile),
            "--silent",
            "--toolkit",
            f"--toolkitpath={dest}",
            "--no-man-page",
        ]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._runfile_timeout)
        except subprocess.TimeoutExpired as e:
            raise UnpackFailedError(
                f"CUDA {version} installer did not finish within {self._runfile_timeout:g}s",
                str(runfile),
            ) from e
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip().splitlines()
            tail = output[-1] if output else f"exit code {result.returncode}"
            raise UnpackFailedError(f"CUDA {version} installer failed: {tail}", str(runfile))

    def displace(self, version: VersionId) -> Path:
        """Rename an install directory aside, returning its new location."""
        source = self.canonical_path(version)
        trash = self._installs_dir / f"{TRASH_PREFIX}{version}-{uuid.uuid4().hex[:8]}"
        os.rename(source, trash)
        logger.debug("Moved %s aside to %s", source, trash)
        return trash

    def restore(self, displaced: Path, version: VersionId) -> None:
        """Move a displaced install back to its canonical path."""
        target = self.canonical_path(version)
        if target.exists():
            shutil.rmtree(target)
        os.rename(displaced, target)
        logger.debug("Restored %s", target)

    def remove(self, version: VersionId) -> None:
        """Delete an install directory.

        The directory is first renamed aside, so an interrupted delete never
        leaves a half-removed tree at the canonical path.
        """
        if not self.canonical_path(version).exists():
            return
        trash = self.displace(version)
        shutil.rmtree(trash)
        logger.info("Removed CUDA %s", version)

    def sweep_stale(self, staging_dir: Path | None = None) -> list[Path]:
        """Delete leftovers from interrupted runs.

        Only safe while holding the operation lock.

        Returns:
            Paths that were removed
        """
        removed = []
        if self._installs_dir.is_dir():
            for entry in self._installs_dir.iterdir():
                if entry.name.startswith((TMP_PREFIX, TRASH_PREFIX)):
                    shutil.rmtree(entry, ignore_errors=True)
                    removed.append(entry)
        if staging_dir is not None and staging_dir.is_dir():
            for entry in staging_dir.glob(f"*{STAGING_SUFFIX}"):
                entry.unlink(missing_ok=True)
                removed.append(entry)
        for entry in removed:
            logger.info("Removed stale %s", entry)
        return removed


def _check_member_path(name: str, dest: Path) -> Path:
    """Reject archive members that would land outside ``dest``."""
    if not name or name.startswith(("/", "\\")) or (len(name) > 1 and name[1] == ":"):
        raise UnpackFailedError(f"Archive member has an absolute path: {name}")
    root = os.path.abspath(dest)
    target = os.path.abspath(os.path.join(root, name))
    if os.path.commonpath([root, target]) != root:
        raise UnpackFailedError(f"Archive member escapes the install directory: {name}")
    return Path(target)


def _check_tar_member(member: tarfile.TarInfo, dest: Path) -> None:
    _check_member_path(member.name, dest)
    if member.isdev():
        raise UnpackFailedError(f"Archive member is a device file: {member.name}")
    if member.issym():
        if os.path.isabs(member.linkname):
            raise UnpackFailedError(f"Archive link points outside the install directory: {member.name}")
        _check_member_path(os.path.join(os.path.dirname(member.name), member.linkname), dest)
    elif member.islnk():
        _check_member_path(member.linkname, dest)


def _strip_top_level(tmp: Path, expected_files: tuple[str, ...]) -> None:
    """Hoist the contents of a single wrapping directory (``cuda-12.4/...``)."""
    entries = list(tmp.iterdir())
    if len(entries) != 1 or not entries[0].is_dir() or entries[0].is_symlink():
        return
    inner = entries[0]
    if expected_files:
        if any((tmp / f).exists() for f in expected_files):
            return
    elif inner.name in TOOLKIT_DIRS:
        return

    hoisted = tmp / f".strip-{uuid.uuid4().hex[:8]}"
    os.rename(inner, hoisted)
    for child in hoisted.iterdir():
        os.rename(child, tmp / child.name)
    hoisted.rmdir()
