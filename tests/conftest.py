"""Shared test fixtures for cudamgr tests."""

import hashlib
import io
import logging
import tarfile
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from cudamgr.core.activation import SymlinkActivation
from cudamgr.core.manager import ToolkitManager
from cudamgr.knowledge.releases import LINUX_EXPECTED_FILES, nvcc_release_pattern, nvcc_self_check
from cudamgr.models.environment import EnvironmentReport
from cudamgr.models.package import PackageMetadata
from cudamgr.models.system import OsKind, SystemReport
from cudamgr.registry.static import StaticRegistry
from cudamgr.utils.config import (
    CudaMgrConfig,
    DownloadConfig,
    LoggingConfig,
    PathsConfig,
    ValidationConfig,
    set_config,
)


GIB = 1024**3


def nvcc_script(release: str, exit_code: int = 0) -> bytes:
    """A fake ``nvcc`` that prints the release banner."""
    return (
        "#!/bin/sh\n"
        'echo "nvcc: NVIDIA (R) Cuda compiler driver"\n'
        f'echo "Cuda compilation tools, release {release}, V{release}.99"\n'
        f"exit {exit_code}\n"
    ).encode()


def toolkit_files(version: str, nvcc_exit: int = 0, omit: tuple[str, ...] = ()) -> dict[str, tuple[bytes, int]]:
    """Files of a minimal toolkit tree: name -> (content, mode)."""
    release = ".".join(version.split(".")[:2])
    files = {
        "bin/nvcc": (nvcc_script(release, nvcc_exit), 0o755),
        "include/cuda_runtime.h": (b"/* cuda runtime */\n", 0o644),
        "lib64/libcudart.so": (b"\x7fELF fake\n", 0o644),
    }
    return {name: data for name, data in files.items() if name not in omit}


def write_tar(dest: Path, files: dict[str, tuple[bytes, int]], prefix: str = "") -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(dest, "w:gz") as tar:
        for name, (content, mode) in files.items():
            info = tarfile.TarInfo(f"{prefix}{name}")
            info.size = len(content)
            info.mode = mode
            tar.addfile(info, io.BytesIO(content))
    return dest


def write_zip(dest: Path, files: dict[str, tuple[bytes, int]], prefix: str = "") -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(dest, "w") as zf:
        for name, (content, mode) in files.items():
            info = zipfile.ZipInfo(f"{prefix}{name}")
            info.external_attr = (0o100000 | mode) << 16
            zf.writestr(info, content)
    return dest


def sha256_of(path: Path) -> str:
    return "sha256:" + hashlib.sha256(path.read_bytes()).hexdigest()


@pytest.fixture(autouse=True)
def reset_global_config():
    """Keep the global configuration from leaking between tests."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI callback installs on the package logger."""
    yield
    logger = logging.getLogger("cudamgr")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.propagate = True


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """State root for the manager under test."""
    return tmp_path / "cudamgr"


@pytest.fixture
def config(root: Path) -> CudaMgrConfig:
    """Configuration pointing at the temporary root with fast retries."""
    return CudaMgrConfig(
        paths=PathsConfig(root=str(root)),
        downloads=DownloadConfig(max_attempts=3, retry_delay=0, chunk_size=4096),
        validation=ValidationConfig(smoke_timeout=10),
        logging=LoggingConfig(file=False),
    )


@pytest.fixture
def linux_report() -> SystemReport:
    """A Linux machine with a recent GPU, driver and gcc."""
    return SystemReport(
        gpu_present=True,
        gpu_name="RTX 4090",
        driver_version="550.54.14",
        compiler_version="11.4.0",
        compiler_name="gcc",
        os=OsKind.LINUX,
        distro="Ubuntu 22.04.4 LTS",
        free_disk_bytes=200 * GIB,
    )


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Factory building a toolkit tarball for a version."""

    def _make(version: str, nvcc_exit: int = 0, omit: tuple[str, ...] = (), name: str | None = None) -> Path:
        dest = tmp_path / "artifacts" / (name or f"cuda-{version}.tar.gz")
        return write_tar(dest, toolkit_files(version, nvcc_exit, omit), prefix=f"cuda-{version}/")

    return _make


@pytest.fixture
def make_package(make_archive: Callable[..., Path]) -> Callable[..., PackageMetadata]:
    """Factory building a package backed by a local archive with a correct checksum."""

    def _make(version: str, checksum: str | None = "auto", **overrides) -> PackageMetadata:
        archive = make_archive(
            version,
            nvcc_exit=overrides.pop("nvcc_exit", 0),
            omit=overrides.pop("omit", ()),
        )
        fields = {
            "version": version,
            "artifact_url": archive.as_uri(),
            "checksum": sha256_of(archive) if checksum == "auto" else checksum,
            "min_driver": "525.60.13",
            "min_compiler": "6.0",
            "size_estimate": 4 * GIB,
            "os": OsKind.LINUX,
            "expected_files": LINUX_EXPECTED_FILES,
            "self_check": nvcc_self_check(OsKind.LINUX),
            "self_check_pattern": nvcc_release_pattern(version),
        }
        fields.update(overrides)
        return PackageMetadata(**fields)

    return _make


@pytest.fixture
def make_manager(config: CudaMgrConfig, root: Path, linux_report: SystemReport) -> Callable[..., ToolkitManager]:
    """Factory building a manager over a fixed registry and system report."""

    def _make(packages: list[PackageMetadata], report: SystemReport | None = None, **kwargs) -> ToolkitManager:
        report = report or linux_report
        kwargs.setdefault("environment_scanner", EnvironmentReport)
        return ToolkitManager(
            config=config,
            registry=StaticRegistry(packages),
            probe=lambda: report,
            activation=SymlinkActivation(root),
            os_kind=OsKind.LINUX,
            **kwargs,
        )

    return _make


@pytest.fixture
def write_archive() -> Callable[..., Path]:
    """Write a tar.gz, or a zip when the destination ends in .zip."""

    def _write(dest: Path, files: dict[str, tuple[bytes, int]], prefix: str = "") -> Path:
        if dest.suffix == ".zip":
            return write_zip(dest, files, prefix)
        return write_tar(dest, files, prefix)

    return _write


@pytest.fixture
def toolkit_tree() -> Callable[..., dict[str, tuple[bytes, int]]]:
    """Factory for the files of a minimal toolkit tree."""
    return toolkit_files
