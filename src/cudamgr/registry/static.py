"""In-memory registry and local manifest loading."""

from pathlib import Path
from typing import Any, Iterable

import yaml

from cudamgr.knowledge.releases import (
    expected_files_for,
    get_releases,
    nvcc_release_pattern,
    nvcc_self_check,
)
from cudamgr.models.package import PackageMetadata
from cudamgr.models.system import OsKind
from cudamgr.models.version import VersionId
from cudamgr.utils.errors import ConfigurationError
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class StaticRegistry:
    """Registry backed by a fixed list of package metadata.

    Later entries for the same version replace earlier ones, which is how a
    local manifest overrides the built-in table.
    """

    def __init__(self, packages: Iterable[PackageMetadata] = ()) -> None:
        self._packages: dict[VersionId, PackageMetadata] = {}
        for package in packages:
            self._packages[package.version] = package

    def get(self, version: VersionId) -> PackageMetadata | None:
        return self._packages.get(version)

    def all(self) -> list[PackageMetadata]:
        return [self._packages[v] for v in sorted(self._packages)]

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, version: object) -> bool:
        return version in self._packages


def load_manifest(path: Path | str, os_kind: OsKind | None = None) -> list[PackageMetadata]:
    """Load package metadata from a YAML manifest.

    The manifest is a mapping with a ``releases`` list; each entry carries the
    ``PackageMetadata`` fields. Entries without ``expected_files`` or
    ``self_check`` get the nvcc defaults for their OS.

    Args:
        path: Manifest file
        os_kind: Keep only entries for this OS (all entries if None)

    Raises:
        ConfigurationError: If the file cannot be read or an entry is invalid
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"Cannot read manifest {path}: {e}", config_key="paths.manifest") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in manifest {path}: {e}", config_key="paths.manifest") from e

    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("releases", []), list):
        raise ConfigurationError(
            f"Manifest {path} must be a mapping with a 'releases' list",
            config_key="paths.manifest",
        )

    packages = []
    for index, entry in enumerate(data.get("releases", [])):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Manifest {path}: release #{index} is not a mapping")
        try:
            package = _package_from_entry(entry)
        except ValueError as e:
            raise ConfigurationError(f"Manifest {path}: release #{index} is invalid: {e}") from e
        if os_kind is None or package.os == os_kind:
            packages.append(package)

    logger.debug("Loaded %d release(s) from manifest %s", len(packages), path)
    return packages


def _package_from_entry(entry: dict[str, Any]) -> PackageMetadata:
    package = PackageMetadata.model_validate(entry)
    updates: dict[str, Any] = {}
    if "expected_files" not in entry:
        updates["expected_files"] = expected_files_for(package.os)
    if "self_check" not in entry:
        updates["self_check"] = nvcc_self_check(package.os)
        updates["self_check_pattern"] = entry.get("self_check_pattern") or nvcc_release_pattern(str(package.version))
    return package.model_copy(update=updates) if updates else package


def load_registry(os_kind: OsKind, manifest_path: Path | str | None = None) -> StaticRegistry:
    """Build the registry for an OS: built-in releases overlaid by a manifest.

    Args:
        os_kind: Operating system to build the registry for
        manifest_path: Optional local YAML manifest

    Returns:
        Registry with one package per version
    """
    packages = get_releases(os_kind)
    if manifest_path is not None:
        packages = packages + load_manifest(manifest_path, os_kind)
    return StaticRegistry(packages)
