"""Base registry protocol."""

from typing import Protocol, runtime_checkable

from cudamgr.models.package import PackageMetadata
from cudamgr.models.version import VersionId


@runtime_checkable
class PackageRegistry(Protocol):
    """Protocol for sources of installable toolkit versions.

    A registry is a read-only view of package metadata for one operating
    system. It never touches the network; the resolver relies on that to
    reject unknown versions before any download starts.

    Example:
        class MyRegistry:
            def get(self, version: VersionId) -> PackageMetadata | None:
                ...

            def all(self) -> list[PackageMetadata]:
                ...
    """

    def get(self, version: VersionId) -> PackageMetadata | None:
        """Look up the package for a version.

        Args:
            version: Normalized version identifier

        Returns:
            The package metadata, or None if the version is unknown
        """
        ...

    def all(self) -> list[PackageMetadata]:
        """All packages, sorted by ascending version."""
        ...
