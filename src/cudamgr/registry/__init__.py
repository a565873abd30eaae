"""Sources of installable toolkit versions."""

from cudamgr.registry.base import PackageRegistry
from cudamgr.registry.static import StaticRegistry, load_manifest, load_registry

__all__ = [
    "PackageRegistry",
    "StaticRegistry",
    "load_manifest",
    "load_registry",
]
