"""Core engine for cudamgr."""

from cudamgr.core.activation import Activation, ScriptActivation, SymlinkActivation, default_activation
from cudamgr.core.downloader import CancelToken, PackageDownloader, VerifiedArtifact
from cudamgr.core.installer import InstallDirHandle, ToolkitInstaller
from cudamgr.core.lock import OperationLock
from cudamgr.core.manager import ToolkitManager
from cudamgr.core.resolver import Resolution, VersionResolver
from cudamgr.core.store import StateStore
from cudamgr.core.switcher import SwitchState, SwitchTransition, VersionSwitcher
from cudamgr.core.transaction import Effect, EffectKind, InstallTransaction, rollback
from cudamgr.core.validator import InstallValidator, ValidationReport

__all__ = [
    # Engine
    "ToolkitManager",
    # Stages
    "VersionResolver",
    "Resolution",
    "PackageDownloader",
    "CancelToken",
    "VerifiedArtifact",
    "ToolkitInstaller",
    "InstallDirHandle",
    "InstallValidator",
    "ValidationReport",
    "VersionSwitcher",
    "SwitchState",
    "SwitchTransition",
    # Activation
    "Activation",
    "SymlinkActivation",
    "ScriptActivation",
    "default_activation",
    # State
    "StateStore",
    "OperationLock",
    "InstallTransaction",
    "Effect",
    "EffectKind",
    "rollback",
]
