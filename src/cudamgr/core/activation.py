"""Live activation of the selected toolkit version.

An activation is the filesystem object shells read to find the active
toolkit: a ``current`` symlink on POSIX systems, an activation script on
Windows where unprivileged users cannot create symlinks. Every change goes
through stage, then commit, where commit is a single ``os.replace``.
"""

from __future__ import annotations

import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from cudamgr.models.system import OsKind
from cudamgr.utils.fs import atomic_write_text

TARGET_MARKER = "rem cudamgr-target="


@runtime_checkable
class Activation(Protocol):
    """Capability to point shells at one install directory."""

    @property
    def location(self) -> Path:
        """Path of the live activation object."""
        ...

    def stage(self, target: Path) -> Path:
        """Prepare an activation for ``target`` without making it live."""
        ...

    def commit(self, staged: Path) -> None:
        """Atomically make a staged activation live."""
        ...

    def discard(self, staged: Path) -> None:
        """Remove a staged activation that will not be committed."""
        ...

    def apply(self, target: Path | None) -> None:
        """Stage and commit in one call; None clears the activation."""
        ...

    def clear(self) -> None:
        """Remove the live activation."""
        ...

    def query(self) -> Path | None:
        """Install directory the live activation points at, if any."""
        ...


class _StagedActivation(ABC):
    """Shared stage/commit plumbing."""

    def __init__(self, root: Path | str, name: str) -> None:
        self._root = Path(root)
        self._name = name

    @property
    def location(self) -> Path:
        return self._root / self._name

    def _staged_path(self) -> Path:
        return self._root / f".{self._name}.{uuid.uuid4().hex[:8]}.staged"

    def commit(self, staged: Path) -> None:
        os.replace(staged, self.location)

    def discard(self, staged: Path) -> None:
        if staged.is_symlink() or staged.exists():
            staged.unlink()

    def apply(self, target: Path | None) -> None:
        if target is None:
            self.clear()
            return
        staged = self.stage(target)
        try:
            self.commit(staged)
        except BaseException:
            self.discard(staged)
            raise

    def clear(self) -> None:
        if self.location.is_symlink() or self.location.exists():
            self.location.unlink()

    @abstractmethod
    def stage(self, target: Path) -> Path:
        """Create the staged activation object for ``target``."""

    @abstractmethod
    def query(self) -> Path | None:
        """Install directory the live activation points at, if any."""


class SymlinkActivation(_StagedActivation):
    """``<root>/current`` symlink pointing at the active install directory."""

    def __init__(self, root: Path | str, name: str = "current") -> None:
        super().__init__(root, name)

    def stage(self, target: Path) -> Path:
        staged = self._staged_path()
        self._root.mkdir(parents=True, exist_ok=True)
        os.symlink(target, staged, target_is_directory=True)
        return staged

    def query(self) -> Path | None:
        if not self.location.is_symlink():
            return None
        return Path(os.readlink(self.location))


class ScriptActivation(_StagedActivation):
    """``<root>/current.cmd`` script exporting the active install directory."""

    def __init__(self, root: Path | str, name: str = "current.cmd") -> None:
        super().__init__(root, name)

    @staticmethod
    def render(target: Path) -> str:
        return (
            "@echo off\n"
            f"{TARGET_MARKER}{target}\n"
            f'set "CUDA_PATH={target}"\n'
            f'set "CUDA_HOME={target}"\n'
            f'set "PATH={target}\\bin;%PATH%"\n'
        )

    def stage(self, target: Path) -> Path:
        staged = self._staged_path()
        atomic_write_text(staged, self.render(target))
        return staged

    def query(self) -> Path | None:
        if not self.location.is_file():
            return None
        for line in self.location.read_text(encoding="utf-8").splitlines():
            if line.startswith(TARGET_MARKER):
                return Path(line[len(TARGET_MARKER):].strip())
        return None


def default_activation(os_kind: OsKind, root: Path | str) -> Activation:
    """Pick the activation mechanism for an operating system."""
    if os_kind == OsKind.WINDOWS:
        return ScriptActivation(root)
    return SymlinkActivation(root)
