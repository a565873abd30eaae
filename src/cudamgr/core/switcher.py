"""Atomic switching of the active toolkit version."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from cudamgr.core.activation import Activation
from cudamgr.core.store import StateStore
from cudamgr.models.outcomes import SwitchStatus
from cudamgr.models.state import InstalledVersion
from cudamgr.models.version import VersionId
from cudamgr.utils.errors import InstallMissingError, NotValidatedError, SwapFailedError, SwitchError
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class SwitchState(str, Enum):
    """Lifecycle of one switch."""

    IDLE = "idle"
    SWITCHING = "switching"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class SwitchTransition(BaseModel):
    """Result of a completed switch."""

    model_config = {"frozen": True}

    status: SwitchStatus
    state: SwitchState
    previous: VersionId | None = Field(default=None, description="Pointer before the switch")
    current: VersionId | None = Field(default=None, description="Pointer after the switch")


class VersionSwitcher:
    """Moves the active-version pointer and the live activation together.

    A switch stages the new activation, commits it with one atomic rename,
    and then persists the pointer. If staging fails nothing live changed;
    if persisting the pointer fails the live activation is reverted, so the
    pointer and the activation never disagree after an error.

    Example:
        switcher = VersionSwitcher(store, SymlinkActivation(root))
        transition = switcher.transition(record)
    """

    def __init__(self, store: StateStore, activation: Activation) -> None:
        self._store = store
        self._activation = activation
        self._state = SwitchState.IDLE

    @property
    def state(self) -> SwitchState:
        return self._state

    @property
    def activation(self) -> Activation:
        return self._activation

    def transition(self, new: InstalledVersion | None) -> SwitchTransition:
        """Make ``new`` the active version, or deactivate with None.

        Raises:
            NotValidatedError: ``new`` has not passed validation
            InstallMissingError: ``new``'s install directory is gone (nothing changed)
            SwitchError: Staging the activation failed (nothing changed)
            SwapFailedError: The commit or the pointer write failed
        """
        if new is not None and not new.validated:
            raise NotValidatedError(str(new.version))
        if new is not None and not Path(new.install_path).is_dir():
            raise InstallMissingError(str(new.version), new.install_path)

        self._state = SwitchState.IDLE
        old = self._store.active()
        live = self._activation.query()

        if new is None:
            return self._deactivate(old, live)

        target = Path(new.install_path)
        if old == new.version and live is not None and _same_path(live, target):
            logger.info("CUDA %s is already active", new.version)
            return SwitchTransition(
                status=SwitchStatus.NOOP,
                state=self._state,
                previous=old,
                current=old,
            )

        self._state = SwitchState.SWITCHING
        logger.info("Switching CUDA %s -> %s", old or "none", new.version)

        try:
            staged = self._activation.stage(target)
        except OSError as e:
            self._state = SwitchState.ROLLED_BACK
            raise SwitchError(
                f"Failed to stage activation for CUDA {new.version}: {e}",
                code="STAGE_FAILED",
                details={"version": str(new.version)},
            ) from e

        try:
            self._activation.commit(staged)
        except OSError as e:
            self._discard(staged)
            self._state = SwitchState.ROLLED_BACK
            raise SwapFailedError(
                f"Failed to activate CUDA {new.version}: {e}",
                pointer=str(self._activation.location),
            ) from e

        try:
            self._store.set_active(new.version)
        except OSError as e:
            self._revert(live)
            self._state = SwitchState.ROLLED_BACK
            raise SwapFailedError(
                f"Activated CUDA {new.version} but could not record it: {e}",
                pointer=str(self._store.paths.pointer_file),
            ) from e

        self._state = SwitchState.COMMITTED
        return SwitchTransition(
            status=SwitchStatus.SWITCHED,
            state=self._state,
            previous=old,
            current=new.version,
        )

    def _deactivate(self, old: VersionId | None, live: Path | None) -> SwitchTransition:
        if old is None and live is None:
            return SwitchTransition(status=SwitchStatus.NOOP, state=self._state)

        self._state = SwitchState.SWITCHING
        try:
            self._activation.clear()
        except OSError as e:
            self._state = SwitchState.ROLLED_BACK
            raise SwitchError(f"Failed to deactivate CUDA {old}: {e}", code="DEACTIVATE_FAILED") from e

        try:
            self._store.set_active(None)
        except OSError as e:
            self._revert(live)
            self._state = SwitchState.ROLLED_BACK
            raise SwapFailedError(
                f"Deactivated CUDA {old} but could not record it: {e}",
                pointer=str(self._store.paths.pointer_file),
            ) from e

        logger.info("Deactivated CUDA %s", old)
        self._state = SwitchState.COMMITTED
        return SwitchTransition(status=SwitchStatus.DEACTIVATED, state=self._state, previous=old)

    def _discard(self, staged: Path) -> None:
        try:
            self._activation.discard(staged)
        except OSError as e:
            logger.warning("Could not remove staged activation %s: %s", staged, e)

    def _revert(self, live: Path | None) -> None:
        try:
            self._activation.apply(live)
        except OSError as e:
            logger.error("Could not restore activation %s: %s", self._activation.location, e)


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))
