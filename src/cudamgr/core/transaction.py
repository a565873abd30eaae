"""Install transactions and rollback."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from cudamgr.models.version import VersionId
from cudamgr.utils.logging import get_logger_with_context


class EffectKind(str, Enum):
    """Side effects an install can leave behind."""

    STAGING_FILE = "staging_file"
    INSTALL_DIR = "install_dir"
    REGISTRY_ENTRY = "registry_entry"
    DISPLACED_INSTALL = "displaced_install"
    POINTER = "pointer"


class Effect:
    """One committed side effect and the action that undoes it."""

    def __init__(self, kind: EffectKind, description: str, undo: Callable[[], None]) -> None:
        self.kind = kind
        self.description = description
        self.undo = undo
        self.undone = False

    def __repr__(self) -> str:
        return f"Effect({self.kind.value}, {self.description!r})"


class InstallTransaction:
    """Ordered log of the side effects of one in-flight operation.

    Each stage records what it changed right after the change succeeds.
    On failure, ``rollback()`` undoes the effects in reverse order; on
    success, ``commit()`` runs the finalizers (such as deleting the staged
    download) and forgets the log. Transactions live only in memory.

    Example:
        txn = InstallTransaction(version)
        try:
            path = fetch(...)
            txn.record(EffectKind.STAGING_FILE, str(path), lambda: path.unlink(missing_ok=True))
            ...
            txn.commit()
        except BaseException:
            txn.rollback()
            raise
    """

    def __init__(self, version: VersionId) -> None:
        self.version = version
        self.effects: list[Effect] = []
        self.finalizers: list[Callable[[], None]] = []
        self.committed = False
        self.rolled_back = False
        self._logger = get_logger_with_context(__name__, version=str(self.version))

    def record(self, kind: EffectKind, description: str, undo: Callable[[], None]) -> Effect:
        """Append a committed side effect."""
        effect = Effect(kind=kind, description=description, undo=undo)
        self.effects.append(effect)
        self._logger.debug("Recorded %s: %s", kind.value, description)
        return effect

    def on_commit(self, finalizer: Callable[[], None]) -> None:
        """Register cleanup to run once the transaction commits."""
        self.finalizers.append(finalizer)

    def commit(self) -> None:
        """Mark the transaction successful and run its finalizers.

        A failing finalizer only leaves garbage behind (for example a staged
        file), so it is logged and the remaining finalizers still run.
        """
        self.committed = True
        for finalizer in self.finalizers:
            try:
                finalizer()
            except Exception as e:
                self._logger.warning("Post-commit cleanup failed: %s", e)
        self.finalizers.clear()
        self.effects.clear()

    def rollback(self) -> list[Effect]:
        """Undo recorded effects in reverse order.

        Idempotent: effects already undone are skipped, so calling it twice
        is harmless. An undo that raises is logged and the walk continues
        with the next effect.

        Returns:
            Effects whose undo failed
        """
        if self.committed:
            return []

        failed: list[Effect] = []
        for effect in reversed(self.effects):
            if effect.undone:
                continue
            try:
                effect.undo()
            except Exception as e:
                self._logger.error("Rollback of %s (%s) failed: %s", effect.kind.value, effect.description, e)
                failed.append(effect)
            else:
                effect.undone = True
                self._logger.info("Rolled back %s: %s", effect.kind.value, effect.description)

        self.rolled_back = True
        return failed


def rollback(transaction: InstallTransaction) -> list[Effect]:
    """Roll back a transaction; see ``InstallTransaction.rollback``."""
    return transaction.rollback()
