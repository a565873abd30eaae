"""Persistent record of installed versions and the active pointer."""

from __future__ import annotations

import json

from pydantic import ValidationError as PydanticValidationError

from cudamgr.models.state import InstalledVersion, StateFile
from cudamgr.models.version import VersionId
from cudamgr.utils.config import ManagerPaths
from cudamgr.utils.errors import InvalidVersionError, StateCorruptedError
from cudamgr.utils.fs import atomic_write_text
from cudamgr.utils.logging import get_logger

logger = get_logger(__name__)


class StateStore:
    """Version-keyed record store plus the active-version pointer.

    Both live under ``<root>/state/`` and are replaced atomically on every
    write. Reads do not need the operation lock: a reader sees either the
    state before or after a concurrent write.

    Example:
        store = StateStore(ManagerPaths("~/.cudamgr"))
        store.add(InstalledVersion(version="12.4", install_path="...", validated=True))
        store.set_active(VersionId.parse("12.4"))
    """

    def __init__(self, paths: ManagerPaths) -> None:
        self._paths = paths

    @property
    def paths(self) -> ManagerPaths:
        return self._paths

    # Installed records

    def load(self) -> StateFile:
        """Read the record store.

        Raises:
            StateCorruptedError: If the file exists but cannot be parsed
        """
        path = self._paths.records_file
        if not path.exists():
            return StateFile()
        try:
            return StateFile.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, PydanticValidationError, UnicodeDecodeError) as e:
            raise StateCorruptedError(str(path), str(e)) from e

    def _save(self, state: StateFile) -> None:
        atomic_write_text(self._paths.records_file, state.model_dump_json(indent=2) + "\n")

    def installed(self) -> list[InstalledVersion]:
        """All records, sorted by version."""
        return sorted(self.load().installed.values(), key=lambda r: r.version)

    def get(self, version: VersionId) -> InstalledVersion | None:
        return self.load().installed.get(str(version))

    def add(self, record: InstalledVersion) -> None:
        """Insert or replace the record for ``record.version``."""
        state = self.load()
        state.installed[str(record.version)] = record
        self._save(state)
        logger.debug("Recorded CUDA %s at %s", record.version, record.install_path)

    def remove(self, version: VersionId) -> InstalledVersion | None:
        """Delete a record, returning it (None if absent)."""
        state = self.load()
        record = state.installed.pop(str(version), None)
        if record is not None:
            self._save(state)
            logger.debug("Removed record for CUDA %s", version)
        return record

    # Active pointer

    def active(self) -> VersionId | None:
        """Read the active-version pointer.

        Raises:
            StateCorruptedError: If the pointer does not name a valid version
        """
        path = self._paths.pointer_file
        if not path.exists():
            return None
        text = path.read_text(encoding="utf-8").strip()
        if not text:
            return None
        try:
            return VersionId.parse(text)
        except InvalidVersionError as e:
            raise StateCorruptedError(str(path), e.message) from e

    def set_active(self, version: VersionId | None) -> None:
        """Persist (or clear, with None) the active-version pointer."""
        path = self._paths.pointer_file
        if version is None:
            path.unlink(missing_ok=True)
            logger.debug("Cleared active pointer")
            return
        atomic_write_text(path, f"{version}\n")
        logger.debug("Active pointer set to %s", version)
