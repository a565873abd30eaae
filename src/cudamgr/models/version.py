"""Toolkit version identifiers."""

from __future__ import annotations

import functools

from typing import Any

from pydantic import BaseModel, Field, model_serializer, model_validator

from cudamgr.utils.errors import InvalidVersionError

LATEST = "latest"
MAX_COMPONENTS = 4


@functools.total_ordering
class VersionId(BaseModel):
    """Normalized, ordered version identifier (e.g. ``12.4``).

    Versions have between one and four numeric components. Parsing pads to
    ``major.minor`` and drops trailing zero components past the minor, so
    ``"12"``, ``"12.0"`` and ``"12.0.0"`` are the same version.

    Example:
        v = VersionId.parse("11.8")
        assert v < VersionId.parse("12.0")
        assert str(VersionId.parse("11.08")) == "11.8"
    """

    model_config = {"frozen": True}

    parts: tuple[int, ...] = Field(description="Normalized numeric components")

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        # Accept plain strings wherever a VersionId field is declared
        if isinstance(data, int) and not isinstance(data, bool):
            data = str(data)
        if isinstance(data, str):
            try:
                return {"parts": cls.parse(data).parts}
            except InvalidVersionError as e:
                raise ValueError(e.message) from e
        return data

    @model_serializer
    def _to_string(self) -> str:
        return str(self)

    @classmethod
    def parse(cls, value: "str | VersionId") -> "VersionId":
        """Parse and normalize a version string.

        Raises:
            InvalidVersionError: If the string is empty or malformed
        """
        if isinstance(value, VersionId):
            return value
        if not isinstance(value, str):
            raise InvalidVersionError(repr(value), "expected a string")

        text = value.strip()
        if not text:
            raise InvalidVersionError(value, "version cannot be empty")

        components = text.split(".")
        if len(components) > MAX_COMPONENTS:
            raise InvalidVersionError(value, f"at most {MAX_COMPONENTS} components are allowed")

        parts: list[int] = []
        for component in components:
            if not component:
                raise InvalidVersionError(value, "empty component")
            if not component.isascii() or not component.isdigit():
                raise InvalidVersionError(value, f"component '{component}' is not numeric")
            parts.append(int(component))

        while len(parts) < 2:
            parts.append(0)
        while len(parts) > 2 and parts[-1] == 0:
            parts.pop()

        return cls(parts=tuple(parts))

    @property
    def major(self) -> int:
        return self.parts[0]

    @property
    def minor(self) -> int:
        return self.parts[1]

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)

    def __repr__(self) -> str:
        return f"VersionId('{self}')"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VersionId):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionId):
            return NotImplemented
        return self.parts == other.parts

    def __hash__(self) -> int:
        return hash(self.parts)

    def _key(self) -> tuple[int, ...]:
        return self.parts + (0,) * (MAX_COMPONENTS - len(self.parts))


def is_latest(value: str) -> bool:
    """Check whether a request names the ``latest`` keyword."""
    return value.strip().lower() == LATEST
