"""Exception taxonomy for TLEDelta.

Only :class:`InvalidRange` ever reaches a caller of the engine. The other
exceptions are raised close to the failing item (one file, one 3-line
block) and are caught by the layer above, which records a
:class:`~tledelta.models.Diagnostic` and moves on.
"""
from __future__ import annotations

from datetime import date
from typing import Optional


class InvalidRange(ValueError):
    """Date bounds are unparseable or inverted."""


class MalformedRecord(ValueError):
    """A 3-line block failed structural validation or field decoding."""

    def __init__(self, message: str, norad_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.norad_id = norad_id


class SnapshotFetchFailure(Exception):
    """A snapshot file (or manifest) could not be retrieved."""

    def __init__(
        self,
        message: str,
        day: Optional[date] = None,
        filename: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.day = day
        self.filename = filename


class SnapshotNotFound(SnapshotFetchFailure):
    """The requested file does not exist at the source."""


class SnapshotTimeout(SnapshotFetchFailure):
    """The fetch did not complete within the configured timeout."""
