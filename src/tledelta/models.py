"""Result types produced by the change-detection engine.

Everything the engine hands back is one of these dataclasses: a
:class:`ComparisonResult` envelope holding the per-satellite
:class:`SatelliteHistory` entries that survived change detection, plus a
list of typed :class:`Diagnostic` records for every file or block that had
to be skipped along the way.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .classifier import SatelliteType
    from .tle_parser import TLERecord


class DiagnosticKind(Enum):
    """Kinds of non-fatal failure collected during a comparison run."""
    NOT_FOUND = "not_found"
    FETCH_FAILED = "fetch_failed"
    TIMEOUT = "timeout"
    BAD_FILENAME = "bad_filename"
    BAD_MANIFEST = "bad_manifest"
    MALFORMED_RECORD = "malformed_record"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Diagnostic:
    """A recovered failure, attributed to a date, file and/or satellite."""
    kind: DiagnosticKind
    message: str
    day: Optional[date] = None
    filename: Optional[str] = None
    norad_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "date": self.day.isoformat() if self.day else None,
            "filename": self.filename,
            "noradId": self.norad_id,
        }


@dataclass(frozen=True)
class UpdateEvent:
    """A TLE record promoted to a genuine element-set change.

    Attributes:
        epoch_time: Epoch of the new element set (UTC).
        line1: TLE line 1 as published.
        line2: TLE line 2 as published.
        source_filename: Snapshot file that first carried the element set.
        captured_at: Capture time of that snapshot, if known.
    """
    epoch_time: datetime
    line1: str
    line2: str
    source_filename: str
    captured_at: Optional[datetime] = None

    @property
    def date(self) -> str:
        """Epoch calendar date, ``YYYY-MM-DD``."""
        return self.epoch_time.date().isoformat()

    @property
    def time(self) -> str:
        """Epoch time of day, ``HH:MM:SS``."""
        return self.epoch_time.strftime("%H:%M:%S")

    @property
    def hour(self) -> int:
        return self.epoch_time.hour

    def to_dict(self) -> dict:
        return {
            "epochTime": self.epoch_time.isoformat(),
            "line1": self.line1,
            "line2": self.line2,
            "date": self.date,
            "time": self.time,
            "sourceFilename": self.source_filename,
        }


@dataclass
class SatelliteHistory:
    """Change timeline and latest state of one satellite.

    Attributes:
        norad_id: NORAD catalog number.
        name: Name taken from the most recent record.
        type: Heuristic category from the name.
        updates: Chronological genuine changes, first-seen state included.
        latest: Highest-epoch record seen in the range.
    """
    norad_id: str
    name: str
    type: SatelliteType
    updates: list[UpdateEvent]
    latest: TLERecord

    @property
    def update_count(self) -> int:
        return len(self.updates)

    @property
    def last_updated(self) -> datetime:
        return self.updates[-1].epoch_time

    @property
    def epoch(self) -> str:
        return self.updates[-1].date

    @property
    def inclination(self) -> float:
        return self.latest.elements.inclination

    @property
    def eccentricity(self) -> float:
        return self.latest.elements.eccentricity

    @property
    def mean_motion(self) -> float:
        return self.latest.elements.mean_motion

    def hourly_activity(self) -> np.ndarray:
        """Number of updates per UTC hour of day (24 bins)."""
        hours = np.fromiter((u.hour for u in self.updates), dtype=int)
        return np.bincount(hours, minlength=24)

    def to_dict(self) -> dict:
        """Serialize to the camelCase wire format."""
        return {
            "noradId": self.norad_id,
            "name": self.name,
            "type": self.type.value,
            "updateCount": self.update_count,
            "lastUpdated": self.last_updated.isoformat(),
            "epoch": self.epoch,
            "inclination": self.inclination,
            "eccentricity": self.eccentricity,
            "meanMotion": self.mean_motion,
            "updates": [u.to_dict() for u in self.updates],
        }


@dataclass
class ComparisonResult:
    """Partial-success envelope returned by :func:`tledelta.engine.compare_range`.

    ``satellites`` is sorted by descending update count. ``diagnostics``
    lists every file, manifest or block that was skipped. An empty
    ``satellites`` list is a valid result, not an error.
    """
    satellites: list[SatelliteHistory] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    days: list[date] = field(default_factory=list)
    snapshots_loaded: int = 0
    records_parsed: int = 0
    cancelled: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.satellites

    def get(self, norad_id: str) -> Optional[SatelliteHistory]:
        """Look up one satellite's history by NORAD id."""
        for sat in self.satellites:
            if sat.norad_id == norad_id:
                return sat
        return None

    def diagnostics_of(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]

    def type_breakdown(self) -> dict[str, int]:
        """Satellite count per category, largest first."""
        counts: dict[str, int] = {}
        for sat in self.satellites:
            counts[sat.type.value] = counts.get(sat.type.value, 0) + 1
        return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))

    def summary(self) -> dict:
        """Aggregate statistics over the result set."""
        counts = np.array([s.update_count for s in self.satellites], dtype=int)
        return {
            "satellites": len(self.satellites),
            "total_updates": int(counts.sum()) if counts.size else 0,
            "mean_updates": float(counts.mean()) if counts.size else 0.0,
            "max_updates": int(counts.max()) if counts.size else 0,
            "min_updates": int(counts.min()) if counts.size else 0,
            "snapshots_loaded": self.snapshots_loaded,
            "records_parsed": self.records_parsed,
            "diagnostics": len(self.diagnostics),
            "cancelled": self.cancelled,
        }

    def to_dict(self) -> dict:
        return {
            "satellites": [s.to_dict() for s in self.satellites],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "days": [d.isoformat() for d in self.days],
            "snapshotsLoaded": self.snapshots_loaded,
            "recordsParsed": self.records_parsed,
            "cancelled": self.cancelled,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per satellite, in result order."""
        rows = [
            {
                "norad_id": s.norad_id,
                "name": s.name,
                "type": s.type.value,
                "update_count": s.update_count,
                "last_updated": s.last_updated,
                "epoch": s.epoch,
                "inclination_deg": s.inclination,
                "eccentricity": s.eccentricity,
                "mean_motion_rev_day": s.mean_motion,
                "altitude_km": s.latest.elements.altitude,
            }
            for s in self.satellites
        ]
        return pd.DataFrame(rows)

    def updates_dataframe(self) -> pd.DataFrame:
        """One row per update event across all satellites, sorted by epoch."""
        rows = [
            {
                "norad_id": s.norad_id,
                "name": s.name,
                "epoch": u.epoch_time,
                "date": u.date,
                "time": u.time,
                "source_filename": u.source_filename,
                "line1": u.line1,
                "line2": u.line2,
            }
            for s in self.satellites
            for u in s.updates
        ]
        if not rows:
            return pd.DataFrame()
        df = pd.DataFrame(rows)
        return df.sort_values(["epoch", "norad_id"]).reset_index(drop=True)
