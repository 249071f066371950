"""TLE snapshot parsing, epoch decoding and orbital element extraction.

A snapshot is a plain-text blob of 3-line element sets (name, line 1,
line 2). Both data lines are fixed-width, so every field is described once
in a declarative table (:data:`LINE1_FIELDS`, :data:`LINE2_FIELDS`) and
decoded by the single generic :func:`decode_fields` routine.

Column layout (0-indexed, end exclusive)::

    1 25544U 98067A   24015.50000000  .00016717  00000-0  10270-3 0  9003
    ^ ^^^^^ ^^^^^^^^  ^^^^^^^^^^^^^^ ^^^^^^^^^^           ^^^^^^^^
    0 2-7   9-17      18-32          33-43                53-61

    2 25544  51.6400 208.5000 0007417  68.0000 292.1000 15.49560000400000
    ^ ^^^^^ ^^^^^^^^ ^^^^^^^^ ^^^^^^^ ^^^^^^^^ ^^^^^^^^ ^^^^^^^^^^^ ^^^^^
    0 2-7   8-16     17-25    26-33   34-42    43-51    52-63       63-68

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from .errors import MalformedRecord
from .models import Diagnostic, DiagnosticKind

logger = logging.getLogger(__name__)

# ── Physical constants (WGS84) ──

MU_EARTH = 398600.4418
"""Earth gravitational parameter (km³/s²)."""

R_EARTH = 6378.137
"""Earth equatorial radius (km)."""

SOLAR_DAY = 86400.0
"""Seconds in a solar day."""

TWO_PI = 2.0 * math.pi
"""2π constant."""

TLE_LINE_LENGTH = 69
"""Length of a well-formed TLE data line."""

EPOCH_PIVOT_YEAR = 57
"""Two-digit years below this are 20xx, the rest 19xx (Sputnik, 1957)."""

# Column text patterns. float() and int() alone also accept "nan", "inf"
# and digit underscores.
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)")
_DIGITS = re.compile(r"[0-9]+")
_IMPLIED_DECIMAL = re.compile(r"[+-]?[0-9]+(?:[+-][0-9])?")
_EPOCH = re.compile(r"[0-9]{5}\.[0-9]+")


# ── Declarative field tables ──


@dataclass(frozen=True)
class Field:
    """One fixed-width column range of a TLE data line.

    Attributes:
        name: Key under which the decoded value is returned.
        start: First column (0-indexed).
        length: Number of columns.
        decode: Callable turning the raw column text into a value.
    """

    name: str
    start: int
    length: int
    decode: Callable[[str], Any]

    @property
    def end(self) -> int:
        return self.start + self.length

    def extract(self, line: str) -> Any:
        """Slice this field out of ``line`` and decode it.

        Raises:
            ValueError: If the column text cannot be decoded.
        """
        raw = line[self.start:self.end]
        try:
            return self.decode(raw)
        except ValueError as exc:
            raise ValueError(
                f"Field '{self.name}' (cols {self.start}-{self.end}) "
                f"could not be decoded from {raw!r}: {exc}"
            ) from exc


def decode_fields(line: str, fields: tuple[Field, ...]) -> dict[str, Any]:
    """Decode every field of ``fields`` from one TLE line.

    Args:
        line: A TLE data line.
        fields: Field table describing the line.

    Returns:
        Mapping of field name to decoded value, in table order.

    Raises:
        ValueError: On the first field that fails to decode.
    """
    return {f.name: f.extract(line) for f in fields}


def _text(raw: str) -> str:
    return raw.strip()


def _float(raw: str) -> float:
    text = raw.strip()
    if not _DECIMAL.fullmatch(text):
        raise ValueError(f"expected a decimal number, got {raw!r}")
    return float(text)


def _implied_leading_decimal(raw: str) -> float:
    """Decode eccentricity-style digits that carry an implied ``0.``."""
    digits = raw.strip()
    if not _DIGITS.fullmatch(digits):
        raise ValueError(f"expected digits, got {raw!r}")
    return float(f"0.{digits}")


def _int_or_zero(raw: str) -> int:
    text = raw.strip()
    if text and not _DIGITS.fullmatch(text):
        raise ValueError(f"expected digits, got {raw!r}")
    return int(text or "0")


def _parse_implied_decimal(s: str) -> float:
    """Parse TLE implied-decimal notation into a float.

    The TLE format encodes some fields as ``NNNNN±N`` where the mantissa
    has an implied leading ``0.`` and the final ``±N`` is a base-10
    exponent. For example, ``16538-4`` becomes ``0.16538e-4``.
    """
    s = s.strip()
    if not s or s in ("00000-0", "00000+0"):
        return 0.0
    if not _IMPLIED_DECIMAL.fullmatch(s):
        raise ValueError(f"expected NNNNN±N notation, got {s!r}")

    for i in range(len(s) - 1, 0, -1):
        if s[i] in "+-":
            mantissa = s[:i]
            exponent = s[i:]
            sign = "-" if mantissa.lstrip().startswith("-") else ""
            digits = mantissa.lstrip("+-").lstrip()
            return float(f"{sign}0.{digits}e{exponent}")

    sign = "-" if s.startswith("-") else ""
    digits = s.lstrip("+-").lstrip()
    return float(f"{sign}0.{digits}")


def _decode_epoch(raw: str) -> datetime:
    """Decode a ``YYDDD.DDDDDDDD`` epoch string into a UTC datetime."""
    if not _EPOCH.fullmatch(raw.strip()):
        raise ValueError(f"expected YYDDD.DDDDDDDD, got {raw!r}")
    yy = int(raw[0:2])
    day = int(raw[2:5])
    fraction = float(raw[5:])
    year = 2000 + yy if yy < EPOCH_PIVOT_YEAR else 1900 + yy
    return epoch_to_datetime(year, day + fraction)


EPOCH_FIELD = Field("epoch", 18, 14, _decode_epoch)

LINE1_FIELDS: tuple[Field, ...] = (
    Field("norad_id", 2, 5, _text),
    Field("classification", 7, 1, _text),
    Field("intl_designator", 9, 8, _text),
    EPOCH_FIELD,
    Field("mean_motion_dot", 33, 10, _float),
    Field("bstar", 53, 8, _parse_implied_decimal),
)
"""Line 1 fields surfaced for display; only the epoch feeds detection."""

LINE2_FIELDS: tuple[Field, ...] = (
    Field("norad_id", 2, 5, _text),
    Field("inclination", 8, 8, _float),
    Field("raan", 17, 8, _float),
    Field("eccentricity", 26, 7, _implied_leading_decimal),
    Field("arg_perigee", 34, 8, _float),
    Field("mean_anomaly", 43, 8, _float),
    Field("mean_motion", 52, 11, _float),
    Field("rev_number", 63, 5, _int_or_zero),
)


# ── Records ──


@dataclass(frozen=True, slots=True)
class OrbitalElements:
    """Mean orbital elements decoded from TLE line 2.

    Attributes:
        inclination: Orbital inclination (degrees).
        raan: Right ascension of ascending node (degrees).
        eccentricity: Orbital eccentricity (dimensionless).
        arg_perigee: Argument of perigee (degrees).
        mean_anomaly: Mean anomaly (degrees).
        mean_motion: Mean motion (revolutions per day).
        rev_number: Revolution number at epoch.
    """

    inclination: float
    raan: float
    eccentricity: float
    arg_perigee: float
    mean_anomaly: float
    mean_motion: float
    rev_number: int = 0

    @property
    def semi_major_axis(self) -> float:
        """Semi-major axis (km) from mean motion via Kepler's third law."""
        if self.mean_motion <= 0:
            return math.nan
        n_rad_s = self.mean_motion * TWO_PI / SOLAR_DAY
        return (MU_EARTH / n_rad_s**2) ** (1.0 / 3.0)

    @property
    def altitude(self) -> float:
        """Mean altitude above the equatorial radius (km)."""
        return self.semi_major_axis - R_EARTH

    @property
    def period(self) -> float:
        """Orbital period (seconds)."""
        if self.mean_motion <= 0:
            return math.nan
        return SOLAR_DAY / self.mean_motion


@dataclass(frozen=True, slots=True)
class TLERecord:
    """One validated 3-line element set from a snapshot.

    Attributes:
        norad_id: NORAD catalog number as it appears in columns 2-7 (trimmed).
        name: Spacecraft name from the first line of the block.
        line1: TLE line 1 (69 characters).
        line2: TLE line 2 (69 characters).
        epoch_time: Epoch decoded from line 1 (UTC).
        source_filename: Snapshot file the record was read from.
        captured_at: Capture timestamp of that snapshot, if known.
        elements: Orbital elements decoded from line 2.
    """

    norad_id: str
    name: str
    line1: str
    line2: str
    epoch_time: datetime
    source_filename: str
    elements: OrbitalElements
    captured_at: Optional[datetime] = None


# ── Public decoding helpers ──


def epoch_to_datetime(year: int, day_of_year: float) -> datetime:
    """Convert a TLE epoch (year + fractional day-of-year) to a datetime.

    Args:
        year: Full 4-digit year.
        day_of_year: Fractional day of year (1.0 = midnight Jan 1).

    Returns:
        Corresponding UTC datetime. Every day is 86400 s long; leap
        seconds are not modelled.
    """
    day = math.floor(day_of_year)
    fraction = day_of_year - day
    jan1 = datetime(year, 1, 1, tzinfo=timezone.utc)
    return jan1 + timedelta(days=day - 1) + timedelta(seconds=fraction * SOLAR_DAY)


def parse_epoch(line1: str) -> datetime:
    """Decode the epoch of a TLE line 1.

    Raises:
        ValueError: If the epoch columns are not numeric.
    """
    return EPOCH_FIELD.extract(line1)


def extract_norad_id(line1: str) -> str:
    """Return the NORAD field (columns 2-7) of a TLE line, trimmed."""
    return line1[2:7].strip()


def validate_tle(line1: str, line2: str) -> bool:
    """Structural check of a TLE line pair.

    True iff both lines are 69 characters, start with ``"1 "`` and
    ``"2 "`` respectively, and carry the same NORAD field. Checksums are
    not verified.
    """
    if len(line1) != TLE_LINE_LENGTH or len(line2) != TLE_LINE_LENGTH:
        return False
    if not line1.startswith("1 ") or not line2.startswith("2 "):
        return False
    return extract_norad_id(line1) == extract_norad_id(line2)


def extract_elements(line2: str) -> OrbitalElements:
    """Decode the orbital elements of a TLE line 2.

    Raises:
        ValueError: If any element column is not numeric.
    """
    values = decode_fields(line2, LINE2_FIELDS)
    values.pop("norad_id")
    return OrbitalElements(**values)


def decode_line1(line1: str) -> dict[str, Any]:
    """Decode the header fields of a TLE line 1 (identity, epoch, drag)."""
    return decode_fields(line1, LINE1_FIELDS)


def parse_record(
    name: str,
    line1: str,
    line2: str,
    source_filename: str,
    captured_at: Optional[datetime] = None,
) -> TLERecord:
    """Validate and decode one 3-line block.

    Raises:
        MalformedRecord: On a structural violation or undecodable field.
    """
    if not validate_tle(line1, line2):
        raise MalformedRecord(
            _describe_violation(line1, line2),
            norad_id=extract_norad_id(line1) or None,
        )

    norad_id = extract_norad_id(line1)
    try:
        epoch_time = parse_epoch(line1)
        elements = extract_elements(line2)
    except (ValueError, OverflowError) as exc:
        raise MalformedRecord(str(exc), norad_id=norad_id) from exc

    return TLERecord(
        norad_id=norad_id,
        name=name.strip(),
        line1=line1,
        line2=line2,
        epoch_time=epoch_time,
        source_filename=source_filename,
        elements=elements,
        captured_at=captured_at,
    )


def parse_snapshot(
    text: Union[str, bytes],
    filename: str,
    captured_at: Optional[datetime] = None,
    diagnostics: Optional[list[Diagnostic]] = None,
) -> list[TLERecord]:
    """Parse a snapshot blob into TLE records.

    Non-blank lines are grouped greedily into triples (name, line 1,
    line 2); a trailing partial group is discarded. A bad triple is
    dropped on its own and the rest of the blob is still parsed.

    Args:
        text: Snapshot content. Bytes are decoded as UTF-8.
        filename: Source filename stamped on every record.
        captured_at: Capture timestamp of the snapshot, if known.
        diagnostics: If given, one ``MALFORMED_RECORD`` diagnostic is
            appended per dropped triple.

    Returns:
        Records in the order they appear in the blob.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    records: list[TLERecord] = []
    dropped = 0

    for i in range(0, len(lines) - 2, 3):
        name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
        try:
            records.append(
                parse_record(name, line1, line2, filename, captured_at)
            )
        except MalformedRecord as exc:
            dropped += 1
            logger.debug(f"Dropping block {i // 3} of {filename}: {exc}")
            if diagnostics is not None:
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.MALFORMED_RECORD,
                        message=f"{name!r}: {exc}",
                        day=captured_at.date() if captured_at else None,
                        filename=filename,
                        norad_id=exc.norad_id,
                    )
                )

    leftover = len(lines) % 3
    if leftover:
        logger.debug(f"Discarding {leftover} trailing line(s) in {filename}")
    if dropped:
        logger.warning(f"{filename}: dropped {dropped} malformed record(s)")

    return records


def _describe_violation(line1: str, line2: str) -> str:
    if len(line1) != TLE_LINE_LENGTH:
        return f"Line 1 must be {TLE_LINE_LENGTH} characters, got {len(line1)}"
    if len(line2) != TLE_LINE_LENGTH:
        return f"Line 2 must be {TLE_LINE_LENGTH} characters, got {len(line2)}"
    if not line1.startswith("1 "):
        return f"Line 1 must start with '1 ', got {line1[:2]!r}"
    if not line2.startswith("2 "):
        return f"Line 2 must start with '2 ', got {line2[:2]!r}"
    return (
        f"NORAD ID mismatch: {extract_norad_id(line1)!r} "
        f"vs {extract_norad_id(line2)!r}"
    )
