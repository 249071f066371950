#!/usr/bin/env python3
"""Change detection over repeated TLE publications.

Snapshots are captured far more often than element sets are actually
re-fitted, so most records in a date range are verbatim re-publications
of an element set already seen. Counting snapshots would overstate real
orbital activity; this module keeps only the state transitions.

For one satellite the records are sorted by epoch and walked in order,
holding the last accepted (line 1, line 2) pair. A record whose
whitespace-normalized lines differ from that pair becomes an
:class:`~tledelta.models.UpdateEvent` and the new accepted pair; an
identical one is absorbed. The first record always produces an event, so
the update count measures observed states including the first one seen.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from .classifier import classify_satellite
from .models import SatelliteHistory, UpdateEvent
from .tle_parser import TLERecord

logger = logging.getLogger(__name__)

_NO_CAPTURE = datetime.min.replace(tzinfo=timezone.utc)


def normalize_line(line: str) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    return " ".join(line.split())


def same_elements(a: TLERecord | UpdateEvent, b: TLERecord | UpdateEvent) -> bool:
    """True if both carry the same element set, ignoring whitespace."""
    return (
        normalize_line(a.line1) == normalize_line(b.line1)
        and normalize_line(a.line2) == normalize_line(b.line2)
    )


def _catalog_order(norad_id: str) -> tuple[int, str]:
    """Sort key putting shorter catalog numbers first, so "900" < "25544"."""
    return (len(norad_id), norad_id)


def _record_order(record: TLERecord) -> tuple:
    return (
        record.epoch_time,
        record.source_filename,
        record.captured_at or _NO_CAPTURE,
    )


class ChangeDetector:
    """Collapses a satellite's repeated publications into a change timeline.

    Example:
        >>> detector = ChangeDetector()
        >>> updates = detector.detect(records)
        >>> len(updates)  # genuine changes, first-seen state included
        2
    """

    def detect(self, records: Iterable[TLERecord]) -> list[UpdateEvent]:
        """Emit one update per genuine element-set change.

        Args:
            records: TLE records for a single satellite, in any order
                (will be sorted by epoch, then filename, then capture time).

        Returns:
            Chronological update events; no two adjacent events carry the
            same normalized line pair.
        """
        ordered = sorted(records, key=_record_order)
        updates: list[UpdateEvent] = []
        accepted: Optional[tuple[str, str]] = None

        for record in ordered:
            pair = (normalize_line(record.line1), normalize_line(record.line2))
            if pair == accepted:
                continue

            updates.append(
                UpdateEvent(
                    epoch_time=record.epoch_time,
                    line1=record.line1,
                    line2=record.line2,
                    source_filename=record.source_filename,
                    captured_at=record.captured_at,
                )
            )
            accepted = pair

        if ordered:
            logger.debug(
                f"NORAD {ordered[0].norad_id}: {len(ordered)} record(s) "
                f"-> {len(updates)} update(s)"
            )
        return updates


def group_by_norad_id(records: Iterable[TLERecord]) -> dict[str, list[TLERecord]]:
    """Group records by NORAD id, preserving input order within a group."""
    groups: dict[str, list[TLERecord]] = defaultdict(list)
    for record in records:
        groups[record.norad_id].append(record)
    return dict(groups)


def build_history(
    records: list[TLERecord],
    detector: Optional[ChangeDetector] = None,
) -> Optional[SatelliteHistory]:
    """Build one satellite's history from all of its records.

    Name, category and orbital elements come from the highest-epoch
    record.

    Returns:
        The history, or ``None`` if no update was produced.
    """
    detector = detector or ChangeDetector()
    updates = detector.detect(records)
    if not updates:
        return None

    latest = max(records, key=_record_order)
    return SatelliteHistory(
        norad_id=latest.norad_id,
        name=latest.name,
        type=classify_satellite(latest.name),
        updates=updates,
        latest=latest,
    )


def build_histories(
    groups: Mapping[str, list[TLERecord]],
    detector: Optional[ChangeDetector] = None,
) -> list[SatelliteHistory]:
    """Build histories for every satellite group.

    Returns:
        Histories with at least one update, sorted by descending update
        count. Ties are ordered by catalog number.
    """
    detector = detector or ChangeDetector()
    histories = []

    for norad_id in sorted(groups, key=_catalog_order):
        history = build_history(groups[norad_id], detector)
        if history is not None:
            histories.append(history)

    histories.sort(key=lambda h: h.update_count, reverse=True)
    return histories
