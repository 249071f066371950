"""End-to-end comparison over a date range.

Example:
    >>> from tledelta.engine import compare_range
    >>> from tledelta.snapshots import DirectorySource
    >>>
    >>> result = compare_range(DirectorySource("tle-data"), "2024-01-14", "2024-01-16")
    >>> for sat in result.satellites:
    ...     print(sat.norad_id, sat.name, sat.update_count)
    >>> for diag in result.diagnostics:
    ...     print(diag.kind.name, diag.day, diag.filename, diag.message)
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .config import EngineConfig
from .dates import DateLike, date_range
from .detector import ChangeDetector, build_histories, group_by_norad_id
from .models import ComparisonResult, Diagnostic
from .snapshots import SnapshotSource, collect_snapshots
from .tle_parser import TLERecord, parse_snapshot

logger = logging.getLogger(__name__)


def compare_range(
    source: SnapshotSource,
    from_date: DateLike,
    to_date: DateLike,
    config: Optional[EngineConfig] = None,
    cancel: Optional[threading.Event] = None,
    progress: bool = False,
) -> ComparisonResult:
    """Build per-satellite change histories for ``[from_date, to_date]``.

    The range is validated before anything is fetched. Every snapshot is
    collected before grouping starts; if the run is cancelled (``cancel``
    set, or ``config.deadline`` exceeded) histories are built only from
    the snapshots that were fetched completely, and ``cancelled`` is set
    on the result.

    Args:
        source: Snapshot tree to read from.
        from_date: First date (ISO-8601 string or ``date``), inclusive.
        to_date: Last date, inclusive.
        config: Engine settings (defaults to :class:`EngineConfig`).
        cancel: Event that stops new fetches once set.
        progress: Show a progress bar while fetching.

    Returns:
        Histories sorted by descending update count, plus diagnostics.

    Raises:
        InvalidRange: If the bounds are unparseable or inverted.
    """
    days = date_range(from_date, to_date)
    config = config or EngineConfig()

    logger.info(f"Comparing {len(days)} day(s) from {days[0]} to {days[-1]} via {source!r}")
    collection = collect_snapshots(source, days, config, cancel, progress)

    diagnostics: list[Diagnostic] = list(collection.diagnostics)
    records: list[TLERecord] = []
    for snapshot in collection.snapshots:
        records.extend(
            parse_snapshot(
                snapshot.content,
                snapshot.filename,
                captured_at=snapshot.captured_at,
                diagnostics=diagnostics,
            )
        )

    groups = group_by_norad_id(records)
    satellites = build_histories(groups, ChangeDetector())

    logger.info(
        f"{len(records)} record(s) from {len(collection.snapshots)} snapshot(s): "
        f"{len(satellites)} satellite(s) with updates"
    )
    return ComparisonResult(
        satellites=satellites,
        diagnostics=diagnostics,
        days=days,
        snapshots_loaded=len(collection.snapshots),
        records_parsed=len(records),
        cancelled=collection.cancelled,
    )
