"""TLEDelta — Two-Line Element change histories from periodic snapshots.

Ingests date-organized snapshots of TLE catalogs and reduces the many
re-publications of unchanged element sets to the genuine changes, per
satellite, over a date range.

Modules:
    dates:       Inclusive calendar date ranges.
    snapshots:   Snapshot discovery and sources (directory, HTTP, memory).
    tle_parser:  Fixed-width TLE decoding: records, epochs, orbital elements.
    classifier:  Name-based satellite categories.
    detector:    Change detection and per-satellite history assembly.
    engine:      End-to-end comparison over a date range.
    models:      Result envelope, histories and diagnostics.
    config:      Engine settings.
    cli:         Command-line interface.

Example:
    >>> from tledelta.engine import compare_range
    >>> from tledelta.snapshots import open_source
    >>>
    >>> result = compare_range(open_source("tle-data"), "2024-01-14", "2024-01-16")
    >>> for sat in result.satellites:
    ...     print(sat.norad_id, sat.type.value, sat.update_count)
"""

__version__ = "0.1.0"
