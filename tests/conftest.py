"""Shared TLE fixtures.

``tle_lines`` formats a syntactically valid 69-column line pair from
element values, so tests can state just the fields they care about.
"""
from datetime import date

import pytest


def tle_lines(
    norad_id: str = "25544",
    epoch: str = "24015.50000000",
    inclination: float = 51.64,
    raan: float = 208.5,
    eccentricity: str = "0007417",
    arg_perigee: float = 68.0,
    mean_anomaly: float = 292.1,
    mean_motion: float = 15.4956,
    rev_number: int = 40000,
    intl_designator: str = "98067A",
) -> tuple[str, str]:
    line1 = (
        f"1 {norad_id:>5}U {intl_designator:<8} {epoch:>14}"
        "  .00016717  00000-0  10270-3 0  9990"
    )
    line2 = (
        f"2 {norad_id:>5} {inclination:8.4f} {raan:8.4f} {eccentricity} "
        f"{arg_perigee:8.4f} {mean_anomaly:8.4f} {mean_motion:11.8f}{rev_number:5d}0"
    )
    assert len(line1) == 69 and len(line2) == 69
    return line1, line2


def tle_block(name: str, **fields) -> str:
    line1, line2 = tle_lines(**fields)
    return f"{name}\n{line1}\n{line2}\n"


def write_snapshot(root, day: str, filename: str, *blocks: str):
    folder = root / day
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / filename
    path.write_text("".join(blocks))
    return path


@pytest.fixture
def make_lines():
    return tle_lines


@pytest.fixture
def make_block():
    return tle_block


@pytest.fixture
def snapshot_tree(tmp_path):
    """Three days of snapshots for the ISS, one element change on the 16th.

    2024-01-14: manifest lists tle_000000.txt (pair P) plus a bogus name.
    2024-01-15: no manifest; probe finds tle_060000.txt (pair P again).
    2024-01-16: no manifest; probe finds tle_120000.txt (pair Q) which
                also carries a one-off HUBBLE record.
    """
    pair_p = dict(norad_id="25544", epoch="24014.25000000", inclination=51.64)
    pair_q = dict(norad_id="25544", epoch="24016.25000000", inclination=51.65)
    hubble = dict(
        norad_id="20580",
        epoch="24016.10000000",
        inclination=28.47,
        mean_motion=15.09,
        intl_designator="90037B",
    )

    write_snapshot(tmp_path, "2024-01-14", "tle_000000.txt", tle_block("ISS (ZARYA)", **pair_p))
    (tmp_path / "2024-01-14" / "index.json").write_text(
        '{"files": ["tle_000000.txt", "notes.txt"]}'
    )
    write_snapshot(tmp_path, "2024-01-15", "tle_060000.txt", tle_block("ISS (ZARYA)", **pair_p))
    write_snapshot(
        tmp_path,
        "2024-01-16",
        "tle_120000.txt",
        tle_block("ISS (ZARYA)", **pair_q),
        tle_block("HUBBLE", **hubble),
    )
    return tmp_path


@pytest.fixture
def jan14():
    return date(2024, 1, 14)
