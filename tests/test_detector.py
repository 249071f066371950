"""Tests for change detection, history assembly and classification."""
from datetime import datetime, timezone

import pytest

from tledelta.classifier import SatelliteType, classify_satellite
from tledelta.detector import (
    ChangeDetector,
    build_histories,
    build_history,
    group_by_norad_id,
    normalize_line,
    same_elements,
)
from tledelta.tle_parser import TLERecord, parse_record

UTC = timezone.utc


def _record(
    make_lines,
    filename: str = "tle_000000.txt",
    name: str = "ISS (ZARYA)",
    captured_at: datetime | None = None,
    **fields,
) -> TLERecord:
    line1, line2 = make_lines(**fields)
    return parse_record(name, line1, line2, filename, captured_at)


class TestNormalization:
    def test_collapses_whitespace_runs(self):
        assert normalize_line("  1 25544U   98067A\t 24015.5 ") == "1 25544U 98067A 24015.5"

    def test_same_elements_ignores_spacing(self, make_lines):
        a = _record(make_lines)
        b = TLERecord(
            norad_id=a.norad_id,
            name=a.name,
            line1=" " + a.line1.replace("  ", "   ") + " ",
            line2=a.line2,
            epoch_time=a.epoch_time,
            source_filename="other.txt",
            elements=a.elements,
        )
        assert same_elements(a, b)

    def test_same_elements_detects_change(self, make_lines):
        a = _record(make_lines, inclination=51.64)
        b = _record(make_lines, inclination=51.65)
        assert not same_elements(a, b)


class TestChangeDetector:
    def test_repeat_then_change(self, make_lines):
        """Record 2 repeats record 1, record 3 differs -> two updates."""
        r1 = _record(make_lines, "tle_000000.txt", epoch="24014.25000000")
        r2 = _record(make_lines, "tle_060000.txt", epoch="24014.25000000")
        r3 = _record(make_lines, "tle_120000.txt", epoch="24016.25000000", inclination=51.65)

        updates = ChangeDetector().detect([r1, r2, r3])

        assert len(updates) == 2
        assert updates[0].source_filename == r1.source_filename
        assert updates[0].line2 == r1.line2
        assert updates[1].source_filename == r3.source_filename
        assert updates[1].line2 == r3.line2

    def test_input_order_does_not_matter(self, make_lines):
        r1 = _record(make_lines, epoch="24014.25000000")
        r2 = _record(make_lines, epoch="24015.25000000")
        r3 = _record(make_lines, epoch="24016.25000000")

        updates = ChangeDetector().detect([r3, r1, r2])
        assert [u.epoch_time.day for u in updates] == [14, 15, 16]

    def test_single_record_is_baseline(self, make_lines):
        updates = ChangeDetector().detect([_record(make_lines)])
        assert len(updates) == 1

    def test_only_repeats_give_one_update(self, make_lines):
        records = [
            _record(make_lines, f"tle_{h:02d}0000.txt") for h in (0, 6, 12, 18)
        ]
        assert len(ChangeDetector().detect(records)) == 1

    def test_no_records(self):
        assert ChangeDetector().detect([]) == []

    def test_revert_to_earlier_state_counts(self, make_lines):
        """A -> B -> A is three transitions, only adjacent repeats collapse."""
        a1 = _record(make_lines, epoch="24014.00000000", inclination=51.64)
        b = _record(make_lines, epoch="24015.00000000", inclination=51.65)
        a2 = _record(make_lines, epoch="24016.00000000", inclination=51.64)
        a2_same_lines = _record(
            make_lines, "tle_180000.txt", epoch="24016.00000000", inclination=51.64
        )
        updates = ChangeDetector().detect([a1, b, a2, a2_same_lines])
        assert len(updates) == 3

    def test_adjacent_updates_never_identical(self, make_lines):
        records = [
            _record(make_lines, f"tle_{i:02d}0000.txt", epoch=f"240{10 + i // 2}.00000000",
                    inclination=51.64 + 0.01 * (i // 2))
            for i in range(8)
        ]
        updates = ChangeDetector().detect(records)
        assert len(updates) == 4
        for prev, curr in zip(updates, updates[1:]):
            assert not same_elements(prev, curr)

    def test_epoch_ties_broken_by_filename(self, make_lines):
        """Same epoch, different content: the earlier filename is the baseline."""
        late = _record(make_lines, "tle_180000.txt", epoch="24015.00000000", raan=10.0)
        early = _record(make_lines, "tle_000000.txt", epoch="24015.00000000", raan=20.0)

        updates = ChangeDetector().detect([late, early])
        assert [u.source_filename for u in updates] == ["tle_000000.txt", "tle_180000.txt"]

    def test_update_event_fields(self, make_lines):
        captured = datetime(2024, 1, 16, 12, tzinfo=UTC)
        rec = _record(make_lines, "tle_120000.txt", captured_at=captured, epoch="24016.25000000")
        event = ChangeDetector().detect([rec])[0]

        assert event.epoch_time == datetime(2024, 1, 16, 6, tzinfo=UTC)
        assert event.date == "2024-01-16"
        assert event.time == "06:00:00"
        assert event.hour == 6
        assert event.captured_at == captured
        assert event.line1 == rec.line1


class TestBuildHistory:
    def test_latest_record_supplies_state(self, make_lines):
        old = _record(make_lines, name="OLD NAME", epoch="24014.00000000", inclination=51.64)
        new = _record(make_lines, name="ISS (ZARYA)", epoch="24016.00000000", inclination=51.65,
                      eccentricity="0001000", mean_motion=15.5)

        history = build_history([new, old])

        assert history.norad_id == "25544"
        assert history.name == "ISS (ZARYA)"
        assert history.type is SatelliteType.SPACE_STATION
        assert history.update_count == 2
        assert history.inclination == pytest.approx(51.65)
        assert history.eccentricity == pytest.approx(0.0001)
        assert history.mean_motion == pytest.approx(15.5)
        assert history.last_updated == datetime(2024, 1, 16, tzinfo=UTC)
        assert history.epoch == "2024-01-16"

    def test_no_records_gives_none(self):
        assert build_history([]) is None

    def test_hourly_activity(self, make_lines):
        records = [
            _record(make_lines, epoch="24014.25000000", inclination=51.60),
            _record(make_lines, epoch="24015.25000000", inclination=51.61),
            _record(make_lines, epoch="24016.50000000", inclination=51.62),
        ]
        activity = build_history(records).hourly_activity()
        assert activity.shape == (24,)
        assert activity[6] == 2
        assert activity[12] == 1
        assert activity.sum() == 3


class TestBuildHistories:
    def _groups(self, make_lines, counts: dict[str, int]):
        records = []
        for norad_id, n in counts.items():
            for i in range(n):
                records.append(
                    _record(
                        make_lines,
                        norad_id=norad_id,
                        epoch=f"240{10 + i}.00000000",
                        inclination=50.0 + i,
                    )
                )
        return group_by_norad_id(records)

    def test_sorted_by_descending_update_count(self, make_lines):
        histories = build_histories(
            self._groups(make_lines, {"11111": 1, "22222": 3, "33333": 2})
        )
        assert [h.norad_id for h in histories] == ["22222", "33333", "11111"]

    def test_ordering_property(self, make_lines):
        histories = build_histories(
            self._groups(make_lines, {"10001": 2, "10002": 5, "10003": 1, "10004": 5})
        )
        counts = [h.update_count for h in histories]
        assert counts == sorted(counts, reverse=True)

    def test_ties_ordered_by_norad_id(self, make_lines):
        histories = build_histories(
            self._groups(make_lines, {"30000": 2, "10000": 2, "20000": 2})
        )
        assert [h.norad_id for h in histories] == ["10000", "20000", "30000"]

    def test_ties_ordered_by_catalog_number_not_text(self, make_lines):
        histories = build_histories(
            self._groups(make_lines, {"25544": 2, "900": 2, "10000": 1})
        )
        assert [h.norad_id for h in histories] == ["900", "25544", "10000"]

    def test_empty_group_is_skipped(self, make_lines):
        groups = self._groups(make_lines, {"11111": 1})
        groups["99999"] = []
        histories = build_histories(groups)
        assert [h.norad_id for h in histories] == ["11111"]
        assert all(h.update_count > 0 for h in histories)

    def test_group_by_norad_id(self, make_lines):
        a = _record(make_lines, norad_id="11111")
        b = _record(make_lines, norad_id="22222")
        c = _record(make_lines, norad_id="11111", epoch="24016.00000000")
        groups = group_by_norad_id([a, b, c])
        assert groups == {"11111": [a, c], "22222": [b]}


class TestClassifier:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("STARLINK-1947", SatelliteType.COMMUNICATION),
            ("ISS (ZARYA)", SatelliteType.SPACE_STATION),
            ("XYZ-9", SatelliteType.OTHER),
            ("starlink-30001", SatelliteType.COMMUNICATION),
            ("COSMOS 2251 DEB", SatelliteType.MILITARY),
            ("GPS BIIR-2  (PRN 13)", SatelliteType.NAVIGATION),
            ("GALILEO 21 (2C5)", SatelliteType.NAVIGATION),
            ("SENTINEL-2A", SatelliteType.EARTH_OBSERVATION),
            ("HST HUBBLE", SatelliteType.SCIENTIFIC),
            ("NOAA 19", SatelliteType.WEATHER),
            ("GOES 16", SatelliteType.WEATHER),
            ("", SatelliteType.OTHER),
        ],
    )
    def test_classify(self, name, expected):
        assert classify_satellite(name) is expected

    def test_first_rule_wins(self):
        assert classify_satellite("STARLINK ISS RELAY") is SatelliteType.COMMUNICATION
        assert classify_satellite("COSMOS GPS") is SatelliteType.MILITARY

    def test_substring_heuristic_false_positive(self):
        # Documented heuristic behaviour: "ISS" inside another word still matches.
        assert classify_satellite("MISSION-7") is SatelliteType.SPACE_STATION

    def test_display_values(self):
        assert SatelliteType.SPACE_STATION.value == "Space Station"
        assert SatelliteType.EARTH_OBSERVATION.value == "Earth Observation"
