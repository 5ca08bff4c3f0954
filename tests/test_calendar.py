import os
import sys
import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import BusyIntervalRepository, SettingsRepository
from calendar_service import CalendarPermissionError, CalendarService, parse_ics_busy


ICS = """BEGIN:VCALENDAR
VERSION:2.0
BEGIN:VEVENT
DTSTART:20240507T090000
DTEND:20240507T103000
SUMMARY:Planning
END:VEVENT
BEGIN:VEVENT
DTSTART;VALUE=DATE:20240508
DTEND;VALUE=DATE:20240509
SUMMARY:Holiday
END:VEVENT
BEGIN:VEVENT
DTSTART;TZID=Europe/Berlin:20240509T170000
DTEND;TZID=Europe/Berlin:20240509T180000
SUMMARY:Dentist
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def calendar(tmp_path):
    db_path = str(tmp_path / "cal.db")
    settings = SettingsRepository(db_path, str(tmp_path / "settings.yaml"))
    return CalendarService(BusyIntervalRepository(db_path), settings)


def test_parse_ics_skips_all_day_events():
    intervals = parse_ics_busy(ICS)
    assert [i.title for i in intervals] == ["Planning", "Dentist"]
    assert intervals[0].start == datetime.datetime(2024, 5, 7, 9, 0)
    assert intervals[0].end == datetime.datetime(2024, 5, 7, 10, 30)


def test_parse_ics_converts_utc_to_local():
    ics = (
        "BEGIN:VCALENDAR\nBEGIN:VEVENT\n"
        "DTSTART:20240507T150000Z\nDTEND:20240507T160000Z\nSUMMARY:Sync\n"
        "END:VEVENT\nEND:VCALENDAR\n"
    )
    utc = datetime.datetime(2024, 5, 7, 15, 0, tzinfo=datetime.timezone.utc)
    expected = utc.astimezone().replace(tzinfo=None)
    [interval] = parse_ics_busy(ics)
    assert interval.start == expected
    assert interval.end == expected + datetime.timedelta(hours=1)


def test_import_replaces_previous_feed(calendar):
    calendar.add_busy_interval(
        datetime.datetime(2024, 5, 7, 12), datetime.datetime(2024, 5, 7, 13), "Lunch"
    )
    assert calendar.import_ics(ICS) == 2
    assert calendar.import_ics(ICS) == 2
    records = calendar.busy.fetch_all_records()
    assert len(records) == 3
    assert sorted(r["source"] for r in records) == ["ics", "ics", "manual"]


def test_fetch_range_returns_intersecting_blocks(calendar):
    calendar.import_ics(ICS)
    day = datetime.datetime(2024, 5, 7)
    blocks = calendar.fetch_busy_intervals(day, day + datetime.timedelta(days=1))
    assert [b.title for b in blocks] == ["Planning"]
    # the block ending exactly at the range start is excluded
    blocks = calendar.fetch_busy_intervals(
        datetime.datetime(2024, 5, 7, 10, 30), datetime.datetime(2024, 5, 7, 12)
    )
    assert blocks == []


def test_invalid_range(calendar):
    day = datetime.datetime(2024, 5, 7)
    with pytest.raises(ValueError):
        calendar.fetch_busy_intervals(day, day)


def test_permission_denied(calendar):
    calendar.settings.set_bool("calendar_access_enabled", False)
    assert not calendar.has_access()
    day = datetime.datetime(2024, 5, 7)
    with pytest.raises(CalendarPermissionError):
        calendar.fetch_busy_intervals(day, day + datetime.timedelta(days=1))


def test_busy_interval_must_be_ordered(calendar):
    with pytest.raises(ValueError):
        calendar.add_busy_interval(
            datetime.datetime(2024, 5, 7, 13), datetime.datetime(2024, 5, 7, 12)
        )
