from __future__ import annotations

import datetime
import re

from db import BusyIntervalRepository, SettingsRepository
from models import BusyInterval


class CalendarPermissionError(Exception):
    """Raised when calendar access is disabled or the source cannot be read."""


_VEVENT_RE = re.compile(r"BEGIN:VEVENT(.*?)END:VEVENT", re.DOTALL)
_DTSTART_RE = re.compile(r"DTSTART(?:;[^:\r\n]*)?:(\d{8}(?:T\d{6}Z?)?)")
_DTEND_RE = re.compile(r"DTEND(?:;[^:\r\n]*)?:(\d{8}(?:T\d{6}Z?)?)")
_SUMMARY_RE = re.compile(r"SUMMARY:(.*?)(?:\r?\n)")


def _parse_ics_datetime(value: str) -> datetime.datetime | None:
    """Return a naive local datetime or ``None`` for all-day (date only) values.

    UTC values (trailing ``Z``) are converted to local time. Floating and
    ``TZID`` values are taken as local wall-clock time.
    """
    if "T" not in value:
        return None
    if value.endswith("Z"):
        utc = datetime.datetime.strptime(value[:-1], "%Y%m%dT%H%M%S").replace(
            tzinfo=datetime.timezone.utc
        )
        return utc.astimezone().replace(tzinfo=None)
    return datetime.datetime.strptime(value, "%Y%m%dT%H%M%S")


def parse_ics_busy(content: str) -> list[BusyInterval]:
    """Extract timed VEVENT blocks from ICS ``content``.

    All-day events and events without a usable end are skipped.
    """
    intervals: list[BusyInterval] = []
    for block in _VEVENT_RE.findall(content):
        start_match = _DTSTART_RE.search(block)
        end_match = _DTEND_RE.search(block)
        if not start_match or not end_match:
            continue
        start = _parse_ics_datetime(start_match.group(1))
        end = _parse_ics_datetime(end_match.group(1))
        if start is None or end is None or start >= end:
            continue
        summary = _SUMMARY_RE.search(block)
        title = summary.group(1).strip() if summary else None
        intervals.append(BusyInterval(start=start, end=end, title=title))
    return intervals


class CalendarService:
    """Busy-time provider backed by locally stored calendar blocks."""

    def __init__(
        self,
        busy_repo: BusyIntervalRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.busy = busy_repo
        self.settings = settings_repo

    def has_access(self) -> bool:
        if self.settings is None:
            return True
        return self.settings.get_bool("calendar_access_enabled", True)

    def fetch_busy_intervals(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> list[BusyInterval]:
        if start >= end:
            raise ValueError("invalid date range")
        if not self.has_access():
            raise CalendarPermissionError("calendar access denied")
        return self.busy.fetch_range(start, end)

    def add_busy_interval(
        self,
        start: datetime.datetime | str,
        end: datetime.datetime | str,
        title: str | None = None,
    ) -> int:
        return self.busy.add(start, end, title)

    def import_ics(self, content: str, replace: bool = True) -> int:
        """Store timed events from an ICS feed and return how many were added."""
        intervals = parse_ics_busy(content)
        if replace:
            self.busy.delete_source("ics")
        for interval in intervals:
            self.busy.add(interval.start, interval.end, interval.title, source="ics")
        return len(intervals)
