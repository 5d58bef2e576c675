"""
Tests for the academic calendar provider.
"""
import json
import pytest
import pandas as pd
import requests
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.integrations.academic_calendar import (
    AcademicCalendar,
    CalendarParseError,
    CalendarProvider,
    academic_year_label,
    extract_calendar_rows,
    extract_quarter_starts,
)
from taskboard.metrics.windows import resolve_windows


def row(year, title, date, event_type="Begin/End Date"):
    return {
        "Academic_x0020_Calendar_x0020_Ye": year,
        "LinkTitle": title,
        "Date": date,
        "Event_x0020_Type": event_type,
    }


ROWS = [
    row("2026-2027", "BEGIN AQ2026 ALL CLASSES", "2026-09-14T05:00:00Z"),
    row("2026-2027", "End AQ2026 Classes", "2026-11-21T06:00:00Z"),
    row("2026-2027", "Begin WQ2026 Day & Evening Classes", "2027-01-04T06:00:00Z"),
    row("2026-2027", "Begin SQ2026 Day & Evening Classes", "2027-03-29T05:00:00Z"),
    row("2026-2027", "BEGIN SUMMER 2026 TERM", "2027-06-14T05:00:00Z"),
    row("2025-2026", "BEGIN AQ2025 ALL CLASSES", "2025-09-15T05:00:00Z"),
    row("2025-2026", "Begin WQ2025 Day & Evening Classes", "2026-01-05T06:00:00Z"),
]


def page(rows):
    return (
        "<html><script>var dpuexp = dpuexp || {};\n"
        f"dpuexp.Academic_Calendar.Current_Active = {{ Rows: {json.dumps(rows)} }};\n"
        "</script></html>"
    )


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeHttp:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestAcademicYearLabel:
    """Tests for the academic year containing a date."""

    def test_autumn(self):
        assert academic_year_label(pd.Timestamp("2026-10-21")) == "2026-2027"

    def test_august_starts_new_year(self):
        assert academic_year_label(pd.Timestamp("2026-08-01")) == "2026-2027"

    def test_july_is_previous_year(self):
        assert academic_year_label(pd.Timestamp("2026-07-31")) == "2025-2026"


class TestExtractRows:
    """Tests for pulling rows out of the page."""

    def test_rows_found(self):
        rows = extract_calendar_rows(page(ROWS))

        assert len(rows) == len(ROWS)
        assert rows[0]["LinkTitle"] == "BEGIN AQ2026 ALL CLASSES"

    def test_no_calendar_data(self):
        with pytest.raises(CalendarParseError):
            extract_calendar_rows("<html>maintenance</html>")

    def test_invalid_json(self):
        html = "dpuexp.Academic_Calendar.Current_Active = { Rows: [{'bad': }] }"

        with pytest.raises(CalendarParseError):
            extract_calendar_rows(html)


class TestExtractQuarterStarts:
    """Tests for quarter start extraction."""

    def test_requested_year(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2026-10-21"))

        assert calendar.academic_year == "2026-2027"
        assert list(calendar.quarters) == ["autumn", "winter", "spring", "summer"]

    def test_dates_converted_to_local(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2026-10-21"))

        assert calendar.quarters["autumn"].start == pd.Timestamp("2026-09-14")
        assert calendar.quarters["winter"].start == pd.Timestamp("2027-01-04")

    def test_falls_back_to_most_recent_year(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2028-02-01"))

        assert calendar.requested_year == "2027-2028"
        assert calendar.academic_year == "2026-2027"

    def test_partial_year(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2025-10-01"))

        assert list(calendar.quarters) == ["autumn", "winter"]

    def test_no_rows(self):
        calendar = extract_quarter_starts([], pd.Timestamp("2026-10-21"))

        assert calendar.is_empty

    def test_resolves_windows(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2026-10-21"))

        windows = resolve_windows(pd.Timestamp("2027-02-01"), calendar)

        assert windows.quarter.label == "winter"
        assert windows.year.start == pd.Timestamp("2026-09-14")


class TestPayload:
    """Tests for the browser payload shape."""

    def test_round_trip(self):
        calendar = extract_quarter_starts(ROWS, pd.Timestamp("2026-10-21"))

        restored = AcademicCalendar.from_payload(calendar.to_payload())

        assert restored.quarters["spring"].start == pd.Timestamp("2027-03-29")
        assert restored.academic_year == "2026-2027"

    def test_empty_payload(self):
        assert AcademicCalendar.from_payload(None).is_empty


class TestCalendarProvider:
    """Tests for the fail-soft provider."""

    def test_fetch_and_parse(self):
        http = FakeHttp(FakeResponse(page(ROWS)))
        provider = CalendarProvider(url="https://calendar.test", http=http, timeout=3)

        calendar = provider.current_academic_calendar(pd.Timestamp("2026-10-21"))

        assert "autumn" in calendar.quarters
        assert http.calls[0][0] == "https://calendar.test"
        assert http.calls[0][1]["timeout"] == 3

    def test_http_error_gives_empty(self):
        provider = CalendarProvider(url="https://calendar.test", http=FakeHttp(FakeResponse(status_code=503)))

        assert provider.current_academic_calendar(pd.Timestamp("2026-10-21")).is_empty

    def test_connection_error_gives_empty(self):
        http = FakeHttp(requests.exceptions.Timeout("slow"))
        provider = CalendarProvider(url="https://calendar.test", http=http)

        assert provider.current_academic_calendar(pd.Timestamp("2026-10-21")).is_empty

    def test_unparseable_page_gives_empty(self):
        provider = CalendarProvider(url="https://calendar.test", http=FakeHttp(FakeResponse("<html></html>")))

        assert provider.current_academic_calendar(pd.Timestamp("2026-10-21")).is_empty
