"""
Academic calendar provider.

Quarter start dates are scraped from the university's public academic calendar
page, which embeds its events as a JSON array:

    dpuexp.Academic_Calendar.Current_Active = { Rows: [ {...}, ... ] }

Each row carries the academic-year label ("2025-2026"), an event type, a link
title such as "BEGIN AQ2025 ALL CLASSES" and a date.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
import requests

from taskboard.config import (
    config,
    ACADEMIC_YEAR_START_MONTH,
    QUARTER_ABBREVIATIONS,
    QUARTER_ORDER,
)
from taskboard.data.schema import local_now, to_local_timestamp

logger = logging.getLogger(__name__)


class CalendarParseError(Exception):
    """Raised when the calendar page does not contain usable calendar data."""
    pass


_ROWS_PATTERN = re.compile(
    r"dpuexp\.Academic_Calendar\.Current_Active\s*=\s*\{\s*Rows:\s*(\[[\s\S]*?\])\s*\}"
)

YEAR_FIELD = "Academic_x0020_Calendar_x0020_Ye"
TITLE_FIELD = "LinkTitle"
DATE_FIELD = "Date"

_BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}


@dataclass(frozen=True)
class QuarterStart:
    start: pd.Timestamp
    display_name: str


@dataclass
class AcademicCalendar:
    """Quarter start dates for one academic year. Empty when unknown."""
    quarters: Dict[str, QuarterStart] = field(default_factory=dict)
    academic_year: Optional[str] = None
    requested_year: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.quarters

    @classmethod
    def empty(cls) -> "AcademicCalendar":
        return cls()

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "AcademicCalendar":
        """
        Build from the JSON shape served to the browser:
        {"academicYear": ..., "quarters": {"autumn": {"start": iso, "name": "Autumn"}}}
        """
        if not payload:
            return cls.empty()

        quarters = {}
        for name, entry in (payload.get("quarters") or {}).items():
            if not isinstance(entry, Mapping):
                continue
            start = to_local_timestamp(entry.get("start"))
            if pd.isna(start):
                continue
            key = str(name).lower()
            quarters[key] = QuarterStart(start=start, display_name=entry.get("name") or key.title())

        return cls(
            quarters=quarters,
            academic_year=payload.get("academicYear"),
            requested_year=payload.get("requestedYear"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "academicYear": self.academic_year,
            "requestedYear": self.requested_year,
            "quarters": {
                name: {"start": q.start.isoformat(), "name": q.display_name}
                for name, q in self.quarters.items()
            },
        }


def academic_year_label(now=None) -> str:
    """'2025-2026' from August 2025 through July 2026."""
    now = local_now(now)
    start_year = now.year if now.month >= ACADEMIC_YEAR_START_MONTH else now.year - 1
    return f"{start_year}-{start_year + 1}"


def extract_calendar_rows(html: str) -> List[Dict[str, Any]]:
    """Pull the embedded calendar rows out of the page."""
    match = _ROWS_PATTERN.search(html or "")
    if not match:
        raise CalendarParseError("Could not find academic calendar data in page")
    try:
        rows = json.loads(match.group(1))
    except ValueError as e:
        raise CalendarParseError("Academic calendar data is not valid JSON") from e
    if not isinstance(rows, list):
        raise CalendarParseError("Academic calendar data is not a list")
    return [row for row in rows if isinstance(row, dict)]


def extract_quarter_starts(rows: List[Dict[str, Any]], now=None) -> AcademicCalendar:
    """
    Quarter start dates for the academic year containing `now`.

    Falls back to the most recent academic year present when the requested
    one is missing from the data. Quarters are named with the academic year's
    start year (AQ2025, WQ2025, SQ2025, SUMMER 2025 for 2025-2026).
    """
    requested = academic_year_label(now)
    years = sorted({row.get(YEAR_FIELD) for row in rows if row.get(YEAR_FIELD)})
    if not years:
        logger.warning("Academic calendar has no academic-year rows")
        return AcademicCalendar(requested_year=requested)

    target = requested
    if requested not in years:
        target = years[-1]
        logger.warning(f"Academic year {requested} not found in calendar, using {target}")

    start_year = target.split("-")[0]
    year_rows = [row for row in rows if row.get(YEAR_FIELD) == target]

    quarters = {}
    for name in QUARTER_ORDER:
        pattern = re.compile(rf"BEGIN {QUARTER_ABBREVIATIONS[name]}\s*{start_year}", re.IGNORECASE)
        begin = next((row for row in year_rows if pattern.search(row.get(TITLE_FIELD) or "")), None)
        if begin is None:
            logger.debug(f"No begin event for {name} {start_year}")
            continue
        start = to_local_timestamp(begin.get(DATE_FIELD))
        if pd.isna(start):
            logger.debug(f"Unusable date for {name} begin event: {begin.get(DATE_FIELD)!r}")
            continue
        quarters[name] = QuarterStart(start=start, display_name=name.title())

    logger.info(f"Extracted {len(quarters)} quarter start date(s) for {target}")
    return AcademicCalendar(quarters=quarters, academic_year=target, requested_year=requested)


class CalendarProvider:
    """Fetches the academic calendar page. Failures yield an empty calendar."""

    def __init__(self, url: Optional[str] = None,
                 http: Optional[requests.Session] = None,
                 timeout: Optional[int] = None):
        self.url = url or config.calendar_url
        self.http = http or requests.Session()
        self.timeout = timeout or config.request_timeout_seconds

    def fetch_page(self) -> str:
        response = self.http.get(self.url, headers=_BROWSER_HEADERS, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    def current_academic_calendar(self, now=None) -> AcademicCalendar:
        try:
            html = self.fetch_page()
            logger.info(f"Fetched academic calendar page ({len(html)} characters)")
            return extract_quarter_starts(extract_calendar_rows(html), now)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching academic calendar: {e}")
        except CalendarParseError as e:
            logger.error(f"Error parsing academic calendar: {e}")
        return AcademicCalendar.empty()
