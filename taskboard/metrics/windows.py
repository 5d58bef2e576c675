"""
Reporting windows: current week, academic quarter and academic year.

Single source of truth for window boundaries and the nesting rule
(week inside quarter inside year) used by every hour aggregator.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd

from taskboard.config import (
    QUARTER_ORDER,
    QUARTER_END_FALLBACK_MONTH,
    QUARTER_END_FALLBACK_DAY,
    WINDOWS,
)
from taskboard.data.schema import local_now, to_local_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) of naive local timestamps."""
    start: pd.Timestamp
    end: pd.Timestamp
    label: str = ""

    def contains(self, ts) -> bool:
        if ts is None or pd.isna(ts):
            return False
        ts = pd.Timestamp(ts)
        return self.start <= ts < self.end

    def mask(self, dates: pd.Series) -> pd.Series:
        """Boolean mask over a datetime series; NaT is never inside."""
        dates = pd.to_datetime(dates, errors="coerce")
        return ((dates >= self.start) & (dates < self.end)).fillna(False).astype(bool)


@dataclass(frozen=True)
class ReportingWindows:
    """The three windows for one point in time. Quarter/year are None when unknown."""
    now: pd.Timestamp
    week: TimeWindow
    quarter: Optional[TimeWindow] = None
    year: Optional[TimeWindow] = None

    def get(self, name: str) -> Optional[TimeWindow]:
        return getattr(self, name)


def _quarter_starts(calendar) -> Dict[str, pd.Timestamp]:
    """
    Extract {quarter name: start} from an AcademicCalendar, a mapping of
    name -> {"start": ...}, or a mapping of name -> timestamp.
    """
    if calendar is None:
        return {}
    quarters = getattr(calendar, "quarters", calendar)
    if isinstance(quarters, Mapping) and isinstance(quarters.get("quarters"), Mapping):
        quarters = quarters["quarters"]
    if not quarters:
        return {}

    starts = {}
    for name, entry in quarters.items():
        if isinstance(entry, Mapping):
            raw = entry.get("start")
        else:
            raw = getattr(entry, "start", entry)
        start = to_local_timestamp(raw)
        if pd.isna(start):
            logger.debug(f"Ignoring quarter {name} with unusable start {raw!r}")
            continue
        starts[str(name).lower()] = start
    return starts


def quarter_bounds(calendar) -> List[Tuple[str, pd.Timestamp, pd.Timestamp]]:
    """
    Ordered (name, start, end) for every quarter present.

    A quarter ends when the next present quarter starts; the last one ends on
    September 1 of the year after its start year.
    """
    starts = _quarter_starts(calendar)
    ordered = [(name, starts[name]) for name in QUARTER_ORDER if name in starts]

    bounds = []
    for i, (name, start) in enumerate(ordered):
        if i + 1 < len(ordered):
            end = ordered[i + 1][1]
        else:
            end = pd.Timestamp(
                year=start.year + 1,
                month=QUARTER_END_FALLBACK_MONTH,
                day=QUARTER_END_FALLBACK_DAY,
            )
        bounds.append((name, start, end))
    return bounds


def current_week(now=None) -> TimeWindow:
    """Sunday 00:00 local through the following Saturday, half-open."""
    now = local_now(now)
    # dayofweek: Monday=0 ... Sunday=6
    days_since_sunday = (now.dayofweek + 1) % 7
    start = now.normalize() - pd.Timedelta(days=days_since_sunday)
    return TimeWindow(start=start, end=start + pd.Timedelta(days=7), label="week")


def current_quarter(now, calendar) -> Optional[TimeWindow]:
    """The quarter containing `now`, or None when the calendar has no match."""
    now = local_now(now)
    for name, start, end in quarter_bounds(calendar):
        if start <= now < end:
            return TimeWindow(start=start, end=end, label=name)

    logger.debug(f"No academic quarter contains {now}")
    return None


def current_academic_year(now, calendar) -> Optional[TimeWindow]:
    """Autumn start to autumn start + 1 year, or None without autumn data."""
    starts = _quarter_starts(calendar)
    autumn = starts.get("autumn")
    if autumn is None:
        logger.debug("Academic calendar has no autumn quarter; academic year unknown")
        return None
    return TimeWindow(start=autumn, end=autumn + pd.DateOffset(years=1), label="year")


def resolve_windows(now=None, calendar=None) -> ReportingWindows:
    """Resolve all three windows for `now`."""
    now = local_now(now)
    return ReportingWindows(
        now=now,
        week=current_week(now),
        quarter=current_quarter(now, calendar),
        year=current_academic_year(now, calendar),
    )


def window_masks(dates: pd.Series, windows: ReportingWindows) -> Dict[str, pd.Series]:
    """
    Per-window membership masks with nesting applied.

    year    = in year
    quarter = in quarter and in year
    week    = in week and in quarter (and in year)

    A window that could not be resolved is all-False itself and places no
    constraint on the windows nested inside it, so the week still works
    without calendar data.
    """
    dates = pd.to_datetime(dates, errors="coerce")
    none = pd.Series(False, index=dates.index)

    year = windows.year.mask(dates) if windows.year is not None else None
    quarter = windows.quarter.mask(dates) if windows.quarter is not None else None
    if quarter is not None and year is not None:
        quarter = quarter & year

    week = windows.week.mask(dates)
    if quarter is not None:
        week = week & quarter
    elif year is not None:
        week = week & year

    masks = {
        "week": week,
        "quarter": quarter if quarter is not None else none,
        "year": year if year is not None else none,
    }
    return {name: masks[name] for name in WINDOWS}


# =============================================================================
# WINDOW TOTALS
# =============================================================================

@dataclass
class HourTotals:
    """Hours attributed to each window, with the number of contributing records."""
    week: float = 0.0
    quarter: float = 0.0
    year: float = 0.0
    week_count: int = 0
    quarter_count: int = 0
    year_count: int = 0

    @classmethod
    def zero(cls) -> "HourTotals":
        return cls()

    def get(self, name: str) -> float:
        return getattr(self, name)

    def as_dict(self) -> Dict[str, float]:
        return {name: self.get(name) for name in WINDOWS}


def totals_from_masks(hours: pd.Series, masks: Dict[str, pd.Series]) -> HourTotals:
    """Sum `hours` under each window mask."""
    values = {}
    for name in WINDOWS:
        mask = masks[name]
        values[name] = float(hours[mask].sum())
        values[f"{name}_count"] = int(mask.sum())
    return HourTotals(**values)


def totals_by_key(keys: pd.Series, hours: pd.Series, masks: Dict[str, pd.Series],
                  key_name: str = "staff_id") -> pd.DataFrame:
    """
    Window totals per key (e.g. per staff member).

    Returns DataFrame with one row per key and columns week, quarter, year.
    """
    columns = [key_name] + list(WINDOWS)
    if len(keys) == 0:
        return pd.DataFrame(columns=columns).astype({name: float for name in WINDOWS})

    frame = pd.DataFrame({key_name: keys.values})
    for name in WINDOWS:
        frame[name] = hours.where(masks[name], 0.0).values
    result = frame.groupby(key_name, sort=True)[list(WINDOWS)].sum().reset_index()
    return result[columns]
