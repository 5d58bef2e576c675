"""
Scheduled shift hours metrics pack.

Single source of truth for: hours from the scheduling service per week,
quarter and academic year. Shifts created by the task board on assignment are
excluded; their hours are counted from the task instead.
"""
import logging
from typing import Iterable, Optional, Tuple

import pandas as pd

from taskboard.config import ACADEMIC_YEAR_START_MONTH, TASK_MANAGER_SHIFT_MARKER
from taskboard.data.semantic import exclude_task_manager_shifts
from taskboard.integrations.wheniwork import ScheduleProviderError, WhenIWorkSession
from taskboard.metrics.windows import (
    HourTotals,
    ReportingWindows,
    totals_by_key,
    totals_from_masks,
    window_masks,
)

logger = logging.getLogger(__name__)


def shift_durations(shifts: pd.DataFrame) -> pd.Series:
    """
    Hours per shift: the explicit `hours` field when present, otherwise
    end_time - start_time. Unusable or negative durations count as 0.
    """
    if len(shifts) == 0:
        return pd.Series(dtype=float, index=shifts.index)

    explicit = (
        pd.to_numeric(shifts["hours"], errors="coerce")
        if "hours" in shifts.columns else pd.Series(float("nan"), index=shifts.index)
    )
    if "start_time" in shifts.columns and "end_time" in shifts.columns:
        span = pd.to_datetime(shifts["end_time"], errors="coerce") - pd.to_datetime(shifts["start_time"], errors="coerce")
        derived = span.dt.total_seconds() / 3600
    else:
        derived = pd.Series(float("nan"), index=shifts.index)

    return explicit.fillna(derived).fillna(0.0).clip(lower=0.0)


def _scope_shifts(shifts: pd.DataFrame,
                  user_ids: Optional[Iterable[str]],
                  marker: str) -> pd.DataFrame:
    scoped = exclude_task_manager_shifts(shifts, marker)
    if user_ids is not None:
        scoped = scoped[scoped["user_id"].isin([str(u) for u in user_ids])]
    return scoped.reset_index(drop=True)


def aggregate_schedule_hours(shifts: pd.DataFrame,
                             windows: ReportingWindows,
                             user_ids: Optional[Iterable[str]] = None,
                             marker: str = TASK_MANAGER_SHIFT_MARKER) -> HourTotals:
    """
    Sum shift hours into week, quarter and academic year, by shift start.

    Args:
        shifts: Canonical shift frame (see ensure_shift_columns)
        windows: Resolved reporting windows
        user_ids: Scheduling-service user ids in scope; None = everyone
        marker: Provenance marker of task-board-created shifts
    """
    scoped = _scope_shifts(shifts, user_ids, marker)
    if len(scoped) == 0:
        return HourTotals.zero()

    return totals_from_masks(shift_durations(scoped), window_masks(scoped["start_time"], windows))


def compute_user_schedule_hours(shifts: pd.DataFrame,
                                windows: ReportingWindows,
                                marker: str = TASK_MANAGER_SHIFT_MARKER) -> pd.DataFrame:
    """
    Shift hours per scheduling-service user.

    Returns DataFrame with: schedule_user_id, week, quarter, year
    """
    scoped = _scope_shifts(shifts, None, marker)
    return totals_by_key(
        scoped["user_id"],
        shift_durations(scoped),
        window_masks(scoped["start_time"], windows),
        key_name="schedule_user_id",
    )


def shift_fetch_range(windows: ReportingWindows) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """
    Date range to fetch shifts for: the academic year when known, otherwise
    August 1 through July 31 of the academic year containing `now`. Always
    widened to include the current week.
    """
    if windows.year is not None:
        start, end = windows.year.start, windows.year.end
    else:
        now = windows.now
        start_year = now.year if now.month >= ACADEMIC_YEAR_START_MONTH else now.year - 1
        start = pd.Timestamp(year=start_year, month=ACADEMIC_YEAR_START_MONTH, day=1)
        end = pd.Timestamp(year=start_year + 1, month=ACADEMIC_YEAR_START_MONTH, day=1)

    start = min(start, windows.week.start)
    end = max(end, windows.week.end)
    # list_shifts takes inclusive dates
    return start.normalize(), (end - pd.Timedelta(days=1)).normalize()


class ScheduleHourAggregator:
    """
    Schedule hours backed by a WhenIWorkSession.

    Fail-soft: when the scheduling service cannot be used, every window
    reports 0 and the failure is logged.
    """

    def __init__(self, session: Optional[WhenIWorkSession] = None,
                 marker: str = TASK_MANAGER_SHIFT_MARKER):
        self.session = session or WhenIWorkSession()
        self.marker = marker

    def load(self, windows: ReportingWindows) -> Optional[pd.DataFrame]:
        """Shifts covering the windows, fetching once per range. None on failure."""
        start, end = shift_fetch_range(windows)
        if self.session.covers(start, end):
            return self.session.shifts
        try:
            return self.session.load_schedule(start, end)
        except ScheduleProviderError as e:
            logger.error(f"Schedule hours unavailable, counting 0: {e}")
            return None

    def aggregate(self, user_id, windows: ReportingWindows) -> HourTotals:
        """Totals for one scheduling-service user id, or everyone when user_id is None."""
        shifts = self.load(windows)
        if shifts is None:
            return HourTotals.zero()
        user_ids = None if user_id is None else [user_id]
        return aggregate_schedule_hours(shifts, windows, user_ids=user_ids, marker=self.marker)

    def per_user(self, windows: ReportingWindows) -> pd.DataFrame:
        """Totals per scheduling-service user; empty on failure."""
        shifts = self.load(windows)
        if shifts is None:
            shifts = self.session.shifts.iloc[0:0]
        return compute_user_schedule_hours(shifts, windows, marker=self.marker)
