"""
Task hours metrics pack.

Single source of truth for: hours from task records per week, quarter and
academic year, for one person, a group, or the whole organisation.
"""
import logging
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from taskboard.data.schema import to_bool
from taskboard.data.semantic import assigned_mask, explode_assignees
from taskboard.metrics.windows import (
    HourTotals,
    ReportingWindows,
    totals_by_key,
    totals_from_masks,
    window_masks,
)

logger = logging.getLogger(__name__)


class CountingMode(str, Enum):
    """Which tasks count toward used hours."""
    COMPLETED_ONLY = "completed_only"
    COMPLETED_PLUS_ACTIVE = "completed_plus_active"


def _coerce_mode(mode) -> CountingMode:
    return mode if isinstance(mode, CountingMode) else CountingMode(mode)


def _as_ids(staff_ids: Optional[Iterable[str]]) -> Optional[list]:
    return None if staff_ids is None else [str(s) for s in staff_ids]


def task_hours(tasks: pd.DataFrame) -> pd.Series:
    """Numeric hours per task; missing or non-numeric hours count as 0."""
    if "hours" not in tasks.columns:
        return pd.Series(0.0, index=tasks.index)
    return pd.to_numeric(tasks["hours"], errors="coerce").fillna(0.0).clip(lower=0.0)


def completed_flags(tasks: pd.DataFrame) -> pd.Series:
    if "completed" not in tasks.columns:
        return pd.Series(False, index=tasks.index)
    return tasks["completed"].map(to_bool).astype(bool)


def attribution_dates(tasks: pd.DataFrame, mode=CountingMode.COMPLETED_ONLY) -> pd.Series:
    """
    The date each task is attributed to a window by.

    - completed: completed_date, falling back to due for legacy records
    - active: due, only when counting active tasks
    Tasks that do not count, or have no usable date, get NaT.
    """
    mode = _coerce_mode(mode)
    nat = pd.Series(pd.NaT, index=tasks.index, dtype="datetime64[ns]")

    completed = completed_flags(tasks)
    completed_date = pd.to_datetime(tasks["completed_date"], errors="coerce") if "completed_date" in tasks.columns else nat
    due = pd.to_datetime(tasks["due"], errors="coerce") if "due" in tasks.columns else nat

    dates = nat.copy()
    dates[completed] = completed_date[completed].fillna(due[completed])
    if mode == CountingMode.COMPLETED_PLUS_ACTIVE:
        active = ~completed
        dates[active] = due[active]
    return dates


def _log_skipped(tasks: pd.DataFrame, dates: pd.Series, mode: CountingMode) -> None:
    completed = completed_flags(tasks)
    counted = completed if mode == CountingMode.COMPLETED_ONLY else pd.Series(True, index=tasks.index)
    skipped = counted & dates.isna()
    if skipped.any():
        titles = tasks.loc[skipped, "title"].tolist() if "title" in tasks.columns else []
        logger.debug(f"Skipping {int(skipped.sum())} task(s) with no usable date: {titles}")


def filter_assigned_tasks(tasks: pd.DataFrame, staff_ids: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Tasks assigned to any of `staff_ids` (all tasks when None)."""
    return tasks[assigned_mask(tasks, staff_ids)]


def aggregate_task_hours(tasks: pd.DataFrame,
                         windows: ReportingWindows,
                         mode=CountingMode.COMPLETED_ONLY,
                         staff_ids: Optional[Iterable[str]] = None) -> HourTotals:
    """
    Sum task hours into week, quarter and academic year.

    Args:
        tasks: Canonical task frame (see ensure_task_columns)
        windows: Resolved reporting windows
        mode: COMPLETED_ONLY or COMPLETED_PLUS_ACTIVE
        staff_ids: Restrict to tasks assigned to these people; None = organisation-wide

    Returns:
        HourTotals with per-window hours and contributing task counts
    """
    mode = _coerce_mode(mode)
    staff_ids = _as_ids(staff_ids)
    scoped = filter_assigned_tasks(tasks, staff_ids).reset_index(drop=True)
    if len(scoped) == 0:
        return HourTotals.zero()

    dates = attribution_dates(scoped, mode)
    _log_skipped(scoped, dates, mode)

    return totals_from_masks(task_hours(scoped), window_masks(dates, windows))


def compute_staff_task_hours(tasks: pd.DataFrame,
                             windows: ReportingWindows,
                             mode=CountingMode.COMPLETED_ONLY,
                             staff_ids: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Task hours per staff member.

    Returns DataFrame with:
    - staff_id
    - week, quarter, year: attributed task hours
    - active_task_count: open tasks currently assigned
    """
    mode = _coerce_mode(mode)
    staff_ids = _as_ids(staff_ids)
    scoped = filter_assigned_tasks(tasks, staff_ids)
    per_staff = explode_assignees(scoped).reset_index(drop=True)
    if staff_ids is not None:
        per_staff = per_staff[per_staff["staff_id"].isin(staff_ids)].reset_index(drop=True)

    dates = attribution_dates(per_staff, mode)
    result = totals_by_key(per_staff["staff_id"], task_hours(per_staff), window_masks(dates, windows))

    if "completed" in per_staff.columns and len(per_staff) > 0:
        open_counts = (
            per_staff[~completed_flags(per_staff)]
            .groupby("staff_id").size().rename("active_task_count").reset_index()
        )
        result = result.merge(open_counts, on="staff_id", how="left")
    else:
        result["active_task_count"] = np.nan
    result["active_task_count"] = result["active_task_count"].fillna(0).astype(int)

    return result
