"""
Semantic layer: assignment and provenance rules shared by the hour aggregators.

CRITICAL: Both aggregators must use these helpers so task hours and shift hours
are never counted twice for the same work.
"""
from typing import Iterable, Optional

import pandas as pd

from taskboard.config import TASK_MANAGER_SHIFT_MARKER


# =============================================================================
# SHIFT PROVENANCE
# =============================================================================
# Assigning a task creates a shift in the scheduling service with the marker in
# its notes. The task's hours are already counted from the task record.

def task_manager_shift_mask(shifts: pd.DataFrame, marker: str = TASK_MANAGER_SHIFT_MARKER) -> pd.Series:
    """
    Returns boolean mask where True = shift should be EXCLUDED (created by the task board).
    Usage: shifts_filtered = shifts[~task_manager_shift_mask(shifts)]
    """
    if "notes" not in shifts.columns:
        return pd.Series(False, index=shifts.index)

    return shifts["notes"].astype("string").str.contains(marker, case=True, regex=False, na=False).astype(bool)


def exclude_task_manager_shifts(shifts: pd.DataFrame, marker: str = TASK_MANAGER_SHIFT_MARKER) -> pd.DataFrame:
    """Return shifts with task-board-created shifts removed."""
    return shifts[~task_manager_shift_mask(shifts, marker)].copy()


# =============================================================================
# ASSIGNMENT
# =============================================================================

def assigned_mask(tasks: pd.DataFrame, staff_ids: Optional[Iterable[str]]) -> pd.Series:
    """
    True where the task is assigned to any of `staff_ids`.
    None selects every task (organisation-wide view).
    """
    if staff_ids is None:
        return pd.Series(True, index=tasks.index)
    if "assigned_to" not in tasks.columns:
        return pd.Series(False, index=tasks.index)

    wanted = {str(s) for s in staff_ids}
    return tasks["assigned_to"].map(lambda ids: bool(wanted.intersection(ids or []))).astype(bool)


def explode_assignees(tasks: pd.DataFrame, column: str = "staff_id") -> pd.DataFrame:
    """
    One row per (task, assignee). Unassigned tasks are dropped.
    A task shared by two people contributes its full hours to each of them.
    """
    if len(tasks) == 0 or "assigned_to" not in tasks.columns:
        return tasks.assign(**{column: pd.Series(dtype="object")}).iloc[0:0]

    exploded = tasks.explode("assigned_to")
    exploded = exploded[exploded["assigned_to"].notna()]
    # an id listed twice on one task still counts once
    repeated = pd.Series(list(zip(exploded.index, exploded["assigned_to"]))).duplicated().to_numpy()
    exploded = exploded[~repeated]
    return exploded.rename(columns={"assigned_to": column})
