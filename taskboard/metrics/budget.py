"""
Budget metrics pack.

Single source of truth for: used hours, remaining hours, utilisation and
over-budget flags per window, for a person, the team, or the organisation.
"""
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from taskboard.config import config, WINDOWS
from taskboard.metrics.budget_config import BudgetValues, compute_budget_values
from taskboard.metrics.windows import HourTotals


@dataclass(frozen=True)
class BudgetStatus:
    """Used hours against budget for one window."""
    window: str
    used: float
    budget: float
    remaining: float
    percent_used: float
    over_budget: bool


def percent_used(used: float, budget: float) -> float:
    """Utilisation in percent, capped at 100 for display; 0 without a budget."""
    if budget is None or budget <= 0:
        return 0.0
    return float(min(used / budget * 100, 100.0))


def reconcile_window(task_hours: float,
                     schedule_hours: float,
                     budget: Optional[float],
                     window: str = "week") -> BudgetStatus:
    """
    Combine task and schedule hours for one window against its budget.

    remaining is not clamped and goes negative when over budget.
    """
    used = float(task_hours or 0) + float(schedule_hours or 0)
    budget = float(budget or 0)
    remaining = budget - used
    return BudgetStatus(
        window=window,
        used=used,
        budget=budget,
        remaining=remaining,
        percent_used=percent_used(used, budget),
        over_budget=remaining < 0,
    )


def reconcile(task_totals: HourTotals,
              schedule_totals: HourTotals,
              budget: Optional[BudgetValues]) -> Dict[str, BudgetStatus]:
    """Reconcile week, quarter and year independently. No budget means a budget of 0."""
    return {
        window: reconcile_window(
            task_totals.get(window),
            schedule_totals.get(window),
            budget.for_window(window) if budget is not None else 0,
            window=window,
        )
        for window in WINDOWS
    }


def staff_budget_values(allowed_hours, default_allowed_hours: Optional[float] = None) -> BudgetValues:
    """Per-person budgets from the weekly allowed hours (default applied when absent)."""
    default = config.default_allowed_hours if default_allowed_hours is None else default_allowed_hours
    resolved = compute_budget_values({"weekly": allowed_hours})
    if resolved is None:
        resolved = compute_budget_values({"weekly": default}) or BudgetValues(0, 0, 0)
    return resolved


def compute_staff_budget(staff: pd.DataFrame,
                         task_hours: pd.DataFrame,
                         schedule_hours: pd.DataFrame,
                         default_allowed_hours: Optional[float] = None) -> pd.DataFrame:
    """
    Compute budget metrics per staff member.

    Args:
        staff: Canonical staff frame (id, full_name, allowed_hours, schedule_user_id)
        task_hours: Output of compute_staff_task_hours
        schedule_hours: Output of compute_user_schedule_hours

    Returns DataFrame with, for each window w in week/quarter/year:
    - task_hours_w, schedule_hours_w
    - used_w: task + schedule
    - budget_w: allowed hours (week) and the quarter/year budgets derived from them
    - remaining_w: budget - used (negative when over)
    - percent_used_w: capped at 100
    - over_budget_w
    """
    if "id" not in staff.columns:
        return pd.DataFrame()

    default = config.default_allowed_hours if default_allowed_hours is None else default_allowed_hours
    result = staff[["id"]].rename(columns={"id": "staff_id"}).copy()
    for col in ["full_name", "allowed_hours", "schedule_user_id"]:
        result[col] = staff[col].values if col in staff.columns else None

    result = result.merge(
        task_hours.rename(columns={w: f"task_hours_{w}" for w in WINDOWS}),
        on="staff_id", how="left",
    )
    result = result.merge(
        schedule_hours.rename(columns={w: f"schedule_hours_{w}" for w in WINDOWS}),
        on="schedule_user_id", how="left",
    )

    if "active_task_count" in result.columns:
        result["active_task_count"] = result["active_task_count"].fillna(0).astype(int)
    else:
        result["active_task_count"] = 0

    budgets = result["allowed_hours"].map(lambda h: staff_budget_values(h, default))

    for window in WINDOWS:
        task_col, sched_col = f"task_hours_{window}", f"schedule_hours_{window}"
        for col in [task_col, sched_col]:
            if col not in result.columns:
                result[col] = 0.0
            result[col] = result[col].fillna(0.0).astype(float)

        result[f"used_{window}"] = result[task_col] + result[sched_col]
        result[f"budget_{window}"] = budgets.map(lambda b: b.for_window(window)).astype(float)

        result[f"remaining_{window}"] = result[f"budget_{window}"] - result[f"used_{window}"]
        result[f"percent_used_{window}"] = np.where(
            result[f"budget_{window}"] > 0,
            np.minimum(result[f"used_{window}"] / result[f"budget_{window}"].replace(0, np.nan) * 100, 100),
            0,
        )
        result[f"over_budget_{window}"] = result[f"remaining_{window}"] < 0

    return result


def compute_budget_summary(staff_budget: pd.DataFrame, window: str = "week") -> Dict[str, float]:
    """
    Aggregate team summary for one window.
    """
    if len(staff_budget) == 0:
        return {}

    used = staff_budget[f"used_{window}"].sum()
    budget = staff_budget[f"budget_{window}"].sum()
    return {
        "total_staff": len(staff_budget),
        "total_budget": budget,
        "task_hours": staff_budget[f"task_hours_{window}"].sum(),
        "schedule_hours": staff_budget[f"schedule_hours_{window}"].sum(),
        "used": used,
        "remaining": budget - used,
        "percent_used": percent_used(used, budget),
        "over_budget_count": int(staff_budget[f"over_budget_{window}"].sum()),
    }


def get_over_budget_staff(staff_budget: pd.DataFrame, window: str = "week") -> pd.DataFrame:
    """
    Get staff members over budget in a window, most over first.
    """
    if len(staff_budget) == 0:
        return staff_budget

    return staff_budget[staff_budget[f"over_budget_{window}"]].sort_values(f"remaining_{window}")


def get_staff_with_headroom(staff_budget: pd.DataFrame,
                            min_remaining: float = 1,
                            window: str = "week") -> pd.DataFrame:
    """
    Get staff members with at least `min_remaining` hours left, most first.
    """
    if len(staff_budget) == 0:
        return staff_budget

    return staff_budget[staff_budget[f"remaining_{window}"] >= min_remaining].sort_values(
        f"remaining_{window}", ascending=False
    )
