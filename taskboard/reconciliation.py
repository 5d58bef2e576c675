"""
Hour budget reconciliation service.

Combines the task store, the staff store, the scheduling service and the
academic calendar into per-person, team and organisation hour reports.
Provider failures degrade to zero hours or unknown windows; they never abort a
report.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import pandas as pd

from taskboard.config import config, WINDOWS
from taskboard.data.schema import ensure_staff_columns, ensure_task_columns, local_now
from taskboard.integrations.academic_calendar import AcademicCalendar, CalendarProvider
from taskboard.metrics.budget import (
    BudgetStatus,
    compute_staff_budget,
    reconcile,
    staff_budget_values,
)
from taskboard.metrics.budget_config import BudgetValues
from taskboard.metrics.schedule_hours import ScheduleHourAggregator
from taskboard.metrics.task_hours import (
    CountingMode,
    aggregate_task_hours,
    compute_staff_task_hours,
)
from taskboard.metrics.windows import HourTotals, ReportingWindows, resolve_windows

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def list_tasks(self) -> pd.DataFrame: ...


class StaffStore(Protocol):
    def list_staff(self) -> pd.DataFrame: ...

    def get_staff(self, staff_id) -> Optional[Dict[str, Any]]: ...


class BudgetStore(Protocol):
    def get_budget(self) -> Dict[str, Any]: ...


@dataclass
class HourReport:
    """Reconciled hours for one scope (a person or the organisation)."""
    scope: str
    windows: ReportingWindows
    task_hours: HourTotals
    schedule_hours: HourTotals
    budget: Optional[BudgetValues]
    status: Dict[str, BudgetStatus] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for window in WINDOWS:
            status = self.status[window]
            bounds = self.windows.get(window)
            rows.append({
                "window": window,
                "start": bounds.start if bounds is not None else pd.NaT,
                "end": bounds.end if bounds is not None else pd.NaT,
                "task_hours": self.task_hours.get(window),
                "schedule_hours": self.schedule_hours.get(window),
                "used": status.used,
                "budget": status.budget,
                "remaining": status.remaining,
                "percent_used": status.percent_used,
                "over_budget": status.over_budget,
            })
        return pd.DataFrame(rows)


class HourBudgetService:
    """
    Entry point for hour reconciliation.

    `schedule` and `calendar_provider` are optional: without them schedule hours
    are 0 and quarter/year windows are unknown.
    """

    def __init__(self,
                 task_store: TaskStore,
                 staff_store: StaffStore,
                 budget_store: Optional[BudgetStore] = None,
                 schedule: Optional[ScheduleHourAggregator] = None,
                 calendar_provider: Optional[CalendarProvider] = None,
                 default_allowed_hours: Optional[float] = None):
        self.task_store = task_store
        self.staff_store = staff_store
        self.budget_store = budget_store
        self.schedule = schedule
        self.calendar_provider = calendar_provider
        self.default_allowed_hours = (
            config.default_allowed_hours if default_allowed_hours is None else default_allowed_hours
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def academic_calendar(self, now) -> AcademicCalendar:
        if self.calendar_provider is None:
            return AcademicCalendar.empty()
        calendar = self.calendar_provider.current_academic_calendar(now)
        if calendar.is_empty:
            logger.warning("No academic calendar data; quarter and year hours will be 0")
        return calendar

    def resolve_windows(self, now=None) -> ReportingWindows:
        now = local_now(now)
        return resolve_windows(now, self.academic_calendar(now))

    def _tasks(self) -> pd.DataFrame:
        return ensure_task_columns(self.task_store.list_tasks())

    def _staff(self) -> pd.DataFrame:
        return ensure_staff_columns(self.staff_store.list_staff())

    def _schedule_totals(self, schedule_user_id, windows: ReportingWindows) -> HourTotals:
        if self.schedule is None:
            return HourTotals.zero()
        return self.schedule.aggregate(schedule_user_id, windows)

    def organization_budget(self) -> Optional[BudgetValues]:
        if self.budget_store is None:
            return None
        return BudgetValues.from_record(self.budget_store.get_budget())

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def staff_report(self, staff_id, now=None,
                     mode=CountingMode.COMPLETED_ONLY,
                     windows: Optional[ReportingWindows] = None) -> HourReport:
        """Hours and budget status for one staff member."""
        member = self.staff_store.get_staff(staff_id)
        if member is None:
            raise KeyError(f"Unknown staff member: {staff_id}")

        member = ensure_staff_columns(pd.DataFrame([member])).iloc[0]
        windows = windows or self.resolve_windows(now)

        task_totals = aggregate_task_hours(self._tasks(), windows, mode, staff_ids=[member["id"]])

        schedule_user_id = member["schedule_user_id"]
        if pd.isna(schedule_user_id):
            logger.info(f"Staff member {member['id']} has no schedule link; schedule hours are 0")
            schedule_totals = HourTotals.zero()
        else:
            schedule_totals = self._schedule_totals(schedule_user_id, windows)

        budget = staff_budget_values(member["allowed_hours"], self.default_allowed_hours)
        return HourReport(
            scope=str(member["id"]),
            windows=windows,
            task_hours=task_totals,
            schedule_hours=schedule_totals,
            budget=budget,
            status=reconcile(task_totals, schedule_totals, budget),
        )

    def organization_report(self, now=None,
                            mode=CountingMode.COMPLETED_ONLY,
                            windows: Optional[ReportingWindows] = None) -> HourReport:
        """Hours across every task and every scheduled shift against the organisation budget."""
        windows = windows or self.resolve_windows(now)

        task_totals = aggregate_task_hours(self._tasks(), windows, mode)
        schedule_totals = self._schedule_totals(None, windows)
        budget = self.organization_budget()
        if budget is None:
            logger.warning("No organisation budget configured; budgets are 0")

        return HourReport(
            scope="organization",
            windows=windows,
            task_hours=task_totals,
            schedule_hours=schedule_totals,
            budget=budget,
            status=reconcile(task_totals, schedule_totals, budget),
        )

    def team_table(self, now=None,
                   mode=CountingMode.COMPLETED_ONLY,
                   windows: Optional[ReportingWindows] = None) -> pd.DataFrame:
        """Budget metrics for every staff member (see compute_staff_budget)."""
        windows = windows or self.resolve_windows(now)
        staff = self._staff()

        task_hours = compute_staff_task_hours(self._tasks(), windows, mode)
        if self.schedule is not None:
            schedule_hours = self.schedule.per_user(windows)
        else:
            schedule_hours = pd.DataFrame(columns=["schedule_user_id"] + list(WINDOWS))

        return compute_staff_budget(staff, task_hours, schedule_hours, self.default_allowed_hours)
