"""
Tests for task hour aggregation.
"""
import pytest
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.data.schema import ensure_task_columns
from taskboard.data.semantic import explode_assignees
from taskboard.metrics.task_hours import (
    CountingMode,
    aggregate_task_hours,
    attribution_dates,
    compute_staff_task_hours,
)
from taskboard.metrics.windows import resolve_windows


CALENDAR = {
    "autumn": pd.Timestamp("2026-09-14"),
    "winter": pd.Timestamp("2027-01-04"),
    "spring": pd.Timestamp("2027-03-29"),
    "summer": pd.Timestamp("2027-06-14"),
}

NOW = pd.Timestamp("2026-10-21 12:00")


def make_tasks(rows):
    return ensure_task_columns(pd.DataFrame(rows))


@pytest.fixture
def windows():
    return resolve_windows(NOW, CALENDAR)


@pytest.fixture
def tasks():
    return make_tasks([
        # completed this week
        {"id": "t1", "hours": 4, "completed": True, "completed_date": "2026-10-19T15:00:00",
         "due": "2026-10-30", "assigned_to": ["alice"]},
        # completed earlier in the quarter
        {"id": "t2", "hours": 3, "completed": True, "completed_date": "2026-10-02",
         "assigned_to": ["alice", "bob"]},
        # active, due this week
        {"id": "t3", "hours": 5, "completed": False, "due": "2026-10-23", "assigned_to": ["bob"]},
        # completed in a later quarter of the year
        {"id": "t4", "hours": 2, "completed": True, "completed_date": "2027-02-10",
         "assigned_to": ["alice"]},
    ])


class TestAttributionDates:
    """Tests for which date a task is attributed by."""

    def test_completed_uses_completed_date(self, tasks):
        dates = attribution_dates(tasks)

        assert dates[0] == pd.Timestamp("2026-10-19 15:00")

    def test_legacy_completed_falls_back_to_due(self):
        tasks = make_tasks([{"id": "t", "hours": 1, "completed": True, "due": "2026-10-20"}])

        assert attribution_dates(tasks)[0] == pd.Timestamp("2026-10-20")

    def test_active_ignored_in_completed_only(self, tasks):
        assert pd.isna(attribution_dates(tasks, CountingMode.COMPLETED_ONLY)[2])

    def test_active_uses_due_when_counted(self, tasks):
        dates = attribution_dates(tasks, CountingMode.COMPLETED_PLUS_ACTIVE)

        assert dates[2] == pd.Timestamp("2026-10-23")

    def test_mode_accepts_string(self, tasks):
        dates = attribution_dates(tasks, "completed_plus_active")

        assert dates[2] == pd.Timestamp("2026-10-23")


class TestAggregateTaskHours:
    """Tests for per-window task totals."""

    def test_completed_only(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows)

        assert totals.week == pytest.approx(4.0)
        assert totals.quarter == pytest.approx(7.0)
        assert totals.year == pytest.approx(9.0)

    def test_completed_plus_active(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows, CountingMode.COMPLETED_PLUS_ACTIVE)

        assert totals.week == pytest.approx(9.0)
        assert totals.quarter == pytest.approx(12.0)
        assert totals.year == pytest.approx(14.0)

    def test_scoped_to_staff(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows, staff_ids=["bob"])

        assert totals.week == pytest.approx(0.0)
        assert totals.quarter == pytest.approx(3.0)

    def test_staff_ids_from_generator(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows, staff_ids=(s for s in ["alice"]))

        assert totals.year == pytest.approx(9.0)

    def test_unknown_staff_is_zero(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows, staff_ids=["nobody"])

        assert totals.as_dict() == {"week": 0.0, "quarter": 0.0, "year": 0.0}

    def test_shared_task_counted_once_organisation_wide(self, tasks, windows):
        totals = aggregate_task_hours(tasks, windows)

        assert totals.quarter_count == 2

    def test_missing_dates_skipped(self, windows):
        tasks = make_tasks([
            {"id": "t1", "hours": 6, "completed": True, "assigned_to": ["alice"]},
            {"id": "t2", "hours": 1, "completed": True, "completed_date": "2026-10-19",
             "assigned_to": ["alice"]},
        ])

        totals = aggregate_task_hours(tasks, windows)

        assert totals.week == pytest.approx(1.0)
        assert totals.year == pytest.approx(1.0)

    def test_non_numeric_hours_count_as_zero(self, windows):
        tasks = make_tasks([
            {"id": "t1", "hours": "lots", "completed": True, "completed_date": "2026-10-19"},
            {"id": "t2", "hours": "2.5", "completed": True, "completed_date": "2026-10-19"},
        ])

        assert aggregate_task_hours(tasks, windows).week == pytest.approx(2.5)

    def test_without_calendar_only_week(self, tasks):
        windows = resolve_windows(NOW, None)

        totals = aggregate_task_hours(tasks, windows)

        assert totals.week == pytest.approx(4.0)
        assert totals.quarter == pytest.approx(0.0)
        assert totals.year == pytest.approx(0.0)

    def test_empty_tasks(self, windows):
        totals = aggregate_task_hours(make_tasks([]), windows)

        assert totals.year == 0.0

    def test_aware_reference_time(self, tasks):
        windows = resolve_windows(pd.Timestamp("2026-10-21T17:00:00Z"), CALENDAR)

        totals = aggregate_task_hours(tasks, windows)

        assert totals.week == pytest.approx(4.0)
        assert totals.quarter == pytest.approx(7.0)

    def test_repeated_assignee_counted_once(self, windows):
        tasks = make_tasks([
            {"id": "t1", "hours": 3, "completed": True, "completed_date": "2026-10-19",
             "assigned_to": ["alice", "alice"]},
        ])

        totals = aggregate_task_hours(tasks, windows, staff_ids=["alice"])

        assert totals.week == pytest.approx(3.0)


class TestStaffTaskHours:
    """Tests for the per-staff task table."""

    def test_shared_task_counts_for_each_assignee(self, tasks, windows):
        result = compute_staff_task_hours(tasks, windows).set_index("staff_id")

        assert result.loc["alice", "quarter"] == pytest.approx(7.0)
        assert result.loc["bob", "quarter"] == pytest.approx(3.0)

    def test_active_task_count(self, tasks, windows):
        result = compute_staff_task_hours(tasks, windows).set_index("staff_id")

        assert result.loc["bob", "active_task_count"] == 1
        assert result.loc["alice", "active_task_count"] == 0

    def test_unassigned_tasks_dropped(self, windows):
        tasks = make_tasks([
            {"id": "t1", "hours": 1, "completed": True, "completed_date": "2026-10-19"},
        ])

        result = compute_staff_task_hours(tasks, windows)

        assert len(result) == 0

    def test_repeated_assignee_counted_once(self, windows):
        tasks = make_tasks([
            {"id": "t1", "hours": 3, "completed": True, "completed_date": "2026-10-19",
             "assigned_to": ["alice", "alice"]},
        ])

        result = compute_staff_task_hours(tasks, windows).set_index("staff_id")

        assert result.loc["alice", "week"] == pytest.approx(3.0)
        assert len(result) == 1

    def test_explode_keeps_one_row_per_assignee(self):
        tasks = pd.DataFrame({
            "id": ["t1", "t2"],
            "hours": [3.0, 1.0],
            "assigned_to": [["alice", "bob", "alice"], ["alice"]],
        })

        result = explode_assignees(tasks)

        assert list(zip(result["id"], result["staff_id"])) == [
            ("t1", "alice"), ("t1", "bob"), ("t2", "alice"),
        ]
