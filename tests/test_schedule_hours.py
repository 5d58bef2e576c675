"""
Tests for scheduled shift hours.
"""
import pytest
import pandas as pd
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.config import TASK_MANAGER_SHIFT_MARKER
from taskboard.data.schema import ensure_shift_columns
from taskboard.data.semantic import task_manager_shift_mask
from taskboard.integrations.wheniwork import ScheduleProviderError
from taskboard.metrics.schedule_hours import (
    ScheduleHourAggregator,
    aggregate_schedule_hours,
    compute_user_schedule_hours,
    shift_durations,
    shift_fetch_range,
)
from taskboard.metrics.windows import resolve_windows


CALENDAR = {
    "autumn": pd.Timestamp("2026-09-14"),
    "winter": pd.Timestamp("2027-01-04"),
}

NOW = pd.Timestamp("2026-10-21 12:00")


@pytest.fixture
def windows():
    return resolve_windows(NOW, CALENDAR)


@pytest.fixture
def shifts():
    return ensure_shift_columns(pd.DataFrame([
        {"id": 1, "user_id": 11, "start_time": "2026-10-19 09:00", "end_time": "2026-10-19 13:00",
         "notes": "Front desk"},
        {"id": 2, "user_id": 11, "start_time": "2026-10-20 09:00", "end_time": "2026-10-20 12:00",
         "notes": f"Laser cutter repair {TASK_MANAGER_SHIFT_MARKER} by Alice)"},
        {"id": 3, "user_id": 22, "start_time": "2026-10-05 10:00", "end_time": "2026-10-05 12:00",
         "notes": None},
        {"id": 4, "user_id": 22, "start_time": "2027-01-12 10:00", "end_time": "2027-01-12 18:00",
         "hours": 6},
    ]))


class FakeSession:
    """Stands in for WhenIWorkSession."""

    def __init__(self, shifts=None, error=None):
        self.shifts = shifts if shifts is not None else ensure_shift_columns(pd.DataFrame())
        self.error = error
        self.loaded_range = None
        self.calls = []

    def covers(self, start, end):
        if self.loaded_range is None:
            return False
        return self.loaded_range[0] <= start and end <= self.loaded_range[1]

    def load_schedule(self, start, end):
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        self.loaded_range = (start, end)
        return self.shifts


class TestShiftDurations:
    """Tests for shift length."""

    def test_from_start_and_end(self, shifts):
        durations = shift_durations(shifts)

        assert durations[0] == pytest.approx(4.0)
        assert durations[2] == pytest.approx(2.0)

    def test_explicit_hours_win(self, shifts):
        assert shift_durations(shifts)[3] == pytest.approx(6.0)

    def test_negative_and_missing_are_zero(self):
        shifts = ensure_shift_columns(pd.DataFrame([
            {"user_id": 1, "start_time": "2026-10-19 13:00", "end_time": "2026-10-19 09:00"},
            {"user_id": 1, "start_time": "2026-10-19 13:00"},
        ]))

        assert shift_durations(shifts).tolist() == [0.0, 0.0]


class TestProvenance:
    """Tests for excluding task-board-created shifts."""

    def test_marker_detected(self, shifts):
        assert task_manager_shift_mask(shifts).tolist() == [False, True, False, False]

    def test_marker_is_case_sensitive(self):
        shifts = ensure_shift_columns(pd.DataFrame([
            {"user_id": 1, "notes": TASK_MANAGER_SHIFT_MARKER.lower()},
        ]))

        assert not task_manager_shift_mask(shifts).any()


class TestAggregateScheduleHours:
    """Tests for per-window shift totals."""

    def test_marker_shifts_excluded(self, shifts, windows):
        totals = aggregate_schedule_hours(shifts, windows, user_ids=["11"])

        assert totals.week == pytest.approx(4.0)

    def test_windows(self, shifts, windows):
        totals = aggregate_schedule_hours(shifts, windows)

        assert totals.week == pytest.approx(4.0)
        assert totals.quarter == pytest.approx(6.0)
        assert totals.year == pytest.approx(12.0)

    def test_numeric_user_ids(self, shifts, windows):
        totals = aggregate_schedule_hours(shifts, windows, user_ids=[22])

        assert totals.year == pytest.approx(8.0)

    def test_per_user(self, shifts, windows):
        result = compute_user_schedule_hours(shifts, windows).set_index("schedule_user_id")

        assert result.loc["11", "week"] == pytest.approx(4.0)
        assert result.loc["22", "quarter"] == pytest.approx(2.0)


class TestShiftFetchRange:
    """Tests for the shift fetch date range."""

    def test_academic_year_when_known(self, windows):
        start, end = shift_fetch_range(windows)

        assert start == pd.Timestamp("2026-09-14")
        assert end == pd.Timestamp("2027-09-13")

    def test_august_fallback(self):
        windows = resolve_windows(NOW, None)

        start, end = shift_fetch_range(windows)

        assert start == pd.Timestamp("2026-08-01")
        assert end == pd.Timestamp("2027-07-31")

    def test_includes_current_week(self):
        # Week starts Sunday July 26, before the August fallback start
        windows = resolve_windows(pd.Timestamp("2026-08-01 10:00"), None)

        start, _ = shift_fetch_range(windows)

        assert start == pd.Timestamp("2026-07-26")


class TestScheduleHourAggregator:
    """Tests for the fail-soft aggregator."""

    def test_aggregate_user(self, shifts, windows):
        aggregator = ScheduleHourAggregator(session=FakeSession(shifts))

        totals = aggregator.aggregate("22", windows)

        assert totals.year == pytest.approx(8.0)

    def test_loads_once(self, shifts, windows):
        session = FakeSession(shifts)
        aggregator = ScheduleHourAggregator(session=session)

        aggregator.aggregate("11", windows)
        aggregator.aggregate("22", windows)

        assert len(session.calls) == 1

    def test_provider_failure_is_zero(self, windows):
        session = FakeSession(error=ScheduleProviderError("login failed"))
        aggregator = ScheduleHourAggregator(session=session)

        totals = aggregator.aggregate("11", windows)

        assert totals.as_dict() == {"week": 0.0, "quarter": 0.0, "year": 0.0}

    def test_provider_failure_per_user_empty(self, windows):
        session = FakeSession(error=ScheduleProviderError("timeout"))
        aggregator = ScheduleHourAggregator(session=session)

        result = aggregator.per_user(windows)

        assert len(result) == 0
        assert "schedule_user_id" in result.columns
