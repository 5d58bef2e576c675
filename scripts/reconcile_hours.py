#!/usr/bin/env python
"""
Print hour budget reconciliation for the organisation and the team.

Usage:
    python scripts/reconcile_hours.py
    python scripts/reconcile_hours.py --data-dir /path/to/data --offline
    python scripts/reconcile_hours.py --staff <staff id> --mode completed_plus_active
"""
import argparse
import logging
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.config import config, FORMAT_HOURS, FORMAT_PERCENT, WINDOWS
from taskboard.data.loader import FileStaffStore, FileTaskStore, JsonBudgetStore
from taskboard.data.schema import SchemaValidationError, local_now
from taskboard.integrations.academic_calendar import CalendarProvider
from taskboard.metrics.budget import compute_budget_summary, get_over_budget_staff
from taskboard.metrics.schedule_hours import ScheduleHourAggregator
from taskboard.metrics.task_hours import CountingMode
from taskboard.reconciliation import HourBudgetService


def print_report(title: str, report) -> None:
    print(title)
    print("-" * 60)
    for window in WINDOWS:
        status = report.status[window]
        bounds = report.windows.get(window)
        span = f"{bounds.start:%Y-%m-%d} to {bounds.end:%Y-%m-%d}" if bounds is not None else "unknown"
        remaining = FORMAT_HOURS.format(abs(status.remaining))
        state = "over budget" if status.over_budget else "remaining"
        print(
            f"  {window:<8} {span:<26} "
            f"used {FORMAT_HOURS.format(status.used)} of {FORMAT_HOURS.format(status.budget)} "
            f"({FORMAT_PERCENT.format(status.percent_used)}), {remaining} {state}"
        )
    print()


def main():
    parser = argparse.ArgumentParser(description="Reconcile committed hours against budgets")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Override data directory"
    )
    parser.add_argument(
        "--staff",
        type=str,
        default=None,
        help="Report a single staff member by id"
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in CountingMode],
        default=CountingMode.COMPLETED_ONLY.value,
        help="Count completed tasks only, or completed plus active tasks"
    )
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Reference time (ISO format); defaults to the current time"
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the scheduling service and the academic calendar"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    data_dir = Path(args.data_dir) if args.data_dir else config.data_dir
    try:
        now = local_now(args.now)
    except ValueError as e:
        parser.error(str(e))
    mode = CountingMode(args.mode)

    schedule = None
    calendar_provider = None
    if not args.offline:
        calendar_provider = CalendarProvider()
        if config.has_schedule_credentials:
            schedule = ScheduleHourAggregator()
        else:
            print("Scheduling service credentials not configured; schedule hours will be 0")

    service = HourBudgetService(
        task_store=FileTaskStore(data_dir),
        staff_store=FileStaffStore(data_dir),
        budget_store=JsonBudgetStore(data_dir),
        schedule=schedule,
        calendar_provider=calendar_provider,
    )

    print("=" * 60)
    print("Hour Budget Reconciliation")
    print("=" * 60)
    print(f"Source directory: {data_dir / 'processed'}")
    print(f"Reference time:   {now:%Y-%m-%d %H:%M}")
    print(f"Counting mode:    {mode.value}")
    print()

    try:
        windows = service.resolve_windows(now)

        if args.staff:
            try:
                report = service.staff_report(args.staff, mode=mode, windows=windows)
            except KeyError as e:
                print(f"ERROR: {e}")
                sys.exit(1)
            print_report(f"Staff member {args.staff}", report)
            sys.exit(0)

        print_report("Organisation", service.organization_report(mode=mode, windows=windows))

        team = service.team_table(mode=mode, windows=windows)
    except SchemaValidationError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if len(team) == 0:
        print("No staff records found")
        sys.exit(0)

    summary = compute_budget_summary(team, "week")
    print("Team (this week)")
    print("-" * 60)
    print(f"  Staff: {summary['total_staff']}")
    print(f"  Used:  {FORMAT_HOURS.format(summary['used'])} of {FORMAT_HOURS.format(summary['total_budget'])}")
    print(f"  Over budget: {summary['over_budget_count']}")
    print()

    columns = ["staff_id", "full_name", "used_week", "budget_week", "remaining_week", "active_task_count"]
    print(team[columns].to_string(index=False))
    print()

    over = get_over_budget_staff(team, "week")
    if len(over) > 0:
        print("⚠ Over budget this week:")
        for _, row in over.iterrows():
            print(f"  {row['full_name'] or row['staff_id']}: {FORMAT_HOURS.format(-row['remaining_week'])} hours over")


if __name__ == "__main__":
    main()
