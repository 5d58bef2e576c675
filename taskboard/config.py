"""
Application configuration management.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path("./data")


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


@dataclass
class AppConfig:
    """Application configuration with environment overrides."""

    # Paths
    data_dir: Path = field(default_factory=_default_data_dir)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Local time zone used for week/quarter boundaries
    timezone: str = field(default_factory=lambda: os.getenv("TASKBOARD_TIMEZONE", "America/Chicago"))

    # Budget defaults
    default_allowed_hours: float = field(default_factory=lambda: _env_float("DEFAULT_ALLOWED_HOURS", "0"))

    # When I Work scheduling service
    wheniwork_api_key: str = field(default_factory=lambda: os.getenv("WHENIWORK_API_KEY", ""))
    wheniwork_email: str = field(default_factory=lambda: os.getenv("WHENIWORK_EMAIL", ""))
    wheniwork_password: str = field(default_factory=lambda: os.getenv("WHENIWORK_PASSWORD", ""))
    wheniwork_login_url: str = field(
        default_factory=lambda: os.getenv("WHENIWORK_LOGIN_URL", "https://api.login.wheniwork.com/login")
    )
    wheniwork_api_url: str = field(
        default_factory=lambda: os.getenv("WHENIWORK_API_URL", "https://api.wheniwork.com/2")
    )

    # Academic calendar page
    calendar_url: str = field(
        default_factory=lambda: os.getenv(
            "ACADEMIC_CALENDAR_URL", "https://academics.depaul.edu/calendar/Pages/default.aspx"
        )
    )

    request_timeout_seconds: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")))

    @property
    def processed_dir(self) -> Path:
        return self.data_dir / "processed"

    @property
    def has_schedule_credentials(self) -> bool:
        return bool(self.wheniwork_api_key and self.wheniwork_email and self.wheniwork_password)


# Global config instance
config = AppConfig()


# Budget derivation ratios
QUARTERS_PER_YEAR = 4
WEEKS_PER_YEAR = 52

# Reporting windows, finest first
WINDOWS = ("week", "quarter", "year")

# Academic quarters in calendar order, with their abbreviations in the calendar feed
QUARTER_ORDER = ["autumn", "winter", "spring", "summer"]
QUARTER_ABBREVIATIONS = {
    "autumn": "AQ",
    "winter": "WQ",
    "spring": "SQ",
    "summer": "SUMMER",
}

# The last quarter present ends on this date of the year after it starts
QUARTER_END_FALLBACK_MONTH = 9
QUARTER_END_FALLBACK_DAY = 1

# Academic years roll over in August
ACADEMIC_YEAR_START_MONTH = 8

# Embedded in the notes of shifts the task board creates on assignment
TASK_MANAGER_SHIFT_MARKER = "(Created via IRL Task Manager"

# Table file names
TABLE_FILES = {
    "tasks": "tasks",
    "staff": "users",
    "budget": "budget",
}

# Document-store field names mapped to canonical columns
COLUMN_ALIASES = {
    "completedDate": "completed_date",
    "assignedTo": "assigned_to",
    "allowedHours": "allowed_hours",
    "wiwUserId": "schedule_user_id",
    "fullName": "full_name",
    "dueDate": "due",
}

# Required columns (hard fail if missing)
REQUIRED_COLUMNS = {
    "tasks": [
        "id",
        "hours",
        "completed",
        "assigned_to",
    ],
    "staff": [
        "id",
    ],
    "shifts": [
        "user_id",
        "start_time",
    ],
}

# Optional columns (soft warn if missing)
OPTIONAL_COLUMNS = {
    "tasks": [
        "title",
        "due",
        "completed_date",
        "nonflexible",
    ],
    "staff": [
        "full_name",
        "email",
        "allowed_hours",
        "schedule_user_id",
    ],
    "shifts": [
        "id",
        "end_time",
        "hours",
        "notes",
    ],
}

# Formatting constants
FORMAT_HOURS = "{:,.1f}"
FORMAT_PERCENT = "{:.0f}%"
