"""
Schema validation, column alias mapping and type normalisation.

Everything read from the document store or the scheduling service passes
through here before it reaches the metrics layer, so the metrics code can rely
on snake_case columns, numeric hours, boolean flags, id lists and naive local
timestamps.
"""
import json
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from taskboard.config import config, COLUMN_ALIASES, REQUIRED_COLUMNS, OPTIONAL_COLUMNS


class SchemaValidationError(Exception):
    """Raised when required columns are missing."""
    pass


_TRUE_STRINGS = {"true", "1", "yes", "y", "t"}


# =============================================================================
# SCALAR NORMALISERS
# =============================================================================

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (dict, list, tuple, set, np.ndarray)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_local_timestamp(value: Any, tz: Optional[str] = None) -> pd.Timestamp:
    """
    Normalise any timestamp shape to a naive local pd.Timestamp.

    Accepts Firestore-style {"seconds", "nanoseconds"} dicts, epoch
    milliseconds, ISO or RFC 2822 strings, datetime/date objects and
    pd.Timestamp. Timezone-aware values are converted to `tz` (default: the
    configured local timezone) and made naive. Unusable values become NaT.
    """
    if _is_missing(value) or isinstance(value, bool):
        return pd.NaT

    tz = tz or config.timezone
    try:
        if isinstance(value, dict):
            seconds = value.get("seconds", value.get("_seconds"))
            if seconds is None:
                return pd.NaT
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            ts = pd.Timestamp(int(seconds) * 1_000_000_000 + int(nanos), unit="ns", tz="UTC")
        elif isinstance(value, (int, float, np.integer, np.floating)):
            ts = pd.Timestamp(float(value), unit="ms", tz="UTC")
        elif isinstance(value, str):
            if not value.strip():
                return pd.NaT
            ts = pd.Timestamp(value.strip())
        elif isinstance(value, (datetime, date)):
            ts = pd.Timestamp(value)
        else:
            ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return pd.NaT

    if pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz).tz_localize(None)
    return ts


def local_now(now: Any = None, tz: Optional[str] = None) -> pd.Timestamp:
    """
    A reference time as a naive local timestamp; the current local time when
    `now` is None. Raises ValueError when `now` is not a usable timestamp.
    """
    tz = tz or config.timezone
    if now is None:
        return pd.Timestamp.now(tz=tz).tz_localize(None)
    ts = to_local_timestamp(now, tz)
    if pd.isna(ts):
        raise ValueError(f"Unusable reference time: {now!r}")
    return ts


def to_id_list(value: Any) -> List[str]:
    """
    Normalise an assignee field (list, JSON string, or delimited string) to a
    list of distinct ids in first-seen order.
    """
    return list(dict.fromkeys(_raw_id_list(value)))


def _raw_id_list(value: Any) -> List[str]:
    if _is_missing(value):
        return []
    if isinstance(value, (list, tuple, set, np.ndarray)):
        return [str(v) for v in value if not _is_missing(v) and str(v) != ""]
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v) for v in parsed if not _is_missing(v) and str(v) != ""]
    return [part.strip() for part in re.split(r"[;,|]", text) if part.strip()]


def to_bool(value: Any) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def normalize_timestamp_column(values: pd.Series, tz: Optional[str] = None) -> pd.Series:
    """Apply to_local_timestamp element-wise and return a datetime64 series."""
    converted = [to_local_timestamp(v, tz) for v in values]
    return pd.Series(pd.to_datetime(converted), index=values.index, dtype="datetime64[ns]")


# =============================================================================
# COLUMN ALIASES
# =============================================================================

def apply_column_aliases(df: pd.DataFrame, aliases: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """Rename document-store field names to canonical columns (canonical wins if both exist)."""
    aliases = COLUMN_ALIASES if aliases is None else aliases
    rename = {
        src: dst for src, dst in aliases.items()
        if src in df.columns and dst not in df.columns
    }
    return df.rename(columns=rename)


# =============================================================================
# VALIDATION
# =============================================================================

def validate_required_columns(df: pd.DataFrame, table_name: str) -> Tuple[bool, List[str]]:
    """
    Validate that required columns exist in dataframe.
    Returns (is_valid, missing_columns).
    """
    if table_name not in REQUIRED_COLUMNS:
        return True, []

    required = REQUIRED_COLUMNS[table_name]
    missing = [col for col in required if col not in df.columns]

    return len(missing) == 0, missing


def check_optional_columns(df: pd.DataFrame, table_name: str) -> List[str]:
    """
    Check which optional columns are missing.
    Returns list of missing optional columns.
    """
    if table_name not in OPTIONAL_COLUMNS:
        return []

    optional = OPTIONAL_COLUMNS[table_name]
    missing = [col for col in optional if col not in df.columns]

    return missing


def validate_schema(df: pd.DataFrame, table_name: str, strict: bool = True) -> Dict:
    """
    Full schema validation.

    Args:
        df: DataFrame to validate
        table_name: Name of table for column requirements lookup
        strict: If True, raise error on missing required columns

    Returns:
        Dict with validation results
    """
    is_valid, missing_required = validate_required_columns(df, table_name)
    missing_optional = check_optional_columns(df, table_name)

    result = {
        "is_valid": is_valid,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
        "total_columns": len(df.columns),
        "total_rows": len(df),
    }

    if strict and not is_valid:
        raise SchemaValidationError(
            f"Missing required columns in {table_name}: {missing_required}"
        )

    return result


# =============================================================================
# TYPE COERCION
# =============================================================================

def _ensure_columns(df: pd.DataFrame, defaults: Dict[str, Any]) -> pd.DataFrame:
    for col, default in defaults.items():
        if col not in df.columns:
            df[col] = [default() if callable(default) else default for _ in range(len(df))]
    return df


def ensure_task_columns(df: pd.DataFrame, tz: Optional[str] = None) -> pd.DataFrame:
    """Canonical task frame: numeric hours, bool flags, assignee lists, local timestamps."""
    df = apply_column_aliases(df.copy())
    df = _ensure_columns(df, {
        "id": None,
        "title": "",
        "hours": 0.0,
        "due": None,
        "completed": False,
        "completed_date": None,
        "assigned_to": list,
        "nonflexible": False,
    })

    df["id"] = df["id"].map(lambda v: None if _is_missing(v) else str(v))
    df["hours"] = pd.to_numeric(df["hours"], errors="coerce").fillna(0.0).clip(lower=0.0)
    df["completed"] = df["completed"].map(to_bool).astype(bool)
    df["nonflexible"] = df["nonflexible"].map(to_bool).astype(bool)
    df["assigned_to"] = df["assigned_to"].map(to_id_list)
    for col in ["due", "completed_date"]:
        df[col] = normalize_timestamp_column(df[col], tz)

    return df


def ensure_staff_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Canonical staff frame: string ids, numeric allowed hours (NaN when absent)."""
    df = apply_column_aliases(df.copy())
    df = _ensure_columns(df, {
        "id": None,
        "full_name": "",
        "email": "",
        "allowed_hours": np.nan,
        "schedule_user_id": None,
    })

    df["id"] = df["id"].map(lambda v: None if _is_missing(v) else str(v))
    df["allowed_hours"] = pd.to_numeric(df["allowed_hours"], errors="coerce")
    df["schedule_user_id"] = df["schedule_user_id"].map(_normalize_external_id)
    df["full_name"] = df["full_name"].fillna("").astype(str)
    df["email"] = df["email"].fillna("").astype(str)

    return df


def ensure_shift_columns(df: pd.DataFrame, tz: Optional[str] = None) -> pd.DataFrame:
    """Canonical shift frame: string user ids, local timestamps, numeric hours (NaN when absent)."""
    df = apply_column_aliases(df.copy())
    df = _ensure_columns(df, {
        "id": None,
        "user_id": None,
        "start_time": None,
        "end_time": None,
        "hours": np.nan,
        "notes": "",
    })

    df["user_id"] = df["user_id"].map(_normalize_external_id)
    df["hours"] = pd.to_numeric(df["hours"], errors="coerce")
    df["notes"] = df["notes"].fillna("").astype(str)
    for col in ["start_time", "end_time"]:
        df[col] = normalize_timestamp_column(df[col], tz)

    return df


def _normalize_external_id(value: Any) -> Optional[str]:
    """Provider ids arrive as ints, floats (from CSV) or strings; compare them as strings."""
    if _is_missing(value):
        return None
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None
