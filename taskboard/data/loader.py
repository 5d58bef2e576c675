"""
Data loading utilities and file-backed stores.

Exports of the document store live in the processed data directory as
parquet, csv or json files. Every frame is normalised on load.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from taskboard.config import config, TABLE_FILES
from taskboard.data.schema import (
    apply_column_aliases,
    ensure_staff_columns,
    ensure_task_columns,
    validate_schema,
)

logger = logging.getLogger(__name__)


def _read_json_records(path: Path) -> pd.DataFrame:
    """A JSON list of documents, or a {"id": {...}} mapping keyed by document id."""
    with open(path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if isinstance(payload, dict):
        records = [{"id": key, **value} for key, value in payload.items() if isinstance(value, dict)]
    elif isinstance(payload, list):
        records = [item for item in payload if isinstance(item, dict)]
    else:
        raise ValueError(f"{path}: expected a list or mapping of documents")
    return pd.DataFrame(records)


def _load_file(filepath: Path) -> Optional[pd.DataFrame]:
    """Load a single file (parquet, csv or json), whichever exists first."""
    parquet_path = filepath.with_suffix(".parquet")
    csv_path = filepath.with_suffix(".csv")
    json_path = filepath.with_suffix(".json")

    if parquet_path.exists():
        return pd.read_parquet(parquet_path)
    elif csv_path.exists():
        return pd.read_csv(csv_path)
    elif json_path.exists():
        return _read_json_records(json_path)
    return None


def load_tasks(data_dir: Optional[Path] = None) -> pd.DataFrame:
    """Load and normalise the task export."""
    processed_dir = Path(data_dir) / "processed" if data_dir else config.processed_dir
    df = _load_file(processed_dir / TABLE_FILES["tasks"])
    if df is None:
        logger.warning(f"Could not find {TABLE_FILES['tasks']} in {processed_dir}")
        return ensure_task_columns(pd.DataFrame())

    df = apply_column_aliases(df)
    validate_schema(df, "tasks")
    return ensure_task_columns(df)


def load_staff(data_dir: Optional[Path] = None) -> pd.DataFrame:
    """Load and normalise the staff export."""
    processed_dir = Path(data_dir) / "processed" if data_dir else config.processed_dir
    df = _load_file(processed_dir / TABLE_FILES["staff"])
    if df is None:
        logger.warning(f"Could not find {TABLE_FILES['staff']} in {processed_dir}")
        return ensure_staff_columns(pd.DataFrame())

    df = apply_column_aliases(df)
    validate_schema(df, "staff")
    return ensure_staff_columns(df)


class FileTaskStore:
    """Task store backed by an export file."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir

    def list_tasks(self) -> pd.DataFrame:
        return load_tasks(self.data_dir)


class FileStaffStore:
    """Staff store backed by an export file."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir

    def list_staff(self) -> pd.DataFrame:
        return load_staff(self.data_dir)

    def get_staff(self, staff_id) -> Optional[Dict[str, Any]]:
        staff = self.list_staff()
        match = staff[staff["id"] == str(staff_id)]
        if len(match) == 0:
            return None
        return match.iloc[0].to_dict()


class JsonBudgetStore:
    """Organisation budget record ({weeklyBudget, quarterlyBudget, yearlyBudget}) in a JSON file."""

    def __init__(self, data_dir: Optional[Path] = None):
        processed_dir = Path(data_dir) / "processed" if data_dir else config.processed_dir
        self.path = processed_dir / f"{TABLE_FILES['budget']}.json"

    def get_budget(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as handle:
            payload = json.load(handle)
        return payload if isinstance(payload, dict) else {}

    def set_budget(self, values: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(values, handle, indent=2)
