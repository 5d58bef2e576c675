#!/usr/bin/env python
"""
Validate input data files against schema requirements.

Usage:
    python scripts/validate_inputs.py
    python scripts/validate_inputs.py --data-dir /path/to/data
"""
import argparse
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.config import config, TABLE_FILES
from taskboard.data.loader import JsonBudgetStore, _load_file
from taskboard.data.schema import apply_column_aliases, validate_schema
from taskboard.metrics.budget_config import BudgetValues

# Tables whose absence fails validation
REQUIRED_TABLES = ["tasks", "staff"]


def validate_file(filepath: Path, table_name: str) -> dict:
    """Validate a single export file."""
    result = {
        "exists": False,
        "format": None,
        "rows": 0,
        "columns": 0,
        "valid": False,
        "missing_required": [],
        "missing_optional": [],
        "errors": []
    }

    for suffix in ["parquet", "csv", "json"]:
        if filepath.with_suffix(f".{suffix}").exists():
            result["exists"] = True
            result["format"] = suffix
            break
    else:
        result["errors"].append(f"File not found: {filepath}.(parquet|csv|json)")
        return result

    # Load file
    try:
        df = apply_column_aliases(_load_file(filepath))
        result["rows"] = len(df)
        result["columns"] = len(df.columns)
    except Exception as e:
        result["errors"].append(f"Failed to load: {e}")
        return result

    schema_result = validate_schema(df, table_name, strict=False)
    result["valid"] = schema_result["is_valid"]
    result["missing_required"] = schema_result["missing_required"]
    result["missing_optional"] = schema_result["missing_optional"]

    return result


def validate_budget(data_dir: Path) -> dict:
    """Check the organisation budget record resolves to window budgets."""
    store = JsonBudgetStore(data_dir)
    result = {"exists": store.path.exists(), "values": None, "errors": []}
    if not result["exists"]:
        return result

    try:
        result["values"] = BudgetValues.from_record(store.get_budget())
    except ValueError as e:
        result["errors"].append(f"Failed to load: {e}")
        return result

    if result["values"] is None:
        result["errors"].append("Budget record has no valid weekly, quarterly or yearly budget")
    return result


def main():
    parser = argparse.ArgumentParser(description="Validate input data files")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Override data directory"
    )

    args = parser.parse_args()

    data_dir = Path(args.data_dir) if args.data_dir else config.data_dir
    processed_dir = data_dir / "processed"

    print("=" * 60)
    print("Data Input Validation")
    print("=" * 60)
    print(f"Source directory: {processed_dir}")
    print()

    all_valid = True

    for table_key in REQUIRED_TABLES:
        filename = TABLE_FILES[table_key]

        print(f"Validating: {table_key}")
        print("-" * 40)

        result = validate_file(processed_dir / filename, table_key)

        if result["exists"]:
            print(f"  ✓ Found: {filename}.{result['format']}")
            print(f"    Rows: {result['rows']:,}")
            print(f"    Columns: {result['columns']}")

            if result["valid"]:
                print(f"  ✓ Schema valid")
            elif not result["errors"]:
                print(f"  ✗ Schema invalid")
                print(f"    Missing required: {result['missing_required']}")
                all_valid = False

            if result["missing_optional"]:
                print(f"  ⚠ Missing optional: {result['missing_optional']}")
        else:
            print(f"  ✗ Not found: {filename}")
            print(f"    (REQUIRED)")

        if result["errors"]:
            for err in result["errors"]:
                print(f"  ✗ Error: {err}")
            all_valid = False

        print()

    print("Validating: budget")
    print("-" * 40)
    budget = validate_budget(data_dir)
    if not budget["exists"]:
        print(f"  ⚠ Not found: {TABLE_FILES['budget']}.json (organisation budgets will be 0)")
    elif budget["values"] is not None:
        values = budget["values"]
        print(f"  ✓ Weekly {values.weekly}, quarterly {values.quarterly}, yearly {values.yearly}")
    for err in budget["errors"]:
        print(f"  ✗ Error: {err}")
        all_valid = False
    print()

    print("=" * 60)
    if all_valid:
        print("✓ All validations passed")
        sys.exit(0)
    else:
        print("✗ Validation failed - see errors above")
        sys.exit(1)


if __name__ == "__main__":
    main()
