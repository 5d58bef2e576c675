"""
Budget configuration: fill in weekly / quarterly / yearly budgets from whichever
of them were provided.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from taskboard.config import QUARTERS_PER_YEAR, WEEKS_PER_YEAR


class BudgetConfigurationError(ValueError):
    """Raised when none of the three budgets is a usable number."""
    pass


# Budget store field names
RECORD_FIELDS = {
    "weekly": "weeklyBudget",
    "quarterly": "quarterlyBudget",
    "yearly": "yearlyBudget",
}


@dataclass(frozen=True)
class BudgetValues:
    weekly: int
    quarterly: int
    yearly: int

    def for_window(self, window: str) -> int:
        return {"week": self.weekly, "quarter": self.quarterly, "year": self.yearly}[window]

    def as_dict(self) -> Dict[str, int]:
        return {"weekly": self.weekly, "quarterly": self.quarterly, "yearly": self.yearly}

    def to_record(self) -> Dict[str, int]:
        return {RECORD_FIELDS[key]: value for key, value in self.as_dict().items()}

    @staticmethod
    def inputs_from_record(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Budget store record (weeklyBudget, ...) to resolver inputs (weekly, ...)."""
        record = record or {}
        return {key: record.get(field, record.get(key)) for key, field in RECORD_FIELDS.items()}

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> Optional["BudgetValues"]:
        return compute_budget_values(cls.inputs_from_record(record))


def _round(value: float) -> int:
    """Round half up to the nearest integer."""
    return int(math.floor(value + 0.5))


def _valid_amount(value: Any) -> Optional[float]:
    """A finite, non-negative number, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def compute_budget_values(values: Optional[Mapping[str, Any]]) -> Optional[BudgetValues]:
    """
    Derive a full set of budgets from any subset of weekly, quarterly and yearly.

    Invalid entries (negative, non-numeric) are treated as absent. Returns
    None when nothing usable was provided. Explicit values are kept as given
    (rounded), even when they disagree with each other. Missing values are
    derived with 4 quarters and 52 weeks per year, going through yearly.
    """
    values = values or {}
    weekly = _valid_amount(values.get("weekly"))
    quarterly = _valid_amount(values.get("quarterly"))
    yearly = _valid_amount(values.get("yearly"))

    if weekly is None and quarterly is None and yearly is None:
        return None

    if yearly is None:
        # quarterly is the coarser explicit value, so it wins over weekly
        if quarterly is not None:
            yearly = _round(quarterly * QUARTERS_PER_YEAR)
        else:
            yearly = _round(weekly * WEEKS_PER_YEAR)

    if quarterly is None:
        quarterly = yearly / QUARTERS_PER_YEAR
    if weekly is None:
        weekly = yearly / WEEKS_PER_YEAR

    return BudgetValues(weekly=_round(weekly), quarterly=_round(quarterly), yearly=_round(yearly))


def resolve_budget_update(values: Optional[Mapping[str, Any]]) -> BudgetValues:
    """compute_budget_values, rejecting input where no budget is usable."""
    resolved = compute_budget_values(values)
    if resolved is None:
        raise BudgetConfigurationError(
            "Enter at least one non-negative weekly, quarterly or yearly budget"
        )
    return resolved
