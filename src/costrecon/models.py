from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from .numeric import fixed, format_month


@dataclass(frozen=True)
class BidRow:
    """One flattened bid export record, numeric fields already parsed.

    ``None`` in a numeric field means the source cell could not be parsed.
    """

    description: str
    item_number: str = ""
    cost_method: str = ""
    production_rate: str = ""
    budget: Optional[Decimal] = Decimal("0")
    scheduled_value: Optional[Decimal] = Decimal("0")
    quantity: Optional[Decimal] = Decimal("0")
    job_cost_id: str = ""
    unit: str = ""
    production_units: str = ""
    source_row: Optional[int] = None


@dataclass(frozen=True)
class CostItem:
    """A node of the reconstructed cost hierarchy."""

    id: UUID
    item_number: str
    description: str
    budget: Optional[Decimal]
    scheduled_value: Decimal
    quantity: Optional[Decimal]
    unit_price: Decimal
    cost_method: str
    sort_order: int
    parent_id: Optional[UUID] = None
    job_cost_id: str = ""
    unit: str = ""
    production_rate: str = ""
    production_units: str = ""


@dataclass(frozen=True)
class PayApplicationFact:
    cost_item_id: UUID
    month: date
    quantity_this_month: Optional[Decimal]
    stored_materials: Decimal = Decimal("0")


class MismatchKind(str, Enum):
    BUDGET_MISMATCH = "BUDGET_MISMATCH"
    MONTHLY_AMOUNT_MISMATCH = "MONTHLY_AMOUNT_MISMATCH"


@dataclass(frozen=True)
class Mismatch:
    """A parent whose children do not add up to it."""

    kind: MismatchKind
    item_id: UUID
    item_number: str
    expected: Decimal
    actual: Decimal
    difference: Decimal
    month: Optional[date] = None
    details: str = ""

    def __str__(self) -> str:
        if self.month is None:
            return (
                f"{self.kind.value}: Item {self.item_number} - expected budget "
                f"{fixed(self.expected)}, got {fixed(self.actual)} (diff: {fixed(self.difference)})"
            )
        return (
            f"{self.kind.value}: Item {self.item_number}, Month {format_month(self.month)} - "
            f"expected {fixed(self.expected)}, got {fixed(self.actual)} (diff: {fixed(self.difference)})"
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "item_id": str(self.item_id),
            "item_number": self.item_number,
            "month": self.month.isoformat() if self.month else None,
            "expected": fixed(self.expected),
            "actual": fixed(self.actual),
            "difference": fixed(self.difference),
            "details": self.details,
        }


@dataclass
class ValidationResult:
    errors: List[Mismatch] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class DistributionDetail:
    parent_id: UUID
    parent_item_number: str
    month: date
    children_count: int
    percent_complete: Decimal

    @property
    def percent_label(self) -> str:
        return f"{fixed(self.percent_complete * 100)}%"

    def to_dict(self) -> Dict[str, object]:
        return {
            "parent_id": str(self.parent_id),
            "parent_item_number": self.parent_item_number,
            "month": self.month.isoformat(),
            "children_count": self.children_count,
            "percent_complete": self.percent_label,
        }


@dataclass
class DistributionResult:
    items_updated: int = 0
    months_processed: List[date] = field(default_factory=list)
    details: List[DistributionDetail] = field(default_factory=list)

    def merge(self, other: "DistributionResult") -> None:
        self.items_updated += other.items_updated
        for month in other.months_processed:
            if month not in self.months_processed:
                self.months_processed.append(month)
        self.details.extend(other.details)

    def to_dict(self) -> Dict[str, object]:
        return {
            "items_updated": self.items_updated,
            "months_processed": [month.isoformat() for month in self.months_processed],
            "details": [detail.to_dict() for detail in self.details],
        }


__all__ = [
    "BidRow",
    "CostItem",
    "DistributionDetail",
    "DistributionResult",
    "Mismatch",
    "MismatchKind",
    "PayApplicationFact",
    "ValidationResult",
]
