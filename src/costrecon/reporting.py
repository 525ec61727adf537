from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .hierarchy import HierarchyIndex
from .ledger import PayAppLedger
from .models import CostItem, DistributionResult, ValidationResult
from .numeric import ZERO

ITEM_COLUMNS = [
    "SORT_ORDER",
    "DEPTH",
    "ITEM_NUMBER",
    "DESCRIPTION",
    "COST_METHOD",
    "BUDGET",
    "SCHEDULED_VALUE",
    "QUANTITY",
    "UNIT",
    "UNIT_PRICE",
    "PARENT_ITEM_NUMBER",
    "ID",
    "PARENT_ID",
]
MISMATCH_COLUMNS = ["KIND", "ITEM_NUMBER", "MONTH", "EXPECTED", "ACTUAL", "DIFFERENCE", "DETAILS"]
DISTRIBUTION_COLUMNS = ["PARENT_ITEM_NUMBER", "MONTH", "CHILDREN_COUNT", "PERCENT_COMPLETE"]
CUMULATIVE_COLUMNS = [
    "ITEM_NUMBER",
    "MONTH",
    "THIS_MONTH_QTY",
    "CUMULATIVE_QTY",
    "PREVIOUS_CUMULATIVE_QTY",
    "TOTAL_QTY",
    "REMAINING_QTY",
    "PERCENT_COMPLETE",
    "THIS_MONTH_AMOUNT",
    "CUMULATIVE_AMOUNT",
    "PREVIOUS_CUMULATIVE_AMOUNT",
    "STORED_MATERIALS",
]


def items_frame(items: Sequence[CostItem]) -> pd.DataFrame:
    index = HierarchyIndex(items)
    rows: List[Dict[str, object]] = []
    for item in index.items:
        parent = index.get(item.parent_id) if item.parent_id is not None else None
        rows.append(
            {
                "SORT_ORDER": item.sort_order,
                "DEPTH": index.depth_of(item.id),
                "ITEM_NUMBER": item.item_number,
                "DESCRIPTION": item.description,
                "COST_METHOD": item.cost_method,
                "BUDGET": item.budget,
                "SCHEDULED_VALUE": item.scheduled_value,
                "QUANTITY": item.quantity,
                "UNIT": item.unit,
                "UNIT_PRICE": item.unit_price,
                "PARENT_ITEM_NUMBER": parent.item_number if parent else "",
                "ID": str(item.id),
                "PARENT_ID": str(item.parent_id) if item.parent_id else "",
            }
        )
    return pd.DataFrame(rows, columns=ITEM_COLUMNS)


def mismatch_frame(result: ValidationResult) -> pd.DataFrame:
    rows = [
        {
            "KIND": error.kind.value,
            "ITEM_NUMBER": error.item_number,
            "MONTH": error.month.isoformat() if error.month else "",
            "EXPECTED": error.expected,
            "ACTUAL": error.actual,
            "DIFFERENCE": error.difference,
            "DETAILS": error.details,
        }
        for error in result.errors
    ]
    return pd.DataFrame(rows, columns=MISMATCH_COLUMNS)


def warnings_frame(warnings: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame({"WARNING": list(warnings)})


def distribution_frame(result: Optional[DistributionResult]) -> pd.DataFrame:
    details = result.details if result is not None else []
    rows = [
        {
            "PARENT_ITEM_NUMBER": detail.parent_item_number,
            "MONTH": detail.month.isoformat(),
            "CHILDREN_COUNT": detail.children_count,
            "PERCENT_COMPLETE": detail.percent_label,
        }
        for detail in details
    ]
    return pd.DataFrame(rows, columns=DISTRIBUTION_COLUMNS)


def cumulative_frame(items: Sequence[CostItem], ledger: PayAppLedger) -> pd.DataFrame:
    """Per item and billed month: this month, to date, and remaining figures."""

    rows: List[Dict[str, object]] = []
    for item in sorted(items, key=lambda i: i.sort_order):
        total = item.quantity if item.quantity is not None else ZERO
        for fact in ledger.facts_for(item.id):
            this_month = fact.quantity_this_month if fact.quantity_this_month is not None else ZERO
            cumulative = ledger.cumulative_quantity(item.id, fact.month)
            previous = ledger.previous_cumulative_quantity(item.id, fact.month)
            if total == 0:
                percent = ZERO
            else:
                percent = round(cumulative / total * 100, 4)
            rows.append(
                {
                    "ITEM_NUMBER": item.item_number,
                    "MONTH": fact.month.isoformat(),
                    "THIS_MONTH_QTY": this_month,
                    "CUMULATIVE_QTY": cumulative,
                    "PREVIOUS_CUMULATIVE_QTY": previous,
                    "TOTAL_QTY": total,
                    "REMAINING_QTY": total - cumulative,
                    "PERCENT_COMPLETE": percent,
                    "THIS_MONTH_AMOUNT": this_month * item.unit_price,
                    "CUMULATIVE_AMOUNT": cumulative * item.unit_price,
                    "PREVIOUS_CUMULATIVE_AMOUNT": previous * item.unit_price,
                    "STORED_MATERIALS": fact.stored_materials,
                }
            )
    return pd.DataFrame(rows, columns=CUMULATIVE_COLUMNS)


def make_summary_text(
    items: Sequence[CostItem],
    validation: ValidationResult,
    distribution: Optional[DistributionResult] = None,
) -> str:
    index = HierarchyIndex(items)
    root_budget = sum((root.budget for root in index.roots() if root.budget is not None), Decimal("0"))
    status = "VALID" if validation.is_valid else "MISMATCHES FOUND"
    lines = [
        f"Cost items: {len(index)} ({len(index.roots())} root(s), {len(index.parents())} parent(s)).",
        f"Root budget total: ${root_budget:,.2f}.",
        f"Validation: {status} ({len(validation.errors)} mismatch(es), {len(validation.warnings)} warning(s)).",
    ]
    for error in validation.errors[:10]:
        lines.append(f"  - {error}")
    if len(validation.errors) > 10:
        lines.append(f"  ... and {len(validation.errors) - 10} more")
    if distribution is not None:
        lines.append(
            f"Distribution: {distribution.items_updated} child quantity(ies) written "
            f"across {len(distribution.details)} parent(s)."
        )
    return "\n".join(lines) + "\n"


__all__ = [
    "cumulative_frame",
    "distribution_frame",
    "items_frame",
    "make_summary_text",
    "mismatch_frame",
    "warnings_frame",
]
