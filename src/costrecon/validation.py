"""Reconciliation checks over a built cost hierarchy.

Both checks compare a parent against the sum of its direct children and
record every difference larger than :data:`~costrecon.numeric.TOLERANCE`.
Findings are returned as data; nothing here raises for a mismatch.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from .hierarchy import HierarchyIndex
from .ledger import PayAppLedger
from .models import CostItem, Mismatch, MismatchKind, ValidationResult
from .numeric import TOLERANCE, ZERO, fixed, format_month

logger = logging.getLogger(__name__)


def _record_mismatch(
    result: ValidationResult,
    kind: MismatchKind,
    parent: CostItem,
    expected: Decimal,
    actual: Decimal,
    month: Optional[date] = None,
) -> bool:
    """Append a :class:`Mismatch` when ``expected`` and ``actual`` differ by more than the tolerance."""

    difference = abs(expected - actual)
    if difference <= TOLERANCE:
        return False
    if kind is MismatchKind.BUDGET_MISMATCH:
        details = f"Children budget sum differs from parent by ${fixed(difference)}"
    else:
        details = (
            f"Children amount sum (${fixed(actual)}) differs from parent "
            f"(${fixed(expected)}) by ${fixed(difference)}"
        )
    result.errors.append(
        Mismatch(
            kind=kind,
            item_id=parent.id,
            item_number=parent.item_number,
            expected=expected,
            actual=actual,
            difference=difference,
            month=month,
            details=details,
        )
    )
    return True


def validate_budget_hierarchy(items: Sequence[CostItem]) -> ValidationResult:
    """Check that each parent's budget equals the sum of its children's budgets."""

    result = ValidationResult()
    index = HierarchyIndex(items)

    for item in index.items:
        if item.budget is None:
            result.warnings.append(f"Invalid budget for item {item.item_number}")

    for parent in index.parents():
        children = index.children_of(parent.id)
        child_sum = sum((child.budget for child in children if child.budget is not None), ZERO)
        if parent.budget is None:
            continue
        _record_mismatch(result, MismatchKind.BUDGET_MISMATCH, parent, parent.budget, child_sum)

    logger.info(
        "budget_validation => parents=%d | mismatches=%d | warnings=%d",
        len(index.parents()),
        len(result.errors),
        len(result.warnings),
    )
    return result


def validate_monthly_amounts(items: Sequence[CostItem], ledger: PayAppLedger) -> ValidationResult:
    """Check billed dollars (quantity x unit price) per parent and month."""

    result = ValidationResult()
    index = HierarchyIndex(items)
    parents = index.parents()
    months = ledger.months()

    for month in months:
        label = format_month(month)
        for parent in parents:
            parent_fact = ledger.get(parent.id, month)
            if parent_fact is None:
                continue
            if parent_fact.quantity_this_month is None:
                result.warnings.append(f"Invalid qty for parent {parent.item_number} month {label}")
                continue
            parent_amount = parent_fact.quantity_this_month * parent.unit_price

            child_sum = ZERO
            for child in index.children_of(parent.id):
                child_fact = ledger.get(child.id, month)
                if child_fact is None:
                    continue
                if child_fact.quantity_this_month is None:
                    result.warnings.append(f"Invalid qty for child {child.item_number} month {label}")
                    continue
                child_sum += child_fact.quantity_this_month * child.unit_price

            _record_mismatch(
                result,
                MismatchKind.MONTHLY_AMOUNT_MISMATCH,
                parent,
                parent_amount,
                child_sum,
                month=month,
            )

    logger.info(
        "monthly_validation => months=%d | parents=%d | mismatches=%d",
        len(months),
        len(parents),
        len(result.errors),
    )
    return result


def validate_all(items: Sequence[CostItem], ledger: Optional[PayAppLedger] = None) -> ValidationResult:
    """Run the budget check and, when a ledger is given, the monthly check."""

    combined = validate_budget_hierarchy(items)
    if ledger is not None:
        combined.extend(validate_monthly_amounts(items, ledger))
    return combined


__all__ = ["validate_all", "validate_budget_hierarchy", "validate_monthly_amounts"]
