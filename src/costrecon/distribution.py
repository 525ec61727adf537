"""Push a parent's billed progress down to children with no entries."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

from .hierarchy import HierarchyIndex
from .ledger import PayAppLedger
from .models import CostItem, DistributionDetail, DistributionResult, PayApplicationFact
from .numeric import ZERO, format_month, month_start

logger = logging.getLogger(__name__)


def distribute_parent_qty(
    items: Sequence[CostItem],
    ledger: PayAppLedger,
    target_month: date,
) -> DistributionResult:
    """Fill in children's quantities for ``target_month`` from their parent's percent complete.

    A parent is only distributed when it billed a non-zero quantity this
    month and none of its children did. Each child receives the quantity
    that brings its cumulative total to ``child total x parent percent
    complete``, never less than zero. ``ledger`` is updated in place.
    """

    month = month_start(target_month)
    label = format_month(month)
    result = DistributionResult(months_processed=[month])
    index = HierarchyIndex(items)

    for parent in index.parents():
        parent_fact = ledger.get(parent.id, month)
        if parent_fact is None:
            continue
        if parent_fact.quantity_this_month is None or parent_fact.quantity_this_month == 0:
            continue

        children = index.children_of(parent.id)
        if not children:
            continue
        if any(ledger.quantity_for(child.id, month) != 0 for child in children):
            logger.debug("skip %s %s: children already billed", parent.item_number, label)
            continue

        percent_complete = ledger.percent_complete(parent.id, month, parent.quantity)
        if percent_complete is None:
            logger.debug("skip %s %s: total quantity unknown or zero", parent.item_number, label)
            continue

        updated = 0
        for child in children:
            if child.quantity is None:
                continue
            new_cumulative = child.quantity * percent_complete
            month_qty = new_cumulative - ledger.previous_cumulative_quantity(child.id, month)
            if month_qty < 0:
                month_qty = ZERO
            ledger.upsert(
                PayApplicationFact(
                    cost_item_id=child.id,
                    month=month,
                    quantity_this_month=month_qty,
                    stored_materials=ZERO,
                )
            )
            updated += 1

        if updated:
            detail = DistributionDetail(
                parent_id=parent.id,
                parent_item_number=parent.item_number,
                month=month,
                children_count=updated,
                percent_complete=percent_complete,
            )
            result.items_updated += updated
            result.details.append(detail)
            logger.info(
                "distributed %s %s => children=%d | percent_complete=%s",
                parent.item_number,
                label,
                updated,
                detail.percent_label,
            )

    return result


def distribute_months(
    items: Sequence[CostItem],
    ledger: PayAppLedger,
    months: Iterable[date],
) -> DistributionResult:
    """Run :func:`distribute_parent_qty` for each month, oldest first."""

    combined = DistributionResult()
    for month in sorted({month_start(m) for m in months}):
        combined.merge(distribute_parent_qty(items, ledger, month))
    return combined


__all__ = ["distribute_months", "distribute_parent_qty"]
