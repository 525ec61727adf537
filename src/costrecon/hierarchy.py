"""Rebuild the cost hierarchy implied by a flat bid export.

Bid exports list pay items, details, crews and cost components one after
another with no depth column. The only structural signal is that a branch
row's budget equals the sum of the budgets of the rows that follow it, so
the tree is recovered in one pass with a stack of open branches: each frame
tracks how much of its owner's budget has been claimed by direct children,
and a frame closes once the claimed amount reaches its target within
:data:`~costrecon.numeric.TOLERANCE`.

Branch rows whose own budget is zero or negative are created but never
opened, so rows that follow them attach to the next open ancestor instead.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from .classifier import classify_row
from .models import BidRow, CostItem
from .numeric import TOLERANCE, ZERO, clean_text

logger = logging.getLogger(__name__)

UNIT_PRICE_PLACES = Decimal("0.0001")


class HierarchyIntegrityError(RuntimeError):
    """Raised when a cost item sequence is not a well-formed forest."""


@dataclass
class StackFrame:
    """An open branch waiting for children to claim its budget."""

    owner: CostItem
    target: Decimal
    running_sum: Decimal = ZERO

    def is_complete(self, tolerance: Decimal = TOLERANCE) -> bool:
        return self.running_sum >= self.target - tolerance


def compute_unit_price(scheduled_value: Optional[Decimal], quantity: Optional[Decimal]) -> Decimal:
    if scheduled_value is None or quantity is None or quantity <= 0:
        return ZERO
    # Ties round away from zero; precision grows with the integer digits of the quotient.
    integer_digits = scheduled_value.adjusted() - quantity.adjusted() + 1
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, integer_digits + 28)
        return (scheduled_value / quantity).quantize(UNIT_PRICE_PLACES, rounding=ROUND_HALF_UP)


def generate_item_number(existing: str, sort_order: int) -> str:
    if existing:
        return existing
    return f"AUTO-{sort_order}"


def build_hierarchy(
    rows: Iterable[BidRow],
    *,
    id_factory: Callable[[], UUID] = uuid.uuid4,
) -> List[CostItem]:
    """Turn ordered bid rows into parent-linked cost items.

    Rows with a blank description are skipped. Every other row produces
    exactly one :class:`CostItem`, in input order, with ``sort_order``
    numbered from 1.
    """

    items: List[CostItem] = []
    stack: List[StackFrame] = []
    skipped = 0

    for row in rows:
        description = clean_text(row.description)
        if not description:
            skipped += 1
            continue

        item_number = clean_text(row.item_number)
        cost_method, can_have_children = classify_row(item_number, row.cost_method, row.production_rate)
        budget = row.budget if row.budget is not None else ZERO

        # Several ancestors can close on the same row.
        while stack and stack[-1].is_complete():
            closed = stack.pop()
            logger.debug(
                "closed %s (%s of %s)",
                closed.owner.item_number,
                closed.running_sum,
                closed.target,
            )

        parent_id: Optional[UUID] = None
        if stack:
            top = stack[-1]
            parent_id = top.owner.id
            top.running_sum += budget

        sort_order = len(items) + 1
        scheduled_value = row.scheduled_value if row.scheduled_value is not None else ZERO
        item = CostItem(
            id=id_factory(),
            item_number=generate_item_number(item_number, sort_order),
            description=description,
            budget=row.budget,
            scheduled_value=scheduled_value,
            quantity=row.quantity,
            unit_price=compute_unit_price(scheduled_value, row.quantity),
            cost_method=cost_method,
            sort_order=sort_order,
            parent_id=parent_id,
            job_cost_id=clean_text(row.job_cost_id),
            unit=clean_text(row.unit),
            production_rate=clean_text(row.production_rate),
            production_units=clean_text(row.production_units),
        )
        items.append(item)

        if can_have_children and budget > ZERO:
            stack.append(StackFrame(owner=item, target=budget))

    if stack:
        logger.debug("%d branch(es) still open at end of input", len(stack))
    logger.info("hierarchy_built => items=%d | skipped_rows=%d", len(items), skipped)
    return items


class HierarchyIndex:
    """Lookup tables over a built cost item forest."""

    def __init__(self, items: Sequence[CostItem]) -> None:
        self.items: List[CostItem] = sorted(items, key=lambda item: item.sort_order)
        self._by_id: Dict[UUID, CostItem] = {item.id: item for item in self.items}
        self._children: Dict[UUID, List[CostItem]] = {}
        for item in self.items:
            if item.parent_id is not None:
                self._children.setdefault(item.parent_id, []).append(item)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    def get(self, item_id: UUID) -> CostItem:
        return self._by_id[item_id]

    def children_of(self, item_id: UUID) -> List[CostItem]:
        return list(self._children.get(item_id, []))

    def parents(self) -> List[CostItem]:
        return [item for item in self.items if item.id in self._children]

    def roots(self) -> List[CostItem]:
        return [item for item in self.items if item.parent_id is None]

    def depth_of(self, item_id: UUID) -> int:
        depth = 0
        current = self._by_id[item_id]
        while current.parent_id is not None:
            current = self._by_id[current.parent_id]
            depth += 1
        return depth


def check_integrity(items: Sequence[CostItem]) -> None:
    """Raise :class:`HierarchyIntegrityError` unless ``items`` form a forest.

    The builder cannot produce such a sequence, so a failure here means the
    items were assembled or altered somewhere else.
    """

    seen: Dict[UUID, CostItem] = {}
    previous_order: Optional[int] = None
    for item in items:
        if item.id in seen:
            raise HierarchyIntegrityError(f"duplicate cost item id {item.id}")
        if previous_order is not None and item.sort_order <= previous_order:
            raise HierarchyIntegrityError(
                f"sort order not increasing at item {item.item_number} ({item.sort_order} after {previous_order})"
            )
        if item.parent_id is not None:
            parent = seen.get(item.parent_id)
            if parent is None:
                raise HierarchyIntegrityError(
                    f"item {item.item_number} references parent {item.parent_id} that does not precede it"
                )
        seen[item.id] = item
        previous_order = item.sort_order


__all__ = [
    "HierarchyIndex",
    "HierarchyIntegrityError",
    "StackFrame",
    "build_hierarchy",
    "check_integrity",
    "compute_unit_price",
    "generate_item_number",
]
