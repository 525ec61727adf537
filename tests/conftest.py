from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Callable, Optional

import pytest

from costrecon.hierarchy import compute_unit_price
from costrecon.models import BidRow, CostItem


def _dec(value: object) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


@pytest.fixture
def row() -> Callable[..., BidRow]:
    def _create(
        description: str,
        budget: object = 0,
        *,
        item_number: str = "",
        cost_method: str = "",
        production_rate: str = "",
        scheduled_value: object = 0,
        quantity: object = 0,
    ) -> BidRow:
        return BidRow(
            description=description,
            item_number=item_number,
            cost_method=cost_method,
            production_rate=production_rate,
            budget=_dec(budget),
            scheduled_value=_dec(scheduled_value),
            quantity=_dec(quantity),
        )

    return _create


@pytest.fixture
def item() -> Callable[..., CostItem]:
    counter = {"sort": 0}

    def _create(
        item_number: str,
        budget: object = 0,
        *,
        parent: Optional[CostItem] = None,
        quantity: object = 0,
        scheduled_value: object = 0,
        cost_method: str = "Cost",
    ) -> CostItem:
        counter["sort"] += 1
        qty = _dec(quantity)
        scheduled = _dec(scheduled_value) or Decimal("0")
        return CostItem(
            id=uuid.uuid4(),
            item_number=item_number,
            description=f"{item_number} description",
            budget=_dec(budget),
            scheduled_value=scheduled,
            quantity=qty,
            unit_price=compute_unit_price(scheduled, qty),
            cost_method=cost_method,
            sort_order=counter["sort"],
            parent_id=parent.id if parent is not None else None,
        )

    return _create
