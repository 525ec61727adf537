"""Classify flattened bid rows into cost item types."""

from __future__ import annotations

from typing import Tuple

from .numeric import clean_text

PAY_ITEM = "Pay Item"
DETAIL = "Detail"
SUBCONTRACTED = "Subcontracted"
CREW = "Crew"
DEFAULT_COST_METHOD = "Cost"


def classify_row(
    item_number: object | None,
    cost_method: object | None,
    production_rate: object | None,
) -> Tuple[str, bool]:
    """Return ``(cost_method, can_have_children)`` for a bid row.

    Rules are checked in order and the first match wins:

    1. an explicit item number marks a Pay Item;
    2. a ``Detail`` cost method (any case) marks a Detail;
    3. a ``Subcontracted`` cost method (any case) is a leaf;
    4. a blank cost method with a production rate marks a Crew;
    5. anything else is a cost component leaf named after its cost method,
       or ``Cost`` when the method is blank.
    """

    item_text = clean_text(item_number)
    method_text = clean_text(cost_method)
    rate_text = clean_text(production_rate)

    if item_text:
        return PAY_ITEM, True
    if method_text.lower() == DETAIL.lower():
        return DETAIL, True
    if method_text.lower() == SUBCONTRACTED.lower():
        return SUBCONTRACTED, False
    if not method_text and rate_text:
        return CREW, True
    return (method_text or DEFAULT_COST_METHOD), False


__all__ = [
    "CREW",
    "DEFAULT_COST_METHOD",
    "DETAIL",
    "PAY_ITEM",
    "SUBCONTRACTED",
    "classify_row",
]
