"""In-memory table of monthly pay application quantities."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from .models import PayApplicationFact
from .numeric import ZERO, month_start


class PayAppLedger:
    """Pay application facts keyed by ``(cost item id, month)``.

    Unparsable quantities are kept as ``None`` and count as zero in the
    cumulative totals.
    """

    def __init__(self, facts: Iterable[PayApplicationFact] = ()) -> None:
        self._facts: Dict[Tuple[UUID, date], PayApplicationFact] = {}
        for fact in facts:
            self.upsert(fact)

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[PayApplicationFact]:
        return iter(sorted(self._facts.values(), key=lambda fact: (fact.month, str(fact.cost_item_id))))

    @staticmethod
    def _normalize(fact: PayApplicationFact) -> PayApplicationFact:
        month = month_start(fact.month)
        if month == fact.month:
            return fact
        return PayApplicationFact(
            cost_item_id=fact.cost_item_id,
            month=month,
            quantity_this_month=fact.quantity_this_month,
            stored_materials=fact.stored_materials,
        )

    def upsert(self, fact: PayApplicationFact) -> None:
        fact = self._normalize(fact)
        self._facts[(fact.cost_item_id, fact.month)] = fact

    def insert_if_absent(self, fact: PayApplicationFact) -> bool:
        """Add ``fact`` unless one already exists for its item and month."""

        fact = self._normalize(fact)
        key = (fact.cost_item_id, fact.month)
        if key in self._facts:
            return False
        self._facts[key] = fact
        return True

    def get(self, item_id: UUID, month: date) -> Optional[PayApplicationFact]:
        return self._facts.get((item_id, month_start(month)))

    def months(self) -> List[date]:
        return sorted({month for _, month in self._facts})

    def facts_for(self, item_id: UUID) -> List[PayApplicationFact]:
        facts = [fact for (fid, _), fact in self._facts.items() if fid == item_id]
        return sorted(facts, key=lambda fact: fact.month)

    def quantity_for(self, item_id: UUID, month: date) -> Decimal:
        """This month's quantity, zero when missing or unparsable."""

        fact = self.get(item_id, month)
        if fact is None or fact.quantity_this_month is None:
            return ZERO
        return fact.quantity_this_month

    def cumulative_quantity(self, item_id: UUID, month: date) -> Decimal:
        month = month_start(month)
        total = ZERO
        for fact in self.facts_for(item_id):
            if fact.month > month:
                break
            if fact.quantity_this_month is not None:
                total += fact.quantity_this_month
        return total

    def previous_cumulative_quantity(self, item_id: UUID, month: date) -> Decimal:
        month = month_start(month)
        total = ZERO
        for fact in self.facts_for(item_id):
            if fact.month >= month:
                break
            if fact.quantity_this_month is not None:
                total += fact.quantity_this_month
        return total

    def percent_complete(self, item_id: UUID, month: date, total_quantity: Optional[Decimal]) -> Optional[Decimal]:
        """Cumulative quantity to date as a fraction of ``total_quantity``."""

        if total_quantity is None or total_quantity == 0:
            return None
        return self.cumulative_quantity(item_id, month) / total_quantity


__all__ = ["PayAppLedger"]
