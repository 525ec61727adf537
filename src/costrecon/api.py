from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from .distribution import distribute_months
from .hierarchy import build_hierarchy, check_integrity
from .ledger import PayAppLedger
from .models import CostItem, DistributionResult, ValidationResult
from .tables import TableSource, load_bid_rows, load_pay_app_facts
from .validation import validate_all

logger = logging.getLogger(__name__)


@dataclass
class ReconcileOptions:
    bid_rows: TableSource
    pay_apps: Optional[TableSource] = None
    months: Sequence[date] = ()
    distribute: bool = False


@dataclass
class Reconciliation:
    items: List[CostItem]
    validation: ValidationResult
    ledger: Optional[PayAppLedger] = None
    distribution: Optional[DistributionResult] = None
    load_warnings: List[str] = field(default_factory=list)


def reconcile(options: ReconcileOptions) -> Reconciliation:
    """Programmatic interface: build the hierarchy, distribute, then validate.

    Distribution runs before validation so that the monthly check sees the
    quantities it wrote. With ``distribute`` set and no ``months`` given,
    every billed month is distributed.
    """

    rows, load_warnings = load_bid_rows(options.bid_rows)
    items = build_hierarchy(rows)
    check_integrity(items)

    ledger: Optional[PayAppLedger] = None
    distribution: Optional[DistributionResult] = None
    if options.pay_apps is not None:
        target_month = options.months[0] if len(options.months) == 1 else None
        ledger, fact_warnings = load_pay_app_facts(options.pay_apps, items, target_month=target_month)
        load_warnings.extend(fact_warnings)
        if options.distribute:
            months = list(options.months) or ledger.months()
            distribution = distribute_months(items, ledger, months)
    elif options.distribute:
        logger.warning("Distribution requested without pay application data; skipping.")

    validation = validate_all(items, ledger)
    return Reconciliation(
        items=items,
        validation=validation,
        ledger=ledger,
        distribution=distribution,
        load_warnings=load_warnings,
    )


__all__ = ["ReconcileOptions", "Reconciliation", "reconcile"]
