"""Rebuild bid cost hierarchies and reconcile monthly pay applications."""

from .classifier import classify_row
from .hierarchy import HierarchyIndex, HierarchyIntegrityError, build_hierarchy, check_integrity
from .ledger import PayAppLedger
from .validation import validate_all, validate_budget_hierarchy, validate_monthly_amounts
from .distribution import distribute_months, distribute_parent_qty

__all__ = [
    "classify_row",
    "HierarchyIndex",
    "HierarchyIntegrityError",
    "build_hierarchy",
    "check_integrity",
    "PayAppLedger",
    "validate_all",
    "validate_budget_hierarchy",
    "validate_monthly_amounts",
    "distribute_months",
    "distribute_parent_qty",
]
