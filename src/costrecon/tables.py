"""Read extracted bid/pay application tables and write reconciliation outputs."""

from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .ledger import PayAppLedger
from .models import BidRow, CostItem, DistributionResult, PayApplicationFact, ValidationResult
from .numeric import InvalidNumericValue, clean_text, is_blank, month_start, parse_month, to_decimal
from .reporting import (
    cumulative_frame,
    distribution_frame,
    items_frame,
    mismatch_frame,
    warnings_frame,
)

logger = logging.getLogger(__name__)

TableSource = Union[pd.DataFrame, str, Path]

BID_REQUIRED_COLUMNS = ("DESCRIPTION", "BUDGET")
BID_TEXT_COLUMNS = (
    "ITEM_NUMBER",
    "COST_METHOD",
    "PRODUCTION_RATE",
    "JOB_COST_ID",
    "UNIT",
    "PRODUCTION_UNITS",
)
BID_NUMERIC_COLUMNS = ("BUDGET", "SCHEDULED_VALUE", "QUANTITY")
PAY_APP_REQUIRED_COLUMNS = ("ITEM_NUMBER", "MONTH", "QTY")


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip().upper().replace(" ", "_") for c in df.columns]
    return df


def read_table(source: TableSource) -> pd.DataFrame:
    """Load ``source`` as a DataFrame with upper-case, underscore column names."""

    if isinstance(source, pd.DataFrame):
        return _normalize_columns(source)
    path = Path(source).expanduser().resolve()
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix in {".xlsx", ".xlsm"}:
        df = pd.read_excel(path, engine="openpyxl", dtype=object)
    else:
        raise ValueError(f"unsupported table format: {path.name}")
    logger.debug("read_table => %s | rows=%d", path, len(df))
    return _normalize_columns(df)


def _require_columns(df: pd.DataFrame, required: Sequence[str], label: str) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"{label} table is missing required column(s): {', '.join(missing)}")


def _parse_numeric(
    value: object,
    column: str,
    row_number: int,
    warnings: List[str],
) -> Optional[Decimal]:
    try:
        return to_decimal(value)
    except InvalidNumericValue as exc:
        warnings.append(f"Row {row_number}: invalid {column} value ({exc})")
        return None


def load_bid_rows(source: TableSource) -> Tuple[List[BidRow], List[str]]:
    """Convert a bid export table into :class:`BidRow` records.

    Unparsable numeric cells are reported in the returned warnings and
    carried as ``None``; they never abort the load.
    """

    df = read_table(source)
    _require_columns(df, BID_REQUIRED_COLUMNS, "bid")

    rows: List[BidRow] = []
    warnings: List[str] = []
    for position, record in enumerate(df.to_dict(orient="records"), start=1):
        text = {col: clean_text(record.get(col)) for col in BID_TEXT_COLUMNS}
        numbers = {
            col: _parse_numeric(record.get(col), col, position, warnings) for col in BID_NUMERIC_COLUMNS
        }
        rows.append(
            BidRow(
                description=clean_text(record.get("DESCRIPTION")),
                item_number=text["ITEM_NUMBER"],
                cost_method=text["COST_METHOD"],
                production_rate=text["PRODUCTION_RATE"],
                budget=numbers["BUDGET"],
                scheduled_value=numbers["SCHEDULED_VALUE"],
                quantity=numbers["QUANTITY"],
                job_cost_id=text["JOB_COST_ID"],
                unit=text["UNIT"],
                production_units=text["PRODUCTION_UNITS"],
                source_row=position,
            )
        )

    logger.info("bid_rows_loaded => rows=%d | warnings=%d", len(rows), len(warnings))
    return rows, warnings


def load_pay_app_facts(
    source: TableSource,
    items: Sequence[CostItem],
    *,
    ledger: Optional[PayAppLedger] = None,
    target_month: Optional[date] = None,
) -> Tuple[PayAppLedger, List[str]]:
    """Load monthly quantities into a :class:`PayAppLedger`.

    Rows are matched to cost items by item number. When ``target_month`` is
    given, facts for that month replace existing ones while facts for other
    months are only added where none exist yet.
    """

    df = read_table(source)
    _require_columns(df, PAY_APP_REQUIRED_COLUMNS, "pay application")

    ledger = ledger if ledger is not None else PayAppLedger()
    warnings: List[str] = []
    by_number: Dict[str, CostItem] = {}
    for item in items:
        by_number.setdefault(item.item_number, item)
    target = month_start(target_month) if target_month is not None else None

    loaded = 0
    for position, record in enumerate(df.to_dict(orient="records"), start=1):
        item_number = clean_text(record.get("ITEM_NUMBER"))
        item = by_number.get(item_number)
        if item is None:
            warnings.append(f"Row {position}: unknown item number {item_number!r}")
            continue
        try:
            month = parse_month(record.get("MONTH"))
        except ValueError as exc:
            warnings.append(f"Row {position}: {exc}")
            continue
        if is_blank(record.get("QTY")):
            continue

        quantity = _parse_numeric(record.get("QTY"), "QTY", position, warnings)
        stored = _parse_numeric(record.get("STORED_MATERIALS"), "STORED_MATERIALS", position, warnings)
        fact = PayApplicationFact(
            cost_item_id=item.id,
            month=month,
            quantity_this_month=quantity,
            stored_materials=stored if stored is not None else Decimal("0"),
        )
        if target is None or month == target:
            ledger.upsert(fact)
            loaded += 1
        elif ledger.insert_if_absent(fact):
            loaded += 1

    logger.info("pay_app_facts_loaded => facts=%d | warnings=%d", loaded, len(warnings))
    return ledger, warnings


def _excel_ready(df: pd.DataFrame) -> pd.DataFrame:
    # Excel has no decimal type; money and quantities go out as floats.
    df = df.copy()
    for col in df.columns:
        df[col] = [float(v) if isinstance(v, Decimal) else v for v in df[col]]
    return df


def write_report(
    path: Path,
    items: Sequence[CostItem],
    validation: ValidationResult,
    *,
    ledger: Optional[PayAppLedger] = None,
    distribution: Optional[DistributionResult] = None,
    load_warnings: Sequence[str] = (),
) -> Path:
    """Write the reconciliation workbook and return its path."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sheets = {
        "ITEMS": items_frame(items),
        "MISMATCHES": mismatch_frame(validation),
        "WARNINGS": warnings_frame(list(load_warnings) + list(validation.warnings)),
        "DISTRIBUTION": distribution_frame(distribution),
    }
    if ledger is not None:
        sheets["CUMULATIVE"] = cumulative_frame(items, ledger)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            _excel_ready(frame).to_excel(writer, sheet_name=name, index=False)
    logger.debug("report_written => %s", path)
    return path


def write_run_summary(path: Path, payload: Mapping[str, object]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str)
    return path


__all__ = [
    "load_bid_rows",
    "load_pay_app_facts",
    "read_table",
    "write_report",
    "write_run_summary",
]
