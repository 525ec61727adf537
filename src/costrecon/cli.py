import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
from dotenv import load_dotenv

from .api import ReconcileOptions, reconcile
from .config import Config
from .config import load_config as load_runtime_config
from .reporting import make_summary_text
from .tables import write_report, write_run_summary

BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_MISMATCH = 2


def run(runtime_config: Optional[Config] = None) -> int:
    runtime_cfg = runtime_config or load_runtime_config(os.environ, None)
    stage_counter = 0

    def log_stage(message: str) -> None:
        nonlocal stage_counter
        stage_counter += 1
        logger.info("[reconcile:%02d] %s", stage_counter, message)

    def log_detail(message: str) -> None:
        logger.info("             %s", message)

    if runtime_cfg.bid_rows_path is None:
        logger.error("No bid rows provided. Pass --bid-rows or set BID_ROWS_PATH.")
        return EXIT_FAILURE
    if not runtime_cfg.bid_rows_path.exists():
        logger.error("Bid rows file not found: %s", runtime_cfg.bid_rows_path)
        return EXIT_FAILURE
    pay_apps_path = runtime_cfg.pay_apps_path
    if pay_apps_path is not None and not pay_apps_path.exists():
        logger.error("Pay application file not found: %s", pay_apps_path)
        return EXIT_FAILURE

    log_stage("Rebuilding cost hierarchy and reconciling pay applications")
    log_detail(f"bid_rows => {runtime_cfg.bid_rows_path}")
    if pay_apps_path is not None:
        log_detail(f"pay_apps => {pay_apps_path}")
    if runtime_cfg.target_months:
        log_detail("months => " + ", ".join(m.isoformat() for m in runtime_cfg.target_months))

    outcome = reconcile(
        ReconcileOptions(
            bid_rows=runtime_cfg.bid_rows_path,
            pay_apps=pay_apps_path,
            months=runtime_cfg.target_months,
            distribute=runtime_cfg.distribute,
        )
    )
    log_detail(
        f"items={len(outcome.items):,} | mismatches={len(outcome.validation.errors):,} | "
        f"warnings={len(outcome.load_warnings) + len(outcome.validation.warnings):,}"
    )
    for warning in outcome.load_warnings:
        logger.warning("Warning: %s", warning)

    log_stage("Persisting reconciliation outputs to disk")
    write_report(
        runtime_cfg.output_xlsx,
        outcome.items,
        outcome.validation,
        ledger=outcome.ledger,
        distribution=outcome.distribution,
        load_warnings=outcome.load_warnings,
    )
    summary = {
        "timestamp": pd.Timestamp.now(tz="UTC").isoformat(),
        "python": sys.version.split()[0],
        "inputs": {
            "bid_rows": str(runtime_cfg.bid_rows_path),
            "pay_apps": str(pay_apps_path) if pay_apps_path else None,
        },
        "item_count": len(outcome.items),
        "load_warnings": list(outcome.load_warnings),
        "validation": outcome.validation.to_dict(),
        "distribution": outcome.distribution.to_dict() if outcome.distribution else None,
    }
    write_run_summary(runtime_cfg.output_summary, summary)
    log_detail(f"outputs_written => {runtime_cfg.output_xlsx}, {runtime_cfg.output_summary}")

    logger.info("\n=== SUMMARY ===\n")
    logger.info("%s", make_summary_text(outcome.items, outcome.validation, outcome.distribution))

    if runtime_cfg.fail_on_mismatch and not outcome.validation.is_valid:
        logger.error("Reconciliation found %d mismatch(es).", len(outcome.validation.errors))
        return EXIT_MISMATCH
    return EXIT_OK


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild a bid cost hierarchy and reconcile pay applications")
    parser.add_argument("--bid-rows", help="CSV/XLSX of extracted bid rows")
    parser.add_argument("--pay-apps", help="CSV/XLSX of monthly pay application quantities")
    parser.add_argument(
        "--month",
        action="append",
        help="Billing month to import/distribute (e.g. 2025-01 or 'Jan 2025'); repeatable",
    )
    parser.add_argument(
        "--distribute",
        action="store_true",
        help="Distribute parent quantities to children with no entries for the month",
    )
    parser.add_argument("--output-dir", help="Directory for generated outputs")
    parser.add_argument(
        "--fail-on-mismatch",
        action="store_true",
        help="Exit with status 2 when validation finds mismatches",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        runtime_cfg = load_runtime_config(os.environ, args)
    except ValueError as exc:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
        logger.error("Invalid configuration: %s", exc)
        return EXIT_FAILURE
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    try:
        return run(runtime_config=runtime_cfg)
    except Exception:  # pragma: no cover - defensive
        logger.exception("Fatal error during reconciliation")
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
