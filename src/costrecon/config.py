from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional, Tuple

from .numeric import parse_month

_BOOLEAN_TRUE = {"1", "true", "yes", "on"}

REPORT_XLSX_NAME = "Reconciliation_Report.xlsx"
RUN_SUMMARY_NAME = "run_summary.json"


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    base_dir: Path
    bid_rows_path: Optional[Path]
    pay_apps_path: Optional[Path]
    output_dir: Path
    output_xlsx: Path
    output_summary: Path
    target_months: Tuple[date, ...] = field(default_factory=tuple)
    distribute: bool = False
    fail_on_mismatch: bool = False
    verbose: bool = False


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser().resolve()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _to_months(value: object | None) -> Tuple[date, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        parts = str(value).split(",")
    months = {parse_month(part) for part in parts if part.strip()}
    return tuple(sorted(months))


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options.

    CLI options take precedence over the environment. ``TARGET_MONTH`` may
    hold several comma-separated months.
    """

    base_dir = Path(__file__).resolve().parents[2]
    default_output_dir = (base_dir / "outputs").resolve()

    bid_rows_path = _to_path(env.get("BID_ROWS_PATH"))
    pay_apps_path = _to_path(env.get("PAY_APPS_PATH"))
    output_dir = _to_path(env.get("OUTPUT_DIR")) or default_output_dir
    target_months = _to_months(env.get("TARGET_MONTH"))
    distribute = _flag(env.get("DISTRIBUTE_QTY"))
    fail_on_mismatch = _flag(env.get("FAIL_ON_MISMATCH"))
    verbose = False

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "bid_rows", None):
        bid_rows_path = _to_path(cli_ns.bid_rows)
    if getattr(cli_ns, "pay_apps", None):
        pay_apps_path = _to_path(cli_ns.pay_apps)
    if getattr(cli_ns, "output_dir", None):
        output_dir = _to_path(cli_ns.output_dir) or output_dir
    if getattr(cli_ns, "month", None):
        target_months = _to_months(cli_ns.month)
    if getattr(cli_ns, "distribute", False):
        distribute = True
    if getattr(cli_ns, "fail_on_mismatch", False):
        fail_on_mismatch = True
    if getattr(cli_ns, "verbose", False):
        verbose = bool(cli_ns.verbose)

    return Config(
        base_dir=base_dir,
        bid_rows_path=bid_rows_path,
        pay_apps_path=pay_apps_path,
        output_dir=output_dir,
        output_xlsx=(output_dir / REPORT_XLSX_NAME).resolve(),
        output_summary=(output_dir / RUN_SUMMARY_NAME).resolve(),
        target_months=target_months,
        distribute=distribute,
        fail_on_mismatch=fail_on_mismatch,
        verbose=verbose,
    )


__all__ = ["Config", "load_config"]
