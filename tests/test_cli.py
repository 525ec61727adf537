from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from costrecon.cli import EXIT_FAILURE, EXIT_MISMATCH, EXIT_OK, main

BID_CSV = (
    "ITEM_NUMBER,DESCRIPTION,COST_METHOD,BUDGET,SCHEDULED_VALUE,QUANTITY\n"
    "1,Pay Item,,1000,1000,10\n"
    ",Labor,Labor,600,600,20\n"
    ",Material,Material,400,400,4\n"
)
PAY_CSV = "ITEM_NUMBER,MONTH,QTY\n1,Jan-25,5\n"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("BID_ROWS_PATH", "PAY_APPS_PATH", "OUTPUT_DIR", "TARGET_MONTH", "DISTRIBUTE_QTY", "FAIL_ON_MISMATCH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def inputs(tmp_path: Path):
    bid = tmp_path / "bid.csv"
    pay = tmp_path / "pay.csv"
    bid.write_text(BID_CSV, encoding="utf-8")
    pay.write_text(PAY_CSV, encoding="utf-8")
    return bid, pay


def test_distribution_run_balances_and_writes_outputs(tmp_path: Path, inputs) -> None:
    bid, pay = inputs
    out = tmp_path / "out"

    rc = main(
        [
            "--bid-rows", str(bid),
            "--pay-apps", str(pay),
            "--month", "Jan-25",
            "--distribute",
            "--fail-on-mismatch",
            "--output-dir", str(out),
        ]
    )

    assert rc == EXIT_OK
    summary = json.loads((out / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["item_count"] == 3
    assert summary["validation"]["is_valid"] is True
    assert summary["distribution"]["items_updated"] == 2
    assert summary["distribution"]["details"][0]["percent_complete"] == "50.00%"

    cumulative = pd.read_excel(out / "Reconciliation_Report.xlsx", sheet_name="CUMULATIVE", engine="openpyxl")
    assert cumulative["THIS_MONTH_QTY"].tolist() == [5, 10, 2]


def test_unbilled_children_fail_when_strict(tmp_path: Path, inputs) -> None:
    bid, pay = inputs
    out = tmp_path / "out"

    rc = main(["--bid-rows", str(bid), "--pay-apps", str(pay), "--fail-on-mismatch", "--output-dir", str(out)])

    assert rc == EXIT_MISMATCH
    summary = json.loads((out / "run_summary.json").read_text(encoding="utf-8"))
    (error,) = summary["validation"]["errors"]
    assert error["kind"] == "MONTHLY_AMOUNT_MISMATCH"
    assert error["expected"] == "500.00"
    assert error["actual"] == "0.00"


def test_mismatches_are_reported_without_failing_by_default(tmp_path: Path, inputs) -> None:
    bid, pay = inputs
    rc = main(["--bid-rows", str(bid), "--pay-apps", str(pay), "--output-dir", str(tmp_path / "out")])
    assert rc == EXIT_OK
    assert (tmp_path / "out" / "Reconciliation_Report.xlsx").exists()


def test_environment_supplies_inputs(tmp_path: Path, inputs, monkeypatch) -> None:
    bid, _ = inputs
    monkeypatch.setenv("BID_ROWS_PATH", str(bid))
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "env_out"))

    assert main([]) == EXIT_OK
    assert (tmp_path / "env_out" / "run_summary.json").exists()


def test_missing_inputs_exit_with_failure(tmp_path: Path) -> None:
    assert main(["--output-dir", str(tmp_path)]) == EXIT_FAILURE
    assert main(["--bid-rows", str(tmp_path / "nope.csv"), "--output-dir", str(tmp_path)]) == EXIT_FAILURE


def test_invalid_month_is_a_configuration_error(tmp_path: Path, inputs) -> None:
    bid, _ = inputs
    assert main(["--bid-rows", str(bid), "--month", "someday", "--output-dir", str(tmp_path)]) == EXIT_FAILURE
