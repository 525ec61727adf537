from __future__ import annotations

from datetime import date
from decimal import Decimal

from costrecon.distribution import distribute_months, distribute_parent_qty
from costrecon.ledger import PayAppLedger
from costrecon.models import PayApplicationFact

JAN = date(2025, 1, 1)
FEB = date(2025, 2, 1)
MAR = date(2025, 3, 1)


def _fact(item, month, qty):
    return PayApplicationFact(cost_item_id=item.id, month=month, quantity_this_month=Decimal(str(qty)))


def test_children_receive_parent_percent_complete(item):
    parent = item("P", quantity=100)
    child = item("C1", parent=parent, quantity=50)
    other = item("C2", parent=parent, quantity=10)
    ledger = PayAppLedger([_fact(parent, JAN, 30), _fact(parent, FEB, 10), _fact(child, JAN, 15)])

    result = distribute_parent_qty([parent, child, other], ledger, FEB)

    assert result.items_updated == 2
    assert result.months_processed == [FEB]
    (detail,) = result.details
    assert detail.parent_id == parent.id
    assert detail.children_count == 2
    assert detail.percent_complete == Decimal("0.4")
    assert detail.percent_label == "40.00%"

    child_fact = ledger.get(child.id, FEB)
    assert child_fact.quantity_this_month == Decimal("5")
    assert child_fact.stored_materials == Decimal("0")
    assert ledger.quantity_for(other.id, FEB) == Decimal("4")


def test_distribution_is_noop_when_children_already_billed(item):
    parent = item("P", quantity=100)
    a = item("A", parent=parent, quantity=50)
    b = item("B", parent=parent, quantity=50)
    ledger = PayAppLedger([_fact(parent, JAN, 40), _fact(a, JAN, 20), _fact(b, JAN, 20)])

    result = distribute_parent_qty([parent, a, b], ledger, JAN)

    assert result.items_updated == 0
    assert result.details == []


def test_partial_child_entries_are_never_overwritten(item):
    parent = item("P", quantity=100)
    a = item("A", parent=parent, quantity=50)
    b = item("B", parent=parent, quantity=50)
    ledger = PayAppLedger([_fact(parent, JAN, 40), _fact(a, JAN, 7)])

    result = distribute_parent_qty([parent, a, b], ledger, JAN)

    assert result.items_updated == 0
    assert ledger.get(b.id, JAN) is None
    assert ledger.quantity_for(a.id, JAN) == Decimal("7")


def test_zero_child_entries_count_as_silent(item):
    parent = item("P", quantity=10)
    a = item("A", parent=parent, quantity=20)
    ledger = PayAppLedger([_fact(parent, JAN, 5), _fact(a, JAN, 0)])

    result = distribute_parent_qty([parent, a], ledger, JAN)

    assert result.items_updated == 1
    assert ledger.quantity_for(a.id, JAN) == Decimal("10")


def test_negative_month_quantity_is_clamped_to_zero(item):
    parent = item("P", quantity=100)
    child = item("C", parent=parent, quantity=50)
    ledger = PayAppLedger([_fact(parent, JAN, 20), _fact(child, JAN, 30), _fact(parent, FEB, 10)])

    result = distribute_parent_qty([parent, child], ledger, FEB)

    assert result.items_updated == 1
    assert ledger.get(child.id, FEB).quantity_this_month == Decimal("0")


def test_parents_without_usable_data_are_skipped(item):
    no_fact = item("NF", quantity=100)
    nf_child = item("NFC", parent=no_fact, quantity=10)
    zero_qty = item("ZQ", quantity=100)
    zq_child = item("ZQC", parent=zero_qty, quantity=10)
    zero_total = item("ZT", quantity=0)
    zt_child = item("ZTC", parent=zero_total, quantity=10)
    unknown_total = item("UT", quantity=None)
    ut_child = item("UTC", parent=unknown_total, quantity=10)
    leaf = item("LEAF", quantity=5)
    items = [no_fact, nf_child, zero_qty, zq_child, zero_total, zt_child, unknown_total, ut_child, leaf]
    ledger = PayAppLedger(
        [
            _fact(zero_qty, JAN, 0),
            _fact(zero_total, JAN, 3),
            _fact(unknown_total, JAN, 3),
            _fact(leaf, JAN, 1),
            PayApplicationFact(cost_item_id=no_fact.id, month=FEB, quantity_this_month=None),
        ]
    )

    result = distribute_parent_qty(items, ledger, JAN)

    assert result.items_updated == 0
    assert len(ledger) == 5


def test_children_with_unknown_total_are_not_written(item):
    parent = item("P", quantity=10)
    known = item("K", parent=parent, quantity=20)
    unknown = item("U", parent=parent, quantity=None)
    ledger = PayAppLedger([_fact(parent, JAN, 5)])

    result = distribute_parent_qty([parent, known, unknown], ledger, JAN)

    assert result.items_updated == 1
    assert result.details[0].children_count == 1
    assert ledger.get(unknown.id, JAN) is None


def test_rerun_is_self_limiting(item):
    parent = item("P", quantity=100)
    child = item("C", parent=parent, quantity=50)
    ledger = PayAppLedger([_fact(parent, JAN, 40)])

    first = distribute_parent_qty([parent, child], ledger, JAN)
    second = distribute_parent_qty([parent, child], ledger, JAN)

    assert first.items_updated == 1
    assert second.items_updated == 0
    assert ledger.quantity_for(child.id, JAN) == Decimal("20")


def test_target_month_is_normalized(item):
    parent = item("P", quantity=100)
    child = item("C", parent=parent, quantity=50)
    ledger = PayAppLedger([_fact(parent, JAN, 40)])

    result = distribute_parent_qty([parent, child], ledger, date(2025, 1, 17))

    assert result.months_processed == [JAN]
    assert ledger.quantity_for(child.id, JAN) == Decimal("20")


def test_distribute_months_runs_oldest_first_and_merges(item):
    parent = item("P", quantity=100)
    child = item("C", parent=parent, quantity=10)
    ledger = PayAppLedger([_fact(parent, JAN, 20), _fact(parent, MAR, 30)])

    result = distribute_months([parent, child], ledger, [MAR, JAN, JAN])

    assert result.months_processed == [JAN, MAR]
    assert result.items_updated == 2
    assert ledger.quantity_for(child.id, JAN) == Decimal("2")
    # cumulative 50% by March, 2 already billed in January
    assert ledger.quantity_for(child.id, MAR) == Decimal("3")
    assert result.to_dict()["details"][1]["percent_complete"] == "50.00%"
