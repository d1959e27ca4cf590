"""Stock precondition guard: unlocked, aggregated per product, never writes."""

import pytest

from pharmapos.errors import InsufficientStock, InventoryRecordNotFound, ValidationError
from pharmapos.models import InventoryMovement
from pharmapos.services import stock_guard
from pharmapos.services.stock_guard import SHORTAGE_INSUFFICIENT, SHORTAGE_MISSING
from pharmapos.validation import SaleItem


def test_enough_stock(stocked):
    wh = stocked["warehouse"]
    result = stock_guard.check_stock(
        [SaleItem(stocked["paracetamol"].id, 10), SaleItem(stocked["ibuprofen"].id, 1)],
        wh.id,
    )
    assert result.ok
    assert result.shortages == []


def test_quantities_are_summed_per_product(stocked):
    p, wh = stocked["ibuprofen"], stocked["warehouse"]
    result = stock_guard.check_stock([SaleItem(p.id, 3), SaleItem(p.id, 3)], wh.id)

    assert not result.ok
    shortage = result.shortages[0]
    assert shortage.reason == SHORTAGE_INSUFFICIENT
    assert shortage.requested == 6
    assert shortage.available == 5
    assert shortage.product_name == "Ibuprofeno 400mg"


def test_reports_all_shortages_in_product_order(stocked, make_product):
    never_stocked = make_product("Omeprazol 20mg", "40.00")
    wh = stocked["warehouse"]
    items = [
        SaleItem(never_stocked.id, 1),
        SaleItem(stocked["ibuprofen"].id, 9),
        SaleItem(stocked["paracetamol"].id, 11),
    ]

    result = stock_guard.check_stock(items, wh.id)
    assert [s.product_id for s in result.shortages] == sorted(i.product_id for i in items)
    reasons = {s.product_id: s.reason for s in result.shortages}
    assert reasons[never_stocked.id] == SHORTAGE_MISSING

    first_only = stock_guard.check_stock(items, wh.id, report_all=False)
    assert len(first_only.shortages) == 1


def test_other_warehouse_stock_does_not_count(stocked, branch_warehouse):
    result = stock_guard.check_stock([SaleItem(stocked["paracetamol"].id, 1)], branch_warehouse.id)
    assert result.shortages[0].reason == SHORTAGE_MISSING


def test_require_stock_raises_with_every_shortage(stocked):
    wh = stocked["warehouse"]
    items = [SaleItem(stocked["paracetamol"].id, 20), SaleItem(stocked["ibuprofen"].id, 6)]

    with pytest.raises(InsufficientStock) as exc_info:
        stock_guard.require_stock(items, wh.id)

    assert len(exc_info.value.details["shortages"]) == 2
    assert exc_info.value.status_code == 409


def test_require_stock_missing_record(paracetamol, warehouse):
    with pytest.raises(InventoryRecordNotFound):
        stock_guard.require_stock([SaleItem(paracetamol.id, 1)], warehouse.id)


def test_guard_writes_nothing(stocked):
    before = InventoryMovement.query.count()
    stock_guard.check_stock([SaleItem(stocked["paracetamol"].id, 99)], stocked["warehouse"].id)
    assert InventoryMovement.query.count() == before


def test_check_stock_accepts_mappings(stocked):
    p, wh = stocked["ibuprofen"], stocked["warehouse"]
    result = stock_guard.check_stock(
        [{"product_id": p.id, "quantity": 4}, {"product_id": p.id, "quantity": 2}],
        wh.id,
    )

    assert not result.ok
    assert result.shortages[0].requested == 6


def test_require_stock_accepts_mappings(stocked):
    stock_guard.require_stock([{"product_id": stocked["paracetamol"].id, "quantity": 10}], stocked["warehouse"].id)


def test_check_stock_rejects_empty_items(warehouse):
    with pytest.raises(ValidationError):
        stock_guard.check_stock([], warehouse.id)
