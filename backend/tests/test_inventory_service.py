"""
Inventory ledger: sufficiency checks, guarded deductions and the audit log.

Verifies:
- Every deficient item is reported, not just the first
- Deductions never take stock below zero
- Each deduction appends exactly one log row
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from cafe_pos.models import DeductionLogEntry, InventoryItem, Order, OrderLine
from cafe_pos.services import inventory_service
from cafe_pos.services.inventory_service import InsufficientQuantityError, InventoryError, InventoryLedger
from cafe_pos.time_utils import utcnow
from cafe_pos.validation import ValidationError

from conftest import make_item, stock_of


def _persist_order(db_session, cashier, product, quantity):
    """Bare order + line rows so deductions have something to point at."""
    now = utcnow()
    order = Order(
        order_number=f"TEST-{product.id}-{quantity}",
        cashier_id=cashier.id,
        subtotal_minor=product.price_minor * quantity,
        tax_amount_minor=0,
        total_amount_minor=product.price_minor * quantity,
        payment_method="cash",
        business_date=now.date(),
        created_at=now,
    )
    db_session.add(order)
    db_session.flush()
    line = OrderLine(
        order_id=order.id,
        product_id=product.id,
        quantity=quantity,
        unit_price_minor=product.price_minor,
        subtotal_minor=product.price_minor * quantity,
    )
    db_session.add(line)
    db_session.flush()
    return order, line


class TestCheckSufficiency:
    def test_sufficient(self, db_session, cup, milk):
        result = InventoryLedger(db_session).check_sufficiency({cup.id: Decimal("10"), milk.id: Decimal("1")})

        assert result.ok
        assert result.summary() is None

    def test_lists_every_deficient_item(self, db_session, cup, milk):
        result = InventoryLedger(db_session).check_sufficiency({cup.id: Decimal("11"), milk.id: Decimal("1000.5")})

        assert not result.ok
        assert [s.name for s in result.shortages] == ["Cup", "Milk"]
        assert result.summary() == "Cup: required 11, available 10"
        assert result.shortages[1].to_dict() == {
            "inventory_item_id": milk.id,
            "name": "Milk",
            "required": 1000.5,
            "available": 1000.0,
        }

    def test_missing_item_is_skipped(self, db_session, cup):
        result = InventoryLedger(db_session).check_sufficiency({cup.id: Decimal("1"), 9999: Decimal("50")})

        assert result.ok

    def test_empty_requirements(self, db_session):
        assert InventoryLedger(db_session).check_sufficiency({}).ok


class TestDeductAndLog:
    def test_deducts_per_link_and_logs(self, db_session, cashier_user, latte, cup, milk):
        order, line = _persist_order(db_session, cashier_user, latte, 2)

        entries = InventoryLedger(db_session).deduct_and_log(
            order_id=order.id,
            order_line_id=line.id,
            product_id=latte.id,
            product_name=latte.name,
            quantity_ordered=2,
            unit_price_minor=latte.price_minor,
        )
        db_session.commit()

        assert stock_of(cup.id) == Decimal("8")
        assert stock_of(milk.id) == Decimal("600")
        assert len(entries) == 2
        logged = {e.inventory_item_name: e for e in db_session.query(DeductionLogEntry).all()}
        assert logged["Cup"].quantity_deducted == Decimal("2")
        assert logged["Milk"].quantity_deducted == Decimal("400")
        assert logged["Milk"].product_name == "Latte"
        assert logged["Milk"].unit_selling_price_minor == 1500
        assert logged["Milk"].order_line_id == line.id

    def test_guard_refuses_to_go_negative(self, db_session, cup):
        ledger = InventoryLedger(db_session)

        with pytest.raises(InventoryError) as exc:
            ledger._decrement(cup.id, Decimal("11"), "Cup")

        assert exc.value.details["available"] == 10.0
        db_session.rollback()
        assert stock_of(cup.id) == Decimal("10")


class TestAdjust:
    def test_restock_and_write_off(self, db_session, cup):
        assert inventory_service.adjust_item(cup.id, 5) == Decimal("15")
        assert inventory_service.adjust_item(cup.id, "-15") == Decimal("0")

    def test_write_off_beyond_stock_is_rejected(self, db_session, cup):
        with pytest.raises(InsufficientQuantityError) as exc:
            inventory_service.adjust_item(cup.id, -10.5)

        assert exc.value.shortage.describe() == "Cup: required 10.5, available 10"
        assert stock_of(cup.id) == Decimal("10")

    def test_fractional_changes_are_exact(self, db_session):
        syrup = make_item(db_session, "Syrup", 0)
        for _ in range(3):
            inventory_service.adjust_item(syrup.id, 0.1)

        assert stock_of(syrup.id) == Decimal("0.3")
        assert inventory_service.adjust_item(syrup.id, -0.3) == Decimal("0")

    def test_stored_as_ten_thousandths(self, db_session, milk):
        raw = db_session.execute(
            text("SELECT quantity FROM inventory_items WHERE id = :id"), {"id": milk.id}
        ).scalar_one()

        assert raw == 10000000
        assert stock_of(milk.id) == Decimal("1000.0000")

    @pytest.mark.parametrize("change", [0, None, "", "x"])
    def test_requires_non_zero_number(self, db_session, cup, change):
        with pytest.raises(ValidationError):
            inventory_service.adjust_item(cup.id, change)

    def test_unknown_item(self, db_session):
        with pytest.raises(InventoryError):
            inventory_service.adjust_item(12345, 1)


class TestItemCrud:
    def test_create_update_delete(self, db_session):
        item = inventory_service.create_item({"name": " Beans ", "quantity": "2.5", "unit_cost": 0.012, "min_quantity": 1})

        assert item.name == "Beans"
        assert item.to_dict()["quantity"] == 2.5
        assert item.unit_cost_minor == 12

        inventory_service.update_item(item.id, {"min_quantity": 3})
        assert inventory_service.get_item(item.id).is_low

        inventory_service.delete_item(item.id)
        with pytest.raises(InventoryError):
            inventory_service.get_item(item.id)

    def test_negative_quantity_rejected(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_item({"name": "Sugar", "quantity": -1})

    def test_update_requires_fields(self, db_session, cup):
        with pytest.raises(ValidationError):
            inventory_service.update_item(cup.id, {})

    def test_low_stock(self, db_session, cup, milk):
        make_item(db_session, "Lid", 2, min_quantity=2)

        assert [i.name for i in inventory_service.low_stock_items()] == ["Lid"]

    def test_delete_item_removes_its_links(self, db_session, latte, cup):
        inventory_service.delete_item(cup.id)

        assert db_session.get(InventoryItem, cup.id) is None
        assert [l.inventory_item.name for l in latte.recipe_links] == ["Milk"]


class TestDeductionLog:
    def test_filters(self, db_session, cashier_user, latte, cup):
        order, line = _persist_order(db_session, cashier_user, latte, 1)
        InventoryLedger(db_session).deduct_and_log(
            order_id=order.id, order_line_id=line.id, product_id=latte.id,
            product_name=latte.name, quantity_ordered=1, unit_price_minor=latte.price_minor,
        )
        db_session.commit()

        assert len(inventory_service.deduction_log()) == 2
        assert len(inventory_service.deduction_log(inventory_item_id=cup.id)) == 1
        assert inventory_service.deduction_log(order_id=order.id + 1) == []
        assert inventory_service.deduction_log(start="2000-01-01", end="2000-01-02") == []

    def test_bad_date(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.deduction_log(start="yesterday")
