"""
Order placement: the single all-or-nothing write path.

Verifies:
- Pricing, stock consumption, audit log and daily totals for a sale
- Insufficient stock rejects the whole order with nothing written
- A failure at any later step rolls every earlier step back
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from cafe_pos.extensions import db
from cafe_pos.models import DailyAggregate, DeductionLogEntry, InventoryItem, Order, OrderLine
from cafe_pos.services import order_service
from cafe_pos.services.inventory_service import SufficiencyResult
from cafe_pos.services.order_service import (
    InsufficientStockError,
    OrderCoordinator,
    OrderError,
    OrderLineRequest,
    OrderRequest,
    price_order,
)
from cafe_pos.validation import ValidationError

from conftest import make_item, make_product, stock_of


def _request(*lines, discount_minor=0, payment_method="cash", table_id=None):
    return OrderRequest(
        lines=tuple(
            OrderLineRequest(product_id=product.id, quantity=quantity, unit_price_minor=product.price_minor)
            for product, quantity in lines
        ),
        discount_minor=discount_minor,
        payment_method=payment_method,
        table_id=table_id,
    )


def _nothing_written():
    return (
        db.session.query(Order).count() == 0
        and db.session.query(OrderLine).count() == 0
        and db.session.query(DeductionLogEntry).count() == 0
        and db.session.query(DailyAggregate).count() == 0
    )


class TestPricing:
    def test_subtotal_tax_total(self, db_session, latte):
        priced = price_order(_request((latte, 2)), 5)

        assert priced.subtotal_minor == 3000
        assert priced.tax_minor == 150
        assert priced.total_minor == 3150

    def test_discount_is_taken_before_tax(self, db_session, latte):
        priced = price_order(_request((latte, 2), discount_minor=1000), 5)

        assert priced.net_minor == 2000
        assert priced.tax_minor == 100
        assert priced.total_minor == 2100

    def test_discount_larger_than_subtotal_is_not_clamped(self, db_session, cookie):
        priced = price_order(_request((cookie, 1), discount_minor=2000), 5)

        assert priced.net_minor == -1250
        assert priced.tax_minor == -63
        assert priced.total_minor == -1313


class TestPlaceOrder:
    def test_successful_order(self, db_session, coordinator, cashier_user, latte, cup, milk):
        receipt = coordinator.place_order(_request((latte, 2)), cashier_user.id)

        assert receipt.to_dict() == {
            "order_id": receipt.order_id,
            "order_number": receipt.order_number,
            "subtotal": 3.0,
            "total_amount": 3.15,
            "tax_amount": 0.15,
            "discount_amount": 0.0,
        }
        assert receipt.order_number.startswith("ORD-")

        order = db_session.get(Order, receipt.order_id)
        assert order.status == "completed"
        assert order.total_amount_minor == 3150
        assert [(l.quantity, l.subtotal_minor) for l in order.lines] == [(2, 3000)]

        assert stock_of(cup.id) == Decimal("8")
        assert stock_of(milk.id) == Decimal("600")

        aggregate = db_session.query(DailyAggregate).one()
        assert aggregate.report_date == receipt.business_date
        assert aggregate.total_orders == 1
        assert aggregate.total_sales_minor == 3150
        assert aggregate.total_tax_minor == 150

    def test_insufficient_stock_rejects_everything(self, db_session, coordinator, cashier_user, drinks, latte, cup, milk):
        db_session.query(InventoryItem).filter_by(id=cup.id).update({"quantity": Decimal("3")})
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            coordinator.place_order(_request((latte, 4)), cashier_user.id)

        assert exc.value.detail == "Cup: required 4, available 3"
        assert exc.value.details["items"] == [
            {"inventory_item_id": cup.id, "name": "Cup", "required": 4.0, "available": 3.0}
        ]
        assert _nothing_written()
        assert stock_of(cup.id) == Decimal("3")
        assert stock_of(milk.id) == Decimal("1000")

    def test_whole_order_is_checked_before_any_deduction(self, db_session, coordinator, cashier_user, drinks, latte, cup, milk):
        """The first line alone would fit; together with the second it does not."""
        beans = make_item(db_session, "Beans", 5)
        espresso = make_product(db_session, drinks, "Espresso", "1.200", {beans: 10, cup: 1})

        with pytest.raises(InsufficientStockError) as exc:
            coordinator.place_order(_request((latte, 2), (espresso, 1)), cashier_user.id)

        assert [s.name for s in exc.value.shortages] == ["Beans"]
        assert _nothing_written()
        assert stock_of(cup.id) == Decimal("10")
        assert stock_of(milk.id) == Decimal("1000")

    def test_lines_share_stock(self, db_session, coordinator, cashier_user, latte, cup):
        """Two lines of 6 lattes need 12 cups even though each line alone fits."""
        with pytest.raises(InsufficientStockError):
            coordinator.place_order(_request((latte, 6), (latte, 6)), cashier_user.id)

        assert stock_of(cup.id) == Decimal("10")

    def test_guard_failure_after_stale_check_is_a_stock_rejection(self, db_session, coordinator, cashier_user, latte, cup, milk, monkeypatch):
        """Stock that moved after the check is caught by the row guard and reported the same way."""
        db_session.query(InventoryItem).filter_by(id=cup.id).update({"quantity": Decimal("3")})
        db_session.commit()
        monkeypatch.setattr(coordinator.ledger, "check_sufficiency", lambda requirements: SufficiencyResult())

        with pytest.raises(InsufficientStockError) as exc:
            coordinator.place_order(_request((latte, 4)), cashier_user.id)

        assert exc.value.detail == "Cup: required 4, available 3"
        assert exc.value.details["items"][0]["name"] == "Cup"
        assert _nothing_written()
        assert stock_of(cup.id) == Decimal("3")
        assert stock_of(milk.id) == Decimal("1000")

    def test_fractional_stock_is_consumed_exactly(self, db_session, coordinator, cashier_user, drinks):
        syrup = make_item(db_session, "Syrup", "0.3")
        shot = make_product(db_session, drinks, "Syrup shot", "0.500", {syrup: "0.1"})

        for _ in range(3):
            coordinator.place_order(_request((shot, 1)), cashier_user.id)

        assert stock_of(syrup.id) == Decimal("0")
        with pytest.raises(InsufficientStockError) as exc:
            coordinator.place_order(_request((shot, 1)), cashier_user.id)
        assert exc.value.detail == "Syrup: required 0.1, available 0"
        assert db_session.query(Order).count() == 3

    def test_failure_in_aggregate_step_rolls_back(self, db_session, coordinator, cashier_user, latte, cup, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(coordinator.tracker, "upsert_for_date", boom)

        with pytest.raises(RuntimeError):
            coordinator.place_order(_request((latte, 1)), cashier_user.id)

        assert _nothing_written()
        assert stock_of(cup.id) == Decimal("10")

    def test_failure_in_deduction_step_rolls_back(self, db_session, coordinator, cashier_user, latte, cookie, cup, monkeypatch):
        calls = []
        original = coordinator.ledger.deduct_and_log

        def fail_on_second_line(**kwargs):
            calls.append(kwargs["product_id"])
            if len(calls) == 2:
                raise RuntimeError("connection lost")
            return original(**kwargs)

        monkeypatch.setattr(coordinator.ledger, "deduct_and_log", fail_on_second_line)

        with pytest.raises(RuntimeError):
            coordinator.place_order(_request((latte, 1), (cookie, 1)), cashier_user.id)

        assert _nothing_written()
        assert stock_of(cup.id) == Decimal("10")

    def test_daily_aggregate_accumulates(self, app, db_session, cashier_user, drinks):
        coordinator = OrderCoordinator(db_session, tax_rate_percent=0, timezone_name="UTC")
        a = make_product(db_session, drinks, "A", "10.000")
        b = make_product(db_session, drinks, "B", "20.500")
        c = make_product(db_session, drinks, "C", "5.250")

        for product in (a, b, c):
            coordinator.place_order(_request((product, 1)), cashier_user.id)

        aggregate = db_session.query(DailyAggregate).one()
        assert aggregate.total_orders == 3
        assert aggregate.total_sales_minor == 35750
        assert aggregate.total_tax_minor == 0

    def test_aggregate_keyed_by_business_date(self, app, db_session, cashier_user, cookie):
        coordinator = OrderCoordinator(
            db_session, tax_rate_percent=5, timezone_name="UTC", clock=lambda: datetime(2024, 3, 1, 23, 59, 59)
        )

        receipt = coordinator.place_order(_request((cookie, 2)), cashier_user.id)

        assert receipt.business_date == date(2024, 3, 1)
        assert db_session.query(DailyAggregate).one().report_date == date(2024, 3, 1)
        assert db_session.get(Order, receipt.order_id).business_date == date(2024, 3, 1)

    def test_audit_log_per_line_and_link(self, db_session, coordinator, cashier_user, latte, cookie):
        receipt = coordinator.place_order(_request((latte, 2), (cookie, 1), (latte, 1)), cashier_user.id)

        entries = (
            db_session.query(DeductionLogEntry)
            .filter_by(order_id=receipt.order_id)
            .order_by(DeductionLogEntry.order_line_id, DeductionLogEntry.inventory_item_id)
            .all()
        )
        # cookie has no recipe: 2 latte lines x 2 links
        assert len(entries) == 4
        assert [(e.inventory_item_name, e.quantity_deducted) for e in entries] == [
            ("Cup", Decimal("2")), ("Milk", Decimal("400")),
            ("Cup", Decimal("1")), ("Milk", Decimal("200")),
        ]
        assert {e.product_name for e in entries} == {"Latte"}
        assert {e.unit_selling_price_minor for e in entries} == {1500}
        line_ids = [line.id for line in db_session.get(Order, receipt.order_id).lines if line.product_id == cookie.id]
        assert not {e.order_line_id for e in entries} & set(line_ids)

    def test_orphaned_link_is_ignored(self, db_session, coordinator, cashier_user, latte, cup, milk):
        # Remove the row underneath the link without going through the ORM cascade
        db_session.execute(InventoryItem.__table__.delete().where(InventoryItem.id == milk.id))
        db_session.commit()

        receipt = coordinator.place_order(_request((latte, 1)), cashier_user.id)

        assert receipt.total_minor == 1575
        assert stock_of(cup.id) == Decimal("9")
        assert [e.inventory_item_name for e in db_session.query(DeductionLogEntry).all()] == ["Cup"]

    def test_unknown_product(self, db_session, coordinator, cashier_user):
        request = OrderRequest(lines=(OrderLineRequest(product_id=999, quantity=1, unit_price_minor=1000),))

        with pytest.raises(OrderError) as exc:
            coordinator.place_order(request, cashier_user.id)

        assert exc.value.details == {"product_ids": [999]}
        assert _nothing_written()

    def test_unknown_table(self, db_session, coordinator, cashier_user, cookie):
        with pytest.raises(OrderError):
            coordinator.place_order(_request((cookie, 1), table_id=42), cashier_user.id)

        assert _nothing_written()

    def test_order_numbers_are_unique(self, db_session, cashier_user, cookie):
        fixed = datetime(2024, 1, 1, 12, 0, 0)
        coordinator = OrderCoordinator(db_session, clock=lambda: fixed)

        numbers = {coordinator.place_order(_request((cookie, 1)), cashier_user.id).order_number for _ in range(3)}

        assert len(numbers) == 3


class TestOrderRequest:
    def test_parses_payload(self):
        request = OrderRequest.from_payload({
            "lines": [{"product_id": 1, "quantity": 2, "unit_price": 1.5}],
            "discount_amount": "0.250",
            "payment_method": "card",
            "table_id": "3",
        })

        assert request.lines == (OrderLineRequest(product_id=1, quantity=2, unit_price_minor=1500),)
        assert request.discount_minor == 250
        assert request.payment_method == "card"
        assert request.table_id == 3

    def test_defaults_and_items_alias(self):
        request = OrderRequest.from_payload({
            "items": [{"product_id": 1, "quantity": 1, "unit_price": 0}],
            "table_id": "",
        })

        assert request.discount_minor == 0
        assert request.payment_method == "cash"
        assert request.table_id is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {"lines": []},
            {"lines": "latte"},
            {"lines": [{"product_id": 1, "quantity": 0, "unit_price": 1}]},
            {"lines": [{"product_id": 1, "quantity": "2.5", "unit_price": 1}]},
            {"lines": [{"product_id": 1, "quantity": 1}]},
            {"lines": [{"product_id": 1, "quantity": 1, "unit_price": -1}]},
            {"lines": [{"product_id": "x", "quantity": 1, "unit_price": 1}]},
            {"lines": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cheque"},
            {"lines": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "discount_amount": -1},
            {"lines": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "table_id": 0},
        ],
    )
    def test_rejects_bad_payloads(self, payload):
        with pytest.raises(ValidationError):
            OrderRequest.from_payload(payload)


class TestOrderReads:
    def test_list_and_filter(self, db_session, coordinator, cashier_user, cookie, table_one):
        takeaway = coordinator.place_order(_request((cookie, 1)), cashier_user.id)
        dine_in = coordinator.place_order(_request((cookie, 1), table_id=table_one.id), cashier_user.id)

        assert [o.id for o in order_service.list_orders(table_id=0)] == [takeaway.order_id]
        assert [o.id for o in order_service.list_orders(table_id=table_one.id)] == [dine_in.order_id]
        assert len(order_service.list_orders(day=takeaway.business_date.isoformat())) == 2
        assert order_service.list_orders(day="2000-01-01") == []
        assert len(order_service.list_orders(limit=1)) == 1

    def test_get_order(self, db_session, coordinator, cashier_user, cookie, table_one):
        receipt = coordinator.place_order(_request((cookie, 3), table_id=table_one.id), cashier_user.id)

        order, lines = order_service.get_order(receipt.order_id)

        assert order.to_dict()["table_name"] == "Table 1"
        assert [line.to_dict()["name"] for line in lines] == ["Cookie"]
        with pytest.raises(OrderError):
            order_service.get_order(receipt.order_id + 100)

    def test_bad_date_filter(self, db_session):
        with pytest.raises(ValidationError):
            order_service.list_orders(day="01/02/2024")
