"""
Order Service - cashier order submission and order reads

WHY: Placing an order is the one write path that touches everything at
once: it prices the cart, consumes raw materials through recipes, writes
the order and its lines, appends the deduction audit trail and bumps the
day's running totals. It has to do all of that or none of it.

Lifecycle of one submission (all inside one transaction):

    RECEIVED -> PRICED -> INVENTORY_CHECKED -> REJECTED_INSUFFICIENT
                                            -> PERSISTED -> DEDUCTED -> AGGREGATED -> COMMITTED

Any exception before COMMITTED rolls the whole transaction back.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import DiningTable, Order, OrderLine, PAYMENT_METHODS, Product
from ..money import (
    add_minor,
    format_minor,
    multiply_minor,
    percentage_of_minor,
    to_major_units,
    to_minor_units,
)
from ..time_utils import business_date, parse_iso_date, utcnow
from ..validation import ValidationError, coerce_int, coerce_number, coerce_positive_int
from .aggregate_service import AggregateDelta, DailyAggregateTracker
from .concurrency import RETRYABLE_ERRORS, run_with_retry, transaction
from .inventory_service import InsufficientQuantityError, InventoryLedger, SufficiencyResult
from .recipe_service import RecipeResolver

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE_PERCENT = 5


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(OrderError):
    """
    Business rejection: the order needs more raw material than is in stock.

    Nothing the order wrote survives it. detail names the first deficient
    item; details["items"] lists all of them.
    """
    def __init__(self, result: SufficiencyResult):
        super().__init__(
            "Insufficient inventory",
            details={"items": [shortage.to_dict() for shortage in result.shortages]},
        )
        self.shortages = result.shortages
        self.detail = result.summary()


@dataclass(frozen=True)
class OrderLineRequest:
    product_id: int
    quantity: int
    unit_price_minor: int


@dataclass(frozen=True)
class OrderRequest:
    """A validated cart submission. Money is already in minor units."""
    lines: tuple[OrderLineRequest, ...]
    discount_minor: int = 0
    payment_method: str = "cash"
    table_id: int | None = None

    @classmethod
    def from_payload(cls, data: dict | None) -> "OrderRequest":
        """
        Validate a JSON body before any transaction begins.

        Accepts "lines" (or the cashier screen's "items") with product_id,
        quantity and unit_price per line, plus discount_amount,
        payment_method and an optional table_id.
        """
        data = data or {}
        raw_lines = data.get("lines", data.get("items"))
        if not isinstance(raw_lines, list) or not raw_lines:
            raise ValidationError("lines must be a non-empty list")

        lines = []
        for index, raw in enumerate(raw_lines):
            if not isinstance(raw, dict):
                raise ValidationError(f"lines[{index}] must be an object")
            unit_price = coerce_number(f"lines[{index}].unit_price", raw.get("unit_price"))
            if unit_price < 0:
                raise ValidationError(f"lines[{index}].unit_price cannot be negative")
            lines.append(OrderLineRequest(
                product_id=coerce_positive_int(f"lines[{index}].product_id", raw.get("product_id")),
                quantity=coerce_positive_int(f"lines[{index}].quantity", raw.get("quantity")),
                unit_price_minor=to_minor_units(unit_price),
            ))

        discount = coerce_number("discount_amount", data.get("discount_amount"), required=False, default=0)
        if discount < 0:
            raise ValidationError("discount_amount cannot be negative")

        payment_method = data.get("payment_method") or "cash"
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

        table_id = coerce_int("table_id", data.get("table_id"), required=False)
        if table_id is not None and table_id <= 0:
            raise ValidationError("table_id must be a positive integer")

        return cls(
            lines=tuple(lines),
            discount_minor=to_minor_units(discount),
            payment_method=payment_method,
            table_id=table_id,
        )


@dataclass(frozen=True)
class PricedOrder:
    line_subtotals: tuple[int, ...]
    subtotal_minor: int
    discount_minor: int
    net_minor: int
    tax_minor: int
    total_minor: int


def price_order(request: OrderRequest, tax_rate_percent) -> PricedOrder:
    """
    Fixed-point pricing of a cart.

    A discount larger than the subtotal is passed through as-is, giving a
    negative net, tax and total.
    """
    line_subtotals = tuple(
        multiply_minor(line.unit_price_minor, line.quantity) for line in request.lines
    )
    subtotal = add_minor(*line_subtotals)
    net = add_minor(subtotal, -request.discount_minor)
    tax = percentage_of_minor(net, tax_rate_percent)
    return PricedOrder(
        line_subtotals=line_subtotals,
        subtotal_minor=subtotal,
        discount_minor=request.discount_minor,
        net_minor=net,
        tax_minor=tax,
        total_minor=add_minor(net, tax),
    )


@dataclass(frozen=True)
class OrderReceipt:
    order_id: int
    order_number: str
    subtotal_minor: int
    total_minor: int
    tax_minor: int
    discount_minor: int
    business_date: date

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "subtotal": to_major_units(self.subtotal_minor),
            "total_amount": to_major_units(self.total_minor),
            "tax_amount": to_major_units(self.tax_minor),
            "discount_amount": to_major_units(self.discount_minor),
        }


class OrderCoordinator:
    """
    Runs one order submission as a single all-or-nothing transaction.

    Collaborators share the session passed in here; nothing reaches for a
    global connection. Concurrent submissions are serialized by the
    database: stock rows are locked during the sufficiency check (SQLite
    takes the write lock up front), deductions and the daily increment are
    in-place UPDATEs.
    """

    def __init__(
        self,
        session: Session,
        *,
        tax_rate_percent=DEFAULT_TAX_RATE_PERCENT,
        order_number_prefix: str = "ORD",
        timezone_name: str | None = None,
        clock=utcnow,
    ):
        self.session = session
        self.tax_rate_percent = tax_rate_percent
        self.order_number_prefix = order_number_prefix
        self.timezone_name = timezone_name
        self.clock = clock
        self.resolver = RecipeResolver(session)
        self.ledger = InventoryLedger(session)
        self.tracker = DailyAggregateTracker(session, timezone_name=timezone_name, clock=clock)

    @classmethod
    def from_config(cls, session: Session, config) -> "OrderCoordinator":
        return cls(
            session,
            tax_rate_percent=config.get("TAX_RATE_PERCENT", DEFAULT_TAX_RATE_PERCENT),
            order_number_prefix=config.get("ORDER_NUMBER_PREFIX", "ORD"),
            timezone_name=config.get("BUSINESS_TIMEZONE"),
        )

    def place_order(self, request: OrderRequest, cashier_id: int) -> OrderReceipt:
        priced = price_order(request, self.tax_rate_percent)

        def _op() -> OrderReceipt:
            with transaction(self.session):
                return self._place_order_locked(request, priced, cashier_id)

        # A lost race on the day's first aggregate row or on an order number
        # surfaces as IntegrityError; the whole submission is safe to redo.
        receipt = run_with_retry(self.session, _op, retry_on=RETRYABLE_ERRORS + (IntegrityError,))
        logger.info(
            "Order %s committed: %d line(s), total %s",
            receipt.order_number, len(request.lines), format_minor(receipt.total_minor),
        )
        return receipt

    def _place_order_locked(self, request: OrderRequest, priced: PricedOrder, cashier_id: int) -> OrderReceipt:
        products = self._load_products(request)
        if request.table_id is not None and not self.session.get(DiningTable, request.table_id):
            raise OrderError("Table not found", details={"table_id": request.table_id})

        # INVENTORY_CHECKED: whole-order requirement before any deduction
        requirements = self.resolver.resolve(request.lines)
        sufficiency = self.ledger.check_sufficiency(requirements)
        if not sufficiency.ok:
            logger.info("Order rejected for insufficient stock: %s", sufficiency.summary())
            raise InsufficientStockError(sufficiency)

        # PERSISTED
        now = self.clock()
        day = business_date(now, self.timezone_name)
        order = Order(
            order_number=self._order_number(now),
            cashier_id=cashier_id,
            subtotal_minor=priced.subtotal_minor,
            discount_amount_minor=priced.discount_minor,
            tax_amount_minor=priced.tax_minor,
            total_amount_minor=priced.total_minor,
            payment_method=request.payment_method,
            table_id=request.table_id,
            status="completed",
            business_date=day,
            created_at=now,
        )
        self.session.add(order)
        self.session.flush()

        line_rows = []
        for line, subtotal in zip(request.lines, priced.line_subtotals):
            row = OrderLine(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_minor=line.unit_price_minor,
                subtotal_minor=subtotal,
            )
            self.session.add(row)
            line_rows.append(row)
        self.session.flush()

        # DEDUCTED: once per line, each line drives its own recipe links
        for row in line_rows:
            try:
                self.ledger.deduct_and_log(
                    order_id=order.id,
                    order_line_id=row.id,
                    product_id=row.product_id,
                    product_name=products[row.product_id].name,
                    quantity_ordered=row.quantity,
                    unit_price_minor=row.unit_price_minor,
                )
            except InsufficientQuantityError as exc:
                # Stock moved after the check; same rejection, rolled back by transaction()
                logger.warning("Stock guard rejected order line: %s", exc.shortage.describe())
                raise InsufficientStockError(SufficiencyResult(shortages=[exc.shortage])) from exc

        # AGGREGATED
        self.tracker.upsert_for_date(day, AggregateDelta(
            orders=1,
            sales_minor=priced.total_minor,
            tax_minor=priced.tax_minor,
            discount_minor=priced.discount_minor,
        ))

        return OrderReceipt(
            order_id=order.id,
            order_number=order.order_number,
            subtotal_minor=priced.subtotal_minor,
            total_minor=priced.total_minor,
            tax_minor=priced.tax_minor,
            discount_minor=priced.discount_minor,
            business_date=day,
        )

    def _load_products(self, request: OrderRequest) -> dict[int, Product]:
        ids = {line.product_id for line in request.lines}
        rows = self.session.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
        products = {product.id: product for product in rows}
        missing = sorted(ids - products.keys())
        if missing:
            raise OrderError("Product not found", details={"product_ids": missing})
        return products

    def _order_number(self, now: datetime) -> str:
        millis = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
        return f"{self.order_number_prefix}-{millis}-{secrets.token_hex(2).upper()}"


def list_orders(
    *,
    day: str | None = None,
    status: str | None = None,
    table_id: int | None = None,
    limit: int = 100,
) -> list[Order]:
    """
    Recent orders, newest first.

    table_id=0 selects takeaway orders (no table).
    """
    query = db.session.query(Order)
    if day:
        try:
            query = query.filter(Order.business_date == parse_iso_date(day))
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
    if status:
        query = query.filter(Order.status == status)
    if table_id is not None:
        if table_id == 0:
            query = query.filter(Order.table_id.is_(None))
        else:
            query = query.filter(Order.table_id == table_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def get_order(order_id: int) -> tuple[Order, list[OrderLine]]:
    order = db.session.get(Order, order_id)
    if not order:
        raise OrderError("Order not found")
    lines = db.session.query(OrderLine).filter_by(order_id=order_id).order_by(OrderLine.id.asc()).all()
    return order, lines
