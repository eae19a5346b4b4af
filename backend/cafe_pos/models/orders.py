from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ..money import to_major_units
from ..time_utils import to_utc_z
from ..validation import ValidationError

PAYMENT_METHODS = ("cash", "card", "both")


class Order(db.Model):
    """
    One completed sale.

    Created exactly once by OrderCoordinator inside its transaction and
    never updated afterwards. All amounts are minor units:
    - subtotal_minor: sum of line subtotals
    - discount_amount_minor: as submitted (not clamped)
    - tax_amount_minor: tax on (subtotal - discount)
    - total_amount_minor: (subtotal - discount) + tax, what the customer pays

    business_date is the calendar day (BUSINESS_TIMEZONE) the order counts
    towards; it is the key of the DailyAggregate row it incremented.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_business_date", "business_date"),
        db.Index("ix_orders_table_created", "table_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable, time-derived (e.g., "ORD-1760000000000-3FA2")
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal_minor = db.Column(db.Integer, nullable=False)
    discount_amount_minor = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_minor = db.Column(db.Integer, nullable=False)
    total_amount_minor = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    table_id = db.Column(
        db.Integer, db.ForeignKey("dining_tables.id", ondelete="SET NULL"), nullable=True
    )

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    business_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cashier = db.relationship("User")
    table = db.relationship("DiningTable")

    @validates("payment_method")
    def _check_payment_method(self, key, value):
        if value not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "cashier_id": self.cashier_id,
            "subtotal": to_major_units(self.subtotal_minor),
            "discount_amount": to_major_units(self.discount_amount_minor),
            "tax_amount": to_major_units(self.tax_amount_minor),
            "total_amount": to_major_units(self.total_amount_minor),
            "payment_method": self.payment_method,
            "table_id": self.table_id,
            "table_name": self.table.name if self.table else None,
            "status": self.status,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "created_at": to_utc_z(self.created_at),
        }


class OrderLine(db.Model):
    """
    Line on an order. subtotal_minor is always multiply_minor(unit_price_minor,
    quantity); it is computed once at pricing time and never edited.
    """
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_minor = db.Column(db.Integer, nullable=False)
    subtotal_minor = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship(
        "Order", backref=db.backref("lines", lazy=True, cascade="all, delete-orphan")
    )
    product = db.relationship("Product")

    @validates("quantity")
    def _check_quantity(self, key, value):
        if value is None or value <= 0:
            raise ValidationError("quantity must be a positive integer")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": to_major_units(self.unit_price_minor),
            "subtotal": to_major_units(self.subtotal_minor),
        }
