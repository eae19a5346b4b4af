from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import BigInteger
from sqlalchemy.orm import validates
from sqlalchemy.types import TypeDecorator

from ..extensions import db
from ..money import to_major_units
from ..time_utils import to_utc_z
from ..validation import ValidationError

QUANTITY_PLACES = 4
QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_PLACES)


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class ScaledQuantity(TypeDecorator):
    """
    Fractional raw-material quantity (liters, kilograms) stored as an
    integer count of ten-thousandths.

    Python side is always Decimal with 4 places. Plain values compared with
    or added to a ScaledQuantity column are scaled the same way, so
    "quantity - ?" and "quantity >= ?" run in exact integer arithmetic on
    every backend, SQLite included.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        scaled = _as_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
        return int(scaled.scaleb(QUANTITY_PLACES))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-QUANTITY_PLACES)


QUANTITY = ScaledQuantity()


def quantity_to_json(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


class InventoryItem(db.Model):
    """
    Raw material held in stock (cups, milk, coffee beans).

    INVARIANT: quantity never goes negative. ORM writes are checked here;
    order deductions and manual adjustments go through guarded UPDATE
    statements in InventoryLedger instead of read-modify-write.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_name", "name"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(QUANTITY, nullable=False, default=Decimal("0"))
    unit_cost_minor = db.Column(db.Integer, nullable=True)
    min_quantity = db.Column(QUANTITY, nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @validates("name")
    def _check_name(self, key, value):
        name = (value or "").strip()
        if not name:
            raise ValidationError("name is required")
        return name

    @validates("quantity", "min_quantity")
    def _check_quantity(self, key, value):
        value = _as_decimal(value)
        if value < 0:
            raise ValidationError(f"{key} cannot be negative")
        return value

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_quantity

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": quantity_to_json(self.quantity),
            "unit_cost": to_major_units(self.unit_cost_minor) if self.unit_cost_minor is not None else None,
            "min_quantity": quantity_to_json(self.min_quantity),
            "is_low": self.is_low,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RecipeLink(db.Model):
    """
    How much of one raw material a single unit of a product consumes.

    UNIQUE per (product, inventory item): re-linking overwrites
    quantity_per_order (see recipe_service.set_recipe_link).
    """
    __tablename__ = "recipe_links"
    __table_args__ = (
        db.UniqueConstraint("product_id", "inventory_item_id", name="uq_recipe_links_product_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inventory_item_id = db.Column(
        db.Integer, db.ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity_per_order = db.Column(QUANTITY, nullable=False, default=Decimal("1"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product", backref=db.backref("recipe_links", lazy=True, cascade="all, delete-orphan")
    )
    inventory_item = db.relationship(
        "InventoryItem", backref=db.backref("recipe_links", lazy=True, cascade="all, delete-orphan")
    )

    @validates("quantity_per_order")
    def _check_multiplier(self, key, value):
        value = _as_decimal(value)
        if value <= 0:
            raise ValidationError("quantity_per_order must be positive")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "inventory_item_id": self.inventory_item_id,
            "inventory_item_name": self.inventory_item.name if self.inventory_item else None,
            "inventory_item_quantity": (
                quantity_to_json(self.inventory_item.quantity) if self.inventory_item else None
            ),
            "quantity_per_order": quantity_to_json(self.quantity_per_order),
        }


class DeductionLogEntry(db.Model):
    """
    Append-only record of one automatic stock consumption.

    One row per (order line x recipe link). Product and item names are
    snapshots taken at sale time, so the ids are plain integers rather
    than foreign keys: renaming or deleting a product or raw material
    leaves the audit trail intact.

    IMMUTABLE: Rows are never updated; they are only removed together
    with their order.
    """
    __tablename__ = "inventory_deduction_log"
    __table_args__ = (
        db.Index("ix_deduction_log_item_created", "inventory_item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_line_id = db.Column(
        db.Integer, db.ForeignKey("order_lines.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    inventory_item_id = db.Column(db.Integer, nullable=False)
    inventory_item_name = db.Column(db.String(255), nullable=False)

    quantity_deducted = db.Column(QUANTITY, nullable=False)
    unit_selling_price_minor = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    order = db.relationship(
        "Order", backref=db.backref("deductions", lazy=True, cascade="all, delete-orphan")
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "order_line_id": self.order_line_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "inventory_item_id": self.inventory_item_id,
            "inventory_item_name": self.inventory_item_name,
            "quantity_deducted": quantity_to_json(self.quantity_deducted),
            "unit_selling_price": to_major_units(self.unit_selling_price_minor),
            "created_at": to_utc_z(self.created_at),
        }
