# Overview: Service-layer operations for raw-material inventory; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import DeductionLogEntry, InventoryItem, RecipeLink
from ..money import to_minor_units
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, coerce_number, coerce_text
from .concurrency import lock_for_update, transaction
"""
Inventory Invariants (authoritative)

Stock model:
- InventoryItem.quantity is the live stock level of a raw material.
- It never goes negative. Every decrement is a single
  "quantity = quantity - ?" UPDATE guarded by "quantity >= ?", issued inside
  the caller's transaction; stock is never read into Python, changed and
  written back.
- Quantities are stored as integer ten-thousandths (ScaledQuantity), so the
  guard and check_sufficiency compare exactly the same numbers.

Order consumption:
- Sufficiency is checked for the whole order's aggregate requirement before
  any line is deducted (OrderCoordinator drives this).
- check_sufficiency re-reads committed stock under row locks every time;
  nothing is cached across requests.
- Requirements that point at an inventory item that no longer exists are
  skipped (treated as unconstrained).

Audit:
- Each deduction appends exactly one DeductionLogEntry per (order line x
  recipe link) in the same transaction. The log is append-only.
"""


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientQuantityError(InventoryError):
    """A guarded decrement found less stock than it needed."""
    def __init__(self, shortage: Shortage):
        super().__init__("Insufficient quantity", details=shortage.to_dict())
        self.shortage = shortage


def format_quantity(value: Decimal) -> str:
    """Render 4.0000 as "4" and 0.2500 as "0.25"."""
    return format(value.normalize(), "f")


@dataclass(frozen=True)
class Shortage:
    inventory_item_id: int
    name: str
    required: Decimal
    available: Decimal

    def describe(self) -> str:
        return f"{self.name}: required {format_quantity(self.required)}, available {format_quantity(self.available)}"

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "required": float(self.required),
            "available": float(self.available),
        }


@dataclass(frozen=True)
class SufficiencyResult:
    shortages: list[Shortage] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.shortages

    def summary(self) -> str | None:
        """Human-readable line for the first deficient item, None when sufficient."""
        if self.ok:
            return None
        return self.shortages[0].describe()


class InventoryLedger:
    """
    Stock checks and order-driven deductions.

    Both operations run on the session handed in, inside the caller's
    transaction; the ledger never commits.
    """

    def __init__(self, session: Session):
        self.session = session

    def check_sufficiency(self, requirements: dict[int, Decimal]) -> SufficiencyResult:
        if not requirements:
            return SufficiencyResult()

        # Lock in id order so concurrent orders always queue the same way
        query = (
            select(InventoryItem)
            .where(InventoryItem.id.in_(sorted(requirements)))
            .order_by(InventoryItem.id)
            .execution_options(populate_existing=True)
        )
        items = self.session.execute(lock_for_update(query)).scalars().all()

        shortages = []
        for item in items:
            need = requirements[item.id]
            if item.quantity < need:
                shortages.append(Shortage(
                    inventory_item_id=item.id,
                    name=item.name,
                    required=need,
                    available=item.quantity,
                ))
        return SufficiencyResult(shortages=shortages)

    def deduct_and_log(
        self,
        *,
        order_id: int,
        order_line_id: int,
        product_id: int,
        product_name: str,
        quantity_ordered: int,
        unit_price_minor: int,
    ) -> list[DeductionLogEntry]:
        """
        Consume stock for one order line and append its audit rows.

        Must only be called after check_sufficiency has passed for the whole
        order. A guard failure here means stock moved underneath the
        transaction and is raised as InventoryError so the order rolls back.
        """
        usages = self.session.execute(
            select(RecipeLink.inventory_item_id, RecipeLink.quantity_per_order, InventoryItem.name)
            .join(InventoryItem, InventoryItem.id == RecipeLink.inventory_item_id)
            .where(RecipeLink.product_id == product_id)
            .order_by(RecipeLink.inventory_item_id)
        ).all()

        entries = []
        for inventory_item_id, quantity_per_order, item_name in usages:
            deducted = Decimal(quantity_ordered) * quantity_per_order
            self._decrement(inventory_item_id, deducted, item_name)

            entry = DeductionLogEntry(
                order_id=order_id,
                order_line_id=order_line_id,
                product_id=product_id,
                product_name=product_name,
                inventory_item_id=inventory_item_id,
                inventory_item_name=item_name,
                quantity_deducted=deducted,
                unit_selling_price_minor=unit_price_minor,
            )
            self.session.add(entry)
            entries.append(entry)

        self.session.flush()
        return entries

    def adjust(self, inventory_item_id: int, delta: Decimal) -> Decimal:
        """Manual restock (delta > 0) or write-off (delta < 0). Returns the new quantity."""
        if delta < 0:
            self._decrement(inventory_item_id, -delta, None)
        else:
            result = self.session.execute(
                update(InventoryItem)
                .where(InventoryItem.id == inventory_item_id)
                .values(quantity=InventoryItem.quantity + delta)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise InventoryError("Inventory item not found", details={"inventory_item_id": inventory_item_id})

        return self.session.execute(
            select(InventoryItem.quantity).where(InventoryItem.id == inventory_item_id)
        ).scalar_one()

    def _decrement(self, inventory_item_id: int, amount: Decimal, name: str | None) -> None:
        result = self.session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == inventory_item_id, InventoryItem.quantity >= amount)
            .values(quantity=InventoryItem.quantity - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        available = self.session.execute(
            select(InventoryItem.quantity, InventoryItem.name).where(InventoryItem.id == inventory_item_id)
        ).first()
        if available is None:
            raise InventoryError("Inventory item not found", details={"inventory_item_id": inventory_item_id})
        raise InsufficientQuantityError(Shortage(
            inventory_item_id=inventory_item_id,
            name=name or available.name,
            required=amount,
            available=available.quantity,
        ))


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.name.asc()).all()


def low_stock_items() -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity <= InventoryItem.min_quantity)
        .order_by(InventoryItem.quantity.asc())
        .all()
    )


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise InventoryError("Inventory item not found")
    return item


def _money_or_none(field_name: str, value):
    number = coerce_number(field_name, value, required=False)
    if number is None:
        return None
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return to_minor_units(number)


def create_item(data: dict) -> InventoryItem:
    item = InventoryItem(
        name=coerce_text("name", data.get("name")),
        quantity=coerce_number("quantity", data.get("quantity"), required=False, default=0),
        unit_cost_minor=_money_or_none("unit_cost", data.get("unit_cost")),
        min_quantity=coerce_number("min_quantity", data.get("min_quantity"), required=False, default=0),
    )
    db.session.add(item)
    db.session.commit()
    return item


def update_item(item_id: int, data: dict) -> InventoryItem:
    item = get_item(item_id)
    changed = False
    if "name" in data:
        item.name = coerce_text("name", data.get("name"))
        changed = True
    if "quantity" in data:
        item.quantity = coerce_number("quantity", data.get("quantity"))
        changed = True
    if "unit_cost" in data:
        item.unit_cost_minor = _money_or_none("unit_cost", data.get("unit_cost"))
        changed = True
    if "min_quantity" in data:
        item.min_quantity = coerce_number("min_quantity", data.get("min_quantity"), required=False, default=0)
        changed = True
    if not changed:
        raise ValidationError("No fields to update")
    db.session.commit()
    return item


def delete_item(item_id: int) -> None:
    """Delete a raw material; its recipe links go with it, the deduction log stays."""
    item = get_item(item_id)
    db.session.delete(item)
    db.session.commit()


def adjust_item(item_id: int, quantity_change) -> Decimal:
    delta = coerce_number("quantity_change", quantity_change)
    if delta == 0:
        raise ValidationError("quantity_change required (non-zero number)")

    ledger = InventoryLedger(db.session)
    with transaction(db.session):
        return ledger.adjust(item_id, delta)


def _parse_bound(value: str | None, *, end: bool) -> datetime | None:
    if not value:
        return None
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("dates must be ISO-8601")
    # A bare date as an end bound covers that whole day
    if end and dt is not None and len(value.strip()) == 10:
        dt = dt + timedelta(days=1) - timedelta(microseconds=1)
    return dt


def deduction_log(
    *,
    order_id: int | None = None,
    inventory_item_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
    limit: int = 500,
) -> list[DeductionLogEntry]:
    query = db.session.query(DeductionLogEntry)
    if order_id:
        query = query.filter(DeductionLogEntry.order_id == order_id)
    if inventory_item_id:
        query = query.filter(DeductionLogEntry.inventory_item_id == inventory_item_id)
    start_dt = _parse_bound(start, end=False)
    end_dt = _parse_bound(end, end=True)
    if start_dt:
        query = query.filter(DeductionLogEntry.created_at >= start_dt)
    if end_dt:
        query = query.filter(DeductionLogEntry.created_at <= end_dt)
    return (
        query.order_by(DeductionLogEntry.created_at.desc(), DeductionLogEntry.id.desc())
        .limit(limit)
        .all()
    )
