# Overview: Recipe links (product -> raw material usage) and requirement resolution.

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import InventoryItem, Product, RecipeLink
from ..validation import ValidationError, coerce_number, coerce_positive_int


class RecipeError(Exception):
    """Raised for recipe link operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RecipeResolver:
    """
    Turns order lines into raw-material requirements.

    Read-only: it only queries the current recipe links through the session
    it is given, so inside the order transaction it sees the same snapshot
    as the stock check that follows.
    """

    def __init__(self, session: Session):
        self.session = session

    def links_for_products(self, product_ids: Iterable[int]) -> dict[int, list[RecipeLink]]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        rows = self.session.execute(
            select(RecipeLink)
            .where(RecipeLink.product_id.in_(ids))
            .order_by(RecipeLink.product_id, RecipeLink.inventory_item_id)
        ).scalars().all()
        by_product: dict[int, list[RecipeLink]] = {}
        for link in rows:
            by_product.setdefault(link.product_id, []).append(link)
        return by_product

    def resolve(self, lines) -> dict[int, Decimal]:
        """
        Sum quantity * quantity_per_order per inventory item across all lines.

        lines: iterable of objects with product_id and quantity. Products
        without links add nothing. Quantities keep the precision of the
        stored multiplier; they are not money and are not rounded.
        """
        lines = list(lines)
        links = self.links_for_products(line.product_id for line in lines)

        required: dict[int, Decimal] = {}
        for line in lines:
            for link in links.get(line.product_id, ()):
                need = Decimal(line.quantity) * link.quantity_per_order
                required[link.inventory_item_id] = required.get(link.inventory_item_id, Decimal("0")) + need
        return required


def list_links(product_id: int | None = None) -> list[RecipeLink]:
    query = (
        db.session.query(RecipeLink)
        .join(InventoryItem, InventoryItem.id == RecipeLink.inventory_item_id)
        .join(Product, Product.id == RecipeLink.product_id)
    )
    if product_id is not None:
        query = query.filter(RecipeLink.product_id == product_id)
        return query.order_by(InventoryItem.name.asc()).all()
    return query.order_by(Product.name.asc(), InventoryItem.name.asc()).all()


def set_recipe_link(product_id, inventory_item_id, quantity_per_order=1) -> RecipeLink:
    """
    Link a product to a raw material, or overwrite the multiplier when the
    pair is already linked.
    """
    product_id = coerce_positive_int("product_id", product_id)
    inventory_item_id = coerce_positive_int("inventory_item_id", inventory_item_id)
    multiplier = coerce_number("quantity_per_order", quantity_per_order, required=False, default=1)
    if multiplier <= 0:
        raise ValidationError("quantity_per_order must be positive")

    if not db.session.get(Product, product_id):
        raise RecipeError("Product not found", details={"product_id": product_id})
    if not db.session.get(InventoryItem, inventory_item_id):
        raise RecipeError("Inventory item not found", details={"inventory_item_id": inventory_item_id})

    def _upsert() -> RecipeLink:
        link = (
            db.session.query(RecipeLink)
            .filter_by(product_id=product_id, inventory_item_id=inventory_item_id)
            .first()
        )
        if link:
            link.quantity_per_order = multiplier
        else:
            link = RecipeLink(
                product_id=product_id,
                inventory_item_id=inventory_item_id,
                quantity_per_order=multiplier,
            )
            db.session.add(link)
        db.session.flush()
        return link

    try:
        link = _upsert()
    except IntegrityError:
        # Lost an insert race for the same pair; the other row now exists
        db.session.rollback()
        link = _upsert()
    db.session.commit()
    return link


def remove_link(link_id: int) -> None:
    link = db.session.get(RecipeLink, link_id)
    if not link:
        raise RecipeError("Recipe link not found")
    db.session.delete(link)
    db.session.commit()
