# Overview: Service-layer operations for the menu catalog and dining tables; encapsulates business logic and database work.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Category, DiningTable, Order, OrderLine, Product
from ..money import to_minor_units
from ..validation import (
    ConflictError,
    ValidationError,
    coerce_bool,
    coerce_int,
    coerce_number,
    coerce_positive_int,
    coerce_text,
)

logger = logging.getLogger(__name__)

MAX_TABLES_PER_REQUEST = 200


class CatalogError(Exception):
    """Raised for catalog operation errors (missing category, product or table)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise CatalogError("Category not found")
    return category


def create_category(data: dict) -> Category:
    category = Category(
        name=coerce_text("name", data.get("name")),
        description=coerce_text("description", data.get("description"), required=False, max_length=2000),
    )
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, data: dict) -> Category:
    category = get_category(category_id)
    category.name = coerce_text("name", data.get("name"))
    category.description = coerce_text("description", data.get("description"), required=False, max_length=2000)
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    """Refused while any product still belongs to the category."""
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter(Product.category_id == category_id).count()
    if in_use:
        raise ConflictError("Category still has products; move them to another category first")
    db.session.delete(category)
    db.session.commit()


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(*, category_id: int | None = None, available_only: bool = False) -> list[Product]:
    query = db.session.query(Product).join(Category, Category.id == Product.category_id)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if available_only:
        query = query.filter(Product.is_available.is_(True))
    return query.order_by(Category.name.asc(), Product.name.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise CatalogError("Product not found")
    return product


def _price_minor(field_name: str, value, *, required: bool) -> int | None:
    number = coerce_number(field_name, value, required=required)
    if number is None:
        return None
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return to_minor_units(number)


def create_product(data: dict) -> Product:
    category_id = coerce_positive_int("category_id", data.get("category_id"))
    get_category(category_id)

    product = Product(
        category_id=category_id,
        name=coerce_text("name", data.get("name")),
        description=coerce_text("description", data.get("description"), required=False, max_length=2000),
        price_minor=_price_minor("price", data.get("price"), required=True),
        cost_minor=_price_minor("cost", data.get("cost"), required=False),
        image_url=coerce_text("image_url", data.get("image_url"), required=False, max_length=512),
        is_available=coerce_bool(data.get("is_available"), default=True),
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, data: dict) -> Product:
    """Partial update: only keys present in data are changed."""
    product = get_product(product_id)

    if "category_id" in data:
        category_id = coerce_positive_int("category_id", data.get("category_id"))
        get_category(category_id)
        product.category_id = category_id
    if "name" in data:
        product.name = coerce_text("name", data.get("name"))
    if "description" in data:
        product.description = coerce_text("description", data.get("description"), required=False, max_length=2000)
    if "price" in data:
        product.price_minor = _price_minor("price", data.get("price"), required=True)
    if "cost" in data:
        product.cost_minor = _price_minor("cost", data.get("cost"), required=False)
    if "image_url" in data:
        product.image_url = coerce_text("image_url", data.get("image_url"), required=False, max_length=512)
    if "is_available" in data:
        product.is_available = coerce_bool(data.get("is_available"))

    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """
    Delete a product and its recipe links.

    Products that appear on past orders are kept for the order history;
    mark them unavailable instead.
    """
    product = get_product(product_id)
    sold = db.session.query(OrderLine.id).filter(OrderLine.product_id == product_id).first()
    if sold:
        raise ConflictError("Product has order history; mark it unavailable instead")
    db.session.delete(product)
    db.session.commit()


# ---------------------------------------------------------------------------
# Dining tables
# ---------------------------------------------------------------------------

def list_tables() -> list[DiningTable]:
    return db.session.query(DiningTable).order_by(DiningTable.sort_order.asc(), DiningTable.id.asc()).all()


def add_tables(count) -> list[DiningTable]:
    """
    Append `count` tables named "Table N", continuing after the current
    number of tables. Returns only the tables created here, in order.
    """
    count = coerce_int("count", count)
    if count < 1 or count > MAX_TABLES_PER_REQUEST:
        raise ValidationError(f"count must be between 1 and {MAX_TABLES_PER_REQUEST}")

    start = db.session.query(DiningTable).count() + 1
    created = [DiningTable(name=f"Table {number}", sort_order=number) for number in range(start, start + count)]
    db.session.add_all(created)
    db.session.commit()
    logger.info("Added %d table(s)", count)
    return created


def rename_table(table_id: int, name) -> DiningTable:
    table = db.session.get(DiningTable, table_id)
    if not table:
        raise CatalogError("Table not found")
    table.name = coerce_text("name", name, max_length=100)
    db.session.commit()
    return table


def delete_table(table_id: int) -> None:
    """Orders placed at the table stay, detached (table_id -> NULL)."""
    table = db.session.get(DiningTable, table_id)
    if not table:
        raise CatalogError("Table not found")
    db.session.query(Order).filter(Order.table_id == table_id).update(
        {Order.table_id: None}, synchronize_session=False
    )
    db.session.delete(table)
    db.session.commit()
