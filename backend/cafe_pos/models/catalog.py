from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ..money import to_major_units
from ..time_utils import to_utc_z
from ..validation import ValidationError


def _require_name(value) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("name is required")
    return name


class Category(db.Model):
    """Menu section (drinks, desserts, ...)."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @validates("name")
    def _check_name(self, key, value):
        return _require_name(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable menu item.

    Prices are authoritative in minor units; the cart still submits its
    own unit price per line, which is what the order records.
    Raw-material consumption is declared through RecipeLink rows.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_minor = db.Column(db.Integer, nullable=False)
    cost_minor = db.Column(db.Integer, nullable=True)

    # Path of an image stored elsewhere; uploads are not handled here
    image_url = db.Column(db.String(512), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @validates("name")
    def _check_name(self, key, value):
        return _require_name(value)

    @validates("price_minor")
    def _check_price(self, key, value):
        if value is None or value < 0:
            raise ValidationError("price must be zero or more")
        return value

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "name": self.name,
            "description": self.description,
            "price": to_major_units(self.price_minor),
            "cost": to_major_units(self.cost_minor) if self.cost_minor is not None else None,
            "image_url": self.image_url,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DiningTable(db.Model):
    """Dine-in table; orders reference it optionally."""
    __tablename__ = "dining_tables"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sort_order": self.sort_order,
        }
