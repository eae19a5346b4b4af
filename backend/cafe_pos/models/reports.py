from __future__ import annotations

from ..extensions import db
from ..money import to_major_units
from ..time_utils import to_utc_z


class DailyAggregate(db.Model):
    """
    Running per-day totals, one row per business date.

    OWNERSHIP: written only by DailyAggregateTracker inside the order
    transaction (increment in place, never read-then-write-back).
    Reporting only reads it.
    """
    __tablename__ = "daily_aggregates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    report_date = db.Column(db.Date, nullable=False, unique=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_sales_minor = db.Column(db.Integer, nullable=False, default=0)
    total_tax_minor = db.Column(db.Integer, nullable=False, default=0)
    total_discount_minor = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "report_date": self.report_date.isoformat(),
            "total_orders": self.total_orders,
            "total_sales": to_major_units(self.total_sales_minor),
            "total_tax": to_major_units(self.total_tax_minor),
            "total_discount": to_major_units(self.total_discount_minor),
        }


class DailyClosure(db.Model):
    """
    End-of-day cash reconciliation snapshot.

    At most one per business date. Totals are copied from committed orders
    at closing time; the cashier name is a snapshot.
    """
    __tablename__ = "daily_closures"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    closure_date = db.Column(db.Date, nullable=False, unique=True)

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    cashier_name = db.Column(db.String(255), nullable=False)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_sales_minor = db.Column(db.Integer, nullable=False, default=0)
    total_tax_minor = db.Column(db.Integer, nullable=False, default=0)
    total_discount_minor = db.Column(db.Integer, nullable=False, default=0)
    cash_sales_minor = db.Column(db.Integer, nullable=False, default=0)
    card_sales_minor = db.Column(db.Integer, nullable=False, default=0)

    opening_balance_minor = db.Column(db.Integer, nullable=True)
    closing_balance_minor = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    closed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        def _money(minor):
            return to_major_units(minor) if minor is not None else None

        return {
            "id": self.id,
            "closure_date": self.closure_date.isoformat(),
            "closed_by_user_id": self.closed_by_user_id,
            "cashier_name": self.cashier_name,
            "total_orders": self.total_orders,
            "total_sales": _money(self.total_sales_minor),
            "total_tax": _money(self.total_tax_minor),
            "total_discount": _money(self.total_discount_minor),
            "cash_sales": _money(self.cash_sales_minor),
            "card_sales": _money(self.card_sales_minor),
            "opening_balance": _money(self.opening_balance_minor),
            "closing_balance": _money(self.closing_balance_minor),
            "notes": self.notes,
            "closed_at": to_utc_z(self.closed_at),
        }
