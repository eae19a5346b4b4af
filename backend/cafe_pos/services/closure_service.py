# Overview: Service-layer operations for end-of-day closure; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DailyClosure, User
from ..money import to_major_units, to_minor_units
from ..time_utils import to_utc_z, utcnow
from ..validation import ConflictError, ValidationError, coerce_number, coerce_text
from .concurrency import transaction
from .reporting_service import current_business_date, order_totals, parse_day

logger = logging.getLogger(__name__)

MAX_CLOSURES_LISTED = 365


class ClosureError(Exception):
    """Raised for daily closure operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _existing_closure(day) -> DailyClosure | None:
    return db.session.query(DailyClosure).filter_by(closure_date=day).first()


def today_summary() -> dict:
    """What closing the day right now would record."""
    day = current_business_date()
    totals = order_totals(day)
    existing = _existing_closure(day)
    return {
        "date": day.isoformat(),
        "summary": {
            "total_orders": totals["total_orders"],
            "total_sales": to_major_units(totals["total_sales_minor"]),
            "total_tax": to_major_units(totals["total_tax_minor"]),
            "total_discount": to_major_units(totals["total_discount_minor"]),
            "cash_sales": to_major_units(totals["cash_sales_minor"]),
            "card_sales": to_major_units(totals["card_sales_minor"]),
        },
        "already_closed": existing is not None,
        "closed_at": to_utc_z(existing.closed_at) if existing else None,
    }


def _balance_minor(field_name: str, value) -> int | None:
    number = coerce_number(field_name, value, required=False)
    return to_minor_units(number) if number is not None else None


def close_day(user: User, data: dict) -> DailyClosure:
    """
    Snapshot today's totals into a DailyClosure.

    A business date can be closed once; a second attempt (or a concurrent
    one losing the race on the unique date) raises ConflictError.
    """
    data = data or {}
    opening = _balance_minor("opening_balance", data.get("opening_balance"))
    closing = _balance_minor("closing_balance", data.get("closing_balance"))
    notes = coerce_text("notes", data.get("notes"), required=False, max_length=2000)

    day = current_business_date()
    try:
        with transaction(db.session):
            if _existing_closure(day):
                raise ConflictError("Day already closed")
            totals = order_totals(day)
            closure = DailyClosure(
                closure_date=day,
                closed_by_user_id=user.id,
                cashier_name=user.name,
                total_orders=totals["total_orders"],
                total_sales_minor=totals["total_sales_minor"],
                total_tax_minor=totals["total_tax_minor"],
                total_discount_minor=totals["total_discount_minor"],
                cash_sales_minor=totals["cash_sales_minor"],
                card_sales_minor=totals["card_sales_minor"],
                opening_balance_minor=opening,
                closing_balance_minor=closing,
                notes=notes,
                closed_at=utcnow(),
            )
            db.session.add(closure)
            db.session.flush()
    except IntegrityError:
        raise ConflictError("Day already closed")

    logger.info(
        "Closed %s by %s: %d order(s)", day.isoformat(), user.email, closure.total_orders
    )
    return closure


def list_closures(date_from: str | None = None, date_to: str | None = None) -> list[DailyClosure]:
    start = parse_day("date_from", date_from)
    end = parse_day("date_to", date_to)
    if start and end and start > end:
        raise ValidationError("date_from must be on or before date_to")

    query = db.session.query(DailyClosure)
    if start:
        query = query.filter(DailyClosure.closure_date >= start)
    if end:
        query = query.filter(DailyClosure.closure_date <= end)
    return (
        query.order_by(DailyClosure.closure_date.desc(), DailyClosure.closed_at.desc())
        .limit(MAX_CLOSURES_LISTED)
        .all()
    )


def get_closure(closure_id: int) -> DailyClosure:
    closure = db.session.get(DailyClosure, closure_id)
    if not closure:
        raise ClosureError("Closure not found")
    return closure
