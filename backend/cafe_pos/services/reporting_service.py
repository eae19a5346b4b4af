# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Read-only sales reports over committed orders.

Orders are bucketed by Order.business_date, the same key the daily
aggregate uses, so a day's report and its aggregate row always agree.
Amounts are summed in minor units and converted once on the way out.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Category, DailyAggregate, Order, OrderLine, Product
from ..money import MINOR_UNITS, round_money, to_major_units
from ..time_utils import business_date, parse_iso_date, utcnow
from ..validation import ValidationError, coerce_int

COMPLETED = "completed"
TOP_PRODUCTS_LIMIT = 10


def current_business_date() -> date:
    return business_date(utcnow(), current_app.config.get("BUSINESS_TIMEZONE"))


def parse_day(field: str, value: str | None) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def _avg_major(value) -> float:
    if value is None:
        return 0.0
    return round_money(Decimal(str(value)) / MINOR_UNITS)


def order_totals(day: date) -> dict:
    """
    Counts and sums (minor units) of the day's completed orders.

    "both" (split tender) counts as cash; only "card" counts as card.
    """
    row = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount_minor), 0),
        func.coalesce(func.sum(Order.tax_amount_minor), 0),
        func.coalesce(func.sum(Order.discount_amount_minor), 0),
        func.coalesce(func.sum(case(
            (Order.payment_method.in_(("cash", "both")), Order.total_amount_minor), else_=0
        )), 0),
        func.coalesce(func.sum(case(
            (Order.payment_method == "card", Order.total_amount_minor), else_=0
        )), 0),
    ).filter(Order.business_date == day, Order.status == COMPLETED).one()

    return {
        "total_orders": int(row[0]),
        "total_sales_minor": int(row[1]),
        "total_tax_minor": int(row[2]),
        "total_discount_minor": int(row[3]),
        "cash_sales_minor": int(row[4]),
        "card_sales_minor": int(row[5]),
    }


def daily_report(day: str | None = None) -> dict:
    """
    Summary for one business date: the running aggregate when the day has
    one, otherwise live sums over its orders (all zero for an empty day).
    """
    report_date = parse_day("date", day) or current_business_date()

    aggregate = db.session.query(DailyAggregate).filter_by(report_date=report_date).first()
    if aggregate:
        summary = {
            "total_orders": aggregate.total_orders,
            "total_sales": to_major_units(aggregate.total_sales_minor),
            "total_tax": to_major_units(aggregate.total_tax_minor),
            "total_discount": to_major_units(aggregate.total_discount_minor),
        }
    else:
        totals = order_totals(report_date)
        summary = {
            "total_orders": totals["total_orders"],
            "total_sales": to_major_units(totals["total_sales_minor"]),
            "total_tax": to_major_units(totals["total_tax_minor"]),
            "total_discount": to_major_units(totals["total_discount_minor"]),
        }

    breakdown = (
        db.session.query(
            Order.payment_method,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount_minor), 0),
        )
        .filter(Order.business_date == report_date, Order.status == COMPLETED)
        .group_by(Order.payment_method)
        .order_by(Order.payment_method.asc())
        .all()
    )

    return {
        "date": report_date.isoformat(),
        "summary": summary,
        "payment_breakdown": [
            {"payment_method": method, "count": int(count), "amount": to_major_units(int(amount))}
            for method, count, amount in breakdown
        ],
    }


def monthly_report(year=None, month=None) -> dict:
    today = current_business_date()
    year = coerce_int("year", year, required=False) or today.year
    month = coerce_int("month", month, required=False) or today.month
    if month < 1 or month > 12:
        raise ValidationError("month must be between 1 and 12")

    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    in_month = (
        Order.business_date >= first,
        Order.business_date <= last,
        Order.status == COMPLETED,
    )

    stats = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount_minor), 0),
        func.coalesce(func.sum(Order.tax_amount_minor), 0),
        func.coalesce(func.sum(Order.discount_amount_minor), 0),
        func.avg(Order.total_amount_minor),
        func.min(Order.total_amount_minor),
        func.max(Order.total_amount_minor),
    ).filter(*in_month).one()

    total_sold = func.sum(OrderLine.quantity).label("total_sold")
    top_products = (
        db.session.query(
            Product.id,
            Product.name,
            total_sold,
            func.sum(OrderLine.subtotal_minor).label("revenue"),
        )
        .join(OrderLine, OrderLine.product_id == Product.id)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(*in_month)
        .group_by(Product.id, Product.name)
        .order_by(total_sold.desc(), Product.id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    daily = (
        db.session.query(
            Order.business_date,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount_minor), 0),
        )
        .filter(*in_month)
        .group_by(Order.business_date)
        .order_by(Order.business_date.asc())
        .all()
    )

    return {
        "period": {"year": year, "month": month},
        "summary": {
            "total_orders": int(stats[0]),
            "total_sales": to_major_units(int(stats[1])),
            "total_tax": to_major_units(int(stats[2])),
            "total_discount": to_major_units(int(stats[3])),
            "avg_transaction": _avg_major(stats[4]),
            "min_transaction": to_major_units(stats[5]) if stats[5] is not None else 0.0,
            "max_transaction": to_major_units(stats[6]) if stats[6] is not None else 0.0,
        },
        "top_products": [
            {
                "id": product_id,
                "name": name,
                "total_sold": int(sold),
                "revenue": to_major_units(int(revenue)),
            }
            for product_id, name, sold, revenue in top_products
        ],
        "daily_breakdown": [
            {"date": day.isoformat(), "orders": int(count), "sales": to_major_units(int(sales))}
            for day, count, sales in daily
        ],
    }


def sales_by_category(start_date: str | None = None, end_date: str | None = None) -> list[dict]:
    """Line revenue per category; both bounds are inclusive business dates."""
    start = parse_day("start_date", start_date)
    end = parse_day("end_date", end_date)

    revenue = func.sum(OrderLine.subtotal_minor).label("total_revenue")
    query = (
        db.session.query(
            Category.id,
            Category.name,
            func.count(OrderLine.id).label("items_sold"),
            revenue,
        )
        .join(Product, Product.category_id == Category.id)
        .join(OrderLine, OrderLine.product_id == Product.id)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(Order.status == COMPLETED)
    )
    if start:
        query = query.filter(Order.business_date >= start)
    if end:
        query = query.filter(Order.business_date <= end)

    rows = query.group_by(Category.id, Category.name).order_by(revenue.desc(), Category.id.asc()).all()
    return [
        {
            "category_id": category_id,
            "category": name,
            "items_sold": int(items_sold),
            "total_revenue": to_major_units(int(total)),
        }
        for category_id, name, items_sold, total in rows
    ]
