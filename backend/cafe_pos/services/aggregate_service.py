# Overview: Per-day running totals maintained by the order transaction.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models import DailyAggregate
from ..time_utils import business_date, utcnow


@dataclass(frozen=True)
class AggregateDelta:
    """What one order adds to its day. Amounts are minor units."""
    orders: int
    sales_minor: int
    tax_minor: int
    discount_minor: int


class DailyAggregateTracker:
    """
    Upserts the DailyAggregate row for a business date.

    The increment is a single UPDATE ... SET col = col + ? so two orders
    committing on the same day cannot lose each other's totals. The first
    order of a day inserts the row; if a concurrent transaction inserted it
    first, the unique constraint on report_date fails the flush and the
    whole order transaction is retried by the coordinator.
    """

    def __init__(self, session: Session, *, timezone_name: str | None = None, clock=utcnow):
        self.session = session
        self.timezone_name = timezone_name
        self.clock = clock

    def today(self) -> date:
        return business_date(self.clock(), self.timezone_name)

    def upsert_for_today(self, delta: AggregateDelta) -> date:
        day = self.today()
        self.upsert_for_date(day, delta)
        return day

    def upsert_for_date(self, day: date, delta: AggregateDelta) -> None:
        result = self.session.execute(
            update(DailyAggregate)
            .where(DailyAggregate.report_date == day)
            .values(
                total_orders=DailyAggregate.total_orders + delta.orders,
                total_sales_minor=DailyAggregate.total_sales_minor + delta.sales_minor,
                total_tax_minor=DailyAggregate.total_tax_minor + delta.tax_minor,
                total_discount_minor=DailyAggregate.total_discount_minor + delta.discount_minor,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        self.session.add(DailyAggregate(
            report_date=day,
            total_orders=delta.orders,
            total_sales_minor=delta.sales_minor,
            total_tax_minor=delta.tax_minor,
            total_discount_minor=delta.discount_minor,
        ))
        self.session.flush()

    def get(self, day: date) -> DailyAggregate | None:
        return self.session.execute(
            select(DailyAggregate)
            .where(DailyAggregate.report_date == day)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
