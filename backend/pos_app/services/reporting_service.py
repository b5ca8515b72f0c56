# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Sale, SaleLine
from pos_app.time_utils import day_bounds

TOP_PRODUCTS_LIMIT = 5


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def daily_summary(day: date) -> dict:
    """
    Totals for one UTC calendar day.

    - sales_count, total_sales_cents, total_items_sold
    - top_products: up to five product names by quantity sold (ties by name)
    - sales_by_hour: 24 buckets of sale totals in cents, index = UTC hour
    """
    if day is None:
        raise ReportError("day is required")

    start, end = day_bounds(day)
    in_day = (Sale.created_at >= start, Sale.created_at < end)

    sales = (
        db.session.query(Sale.created_at, Sale.total_cents)
        .filter(*in_day)
        .all()
    )

    sales_by_hour = [0] * 24
    for created_at, total_cents in sales:
        sales_by_hour[created_at.hour] += total_cents

    items_sold = (
        db.session.query(func.coalesce(func.sum(SaleLine.quantity), 0))
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(*in_day)
        .scalar()
    )

    qty = func.sum(SaleLine.quantity).label("quantity")
    top_rows = (
        db.session.query(SaleLine.product_name, qty)
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(*in_day)
        .group_by(SaleLine.product_name)
        .order_by(qty.desc(), SaleLine.product_name.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    return {
        "day": day.isoformat(),
        "sales_count": len(sales),
        "total_sales_cents": sum(total for _, total in sales),
        "total_items_sold": int(items_sold or 0),
        "top_products": [
            {"product_name": name, "quantity": int(quantity)}
            for name, quantity in top_rows
        ],
        "sales_by_hour": sales_by_hour,
    }
