# Overview: Service-layer operations for the sale ledger; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlalchemy import String, cast, or_

from ..extensions import db
from ..models import Sale, SaleLine
from pos_app.time_utils import day_bounds, utcnow
"""
POS Sale Ledger Invariants (authoritative)

- Append-only: a Sale and its SaleLines are inserted together by the
  checkout commit phase and never updated or deleted afterwards.
- insert_sale() writes inside the caller's transaction; the caller commits.
- Sale.total_cents == Sale.subtotal_cents == sum(line_total_cents); tax is 0.
"""


def insert_sale(sale: Sale, lines: Sequence[SaleLine]) -> Sale:
    """
    Insert a sale with its lines (flush, no commit).

    Assigns sale.id and links every line to it.
    """
    if not lines:
        raise ValueError("a sale needs at least one line")

    if sale.created_at is None:
        sale.created_at = utcnow()

    db.session.add(sale)
    db.session.flush()  # ensures sale.id is assigned without committing

    for line in lines:
        line.sale_id = sale.id
    db.session.add_all(lines)
    db.session.flush()
    return sale


def get_sale(sale_id: int) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id).first()


def get_sale_lines(sale_id: int) -> list[SaleLine]:
    return (
        db.session.query(SaleLine)
        .filter_by(sale_id=sale_id)
        .order_by(SaleLine.id.asc())
        .all()
    )


def list_sales(day: date | None = None, search: str | None = None) -> list[Sale]:
    """
    Sales history, newest first.

    day filters to one UTC calendar day. search matches the operator name,
    the sale id, or the total (in cents), as a case-insensitive substring.
    """
    q = db.session.query(Sale)

    if day is not None:
        start, end = day_bounds(day)
        q = q.filter(Sale.created_at >= start, Sale.created_at < end)

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Sale.sold_by.ilike(pattern),
                cast(Sale.id, String).like(pattern),
                cast(Sale.total_cents, String).like(pattern),
            )
        )

    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()
