# Overview: Service-layer operations for returns history; read-only queries.

from __future__ import annotations

from datetime import date

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Return
from pos_app.time_utils import day_bounds


def get_return(return_id: int) -> Return | None:
    return db.session.query(Return).filter_by(id=return_id).first()


def get_sale_returns(sale_id: int) -> list[Return]:
    return (
        db.session.query(Return)
        .filter_by(sale_id=sale_id)
        .order_by(Return.created_at.asc(), Return.id.asc())
        .all()
    )


def list_returns(day: date | None = None, search: str | None = None) -> list[Return]:
    """
    Returns history, newest first, with the customer loaded.

    search matches the reason, the processing operator or the customer
    name (case-insensitive substring).
    """
    q = db.session.query(Return).outerjoin(Customer, Customer.id == Return.customer_id)

    if day is not None:
        start, end = day_bounds(day)
        q = q.filter(Return.created_at >= start, Return.created_at < end)

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Return.reason.ilike(pattern),
                Return.processed_by.ilike(pattern),
                Customer.name.ilike(pattern),
            )
        )

    return q.order_by(Return.created_at.desc(), Return.id.desc()).all()
