# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Return

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        # Optional contact fields store blanks as NULL
        if k != "name" and v == "":
            v = None
        setattr(c, k, v)


def list_customers(search: str | None = None) -> list[Customer]:
    """Customers by name. search matches name, email or phone."""
    q = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer | None:
    return db.session.query(Customer).filter_by(id=customer_id).first()


def create_customer(*, patch: dict) -> Customer:
    customer = Customer()
    apply_customer_patch(customer, patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer | None:
    customer = get_customer(customer_id)
    if customer is None:
        return None
    apply_customer_patch(customer, patch)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> bool:
    """
    Delete a customer. Returns that referenced them keep their history but
    lose the customer link.
    """
    customer = get_customer(customer_id)
    if customer is None:
        return False

    db.session.query(Return).filter(Return.customer_id == customer_id).update(
        {Return.customer_id: None}, synchronize_session=False
    )
    db.session.delete(customer)
    db.session.commit()
    return True
