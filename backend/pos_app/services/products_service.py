# backend/pos_app/services/products_service.py
"""
Products Service

Catalog administration: list, create, edit, delete.

Stock is never written here directly. New products log their opening
stock as one inbound entry in the insert transaction; a stock value in an
edit is staged through inventory_service.stage_adjustment in the same
transaction as the field edit, with the usual compare-and-swap and audit entry.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, SaleLine
from ..validation import ConflictError
from .concurrency import begin_write, lock_for_update
from .events import CatalogChange, catalog_changed
from .inventory_service import (
    ADJUSTMENT,
    AdjustError,
    AdjustPersistenceFailure,
    record_initial_stock,
    stage_adjustment,
    validate_adjustment,
)

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "category", "image_url"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(search: str | None = None) -> list[Product]:
    """
    All products ordered by name. search matches name or category
    (case-insensitive substring).
    """
    q = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.category.ilike(pattern)))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product | None:
    return db.session.query(Product).filter_by(id=product_id).first()


def create_product(*, patch: dict) -> Product:
    """
    Insert a product and log its opening stock in one transaction.
    """
    product = Product(stock=patch.get("stock", 0) or 0)
    apply_product_patch(product, patch)

    db.session.add(product)
    db.session.flush()
    record_initial_stock(product)
    db.session.commit()

    catalog_changed.send(CatalogChange.of([product.id], "product_created"))
    return product


def update_product(product_id: int, patch: dict) -> Product | None:
    """
    Edit catalog fields. A "stock" key becomes an absolute adjustment with
    reason "Manual stock edit" (logged only if the level actually changes).
    The stock change and the field edit commit together or not at all.

    Returns None if the product does not exist.
    """
    product = get_product(product_id)
    if product is None:
        return None

    stock = patch.get("stock")
    stock_changed = stock is not None and stock != product.stock
    field_patch = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}
    if not stock_changed and not field_patch:
        return product
    if stock_changed:
        validate_adjustment(ADJUSTMENT, stock)

    try:
        begin_write()
        if stock_changed:
            stage_adjustment(product_id, ADJUSTMENT, stock, "Manual stock edit")
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            db.session.rollback()
            return None
        apply_product_patch(product, field_patch)
        db.session.commit()
    except AdjustError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("product %s update failed; nothing was saved", product_id, exc_info=True)
        raise AdjustPersistenceFailure(
            "Could not save the product; please retry",
            cause=exc,
            details={"product_id": product_id},
        ) from exc

    catalog_changed.send(CatalogChange.of([product_id], "product_updated"))
    return product


def delete_product(product_id: int) -> bool:
    """
    Delete a product that has never been sold.

    Raises ConflictError if sale lines reference it (history must keep
    pointing at a real product).
    """
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        return False

    sold = db.session.query(SaleLine.id).filter_by(product_id=product_id).first()
    if sold is not None:
        db.session.rollback()
        raise ConflictError("Product has sales history and cannot be deleted")

    db.session.delete(product)
    db.session.commit()

    catalog_changed.send(CatalogChange.of([product_id], "product_deleted"))
    return True
