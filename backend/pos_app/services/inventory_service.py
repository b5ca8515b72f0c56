# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/pos_app/services/inventory_service.py

from __future__ import annotations

import enum
import logging
from typing import NamedTuple, Sequence

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, InventoryLogEntry
from ..validation import MAX_ROW_ID, MAX_STOCK_LEVEL
from pos_app.time_utils import utcnow
from .concurrency import begin_write, expire_cached
from .events import CatalogChange, catalog_changed
"""
POS Inventory Invariants (authoritative)

Stock model:
- Product.stock is the on-hand count and may never go negative.
- Product.stock is only written here, through a compare-and-swap UPDATE
  keyed on Product.version_id. No caller may write stock with a
  read-modify-write of its own.

Audit:
- Every successful stock mutation appends exactly one InventoryLogEntry in
  the same DB transaction, with new_stock equal to the stock after the
  mutation.
- change_type is one of inbound / outbound / adjustment.
  quantity_change is the positive amount moved for inbound and outbound,
  and the signed delta (new - old) for adjustment.
- Inventory log is append-only (no updates/deletes).
"""

logger = logging.getLogger(__name__)

INBOUND = "inbound"
OUTBOUND = "outbound"
ADJUSTMENT = "adjustment"
ADJUSTMENT_KINDS = (INBOUND, OUTBOUND, ADJUSTMENT)

_products = Product.__table__


class AdjustError(Exception):
    """Raised when a manual stock adjustment is rejected or fails."""
    code = "ADJUST_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class NegativeStock(AdjustError):
    code = "NEGATIVE_STOCK"


class InvalidQuantity(AdjustError):
    code = "INVALID_QUANTITY"


class InvalidAdjustmentKind(AdjustError):
    code = "INVALID_ADJUSTMENT_KIND"


class ProductNotFound(AdjustError):
    code = "PRODUCT_NOT_FOUND"


class AdjustConflict(AdjustError):
    code = "CONFLICT"


class AdjustPersistenceFailure(AdjustError):
    code = "PERSISTENCE_FAILURE"

    def __init__(self, message: str, cause: BaseException, details: dict | None = None):
        super().__init__(message, details)
        self.cause = cause


class StockReading(NamedTuple):
    quantity: int
    version: int
    name: str


class DecrementResult(enum.Enum):
    OK = "ok"
    STALE = "stale"                # version moved; stock may still suffice
    INSUFFICIENT = "insufficient"  # stock below the requested amount right now
    MISSING = "missing"            # product row is gone


# =============================================================================
# Catalog store primitives
# =============================================================================

def read_stock(product_id: int) -> StockReading | None:
    """
    Read the authoritative stock row.

    Uses a Core SELECT so the answer comes from the database, never from
    an ORM instance cached in the session.
    """
    if not 0 < product_id <= MAX_ROW_ID:
        return None
    row = db.session.execute(
        select(_products.c.stock, _products.c.version_id, _products.c.name)
        .where(_products.c.id == product_id)
    ).first()
    if row is None:
        return None
    return StockReading(quantity=row.stock, version=row.version_id, name=row.name)


def _compare_and_swap(product_id: int, expected_version: int, stock_value, *conditions) -> bool:
    result = db.session.execute(
        update(_products)
        .where(
            _products.c.id == product_id,
            _products.c.version_id == expected_version,
            *conditions,
        )
        .values(
            stock=stock_value,
            version_id=_products.c.version_id + 1,
            updated_at=utcnow(),
        )
    )
    if result.rowcount != 1:
        return False
    expire_cached(Product, product_id)
    return True


def decrement_stock(product_id: int, amount: int, expected_version: int) -> DecrementResult:
    """
    Atomically take `amount` units, provided the row is still at
    `expected_version` and still holds at least `amount`.

    On failure the row is re-read to tell a lost version race (STALE)
    apart from a real shortfall (INSUFFICIENT).
    """
    if _compare_and_swap(
        product_id,
        expected_version,
        _products.c.stock - amount,
        _products.c.stock >= amount,
    ):
        return DecrementResult.OK

    current = read_stock(product_id)
    if current is None:
        return DecrementResult.MISSING
    if current.quantity < amount:
        return DecrementResult.INSUFFICIENT
    return DecrementResult.STALE


def append_log_entries(entries: Sequence[InventoryLogEntry]) -> list[InventoryLogEntry]:
    """
    Append audit rows to the current transaction (flush, no commit).
    """
    for entry in entries:
        if entry.change_type not in InventoryLogEntry.CHANGE_TYPES:
            raise ValueError(f"invalid change_type {entry.change_type!r}")
        if entry.new_stock is None or entry.new_stock < 0:
            raise ValueError("new_stock must be a non-negative integer")
        if entry.created_at is None:
            entry.created_at = utcnow()
    db.session.add_all(entries)
    db.session.flush()
    return list(entries)


def record_initial_stock(product: Product) -> InventoryLogEntry | None:
    """
    Log the opening stock of a freshly inserted product (no commit).

    Products created with zero stock get no entry: there was no mutation.
    """
    if not product.stock:
        return None
    entry = InventoryLogEntry(
        product_id=product.id,
        product_name=product.name,
        change_type=INBOUND,
        quantity_change=product.stock,
        new_stock=product.stock,
        reason="Initial stock",
    )
    append_log_entries([entry])
    return entry


# =============================================================================
# Manual adjustments
# =============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_adjustment(kind: str, quantity) -> None:
    """Input checks that need no database access."""
    if kind not in ADJUSTMENT_KINDS:
        raise InvalidAdjustmentKind(
            f"Unknown adjustment kind {kind!r}; expected one of {', '.join(ADJUSTMENT_KINDS)}",
            details={"kind": kind},
        )
    if not _is_int(quantity):
        raise InvalidQuantity("Quantity must be a whole number", details={"quantity": quantity})
    if quantity > MAX_STOCK_LEVEL:
        raise InvalidQuantity(
            f"Quantity cannot exceed {MAX_STOCK_LEVEL}",
            details={"quantity": quantity},
        )
    if kind == ADJUSTMENT:
        if quantity < 0:
            raise NegativeStock(
                "Stock cannot be set to a negative level",
                details={"requested_stock": quantity},
            )
    elif quantity <= 0:
        raise InvalidQuantity(
            f"Quantity for an {kind} adjustment must be greater than zero",
            details={"quantity": quantity},
        )


def _apply_kind(kind: str, current: int, quantity: int) -> tuple[int, int]:
    """Returns (new_stock, quantity_change)."""
    if kind == INBOUND:
        return current + quantity, quantity
    if kind == OUTBOUND:
        return current - quantity, quantity
    return quantity, quantity - current


def stage_adjustment(product_id: int, kind: str, quantity: int, reason: str) -> int:
    """
    Swap in the new stock level and append its log entry inside the caller's
    open write transaction. Nothing is committed here.

    Expects validate_adjustment to have passed. Returns the new stock level.
    """
    attempts = current_app.config.get("POS_CAS_ATTEMPTS", 5)
    for _ in range(attempts):
        reading = read_stock(product_id)
        if reading is None:
            raise ProductNotFound("Product not found", details={"product_id": product_id})

        new_stock, quantity_change = _apply_kind(kind, reading.quantity, quantity)
        if new_stock < 0:
            raise NegativeStock(
                f"Not enough stock of {reading.name}: {reading.quantity} on hand, "
                f"cannot remove {quantity}",
                details={
                    "product_id": product_id,
                    "current_stock": reading.quantity,
                    "requested": quantity,
                },
            )
        if new_stock > MAX_STOCK_LEVEL:
            raise InvalidQuantity(
                f"Stock of {reading.name} cannot exceed {MAX_STOCK_LEVEL}",
                details={
                    "product_id": product_id,
                    "current_stock": reading.quantity,
                    "requested": quantity,
                },
            )

        if _compare_and_swap(product_id, reading.version, new_stock):
            break
    else:
        raise AdjustConflict(
            "Stock changed concurrently; reload and try again",
            details={"product_id": product_id, "attempts": attempts},
        )

    append_log_entries([
        InventoryLogEntry(
            product_id=product_id,
            product_name=reading.name,
            change_type=kind,
            quantity_change=quantity_change,
            new_stock=new_stock,
            reason=reason,
        )
    ])
    return new_stock


def adjust_stock(
    product_id: int,
    kind: str,
    quantity: int,
    reason: str | None = None,
    *,
    operator=None,
    notify: bool = True,
) -> Product:
    """
    Apply a manual stock change and log it, as one transaction.

    - inbound:    new = current + quantity
    - outbound:   new = current - quantity  (NegativeStock if < 0)
    - adjustment: new = quantity            (absolute set)

    The stock write is a compare-and-swap on version_id; a lost race
    re-reads and recomputes, up to POS_CAS_ATTEMPTS times.

    operator (a User, a name, or None) is only recorded in the app log;
    the inventory log has no operator column.
    """
    validate_adjustment(kind, quantity)
    reason = reason or f"Stock adjustment: {kind}"

    try:
        begin_write()
        new_stock = stage_adjustment(product_id, kind, quantity, reason)
        db.session.commit()
    except AdjustError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("stock adjustment failed for product %s", product_id, exc_info=True)
        raise AdjustPersistenceFailure(
            "Could not save the stock adjustment; please retry",
            cause=exc,
            details={"product_id": product_id},
        ) from exc

    logger.info(
        "stock adjusted product=%s kind=%s quantity=%s new_stock=%s by=%s",
        product_id, kind, quantity, new_stock,
        getattr(operator, "username", operator) or "unknown",
    )
    if notify:
        catalog_changed.send(CatalogChange.of([product_id], "adjustment"))
    return db.session.get(Product, product_id)


# =============================================================================
# Queries
# =============================================================================

def list_log_entries(product_id: int | None = None, limit: int | None = None) -> list[InventoryLogEntry]:
    """Inventory log, newest first, optionally for one product."""
    q = db.session.query(InventoryLogEntry)
    if product_id is not None:
        q = q.filter(InventoryLogEntry.product_id == product_id)
    q = q.order_by(InventoryLogEntry.created_at.desc(), InventoryLogEntry.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
