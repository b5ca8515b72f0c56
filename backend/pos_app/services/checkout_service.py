"""
Checkout Service - two-phase sale commit

A checkout turns a cart into exactly one Sale, with one SaleLine per cart
line, one stock decrement and one outbound inventory log entry per product.
Either all of it commits or none of it does.

Phases:
1. Validate: re-read live stock for every product in the cart (never the
   caller's cached copy). A shortfall raises InsufficientStock; nothing has
   been written.
2. Commit: a single DB transaction that inserts the sale and its lines,
   decrements stock with a compare-and-swap guarded by stock >= quantity,
   and appends the log entries. If the guard fails because another checkout
   got there first, the transaction rolls back and Conflict is raised: the
   caller may re-validate and retry. Any store fault rolls back and raises
   PersistenceFailure; that one is never retried here because resubmitting
   a sale is not idempotent.

A checkout may be cancelled between the phases, never during commit.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Sequence

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleLine, InventoryLogEntry
from .concurrency import begin_write
from .events import CatalogChange, catalog_changed
from .inventory_service import (
    OUTBOUND,
    DecrementResult,
    StockReading,
    append_log_entries,
    decrement_stock,
    read_stock,
)
from .ledger_service import insert_sale
from ..validation import MAX_LINE_QUANTITY, MAX_PRICE_CENTS, MAX_ROW_ID, MAX_SALE_TOTAL_CENTS

logger = logging.getLogger(__name__)

UNKNOWN_OPERATOR = "unknown"


# =============================================================================
# Errors
# =============================================================================

class CheckoutError(Exception):
    """Raised for checkout failures. `code` names the failure kind."""
    code = "CHECKOUT_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class EmptyCart(CheckoutError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("The cart is empty; add products before checking out")


class InvalidCart(CheckoutError):
    code = "INVALID_CART"


class InsufficientStock(CheckoutError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int,
                 product_name: str | None = None, shortfalls: list[dict] | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Not enough stock of {label}: requested {requested}, only {available} left",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
                "items": shortfalls or [],
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class Conflict(CheckoutError):
    code = "CONFLICT"
    retryable = True

    def __init__(self, product_id: int, requested: int, available: int | None):
        super().__init__(
            "Stock changed while the sale was being recorded; "
            "refresh the products and try again",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id


class CheckoutCancelled(CheckoutError):
    code = "CANCELLED"

    def __init__(self):
        super().__init__("Checkout was cancelled before anything was recorded")


class PersistenceFailure(CheckoutError):
    code = "PERSISTENCE_FAILURE"

    def __init__(self, cause: BaseException, phase: str):
        super().__init__(
            "The sale could not be confirmed because the store did not respond "
            "correctly; check the sales history before trying again",
            details={"phase": phase, "cause": type(cause).__name__},
        )
        self.cause = cause
        self.phase = phase


# =============================================================================
# Cart value types
# =============================================================================

@dataclass(frozen=True)
class CartLine:
    """
    One cart line. unit_price_cents is the price quoted when the product
    was added; checkout charges it as-is.
    """
    product_id: int
    quantity: int
    unit_price_cents: int
    product_name: str | None = None

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_lines(cart: Sequence[CartLine]) -> None:
    if not cart:
        raise EmptyCart()
    for index, line in enumerate(cart):
        if not _is_int(line.product_id) or not 0 < line.product_id <= MAX_ROW_ID:
            raise InvalidCart("Cart line has no valid product", details={"line": index})
        if not _is_int(line.quantity) or line.quantity <= 0:
            raise InvalidCart(
                "Quantity must be a whole number greater than zero",
                details={"line": index, "product_id": line.product_id, "quantity": line.quantity},
            )
        if line.quantity > MAX_LINE_QUANTITY:
            raise InvalidCart(
                f"Quantity cannot exceed {MAX_LINE_QUANTITY} per line",
                details={"line": index, "product_id": line.product_id, "quantity": line.quantity},
            )
        if not _is_int(line.unit_price_cents) or line.unit_price_cents < 0:
            raise InvalidCart(
                "Price must be a non-negative amount in cents",
                details={"line": index, "product_id": line.product_id},
            )
        if line.unit_price_cents > MAX_PRICE_CENTS:
            raise InvalidCart(
                f"Price cannot exceed {MAX_PRICE_CENTS} cents",
                details={"line": index, "product_id": line.product_id,
                         "unit_price_cents": line.unit_price_cents},
            )

    total = cart_total_cents(cart)
    if total > MAX_SALE_TOTAL_CENTS:
        raise InvalidCart(
            f"Sale total cannot exceed {MAX_SALE_TOTAL_CENTS} cents",
            details={"total_cents": total},
        )


def _demand_by_product(cart: Sequence[CartLine]) -> "OrderedDict[int, int]":
    demand: OrderedDict[int, int] = OrderedDict()
    for line in cart:
        demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
    return demand


def cart_total_cents(cart: Sequence[CartLine]) -> int:
    return sum(line.line_total_cents for line in cart)


def _operator_identity(operator) -> tuple[str, int | None]:
    if operator is None:
        return UNKNOWN_OPERATOR, None
    if isinstance(operator, str):
        return operator or UNKNOWN_OPERATOR, None
    name = getattr(operator, "name", None) or getattr(operator, "username", None)
    return name or UNKNOWN_OPERATOR, getattr(operator, "id", None)


# =============================================================================
# Phase 1: validate
# =============================================================================

def validate_cart(cart: Sequence[CartLine]) -> dict[int, StockReading]:
    """
    Confirm every product has enough live stock for the whole cart.

    Returns the stock readings (quantity + version) keyed by product id;
    the commit phase uses the versions as its compare-and-swap baseline.
    """
    _check_lines(cart)
    demand = _demand_by_product(cart)

    try:
        readings = {product_id: read_stock(product_id) for product_id in demand}
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("checkout validate phase failed", exc_info=True)
        raise PersistenceFailure(exc, phase="validate") from exc

    shortfalls = []
    for product_id, requested in demand.items():
        reading = readings[product_id]
        available = reading.quantity if reading is not None else 0
        if requested > available:
            shortfalls.append({
                "product_id": product_id,
                "product_name": reading.name if reading is not None else None,
                "requested": requested,
                "available": available,
            })

    if shortfalls:
        first = shortfalls[0]
        raise InsufficientStock(
            first["product_id"],
            first["requested"],
            first["available"],
            product_name=first["product_name"],
            shortfalls=shortfalls,
        )

    return readings


# =============================================================================
# Phase 2: commit
# =============================================================================

def _take_stock(product_id: int, amount: int, reading: StockReading, attempts: int) -> int:
    """
    Decrement one product inside the commit transaction.

    Starts from the validate-phase version. If the row moved on but still
    holds enough, re-read and swap again; if it no longer holds enough the
    race is lost. Returns the stock level after the decrement.
    """
    for _ in range(attempts):
        result = decrement_stock(product_id, amount, reading.version)
        if result is DecrementResult.OK:
            return reading.quantity - amount
        if result is DecrementResult.MISSING:
            raise Conflict(product_id, amount, available=0)
        if result is DecrementResult.INSUFFICIENT:
            current = read_stock(product_id)
            raise Conflict(product_id, amount, available=current.quantity if current else 0)
        reading = read_stock(product_id)
        if reading is None:
            raise Conflict(product_id, amount, available=0)
    raise Conflict(product_id, amount, available=None)


def commit_checkout(
    cart: Sequence[CartLine],
    readings: dict[int, StockReading],
    operator=None,
) -> Sale:
    """
    Persist a validated cart as one transaction. See module docstring.
    """
    sold_by, user_id = _operator_identity(operator)
    demand = _demand_by_product(cart)
    attempts = current_app.config.get("POS_CAS_ATTEMPTS", 5)
    total = cart_total_cents(cart)

    try:
        begin_write()

        sale = insert_sale(
            Sale(
                total_cents=total,
                subtotal_cents=total,
                tax_cents=0,
                sold_by=sold_by,
                user_id=user_id,
            ),
            [
                SaleLine(
                    product_id=line.product_id,
                    product_name=line.product_name or readings[line.product_id].name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                )
                for line in cart
            ],
        )

        # Fixed product order keeps lock acquisition consistent across checkouts
        entries = []
        for product_id in sorted(demand):
            new_stock = _take_stock(product_id, demand[product_id], readings[product_id], attempts)
            entries.append(
                InventoryLogEntry(
                    product_id=product_id,
                    product_name=readings[product_id].name,
                    change_type=OUTBOUND,
                    quantity_change=demand[product_id],
                    new_stock=new_stock,
                    reason=f"sale:{sale.id}",
                )
            )
        append_log_entries(entries)

        db.session.commit()
    except Conflict as exc:
        db.session.rollback()
        logger.warning("checkout lost a stock race on product %s", exc.product_id)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("checkout commit failed; nothing was recorded", exc_info=True)
        raise PersistenceFailure(exc, phase="commit") from exc
    except Exception:
        # Release the write lock before anything unexpected propagates
        db.session.rollback()
        raise

    logger.info("sale %s committed by %s total_cents=%s", sale.id, sold_by, total)
    return sale


def checkout(
    cart: Sequence[CartLine],
    operator=None,
    *,
    cancel_event: threading.Event | None = None,
) -> Sale:
    """
    Validate then commit a cart. Returns the committed Sale.

    Raises EmptyCart, InvalidCart, InsufficientStock, CheckoutCancelled,
    Conflict or PersistenceFailure (all CheckoutError).
    """
    readings = validate_cart(cart)

    if cancel_event is not None and cancel_event.is_set():
        db.session.rollback()
        raise CheckoutCancelled()

    sale = commit_checkout(cart, readings, operator)
    catalog_changed.send(CatalogChange.of(_demand_by_product(cart).keys(), "sale"))
    return sale
