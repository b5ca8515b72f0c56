# Overview: Per-operator register state: a cart and a catalog snapshot.

"""
POS session

One PosSession per logged-in operator at a register. The cart only holds
what the operator intends to sell at the price shown when each product was
added; stock limits here come from the snapshot and are advisory. The
checkout coordinator makes the authoritative decision.
"""

from __future__ import annotations

import threading
from collections import OrderedDict

from ..models import Sale
from .catalog_cache import CatalogSnapshot
from .checkout_service import CartLine, cart_total_cents, checkout


class CartError(Exception):
    """Raised when a cart edit is refused (unknown product, not enough stock)."""

    def __init__(self, message: str, product_id: int | None = None, available: int | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.available = available


class Cart:
    def __init__(self):
        self._lines: "OrderedDict[int, CartLine]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def quantity_of(self, product_id: int) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line else 0

    def set_line(self, line: CartLine) -> None:
        self._lines[line.product_id] = line

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int) -> CartLine | None:
        return self._lines.get(product_id)


class PosSession:
    def __init__(self, operator=None, snapshot: CatalogSnapshot | None = None):
        self.operator = operator
        self.cart = Cart()
        self.snapshot = snapshot or CatalogSnapshot().attach()

    def close(self) -> None:
        self.snapshot.detach()

    def add_to_cart(self, product_id: int) -> CartLine:
        """Add one unit at the current snapshot price, or bump an existing line."""
        product = self.snapshot.get(product_id)
        if product is None:
            raise CartError("Product not found", product_id=product_id, available=0)
        if product.stock <= 0:
            raise CartError(f"Sorry, {product.name} is out of stock", product_id=product_id, available=0)

        existing = self.cart.get(product_id)
        if existing is None:
            line = CartLine(
                product_id=product.id,
                quantity=1,
                unit_price_cents=product.price_cents,
                product_name=product.name,
            )
        else:
            if existing.quantity + 1 > product.stock:
                raise CartError(
                    f"Not enough stock of {product.name}. Only {product.stock} left.",
                    product_id=product_id,
                    available=product.stock,
                )
            line = CartLine(
                product_id=existing.product_id,
                quantity=existing.quantity + 1,
                unit_price_cents=existing.unit_price_cents,
                product_name=existing.product_name,
            )
        self.cart.set_line(line)
        return line

    def update_quantity(self, product_id: int, quantity: int) -> CartLine | None:
        """Set a line's quantity; zero or less removes it. Returns the line or None."""
        existing = self.cart.get(product_id)
        if existing is None:
            raise CartError("Product is not in the cart", product_id=product_id)

        if quantity <= 0:
            self.cart.remove(product_id)
            return None

        product = self.snapshot.get(product_id)
        available = product.stock if product is not None else 0
        if quantity > available:
            name = product.name if product is not None else existing.product_name
            raise CartError(
                f"Not enough stock of {name}. Only {available} left.",
                product_id=product_id,
                available=available,
            )

        line = CartLine(
            product_id=existing.product_id,
            quantity=quantity,
            unit_price_cents=existing.unit_price_cents,
            product_name=existing.product_name,
        )
        self.cart.set_line(line)
        return line

    def remove_item(self, product_id: int) -> None:
        self.cart.remove(product_id)

    def clear_cart(self) -> None:
        self.cart.clear()

    @property
    def lines(self) -> list[CartLine]:
        return self.cart.lines()

    def total_cents(self) -> int:
        return cart_total_cents(self.cart.lines())

    def checkout(self, cancel_event: threading.Event | None = None) -> Sale:
        """
        Run the checkout coordinator on the current cart. The cart is
        cleared only when the sale commits.
        """
        sale = checkout(self.cart.lines(), self.operator, cancel_event=cancel_event)
        self.cart.clear()
        return sale
