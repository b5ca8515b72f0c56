# Overview: Cached, non-authoritative catalog view for presentation code.

"""
Catalog snapshot

Holds the last-fetched product list for cart pricing and stock-limit
feedback ("only 3 left"). Checkout never consults it: the validate phase
always re-reads live stock.

Attached to the catalog_changed notifier, the snapshot drops only the
products a write touched; they are re-read on next access.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

from ..extensions import db
from ..models import Product
from .events import CatalogChange, ChangeNotifier, catalog_changed


@dataclass(frozen=True)
class ProductView:
    id: int
    name: str
    price_cents: int
    category: str | None
    stock: int
    image_url: str | None

    @classmethod
    def from_model(cls, p: Product) -> "ProductView":
        return cls(
            id=p.id,
            name=p.name,
            price_cents=p.price_cents,
            category=p.category,
            stock=p.stock,
            image_url=p.image_url,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "category": self.category,
            "stock": self.stock,
            "image_url": self.image_url,
        }


class CatalogSnapshot:
    def __init__(self):
        self._items: dict[int, ProductView] = {}
        self._stale: set[int] = set()
        self._loaded = False
        self._lock = threading.RLock()
        self._notifier: ChangeNotifier | None = None

    # -- loading --

    def refresh(self) -> None:
        """Re-read the whole catalog."""
        products = db.session.query(Product).all()
        with self._lock:
            self._items = {p.id: ProductView.from_model(p) for p in products}
            self._stale.clear()
            self._loaded = True

    def _reload(self, product_ids: Iterable[int]) -> None:
        ids = list(product_ids)
        if not ids:
            return
        fresh = {
            p.id: ProductView.from_model(p)
            for p in db.session.query(Product).filter(Product.id.in_(ids)).all()
        }
        with self._lock:
            for pid in ids:
                if pid in fresh:
                    self._items[pid] = fresh[pid]
                else:
                    self._items.pop(pid, None)
                self._stale.discard(pid)

    def _ensure_fresh(self, product_id: int | None = None) -> None:
        if not self._loaded:
            self.refresh()
            return
        with self._lock:
            if product_id is None:
                pending = set(self._stale)
            else:
                pending = {product_id} & self._stale
        self._reload(pending)

    # -- reads --

    def get(self, product_id: int) -> ProductView | None:
        self._ensure_fresh(product_id)
        with self._lock:
            return self._items.get(product_id)

    def available(self, product_id: int) -> int:
        """Snapshot stock, 0 for unknown products."""
        view = self.get(product_id)
        return view.stock if view is not None else 0

    def products(self, search: str | None = None) -> list[ProductView]:
        """Products ordered by name; search matches name or category."""
        self._ensure_fresh()
        with self._lock:
            items = list(self._items.values())
        if search:
            needle = search.strip().lower()
            items = [
                p for p in items
                if needle in p.name.lower() or needle in (p.category or "").lower()
            ]
        return sorted(items, key=lambda p: (p.name.lower(), p.id))

    # -- invalidation --

    def invalidate(self, product_ids: Iterable[int] | None = None) -> None:
        """Mark products stale; None drops the whole snapshot."""
        with self._lock:
            if product_ids is None:
                self._loaded = False
                self._items.clear()
                self._stale.clear()
            else:
                self._stale.update(product_ids)

    def on_catalog_changed(self, change: CatalogChange) -> None:
        self.invalidate(change.product_ids)

    def attach(self, notifier: ChangeNotifier = catalog_changed) -> "CatalogSnapshot":
        notifier.connect(self.on_catalog_changed)
        self._notifier = notifier
        return self

    def detach(self) -> None:
        if self._notifier is not None:
            self._notifier.disconnect(self.on_catalog_changed)
            self._notifier = None
