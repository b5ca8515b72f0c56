# Overview: In-process change notifications for cached catalog views.

"""
Catalog change notifications.

Writers (checkout, stock adjustment, catalog administration) send a
CatalogChange after their transaction commits. Listeners such as
CatalogSnapshot use it to invalidate just the affected products instead of
re-reading the whole catalog.

Listeners run synchronously in the sender's thread. A listener that raises
is logged and skipped; the write it reports on has already committed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogChange:
    product_ids: frozenset[int]
    reason: str

    @classmethod
    def of(cls, product_ids: Iterable[int], reason: str) -> "CatalogChange":
        return cls(product_ids=frozenset(product_ids), reason=reason)


Listener = Callable[[CatalogChange], None]


class ChangeNotifier:
    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def connect(self, listener: Listener) -> Listener:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def receivers(self) -> list[Listener]:
        with self._lock:
            return list(self._listeners)

    def send(self, change: CatalogChange) -> int:
        """Deliver to every listener. Returns how many ran without error."""
        delivered = 0
        for listener in self.receivers:
            try:
                listener(change)
                delivered += 1
            except Exception:
                logger.exception(
                    "%s listener %r failed for products %s",
                    self.name, listener, sorted(change.product_ids),
                )
        return delivered


catalog_changed = ChangeNotifier("catalog_changed")
