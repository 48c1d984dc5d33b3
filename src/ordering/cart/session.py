"""Cart session — the storefront's handle on one owner's cart.

Wraps the Cart aggregate with persistence after every mutation and the
open/closed state of the cart drawer. Storage problems never reach the
caller: the session logs them and keeps working on the in-memory cart.
"""

import structlog

from ordering.cart.cart import Cart, CartTotals
from ordering.cart.storage import CartStorage

logger = structlog.get_logger(__name__)


class CartSession:
    def __init__(self, owner_key, storage: CartStorage | None = None):
        self.owner_key = str(owner_key)
        self.storage = storage or CartStorage()
        self.is_open = False
        self.degraded = False
        cart = self._load()
        self.cart = cart if cart is not None else Cart.create(self.owner_key)

    def _load(self) -> Cart | None:
        try:
            lines = self.storage.load(self.owner_key)
        except Exception as exc:
            self._degrade("load", exc)
            return None
        return Cart.restore(self.owner_key, lines)

    def _persist(self) -> None:
        try:
            self.storage.save(self.owner_key, self.cart.snapshot())
        except Exception as exc:
            self._degrade("save", exc)
        else:
            self.degraded = False

    def _degrade(self, operation: str, exc: Exception) -> None:
        self.degraded = True
        logger.warning(
            "cart_storage_unavailable",
            owner_key=self.owner_key,
            operation=operation,
            error=str(exc),
        )

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add(self, product_id, name, unit_price, image_ref=None) -> None:
        self.cart.add_item(product_id, name, unit_price, image_ref=image_ref)
        self._persist()
        self.open()

    def remove(self, product_id) -> None:
        self.cart.remove_item(product_id)
        self._persist()

    def increment(self, product_id) -> None:
        self.cart.increment(product_id)
        self._persist()

    def decrement(self, product_id) -> None:
        self.cart.decrement(product_id)
        self._persist()

    def clear(self) -> None:
        self.cart.clear()
        self._persist()

    # -------------------------------------------------------------------
    # Drawer and cross-session sync
    # -------------------------------------------------------------------
    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def on_storage_changed(self) -> None:
        """Another session rewrote the saved cart: adopt its contents wholesale."""
        reloaded = self._load()
        if reloaded is not None:
            self.cart = reloaded

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def totals(self) -> CartTotals:
        return self.cart.totals()

    @property
    def is_empty(self) -> bool:
        return self.cart.is_empty

    def snapshot(self) -> list[dict]:
        return self.cart.snapshot()
