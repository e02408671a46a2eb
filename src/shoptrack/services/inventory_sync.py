from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from shoptrack.currency import format_currency
from shoptrack.domain import aggregates
from shoptrack.domain.errors import AppError
from shoptrack.domain.models import ImportedProduct, Product, Sale
from shoptrack.repositories.change_feed import Subscription
from shoptrack.repositories.contracts import LiveRepository
from shoptrack.services.auth_service import TenantSession
from shoptrack.services.inventory_service import InventoryService
from shoptrack.services.notifier import Notifier
from shoptrack.services.sales_service import SalesService

log = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class InventorySync:
    """Live, tenant-scoped cache of the product and sale collections.

    Both lists are kept newest-first and replaced wholesale on every snapshot
    from the change feed. Switching tenants (sign-in/out) tears down the old
    subscriptions and opens new ones. Write operations are the call-site
    layer: failures are logged, posted to the notifier and reported as
    ``None``/``False`` instead of raising.
    """

    def __init__(
        self,
        repo: LiveRepository,
        inventory: InventoryService,
        sales: SalesService,
        notifier: Notifier | None = None,
        session: TenantSession | None = None,
        currency: str = "INR",
    ):
        self.repo = repo
        self.inventory = inventory
        self.sales_service = sales
        self.notifier = notifier or Notifier()
        self.currency = currency

        self.session: Optional[TenantSession] = None
        self.products: list[Product] = []
        self.sales: list[Sale] = []
        self.loading = True
        self._subs: list[Subscription] = []
        self._listeners: list[ChangeListener] = []

        self.set_tenant(session)

    # ---------- subscriptions ----------
    def set_tenant(self, session: TenantSession | None) -> None:
        self._teardown()
        if session is not None and not session.active:
            session = None
        self.session = session
        if session is None:
            log.debug("inventory_sync no tenant, clearing cache")
            self.products = []
            self.sales = []
            self.loading = False
            self._emit("products")
            self._emit("sales")
            return

        self.loading = True
        tid = session.tenant_id
        self._subs.append(self.repo.subscribe_products(tid, self._on_products, self._on_products_error))
        self._subs.append(self.repo.subscribe_sales(tid, self._on_sales, self._on_sales_error))

    def close(self) -> None:
        self._teardown()

    def __enter__(self) -> "InventorySync":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(collection)``; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _current_session(self) -> Optional[TenantSession]:
        if self.session is not None and not self.session.active:
            log.info("inventory_sync session revoked tenant=%s", self.session.tenant_id)
            self.set_tenant(None)
        return self.session

    def _teardown(self) -> None:
        for sub in self._subs:
            sub.unsubscribe()
        self._subs = []

    def _on_products(self, snapshot: list[Product]) -> None:
        log.debug("inventory_sync products=%s", len(snapshot))
        self.products = list(snapshot)
        self.loading = False
        self._emit("products")

    def _on_products_error(self, exc: Exception) -> None:
        log.error("Error fetching products: %s", exc)
        self.loading = False

    def _on_sales(self, snapshot: list[Sale]) -> None:
        self.sales = list(snapshot)
        self._emit("sales")

    def _on_sales_error(self, exc: Exception) -> None:
        log.error("Error fetching sales: %s", exc)

    def _emit(self, collection: str) -> None:
        for listener in list(self._listeners):
            listener(collection)

    # ---------- writes ----------
    def add_product(self, **fields: Any) -> Optional[Product]:
        session = self._current_session()
        if session is None:
            return None
        try:
            product = self.inventory.add_product(session.tenant_id, **fields)
        except AppError as e:
            log.error("Error adding product: %s", e)
            self.notifier.error(str(e))
            return None
        self.notifier.success("Product added successfully")
        return product

    def update_product(self, product_id: int, **changes: Any) -> bool:
        session = self._current_session()
        if session is None:
            return False
        try:
            self.inventory.update_product(session.tenant_id, product_id, **changes)
        except AppError as e:
            log.error("Error updating product: %s", e)
            self.notifier.error(str(e))
            return False
        self.notifier.success("Product updated successfully")
        return True

    def delete_product(self, product_id: int) -> bool:
        session = self._current_session()
        if session is None:
            return False
        try:
            self.inventory.delete_product(session.tenant_id, product_id)
        except AppError as e:
            log.error("Error deleting product: %s", e)
            self.notifier.error(str(e))
            return False
        self.notifier.success("Product deleted successfully")
        return True

    def sell_product(self, product_id: int, quantity: int) -> Optional[Sale]:
        session = self._current_session()
        if session is None:
            return None

        product = self.find_product(product_id)
        if product is None or product.quantity < quantity:
            return None

        try:
            sale = self.sales_service.record_sale(session.tenant_id, product_id, quantity)
        except AppError as e:
            log.error("Error recording sale: %s", e)
            self.notifier.error(str(e))
            return None
        self.notifier.success(f"Sale recorded: {format_currency(sale.total_amount, self.currency)}")
        return sale

    def import_products(self, rows: Iterable[ImportedProduct]) -> tuple[int, int]:
        session = self._current_session()
        if session is None:
            return 0, 0
        ok, failed = self.inventory.import_products(session.tenant_id, rows)
        if ok:
            self.notifier.success(f"Successfully imported {ok} products")
        if failed:
            self.notifier.error(f"Failed to import {failed} products")
        return ok, failed

    # ---------- derived reads ----------
    def find_product(self, product_id: int) -> Optional[Product]:
        return next((p for p in self.products if p.id == int(product_id)), None)

    def get_low_stock_products(self) -> list[Product]:
        return aggregates.low_stock_products(self.products)

    def get_out_of_stock_products(self) -> list[Product]:
        return aggregates.out_of_stock_products(self.products)

    def get_total_inventory_value(self) -> float:
        return aggregates.total_inventory_value(self.products)

    def get_total_sales_value(self) -> float:
        return aggregates.total_sales_value(self.sales)
