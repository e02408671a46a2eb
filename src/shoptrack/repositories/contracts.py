from __future__ import annotations

from typing import Any, Optional, Protocol

from shoptrack.domain.models import Product, Sale
from shoptrack.repositories.change_feed import ErrorListener, Listener, Subscription


class ProductRepository(Protocol):
    def add_product(self, tenant_id: int, name: str, sku: str, category: str, quantity: int,
                    min_stock: int, price: float, cost_price: float) -> Product: ...
    def update_product(self, tenant_id: int, product_id: int, changes: dict[str, Any]) -> bool: ...
    def delete_product(self, tenant_id: int, product_id: int) -> bool: ...
    def get_product(self, tenant_id: int, product_id: int) -> Optional[Product]: ...
    def list_products(self, tenant_id: int) -> list[Product]: ...
    def record_sale(self, tenant_id: int, product_id: int, quantity: int, datetime_iso: str) -> Sale: ...
    def list_sales(self, tenant_id: int) -> list[Sale]: ...


class LiveRepository(ProductRepository, Protocol):
    def subscribe_products(self, tenant_id: int, listener: Listener,
                           on_error: ErrorListener | None = None) -> Subscription: ...
    def subscribe_sales(self, tenant_id: int, listener: Listener,
                        on_error: ErrorListener | None = None) -> Subscription: ...
