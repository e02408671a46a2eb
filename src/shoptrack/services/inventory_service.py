from __future__ import annotations

import logging
import math
import sqlite3
from typing import Any, Iterable

from shoptrack.domain.errors import AppError, NotFoundError, ValidationError
from shoptrack.domain.models import ImportedProduct, Product
from shoptrack.repositories.sqlite_repo import UPDATABLE_PRODUCT_FIELDS

log = logging.getLogger(__name__)

NAME_MAX_LEN = 100
SKU_MAX_LEN = 50


def _text(value: Any, label: str, max_len: int | None = None) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required.")
    if max_len is not None and len(text) > max_len:
        raise ValidationError(f"{label} must be at most {max_len} characters.")
    return text


def _count(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a whole number.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{label} must be a whole number.")
        value = int(value)
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number.") from None
    if n < 0:
        raise ValidationError(f"{label} must be >= 0.")
    return n


def _money(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number.")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.") from None
    if not math.isfinite(amount):
        raise ValidationError(f"{label} must be a finite number.")
    if amount < 0:
        raise ValidationError(f"{label} must be >= 0.")
    return amount


_VALIDATORS = {
    "name": lambda v: _text(v, "Product name", NAME_MAX_LEN),
    "sku": lambda v: _text(v, "SKU", SKU_MAX_LEN),
    "category": lambda v: _text(v, "Category"),
    "quantity": lambda v: _count(v, "Quantity"),
    "min_stock": lambda v: _count(v, "Min stock"),
    "price": lambda v: _money(v, "Price"),
    "cost_price": lambda v: _money(v, "Cost price"),
}


class InventoryService:
    def __init__(self, repo):
        self.repo = repo

    def list_products(self, tenant_id: int) -> list[Product]:
        return self.repo.list_products(int(tenant_id))

    def get_product(self, tenant_id: int, product_id: int) -> Product:
        p = self.repo.get_product(int(tenant_id), int(product_id))
        if not p:
            raise NotFoundError("Product not found.")
        return p

    def add_product(
        self,
        tenant_id: int,
        name: str,
        sku: str,
        category: str,
        quantity: int,
        min_stock: int,
        price: float,
        cost_price: float,
    ) -> Product:
        fields = {
            "name": name,
            "sku": sku,
            "category": category,
            "quantity": quantity,
            "min_stock": min_stock,
            "price": price,
            "cost_price": cost_price,
        }
        clean = {k: _VALIDATORS[k](v) for k, v in fields.items()}
        product = self.repo.add_product(int(tenant_id), **clean)
        log.info("product_added tenant=%s product_id=%s sku=%s", tenant_id, product.id, product.sku)
        return product

    def update_product(self, tenant_id: int, product_id: int, **changes: Any) -> None:
        unknown = sorted(set(changes) - set(UPDATABLE_PRODUCT_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")
        clean = {k: _VALIDATORS[k](v) for k, v in changes.items()}

        updated = self.repo.update_product(int(tenant_id), int(product_id), clean)
        if not updated:
            raise NotFoundError("Product not found.")
        log.info("product_updated tenant=%s product_id=%s fields=%s", tenant_id, product_id, ",".join(clean))

    def delete_product(self, tenant_id: int, product_id: int) -> None:
        removed = self.repo.delete_product(int(tenant_id), int(product_id))
        if not removed:
            raise NotFoundError("Product not found.")
        log.info("product_deleted tenant=%s product_id=%s", tenant_id, product_id)

    def import_products(self, tenant_id: int, rows: Iterable[ImportedProduct]) -> tuple[int, int]:
        ok = 0
        failed = 0
        for row in rows:
            try:
                self.add_product(
                    tenant_id,
                    name=row.name,
                    sku=row.sku,
                    category=row.category,
                    quantity=row.quantity,
                    min_stock=row.min_stock,
                    price=row.price,
                    cost_price=row.cost_price,
                )
                ok += 1
            except (AppError, sqlite3.Error) as e:
                log.warning("Product import failed for sku=%s: %s", row.sku, e)
                failed += 1
        return ok, failed
