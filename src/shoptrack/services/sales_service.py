from __future__ import annotations

import logging
from typing import Callable

from shoptrack.domain.errors import ValidationError
from shoptrack.domain.models import Sale
from shoptrack.repositories.contracts import ProductRepository
from shoptrack.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("shoptrack.sales")


class SalesService:
    def __init__(
        self,
        repo: ProductRepository,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def record_sale(self, tenant_id: int, product_id: int, quantity: int) -> Sale:
        """Sell ``quantity`` units of a product at its current price.

        Raises ``NotFoundError`` for an unknown product and
        ``InsufficientStockError`` when stock is short; in both cases nothing
        is written.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Qty must be a whole number.")
        if quantity <= 0:
            raise ValidationError("Qty must be >= 1.")

        with self.uow_factory() as uow:
            sale = uow.record_sale(int(tenant_id), int(product_id), quantity)
        log.info(
            "sale_recorded sale_id=%s tenant=%s product_id=%s qty=%s total=%.2f",
            sale.id, tenant_id, product_id, quantity, sale.total_amount,
        )
        return sale

    def list_sales(self, tenant_id: int) -> list[Sale]:
        return self.repo.list_sales(int(tenant_id))
