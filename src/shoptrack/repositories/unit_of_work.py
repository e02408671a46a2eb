from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from shoptrack.domain.models import Sale
from shoptrack.repositories.sqlite_repo import now_iso


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def record_sale(self, tenant_id: int, product_id: int, quantity: int) -> Sale: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for transactional write use-cases.

    The repository's ``record_sale`` already runs inside one SQL transaction.
    This class centralizes write orchestration so services stay persistence-agnostic.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def record_sale(self, tenant_id: int, product_id: int, quantity: int) -> Sale:
        return self.repo.record_sale(int(tenant_id), int(product_id), int(quantity), now_iso())
