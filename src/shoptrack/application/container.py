from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from shoptrack.config import Settings
from shoptrack.repositories.sqlite_repo import SqliteRepository
from shoptrack.services.admin_service import AdminAuthClient, AdminService
from shoptrack.services.auth_service import AuthService, TenantSession
from shoptrack.services.excel_service import ExcelService
from shoptrack.services.inventory_service import InventoryService
from shoptrack.services.inventory_sync import InventorySync
from shoptrack.services.notifier import Notifier
from shoptrack.services.reporting_service import ReportingService
from shoptrack.services.sales_service import SalesService
from shoptrack.services.support_service import SupportService


@dataclass(frozen=True)
class AppContainer:
    settings: Settings
    repo: SqliteRepository
    inventory: InventoryService
    sales: SalesService
    excel: ExcelService
    reporting: ReportingService
    auth: AuthService
    support: SupportService
    admin: AdminService

    def inventory_sync(self, session: TenantSession | None, notifier: Notifier | None = None) -> InventorySync:
        return InventorySync(
            self.repo,
            self.inventory,
            self.sales,
            notifier=notifier,
            session=session,
            currency=self.settings.currency,
        )


def build_container(db_path: Path | str, settings: Settings | None = None) -> AppContainer:
    settings = settings or Settings()
    repo = SqliteRepository(db_path)
    repo.init_db()

    return AppContainer(
        settings=settings,
        repo=repo,
        inventory=InventoryService(repo),
        sales=SalesService(repo),
        excel=ExcelService(settings),
        reporting=ReportingService(),
        auth=AuthService(repo, settings),
        support=SupportService(repo),
        admin=AdminService(repo, AdminAuthClient(settings)),
    )
