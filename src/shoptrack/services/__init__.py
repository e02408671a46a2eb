from .inventory_service import InventoryService
from .sales_service import SalesService
from .inventory_sync import InventorySync
from .excel_service import ExcelService
from .reporting_service import ReportingService
from .auth_service import AuthService, TenantSession
from .admin_service import AdminAuthClient, AdminService, AdminSession
from .support_service import SupportService
from .notifier import Notifier

__all__ = [
    "InventoryService",
    "SalesService",
    "InventorySync",
    "ExcelService",
    "ReportingService",
    "AuthService",
    "TenantSession",
    "AdminAuthClient",
    "AdminService",
    "AdminSession",
    "SupportService",
    "Notifier",
]
