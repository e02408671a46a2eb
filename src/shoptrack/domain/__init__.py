from .models import Product, Sale, Tenant, SupportTicket, TenantOverview, ImportedProduct
from .errors import AppError, ValidationError, NotFoundError, InsufficientStockError, AuthorizationError

__all__ = [
    "Product",
    "Sale",
    "Tenant",
    "SupportTicket",
    "TenantOverview",
    "ImportedProduct",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "AuthorizationError",
]
