from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


STOCK_IN = "in-stock"
STOCK_LOW = "low-stock"
STOCK_OUT = "out-of-stock"

TICKET_PENDING = "pending"
TICKET_IN_PROGRESS = "in-progress"
TICKET_RESOLVED = "resolved"
TICKET_STATUSES = (TICKET_PENDING, TICKET_IN_PROGRESS, TICKET_RESOLVED)


@dataclass(frozen=True)
class Product:
    id: int
    tenant_id: int
    name: str
    sku: str
    category: str
    quantity: int
    min_stock: int
    price: float
    cost_price: float
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Sale:
    id: int
    tenant_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_amount: float
    date: datetime


@dataclass(frozen=True)
class Tenant:
    id: int
    email: str
    display_name: str
    business_name: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class SupportTicket:
    id: int
    tenant_id: int
    user_email: str
    user_display_name: str
    subject: str
    message: str
    status: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TenantOverview:
    tenant: Tenant
    products_count: int
    sales_count: int
    total_revenue: float


@dataclass(frozen=True)
class ImportedProduct:
    name: str
    sku: str
    category: str
    quantity: int
    min_stock: int
    price: float
    cost_price: float
