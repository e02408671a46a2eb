from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from shoptrack.domain import aggregates
from shoptrack.domain.models import Product, Sale


@dataclass(frozen=True)
class ReportData:
    business_name: str
    generated_at: datetime
    products: list[Product]
    sales: list[Sale]
    inventory_value: float
    total_sales: float
    profit: aggregates.ProfitSummary
    categories: list[aggregates.CategoryTotals] = field(default_factory=list)
    top_products: list[aggregates.ProductSalesTotals] = field(default_factory=list)


@dataclass(frozen=True)
class DashboardSummary:
    product_count: int
    low_stock_count: int
    out_of_stock_count: int
    inventory_value: float
    total_sales: float
    sales_stats: aggregates.SalesStats


class ReportingService:
    def build_report(
        self,
        products: Sequence[Product],
        sales: Sequence[Sale],
        business_name: str = "Shop",
        now: Optional[datetime] = None,
    ) -> ReportData:
        return ReportData(
            business_name=business_name or "Shop",
            generated_at=now or datetime.now(),
            products=list(products),
            sales=list(sales),
            inventory_value=aggregates.total_inventory_value(products),
            total_sales=aggregates.total_sales_value(sales),
            profit=aggregates.profit_summary(products),
            categories=aggregates.category_breakdown(products),
            top_products=aggregates.top_products(sales, limit=5),
        )

    def dashboard_summary(
        self, products: Sequence[Product], sales: Sequence[Sale], now: Optional[datetime] = None
    ) -> DashboardSummary:
        return DashboardSummary(
            product_count=len(products),
            low_stock_count=len(aggregates.low_stock_products(products)),
            out_of_stock_count=len(aggregates.out_of_stock_products(products)),
            inventory_value=aggregates.total_inventory_value(products),
            total_sales=aggregates.total_sales_value(sales),
            sales_stats=aggregates.sales_stats(sales, now),
        )
