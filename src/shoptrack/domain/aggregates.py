"""Derived, non-persisted views over the cached product and sale lists.

Everything here is a pure function: callers pass the current lists and get
a fresh result, nothing is memoized.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, TypeVar

from shoptrack.domain.errors import ValidationError
from shoptrack.domain.models import STOCK_IN, STOCK_LOW, STOCK_OUT, Product, Sale

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10

_TEXT_SORT_FIELDS = {"name", "sku", "category"}
_NUMERIC_SORT_FIELDS = {"quantity", "min_stock", "price", "cost_price"}


@dataclass(frozen=True)
class CategoryTotals:
    name: str
    count: int
    value: float


@dataclass(frozen=True)
class ProductSalesTotals:
    product_id: int
    name: str
    quantity: int
    revenue: float


@dataclass(frozen=True)
class ProfitSummary:
    total_cost: float
    total_value: float
    potential_profit: float
    margin_pct: float


@dataclass(frozen=True)
class SalesStats:
    total_revenue: float
    monthly_revenue: float
    total_transactions: int
    average_order_value: float


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    total_pages: int


def stock_status(quantity: int, min_stock: int) -> str:
    if quantity == 0:
        return STOCK_OUT
    if quantity <= min_stock:
        return STOCK_LOW
    return STOCK_IN


def is_low_stock(product: Product) -> bool:
    return 0 < product.quantity <= product.min_stock


def is_out_of_stock(product: Product) -> bool:
    return product.quantity == 0


def low_stock_products(products: Iterable[Product]) -> list[Product]:
    return [p for p in products if is_low_stock(p)]


def out_of_stock_products(products: Iterable[Product]) -> list[Product]:
    return [p for p in products if is_out_of_stock(p)]


def total_inventory_value(products: Iterable[Product]) -> float:
    return sum((p.quantity * p.cost_price for p in products), 0.0)


def total_sales_value(sales: Iterable[Sale]) -> float:
    return sum((s.total_amount for s in sales), 0.0)


def categories(products: Iterable[Product]) -> list[str]:
    seen: dict[str, None] = {}
    for p in products:
        seen.setdefault(p.category, None)
    return list(seen)


def category_breakdown(products: Iterable[Product]) -> list[CategoryTotals]:
    """Product count and retail value (quantity x price) per category."""
    acc: dict[str, tuple[int, float]] = {}
    for p in products:
        count, value = acc.get(p.category, (0, 0.0))
        acc[p.category] = (count + 1, value + p.quantity * p.price)
    return [CategoryTotals(name=k, count=c, value=v) for k, (c, v) in acc.items()]


def top_products(sales: Iterable[Sale], limit: int = 5) -> list[ProductSalesTotals]:
    acc: dict[int, ProductSalesTotals] = {}
    for s in sales:
        prev = acc.get(s.product_id)
        acc[s.product_id] = ProductSalesTotals(
            product_id=s.product_id,
            name=s.product_name,
            quantity=(prev.quantity if prev else 0) + s.quantity,
            revenue=(prev.revenue if prev else 0.0) + s.total_amount,
        )
    ranked = sorted(acc.values(), key=lambda t: t.revenue, reverse=True)
    return ranked[: max(int(limit), 0)]


def profit_summary(products: Sequence[Product]) -> ProfitSummary:
    total_cost = sum((p.quantity * p.cost_price for p in products), 0.0)
    total_value = sum((p.quantity * p.price for p in products), 0.0)
    profit = total_value - total_cost
    margin = round(profit / total_value * 100, 1) if total_value > 0 else 0.0
    return ProfitSummary(
        total_cost=total_cost,
        total_value=total_value,
        potential_profit=profit,
        margin_pct=margin,
    )


def _same_month(when: datetime, now: datetime) -> bool:
    if when.tzinfo is not None and now.tzinfo is not None:
        when = when.astimezone(now.tzinfo)
    return (when.year, when.month) == (now.year, now.month)


def sales_stats(sales: Sequence[Sale], now: Optional[datetime] = None) -> SalesStats:
    # sale dates are stored in UTC
    now = now or datetime.now(timezone.utc)
    total = total_sales_value(sales)
    monthly = sum((s.total_amount for s in sales if _same_month(s.date, now)), 0.0)
    count = len(sales)
    return SalesStats(
        total_revenue=total,
        monthly_revenue=monthly,
        total_transactions=count,
        average_order_value=(total / count) if count else 0.0,
    )


def recent_sales(sales: Sequence[Sale], limit: int = 5) -> list[Sale]:
    ordered = sorted(sales, key=lambda s: (s.date, s.id), reverse=True)
    return ordered[: max(int(limit), 0)]


def filter_products(
    products: Iterable[Product], search: str = "", category: Optional[str] = None
) -> list[Product]:
    needle = (search or "").strip().lower()
    out = []
    for p in products:
        if needle and needle not in p.name.lower() and needle not in p.sku.lower():
            continue
        if category not in (None, "", "all") and p.category != category:
            continue
        out.append(p)
    return out


def filter_sales(sales: Iterable[Sale], search: str = "") -> list[Sale]:
    needle = (search or "").strip().lower()
    return [s for s in sales if needle in s.product_name.lower()]


def sort_products(products: Iterable[Product], field: str = "name", direction: str = "asc") -> list[Product]:
    if direction not in ("asc", "desc"):
        raise ValidationError(f"Unknown sort direction: {direction}")
    if field in _TEXT_SORT_FIELDS:
        key = lambda p: str(getattr(p, field)).lower()  # noqa: E731
    elif field in _NUMERIC_SORT_FIELDS:
        key = lambda p: getattr(p, field)  # noqa: E731
    else:
        raise ValidationError(f"Cannot sort products by '{field}'.")
    return sorted(products, key=key, reverse=direction == "desc")


def paginate(items: Sequence[T], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice one page out of ``items``; the page is clamped to ``[1, total_pages]``.

    An empty list still has one (empty) page.
    """
    if per_page <= 0:
        raise ValidationError("Page size must be >= 1.")
    total_pages = max(1, math.ceil(len(items) / per_page))
    current = max(1, min(int(page), total_pages))
    start = (current - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=current, total_pages=total_pages)
