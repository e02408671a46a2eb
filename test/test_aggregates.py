from datetime import datetime, timedelta, timezone

import pytest

from shoptrack.domain import aggregates
from shoptrack.domain.errors import ValidationError
from shoptrack.domain.models import Product, Sale

T0 = datetime(2026, 3, 10, 12, 0, 0)


def _p(pid, quantity, min_stock=10, price=20.0, cost=12.0, name=None, sku=None, category="Tools"):
    return Product(
        id=pid,
        tenant_id=1,
        name=name or f"Product {pid}",
        sku=sku or f"SKU-{pid}",
        category=category,
        quantity=quantity,
        min_stock=min_stock,
        price=price,
        cost_price=cost,
        created_at=T0,
        updated_at=T0,
    )


def _s(sid, product_id, qty, unit_price, name="Product", when=T0):
    return Sale(
        id=sid,
        tenant_id=1,
        product_id=product_id,
        product_name=name,
        quantity=qty,
        unit_price=unit_price,
        total_amount=qty * unit_price,
        date=when,
    )


@pytest.mark.parametrize(
    "quantity,min_stock,expected",
    [
        (0, 10, "out-of-stock"),
        (0, 0, "out-of-stock"),
        (1, 10, "low-stock"),
        (10, 10, "low-stock"),
        (11, 10, "in-stock"),
        (3, 0, "in-stock"),
    ],
)
def test_stock_status_thresholds(quantity, min_stock, expected):
    assert aggregates.stock_status(quantity, min_stock) == expected


def test_out_of_stock_is_not_low_stock_even_below_threshold():
    empty = _p(1, 0, min_stock=10)
    low = _p(2, 4, min_stock=10)
    healthy = _p(3, 40, min_stock=10)
    products = [empty, low, healthy]

    assert aggregates.low_stock_products(products) == [low]
    assert aggregates.out_of_stock_products(products) == [empty]


def test_total_inventory_value_uses_cost_price():
    products = [_p(1, 5, cost=12.0), _p(2, 0, cost=99.0), _p(3, 2, cost=2.5)]
    assert aggregates.total_inventory_value(products) == pytest.approx(65.0)
    assert aggregates.total_inventory_value([]) == 0.0


def test_total_sales_value_sums_sale_totals():
    sales = [_s(1, 1, 3, 20.0), _s(2, 2, 1, 7.5)]
    assert aggregates.total_sales_value(sales) == pytest.approx(67.5)


def test_category_breakdown_counts_and_retail_value():
    products = [
        _p(1, 2, price=10.0, category="Tools"),
        _p(2, 1, price=5.0, category="Paint"),
        _p(3, 3, price=1.0, category="Tools"),
    ]
    rows = aggregates.category_breakdown(products)
    assert [(r.name, r.count, r.value) for r in rows] == [("Tools", 2, 23.0), ("Paint", 1, 5.0)]
    assert aggregates.categories(products) == ["Tools", "Paint"]


def test_top_products_ranked_by_revenue():
    sales = [
        _s(1, 1, 1, 100.0, name="Drill"),
        _s(2, 2, 10, 2.0, name="Nails"),
        _s(3, 1, 1, 100.0, name="Drill"),
        _s(4, 3, 1, 50.0, name="Saw"),
    ]
    top = aggregates.top_products(sales, limit=2)
    assert [(t.name, t.quantity, t.revenue) for t in top] == [("Drill", 2, 200.0), ("Saw", 1, 50.0)]


def test_profit_summary_margin_and_empty_inventory():
    summary = aggregates.profit_summary([_p(1, 10, price=20.0, cost=15.0)])
    assert summary.total_cost == 150.0
    assert summary.total_value == 200.0
    assert summary.potential_profit == 50.0
    assert summary.margin_pct == 25.0

    assert aggregates.profit_summary([]).margin_pct == 0.0


def test_sales_stats_monthly_window_and_average():
    sales = [
        _s(1, 1, 2, 10.0, when=datetime(2026, 3, 1)),
        _s(2, 1, 1, 40.0, when=datetime(2026, 2, 28, 23, 59)),
    ]
    stats = aggregates.sales_stats(sales, now=datetime(2026, 3, 15))
    assert stats.total_revenue == 60.0
    assert stats.monthly_revenue == 20.0
    assert stats.total_transactions == 2
    assert stats.average_order_value == 30.0

    assert aggregates.sales_stats([], now=T0).average_order_value == 0.0


def test_recent_sales_newest_first():
    sales = [
        _s(1, 1, 1, 1.0, when=datetime(2026, 1, 1)),
        _s(2, 1, 1, 1.0, when=datetime(2026, 1, 3)),
        _s(3, 1, 1, 1.0, when=datetime(2026, 1, 2)),
    ]
    assert [s.id for s in aggregates.recent_sales(sales, limit=2)] == [2, 3]


def test_filter_products_by_search_and_category():
    products = [
        _p(1, 1, name="Claw Hammer", sku="HM-01", category="Tools"),
        _p(2, 1, name="Wall Paint", sku="PT-07", category="Paint"),
        _p(3, 1, name="Paint Brush", sku="BR-02", category="Tools"),
    ]
    assert [p.id for p in aggregates.filter_products(products, "paint")] == [2, 3]
    assert [p.id for p in aggregates.filter_products(products, "hm-")] == [1]
    assert [p.id for p in aggregates.filter_products(products, "paint", "Tools")] == [3]
    assert len(aggregates.filter_products(products, "", "all")) == 3


def test_filter_sales_by_product_name():
    sales = [_s(1, 1, 1, 1.0, name="Claw Hammer"), _s(2, 2, 1, 1.0, name="Brush")]
    assert [s.id for s in aggregates.filter_sales(sales, "HAMMER")] == [1]


def test_sort_products_text_and_numeric():
    products = [_p(1, 5, name="banana"), _p(2, 1, name="Apple"), _p(3, 9, name="cherry")]
    assert [p.id for p in aggregates.sort_products(products, "name")] == [2, 1, 3]
    assert [p.id for p in aggregates.sort_products(products, "quantity", "desc")] == [3, 1, 2]

    with pytest.raises(ValidationError):
        aggregates.sort_products(products, "created_at")


def test_paginate_clamps_page():
    items = list(range(23))
    page = aggregates.paginate(items, page=3)
    assert page.items == [20, 21, 22]
    assert page.total_pages == 3

    assert aggregates.paginate(items, page=99).page == 3
    assert aggregates.paginate(items, page=0).items == list(range(10))

    empty = aggregates.paginate([], page=2)
    assert empty.items == []
    assert empty.page == 1
    assert empty.total_pages == 1


def test_sales_stats_compares_months_in_the_reference_timezone():
    utc = timezone.utc
    late_march_utc = datetime(2026, 3, 31, 23, 30, tzinfo=utc)
    sales = [_s(1, 1, 1, 10.0, when=late_march_utc)]

    assert aggregates.sales_stats(sales, now=datetime(2026, 3, 31, 23, 59, tzinfo=utc)).monthly_revenue == 10.0

    # the same instant is already April for a shop at UTC+2
    plus_two = timezone(timedelta(hours=2))
    april = datetime(2026, 4, 1, 9, 0, tzinfo=plus_two)
    assert aggregates.sales_stats(sales, now=april).monthly_revenue == 10.0
    assert aggregates.sales_stats(sales, now=datetime(2026, 4, 1, 0, 5, tzinfo=utc)).monthly_revenue == 0.0


def test_sales_stats_default_now_handles_utc_sale_dates():
    sales = [_s(1, 1, 2, 5.0, when=datetime.now(timezone.utc))]
    assert aggregates.sales_stats(sales).monthly_revenue == 10.0
