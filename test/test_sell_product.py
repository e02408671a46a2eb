import sqlite3
import threading

import pytest

from conftest import add_product, sign_up
from shoptrack.domain import aggregates
from shoptrack.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from shoptrack.repositories.sqlite_repo import SqliteRepository


def test_sell_updates_stock_and_records_sale(app, session):
    p = add_product(app, session, quantity=5, min_stock=10, price=20.0)

    sale = app.sales.record_sale(session.tenant_id, p.id, 3)

    assert sale.quantity == 3
    assert sale.unit_price == 20.0
    assert sale.total_amount == 60.0
    assert sale.product_name == "Widget"

    after = app.inventory.get_product(session.tenant_id, p.id)
    assert after.quantity == 2
    assert aggregates.is_low_stock(after)

    sales = app.sales.list_sales(session.tenant_id)
    assert len(sales) == 1
    assert sales[0].id == sale.id
    assert sales[0].total_amount == 60.0


def test_sell_to_zero_marks_out_of_stock(app, session):
    p = add_product(app, session, quantity=4)
    app.sales.record_sale(session.tenant_id, p.id, 4)

    after = app.inventory.get_product(session.tenant_id, p.id)
    assert after.quantity == 0
    assert aggregates.is_out_of_stock(after)
    assert not aggregates.is_low_stock(after)


def test_oversell_is_rejected_and_nothing_changes(app, session):
    p = add_product(app, session, sku="OVR-1", quantity=2)

    with pytest.raises(InsufficientStockError, match="Not enough stock for OVR-1. Available: 2"):
        app.sales.record_sale(session.tenant_id, p.id, 3)

    assert app.inventory.get_product(session.tenant_id, p.id).quantity == 2
    assert app.sales.list_sales(session.tenant_id) == []


def test_sell_unknown_product(app, session):
    with pytest.raises(NotFoundError):
        app.sales.record_sale(session.tenant_id, 999, 1)
    assert app.sales.list_sales(session.tenant_id) == []


@pytest.mark.parametrize("qty,msg", [(0, ">= 1"), (-2, ">= 1"), (1.5, "whole number"), (True, "whole number")])
def test_sell_rejects_bad_quantity(app, session, qty, msg):
    p = add_product(app, session, quantity=5)
    with pytest.raises(ValidationError, match=msg):
        app.sales.record_sale(session.tenant_id, p.id, qty)
    assert app.inventory.get_product(session.tenant_id, p.id).quantity == 5


def test_sell_is_tenant_scoped(app, session):
    other = sign_up(app, email="other@shop.test", business="Other Shop")
    p = add_product(app, session, quantity=5)

    with pytest.raises(NotFoundError):
        app.sales.record_sale(other.tenant_id, p.id, 1)

    assert app.inventory.get_product(session.tenant_id, p.id).quantity == 5
    assert app.sales.list_sales(other.tenant_id) == []
    assert app.sales.list_sales(session.tenant_id) == []


def test_failed_sale_insert_rolls_back_stock(app, session):
    p = add_product(app, session, quantity=5)

    conn = sqlite3.connect(app.repo.db_path)
    conn.execute(
        "CREATE TRIGGER block_sales BEFORE INSERT ON sales BEGIN SELECT RAISE(ABORT, 'sales blocked'); END"
    )
    conn.commit()
    conn.close()

    with pytest.raises(sqlite3.DatabaseError):
        app.sales.record_sale(session.tenant_id, p.id, 2)

    assert app.inventory.get_product(session.tenant_id, p.id).quantity == 5
    assert app.sales.list_sales(session.tenant_id) == []


def test_concurrent_sells_never_oversell(tmp_path):
    repo = SqliteRepository(tmp_path / "race.db")
    repo.init_db()
    tenant = repo.create_tenant("race@shop.test", "secret123", "Racer", None)
    p = repo.add_product(tenant.id, "Last One", "L-1", "Misc", 1, 0, 5.0, 1.0)

    outcomes = []
    lock = threading.Lock()

    def sell():
        try:
            repo.record_sale(tenant.id, p.id, 1, "2026-01-01T00:00:00+00:00")
            result = "sold"
        except InsufficientStockError:
            result = "rejected"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=sell) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["rejected", "rejected", "rejected", "sold"]
    assert repo.get_product(tenant.id, p.id).quantity == 0
    assert len(repo.list_sales(tenant.id)) == 1


def test_sale_survives_product_deletion(app, session):
    p = add_product(app, session, quantity=5)
    app.sales.record_sale(session.tenant_id, p.id, 1)
    app.inventory.delete_product(session.tenant_id, p.id)

    sales = app.sales.list_sales(session.tenant_id)
    assert len(sales) == 1
    assert sales[0].product_id == p.id
    assert sales[0].product_name == "Widget"
