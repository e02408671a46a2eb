import pytest

from conftest import add_product, sign_up
from shoptrack.domain.errors import NotFoundError, ValidationError


@pytest.mark.parametrize(
    "field,value,msg",
    [
        ("name", "   ", "Product name is required"),
        ("name", "x" * 101, "at most 100"),
        ("sku", "", "SKU is required"),
        ("sku", "s" * 51, "at most 50"),
        ("category", None, "Category is required"),
        ("quantity", -1, "Quantity must be >= 0"),
        ("quantity", 2.5, "whole number"),
        ("min_stock", "abc", "Min stock must be a whole number"),
        ("price", -0.01, "Price must be >= 0"),
        ("cost_price", "free", "Cost price must be a number"),
    ],
)
def test_add_product_validation(app, session, field, value, msg):
    with pytest.raises(ValidationError, match=msg):
        add_product(app, session, **{field: value})
    assert app.inventory.list_products(session.tenant_id) == []


def test_add_product_normalizes_values(app, session):
    p = add_product(app, session, name="  Widget  ", quantity="7", price="19.5", min_stock=3.0)
    assert p.name == "Widget"
    assert p.quantity == 7
    assert p.min_stock == 3
    assert p.price == 19.5
    assert p.created_at == p.updated_at


def test_update_product_changes_only_given_fields(app, session):
    p = add_product(app, session)
    app.inventory.update_product(session.tenant_id, p.id, price=30.0)

    after = app.inventory.get_product(session.tenant_id, p.id)
    assert after.price == 30.0
    assert after.quantity == p.quantity
    assert after.name == p.name
    assert after.updated_at >= p.updated_at
    assert after.created_at == p.created_at


def test_update_product_rejects_unknown_and_invalid_fields(app, session):
    p = add_product(app, session)
    with pytest.raises(ValidationError, match="Cannot update field"):
        app.inventory.update_product(session.tenant_id, p.id, tenant_id=99)
    with pytest.raises(ValidationError):
        app.inventory.update_product(session.tenant_id, p.id, quantity=-3)
    assert app.inventory.get_product(session.tenant_id, p.id).quantity == p.quantity


def test_products_are_tenant_isolated(app, session):
    other = sign_up(app, email="two@shop.test", business="Two")
    p = add_product(app, session)

    assert app.inventory.list_products(other.tenant_id) == []
    with pytest.raises(NotFoundError):
        app.inventory.get_product(other.tenant_id, p.id)
    with pytest.raises(NotFoundError):
        app.inventory.update_product(other.tenant_id, p.id, price=1.0)
    with pytest.raises(NotFoundError):
        app.inventory.delete_product(other.tenant_id, p.id)

    assert app.inventory.get_product(session.tenant_id, p.id).price == 20.0


def test_delete_product(app, session):
    p = add_product(app, session)
    app.inventory.delete_product(session.tenant_id, p.id)
    assert app.inventory.list_products(session.tenant_id) == []
    with pytest.raises(NotFoundError):
        app.inventory.delete_product(session.tenant_id, p.id)


@pytest.mark.parametrize("field", ["price", "cost_price"])
@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), "inf", "NaN"])
def test_non_finite_money_is_rejected(app, session, field, value):
    with pytest.raises(ValidationError, match="finite"):
        add_product(app, session, **{field: value})

    p = add_product(app, session)
    with pytest.raises(ValidationError, match="finite"):
        app.inventory.update_product(session.tenant_id, p.id, **{field: value})
    assert getattr(app.inventory.get_product(session.tenant_id, p.id), field) == getattr(p, field)


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_quantity_is_rejected(app, session, value):
    with pytest.raises(ValidationError, match="whole number"):
        add_product(app, session, quantity=value)


def test_live_cache_turns_non_finite_price_into_notice(app, session):
    from shoptrack.services.notifier import ERROR, Notifier

    notifier = Notifier()
    with app.inventory_sync(session, notifier) as sync:
        assert sync.add_product(name="Widget", sku="W-1", category="Tools", quantity=1, min_stock=1,
                                price=float("nan"), cost_price=1.0) is None
        p = sync.add_product(name="Widget", sku="W-1", category="Tools", quantity=1, min_stock=1,
                             price=2.0, cost_price=1.0)
        assert sync.update_product(p.id, cost_price=float("inf")) is False
        assert sync.get_total_inventory_value() == 1.0

    assert notifier.drain()[0].level == ERROR
