import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def build_app(tmp_path: Path, **settings_overrides):
    from shoptrack.application.container import build_container
    from shoptrack.config import Settings

    return build_container(tmp_path / "shop.db", Settings(**settings_overrides))


def sign_up(app, email: str = "owner@shop.test", business: str = "Corner Shop"):
    return app.auth.sign_up(email, "secret123", "Owner", business)


def add_product(app, session, **overrides):
    fields = {
        "name": "Widget",
        "sku": "W-1",
        "category": "Tools",
        "quantity": 5,
        "min_stock": 10,
        "price": 20.0,
        "cost_price": 12.0,
    }
    fields.update(overrides)
    return app.inventory.add_product(session.tenant_id, **fields)


@pytest.fixture
def app(tmp_path):
    return build_app(tmp_path)


@pytest.fixture
def session(app):
    return sign_up(app)
