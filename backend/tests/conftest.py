"""
Pytest fixtures for the backend tests.

Provides an in-memory app, per-test table cleanup, two tenants with a user
and stock each, and helpers for authenticated test-client calls.
"""

import pytest

from gestao import create_app
from gestao.extensions import db
from gestao.models import Basket, Client, InventoryItem, Organization, User, Vendor
from gestao.services.auth_service import hash_password
from gestao.services.session_service import create_session


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'DB_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    # bcrypt is slow by design; hash once per run
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Mercadinho Alfa", code="ALFA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Armazem Beta", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _make_user(db_session, org, username, password_hash):
    user = User(
        org_id=org.id,
        username=username,
        email=f"{username}@example.com",
        password_hash=password_hash,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session, org_a, password_hash):
    return _make_user(db_session, org_a, "user_a", password_hash)


@pytest.fixture(scope='function')
def user_b(db_session, org_b, password_hash):
    return _make_user(db_session, org_b, "user_b", password_hash)


@pytest.fixture(scope='function')
def item_a(db_session, org_a):
    """Stocked item in Organization A."""
    item = InventoryItem(org_id=org_a.id, name="Arroz 5kg", quantity=10, unit="un",
                         unit_cost_cents=1800, sale_price_cents=2500)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, org_b):
    """Stocked item in Organization B."""
    item = InventoryItem(org_id=org_b.id, name="Feijao 1kg", quantity=5, unit="un")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def basket_a(db_session, org_a, item_a):
    """Catalog basket of Organization A: two units of item_a."""
    basket = Basket(org_id=org_a.id, name="Cesta Basica", promo_price_cents=8000,
                    components=[{"item_id": item_a.id, "quantity": 2}])
    db_session.add(basket)
    db_session.commit()
    return basket


@pytest.fixture(scope='function')
def client_a(db_session, org_a):
    """Customer of Organization A."""
    customer = Client(org_id=org_a.id, name="Dona Maria", phone="11999990000")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def vendor_a(db_session, org_a):
    vendor = Vendor(org_id=org_a.id, name="Joao Vendedor")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def token_a(db_session, user_a):
    _, token = create_session(user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(db_session, user_b):
    _, token = create_session(user_b.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def sale_payload(item_id: int, basket_id: int | None = None, **overrides) -> dict:
    """
    Two units of one stock item, plus one basket line when basket_id is
    given; total 100.00 paid in cash either way.
    """
    items = [{"item_ref": item_id, "quantity": 2, "unit_price_cents": 1000, "subtotal_cents": 2000}]
    if basket_id is not None:
        items.append({"item_ref": f"cesta-{basket_id}", "quantity": 1, "unit_price_cents": 8000})
    payload = {
        "items": items,
        "total_cents": 10000,
        "payment_type": "dinheiro",
    }
    payload.update(overrides)
    return payload
