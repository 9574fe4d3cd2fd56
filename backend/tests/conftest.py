"""
Pytest fixtures for POS Ultimate backend tests.

Provides an in-memory document store, a controllable clock, seeded
locations/users/products and a logged-in test client per role.
"""

from datetime import datetime, timedelta

import pytest

from pos_ultimate import create_app
from pos_ultimate.extensions import db


ADMIN_PASSWORD = "SuperSecurePassword123!"
USER_PASSWORD = "Password123!"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope='function')
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture(scope='function')
def app(clock):
    """Create application for testing with a fresh database."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'BOOTSTRAP_ADMIN_PASSWORD': ADMIN_PASSWORD,
        'REMOTE_RETRY_BACKOFF': 0,
    })

    store = app.extensions["pos_store"]
    store.clock = clock
    store.notifications.clock = clock
    app.extensions["pos_auth"].clock = clock

    with app.app_context():
        db.create_all()
        yield app
        store.stop()
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def store(app):
    """Synced store, listening."""
    store = app.extensions["pos_store"]
    store.start()
    return store


@pytest.fixture(scope='function')
def gate(app, store):
    return app.extensions["pos_auth"]


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def local_a(store):
    return store.add_local({"id": "local-a", "name": "Centro", "address": "Main St 1"})


@pytest.fixture(scope='function')
def local_b(store):
    return store.add_local({"id": "local-b", "name": "Norte", "address": "North Ave 9"})


@pytest.fixture(scope='function')
def admin_a(store, local_a):
    return store.add_user({
        "id": "admin-a",
        "username": "AdminA",
        "email": "admin.a@pos.local",
        "password": USER_PASSWORD,
        "role": "ADMIN",
        "name": "Admin A",
        "local_id": local_a["id"],
    })


@pytest.fixture(scope='function')
def seller_a(store, local_a):
    return store.add_user({
        "id": "seller-a",
        "username": "Maria",
        "email": "maria@pos.local",
        "password": USER_PASSWORD,
        "role": "SELLER",
        "name": "Maria",
        "local_id": local_a["id"],
    })


@pytest.fixture(scope='function')
def seller_b(store, local_b):
    return store.add_user({
        "id": "seller-b",
        "username": "pedro",
        "password": USER_PASSWORD,
        "role": "SELLER",
        "name": "Pedro",
        "local_id": local_b["id"],
    })


@pytest.fixture(scope='function')
def coffee(store, local_a):
    return store.add_product({
        "id": "coffee",
        "local_id": local_a["id"],
        "name": "Coffee 500g",
        "price": 1200,
        "cost_price": 800,
        "stock": 10,
        "min_stock": 3,
        "category": "Grocery",
        "sku": "7790001",
        "barcode": "CF-500",
    })


@pytest.fixture(scope='function')
def sugar(store, local_a):
    return store.add_product({
        "id": "sugar",
        "local_id": local_a["id"],
        "name": "Sugar",
        "price": 2.5,
        "stock": 4.5,
        "min_stock": 1,
        "category": "Grocery",
        "sku": "7790002",
        "measurement_unit": "KG",
    })


@pytest.fixture(scope='function')
def tea_b(store, local_b):
    return store.add_product({
        "id": "tea-b",
        "local_id": local_b["id"],
        "name": "Tea",
        "price": 500,
        "stock": 5,
        "min_stock": 0,
        "category": "Grocery",
        "sku": "7790001",
    })


def sale_payload(local_id, seller_id, lines, payment_method="CARD", **extra):
    """Sale body built from (product, quantity) pairs."""
    items = [{**product, "quantity": quantity} for product, quantity in lines]
    return {
        "local_id": local_id,
        "seller_id": seller_id,
        "items": items,
        "payment_method": payment_method,
        **extra,
    }


def login(client, identifier: str, password: str):
    return client.post('/api/auth/login', json={
        'identifier': identifier,
        'password': password,
    })


@pytest.fixture(scope='function')
def super_client(client, store):
    resp = login(client, "superadmin", ADMIN_PASSWORD)
    assert resp.status_code == 200
    return client


@pytest.fixture(scope='function')
def admin_client(app, admin_a):
    client = app.test_client()
    assert login(client, "AdminA", USER_PASSWORD).status_code == 200
    return client


@pytest.fixture(scope='function')
def seller_client(app, seller_a):
    client = app.test_client()
    assert login(client, "maria", USER_PASSWORD).status_code == 200
    return client
