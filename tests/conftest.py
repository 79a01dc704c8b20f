# tests/conftest.py
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.database import Store
from storefront.main import create_app
from storefront.sessions import SessionContext, SessionStore

ADMIN = {"username": "admin", "password": "admin123"}


def make_settings(**overrides) -> Settings:
    values = dict(session_secret="test-secret", data_file=None, admin_username="admin", admin_password="admin123")
    values.update(overrides)
    return Settings(**values)


def add_product(store: Store, name: str = "Widget", price: str = "10.00", stock: int = 5, **extra):
    fields = {"name": name, "description": extra.pop("description", ""), "price": Decimal(price), "stock_quantity": stock}
    fields.update(extra)
    return store.create_product(fields)


def new_session() -> SessionContext:
    sessions = SessionStore()
    sid, data = sessions.create()
    return SessionContext(sid, data, sessions)


@pytest.fixture
def store():
    return Store(lock_timeout=1.0)


@pytest.fixture
def app(store):
    return create_app(make_settings(), store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(app):
    c = TestClient(app)
    r = c.post("/api/auth/login", json=ADMIN)
    assert r.status_code == 200
    return c
