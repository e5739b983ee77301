"""Shared fixtures: a throwaway SQLite database per test, an API client, and factories."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import config
import database
import models  # noqa: F401  registers the tables on Base.metadata
from database import Base
from models import Product, User
from schemas import OrderItemIn
from security import create_access_token, hash_password

ADDRESS = {"line1": "1 Market St", "city": "Springfield", "zip": "12345", "country": "US"}


@pytest.fixture
def engine(tmp_path):
    engine = database.configure(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def client(engine, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(config, "BACKEND_URL", "")
    from main import app
    return TestClient(app)


@pytest.fixture
def make_user(engine):
    def _make(email="shopper@example.com", role="user", password="password123", full_name="Sam Shopper", **kwargs):
        with database.SessionLocal() as session:
            user = User(
                email=email,
                password_hash=hash_password(password),
                role=role,
                full_name=full_name,
                **kwargs,
            )
            session.add(user)
            session.commit()
            return user
    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin", full_name="Ada Admin")


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def user_headers(user):
    return bearer(user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def make_product(engine):
    def _make(name="Sneaker", stock=10, price="19.99", category="shoes", **kwargs):
        kwargs.setdefault("sizes", [])
        kwargs.setdefault("colors", [])
        with database.SessionLocal() as session:
            product = Product(name=name, category=category, price=Decimal(price), **kwargs)
            product.set_stock(stock)
            session.add(product)
            session.commit()
            return product
    return _make


def fetch(model, pk):
    with database.SessionLocal() as session:
        return session.get(model, pk)


def count(model):
    with database.SessionLocal() as session:
        return session.query(model).count()


def line(product, quantity=1, price=None, **kwargs):
    return OrderItemIn(
        product_id=product.id,
        quantity=quantity,
        price=Decimal(price) if price is not None else product.price,
        **kwargs,
    )
