"""
Pytest configuration and fixtures for ChocoCraft tests.
"""
import os
import tempfile
from decimal import Decimal

# Set test environment before importing app modules
_TMP_DIR = tempfile.mkdtemp(prefix="chococraft-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/app.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["ADMIN_USERNAME"] = ""
os.environ["ADMIN_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from chococraft.auth import create_access_token, get_password_hash
from chococraft.database import get_db, make_engine
from chococraft.main import app
from chococraft.models import Base, Product, User

PASSWORD = "chocolate123"


@pytest.fixture(scope="session")
def password_hash() -> str:
    return get_password_hash(PASSWORD)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so the app and the test (and threads) share state."""
    engine = make_engine(f"sqlite:///{tmp_path}/test.db")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db, password_hash):
    counter = {"n": 0}

    def _make(username=None, is_admin=False) -> User:
        counter["n"] += 1
        name = username or f"user{counter['n']}"
        user = User(
            username=name,
            email=f"{name}@example.com",
            hashed_password=password_hash,
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user("alice")


@pytest.fixture
def other_user(make_user) -> User:
    return make_user("bob")


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", is_admin=True)


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.is_admin)}"}


@pytest.fixture
def user_headers(user) -> dict:
    return headers_for(user)


@pytest.fixture
def admin_headers(admin) -> dict:
    return headers_for(admin)


@pytest.fixture
def make_product(db):
    def _make(name="Dark Truffle", price="100", original_price="120", stock=5, **kwargs) -> Product:
        product = Product(
            name=name,
            price=Decimal(price),
            original_price=Decimal(original_price) if original_price is not None else None,
            stock=stock,
            **kwargs,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


def order_body(user: User, lines, **overrides) -> dict:
    """JSON body for POST /api/orders; ``lines`` is [(product_id, quantity), ...]."""
    body = {
        "userId": user.id,
        "items": [{"productId": pid, "quantity": qty, "price": 1} for pid, qty in lines],
        "total": 1,
        "shipping": {
            "name": "Alice Baker",
            "address": "12 Cocoa Lane",
            "city": "Pune",
            "state": "MH",
            "zip": "411001",
        },
        "paymentMethod": "Cash on Delivery",
    }
    body.update(overrides)
    return body
