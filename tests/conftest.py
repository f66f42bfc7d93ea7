"""Pytest configuration for storefront tests."""

import os

#settings are read at import time, set them before the app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["HANDOFF_DESTINATION"] = "5491100000000"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.main import app
from storefront.api.deps import get_idempotency_service
from storefront.data.database import Base, get_db
from storefront.data.models import CategoryModel, ProductModel, UserModel
from storefront.services.idempotency_service import IdempotencyClaim, PENDING_PREFIX


# In-memory SQLite shared by every connection (StaticPool), fresh schema per test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class InMemoryIdempotency:
    """Stands in for the Redis-backed store; same claim/complete/release contract."""

    def __init__(self):
        self.values = {}

    def claim(self, user_id, idempotency_key):
        key = f"order:idempotency:{user_id}:{idempotency_key}"
        if key not in self.values:
            token = PENDING_PREFIX + key
            self.values[key] = token
            return IdempotencyClaim(key, token, None)
        current = self.values[key]
        if isinstance(current, str) and current.startswith(PENDING_PREFIX):
            return IdempotencyClaim(key, None, None)
        return IdempotencyClaim(key, None, current)

    def complete(self, claim, response):
        self.values[claim.key] = response

    def release(self, claim):
        if self.values.get(claim.key) == claim.token:
            del self.values[claim.key]
            return True
        return False


@pytest.fixture(scope="function", autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def idempotency():
    return InMemoryIdempotency()


@pytest.fixture
def client(idempotency):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_idempotency_service] = lambda: idempotency
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(user_id, role="customer", name=None):
        user = UserModel(id=user_id, name=name or f"user-{user_id}", role=role)
        db.add(user)
        db.commit()
        return user_id
    return _make


@pytest.fixture
def make_category(db):
    def _make(name):
        category = CategoryModel(name=name)
        db.add(category)
        db.commit()
        return category.id
    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Figure", price="10.00", stock=10, weight=None, sale_price=None,
              sale_active=False, category_id=None):
        product = ProductModel(
            name=name,
            price=Decimal(price),
            stock=stock,
            weight=Decimal(weight) if weight is not None else None,
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            sale_active=sale_active,
            category_id=category_id,
        )
        db.add(product)
        db.commit()
        return product.id
    return _make


@pytest.fixture
def customer(make_user):
    return make_user(1)


@pytest.fixture
def other_customer(make_user):
    return make_user(2)


@pytest.fixture
def admin(make_user):
    return make_user(99, role="admin")


def auth(user_id):
    return {"X-User-Id": str(user_id)}
