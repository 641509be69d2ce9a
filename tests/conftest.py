"""Pytest fixtures for the bookkeeping tests."""
import os

# Must be set before anything under app/ reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.main import app as api_app
from app.models.base import Base, get_db
from app.models.enums import Platform, SubscriptionType
from app.models.expense import Expense
from app.models.product import Product
from app.models.sale import Sale
from app.models.user import User
from app.services.inventory_service import refresh_status


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(subscription=SubscriptionType.FREE, currency="GBP", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"seller{counter['n']}@example.com",
            display_name=f"Seller {counter['n']}",
            currency=currency,
            subscription_type=subscription,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def pro_user(make_user):
    return make_user(subscription=SubscriptionType.PRO)


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(owner, quantity=1, restock_threshold=1, purchase_price=10, **extra):
        counter["n"] += 1
        product = Product(
            user_id=owner.id,
            name=extra.pop("name", f"Item {counter['n']}"),
            sku=extra.pop("sku", f"TEST-{owner.id}-{counter['n']}"),
            category=extra.pop("category", "Clothing"),
            condition=extra.pop("condition", "Good"),
            purchase_price=purchase_price,
            quantity=quantity,
            restock_threshold=restock_threshold,
            **extra,
        )
        refresh_status(product)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_sale(db):
    """Insert a sale row directly, bypassing the state machine."""

    def _make(owner, product, sale_price, sale_date, currency="GBP", platform=Platform.VINTED, **extra):
        sale = Sale(
            user_id=owner.id,
            product_id=product.id,
            quantity=extra.pop("quantity", 1),
            sale_price=sale_price,
            currency=currency,
            platform=platform,
            sale_date=sale_date,
            **extra,
        )
        db.add(sale)
        db.commit()
        db.refresh(sale)
        return sale

    return _make


@pytest.fixture
def make_expense(db):
    def _make(owner, amount, date, category="Packaging", currency="GBP", **extra):
        expense = Expense(
            user_id=owner.id,
            amount=amount,
            category=category,
            description=extra.pop("description", f"{category} spend"),
            currency=currency,
            date=date,
            **extra,
        )
        db.add(expense)
        db.commit()
        db.refresh(expense)
        return expense

    return _make


@pytest.fixture
def client(db):
    """API client sharing the test session; lifespan (init_db) is not run."""

    def _get_db():
        yield db

    api_app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(api_app)
    finally:
        api_app.dependency_overrides.clear()

