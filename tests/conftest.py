import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, get_db
from main import app

ADMIN_PASSWORD = "s3cret"


@pytest.fixture()
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture()
def client(db, monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(client):
    client.auth = ("admin", ADMIN_PASSWORD)
    return client


@pytest.fixture()
def category(db):
    category_id = create_document(db, "category", {"name": "Skincare", "slug": "skincare", "description": None})
    return db["category"].find_one({"_id": category_id})


def make_product(db, category_id, **overrides):
    """Helper: insert a product document and return it."""
    data = {
        "name": "Serum",
        "slug": "serum",
        "description": "Vitamin C serum",
        "original_price": 50.0,
        "discount_price": None,
        "category_id": category_id,
        "stock_quantity": 5,
        "is_active": True,
        "is_featured": False,
        "is_recently_added": False,
        "sort_order": 0,
        "images": [],
    }
    data.update(overrides)
    product_id = create_document(db, "product", data)
    return db["product"].find_one({"_id": product_id})


@pytest.fixture()
def product_factory(db, category):
    return lambda **overrides: make_product(db, **{"category_id": category["_id"], **overrides})


@pytest.fixture()
def product(product_factory):
    return product_factory(discount_price=40.0)
