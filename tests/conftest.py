import os

os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Product, User


@pytest.fixture
def db():
    database = mongomock.MongoClient()["denim_store_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _make_user(db, name, email, is_admin=False, password="password123"):
    user = User(name=name, email=email, password_hash=hash_password(password), is_admin=is_admin)
    user_id = create_document(db, "user", user)
    return db["user"].find_one({"_id": ObjectId(user_id)})


@pytest.fixture
def user(db):
    return _make_user(db, "John Doe", "user@demo.com")


@pytest.fixture
def other_user(db):
    return _make_user(db, "Jane Roe", "jane@demo.com")


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin User", "admin@demo.com", is_admin=True)


def bearer(user_doc):
    return {"Authorization": f"Bearer {create_token(user_doc)}"}


@pytest.fixture
def user_headers(user):
    return bearer(user)


@pytest.fixture
def other_headers(other_user):
    return bearer(other_user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        data = {
            "name": "Men's Slim Fit Dark Denim",
            "description": "Stretch denim.",
            "price": 3499,
            "category": "Men",
            "sizes": ["30", "32", "34"],
            "image": "https://example.com/jeans.jpg",
            "stock": 10,
        }
        data.update(overrides)
        return create_document(db, "product", Product(**data))

    return _make


@pytest.fixture
def stock_of(db):
    def _stock(product_id):
        return db["product"].find_one({"_id": ObjectId(product_id)})["stock"]

    return _stock
