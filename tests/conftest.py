from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from admin import get_now
from auth import create_token
from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Brand, Category, Customer, Order, OrderDetail, Product, Staff

NOW = datetime(2024, 3, 1, 12, 0, 0)


class Factory:
    """Inserts documents straight into the test database."""

    def __init__(self, db):
        self.db = db

    def _insert(self, collection_name, model):
        return ObjectId(create_document(self.db, collection_name, model))

    def brand(self, name="CeraVe"):
        return self._insert("brand", Brand(name=name))

    def category(self, name="Moisturizer"):
        return self._insert("category", Category(name=name))

    def product(self, name, stock=50, brand_id=None, **extra):
        product = Product(
            name=name,
            function="cream",
            skinGroup="dry",
            brandId=brand_id or self.brand(),
            categoryId=self.category(),
            stockQuantity=stock,
            **extra,
        )
        return self._insert("product", product)

    def customer(self, name, email, status="active"):
        return self._insert("customer", Customer(name=name, email=email, status=status))

    def staff(self, name):
        return self._insert("staff", Staff(name=name, position="pharmacist"))

    def order(self, order_date, lines, status="completed", customer_id=None, staff_id=None, total=None):
        """``lines`` is a list of (product_id, quantity, unit_price)."""
        if total is None:
            total = sum(qty * price for _, qty, price in lines)
        order = Order(
            customerId=customer_id or ObjectId(),
            staffId=staff_id,
            orderDate=order_date,
            totalAmount=total,
            status=status,
        )
        order_id = self._insert("order", order)
        for product_id, qty, price in lines:
            self._insert("orderdetail", OrderDetail(orderId=order_id, productId=product_id,
                                                    quantity=qty, unitPrice=price))
        return order_id

    def account(self, username, role, **extra):
        doc = {"username": username, "password": "not-a-real-hash", "role": role, "isVerified": True}
        doc.update(extra)
        doc["_id"] = self.db["account"].insert_one(doc).inserted_id
        return doc


@pytest.fixture
def db():
    mongo = mongomock.MongoClient()
    database = mongo["pharmacos_test"]
    ensure_indexes(database)
    yield database
    mongo.drop_database("pharmacos_test")


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(factory):
    account = factory.account("admin", "admin")
    return {"Authorization": f"Bearer {create_token(account)}"}


@pytest.fixture
def staff_headers(factory):
    account = factory.account("staff1", "staff")
    return {"Authorization": f"Bearer {create_token(account)}"}


@pytest.fixture
def now():
    return NOW
