import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
import main


@pytest.fixture
def store(monkeypatch):
    mock_db = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret")
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    res = client.post("/api/auth/register", json={
        "username": "admin",
        "email": "admin@example.com",
        "password": "secret123",
        "confirm_password": "secret123",
    })
    assert res.status_code == 201
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
def make_category(client, admin_headers):
    def _make(name="Stickers", **fields):
        res = client.post("/api/categories", json={"name": name, **fields}, headers=admin_headers)
        assert res.status_code == 201, res.json()
        return res.json()["category"]
    return _make


@pytest.fixture
def make_sub_category(client, admin_headers):
    def _make(category_id, name="Gift Cards", **fields):
        res = client.post("/api/subcategories", json={"name": name, "category": category_id, **fields}, headers=admin_headers)
        assert res.status_code == 201, res.json()
        return res.json()["sub_category"]
    return _make


@pytest.fixture
def make_product(client, admin_headers):
    def _make(name="Laptop sticker", **fields):
        res = client.post("/api/products", json={"name": name, **fields}, headers=admin_headers)
        assert res.status_code == 201, res.json()
        return res.json()["product"]
    return _make
