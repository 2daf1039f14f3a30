"""Shared test fixtures."""

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from config import settings
from database import ensure_indexes, init_db


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Cheapest bcrypt cost so registration does not dominate the suite."""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)


@pytest.fixture
def db():
    """In-memory MongoDB bound as the API's database."""
    mock_db = mongomock.MongoClient()["provision_store_test"]
    ensure_indexes(mock_db)
    previous = database.get_db()
    init_db(mock_db)
    yield mock_db
    database.db = previous


@pytest.fixture
def api(db):
    from main import app
    with TestClient(app) as client:
        yield client


def register(api, username, password="secret1", full_name=None):
    resp = api.post("/api/auth/register", json={
        "username": username,
        "full_name": full_name or username.title(),
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    return (username, password)


@pytest.fixture
def alice(api):
    return register(api, "alice")


@pytest.fixture
def bob(api):
    return register(api, "bob")


@pytest.fixture
def catalog(api, alice):
    """Two products owned by alice: rice priced per kg and dal sold in 500gm packs."""
    rice = api.post("/api/products", auth=alice, json={
        "name": "Basmati Rice",
        "price_per_unit": 120,
        "weight": 1,
        "weight_unit": "kg",
        "category": "Grains",
    }).json()
    dal = api.post("/api/products", auth=alice, json={
        "name": "Toor Dal",
        "price_per_unit": 500,
        "weight": 500,
        "weight_unit": "gm",
        "category": "Pulses",
    }).json()
    return {"rice": rice, "dal": dal}


def cart_payload(catalog, total_amount=490.0, **extra):
    rice, dal = catalog["rice"], catalog["dal"]
    payload = {
        "items": [
            {"product_id": rice["id"], "price_per_unit": 120, "weight": 1, "weight_unit": "kg", "quantity": 2},
            {"product_id": dal["id"], "price_per_unit": 500, "weight": 500, "weight_unit": "gm", "quantity": 1},
        ],
        "total_amount": total_amount,
    }
    payload.update(extra)
    return payload
