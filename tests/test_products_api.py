"""Tests for the product catalog endpoints."""

import json
import math

from bson import ObjectId

from conftest import register


def product(name="Sugar", **overrides):
    data = {"name": name, "price_per_unit": 45, "weight": 1, "weight_unit": "kg", "category": "Sweeteners"}
    data.update(overrides)
    return data


def test_create_product(api, alice):
    resp = api.post("/api/products", auth=alice, json=product(weight=500, weight_unit="gm"))
    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Sugar"
    assert body["is_active"] is True
    assert body["total_value"] == 22.5
    assert "id" in body and "_id" not in body


def test_defaults_and_trimming(api, alice):
    resp = api.post("/api/products", auth=alice, json={"name": "  Salt  ", "price_per_unit": 20, "weight": 1})
    body = resp.json()
    assert body["name"] == "Salt"
    assert body["weight_unit"] == "kg"
    assert body["category"] == "Others"


def test_product_validation(api, alice):
    assert api.post("/api/products", auth=alice, json=product(name="")).status_code == 422
    assert api.post("/api/products", auth=alice, json=product(name="x" * 101)).status_code == 422
    assert api.post("/api/products", auth=alice, json=product(price_per_unit=-1)).status_code == 422
    assert api.post("/api/products", auth=alice, json=product(weight=0)).status_code == 422
    assert api.post("/api/products", auth=alice, json=product(weight_unit="lb")).status_code == 422
    assert api.post("/api/products", auth=alice, json=product(category="Hardware")).status_code == 422


def test_duplicate_name_is_case_insensitive(api, alice):
    api.post("/api/products", auth=alice, json=product("Sugar"))
    resp = api.post("/api/products", auth=alice, json=product("sUGAR"))
    assert resp.status_code == 400


def test_name_is_matched_literally(api, alice):
    api.post("/api/products", auth=alice, json=product("Oil (1L)", category="Oil & Ghee"))
    resp = api.post("/api/products", auth=alice, json=product("Oil (1L)+", category="Oil & Ghee"))
    assert resp.status_code == 201


def test_deleted_name_can_be_reused(api, alice):
    first = api.post("/api/products", auth=alice, json=product()).json()
    api.delete(f"/api/products/{first['id']}", auth=alice)
    assert api.post("/api/products", auth=alice, json=product()).status_code == 201


def test_list_search_and_category(api, alice):
    api.post("/api/products", auth=alice, json=product("Sugar"))
    api.post("/api/products", auth=alice, json=product("Brown Sugar"))
    api.post("/api/products", auth=alice, json=product("Green Tea", category="Beverages"))

    body = api.get("/api/products", auth=alice).json()
    assert body["pagination"] == {"current": 1, "pages": 1, "total": 3, "limit": 50}

    names = {p["name"] for p in api.get("/api/products", auth=alice, params={"search": "sugar"}).json()["data"]}
    assert names == {"Sugar", "Brown Sugar"}

    names = {p["name"] for p in api.get("/api/products", auth=alice, params={"search": "bever"}).json()["data"]}
    assert names == {"Green Tea"}

    names = {p["name"] for p in api.get("/api/products", auth=alice, params={"category": "Beverages"}).json()["data"]}
    assert names == {"Green Tea"}

    assert len(api.get("/api/products", auth=alice, params={"category": "all"}).json()["data"]) == 3


def test_list_pagination(api, alice):
    for i in range(5):
        api.post("/api/products", auth=alice, json=product(f"Item {i}"))
    body = api.get("/api/products", auth=alice, params={"page": 2, "limit": 2}).json()
    assert len(body["data"]) == 2
    assert body["pagination"]["pages"] == 3
    assert body["pagination"]["total"] == 5


def test_categories_count_active_products(api, alice):
    api.post("/api/products", auth=alice, json=product("Sugar"))
    gone = api.post("/api/products", auth=alice, json=product("Jaggery")).json()
    api.post("/api/products", auth=alice, json=product("Rice", category="Grains"))
    api.delete(f"/api/products/{gone['id']}", auth=alice)

    data = api.get("/api/products/categories", auth=alice).json()["data"]
    counts = {c["name"]: c["count"] for c in data}
    assert len(data) == 9
    assert counts["Sweeteners"] == 1
    assert counts["Grains"] == 1
    assert counts["Dairy"] == 0


def test_update_product(api, alice):
    created = api.post("/api/products", auth=alice, json=product()).json()
    resp = api.put(f"/api/products/{created['id']}", auth=alice, json=product("Sugar", price_per_unit=50, weight=250, weight_unit="gm"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["price_per_unit"] == 50
    assert body["weight_unit"] == "gm"
    assert body["total_value"] == 12.5


def test_update_cannot_take_another_name(api, alice):
    api.post("/api/products", auth=alice, json=product("Sugar"))
    salt = api.post("/api/products", auth=alice, json=product("Salt")).json()
    resp = api.put(f"/api/products/{salt['id']}", auth=alice, json=product("SUGAR"))
    assert resp.status_code == 400


def test_update_cannot_reactivate(api, alice):
    created = api.post("/api/products", auth=alice, json=product()).json()
    api.delete(f"/api/products/{created['id']}", auth=alice)
    resp = api.put(f"/api/products/{created['id']}", auth=alice, json=product(is_active=True))
    assert resp.status_code == 404


def test_delete_is_soft(api, alice, db):
    created = api.post("/api/products", auth=alice, json=product()).json()
    assert api.delete(f"/api/products/{created['id']}", auth=alice).json() == {"deleted": True}

    assert api.get(f"/api/products/{created['id']}", auth=alice).status_code == 404
    assert api.get("/api/products", auth=alice).json()["data"] == []
    assert api.delete(f"/api/products/{created['id']}", auth=alice).status_code == 404
    assert db["product"].find_one({"_id": ObjectId(created["id"])})["is_active"] is False


def test_unknown_ids(api, alice):
    assert api.get("/api/products/not-an-id", auth=alice).status_code == 404
    assert api.get(f"/api/products/{ObjectId()}", auth=alice).status_code == 404
    assert api.put(f"/api/products/{ObjectId()}", auth=alice, json=product()).status_code == 404
    assert api.delete("/api/products/nope", auth=alice).status_code == 404


def test_catalog_is_per_account(api, alice, bob):
    created = api.post("/api/products", auth=alice, json=product()).json()
    assert api.get("/api/products", auth=bob).json()["data"] == []
    assert api.get(f"/api/products/{created['id']}", auth=bob).status_code == 404
    assert api.post("/api/products", auth=bob, json=product()).status_code == 201


def test_products_require_auth(api):
    assert api.get("/api/products").status_code == 401
    register(api, "carol")
    assert api.get("/api/products", auth=("carol", "wrong-password")).status_code == 401


def test_is_active_is_not_client_settable(api, alice, db):
    resp = api.post("/api/products", auth=alice, json=product(is_active=False))
    assert resp.status_code == 201
    assert resp.json()["is_active"] is True
    assert db["product"].find_one({"name": "Sugar"})["is_active"] is True

    fields = api.app.openapi()["components"]["schemas"]["ProductIn"]["properties"]
    assert "is_active" not in fields


def test_non_finite_price_rejected(api, alice):
    body = json.dumps(product(price_per_unit=math.inf))
    resp = api.post("/api/products", auth=alice, content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
