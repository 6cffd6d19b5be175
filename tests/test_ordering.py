import pytest
from bson import ObjectId


@pytest.fixture
def three_products(make_category, make_product):
    cat = make_category("Stickers", default_price=10)
    return cat, [make_product(name, category=cat["id"]) for name in ("A", "B", "C")]


def listed_names(client, category_id):
    return [p["name"] for p in client.get("/api/products", params={"category": category_id}).json()]


def move(client, headers, product_id, direction):
    res = client.post(f"/api/products/{product_id}/move", json={"direction": direction}, headers=headers)
    assert res.status_code == 200, res.json()
    return res.json()


def test_new_products_are_appended(three_products):
    _, (a, b, c) = three_products
    assert [a["order"], b["order"], c["order"]] == [0, 1, 2]


def test_move_first_up_is_noop(client, admin_headers, three_products, store):
    cat, (a, _, _) = three_products
    result = move(client, admin_headers, a["id"], "up")
    assert result["moved"] is False
    assert store["product"].find_one({"_id": ObjectId(a["id"])})["order"] == 0
    assert listed_names(client, cat["id"]) == ["A", "B", "C"]


def test_move_last_down_is_noop(client, admin_headers, three_products):
    cat, (_, _, c) = three_products
    assert move(client, admin_headers, c["id"], "down")["moved"] is False
    assert listed_names(client, cat["id"]) == ["A", "B", "C"]


def test_move_down_then_back_up_restores_order(client, admin_headers, three_products):
    cat, (a, b, _) = three_products
    move(client, admin_headers, a["id"], "down")
    assert listed_names(client, cat["id"]) == ["B", "A", "C"]
    move(client, admin_headers, b["id"], "down")
    assert listed_names(client, cat["id"]) == ["A", "B", "C"]
    move(client, admin_headers, a["id"], "down")
    move(client, admin_headers, a["id"], "up")
    assert listed_names(client, cat["id"]) == ["A", "B", "C"]


def test_tied_orders_are_resequenced(client, admin_headers, three_products, store):
    cat, (a, b, c) = three_products
    store["product"].update_many({}, {"$set": {"order": 0}})

    move(client, admin_headers, c["id"], "up")
    assert listed_names(client, cat["id"]) == ["A", "C", "B"]
    orders = sorted(p["order"] for p in store["product"].find())
    assert orders == [0, 1, 2]


def test_moves_stay_within_scope(client, admin_headers, make_category, make_product):
    one = make_category("One", default_price=1)
    two = make_category("Two", default_price=1)
    first = make_product("One-A", category=one["id"])
    make_product("Two-A", category=two["id"])
    assert move(client, admin_headers, first["id"], "down")["moved"] is False


def test_invalid_direction_rejected(client, admin_headers, three_products):
    _, (a, _, _) = three_products
    res = client.post(f"/api/products/{a['id']}/move", json={"direction": "sideways"}, headers=admin_headers)
    assert res.status_code == 400


def test_move_sub_category(client, admin_headers, make_category, make_sub_category):
    cat = make_category("E Services", type="eservice")
    first = make_sub_category(cat["id"], name="First")
    second = make_sub_category(cat["id"], name="Second")
    assert [first["order"], second["order"]] == [0, 1]

    res = client.post(f"/api/subcategories/{second['id']}/move", json={"direction": "up"}, headers=admin_headers)
    assert res.json()["moved"] is True
    names = [s["name"] for s in client.get("/api/subcategories", params={"category": cat["id"]}).json()]
    assert names == ["Second", "First"]


def test_batch_reassign_appends_in_input_order(client, admin_headers, make_category, make_product):
    source = make_category("Source", default_price=1)
    target = make_category("Target", default_price=1)
    make_product("Existing", category=target["id"])
    x = make_product("X", category=source["id"])
    y = make_product("Y", category=source["id"])

    res = client.put(
        "/api/products/batch",
        json={"ids": [y["id"], x["id"], "64b7f0c2a1b2c3d4e5f60718", "junk"], "category": target["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["updated"] == 2
    assert listed_names(client, target["id"]) == ["Existing", "Y", "X"]


def test_batch_rejects_mismatched_sub_category(client, admin_headers, make_category, make_sub_category, make_product):
    services = make_category("E Services", type="eservice")
    other = make_category("Stickers", default_price=1)
    sub = make_sub_category(services["id"])
    product = make_product("X", category=other["id"])

    res = client.put(
        "/api/products/batch",
        json={"ids": [product["id"]], "category": other["id"], "sub_category": sub["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    message = res.json()["message"]
    assert sub["id"] in message and other["id"] in message


def test_batch_requires_sub_category_for_eservice_category(client, admin_headers, make_category, make_product):
    services = make_category("E Services", type="eservice")
    other = make_category("Stickers", default_price=1)
    product = make_product("X", category=other["id"])
    res = client.put(
        "/api/products/batch",
        json={"ids": [product["id"]], "category": services["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 400


def test_batch_description_only(client, admin_headers, make_category, make_product):
    cat = make_category("Stickers", default_price=1)
    product = make_product("X", category=cat["id"], description="old")
    res = client.put("/api/products/batch", json={"ids": [product["id"]], "description": "new"}, headers=admin_headers)
    assert res.json()["updated"] == 1
    body = client.get(f"/api/products/{product['id']}").json()
    assert body["description"] == "new"
    assert body["order"] == 0


def test_batch_without_changes_rejected(client, admin_headers, make_category, make_product):
    cat = make_category("Stickers", default_price=1)
    product = make_product("X", category=cat["id"])
    res = client.put("/api/products/batch", json={"ids": [product["id"]]}, headers=admin_headers)
    assert res.status_code == 400
    assert client.get(f"/api/products/{product['id']}").json()["updated_at"] == product["updated_at"]
