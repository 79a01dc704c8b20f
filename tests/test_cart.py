# tests/test_cart.py
from fastapi.testclient import TestClient


def add(client, pid, qty=1, name="Mug", price=4.5):
    return client.post("/api/cart/add", json={"productId": pid, "quantity": qty, "name": name, "price": price})


def test_adding_twice_merges_into_one_line(client):
    add(client, 1)
    cart = add(client, 1).json()
    assert cart["items"] == [{"id": 1, "name": "Mug", "price": 4.5, "quantity": 2}]
    assert cart["total_quantity"] == 2
    assert cart["total"] == 9.0


def test_lines_keep_insertion_order(client):
    add(client, 3, name="C")
    add(client, 1, name="A")
    add(client, 3, name="C")
    assert [line["id"] for line in client.get("/api/cart").json()["items"]] == [3, 1]


def test_update_sets_quantity_and_zero_removes(client):
    add(client, 1)
    add(client, 2, name="Plate", price=3)
    cart = client.post("/api/cart/update", json={"productId": 1, "quantity": 5}).json()
    assert cart["items"][0]["quantity"] == 5

    cart = client.post("/api/cart/update", json={"productId": 1, "quantity": 0}).json()
    assert [line["id"] for line in cart["items"]] == [2]

    # updating a product that is not in the cart changes nothing
    cart = client.post("/api/cart/update", json={"productId": 42, "quantity": 3}).json()
    assert [line["id"] for line in cart["items"]] == [2]


def test_clear(client):
    add(client, 1)
    cart = client.post("/api/cart/clear").json()
    assert cart == {"items": [], "total_quantity": 0, "total": 0.0}


def test_add_requires_positive_quantity(client):
    r = add(client, 1, qty=0)
    assert r.status_code == 400
    assert r.json() == {"error": "quantity must be > 0"}
    assert add(client, "x").status_code == 400


def test_carts_are_private_per_session(app, client):
    add(client, 1)
    other = TestClient(app)
    assert other.get("/api/cart").json()["items"] == []
    assert client.get("/api/cart").json()["total_quantity"] == 1
